"""
Ledger Risk Engine

원장 계정의 거래 이력으로부터 사기 리스크 점수, 경고, 권장 조치를 계산하는 엔진입니다.
"""

__version__ = "0.3.0"
__author__ = "Ledger Risk Engine Team"

from .models import (
    TransactionRecord,
    TransactionResult,
    FeatureVector,
    AnomalyEvent,
    AnomalyType,
    Severity,
    RiskLevel,
    RiskAssessment,
    AnomalyReport,
    ModelMetrics,
)
from .policy import EnginePolicy, PolicyError, load_policy
from .scoring import calculate_risk_score, RiskScorer, ConfidenceEstimator
from .detectors.features import FeatureExtractor, extract_features
from .detectors.anomaly import AnomalyDetector
from .alerts import AlertGenerator
from .recommendations import RecommendationEngine
from .providers import (
    TransactionHistoryProvider,
    HistoryUnavailableError,
    InMemoryHistoryProvider,
    FileHistoryProvider,
    MirrorNodeHistoryProvider,
)
from .engine import RiskAssessmentEngine
from .utils import validate_record, clean_history, create_summary_report

__all__ = [
    "TransactionRecord",
    "TransactionResult",
    "FeatureVector",
    "AnomalyEvent",
    "AnomalyType",
    "Severity",
    "RiskLevel",
    "RiskAssessment",
    "AnomalyReport",
    "ModelMetrics",
    "EnginePolicy",
    "PolicyError",
    "load_policy",
    "calculate_risk_score",
    "RiskScorer",
    "ConfidenceEstimator",
    "FeatureExtractor",
    "extract_features",
    "AnomalyDetector",
    "AlertGenerator",
    "RecommendationEngine",
    "TransactionHistoryProvider",
    "HistoryUnavailableError",
    "InMemoryHistoryProvider",
    "FileHistoryProvider",
    "MirrorNodeHistoryProvider",
    "RiskAssessmentEngine",
    "validate_record",
    "clean_history",
    "create_summary_report",
]
