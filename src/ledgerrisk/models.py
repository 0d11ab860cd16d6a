"""
데이터 모델 모듈

트랜잭션 레코드, 피처 벡터, 이상 이벤트, 리스크 평가 결과 등
엔진이 주고받는 값 객체들을 정의합니다. 모든 객체는 호출마다 새로 만들어지고
엔진 내부에 보관되지 않습니다.
"""

from dataclasses import dataclass, field, asdict
from datetime import datetime
from enum import Enum
from typing import Dict, List, Any, Optional


class TransactionResult(str, Enum):
    """트랜잭션 처리 결과"""
    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"

    @classmethod
    def from_raw(cls, value: Any) -> "TransactionResult":
        """원본 결과 문자열을 변환합니다. SUCCESS 외의 값은 모두 실패로 간주합니다."""
        if isinstance(value, cls):
            return value
        if str(value).strip().upper() == cls.SUCCESS.value:
            return cls.SUCCESS
        return cls.FAILURE


class RiskLevel(str, Enum):
    """리스크 등급"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class Severity(str, Enum):
    """경고 심각도"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class AnomalyType(str, Enum):
    """이상 이벤트 유형"""
    FREQUENCY_ANOMALY = "FREQUENCY_ANOMALY"
    RAPID_FIRE = "RAPID_FIRE"
    HIGH_FAILURE_RATE = "HIGH_FAILURE_RATE"
    NIGHT_ACTIVITY = "NIGHT_ACTIVITY"
    HIGH_FREQUENCY = "HIGH_FREQUENCY"
    UNUSUAL_PATTERNS = "UNUSUAL_PATTERNS"


@dataclass(frozen=True)
class TransactionRecord:
    """원장 트랜잭션 한 건"""
    consensus_timestamp: datetime
    fee_amount: float
    result: TransactionResult
    counterparty_id: str
    transaction_hash: Optional[str] = None
    transaction_type: Optional[str] = None

    @property
    def is_success(self) -> bool:
        return self.result == TransactionResult.SUCCESS


FEATURE_NAMES = (
    'transaction_frequency',
    'transaction_variance',
    'average_amount',
    'night_time_activity',
    'failure_rate',
    'account_age',
    'unique_counterparties',
    'rapid_fire_count',
    'unusual_patterns',
)


@dataclass(frozen=True)
class FeatureVector:
    """
    계정 하나의 거래 이력을 요약한 9차원 피처 벡터

    Attributes:
        transaction_frequency: 하루당 거래 수
        transaction_variance: 수수료 금액의 모표준편차
        average_amount: 평균 수수료 금액
        night_time_activity: 야간(22시~6시) 거래 비율 [0, 1]
        failure_rate: 실패 거래 비율 [0, 1]
        account_age: 가장 오래된 거래 이후 경과 일수
        unique_counterparties: 고유 상대방 수
        rapid_fire_count: 1초 미만 간격으로 붙은 인접 거래 쌍의 수
        unusual_patterns: 구조적 이상 패턴 점수
    """
    transaction_frequency: float = 0.0
    transaction_variance: float = 0.0
    average_amount: float = 0.0
    night_time_activity: float = 0.0
    failure_rate: float = 0.0
    account_age: float = 0.0
    unique_counterparties: int = 0
    rapid_fire_count: int = 0
    unusual_patterns: int = 0

    @classmethod
    def zeros(cls) -> "FeatureVector":
        return cls()

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


@dataclass(frozen=True)
class AnomalyEvent:
    """심각도가 붙은 개별 이상 이벤트"""
    timestamp: datetime
    type: AnomalyType
    severity: Severity
    description: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'timestamp': self.timestamp.isoformat(),
            'type': self.type.value,
            'severity': self.severity.value,
            'description': self.description,
        }


@dataclass(frozen=True)
class RiskAssessment:
    """엔진의 최종 출력: 계정 하나에 대한 사기 리스크 평가"""
    account_id: str
    risk_score: float
    risk_level: RiskLevel
    confidence: float
    features: FeatureVector
    assessed_at: datetime
    alerts: List[AnomalyEvent] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    data_available: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            'account_id': self.account_id,
            'risk_score': self.risk_score,
            'risk_level': self.risk_level.value,
            'confidence': self.confidence,
            'features': self.features.to_dict(),
            'alerts': [alert.to_dict() for alert in self.alerts],
            'recommendations': list(self.recommendations),
            'data_available': self.data_available,
            'assessed_at': self.assessed_at.isoformat(),
        }


@dataclass(frozen=True)
class AnomalyReport:
    """이상 이벤트만으로 계산한 계정별 요약 보고서"""
    account_id: str
    total_transactions: int
    anomaly_count: int
    risk_score: float
    is_high_risk: bool
    anomalies: List[AnomalyEvent] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'account_id': self.account_id,
            'total_transactions': self.total_transactions,
            'anomaly_count': self.anomaly_count,
            'risk_score': self.risk_score,
            'is_high_risk': self.is_high_risk,
            'anomalies': [anomaly.to_dict() for anomaly in self.anomalies],
        }


@dataclass(frozen=True)
class ModelMetrics:
    """
    설정으로 주어지는 모델 성능 스냅샷

    실시간 호출에서 계산되는 값이 아니며, 수치의 출처가 검증되지 않았으므로
    validated 는 기본적으로 False 입니다.
    """
    accuracy: float
    precision: float
    recall: float
    f1_score: float
    total_predictions: int
    true_positives: int
    false_positives: int
    last_updated: Optional[datetime] = None
    validated: bool = False

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['last_updated'] = self.last_updated.isoformat() if self.last_updated else None
        return data
