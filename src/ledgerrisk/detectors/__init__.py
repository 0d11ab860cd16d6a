"""
탐지기 패키지

피처 추출기와 이상 이벤트 탐지기를 제공합니다.
"""

from .features import FeatureExtractor, extract_features
from .anomaly import AnomalyDetector

__all__ = [
    "FeatureExtractor",
    "extract_features",
    "AnomalyDetector",
]
