"""
리스크 스코어링 모듈

정규화된 피처에 고정 가중치 표를 적용해 0-100 리스크 점수와 등급을 계산하고,
데이터 충분도로부터 신뢰도를 추정합니다.
"""

import logging
from typing import Dict, Any, Optional

from .models import FeatureVector, RiskLevel
from .policy import EnginePolicy, load_policy

logger = logging.getLogger(__name__)


class RiskScorer:
    """리스크 스코어 계산기"""

    def __init__(self, policy: Optional[EnginePolicy] = None):
        """
        Args:
            policy: 엔진 정책. None이면 기본 정책 사용
        """
        self.policy = policy or load_policy()
        self.weights = self.policy.weights  # 피처별 가중치
        self.normalization = self.policy.normalization  # 피처별 정규화 상한
        self.thresholds = self.policy.risk_thresholds  # 리스크 등급 임계값

    ## ===== 메인 리스크 스코어 계산 함수 ===== ##
    def calculate_risk_score(self, features: FeatureVector) -> Dict[str, Any]:
        """
        피처 벡터로부터 리스크 점수, 등급, 피처 기여도를 계산합니다.

        전체 흐름:
        피처 정규화 → 가중합 → 0-100 변환 → 등급 분류

        Args:
            features: 추출된 피처 벡터

        Returns:
            리스크 스코어 결과 (점수, 등급, 피처 기여도)
        """
        risk_score = self.score(features)
        return {
            'risk_score': risk_score,
            'risk_level': self.risk_level(risk_score),
            'feature_contributions': self.feature_contributions(features)
        }

    def score(self, features: FeatureVector) -> float:
        """
        피처 가중합으로 0-100 리스크 점수를 계산합니다.

        동작 원리:
        1. 각 피처를 상한값으로 나눈 뒤 0-1 범위로 제한
        2. 정규화된 값에 가중치를 곱해 모두 합산 (계정 나이와 상대방 수는 음수 가중치)
        3. 100을 곱하고 0-100 범위로 제한한 뒤 소수 둘째 자리로 반올림

        예시:
        - 연속 거래 14회 → 14/50 = 0.28 → × 0.18 → 0.0504
        - 실패율 0.5 → 0.5 → × 0.20 → 0.10
        """
        # 기여분이 이미 100점 척도이므로 합이 곧 rawScore × 100
        scaled = sum(self.feature_contributions(features).values())
        risk_score = round(max(0.0, min(100.0, scaled)), 2)

        logger.debug("Risk score: %.2f (unclamped=%.4f)", risk_score, scaled)
        return risk_score

    def normalize(self, features: FeatureVector) -> Dict[str, float]:
        """피처 값을 0-1 범위로 정규화합니다."""
        values = features.to_dict()
        return {
            name: min(1.0, max(0.0, float(values[name]) / cap))
            for name, cap in self.normalization.items()
        }

    def feature_contributions(self, features: FeatureVector) -> Dict[str, float]:
        """각 피처가 100점 척도의 원점수에 더하는 부호 있는 기여분을 계산합니다."""
        normalized = self.normalize(features)
        return {
            name: normalized[name] * weight * 100.0
            for name, weight in self.weights.items()
        }

    def risk_level(self, score: float) -> RiskLevel:
        """
        점수를 4단계 리스크 등급으로 분류합니다.

        등급 체계 (높은 등급부터 검사, 처음 맞는 등급 선택):
        - CRITICAL: 85점 이상
        - HIGH: 70점 이상
        - MEDIUM: 50점 이상
        - LOW: 그 외

        정책의 low(30) 임계값은 문서상 경계일 뿐 등급 선택에 쓰이지 않습니다.
        """
        if score >= self.thresholds['critical']:
            return RiskLevel.CRITICAL
        elif score >= self.thresholds['high']:
            return RiskLevel.HIGH
        elif score >= self.thresholds['medium']:
            return RiskLevel.MEDIUM
        else:
            return RiskLevel.LOW


class ConfidenceEstimator:
    """
    데이터 충분도 기반 신뢰도 추정기

    신뢰도는 점수가 맞을 확률이 아니라, 점수를 뒷받침하는 거래량과 이력의
    양을 나타냅니다.
    """

    def __init__(self, policy: Optional[EnginePolicy] = None):
        self.policy = policy or load_policy()
        self.rules = self.policy.confidence

    def confidence(self, features: FeatureVector) -> float:
        """기본 0.5에 거래 빈도와 계정 나이 단계별 가산치를 더합니다 (최대 1.0)."""
        confidence = self.rules.base

        # 거래가 많을수록 신뢰도 증가
        for above, bonus in self.rules.frequency_steps:
            if features.transaction_frequency > above:
                confidence += bonus

        # 오래된 계정일수록 신뢰도 증가
        for above, bonus in self.rules.age_steps:
            if features.account_age > above:
                confidence += bonus

        return round(min(self.rules.maximum, max(0.0, confidence)), 4)


def calculate_risk_score(features: FeatureVector,
                         policy: Optional[EnginePolicy] = None) -> Dict[str, Any]:
    """
    편의 함수: 피처 벡터로부터 리스크 스코어를 계산합니다.

    Args:
        features: 추출된 피처 벡터
        policy: 엔진 정책

    Returns:
        리스크 스코어 결과
    """
    scorer = RiskScorer(policy)
    result = scorer.calculate_risk_score(features)
    result['confidence'] = ConfidenceEstimator(scorer.policy).confidence(features)
    return result
