"""
권장 조치 생성 모듈
"""

from typing import List, Optional

from .models import FeatureVector, RiskLevel
from .policy import EnginePolicy, load_policy

MANUAL_REVIEW = "Immediate manual review required"
TEMPORARY_RESTRICTION = "Consider temporary account restrictions"
IDENTITY_VERIFICATION = "Verify account ownership and identity"
RATE_LIMIT = "Implement rate limiting for this account"
INVESTIGATE_FAILURES = "Investigate cause of high failure rate"
NEW_ACCOUNT_VERIFICATION = "New account - apply additional verification"
APPEARS_NORMAL = "Account appears normal - continue monitoring"
INSUFFICIENT_DATA = "Insufficient transaction history - continue monitoring"


class RecommendationEngine:
    """리스크 등급과 피처로부터 권장 조치 목록을 만듭니다."""

    def __init__(self, policy: Optional[EnginePolicy] = None):
        self.policy = policy or load_policy()
        self.thresholds = self.policy.recommendation_thresholds

    def recommend(self, risk_level: RiskLevel, features: FeatureVector) -> List[str]:
        """
        권장사항을 생성합니다.

        high/critical 등급이면 수동 검토, 임시 제한, 신원 확인을 순서대로 넣고,
        등급과 무관하게 피처 조건에 따른 항목을 덧붙입니다. low 등급에서
        조건 항목이 하나도 없으면 정상 모니터링 문구 하나만 넣습니다.
        """
        recommendations = []

        if risk_level in (RiskLevel.CRITICAL, RiskLevel.HIGH):
            recommendations.extend([
                MANUAL_REVIEW,
                TEMPORARY_RESTRICTION,
                IDENTITY_VERIFICATION
            ])

        conditional = []
        if features.rapid_fire_count > self.thresholds['rapid_fire_count']:
            conditional.append(RATE_LIMIT)
        if features.failure_rate > self.thresholds['failure_rate']:
            conditional.append(INVESTIGATE_FAILURES)
        if features.account_age < self.thresholds['new_account_days']:
            conditional.append(NEW_ACCOUNT_VERIFICATION)
        recommendations.extend(conditional)

        if risk_level == RiskLevel.LOW and not conditional:
            recommendations.append(APPEARS_NORMAL)

        return recommendations
