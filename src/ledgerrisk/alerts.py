"""
경고 생성 모듈

피처 임계값과 탐지기가 찾은 이상 이벤트를 사람이 읽을 수 있는
심각도별 경고로 변환합니다.
"""

import logging
from datetime import datetime
from typing import List, Optional, Sequence

from .models import AnomalyEvent, AnomalyType, FeatureVector, Severity
from .policy import EnginePolicy, load_policy

logger = logging.getLogger(__name__)


class AlertGenerator:
    """피처/이상 이벤트 -> 경고 리스트 변환기"""

    def __init__(self, policy: Optional[EnginePolicy] = None):
        self.policy = policy or load_policy()
        self.thresholds = self.policy.alert_thresholds

    def alerts(self,
               features: FeatureVector,
               anomalies: Sequence[AnomalyEvent],
               as_of: datetime) -> List[AnomalyEvent]:
        """
        경고 리스트를 생성합니다.

        탐지기의 FREQUENCY_ANOMALY 이벤트를 먼저 넣고, 이어서 임계값을
        초과한 피처마다 경고를 하나씩 붙입니다. 임계값 비교는 모두 '초과'
        기준입니다 (예: 연속 거래 10회는 경고하지 않음).

        Args:
            features: 피처 벡터
            anomalies: 이상 탐지기가 찾은 이벤트
            as_of: 임계값 경고에 찍을 평가 시각

        Returns:
            순서가 고정된 경고 리스트
        """
        alerts = [event for event in anomalies if event.type == AnomalyType.FREQUENCY_ANOMALY]
        t = self.thresholds

        if features.rapid_fire_count > t['rapid_fire_count']:
            alerts.append(AnomalyEvent(
                timestamp=as_of,
                type=AnomalyType.RAPID_FIRE,
                severity=Severity.HIGH,
                description=f"{features.rapid_fire_count} rapid-fire transactions detected"
            ))

        if features.failure_rate > t['failure_rate']:
            alerts.append(AnomalyEvent(
                timestamp=as_of,
                type=AnomalyType.HIGH_FAILURE_RATE,
                severity=Severity.MEDIUM,
                description=f"High failure rate: {features.failure_rate * 100:.1f}%"
            ))

        if features.night_time_activity > t['night_time_activity']:
            alerts.append(AnomalyEvent(
                timestamp=as_of,
                type=AnomalyType.NIGHT_ACTIVITY,
                severity=Severity.LOW,
                description=f"{features.night_time_activity * 100:.1f}% of activity during night hours"
            ))

        if features.transaction_frequency > t['transaction_frequency']:
            alerts.append(AnomalyEvent(
                timestamp=as_of,
                type=AnomalyType.HIGH_FREQUENCY,
                severity=Severity.MEDIUM,
                description=(
                    f"Unusually high transaction frequency: "
                    f"{features.transaction_frequency:.1f} txs/day"
                )
            ))

        if features.unusual_patterns > t['unusual_patterns']:
            alerts.append(AnomalyEvent(
                timestamp=as_of,
                type=AnomalyType.UNUSUAL_PATTERNS,
                severity=Severity.HIGH,
                description=f"{features.unusual_patterns} unusual transaction patterns detected"
            ))

        logger.debug("Generated %d alert(s)", len(alerts))
        return alerts
