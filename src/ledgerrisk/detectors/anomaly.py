"""
이상 이벤트 탐지 모듈

거래 간격의 통계적 이상치와 연속 거래 쌍을 개별 이벤트로 찾아냅니다.
피처 추출기의 이상 패턴 점수와 같은 이력을 보지만, 점수 대신 이벤트 목록을
만든다는 점이 다릅니다.
"""

import logging
from typing import Iterable, List, Optional

import numpy as np

from ..models import AnomalyEvent, AnomalyType, Severity, TransactionRecord
from ..policy import EnginePolicy, load_policy
from ..utils import HistoryItem, clean_history
from .features import inter_arrival_intervals

logger = logging.getLogger(__name__)


class AnomalyDetector:
    """거래 이력 기반 이상 이벤트 탐지기"""

    def __init__(self, policy: Optional[EnginePolicy] = None):
        self.policy = policy or load_policy()

    def detect_frequency_anomalies(self, history: Optional[Iterable[HistoryItem]]) -> List[AnomalyEvent]:
        """
        거래 간격이 평균에서 표준편차의 2배를 넘게 벗어난 지점을 찾습니다.

        Args:
            history: 거래 이력

        Returns:
            FREQUENCY_ANOMALY 이벤트 리스트. 레코드가 2개 미만이면 빈 리스트
        """
        records = clean_history(history)
        if len(records) < 2:
            return []

        intervals = inter_arrival_intervals(self._timestamps_ms(records))
        mean = float(np.mean(intervals))
        std_dev = float(np.std(intervals))
        limit = self.policy.anomaly.stddev_multiplier * std_dev

        anomalies = []
        for i, interval in enumerate(intervals):
            if abs(interval - mean) > limit:
                # 간격 i는 records[i](더 최근)와 records[i+1] 사이
                anomalies.append(AnomalyEvent(
                    timestamp=records[i].consensus_timestamp,
                    type=AnomalyType.FREQUENCY_ANOMALY,
                    severity=Severity.MEDIUM,
                    description=(
                        f"Unusual transaction interval: {interval / 1000.0:.1f}s "
                        f"(mean {mean / 1000.0:.1f}s)"
                    )
                ))

        logger.debug("Found %d frequency anomalies in %d interval(s)", len(anomalies), len(intervals))
        return anomalies

    def detect_rapid_fire(self, history: Optional[Iterable[HistoryItem]]) -> List[AnomalyEvent]:
        """1초 미만 간격으로 붙은 거래 쌍마다 RAPID_FIRE 이벤트를 만듭니다."""
        records = clean_history(history)
        if len(records) < 2:
            return []

        intervals = inter_arrival_intervals(self._timestamps_ms(records))
        threshold = self.policy.features.rapid_fire_ms

        return [
            AnomalyEvent(
                timestamp=records[i + 1].consensus_timestamp,
                type=AnomalyType.RAPID_FIRE,
                severity=Severity.HIGH,
                description=f"Rapid-fire transactions {interval:.0f}ms apart (possible bot)"
            )
            for i, interval in enumerate(intervals)
            if interval < threshold
        ]

    @staticmethod
    def _timestamps_ms(records: List[TransactionRecord]) -> np.ndarray:
        return np.array([r.consensus_timestamp.timestamp() * 1000.0 for r in records])
