"""
거래 이력 피처 추출 모듈

계정 하나의 최신순 거래 이력에서 빈도, 수수료 분산, 야간 활동, 실패율,
계정 나이, 상대방 수, 연속 거래, 이상 패턴 등 9개의 피처를 계산합니다.
"""

import logging
import math
from collections import Counter
from datetime import datetime, timezone
from typing import Callable, Iterable, Optional

import numpy as np

from ..models import FeatureVector
from ..policy import EnginePolicy, FeatureSettings, load_policy
from ..utils import HistoryItem, clean_history

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400.0


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _finite(value: float) -> float:
    """NaN/Infinity를 0으로 바꿉니다."""
    value = float(value)
    return value if math.isfinite(value) else 0.0


class FeatureExtractor:
    """거래 이력 -> FeatureVector 변환기"""

    def __init__(self,
                 policy: Optional[EnginePolicy] = None,
                 clock: Optional[Callable[[], datetime]] = None):
        """
        Args:
            policy: 엔진 정책. None이면 기본 정책 사용
            clock: 계정 나이 계산 기준 시각을 돌려주는 함수
        """
        self.policy = policy or load_policy()
        self.settings: FeatureSettings = self.policy.features
        self.clock = clock or _utc_now

    def extract(self,
                history: Optional[Iterable[HistoryItem]],
                as_of: Optional[datetime] = None) -> FeatureVector:
        """
        거래 이력에서 피처 벡터를 계산합니다.

        손상된 레코드는 제외되며, 남은 레코드가 없으면 모든 값이 0인 벡터를
        반환합니다.

        Args:
            history: 거래 이력 (순서 무관, 내부에서 최신순 정렬)
            as_of: 계정 나이 계산 기준 시각. None이면 clock() 사용

        Returns:
            FeatureVector
        """
        records = clean_history(history)
        if not records:
            return FeatureVector.zeros()

        as_of = as_of or self.clock()
        n = len(records)

        # 최신순 타임스탬프 (밀리초)
        timestamps_ms = np.array([r.consensus_timestamp.timestamp() * 1000.0 for r in records])
        fees = np.array([r.fee_amount for r in records], dtype=float)

        # === 거래 빈도 (하루당) ===
        time_span_days = (timestamps_ms.max() - timestamps_ms.min()) / 1000.0 / SECONDS_PER_DAY
        transaction_frequency = n / max(time_span_days, 1.0)

        # === 수수료 평균과 모표준편차 ===
        average_amount = float(np.mean(fees))
        transaction_variance = float(np.std(fees))

        # === 야간 활동 비율 ===
        night_count = sum(1 for r in records if self._is_night(r.consensus_timestamp))
        night_time_activity = night_count / n

        # === 실패율 ===
        failures = sum(1 for r in records if not r.is_success)
        failure_rate = failures / n

        # === 계정 나이 (일) ===
        oldest = records[-1].consensus_timestamp
        account_age = max((as_of - oldest).total_seconds() / SECONDS_PER_DAY, 0.0)

        # === 고유 상대방 수 ===
        unique_counterparties = len({r.counterparty_id for r in records})

        # === 연속 거래 (1초 미만 간격) ===
        intervals = inter_arrival_intervals(timestamps_ms)
        rapid_fire_count = int(np.sum(intervals < self.settings.rapid_fire_ms)) if len(intervals) else 0

        # === 이상 패턴 ===
        unusual_patterns = self._detect_unusual_patterns(fees, intervals)

        features = FeatureVector(
            transaction_frequency=_finite(transaction_frequency),
            transaction_variance=_finite(transaction_variance),
            average_amount=_finite(average_amount),
            night_time_activity=min(max(_finite(night_time_activity), 0.0), 1.0),
            failure_rate=min(max(_finite(failure_rate), 0.0), 1.0),
            account_age=_finite(account_age),
            unique_counterparties=unique_counterparties,
            rapid_fire_count=rapid_fire_count,
            unusual_patterns=unusual_patterns
        )
        logger.debug("Extracted features from %d record(s): %s", n, features)
        return features

    def _is_night(self, timestamp: datetime) -> bool:
        """22시~6시(UTC) 사이인지 확인합니다."""
        hour = timestamp.astimezone(timezone.utc).hour
        start = self.settings.night_start_hour
        end = self.settings.night_end_hour
        if start <= end:
            return start <= hour < end
        return hour >= start or hour < end

    def _detect_unusual_patterns(self, fees: np.ndarray, intervals: np.ndarray) -> int:
        """
        구조적 이상 패턴 점수를 계산합니다.

        1. 동일 수수료가 전체 거래의 20%를 넘게 반복되면 해당 금액마다 +1
        2. 거래 간격의 분산(ms^2)이 평균 간격(ms)의 10%보다 작으면
           지나치게 규칙적인 주기로 보고 +2

        두 조건은 독립적으로 합산됩니다.
        """
        unusual_count = 0
        total = len(fees)

        fee_counts = Counter(fees.tolist())
        for count in fee_counts.values():
            if count / total > self.settings.repeated_fee_share:
                unusual_count += 1

        if len(intervals) > 0:
            mean_interval = _finite(np.mean(intervals))
            interval_variance = _finite(np.var(intervals))
            if interval_variance < mean_interval * self.settings.regular_cadence_ratio:
                unusual_count += self.settings.regular_cadence_bonus

        return unusual_count


def inter_arrival_intervals(timestamps_ms: np.ndarray) -> np.ndarray:
    """최신순 타임스탬프 배열에서 인접 거래 간격(ms)을 계산합니다."""
    if len(timestamps_ms) < 2:
        return np.array([], dtype=float)
    return timestamps_ms[:-1] - timestamps_ms[1:]


def extract_features(history: Optional[Iterable[HistoryItem]],
                     policy: Optional[EnginePolicy] = None,
                     as_of: Optional[datetime] = None) -> FeatureVector:
    """
    편의 함수: 거래 이력에서 피처 벡터를 계산합니다.

    Args:
        history: 거래 이력
        policy: 엔진 정책
        as_of: 계정 나이 계산 기준 시각

    Returns:
        FeatureVector
    """
    return FeatureExtractor(policy).extract(history, as_of=as_of)
