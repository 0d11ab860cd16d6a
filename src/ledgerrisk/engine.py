"""
리스크 평가 엔진 모듈

피처 추출 → 이상 탐지 → 점수/신뢰도 → 경고 → 권장 조치 순서로 파이프라인을
실행해 계정별 RiskAssessment를 조립합니다. 엔진은 불변 정책, 설정, 이력 제공자,
시계만 보관하며 호출 사이에 상태를 남기지 않습니다.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeoutError
from datetime import datetime, timezone
from typing import Callable, Iterable, List, Optional

from .alerts import AlertGenerator
from .config import Settings
from .detectors.anomaly import AnomalyDetector
from .detectors.features import FeatureExtractor
from .models import AnomalyReport, FeatureVector, ModelMetrics, RiskAssessment
from .policy import EnginePolicy, load_policy
from .providers import TransactionHistoryProvider
from .recommendations import INSUFFICIENT_DATA, RecommendationEngine
from .scoring import ConfidenceEstimator, RiskScorer
from .utils import HistoryItem, clean_history

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RiskAssessmentEngine:
    """계정 거래 이력 -> 사기 리스크 평가 파사드"""

    def __init__(self,
                 policy: Optional[EnginePolicy] = None,
                 history_provider: Optional[TransactionHistoryProvider] = None,
                 settings: Optional[Settings] = None,
                 clock: Optional[Callable[[], datetime]] = None):
        """
        Args:
            policy: 엔진 정책. None이면 settings.POLICY_PATH(없으면 기본 정책)에서 로딩
            history_provider: 이력을 직접 넘기지 않을 때 사용할 제공자
            settings: 런타임 설정
            clock: 평가 기준 시각을 돌려주는 함수 (테스트에서 고정 가능)
        """
        self.settings = settings or Settings()
        self.policy = policy or load_policy(self.settings.POLICY_PATH)
        self.history_provider = history_provider
        self.clock = clock or _utc_now

        self.feature_extractor = FeatureExtractor(self.policy, self.clock)
        self.anomaly_detector = AnomalyDetector(self.policy)
        self.risk_scorer = RiskScorer(self.policy)
        self.confidence_estimator = ConfidenceEstimator(self.policy)
        self.alert_generator = AlertGenerator(self.policy)
        self.recommendation_engine = RecommendationEngine(self.policy)

    def predict_fraud_risk(self,
                           account_id: str,
                           history: Optional[Iterable[HistoryItem]] = None) -> RiskAssessment:
        """
        계정 하나의 사기 리스크를 평가합니다.

        이력이 비어 있거나 제공자가 실패해도 예외를 던지지 않고
        데이터 부족 평가를 반환합니다.

        Args:
            account_id: 계정 ID
            history: 거래 이력. None이면 history_provider에서 조회

        Returns:
            RiskAssessment
        """
        if history is None:
            history = self._fetch_histories([account_id], self.history_provider)[0]
        return self._assess(account_id, history, self.clock())

    def batch_predict(self,
                      account_ids: Iterable[str],
                      history_provider: Optional[TransactionHistoryProvider] = None) -> List[RiskAssessment]:
        """
        여러 계정을 서로 독립적으로 평가합니다.

        이력 조회는 크기가 고정된 스레드 풀에서 병렬로 실행되고, 각 조회는
        HISTORY_FETCH_TIMEOUT_SECONDS 안에 끝나지 않으면 데이터 부족으로
        처리됩니다. 결과 순서는 입력 순서와 같습니다.

        Args:
            account_ids: 계정 ID 목록
            history_provider: 이번 배치에 사용할 제공자. None이면 엔진의 제공자

        Returns:
            입력 순서대로 정렬된 RiskAssessment 리스트
        """
        account_ids = list(account_ids)
        if not account_ids:
            return []

        provider = history_provider or self.history_provider
        histories = self._fetch_histories(account_ids, provider)
        assessments = [
            self._assess(account_id, history, self.clock())
            for account_id, history in zip(account_ids, histories)
        ]

        logger.info("Batch assessed %d account(s)", len(assessments))
        return assessments

    def detect_anomalies(self,
                         account_id: str,
                         history: Optional[Iterable[HistoryItem]] = None) -> AnomalyReport:
        """
        이상 이벤트만으로 계정 요약 보고서를 만듭니다.

        점수는 min(100, 이상 이벤트 수 / 거래 수 × 100 × 10)이며,
        이벤트는 앞에서부터 최대 10개만 담습니다.
        """
        if history is None:
            history = self._fetch_histories([account_id], self.history_provider)[0]

        records = clean_history(history)
        if not records:
            return AnomalyReport(
                account_id=account_id,
                total_transactions=0,
                anomaly_count=0,
                risk_score=0.0,
                is_high_risk=False,
                anomalies=[]
            )

        settings = self.policy.anomaly
        anomalies = (self.anomaly_detector.detect_frequency_anomalies(records)
                     + self.anomaly_detector.detect_rapid_fire(records))
        risk_score = min(100.0, len(anomalies) / len(records) * 100.0 * settings.report_scale)
        risk_score = round(risk_score, 2)

        return AnomalyReport(
            account_id=account_id,
            total_transactions=len(records),
            anomaly_count=len(anomalies),
            risk_score=risk_score,
            is_high_risk=risk_score > settings.high_risk_score,
            anomalies=anomalies[:settings.report_limit]
        )

    def get_model_metrics(self) -> ModelMetrics:
        """설정으로 주어진 성능 지표 스냅샷을 반환합니다 (검증되지 않은 값)."""
        return self.policy.model_metrics

    def _fetch_histories(self,
                         account_ids: List[str],
                         provider: Optional[TransactionHistoryProvider]) -> List[Optional[List[HistoryItem]]]:
        """
        크기가 고정된 스레드 풀에서 계정별 이력을 조회합니다.

        각 조회는 HISTORY_FETCH_TIMEOUT_SECONDS 안에 끝나지 않으면 None이 됩니다.

        Returns:
            입력 순서대로 정렬된 이력 리스트 (실패/시간 초과는 None)
        """
        timeout = self.settings.HISTORY_FETCH_TIMEOUT_SECONDS
        max_workers = max(1, min(self.settings.BATCH_MAX_WORKERS, len(account_ids)))

        pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix='ledgerrisk-fetch')
        try:
            futures = [pool.submit(self._fetch_history, account_id, provider) for account_id in account_ids]

            histories = []
            for account_id, future in zip(account_ids, futures):
                try:
                    histories.append(future.result(timeout=timeout))
                except FuturesTimeoutError:
                    future.cancel()
                    logger.warning("History fetch for %s timed out after %.1fs", account_id, timeout)
                    histories.append(None)
        finally:
            # 끝나지 않은 조회를 기다리지 않음
            pool.shutdown(wait=False, cancel_futures=True)

        return histories

    def _fetch_history(self,
                       account_id: str,
                       provider: Optional[TransactionHistoryProvider]) -> Optional[List[HistoryItem]]:
        """제공자에서 이력을 가져옵니다. 실패하면 None을 반환합니다."""
        if provider is None:
            logger.warning("No history provider configured; cannot fetch history for %s", account_id)
            return None

        try:
            # 지연 이터레이터는 여기서 끝까지 읽음
            return list(provider.get_history(account_id, self.settings.HISTORY_LIMIT))
        except Exception as e:
            # 제공자 실패는 데이터 부족으로 처리 (재시도는 호출자 책임)
            logger.warning("History fetch for %s failed: %s", account_id, e)
            return None

    def _assess(self,
                account_id: str,
                history: Optional[Iterable[HistoryItem]],
                as_of: datetime) -> RiskAssessment:
        records = clean_history(history)
        if not records:
            logger.info("No usable transaction history for %s", account_id)
            return self._insufficient_data(account_id, as_of)

        # 1. 피처 추출
        features = self.feature_extractor.extract(records, as_of=as_of)

        # 2. 같은 이력에서 이상 이벤트 탐지
        anomalies = self.anomaly_detector.detect_frequency_anomalies(records)

        # 3. 점수, 등급, 신뢰도
        risk_score = self.risk_scorer.score(features)
        risk_level = self.risk_scorer.risk_level(risk_score)
        confidence = self.confidence_estimator.confidence(features)

        # 4. 경고와 권장 조치
        alerts = self.alert_generator.alerts(features, anomalies, as_of)
        recommendations = self.recommendation_engine.recommend(risk_level, features)

        logger.info("Assessed %s: score=%.2f level=%s confidence=%.2f alerts=%d",
                    account_id, risk_score, risk_level.value, confidence, len(alerts))

        return RiskAssessment(
            account_id=account_id,
            risk_score=risk_score,
            risk_level=risk_level,
            confidence=confidence,
            features=features,
            assessed_at=as_of,
            alerts=alerts,
            recommendations=recommendations,
            data_available=True
        )

    def _insufficient_data(self, account_id: str, as_of: datetime) -> RiskAssessment:
        features = FeatureVector.zeros()
        return RiskAssessment(
            account_id=account_id,
            risk_score=0.0,
            risk_level=self.risk_scorer.risk_level(0.0),
            confidence=self.confidence_estimator.confidence(features),
            features=features,
            assessed_at=as_of,
            alerts=[],
            recommendations=[INSUFFICIENT_DATA],
            data_available=False
        )
