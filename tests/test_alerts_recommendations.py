"""
경고 및 권장 조치 모듈 테스트
"""

from datetime import datetime, timezone

from ledgerrisk.alerts import AlertGenerator
from ledgerrisk.models import AnomalyEvent, AnomalyType, FeatureVector, RiskLevel, Severity
from ledgerrisk.recommendations import (
    APPEARS_NORMAL,
    IDENTITY_VERIFICATION,
    INVESTIGATE_FAILURES,
    MANUAL_REVIEW,
    NEW_ACCOUNT_VERIFICATION,
    RATE_LIMIT,
    TEMPORARY_RESTRICTION,
    RecommendationEngine,
)

AS_OF = datetime(2024, 1, 31, 12, 0, tzinfo=timezone.utc)


class TestAlertGenerator:
    """AlertGenerator 클래스 테스트"""

    def setup_method(self):
        """테스트 전 설정"""
        self.generator = AlertGenerator()

    def test_no_alerts_for_quiet_account(self):
        """임계값 미만이면 경고 없음 테스트"""
        assert self.generator.alerts(FeatureVector(account_age=100.0), [], AS_OF) == []

    def test_thresholds_are_strict(self):
        """임계값과 같으면 경고하지 않음 테스트"""
        features = FeatureVector(
            rapid_fire_count=10,
            failure_rate=0.3,
            night_time_activity=0.5,
            transaction_frequency=50.0,
            unusual_patterns=5
        )
        assert self.generator.alerts(features, [], AS_OF) == []

    def test_all_threshold_alerts_in_order(self):
        """모든 경고의 순서와 심각도 테스트"""
        features = FeatureVector(
            rapid_fire_count=14,
            failure_rate=0.5,
            night_time_activity=0.75,
            transaction_frequency=120.0,
            unusual_patterns=6
        )
        alerts = self.generator.alerts(features, [], AS_OF)

        assert [a.type for a in alerts] == [
            AnomalyType.RAPID_FIRE,
            AnomalyType.HIGH_FAILURE_RATE,
            AnomalyType.NIGHT_ACTIVITY,
            AnomalyType.HIGH_FREQUENCY,
            AnomalyType.UNUSUAL_PATTERNS,
        ]
        assert [a.severity for a in alerts] == [
            Severity.HIGH, Severity.MEDIUM, Severity.LOW, Severity.MEDIUM, Severity.HIGH
        ]
        assert all(a.timestamp == AS_OF for a in alerts)

        assert alerts[0].description == "14 rapid-fire transactions detected"
        assert alerts[1].description == "High failure rate: 50.0%"
        assert alerts[2].description == "75.0% of activity during night hours"
        assert alerts[3].description == "Unusually high transaction frequency: 120.0 txs/day"
        assert alerts[4].description == "6 unusual transaction patterns detected"

    def test_frequency_anomalies_come_first(self):
        """탐지기 이벤트가 임계값 경고보다 앞에 오는지 테스트"""
        event = AnomalyEvent(
            timestamp=datetime(2024, 1, 30, tzinfo=timezone.utc),
            type=AnomalyType.FREQUENCY_ANOMALY,
            severity=Severity.MEDIUM,
            description="Unusual transaction interval: 3600.0s (mean 60.0s)"
        )
        rapid = AnomalyEvent(
            timestamp=datetime(2024, 1, 30, tzinfo=timezone.utc),
            type=AnomalyType.RAPID_FIRE,
            severity=Severity.HIGH,
            description="Rapid-fire transactions 200ms apart (possible bot)"
        )
        alerts = self.generator.alerts(FeatureVector(failure_rate=0.9), [event, rapid], AS_OF)

        # RAPID_FIRE 이벤트는 피처 임계값으로만 경고됨
        assert alerts[0] == event
        assert [a.type for a in alerts] == [AnomalyType.FREQUENCY_ANOMALY, AnomalyType.HIGH_FAILURE_RATE]


class TestRecommendationEngine:
    """RecommendationEngine 클래스 테스트"""

    def setup_method(self):
        """테스트 전 설정"""
        self.engine = RecommendationEngine()
        self.established = FeatureVector(account_age=400.0)

    def test_low_risk_normal_account(self):
        """정상 계정 권장사항 테스트"""
        assert self.engine.recommend(RiskLevel.LOW, self.established) == [APPEARS_NORMAL]

    def test_high_risk_recommendations(self):
        """high/critical 등급 권장사항 테스트"""
        for level in (RiskLevel.HIGH, RiskLevel.CRITICAL):
            recommendations = self.engine.recommend(level, self.established)
            assert recommendations == [MANUAL_REVIEW, TEMPORARY_RESTRICTION, IDENTITY_VERIFICATION]

    def test_medium_risk_without_conditions_is_empty(self):
        """medium 등급에서 조건이 없으면 빈 리스트 테스트"""
        assert self.engine.recommend(RiskLevel.MEDIUM, self.established) == []

    def test_conditional_recommendations(self):
        """피처 조건별 권장사항 테스트"""
        features = FeatureVector(rapid_fire_count=11, failure_rate=0.31, account_age=2.0)
        recommendations = self.engine.recommend(RiskLevel.LOW, features)

        assert recommendations == [RATE_LIMIT, INVESTIGATE_FAILURES, NEW_ACCOUNT_VERIFICATION]
        assert APPEARS_NORMAL not in recommendations

    def test_high_risk_with_conditions(self):
        """등급 항목 뒤에 조건 항목이 붙는지 테스트"""
        features = FeatureVector(rapid_fire_count=20, account_age=1.0)
        recommendations = self.engine.recommend(RiskLevel.CRITICAL, features)

        assert recommendations[:3] == [MANUAL_REVIEW, TEMPORARY_RESTRICTION, IDENTITY_VERIFICATION]
        assert recommendations[3:] == [RATE_LIMIT, NEW_ACCOUNT_VERIFICATION]

    def test_new_account_boundary(self):
        """신규 계정 기준(7일 미만) 테스트"""
        assert NEW_ACCOUNT_VERIFICATION in self.engine.recommend(RiskLevel.LOW, FeatureVector(account_age=6.9))
        assert self.engine.recommend(RiskLevel.LOW, FeatureVector(account_age=7.0)) == [APPEARS_NORMAL]
