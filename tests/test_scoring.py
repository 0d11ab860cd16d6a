"""
리스크 스코어링 모듈 테스트
"""

import pytest

from ledgerrisk.models import FeatureVector, RiskLevel
from ledgerrisk.policy import load_policy
from ledgerrisk.scoring import ConfidenceEstimator, RiskScorer, calculate_risk_score


class TestRiskScorer:
    """RiskScorer 클래스 테스트"""

    def setup_method(self):
        """테스트 전 설정"""
        self.scorer = RiskScorer()

        # 테스트용 피처 데이터
        self.test_features = FeatureVector(
            transaction_frequency=50.0,
            transaction_variance=5.0,
            average_amount=50.0,
            night_time_activity=0.5,
            failure_rate=0.5,
            account_age=0.0,
            unique_counterparties=0,
            rapid_fire_count=25,
            unusual_patterns=5
        )

    def test_scorer_initialization_default(self):
        """기본 초기화 테스트"""
        scorer = RiskScorer()
        assert scorer.policy is not None
        assert scorer.weights['failure_rate'] == pytest.approx(0.20)
        assert scorer.thresholds['critical'] == pytest.approx(85.0)

    def test_scorer_initialization_with_policy(self):
        """정책 파일과 함께 초기화 테스트"""
        # 존재하지 않는 파일로 테스트 (기본 정책 사용)
        scorer = RiskScorer(load_policy("/nonexistent/policy.yaml"))
        assert dict(scorer.weights) == dict(RiskScorer().weights)

    def test_zero_features_score_zero(self):
        """0 벡터는 0점, low 등급 테스트"""
        result = self.scorer.calculate_risk_score(FeatureVector.zeros())
        assert result['risk_score'] == 0.0
        assert result['risk_level'] == RiskLevel.LOW

    def test_calculate_risk_score_basic(self):
        """기본 리스크 스코어 계산 테스트"""
        result = self.scorer.calculate_risk_score(self.test_features)

        assert 'risk_score' in result
        assert 'risk_level' in result
        assert 'feature_contributions' in result

        # 모든 양수 피처가 상한의 절반 → 양수 가중치 합(0.95)의 절반
        assert result['risk_score'] == pytest.approx(47.5)
        assert result['risk_level'] == RiskLevel.LOW

    def test_negative_weights_reduce_score(self):
        """계정 나이와 상대방 수는 점수를 낮춤 테스트"""
        older = FeatureVector(**{**self.test_features.to_dict(),
                                 'account_age': 365.0, 'unique_counterparties': 100})
        assert self.scorer.score(older) == pytest.approx(47.5 - 10.0 - 5.0)

    def test_score_is_clamped(self):
        """점수 범위 [0, 100] 테스트"""
        only_negative = FeatureVector(account_age=1000.0, unique_counterparties=500)
        assert self.scorer.score(only_negative) == 0.0

        saturated = FeatureVector(
            transaction_frequency=1e9,
            transaction_variance=1e9,
            average_amount=1e9,
            night_time_activity=1.0,
            failure_rate=1.0,
            rapid_fire_count=10 ** 6,
            unusual_patterns=10 ** 6
        )
        assert 0.0 <= self.scorer.score(saturated) <= 100.0
        assert self.scorer.score(saturated) == pytest.approx(95.0)

    def test_score_rounded_to_two_decimals(self):
        """소수 둘째 자리 반올림 테스트"""
        score = self.scorer.score(FeatureVector(transaction_frequency=1.0 / 3.0))
        assert score == round(score, 2)

    def test_feature_contributions(self):
        """피처 기여도 테스트"""
        contributions = self.scorer.feature_contributions(self.test_features)

        assert set(contributions) == set(self.test_features.to_dict())
        assert contributions['failure_rate'] == pytest.approx(10.0)
        assert contributions['rapid_fire_count'] == pytest.approx(9.0)
        assert contributions['account_age'] == 0.0

    def test_risk_level_boundaries(self):
        """리스크 레벨 경계값 테스트"""
        assert self.scorer.risk_level(0.0) == RiskLevel.LOW
        assert self.scorer.risk_level(30.0) == RiskLevel.LOW
        assert self.scorer.risk_level(49.999) == RiskLevel.LOW
        assert self.scorer.risk_level(50.0) == RiskLevel.MEDIUM
        assert self.scorer.risk_level(69.999) == RiskLevel.MEDIUM
        assert self.scorer.risk_level(70.0) == RiskLevel.HIGH
        assert self.scorer.risk_level(84.999) == RiskLevel.HIGH
        assert self.scorer.risk_level(85.0) == RiskLevel.CRITICAL
        assert self.scorer.risk_level(100.0) == RiskLevel.CRITICAL

    def test_monotonic_in_positive_features(self):
        """양수 가중치 피처가 커지면 점수가 줄지 않음 테스트"""
        base = self.test_features.to_dict()
        for name in ('transaction_frequency', 'failure_rate', 'rapid_fire_count', 'unusual_patterns'):
            bumped = FeatureVector(**{**base, name: base[name] * 1.5})
            assert self.scorer.score(bumped) >= self.scorer.score(self.test_features)


class TestConfidenceEstimator:
    """ConfidenceEstimator 클래스 테스트"""

    def setup_method(self):
        """테스트 전 설정"""
        self.estimator = ConfidenceEstimator()

    def test_base_confidence(self):
        """기본 신뢰도 테스트"""
        assert self.estimator.confidence(FeatureVector.zeros()) == pytest.approx(0.5)

    def test_steps_use_strict_comparison(self):
        """단계 가산은 '초과' 기준 테스트"""
        features = FeatureVector(transaction_frequency=10.0, account_age=30.0)
        assert self.estimator.confidence(features) == pytest.approx(0.5)

        features = FeatureVector(transaction_frequency=10.5, account_age=30.5)
        assert self.estimator.confidence(features) == pytest.approx(0.8)

    def test_confidence_is_capped(self):
        """최대 신뢰도 테스트"""
        features = FeatureVector(transaction_frequency=500.0, account_age=1000.0)
        assert self.estimator.confidence(features) == pytest.approx(1.0)


def test_calculate_risk_score_function():
    """편의 함수 테스트"""
    result = calculate_risk_score(FeatureVector.zeros())

    assert result['risk_score'] == 0.0
    assert result['risk_level'] == RiskLevel.LOW
    assert result['confidence'] == pytest.approx(0.5)
