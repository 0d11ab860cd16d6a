"""
정책 모듈

가중치, 정규화 상한, 임계값, 신뢰도 규칙, 성능 지표 스냅샷을 YAML 정책 파일에서
읽어 불변 설정 객체(EnginePolicy)로 만듭니다.
"""

import copy
import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from types import MappingProxyType
from typing import Dict, List, Any, Optional, Mapping, Tuple, Union

import yaml

from .models import FEATURE_NAMES, ModelMetrics
from .utils import parse_timestamp

logger = logging.getLogger(__name__)

DEFAULT_POLICY_PATH = Path(__file__).parent / "rules" / "default_policy.yaml"


class PolicyError(ValueError):
    """정책 값이 잘못된 경우"""


@dataclass(frozen=True)
class FeatureSettings:
    """피처 추출 파라미터"""
    rapid_fire_ms: float
    repeated_fee_share: float
    regular_cadence_ratio: float
    regular_cadence_bonus: int
    night_start_hour: int
    night_end_hour: int


@dataclass(frozen=True)
class ConfidenceRules:
    """신뢰도 가산 규칙. 각 단계는 (초과 기준값, 가산치) 쌍입니다."""
    base: float
    maximum: float
    frequency_steps: Tuple[Tuple[float, float], ...]
    age_steps: Tuple[Tuple[float, float], ...]


@dataclass(frozen=True)
class AnomalySettings:
    """이상 탐지 파라미터"""
    stddev_multiplier: float
    report_limit: int
    report_scale: float
    high_risk_score: float


@dataclass(frozen=True)
class EnginePolicy:
    """엔진 전체가 공유하는 불변 설정"""
    name: str
    version: str
    weights: Mapping[str, float]
    normalization: Mapping[str, float]
    risk_thresholds: Mapping[str, float]
    alert_thresholds: Mapping[str, float]
    recommendation_thresholds: Mapping[str, float]
    features: FeatureSettings
    confidence: ConfidenceRules
    anomaly: AnomalySettings
    model_metrics: ModelMetrics


def get_default_policy() -> Dict[str, Any]:
    """기본 정책을 반환합니다. 패키지의 YAML 파일을 읽지 못할 때 사용됩니다."""
    return {
        'version': 'v1.0',
        'name': 'ledger_fraud_heuristic',
        'feature_weights': {
            'transaction_frequency': 0.15,
            'transaction_variance': 0.12,
            'average_amount': 0.10,
            'night_time_activity': 0.08,
            'failure_rate': 0.20,
            'account_age': -0.10,  # 오래된 계정일수록 리스크 감소
            'unique_counterparties': -0.05,
            'rapid_fire_count': 0.18,
            'unusual_patterns': 0.12
        },
        'normalization': {
            'transaction_frequency': 100,
            'transaction_variance': 10,
            'average_amount': 100,
            'night_time_activity': 1,
            'failure_rate': 1,
            'account_age': 365,
            'unique_counterparties': 100,
            'rapid_fire_count': 50,
            'unusual_patterns': 10
        },
        'thresholds': {
            'risk_score': {
                'low': 30,
                'medium': 50,
                'high': 70,
                'critical': 85
            },
            'alerts': {
                'rapid_fire_count': 10,
                'failure_rate': 0.3,
                'night_time_activity': 0.5,
                'transaction_frequency': 50,
                'unusual_patterns': 5
            },
            'recommendations': {
                'rapid_fire_count': 10,
                'failure_rate': 0.3,
                'new_account_days': 7
            }
        },
        'features': {
            'rapid_fire_ms': 1000,
            'repeated_fee_share': 0.2,
            'regular_cadence_ratio': 0.1,
            'regular_cadence_bonus': 2,
            'night_start_hour': 22,
            'night_end_hour': 6
        },
        'confidence': {
            'base': 0.5,
            'max': 1.0,
            'transaction_frequency': [
                {'above': 10, 'bonus': 0.2},
                {'above': 50, 'bonus': 0.1}
            ],
            'account_age': [
                {'above': 30, 'bonus': 0.1},
                {'above': 90, 'bonus': 0.1}
            ]
        },
        'anomaly_detection': {
            'stddev_multiplier': 2.0,
            'report_limit': 10,
            'report_scale': 10,
            'high_risk_score': 50
        },
        'model_metrics': {
            'accuracy': 0.94,
            'precision': 0.89,
            'recall': 0.91,
            'f1_score': 0.90,
            'total_predictions': 1250,
            'true_positives': 112,
            'false_positives': 14,
            'last_updated': None
        }
    }


def load_policy(policy_path: Optional[Union[str, Path]] = None) -> EnginePolicy:
    """
    정책 파일을 로딩합니다.

    파일에 없는 항목은 기본 정책 값으로 채워지므로 일부 가중치만 덮어쓰는
    정책 파일도 사용할 수 있습니다.

    Args:
        policy_path: 정책 파일 경로. None이면 패키지 기본 정책 사용

    Returns:
        검증된 EnginePolicy

    Raises:
        PolicyError: 정책 값이 잘못된 경우
    """
    if policy_path is None:
        policy_path = DEFAULT_POLICY_PATH

    raw = _read_policy_file(Path(policy_path))
    merged = _deep_merge(get_default_policy(), raw)
    return build_policy(merged)


def _read_policy_file(policy_path: Path) -> Dict[str, Any]:
    if not policy_path.exists():
        logger.warning("Policy file %s not found, using built-in default policy", policy_path)
        return {}

    try:
        with open(policy_path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        logger.warning("Failed to load policy file %s: %s. Using built-in default policy", policy_path, e)
        return {}

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise PolicyError(f"정책 파일의 최상위는 매핑이어야 합니다: {policy_path}")
    return data


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """중첩 딕셔너리를 병합합니다. 리스트는 통째로 교체됩니다."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def build_policy(data: Dict[str, Any]) -> EnginePolicy:
    """정책 딕셔너리를 검증하여 EnginePolicy로 변환합니다."""
    weights = _feature_mapping(data.get('feature_weights', {}), 'feature_weights')
    normalization = _feature_mapping(data.get('normalization', {}), 'normalization')
    for name, cap in normalization.items():
        if cap <= 0:
            raise PolicyError(f"normalization.{name} 값은 0보다 커야 합니다: {cap}")

    thresholds = data.get('thresholds', {})
    if not isinstance(thresholds, dict):
        raise PolicyError("thresholds 항목은 매핑이어야 합니다")
    risk_thresholds = _number_mapping(thresholds.get('risk_score', {}), 'thresholds.risk_score')
    for tier in ('medium', 'high', 'critical'):
        if tier not in risk_thresholds:
            raise PolicyError(f"thresholds.risk_score.{tier} 값이 없습니다")
    if not risk_thresholds['medium'] <= risk_thresholds['high'] <= risk_thresholds['critical']:
        raise PolicyError("리스크 등급 임계값은 medium <= high <= critical 이어야 합니다")

    features = data.get('features', {})
    confidence = data.get('confidence', {})
    anomaly = data.get('anomaly_detection', {})

    try:
        feature_settings = FeatureSettings(
            rapid_fire_ms=float(features['rapid_fire_ms']),
            repeated_fee_share=float(features['repeated_fee_share']),
            regular_cadence_ratio=float(features['regular_cadence_ratio']),
            regular_cadence_bonus=int(features['regular_cadence_bonus']),
            night_start_hour=int(features['night_start_hour']),
            night_end_hour=int(features['night_end_hour'])
        )
        confidence_rules = ConfidenceRules(
            base=float(confidence['base']),
            maximum=float(confidence['max']),
            frequency_steps=_steps(confidence.get('transaction_frequency', [])),
            age_steps=_steps(confidence.get('account_age', []))
        )
        anomaly_settings = AnomalySettings(
            stddev_multiplier=float(anomaly['stddev_multiplier']),
            report_limit=int(anomaly['report_limit']),
            report_scale=float(anomaly['report_scale']),
            high_risk_score=float(anomaly['high_risk_score'])
        )
        model_metrics = _model_metrics(data.get('model_metrics', {}))
    except (KeyError, TypeError, ValueError) as e:
        raise PolicyError(f"정책 값이 잘못되었습니다: {e}") from e

    return EnginePolicy(
        name=str(data.get('name', 'unnamed')),
        version=str(data.get('version', 'v0')),
        weights=MappingProxyType(weights),
        normalization=MappingProxyType(normalization),
        risk_thresholds=MappingProxyType(risk_thresholds),
        alert_thresholds=MappingProxyType(
            _number_mapping(thresholds.get('alerts', {}), 'thresholds.alerts')),
        recommendation_thresholds=MappingProxyType(
            _number_mapping(thresholds.get('recommendations', {}), 'thresholds.recommendations')),
        features=feature_settings,
        confidence=confidence_rules,
        anomaly=anomaly_settings,
        model_metrics=model_metrics
    )


def _number_mapping(section: Any, section_name: str) -> Dict[str, float]:
    if not isinstance(section, dict):
        raise PolicyError(f"{section_name} 항목은 매핑이어야 합니다")

    values = {}
    for key, value in section.items():
        if isinstance(value, bool):
            raise PolicyError(f"{section_name}.{key} 값은 숫자여야 합니다: {value!r}")
        try:
            values[key] = float(value)
        except (TypeError, ValueError):
            raise PolicyError(f"{section_name}.{key} 값은 숫자여야 합니다: {value!r}")
    return values


def _feature_mapping(section: Any, section_name: str) -> Dict[str, float]:
    """피처 이름을 키로 하는 숫자 매핑을 검증합니다."""
    values = _number_mapping(section, section_name)

    unknown = set(values) - set(FEATURE_NAMES)
    if unknown:
        raise PolicyError(f"{section_name}에 알 수 없는 피처가 있습니다: {sorted(unknown)}")
    missing = set(FEATURE_NAMES) - set(values)
    if missing:
        raise PolicyError(f"{section_name}에 누락된 피처가 있습니다: {sorted(missing)}")

    # 피처 순서를 고정해 합산 순서가 항상 같도록 함
    return {name: values[name] for name in FEATURE_NAMES}


def _steps(raw_steps: List[Dict[str, Any]]) -> Tuple[Tuple[float, float], ...]:
    return tuple((float(step['above']), float(step['bonus'])) for step in raw_steps)


def _model_metrics(section: Dict[str, Any]) -> ModelMetrics:
    last_updated = section.get('last_updated')
    if last_updated is not None and not isinstance(last_updated, datetime):
        last_updated = parse_timestamp(last_updated)

    return ModelMetrics(
        accuracy=float(section['accuracy']),
        precision=float(section['precision']),
        recall=float(section['recall']),
        f1_score=float(section['f1_score']),
        total_predictions=int(section['total_predictions']),
        true_positives=int(section['true_positives']),
        false_positives=int(section['false_positives']),
        last_updated=last_updated,
        validated=bool(section.get('validated', False))
    )
