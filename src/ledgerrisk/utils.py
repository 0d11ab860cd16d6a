"""
유틸리티 모듈

트랜잭션 레코드 검증/변환, 타임스탬프 파싱, 콘텐츠 해시, 요약 보고서 등
공통으로 사용되는 헬퍼 함수들을 제공합니다.
"""

import hashlib
import logging
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from datetime import date, datetime, timedelta, timezone
from typing import Dict, List, Any, Optional, Union, Iterable, Mapping, Sequence

import numpy as np
import pandas as pd

from .models import TransactionRecord, TransactionResult, RiskAssessment

logger = logging.getLogger(__name__)

# 원본 필드명 -> 표준 필드명 (미러 노드 행과 내부 레코드 이름을 모두 허용)
FIELD_ALIASES = {
    'consensus_timestamp': 'consensus_timestamp',
    'timestamp': 'consensus_timestamp',
    'fee_amount': 'fee_amount',
    'charged_tx_fee': 'fee_amount',
    'fee': 'fee_amount',
    'result': 'result',
    'status': 'result',
    'counterparty_id': 'counterparty_id',
    'payer_account_id': 'counterparty_id',
    'transaction_hash': 'transaction_hash',
    'hash': 'transaction_hash',
    'transaction_type': 'transaction_type',
    'type': 'transaction_type',
}

REQUIRED_FIELDS = ('consensus_timestamp', 'fee_amount', 'result', 'counterparty_id')

HistoryItem = Union[TransactionRecord, Mapping[str, Any]]


@dataclass
class ValidationResult:
    """검증 결과를 담는 데이터 클래스"""
    is_valid: bool
    errors: List[str]
    warnings: List[str]


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    여러 형식의 타임스탬프를 UTC datetime으로 변환합니다.

    지원 형식:
    - datetime / date (naive 값은 UTC로 간주)
    - Unix epoch 초 (int, float)
    - Hedera 합의 타임스탬프 문자열 "초.나노초" (예: "1704067200.123456789")
    - ISO 8601 문자열 ("Z" 접미사 포함)

    Returns:
        변환된 datetime. 변환할 수 없으면 None
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)

    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            return None
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None

    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None

        seconds, _, nanos = text.partition('.')
        if seconds.isdigit() and (not nanos or nanos.isdigit()):
            try:
                base = datetime.fromtimestamp(int(seconds), tz=timezone.utc)
            except (OverflowError, OSError, ValueError):
                return None
            # 나노초는 마이크로초 정밀도까지만 유지
            micros = int(nanos[:6].ljust(6, '0')) if nanos else 0
            return base + timedelta(microseconds=micros)

        try:
            parsed = datetime.fromisoformat(text.replace('Z', '+00:00'))
        except ValueError:
            return None
        return parse_timestamp(parsed)

    return None


def _parse_fee(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        fee = float(value)
    except (TypeError, ValueError):
        return None
    return fee if math.isfinite(fee) else None


def normalize_fields(raw: Mapping[str, Any]) -> Dict[str, Any]:
    """원본 필드명을 표준 필드명으로 바꿉니다. 이미 채워진 표준 필드가 우선합니다."""
    normalized: Dict[str, Any] = {}
    for key, value in raw.items():
        standard = FIELD_ALIASES.get(key)
        if standard is None:
            continue
        if standard == key or standard not in normalized:
            normalized[standard] = value
    return normalized


def validate_record(raw: Mapping[str, Any]) -> ValidationResult:
    """
    트랜잭션 레코드 데이터의 유효성을 검증합니다.

    Args:
        raw: 검증할 트랜잭션 데이터 (미러 노드 행 또는 표준 필드명 딕셔너리)

    Returns:
        검증 결과
    """
    errors = []
    warnings = []
    fields = normalize_fields(raw)

    # 필수 필드 확인
    for name in REQUIRED_FIELDS:
        if name not in fields:
            errors.append(f"필수 필드 누락: {name}")
        elif fields[name] is None:
            errors.append(f"필수 필드가 None: {name}")

    if fields.get('consensus_timestamp') is not None:
        if parse_timestamp(fields['consensus_timestamp']) is None:
            errors.append(f"잘못된 timestamp 형식: {fields['consensus_timestamp']!r}")

    if fields.get('fee_amount') is not None:
        fee = _parse_fee(fields['fee_amount'])
        if fee is None:
            errors.append(f"잘못된 fee 형식: {fields['fee_amount']!r}")
        elif fee < 0:
            errors.append("수수료 금액은 음수일 수 없습니다")

    counterparty = fields.get('counterparty_id')
    if counterparty is not None and not str(counterparty).strip():
        errors.append("상대방 계정이 비어 있습니다")

    result = fields.get('result')
    if result is not None and TransactionResult.from_raw(result) == TransactionResult.FAILURE:
        if str(result).strip().upper() != TransactionResult.FAILURE.value:
            warnings.append(f"결과 {result!r}는 실패로 처리됩니다")

    return ValidationResult(
        is_valid=len(errors) == 0,
        errors=errors,
        warnings=warnings
    )


def parse_record(raw: Mapping[str, Any]) -> Optional[TransactionRecord]:
    """
    딕셔너리를 TransactionRecord로 변환합니다.

    Returns:
        변환된 레코드. 필수 필드가 없거나 잘못된 경우 None
    """
    validation = validate_record(raw)
    if not validation.is_valid:
        logger.debug("Skipping malformed record: %s", "; ".join(validation.errors))
        return None

    fields = normalize_fields(raw)
    return TransactionRecord(
        consensus_timestamp=parse_timestamp(fields['consensus_timestamp']),
        fee_amount=_parse_fee(fields['fee_amount']),
        result=TransactionResult.from_raw(fields['result']),
        counterparty_id=str(fields['counterparty_id']).strip(),
        transaction_hash=fields.get('transaction_hash'),
        transaction_type=fields.get('transaction_type')
    )


def _check_record(record: TransactionRecord) -> Optional[TransactionRecord]:
    """이미 만들어진 레코드도 필드 값이 온전한지 다시 확인합니다."""
    timestamp = parse_timestamp(record.consensus_timestamp)
    fee = _parse_fee(record.fee_amount)
    if timestamp is None or fee is None or fee < 0:
        return None
    if record.result is None or not record.counterparty_id:
        return None

    if (timestamp != record.consensus_timestamp or fee != record.fee_amount
            or not isinstance(record.result, TransactionResult)):
        return replace(
            record,
            consensus_timestamp=timestamp,
            fee_amount=fee,
            result=TransactionResult.from_raw(record.result)
        )
    return record


def clean_history(history: Optional[Iterable[HistoryItem]]) -> List[TransactionRecord]:
    """
    거래 이력에서 손상된 레코드를 조용히 제외하고 최신순으로 정렬합니다.

    Args:
        history: TransactionRecord 또는 딕셔너리의 시퀀스

    Returns:
        유효한 레코드만 담은 최신순 리스트
    """
    if not history:
        return []

    records = []
    skipped = 0
    for item in history:
        if isinstance(item, TransactionRecord):
            record = _check_record(item)
        elif isinstance(item, Mapping):
            record = parse_record(item)
        else:
            record = None

        if record is None:
            skipped += 1
        else:
            records.append(record)

    if skipped:
        logger.debug("Dropped %d malformed record(s) out of %d", skipped, skipped + len(records))

    # 같은 시각의 레코드는 입력 순서를 유지 (안정 정렬)
    records.sort(key=lambda r: r.consensus_timestamp, reverse=True)
    return records


class ContentHasher(ABC):
    """콘텐츠 지문 계산기 인터페이스"""

    @abstractmethod
    def digest(self, content: bytes) -> str:
        """바이트열의 16진수 다이제스트를 반환합니다."""
        pass


class Sha256ContentHasher(ContentHasher):
    """SHA-256 기반 콘텐츠 지문 계산기"""

    def digest(self, content: bytes) -> str:
        return hashlib.sha256(content).hexdigest()


def history_fingerprint(records: Sequence[TransactionRecord],
                        hasher: Optional[ContentHasher] = None) -> str:
    """
    거래 이력의 지문을 계산합니다.

    같은 레코드 집합이면 입력 순서와 관계없이 같은 지문이 나옵니다.
    """
    hasher = hasher or Sha256ContentHasher()

    lines = []
    for record in sorted(records, key=lambda r: (r.consensus_timestamp, r.counterparty_id, r.fee_amount)):
        lines.append("|".join([
            record.consensus_timestamp.isoformat(),
            repr(record.fee_amount),
            record.result.value,
            record.counterparty_id,
        ]))

    return hasher.digest("\n".join(lines).encode('utf-8'))


def calculate_statistics(values: List[Union[int, float]]) -> Dict[str, float]:
    """
    값들의 통계를 계산합니다.

    Args:
        values: 값 리스트

    Returns:
        통계 딕셔너리
    """
    values = [float(v) for v in values if v is not None]

    if not values:
        return {
            'count': 0,
            'mean': 0.0,
            'median': 0.0,
            'std': 0.0,
            'min': 0.0,
            'max': 0.0,
            'q25': 0.0,
            'q75': 0.0
        }

    return {
        'count': len(values),
        'mean': float(np.mean(values)),
        'median': float(np.median(values)),
        'std': float(np.std(values)),
        'min': float(np.min(values)),
        'max': float(np.max(values)),
        'q25': float(np.percentile(values, 25)),
        'q75': float(np.percentile(values, 75))
    }


def records_to_frame(records: Sequence[TransactionRecord]) -> pd.DataFrame:
    """레코드 리스트를 DataFrame으로 변환합니다."""
    columns = ['consensus_timestamp', 'fee_amount', 'result', 'counterparty_id']
    if not records:
        return pd.DataFrame(columns=columns)

    return pd.DataFrame([
        {
            'consensus_timestamp': record.consensus_timestamp,
            'fee_amount': record.fee_amount,
            'result': record.result.value,
            'counterparty_id': record.counterparty_id,
        }
        for record in records
    ], columns=columns)


def create_summary_report(account_id: str,
                          history: Iterable[HistoryItem],
                          assessment: RiskAssessment,
                          hasher: Optional[ContentHasher] = None) -> Dict[str, Any]:
    """
    분석 결과 요약 보고서를 생성합니다.

    Args:
        account_id: 분석 대상 계정
        history: 거래 이력
        assessment: 리스크 평가 결과

    Returns:
        요약 보고서 딕셔너리
    """
    records = clean_history(history)
    frame = records_to_frame(records)

    fee_stats = calculate_statistics(frame['fee_amount'].tolist())

    if len(frame) > 0:
        start = frame['consensus_timestamp'].min()
        end = frame['consensus_timestamp'].max()
        time_range = {
            'start': start.isoformat(),
            'end': end.isoformat(),
            'duration_hours': (end - start).total_seconds() / 3600
        }
        result_counts = {str(k): int(v) for k, v in frame['result'].value_counts().items()}
        top_counterparties = {str(k): int(v) for k, v in frame['counterparty_id'].value_counts().head(5).items()}
    else:
        time_range = {'start': "N/A", 'end': "N/A", 'duration_hours': 0}
        result_counts = {}
        top_counterparties = {}

    return {
        'analysis_summary': {
            'account_id': account_id,
            'assessed_at': assessment.assessed_at.isoformat(),
            'transaction_count': len(records),
            'history_fingerprint': history_fingerprint(records, hasher),
            'time_range': time_range
        },
        'transaction_statistics': {
            'fee_stats': fee_stats,
            'total_fees': float(frame['fee_amount'].sum()) if len(frame) > 0 else 0.0,
            'result_counts': result_counts,
            'top_counterparties': top_counterparties
        },
        'risk_assessment': {
            'risk_score': assessment.risk_score,
            'risk_level': assessment.risk_level.value,
            'confidence': assessment.confidence,
            'data_available': assessment.data_available
        },
        'key_features': assessment.features.to_dict(),
        'alerts': [alert.to_dict() for alert in assessment.alerts],
        'recommendations': list(assessment.recommendations)
    }
