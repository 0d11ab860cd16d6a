"""
거래 이력 제공자 모듈

엔진이 외부 환경에서 소비하는 유일한 인터페이스인 TransactionHistoryProvider와
메모리/파일/미러 노드 구현을 제공합니다. 제공자는 최신순 이력을 돌려주며,
실패하면 HistoryUnavailableError를 발생시킵니다.
"""

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Any, Optional, Union, Mapping, Sequence

import jsonlines
import pandas as pd
import requests

from .utils import HistoryItem, normalize_fields, parse_timestamp

logger = logging.getLogger(__name__)


class HistoryUnavailableError(RuntimeError):
    """거래 이력을 가져오지 못한 경우"""


class TransactionHistoryProvider(ABC):
    """
    거래 이력 제공자 인터페이스

    반환되는 항목은 TransactionRecord 또는 원본 딕셔너리일 수 있으며,
    손상된 항목은 엔진 쪽에서 걸러냅니다.
    """

    @abstractmethod
    def get_history(self, account_id: str, limit: int) -> List[HistoryItem]:
        """
        계정의 최근 거래 이력을 최신순으로 반환합니다.

        Args:
            account_id: 계정 ID
            limit: 최대 거래 수

        Returns:
            최신순 거래 이력 (없으면 빈 리스트)

        Raises:
            HistoryUnavailableError: 이력을 가져오지 못한 경우
        """
        pass


def _newest_first(items: Sequence[HistoryItem]) -> List[HistoryItem]:
    """타임스탬프 기준 최신순 정렬. 타임스탬프를 읽을 수 없는 항목은 맨 뒤로 보냅니다."""
    def sort_key(item: HistoryItem):
        if isinstance(item, Mapping):
            raw = normalize_fields(item).get('consensus_timestamp')
        else:
            raw = getattr(item, 'consensus_timestamp', None)
        timestamp = parse_timestamp(raw)
        return (timestamp is not None, timestamp.timestamp() if timestamp else 0.0)

    return sorted(items, key=sort_key, reverse=True)


class InMemoryHistoryProvider(TransactionHistoryProvider):
    """딕셔너리 기반 이력 제공자"""

    def __init__(self, histories: Optional[Dict[str, Sequence[HistoryItem]]] = None):
        self._histories: Dict[str, List[HistoryItem]] = {
            account_id: list(items) for account_id, items in (histories or {}).items()
        }

    def add_history(self, account_id: str, items: Sequence[HistoryItem]) -> None:
        self._histories.setdefault(account_id, []).extend(items)

    def get_history(self, account_id: str, limit: int) -> List[HistoryItem]:
        items = self._histories.get(account_id, [])
        return _newest_first(items)[:max(limit, 0)]


class FileHistoryProvider(TransactionHistoryProvider):
    """
    파일 기반 이력 제공자

    JSONL(.jsonl) 또는 CSV(.csv) 파일 하나에 여러 계정의 거래가 섞여 있고,
    account_field 컬럼으로 계정을 구분합니다. 파일은 처음 조회할 때 한 번 읽습니다.
    """

    def __init__(self, path: Union[str, Path], account_field: str = 'account_id'):
        self.path = Path(path)
        self.account_field = account_field
        self._rows: Optional[List[Dict[str, Any]]] = None

    def get_history(self, account_id: str, limit: int) -> List[HistoryItem]:
        rows = self._load_rows()
        items = [row for row in rows if str(row.get(self.account_field, '')) == account_id]
        return _newest_first(items)[:max(limit, 0)]

    def _load_rows(self) -> List[Dict[str, Any]]:
        if self._rows is not None:
            return self._rows

        if not self.path.exists():
            raise HistoryUnavailableError(f"이력 파일을 찾을 수 없습니다: {self.path}")

        suffix = self.path.suffix.lower()
        try:
            if suffix == '.jsonl':
                with jsonlines.open(self.path) as reader:
                    rows = [row for row in reader if isinstance(row, dict)]
            elif suffix == '.csv':
                # 계정 ID와 타임스탬프 문자열이 숫자로 바뀌지 않도록 문자열로 읽음
                df = pd.read_csv(self.path, dtype=str, keep_default_na=False)
                rows = df.to_dict('records')
            else:
                raise HistoryUnavailableError(f"지원하지 않는 파일 형식: {self.path.suffix}")
        except (OSError, ValueError, jsonlines.Error) as e:
            raise HistoryUnavailableError(f"이력 파일 로드 실패: {e}") from e

        logger.info("Loaded %d transaction row(s) from %s", len(rows), self.path)
        self._rows = rows
        return rows


class MirrorNodeHistoryProvider(TransactionHistoryProvider):
    """
    미러 노드 GraphQL 이력 제공자

    지불 계정 기준으로 최근 거래를 합의 시각 내림차순으로 조회합니다.
    """

    QUERY = """
        query GetTransactions($accountId: String!, $limit: Int!) {
          transaction(
            where: { payer_account_id: { _eq: $accountId } }
            limit: $limit
            order_by: { consensus_timestamp: desc }
          ) {
            consensus_timestamp
            transaction_hash
            type
            result
            charged_tx_fee
            payer_account_id
          }
        }
    """

    def __init__(self,
                 url: str,
                 api_key: str = "",
                 timeout: float = 10.0,
                 session: Optional[requests.Session] = None):
        """
        Args:
            url: GraphQL 엔드포인트
            api_key: x-api-key 헤더로 보낼 키 (비어 있으면 생략)
            timeout: 요청 타임아웃 (초)
            session: 재사용할 requests 세션
        """
        self.url = url
        self.api_key = api_key
        self.timeout = timeout
        self.session = session or requests.Session()

    def get_history(self, account_id: str, limit: int) -> List[HistoryItem]:
        headers = {'Content-Type': 'application/json'}
        if self.api_key:
            headers['x-api-key'] = self.api_key

        try:
            response = self.session.post(
                self.url,
                json={'query': self.QUERY, 'variables': {'accountId': account_id, 'limit': limit}},
                headers=headers,
                timeout=self.timeout
            )
            response.raise_for_status()
            payload = response.json()
        except requests.RequestException as e:
            raise HistoryUnavailableError(f"미러 노드 조회 실패 ({account_id}): {e}") from e
        except ValueError as e:
            raise HistoryUnavailableError(f"미러 노드 응답 파싱 실패 ({account_id}): {e}") from e

        if not isinstance(payload, dict):
            raise HistoryUnavailableError(f"미러 노드 응답 형식이 잘못되었습니다 ({account_id})")

        if payload.get('errors'):
            messages = ", ".join(
                str(err.get('message', err)) if isinstance(err, dict) else str(err)
                for err in payload['errors']
            )
            raise HistoryUnavailableError(f"미러 노드 쿼리 오류 ({account_id}): {messages}")

        rows = (payload.get('data') or {}).get('transaction') or []
        logger.debug("Fetched %d transaction(s) for %s", len(rows), account_id)
        return list(rows)
