"""
거래 이력 제공자 테스트
"""

import json
from unittest.mock import MagicMock

import pytest
import requests

from ledgerrisk.providers import (
    FileHistoryProvider,
    HistoryUnavailableError,
    InMemoryHistoryProvider,
    MirrorNodeHistoryProvider,
)


def make_row(account_id, timestamp, fee=100000, result="SUCCESS"):
    return {
        'account_id': account_id,
        'consensus_timestamp': timestamp,
        'charged_tx_fee': fee,
        'result': result,
        'payer_account_id': account_id,
    }


class TestInMemoryHistoryProvider:
    """InMemoryHistoryProvider 테스트"""

    def setup_method(self):
        """테스트 전 설정"""
        self.provider = InMemoryHistoryProvider({
            "0.0.1": [
                make_row("0.0.1", "1704067200.000000000"),
                make_row("0.0.1", "1704067300.000000000"),
                make_row("0.0.1", "1704067250.000000000"),
            ]
        })

    def test_newest_first_and_limit(self):
        """최신순 정렬과 limit 테스트"""
        history = self.provider.get_history("0.0.1", 2)
        assert [row['consensus_timestamp'] for row in history] == [
            "1704067300.000000000",
            "1704067250.000000000",
        ]

    def test_unknown_account(self):
        """없는 계정은 빈 리스트 테스트"""
        assert self.provider.get_history("0.0.999", 10) == []

    def test_add_history(self):
        """이력 추가 테스트"""
        self.provider.add_history("0.0.2", [make_row("0.0.2", "1704067200.5")])
        assert len(self.provider.get_history("0.0.2", 10)) == 1


class TestFileHistoryProvider:
    """FileHistoryProvider 테스트"""

    def test_jsonl_file(self, tmp_path):
        """JSONL 파일 로딩 테스트"""
        path = tmp_path / "history.jsonl"
        rows = [
            make_row("0.0.1", "1704067200.000000000"),
            make_row("0.0.2", "1704067250.000000000"),
            make_row("0.0.1", "1704067300.000000000"),
        ]
        path.write_text("\n".join(json.dumps(row) for row in rows) + "\n", encoding="utf-8")

        provider = FileHistoryProvider(path)
        history = provider.get_history("0.0.1", 10)

        assert len(history) == 2
        assert history[0]['consensus_timestamp'] == "1704067300.000000000"

    def test_csv_file_keeps_strings(self, tmp_path):
        """CSV 파일 로딩 테스트 (계정 ID가 숫자로 변하지 않음)"""
        path = tmp_path / "history.csv"
        path.write_text(
            "account_id,consensus_timestamp,charged_tx_fee,result,payer_account_id\n"
            "0.0.1,1704067200.000000000,100000,SUCCESS,0.0.1\n"
            "0.0.1,1704067300.000000000,120000,INSUFFICIENT_PAYER_BALANCE,0.0.1\n",
            encoding="utf-8"
        )

        history = FileHistoryProvider(path).get_history("0.0.1", 10)

        assert len(history) == 2
        assert history[0]['consensus_timestamp'] == "1704067300.000000000"
        assert history[0]['payer_account_id'] == "0.0.1"

    def test_missing_file(self, tmp_path):
        """없는 파일 테스트"""
        provider = FileHistoryProvider(tmp_path / "missing.jsonl")
        with pytest.raises(HistoryUnavailableError):
            provider.get_history("0.0.1", 10)

    def test_unsupported_format(self, tmp_path):
        """지원하지 않는 형식 테스트"""
        path = tmp_path / "history.txt"
        path.write_text("irrelevant", encoding="utf-8")
        with pytest.raises(HistoryUnavailableError):
            FileHistoryProvider(path).get_history("0.0.1", 10)

    def test_corrupt_jsonl(self, tmp_path):
        """손상된 JSONL 테스트"""
        path = tmp_path / "history.jsonl"
        path.write_text("{not json\n", encoding="utf-8")
        with pytest.raises(HistoryUnavailableError):
            FileHistoryProvider(path).get_history("0.0.1", 10)


class TestMirrorNodeHistoryProvider:
    """MirrorNodeHistoryProvider 테스트"""

    def setup_method(self):
        """테스트 전 설정"""
        self.session = MagicMock(spec=requests.Session)
        self.provider = MirrorNodeHistoryProvider(
            url="https://mirror.example/v1/graphql",
            api_key="secret",
            timeout=3.0,
            session=self.session
        )

    def _respond(self, payload):
        response = MagicMock()
        response.json.return_value = payload
        response.raise_for_status.return_value = None
        self.session.post.return_value = response
        return response

    def test_query_and_rows(self):
        """GraphQL 요청과 응답 파싱 테스트"""
        rows = [make_row("0.0.1", "1704067300.000000000")]
        self._respond({'data': {'transaction': rows}})

        history = self.provider.get_history("0.0.1", 1000)

        assert history == rows
        _, kwargs = self.session.post.call_args
        assert kwargs['json']['variables'] == {'accountId': "0.0.1", 'limit': 1000}
        assert kwargs['headers']['x-api-key'] == "secret"
        assert kwargs['timeout'] == 3.0

    def test_no_api_key_header(self):
        """API 키가 없으면 헤더 생략 테스트"""
        provider = MirrorNodeHistoryProvider(url="https://mirror.example", session=self.session)
        self._respond({'data': {'transaction': []}})

        assert provider.get_history("0.0.1", 10) == []
        _, kwargs = self.session.post.call_args
        assert 'x-api-key' not in kwargs['headers']

    def test_graphql_errors(self):
        """GraphQL 오류 응답 테스트"""
        self._respond({'errors': [{'message': "field not found"}]})
        with pytest.raises(HistoryUnavailableError, match="field not found"):
            self.provider.get_history("0.0.1", 10)

    def test_http_error(self):
        """HTTP 오류 테스트"""
        self.session.post.side_effect = requests.ConnectionError("unreachable")
        with pytest.raises(HistoryUnavailableError):
            self.provider.get_history("0.0.1", 10)

    def test_invalid_json(self):
        """JSON 파싱 실패 테스트"""
        response = self._respond(None)
        response.json.side_effect = ValueError("no json")
        with pytest.raises(HistoryUnavailableError):
            self.provider.get_history("0.0.1", 10)

    def test_unexpected_payload(self):
        """매핑이 아닌 응답 테스트"""
        self._respond(["not", "a", "dict"])
        with pytest.raises(HistoryUnavailableError):
            self.provider.get_history("0.0.1", 10)
