"""
런타임 설정 모듈

모든 값은 LEDGERRISK_ 접두사 환경 변수나 작업 디렉터리의 .env 파일로 덮어쓸 수 있습니다.
점수 가중치와 임계값은 설정이 아니라 POLICY_PATH로 지정하는 YAML 정책에 있습니다.

.env 예시:

    LEDGERRISK_BATCH_MAX_WORKERS=4
    LEDGERRISK_HISTORY_FETCH_TIMEOUT_SECONDS=5
    LEDGERRISK_POLICY_PATH=/etc/ledgerrisk/policy.yaml
"""

from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    리스크 엔진과 어댑터가 공유하는 설정

    Attributes:
        POLICY_PATH: YAML 정책 파일 경로. None이면 패키지 기본 정책 사용
        HISTORY_LIMIT: 계정당 이력 제공자에 요청할 최근 거래 수
        BATCH_MAX_WORKERS: 동시에 실행할 이력 조회 수의 상한
        HISTORY_FETCH_TIMEOUT_SECONDS: 계정 하나의 이력 조회를 기다리는 시간 (초).
            넘으면 데이터 부족 결과로 대체
        MIRROR_GRAPHQL_URL: 미러 노드 인덱서 GraphQL 엔드포인트
        MIRROR_API_KEY: x-api-key 헤더로 보낼 키 (선택)
        MIRROR_REQUEST_TIMEOUT_SECONDS: 미러 노드 요청 하나의 HTTP 타임아웃 (초)
        LOG_LEVEL: HTTP 어댑터가 사용하는 루트 로그 레벨
    """

    POLICY_PATH: str | None = None
    HISTORY_LIMIT: int = 1000
    BATCH_MAX_WORKERS: int = 8
    HISTORY_FETCH_TIMEOUT_SECONDS: float = 10.0
    MIRROR_GRAPHQL_URL: str = "https://testnet.hedera.api.hgraph.io/v1/graphql"
    MIRROR_API_KEY: str = ""
    MIRROR_REQUEST_TIMEOUT_SECONDS: float = 10.0
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(env_prefix="LEDGERRISK_", env_file=".env", extra="ignore")
