"""
FastAPI 기반 리스크 평가 API

엔진을 감싸는 얇은 HTTP 어댑터입니다. 점수 로직은 모두 엔진에 있으며,
엔진 인스턴스는 get_engine() 의존성으로 주입됩니다.
"""

import logging
from functools import lru_cache
from typing import Dict, List, Any, Optional, Union

from fastapi import Depends, FastAPI, HTTPException
from pydantic import BaseModel, Field
import uvicorn

from . import __version__
from .config import Settings
from .engine import RiskAssessmentEngine
from .providers import MirrorNodeHistoryProvider
from .utils import create_summary_report

logger = logging.getLogger(__name__)


app = FastAPI(
    title="Ledger Risk Engine API",
    description="원장 계정의 거래 이력으로 사기 리스크를 평가하는 API",
    version=__version__
)


@lru_cache(maxsize=1)
def get_engine() -> RiskAssessmentEngine:
    """설정으로부터 엔진을 한 번만 만듭니다. 테스트에서는 dependency_overrides로 교체합니다."""
    settings = Settings()
    logging.basicConfig(level=settings.LOG_LEVEL.upper())
    provider = MirrorNodeHistoryProvider(
        url=settings.MIRROR_GRAPHQL_URL,
        api_key=settings.MIRROR_API_KEY,
        timeout=settings.MIRROR_REQUEST_TIMEOUT_SECONDS
    )
    logger.info("Risk engine initialised (mirror: %s)", settings.MIRROR_GRAPHQL_URL)
    return RiskAssessmentEngine(history_provider=provider, settings=settings)


class TransactionData(BaseModel):
    """
    트랜잭션 데이터 모델

    손상된 레코드는 엔진이 조용히 걸러내므로 필드는 모두 선택 항목입니다.
    """
    consensus_timestamp: Optional[Union[str, float]] = Field(None, description="합의 시각 (ISO, 'sec.nanos', epoch 초)")
    fee_amount: Optional[float] = Field(None, description="수수료 금액")
    result: Optional[str] = Field(None, description="처리 결과 (SUCCESS 외에는 실패)")
    counterparty_id: Optional[str] = Field(None, description="상대방 계정 ID")
    transaction_hash: Optional[str] = Field(None, description="트랜잭션 해시")
    transaction_type: Optional[str] = Field(None, description="트랜잭션 유형")


class PredictRequest(BaseModel):
    """단일 계정 평가 요청 모델"""
    account_id: str = Field(..., description="분석할 계정 ID")
    transactions: List[TransactionData] = Field(..., description="최신순 거래 이력")


class BatchPredictRequest(BaseModel):
    """일괄 평가 요청 모델"""
    account_ids: List[str] = Field(..., description="분석할 계정 ID 리스트")


class AlertModel(BaseModel):
    """경고 모델"""
    timestamp: str
    type: str
    severity: str
    description: str


class AssessmentResponse(BaseModel):
    """리스크 평가 응답 모델"""
    account_id: str = Field(..., description="분석된 계정")
    risk_score: float = Field(..., description="리스크 스코어 (0-100)")
    risk_level: str = Field(..., description="리스크 레벨")
    confidence: float = Field(..., description="신뢰도 (0.5-1.0)")
    features: Dict[str, float] = Field(..., description="추출된 피처들")
    alerts: List[AlertModel] = Field(..., description="경고 리스트")
    recommendations: List[str] = Field(..., description="권장 조치")
    data_available: bool = Field(..., description="이력 데이터 존재 여부")
    assessed_at: str = Field(..., description="평가 시각")


class AnomalyReportResponse(BaseModel):
    """이상 탐지 보고서 응답 모델"""
    account_id: str
    total_transactions: int
    anomaly_count: int
    risk_score: float
    is_high_risk: bool
    anomalies: List[AlertModel]


class ModelMetricsResponse(BaseModel):
    """모델 성능 지표 응답 모델"""
    accuracy: float
    precision: float
    recall: float
    f1_score: float
    total_predictions: int
    true_positives: int
    false_positives: int
    last_updated: Optional[str] = None
    validated: bool


def _history_from_request(request: PredictRequest) -> List[Dict[str, Any]]:
    return [tx.model_dump(exclude_none=True) for tx in request.transactions]


@app.get("/")
async def root():
    """루트 엔드포인트"""
    return {
        "message": "Ledger Risk Engine API",
        "version": __version__,
        "endpoints": {
            "predict": "POST /predict - 거래 이력으로 리스크 평가",
            "account_risk": "GET /accounts/{account_id}/risk - 미러 노드 이력으로 리스크 평가",
            "batch": "POST /predict/batch - 여러 계정 일괄 평가",
            "anomalies": "GET /accounts/{account_id}/anomalies - 이상 탐지 보고서",
            "metrics": "GET /models/metrics - 모델 성능 지표",
            "summary": "POST /analyze/summary - 종합 분석 보고서",
            "health": "GET /health - 헬스체크"
        }
    }


@app.get("/health")
async def health_check():
    """헬스체크 엔드포인트"""
    return {"status": "healthy", "service": "ledger-risk-engine"}


@app.post("/predict", response_model=AssessmentResponse)
def predict(request: PredictRequest, engine: RiskAssessmentEngine = Depends(get_engine)):
    """
    요청에 포함된 거래 이력으로 계정 리스크를 평가합니다.

    Args:
        request: 평가 요청 데이터

    Returns:
        리스크 평가 결과
    """
    try:
        assessment = engine.predict_fraud_risk(request.account_id, _history_from_request(request))
    except Exception as e:
        logger.exception("Prediction failed for %s", request.account_id)
        raise HTTPException(status_code=500, detail=f"리스크 평가 오류: {str(e)}")

    return assessment.to_dict()


@app.get("/accounts/{account_id}/risk", response_model=AssessmentResponse)
def account_risk(account_id: str, engine: RiskAssessmentEngine = Depends(get_engine)):
    """이력 제공자에서 거래를 조회해 계정 리스크를 평가합니다."""
    return engine.predict_fraud_risk(account_id).to_dict()


@app.post("/predict/batch", response_model=List[AssessmentResponse])
def predict_batch(request: BatchPredictRequest, engine: RiskAssessmentEngine = Depends(get_engine)):
    """
    여러 계정을 일괄 평가합니다.

    조회에 실패하거나 시간 초과된 계정은 데이터 부족 결과로 채워지며,
    결과 순서는 요청 순서와 같습니다.
    """
    return [assessment.to_dict() for assessment in engine.batch_predict(request.account_ids)]


@app.get("/accounts/{account_id}/anomalies", response_model=AnomalyReportResponse)
def account_anomalies(account_id: str, engine: RiskAssessmentEngine = Depends(get_engine)):
    """이상 탐지 보고서를 반환합니다."""
    return engine.detect_anomalies(account_id).to_dict()


@app.get("/models/metrics", response_model=ModelMetricsResponse)
def model_metrics(engine: RiskAssessmentEngine = Depends(get_engine)):
    """설정된 모델 성능 지표를 반환합니다 (검증되지 않은 값)."""
    return engine.get_model_metrics().to_dict()


@app.post("/analyze/summary")
def create_analysis_summary(request: PredictRequest, engine: RiskAssessmentEngine = Depends(get_engine)):
    """
    종합 분석 보고서를 생성합니다.

    Args:
        request: 분석 요청 데이터

    Returns:
        종합 분석 보고서
    """
    history = _history_from_request(request)
    try:
        assessment = engine.predict_fraud_risk(request.account_id, history)
        return create_summary_report(request.account_id, history, assessment)
    except Exception as e:
        logger.exception("Summary report failed for %s", request.account_id)
        raise HTTPException(status_code=500, detail=f"분석 보고서 생성 오류: {str(e)}")


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
