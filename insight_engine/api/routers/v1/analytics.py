from dependency_injector.wiring import Provide, inject
from fastapi import APIRouter, Depends, Response, status

from insight_engine.api.status import status_for_error
from insight_engine.contracts.analytics import (
    AnomalyRequest,
    AnomalyResponse,
    ClusteringRequest,
    ClusteringResponse,
    ForecastRequest,
    ForecastResponse,
)
from insight_engine.ioc import Container
from insight_engine.services import QueryService

router = APIRouter(prefix="/analytics", tags=["analytics"])


@router.post("/forecast", response_model=ForecastResponse, status_code=status.HTTP_200_OK)
@inject
async def forecast(
    request: ForecastRequest,
    response: Response,
    service: QueryService = Depends(Provide[Container.query_service]),
) -> ForecastResponse:
    result = await service.forecast(request)
    response.status_code = status_for_error(result.error_type)
    return result


@router.post("/anomalies", response_model=AnomalyResponse, status_code=status.HTTP_200_OK)
@inject
async def detect_anomalies(
    request: AnomalyRequest,
    response: Response,
    service: QueryService = Depends(Provide[Container.query_service]),
) -> AnomalyResponse:
    result = await service.detect_anomalies(request)
    response.status_code = status_for_error(result.error_type)
    return result


@router.post("/clusters", response_model=ClusteringResponse, status_code=status.HTTP_200_OK)
@inject
async def cluster(
    request: ClusteringRequest,
    response: Response,
    service: QueryService = Depends(Provide[Container.query_service]),
) -> ClusteringResponse:
    result = await service.cluster(request)
    response.status_code = status_for_error(result.error_type)
    return result
