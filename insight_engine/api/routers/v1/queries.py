from dependency_injector.wiring import Provide, inject
from fastapi import APIRouter, Depends, Query, Response, status

from insight_engine.api.status import status_for_error
from insight_engine.contracts.queries import (
    CacheInvalidationResponse,
    ExecuteQueryRequest,
    ExecuteQueryResponse,
)
from insight_engine.ioc import Container
from insight_engine.services import QueryService

router = APIRouter(prefix="/queries", tags=["queries"])


@router.post(
    "/execute",
    response_model=ExecuteQueryResponse,
    status_code=status.HTTP_200_OK,
)
@inject
async def execute_query(
    request: ExecuteQueryRequest,
    response: Response,
    service: QueryService = Depends(Provide[Container.query_service]),
) -> ExecuteQueryResponse:
    result = await service.execute(request)
    response.status_code = status_for_error(result.error_type)
    return result


@router.delete(
    "/cache",
    response_model=CacheInvalidationResponse,
    status_code=status.HTTP_200_OK,
)
@inject
async def invalidate_cache(
    pattern: str = Query(default="*", min_length=1),
    service: QueryService = Depends(Provide[Container.query_service]),
) -> CacheInvalidationResponse:
    return await service.invalidate_cache(pattern)
