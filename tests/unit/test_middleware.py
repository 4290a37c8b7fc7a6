import json
import logging

import pytest
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import Receive, Scope, Send

from insight_engine.api.middleware import CorrelationIdMiddleware, ErrorMiddleware
from insight_engine.errors import PoolExhausted, QueryTimeout
from insight_engine.logging import CorrelationIdFilter, get_correlation_id


async def mock_app(scope: Scope, receive: Receive, send: Send):
    pass


def _request(headers=None):
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/",
        "headers": [(key.lower().encode(), value.encode()) for key, value in (headers or {}).items()],
    }
    return Request(scope)


@pytest.mark.anyio
async def test_error_middleware_maps_timeout_to_504():
    async def next_mock(request):
        raise QueryTimeout("Query exceeded the timeout of 10ms.")

    response = await ErrorMiddleware(mock_app).dispatch(_request(), next_mock)

    assert response.status_code == 504
    body = json.loads(response.body.decode())
    assert body == {"success": False, "error": "Query exceeded the timeout of 10ms.", "errorType": "Timeout"}


@pytest.mark.anyio
async def test_error_middleware_maps_pool_exhaustion_to_503():
    async def next_mock(request):
        raise PoolExhausted("pool exhausted")

    response = await ErrorMiddleware(mock_app).dispatch(_request(), next_mock)

    assert response.status_code == 503


@pytest.mark.anyio
async def test_error_middleware_masks_unexpected_errors():
    async def next_mock(request):
        raise ValueError("Secret database failure")

    response = await ErrorMiddleware(mock_app).dispatch(_request(), next_mock)

    assert response.status_code == 500
    body = json.loads(response.body.decode())
    assert body["errorType"] == "InternalError"
    assert "Secret" not in body["error"]


@pytest.mark.anyio
async def test_correlation_id_is_bound_while_handling_request():
    seen = {}

    async def next_mock(request):
        seen["correlation_id"] = get_correlation_id()
        return Response("ok")

    response = await CorrelationIdMiddleware(mock_app).dispatch(
        _request({"X-Correlation-ID": "req-42"}), next_mock
    )

    assert seen["correlation_id"] == "req-42"
    assert response.headers["X-Correlation-ID"] == "req-42"
    assert get_correlation_id() == "-"


@pytest.mark.anyio
async def test_correlation_id_is_generated_when_missing():
    async def next_mock(request):
        return Response("ok")

    response = await CorrelationIdMiddleware(mock_app).dispatch(_request(), next_mock)

    assert len(response.headers["X-Correlation-ID"]) == 36


def test_correlation_filter_stamps_records():
    record = logging.LogRecord("test", logging.INFO, __file__, 1, "message", None, None)

    assert CorrelationIdFilter().filter(record)
    assert record.correlation_id == "-"
