import pytest
from fastapi.testclient import TestClient

from insight_engine.analytics import AnalyticsAugmenter
from insight_engine.api.main import app, container
from insight_engine.connectors import PoolRegistry
from insight_engine.contracts import ExecuteQueryResponse
from insight_engine.query import InMemoryCacheBackend, QueryExecutor, ResultCache
from insight_engine.semantic import InMemorySemanticModelRegistry, SemanticQueryCompiler
from insight_engine.services import QueryService


class StubQueryService(QueryService):
    """Real analytics endpoints, canned query responses."""

    def __init__(self, response: ExecuteQueryResponse) -> None:
        super().__init__(
            credential_resolver=None,
            executor=None,
            cache=ResultCache(InMemoryCacheBackend()),
            compiler=None,
            augmenter=AnalyticsAugmenter(),
        )
        self._response = response

    async def execute(self, request):
        return self._response


@pytest.fixture
def live_client(credential_resolver):
    pool = PoolRegistry(max_size=2)
    service = QueryService(
        credential_resolver=credential_resolver,
        executor=QueryExecutor(pool),
        cache=ResultCache(InMemoryCacheBackend(), ttl_s=60),
        compiler=SemanticQueryCompiler(InMemorySemanticModelRegistry()),
        augmenter=AnalyticsAugmenter(),
    )
    with container.pool_registry.override(pool), container.query_service.override(service):
        with TestClient(app) as client:
            yield client


def _stub_client(response: ExecuteQueryResponse):
    container.query_service.override(StubQueryService(response))
    return TestClient(app)


@pytest.fixture(autouse=True)
def reset_overrides():
    yield
    container.query_service.reset_override()


def test_health():
    client = TestClient(app)
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_metrics_endpoint_exposes_prometheus_text():
    client = TestClient(app)
    client.get("/health")
    response = client.get("/metrics")

    assert response.status_code == 200
    assert "insight_engine_api_http_requests_total" in response.text


def test_execute_round_trip_with_cache_flag(live_client):
    payload = {"connectionId": "warehouse", "sql": "SELECT 1 AS x"}

    first = live_client.post("/api/v1/queries/execute", json=payload)
    second = live_client.post("/api/v1/queries/execute", json=payload)

    assert first.status_code == 200
    body = first.json()
    assert body["success"] is True
    assert body["data"] == [{"x": 1}]
    assert body["rowCount"] == 1
    assert body["cached"] is False
    assert second.json()["cached"] is True


def test_destructive_statement_returns_400(live_client):
    response = live_client.post(
        "/api/v1/queries/execute",
        json={"connectionId": "warehouse", "sql": "DROP TABLE users"},
    )

    assert response.status_code == 400
    assert response.json()["errorType"] == "DestructiveStatement"


def test_cache_invalidation_route(live_client):
    live_client.post("/api/v1/queries/execute", json={"connectionId": "warehouse", "sql": "SELECT 2 AS y"})

    response = live_client.delete("/api/v1/queries/cache", params={"pattern": "warehouse"})

    assert response.status_code == 200
    assert response.json() == {
        "success": True,
        "pattern": "warehouse",
        "removed": 1,
        "error": None,
        "errorType": None,
    }


@pytest.mark.parametrize(
    "error_type, status_code",
    [
        ("Timeout", 504),
        ("PoolExhausted", 503),
        ("ConnectFailed", 503),
        ("ConnectionNotFound", 404),
        ("UnknownField", 400),
        ("InternalError", 500),
    ],
)
def test_execute_maps_error_types_to_status_codes(error_type, status_code):
    client = _stub_client(ExecuteQueryResponse(success=False, error="boom", error_type=error_type))

    response = client.post("/api/v1/queries/execute", json={"connectionId": "c", "sql": "SELECT 1"})

    assert response.status_code == status_code
    assert response.json()["errorType"] == error_type


def test_request_validation_failures_return_400():
    client = TestClient(app)

    response = client.post("/api/v1/queries/execute", json={"connectionId": "c"})

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["errorType"] == "InvalidRequest"


def test_correlation_id_is_echoed():
    client = TestClient(app)

    response = client.get("/health", headers={"X-Correlation-ID": "abc-123"})

    assert response.headers["X-Correlation-ID"] == "abc-123"


def test_forecast_route():
    client = _stub_client(ExecuteQueryResponse(success=True))
    data = [{"day": f"2024-01-{index + 1:02d}", "value": 2 * index + 3} for index in range(10)]

    response = client.post(
        "/api/v1/analytics/forecast",
        json={"data": data, "dateColumn": "day", "valueColumn": "value", "periods": 2},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["slope"] == pytest.approx(2.0)
    assert body["rSquared"] == pytest.approx(1.0)
    assert [row["day"] for row in body["forecast"]] == ["2024-01-11", "2024-01-12"]


def test_forecast_route_with_mixed_timezone_dates_succeeds():
    client = _stub_client(ExecuteQueryResponse(success=True))
    data = [{"day": "2024-01-01", "value": 1}, {"day": "2024-01-02T00:00:00+00:00", "value": 2}]

    response = client.post(
        "/api/v1/analytics/forecast",
        json={"data": data, "dateColumn": "day", "valueColumn": "value", "periods": 1},
    )

    assert response.status_code == 200
    assert response.json()["success"] is True


def test_anomalies_route():
    client = _stub_client(ExecuteQueryResponse(success=True))
    data = [{"v": value} for value in [10, 11, 10, 12, 11, 10, 100]]

    response = client.post("/api/v1/analytics/anomalies", json={"data": data, "valueColumn": "v"})

    assert response.status_code == 200
    anomalies = response.json()["anomalies"]
    assert [(item["index"], item["label"]) for item in anomalies] == [(6, "spike")]


def test_clusters_route_rejects_invalid_k():
    client = _stub_client(ExecuteQueryResponse(success=True))

    response = client.post(
        "/api/v1/analytics/clusters",
        json={"data": [{"x": 1}, {"x": 2}], "features": ["x"], "k": 5},
    )

    assert response.status_code == 400
    assert response.json()["errorType"] == "InvalidK"


def test_clusters_route():
    client = _stub_client(ExecuteQueryResponse(success=True))
    data = [{"x": 1}, {"x": 1.1}, {"x": 9}, {"x": 9.2}]

    response = client.post("/api/v1/analytics/clusters", json={"data": data, "features": ["x"], "k": 2})

    assert response.status_code == 200
    clusters = response.json()["clusters"]
    assert [item["clusterId"] for item in clusters] == [0, 0, 1, 1]
    assert [item["dataIndex"] for item in clusters] == [0, 1, 2, 3]
