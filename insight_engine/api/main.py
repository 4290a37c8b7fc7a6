from contextlib import asynccontextmanager
import inspect
import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.routing import APIRoute
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse, Response

from insight_engine.api.middleware import CorrelationIdMiddleware, ErrorMiddleware, error_response
from insight_engine.api.routers import api_router_v1
from insight_engine.config import settings
from insight_engine.ioc import Container, wire_packages
from insight_engine.logging import setup_logging
from insight_engine.monitoring import PrometheusMiddleware, metrics_response

logger = logging.getLogger(__name__)


def custom_generate_unique_id(route: APIRoute) -> str:
    if len(route.tags) == 0:
        return route.name
    return f"{route.tags[0]}-{route.name}"


container = Container()
wire_packages(
    container,
    package_names=["insight_engine.api.routers"],
    extra_modules=["insight_engine.api.main"],
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager to handle startup and shutdown events."""
    init_result = container.init_resources()
    if inspect.isawaitable(init_result):
        await init_result
    app.state.container = container
    yield
    await container.pool_registry().dispose()
    await container.result_cache().close()
    shutdown_result = container.shutdown_resources()
    if inspect.isawaitable(shutdown_result):
        await shutdown_result


setup_logging(service_name=settings.PROJECT_NAME, with_file=settings.IS_LOCAL)

app = FastAPI(
    title=settings.PROJECT_NAME,
    generate_unique_id_function=custom_generate_unique_id,
    lifespan=lifespan,
)


# Starlette executes middleware in reverse order of addition (last added runs first).
app.add_middleware(PrometheusMiddleware, service_name="insight_engine_api")
app.add_middleware(CorrelationIdMiddleware)
app.add_middleware(ErrorMiddleware)

if settings.CORS_ENABLED:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["Authorization", "Content-Type", "X-Correlation-ID"],
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        message = error.get("msg", "Invalid value")
        messages.append(f"{location}: {message}" if location else message)
    logger.info("Rejected request %s %s: %s", request.method, request.url.path, "; ".join(messages))
    return error_response(status.HTTP_400_BAD_REQUEST, "; ".join(messages), "InvalidRequest")


app.include_router(
    api_router_v1,
    prefix=settings.API_V1_STR,
)


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/metrics")
def metrics() -> Response:
    return metrics_response()


FastAPIInstrumentor.instrument_app(app)

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "insight_engine.api.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.UVICORN_RELOAD,
        log_level="info",
    )
