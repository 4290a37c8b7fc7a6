import logging

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from insight_engine.api.status import status_for_error
from insight_engine.errors import InsightEngineError


def error_response(status_code: int, message: str, error_type: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": message, "errorType": error_type},
    )


class ErrorMiddleware(BaseHTTPMiddleware):
    """Turns errors that escape a route into a JSON error body."""

    def __init__(self, app):
        super().__init__(app)
        self.logger = logging.getLogger(__name__)

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        try:
            response = await call_next(request)
        except InsightEngineError as e:
            self.logger.error("Request %s %s failed (%s)", request.method, request.url.path, e.error_type, exc_info=True)
            response = error_response(status_for_error(e.error_type), e.message, e.error_type)
        except Exception:
            self.logger.error("Unknown error on %s %s", request.method, request.url.path, exc_info=True)
            response = error_response(500, "An unexpected error occurred.", "InternalError")

        return response
