"""
Global Error Handler Middleware.

Domain errors that escape a router become their HTTP equivalent;
anything else becomes a generic 500 carrying an error_id that matches
the server log line.
"""

import traceback
import uuid

import structlog
from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from roundwatch.config import settings
from roundwatch.errors import ConnectionRejected, ResolutionError

logger = structlog.get_logger(__name__)


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """
    Outermost middleware.

    Body shape:
    {
      "error": "human-readable message",
      "error_id": "uuid for log correlation",   (500 only)
      "status": 500
    }
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        try:
            return await call_next(request)

        except ResolutionError as exc:
            return JSONResponse(status_code=404, content={"error": str(exc), "status": 404})

        except ConnectionRejected as exc:
            return JSONResponse(status_code=401, content={"error": exc.reason, "status": 401})

        except Exception as exc:
            error_id = str(uuid.uuid4())
            logger.error(
                "unhandled_exception",
                error_id=error_id,
                path=request.url.path,
                method=request.method,
                error=str(exc),
                traceback=traceback.format_exc(),
            )

            body: dict = {
                "error": "An internal error occurred. Please try again later.",
                "error_id": error_id,
                "status": 500,
            }
            if settings.debug:
                body["debug_hint"] = type(exc).__name__
            return JSONResponse(status_code=500, content=body)
