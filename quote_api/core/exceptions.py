from typing import Any, Optional

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
import logging


logger = logging.getLogger(__name__)


class AppError(Exception):
    """Base application error."""
    def __init__(self, message: str, *, code: str = "app_error", status_code: int = 400) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code


class InputShapeError(AppError):
    """Candidate document is structurally unusable. Aborts validation."""
    def __init__(self, message: str) -> None:
        super().__init__(message, code="input_shape", status_code=502)


class UpstreamFailure(AppError):
    """The generation service failed or returned something unparseable."""
    def __init__(self, message: str) -> None:
        super().__init__(message, code="upstream_failure", status_code=502)


class LineDefectError(AppError):
    """
    A correctable defect on a single quote line.

    Recorded by the validator and turned into a warning, never raised out of it.
    """
    def __init__(
        self,
        message: str,
        *,
        product_code: Optional[str] = None,
        field: Optional[str] = None,
        reported: Any = None,
        corrected: Any = None,
    ) -> None:
        super().__init__(message, code="line_defect", status_code=422)
        self.product_code = product_code
        self.field = field
        self.reported = reported
        self.corrected = corrected


class SummaryMismatchError(AppError):
    """A quote summary value that disagreed with the recomputed lines."""
    def __init__(self, message: str, *, field: str, reported: Any, corrected: Any) -> None:
        super().__init__(message, code="summary_mismatch", status_code=422)
        self.field = field
        self.reported = reported
        self.corrected = corrected


def _request_id(request: Request) -> Optional[str]:
    return getattr(request.state, "request_id", None)


class ExceptionMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        try:
            return await call_next(request)
        except AppError as ae:
            logger.warning("AppError [%s]: %s", ae.code, ae.message)
            return JSONResponse(
                status_code=ae.status_code,
                content={
                    "success": False,
                    "error": ae.code,
                    "message": ae.message,
                    "request_id": _request_id(request),
                },
            )
        except Exception:  # pragma: no cover
            logger.exception("Unhandled error")
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "error": "internal_error",
                "message": "Unexpected server error",
                "request_id": _request_id(request),
            },
        )
