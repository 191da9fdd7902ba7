from uuid import uuid4
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from quote_api.core.config import settings
from quote_api.core.exceptions import ExceptionMiddleware
from quote_api.core.logging import setup_logging
from quote_api.routers import health, quote

setup_logging()

log = logging.getLogger(__name__)


app = FastAPI(title=settings.APP_NAME, version=settings.APP_VERSION)

app.add_middleware(ExceptionMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=False,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type", "Authorization", "X-Org-Id", "X-Session-Id"],
)


@app.middleware("http")
async def request_context(request: Request, call_next):
    request.state.request_id = str(uuid4())
    log.info(
        "request id=%s method=%s path=%s org=%s",
        request.state.request_id,
        request.method,
        request.url.path,
        request.headers.get("x-org-id"),
    )
    response = await call_next(request)
    response.headers["X-Request-Id"] = request.state.request_id
    return response


app.include_router(health.router)
app.include_router(quote.router)
