from datetime import datetime, timezone

from fastapi import APIRouter

from quote_api.core.config import settings


router = APIRouter(prefix="/api/health", tags=["health"])


@router.get("")
async def health():
    return {
        "status": "ok",
        "version": settings.APP_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
