from typing import Optional
import logging

from fastapi import Header, HTTPException, status

from quote_api.core.config import settings

logger = logging.getLogger(__name__)


async def get_org_id(
    x_org_id: Optional[str] = Header(default=None),
) -> str:
    org_id = (x_org_id or "").strip()
    if not org_id:
        logger.warning("auth rejected: missing X-Org-Id header")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing required header: X-Org-Id",
        )

    allowed = settings.ALLOWED_ORG_IDS
    if allowed and org_id not in allowed:
        logger.warning("auth rejected: org %s not in allowlist", org_id)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Org not authorised to use this service.",
        )
    return org_id
