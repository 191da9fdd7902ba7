from typing import Optional
from uuid import uuid4
import logging

from fastapi import APIRouter, Depends, Header

from quote_api.auth.deps import get_org_id
from quote_api.deps import get_quote_service
from quote_api.domain.services import QuoteService
from quote_api.schemas.quote import QuoteRequest, QuoteResponse

router = APIRouter(prefix="/api/quote", tags=["quote"])
logger = logging.getLogger(__name__)


@router.post(
    "/generate",
    response_model=QuoteResponse,
    summary="Generate an audited quote from a natural-language request",
)
async def generate_quote(
    body: QuoteRequest,
    org_id: str = Depends(get_org_id),
    service: QuoteService = Depends(get_quote_service),
    x_session_id: Optional[str] = Header(default=None),
) -> QuoteResponse:
    session_id = x_session_id or body.session_id or str(uuid4())
    audited = await service.generate_quote(body, session_id)
    logger.info("quote generated org=%s session=%s", org_id, session_id)
    return QuoteResponse(**{**audited, "success": True})
