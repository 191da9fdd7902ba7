from typing import Any, Dict, List, Optional
import logging

from quote_api.adapters.generation_client import GenerationPort, GenerationRequest
from quote_api.domain.tokenizer import PIITokenizer, detokenize
from quote_api.domain.validator import Defect, QuoteValidator
from quote_api.schemas.quote import QuoteRequest

logger = logging.getLogger(__name__)


def products_payload(request: QuoteRequest) -> List[Dict[str, Any]]:
    return [p.model_dump() for p in (request.products or [])]


def restore_warnings(warnings: Optional[List[str]], token_map: Dict[str, str]) -> List[str]:
    return [detokenize(w, token_map) for w in (warnings or [])]


def corrected_fields(defects: List[Defect]) -> Dict[str, int]:
    """field -> number of corrections; values stay out of the logs."""
    counts: Dict[str, int] = {}
    for d in defects:
        key = d.field or "line"
        counts[key] = counts.get(key, 0) + 1
    return counts


class QuoteService:
    """
    Runs one quote request across the trust boundary:
    sanitize -> generate (untrusted) -> validate -> detokenize warnings.

    The token map lives only inside ``generate_quote``; it is never logged
    and never handed to the generation port.
    """

    def __init__(
        self,
        tokenizer: PIITokenizer,
        validator: QuoteValidator,
        generator: GenerationPort,
        *,
        pii_enabled: bool = True,
    ) -> None:
        self.tokenizer = tokenizer
        self.validator = validator
        self.generator = generator
        self.pii_enabled = pii_enabled

    async def generate_quote(self, request: QuoteRequest, session_id: str) -> Dict[str, Any]:
        if self.pii_enabled:
            prompt, token_map = self.tokenizer.tokenize(request.user_prompt)
            org_context = self.tokenizer.tokenize_opaque(request.org_context)
        else:
            prompt, token_map = request.user_prompt, {}
            org_context = request.org_context or ""

        products = products_payload(request)
        logger.info(
            "generation start session=%s tokens=%d products=%d",
            session_id, len(token_map), len(products),
        )

        candidate = await self.generator.generate(
            GenerationRequest(
                user_prompt=prompt,
                rule_context=request.rule_context,
                org_context=org_context,
                products=products,
                session_id=session_id,
            )
        )

        audited, defects = self.validator.audit(candidate, request.products or [])
        audited["warnings"] = restore_warnings(audited.get("warnings"), token_map)
        audited["session_id"] = session_id

        logger.info(
            "quote ready session=%s lines=%d warnings=%d corrected=%s",
            session_id, len(audited["quote_lines"]), len(audited["warnings"]),
            corrected_fields(defects),
        )
        return audited
