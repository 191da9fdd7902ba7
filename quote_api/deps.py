from __future__ import annotations
from functools import lru_cache
from typing import TYPE_CHECKING


if TYPE_CHECKING:
    from quote_api.adapters.generation_client import GenerationPort
    from quote_api.domain.services import QuoteService


def get_generation_client() -> "GenerationPort":
    from quote_api.adapters.generation_client import (
        HttpGenerationClient,
        LLMGenerationClient,
        MockGenerationClient,
    )
    from quote_api.core.config import settings

    if settings.GENERATION_BACKEND == "llm":
        return LLMGenerationClient(
            model=settings.LLM_MODEL,
            temperature=settings.LLM_TEMPERATURE,
            max_tokens=settings.LLM_MAX_TOKENS,
            api_key=settings.OPENAI_API_KEY,
        )
    if settings.GENERATION_BACKEND == "http":
        return HttpGenerationClient(
            settings.GENERATION_BASE_URL, timeout=settings.GENERATION_TIMEOUT
        )
    return MockGenerationClient(discount_percent=settings.MOCK_DISCOUNT_PERCENT)


@lru_cache(maxsize=1)
def get_quote_service() -> "QuoteService":
    from quote_api.core.config import settings
    from quote_api.domain.services import QuoteService
    from quote_api.domain.tokenizer import PIITokenizer, pattern_classes_for
    from quote_api.domain.validator import QuoteValidator

    return QuoteService(
        tokenizer=PIITokenizer(pattern_classes_for(settings.PII_CLASSES)),
        validator=QuoteValidator(tolerance=settings.PRICE_TOLERANCE),
        generator=get_generation_client(),
        pii_enabled=settings.PII_TOKENIZATION_ENABLED,
    )
