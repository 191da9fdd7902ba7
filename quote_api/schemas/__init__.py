from .product import ProductReference
from .quote import (
    Approval,
    QuoteLine,
    QuoteRequest,
    QuoteResponse,
    QuoteSummary,
)

__all__ = [
    "ProductReference",
    "Approval",
    "QuoteLine",
    "QuoteRequest",
    "QuoteResponse",
    "QuoteSummary",
]
