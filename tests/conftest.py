# tests/conftest.py
from typing import Any, Dict, List, Optional

import pytest

from quote_api.adapters.generation_client import GenerationRequest
from quote_api.domain.tokenizer import PIITokenizer
from quote_api.domain.validator import QuoteValidator


class FakeGenerator:
    """Generation port that returns a canned candidate and records what it was sent."""

    def __init__(self, candidate: Any = None, error: Optional[Exception] = None) -> None:
        self.candidate = candidate
        self.error = error
        self.requests: List[GenerationRequest] = []

    async def generate(self, request: GenerationRequest) -> Dict[str, Any]:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return self.candidate


@pytest.fixture
def tokenizer() -> PIITokenizer:
    return PIITokenizer()


@pytest.fixture
def validator() -> QuoteValidator:
    return QuoteValidator()


@pytest.fixture
def products() -> List[Dict[str, Any]]:
    return [
        {"productCode": "LAPTOP13", "name": '13" Laptop', "unitPrice": 1300},
        {"productCode": "MONITOR4K", "name": "4K Monitor", "unitPrice": 400},
        {"productCode": "WARRANTY", "name": "Warranty", "unitPrice": 10},
    ]


@pytest.fixture
def clean_candidate() -> Dict[str, Any]:
    return {
        "intent": {"action": "create_quote", "products": ["LAPTOP13", "MONITOR4K"]},
        "quote_lines": [
            {
                "product_code": "LAPTOP13",
                "quantity": 2,
                "list_price": 1300.0,
                "unit_price": 1040.0,
                "discount_percent": 20.0,
                "total_price": 2080.0,
                "rules_applied": ["Standard Laptop Discount"],
            },
            {
                "product_code": "MONITOR4K",
                "quantity": 3,
                "list_price": 400.0,
                "unit_price": 360.0,
                "discount_percent": 10.0,
                "total_price": 1080.0,
                "rules_applied": [],
            },
        ],
        "quote_summary": {"subtotal": 3800.0, "total_discount": 640.0, "net_total": 3160.0},
        "approval": {"required": False, "chain": "", "reason": ""},
        "warnings": [],
        "product_recommendations": [],
    }


@pytest.fixture
def fake_generator():
    return FakeGenerator
