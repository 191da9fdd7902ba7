from typing import Any, List, Optional
from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from quote_api.schemas.product import ProductReference


class QuoteRequest(BaseModel):
    user_prompt: str = Field(
        ...,
        min_length=3,
        max_length=2000,
        validation_alias=AliasChoices("userPrompt", "user_prompt"),
    )
    rule_context: Optional[str] = Field(
        None, validation_alias=AliasChoices("ruleContext", "rule_context")
    )
    org_context: Optional[str] = Field(
        None, validation_alias=AliasChoices("orgContext", "org_context")
    )
    session_id: Optional[str] = Field(
        None, validation_alias=AliasChoices("sessionId", "session_id")
    )
    products: Optional[List[ProductReference]] = None

    model_config = ConfigDict(populate_by_name=True)


class QuoteLine(BaseModel):
    product_code: str
    quantity: float
    list_price: float
    unit_price: float
    discount_percent: float
    total_price: float
    rules_applied: List[str] = []

    model_config = ConfigDict(extra="allow")


class QuoteSummary(BaseModel):
    subtotal: float
    total_discount: float
    net_total: float

    model_config = ConfigDict(extra="allow")


class Approval(BaseModel):
    required: bool = False
    chain: str = ""
    reason: str = ""


class QuoteResponse(BaseModel):
    success: bool = True
    session_id: str
    quote_lines: List[QuoteLine]
    quote_summary: QuoteSummary
    approval: Optional[Any] = None
    warnings: List[str] = []
    intent: Optional[Any] = None
    product_recommendations: Optional[Any] = None
