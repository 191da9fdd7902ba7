from typing import Optional
from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class ProductReference(BaseModel):
    """Trusted catalog entry supplied by the caller."""

    product_code: str = Field(
        ..., min_length=1, validation_alias=AliasChoices("product_code", "productCode", "code")
    )
    list_price: float = Field(
        ..., ge=0, validation_alias=AliasChoices("list_price", "unitPrice", "price")
    )
    name: Optional[str] = None

    model_config = ConfigDict(extra="allow", populate_by_name=True)
