"""Order Schemas — Pydantic models with field-level validation for the orders API.

Invariants:
    - OrderCreate.sku: upper-case SKU code, stripped
    - OrderCreate.quantity: 1-1000
"""

from pydantic import BaseModel, Field, field_validator


class OrderCreate(BaseModel):
    """Order placement request."""
    sku: str = Field(min_length=3, max_length=32, pattern=r"^[A-Z0-9-]+$")
    quantity: int = Field(ge=1, le=1000)

    @field_validator("sku", mode="before")
    @classmethod
    def strip_sku(cls, v):
        return v.strip() if isinstance(v, str) else v


class OrderResponse(BaseModel):
    """Order as returned to callers."""
    id: int
    sku: str
    quantity: int
    status: str
