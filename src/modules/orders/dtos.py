"""Order DTOs for the Service Layer.

Framework-agnostic data transfer objects using Pydantic v2.
These are the contracts between the API layer (DRF Serializers)
and the Service layer.  DTOs are immutable (``frozen=True``).

The checkout payload carries no prices: unit prices come from the
catalog snapshot and shipping from the authoritative quote.
"""

from __future__ import annotations

import re
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, field_validator, model_validator

from modules.orders.constants import PaymentMethod

_NON_DIGITS = re.compile(r"\D")


# ---------------------------------------------------------------------------
# Input DTOs
# ---------------------------------------------------------------------------


class CheckoutItemDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    product_id: UUID
    quantity: int

    @field_validator("quantity")
    @classmethod
    def quantity_must_be_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Quantity must be at least 1.")
        return v


class CustomerDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    email: EmailStr
    phone: str

    @field_validator("name")
    @classmethod
    def name_required(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Customer name is required.")
        return v

    @field_validator("phone")
    @classmethod
    def phone_has_digits(cls, v: str) -> str:
        if len(_NON_DIGITS.sub("", v)) < 8:
            raise ValueError("Phone must have at least 8 digits.")
        return v.strip()


class AddressDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    street: str
    number: str
    complement: str = ""
    neighborhood: str
    city: str
    state: str
    zip_code: str
    reference: str = ""

    @field_validator("zip_code")
    @classmethod
    def zip_code_has_eight_digits(cls, v: str) -> str:
        digits = _NON_DIGITS.sub("", v)
        if len(digits) != 8:
            raise ValueError("zip_code must have 8 digits.")
        return digits

    @field_validator("state")
    @classmethod
    def state_is_uf(cls, v: str) -> str:
        v = v.strip().upper()
        if len(v) != 2:
            raise ValueError("state must be a two-letter code.")
        return v


class CheckoutDTO(BaseModel):
    """Immutable DTO for checkout requests.

    Validates:
    - ``items`` must contain at least one item.
    - No product may appear twice.
    """

    model_config = ConfigDict(frozen=True)

    customer: CustomerDTO
    address: AddressDTO
    items: List[CheckoutItemDTO]
    payment_method: PaymentMethod
    notes: str = ""
    idempotency_key: Optional[str] = None

    @field_validator("items")
    @classmethod
    def items_must_not_be_empty(cls, v: List[CheckoutItemDTO]) -> List[CheckoutItemDTO]:
        if not v:
            raise ValueError("Order must have at least one item.")
        return v

    @model_validator(mode="after")
    def no_duplicate_products(self):
        product_ids = [item.product_id for item in self.items]
        if len(product_ids) != len(set(product_ids)):
            raise ValueError("Duplicate product IDs are not allowed in the same order.")
        return self


class TrackingQueryDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    code: str
    email: Optional[str] = None
    phone: Optional[str] = None

    @field_validator("code")
    @classmethod
    def normalize_code(cls, v: str) -> str:
        return v.strip().upper()

    @property
    def phone_digits(self) -> str:
        return _NON_DIGITS.sub("", self.phone or "")


# ---------------------------------------------------------------------------
# Output DTOs
# ---------------------------------------------------------------------------


class CheckoutResultDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    order_id: UUID
    order_code: str
    payment_redirect_url: Optional[str] = None
    replayed: bool = False
