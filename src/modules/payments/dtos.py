"""Payment DTOs: the normalized gateway event."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class GatewayEventDTO(BaseModel):
    """Signed webhook body.

    Accepts the camelCase keys the gateway relay sends.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    correlation_id: str = Field(alias="correlationId", min_length=1)
    status: str
    revision: int = Field(ge=0)
    payment_id: Optional[str] = Field(default=None, alias="paymentId")
    payment_type: Optional[str] = Field(default=None, alias="paymentType")

    @field_validator("correlation_id", "status")
    @classmethod
    def strip(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank.")
        return v

    @field_validator("payment_id", mode="before")
    @classmethod
    def payment_id_as_text(cls, v):
        return None if v is None else str(v)
