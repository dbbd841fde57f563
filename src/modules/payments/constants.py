"""Payment reconciliation constants."""

from django.db import models

from modules.orders.constants import PaymentStatus

# Gateway status strings (Mercado Pago vocabulary) → internal status.
# Anything not listed (pending, in_process, authorized, ...) stays PENDENTE.
GATEWAY_STATUS_MAP: dict[str, str] = {
    "approved": PaymentStatus.PAGO,
    "rejected": PaymentStatus.FALHOU,
    "cancelled": PaymentStatus.FALHOU,
    "refunded": PaymentStatus.ESTORNADO,
    "charged_back": PaymentStatus.ESTORNADO,
}

SIGNATURE_HEADER = "X-Signature"


class ReconciliationOutcome(models.TextChoices):
    APPLIED = "APPLIED", "Applied"
    UNCHANGED = "UNCHANGED", "Unchanged"
    DUPLICATE = "DUPLICATE", "Duplicate"
    STALE = "STALE", "Stale"
    REGRESSION = "REGRESSION", "Regression"
    UNKNOWN_ORDER = "UNKNOWN_ORDER", "Unknown order"


def map_gateway_status(raw: str | None) -> str:
    return GATEWAY_STATUS_MAP.get((raw or "").strip().lower(), PaymentStatus.PENDENTE)
