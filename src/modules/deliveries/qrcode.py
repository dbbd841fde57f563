"""QR payload printed on the pick slip: ``"{order_id}|{order_code}"``."""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from modules.deliveries.exceptions import InvalidQrPayload
from modules.orders.constants import QR_SEPARATOR


@dataclass(frozen=True)
class OrderRef:
    order_id: UUID
    order_code: str

    @property
    def payload(self) -> str:
        return build_qr_payload(self.order_id, self.order_code)


def build_qr_payload(order_id: UUID | str, order_code: str) -> str:
    return f"{order_id}{QR_SEPARATOR}{order_code}"


def parse_qr_payload(text: str) -> OrderRef:
    """Split a scanned payload into id and code.

    Raises:
        InvalidQrPayload: a half is missing, there are extra separators,
            or the id is not a UUID.
    """
    parts = (text or "").strip().split(QR_SEPARATOR)
    if len(parts) != 2:
        raise InvalidQrPayload()
    raw_id, code = (part.strip() for part in parts)
    if not raw_id or not code:
        raise InvalidQrPayload()
    try:
        order_id = UUID(raw_id)
    except ValueError as exc:
        raise InvalidQrPayload() from exc
    return OrderRef(order_id=order_id, order_code=code.upper())
