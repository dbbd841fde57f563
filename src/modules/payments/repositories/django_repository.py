"""Django ORM implementation of the payment event ledger."""

from __future__ import annotations

from typing import Any, Dict

from django.db import transaction

from modules.payments.models import PaymentEvent
from modules.payments.repositories.interfaces import IPaymentEventRepository


class PaymentEventDjangoRepository(IPaymentEventRepository):
    def exists(self, correlation_id: str, revision: int) -> bool:
        return PaymentEvent.objects.filter(
            correlation_id=correlation_id, revision=revision
        ).exists()

    def record(self, data: Dict[str, Any]) -> PaymentEvent:
        with transaction.atomic():
            return PaymentEvent.objects.create(**data)
