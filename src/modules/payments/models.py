"""Payment event ledger.

One row per (correlation_id, revision) the webhook accepted, with the
reconciliation outcome.  The unique constraint makes a concurrent
redelivery of the same revision fail instead of applying twice.
"""

from __future__ import annotations

from django.db import models

from modules.core.models import BaseModel
from modules.payments.constants import ReconciliationOutcome


class PaymentEvent(BaseModel):
    order: models.ForeignKey = models.ForeignKey(
        "orders.Order",
        on_delete=models.PROTECT,
        related_name="payment_events",
        null=True,
        blank=True,
    )
    correlation_id = models.CharField(max_length=255)
    revision = models.BigIntegerField()
    gateway_status = models.CharField(max_length=50)
    mapped_status = models.CharField(max_length=20)
    previous_status = models.CharField(max_length=20, blank=True, default="")
    outcome = models.CharField(max_length=20, choices=ReconciliationOutcome.choices)
    external_payment_id = models.CharField(max_length=255, blank=True, default="")
    payload = models.JSONField(default=dict)

    class Meta:
        db_table = "payment_events"
        ordering = ["created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["correlation_id", "revision"],
                name="uniq_payment_event",
            ),
        ]
        indexes = [
            models.Index(fields=["correlation_id"], name="payment_events_corr_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.correlation_id}@{self.revision} -> {self.outcome}"
