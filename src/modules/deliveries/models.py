"""Delivery assignment model.

``uniq_active_assignment_per_order`` is the storage-level compare-and-swap
behind claims: the database refuses a second row with an active status
for the same order, whoever inserts it first wins.
"""

from __future__ import annotations

from django.conf import settings
from django.db import models

from modules.core.models import BaseModel
from modules.deliveries.constants import AssignmentSource, AssignmentStatus


class DeliveryAssignment(BaseModel):
    order: models.ForeignKey = models.ForeignKey(
        "orders.Order",
        on_delete=models.PROTECT,
        related_name="assignments",
    )
    driver: models.ForeignKey = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="delivery_assignments",
    )
    status = models.CharField(
        max_length=20,
        choices=AssignmentStatus.choices,
        default=AssignmentStatus.PENDENTE,
    )
    source = models.CharField(
        max_length=20,
        choices=AssignmentSource.choices,
        default=AssignmentSource.QR_SCAN,
    )
    recipient_name = models.CharField(max_length=255, blank=True, default="")
    notes = models.TextField(blank=True, default="")
    started_at = models.DateTimeField(null=True, blank=True)
    delivered_at = models.DateTimeField(null=True, blank=True)
    released_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "delivery_assignments"
        ordering = ["created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["order"],
                condition=models.Q(
                    status__in=[AssignmentStatus.PENDENTE, AssignmentStatus.EM_ROTA]
                ),
                name="uniq_active_assignment_per_order",
            ),
            models.CheckConstraint(
                condition=~models.Q(status=AssignmentStatus.ENTREGUE)
                | models.Q(delivered_at__isnull=False),
                name="delivered_assignment_has_timestamp",
            ),
        ]
        indexes = [
            models.Index(fields=["driver", "status"], name="assignment_driver_status_idx"),
        ]

    @property
    def is_active(self) -> bool:
        return self.status in (AssignmentStatus.PENDENTE, AssignmentStatus.EM_ROTA)

    def __str__(self) -> str:
        return f"{self.order_id} -> {self.driver_id} ({self.status})"
