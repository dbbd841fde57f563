"""Delivery Assignment Coordinator.

The order row is the unit of contention: every command locks it first
(``select_for_update``) and then changes the assignment with a
conditional write.  The partial unique index on active assignments is
the final arbiter for claims, so exactly one concurrent claimant wins
even where row locks are unavailable.

Claim rules:
- a driver may claim an order in ``RECEBIDO``/``SEPARANDO``/
  ``SAIU_PARA_ENTREGA`` with no active assignment;
- re-claiming an order the driver already holds returns that assignment;
- any other active holder means ``AlreadyAssigned``.  Replacing a holder
  is an admin action (``assign``), and an ``EM_ROTA`` holder is replaced
  only with ``override=True``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, List, Optional, Tuple
from uuid import UUID

import structlog
from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction
from django.utils import timezone

from modules.core.permissions import DRIVER_GROUP
from modules.deliveries.constants import (
    ASSIGNMENT_TRANSITIONS,
    CLAIMABLE_ORDER_STATUSES,
    ORDER_STATUS_FOR_ASSIGNMENT,
    AssignmentSource,
    AssignmentStatus,
)
from modules.deliveries.exceptions import (
    AlreadyAssigned,
    AssignmentInProgress,
    AssignmentNotFound,
    DriverNotFound,
    InvalidAssignmentTransition,
    OrderNotClaimable,
    RecipientNameRequired,
    StaleAssignment,
)
from modules.deliveries.qrcode import OrderRef
from modules.deliveries.repositories.django_repository import (
    AssignmentDjangoRepository,
)
from modules.notifications.sink import StatusNotificationSink
from modules.orders.exceptions import OrderNotFound
from modules.orders.repositories.django_repository import OrderDjangoRepository
from modules.orders.state_machine import transition_order

if TYPE_CHECKING:
    from modules.deliveries.models import DeliveryAssignment
    from modules.deliveries.repositories.interfaces import IAssignmentRepository
    from modules.orders.models import Order
    from modules.orders.repositories.interfaces import IOrderRepository

logger = structlog.get_logger(__name__)


class DeliveryService:
    def __init__(
        self,
        assignment_repository: IAssignmentRepository,
        order_repository: IOrderRepository,
        sink: Optional[StatusNotificationSink] = None,
    ) -> None:
        self._assignments = assignment_repository
        self._orders = order_repository
        self._sink = sink or StatusNotificationSink()

    # ------------------------------------------------------------------
    # Driver commands
    # ------------------------------------------------------------------

    @transaction.atomic
    def claim(self, ref: OrderRef, driver: Any) -> Tuple[DeliveryAssignment, bool]:
        """Make *driver* the holder of the order's active assignment.

        Returns ``(assignment, created)``; ``created`` is False when the
        driver already held the order.

        Raises:
            OrderNotFound: unknown id, or the code does not match it.
            OrderNotClaimable: the order is terminal.
            AlreadyAssigned: another driver holds the order.
        """
        log = logger.bind(order_id=str(ref.order_id), driver_id=str(driver.pk))

        order = self._orders.get_for_update(str(ref.order_id))
        if order is None or order.code != ref.order_code:
            log.info("delivery.claim_unknown_order")
            raise OrderNotFound()
        if order.status not in CLAIMABLE_ORDER_STATUSES:
            log.info("delivery.claim_not_claimable", order_status=order.status)
            raise OrderNotClaimable()

        holder = self._assignments.get_active_for_order(order.id)
        if holder is not None:
            return self._resolve_existing_holder(holder, driver, log), False

        try:
            assignment = self._assignments.insert_active(
                order.id, driver.pk, AssignmentSource.QR_SCAN
            )
        except IntegrityError:
            holder = self._assignments.get_active_for_order(order.id)
            if holder is None:
                raise
            return self._resolve_existing_holder(holder, driver, log), False

        log.info("delivery.claimed", assignment_id=str(assignment.id), code=order.code)
        return assignment, True

    def _resolve_existing_holder(
        self, holder: DeliveryAssignment, driver: Any, log
    ) -> DeliveryAssignment:
        if holder.driver_id == driver.pk:
            log.info("delivery.claim_repeated", assignment_id=str(holder.id))
            return holder
        log.warning(
            "delivery.claim_conflict",
            holder_assignment_id=str(holder.id),
            holder_status=holder.status,
        )
        raise AlreadyAssigned()

    @transaction.atomic
    def advance(
        self,
        assignment_id: UUID,
        new_status: str,
        driver: Any,
        recipient_name: str = "",
        notes: str = "",
    ) -> DeliveryAssignment:
        """Move the driver's assignment forward and sync the order.

        ``EM_ROTA`` puts the order in ``SAIU_PARA_ENTREGA``; ``ENTREGUE``
        requires the recipient's name, stamps ``delivered_at`` and
        delivers the order.

        Raises:
            AssignmentNotFound: unknown id or held by another driver.
            InvalidAssignmentTransition: e.g. ``ENTREGUE`` → ``PENDENTE``.
            RecipientNameRequired: ``ENTREGUE`` without a recipient.
            StaleAssignment: the assignment changed concurrently.
        """
        assignment = self._assignments.get_by_id(str(assignment_id))
        if assignment is None or assignment.driver_id != driver.pk:
            raise AssignmentNotFound()

        log = logger.bind(
            assignment_id=str(assignment.id),
            order_id=str(assignment.order_id),
            driver_id=str(driver.pk),
            current_status=assignment.status,
            new_status=new_status,
        )

        if new_status not in ASSIGNMENT_TRANSITIONS.get(assignment.status, set()):
            log.warning("delivery.invalid_transition")
            raise InvalidAssignmentTransition(
                f"Não é possível mudar a entrega de {assignment.status} para {new_status}."
            )
        recipient_name = (recipient_name or "").strip()
        if new_status == AssignmentStatus.ENTREGUE and not recipient_name:
            raise RecipientNameRequired()

        order = self._orders.get_for_update(str(assignment.order_id))
        if order is None:
            raise OrderNotFound()

        now = timezone.now()
        fields: dict[str, Any] = {}
        if notes:
            fields["notes"] = notes
        if new_status == AssignmentStatus.EM_ROTA:
            fields["started_at"] = now
        if new_status == AssignmentStatus.ENTREGUE:
            fields["delivered_at"] = now
            fields["recipient_name"] = recipient_name

        if not self._assignments.compare_and_set_status(
            assignment.id, assignment.status, new_status, **fields
        ):
            log.warning("delivery.transition_conflict")
            raise StaleAssignment()

        self._sync_order(order, new_status, driver, recipient_name, notes)
        log.info("delivery.advanced")
        return self._assignments.get_by_id(str(assignment.id))

    def _sync_order(
        self, order: Order, assignment_status: str, driver: Any, recipient: str, notes: str
    ) -> None:
        target = ORDER_STATUS_FOR_ASSIGNMENT.get(assignment_status)
        if target is None or order.status == target:
            return
        if not order.can_transition_to(target):
            return

        name = _display_name(driver)
        if assignment_status == AssignmentStatus.ENTREGUE:
            note = f"Entregue por {name}. Recebido por: {recipient}"
        else:
            note = f"Em rota com {name}"
        if notes:
            note = f"{note}. {notes}"
        transition_order(
            order, target, note=note, actor=f"driver:{driver.get_username()}", sink=self._sink
        )

    # ------------------------------------------------------------------
    # Admin commands
    # ------------------------------------------------------------------

    @transaction.atomic
    def assign(
        self, order_id: UUID, driver_id: Any, override: bool = False, actor: str = "admin"
    ) -> DeliveryAssignment:
        """Manually (re)assign an order to a driver.

        A ``PENDENTE`` holder is replaced atomically (its row becomes
        ``LIBERADA``); an ``EM_ROTA`` holder requires ``override``.

        Raises:
            DriverNotFound: the target is not an active driver.
            OrderNotFound / OrderNotClaimable: as for ``claim``.
            AssignmentInProgress: ``EM_ROTA`` holder without override.
        """
        driver = _active_driver(driver_id)
        order = self._orders.get_for_update(str(order_id))
        if order is None:
            raise OrderNotFound()
        if order.status not in CLAIMABLE_ORDER_STATUSES:
            raise OrderNotClaimable()

        log = logger.bind(order_id=str(order.id), driver_id=str(driver.pk), actor=actor)
        holder = self._assignments.get_active_for_order(order.id)
        if holder is not None:
            if holder.driver_id == driver.pk:
                return holder
            if holder.status == AssignmentStatus.EM_ROTA and not override:
                log.warning("delivery.reassign_requires_override")
                raise AssignmentInProgress()
            if not self._assignments.release(holder, timezone.now()):
                raise StaleAssignment()
            log.info(
                "delivery.holder_replaced",
                previous_assignment_id=str(holder.id),
                previous_driver_id=str(holder.driver_id),
            )

        try:
            assignment = self._assignments.insert_active(
                order.id, driver.pk, AssignmentSource.ADMIN
            )
        except IntegrityError as exc:
            raise AlreadyAssigned() from exc

        log.info("delivery.assigned", assignment_id=str(assignment.id))
        return assignment

    @transaction.atomic
    def unassign(self, order_id: UUID, actor: str = "admin") -> Optional[DeliveryAssignment]:
        """Release the order's active assignment; ``None`` when there is none."""
        order = self._orders.get_for_update(str(order_id))
        if order is None:
            raise OrderNotFound()
        released = release_active_assignment(order, actor, self._assignments)
        if released is None:
            logger.info("delivery.unassign_noop", order_id=str(order_id))
        return released

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list_for_driver(
        self, driver: Any, include_terminal: bool = False
    ) -> List[DeliveryAssignment]:
        return self._assignments.list_for_driver(driver.pk, include_terminal)

    def get_for_driver(self, assignment_id: UUID, driver: Any) -> DeliveryAssignment:
        assignment = self._assignments.get_by_id(str(assignment_id))
        if assignment is None or assignment.driver_id != driver.pk:
            raise AssignmentNotFound()
        return assignment


def release_active_assignment(
    order: Order,
    actor: str = "system",
    repository: Optional[IAssignmentRepository] = None,
) -> Optional[DeliveryAssignment]:
    """Release *order*'s active assignment, if any (caller holds the lock)."""
    repository = repository or AssignmentDjangoRepository()
    holder = repository.get_active_for_order(order.id)
    if holder is None:
        return None
    if not repository.release(holder, timezone.now()):
        raise StaleAssignment()
    logger.info(
        "delivery.released_with_order",
        order_id=str(order.id),
        order_status=order.status,
        actor=actor,
    )
    return holder


def _active_driver(driver_id: Any):
    user_model = get_user_model()
    try:
        driver = (
            user_model.objects.filter(
                pk=driver_id, is_active=True, groups__name=DRIVER_GROUP
            )
            .distinct()
            .first()
        )
    except (ValueError, TypeError):
        driver = None
    if driver is None:
        raise DriverNotFound()
    return driver


def _display_name(user: Any) -> str:
    return user.get_full_name() or user.get_username()


def build_delivery_service() -> DeliveryService:
    return DeliveryService(
        assignment_repository=AssignmentDjangoRepository(),
        order_repository=OrderDjangoRepository(),
    )
