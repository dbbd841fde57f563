"""Order service layer (Use Cases).

Orchestrates checkout, admin status management, cancellation and the
public tracking look-up.  Every write is atomic; the service defines the
unit-of-work boundary.

Business rules enforced:
- Prices come from the catalog snapshot and the authoritative shipping
  quote; nothing price-related is read from the client.
- Shipping or payment-gateway failure blocks checkout (no order, no
  charge).
- Status transitions follow the forward-only state machine and each one
  appends exactly one status log entry.
- Reaching a terminal status releases the active delivery assignment.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable, Optional
from uuid import UUID

import structlog
from django.db import IntegrityError, transaction

from modules.core.outbox import stage_events
from modules.notifications.sink import StatusNotificationSink
from modules.orders.constants import (
    ONLINE_PAYMENT_METHODS,
    PAYMENT_LOG_NOTES,
    PAYMENT_TRANSITIONS,
    OrderStatus,
)
from modules.orders.dtos import CheckoutDTO, CheckoutResultDTO, TrackingQueryDTO
from modules.orders.events import OrderCreated
from modules.orders.exceptions import (
    InsufficientStock,
    InvalidPaymentStatus,
    OnlinePaymentManagedByGateway,
    OrderNotFound,
    ProductUnavailable,
    TrackingIdentityRequired,
)
from modules.orders.state_machine import transition_order
from modules.payments.events import PaymentStatusChanged
from modules.payments.gateway import PaymentLine, PaymentRequest
from shared.domain.money import ZERO, to_money

if TYPE_CHECKING:
    from django.db.models import QuerySet

    from modules.catalog.repositories.interfaces import ICatalog
    from modules.orders.models import Order
    from modules.orders.repositories.interfaces import IOrderRepository
    from modules.payments.gateway import PaymentGateway
    from modules.shipping.services import ShippingService

logger = structlog.get_logger(__name__)

AssignmentReleaser = Callable[["Order", str], object]


class OrderService:
    """Application service for Order use-cases.

    Receives repositories and collaborators via constructor injection (DIP).
    ``assignment_releaser`` frees the order's active delivery assignment
    when the order reaches a terminal status.
    """

    def __init__(
        self,
        order_repository: IOrderRepository,
        catalog: ICatalog,
        shipping_service: ShippingService,
        payment_gateway: PaymentGateway,
        sink: Optional[StatusNotificationSink] = None,
        assignment_releaser: Optional[AssignmentReleaser] = None,
    ) -> None:
        self._order_repo = order_repository
        self._catalog = catalog
        self._shipping = shipping_service
        self._gateway = payment_gateway
        self._sink = sink or StatusNotificationSink()
        self._release_assignment = assignment_releaser

    # ------------------------------------------------------------------
    # Checkout
    # ------------------------------------------------------------------

    def checkout(self, dto: CheckoutDTO) -> CheckoutResultDTO:
        """Create an order from a cart.

        Steps:
        1. Idempotency-key replay returns the original order.
        2. Snapshot every product from the catalog; compute the subtotal.
        3. Authoritative shipping quote for the delivery postal code.
        4. Persist order, address, items, the ``RECEBIDO`` log entry and
           ``OrderCreated``; open the gateway payment for online methods.
           Steps 4's writes and the gateway call share one transaction.

        Raises:
            ProductUnavailable: unknown or inactive product.
            InsufficientStock: catalog stock below the requested quantity.
            ShippingRejected: quote rejected (out of range, no rate, ...).
            UpstreamError: geocoder or payment gateway failure.
        """
        log = logger.bind(
            payment_method=dto.payment_method, item_count=len(dto.items)
        )
        log.info("order.checkout_started")

        if dto.idempotency_key:
            existing = self._order_repo.get_by_idempotency_key(dto.idempotency_key)
            if existing:
                log.info("order.idempotency_hit", order_id=str(existing.id))
                return _result_for(existing, replayed=True)

        lines = self._snapshot_lines(dto)
        subtotal = to_money(
            sum((line["unit_price"] * line["quantity"] for line in lines), ZERO)
        )
        quote = self._shipping.quote(dto.address.zip_code, subtotal)

        try:
            order = self._persist_checkout(dto, lines, quote)
        except IntegrityError:
            if not dto.idempotency_key:
                raise
            existing = self._order_repo.get_by_idempotency_key(dto.idempotency_key)
            if existing is None:
                raise
            log.info("order.idempotency_race_resolved", order_id=str(existing.id))
            return _result_for(existing, replayed=True)

        log.info(
            "order.created",
            order_id=str(order.id),
            code=order.code,
            subtotal=str(order.subtotal),
            shipping_price=str(order.shipping_price),
            total=str(order.total),
        )
        return _result_for(order)

    @transaction.atomic
    def _persist_checkout(self, dto: CheckoutDTO, lines, quote) -> Order:
        order = self._order_repo.create(
            {
                "customer": dto.customer.model_dump(),
                "address": dto.address.model_dump(),
                "items": lines,
                "shipping_price": quote.price,
                "distance_km": quote.distance_km,
                "free_shipping": quote.free_shipping,
                "payment_method": dto.payment_method,
                "notes": dto.notes,
                "idempotency_key": dto.idempotency_key,
            }
        )
        self._sink.record(
            order, OrderStatus.RECEBIDO, note="Pedido criado", actor="system"
        )
        stage_events(
            [
                OrderCreated(
                    aggregate_id=order.id,
                    code=order.code,
                    total=str(order.total),
                    payment_method=order.payment_method,
                )
            ]
        )

        if order.payment_method in ONLINE_PAYMENT_METHODS:
            intent = self._gateway.create_payment(_payment_request(order, lines))
            order.payment_correlation_id = intent.correlation_id
            order.payment_redirect_url = intent.redirect_url
            self._order_repo.update_fields(
                order, ["payment_correlation_id", "payment_redirect_url"]
            )
        return order

    def _snapshot_lines(self, dto: CheckoutDTO) -> list[dict]:
        snapshots = self._catalog.snapshot_many(item.product_id for item in dto.items)
        lines = []
        for item in dto.items:
            product = snapshots.get(item.product_id)
            if product is None or not product.active:
                raise ProductUnavailable(
                    f"Produto {item.product_id} indisponível."
                )
            if product.stock_quantity < item.quantity:
                raise InsufficientStock(
                    f"{product.name}: solicitado {item.quantity}, "
                    f"disponível {product.stock_quantity}."
                )
            lines.append(
                {
                    "product_id": product.id,
                    "product_name": product.name,
                    "product_sku": product.sku,
                    "quantity": item.quantity,
                    "unit_price": to_money(product.price),
                }
            )
        return lines

    # ------------------------------------------------------------------
    # Admin commands
    # ------------------------------------------------------------------

    @transaction.atomic
    def update_status(
        self, order_id: UUID, new_status: str, notes: str = "", actor: str = "admin"
    ) -> Order:
        """Transition an order through the state machine.

        Raises:
            OrderNotFound: order does not exist.
            InvalidOrderStatus: transition is not allowed.
            StaleOrderStatus: another actor changed the status first.
        """
        order = self._lock(order_id)
        transition_order(order, new_status, note=notes, actor=actor, sink=self._sink)
        if order.is_terminal:
            self._release(order, actor)
        return self.get_order(str(order_id))

    @transaction.atomic
    def cancel_order(self, order_id: UUID, notes: str = "", actor: str = "admin") -> Order:
        """Cancel an order and release its delivery assignment.

        Raises:
            OrderNotFound: order does not exist.
            InvalidOrderStatus: the order is already terminal.
        """
        order = self._lock(order_id)
        transition_order(
            order,
            OrderStatus.CANCELADO,
            note=notes or "Pedido cancelado",
            actor=actor,
            sink=self._sink,
        )
        self._release(order, actor)
        logger.info("order.cancelled", order_id=str(order_id), actor=actor)
        return self.get_order(str(order_id))

    @transaction.atomic
    def update_notes(self, order_id: UUID, notes: str) -> Order:
        """Last-writer-wins edit of the internal notes."""
        order = self._lock(order_id)
        order.notes = notes
        self._order_repo.update_fields(order, ["notes"])
        logger.info("order.notes_updated", order_id=str(order_id))
        return self.get_order(str(order_id))

    @transaction.atomic
    def set_payment_status(
        self, order_id: UUID, new_status: str, actor: str = "admin"
    ) -> Order:
        """Record payment collected (or refunded) at the door.

        Only offline payment methods; online payments are reconciled
        from gateway webhooks exclusively.

        Raises:
            OnlinePaymentManagedByGateway: the order is paid online.
            InvalidPaymentStatus: not allowed by the payment table.
        """
        order = self._lock(order_id)
        if order.payment_method in ONLINE_PAYMENT_METHODS:
            raise OnlinePaymentManagedByGateway()

        old_status = order.payment_status
        if new_status not in PAYMENT_TRANSITIONS.get(old_status, set()):
            logger.warning(
                "order.invalid_payment_transition",
                order_id=str(order_id),
                current=old_status,
                requested=new_status,
            )
            raise InvalidPaymentStatus(
                f"Não é possível mudar o pagamento de {old_status} para {new_status}."
            )

        order.payment_status = new_status
        self._order_repo.update_fields(order, ["payment_status"])
        self._sink.record(
            order,
            order.status,
            note=PAYMENT_LOG_NOTES[new_status],
            actor=actor,
            previous_status=order.status,
        )
        stage_events(
            [
                PaymentStatusChanged(
                    aggregate_id=order.id,
                    code=order.code,
                    old_status=old_status,
                    new_status=new_status,
                    revision=order.payment_revision,
                    correlation_id="",
                )
            ]
        )
        logger.info(
            "order.payment_status_set",
            order_id=str(order_id),
            old_status=old_status,
            new_status=new_status,
            actor=actor,
        )
        return self.get_order(str(order_id))

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_order(self, order_id: str) -> Order:
        """Retrieve a single order by ID.

        Raises:
            OrderNotFound: if the order does not exist.
        """
        order = self._order_repo.get_by_id(order_id)
        if not order:
            raise OrderNotFound()
        return order

    def get_by_code(self, code: str) -> Order:
        order = self._order_repo.get_by_code(code)
        if not order:
            raise OrderNotFound()
        return order

    def list_orders(self) -> QuerySet:
        """Base queryset for the admin list (filtered by the view)."""
        return self._order_repo.queryset()

    def track(self, query: TrackingQueryDTO) -> Order:
        """Public tracking look-up.

        At least one of e-mail/phone is required and must match the
        order's customer; any mismatch reads as "not found" so codes
        cannot be probed.
        """
        email = (query.email or "").strip().lower()
        phone = query.phone_digits
        if not email and not phone:
            raise TrackingIdentityRequired()

        order = self._order_repo.get_by_code(query.code)
        if order is None:
            raise OrderNotFound()

        matches = (email and order.customer_email.strip().lower() == email) or (
            phone and _digits(order.customer_phone) == phone
        )
        if not matches:
            logger.info("order.tracking_identity_mismatch", code=query.code)
            raise OrderNotFound()
        return order

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _lock(self, order_id: UUID) -> Order:
        order = self._order_repo.get_for_update(str(order_id))
        if not order:
            raise OrderNotFound()
        return order

    def _release(self, order: Order, actor: str) -> None:
        if self._release_assignment is not None:
            self._release_assignment(order, actor)


def _digits(value: str) -> str:
    return "".join(ch for ch in value or "" if ch.isdigit())


def _result_for(order: Order, replayed: bool = False) -> CheckoutResultDTO:
    return CheckoutResultDTO(
        order_id=order.id,
        order_code=order.code,
        payment_redirect_url=order.payment_redirect_url or None,
        replayed=replayed,
    )


def _payment_request(order: Order, lines: list[dict]) -> PaymentRequest:
    payment_lines = [
        PaymentLine(
            title=line["product_name"],
            quantity=line["quantity"],
            unit_price=line["unit_price"],
        )
        for line in lines
    ]
    if order.shipping_price > 0:
        payment_lines.append(
            PaymentLine(title="Frete", quantity=1, unit_price=order.shipping_price)
        )
    return PaymentRequest(
        order_id=order.id,
        order_code=order.code,
        amount=order.total,
        payer_name=order.customer_name,
        payer_email=order.customer_email,
        lines=payment_lines,
    )


def build_order_service() -> OrderService:
    from modules.catalog.repositories.django_repository import ProductCatalogRepository
    from modules.deliveries.services import release_active_assignment
    from modules.orders.repositories.django_repository import OrderDjangoRepository
    from modules.payments.gateway import build_payment_gateway
    from modules.shipping.services import build_shipping_service

    return OrderService(
        order_repository=OrderDjangoRepository(),
        catalog=ProductCatalogRepository(),
        shipping_service=build_shipping_service(),
        payment_gateway=build_payment_gateway(),
        assignment_releaser=release_active_assignment,
    )
