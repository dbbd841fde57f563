"""Route Sequencer.

``ManualRouteSequencer`` orders a driver's active assignments: the saved
order first (ids that are no longer active are skipped), then any new
assignment by creation time.  The driver reorders with up/down moves or
by sending the whole order.

``OptimizingRouteSequencer`` wraps the manual sequencer with the same
interface and adds ``auto_organize``, which asks a ``RouteOptimizer``
for a visiting order.  Optimization fails open: on any upstream error,
or an answer that matches none of the stops, the manual order is kept.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence

import structlog
from django.db import transaction

from modules.deliveries.repositories.django_repository import (
    AssignmentDjangoRepository,
)
from modules.routing.constants import MIN_STOPS_TO_OPTIMIZE, MoveDirection
from modules.routing.exceptions import InvalidRouteOrder, StopNotInRoute
from modules.routing.optimizer import RouteStop, build_route_optimizer
from modules.routing.repositories.django_repository import RoutePlanDjangoRepository
from shared.domain.exceptions import UpstreamError

if TYPE_CHECKING:
    from modules.deliveries.models import DeliveryAssignment
    from modules.deliveries.repositories.interfaces import IAssignmentRepository
    from modules.routing.optimizer import RouteOptimizer
    from modules.routing.repositories.interfaces import IRoutePlanRepository
    from modules.shipping.calculator import Coordinates

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class OptimizationResult:
    stops: List["DeliveryAssignment"]
    applied: bool
    reason: str = ""


class ManualRouteSequencer:
    def __init__(
        self,
        assignment_repository: IAssignmentRepository,
        plan_repository: IRoutePlanRepository,
    ) -> None:
        self._assignments = assignment_repository
        self._plans = plan_repository

    def sequence(self, driver: Any) -> List[DeliveryAssignment]:
        active = self._assignments.list_for_driver(driver.pk)
        by_id = {str(assignment.id): assignment for assignment in active}

        ordered: List[DeliveryAssignment] = []
        for assignment_id in self._plans.saved_order(driver.pk):
            assignment = by_id.pop(assignment_id, None)
            if assignment is not None:
                ordered.append(assignment)
        # ``active`` is already in creation order.
        ordered.extend(a for a in active if str(a.id) in by_id)
        return ordered

    @transaction.atomic
    def move(self, driver: Any, assignment_id: Any, direction: str) -> List[DeliveryAssignment]:
        """Swap a stop with its neighbour; moving past either end is a no-op.

        Raises:
            StopNotInRoute: the assignment is not one of the driver's
                active stops.
        """
        stops = self.sequence(driver)
        ids = [str(stop.id) for stop in stops]
        try:
            index = ids.index(str(assignment_id))
        except ValueError as exc:
            raise StopNotInRoute() from exc

        target = index - 1 if direction == MoveDirection.UP else index + 1
        if 0 <= target < len(stops):
            stops[index], stops[target] = stops[target], stops[index]
            self._plans.save_order(driver.pk, [str(stop.id) for stop in stops])
        return stops

    @transaction.atomic
    def save_order(self, driver: Any, assignment_ids: Sequence[Any]) -> List[DeliveryAssignment]:
        """Persist an explicit order.

        Every id must be one of the driver's active assignments, at most
        once.  Active stops left out keep their relative order at the end.

        Raises:
            InvalidRouteOrder: unknown or repeated ids.
        """
        requested = [str(value) for value in assignment_ids]
        if len(requested) != len(set(requested)):
            raise InvalidRouteOrder("A ordem informada repete entregas.")

        active = self.sequence(driver)
        known = {str(stop.id) for stop in active}
        unknown = [value for value in requested if value not in known]
        if unknown:
            logger.info(
                "route.save_rejected", driver_id=str(driver.pk), unknown=len(unknown)
            )
            raise InvalidRouteOrder()

        remainder = [str(stop.id) for stop in active if str(stop.id) not in requested]
        self._plans.save_order(driver.pk, requested + remainder)
        return self.sequence(driver)


class OptimizingRouteSequencer:
    """Manual sequencer plus best-effort ``auto_organize``."""

    def __init__(self, manual: ManualRouteSequencer, optimizer: RouteOptimizer) -> None:
        self._manual = manual
        self._optimizer = optimizer

    def sequence(self, driver: Any) -> List[DeliveryAssignment]:
        return self._manual.sequence(driver)

    def move(self, driver: Any, assignment_id: Any, direction: str) -> List[DeliveryAssignment]:
        return self._manual.move(driver, assignment_id, direction)

    def save_order(self, driver: Any, assignment_ids: Sequence[Any]) -> List[DeliveryAssignment]:
        return self._manual.save_order(driver, assignment_ids)

    def auto_organize(
        self, driver: Any, origin: Optional[Coordinates] = None
    ) -> OptimizationResult:
        current = self._manual.sequence(driver)
        log = logger.bind(driver_id=str(driver.pk), stops=len(current))
        if len(current) < MIN_STOPS_TO_OPTIMIZE:
            return OptimizationResult(stops=current, applied=False, reason="too_few_stops")

        stops = [_route_stop(assignment) for assignment in current]
        try:
            codes = self._optimizer.optimize(stops, origin)
        except UpstreamError as exc:
            log.warning("route.optimize_failed", error_code=exc.code)
            return OptimizationResult(stops=current, applied=False, reason=exc.code)

        merged = merge_by_code(current, codes)
        if merged is None:
            log.warning("route.optimize_unmatched")
            return OptimizationResult(stops=current, applied=False, reason="unmatched")

        saved = self._manual.save_order(driver, [str(stop.id) for stop in merged])
        log.info("route.optimized", has_origin=origin is not None)
        return OptimizationResult(stops=saved, applied=True)


def merge_by_code(
    current: Sequence[DeliveryAssignment], codes: Sequence[str]
) -> Optional[List[DeliveryAssignment]]:
    """Apply an optimizer's code permutation to *current*.

    Unknown codes are ignored and duplicates collapse to their first
    position; stops the optimizer left out are appended in their current
    order.  ``None`` when no code matched a stop.
    """
    by_code: Dict[str, DeliveryAssignment] = {
        stop.order.code: stop for stop in current
    }
    merged: List[DeliveryAssignment] = []
    seen = set()
    for code in codes:
        normalized = str(code).strip().upper()
        stop = by_code.get(normalized)
        if stop is None or normalized in seen:
            continue
        seen.add(normalized)
        merged.append(stop)

    if not merged:
        return None
    merged.extend(stop for stop in current if stop.order.code not in seen)
    return merged


def _route_stop(assignment: DeliveryAssignment) -> RouteStop:
    order = assignment.order
    address = order.address
    return RouteStop(
        assignment_id=str(assignment.id),
        order_code=order.code,
        street=address.street,
        number=address.number,
        complement=address.complement,
        neighborhood=address.neighborhood,
        city=address.city,
        state=address.state,
        zip_code=address.zip_code,
    )


def build_route_sequencer() -> OptimizingRouteSequencer:
    manual = ManualRouteSequencer(
        assignment_repository=AssignmentDjangoRepository(),
        plan_repository=RoutePlanDjangoRepository(),
    )
    return OptimizingRouteSequencer(manual, build_route_optimizer())
