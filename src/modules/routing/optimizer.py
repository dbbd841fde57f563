"""Route optimizers (best-effort collaborators).

An optimizer receives the driver's stops and an optional origin and
answers with order codes in visiting order.  The answer is untrusted:
it may omit, duplicate or invent codes, and the sequencer merges it
defensively.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence

import requests
import structlog
from django.conf import settings

from modules.core.middleware import outbound_headers
from modules.routing.exceptions import RouteOptimizerUnavailable
from modules.shipping.calculator import Coordinates, haversine_km
from modules.shipping.geocoding import IGeocoder, ViaCepNominatimGeocoder
from shared.domain.exceptions import UpstreamError, UpstreamTimeout

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class RouteStop:
    assignment_id: str
    order_code: str
    street: str
    number: str
    complement: str
    neighborhood: str
    city: str
    state: str
    zip_code: str

    @property
    def address_query(self) -> str:
        complement = f", {self.complement}" if self.complement else ""
        return (
            f"{self.street}, {self.number}{complement} - {self.neighborhood}, "
            f"{self.city}/{self.state}, Brasil"
        )

    def as_payload(self) -> dict:
        return {
            "code": self.order_code,
            "address": self.address_query,
            "city": self.city,
            "state": self.state,
            "zip_code": self.zip_code,
        }


class RouteOptimizer(ABC):
    @abstractmethod
    def optimize(
        self, stops: Sequence[RouteStop], origin: Optional[Coordinates] = None
    ) -> List[str]:
        """Order codes in visiting order.

        Raises:
            UpstreamError: the optimizer could not produce an answer.
        """


class NearestNeighbourOptimizer(RouteOptimizer):
    """Greedy nearest-neighbour over geocoded stops.

    Starts from the stop closest to *origin* (or the first stop when no
    origin is known).  Stops that cannot be geocoded keep their relative
    order at the end.
    """

    def __init__(self, geocoder: IGeocoder) -> None:
        self._geocoder = geocoder

    def optimize(
        self, stops: Sequence[RouteStop], origin: Optional[Coordinates] = None
    ) -> List[str]:
        located: list[tuple[RouteStop, Coordinates]] = []
        unlocated: list[RouteStop] = []
        for stop in stops:
            coordinates = self._locate(stop)
            if coordinates is None:
                unlocated.append(stop)
            else:
                located.append((stop, coordinates))

        if len(located) < 2:
            return [stop.order_code for stop in stops]

        remaining = list(located)
        if origin is not None:
            current = min(remaining, key=lambda item: haversine_km(origin, item[1]))
        else:
            current = remaining[0]
        remaining.remove(current)
        ordered = [current]

        while remaining:
            position = current[1]
            current = min(remaining, key=lambda item: haversine_km(position, item[1]))
            remaining.remove(current)
            ordered.append(current)

        return [stop.order_code for stop, _ in ordered] + [
            stop.order_code for stop in unlocated
        ]

    def _locate(self, stop: RouteStop) -> Optional[Coordinates]:
        try:
            return self._geocoder.geocode_text(stop.address_query)
        except UpstreamError:
            logger.info("route.stop_not_geocoded", code=stop.order_code)
            return None


class HttpRouteOptimizer(RouteOptimizer):
    """External optimization service.

    Request: ``{"stops": [{"code", "address", ...}], "origin": {"lat", "lng"}}``.
    Response: ``{"stops": [{"code": ...}, ...]}`` or ``{"codes": [...]}``.
    """

    def __init__(
        self,
        url: str,
        timeout: float,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._url = url
        self._timeout = timeout
        self._session = session or requests.Session()

    def optimize(
        self, stops: Sequence[RouteStop], origin: Optional[Coordinates] = None
    ) -> List[str]:
        body: dict[str, Any] = {"stops": [stop.as_payload() for stop in stops]}
        if origin is not None:
            body["origin"] = {"lat": origin.lat, "lng": origin.lng}

        try:
            response = self._session.post(
                self._url, json=body, headers=outbound_headers(), timeout=self._timeout
            )
            response.raise_for_status()
            data = response.json()
        except requests.Timeout as exc:
            raise UpstreamTimeout() from exc
        except (requests.RequestException, ValueError) as exc:
            raise RouteOptimizerUnavailable() from exc

        return _codes_from(data)


def _codes_from(data: Any) -> List[str]:
    if not isinstance(data, dict):
        raise RouteOptimizerUnavailable()
    items = data.get("codes", data.get("stops"))
    if not isinstance(items, list):
        raise RouteOptimizerUnavailable()

    codes = []
    for item in items:
        code = item.get("code") if isinstance(item, dict) else item
        if isinstance(code, str) and code.strip():
            codes.append(code.strip().upper())
    return codes


def build_route_optimizer() -> RouteOptimizer:
    if settings.ROUTE_OPTIMIZER_URL:
        return HttpRouteOptimizer(
            url=settings.ROUTE_OPTIMIZER_URL,
            timeout=settings.ROUTE_OPTIMIZER_TIMEOUT_SECONDS,
        )
    return NearestNeighbourOptimizer(ViaCepNominatimGeocoder.from_settings())
