"""Postal-code resolution and geocoding (external collaborators).

``ViaCepNominatimGeocoder`` resolves a Brazilian CEP to city/state via
ViaCEP and to coordinates via Nominatim (street address first, postal
code search as fallback).  Every call has a bounded timeout; network
failures surface as ``GeocoderUnavailable`` / ``UpstreamTimeout`` so the
quote fails closed.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests
import structlog
from django.conf import settings

from modules.core.middleware import outbound_headers
from modules.shipping.calculator import Coordinates
from modules.shipping.exceptions import (
    GeocoderUnavailable,
    InvalidPostalCode,
    PostalCodeNotFound,
)
from shared.domain.exceptions import UpstreamTimeout

logger = structlog.get_logger(__name__)

_NON_DIGITS = re.compile(r"\D")


@dataclass(frozen=True)
class PostalAddress:
    postal_code: str
    street: str
    neighborhood: str
    city: str
    state: str


def normalize_postal_code(raw: str) -> str:
    """Digits-only CEP.

    Raises:
        InvalidPostalCode: not exactly eight digits.
    """
    digits = _NON_DIGITS.sub("", raw or "")
    if len(digits) != 8:
        raise InvalidPostalCode()
    return digits


class IGeocoder(ABC):
    """Geocoding port used by shipping and route optimization."""

    @abstractmethod
    def lookup(self, postal_code: str) -> PostalAddress:
        """Resolve a CEP to its street/city/state."""

    @abstractmethod
    def coordinates_for(self, address: PostalAddress) -> Coordinates:
        """Resolve a postal address to coordinates."""

    @abstractmethod
    def geocode_text(self, query: str) -> Optional[Coordinates]:
        """Free-text geocoding; ``None`` when nothing matches."""


class ViaCepNominatimGeocoder(IGeocoder):
    def __init__(
        self,
        postal_url: str,
        search_url: str,
        user_agent: str,
        timeout: float,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._postal_url = postal_url.rstrip("/")
        self._search_url = search_url
        self._user_agent = user_agent
        self._timeout = timeout
        self._session = session or requests.Session()

    @classmethod
    def from_settings(cls) -> "ViaCepNominatimGeocoder":
        return cls(
            postal_url=settings.GEOCODER_POSTAL_URL,
            search_url=settings.GEOCODER_SEARCH_URL,
            user_agent=settings.GEOCODER_USER_AGENT,
            timeout=settings.GEOCODER_TIMEOUT_SECONDS,
        )

    # ------------------------------------------------------------------
    # IGeocoder
    # ------------------------------------------------------------------

    def lookup(self, postal_code: str) -> PostalAddress:
        cep = normalize_postal_code(postal_code)
        data = self._get_json(f"{self._postal_url}/{cep}/json/")
        if not isinstance(data, dict) or data.get("erro"):
            logger.info("geocoder.postal_code_not_found", postal_code=cep)
            raise PostalCodeNotFound()
        return PostalAddress(
            postal_code=cep,
            street=str(data.get("logradouro") or "").strip(),
            neighborhood=str(data.get("bairro") or "").strip(),
            city=str(data.get("localidade") or "").strip(),
            state=str(data.get("uf") or "").strip().upper(),
        )

    def coordinates_for(self, address: PostalAddress) -> Coordinates:
        if address.street:
            query = f"{address.street}, {address.city}, {address.state}, Brasil"
            found = self.geocode_text(query)
            if found:
                return found
        results = self._get_json(
            self._search_url,
            params={
                "format": "json",
                "postalcode": address.postal_code,
                "country": "Brazil",
                "limit": 1,
            },
        )
        found = _first_coordinates(results)
        if found is None:
            raise PostalCodeNotFound()
        return found

    def geocode_text(self, query: str) -> Optional[Coordinates]:
        results = self._get_json(
            self._search_url, params={"format": "json", "q": query, "limit": 1}
        )
        return _first_coordinates(results)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _get_json(self, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        headers = {"User-Agent": self._user_agent, **outbound_headers()}
        try:
            response = self._session.get(
                url, params=params, headers=headers, timeout=self._timeout
            )
            response.raise_for_status()
            return response.json()
        except requests.Timeout as exc:
            logger.warning("geocoder.timeout", url=url)
            raise UpstreamTimeout(
                "Serviço de localização não respondeu. Tente novamente."
            ) from exc
        except (requests.RequestException, ValueError) as exc:
            logger.warning("geocoder.unavailable", url=url, error=str(exc))
            raise GeocoderUnavailable() from exc


def _first_coordinates(results: Any) -> Optional[Coordinates]:
    if not isinstance(results, list) or not results:
        return None
    first = results[0]
    try:
        return Coordinates(lat=float(first["lat"]), lng=float(first["lon"]))
    except (KeyError, TypeError, ValueError):
        return None
