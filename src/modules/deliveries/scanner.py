"""Driver-side QR scan client.

Used by the driver app to turn a camera read into a claim request.
Duplicate reads of the same code within a short window are dropped
locally to save round-trips; the server-side claim stays the source of
truth.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import requests
import structlog

from modules.deliveries.constants import (
    SCAN_CLIENT_TIMEOUT_SECONDS,
    SCAN_DEDUP_WINDOW_SECONDS,
)
from modules.deliveries.qrcode import parse_qr_payload
from shared.domain.exceptions import UpstreamError, UpstreamTimeout

logger = structlog.get_logger(__name__)

CLAIM_PATH = "/api/v1/deliveries/claim/"


class ScanDeduplicator:
    """Remembers recent payloads and suppresses repeats inside *window*."""

    def __init__(
        self,
        window: float = SCAN_DEDUP_WINDOW_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._window = window
        self._clock = clock
        self._seen: Dict[str, float] = {}

    def should_submit(self, payload: str) -> bool:
        now = self._clock()
        self._seen = {
            key: seen_at
            for key, seen_at in self._seen.items()
            if now - seen_at < self._window
        }
        if payload in self._seen:
            return False
        self._seen[payload] = now
        return True


@dataclass(frozen=True)
class ScanResult:
    accepted: bool
    message: str
    assignment: Optional[Dict[str, Any]] = None
    suppressed: bool = False


class DriverScanClient:
    def __init__(
        self,
        base_url: str,
        access_token: str,
        deduplicator: Optional[ScanDeduplicator] = None,
        timeout: float = SCAN_CLIENT_TIMEOUT_SECONDS,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._access_token = access_token
        self._dedup = deduplicator or ScanDeduplicator()
        self._timeout = timeout
        self._session = session or requests.Session()

    def scan(self, text: str) -> ScanResult:
        """Claim the order encoded in *text*.

        Raises:
            InvalidQrPayload: malformed payload (no request is made).
            UpstreamTimeout: the server did not answer in time.
            UpstreamError: the server could not be reached.
        """
        ref = parse_qr_payload(text)
        payload = ref.payload
        if not self._dedup.should_submit(payload):
            logger.debug("scanner.duplicate_suppressed", code=ref.order_code)
            return ScanResult(
                accepted=False, message="Leitura repetida ignorada.", suppressed=True
            )

        try:
            response = self._session.post(
                f"{self._base_url}{CLAIM_PATH}",
                json={"order_ref": payload},
                headers={"Authorization": f"Bearer {self._access_token}"},
                timeout=self._timeout,
            )
        except requests.Timeout as exc:
            raise UpstreamTimeout() from exc
        except requests.RequestException as exc:
            raise UpstreamError() from exc

        try:
            body = response.json()
        except ValueError:
            body = {}

        if response.ok:
            logger.info("scanner.claimed", code=ref.order_code)
            return ScanResult(
                accepted=True,
                message=body.get("message", "Entrega atribuída com sucesso"),
                assignment=body.get("assignment"),
            )

        message = body.get("detail") or "Não foi possível atribuir a entrega."
        logger.info(
            "scanner.claim_rejected",
            code=ref.order_code,
            status_code=response.status_code,
            error_code=body.get("code"),
        )
        return ScanResult(accepted=False, message=message)
