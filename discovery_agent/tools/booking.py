"""
Client for the external calendar scheduling service.

One ``schedule`` call sends exactly one POST to ``/schedule``. The request
carries a deterministic idempotency key (header and body) so the service
can reject duplicates, and the client also remembers keys it has already
booked in this process so a repeated identical request never produces a
second event.

Results are typed values, never exceptions:
- ``BookingSuccess`` for a created event,
- ``BookingFailure(error="conflict")`` for HTTP 409 or a repeat,
- ``BookingFailure(error="network_error")`` when the service is unreachable,
- ``BookingFailure(error=<server message>)`` for any other non-2xx.
"""

import hashlib
import logging
from typing import Any, Optional

import httpx

from discovery_agent.config import settings
from discovery_agent.schemas.booking_schema import (
    BookingFailure,
    BookingRequest,
    BookingResult,
    BookingSuccess,
)
from discovery_agent.utils import KeyedLocks

logger = logging.getLogger(__name__)

CONFLICT = "conflict"
NETWORK_ERROR = "network_error"


def build_idempotency_key(room_id: str, agent_id: str, email: str, slot: str) -> str:
    """Deterministic key for one (room, agent, email, slot) booking.

    Examples:
        >>> build_idempotency_key("r", "a", "A@B.com", "Wed 5pm") == \\
        ...     build_idempotency_key("r", "a", "a@b.com", " Wed 5pm ")
        True
    """
    raw = "|".join([room_id, agent_id, email.strip().lower(), slot.strip()])
    return "visit-" + hashlib.sha256(raw.encode("utf-8")).hexdigest()[:32]


def _redact(email: str) -> str:
    local, _, domain = email.partition("@")
    if not domain:
        return "***"
    return f"{local[:1]}***@{domain}"


class BookingClient:
    """Books visits through the scheduling service's HTTP API."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        room_id: Optional[str] = None,
        agent_id: Optional[str] = None,
        timeout_sec: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        cfg = settings.scheduler
        self.base_url = (base_url or cfg.base_url).rstrip("/")
        self.room_id = room_id or cfg.room_id
        self.agent_id = agent_id or cfg.agent_id
        self.timeout_sec = timeout_sec or cfg.timeout_sec
        self._transport = transport
        self._key_locks = KeyedLocks()
        self._booked_keys: set[str] = set()

    def build_request(
        self,
        email: str,
        key: str,
        label: Optional[str] = None,
        start_iso: Optional[str] = None,
        location: Optional[str] = None,
    ) -> BookingRequest:
        cfg = settings.scheduler
        return BookingRequest(
            email=email,
            label=label,
            start_iso=start_iso,
            tz=settings.business.timezone,
            room_id=self.room_id,
            agent_id=self.agent_id,
            duration_min=cfg.duration_min,
            create_meet=cfg.create_meet,
            summary=cfg.summary,
            location=location or settings.business.default_location,
            external_key=key,
        )

    async def schedule(
        self,
        email: str,
        label: Optional[str] = None,
        start_iso: Optional[str] = None,
        location: Optional[str] = None,
    ) -> BookingResult:
        """Book a visit for ``email`` at ``start_iso`` (or ``label``)."""
        slot = start_iso or label
        if not email or not slot:
            return BookingFailure(error="missing email or slot")

        key = build_idempotency_key(self.room_id, self.agent_id, email, slot)
        async with self._key_locks.hold(key):
            if key in self._booked_keys:
                logger.warning("Duplicate booking prevented for %s at %s", _redact(email), slot)
                return BookingFailure(
                    error=CONFLICT,
                    status_code=409,
                    data={"ok": False, "error": "duplicate", "idempotencyKey": key},
                )

            request = self.build_request(email, key, label, start_iso, location)
            result = await self._post(request, key)
            if result.ok:
                self._booked_keys.add(key)
            return result

    async def _post(self, request: BookingRequest, key: str) -> BookingResult:
        payload = request.model_dump(by_alias=True, exclude_none=True)
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.timeout_sec, connect=5.0),
                transport=self._transport,
            ) as client:
                response = await client.post(
                    "/schedule", json=payload, headers={"Idempotency-Key": key}
                )
        except httpx.TransportError as exc:
            logger.error("Scheduling service unreachable: %s", exc)
            return BookingFailure(error=NETWORK_ERROR)

        data = _json_or_none(response)
        status = response.status_code

        if status == 409:
            logger.info("Booking conflict for %s (%s)", _redact(request.email), _error_text(data, status))
            return BookingFailure(error=CONFLICT, status_code=status, data=data)

        if not response.is_success:
            error = _error_text(data, status)
            logger.error("Booking failed with HTTP %d: %s", status, error)
            return BookingFailure(error=error, status_code=status, data=data)

        if isinstance(data, dict) and data.get("ok") is False:
            error = _error_text(data, status)
            logger.error("Booking rejected by service: %s", error)
            return BookingFailure(error=error, status_code=status, data=data)

        success = BookingSuccess.model_validate(data if isinstance(data, dict) else {})
        if success.start_iso is None and request.start_iso:
            success.start_iso = request.start_iso
        logger.info("Booked visit %s for %s", success.event_id, _redact(request.email))
        return success


def _json_or_none(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None


def _error_text(data: Any, status: int) -> str:
    if isinstance(data, dict):
        for field_name in ("error", "message"):
            value = data.get(field_name)
            if value:
                return value if isinstance(value, str) else str(value)
    return f"HTTP {status}"
