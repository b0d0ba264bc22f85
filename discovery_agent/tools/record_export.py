"""Send the user's comprehensive record to the scheduling service's email endpoint."""

import logging
from typing import Optional

import httpx

from discovery_agent.config import settings
from discovery_agent.schemas.discovery_schema import ComprehensiveRecord

logger = logging.getLogger(__name__)


class RecordExporter:
    """Fire-and-forget delivery of a record summary. Never raises."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout_sec: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = (base_url or settings.scheduler.base_url).rstrip("/")
        self.timeout_sec = timeout_sec or settings.scheduler.timeout_sec
        self._transport = transport

    async def send(self, to_email: str, record: ComprehensiveRecord) -> bool:
        payload = {
            "toEmail": to_email,
            "comprehensiveRecord": record.model_dump(mode="json"),
        }
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.timeout_sec, connect=5.0),
                transport=self._transport,
            ) as client:
                response = await client.post("/email/comprehensive-records", json=payload)
            data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("Record export failed: %s", exc)
            return False

        if response.is_success and isinstance(data, dict) and data.get("ok"):
            logger.info("Comprehensive record sent to user email")
            return True
        logger.warning("Record export rejected (HTTP %d): %s", response.status_code, data)
        return False
