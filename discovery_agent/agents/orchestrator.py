"""
Discovery orchestrator: the single entry point for a conversation turn.

``process_message`` takes one inbound user message and returns the reply
plus its metadata. Turns for the same user are serialized; different
users run concurrently. No exception escapes: stage handlers fall back to
stage-specific text, and anything that still goes wrong here produces
the opening greeting.

Usage:
    orchestrator = DiscoveryOrchestrator.from_settings()
    response = await orchestrator.process_message("user-1", "Hello")
    print(response.text, response.metadata.to_wire())
"""

import logging
import random
from typing import Any, Optional

import httpx

from discovery_agent.agents.response_generator import ResponseGenerator
from discovery_agent.agents.stage_handlers import DiscoveryStageHandlers
from discovery_agent.agents.visit_scheduler import VisitScheduler
from discovery_agent.conversation.classifier import UtteranceClassifier
from discovery_agent.conversation.extractors import FactExtractor
from discovery_agent.conversation.record_store import RecordStore, RecordStoreError
from discovery_agent.logging_context import user_context
from discovery_agent.prompts.system_prompts import FALLBACK_GREETING
from discovery_agent.schemas.discovery_schema import (
    QUESTION_STAGES,
    DiscoveryResponse,
    DiscoveryStage,
    ResponseMetadata,
    StageReply,
)
from discovery_agent.tools.booking import BookingClient
from discovery_agent.tools.llm_client import LLMClient
from discovery_agent.tools.record_export import RecordExporter

logger = logging.getLogger(__name__)


class DiscoveryOrchestrator:
    """Routes each message to the user's current stage and records the reply."""

    def __init__(
        self,
        store: RecordStore,
        llm: LLMClient,
        booking: BookingClient,
        exporter: Optional[RecordExporter] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.store = store
        responder = ResponseGenerator(llm, rng=rng)
        extractor = FactExtractor(llm)
        self.visit_scheduler = VisitScheduler(store, extractor, responder, booking, exporter)
        self.handlers = DiscoveryStageHandlers(
            store=store,
            classifier=UtteranceClassifier(llm),
            extractor=extractor,
            responder=responder,
            visit_scheduler=self.visit_scheduler,
        )

    @classmethod
    def from_settings(
        cls, transport: Optional[httpx.AsyncBaseTransport] = None
    ) -> "DiscoveryOrchestrator":
        """Build an orchestrator wired to the configured model and scheduler."""
        return cls(
            store=RecordStore(),
            llm=LLMClient(),
            booking=BookingClient(transport=transport),
            exporter=RecordExporter(transport=transport),
        )

    async def process_message(
        self, user_id: str, message: str, user_name: Optional[str] = None
    ) -> DiscoveryResponse:
        """Handle one inbound message and return the reply. Never raises."""
        async with self.store.lock(user_id):
            with user_context(user_id):
                try:
                    return await self._process(user_id, message or "", user_name)
                except Exception:
                    logger.exception("Unhandled error processing message")
                    return DiscoveryResponse(
                        text=FALLBACK_GREETING,
                        metadata=ResponseMetadata(stage=DiscoveryStage.TRUST_BUILDING),
                    )

    async def _process(
        self, user_id: str, message: str, user_name: Optional[str]
    ) -> DiscoveryResponse:
        try:
            stage = self._resolve_stage(user_id, user_name)
            if message.strip():
                self.store.record_user_message(user_id, message)
        except RecordStoreError:
            logger.exception("Record store unavailable, starting from trust building")
            stage = DiscoveryStage.TRUST_BUILDING

        logger.debug("Processing message in stage %s", stage.value)
        reply: StageReply = await self.handlers.handle(stage, user_id, message)

        metadata = ResponseMetadata(stage=reply.stage, response_status=reply.status)
        try:
            self.store.record_agent_message(user_id, reply.text, metadata.to_wire())
        except RecordStoreError:
            logger.exception("Failed to record agent message")

        if reply.stage != stage:
            logger.info("Stage %s -> %s", stage.value, reply.stage.value)
        return DiscoveryResponse(text=reply.text, metadata=metadata)

    def _resolve_stage(self, user_id: str, user_name: Optional[str]) -> DiscoveryStage:
        """Stage from the last agent message, else the stored stage."""
        session = self.store.get(user_id, user_name=user_name)
        stored = session.discovery_state.current_stage
        recovered = self.store.last_agent_stage(user_id)
        if recovered is not None and recovered != stored:
            self.store.restore_stage(user_id, recovered)
            return recovered
        return stored

    async def wait_for_background_tasks(self) -> None:
        """Wait for pending record exports (used on shutdown and in tests)."""
        await self.visit_scheduler.wait_for_background_tasks()

    def get_session_info(self, user_id: str) -> dict[str, Any]:
        session = self.store.get(user_id)
        record = session.record
        return {
            "user_id": user_id,
            "current_stage": session.discovery_state.current_stage.value,
            "contact_info": record.contact_info.model_dump(exclude={"collected_at"}),
            "answered": {stage.value: len(record.entries_for(stage)) for stage in QUESTION_STAGES},
            "visit_step": int(self.store.get_visit_step_status(user_id).current_step),
            "visit_scheduled": session.discovery_state.visit_scheduled,
            "last_updated": session.last_updated.isoformat(),
        }

    def reset_session(self, user_id: str) -> None:
        self.store.reset_session(user_id)
