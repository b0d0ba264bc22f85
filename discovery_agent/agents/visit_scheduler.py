"""
Visit-scheduling sub-machine for the final discovery stage.

Steps (derived from markers in the record's ``visit_scheduling`` list):

    1. agreement  -> visit_agreement
    2. time       -> time_confirmation
    3. email      -> email_collection   (books the visit, exports the record)
    4. referral   -> referral_source    (or rebooking after a conflict)
    5. close      -> free-form replies

Booking outcomes never stop the conversation: a conflict asks for a new
time, and an unreachable scheduling service gets a "we'll confirm
shortly" message.
"""

import asyncio
import logging
from typing import Optional

from discovery_agent.agents.response_generator import ResponseGenerator
from discovery_agent.config import settings
from discovery_agent.conversation.extractors import FactExtractor
from discovery_agent.conversation.record_store import RecordStore
from discovery_agent.conversation.visit_steps import (
    EMAIL_COLLECTION,
    REFERRAL_SOURCE,
    TIME_CONFIRMATION,
    VISIT_AGREEMENT,
    marker_answer,
)
from discovery_agent.prompts.system_prompts import (
    DEFAULT_SLOT_PROPOSAL,
    REFERRAL_QUESTION,
    TIME_REASK,
)
from discovery_agent.schemas.booking_schema import BookingFailure, BookingResult
from discovery_agent.schemas.discovery_schema import DiscoveryStage, StageReply, VisitStep
from discovery_agent.tools.booking import BookingClient
from discovery_agent.tools.facility import nearest_location
from discovery_agent.tools.record_export import RecordExporter
from discovery_agent.tools.time_resolver import resolve_time, when_text_from_iso

logger = logging.getLogger(__name__)

STAGE = DiscoveryStage.SCHEDULE_VISIT


class VisitScheduler:
    """Runs the five visit-scheduling steps for one message."""

    def __init__(
        self,
        store: RecordStore,
        extractor: FactExtractor,
        responder: ResponseGenerator,
        booking: BookingClient,
        exporter: Optional[RecordExporter] = None,
    ) -> None:
        self.store = store
        self.extractor = extractor
        self.responder = responder
        self.booking = booking
        self.exporter = exporter
        self._background: set[asyncio.Task] = set()

    async def handle(
        self,
        user_id: str,
        message: str,
        is_transition: bool = False,
        context_message: Optional[str] = None,
    ) -> StageReply:
        if is_transition:
            record = self.store.get_record(user_id)
            text = await self.responder.encouraging_visit_reply(context_message or "", record)
            return StageReply(text=text, stage=STAGE)

        step = self.store.get_visit_step_status(user_id).current_step
        logger.debug("Visit scheduling step %d", step)

        if step is VisitStep.AGREEMENT:
            text = await self._agreement(user_id, message)
        elif step is VisitStep.TIME:
            text = await self._time(user_id, message)
        elif step is VisitStep.EMAIL:
            text = await self._email(user_id, message)
        elif step is VisitStep.REFERRAL:
            text = await self._referral(user_id, message)
        else:
            contact = self.store.get_contact_info(user_id)
            text = await self.responder.closing_reply(message, contact)
        return StageReply(text=text, stage=STAGE)

    # ------------------------------------------------------------------ #
    # Steps
    # ------------------------------------------------------------------ #

    async def _agreement(self, user_id: str, message: str) -> str:
        analysis = await self.extractor.analyze_agreement(message)
        if not analysis.agreed:
            record = self.store.get_record(user_id)
            return await self.responder.encouraging_visit_reply(message, record)

        self.store.add_qa_entry(user_id, STAGE, VISIT_AGREEMENT, message)
        self.store.update_discovery_state(user_id, ready_for_visit=True)
        logger.info("User %s agreed to a visit", user_id)
        acknowledgement = analysis.response.strip() or "Wonderful!"
        return f"{acknowledgement} {DEFAULT_SLOT_PROPOSAL}"

    async def _time(self, user_id: str, message: str) -> str:
        analysis = await self.extractor.analyze_time(message)
        if analysis.alternative_time:
            slot = analysis.alternative_time
        elif analysis.confirmed and not analysis.rejected:
            slot = settings.business.default_visit_slot
        elif analysis.rejected:
            contact = self.store.get_contact_info(user_id)
            return await self.responder.time_rejected_reply(message, contact)
        else:
            return TIME_REASK

        self.store.add_qa_entry(user_id, STAGE, TIME_CONFIRMATION, slot)
        self.store.update_discovery_state(user_id, confirmed_slot=slot)
        logger.info("Visit time noted: %s", slot)
        return (
            f"Perfect, {slot} it is. What's the best email address to send your "
            f"visit confirmation to?"
        )

    async def _email(self, user_id: str, message: str) -> str:
        email = await self.extractor.extract_email(message)
        if not email:
            return await self.responder.email_reask_reply(message)

        self.store.add_qa_entry(user_id, STAGE, EMAIL_COLLECTION, email)
        self._export_record(user_id, email)

        record = self.store.get_record(user_id)
        slot = (
            marker_answer(record.visit_scheduling, TIME_CONFIRMATION)
            or settings.business.default_visit_slot
        )
        result = await self._book(user_id, email, slot)
        return self._booking_reply(user_id, result, email, slot)

    async def _referral(self, user_id: str, message: str) -> str:
        state = self.store.get_discovery_state(user_id)
        if state.pending_reschedule:
            return await self._reschedule(user_id, message)

        self.store.add_qa_entry(user_id, STAGE, REFERRAL_SOURCE, message)
        contact = self.store.get_contact_info(user_id)
        when_text = state.confirmed_slot or settings.business.default_visit_slot
        return await self.responder.referral_closing_reply(message, contact, when_text)

    async def _reschedule(self, user_id: str, message: str) -> str:
        analysis = await self.extractor.analyze_time(message)
        slot = analysis.alternative_time or message.strip()
        record = self.store.get_record(user_id)
        email = marker_answer(record.visit_scheduling, EMAIL_COLLECTION)
        if not email:
            self.store.update_discovery_state(user_id, pending_reschedule=False)
            return REFERRAL_QUESTION

        result = await self._book(user_id, email, slot)
        return self._booking_reply(user_id, result, email, slot)

    # ------------------------------------------------------------------ #
    # Booking
    # ------------------------------------------------------------------ #

    async def _book(self, user_id: str, email: str, slot: str) -> BookingResult:
        try:
            start_iso: Optional[str] = resolve_time(label=slot).isoformat()
        except ValueError:
            logger.warning("Could not resolve visit time %r, sending label only", slot)
            start_iso = None

        contact = self.store.get_contact_info(user_id)
        location = nearest_location(contact.location)["name"]
        return await self.booking.schedule(
            email, label=slot, start_iso=start_iso, location=location
        )

    def _booking_reply(
        self, user_id: str, result: BookingResult, email: str, slot: str
    ) -> str:
        if isinstance(result, BookingFailure):
            if result.is_conflict:
                self.store.update_discovery_state(user_id, pending_reschedule=True)
                return (
                    f"It looks like {slot} is no longer available. What other day and "
                    f"time would work for your visit? We're open Monday to Friday."
                )
            self.store.update_discovery_state(
                user_id, pending_reschedule=False, confirmed_slot=slot
            )
            logger.warning("Booking not confirmed (%s), continuing", result.error)
            return (
                f"Thank you! I've noted your visit for {slot}, and our team will confirm "
                f"the details with you at {email} shortly. {REFERRAL_QUESTION}"
            )

        when_text = result.when_text or _when_from_iso(result.start_iso) or slot
        self.store.update_discovery_state(
            user_id,
            visit_scheduled=True,
            pending_reschedule=False,
            booking_event_id=result.event_id,
            confirmed_slot=when_text,
        )
        return (
            f"You're all set for {when_text}! A confirmation is on its way to {email}. "
            f"{REFERRAL_QUESTION}"
        )

    # ------------------------------------------------------------------ #
    # Record export
    # ------------------------------------------------------------------ #

    def _export_record(self, user_id: str, email: str) -> None:
        if self.exporter is None or not settings.conversation.enable_record_export:
            return
        record = self.store.get_record(user_id)
        task = asyncio.create_task(self.exporter.send(email, record))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def wait_for_background_tasks(self) -> None:
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)


def _when_from_iso(start_iso: Optional[str]) -> Optional[str]:
    if not start_iso:
        return None
    try:
        return when_text_from_iso(start_iso)
    except ValueError:
        return None
