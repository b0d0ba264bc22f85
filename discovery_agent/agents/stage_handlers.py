"""
Per-stage handlers for the discovery conversation.

Each handler receives the user's message for the stage it owns and
returns a ``StageReply``. When a stage is complete the handler advances
the stored stage and immediately runs the next stage's handler as a
stage entry: no message is assigned as an answer on entry, but the
original message is passed along so the first reply of the new stage can
still respond to it.

Question stages follow first-unanswered-gets-the-answer: a reply is
recorded against the earliest required question not yet in the record.
The one exception is a pure digression question ("how much does it
cost?"), which is answered without consuming the pending question.
"""

import logging
from typing import Optional

from discovery_agent.agents.response_generator import ResponseGenerator
from discovery_agent.agents.visit_scheduler import VisitScheduler
from discovery_agent.conversation.classifier import UtteranceClassifier
from discovery_agent.conversation.extractors import FactExtractor
from discovery_agent.conversation.record_store import RecordStore
from discovery_agent.conversation.state_machine import (
    REQUIRED_QUESTIONS,
    remaining_questions,
    trigger_for,
)
from discovery_agent.prompts.system_prompts import INITIAL_GREETING
from discovery_agent.schemas.discovery_schema import (
    DiscoveryStage,
    SituationStatus,
    StageReply,
)
from discovery_agent.utils import first_name, format_answers

logger = logging.getLogger(__name__)

# Last-resort text when a stage handler fails outright.
STAGE_FALLBACKS: dict[DiscoveryStage, str] = {
    DiscoveryStage.TRUST_BUILDING: (
        "I'd love to help you explore senior living options. Could you share your "
        "name, your location, and your loved one's name?"
    ),
    DiscoveryStage.SITUATION_DISCOVERY: (
        "Thank you for sharing that. What made you decide to reach out about "
        "senior living today?"
    ),
    DiscoveryStage.LIFESTYLE_DISCOVERY: (
        "I'd love to get to know your loved one better. What does a typical day "
        "look like for them?"
    ),
    DiscoveryStage.READINESS_DISCOVERY: (
        "That's helpful to know. How does your loved one feel about the idea of moving?"
    ),
    DiscoveryStage.PRIORITIES_DISCOVERY: (
        "What's most important to you regarding the community you may choose?"
    ),
    DiscoveryStage.NEEDS_MATCHING: (
        "Based on everything you've shared, I think our community could be a "
        "wonderful fit for your loved one."
    ),
    DiscoveryStage.SCHEDULE_VISIT: (
        "I'd love to help you schedule a visit so you can see the community in "
        "person. Would that be helpful?"
    ),
}

# Answers worth surfacing on the discovery state as well as the record.
INSIGHT_QUESTIONS: dict[str, str] = {
    REQUIRED_QUESTIONS[DiscoveryStage.SITUATION_DISCOVERY][1]: "concerns_shared",
    REQUIRED_QUESTIONS[DiscoveryStage.PRIORITIES_DISCOVERY][0]: "identified_needs",
    REQUIRED_QUESTIONS[DiscoveryStage.PRIORITIES_DISCOVERY][1]: "identified_needs",
}


def is_pure_digression(message: str, status: SituationStatus) -> bool:
    """An Unexpected message that only asks something back."""
    return status is SituationStatus.UNEXPECTED and message.strip().endswith("?")


class DiscoveryStageHandlers:
    """Dispatches a message to the handler for the user's current stage."""

    def __init__(
        self,
        store: RecordStore,
        classifier: UtteranceClassifier,
        extractor: FactExtractor,
        responder: ResponseGenerator,
        visit_scheduler: VisitScheduler,
    ) -> None:
        self.store = store
        self.classifier = classifier
        self.extractor = extractor
        self.responder = responder
        self.visit_scheduler = visit_scheduler

    async def handle(
        self,
        stage: DiscoveryStage,
        user_id: str,
        message: str,
        is_transition: bool = False,
        context_message: Optional[str] = None,
        context_status: Optional[SituationStatus] = None,
    ) -> StageReply:
        """Run the handler for ``stage``. Never raises."""
        try:
            if stage is DiscoveryStage.TRUST_BUILDING:
                return await self._trust_building(user_id, message)
            if stage is DiscoveryStage.NEEDS_MATCHING:
                return await self._needs_matching(user_id, message, is_transition, context_message)
            if stage is DiscoveryStage.SCHEDULE_VISIT:
                return await self.visit_scheduler.handle(
                    user_id, message, is_transition, context_message
                )
            return await self._question_stage(
                stage, user_id, message, is_transition, context_message, context_status
            )
        except Exception:
            logger.exception("Handler for stage %s failed", stage.value)
            return StageReply(text=self._fallback_text(stage, user_id), stage=stage)

    def _fallback_text(self, stage: DiscoveryStage, user_id: str) -> str:
        try:
            answered = self.store.get_answered_questions(user_id, stage)
            remaining = remaining_questions(stage, answered)
            if remaining:
                name = self.store.get_user_first_name(user_id)
                return f"{name}, {remaining[0]}" if name else remaining[0]
        except Exception:
            logger.exception("Fallback question lookup failed for stage %s", stage.value)
        return STAGE_FALLBACKS[stage]

    async def _advance(
        self,
        stage: DiscoveryStage,
        user_id: str,
        context_message: str,
        context_status: Optional[SituationStatus] = None,
    ) -> StageReply:
        trigger = trigger_for(stage)
        if trigger is None:
            raise ValueError(f"Stage {stage.value!r} has no next stage")
        next_stage = self.store.advance_stage(user_id, trigger)
        return await self.handle(
            next_stage,
            user_id,
            "",
            is_transition=True,
            context_message=context_message,
            context_status=context_status,
        )

    # ------------------------------------------------------------------ #
    # trust_building
    # ------------------------------------------------------------------ #

    async def _trust_building(self, user_id: str, message: str) -> StageReply:
        stage = DiscoveryStage.TRUST_BUILDING
        if not message.strip():
            return StageReply(text=INITIAL_GREETING, stage=stage)

        existing = self.store.get_contact_info(user_id)
        extraction = await self.extractor.extract_contact_info(message, existing)
        contact = self.store.update_contact_info(
            user_id,
            name=extraction.name,
            location=extraction.location,
            loved_one_name=extraction.loved_one_name,
        )

        if not contact.is_complete():
            logger.debug("Contact info incomplete, missing %s", contact.missing_fields())
            text = await self.responder.contact_request_reply(message, contact)
            return StageReply(text=text, stage=stage)

        logger.info("Contact info complete for user %s", user_id)
        entry = await self._advance(stage, user_id, context_message=message)
        thanks = f"Thank you, {first_name(contact.name)}!"
        return StageReply(text=f"{thanks} {entry.text}", stage=entry.stage, status=entry.status)

    # ------------------------------------------------------------------ #
    # situation / lifestyle / readiness / priorities
    # ------------------------------------------------------------------ #

    async def _question_stage(
        self,
        stage: DiscoveryStage,
        user_id: str,
        message: str,
        is_transition: bool,
        context_message: Optional[str],
        context_status: Optional[SituationStatus],
    ) -> StageReply:
        questions = REQUIRED_QUESTIONS[stage]
        remaining = remaining_questions(stage, self.store.get_answered_questions(user_id, stage))

        reply_to = context_message if is_transition else message
        reply_to = reply_to or ""
        status = context_status
        if status is None:
            status = await self.classifier.classify(reply_to)

        if message.strip() and not is_transition and remaining:
            if is_pure_digression(message, status):
                logger.debug("Digression question left %r open", remaining[0])
            else:
                question = remaining.pop(0)
                self.store.add_qa_entry(user_id, stage, question, message)
                self._note_insight(user_id, question, message)
                logger.debug(
                    "Recorded answer %d/%d for %s", len(questions) - len(remaining),
                    len(questions), stage.value,
                )

        if not remaining:
            logger.info("All %s questions answered", stage.value)
            return await self._advance(stage, user_id, reply_to, status)

        next_question = remaining[0]
        record = self.store.get_record(user_id)
        text = await self.responder.contextual_reply(
            stage=stage,
            message=reply_to,
            status=status,
            next_question=next_question,
            contact=record.contact_info,
            previous_answers=format_answers(record.entries_for(stage)),
            answered_count=len(questions) - len(remaining),
            total_questions=len(questions),
        )
        self.store.note_question_asked(user_id, next_question)
        return StageReply(text=text, stage=stage, status=status)

    def _note_insight(self, user_id: str, question: str, answer: str) -> None:
        field_name = INSIGHT_QUESTIONS.get(question)
        if field_name is None:
            return
        state = self.store.get_discovery_state(user_id)
        values = getattr(state, field_name)
        if answer not in values:
            self.store.update_discovery_state(user_id, **{field_name: [*values, answer]})

    # ------------------------------------------------------------------ #
    # needs_matching
    # ------------------------------------------------------------------ #

    async def _needs_matching(
        self,
        user_id: str,
        message: str,
        is_transition: bool,
        context_message: Optional[str],
    ) -> StageReply:
        stage = DiscoveryStage.NEEDS_MATCHING
        if is_transition or not message.strip():
            record = self.store.get_record(user_id)
            text = await self.responder.needs_matching_reply(record)
            self.store.update_discovery_state(user_id, ready_for_visit=True)
            return StageReply(text=text, stage=stage)

        return await self._advance(stage, user_id, context_message=message)
