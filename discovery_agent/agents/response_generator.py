"""
User-facing reply generation in the guide's voice.

Every method returns text and never raises: when the model call fails
the reply falls back to a fixed sentence that still moves the
conversation forward (usually by restating the next question).
"""

import logging
import random
from typing import Optional

from discovery_agent.config import settings
from discovery_agent.prompts import prompt_templates as templates
from discovery_agent.prompts.system_prompts import GUIDE_SYSTEM_PROMPT
from discovery_agent.schemas.discovery_schema import (
    ComprehensiveRecord,
    ContactInfo,
    DiscoveryStage,
    SituationStatus,
)
from discovery_agent.tools.facility import facility_info, nearest_location
from discovery_agent.tools.llm_client import GenerationError, LLMClient
from discovery_agent.utils import first_name, format_answers

logger = logging.getLogger(__name__)

_biz = settings.business


def _prefix(name: str) -> str:
    return f"{name}, " if name else ""


class ResponseGenerator:
    """Builds prompts, calls the model, and applies per-reply fallbacks."""

    def __init__(self, llm: LLMClient, rng: Optional[random.Random] = None) -> None:
        self._llm = llm
        self._rng = rng or random.Random()

    async def _generate(self, prompt: str, fallback: str, max_tokens: int = 200) -> str:
        try:
            return await self._llm.generate(
                [
                    {"role": "system", "content": GUIDE_SYSTEM_PROMPT},
                    {"role": "user", "content": prompt},
                ],
                max_tokens=max_tokens,
            )
        except GenerationError as exc:
            logger.warning("Reply generation failed, using fallback: %s", exc)
            return fallback

    def _use_name(self) -> bool:
        return self._rng.random() < settings.conversation.name_usage_probability

    async def contextual_reply(
        self,
        stage: DiscoveryStage,
        message: str,
        status: SituationStatus,
        next_question: str,
        contact: ContactInfo,
        previous_answers: str,
        answered_count: int,
        total_questions: int,
    ) -> str:
        """Reply that handles the user's message and asks ``next_question``."""
        name = first_name(contact.name)
        location = nearest_location(contact.location)
        prompt = templates.build_contextual_prompt(
            stage=stage.value,
            message=message,
            status=status,
            next_question=next_question,
            user_name=name,
            loved_one_name=contact.loved_one_name or "",
            community=location["name"],
            facility_info=facility_info(location),
            previous_answers=previous_answers,
            answered_count=answered_count,
            total_questions=total_questions,
            use_name=self._use_name(),
        )
        return await self._generate(prompt, f"{_prefix(name)}{next_question}")

    async def contact_request_reply(self, message: str, contact: ContactInfo) -> str:
        missing = contact.missing_fields()
        fallback = (
            f"Thank you for reaching out. To help me guide you, could you share "
            f"{_join_items(missing)}?"
        )
        prompt = templates.build_contact_request_prompt(message, missing, contact)
        return await self._generate(prompt, fallback, max_tokens=120)

    async def needs_matching_reply(self, record: ComprehensiveRecord) -> str:
        contact = record.contact_info
        name = first_name(contact.name)
        loved_one = contact.loved_one_name or "your loved one"
        nearest = nearest_location(contact.location)
        community = nearest["name"]
        fallback = (
            f"{_prefix(name)}based on everything you've shared about {loved_one}, I can "
            f"see how {community} could be a wonderful fit. The care, community, and "
            f"activities there line up beautifully with what you've described."
        )
        prompt = templates.build_needs_matching_prompt(
            all_answers=format_answers(record.all_answers()),
            user_name=name,
            loved_one_name=loved_one,
            location=contact.location or "",
            nearest_community=community,
            facility_info=facility_info(nearest),
        )
        return await self._generate(prompt, fallback)

    async def encouraging_visit_reply(self, message: str, record: ComprehensiveRecord) -> str:
        contact = record.contact_info
        name = first_name(contact.name)
        loved_one = contact.loved_one_name or "your loved one"
        fallback = (
            f"{_prefix(name)}I understand. Seeing {_biz.facility_name} in person really "
            f"helps families feel confident. Would you like to schedule a brief visit to "
            f"see if it feels right for {loved_one}?"
        )
        prompt = templates.build_encouraging_visit_prompt(
            message=message,
            user_name=name,
            loved_one_name=contact.loved_one_name or "",
            facility_info=facility_info(),
            all_answers=format_answers(record.all_answers()),
        )
        return await self._generate(prompt, fallback, max_tokens=150)

    async def time_rejected_reply(self, message: str, contact: ContactInfo) -> str:
        loved_one = contact.loved_one_name or "your loved one"
        fallback = (
            f"No problem at all. What day and time would work better for you and "
            f"{loved_one} to come by? We're open for visits Monday to Friday."
        )
        prompt = templates.build_time_rejected_prompt(
            message, contact.loved_one_name or "", facility_info()
        )
        return await self._generate(prompt, fallback, max_tokens=150)

    async def email_reask_reply(self, message: str) -> str:
        fallback = (
            "I'd love to send you the visit confirmation. Could you share the best "
            "email address to reach you?"
        )
        return await self._generate(templates.build_email_reask_prompt(message), fallback, 120)

    async def referral_closing_reply(
        self, message: str, contact: ContactInfo, when_text: str
    ) -> str:
        name = first_name(contact.name)
        loved_one = contact.loved_one_name or "your loved one"
        fallback = (
            f"Thank you for sharing that{', ' + name if name else ''}. When you visit, our "
            f"team will show you around and answer any questions about care and pricing. "
            f"Thank you for trusting me with this decision for {loved_one}. "
            f"I look forward to seeing you {when_text}!"
        )
        prompt = templates.build_referral_closing_prompt(
            message, name, contact.loved_one_name or "", when_text
        )
        return await self._generate(prompt, fallback, max_tokens=150)

    async def closing_reply(self, message: str, contact: ContactInfo) -> str:
        name = first_name(contact.name)
        fallback = (
            f"Thank you{', ' + name if name else ''}. We're all looking forward to your "
            f"visit, and I'm here if anything else comes up before then."
        )
        prompt = templates.build_closing_prompt(
            message, name, contact.loved_one_name or "", facility_info()
        )
        return await self._generate(prompt, fallback, max_tokens=150)


def _join_items(items: list[str]) -> str:
    if not items:
        return "a little about yourself"
    if len(items) == 1:
        return items[0]
    return ", ".join(items[:-1]) + f", and {items[-1]}"
