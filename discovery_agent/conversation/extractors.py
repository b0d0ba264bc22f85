"""
Structured extraction of facts from free-form replies.

Each extractor wraps one JSON-returning model call and always returns a
validated pydantic model. On failure it returns the model's safe default:
no contact facts found, agreement assumed, no time decision, no email.
"""

import logging
from typing import Optional, TypeVar

from pydantic import BaseModel, ValidationError

from discovery_agent.config import settings
from discovery_agent.prompts import prompt_templates as templates
from discovery_agent.prompts import system_prompts as prompts
from discovery_agent.schemas.analysis_schema import (
    AgreementAnalysis,
    ContactExtraction,
    EmailAnalysis,
    TimeAnalysis,
)
from discovery_agent.schemas.discovery_schema import ContactInfo
from discovery_agent.tools.llm_client import LLMClient
from discovery_agent.utils import find_email, spoken_email

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class FactExtractor:
    """Contact, agreement, time and email extraction over one LLM client."""

    def __init__(self, llm: LLMClient) -> None:
        self._llm = llm

    async def _extract(
        self, system: str, prompt: str, model: type[ModelT], max_tokens: int
    ) -> ModelT:
        data = await self._llm.generate_json(
            [{"role": "system", "content": system}, {"role": "user", "content": prompt}],
            max_tokens=max_tokens,
        )
        if data is None:
            return model()
        try:
            return model.model_validate(data)
        except ValidationError:
            logger.warning("Unusable %s payload: %s", model.__name__, data)
            return model()

    async def extract_contact_info(
        self, message: str, existing: Optional[ContactInfo] = None
    ) -> ContactExtraction:
        result = await self._extract(
            prompts.CONTACT_EXTRACTION_SYSTEM_PROMPT,
            templates.build_contact_extraction_prompt(message, existing),
            ContactExtraction,
            max_tokens=200,
        )
        # The found* flags are advisory; the values are what gets stored.
        result.foundName = bool(result.name)
        result.foundLocation = bool(result.location)
        result.foundLovedOneName = bool(result.loved_one_name)
        return result

    async def analyze_agreement(self, message: str) -> AgreementAnalysis:
        return await self._extract(
            prompts.AGREEMENT_SYSTEM_PROMPT,
            templates.build_agreement_prompt(message),
            AgreementAnalysis,
            max_tokens=150,
        )

    async def analyze_time(self, message: str) -> TimeAnalysis:
        return await self._extract(
            prompts.TIME_ANALYSIS_SYSTEM_PROMPT,
            templates.build_time_analysis_prompt(message, settings.business.default_visit_slot),
            TimeAnalysis,
            max_tokens=150,
        )

    async def extract_email(self, message: str) -> Optional[str]:
        """Email from the reply: model first, then literal and spoken-form patterns."""
        analysis = await self._extract(
            prompts.EMAIL_EXTRACTION_SYSTEM_PROMPT,
            templates.build_email_extraction_prompt(message),
            EmailAnalysis,
            max_tokens=100,
        )
        email = find_email(analysis.email or "")
        if email:
            return email

        email = find_email(message) or spoken_email(message)
        if email:
            logger.debug("Email recovered by pattern fallback")
        return email
