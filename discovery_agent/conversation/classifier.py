"""
Two-way utterance classifier.

Labels each user reply "Normal situation" (continue the script) or
"Unexpected situation" (a digression to answer before continuing).
Classification never raises: an empty message, a failed model call or
malformed output all yield "Normal situation".
"""

import logging

from pydantic import ValidationError

from discovery_agent.prompts.prompt_templates import build_classification_prompt
from discovery_agent.prompts.system_prompts import CLASSIFIER_SYSTEM_PROMPT
from discovery_agent.schemas.analysis_schema import ClassificationResult
from discovery_agent.schemas.discovery_schema import SituationStatus
from discovery_agent.tools.llm_client import LLMClient

logger = logging.getLogger(__name__)


class UtteranceClassifier:
    def __init__(self, llm: LLMClient) -> None:
        self._llm = llm

    async def classify(self, message: str) -> SituationStatus:
        if not message or not message.strip():
            return SituationStatus.NORMAL

        data = await self._llm.generate_json(
            [
                {"role": "system", "content": CLASSIFIER_SYSTEM_PROMPT},
                {"role": "user", "content": build_classification_prompt(message)},
            ],
            max_tokens=100,
        )
        if data is None:
            return SituationStatus.NORMAL

        try:
            status = ClassificationResult.model_validate(data).status
        except ValidationError:
            logger.warning("Unusable classification payload: %s", data)
            return SituationStatus.NORMAL

        logger.debug("Classified message as %s", status.value)
        return status
