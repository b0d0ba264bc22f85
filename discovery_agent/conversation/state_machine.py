"""
Finite state machine for the discovery stage sequence.

Defines the seven discovery stages, the required questions for each
question-driven stage, and the explicit forward transitions between them.
Stages never move backwards; the only way back to the start is an
explicit reset of the whole session.

Usage:
    sm = DiscoveryStateMachine()
    sm.transition(TransitionTrigger.CONTACT_COMPLETE)
    assert sm.current_stage == DiscoveryStage.SITUATION_DISCOVERY
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from discovery_agent.schemas.discovery_schema import DiscoveryStage

logger = logging.getLogger(__name__)


REQUIRED_QUESTIONS: dict[DiscoveryStage, list[str]] = {
    DiscoveryStage.SITUATION_DISCOVERY: [
        "What made you decide to reach out about senior living today?",
        "What's your biggest concern about your loved one right now?",
        "How is this situation impacting your family?",
        "Where does your loved one currently live?",
    ],
    DiscoveryStage.LIFESTYLE_DISCOVERY: [
        "Tell me about your loved one. What does a typical day look like for them?",
        "What are some things they really enjoy doing?",
        "Are there any activities or routines they've had to give up recently?",
    ],
    DiscoveryStage.READINESS_DISCOVERY: [
        "Is your loved one aware that you're looking at options?",
        "How does your loved one feel about the idea of moving?",
        "Who else is involved in helping make this decision?",
    ],
    DiscoveryStage.PRIORITIES_DISCOVERY: [
        "What's most important to you regarding the community you may choose?",
        "Are there any must-haves for care or support?",
        "What timeline are you considering for a move?",
    ],
}


def required_questions(stage: DiscoveryStage) -> list[str]:
    """Canonical questions for ``stage`` (empty for stages without questions)."""
    return list(REQUIRED_QUESTIONS.get(stage, []))


def remaining_questions(stage: DiscoveryStage, answered: list[str]) -> list[str]:
    """Required questions for ``stage`` not yet present in ``answered``, in order."""
    answered_set = set(answered)
    return [q for q in REQUIRED_QUESTIONS.get(stage, []) if q not in answered_set]


class TransitionTrigger(str, Enum):
    """Events that move the conversation to the next stage."""
    CONTACT_COMPLETE = "contact_complete"
    SITUATION_ANSWERED = "situation_answered"
    LIFESTYLE_ANSWERED = "lifestyle_answered"
    READINESS_ANSWERED = "readiness_answered"
    PRIORITIES_ANSWERED = "priorities_answered"
    NEEDS_ACKNOWLEDGED = "needs_acknowledged"


@dataclass
class Transition:
    """A single valid stage transition."""
    from_stage: DiscoveryStage
    to_stage: DiscoveryStage
    trigger: TransitionTrigger


class InvalidTransitionError(Exception):
    """Raised when a transition is not valid from the current stage."""


class DiscoveryStateMachine:
    """
    Forward-only stage machine for one user's discovery conversation.

    ``schedule_visit`` has no outgoing transition; the visit-scheduling
    sub-steps are derived from the record, not from this machine.
    """

    TRANSITIONS: list[Transition] = [
        Transition(DiscoveryStage.TRUST_BUILDING, DiscoveryStage.SITUATION_DISCOVERY,
                   TransitionTrigger.CONTACT_COMPLETE),
        Transition(DiscoveryStage.SITUATION_DISCOVERY, DiscoveryStage.LIFESTYLE_DISCOVERY,
                   TransitionTrigger.SITUATION_ANSWERED),
        Transition(DiscoveryStage.LIFESTYLE_DISCOVERY, DiscoveryStage.READINESS_DISCOVERY,
                   TransitionTrigger.LIFESTYLE_ANSWERED),
        Transition(DiscoveryStage.READINESS_DISCOVERY, DiscoveryStage.PRIORITIES_DISCOVERY,
                   TransitionTrigger.READINESS_ANSWERED),
        Transition(DiscoveryStage.PRIORITIES_DISCOVERY, DiscoveryStage.NEEDS_MATCHING,
                   TransitionTrigger.PRIORITIES_ANSWERED),
        Transition(DiscoveryStage.NEEDS_MATCHING, DiscoveryStage.SCHEDULE_VISIT,
                   TransitionTrigger.NEEDS_ACKNOWLEDGED),
    ]

    def __init__(self, initial: DiscoveryStage = DiscoveryStage.TRUST_BUILDING) -> None:
        self._current_stage = initial

    @property
    def current_stage(self) -> DiscoveryStage:
        return self._current_stage

    def transition(self, trigger: TransitionTrigger) -> DiscoveryStage:
        """
        Execute a stage transition.

        Args:
            trigger: The event triggering the transition.

        Returns:
            The new stage.

        Raises:
            InvalidTransitionError: If no valid transition exists.
        """
        for t in self.TRANSITIONS:
            if t.from_stage == self._current_stage and t.trigger == trigger:
                old_stage = self._current_stage
                self._current_stage = t.to_stage
                logger.debug(
                    "Stage transition: %s -> %s (trigger: %s)",
                    old_stage.value, self._current_stage.value, trigger.value,
                )
                return self._current_stage

        valid = [t.value for t in self.get_valid_triggers()]
        raise InvalidTransitionError(
            f"No valid transition from '{self._current_stage.value}' "
            f"with trigger '{trigger.value}'. Valid triggers: {valid}"
        )

    def get_valid_triggers(self) -> list[TransitionTrigger]:
        """Return all triggers valid from the current stage."""
        return [t.trigger for t in self.TRANSITIONS if t.from_stage == self._current_stage]


def trigger_for(stage: DiscoveryStage) -> Optional[TransitionTrigger]:
    """The trigger that completes ``stage``, or None for the final stage."""
    for t in DiscoveryStateMachine.TRANSITIONS:
        if t.from_stage == stage:
            return t.trigger
    return None
