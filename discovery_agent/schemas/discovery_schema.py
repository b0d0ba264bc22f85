"""Discovery conversation data models.

The comprehensive record is the single accumulating document per user:
contact details plus one append-only Q&A list per discovery stage. Every
write goes through the Record Store, which validates payloads into these
models before merging.
"""

from datetime import datetime, timezone
from enum import Enum, IntEnum
from typing import Any, Optional

from pydantic import BaseModel, Field

from discovery_agent.schemas.conversation_schema import TranscriptTurn


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DiscoveryStage(str, Enum):
    """Ordered stages of the discovery conversation."""
    TRUST_BUILDING = "trust_building"
    SITUATION_DISCOVERY = "situation_discovery"
    LIFESTYLE_DISCOVERY = "lifestyle_discovery"
    READINESS_DISCOVERY = "readiness_discovery"
    PRIORITIES_DISCOVERY = "priorities_discovery"
    NEEDS_MATCHING = "needs_matching"
    SCHEDULE_VISIT = "schedule_visit"

    @classmethod
    def parse(cls, value: Any) -> Optional["DiscoveryStage"]:
        """Return the matching stage, or None for unknown or corrupt values."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return None


STAGE_ORDER: tuple[DiscoveryStage, ...] = tuple(DiscoveryStage)

# Stages whose progress is tracked as answered required questions.
QUESTION_STAGES: tuple[DiscoveryStage, ...] = (
    DiscoveryStage.SITUATION_DISCOVERY,
    DiscoveryStage.LIFESTYLE_DISCOVERY,
    DiscoveryStage.READINESS_DISCOVERY,
    DiscoveryStage.PRIORITIES_DISCOVERY,
)


class SituationStatus(str, Enum):
    NORMAL = "Normal situation"
    UNEXPECTED = "Unexpected situation"


class QAEntry(BaseModel):
    """One answered question (or visit-scheduling marker)."""

    question: str
    answer: str
    stage: str
    timestamp: datetime = Field(default_factory=_utcnow)


class ContactInfo(BaseModel):
    name: Optional[str] = None
    location: Optional[str] = None
    loved_one_name: Optional[str] = None
    collected_at: datetime = Field(default_factory=_utcnow)

    def is_complete(self) -> bool:
        return bool(self.name and self.location and self.loved_one_name)

    def missing_fields(self) -> list[str]:
        labels = [
            ("name", "your name"),
            ("location", "your location"),
            ("loved_one_name", "your loved one's name"),
        ]
        return [label for attr, label in labels if not getattr(self, attr)]


# Q&A list on the record that holds answers for each stage.
RECORD_FIELD_FOR_STAGE: dict[DiscoveryStage, str] = {
    DiscoveryStage.SITUATION_DISCOVERY: "situation_discovery",
    DiscoveryStage.LIFESTYLE_DISCOVERY: "lifestyle_discovery",
    DiscoveryStage.READINESS_DISCOVERY: "readiness_discovery",
    DiscoveryStage.PRIORITIES_DISCOVERY: "priorities_discovery",
    DiscoveryStage.SCHEDULE_VISIT: "visit_scheduling",
}

QA_FIELDS: tuple[str, ...] = (
    "situation_discovery",
    "lifestyle_discovery",
    "readiness_discovery",
    "priorities_discovery",
    "visit_scheduling",
)


class ComprehensiveRecord(BaseModel):
    """Everything learned about one user, append-only."""

    contact_info: ContactInfo = Field(default_factory=ContactInfo)
    situation_discovery: list[QAEntry] = Field(default_factory=list)
    lifestyle_discovery: list[QAEntry] = Field(default_factory=list)
    readiness_discovery: list[QAEntry] = Field(default_factory=list)
    priorities_discovery: list[QAEntry] = Field(default_factory=list)
    visit_scheduling: list[QAEntry] = Field(default_factory=list)
    last_updated: datetime = Field(default_factory=_utcnow)

    def entries_for(self, stage: DiscoveryStage) -> list[QAEntry]:
        """Return the live Q&A list backing ``stage`` (empty for untracked stages)."""
        field_name = RECORD_FIELD_FOR_STAGE.get(stage)
        if field_name is None:
            return []
        return getattr(self, field_name)

    def all_answers(self) -> list[QAEntry]:
        """Discovery answers across all question stages, in stage order."""
        entries: list[QAEntry] = []
        for stage in QUESTION_STAGES:
            entries.extend(self.entries_for(stage))
        return entries


class RecordUpdate(BaseModel):
    """Partial record payload accepted by the Record Store."""

    contact_info: Optional[ContactInfo] = None
    situation_discovery: Optional[list[QAEntry]] = None
    lifestyle_discovery: Optional[list[QAEntry]] = None
    readiness_discovery: Optional[list[QAEntry]] = None
    priorities_discovery: Optional[list[QAEntry]] = None
    visit_scheduling: Optional[list[QAEntry]] = None


class DiscoveryState(BaseModel):
    """Per-user conversation progress."""

    current_stage: DiscoveryStage = DiscoveryStage.TRUST_BUILDING
    questions_asked: list[str] = Field(default_factory=list)
    identified_needs: list[str] = Field(default_factory=list)
    concerns_shared: list[str] = Field(default_factory=list)
    ready_for_visit: bool = False
    visit_scheduled: bool = False
    confirmed_slot: Optional[str] = None
    booking_event_id: Optional[str] = None
    pending_reschedule: bool = False


class UserSession(BaseModel):
    """Everything the agent holds for one user during the process lifetime."""

    user_id: str
    user_name: Optional[str] = None
    record: ComprehensiveRecord = Field(default_factory=ComprehensiveRecord)
    discovery_state: DiscoveryState = Field(default_factory=DiscoveryState)
    transcript: list[TranscriptTurn] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_utcnow)
    last_updated: datetime = Field(default_factory=_utcnow)


class ResponseMetadata(BaseModel):
    """Metadata attached to every outbound reply."""

    stage: DiscoveryStage
    response_status: SituationStatus = SituationStatus.NORMAL
    action_name: str = "grand-villa-discovery"
    reliability: str = "guaranteed"

    def to_wire(self) -> dict[str, str]:
        return {
            "stage": self.stage.value,
            "responseStatus": self.response_status.value,
            "actionName": self.action_name,
            "reliability": self.reliability,
        }


class DiscoveryResponse(BaseModel):
    """Result of one conversation turn."""

    text: str
    metadata: ResponseMetadata


class StageReply(BaseModel):
    """What a stage handler produced: reply text plus the stage it belongs to."""

    text: str
    stage: DiscoveryStage
    status: SituationStatus = SituationStatus.NORMAL


class VisitStep(IntEnum):
    AGREEMENT = 1
    TIME = 2
    EMAIL = 3
    REFERRAL = 4
    CLOSE = 5


class VisitStepStatus(BaseModel):
    current_step: VisitStep
    is_initial: bool
