"""
Per-user record store for the discovery conversation.

Owns every ``UserSession``: the comprehensive record, the discovery state
and the message transcript. All mutations go through this class so the
merge rules hold everywhere:

- Q&A lists are append-only and never hold two entries with the same
  question (duplicates are skipped, never replaced).
- Contact fields merge last-non-null-wins.
- The stage only moves forward through the stage state machine, except
  for an explicit ``restore_stage`` or session reset.

Storage is pluggable through ``RecordRepository``; the default keeps
sessions in process memory for the lifetime of the process.

Usage:
    store = RecordStore()
    store.add_qa_entry("user-1", DiscoveryStage.SITUATION_DISCOVERY, question, answer)
    store.get_answered_questions("user-1", DiscoveryStage.SITUATION_DISCOVERY)
"""

import logging
from datetime import datetime, timezone
from typing import Any, AsyncContextManager, Optional, Protocol, Union

from pydantic import ValidationError

from discovery_agent.conversation.state_machine import (
    DiscoveryStateMachine,
    REQUIRED_QUESTIONS,
    TransitionTrigger,
)
from discovery_agent.conversation.visit_steps import visit_step_status
from discovery_agent.schemas.conversation_schema import Speaker, TranscriptTurn
from discovery_agent.schemas.discovery_schema import (
    QA_FIELDS,
    RECORD_FIELD_FOR_STAGE,
    ComprehensiveRecord,
    ContactInfo,
    DiscoveryStage,
    DiscoveryState,
    QAEntry,
    RecordUpdate,
    UserSession,
    VisitStepStatus,
)
from discovery_agent.utils import KeyedLocks

logger = logging.getLogger(__name__)

_CONTACT_FIELDS = ("name", "location", "loved_one_name")


class RecordStoreError(Exception):
    """Raised when the backing repository fails or a payload is invalid."""


class RecordRepository(Protocol):
    """Storage backend for user sessions."""

    def load(self, user_id: str) -> Optional[UserSession]: ...

    def save(self, session: UserSession) -> None: ...

    def delete(self, user_id: str) -> None: ...

    def all(self) -> list[UserSession]: ...


class InMemoryRecordRepository:
    """Process-local session storage. Lost on restart."""

    def __init__(self) -> None:
        self._sessions: dict[str, UserSession] = {}

    def load(self, user_id: str) -> Optional[UserSession]:
        return self._sessions.get(user_id)

    def save(self, session: UserSession) -> None:
        self._sessions[session.user_id] = session

    def delete(self, user_id: str) -> None:
        self._sessions.pop(user_id, None)

    def all(self) -> list[UserSession]:
        return list(self._sessions.values())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RecordStore:
    """Validated, merge-only access to user sessions."""

    def __init__(self, repository: Optional[RecordRepository] = None) -> None:
        self._repo: RecordRepository = repository if repository is not None else InMemoryRecordRepository()
        self._locks = KeyedLocks()

    # ------------------------------------------------------------------ #
    # Session access
    # ------------------------------------------------------------------ #

    def _load(self, user_id: str, user_name: Optional[str] = None) -> UserSession:
        try:
            session = self._repo.load(user_id)
        except Exception as exc:
            raise RecordStoreError(f"Failed to load session for {user_id!r}: {exc}") from exc

        if session is None:
            session = UserSession(user_id=user_id, user_name=user_name)
            self._save(session)
            logger.info("Created new discovery session for user %s", user_id)
        elif user_name and not session.user_name:
            session.user_name = user_name
        return session

    def _save(self, session: UserSession) -> None:
        session.last_updated = _utcnow()
        try:
            self._repo.save(session)
        except Exception as exc:
            raise RecordStoreError(
                f"Failed to save session for {session.user_id!r}: {exc}"
            ) from exc

    def get(self, user_id: str, user_name: Optional[str] = None) -> UserSession:
        """Return a copy of the user's session, creating it on first use."""
        return self._load(user_id, user_name).model_copy(deep=True)

    def get_record(self, user_id: str) -> ComprehensiveRecord:
        return self._load(user_id).record.model_copy(deep=True)

    def all_sessions(self) -> list[UserSession]:
        return [session.model_copy(deep=True) for session in self._repo.all()]

    def lock(self, user_id: str) -> AsyncContextManager[None]:
        """Serialize turns for one user. Released locks are not retained."""
        return self._locks.hold(user_id)

    def clear_session(self, user_id: str) -> None:
        try:
            self._repo.delete(user_id)
        except Exception as exc:
            raise RecordStoreError(f"Failed to delete session for {user_id!r}: {exc}") from exc
        logger.info("Cleared discovery session for user %s", user_id)

    def reset_session(self, user_id: str) -> UserSession:
        """Drop everything known about the user and start over at trust building."""
        self.clear_session(user_id)
        return self.get(user_id)

    # ------------------------------------------------------------------ #
    # Comprehensive record
    # ------------------------------------------------------------------ #

    def update_record(
        self, user_id: str, partial: Union[RecordUpdate, dict[str, Any]]
    ) -> ComprehensiveRecord:
        """Merge a partial record into the user's record.

        New Q&A entries are appended unless an entry with the same question
        already exists (in the record or earlier in the same payload).
        Contact fields are overwritten only by non-null values. Applying
        the same payload twice leaves the record unchanged.
        """
        try:
            update = partial if isinstance(partial, RecordUpdate) else RecordUpdate.model_validate(partial)
        except ValidationError as exc:
            raise RecordStoreError(f"Invalid record update for {user_id!r}: {exc}") from exc

        session = self._load(user_id)
        record = session.record

        if update.contact_info is not None:
            self._merge_contact(record.contact_info, update.contact_info)

        for field_name in QA_FIELDS:
            incoming: Optional[list[QAEntry]] = getattr(update, field_name)
            if not incoming:
                continue
            existing: list[QAEntry] = getattr(record, field_name)
            seen = {entry.question for entry in existing}
            for entry in incoming:
                if entry.question in seen:
                    logger.debug("Skipping duplicate %s entry: %s", field_name, entry.question)
                    continue
                existing.append(entry)
                seen.add(entry.question)

        record.last_updated = _utcnow()
        self._save(session)
        return record.model_copy(deep=True)

    def add_qa_entry(
        self, user_id: str, stage: DiscoveryStage, question: str, answer: str
    ) -> bool:
        """Append one answer to the stage's Q&A list. Returns False on duplicate."""
        field_name = RECORD_FIELD_FOR_STAGE.get(stage)
        if field_name is None:
            raise RecordStoreError(f"Stage {stage.value!r} does not hold Q&A entries")

        session = self._load(user_id)
        entries: list[QAEntry] = getattr(session.record, field_name)
        if any(entry.question == question for entry in entries):
            logger.debug("Question already answered in %s: %s", stage.value, question)
            return False

        entries.append(QAEntry(question=question, answer=answer, stage=stage.value))
        session.record.last_updated = _utcnow()
        self._save(session)
        return True

    def get_answered_questions(self, user_id: str, stage: DiscoveryStage) -> list[str]:
        return [entry.question for entry in self._load(user_id).record.entries_for(stage)]

    def are_all_questions_answered(self, user_id: str, stage: DiscoveryStage) -> bool:
        answered = set(self.get_answered_questions(user_id, stage))
        return all(q in answered for q in REQUIRED_QUESTIONS.get(stage, []))

    def get_visit_step_status(self, user_id: str) -> VisitStepStatus:
        return visit_step_status(self._load(user_id).record.visit_scheduling)

    # ------------------------------------------------------------------ #
    # Contact info
    # ------------------------------------------------------------------ #

    @staticmethod
    def _merge_contact(target: ContactInfo, incoming: ContactInfo) -> bool:
        changed = False
        for attr in _CONTACT_FIELDS:
            value = getattr(incoming, attr)
            if value:
                if getattr(target, attr) != value:
                    changed = True
                setattr(target, attr, value)
        if changed:
            target.collected_at = _utcnow()
        return changed

    def get_contact_info(self, user_id: str) -> ContactInfo:
        return self._load(user_id).record.contact_info.model_copy()

    def update_contact_info(
        self,
        user_id: str,
        name: Optional[str] = None,
        location: Optional[str] = None,
        loved_one_name: Optional[str] = None,
    ) -> ContactInfo:
        incoming = ContactInfo(name=name, location=location, loved_one_name=loved_one_name)
        record = self.update_record(user_id, RecordUpdate(contact_info=incoming))
        return record.contact_info

    def get_user_first_name(self, user_id: str) -> str:
        session = self._load(user_id)
        full_name = session.record.contact_info.name or session.user_name or ""
        parts = full_name.split()
        return parts[0] if parts else ""

    # ------------------------------------------------------------------ #
    # Discovery state
    # ------------------------------------------------------------------ #

    def get_discovery_state(self, user_id: str) -> DiscoveryState:
        return self._load(user_id).discovery_state.model_copy(deep=True)

    def get_stage(self, user_id: str) -> DiscoveryStage:
        return self._load(user_id).discovery_state.current_stage

    def update_discovery_state(self, user_id: str, **changes: Any) -> DiscoveryState:
        """Update auxiliary state flags. The stage is changed only via advance/restore."""
        if "current_stage" in changes:
            raise RecordStoreError("current_stage must be changed with advance_stage")
        session = self._load(user_id)
        state = session.discovery_state
        for key, value in changes.items():
            if key not in DiscoveryState.model_fields:
                raise RecordStoreError(f"Unknown discovery state field: {key!r}")
            setattr(state, key, value)
        self._save(session)
        return state.model_copy(deep=True)

    def note_question_asked(self, user_id: str, question: str) -> None:
        session = self._load(user_id)
        asked = session.discovery_state.questions_asked
        if question not in asked:
            asked.append(question)
            self._save(session)

    def advance_stage(self, user_id: str, trigger: TransitionTrigger) -> DiscoveryStage:
        """Move the user one stage forward.

        Raises:
            InvalidTransitionError: If ``trigger`` does not complete the current stage.
        """
        session = self._load(user_id)
        machine = DiscoveryStateMachine(initial=session.discovery_state.current_stage)
        new_stage = machine.transition(trigger)
        session.discovery_state.current_stage = new_stage
        self._save(session)
        logger.info("User %s advanced to stage %s", user_id, new_stage.value)
        return new_stage

    def restore_stage(self, user_id: str, stage: DiscoveryStage) -> None:
        """Force the stored stage, used when recovering from outbound metadata."""
        session = self._load(user_id)
        previous = session.discovery_state.current_stage
        if previous == stage:
            return
        session.discovery_state.current_stage = stage
        self._save(session)
        logger.warning(
            "Restored stage for user %s: %s -> %s", user_id, previous.value, stage.value
        )

    # ------------------------------------------------------------------ #
    # Transcript
    # ------------------------------------------------------------------ #

    def record_user_message(self, user_id: str, text: str) -> None:
        session = self._load(user_id)
        session.transcript.append(TranscriptTurn(speaker=Speaker.USER, text=text))
        self._save(session)

    def record_agent_message(
        self, user_id: str, text: str, metadata: Optional[dict[str, Any]] = None
    ) -> None:
        session = self._load(user_id)
        session.transcript.append(
            TranscriptTurn(speaker=Speaker.AGENT, text=text, metadata=metadata)
        )
        self._save(session)

    def last_agent_stage(self, user_id: str) -> Optional[DiscoveryStage]:
        """Stage carried by the most recent agent message that has one."""
        for turn in reversed(self._load(user_id).transcript):
            if turn.speaker != Speaker.AGENT or not turn.metadata:
                continue
            stage = DiscoveryStage.parse(turn.metadata.get("stage"))
            if stage is not None:
                return stage
        return None
