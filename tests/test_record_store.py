"""Tests for the per-user record store and its merge rules."""

import pytest

from discovery_agent.conversation.record_store import RecordStore, RecordStoreError
from discovery_agent.conversation.state_machine import (
    REQUIRED_QUESTIONS,
    InvalidTransitionError,
    TransitionTrigger,
)
from discovery_agent.conversation.visit_steps import TIME_CONFIRMATION, VISIT_AGREEMENT
from discovery_agent.schemas.discovery_schema import (
    ContactInfo,
    DiscoveryStage,
    QAEntry,
    RecordUpdate,
    VisitStep,
)

from tests.conftest import answer_stage, fill_contact

SITUATION = DiscoveryStage.SITUATION_DISCOVERY
Q = REQUIRED_QUESTIONS[SITUATION]


class BrokenRepository:
    def load(self, user_id):
        raise OSError("disk unavailable")

    def save(self, session):
        raise OSError("disk unavailable")

    def delete(self, user_id):
        raise OSError("disk unavailable")

    def all(self):
        return []


class TestSessions:
    def test_new_user_starts_in_trust_building(self, store):
        session = store.get("user-1")
        assert session.discovery_state.current_stage == DiscoveryStage.TRUST_BUILDING
        assert session.record.situation_discovery == []

    def test_get_returns_a_copy(self, store):
        session = store.get("user-1")
        session.record.contact_info.name = "Mallory"
        assert store.get_contact_info("user-1").name is None

    def test_user_name_is_kept(self, store):
        store.get("user-1", user_name="Jane Doe")
        assert store.get("user-1").user_name == "Jane Doe"
        assert store.get_user_first_name("user-1") == "Jane"

    def test_users_are_isolated(self, store):
        fill_contact(store, "user-1")
        assert store.get_contact_info("user-2").name is None

    def test_reset_session_starts_over(self, store):
        fill_contact(store, "user-1")
        store.advance_stage("user-1", TransitionTrigger.CONTACT_COMPLETE)
        session = store.reset_session("user-1")
        assert session.discovery_state.current_stage == DiscoveryStage.TRUST_BUILDING
        assert session.record.contact_info.name is None

    @pytest.mark.asyncio
    async def test_lock_is_per_user(self, store):
        async with store.lock("user-1"):
            assert "user-1" in store._locks
            async with store.lock("user-2"):
                assert "user-2" in store._locks

    @pytest.mark.asyncio
    async def test_lock_is_dropped_after_the_turn(self, store):
        async with store.lock("user-1"):
            store.reset_session("user-1")
        assert "user-1" not in store._locks
        assert len(store._locks) == 0

    def test_all_sessions(self, store):
        store.get("user-1")
        store.get("user-2")
        assert {s.user_id for s in store.all_sessions()} == {"user-1", "user-2"}


class TestQAEntries:
    def test_add_entry(self, store):
        assert store.add_qa_entry("user-1", SITUATION, Q[0], "My mom fell")
        assert store.get_answered_questions("user-1", SITUATION) == [Q[0]]

    def test_duplicate_question_is_skipped_not_replaced(self, store):
        store.add_qa_entry("user-1", SITUATION, Q[0], "first answer")
        assert not store.add_qa_entry("user-1", SITUATION, Q[0], "second answer")
        entries = store.get_record("user-1").situation_discovery
        assert len(entries) == 1
        assert entries[0].answer == "first answer"

    def test_entry_is_tagged_with_stage(self, store):
        store.add_qa_entry("user-1", SITUATION, Q[0], "answer")
        assert store.get_record("user-1").situation_discovery[0].stage == SITUATION.value

    def test_stage_without_list_is_rejected(self, store):
        with pytest.raises(RecordStoreError):
            store.add_qa_entry("user-1", DiscoveryStage.NEEDS_MATCHING, "q", "a")

    def test_all_questions_answered(self, store):
        assert not store.are_all_questions_answered("user-1", SITUATION)
        answer_stage(store, "user-1", SITUATION)
        assert store.are_all_questions_answered("user-1", SITUATION)

    def test_trust_building_counts_as_answered(self, store):
        assert store.are_all_questions_answered("user-1", DiscoveryStage.TRUST_BUILDING)


class TestUpdateRecord:
    def test_merge_is_idempotent(self, store):
        payload = {
            "situation_discovery": [
                {"question": Q[0], "answer": "She fell", "stage": SITUATION.value},
            ],
            "contact_info": {"name": "John Smith"},
        }
        store.update_record("user-1", payload)
        record = store.update_record("user-1", payload)
        assert len(record.situation_discovery) == 1
        assert record.contact_info.name == "John Smith"

    def test_duplicates_within_one_payload(self, store):
        entry = QAEntry(question=Q[0], answer="a", stage=SITUATION.value)
        record = store.update_record(
            "user-1", RecordUpdate(situation_discovery=[entry, entry.model_copy()])
        )
        assert len(record.situation_discovery) == 1

    def test_invalid_payload_raises(self, store):
        with pytest.raises(RecordStoreError):
            store.update_record("user-1", {"situation_discovery": [{"question": "q"}]})

    def test_contact_merge_ignores_nulls(self, store):
        store.update_contact_info("user-1", name="John Smith", location="Tampa, FL")
        contact = store.update_contact_info("user-1", loved_one_name="Mary")
        assert contact == ContactInfo(
            name="John Smith",
            location="Tampa, FL",
            loved_one_name="Mary",
            collected_at=contact.collected_at,
        )
        assert contact.is_complete()

    def test_contact_last_non_null_wins(self, store):
        store.update_contact_info("user-1", location="Tampa")
        contact = store.update_contact_info("user-1", location="Clearwater, FL")
        assert contact.location == "Clearwater, FL"


class TestDiscoveryState:
    def test_advance_stage(self, store):
        fill_contact(store)
        assert store.advance_stage("user-1", TransitionTrigger.CONTACT_COMPLETE) == SITUATION
        assert store.get_stage("user-1") == SITUATION

    def test_invalid_advance_keeps_stage(self, store):
        with pytest.raises(InvalidTransitionError):
            store.advance_stage("user-1", TransitionTrigger.LIFESTYLE_ANSWERED)
        assert store.get_stage("user-1") == DiscoveryStage.TRUST_BUILDING

    def test_stage_cannot_be_set_directly(self, store):
        with pytest.raises(RecordStoreError):
            store.update_discovery_state("user-1", current_stage=DiscoveryStage.SCHEDULE_VISIT)

    def test_unknown_field_rejected(self, store):
        with pytest.raises(RecordStoreError):
            store.update_discovery_state("user-1", mood="happy")

    def test_update_flags(self, store):
        state = store.update_discovery_state("user-1", ready_for_visit=True, confirmed_slot="Friday 2pm")
        assert state.ready_for_visit
        assert store.get_discovery_state("user-1").confirmed_slot == "Friday 2pm"

    def test_note_question_asked_once(self, store):
        store.note_question_asked("user-1", Q[0])
        store.note_question_asked("user-1", Q[0])
        assert store.get_discovery_state("user-1").questions_asked == [Q[0]]

    def test_restore_stage(self, store):
        store.restore_stage("user-1", DiscoveryStage.LIFESTYLE_DISCOVERY)
        assert store.get_stage("user-1") == DiscoveryStage.LIFESTYLE_DISCOVERY


class TestTranscript:
    def test_last_agent_stage(self, store):
        store.record_agent_message("user-1", "Hi", {"stage": "situation_discovery"})
        store.record_user_message("user-1", "Hello")
        assert store.last_agent_stage("user-1") == SITUATION

    def test_corrupt_stage_metadata_is_skipped(self, store):
        store.record_agent_message("user-1", "Hi", {"stage": "lifestyle_discovery"})
        store.record_agent_message("user-1", "Oops", {"stage": "not-a-stage"})
        assert store.last_agent_stage("user-1") == DiscoveryStage.LIFESTYLE_DISCOVERY

    def test_no_agent_messages(self, store):
        store.record_user_message("user-1", "Hello")
        assert store.last_agent_stage("user-1") is None


class TestVisitStepStatus:
    def test_initial_step(self, store):
        status = store.get_visit_step_status("user-1")
        assert status.current_step == VisitStep.AGREEMENT
        assert status.is_initial

    def test_step_follows_markers(self, store):
        store.add_qa_entry("user-1", DiscoveryStage.SCHEDULE_VISIT, VISIT_AGREEMENT, "yes")
        store.add_qa_entry("user-1", DiscoveryStage.SCHEDULE_VISIT, TIME_CONFIRMATION, "Friday 2pm")
        status = store.get_visit_step_status("user-1")
        assert status.current_step == VisitStep.EMAIL
        assert not status.is_initial


class TestRepositoryFailures:
    def test_load_failure_raises_store_error(self):
        store = RecordStore(repository=BrokenRepository())
        with pytest.raises(RecordStoreError):
            store.get("user-1")

    def test_clear_failure_raises_store_error(self):
        store = RecordStore(repository=BrokenRepository())
        with pytest.raises(RecordStoreError):
            store.clear_session("user-1")
