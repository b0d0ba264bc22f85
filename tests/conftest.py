"""Shared test fixtures and helpers."""

import json
import random
from typing import Any, Callable, Optional

import httpx
import pytest

from discovery_agent.agents.orchestrator import DiscoveryOrchestrator
from discovery_agent.conversation.record_store import RecordStore
from discovery_agent.conversation.state_machine import (
    REQUIRED_QUESTIONS,
    DiscoveryStateMachine,
    trigger_for,
)
from discovery_agent.prompts.system_prompts import (
    AGREEMENT_SYSTEM_PROMPT,
    CLASSIFIER_SYSTEM_PROMPT,
    CONTACT_EXTRACTION_SYSTEM_PROMPT,
    EMAIL_EXTRACTION_SYSTEM_PROMPT,
    GUIDE_SYSTEM_PROMPT,
    TIME_ANALYSIS_SYSTEM_PROMPT,
)
from discovery_agent.schemas.discovery_schema import QUESTION_STAGES, STAGE_ORDER, DiscoveryStage
from discovery_agent.tools.booking import BookingClient
from discovery_agent.tools.llm_client import GenerationError, LLMClient
from discovery_agent.tools.record_export import RecordExporter

CLASSIFY = CLASSIFIER_SYSTEM_PROMPT
CONTACT = CONTACT_EXTRACTION_SYSTEM_PROMPT
AGREEMENT = AGREEMENT_SYSTEM_PROMPT
TIME = TIME_ANALYSIS_SYSTEM_PROMPT
EMAIL = EMAIL_EXTRACTION_SYSTEM_PROMPT


class FakeLLM(LLMClient):
    """Scripted stand-in for the chat model.

    Structured calls are answered from ``structured`` by system prompt;
    guide replies come from ``reply_fn`` (default: ``reply_text``).
    """

    def __init__(self) -> None:
        super().__init__(api_key="test-key")
        self.calls: list[list[dict[str, str]]] = []
        self.structured: dict[str, Any] = {
            CLASSIFY: {"status": "Normal situation"},
            CONTACT: {"name": None, "location": None, "loved_one_name": None},
            AGREEMENT: {"agreed": True, "response": "Wonderful!"},
            TIME: {"confirmed": True, "rejected": False, "alternative_time": None},
            EMAIL: {"email": None, "reasoning": "none given"},
        }
        self.reply_text = "Scripted reply."
        self.reply_fn: Optional[Callable[[str], str]] = None
        self.fail_all = False
        self.fail_replies = False

    async def generate(self, messages, model=None, max_tokens=None, temperature=None) -> str:
        self.calls.append(messages)
        system = messages[0]["content"]
        if self.fail_all or (self.fail_replies and system == GUIDE_SYSTEM_PROMPT):
            raise GenerationError("scripted failure")
        if system in self.structured:
            value = self.structured[system]
            return value if isinstance(value, str) else json.dumps(value)
        if self.reply_fn is not None:
            return self.reply_fn(messages[-1]["content"])
        return self.reply_text

    def set_contact(self, name=None, location=None, loved_one_name=None) -> None:
        self.structured[CONTACT] = {
            "name": name,
            "location": location,
            "loved_one_name": loved_one_name,
        }

    def set_status(self, status: str) -> None:
        self.structured[CLASSIFY] = {"status": status}

    def calls_for(self, system: str) -> list[list[dict[str, str]]]:
        return [call for call in self.calls if call[0]["content"] == system]

    def last_prompt(self, system: str = GUIDE_SYSTEM_PROMPT) -> str:
        return self.calls_for(system)[-1][-1]["content"]


class FakeScheduler:
    """In-memory scheduling service behind an ``httpx.MockTransport``."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.booked_keys: set[str] = set()
        self.status_code = 200
        self.error_body: Optional[dict] = None
        self.unreachable = False
        self.exports: list[dict] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.unreachable:
            raise httpx.ConnectError("connection refused", request=request)

        payload = json.loads(request.content)
        if request.url.path == "/email/comprehensive-records":
            self.exports.append(payload)
            return httpx.Response(200, json={"ok": True})

        if self.status_code != 200:
            return httpx.Response(self.status_code, json=self.error_body or {})

        key = request.headers["Idempotency-Key"]
        if key in self.booked_keys:
            return httpx.Response(409, json={"ok": False, "error": "duplicate"})
        self.booked_keys.add(key)
        return httpx.Response(200, json={
            "ok": True,
            "eventId": f"evt-{len(self.booked_keys)}",
            "htmlLink": "https://calendar.example.com/event",
            "startIso": payload.get("startIso"),
            "whenText": "Wednesday at 5:00 PM",
        })

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    @property
    def schedule_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path == "/schedule"]


@pytest.fixture
def state_machine():
    return DiscoveryStateMachine()


@pytest.fixture
def store():
    return RecordStore()


@pytest.fixture
def fake_llm():
    return FakeLLM()


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def booking_client(scheduler):
    return BookingClient(base_url="http://scheduler.test", transport=scheduler.transport)


@pytest.fixture
def orchestrator(store, fake_llm, scheduler, booking_client):
    exporter = RecordExporter(base_url="http://scheduler.test", transport=scheduler.transport)
    return DiscoveryOrchestrator(
        store=store,
        llm=fake_llm,
        booking=booking_client,
        exporter=exporter,
        rng=random.Random(7),
    )


def fill_contact(store: RecordStore, user_id: str = "user-1") -> None:
    """Give a user complete contact details."""
    store.update_contact_info(
        user_id, name="John Smith", location="Tampa, FL", loved_one_name="Mary"
    )


def answer_stage(store: RecordStore, user_id: str, stage: DiscoveryStage) -> None:
    """Record an answer for every required question of ``stage``."""
    for i, question in enumerate(REQUIRED_QUESTIONS[stage]):
        store.add_qa_entry(user_id, stage, question, f"answer {i}")


def move_to_stage(store: RecordStore, user_id: str, stage: DiscoveryStage) -> None:
    """Advance a fresh user to ``stage`` with all earlier stages complete."""
    fill_contact(store, user_id)
    for current in STAGE_ORDER[:STAGE_ORDER.index(stage)]:
        if current in QUESTION_STAGES:
            answer_stage(store, user_id, current)
        store.advance_stage(user_id, trigger_for(current))
