"""Tests for guide replies, their fallbacks and the community catalogue."""

import random

import pytest

from discovery_agent.agents.response_generator import ResponseGenerator
from discovery_agent.prompts.system_prompts import GUIDE_SYSTEM_PROMPT
from discovery_agent.schemas.discovery_schema import (
    ComprehensiveRecord,
    ContactInfo,
    DiscoveryStage,
    SituationStatus,
)
from discovery_agent.tools.facility import LOCATIONS, facility_info, format_pricing, nearest_location

CONTACT = ContactInfo(name="John Smith", location="Tampa, FL", loved_one_name="Mary")
QUESTION = "What's your biggest concern about your loved one right now?"


def contextual_kwargs(status=SituationStatus.NORMAL):
    return dict(
        stage=DiscoveryStage.SITUATION_DISCOVERY,
        message="She fell",
        status=status,
        next_question=QUESTION,
        contact=CONTACT,
        previous_answers="",
        answered_count=1,
        total_questions=4,
    )


class TestContextualReply:
    @pytest.mark.asyncio
    async def test_uses_guide_persona(self, fake_llm):
        responder = ResponseGenerator(fake_llm, rng=random.Random(1))
        assert await responder.contextual_reply(**contextual_kwargs()) == "Scripted reply."
        assert fake_llm.calls[-1][0]["content"] == GUIDE_SYSTEM_PROMPT

    @pytest.mark.asyncio
    async def test_fallback_restates_question(self, fake_llm):
        fake_llm.fail_all = True
        responder = ResponseGenerator(fake_llm)
        assert await responder.contextual_reply(**contextual_kwargs()) == f"John, {QUESTION}"

    @pytest.mark.asyncio
    async def test_fallback_without_name(self, fake_llm):
        fake_llm.fail_all = True
        kwargs = contextual_kwargs()
        kwargs["contact"] = ContactInfo()
        assert await ResponseGenerator(fake_llm).contextual_reply(**kwargs) == QUESTION

    @pytest.mark.asyncio
    async def test_normal_prompt_omits_pricing(self, fake_llm):
        await ResponseGenerator(fake_llm).contextual_reply(**contextual_kwargs())
        assert "$3,934" not in fake_llm.last_prompt()

    @pytest.mark.asyncio
    async def test_unexpected_prompt_carries_community_info(self, fake_llm):
        await ResponseGenerator(fake_llm).contextual_reply(
            **contextual_kwargs(SituationStatus.UNEXPECTED)
        )
        prompt = fake_llm.last_prompt()
        assert "$3,934" in prompt
        assert f'Smoothly connect back to "{QUESTION}"' in prompt

    @pytest.mark.asyncio
    async def test_pricing_is_scoped_to_nearest_community(self, fake_llm):
        kwargs = contextual_kwargs(SituationStatus.UNEXPECTED)
        kwargs["contact"] = ContactInfo(name="Ann", location="Winter Haven", loved_one_name="Joe")
        await ResponseGenerator(fake_llm).contextual_reply(**kwargs)
        prompt = fake_llm.last_prompt()
        assert "share only the pricing for Grand Villa of Lakeland" in prompt
        assert "$3,800" in prompt
        assert "$3,934" not in prompt
        assert "Grand Villa of Englewood" not in prompt

    @pytest.mark.asyncio
    async def test_name_usage_follows_probability(self, fake_llm):
        class AlwaysLow(random.Random):
            def random(self):
                return 0.0

        await ResponseGenerator(fake_llm, rng=AlwaysLow()).contextual_reply(**contextual_kwargs())
        assert "Address the user as John" in fake_llm.last_prompt()


class TestOtherReplies:
    @pytest.mark.asyncio
    async def test_needs_matching_fallback_names_community(self, fake_llm):
        fake_llm.fail_all = True
        record = ComprehensiveRecord(contact_info=CONTACT)
        text = await ResponseGenerator(fake_llm).needs_matching_reply(record)
        assert text.startswith("John, based on everything you've shared about Mary")
        assert "Grand Villa of Clearwater" in text

    @pytest.mark.asyncio
    async def test_contact_request_fallback_lists_missing(self, fake_llm):
        fake_llm.fail_all = True
        text = await ResponseGenerator(fake_llm).contact_request_reply(
            "Hi", ContactInfo(name="John")
        )
        assert text.endswith("could you share your location, and your loved one's name?")

    @pytest.mark.asyncio
    async def test_email_reask_fallback(self, fake_llm):
        fake_llm.fail_all = True
        text = await ResponseGenerator(fake_llm).email_reask_reply("no")
        assert "email address" in text


class TestFacility:
    def test_tampa_maps_to_clearwater(self):
        assert nearest_location("Tampa, FL")["name"] == "Grand Villa of Clearwater"

    def test_direct_match(self):
        assert nearest_location("Lakeland")["name"] == LOCATIONS["lakeland"]["name"]

    def test_unknown_location_defaults(self):
        assert nearest_location("Anchorage, AK") is LOCATIONS["clearwater"]
        assert nearest_location(None) is LOCATIONS["clearwater"]

    def test_pricing_lines(self):
        text = format_pricing(LOCATIONS["clearwater"])
        assert text.splitlines()[0] == "- Grand Villa of Clearwater"
        assert "Semi-private: from $3,934/mo" in text

    def test_facility_info_covers_all_locations(self):
        info = facility_info()
        for location in LOCATIONS.values():
            assert location["name"] in info

    def test_facility_info_for_one_location(self):
        info = facility_info(LOCATIONS["deland"])
        assert "- Grand Villa of DeLand" in info
        assert "Grand Villa of Clearwater" not in info
