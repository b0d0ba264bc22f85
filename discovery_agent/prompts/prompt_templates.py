"""Dynamic prompt construction for classification, extraction and replies."""

from typing import Optional

from discovery_agent.config import settings
from discovery_agent.schemas.discovery_schema import ContactInfo, SituationStatus

_biz = settings.business


def build_classification_prompt(message: str) -> str:
    return f"""Analyze the user's message and classify the situation.

User message: "{message}"

Classify as "Unexpected situation" if the message contains any of:
- A question or curiosity about something
- A worry that relates to the {_biz.facility_name} community
- Phrases like "I'd like to know", "tell me", "can you explain", "curious about"
- Requests for details about pricing, services, amenities, locations or policies
- Frustration, confusion or complaints about pacing ("too many questions",
  "when can I get information?")
- Sharing the loved one's likes, interests, hobbies or activities they enjoy
  or used to do

Otherwise, classify as "Normal situation".

Return ONLY a JSON object:
{{"status": "Normal situation" or "Unexpected situation"}}"""


def build_contact_extraction_prompt(message: str, existing: Optional[ContactInfo] = None) -> str:
    known = ""
    if existing is not None:
        known = (
            f"\nWe may already have some info - Name: {existing.name or 'none'}, "
            f"Location: {existing.location or 'none'}, "
            f"Loved One: {existing.loved_one_name or 'none'}\n"
        )
    return f"""Extract the user's information from this message: "{message}"

Look for:
- The user's name
- Their location (city, state, or zip code)
- The name of the loved one they are seeking senior living for (could be
  "my mom", "my father", "John", "Mary", etc.)
{known}
Return this exact JSON format:
{{
    "name": "user's name or null",
    "location": "city, state, or zip code or null",
    "loved_one_name": "loved one's name or null",
    "foundName": true/false,
    "foundLocation": true/false,
    "foundLovedOneName": true/false
}}

Return ONLY valid JSON, no additional text."""


def build_agreement_prompt(message: str) -> str:
    return f"""Analyze the following user response: "{message}"

Task: Determine if the user has AGREED to schedule or attend a visit to the community.

Rules:
- Agreement = clear confirmation ("yes", "sure", "okay", "interested", "sounds good",
  "I'd like to visit") or practical questions about the visit such as time or place.
- Partial agreement = positive but uncertain ("maybe", "I'll think about it",
  "need more info"). Treat this as not agreed.
- Decline = clear rejection ("no", "not interested", "can't").
- If unclear, default to {{"agreed": true}}.

Output:
- If agreed, acknowledge briefly in under 30 words without proposing a time.
- If not agreed, return a natural response to the user's message without suggesting a time.

Return ONLY a JSON object in this format:
{{"agreed": true/false, "response": "your natural response here"}}"""


def build_time_analysis_prompt(message: str, proposed_slot: str) -> str:
    return f"""Analyze this response about scheduling a visit for {proposed_slot}: "{message}"

Rules:
- Confirmed = clear acceptance ("yes, that works", "sounds good", "{proposed_slot} is fine").
- Alternative = any mention of a different date or time; put it in alternative_time.
- Rejected = "no", "can't", "doesn't work", without giving an alternative.
- If unclear: {{"confirmed": false, "rejected": false, "alternative_time": null}}.

Output JSON only:
{{"confirmed": true/false, "rejected": true/false, "alternative_time": "string or null", "reasoning": "brief reasoning"}}"""


def build_email_extraction_prompt(message: str) -> str:
    return f"""Analyze the following user response: "{message}"

Task: Extract a valid email address if provided, even if it is written
informally (e.g., "john dot doe at gmail dot com").

Output JSON only:
{{"email": "normalized email string or null", "reasoning": "short explanation"}}"""


def build_contact_request_prompt(message: str, missing: list[str], contact: ContactInfo) -> str:
    known = ", ".join(
        f"{label}: {value}"
        for label, value in [
            ("name", contact.name),
            ("location", contact.location),
            ("loved one", contact.loved_one_name),
        ]
        if value
    )
    return f"""This is the start of the conversation. The user said: "{message}"

What we know so far: {known or "nothing yet"}
Still missing: {", ".join(missing)}

Write a short, warm reply (under 40 words) that builds trust, briefly
responds to what they said, and asks for the missing details in one
natural sentence. Do not list facts about the community yet.

Return only the reply text."""


def build_contextual_prompt(
    stage: str,
    message: str,
    status: SituationStatus,
    next_question: str,
    user_name: str,
    loved_one_name: str,
    community: str,
    facility_info: str,
    previous_answers: str,
    answered_count: int,
    total_questions: int,
    use_name: bool,
) -> str:
    is_first = answered_count == 0
    address = (
        f"- Address the user as {user_name} naturally."
        if use_name and user_name
        else "- Do not use the user's name in this reply."
    )
    header = f"""The user {f"({user_name}) " if user_name else ""}is in the {stage} stage of our senior living discovery process.

Progress: {answered_count}/{total_questions} questions answered so far.
{f"Previous answers: {previous_answers}" if previous_answers else ""}
User's last message: "{message}"
Situation classification: "{status.value}"
Next question to ask: "{next_question}"
Is this the first question of the stage: {is_first}
"""
    if status is SituationStatus.NORMAL:
        instructions = f"""
- Stay warm and personal.
{address}
- Refer to their loved one as {loved_one_name or "their loved one"}.
- Smoothly introduce "{next_question}" so it feels like part of a conversation.
- Keep it under 30-40 words.
"""
    else:
        connect = (
            f'After answering, naturally introduce "{next_question}" to begin this stage.'
            if is_first
            else f'Smoothly connect back to "{next_question}".'
        )
        instructions = f"""
- If the message contains a question or curiosity, answer it clearly using
  this community information: "{facility_info}".
- If the message suggests the loved one would be a good fit (preferences,
  needs, lifestyle or interests), tie those to specific services, programs or
  amenities from the community information.
- Never share pricing unless the user directly asks about pricing.
- For a pricing question, share only the pricing for {community}, the community
  nearest the user, mention that pricing depends on the level of care, and
  suggest visiting in person for the most accurate picture.
- If the user complains about too many questions or timing, empathize, explain
  why these questions help, and lighten the mood.
{address}
- {connect}
- Keep it around 50-70 words.
"""
    return f"{header}\nRESPONSE INSTRUCTIONS:{instructions}\nReturn ONLY the response text, no JSON."


def build_needs_matching_prompt(
    all_answers: str,
    user_name: str,
    loved_one_name: str,
    location: str,
    nearest_community: str,
    facility_info: str,
) -> str:
    return f"""The user {f"({user_name}) " if user_name else ""}has shared information about their situation and {loved_one_name}'s needs.

All previous answers: "{all_answers}"
User location: "{location}"
Nearest community: "{nearest_community}"

Your task:
1. Identify the concern, preference or need that matters most for {loved_one_name}.
2. From this community information, pick the most relevant specific feature,
   service or activity that addresses it: "{facility_info}"
3. Write one empathetic reply that starts with "Since you mentioned...",
   recaps the concern, highlights the matching feature, and ties it explicitly
   to {nearest_community} by name.
4. Keep it warm and under 60-90 words.

Return ONLY the response text."""


def build_encouraging_visit_prompt(
    message: str,
    user_name: str,
    loved_one_name: str,
    facility_info: str,
    all_answers: str,
) -> str:
    return f"""The user ({user_name or "the guest"}) just responded: "{message}" but hasn't agreed to visit yet.
Conversation so far: {all_answers}

Your reply must:
1. Acknowledge their latest message naturally.
2. Connect to one of their past concerns, curiosities or likes.
3. Explain briefly why visiting in person (community information: "{facility_info}")
   would help them explore that point.
4. Invite them to come see it for {loved_one_name or "their loved one"}, framed as the
   best way to know if it's the right fit.
5. Stay under 50 words. No greetings.

Return only the final reply."""


def build_time_rejected_prompt(message: str, loved_one_name: str, facility_info: str) -> str:
    return f"""The user said: "{message}" and declined {_biz.default_visit_slot} without suggesting another time.
- Respond with empathy.
- Mention one helpful detail from the community information: "{facility_info}".
- Encourage them to pick another day and time for {loved_one_name or "their loved one"}.
- Under 50 words.
Return only the response."""


def build_email_reask_prompt(message: str) -> str:
    return f"""The user responded: "{message}" but didn't provide a valid email.
Write a warm, polite reply asking for their email so we can send the visit
confirmation. Under 40 words. Return only the reply."""


def build_referral_closing_prompt(
    message: str, user_name: str, loved_one_name: str, when_text: str
) -> str:
    return f"""The user just told us how they heard about {_biz.facility_name}: "{message}"
The user's name is {user_name or "the guest"} and their loved one is {loved_one_name or "their loved one"}.

Write a warm final message that:
1. Acknowledges how they heard about us.
2. Mentions the community team will show them around and answer questions about
   care levels and pricing during the visit.
3. Thanks them for trusting you with this important decision.
4. Says you look forward to seeing them {when_text}.
5. Stays under 60 words.

Return only the message text."""


def build_closing_prompt(
    message: str, user_name: str, loved_one_name: str, facility_info: str
) -> str:
    return f"""The user responded: "{message}"
The visit is already scheduled. Their name is {user_name or "the guest"} and their loved one is {loved_one_name or "their loved one"}.
Community information: {facility_info}

Give a warm, supportive reply. Answer any question about the visit or the
community. No greetings. Under 50 words.

Return only the response text."""
