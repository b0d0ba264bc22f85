"""Structured outputs expected from classification and extraction calls.

Every model has safe defaults so a partially filled or malformed payload
still validates into something the conversation can act on.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator

from discovery_agent.schemas.discovery_schema import SituationStatus


class ClassificationResult(BaseModel):
    model_config = ConfigDict(extra="ignore")

    status: SituationStatus = SituationStatus.NORMAL

    @field_validator("status", mode="before")
    @classmethod
    def _coerce_status(cls, value):
        if isinstance(value, str) and "unexpected" in value.lower():
            return SituationStatus.UNEXPECTED
        return SituationStatus.NORMAL


class ContactExtraction(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: Optional[str] = None
    location: Optional[str] = None
    loved_one_name: Optional[str] = None
    foundName: bool = False
    foundLocation: bool = False
    foundLovedOneName: bool = False

    @field_validator("name", "location", "loved_one_name", mode="before")
    @classmethod
    def _blank_to_none(cls, value):
        if value is None:
            return None
        text = str(value).strip()
        if not text or text.lower() in ("null", "none", "n/a", "unknown"):
            return None
        return text


class AgreementAnalysis(BaseModel):
    model_config = ConfigDict(extra="ignore")

    agreed: bool = True
    response: str = ""


class TimeAnalysis(BaseModel):
    model_config = ConfigDict(extra="ignore")

    confirmed: bool = False
    rejected: bool = False
    alternative_time: Optional[str] = None
    reasoning: str = ""

    @field_validator("alternative_time", mode="before")
    @classmethod
    def _blank_to_none(cls, value):
        if value is None:
            return None
        text = str(value).strip()
        return text if text and text.lower() != "null" else None


class EmailAnalysis(BaseModel):
    model_config = ConfigDict(extra="ignore")

    email: Optional[str] = None
    reasoning: str = ""
