"""Visit booking request and result models."""

from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class BookingRequest(BaseModel):
    """Body sent to the scheduling service's /schedule endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    email: str
    label: Optional[str] = None
    start_iso: Optional[str] = Field(default=None, alias="startIso")
    tz: str
    room_id: str = Field(alias="roomId")
    agent_id: str = Field(alias="agentId")
    duration_min: int = Field(default=60, alias="durationMin")
    create_meet: bool = Field(default=False, alias="createMeet")
    summary: str
    location: str
    external_key: str = Field(alias="externalKey")


class BookingSuccess(BaseModel):
    """Confirmed calendar event. Extra server fields are kept."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    ok: Literal[True] = True
    event_id: Optional[str] = Field(default=None, alias="eventId")
    html_link: Optional[str] = Field(default=None, alias="htmlLink")
    start_iso: Optional[str] = Field(default=None, alias="startIso")
    when_text: Optional[str] = Field(default=None, alias="whenText")


class BookingFailure(BaseModel):
    ok: Literal[False] = False
    error: str
    status_code: Optional[int] = None
    data: Optional[Any] = None

    @property
    def is_conflict(self) -> bool:
        return self.error == "conflict"

    @property
    def is_network_error(self) -> bool:
        return self.error == "network_error"


BookingResult = Union[BookingSuccess, BookingFailure]
