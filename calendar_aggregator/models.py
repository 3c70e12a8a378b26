"""Data models for feed sources, cron jobs and produced occurrences."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, model_validator

from .url_guard import is_url_safe

DEFAULT_SOURCE_COLOR = "#58a6ff"
CRON_EVENT_COLOR = "#f0883e"
CRON_SOURCE_NAME = "Cron Jobs"
MAX_CRON_DESCRIPTION_LENGTH = 200
MAX_SOURCE_NAME_LENGTH = 100
COLOR_PATTERN = r"^#[0-9a-fA-F]{6}$"


class SourceKind(str, Enum):
    """Supported feed source kinds."""

    ICAL = "ical"
    CRON = "cron"


class FeedSource(BaseModel):
    """A configured calendar source, read from the source store."""

    id: str = Field(..., description="Opaque source identity")
    name: str = Field(default="Untitled", description="Display name")
    url: str = Field(default="", description="Feed URL (empty for cron sources)")
    color: str = Field(default=DEFAULT_SOURCE_COLOR, description="Display color")
    enabled: bool = Field(default=True, description="Whether the source is queried")
    type: SourceKind = Field(default=SourceKind.ICAL, description="Source kind")

    model_config = ConfigDict(use_enum_values=True, extra="ignore")

    @property
    def is_fetchable(self) -> bool:
        """Check if this source should be fetched as a calendar feed."""
        return bool(self.enabled and self.type == SourceKind.ICAL.value and self.url)


class SourceChanges(BaseModel):
    """Caller supplied fields for creating or updating a FeedSource.

    Unset fields are left untouched on update. A URL is checked against the
    URL guard unless the change marks the source as a cron source.
    """

    name: Optional[str] = Field(default=None, max_length=MAX_SOURCE_NAME_LENGTH)
    url: Optional[str] = None
    color: Optional[str] = Field(default=None, pattern=COLOR_PATTERN)
    enabled: Optional[bool] = None
    type: Optional[SourceKind] = None

    model_config = ConfigDict(use_enum_values=True, extra="ignore")

    @model_validator(mode="after")
    def check_url_allowed(self) -> "SourceChanges":
        """Reject feed URLs the fetcher would refuse."""
        if self.url and self.type != SourceKind.CRON.value and not is_url_safe(self.url):
            raise ValueError("url must be a valid https:// URL (no private/local addresses)")
        return self


class CronSchedule(BaseModel):
    """Schedule block of a cron job."""

    kind: str = Field(default="cron", description="Schedule kind")
    expr: str = Field(default="", description="Five-field cron expression")
    tz: Optional[str] = Field(default=None, description="Time zone label (not used for expansion)")

    model_config = ConfigDict(extra="ignore")


class CronJob(BaseModel):
    """A locally defined recurring job, read from the job store."""

    id: str = Field(..., description="Job identity")
    name: str = Field(default="", description="Display name")
    enabled: bool = Field(default=False, description="Whether the job is active")
    schedule: Optional[CronSchedule] = Field(default=None, description="Job schedule")
    payload: Optional[dict[str, Any]] = Field(default=None, description="Job payload")

    model_config = ConfigDict(extra="ignore")

    @property
    def has_cron_schedule(self) -> bool:
        """Check if the job is enabled and scheduled with a cron expression."""
        return bool(self.enabled and self.schedule is not None and self.schedule.kind == "cron")

    def description_text(self) -> str:
        """Return the payload message used as occurrence description."""
        if not self.payload:
            return ""
        message = self.payload.get("message")
        if not isinstance(message, str):
            return ""
        return message[:MAX_CRON_DESCRIPTION_LENGTH]


class Occurrence(BaseModel):
    """One concrete event instance returned to callers."""

    id: str = Field(..., description="Deterministic occurrence id")
    title: str = Field(..., description="Event title")
    start: datetime = Field(..., description="Occurrence start")
    end: datetime = Field(..., description="Occurrence end")
    all_day: bool = Field(default=False, alias="allDay", description="All-day flag")
    color: str = Field(default=DEFAULT_SOURCE_COLOR, description="Source color")
    source: str = Field(default="", description="Source display name")
    description: str = Field(default="", description="Event description")
    location: str = Field(default="", description="Event location")

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @model_validator(mode="after")
    def check_end_not_before_start(self) -> "Occurrence":
        """Reject occurrences that end before they start."""
        if self.end < self.start:
            raise ValueError("occurrence end precedes start")
        return self

    @field_serializer("start", "end")
    def serialize_datetime(self, dt: datetime) -> str:
        """Serialize datetime to ISO format."""
        return dt.isoformat()

    def to_dict(self) -> dict[str, Any]:
        """Return the wire representation (camelCase ``allDay``, ISO timestamps)."""
        return self.model_dump(by_alias=True)


@dataclass
class FeedEvent:
    """An event decoded from a calendar feed, before it is tied to a source."""

    uid: str
    summary: str
    start: datetime
    end: datetime
    all_day: bool
    description: str = ""
    location: str = ""
