"""Document models for LabBoard.

- Lab: a research lab with its professors and lab assistants
- Job: a research position posted for a lab
- Application: a student's application to a job (stored as a "Match")
- User: a user profile mirrored from the identity provider

Stored documents can carry legacy shapes (comma-joined id lists, missing
fields), so handlers read the store as plain dicts and only use these models
to build new documents and validate request bodies.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def utcnow_iso() -> str:
    """Current UTC time as an ISO-8601 string with millisecond precision."""
    return _utcnow().isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _new_id() -> str:
    return str(uuid4())


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class ApplicationStatus(str, Enum):
    PENDING = "Pending"
    REVIEWED = "Reviewed"
    REVIEWING = "Reviewing"
    SHORTLISTED = "Shortlisted"
    INTERVIEW = "Interview"
    APPROVED = "Approved"
    ACCEPTED = "Accepted"
    REJECTED = "Rejected"


class UserStatus(str, Enum):
    CONFIRMED = "CONFIRMED"
    DISABLED = "DISABLED"
    FORCE_CHANGE_PASSWORD = "FORCE_CHANGE_PASSWORD"
    UNCONFIRMED = "UNCONFIRMED"


class JobStatus(str, Enum):
    DRAFT = "DRAFT"
    OPEN = "OPEN"
    CLOSED = "CLOSED"


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


class Document(BaseModel):
    """Common fields for every stored document."""

    model_config = ConfigDict(extra="allow")

    id: str = Field(default_factory=_new_id)
    createdAt: str = Field(default_factory=utcnow_iso)
    updatedAt: str = Field(default_factory=utcnow_iso)
    version: int = 1

    def to_document(self) -> dict[str, Any]:
        """JSON-ready dict for the document store."""
        return self.model_dump(mode="json")


class Lab(Document):
    name: str
    professorId: str | None = None
    professorIds: list[str] = Field(default_factory=list)
    labAssistantIds: list[str] = Field(default_factory=list)
    description: str = ""
    status: str = "ACTIVE"


class Job(Document):
    jobId: str | None = None
    title: str
    description: str = ""
    labId: str
    professorId: str | None = None
    createdBy: str | None = None
    status: str = JobStatus.DRAFT.value
    visibility: str = "public"
    requirements: list[str] = Field(default_factory=list)
    academicLevel: str = "any"
    deletedAt: str | None = None

    def model_post_init(self, __context: Any) -> None:
        if self.jobId is None:
            self.jobId = self.id


class Application(Document):
    jobId: str
    studentId: str
    status: ApplicationStatus = ApplicationStatus.PENDING
    coverLetter: str = ""
    resumeUrl: str = ""
    resumeDetails: str = ""
    summerAvailability: str = ""
    hoursPerWeek: str = ""
    expectations: str = ""
    userDetails: dict[str, Any] = Field(default_factory=dict)

    @field_validator("resumeDetails", mode="before")
    @classmethod
    def _encode_resume_details(cls, v: Any) -> Any:
        if v is None:
            return ""
        if isinstance(v, (dict, list)):
            return json.dumps(v)
        return v

    @field_validator("hoursPerWeek", mode="before")
    @classmethod
    def _stringify_hours(cls, v: Any) -> Any:
        if v is None:
            return ""
        if isinstance(v, (int, float)):
            return str(v)
        return v


class User(Document):
    email: str = ""
    givenName: str = ""
    roles: list[str] = Field(default_factory=list)
    labIds: list[str] = Field(default_factory=list)
    status: str = UserStatus.CONFIRMED.value
    lastLogin: str | None = None
