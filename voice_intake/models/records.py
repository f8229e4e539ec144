"""
Pydantic models for directory entries, collected records and tool calls.

Field names are camelCase because these models are serialized as-is to the
HTTP API, the JSON stores and the relay connection.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from voice_intake.config.constants import (
    RESULT_REJECTED,
    RESULT_SUCCESS,
    STATUS_ARCHIVED,
    STATUS_COLLECTED,
    STATUS_CONFIRMED,
)

RecordStatus = Literal["collected", "confirmed", "archived"]
RECORD_STATUSES = (STATUS_COLLECTED, STATUS_CONFIRMED, STATUS_ARCHIVED)


def _new_id() -> str:
    return str(uuid.uuid4())


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _not_blank(v: str) -> str:
    if not v or not v.strip():
        raise ValueError("Field cannot be empty")
    return v.strip()


class DirectoryEntryData(BaseModel):
    """Editable part of a directory entry."""

    organizationName: str = Field(..., description="Name of the organization (school)")
    locationName: str = Field(..., description="City or location of the organization")
    contactEmail: str = Field(..., description="Where collected records are sent")

    @field_validator("organizationName", "locationName", "contactEmail")
    def validate_not_blank(cls, v):
        """Reject blank values and strip surrounding whitespace."""
        return _not_blank(v)


class DirectoryEntry(DirectoryEntryData):
    """Reference entry the agent validates caller input against."""

    id: str = Field(default_factory=_new_id)


class DirectoryEntryCreate(DirectoryEntryData):
    """Payload for creating an entry; the id is optional."""

    id: Optional[str] = None


class RecordData(BaseModel):
    """Fields collected from the caller plus the matched directory id."""

    organizationId: str = Field(..., description="Id of the matched directory entry")
    locationName: str
    organizationName: str
    subjectName: str
    subjectBirthDate: str
    effectiveUntil: str


class StructuredRecord(RecordData):
    """A persisted sick note. Only `status` may change after saving."""

    id: str = Field(default_factory=_new_id)
    status: RecordStatus = STATUS_COLLECTED
    savedAt: str = Field(default_factory=utc_now_iso)


class RecordStatusUpdate(BaseModel):
    status: RecordStatus


class ToolCall(BaseModel):
    """Structured function call emitted by the engine."""

    id: str
    name: str
    arguments: Dict[str, Any] = Field(default_factory=dict)

    def argument(self, key: str) -> str:
        """String value of an argument, empty when absent."""
        value = self.arguments.get(key)
        return "" if value is None else str(value).strip()


class ToolResponse(BaseModel):
    """Result returned to the engine for exactly one tool call id."""

    id: str
    name: str
    result: Literal["success", "rejected"]
    message: str = ""
    details: Dict[str, Any] = Field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return self.result == RESULT_SUCCESS

    @classmethod
    def success(cls, call: ToolCall, message: str) -> "ToolResponse":
        return cls(id=call.id, name=call.name, result=RESULT_SUCCESS, message=message)

    @classmethod
    def rejected(cls, call: ToolCall, message: str) -> "ToolResponse":
        return cls(id=call.id, name=call.name, result=RESULT_REJECTED, message=message)

    @classmethod
    def from_client(cls, call_id: str, name: str, response: Dict[str, Any]) -> "ToolResponse":
        """Wrap a client-supplied response body, keeping its extra keys."""
        result = RESULT_REJECTED if response.get("result") == RESULT_REJECTED else RESULT_SUCCESS
        return cls(id=call_id, name=name, result=result,
                   message=str(response.get("message", "")), details=dict(response))

    def payload(self) -> Dict[str, Any]:
        """Response body handed to the engine."""
        return {**self.details, "result": self.result, "message": self.message}


class TranscriptEvent(BaseModel):
    text: str
    speaker: Literal["user", "agent"]
    timestamp: str = Field(default_factory=utc_now_iso)
