"""Schemas shared by patient and appointment records."""

from enum import Enum
from typing import Any

from pydantic import BaseModel


class RecordStatus(str, Enum):
    """Status of a patient or appointment record.

    Any status may move to any other through an explicit user action.
    """

    PENDING = "Pending"
    CONFIRMED = "Confirmed"
    CANCELLED = "Cancelled"


class NoticeLevel(str, Enum):
    """Severity of a user-facing notice."""

    SUCCESS = "success"
    ERROR = "error"


class Notice(BaseModel):
    """User-facing notification produced by a screen action."""

    level: NoticeLevel
    title: str
    message: str

    @classmethod
    def success(cls, message: str) -> "Notice":
        """Build a success notice."""
        return cls(level=NoticeLevel.SUCCESS, title="Success", message=message)

    @classmethod
    def error(cls, message: str) -> "Notice":
        """Build an error notice."""
        return cls(level=NoticeLevel.ERROR, title="Error", message=message)

    @property
    def ok(self) -> bool:
        """Whether the action that produced this notice succeeded."""
        return self.level == NoticeLevel.SUCCESS


class StatusUpdate(BaseModel):
    """Schema for updating a record status."""

    status: RecordStatus


def blank_to_none(value: Any) -> Any:
    """Treat empty form fields as missing values."""
    if isinstance(value, str) and not value.strip():
        return None
    return value


def record_values(model: BaseModel, exclude_unset: bool = False) -> dict[str, Any]:
    """Dump a schema to column values, storing enums by value."""
    values = model.model_dump(exclude_unset=exclude_unset)
    return {key: value.value if isinstance(value, Enum) else value for key, value in values.items()}
