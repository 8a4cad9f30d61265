from __future__ import annotations

import uuid

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def _require_non_blank(name: str, value: str) -> str:
    v = value.strip()
    if not v:
        raise ValueError(f"{name} must be non-empty")
    return v


class Task(BaseModel):
    """A single to-do item owned by a client session.

    - `session_id` is an opaque grouping key, not a credential
    - Serialized on the wire as `sessionId`
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    description: str
    completed: bool = False
    session_id: str = Field(alias="sessionId", min_length=1)


class TaskCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    description: str
    session_id: str = Field(alias="sessionId")

    @field_validator("description")
    @classmethod
    def _description_non_blank(cls, value: str) -> str:
        return _require_non_blank("description", value)

    @field_validator("session_id")
    @classmethod
    def _session_non_blank(cls, value: str) -> str:
        return _require_non_blank("sessionId", value)


class TaskUpdate(BaseModel):
    """Partial patch; only the fields present are applied."""

    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(alias="sessionId")
    completed: bool | None = None
    description: str | None = None

    @field_validator("session_id")
    @classmethod
    def _session_non_blank(cls, value: str) -> str:
        return _require_non_blank("sessionId", value)

    @field_validator("description")
    @classmethod
    def _description_non_blank(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return _require_non_blank("description", value)

    @model_validator(mode="after")
    def _has_changes(self) -> TaskUpdate:
        if self.completed is None and self.description is None:
            raise ValueError("no fields to update")
        return self


__all__ = ["Task", "TaskCreate", "TaskUpdate"]
