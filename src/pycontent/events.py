"""Records emitted by stores.

Subscribers receive a :class:`MutationEvent` once per completed mutation
boundary; the logging plugin emits one :class:`ActionRecord` per action call.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class MutationType(StrEnum):
    ACTION = "action"
    DIRECT = "direct"
    PATCH = "patch"


class MutationEvent(BaseModel):
    """Describes one batch of state changes."""

    model_config = ConfigDict(frozen=True)

    store_id: str
    type: MutationType
    action: str | None = None
    keys: tuple[str, ...] = Field(default_factory=tuple, description="Changed state fields, sorted")


class ActionOutcome(StrEnum):
    SUCCESS = "success"
    ERROR = "error"


class ActionRecord(BaseModel):
    """Structured trace of a single store action call."""

    model_config = ConfigDict(frozen=True)

    store_id: str
    action: str
    args: dict[str, Any] = Field(default_factory=dict, description="Redacted call arguments")
    duration_ms: float
    outcome: ActionOutcome
    error: str | None = None
