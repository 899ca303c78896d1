"""User-visible notification model."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class Severity(StrEnum):
    SUCCESS = "success"
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


class Notification(BaseModel):
    """A message shown to the user.

    ``duration`` is the auto-dismiss delay in seconds; ``<= 0`` keeps the
    notification until it is explicitly removed.
    """

    model_config = ConfigDict(frozen=True)

    id: int
    message: str
    severity: Severity = Severity.INFO
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    duration: float = 0.0

    @property
    def is_sticky(self) -> bool:
        return self.duration <= 0
