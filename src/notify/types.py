"""Message type for the notification subsystem."""

from __future__ import annotations

import time
from typing import Any

from pydantic import BaseModel, Field

from src.core.types import Severity


class AlertMessage(BaseModel):
    """Normalised notification ready for dispatch to channels."""

    severity: Severity
    title: str
    body: str = ""
    fields: dict[str, str] = Field(default_factory=dict)
    source_event_type: str = ""
    timestamp: float = Field(default_factory=time.time)
    raw: dict[str, Any] = Field(default_factory=dict)
