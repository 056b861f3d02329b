"""Resolved event record handed to downstream consumers."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass(frozen=True)
class ResolvedEvent:
    timestamp: datetime                       # timezone-aware
    data: dict[str, Any] = field(default_factory=dict)   # never holds "timestamp"


def event_to_dict(event: ResolvedEvent) -> dict[str, Any]:
    """Convert a ResolvedEvent to a JSON-ready dict."""
    return {
        "timestamp": event.timestamp.isoformat(),
        "data": dict(event.data),
    }
