"""
Event Schema.

Defines the Event dataclass used for every broadcast message.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, asdict, field
from datetime import datetime, timezone
from typing import Any


@dataclass
class Event:
    """
    Envelope for messages published on the broadcast channel.

    'data' carries the event-specific payload (the order snapshot for
    order events). 'actor' identifies who triggered the event.
    """

    type: str
    channel: str
    data: dict[str, Any] = field(default_factory=dict)
    actor: dict[str, Any] = field(default_factory=dict)
    ts: str | None = None
    v: int = 1  # Schema version

    def __post_init__(self) -> None:
        if not self.type or not isinstance(self.type, str):
            raise ValueError("Event type must be a non-empty string")

        if not self.channel or not isinstance(self.channel, str):
            raise ValueError("Event channel must be a non-empty string")

        if self.data is not None and not isinstance(self.data, dict):
            raise ValueError("Event data must be a dict or None")

        if self.actor is not None and not isinstance(self.actor, dict):
            raise ValueError("Event actor must be a dict or None")

    def to_json(self) -> str:
        """Serialize event to JSON string."""
        payload = asdict(self)
        payload["data"] = payload["data"] or {}
        payload["actor"] = payload["actor"] or {}
        payload["ts"] = payload["ts"] or datetime.now(timezone.utc).isoformat()
        return json.dumps(payload, ensure_ascii=False, default=str)

    @classmethod
    def from_json(cls, json_str: str) -> "Event":
        """Deserialize event from JSON string (validated in __post_init__)."""
        payload = json.loads(json_str)
        return cls(**payload)
