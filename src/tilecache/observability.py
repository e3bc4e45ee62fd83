"""Cleanup report schema enforcement."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from jsonschema import Draft7Validator

CLEANUP_SCHEMA: Dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "required": [
        "ran_at",
        "mode",
        "course_id",
        "user_id",
        "removed_stale",
        "removed_over_capacity",
        "removed_ephemeral",
        "removed_durable",
        "skipped_malformed",
        "remaining",
    ],
    "properties": {
        "ran_at": {"type": "string", "format": "date-time"},
        "mode": {"type": "string", "enum": ["purge", "bounded"]},
        "course_id": {"type": "integer", "minimum": 0},
        "user_id": {"type": "integer", "minimum": 0},
        "max_age_minutes": {"type": ["integer", "null"]},
        "max_items_to_keep": {"type": ["integer", "null"]},
        "removed_stale": {"type": "integer", "minimum": 0},
        "removed_over_capacity": {"type": "integer", "minimum": 0},
        "removed_ephemeral": {"type": "integer", "minimum": 0},
        "removed_durable": {"type": "integer", "minimum": 0},
        "skipped_malformed": {"type": "integer", "minimum": 0},
        "failed_deletes": {"type": "integer", "minimum": 0},
        "remaining": {"type": "integer", "minimum": 0},
        "cutoff_timestamp": {"type": ["integer", "null"]},
    },
}

_validator = Draft7Validator(CLEANUP_SCHEMA)


def validate_cleanup(payload: Dict[str, Any]) -> None:
    errors = sorted(_validator.iter_errors(payload), key=lambda e: e.path)
    if errors:
        messages = ", ".join(error.message for error in errors)
        raise ValueError(f"cleanup report validation failed: {messages}")


@dataclass
class CleanupReport:
    mode: str
    course_id: int
    user_id: int
    max_age_minutes: Optional[int] = None
    max_items_to_keep: Optional[int] = None
    removed_stale: int = 0
    removed_over_capacity: int = 0
    removed_ephemeral: int = 0
    removed_durable: int = 0
    skipped_malformed: int = 0
    failed_deletes: int = 0
    remaining: int = 0
    cutoff_timestamp: Optional[int] = None
    ran_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    @property
    def removed_entries(self) -> int:
        return self.removed_stale + self.removed_over_capacity

    def to_dict(self) -> Dict[str, Any]:
        payload = {
            "ran_at": self.ran_at,
            "mode": self.mode,
            "course_id": self.course_id,
            "user_id": self.user_id,
            "max_age_minutes": self.max_age_minutes,
            "max_items_to_keep": self.max_items_to_keep,
            "removed_stale": self.removed_stale,
            "removed_over_capacity": self.removed_over_capacity,
            "removed_ephemeral": self.removed_ephemeral,
            "removed_durable": self.removed_durable,
            "skipped_malformed": self.skipped_malformed,
            "failed_deletes": self.failed_deletes,
            "remaining": self.remaining,
            "cutoff_timestamp": self.cutoff_timestamp,
        }
        validate_cleanup(payload)
        return payload
