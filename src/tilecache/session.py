"""Per-page session state handed to every cache operation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from .config import TileCacheConfig


def _flag(value: Any) -> bool:
    # Host pages pass this as 1, "1" or a real boolean.
    if isinstance(value, str):
        return value.strip() == "1" or value.strip().lower() == "true"
    return value is True or value == 1


@dataclass
class CacheSession:
    course_id: int
    user_id: int
    max_sections_to_store: int
    stale_minutes: int
    is_editing: bool = False
    current_section: int = 0
    assume_consent: bool = False

    @classmethod
    def from_init_args(
        cls,
        course_id: Any,
        max_sections_to_store: Any,
        is_editing: Any,
        current_section_number: Any,
        stale_minutes: Any,
        assume_consent_flag: Any,
        user_id: Any,
    ) -> "CacheSession":
        """Build a session from the raw values the host page emits."""
        return cls(
            course_id=int(course_id),
            user_id=int(user_id),
            max_sections_to_store=int(max_sections_to_store or 0),
            stale_minutes=int(stale_minutes or 0),
            is_editing=_flag(is_editing),
            current_section=int(current_section_number or 0),
            assume_consent=_flag(assume_consent_flag),
        )

    @classmethod
    def from_config(
        cls,
        config: TileCacheConfig,
        course_id: int,
        user_id: int,
        is_editing: bool = False,
        current_section: Optional[int] = None,
    ) -> "CacheSession":
        return cls(
            course_id=int(course_id),
            user_id=int(user_id),
            max_sections_to_store=config.max_sections_to_store,
            stale_minutes=config.stale_minutes,
            is_editing=is_editing,
            current_section=current_section or 0,
            assume_consent=config.assume_consent,
        )
