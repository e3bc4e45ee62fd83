"""User consent to client-side caching."""

from __future__ import annotations

from enum import Enum
from typing import Optional


class ConsentState(Enum):
    UNSET = "unset"
    GIVEN = "given"
    DENIED = "denied"

    @property
    def stored_value(self) -> Optional[str]:
        """Value written to the durable tier; UNSET is never written."""
        return _STORED.get(self)

    @classmethod
    def from_stored(cls, value: Optional[str]) -> "ConsentState":
        if value == _STORED[cls.GIVEN]:
            return cls.GIVEN
        if value == _STORED[cls.DENIED]:
            return cls.DENIED
        return cls.UNSET

    @classmethod
    def from_choice(cls, given: bool) -> "ConsentState":
        return cls.GIVEN if given else cls.DENIED


_STORED = {
    ConsentState.GIVEN: "yes",
    ConsentState.DENIED: "no",
}


def initial_consent(stored_value: Optional[str], assume_consent: bool) -> ConsentState:
    """Resolve consent at page init.

    The site-wide assume-consent setting wins over anything stored and is
    not itself persisted.
    """
    if assume_consent:
        return ConsentState.GIVEN
    return ConsentState.from_stored(stored_value)
