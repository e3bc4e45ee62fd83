"""
Storage Key Codec

Implements:
- encode_*_key(course, [section,] user) → literal storage key
- decode_timestamp_key(key) → SectionRef(course, section, user)
- is_namespaced(key) / is_content_timestamp_key(key) → cheap scan filters

Key format is a persisted contract. Changing it orphans whatever is already
stored in users' browsers (acceptable: content entries expire on their own,
preferences are simply forgotten).

    mdl-course-2-user-5-lastSecId
    mdl-course-2-sec-3-user-5-content
    mdl-course-2-sec-3-user-5-lastUpdated
    mdl-course-2-user-5-collapsesec0
    mdl-tiles-userPrefStorage-user-5
"""

import logging
import re
from typing import NamedTuple, Union

from .exceptions import MalformedKey

logger = logging.getLogger(__name__)

PREFIX = "mdl-"
COURSE = "mdl-course-"
SECTION = "-sec-"
USER = "-user-"
LAST_SECTION = "-lastSecId"
CONTENT = "-content"
LAST_UPDATED = "-lastUpdated"
COLLAPSE_SEC_ZERO = "-collapsesec0"
USER_PREF_STORAGE = "mdl-tiles-userPrefStorage"

_DIGITS_RE = re.compile(r"[0-9]+")
# Canonical decimal only: "012" would decode to the same triple as "12".
_NUMBER = r"(?:0|[1-9][0-9]*)"
_TIMESTAMP_KEY_RE = re.compile(
    rf"mdl-course-(?P<course>{_NUMBER})-sec-(?P<section>{_NUMBER})-user-(?P<user>{_NUMBER})-lastUpdated"
)

Ident = Union[int, str]


class SectionRef(NamedTuple):
    """One cached section: which course, which section, whose copy."""

    course: int
    section: int
    user: int


def _ident(value: Ident, name: str) -> str:
    """Normalize an identifier to its decimal form.

    Only non-negative integers are accepted. A hyphen or any other
    non-digit inside a segment would make two tuples encode the same.
    """
    if isinstance(value, bool):
        raise ValueError(f"{name} must be a non-negative integer, got {value!r}")
    if isinstance(value, int):
        if value < 0:
            raise ValueError(f"{name} must be a non-negative integer, got {value!r}")
        return str(value)
    text = str(value).strip()
    if not _DIGITS_RE.fullmatch(text):
        raise ValueError(f"{name} must be a non-negative integer, got {value!r}")
    return str(int(text))


def encode_last_section_key(course: Ident, user: Ident) -> str:
    return f"{COURSE}{_ident(course, 'course')}{USER}{_ident(user, 'user')}{LAST_SECTION}"


def encode_content_key(course: Ident, section: Ident, user: Ident) -> str:
    return (
        f"{COURSE}{_ident(course, 'course')}{SECTION}{_ident(section, 'section')}"
        f"{USER}{_ident(user, 'user')}{CONTENT}"
    )


def encode_content_timestamp_key(course: Ident, section: Ident, user: Ident) -> str:
    return (
        f"{COURSE}{_ident(course, 'course')}{SECTION}{_ident(section, 'section')}"
        f"{USER}{_ident(user, 'user')}{LAST_UPDATED}"
    )


def encode_collapse_key(course: Ident, user: Ident) -> str:
    return f"{COURSE}{_ident(course, 'course')}{USER}{_ident(user, 'user')}{COLLAPSE_SEC_ZERO}"


def encode_consent_key(user: Ident) -> str:
    return f"{USER_PREF_STORAGE}{USER}{_ident(user, 'user')}"


def is_namespaced(key: str) -> bool:
    """True if the key belongs to this plugin (other apps share the origin)."""
    return key.startswith(PREFIX)


def is_consent_key(key: str) -> bool:
    return key.startswith(USER_PREF_STORAGE + USER)


def is_content_timestamp_key(key: str) -> bool:
    """
    Cheap shape check used while scanning every key in a tier.

    Only looks at prefix and suffix. A key that passes may still fail
    decode_timestamp_key().
    """
    return key.startswith(PREFIX) and key.endswith(LAST_UPDATED)


def decode_timestamp_key(key: str) -> SectionRef:
    """
    Parse a timestamp key back into its (course, section, user) triple.

    Args:
        key: e.g. "mdl-course-12-sec-7-user-3-lastUpdated"

    Returns:
        SectionRef(course=12, section=7, user=3)

    Raises:
        MalformedKey: key is not exactly a timestamp key with numeric fields
    """
    match = _TIMESTAMP_KEY_RE.fullmatch(key)
    if not match:
        raise MalformedKey(f"Not a content timestamp key: {key!r}")
    return SectionRef(
        course=int(match.group("course")),
        section=int(match.group("section")),
        user=int(match.group("user")),
    )
