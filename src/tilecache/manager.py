"""
Tile Storage Cache Manager

Implements:
- put(course, section, html) / get(course, section) / age_seconds(course, section)
- count() → tracked section entries in the ephemeral tier
- cleanup(max_age_minutes, clear_all, max_items_to_keep) → CleanupReport
- record_consent(given) → consent transition + side effects
- last visited section and section-zero collapse preferences (durable tier)

Every failure degrades to "act as if caching is disabled". Nothing here
should stop a page from rendering.
"""

import json
import logging
import time
from enum import Enum
from typing import Callable, List, Optional, Tuple, Union

from .backends import StorageTier
from .consent import ConsentState, initial_consent
from .exceptions import ConsentNotGiven, MalformedKey, StorageUnavailable
from .keys import (
    SectionRef,
    decode_timestamp_key,
    encode_collapse_key,
    encode_consent_key,
    encode_content_key,
    encode_content_timestamp_key,
    encode_last_section_key,
    is_consent_key,
    is_content_timestamp_key,
    is_namespaced,
)
from .observability import CleanupReport
from .probe import CapabilityProbe, TierCapabilities
from .session import CacheSession

logger = logging.getLogger(__name__)

EXPANDED_MARKER = "1"


class CollapseStatus(Enum):
    """Display state of section zero. Collapsed unless the user expanded it."""

    COLLAPSED = "collapsed"
    EXPANDED = "expanded"


class StorageCacheManager:
    """
    Client-side cache over a durable tier and an ephemeral tier.

    Design:
    - Consent gates usage: no writes unless GIVEN, no content reads unless GIVEN
    - Deleting is never gated (removing a stale entry is always safe)
    - The timestamp key is the canonical "entry exists" marker
    - Cleanup is best effort and idempotent: re-running converges on the bound
    """

    def __init__(
        self,
        session: CacheSession,
        durable: Optional[StorageTier],
        ephemeral: Optional[StorageTier],
        clock: Callable[[], float] = time.time,
    ):
        self.session = session
        self.durable = durable
        self.ephemeral = ephemeral
        self._clock = clock
        self._probe = CapabilityProbe(
            durable, ephemeral, session.max_sections_to_store, clock=clock
        )

        stored = self._read(self.durable, encode_consent_key(session.user_id))
        self.consent = initial_consent(stored, session.assume_consent)

        if self.consent is ConsentState.DENIED:
            self._probe.disable()
            self.cleanup(0, True, 0)
        else:
            self._probe.snapshot()

        logger.info(
            f"StorageCacheManager ready (course={session.course_id}, user={session.user_id}, "
            f"consent={self.consent.value}, durable={self.durable_enabled}, "
            f"ephemeral={self.ephemeral_enabled})"
        )

    # ── Capability & consent ────────────────────────────────────────

    @property
    def capabilities(self) -> TierCapabilities:
        return self._probe.snapshot()

    @property
    def durable_enabled(self) -> bool:
        return self.capabilities.durable

    @property
    def ephemeral_enabled(self) -> bool:
        return self.capabilities.ephemeral

    @property
    def consent_given(self) -> bool:
        return self.consent is ConsentState.GIVEN

    def _require_consent(self):
        if self.consent is not ConsentState.GIVEN:
            raise ConsentNotGiven(f"consent is {self.consent.value}")

    def record_consent(self, given: bool) -> ConsentState:
        """
        Apply the user's answer to the consent prompt.

        DENIED purges everything this plugin stored (except consent records)
        and switches both tiers off. GIVEN re-probes both tiers, which may
        only now be usable.
        """
        previous = self.consent
        self.consent = ConsentState.from_choice(given)

        if self.durable is not None:
            try:
                self.durable.set_item(
                    encode_consent_key(self.session.user_id), self.consent.stored_value
                )
            except StorageUnavailable as e:
                logger.warning(f"Could not persist consent choice: {e}")

        if self.consent is ConsentState.DENIED:
            self._probe.disable()
            self.cleanup(0, True, 0)
        else:
            self._probe.refresh()

        logger.info(
            f"Consent for user {self.session.user_id}: {previous.value} → {self.consent.value}"
        )
        return self.consent

    # ── Low-level tier access ───────────────────────────────────────

    def _now(self) -> int:
        return int(round(self._clock()))

    def _read(self, tier: Optional[StorageTier], key: str) -> Optional[str]:
        if tier is None:
            return None
        try:
            return tier.get_item(key)
        except StorageUnavailable as e:
            logger.debug(f"Read of {key} from {tier.name} failed: {e}")
            return None

    def _remove(self, tier: Optional[StorageTier], key: str) -> bool:
        if tier is None:
            return True
        try:
            tier.remove_item(key)
            return True
        except StorageUnavailable as e:
            logger.warning(f"Could not remove {key} from {tier.name}: {e}")
            return False

    def _keys(self, tier: Optional[StorageTier]) -> List[str]:
        if tier is None:
            return []
        try:
            return tier.keys()
        except StorageUnavailable as e:
            logger.debug(f"Could not list {tier.name} keys: {e}")
            return []

    @staticmethod
    def _parse_int(raw: Optional[str]) -> Optional[int]:
        if raw is None:
            return None
        try:
            return int(raw)
        except (TypeError, ValueError):
            return None

    # ── Content cache (ephemeral tier) ──────────────────────────────

    def _ref(self, course, section) -> SectionRef:
        return SectionRef(int(course), int(section), self.session.user_id)

    def _store_content(self, ref: SectionRef, html: str) -> bool:
        self._require_consent()
        if not self.ephemeral_enabled:
            return False
        self.ephemeral.set_item(encode_content_key(*ref), html)
        self.ephemeral.set_item(encode_content_timestamp_key(*ref), str(self._now()))
        return True

    def _remove_entry(self, ref: SectionRef) -> bool:
        # Content first: if that fails the timestamp keeps the entry tracked.
        if not self._remove(self.ephemeral, encode_content_key(*ref)):
            return False
        return self._remove(self.ephemeral, encode_content_timestamp_key(*ref))

    def put(self, course, section, html: Optional[str]) -> bool:
        """
        Store rendered HTML for a section, or drop it.

        Empty html is an explicit delete. So is anything that stops the
        write (no consent, tier unusable, quota exceeded), which keeps a
        previously stored copy from outliving a newer render.

        Returns:
            True if the HTML is now cached
        """
        ref = self._ref(course, section)
        if html:
            try:
                if self._store_content(ref, html):
                    logger.debug(f"Cached section {ref.section} of course {ref.course} ({len(html)} chars)")
                    return True
            except ConsentNotGiven as e:
                logger.debug(f"Not caching section {ref.section}: {e}")
            except StorageUnavailable as e:
                logger.warning(f"Could not cache section {ref.section}: {e}")
        self._remove_entry(ref)
        return False

    def get(self, course, section) -> Optional[str]:
        if not self.consent_given or not self.ephemeral_enabled:
            return None
        return self._read(self.ephemeral, encode_content_key(*self._ref(course, section)))

    def age_seconds(self, course, section) -> Optional[int]:
        """Seconds since the section was cached, or None if nothing usable is stored."""
        if not self.consent_given or not self.ephemeral_enabled:
            return None
        stored = self._parse_int(
            self._read(self.ephemeral, encode_content_timestamp_key(*self._ref(course, section)))
        )
        if not stored:
            return None
        return int(round(self._clock() - stored))

    def _scan_entries(self) -> Tuple[List[Tuple[str, SectionRef]], int]:
        """All decodable timestamp keys in the ephemeral tier, plus a count of malformed ones."""
        entries = []
        malformed = 0
        for key in self._keys(self.ephemeral):
            if not is_content_timestamp_key(key):
                continue
            try:
                entries.append((key, decode_timestamp_key(key)))
            except MalformedKey as e:
                malformed += 1
                logger.debug(f"Skipping {e}")
        return entries, malformed

    def count(self) -> int:
        entries, _ = self._scan_entries()
        return len(entries)

    # ── Cleanup ─────────────────────────────────────────────────────

    def cleanup(self, max_age_minutes: int, clear_all: bool,
                max_items_to_keep: Optional[int]) -> CleanupReport:
        """
        Evict cached content.

        Args:
            max_age_minutes: entries older than this go; 0 means every entry goes
            clear_all: purge both tiers (consent records survive) and stop there
            max_items_to_keep: after the age pass, keep only the newest this many

        Returns:
            CleanupReport describing what was removed
        """
        max_age_minutes = int(max_age_minutes or 0)
        max_items_to_keep = int(max_items_to_keep or 0)
        report = CleanupReport(
            mode="purge" if clear_all else "bounded",
            course_id=self.session.course_id,
            user_id=self.session.user_id,
            max_age_minutes=max_age_minutes,
            max_items_to_keep=max_items_to_keep,
        )

        if clear_all:
            self._purge(report)
        else:
            self._evict_stale(report, max_age_minutes)
            self._evict_over_capacity(report, max_items_to_keep)

        report.remaining = self.count()
        logger.info(f"Cache cleanup: {json.dumps(report.to_dict())}")
        return report

    def _purge(self, report: CleanupReport):
        for key in self._keys(self.durable):
            if not is_namespaced(key) or is_consent_key(key):
                continue
            if self._remove(self.durable, key):
                report.removed_durable += 1
            else:
                report.failed_deletes += 1

        for key in self._keys(self.ephemeral):
            if not is_namespaced(key):
                continue
            if self._remove(self.ephemeral, key):
                report.removed_ephemeral += 1
            else:
                report.failed_deletes += 1

    def _evict_stale(self, report: CleanupReport, max_age_minutes: int):
        now = self._now()
        max_age_seconds = max_age_minutes * 60
        entries, malformed = self._scan_entries()
        report.skipped_malformed = malformed

        for key, ref in entries:
            stored = self._parse_int(self._read(self.ephemeral, key))
            if max_age_minutes == 0 or stored is None or now - stored > max_age_seconds:
                if self._remove_entry(ref):
                    report.removed_stale += 1
                    report.removed_ephemeral += 2
                else:
                    report.failed_deletes += 1

    def _evict_over_capacity(self, report: CleanupReport, max_items_to_keep: int):
        """
        Drop the oldest entries until at most max_items_to_keep remain.

        Entries sharing the cutoff timestamp are all kept, so more than
        max_items_to_keep can survive when timestamps collide.
        """
        entries, _ = self._scan_entries()
        if len(entries) <= max(max_items_to_keep, 0):
            return

        stamped = [
            (self._parse_int(self._read(self.ephemeral, key)) or 0, ref)
            for key, ref in entries
        ]
        if max_items_to_keep <= 0:
            # Keeping none means every entry goes, not that nothing is evicted.
            doomed = [ref for _, ref in stamped]
        else:
            times = sorted(ts for ts, _ in stamped)
            cutoff = times[len(times) - max_items_to_keep]
            report.cutoff_timestamp = cutoff
            doomed = [ref for ts, ref in stamped if ts < cutoff]

        for ref in doomed:
            if self._remove_entry(ref):
                report.removed_over_capacity += 1
                report.removed_ephemeral += 2
            else:
                report.failed_deletes += 1

    # ── Preferences (durable tier) ──────────────────────────────────

    def get_last_visited_section(self) -> Optional[int]:
        raw = self._read(
            self.durable, encode_last_section_key(self.session.course_id, self.session.user_id)
        )
        return self._parse_int(raw)

    def set_last_visited_section(self, section: Optional[int]) -> bool:
        """Remember where the user was. A falsy section clears the record."""
        try:
            self._require_consent()
        except ConsentNotGiven as e:
            logger.debug(f"Not recording last section: {e}")
            return False

        key = encode_last_section_key(self.session.course_id, self.session.user_id)
        if section and self.durable_enabled:
            try:
                self.durable.set_item(key, str(int(section)))
                return True
            except StorageUnavailable as e:
                logger.warning(f"Could not record last section: {e}")
        self._remove(self.durable, key)
        return False

    def get_collapse_status(self) -> CollapseStatus:
        # The key exists only while section zero is expanded.
        marker = self._read(
            self.durable, encode_collapse_key(self.session.course_id, self.session.user_id)
        )
        return CollapseStatus.EXPANDED if marker else CollapseStatus.COLLAPSED

    def set_collapse_status(self, status: Union[CollapseStatus, str]) -> bool:
        status = CollapseStatus(status)
        if not self.durable_enabled or not self.consent_given:
            return False

        key = encode_collapse_key(self.session.course_id, self.session.user_id)
        if status is CollapseStatus.COLLAPSED:
            return self._remove(self.durable, key)
        try:
            self.durable.set_item(key, EXPANDED_MARKER)
            return True
        except StorageUnavailable as e:
            logger.warning(f"Could not record section zero state: {e}")
            return False
