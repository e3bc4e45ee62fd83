"""
Page Glue: wiring the storage cache to course page events

The host page calls PageController.init(...) once, then forwards events:

- on_page_ready()                 page finished loading
- on_tile_clicked()               user opened a tile (section)
- on_completion_toggled(section)  user ticked/unticked an activity checkbox
- on_data_preference_clicked()    user chose "Data preference" from the menu

Anything slow or interrupting is deferred through the scheduler so it does
not compete with the event that triggered it.
"""

import logging
import time
from typing import Callable, Optional, Protocol

from .backends import StorageTier
from .config import TileCacheConfig, default_config
from .consent import ConsentState
from .manager import StorageCacheManager
from .scheduler import Scheduler
from .session import CacheSession

logger = logging.getLogger(__name__)

LANDING_SECTION = 0


class ConsentPrompt(Protocol):
    """Host dialog asking whether the browser may store course data."""

    def show(self, on_accept: Callable[[], None], on_decline: Callable[[], None]) -> None:
        ...


class PageController:
    def __init__(
        self,
        manager: StorageCacheManager,
        scheduler: Scheduler,
        prompt: ConsentPrompt,
        section_html: Callable[[int], Optional[str]],
        config: Optional[TileCacheConfig] = None,
    ):
        self.manager = manager
        self.scheduler = scheduler
        self.prompt = prompt
        self.section_html = section_html
        self.config = config or default_config()

    @classmethod
    def init(
        cls,
        course_id,
        max_sections_to_store,
        is_editing,
        current_section_number,
        stale_minutes,
        assume_consent_flag,
        user_id,
        *,
        durable: Optional[StorageTier],
        ephemeral: Optional[StorageTier],
        scheduler: Scheduler,
        prompt: ConsentPrompt,
        section_html: Callable[[int], Optional[str]],
        config: Optional[TileCacheConfig] = None,
        clock: Callable[[], float] = time.time,
    ) -> "PageController":
        """
        Page initialization contract.

        Argument order matches what the course page emits. Values arrive
        loosely typed (strings, 0/1 flags) and are normalized here.
        """
        session = CacheSession.from_init_args(
            course_id,
            max_sections_to_store,
            is_editing,
            current_section_number,
            stale_minutes,
            assume_consent_flag,
            user_id,
        )
        manager = StorageCacheManager(session, durable, ephemeral, clock=clock)
        return cls(manager, scheduler, prompt, section_html, config=config)

    @property
    def session(self) -> CacheSession:
        return self.manager.session

    def on_page_ready(self):
        manager = self.manager
        storage_possible = manager.durable_enabled or manager.ephemeral_enabled
        if storage_possible and manager.consent is ConsentState.UNSET:
            self.scheduler.call_later(
                self.config.delays.consent_prompt_sec, self.open_consent_prompt
            )

        if self.session.is_editing:
            manager.cleanup(0, True, 0)
            manager.set_last_visited_section(self.session.current_section)
            manager.put(self.session.course_id, self.session.current_section, None)

    def open_consent_prompt(self):
        self.prompt.show(self._on_consent_accepted, self._on_consent_declined)

    def on_data_preference_clicked(self):
        self.open_consent_prompt()

    def _on_consent_accepted(self):
        self.manager.record_consent(True)

    def _on_consent_declined(self):
        self.manager.record_consent(False)

    def on_completion_toggled(self, section):
        """
        Cached copies now show the wrong tick and progress figures.

        The landing page (overall progress) is dropped straight away. The
        section itself is re-read once the host has redrawn the checkbox.
        """
        if not self.manager.consent_given:
            return
        course_id = self.session.course_id
        section = int(section)
        self.manager.put(course_id, LANDING_SECTION, None)

        def refresh_section():
            self.manager.put(course_id, section, self.section_html(section))

        self.scheduler.call_later(self.config.delays.completion_refresh_sec, refresh_section)

    def on_tile_clicked(self):
        manager = self.manager
        limit = self.session.max_sections_to_store
        if not manager.ephemeral_enabled or manager.count() <= limit:
            return

        def evict():
            manager.cleanup(self.session.stale_minutes, False, limit)

        logger.debug(f"{manager.count()} sections cached (limit {limit}), scheduling eviction")
        self.scheduler.call_later(self.config.delays.eviction_sec, evict)
