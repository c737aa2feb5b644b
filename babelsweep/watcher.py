"""Follow-up sweeps for content inserted after the initial translation."""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional, Sequence

from .cache import OriginalTextRegistry
from .documents import DocumentAdapter, Subscription
from .scanner import NO_TRANSLATE_ATTRIBUTE
from .scheduler import Scheduler, TimerHandle

logger = logging.getLogger(__name__)

DEFAULT_MUTATION_DELAY = 1.5
MIN_CONTENT_LENGTH = 10


class MutationWatcher:
    """Watches for inserted elements and requests a sweep once they settle.

    Only insertions are observed. Text replacements made by a sweep are never
    seen, so applying translations cannot re-trigger the watcher.
    """

    def __init__(
        self,
        document: DocumentAdapter,
        scheduler: Scheduler,
        *,
        is_busy: Callable[[], bool],
        on_new_content: Callable[[], Any],
        registry: OriginalTextRegistry | None = None,
        root: Any = None,
        delay: float = DEFAULT_MUTATION_DELAY,
        min_length: int = MIN_CONTENT_LENGTH,
        no_translate_attribute: str = NO_TRANSLATE_ATTRIBUTE,
    ) -> None:
        self.document = document
        self.scheduler = scheduler
        self.is_busy = is_busy
        self.on_new_content = on_new_content
        self.registry = registry
        self.root = root
        self.delay = delay
        self.min_length = min_length
        self.no_translate_attribute = no_translate_attribute
        self._subscription: Optional[Subscription] = None
        self._timer: Optional[TimerHandle] = None

    @property
    def active(self) -> bool:
        return self._subscription is not None

    @property
    def pending(self) -> bool:
        return self._timer is not None

    def start(self) -> None:
        if self._subscription is not None:
            return
        root = self.root if self.root is not None else self.document.root
        self._subscription = self.document.observe_subtree_insertions(
            root, self._on_insertions
        )
        logger.debug("Mutation watcher started")

    def stop(self) -> None:
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None
            logger.debug("Mutation watcher stopped")
        self._cancel_timer()

    def is_substantial(self, node: Any) -> bool:
        """True for inserted elements carrying real, translatable content."""

        document = self.document
        if not document.is_element(node):
            return False
        if self.registry is not None and node in self.registry:
            return False
        for ancestor in document.iter_ancestors(node):
            if document.is_element(ancestor) and document.has_attribute(
                ancestor, self.no_translate_attribute
            ):
                return False
        text = document.element_text(node).strip()
        if len(text) <= self.min_length:
            return False
        # a lone span is usually a replaced label rather than new content
        return (
            document.descendant_element_count(node) > 0
            or document.tag_name(node) != "span"
        )

    def _on_insertions(self, added: Sequence[Any]) -> None:
        if self.is_busy():
            return
        if not any(self.is_substantial(node) for node in added):
            return
        self._cancel_timer()
        self._timer = self.scheduler.call_later(self.delay, self._fire)

    def _fire(self) -> None:
        self._timer = None
        if self.is_busy():
            logger.debug("Sweep already running; dropping follow-up for new content")
            return
        logger.debug("New content settled; requesting a sweep")
        self.on_new_content()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
