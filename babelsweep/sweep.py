"""Sweep orchestration: debounce, scan, translate, apply, restore."""

from __future__ import annotations

import asyncio
import logging
import time
import weakref
from typing import Any, List, Optional

from .cache import OriginalTextRegistry
from .client import TranslationClient
from .documents import DocumentAdapter
from .scanner import DomScanner
from .scheduler import AsyncioScheduler, Scheduler, TimerHandle
from .structures import EligibleTextNode, SweepReport, SweepState
from .watcher import DEFAULT_MUTATION_DELAY, MutationWatcher

logger = logging.getLogger(__name__)

DEFAULT_SETTLE_DELAY = 0.8

_debug_target: Optional["weakref.ReferenceType[SweepOrchestrator]"] = None


def _with_padding(current: str, translated: str) -> str:
    """Keep the surrounding whitespace of `current` around `translated`."""

    stripped = current.strip()
    if not stripped:
        return translated
    start = current.find(stripped)
    return current[:start] + translated + current[start + len(stripped):]


class SweepOrchestrator:
    """Keeps a document translated into the active language.

    At most one sweep runs at a time. A sweep requested while another is in
    progress is dropped, so the document converges on the last language that
    was accepted, not necessarily the last one requested.
    """

    def __init__(
        self,
        document: DocumentAdapter,
        client: TranslationClient,
        *,
        base_language: str = "en",
        scanner: DomScanner | None = None,
        registry: OriginalTextRegistry | None = None,
        scheduler: Scheduler | None = None,
        root: Any = None,
        settle_delay: float = DEFAULT_SETTLE_DELAY,
        mutation_delay: float = DEFAULT_MUTATION_DELAY,
        watch_mutations: bool = True,
        debug_hook: bool = True,
    ) -> None:
        self.document = document
        self.client = client
        self.base_language = base_language
        self.scanner = scanner or DomScanner(document)
        self.registry = registry if registry is not None else OriginalTextRegistry()
        self.scheduler = scheduler or AsyncioScheduler()
        self.root = root
        self.settle_delay = settle_delay

        self.state = SweepState.IDLE
        self.language = base_language
        self.last_report: Optional[SweepReport] = None
        self.reports: List[SweepReport] = []
        self._debounce: Optional[TimerHandle] = None
        self._pending: Optional[asyncio.Future] = None

        self.watcher: Optional[MutationWatcher] = None
        if watch_mutations:
            self.watcher = MutationWatcher(
                document,
                self.scheduler,
                is_busy=lambda: self.busy,
                on_new_content=self.request_sweep,
                registry=self.registry,
                root=root,
                delay=mutation_delay,
                no_translate_attribute=self.scanner.policy.no_translate_attribute,
            )
        if debug_hook:
            install_debug_hook(self)

    @classmethod
    def from_settings(
        cls,
        document: DocumentAdapter,
        client: TranslationClient,
        settings: Any,
        **kwargs: Any,
    ) -> "SweepOrchestrator":
        """Build an orchestrator using the delays from a loaded configuration."""

        kwargs.setdefault("base_language", client.source_language)
        kwargs.setdefault("settle_delay", settings.BABELSWEEP_SETTLE_DELAY)
        kwargs.setdefault("mutation_delay", settings.BABELSWEEP_MUTATION_DELAY)
        return cls(document, client, **kwargs)

    @property
    def busy(self) -> bool:
        return self.state is not SweepState.IDLE

    # --- Triggers ----------------------------------------------------------

    def set_language(self, language: str) -> None:
        """Switch the active language; the sweep starts once changes settle."""

        language = (language or "").strip()
        if not language:
            return
        self.language = language
        self.client.current_language = language

        if self.watcher is not None:
            if language == self.base_language:
                self.watcher.stop()
            else:
                self.watcher.start()

        self._cancel_debounce()
        self._debounce = self.scheduler.call_later(self.settle_delay, self._on_settled)

    async def sweep_to(self, language: str) -> Optional[SweepReport]:
        """Switch language and sweep immediately, bypassing the debounce."""

        self._cancel_debounce()
        self.language = language.strip() or self.language
        self.client.current_language = self.language
        return await self.sweep()

    def request_sweep(self) -> Optional[asyncio.Future]:
        """Start a sweep in the background unless one is running or queued."""

        if self.busy:
            logger.debug("Sweep already in progress; dropping request")
            return None
        if self._pending is not None and not self._pending.done():
            return self._pending
        self._pending = self.scheduler.spawn(self.sweep())
        return self._pending

    async def join(self) -> None:
        """Wait for the background sweep, if any, to finish."""

        while self._pending is not None and not self._pending.done():
            await asyncio.wait([self._pending])

    def close(self) -> None:
        """Stop watching the document and cancel timers."""

        global _debug_target
        self._cancel_debounce()
        if self.watcher is not None:
            self.watcher.stop()
        if _debug_target is not None and _debug_target() is self:
            _debug_target = None

    def _on_settled(self) -> None:
        self._debounce = None
        self.request_sweep()

    def _cancel_debounce(self) -> None:
        if self._debounce is not None:
            self._debounce.cancel()
            self._debounce = None

    # --- Sweep -------------------------------------------------------------

    async def sweep(self) -> Optional[SweepReport]:
        """Run one full sweep for the active language.

        Returns None without touching the document when another sweep is
        already in progress.
        """

        if self.busy:
            logger.debug("Sweep already in progress; dropping request")
            return None

        language = self.language
        started = time.monotonic()
        try:
            if language == self.base_language:
                report = self._restore(language)
            else:
                report = await self._translate(language)
        finally:
            self.state = SweepState.IDLE

        report.elapsed_seconds = time.monotonic() - started
        self.last_report = report
        self.reports.append(report)
        logger.info(
            "Sweep to %s finished: %d nodes scanned, %d updated%s in %.2fs",
            language,
            report.scanned_nodes,
            report.applied_nodes,
            " (restore)" if report.restored else "",
            report.elapsed_seconds,
        )
        return report

    def _restore(self, language: str) -> SweepReport:
        self.state = SweepState.RESTORING
        applied = self.registry.restore_all(self.document)
        return SweepReport(language=language, restored=True, applied_nodes=applied)

    async def _translate(self, language: str) -> SweepReport:
        self.state = SweepState.SCANNING
        nodes = list(self.scanner.scan(self.root))
        report = SweepReport(language=language, restored=False, scanned_nodes=len(nodes))
        if not nodes:
            return report

        self.state = SweepState.TRANSLATING
        sources: List[str] = []
        for item in nodes:
            if item.parent is not None:
                self.registry.remember(self.document, item.parent)
            original = self.registry.original_for(self.document, item.node, item.parent)
            sources.append(original.strip() or item.text)

        results = await asyncio.gather(
            *(self._translate_node(item, source, language) for item, source in zip(nodes, sources))
        )
        report.translation_requests = len(sources)

        # nothing is written until every translation has resolved
        self.state = SweepState.APPLYING
        for item, (translated, failed) in zip(nodes, results):
            if failed:
                # the node keeps whatever it showed before this sweep
                report.failed_nodes += 1
                continue
            current = self.document.text_of(item.node)
            updated = _with_padding(current, translated)
            if updated != current and self.registry.write(
                self.document, item.parent, item.node, updated
            ):
                report.applied_nodes += 1
        return report

    async def _translate_node(
        self, item: EligibleTextNode, source: str, language: str
    ) -> tuple[str, bool]:
        try:
            translated, ok = await self.client.translate_result(source, language)
            return translated, not ok
        except Exception:
            logger.exception("Translation of %r failed; keeping original", source[:60])
            return source, True


def install_debug_hook(orchestrator: SweepOrchestrator) -> None:
    """Make `force_translation()` target `orchestrator`."""

    global _debug_target
    _debug_target = weakref.ref(orchestrator)


def force_translation() -> Optional[asyncio.Future]:
    """Manually trigger a sweep on the most recently installed orchestrator.

    Intended for interactive debugging sessions.
    """

    orchestrator = _debug_target() if _debug_target is not None else None
    if orchestrator is None:
        logger.warning("force_translation called with no active orchestrator")
        return None
    return orchestrator.request_sweep()
