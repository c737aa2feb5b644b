import asyncio
from typing import Callable, Dict, Iterable, List, Tuple

import pytest

from babelsweep.documents import HtmlDocument
from babelsweep.errors import TranslationProviderError
from babelsweep.providers import TranslationProvider
from babelsweep.scheduler import Scheduler


FRENCH = {
    "Hello": "Bonjour",
    "Goodbye": "Au revoir",
    "world": "monde",
    "again": "encore",
    "Lazy loaded paragraph text": "Texte de paragraphe chargé plus tard",
}
GERMAN = {
    "Hello": "Hallo",
    "Goodbye": "Auf Wiedersehen",
}


class DictionaryProvider(TranslationProvider):
    """Looks translations up in a nested mapping and records every call."""

    name = "dictionary"

    def __init__(
        self,
        mapping: Dict[str, Dict[str, str]] | None = None,
        *,
        failures: Iterable[str] = (),
    ) -> None:
        self.mapping = mapping if mapping is not None else {"fr": FRENCH, "de": GERMAN}
        self.failures = set(failures)
        self.calls: List[Tuple[str, str]] = []
        self.batch_calls: List[List[str]] = []

    async def translate(self, text, *, source_language, target_language):
        self.calls.append((text, target_language))
        await asyncio.sleep(0)
        if text in self.failures:
            raise TranslationProviderError(f"cannot translate {text!r}")
        return self.mapping.get(target_language, {}).get(text, text)

    async def translate_batch(self, texts, *, source_language, target_language):
        self.batch_calls.append(list(texts))
        if any(text in self.failures for text in texts):
            raise TranslationProviderError("batch failed")
        return [self.mapping.get(target_language, {}).get(text, text) for text in texts]


class GatedProvider(DictionaryProvider):
    """Holds every translation until `gate` is set."""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.gate = asyncio.Event()

    async def translate(self, text, *, source_language, target_language):
        await self.gate.wait()
        return await super().translate(
            text, source_language=source_language, target_language=target_language
        )


class FakeTimer:
    def __init__(self, when: float, callback: Callable[[], object]) -> None:
        self.when = when
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler(Scheduler):
    """Deterministic clock: timers only fire when `advance` is called."""

    def __init__(self) -> None:
        self.now = 0.0
        self.timers: List[FakeTimer] = []

    def call_later(self, delay, callback):
        timer = FakeTimer(self.now + delay, callback)
        self.timers.append(timer)
        return timer

    def spawn(self, coroutine):
        return asyncio.ensure_future(coroutine)

    @property
    def pending(self) -> List[FakeTimer]:
        return [timer for timer in self.timers if not timer.cancelled]

    def advance(self, seconds: float) -> None:
        self.now += seconds
        while True:
            due = sorted(
                (t for t in self.pending if t.when <= self.now),
                key=lambda timer: timer.when,
            )
            if not due:
                return
            for timer in due:
                self.timers.remove(timer)
                timer.callback()


def paragraphs(document: HtmlDocument) -> List[str]:
    return [p.get_text() for p in document.soup.find_all("p")]


@pytest.fixture
def provider():
    return DictionaryProvider()


@pytest.fixture
def scheduler():
    return FakeScheduler()
