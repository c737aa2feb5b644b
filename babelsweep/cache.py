"""Shared translation cache and original-text bookkeeping."""

from __future__ import annotations

import json
import logging
import pathlib
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple

from .documents import DocumentAdapter

logger = logging.getLogger(__name__)


class TranslationCache:
    """Maps (original text, target language) to translated text.

    The on-disk format is `{text: {language: translation}}` so saved caches
    stay readable and mergeable by hand.
    """

    def __init__(self, path: pathlib.Path | None = None) -> None:
        self.path = path
        self._entries: Dict[str, Dict[str, str]] = {}

    @staticmethod
    def key(text: str) -> str:
        return text.strip()

    def get(self, text: str, language: str) -> Optional[str]:
        return self._entries.get(self.key(text), {}).get(language)

    def put(self, text: str, language: str, translated: str) -> None:
        self._entries.setdefault(self.key(text), {})[language] = translated

    def __len__(self) -> int:
        return sum(len(languages) for languages in self._entries.values())

    def __contains__(self, item: Tuple[str, str]) -> bool:
        text, language = item
        return self.get(text, language) is not None

    def clear(self) -> None:
        self._entries.clear()

    @classmethod
    def load(cls, path: pathlib.Path) -> "TranslationCache":
        """Load a cache file, starting empty when it is missing or unreadable."""

        cache = cls(path)
        if not path.exists():
            return cache
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Ignoring unreadable translation cache %s: %s", path, exc)
            return cache
        if not isinstance(payload, dict):
            logger.warning("Ignoring translation cache %s: expected an object.", path)
            return cache
        for text, languages in payload.items():
            if not isinstance(languages, dict):
                continue
            for language, translated in languages.items():
                if isinstance(translated, str):
                    cache.put(text, language, translated)
        logger.debug("Loaded %d cached translations from %s", len(cache), path)
        return cache

    def save(self, path: pathlib.Path | None = None) -> None:
        destination = path or self.path
        if destination is None:
            raise ValueError("No cache path configured.")
        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_text(
            json.dumps(self._entries, ensure_ascii=False, indent=2),
            encoding="utf-8",
        )


@dataclass
class OriginalTextRecord:
    """Base-language text of an element's direct text children.

    `nodes` and `texts` are parallel. Writes made through the registry swap
    the new node into its slot, so a slot keeps following its text child.
    A node that left the element some other way is treated as detached.
    """

    element: Any
    nodes: List[Any] = field(default_factory=list)
    texts: List[str] = field(default_factory=list)

    def slot_of(self, node: Any) -> Optional[int]:
        for index, tracked in enumerate(self.nodes):
            if tracked is node:
                return index
        return None


class OriginalTextRegistry:
    """Remembers pre-translation text per element so it can be restored.

    Records are only dropped by `clear()`. On long-lived documents that keep
    replacing content, the registry grows with every element ever translated.
    """

    def __init__(self) -> None:
        self._records: Dict[int, OriginalTextRecord] = {}

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, element: Any) -> bool:
        return id(element) in self._records

    def __iter__(self) -> Iterator[OriginalTextRecord]:
        return iter(list(self._records.values()))

    def get(self, element: Any) -> Optional[OriginalTextRecord]:
        return self._records.get(id(element))

    def remember(self, document: DocumentAdapter, element: Any) -> OriginalTextRecord:
        """Record the current text of `element`'s untracked text children.

        Children already recorded keep their first-seen text, so text that
        arrives after a translation is picked up without losing the originals.
        """

        record = self.get(element)
        if record is None:
            record = OriginalTextRecord(element=element)
            # the record holds the element, which keeps its id stable
            self._records[id(element)] = record
        for child in document.text_children(element):
            if record.slot_of(child) is None:
                record.nodes.append(child)
                record.texts.append(document.text_of(child))
        return record

    def original_for(self, document: DocumentAdapter, node: Any, element: Any) -> str:
        """Return the recorded original of `node`, or its current text."""

        record = self.get(element)
        if record is not None:
            index = record.slot_of(node)
            if index is not None:
                return record.texts[index]
        return document.text_of(node)

    def write(self, document: DocumentAdapter, element: Any, node: Any, text: str) -> bool:
        """Write `text` into `node` and keep its record slot pointing at it."""

        replacement = document.replace_text(node, text)
        if replacement is None:
            return False
        record = self.get(element)
        index = record.slot_of(node) if record is not None else None
        if index is not None:
            record.nodes[index] = replacement
        return True

    def restore(self, document: DocumentAdapter, record: OriginalTextRecord) -> int:
        """Write the recorded originals back. Returns the number of writes.

        Only tracked children still attached to the element are touched;
        sibling elements and text added since are left alone.
        """

        writes = 0
        for node, original in list(zip(record.nodes, record.texts)):
            if document.parent_of(node) is not record.element:
                continue
            if document.text_of(node) != original and self.write(
                document, record.element, node, original
            ):
                writes += 1
        return writes

    def restore_all(self, document: DocumentAdapter) -> int:
        return sum(self.restore(document, record) for record in self)

    def clear(self) -> None:
        self._records.clear()
