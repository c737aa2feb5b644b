"""Selection of the text nodes a sweep should translate."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, FrozenSet, Iterator, Optional, Tuple

from .documents import DocumentAdapter
from .structures import EligibleTextNode

logger = logging.getLogger(__name__)

NO_TRANSLATE_ATTRIBUTE = "data-no-translate"

TECHNICAL_FRAGMENTS = ("http://", "https://", "www.", "console.log")
TECHNICAL_PATTERNS = (
    re.compile(r"^\d+px$"),
    re.compile(r"^\d+rem$"),
    re.compile(r"^#[0-9a-fA-F]{6}$"),
)


@dataclass(frozen=True)
class ExclusionPolicy:
    """Tunable heuristics deciding which text is left untouched.

    These are pattern matches, not a formal classification: a sentence that
    happens to contain "www." is skipped too.
    """

    min_length: int = 1
    skip_tags: FrozenSet[str] = frozenset(
        {"script", "style", "noscript", "input", "textarea", "select"}
    )
    no_translate_attribute: str = NO_TRANSLATE_ATTRIBUTE
    component_attributes: Tuple[str, ...] = (
        "data-language-selector",
        "data-translate-component",
        "data-radix-select-content",
        "data-radix-select-item",
        "data-radix-select-trigger",
        "data-radix-select-viewport",
    )
    class_fragments: Tuple[str, ...] = (
        "language-selector",
        "google-translate",
        "translation-",
        "select-content",
        "select-item",
        "select-trigger",
    )
    technical_fragments: Tuple[str, ...] = TECHNICAL_FRAGMENTS
    technical_patterns: Tuple[re.Pattern[str], ...] = TECHNICAL_PATTERNS

    def is_technical(self, text: str) -> bool:
        if any(fragment in text for fragment in self.technical_fragments):
            return True
        return any(pattern.match(text) for pattern in self.technical_patterns)


def is_technical_text(text: str, policy: ExclusionPolicy | None = None) -> bool:
    """Return True when `text` looks like a URL, CSS length or hex color."""

    return (policy or ExclusionPolicy()).is_technical(text.strip())


class DomScanner:
    """Walks a document and yields the text nodes eligible for translation."""

    def __init__(
        self,
        document: DocumentAdapter,
        policy: ExclusionPolicy | None = None,
    ) -> None:
        self.document = document
        self.policy = policy or ExclusionPolicy()

    def scan(self, root: Any = None) -> Iterator[EligibleTextNode]:
        """Lazily yield eligible text nodes under `root` in document order.

        Read-only. The generator is single-use; call `scan` again for a fresh
        traversal.
        """

        start = root if root is not None else self.document.root
        for node in self.document.list_text_nodes(start, self.accepts):
            parent = self.document.parent_of(node)
            yield EligibleTextNode(
                node=node,
                parent=parent,
                text=self.document.text_of(node).strip(),
            )

    def accepts(self, node: Any) -> bool:
        """Apply every exclusion rule to a single text node."""

        document = self.document
        text = document.text_of(node).strip()
        if len(text) < max(1, self.policy.min_length):
            return False

        parent = document.parent_of(node)
        if parent is None or not document.is_element(parent):
            return False
        if document.tag_name(parent) in self.policy.skip_tags:
            return False
        if document.is_content_editable(parent):
            return False
        if document.has_attribute(parent, self.policy.no_translate_attribute):
            return False
        if self.policy.is_technical(text):
            return False

        excluded = self.excluded_ancestor(parent)
        if excluded is not None:
            logger.debug(
                "Skipping %r inside excluded <%s>",
                text[:40],
                document.tag_name(excluded),
            )
            return False
        return True

    def excluded_ancestor(self, element: Any) -> Optional[Any]:
        """Return the first element from `element` upwards that opts out, if any."""

        for ancestor in self.document.iter_ancestors(element):
            if self.is_excluded_element(ancestor):
                return ancestor
        return None

    def is_excluded_element(self, element: Any) -> bool:
        document = self.document
        if document.has_attribute(element, self.policy.no_translate_attribute):
            return True
        attributes = document.attribute_names(element)
        if any(name in attributes for name in self.policy.component_attributes):
            return True
        class_value = " ".join(document.class_names(element))
        return any(fragment in class_value for fragment in self.policy.class_fragments)
