"""Document adapters: the tree operations a sweep needs, and an HTML backend."""

from __future__ import annotations

import logging
import pathlib
from abc import ABC, abstractmethod
from typing import Any, Callable, Iterable, Iterator, List, Optional, Sequence

from bs4 import BeautifulSoup
from bs4.element import NavigableString, PreformattedString, Tag

from .errors import UnsupportedFileTypeError

logger = logging.getLogger(__name__)

InsertionCallback = Callable[[Sequence[Any]], None]
TextPredicate = Callable[[Any], bool]

SUPPORTED_SUFFIXES = {".html", ".htm", ".xhtml"}
EDITABLE_VALUES = {"", "true", "plaintext-only"}


class Subscription:
    """Cancellation handle returned by `observe_subtree_insertions`."""

    def __init__(self, cancel: Callable[[], None]) -> None:
        self._cancel = cancel
        self.active = True

    def cancel(self) -> None:
        if self.active:
            self.active = False
            self._cancel()


class DocumentAdapter(ABC):
    """Tree operations consumed by the scanner, sweep and watcher.

    Node and element references are opaque to callers; only the adapter
    interprets them. Any retained tree (HTML, a virtual DOM, a scene graph)
    can implement this interface.
    """

    @property
    @abstractmethod
    def root(self) -> Any:
        """Default traversal root (the body, when the tree has one)."""

    @abstractmethod
    def list_text_nodes(
        self, root: Any, predicate: TextPredicate
    ) -> Iterator[Any]:
        """Yield text nodes under `root` in document order that satisfy `predicate`."""

    @abstractmethod
    def observe_subtree_insertions(
        self, root: Any, callback: InsertionCallback
    ) -> Subscription:
        """Invoke `callback` with the added nodes whenever nodes are inserted under `root`."""

    @abstractmethod
    def replace_text(self, node: Any, text: str) -> Optional[Any]:
        """Write `text` into a text node.

        Returns the node that now holds the text, which may be a new object,
        or None when `node` is detached.
        """

    @abstractmethod
    def text_of(self, node: Any) -> str:
        """Return the content of a text node."""

    @abstractmethod
    def parent_of(self, node: Any) -> Optional[Any]:
        """Return the parent element of a node, if any."""

    @abstractmethod
    def iter_ancestors(self, element: Any) -> Iterator[Any]:
        """Yield `element` and then each ancestor up to the document root."""

    @abstractmethod
    def is_element(self, node: Any) -> bool:
        """True when `node` is an element rather than text."""

    @abstractmethod
    def tag_name(self, element: Any) -> str:
        """Lower-case tag name."""

    @abstractmethod
    def get_attribute(self, element: Any, name: str) -> Optional[str]:
        """Attribute value as a string, or None when absent."""

    @abstractmethod
    def attribute_names(self, element: Any) -> List[str]:
        """Names of all attributes present on `element`."""

    @abstractmethod
    def class_names(self, element: Any) -> List[str]:
        """Class tokens of `element`."""

    @abstractmethod
    def text_children(self, element: Any) -> List[Any]:
        """Direct text-node children of `element`, in order."""

    @abstractmethod
    def element_text(self, element: Any) -> str:
        """Concatenated text content of `element` and its descendants."""

    @abstractmethod
    def descendant_element_count(self, element: Any) -> int:
        """Number of elements below `element`."""

    def set_text(self, node: Any, text: str) -> bool:
        """Replace a text node's content. Returns False if the node is detached."""

        return self.replace_text(node, text) is not None

    def has_attribute(self, element: Any, name: str) -> bool:
        return self.get_attribute(element, name) is not None

    def is_content_editable(self, element: Any) -> bool:
        value = self.get_attribute(element, "contenteditable")
        return value is not None and value.strip().lower() in EDITABLE_VALUES


def _is_text(node: Any) -> bool:
    return isinstance(node, NavigableString) and not isinstance(
        node, PreformattedString
    )


class HtmlDocument(DocumentAdapter):
    """BeautifulSoup-backed HTML tree.

    BeautifulSoup has no mutation events, so content arriving after load goes
    through `insert_html`, which notifies insertion observers. Text writes
    made by `set_text` are never reported to observers.
    """

    def __init__(self, markup: str, *, source_path: pathlib.Path | None = None):
        self.source_path = source_path
        self.soup = BeautifulSoup(markup, "html.parser")
        self._observers: List[tuple[Any, InsertionCallback]] = []

    @classmethod
    def from_path(cls, path: pathlib.Path) -> "HtmlDocument":
        return cls(path.read_text(encoding="utf-8"), source_path=path)

    @property
    def root(self) -> Any:
        return self.soup.body or self.soup

    def find(self, *args: Any, **kwargs: Any) -> Optional[Tag]:
        """Proxy to BeautifulSoup's `find` for locating elements."""

        return self.soup.find(*args, **kwargs)

    def render(self) -> str:
        return str(self.soup)

    def save(self, destination: pathlib.Path) -> None:
        destination.write_text(self.render(), encoding="utf-8")

    # --- Traversal ---------------------------------------------------------

    def list_text_nodes(
        self, root: Any, predicate: TextPredicate
    ) -> Iterator[Any]:
        start = root if root is not None else self.root
        for node in start.descendants:
            if _is_text(node) and predicate(node):
                yield node

    def text_of(self, node: Any) -> str:
        return str(node)

    def parent_of(self, node: Any) -> Optional[Any]:
        return node.parent

    def iter_ancestors(self, element: Any) -> Iterator[Any]:
        current = element
        while current is not None:
            yield current
            current = current.parent

    def is_element(self, node: Any) -> bool:
        return isinstance(node, Tag)

    def tag_name(self, element: Any) -> str:
        return (element.name or "").lower()

    def get_attribute(self, element: Any, name: str) -> Optional[str]:
        value = element.attrs.get(name)
        if value is None:
            return None
        if isinstance(value, list):
            return " ".join(value)
        return str(value)

    def attribute_names(self, element: Any) -> List[str]:
        return list(element.attrs.keys())

    def class_names(self, element: Any) -> List[str]:
        value = element.attrs.get("class") or []
        if isinstance(value, str):
            return value.split()
        return list(value)

    def text_children(self, element: Any) -> List[Any]:
        return [child for child in element.children if _is_text(child)]

    def element_text(self, element: Any) -> str:
        return element.get_text()

    def descendant_element_count(self, element: Any) -> int:
        return len(element.find_all(True))

    # --- Mutation ----------------------------------------------------------

    def replace_text(self, node: Any, text: str) -> Optional[Any]:
        if node.parent is None:
            return None
        # NavigableString is immutable, so the node itself is swapped out
        replacement = NavigableString(text)
        node.replace_with(replacement)
        return replacement

    def insert_html(
        self,
        parent: Tag,
        markup: str,
        *,
        index: int | None = None,
    ) -> List[Any]:
        """Parse `markup` and insert its nodes into `parent`, notifying observers."""

        fragment = BeautifulSoup(markup, "html.parser")
        added = list(fragment.contents)
        position = len(parent.contents) if index is None else index
        for offset, node in enumerate(added):
            parent.insert(position + offset, node.extract())
        self._notify(parent, added)
        return added

    def observe_subtree_insertions(
        self, root: Any, callback: InsertionCallback
    ) -> Subscription:
        entry = (root if root is not None else self.root, callback)
        self._observers.append(entry)

        def _remove() -> None:
            self._observers = [
                observer for observer in self._observers if observer is not entry
            ]

        return Subscription(_remove)

    def _notify(self, parent: Tag, added: Iterable[Any]) -> None:
        nodes = list(added)
        if not nodes:
            return
        chain = list(self.iter_ancestors(parent))
        for root, callback in list(self._observers):
            if any(ancestor is root for ancestor in chain):
                callback(nodes)


def load_document(path: pathlib.Path) -> HtmlDocument:
    """Load a supported document from disk."""

    if path.suffix.lower() not in SUPPORTED_SUFFIXES:
        raise UnsupportedFileTypeError(
            "This file type isn't supported. Please use .html or .htm."
        )
    logger.debug("Loading document %s", path)
    return HtmlDocument.from_path(path)
