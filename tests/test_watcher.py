"""Tests for the mutation watcher's debounce and content filter."""

import pytest

from babelsweep.cache import OriginalTextRegistry
from babelsweep.documents import HtmlDocument
from babelsweep.watcher import MutationWatcher


@pytest.fixture
def document():
    return HtmlDocument("<body><p id='known'>Existing paragraph text</p><main id='feed'></main></body>")


def make_watcher(document, scheduler, *, busy=False, registry=None):
    requests = []
    watcher = MutationWatcher(
        document,
        scheduler,
        is_busy=lambda: busy,
        on_new_content=lambda: requests.append(scheduler.now),
        registry=registry,
    )
    return watcher, requests


class TestSubstantialContent:
    @pytest.mark.parametrize(
        "markup, expected",
        [
            ("<div>A fresh block of text</div>", True),
            ("<span>Short</span>", False),
            ("<div>tiny text</div>", False),
            ("<span>A lone span label here</span>", False),
            ("<span><b>Nested content inside</b></span>", True),
            ("<div data-no-translate>A fresh block of text</div>", False),
        ],
    )
    def test_inserted_markup(self, document, scheduler, markup, expected):
        watcher, _ = make_watcher(document, scheduler)
        (node,) = document.insert_html(document.find(id="feed"), markup)
        assert watcher.is_substantial(node) is expected

    def test_text_nodes_are_not_substantial(self, document, scheduler):
        watcher, _ = make_watcher(document, scheduler)
        (node,) = document.insert_html(document.find(id="feed"), "Plain inserted sentence")
        assert not watcher.is_substantial(node)

    def test_marked_ancestor_excludes(self, scheduler):
        document = HtmlDocument("<body><aside data-no-translate><ul id='log'></ul></aside></body>")
        watcher, _ = make_watcher(document, scheduler)
        (node,) = document.insert_html(document.find(id="log"), "<li>Log line with details</li>")
        assert not watcher.is_substantial(node)

    def test_registered_elements_are_ignored(self, document, scheduler):
        registry = OriginalTextRegistry()
        known = document.find(id="known")
        registry.remember(document, known)
        watcher, _ = make_watcher(document, scheduler, registry=registry)
        assert not watcher.is_substantial(known)


class TestDebounce:
    def test_burst_of_insertions_requests_one_sweep(self, document, scheduler):
        watcher, requests = make_watcher(document, scheduler)
        watcher.start()
        feed = document.find(id="feed")

        for _ in range(3):
            document.insert_html(feed, "<article>Another loaded story</article>")
            scheduler.advance(1.0)
        assert requests == []

        scheduler.advance(0.6)
        assert len(requests) == 1
        assert not watcher.pending

    def test_trivial_insertions_do_not_arm_timer(self, document, scheduler):
        watcher, requests = make_watcher(document, scheduler)
        watcher.start()
        document.insert_html(document.find(id="feed"), "<span>OK</span>")
        assert not watcher.pending
        scheduler.advance(5)
        assert requests == []

    def test_insertions_while_busy_are_ignored(self, document, scheduler):
        watcher, requests = make_watcher(document, scheduler, busy=True)
        watcher.start()
        document.insert_html(document.find(id="feed"), "<div>A fresh block of text</div>")
        assert not watcher.pending

    def test_busy_at_fire_time_drops_request(self, document, scheduler):
        state = {"busy": False}
        requests = []
        watcher = MutationWatcher(
            document,
            scheduler,
            is_busy=lambda: state["busy"],
            on_new_content=lambda: requests.append(True),
        )
        watcher.start()
        document.insert_html(document.find(id="feed"), "<div>A fresh block of text</div>")
        state["busy"] = True
        scheduler.advance(1.5)
        assert requests == []

    def test_stop_cancels_timer_and_subscription(self, document, scheduler):
        watcher, requests = make_watcher(document, scheduler)
        watcher.start()
        watcher.start()
        document.insert_html(document.find(id="feed"), "<div>A fresh block of text</div>")
        watcher.stop()

        assert not watcher.active
        scheduler.advance(2)
        document.insert_html(document.find(id="feed"), "<div>Another fresh block</div>")
        assert not watcher.pending
        assert requests == []

    def test_text_replacement_is_not_observed(self, document, scheduler):
        watcher, _ = make_watcher(document, scheduler)
        watcher.start()
        known = document.find(id="known")
        document.set_text(known.contents[0], "Paragraphe existant avec du texte")
        assert not watcher.pending
