from pathlib import Path

import pytest

from babelsweep.documents import HtmlDocument, load_document
from babelsweep.errors import UnsupportedFileTypeError


def test_text_nodes_exclude_comments():
    document = HtmlDocument("<body><p>One<!-- note --></p><p>Two</p></body>")
    nodes = list(document.list_text_nodes(None, lambda node: True))
    assert [document.text_of(node) for node in nodes] == ["One", "Two"]


def test_set_text_replaces_attached_nodes_only():
    document = HtmlDocument("<body><p id='p'>Hello</p></body>")
    node = document.find(id="p").contents[0]
    assert document.set_text(node, "Bonjour")
    assert document.find(id="p").get_text() == "Bonjour"
    assert not document.set_text(node, "Hallo")


def test_attribute_helpers():
    document = HtmlDocument(
        '<body><div id="d" class="a b" contenteditable data-no-translate>x</div></body>'
    )
    element = document.find(id="d")
    assert document.class_names(element) == ["a", "b"]
    assert document.get_attribute(element, "class") == "a b"
    assert document.has_attribute(element, "data-no-translate")
    assert document.is_content_editable(element)
    assert document.tag_name(element) == "div"
    assert [document.tag_name(e) for e in document.iter_ancestors(element)][:2] == ["div", "body"]


def test_insert_html_notifies_observers_inside_root():
    document = HtmlDocument("<body><main id='m'></main><aside id='a'></aside></body>")
    seen = []
    subscription = document.observe_subtree_insertions(document.find(id="m"), seen.append)

    document.insert_html(document.find(id="a"), "<p>elsewhere</p>")
    added = document.insert_html(document.find(id="m"), "<p>one</p><p>two</p>")

    assert seen == [added]
    assert [node.get_text() for node in added] == ["one", "two"]
    assert [p.get_text() for p in document.find(id="m").find_all("p")] == ["one", "two"]

    subscription.cancel()
    assert not subscription.active
    document.insert_html(document.find(id="m"), "<p>three</p>")
    assert len(seen) == 1


def test_insert_html_at_index():
    document = HtmlDocument("<body><ul id='l'><li>b</li></ul></body>")
    document.insert_html(document.find(id="l"), "<li>a</li>", index=0)
    assert [li.get_text() for li in document.soup.find_all("li")] == ["a", "b"]


def test_load_document(tmp_path: Path):
    page = tmp_path / "page.HTM"
    page.write_text("<p>Olá</p>", encoding="utf-8")
    document = load_document(page)
    assert document.source_path == page
    assert document.find("p").get_text() == "Olá"

    with pytest.raises(UnsupportedFileTypeError):
        load_document(tmp_path / "slides.pptx")


def test_save_round_trips_markup(tmp_path: Path):
    document = HtmlDocument("<html><body><p>Hi</p></body></html>")
    target = tmp_path / "out.html"
    document.save(target)
    assert target.read_text(encoding="utf-8") == "<html><body><p>Hi</p></body></html>"
