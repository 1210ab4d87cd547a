from __future__ import annotations

import sys
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from aicon_backend.core.canvas import CanvasModel
from aicon_backend.core.errors import ElementNotFound


def _content(element_id, **extra) -> dict:
    return {"id": element_id, "type": "content", "x": 10, "y": 20, "width": 320, "height": 280, **extra}


def test_delete_element_cascades_connections():
    model = CanvasModel()
    model.extend(
        [_content("A"), _content("B"), _content("C")],
        [{"id": "c1", "from": "A", "to": "B"}, {"id": "c2", "from": "B", "to": "C"}],
    )

    model.delete_element("B")

    assert [element.id for element in model.elements] == ["A", "C"]
    assert model.connections == []


def test_delete_element_removes_folder_membership():
    model = CanvasModel()
    model.add_element(_content("1"))
    model.add_element({"id": "f", "type": "folder", "childIds": ["1", "2"]})

    model.delete_element(1)

    assert model.get_element("f").child_ids == ["2"]


def test_update_element_merges_metadata_per_key():
    model = CanvasModel()
    model.add_element(_content("A", metadata={"processedData": {"title": "Demo"}, "isScraping": True}))

    updated = model.update_element("A", {"title": "Demo", "metadata": {"isScraping": False}})

    assert updated.title == "Demo"
    assert updated.metadata == {"processedData": {"title": "Demo"}, "isScraping": False}
    assert updated.x == 10


def test_numeric_and_string_ids_are_the_same_element():
    model = CanvasModel()
    model.add_element(_content(1712345678901))

    assert model.has_element("1712345678901")
    with pytest.raises(ValueError):
        model.add_element(_content("1712345678901"))


def test_unknown_ids():
    model = CanvasModel()
    with pytest.raises(ElementNotFound):
        model.update_element("missing", {"title": "x"})
    with pytest.raises(KeyError):
        model.delete_element("missing")
    model.delete_connection("missing")


def test_observers_see_every_mutation_once():
    model = CanvasModel()
    seen = []
    unsubscribe = model.subscribe(lambda change: seen.append((change.kind, change.target_id)))

    model.add_element(_content("A"))
    model.update_element("A", {"x": 50})
    model.set_title("Plans")
    model.set_viewport({"x": 1, "y": 2, "zoom": 0.5})
    unsubscribe()
    model.delete_element("A")

    assert seen == [
        ("element_added", "A"),
        ("element_updated", "A"),
        ("title", None),
        ("viewport", None),
    ]
    assert model.revision == 5


def test_connected_content_lists_sources_of_a_chat():
    model = CanvasModel()
    model.extend(
        [_content("A"), _content("B"), {"id": "chat", "type": "chat"}, {"id": "note", "type": "text"}],
        [
            {"id": "c1", "from": "A", "to": "chat"},
            {"id": "c2", "from": "note", "to": "chat"},
            {"id": "c3", "from": "B", "to": "A"},
        ],
    )

    assert [element.id for element in model.connected_content("chat")] == ["A"]


def test_readers_return_copies():
    model = CanvasModel()
    model.add_element(_content("A", metadata={"k": 1}))

    element = model.get_element("A")
    element.metadata["k"] = 2

    assert model.get_element("A").metadata == {"k": 1}


def test_clear_resets_title_and_viewport():
    model = CanvasModel(title="Research")
    model.add_element(_content("A"))
    model.set_viewport({"x": 100, "y": 50, "zoom": 2})

    model.clear()

    assert model.elements == []
    assert model.title == "Untitled Canvas"
    assert model.viewport.zoom == 1.0
