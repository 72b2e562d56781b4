"""Tests for the pure optimistic transforms."""

import uuid

import pytest

from trackline_client.transforms import (
    append_child,
    append_item,
    patch_item,
    patch_record,
    remove_item,
    replace_fields,
    toggle_favorite,
)
from trackline_shared.schemas.projects import ProjectSummary


def _project(name="Backend", **kwargs):
    return ProjectSummary(id=uuid.uuid4(), name=name, team_id=uuid.uuid4(), **kwargs)


def test_toggle_favorite_on_models():
    a, b = _project("A"), _project("B", is_favorite=True)
    result = toggle_favorite(a.id)([a, b])
    assert [p.is_favorite for p in result] == [True, True]
    # Input is never mutated.
    assert a.is_favorite is False


def test_toggle_favorite_matches_string_ids():
    a = _project()
    result = toggle_favorite(str(a.id))([a])
    assert result[0].is_favorite is True


def test_toggle_favorite_twice_is_identity():
    items = [{"id": "p1", "is_favorite": False}]
    toggle = toggle_favorite("p1")
    assert toggle(toggle(items)) == items


def test_append_item():
    items = ["a"]
    assert append_item("b")(items) == ["a", "b"]
    assert items == ["a"]


def test_patch_item():
    items = [{"id": "1", "name": "x"}, {"id": "2", "name": "y"}]
    assert patch_item("2", name="z")(items) == [
        {"id": "1", "name": "x"},
        {"id": "2", "name": "z"},
    ]


def test_remove_item():
    items = [{"id": "1"}, {"id": "2"}]
    assert remove_item("1")(items) == [{"id": "2"}]
    assert remove_item("missing")(items) == items


def test_patch_record_on_model():
    project = _project()
    patched = patch_record(name="Renamed")(project)
    assert patched.name == "Renamed"
    assert project.name == "Backend"


def test_append_child():
    record = {"id": "i1", "comments": ["c1"]}
    assert append_child("comments", "c2")(record) == {"id": "i1", "comments": ["c1", "c2"]}
    assert record["comments"] == ["c1"]


def test_replace_fields_rejects_unknown_types():
    with pytest.raises(TypeError):
        replace_fields(42, x=1)
