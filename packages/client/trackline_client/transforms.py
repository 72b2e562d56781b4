"""
Pure state transforms for optimistic updates.

Each factory returns a function ``state -> new state`` that never mutates its
input. Items may be pydantic models or plain dicts; they are matched by ``id``.
"""

from __future__ import annotations

from typing import Any, Callable, Sequence, TypeVar

from pydantic import BaseModel

T = TypeVar("T")

Transform = Callable[[T], T]


def _item_id(item: Any) -> str:
    raw = item["id"] if isinstance(item, dict) else item.id
    return str(raw)


def _get(item: Any, field: str) -> Any:
    return item[field] if isinstance(item, dict) else getattr(item, field)


def replace_fields(item: T, **fields: Any) -> T:
    """Copy of ``item`` with ``fields`` replaced."""
    if isinstance(item, BaseModel):
        return item.model_copy(update=fields)
    if isinstance(item, dict):
        return {**item, **fields}
    raise TypeError(f"Cannot patch {type(item).__name__}")


def toggle_favorite(item_id: Any, field: str = "is_favorite") -> Transform[list]:
    """Flip the favorite flag of the matching item."""
    key = str(item_id)

    def apply(items: Sequence[Any]) -> list:
        return [
            replace_fields(i, **{field: not _get(i, field)}) if _item_id(i) == key else i
            for i in items
        ]

    return apply


def append_item(item: Any) -> Transform[list]:
    def apply(items: Sequence[Any]) -> list:
        return [*items, item]

    return apply


def patch_item(item_id: Any, **fields: Any) -> Transform[list]:
    key = str(item_id)

    def apply(items: Sequence[Any]) -> list:
        return [replace_fields(i, **fields) if _item_id(i) == key else i for i in items]

    return apply


def remove_item(item_id: Any) -> Transform[list]:
    key = str(item_id)

    def apply(items: Sequence[Any]) -> list:
        return [i for i in items if _item_id(i) != key]

    return apply


def append_child(field: str, item: Any) -> Transform:
    """Append ``item`` to the list held in ``field`` of a single record."""

    def apply(record: T) -> T:
        return replace_fields(record, **{field: [*_get(record, field), item]})

    return apply


def patch_record(**fields: Any) -> Transform:
    """Replace fields on a single record (for example an issue being edited)."""

    def apply(record: T) -> T:
        return replace_fields(record, **fields)

    return apply
