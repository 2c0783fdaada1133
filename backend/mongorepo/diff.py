"""Structural diff between two documents.

The walk is depth-first. Keys are visited in the order of the updated
document, then keys that only exist in the original are reported as
deletions. Lists are compared by position: growing a list reports array
additions, shrinking it reports array deletions, and a reorder shows up as
edits at every index that differs.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping, Sequence
from enum import Enum
from typing import Any, Union

from pydantic import BaseModel

PathSegment = Union[str, int]

# (path, key) -> True skips the key.
Prefilter = Callable[[list[PathSegment], PathSegment], bool]


class ChangeKind(str, Enum):
    ADDED = "N"
    EDITED = "E"
    DELETED = "D"
    ARRAY = "A"


class ChangeRecord(BaseModel):
    """One difference between two documents.

    For ``ARRAY`` records ``path`` addresses the list, ``index`` the element and
    ``item`` describes what happened to the element. ``lhs``/``rhs`` always hold
    the previous and new value of whatever changed.
    """

    kind: ChangeKind
    path: list[PathSegment]
    lhs: Any = None
    rhs: Any = None
    index: int | None = None
    item: ChangeRecord | None = None

    @property
    def effective_kind(self) -> ChangeKind:
        """The element-level kind for array records, otherwise ``kind``."""
        if self.kind is ChangeKind.ARRAY and self.item is not None:
            return self.item.kind
        return self.kind

    @property
    def full_path(self) -> list[PathSegment]:
        if self.kind is ChangeKind.ARRAY:
            return [*self.path, self.index]
        return list(self.path)


ChangeRecord.model_rebuild()


def _is_mapping(value: Any) -> bool:
    return isinstance(value, Mapping)


def _is_sequence(value: Any) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray))


def _differs(lhs: Any, rhs: Any) -> bool:
    # True == 1 in Python but they are different BSON values.
    return type(lhs) is not type(rhs) or lhs != rhs


def _array_change(
    path: list[PathSegment], index: int, kind: ChangeKind, lhs: Any, rhs: Any
) -> ChangeRecord:
    return ChangeRecord(
        kind=ChangeKind.ARRAY,
        path=path,
        lhs=lhs,
        rhs=rhs,
        index=index,
        item=ChangeRecord(kind=kind, path=[], lhs=lhs, rhs=rhs),
    )


def _diff_mappings(
    lhs: Mapping, rhs: Mapping, path: list[PathSegment], prefilter: Prefilter | None
) -> Iterator[ChangeRecord]:
    for key, value in rhs.items():
        if prefilter and prefilter(path, key):
            continue
        if key not in lhs:
            yield ChangeRecord(kind=ChangeKind.ADDED, path=[*path, key], rhs=value)
        else:
            yield from _diff_values(lhs[key], value, [*path, key], prefilter)

    for key, value in lhs.items():
        if key in rhs:
            continue
        if prefilter and prefilter(path, key):
            continue
        yield ChangeRecord(kind=ChangeKind.DELETED, path=[*path, key], lhs=value)


def _diff_sequences(
    lhs: Sequence, rhs: Sequence, path: list[PathSegment], prefilter: Prefilter | None
) -> Iterator[ChangeRecord]:
    common = min(len(lhs), len(rhs))

    for index in range(common):
        if prefilter and prefilter(path, index):
            continue
        left, right = lhs[index], rhs[index]
        if (_is_mapping(left) and _is_mapping(right)) or (
            _is_sequence(left) and _is_sequence(right)
        ):
            yield from _diff_values(left, right, [*path, index], prefilter)
        elif _differs(left, right):
            yield _array_change(path, index, ChangeKind.EDITED, left, right)

    for index in range(common, len(rhs)):
        if prefilter and prefilter(path, index):
            continue
        yield _array_change(path, index, ChangeKind.ADDED, None, rhs[index])

    for index in range(common, len(lhs)):
        if prefilter and prefilter(path, index):
            continue
        yield _array_change(path, index, ChangeKind.DELETED, lhs[index], None)


def _diff_values(
    lhs: Any, rhs: Any, path: list[PathSegment], prefilter: Prefilter | None
) -> Iterator[ChangeRecord]:
    if _is_mapping(lhs) and _is_mapping(rhs):
        yield from _diff_mappings(lhs, rhs, path, prefilter)
    elif _is_sequence(lhs) and _is_sequence(rhs):
        yield from _diff_sequences(lhs, rhs, path, prefilter)
    elif _differs(lhs, rhs):
        yield ChangeRecord(kind=ChangeKind.EDITED, path=path, lhs=lhs, rhs=rhs)


def observe_diff(
    original: Any, updated: Any, prefilter: Prefilter | None = None
) -> Iterator[ChangeRecord]:
    """Lazily yield the changes that turn ``original`` into ``updated``."""
    yield from _diff_values(original, updated, [], prefilter)


def diff(
    original: Any, updated: Any, prefilter: Prefilter | None = None
) -> list[ChangeRecord]:
    return list(observe_diff(original, updated, prefilter))
