"""Compile change records into a MongoDB ``$set`` / ``$unset`` update."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from pydantic import BaseModel, Field

from .diff import ChangeKind, ChangeRecord, Prefilter, diff

# $unset ignores the value; the empty string is what the MongoDB docs use.
REMOVAL_MARKER = ""


class UpdateSet(BaseModel):
    """Field-level assignments and removals, keyed by dotted path.

    A path is never present in both maps.
    """

    assignments: dict[str, Any] = Field(default_factory=dict)
    removals: dict[str, Any] = Field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not self.assignments and not self.removals

    def set(self, path: str, value: Any) -> None:
        self.removals.pop(path, None)
        self.assignments[path] = value

    def unset(self, path: str) -> None:
        self.assignments.pop(path, None)
        self.removals[path] = REMOVAL_MARKER

    def to_mongo(self) -> dict[str, dict[str, Any]]:
        """Render as an update document; ``{}`` when there is nothing to do."""
        update: dict[str, dict[str, Any]] = {}
        if self.assignments:
            update["$set"] = dict(self.assignments)
        if self.removals:
            update["$unset"] = dict(self.removals)
        return update

    @classmethod
    def from_mongo(cls, update: dict[str, Any]) -> UpdateSet:
        return cls(
            assignments=dict(update.get("$set") or {}),
            removals=dict(update.get("$unset") or {}),
        )


def change_path(record: ChangeRecord) -> str:
    return ".".join(str(segment) for segment in record.full_path)


def compile_update_set(records: Iterable[ChangeRecord]) -> UpdateSet:
    update_set = UpdateSet()
    for record in records:
        path = change_path(record)
        if record.effective_kind is ChangeKind.DELETED:
            update_set.unset(path)
        else:
            update_set.set(path, record.rhs)
    return update_set


def make_update_set(
    original: Any, updated: Any, prefilter: Prefilter | None = None
) -> UpdateSet:
    """Diff two documents and compile the result."""
    return compile_update_set(diff(original, updated, prefilter))
