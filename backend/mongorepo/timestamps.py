"""UTC timestamp injection at pointer-addressed fields."""

from __future__ import annotations

import copy
from collections.abc import MutableMapping, Sequence
from datetime import datetime, timezone
from typing import Any

from .pointers import Pointer
from .update_set import UpdateSet


def utc_now() -> datetime:
    """Current UTC time truncated to milliseconds (BSON date precision)."""
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=now.microsecond // 1000 * 1000)


def set_value_for_all_pointers(
    doc: MutableMapping[str, Any], pointers: Sequence[Pointer], value: Any
) -> None:
    for pointer in pointers:
        pointer.set(doc, value)


def apply_timestamps(
    doc: MutableMapping[str, Any],
    pointers: Sequence[Pointer] | None,
    now: datetime | None = None,
) -> MutableMapping[str, Any]:
    """Set every pointed-to field of ``doc`` to one shared UTC instant."""
    if pointers:
        set_value_for_all_pointers(doc, pointers, now or utc_now())
    return doc


def _overlaps(path: str, other: str) -> bool:
    return path == other or other.startswith(path + ".") or path.startswith(other + ".")


def _set_update_timestamp(update_set: UpdateSet, pointer: Pointer, now: datetime) -> None:
    segments = pointer.path
    for depth in range(len(segments) - 1, 0, -1):
        parent = ".".join(segments[:depth])
        if parent in update_set.assignments:
            # Write inside the assigned sub-document; a sibling key would conflict.
            holder = {"value": copy.deepcopy(update_set.assignments[parent])}
            Pointer(("value", *segments[depth:])).set(holder, now)
            update_set.assignments[parent] = holder["value"]
            return

    dotted = pointer.dotted
    for path in [p for p in update_set.assignments if _overlaps(dotted, p)]:
        del update_set.assignments[path]
    for path in [p for p in update_set.removals if _overlaps(dotted, p)]:
        del update_set.removals[path]
    update_set.set(dotted, now)


def apply_update_timestamps(
    update_set: UpdateSet,
    pointers: Sequence[Pointer] | None,
    now: datetime | None = None,
) -> UpdateSet:
    """Assign one UTC instant to every pointer's path in ``update_set``.

    MongoDB rejects an update whose paths overlap, so a timestamp below an
    assigned sub-document is written into that value, and any removal or
    assignment on the timestamp's own path, its parents or its children is
    dropped.
    """
    if pointers:
        now = now or utc_now()
        for pointer in pointers:
            _set_update_timestamp(update_set, pointer, now)
    return update_set
