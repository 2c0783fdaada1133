"""Path pointers resolved against documents.

Three expression forms are accepted:

- ``#/a/b``  JSON Pointer in URI fragment form (percent-decoded)
- ``/a/b``   JSON Pointer (``~1`` is ``/``, ``~0`` is ``~``)
- ``a.b``    dotted field path, as used by MongoDB

Pointers are immutable and are shared by every operation of a repository.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping, MutableMapping, MutableSequence
from typing import Any
from urllib.parse import quote, unquote

from .exceptions import InvalidPointerError

_INVALID_ESCAPE = re.compile(r"~(?![01])")


def _unescape(segment: str, expression: str) -> str:
    if _INVALID_ESCAPE.search(segment):
        raise InvalidPointerError(f"Invalid escape sequence in pointer: {expression!r}")
    return segment.replace("~1", "/").replace("~0", "~")


def _escape(segment: str) -> str:
    return segment.replace("~", "~0").replace("/", "~1")


def _parse(expression: str) -> tuple[str, ...]:
    if expression.startswith("#"):
        body = unquote(expression[1:])
        if not body.startswith("/"):
            raise InvalidPointerError(
                f"URI fragment pointers must start with '#/': {expression!r}"
            )
        raw = body[1:].split("/")
    elif expression.startswith("/"):
        raw = expression[1:].split("/")
    else:
        return _parse_dotted(expression)

    segments = tuple(_unescape(s, expression) for s in raw)
    if any(s == "" for s in segments):
        raise InvalidPointerError(f"Empty segment in pointer: {expression!r}")
    return segments


def _parse_dotted(expression: str) -> tuple[str, ...]:
    segments = tuple(expression.split("."))
    if any(s == "" for s in segments):
        raise InvalidPointerError(f"Empty segment in pointer: {expression!r}")
    return segments


def _list_index(segment: str) -> int | None:
    if not segment.isdigit():
        return None
    return int(segment)


class Pointer:
    """A parsed path usable for get/set against a document."""

    __slots__ = ("_path",)

    def __init__(self, path: Iterable[str]):
        path = tuple(path)
        if not path:
            raise InvalidPointerError("A pointer needs at least one segment")
        for segment in path:
            if not isinstance(segment, str) or segment == "":
                raise InvalidPointerError(f"Invalid pointer segment: {segment!r}")
            if "." in segment:
                # MongoDB would read the dot as a nested path in updates.
                raise InvalidPointerError(f"Pointer segment contains '.': {segment!r}")
        self._path = path

    @classmethod
    def create(cls, expression: Pointer | str) -> Pointer:
        if isinstance(expression, Pointer):
            return expression
        if not isinstance(expression, str) or not expression:
            raise InvalidPointerError(
                f"Pointers must be JSON Pointers or strings: {expression!r}."
            )
        return cls(_parse(expression))

    @property
    def path(self) -> tuple[str, ...]:
        return self._path

    @property
    def dotted(self) -> str:
        """The MongoDB field path (``a.b.c``)."""
        return ".".join(self._path)

    @property
    def uri_fragment(self) -> str:
        return "#/" + "/".join(quote(_escape(s), safe="~") for s in self._path)

    def get(self, doc: Any) -> Any:
        """Return the value at this path, or None when any segment is absent."""
        current = doc
        for segment in self._path:
            if isinstance(current, Mapping):
                if segment not in current:
                    return None
                current = current[segment]
            elif isinstance(current, (list, tuple)):
                index = _list_index(segment)
                if index is None or index >= len(current):
                    return None
                current = current[index]
            else:
                return None
        return current

    def set(self, doc: MutableMapping[str, Any], value: Any) -> None:
        """Assign ``value`` at this path, creating intermediate dicts on the way."""
        current: Any = doc
        for segment in self._path[:-1]:
            current = self._step(current, segment)
        self._assign(current, self._path[-1], value)

    def _step(self, container: Any, segment: str) -> Any:
        if isinstance(container, MutableSequence):
            index = _list_index(segment)
            if index is None:
                raise InvalidPointerError(
                    f"Cannot index a list with {segment!r} in pointer {self}"
                )
            while len(container) <= index:
                container.append(None)
            if not isinstance(container[index], (MutableMapping, MutableSequence)):
                container[index] = {}
            return container[index]

        child = container.get(segment)
        if not isinstance(child, (MutableMapping, MutableSequence)):
            child = {}
            container[segment] = child
        return child

    def _assign(self, container: Any, segment: str, value: Any) -> None:
        if isinstance(container, MutableSequence):
            index = _list_index(segment)
            if index is None:
                raise InvalidPointerError(
                    f"Cannot index a list with {segment!r} in pointer {self}"
                )
            while len(container) <= index:
                container.append(None)
            container[index] = value
        else:
            container[segment] = value

    def __str__(self) -> str:
        return "/" + "/".join(_escape(s) for s in self._path)

    def __repr__(self) -> str:
        return f"Pointer({str(self)!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Pointer):
            return NotImplemented
        return self._path == other._path

    def __hash__(self) -> int:
        return hash(self._path)


def resolve(expression: Pointer | str) -> Pointer:
    return Pointer.create(expression)


def prepare_pointers(expressions: Iterable[Pointer | str] | None) -> tuple[Pointer, ...]:
    """Resolve every expression; an empty or missing sequence gives ``()``."""
    if not expressions:
        return ()
    if isinstance(expressions, (str, Pointer)):
        raise InvalidPointerError(
            f"Expected a sequence of pointers, got a single value: {expressions!r}"
        )
    return tuple(Pointer.create(e) for e in expressions)
