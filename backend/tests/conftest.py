"""Shared fixtures: an in-memory stand-in for a Motor database.

The fake collection follows MongoDB semantics where the repository depends
on them: dotted-path ``$set``/``$unset`` (unsetting an array element leaves
``None`` in its place), code 40 write errors for overlapping update paths,
generated ObjectIds, and E11000 duplicate key errors raised as PyMongo's own
exception types.
"""

import copy
import sys
from pathlib import Path
from typing import Any

import pytest
from bson import ObjectId
from pymongo.errors import BulkWriteError, DuplicateKeyError, WriteError
from pymongo.results import DeleteResult, InsertManyResult, InsertOneResult, UpdateResult

sys.path.insert(0, str(Path(__file__).parent.parent))

from mongorepo import MongoRepository, RepositoryHooks  # noqa: E402

_MISSING = object()


def _get_path(doc: Any, path: str) -> Any:
    current = doc
    for segment in path.split("."):
        if isinstance(current, dict):
            current = current.get(segment, _MISSING)
        elif isinstance(current, list) and segment.isdigit() and int(segment) < len(current):
            current = current[int(segment)]
        else:
            return _MISSING
        if current is _MISSING:
            return _MISSING
    return current


def _parent(doc: dict, path: str, create: bool) -> tuple[Any, str]:
    segments = path.split(".")
    current: Any = doc
    for segment in segments[:-1]:
        if isinstance(current, list):
            index = int(segment)
            while create and len(current) <= index:
                current.append(None)
            if index >= len(current):
                return None, segments[-1]
            if current[index] is None and create:
                current[index] = {}
            current = current[index]
        else:
            if segment not in current:
                if not create:
                    return None, segments[-1]
                current[segment] = {}
            current = current[segment]
    return current, segments[-1]


def check_update_paths(update: dict) -> None:
    """Raise MongoDB's ConflictingUpdateOperators error (code 40) for overlapping paths."""
    paths = [*update.get("$set", {}), *update.get("$unset", {})]
    for i, path in enumerate(paths):
        for other in paths[i + 1:]:
            shorter, longer = sorted((path, other), key=len)
            if longer == shorter or longer.startswith(shorter + "."):
                raise WriteError(
                    f"Updating the path '{longer}' would create a conflict at '{shorter}'",
                    40,
                    {"code": 40, "codeName": "ConflictingUpdateOperators"},
                )


def apply_update(doc: dict, update: dict) -> None:
    for path, value in update.get("$set", {}).items():
        parent, leaf = _parent(doc, path, create=True)
        if isinstance(parent, list):
            index = int(leaf)
            while len(parent) <= index:
                parent.append(None)
            parent[index] = copy.deepcopy(value)
        else:
            parent[leaf] = copy.deepcopy(value)

    for path in update.get("$unset", {}):
        parent, leaf = _parent(doc, path, create=False)
        if isinstance(parent, list):
            if leaf.isdigit() and int(leaf) < len(parent):
                parent[int(leaf)] = None
        elif isinstance(parent, dict):
            parent.pop(leaf, None)


def _matches(doc: dict, query: dict) -> bool:
    for path, expected in query.items():
        actual = _get_path(doc, path)
        if isinstance(expected, dict) and "$in" in expected:
            if actual is _MISSING or actual not in expected["$in"]:
                return False
        elif actual is _MISSING or actual != expected:
            return False
    return True


class FakeCursor:
    def __init__(self, documents: list[dict]):
        self._documents = documents
        self._sort: list[tuple[str, int]] = []
        self._skip = 0
        self._limit = 0
        self._iterator = None
        self.closed = False

    def sort(self, key_or_list, direction=None):
        self._sort = list(key_or_list) if direction is None else [(key_or_list, direction)]
        return self

    def skip(self, count: int):
        self._skip = count
        return self

    def limit(self, count: int):
        self._limit = count
        return self

    def _results(self) -> list[dict]:
        docs = list(self._documents)
        for key, direction in reversed(self._sort):
            docs.sort(key=lambda d: _get_path(d, key), reverse=direction < 0)
        docs = docs[self._skip:]
        if self._limit:
            docs = docs[: self._limit]
        return [copy.deepcopy(d) for d in docs]

    def __aiter__(self):
        return self

    async def __anext__(self):
        if self._iterator is None:
            self._iterator = iter(self._results())
        try:
            return next(self._iterator)
        except StopIteration:
            raise StopAsyncIteration

    async def close(self):
        self.closed = True


class FakeCollection:
    def __init__(self, name: str):
        self.name = name
        self.documents: list[dict] = []
        self.calls: list[tuple[str, Any]] = []

    def _find_by_id(self, id: Any) -> dict | None:
        for doc in self.documents:
            if doc["_id"] == id:
                return doc
        return None

    def _insert(self, document: dict) -> Any:
        if "_id" not in document:
            document["_id"] = ObjectId()
        if self._find_by_id(document["_id"]) is not None:
            message = (
                f"E11000 duplicate key error collection: test.{self.name} "
                f"index: _id_ dup key: {{ _id: {document['_id']!r} }}"
            )
            raise DuplicateKeyError(message, 11000)
        self.documents.append(copy.deepcopy(document))
        return document["_id"]

    async def find_one(self, query: dict):
        self.calls.append(("find_one", query))
        for doc in self.documents:
            if _matches(doc, query):
                return copy.deepcopy(doc)
        return None

    def find(self, query: dict):
        self.calls.append(("find", query))
        return FakeCursor([d for d in self.documents if _matches(d, query)])

    async def insert_one(self, document: dict):
        self.calls.append(("insert_one", document))
        return InsertOneResult(self._insert(document), True)

    async def insert_many(self, documents: list[dict]):
        self.calls.append(("insert_many", documents))
        ids = []
        for index, document in enumerate(documents):
            try:
                ids.append(self._insert(document))
            except DuplicateKeyError as e:
                raise BulkWriteError(
                    {
                        "writeErrors": [{"index": index, "code": 11000, "errmsg": str(e)}],
                        "nInserted": index,
                    }
                )
        return InsertManyResult(ids, True)

    async def update_one(self, query: dict, update: dict):
        self.calls.append(("update_one", (query, update)))
        check_update_paths(update)
        for doc in self.documents:
            if _matches(doc, query):
                apply_update(doc, update)
                return UpdateResult({"n": 1, "nModified": 1}, True)
        return UpdateResult({"n": 0, "nModified": 0}, True)

    async def delete_one(self, query: dict):
        self.calls.append(("delete_one", query))
        for doc in self.documents:
            if _matches(doc, query):
                self.documents.remove(doc)
                return DeleteResult({"n": 1}, True)
        return DeleteResult({"n": 0}, True)

    async def delete_many(self, query: dict):
        self.calls.append(("delete_many", query))
        keep = [d for d in self.documents if not _matches(d, query)]
        removed = len(self.documents) - len(keep)
        self.documents = keep
        return DeleteResult({"n": removed}, True)

    def stored(self, id: Any) -> dict | None:
        return self._find_by_id(id)

    def calls_to(self, method: str) -> list[Any]:
        return [args for name, args in self.calls if name == method]


class FakeDatabase:
    def __init__(self):
        self.collections: dict[str, FakeCollection] = {}

    def get_collection(self, name: str) -> FakeCollection:
        return self.collections.setdefault(name, FakeCollection(name))

    def __getitem__(self, name: str) -> FakeCollection:
        return self.get_collection(name)


class EventRecorder:
    def __init__(self):
        self.events = []

    def __call__(self, event):
        self.events.append(event)

    def of_kind(self, kind: str) -> list:
        return [e for e in self.events if e.kind.value == kind]


@pytest.fixture
def db() -> FakeDatabase:
    return FakeDatabase()


@pytest.fixture
def recorder() -> EventRecorder:
    return EventRecorder()


@pytest.fixture
def make_repo(db, recorder):
    def factory(hooks: RepositoryHooks | None = None, **options) -> MongoRepository:
        options.setdefault("collection", "widgets")
        repo = MongoRepository(db, options, hooks)
        repo.events.add_listener(recorder)
        return repo

    return factory
