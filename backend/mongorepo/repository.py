"""
MongoRepository

Boilerplate CRUD for one domain model stored in one MongoDB collection.

Operations:
- create(model) -> dict: Validate, timestamp and insert a model
- batch_create(models) -> list[dict]: Validate all, then insert in one batch
- get_by_id(id) -> dict: Fetch one model by identity
- update(model) -> int: Send only the fields that differ from the stored document
- delete(id) -> int / delete_match(match) -> int: Remove by identity or query
- find_match(match) / find_windowed_match(...) -> ModelStream: Raw query pass-through

Behavior is customized through RepositoryHooks rather than subclassing, and
lifecycle events are delivered to listeners registered on ``repo.events``.
"""

from __future__ import annotations

import asyncio
import copy
import logging
from collections.abc import Mapping, MutableMapping, Sequence
from typing import Any, NoReturn

from pymongo.errors import PyMongoError

from .config import IdentityAccessor, RepositoryOptions
from .events import (
    BatchCreatedEvent,
    CreatedEvent,
    DeletedEvent,
    FetchedEvent,
    MatchDeletedEvent,
    RepositoryEvent,
    RepositoryEvents,
    UpdatedEvent,
)
from .exceptions import BatchItemError, BatchValidationError, InvalidArgumentError, ValidationError
from .hooks import RepositoryHooks, maybe_await
from .pointers import Pointer
from .stream import ModelStream
from .timestamps import apply_timestamps, apply_update_timestamps

logger = logging.getLogger(__name__)

ID_FIELD = "_id"


def _property_accessor(name: str) -> IdentityAccessor:
    def accessor(model: Mapping[str, Any]) -> Any:
        if model:
            return model.get(name)
        return None

    accessor.__name__ = f"identity_from_{name}"
    return accessor


def _resolve_collection(db: Any, name: str) -> Any:
    get_collection = getattr(db, "get_collection", None)
    if callable(get_collection):
        return get_collection(name)
    return db[name]


def _sort_spec(sort: Mapping[str, Any] | Sequence[tuple[str, Any]]) -> list[tuple[str, Any]]:
    if isinstance(sort, Mapping):
        return list(sort.items())
    return [tuple(pair) for pair in sort]


def _count(result: Any, *attrs: str) -> int:
    """Affected count from a driver result object, a raw reply, or a bare number."""
    if result is None:
        return 0
    if isinstance(result, int) and not isinstance(result, bool):
        return result
    for attr in attrs:
        value = getattr(result, attr, None)
        if isinstance(value, int):
            return value
    if isinstance(result, Mapping):
        for key in ("n", "matchedCount", "deletedCount"):
            if isinstance(result.get(key), int):
                return result[key]
    return 0


def _is_missing(id: Any) -> bool:
    return id is None or (isinstance(id, str) and not id)


class MongoRepository:
    """
    A repository over a single MongoDB collection.

    Args:
        db: Motor database (anything with ``get_collection(name)`` or ``db[name]``)
        options: RepositoryOptions, or a mapping of its fields
        hooks: Optional RepositoryHooks overriding validation, transforms,
            diffing, error translation and not-found handling
    """

    def __init__(
        self,
        db: Any,
        options: RepositoryOptions | Mapping[str, Any],
        hooks: RepositoryHooks | None = None,
    ):
        if db is None:
            raise InvalidArgumentError("db is required")
        if hooks is not None and not isinstance(hooks, RepositoryHooks):
            raise InvalidArgumentError(f"hooks must be RepositoryHooks: {hooks!r}")

        self.options = RepositoryOptions.from_options(options)
        self.hooks = hooks or RepositoryHooks()
        self.events = RepositoryEvents()

        id_option = self.options.id
        self.identity: IdentityAccessor = (
            id_option if callable(id_option) else _property_accessor(id_option)
        )

        self._db = db
        self._collection = _resolve_collection(db, self.options.collection)

        logger.debug(
            f"Initialized MongoRepository (collection={self.namespace}, "
            f"model={self.descriptive_name})"
        )

    def __repr__(self) -> str:
        return f"MongoRepository(collection={self.namespace!r})"

    @property
    def db(self) -> Any:
        return self._db

    @property
    def collection(self) -> Any:
        return self._collection

    @property
    def namespace(self) -> str:
        return self.options.collection

    @property
    def descriptive_name(self) -> str:
        return self.options.descriptive_name

    @property
    def timestamp_on_create(self) -> tuple[Pointer, ...]:
        return self.options.timestamp_on_create

    @property
    def timestamp_on_update(self) -> tuple[Pointer, ...]:
        return self.options.timestamp_on_update

    # ------------------------------------------------------------------
    # Pipeline helpers
    # ------------------------------------------------------------------

    def _check_model(self, model: Any, name: str = "model") -> None:
        if not isinstance(model, Mapping):
            raise InvalidArgumentError(
                f"{name} must be a mapping, got {type(model).__name__}",
                self.descriptive_name,
            )

    def _check_id(self, id: Any) -> None:
        if _is_missing(id):
            raise InvalidArgumentError("id is required", self.descriptive_name)

    def _check_match(self, match: Any) -> None:
        if not isinstance(match, Mapping):
            raise InvalidArgumentError(
                f"match must be a mapping, got {type(match).__name__}",
                self.descriptive_name,
            )

    async def _validate(self, model: Mapping[str, Any]) -> None:
        await maybe_await(self.hooks.validate(model))

    def _translate(self, err: BaseException) -> BaseException:
        return self.hooks.translate_db_error(self, err)

    def _raise_translated(self, err: PyMongoError, operation: str) -> NoReturn:
        translated = self._translate(err)
        logger.error(
            f"{operation} on {self.namespace} failed: {type(translated).__name__}: {translated}"
        )
        if translated is err:
            raise err
        raise translated from err

    def _to_storage(self, model: Mapping[str, Any]) -> MutableMapping[str, Any]:
        data = self.hooks.transform_model(model)
        if not isinstance(data, Mapping):
            raise InvalidArgumentError(
                "transform_model must return a mapping", self.descriptive_name
            )
        # Injected fields must never leak back into the caller's model.
        return copy.deepcopy(dict(data))

    def _default_identity(self, data: MutableMapping[str, Any], model: Mapping[str, Any]) -> None:
        if _is_missing(data.get(ID_FIELD)):
            id = self.identity(model)
            if not _is_missing(id):
                data[ID_FIELD] = id

    def _prepare_for_create(self, model: Mapping[str, Any]) -> MutableMapping[str, Any]:
        data = self._to_storage(model)
        apply_timestamps(data, self.timestamp_on_create)
        self._default_identity(data, model)
        return data

    def _emit(self, event: RepositoryEvent) -> None:
        self.events.emit(event)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_by_id(self, id: Any) -> Any:
        """Get a model by identity; an absent id goes to the on_not_found hook."""
        self._check_id(id)

        try:
            data = await self._collection.find_one({ID_FIELD: id})
        except PyMongoError as e:
            self._raise_translated(e, "find_one")

        if data is None:
            logger.warning(f"{self.descriptive_name} not found: {id}")
            return await maybe_await(self.hooks.on_not_found(self, id))

        model = self.hooks.transform_data(data)
        self._emit(FetchedEvent(id=id, model=model))
        return model

    async def find_match(self, match: Mapping[str, Any]) -> ModelStream:
        """Stream models matching a raw MongoDB query."""
        self._check_match(match)

        try:
            cursor = self._collection.find(match)
        except PyMongoError as e:
            self._raise_translated(e, "find")

        return ModelStream(cursor, self.hooks.transform_data, self._translate)

    async def find_windowed_match(
        self,
        match: Mapping[str, Any],
        sort: Mapping[str, Any] | Sequence[tuple[str, Any]],
        skip: int,
        limit: int,
    ) -> ModelStream:
        """Stream models matching ``match``, sorted, skipping ``skip`` and capped at ``limit``."""
        self._check_match(match)
        if not isinstance(sort, (Mapping, Sequence)) or isinstance(sort, str):
            raise InvalidArgumentError("sort must be a mapping or a list of pairs")
        for name, value in (("skip", skip), ("limit", limit)):
            if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                raise InvalidArgumentError(f"{name} must be a non-negative integer")

        try:
            cursor = self._collection.find(match)
            sort_spec = _sort_spec(sort)
            if sort_spec:
                cursor = cursor.sort(sort_spec)
            cursor = cursor.skip(skip).limit(limit)
        except PyMongoError as e:
            self._raise_translated(e, "find")

        return ModelStream(cursor, self.hooks.transform_data, self._translate)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def create(self, model: Mapping[str, Any]) -> Any:
        """Create the stored document for ``model`` and return the created model."""
        self._check_model(model)
        await self._validate(model)

        data = self._prepare_for_create(model)
        try:
            await self._collection.insert_one(data)
        except PyMongoError as e:
            self._raise_translated(e, "insert_one")

        created = self.hooks.transform_data(data)
        id = self.identity(created)
        logger.debug(f"Created {self.descriptive_name} {id} in {self.namespace}")
        self._emit(CreatedEvent(id=id, model=created))
        return created

    async def batch_create(self, models: Sequence[Mapping[str, Any]]) -> list[Any]:
        """
        Create several models with one insert.

        Every model is validated first; if any is rejected a
        BatchValidationError listing each failure is raised and nothing is
        written.
        """
        if not isinstance(models, Sequence) or isinstance(models, (str, bytes)):
            raise InvalidArgumentError("models must be a sequence of mappings")
        for index, model in enumerate(models):
            self._check_model(model, f"models[{index}]")
        if not models:
            return []

        async def validate_item(model: Mapping[str, Any]) -> None:
            await self._validate(model)

        results = await asyncio.gather(
            *(validate_item(model) for model in models), return_exceptions=True
        )

        invalid: list[BatchItemError] = []
        for index, (model, result) in enumerate(zip(models, results)):
            if isinstance(result, ValidationError):
                invalid.append(BatchItemError(index, model, result))
            elif isinstance(result, BaseException):
                raise result
        if invalid:
            logger.warning(
                f"Rejected batch of {len(models)} {self.descriptive_name}(s): "
                f"{len(invalid)} invalid"
            )
            raise BatchValidationError(invalid, self.descriptive_name)

        documents = [self._prepare_for_create(model) for model in models]
        try:
            await self._collection.insert_many(documents)
        except PyMongoError as e:
            self._raise_translated(e, "insert_many")

        created = [self.hooks.transform_data(data) for data in documents]
        logger.debug(
            f"Created {len(created)} {self.descriptive_name}(s) in {self.namespace}"
        )
        self._emit(
            BatchCreatedEvent(
                models=[CreatedEvent(id=self.identity(m), model=m) for m in created]
            )
        )
        return created

    async def update(self, model: Mapping[str, Any]) -> Any:
        """
        Update the stored document so it matches ``model``.

        Only the differences are sent. Returns the number of affected
        documents: 0 when nothing changed, otherwise 1.
        """
        self._check_model(model)
        id = self.identity(model)
        if _is_missing(id):
            raise InvalidArgumentError(
                f"{self.descriptive_name} has no identity", self.descriptive_name
            )
        await self._validate(model)

        updated = self._to_storage(model)
        self._default_identity(updated, model)
        id_ref = {ID_FIELD: id}

        try:
            current = await self._collection.find_one(id_ref)
        except PyMongoError as e:
            self._raise_translated(e, "find_one")

        if current is None:
            logger.warning(f"{self.descriptive_name} not found for update: {id}")
            return await maybe_await(self.hooks.on_not_found_on_update(self, model))

        update_set = self.hooks.make_update_set(
            current, updated, self.hooks.filter_updated_properties
        )
        if update_set.is_empty:
            logger.debug(f"No changes to {self.descriptive_name} {id}")
            return 0

        # Added after the diff so they win over whatever the diff produced.
        apply_update_timestamps(update_set, self.timestamp_on_update)
        update_set = self.hooks.after_make_update_set(current, updated, update_set)
        if update_set.is_empty:
            return 0

        try:
            result = await self._collection.update_one(id_ref, update_set.to_mongo())
        except PyMongoError as e:
            self._raise_translated(e, "update_one")

        affected = _count(result, "matched_count")
        if affected == 0:
            logger.warning(f"{self.descriptive_name} vanished during update: {id}")
            return await maybe_await(self.hooks.on_not_found_on_update(self, model))

        logger.debug(
            f"Updated {self.descriptive_name} {id}: "
            f"{len(update_set.assignments)} set, {len(update_set.removals)} unset"
        )
        self._emit(UpdatedEvent(id=id, change_set=update_set, affected=affected))
        return affected

    async def delete(self, id: Any) -> int:
        """Delete a model by identity; returns the number removed (0 or 1)."""
        self._check_id(id)

        try:
            result = await self._collection.delete_one({ID_FIELD: id})
        except PyMongoError as e:
            self._raise_translated(e, "delete_one")

        affected = _count(result, "deleted_count")
        if affected:
            self._emit(DeletedEvent(id=id, affected=affected))
        return affected

    async def delete_match(self, match: Mapping[str, Any]) -> int:
        """Delete every model matching ``match``; returns the number removed."""
        self._check_match(match)

        try:
            result = await self._collection.delete_many(match)
        except PyMongoError as e:
            self._raise_translated(e, "delete_many")

        count = _count(result, "deleted_count")
        if count:
            self._emit(MatchDeletedEvent(match=dict(match), count=count))
        return count
