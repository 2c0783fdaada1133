"""Strategy functions a repository calls at each stage of an operation.

Every hook has a default, so callers only supply the ones they need::

    hooks = RepositoryHooks(
        validate=check_user,
        transform_model=user_to_document,
        transform_data=document_to_user,
    )
"""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable, Mapping
from typing import TYPE_CHECKING, Any

from .diff import PathSegment, Prefilter
from .exceptions import InvalidArgumentError, NotFoundError, translate_db_error
from .update_set import UpdateSet, make_update_set

if TYPE_CHECKING:
    from .repository import MongoRepository

Document = dict[str, Any]


async def maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


def accept_all(model: Mapping[str, Any]) -> None:
    return None


def unchanged(value: Document) -> Document:
    return value


def include_all(path: list[PathSegment], key: PathSegment) -> bool:
    return False


def keep_update_set(original: Document, updated: Document, update_set: UpdateSet) -> UpdateSet:
    return update_set


def default_translate_db_error(repo: MongoRepository, err: BaseException) -> BaseException:
    return translate_db_error(err, repo.descriptive_name)


def default_not_found(repo: MongoRepository, id: Any) -> Any:
    raise NotFoundError(
        f"{repo.descriptive_name} not found: {id}.", repo.descriptive_name
    )


def default_not_found_on_update(repo: MongoRepository, model: Mapping[str, Any]) -> Any:
    return default_not_found(repo, repo.identity(model))


class RepositoryHooks:
    """Injectable behavior of a MongoRepository."""

    __slots__ = (
        "validate",
        "transform_data",
        "transform_model",
        "filter_updated_properties",
        "make_update_set",
        "after_make_update_set",
        "translate_db_error",
        "on_not_found",
        "on_not_found_on_update",
    )

    def __init__(
        self,
        *,
        validate: Callable[[Document], None | Awaitable[None]] = accept_all,
        transform_data: Callable[[Document], Document] = unchanged,
        transform_model: Callable[[Document], Document] = unchanged,
        filter_updated_properties: Prefilter = include_all,
        make_update_set: Callable[[Document, Document, Prefilter], UpdateSet] = make_update_set,
        after_make_update_set: Callable[[Document, Document, UpdateSet], UpdateSet] = keep_update_set,
        translate_db_error: Callable[[Any, BaseException], BaseException] = default_translate_db_error,
        on_not_found: Callable[[Any, Any], Any] = default_not_found,
        on_not_found_on_update: Callable[[Any, Document], Any] = default_not_found_on_update,
    ):
        self.validate = validate
        self.transform_data = transform_data
        self.transform_model = transform_model
        self.filter_updated_properties = filter_updated_properties
        self.make_update_set = make_update_set
        self.after_make_update_set = after_make_update_set
        self.translate_db_error = translate_db_error
        self.on_not_found = on_not_found
        self.on_not_found_on_update = on_not_found_on_update

        for name in self.__slots__:
            if not callable(getattr(self, name)):
                raise InvalidArgumentError(f"Hook {name} must be callable")

    def replace(self, **changes: Any) -> RepositoryHooks:
        """Copy with some hooks swapped out."""
        current = {name: getattr(self, name) for name in self.__slots__}
        current.update(changes)
        return RepositoryHooks(**current)
