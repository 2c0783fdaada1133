from __future__ import annotations

from typing import Any

from pymongo.errors import BulkWriteError, DuplicateKeyError, PyMongoError

# Anything the repository does not recognize is raised as the driver's own error.
BackingStoreError = PyMongoError

DUPLICATE_KEY_CODE = 11000


class RepositoryError(Exception):
    """Base exception for repository errors."""

    def __init__(self, message: str, descriptive_name: str | None = None):
        super().__init__(message)
        self.descriptive_name = descriptive_name


class NotFoundError(RepositoryError):
    """No stored document matched the requested identity."""

    pass


class ConflictError(RepositoryError):
    """Creating the document would violate a unique key."""

    pass


class ValidationError(RepositoryError):
    """The validate hook rejected the model."""

    def __init__(
        self,
        message: str,
        descriptive_name: str | None = None,
        errors: list[Any] | None = None,
    ):
        super().__init__(message, descriptive_name)
        self.errors = errors or []


class BatchItemError:
    """Validation failure for a single item of a batch."""

    __slots__ = ("index", "model", "error")

    def __init__(self, index: int, model: Any, error: BaseException):
        self.index = index
        self.model = model
        self.error = error

    def __repr__(self) -> str:
        return f"BatchItemError(index={self.index}, error={self.error!r})"


class BatchValidationError(ValidationError):
    """One or more items of a batch were rejected; nothing was written."""

    def __init__(
        self,
        items: list[BatchItemError],
        descriptive_name: str | None = None,
    ):
        indexes = ", ".join(str(item.index) for item in items)
        super().__init__(
            f"{len(items)} invalid item(s) in batch at index {indexes}.",
            descriptive_name,
            errors=[item.error for item in items],
        )
        self.items = items


class InvalidArgumentError(RepositoryError, ValueError):
    """Malformed call arguments or repository options."""

    pass


class InvalidPointerError(InvalidArgumentError):
    """A pointer expression could not be parsed."""

    pass


def is_duplicate_key_error(err: BaseException | str) -> bool:
    if isinstance(err, DuplicateKeyError):
        return True
    if isinstance(err, BulkWriteError):
        write_errors = (err.details or {}).get("writeErrors", [])
        if any(e.get("code") == DUPLICATE_KEY_CODE for e in write_errors):
            return True
    msg = err if isinstance(err, str) else str(err)
    return "duplicate key error" in msg


def translate_db_error(
    err: BaseException, descriptive_name: str | None = None
) -> BaseException:
    """Rewrite duplicate key failures as ConflictError, pass everything else through."""
    if is_duplicate_key_error(err):
        return ConflictError(
            "Creating the resource would cause a conflict on the server.",
            descriptive_name,
        )
    return err
