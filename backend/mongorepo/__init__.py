"""mongorepo: single-collection MongoDB repositories with diff-based updates."""

__version__ = "0.1.0"

from .config import RepositoryOptions, Settings, get_settings
from .diff import ChangeKind, ChangeRecord, diff, observe_diff
from .events import (
    BatchCreatedEvent,
    CreatedEvent,
    DeletedEvent,
    EventKind,
    FetchedEvent,
    MatchDeletedEvent,
    RepositoryEvent,
    RepositoryEvents,
    UpdatedEvent,
)
from .exceptions import (
    BackingStoreError,
    BatchItemError,
    BatchValidationError,
    ConflictError,
    InvalidArgumentError,
    InvalidPointerError,
    NotFoundError,
    RepositoryError,
    ValidationError,
)
from .hooks import RepositoryHooks
from .pointers import Pointer, prepare_pointers, resolve
from .repository import MongoRepository
from .stream import ModelStream
from .timestamps import apply_timestamps, apply_update_timestamps, utc_now
from .update_set import UpdateSet, compile_update_set, make_update_set

__all__ = [
    "__version__",
    # Repository
    "MongoRepository",
    "RepositoryHooks",
    "RepositoryOptions",
    "ModelStream",
    # Configuration
    "Settings",
    "get_settings",
    # Diff and update sets
    "ChangeKind",
    "ChangeRecord",
    "diff",
    "observe_diff",
    "UpdateSet",
    "compile_update_set",
    "make_update_set",
    # Pointers and timestamps
    "Pointer",
    "resolve",
    "prepare_pointers",
    "apply_timestamps",
    "apply_update_timestamps",
    "utc_now",
    # Events
    "EventKind",
    "RepositoryEvent",
    "RepositoryEvents",
    "CreatedEvent",
    "BatchCreatedEvent",
    "UpdatedEvent",
    "DeletedEvent",
    "MatchDeletedEvent",
    "FetchedEvent",
    # Errors
    "RepositoryError",
    "NotFoundError",
    "ConflictError",
    "ValidationError",
    "BatchValidationError",
    "BatchItemError",
    "InvalidArgumentError",
    "InvalidPointerError",
    "BackingStoreError",
]
