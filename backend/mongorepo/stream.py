"""Async stream of domain models read from a Motor cursor."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from pymongo.errors import PyMongoError

from .hooks import maybe_await

logger = logging.getLogger(__name__)


class ModelStream:
    """Applies a transform to every document produced by a cursor.

    Usage:
        stream = await repo.find_match({"status": "open"})
        async with stream:
            async for model in stream:
                ...
    """

    def __init__(
        self,
        cursor: Any,
        transform: Callable[[dict[str, Any]], Any],
        translate_error: Callable[[BaseException], BaseException] | None = None,
    ):
        self._cursor = cursor
        self._transform = transform
        self._translate_error = translate_error
        self._iterator: Any = None
        self._closed = False

    @property
    def cursor(self) -> Any:
        return self._cursor

    def __aiter__(self) -> ModelStream:
        return self

    async def __anext__(self) -> Any:
        if self._closed:
            raise StopAsyncIteration
        try:
            if self._iterator is None:
                self._iterator = aiter(self._cursor)
            data = await anext(self._iterator)
        except StopAsyncIteration:
            self._closed = True
            raise
        except PyMongoError as e:
            if self._translate_error is None:
                raise
            raise self._translate_error(e) from e
        return self._transform(data)

    async def to_list(self, length: int | None = None) -> list[Any]:
        """Drain up to ``length`` models (all remaining when None)."""
        models: list[Any] = []
        async for model in self:
            models.append(model)
            if length is not None and len(models) >= length:
                break
        return models

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        close = getattr(self._cursor, "close", None)
        if close is not None:
            await maybe_await(close())
        logger.debug("Closed model stream")

    async def __aenter__(self) -> ModelStream:
        return self

    async def __aexit__(
        self,
        exc_type: type | None,
        exc_val: Exception | None,
        exc_tb: Any,
    ) -> None:
        await self.close()
