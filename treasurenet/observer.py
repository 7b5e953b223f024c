"""A single-slot observable value."""

from __future__ import annotations

from collections.abc import Callable
from typing import Generic, TypeVar

T = TypeVar("T")

_UNSET = object()


class DataObserver(Generic[T]):
    """Holds the latest posted value and hands it to one registered callback."""

    def __init__(self) -> None:
        self._data: object = _UNSET
        self._callback: Callable[[T], None] | None = None

    def post(self, value: T) -> None:
        """Store ``value`` and pass it to the callback, if one is registered."""
        self._data = value
        if self._callback is not None:
            self._callback(value)

    def observe(self, callback: Callable[[T], None]) -> None:
        """Register ``callback``, replacing any previous one.

        If a value was already posted, the callback receives it at once.
        """
        self._callback = callback
        if self._data is not _UNSET:
            callback(self._data)  # type: ignore[arg-type]