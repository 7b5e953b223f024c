"""Error-detection strategies applied to serialized packets."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable


class ErrorControlStrategy(ABC):
    """Computes and checks an error-detection code over a byte stream."""

    @abstractmethod
    def generate(self, data: Iterable[int]) -> int:
        """Return the error-detection byte for ``data``."""

    @abstractmethod
    def verify(self, data: Iterable[int]) -> bool:
        """Return True if ``data`` (which includes its code) is intact."""


class ChecksumStrategy(ErrorControlStrategy):
    """Additive 8-bit checksum whose byte makes the whole stream sum to zero."""

    def generate(self, data: Iterable[int]) -> int:
        """Return the byte that cancels the 8-bit sum of ``data``.

        ``data`` is the byte stream without the start marker.
        """
        return -sum(data) & 0xFF

    def verify(self, data: Iterable[int]) -> bool:
        """Return True if the bytes, checksum included, sum to zero mod 256.

        An empty stream is never valid.
        """
        values = bytes(data)
        if not values:
            return False
        return sum(values) & 0xFF == 0