"""Redirection of standard output and standard error into a log file."""

from __future__ import annotations

import sys
from typing import TextIO


class OutputRedirect:
    """Sends everything written to stdout and stderr into a file, appending."""

    def __init__(self, file_name: str) -> None:
        self.file_name = file_name
        self._log: TextIO | None = None
        self._saved: tuple[TextIO, TextIO] | None = None

    def start(self) -> None:
        """Open the log file and redirect both streams to it.

        Raises OSError if the file cannot be opened.
        """
        if self._log is not None:
            return
        self._log = open(self.file_name, "a", encoding="utf-8")
        self._saved = (sys.stdout, sys.stderr)
        sys.stdout = self._log
        sys.stderr = self._log

    def stop(self) -> None:
        """Restore the original streams and close the log file."""
        if self._saved is not None:
            sys.stdout, sys.stderr = self._saved
            self._saved = None
        if self._log is not None:
            self._log.close()
            self._log = None

    def __enter__(self) -> OutputRedirect:
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()