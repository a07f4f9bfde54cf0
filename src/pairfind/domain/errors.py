"""
Error kinds raised while extracting pair-creation events.

Fatal kinds (``FatalError`` subclasses) are never retried by the retry shell;
everything else aborts the current run and is retried from the last flushed
checkpoint.
"""
from __future__ import annotations


class PairfindError(Exception):
    """Base exception for all extraction errors."""

    def __init__(self, message: str, details: dict | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class TransientSourceError(PairfindError):
    """Network or JSON-RPC failure talking to the node."""


class SourceInconsistencyError(PairfindError):
    """The event source contradicted an earlier answer (e.g. a reorg under the scan)."""


class FatalError(PairfindError):
    """Base for conditions that a restart cannot fix."""


class ConfigurationError(FatalError):
    """The configured endpoint/contract cannot serve this scan."""


class CorruptStateError(FatalError):
    """A persisted record could not be parsed; the checkpoint cannot be trusted."""

    def __init__(self, message: str, path: str | None = None, line_no: int | None = None) -> None:
        details: dict = {}
        if path is not None:
            details["path"] = path
        if line_no is not None:
            details["line_no"] = line_no
        super().__init__(message, details)
        self.path = path
        self.line_no = line_no


class RetriesExhaustedError(PairfindError):
    """The retry shell hit its attempt ceiling."""

    def __init__(self, attempts: int, last_error: BaseException) -> None:
        super().__init__(
            f"giving up after {attempts} failed attempts: {last_error}",
            {"attempts": attempts},
        )
        self.attempts = attempts
        self.last_error = last_error
