"""Exception types for the SQL cell execution pipeline."""

from __future__ import annotations


class SqlCellsError(Exception):
    """Base class for all sqlcells errors."""


class SpawnError(SqlCellsError):
    """Raised when the engine binary cannot be started."""


class ExecutionError(SqlCellsError):
    """Raised when the engine exits with a non-zero status.

    The engine's standard error text is kept on ``stderr``.
    """

    def __init__(self, stderr: str, returncode: int | None = None) -> None:
        self.stderr = stderr
        self.returncode = returncode
        super().__init__(stderr or "Unknown error occurred")


class OutputParseError(SqlCellsError):
    """Raised when the engine's row-count report cannot be decoded."""


class ResultReadError(SqlCellsError):
    """Raised when a result artifact is missing, truncated or not Arrow IPC."""

    def __init__(self, message: str, path: str | None = None) -> None:
        self.path = path
        super().__init__(message)


class StatementCancelled(SqlCellsError):
    """Raised when a statement is cancelled before or while it runs."""
