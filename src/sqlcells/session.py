"""Notebook sessions: one database target, its executor, and its artifacts."""

from __future__ import annotations

import asyncio
import logging
import os
import time
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from sqlcells.arrow_reader import ResultTable, read_arrow_result
from sqlcells.config import EngineConfig
from sqlcells.errors import ResultReadError
from sqlcells.executor import DuckDBExecutor, QueryResult
from sqlcells.parsing.statement_splitter import split_statements

logger = logging.getLogger(__name__)


@dataclass
class CellOutput:
    """What one executed cell produced.

    ``kind`` is one of ``"table"``, ``"message"``, ``"error"`` or ``"empty"``.
    Errors carry ``error_name``: ``"QueryError"`` when the statement itself
    failed, ``"ResultReadError"`` when it succeeded but its rows could not be
    read back.
    """

    kind: str
    success: bool
    execution_order: int = 0
    message: str | None = None
    error_name: str | None = None
    table: ResultTable | None = None
    execution_time_ms: int = 0
    cancelled: bool = False

    def to_json(self) -> dict[str, Any]:
        """Return a JSON-serializable dict for editor clients."""
        data: dict[str, Any] = {
            "kind": self.kind,
            "success": self.success,
            "executionOrder": self.execution_order,
            "executionTime": self.execution_time_ms,
        }
        if self.message is not None:
            data["message"] = self.message
        if self.error_name is not None:
            data["errorName"] = self.error_name
        if self.table is not None:
            data["columns"] = self.table.columns
            data["rows"] = self.table.rows
            data["rowCount"] = self.table.row_count
        if self.cancelled:
            data["cancelled"] = True
        return data


def _temp_db_path(temp_dir: str) -> str:
    millis = int(time.time() * 1000)
    return str(Path(temp_dir) / f"sqlcells_{millis}_{uuid.uuid4().hex[:8]}.db")


def _remove_quietly(path: str) -> None:
    try:
        os.unlink(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning("Failed to delete %s: %s", path, e)


class NotebookSession:
    """Executes cells of one notebook against one database target.

    Statements are serialized through a lock so that two cells never write to
    the same database file at once. When no *db_path* is given the session
    uses a temporary database file that it deletes on :meth:`close`.
    """

    def __init__(self, config: EngineConfig | None = None, db_path: str | None = None) -> None:
        self.config = config or EngineConfig()
        self.executor = DuckDBExecutor(self.config)
        self.owns_db = db_path is None
        self.db_path = db_path if db_path is not None else _temp_db_path(self.config.temp_dir)
        self.execution_order = 0
        self.closed = False
        self._lock = asyncio.Lock()
        self._read_artifacts: set[str] = set()

    async def execute_cell(self, sql: str, cancel: asyncio.Event | None = None) -> CellOutput:
        """Run one cell and turn the outcome into a :class:`CellOutput`."""
        if self.closed:
            raise RuntimeError("Session is closed")

        async with self._lock:
            self.execution_order += 1
            order = self.execution_order

            if not sql.strip():
                return CellOutput(kind="empty", success=True, execution_order=order)

            result = await self.executor.execute(sql, self.db_path, cancel)
            return self._to_output(result, order)

    def _to_output(self, result: QueryResult, order: int) -> CellOutput:
        if not result.success:
            return CellOutput(
                kind="error",
                success=False,
                execution_order=order,
                error_name="QueryError",
                message=result.error or "Unknown error",
                execution_time_ms=result.execution_time_ms,
                cancelled=result.cancelled,
            )

        if result.result_path is None:
            return CellOutput(
                kind="message",
                success=True,
                execution_order=order,
                message=f"Query executed successfully in {result.execution_time_ms}ms",
                execution_time_ms=result.execution_time_ms,
            )

        self._read_artifacts.add(result.result_path)
        try:
            table = read_arrow_result(result.result_path)
        except ResultReadError as e:
            return CellOutput(
                kind="error",
                success=False,
                execution_order=order,
                error_name="ResultReadError",
                message=str(e),
                execution_time_ms=result.execution_time_ms,
            )
        return CellOutput(
            kind="table",
            success=True,
            execution_order=order,
            table=table,
            execution_time_ms=result.execution_time_ms,
        )

    async def run_script(self, script: str) -> list[CellOutput]:
        """Run every statement of *script* in order, stopping at the first failure."""
        outputs = []
        for statement in split_statements(script):
            output = await self.execute_cell(statement.text)
            outputs.append(output)
            if not output.success:
                break
        return outputs

    def close(self) -> None:
        """Delete this session's artifacts and owned database file."""
        if self.closed:
            return
        self.closed = True
        for path in list(self._read_artifacts):
            self.executor.delete_artifact(path)
        self._read_artifacts.clear()
        self.executor.dispose()
        if self.owns_db:
            _remove_quietly(self.db_path)
            _remove_quietly(self.db_path + ".wal")


@dataclass
class SessionRegistry:
    """Owns the sessions of several documents, keyed by e.g. a notebook URI."""

    config: EngineConfig = field(default_factory=EngineConfig)
    sessions: dict[str, NotebookSession] = field(default_factory=dict)

    def get(self, key: str) -> NotebookSession:
        """Return the session for *key*, creating it on first use."""
        session = self.sessions.get(key)
        if session is None:
            session = NotebookSession(self.config)
            self.sessions[key] = session
        return session

    def close(self, key: str) -> None:
        """Close and forget the session for *key*, if any."""
        session = self.sessions.pop(key, None)
        if session is not None:
            session.close()

    def dispose(self) -> None:
        """Close every session."""
        for key in list(self.sessions):
            self.close(key)
