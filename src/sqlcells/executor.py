"""Run SQL statements in an out-of-process DuckDB engine."""

from __future__ import annotations

import asyncio
import json
import logging
import os
import time
import uuid
from dataclasses import dataclass
from pathlib import Path

from sqlcells.config import EngineConfig
from sqlcells.errors import (
    ExecutionError,
    OutputParseError,
    SpawnError,
    StatementCancelled,
)

logger = logging.getLogger(__name__)

# Database target meaning "transient in-memory database"
IN_MEMORY = ":memory:"

# Leading keywords of statements that produce a row set
RESULT_KEYWORDS = ("SELECT", "WITH", "TABLE", "VALUES")


@dataclass
class QueryResult:
    """Outcome of executing one statement.

    ``result_path`` is only set for a successful result-producing statement
    whose Arrow artifact exists on disk. ``row_count`` is ``-1`` when the
    statement succeeded but the engine's row-count report could not be read.
    """

    success: bool
    result_path: str | None = None
    row_count: int | None = None
    error: str | None = None
    execution_time_ms: int = 0
    cancelled: bool = False


def is_result_producing(sql: str) -> bool:
    """Return True if *sql* yields a row set, judged by its leading keyword."""
    return sql.strip().upper().startswith(RESULT_KEYWORDS)


def _quote_literal(text: str) -> str:
    return "'" + text.replace("'", "''") + "'"


def _strip_terminator(sql: str) -> str:
    text = sql.strip()
    while text.endswith(";"):
        text = text[:-1].rstrip()
    return text


def build_script(sql: str, artifact_path: str | None, install_extension: bool = True) -> str:
    """Build the engine program for one statement.

    With an *artifact_path* the statement's rows are copied to that path as
    Arrow and the script ends by reporting how many rows were written.
    Without one the statement runs verbatim followed by a zero row count.
    The statement body always sits on lines of its own so that a trailing
    line comment cannot swallow the rest of the script.
    """
    body = _strip_terminator(sql)
    if artifact_path is None:
        return f"{body}\n;\nSELECT 0 AS row_count;\n"

    target = _quote_literal(artifact_path)
    lines = []
    if install_extension:
        lines.append("INSTALL arrow FROM community;")
    lines.append("LOAD arrow;")
    lines.append(f"COPY (\n{body}\n) TO {target} (FORMAT ARROWS);")
    lines.append(f"SELECT COUNT(*) AS row_count FROM read_arrow({target});")
    return "\n".join(lines) + "\n"


def parse_row_count(stdout: str) -> int:
    """Extract ``row_count`` from the last non-blank line of JSON output.

    The line holds either ``[{"row_count": N}]`` or ``{"row_count": N}``.

    Raises:
        OutputParseError: if the line is missing, not JSON, or has no count.
    """
    lines = [line for line in stdout.splitlines() if line.strip()]
    if not lines:
        raise OutputParseError("Engine produced no output")
    last = lines[-1].strip()
    try:
        parsed = json.loads(last)
    except json.JSONDecodeError as e:
        raise OutputParseError(f"Could not parse engine output {last!r}: {e}") from e

    if isinstance(parsed, list) and len(parsed) > 0:
        parsed = parsed[0]
    if isinstance(parsed, dict):
        count = parsed.get("row_count")
        if isinstance(count, int) and not isinstance(count, bool):
            return count
    raise OutputParseError(f"No row_count in engine output {last!r}")


class DuckDBExecutor:
    """Executes statements against a database target, one engine process each.

    Result-producing statements are exported to uniquely named Arrow files in
    the configured temp directory. The executor keeps track of every such
    artifact it creates until it is deleted with :meth:`delete_artifact` or
    :meth:`dispose`; long-lived callers must dispose the executor to bound
    disk usage.
    """

    def __init__(self, config: EngineConfig | None = None) -> None:
        self.config = config or EngineConfig()
        self._artifacts: set[str] = set()

    @property
    def artifacts(self) -> frozenset[str]:
        """Artifacts created by this executor and not yet deleted."""
        return frozenset(self._artifacts)

    def new_artifact_path(self) -> str:
        """Return a fresh artifact path (not registered, not created)."""
        millis = int(time.time() * 1000)
        suffix = uuid.uuid4().hex[:8]
        name = f"{self.config.artifact_prefix}{millis}_{suffix}{self.config.artifact_extension}"
        return str(Path(self.config.temp_dir) / name)

    async def execute(
        self,
        sql: str,
        db_target: str = IN_MEMORY,
        cancel: asyncio.Event | None = None,
    ) -> QueryResult:
        """Execute one statement and describe the outcome.

        Failures are reported in the returned :class:`QueryResult`, never
        raised. If *cancel* is set before the engine starts, nothing runs; if
        it is set while the engine runs, the process is killed and the
        statement's effect on *db_target* is unknown.
        """
        start = time.monotonic()

        artifact: str | None = None
        if is_result_producing(sql):
            artifact = self.new_artifact_path()
            self._artifacts.add(artifact)
            logger.debug("Registered artifact %s", artifact)

        script = build_script(sql, artifact, self.config.install_extension)

        try:
            if cancel is not None and cancel.is_set():
                raise StatementCancelled("Statement cancelled before it started")
            stdout, _ = await self._run_engine(script, db_target, cancel)
        except StatementCancelled as e:
            if artifact is not None:
                self.delete_artifact(artifact)
            return QueryResult(
                success=False,
                error=str(e),
                execution_time_ms=_elapsed_ms(start),
                cancelled=True,
            )
        except (SpawnError, ExecutionError) as e:
            if artifact is not None:
                self.delete_artifact(artifact)
            return QueryResult(
                success=False,
                error=str(e),
                execution_time_ms=_elapsed_ms(start),
            )
        except asyncio.CancelledError:
            if artifact is not None:
                self.delete_artifact(artifact)
            raise

        elapsed = _elapsed_ms(start)

        if artifact is None:
            return QueryResult(success=True, execution_time_ms=elapsed)

        exists = os.path.exists(artifact)
        try:
            row_count = parse_row_count(stdout)
        except OutputParseError as e:
            logger.debug("Row count unavailable: %s", e)
            row_count = -1

        if not exists:
            self._artifacts.discard(artifact)

        return QueryResult(
            success=True,
            result_path=artifact if exists else None,
            row_count=row_count,
            execution_time_ms=elapsed,
        )

    async def _run_engine(
        self,
        script: str,
        db_target: str,
        cancel: asyncio.Event | None,
    ) -> tuple[str, str]:
        """Run the engine and return its decoded (stdout, stderr)."""
        args = [self.config.binary, db_target, "-json", "-c", script]
        logger.debug("Spawning %s against %s", self.config.binary, db_target)
        try:
            process = await asyncio.create_subprocess_exec(
                *args,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise SpawnError(f"Failed to execute DuckDB: {e}") from e

        communicate = asyncio.ensure_future(process.communicate())
        try:
            if cancel is None:
                await asyncio.wait({communicate})
            else:
                cancelled = asyncio.ensure_future(cancel.wait())
                try:
                    await asyncio.wait(
                        {communicate, cancelled}, return_when=asyncio.FIRST_COMPLETED
                    )
                finally:
                    cancelled.cancel()
                if not communicate.done():
                    _kill(process)
                    await communicate
                    raise StatementCancelled("Statement cancelled; outcome unknown")
        except asyncio.CancelledError:
            _kill(process)
            communicate.cancel()
            raise

        out_bytes, err_bytes = communicate.result()
        stdout = out_bytes.decode("utf-8", errors="replace")
        stderr = err_bytes.decode("utf-8", errors="replace")

        if process.returncode != 0:
            logger.debug("Engine exited with %s", process.returncode)
            raise ExecutionError(stderr.strip(), process.returncode)
        return stdout, stderr

    def delete_artifact(self, path: str) -> None:
        """Delete an artifact and stop tracking it. Never raises."""
        try:
            os.unlink(path)
            logger.debug("Deleted artifact %s", path)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("Failed to delete artifact %s: %s", path, e)
        self._artifacts.discard(path)

    def dispose(self) -> None:
        """Delete every artifact this executor still tracks."""
        for path in list(self._artifacts):
            self.delete_artifact(path)
        self._artifacts.clear()

    def __enter__(self) -> DuckDBExecutor:
        return self

    def __exit__(self, *args: object) -> None:
        self.dispose()


def _kill(process: asyncio.subprocess.Process) -> None:
    try:
        process.kill()
    except ProcessLookupError:
        pass


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)
