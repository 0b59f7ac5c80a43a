"""Tests for notebook sessions and the session registry."""

import asyncio
from pathlib import Path

import pytest

from sqlcells.session import CellOutput, NotebookSession, SessionRegistry


def run_cell(session: NotebookSession, sql: str) -> CellOutput:
    return asyncio.run(session.execute_cell(sql))


class TestExecuteCell:
    """Tests for turning execution outcomes into cell outputs."""

    def test_table_output(self, engine_config):
        session = NotebookSession(engine_config)
        output = run_cell(session, "SELECT 1 AS n")
        assert output.kind == "table"
        assert output.success
        assert output.table.columns == ["n"]
        assert output.table.rows == [{"n": 1}]
        session.close()

    def test_message_output(self, engine_config):
        session = NotebookSession(engine_config)
        output = run_cell(session, "CREATE TABLE t (x INT)")
        assert output.kind == "message"
        assert output.message.startswith("Query executed successfully in ")
        session.close()

    def test_query_error(self, engine_config):
        session = NotebookSession(engine_config)
        output = run_cell(session, "SELECT * FROM missing_table")
        assert output.kind == "error"
        assert output.error_name == "QueryError"
        assert "missing_table" in output.message
        session.close()

    def test_result_read_error_is_distinct(self, engine_config):
        session = NotebookSession(engine_config)
        output = run_cell(session, "SELECT 'BADFILE' AS n")
        assert output.kind == "error"
        assert output.error_name == "ResultReadError"
        session.close()

    def test_blank_cell(self, engine_config, fake_engine):
        session = NotebookSession(engine_config)
        output = run_cell(session, "   \n ")
        assert output.kind == "empty"
        assert output.success
        assert not (fake_engine.parent / "last_call.json").exists()
        session.close()

    def test_execution_order_increments(self, engine_config):
        session = NotebookSession(engine_config)
        orders = [run_cell(session, "SELECT 1").execution_order for _ in range(3)]
        assert orders == [1, 2, 3]
        session.close()

    def test_closed_session_rejects_cells(self, engine_config):
        session = NotebookSession(engine_config)
        session.close()
        with pytest.raises(RuntimeError):
            run_cell(session, "SELECT 1")

    def test_to_json(self, engine_config):
        session = NotebookSession(engine_config)
        data = run_cell(session, "SELECT 1 AS n").to_json()
        assert data["kind"] == "table"
        assert data["columns"] == ["n"]
        assert data["rows"] == [{"n": 1}]
        assert data["rowCount"] == 1
        assert data["executionOrder"] == 1
        session.close()


class TestRunScript:
    """Tests for running a whole script."""

    def test_runs_every_statement(self, engine_config):
        session = NotebookSession(engine_config)
        outputs = asyncio.run(session.run_script(
            "CREATE TABLE t (x INT);\nINSERT INTO t VALUES (1);\nSELECT x FROM t;"
        ))
        assert [o.kind for o in outputs] == ["message", "message", "table"]
        session.close()

    def test_stops_at_first_failure(self, engine_config):
        session = NotebookSession(engine_config)
        outputs = asyncio.run(session.run_script(
            "SELECT 1; SELECT * FROM missing_table; SELECT 2;"
        ))
        assert [o.success for o in outputs] == [True, False]
        session.close()


class TestSessionCleanup:
    """Tests for session database and artifact cleanup."""

    def test_temporary_database_deleted_on_close(self, engine_config):
        session = NotebookSession(engine_config)
        assert session.owns_db
        run_cell(session, "CREATE TABLE t (x INT)")
        assert Path(session.db_path).exists()
        session.close()
        assert not Path(session.db_path).exists()

    def test_given_database_kept_on_close(self, engine_config, tmp_path):
        db = tmp_path / "keep.db"
        session = NotebookSession(engine_config, db_path=str(db))
        run_cell(session, "CREATE TABLE t (x INT)")
        session.close()
        assert db.exists()

    def test_artifacts_deleted_on_close(self, engine_config):
        session = NotebookSession(engine_config)
        run_cell(session, "SELECT 1 AS n")
        run_cell(session, "SELECT 2 AS n")
        assert any(Path(engine_config.temp_dir).iterdir())
        session.close()
        assert list(Path(engine_config.temp_dir).iterdir()) == []

    def test_close_is_idempotent(self, engine_config):
        session = NotebookSession(engine_config)
        session.close()
        session.close()
        assert session.closed


class TestSessionRegistry:
    """Tests for the registry of per-document sessions."""

    def test_get_returns_same_session(self, engine_config):
        registry = SessionRegistry(engine_config)
        assert registry.get("file:///a.sql") is registry.get("file:///a.sql")
        assert registry.get("file:///a.sql") is not registry.get("file:///b.sql")
        registry.dispose()

    def test_sessions_have_separate_databases(self, engine_config):
        registry = SessionRegistry(engine_config)
        assert registry.get("a").db_path != registry.get("b").db_path
        registry.dispose()

    def test_close_forgets_session(self, engine_config):
        registry = SessionRegistry(engine_config)
        session = registry.get("a")
        registry.close("a")
        assert session.closed
        assert "a" not in registry.sessions
        registry.close("a")

    def test_dispose_closes_everything(self, engine_config):
        registry = SessionRegistry(engine_config)
        sessions = [registry.get(key) for key in ("a", "b", "c")]
        registry.dispose()
        assert all(s.closed for s in sessions)
        assert registry.sessions == {}
