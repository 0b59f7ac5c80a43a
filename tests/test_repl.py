"""Tests for the sqlcells command-line front end."""

from pathlib import Path

import pytest

from sqlcells.arrow_reader import ResultTable
from sqlcells.repl import format_value, main, needs_continuation, print_table, run_file
from sqlcells.session import NotebookSession


class TestHelperFunctions:
    """Tests for REPL helper functions."""

    def test_format_value(self):
        assert format_value(None) == "NULL"
        assert format_value(True) == "true"
        assert format_value(42) == "42"
        assert format_value(2.0) == "2"
        assert format_value(0.1 + 0.2) == "0.3"
        assert format_value("9007199254740993") == "9007199254740993"

    def test_format_value_truncates(self):
        assert format_value("x" * 50, max_width=10) == "xxxxxxx..."

    def test_needs_continuation(self):
        assert needs_continuation("SELECT 1")
        assert not needs_continuation("SELECT 1;")
        assert not needs_continuation("SELECT\n  1;  ")
        assert not needs_continuation("")

    def test_print_table(self, capsys):
        print_table(ResultTable(columns=["n", "name"], rows=[{"n": 1, "name": None}], row_count=1))
        out = capsys.readouterr().out
        assert "n | name" in out
        assert "NULL" in out
        assert "(1 row)" in out


class TestRunFile:
    """Tests for file execution."""

    def test_run_file(self, engine_config, tmp_path: Path, capsys):
        script = tmp_path / "test.sql"
        script.write_text("""
-- Create a table
CREATE TABLE people (name VARCHAR, age INT);

INSERT INTO people VALUES ('Alice', 30);

-- Query it
SELECT 1 AS n;
""")
        session = NotebookSession(engine_config)
        try:
            assert run_file(script, session, verbose=False) == 0
        finally:
            session.close()
        out = capsys.readouterr().out
        assert "Query executed successfully" in out
        assert "(1 row)" in out

    def test_run_file_verbose_echoes_statements(self, engine_config, tmp_path: Path, capsys):
        script = tmp_path / "test.sql"
        script.write_text("SELECT\n  1 AS n;")
        session = NotebookSession(engine_config)
        try:
            assert run_file(script, session, verbose=True) == 0
        finally:
            session.close()
        out = capsys.readouterr().out
        assert ">>> SELECT" in out
        assert "...   1 AS n" in out

    def test_run_file_error(self, engine_config, tmp_path: Path, capsys):
        script = tmp_path / "test.sql"
        script.write_text("SELECT 1; SELECT * FROM missing_table; SELECT 2;")
        session = NotebookSession(engine_config)
        try:
            assert run_file(script, session) == 1
        finally:
            session.close()
        assert "missing_table" in capsys.readouterr().err

    def test_run_file_no_statements(self, engine_config, tmp_path: Path):
        script = tmp_path / "test.sql"
        script.write_text("-- nothing\n")
        session = NotebookSession(engine_config)
        try:
            assert run_file(script, session) == 1
        finally:
            session.close()

    def test_run_file_missing(self, engine_config, tmp_path: Path):
        session = NotebookSession(engine_config)
        try:
            assert run_file(tmp_path / "missing.sql", session) == 1
        finally:
            session.close()


class TestMain:
    """Tests for the command-line entry point."""

    def test_command(self, fake_engine, tmp_path, capsys):
        rc = main(["--duckdb", str(fake_engine), "--temp-dir", str(tmp_path), "-c", "SELECT 1 AS n"])
        assert rc == 0
        assert "(1 row)" in capsys.readouterr().out

    def test_file(self, fake_engine, tmp_path):
        script = tmp_path / "s.sql"
        script.write_text("CREATE TABLE t (x INT);")
        assert main(["--duckdb", str(fake_engine), "--temp-dir", str(tmp_path), "-f", str(script)]) == 0

    def test_file_not_found(self, tmp_path, capsys):
        assert main(["-f", str(tmp_path / "missing.sql")]) == 1
        assert "File not found" in capsys.readouterr().err

    def test_database_argument(self, fake_engine, tmp_path):
        db = tmp_path / "data.db"
        rc = main([str(db), "--duckdb", str(fake_engine), "--temp-dir", str(tmp_path), "-c", "CREATE TABLE t (x INT)"])
        assert rc == 0
        assert db.exists()

    def test_temporary_database_removed(self, fake_engine, tmp_path):
        temp_dir = tmp_path / "tmp"
        temp_dir.mkdir()
        main(["--duckdb", str(fake_engine), "--temp-dir", str(temp_dir), "-c", "CREATE TABLE t (x INT)"])
        assert list(temp_dir.iterdir()) == []

    def test_missing_engine(self, tmp_path, capsys):
        rc = main(["--duckdb", str(tmp_path / "nope"), "--temp-dir", str(tmp_path), "-c", "SELECT 1"])
        assert rc == 1
        assert "Failed to execute DuckDB" in capsys.readouterr().err
