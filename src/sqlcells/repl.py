"""Interactive REPL and script runner for SQL cells."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import readline  # noqa: F401 - enables line editing in input()
import sys
from pathlib import Path
from typing import Any

from sqlcells.arrow_reader import ResultTable
from sqlcells.config import EngineConfig
from sqlcells.parsing.statement_splitter import split_statements
from sqlcells.session import CellOutput, NotebookSession


def format_value(value: Any, max_width: int = 40) -> str:
    """Format a normalized value for display.

    Args:
        value: The value to format
        max_width: Maximum character width before truncating
    """
    if value is None:
        return "NULL"
    elif isinstance(value, bool):
        return "true" if value else "false"
    elif isinstance(value, int):
        return str(value)
    elif isinstance(value, float):
        if value.is_integer() and abs(value) < 1e16:
            return str(int(value))
        return f"{value:.6g}"
    else:
        s = str(value)
        if len(s) > max_width:
            return s[:max_width - 3] + "..."
        return s


def print_table(table: ResultTable, max_col_width: int = 40) -> None:
    """Print a result table with padded columns."""
    if not table.columns:
        print("(no columns)")
        return

    # Calculate column widths
    col_widths = {}
    for col in table.columns:
        col_widths[col] = len(col)

    for row in table.rows:
        for col in table.columns:
            val = format_value(row.get(col))
            col_widths[col] = max(col_widths[col], len(val))

    # Cap column widths
    for col in col_widths:
        col_widths[col] = min(col_widths[col], max_col_width)

    header = " | ".join(col.ljust(col_widths[col])[:col_widths[col]] for col in table.columns)
    print(header)
    print("-" * len(header))

    for row in table.rows:
        values = []
        for col in table.columns:
            val = format_value(row.get(col))
            if len(val) > col_widths[col]:
                val = val[: col_widths[col] - 3] + "..."
            values.append(val.ljust(col_widths[col]))
        print(" | ".join(values))

    print(f"\n({table.row_count} row{'s' if table.row_count != 1 else ''})")


def print_output(output: CellOutput) -> None:
    """Print one cell's output."""
    if output.kind == "table" and output.table is not None:
        print_table(output.table)
        print(f"Executed in {output.execution_time_ms}ms")
    elif output.kind == "message":
        print(output.message)
    elif output.kind == "error":
        if output.error_name == "ResultReadError":
            print(f"Result read error: {output.message}", file=sys.stderr)
        else:
            print(f"Error: {output.message}", file=sys.stderr)


def run_script(content: str, session: NotebookSession, verbose: bool = False) -> int:
    """Execute every statement in *content*.

    Returns:
        0 on success, 1 on the first failing statement
    """
    statements = split_statements(content)
    if not statements:
        print("No statements found", file=sys.stderr)
        return 1

    for statement in statements:
        if verbose:
            for i, line in enumerate(statement.text.split("\n")):
                prefix = ">>> " if i == 0 else "... "
                print(f"{prefix}{line}")

        output = asyncio.run(session.execute_cell(statement.text))
        print_output(output)
        if not output.success:
            return 1

    return 0


def run_file(file_path: Path, session: NotebookSession, verbose: bool = False) -> int:
    """Execute statements from a file.

    Args:
        file_path: Path to the file containing SQL
        session: Session to execute the statements in
        verbose: If True, print each statement before executing

    Returns:
        0 on success, 1 on error
    """
    try:
        content = file_path.read_text()
    except Exception as e:
        print(f"Error reading file: {e}", file=sys.stderr)
        return 1
    return run_script(content, session, verbose)


def needs_continuation(text: str) -> bool:
    """A statement is complete once its last line ends with a semicolon."""
    stripped = text.strip()
    if not stripped:
        return False
    return not stripped.endswith(";")


def run_repl(session: NotebookSession) -> int:
    """Run the interactive REPL."""
    print("sqlcells - SQL cells on DuckDB")
    if session.owns_db:
        print("Using a temporary database (deleted on exit).")
    else:
        print(f"Database: {session.db_path}")
    print("Type 'help' for commands, 'exit' to quit.\n")

    history_file = Path.home() / ".sqlcells_history"
    try:
        readline.read_history_file(history_file)
    except (FileNotFoundError, OSError):
        pass

    try:
        while True:
            try:
                line = input("sqlcells> ").strip()
            except EOFError:
                print()
                break

            if not line:
                continue

            lower = line.lower().rstrip(";")
            if lower in ("exit", "quit"):
                break
            elif lower == "help":
                print_help()
                continue
            elif lower == "clear":
                print("\033[2J\033[H", end="")
                continue
            elif lower.startswith("execute "):
                script_path = Path(line[8:].strip().rstrip(";").strip('"').strip("'"))
                if not script_path.exists():
                    print(f"Error: File not found: {script_path}")
                    print()
                    continue
                print(f"Executing {script_path}...")
                if run_file(script_path, session, verbose=True) != 0:
                    print("Script execution failed with errors.")
                else:
                    print("Script execution completed.")
                print()
                continue

            # Multi-line statements continue until a line ends with ';'
            if needs_continuation(line):
                while True:
                    try:
                        continuation = input("     ...> ")
                    except EOFError:
                        break
                    if not continuation.strip():
                        # Empty line ends the statement
                        break
                    line += "\n" + continuation
                    if not needs_continuation(line):
                        break

            try:
                for statement in split_statements(line):
                    output = asyncio.run(session.execute_cell(statement.text))
                    print_output(output)
                    if not output.success:
                        break
            except Exception as e:
                print(f"Error: {e}")

            print()

    finally:
        try:
            readline.set_history_length(1000)
            readline.write_history_file(history_file)
        except Exception:
            pass

    return 0


def print_help() -> None:
    """Print help information."""
    print("""
sqlcells - run SQL statements against DuckDB

STATEMENTS:
  Any DuckDB SQL statement, terminated by ';'. Statements can span
  multiple lines; an empty line also ends the statement.

  SELECT / WITH / TABLE / VALUES statements print their rows as a table.
  Other statements (CREATE, INSERT, DROP, ...) print a status message.

COMMANDS:
  help                     Show this help
  exit, quit               Exit the REPL
  clear                    Clear the screen
  execute <file>           Execute the statements in a SQL file
""")


def _configure_logging() -> None:
    level_name = os.environ.get("SQLCELLS_LOG_LEVEL", "WARNING").upper()
    level = getattr(logging, level_name, logging.WARNING)
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    arg_parser = argparse.ArgumentParser(
        description="Run SQL scripts statement by statement against DuckDB"
    )
    arg_parser.add_argument(
        "database",
        type=Path,
        nargs="?",
        default=None,
        help="Path to a DuckDB database file (default: a temporary database)",
    )
    arg_parser.add_argument(
        "-c", "--command",
        type=str,
        help="Execute SQL statements and exit",
    )
    arg_parser.add_argument(
        "-f", "--file",
        type=Path,
        help="Execute statements from a file and exit",
    )
    arg_parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Print each statement before executing (for -f/-c)",
    )
    arg_parser.add_argument(
        "--duckdb",
        type=str,
        default=None,
        help="DuckDB executable to run (default: $SQLCELLS_DUCKDB or 'duckdb')",
    )
    arg_parser.add_argument(
        "--temp-dir",
        type=str,
        default=None,
        help="Directory for result files and temporary databases",
    )
    arg_parser.add_argument(
        "--no-install",
        action="store_true",
        help="Do not install the arrow extension before loading it",
    )

    args = arg_parser.parse_args(argv)
    _configure_logging()

    config = EngineConfig.from_env().with_overrides(
        binary=args.duckdb,
        temp_dir=args.temp_dir,
        install_extension=False if args.no_install else None,
    )

    if args.file and not args.file.exists():
        print(f"Error: File not found: {args.file}", file=sys.stderr)
        return 1

    db_path = str(args.database) if args.database is not None else None
    session = NotebookSession(config, db_path=db_path)
    try:
        if args.file:
            return run_file(args.file, session, args.verbose)
        if args.command:
            return run_script(args.command, session, args.verbose)
        return run_repl(session)
    finally:
        session.close()


if __name__ == "__main__":
    sys.exit(main())
