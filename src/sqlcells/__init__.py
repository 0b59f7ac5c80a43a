"""sqlcells - Run SQL scripts statement by statement against DuckDB."""

from sqlcells.arrow_reader import ResultTable, read_arrow_result
from sqlcells.config import EngineConfig
from sqlcells.errors import (
    ExecutionError,
    OutputParseError,
    ResultReadError,
    SpawnError,
    SqlCellsError,
    StatementCancelled,
)
from sqlcells.executor import IN_MEMORY, DuckDBExecutor, QueryResult, is_result_producing
from sqlcells.notebook import deserialize_notebook, serialize_notebook
from sqlcells.parsing import Statement, split_statements
from sqlcells.session import CellOutput, NotebookSession, SessionRegistry

__all__ = [
    # Main API
    "split_statements",
    "DuckDBExecutor",
    "read_arrow_result",
    "NotebookSession",
    "SessionRegistry",
    # Data types
    "Statement",
    "QueryResult",
    "ResultTable",
    "CellOutput",
    "EngineConfig",
    "IN_MEMORY",
    "is_result_producing",
    # Notebook files
    "deserialize_notebook",
    "serialize_notebook",
    # Errors
    "SqlCellsError",
    "SpawnError",
    "ExecutionError",
    "OutputParseError",
    "ResultReadError",
    "StatementCancelled",
]

__version__ = "0.1.0"
