"""Parsing module for SQL scripts."""

from sqlcells.parsing.sql_lexer import RESERVED_KEYWORDS, SqlLexer
from sqlcells.parsing.statement_splitter import Statement, split_statements

__all__ = [
    "RESERVED_KEYWORDS",
    "SqlLexer",
    "Statement",
    "split_statements",
]
