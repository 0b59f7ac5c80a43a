"""Convert between SQL script files and notebook cells."""

from __future__ import annotations

from typing import Iterable

from sqlcells.parsing.statement_splitter import split_statements

CELL_SEPARATOR = ";\n\n"


def deserialize_notebook(text: str) -> list[str]:
    """Split a script into cell texts, one per statement.

    An empty script still yields a single empty cell so that a new notebook
    has somewhere to type.
    """
    cells = [statement.text for statement in split_statements(text)]
    if not cells:
        cells.append("")
    return cells


def serialize_notebook(cells: Iterable[str]) -> str:
    """Join non-blank cells back into a script, each ending with ``;``."""
    values = [cell for cell in cells if cell.strip()]
    if not values:
        return ""
    return CELL_SEPARATOR.join(values) + ";"


def deserialize_notebook_bytes(content: bytes) -> list[str]:
    return deserialize_notebook(content.decode("utf-8"))


def serialize_notebook_bytes(cells: Iterable[str]) -> bytes:
    return serialize_notebook(cells).encode("utf-8")
