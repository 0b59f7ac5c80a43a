"""Split a SQL script into individually executable statements."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Statement:
    """One semicolon-delimited statement and its span in the source.

    Positions are 0-based. ``(start_line, start_char)`` is the first
    non-whitespace character of the statement and ``(end_line, end_char)``
    is the position of its terminating ``;`` (or the end of the last line for
    an unterminated final statement), so the span can be used to replace the
    statement in the original text.
    """

    text: str
    start_line: int
    end_line: int
    start_char: int
    end_char: int


def split_statements(script: str) -> list[Statement]:
    """Split *script* on top-level semicolons.

    Semicolons inside single- or double-quoted strings, ``--`` line comments
    and ``/* */`` block comments do not end a statement. Comment text is not
    copied into the statement text, though a block comment leaves a single
    space behind. Segments that are empty (or only comments) are dropped.
    """
    statements: list[Statement] = []
    lines = script.split("\n")

    buffer: list[str] = []
    start: tuple[int, int] | None = None
    in_block_comment = False
    quote: str | None = None

    for line_index, line in enumerate(lines):
        i = 0
        while i < len(line):
            ch = line[i]
            next_ch = line[i + 1] if i + 1 < len(line) else ""

            if in_block_comment:
                if ch == "*" and next_ch == "/":
                    # A closed comment still separates the tokens around it
                    in_block_comment = False
                    buffer.append(" ")
                    i += 2
                else:
                    i += 1
                continue

            if quote is not None:
                # Single-level escape check only
                if ch == quote and (i == 0 or line[i - 1] != "\\"):
                    quote = None
                buffer.append(ch)
                i += 1
                continue

            if ch == "-" and next_ch == "-":
                # Line comment: ignore the rest of this line
                break

            if ch == "/" and next_ch == "*":
                in_block_comment = True
                i += 2
                continue

            if ch == ";":
                text = "".join(buffer).strip()
                if text and start is not None:
                    statements.append(Statement(
                        text=text,
                        start_line=start[0],
                        end_line=line_index,
                        start_char=start[1],
                        end_char=i,
                    ))
                buffer = []
                start = None
                i += 1
                continue

            if ch == "'" or ch == '"':
                quote = ch

            if start is None and not ch.isspace():
                start = (line_index, i)
            buffer.append(ch)
            i += 1

        if not in_block_comment and line_index < len(lines) - 1:
            buffer.append("\n")

    text = "".join(buffer).strip()
    if text and start is not None:
        statements.append(Statement(
            text=text,
            start_line=start[0],
            end_line=len(lines) - 1,
            start_char=start[1],
            end_char=len(lines[-1]),
        ))

    return statements
