"""SQL cells language server: statement lenses, run commands, diagnostics via pygls."""

from __future__ import annotations

import re
from typing import Any

from lsprotocol import types
from pygls.lsp.server import LanguageServer

from sqlcells.config import EngineConfig
from sqlcells.parsing.sql_lexer import SqlLexer
from sqlcells.parsing.statement_splitter import Statement, split_statements
from sqlcells.session import SessionRegistry

RUN_STATEMENT_COMMAND = "sqlcells.runStatement"
UPDATE_STATEMENT_COMMAND = "sqlcells.updateStatement"

# Regex to extract position from SqlLexer error messages
_POSITION_RE = re.compile(r"(?:at position|\(position) (\d+)")

_LABEL_WIDTH = 60

# ---------------------------------------------------------------------------
# Helpers (module-level so they are easy to unit-test)
# ---------------------------------------------------------------------------


def lexpos_to_position(source: str, lexpos: int) -> types.Position:
    """Convert a character offset into an LSP ``Position(line, character)``."""
    line = source.count("\n", 0, lexpos)
    last_nl = source.rfind("\n", 0, lexpos)
    character = lexpos if last_nl == -1 else lexpos - last_nl - 1
    return types.Position(line=line, character=character)


def _extract_position_from_error(message: str) -> int | None:
    """Return the integer position embedded in a SyntaxError message, or None."""
    m = _POSITION_RE.search(message)
    return int(m.group(1)) if m else None


def _word_at_position(line_text: str, character: int) -> str:
    """Return the contiguous identifier-like word surrounding *character*."""
    if character < 0 or character >= len(line_text):
        return ""
    ch = line_text[character]
    if not (ch.isalnum() or ch == "_"):
        return ""
    # Scan left
    left = character
    while left > 0 and (line_text[left - 1].isalnum() or line_text[left - 1] == "_"):
        left -= 1
    # Scan right
    right = character
    while right < len(line_text) and (line_text[right].isalnum() or line_text[right] == "_"):
        right += 1
    return line_text[left:right]


def statement_range(statement: Statement) -> types.Range:
    """Return the exact source range of *statement* (terminator excluded)."""
    return types.Range(
        start=types.Position(line=statement.start_line, character=statement.start_char),
        end=types.Position(line=statement.end_line, character=statement.end_char),
    )


def statement_label(statement: Statement) -> str:
    """Return a one-line label for *statement*."""
    first_line = statement.text.split("\n", 1)[0].strip()
    if len(first_line) > _LABEL_WIDTH:
        return first_line[:_LABEL_WIDTH - 3] + "..."
    return first_line


def lexical_diagnostics(source: str, lexer: SqlLexer) -> list[types.Diagnostic]:
    """Lex *source* and report the first lexical error, if any."""
    try:
        lexer.tokenize(source)
    except SyntaxError as exc:
        msg = str(exc)
        pos_int = _extract_position_from_error(msg)
        if pos_int is not None:
            start = lexpos_to_position(source, pos_int)
        else:
            # Fallback: end of document
            lines = source.split("\n")
            start = types.Position(line=max(len(lines) - 1, 0), character=0)
        end = types.Position(line=start.line, character=start.character + 1)
        return [
            types.Diagnostic(
                range=types.Range(start=start, end=end),
                severity=types.DiagnosticSeverity.Error,
                source="sqlcells",
                message=msg,
            )
        ]
    return []


def code_lenses(uri: str, source: str) -> list[types.CodeLens]:
    """Return one "Run statement" lens per statement in *source*."""
    lenses = []
    for index, statement in enumerate(split_statements(source)):
        lenses.append(
            types.CodeLens(
                range=statement_range(statement),
                command=types.Command(
                    title="Run statement",
                    command=RUN_STATEMENT_COMMAND,
                    arguments=[uri, index],
                ),
            )
        )
    return lenses


def document_symbols(source: str) -> list[types.DocumentSymbol]:
    """Return one symbol per statement in *source*."""
    symbols = []
    for statement in split_statements(source):
        rng = statement_range(statement)
        symbols.append(
            types.DocumentSymbol(
                name=statement_label(statement),
                kind=types.SymbolKind.Function,
                range=rng,
                selection_range=rng,
            )
        )
    return symbols


def _command_args(args: tuple[Any, ...]) -> list[Any]:
    """Normalize command arguments to a flat list."""
    if len(args) == 1 and isinstance(args[0], list):
        return list(args[0])
    return list(args)


def _statement_by_index(source: str, index: int) -> Statement | None:
    statements = split_statements(source)
    if 0 <= index < len(statements):
        return statements[index]
    return None


# ---------------------------------------------------------------------------
# Server
# ---------------------------------------------------------------------------

server = LanguageServer("sqlcells-language-server", "0.1.0")
_lexer = SqlLexer()
_lexer.build()
_sessions = SessionRegistry(EngineConfig.from_env())


@server.feature(types.TEXT_DOCUMENT_DID_OPEN)
def did_open(params: types.DidOpenTextDocumentParams) -> None:
    _validate_document(params.text_document.uri)


@server.feature(types.TEXT_DOCUMENT_DID_CHANGE)
def did_change(params: types.DidChangeTextDocumentParams) -> None:
    _validate_document(params.text_document.uri)


@server.feature(types.TEXT_DOCUMENT_DID_CLOSE)
def did_close(params: types.DidCloseTextDocumentParams) -> None:
    uri = params.text_document.uri
    _sessions.close(uri)
    server.text_document_publish_diagnostics(
        types.PublishDiagnosticsParams(uri=uri, diagnostics=[])
    )


def _validate_document(uri: str) -> None:
    doc = server.workspace.get_text_document(uri)
    diagnostics = lexical_diagnostics(doc.source, _lexer)
    server.text_document_publish_diagnostics(
        types.PublishDiagnosticsParams(uri=uri, diagnostics=diagnostics)
    )


@server.feature(types.TEXT_DOCUMENT_CODE_LENS)
def code_lens(params: types.CodeLensParams) -> list[types.CodeLens]:
    doc = server.workspace.get_text_document(params.text_document.uri)
    return code_lenses(params.text_document.uri, doc.source)


@server.feature(types.TEXT_DOCUMENT_DOCUMENT_SYMBOL)
def document_symbol(params: types.DocumentSymbolParams) -> list[types.DocumentSymbol]:
    doc = server.workspace.get_text_document(params.text_document.uri)
    return document_symbols(doc.source)


@server.feature(types.TEXT_DOCUMENT_HOVER)
def hover(params: types.HoverParams) -> types.Hover | None:
    doc = server.workspace.get_text_document(params.text_document.uri)
    if params.position.line >= len(doc.lines):
        return None
    line_text = doc.lines[params.position.line]
    word = _word_at_position(line_text, params.position.character)
    if not word:
        return None

    lower = word.lower()
    if lower not in SqlLexer.reserved:
        return None
    return types.Hover(
        contents=types.MarkupContent(
            kind=types.MarkupKind.Markdown,
            value=f"**{lower.upper()}** — {SqlLexer.reserved[lower]}",
        )
    )


@server.command(RUN_STATEMENT_COMMAND)
async def run_statement(*args: Any) -> dict[str, Any]:
    """Run statement *index* of document *uri* in the document's session."""
    uri, index = _command_args(args)[:2]
    doc = server.workspace.get_text_document(uri)
    statement = _statement_by_index(doc.source, int(index))
    if statement is None:
        return {
            "kind": "error",
            "success": False,
            "errorName": "QueryError",
            "message": f"No statement at index {index}",
        }
    output = await _sessions.get(uri).execute_cell(statement.text)
    return output.to_json()


@server.command(UPDATE_STATEMENT_COMMAND)
def update_statement(*args: Any) -> bool:
    """Replace the text of statement *index* of document *uri* with *new_text*."""
    uri, index, new_text = _command_args(args)[:3]
    doc = server.workspace.get_text_document(uri)
    statement = _statement_by_index(doc.source, int(index))
    if statement is None:
        return False
    edit = types.WorkspaceEdit(
        changes={uri: [types.TextEdit(range=statement_range(statement), new_text=new_text)]}
    )
    server.workspace_apply_edit(
        types.ApplyWorkspaceEditParams(edit=edit, label="Update statement")
    )
    return True


def main() -> None:
    try:
        server.start_io()
    finally:
        _sessions.dispose()


if __name__ == "__main__":
    main()
