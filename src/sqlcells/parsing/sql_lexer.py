"""Lexer for SQL text, used for editor diagnostics and keyword help."""

import ply.lex as lex


class SqlLexer:
    """Lexer for tokenizing SQL scripts.

    Only lexical structure is checked: unterminated strings, quoted
    identifiers and block comments, and characters that cannot start any
    token. Grammar is left to the engine.
    """

    # Reserved keywords (lowercase → help text)
    reserved = {
        "select": "Return rows computed from the listed expressions",
        "from": "Source relation(s) of a query",
        "where": "Filter rows by a condition",
        "group": "Group rows (used with 'group by')",
        "by": "Used with 'group by' and 'order by'",
        "having": "Filter groups after aggregation",
        "order": "Sort rows (used with 'order by')",
        "limit": "Return at most N rows",
        "offset": "Skip the first N rows",
        "with": "Common table expressions ahead of a query",
        "as": "Name a column, table or CTE",
        "table": "Shorthand for 'select * from <table>'; also used in DDL",
        "values": "Inline rows of literal values",
        "union": "Concatenate the rows of two queries",
        "all": "Keep duplicates (union all) or quantify a comparison",
        "distinct": "Remove duplicate rows",
        "join": "Combine rows from two relations",
        "inner": "Inner join",
        "left": "Left outer join",
        "right": "Right outer join",
        "full": "Full outer join",
        "outer": "Outer join modifier",
        "cross": "Cartesian product join",
        "on": "Join condition",
        "using": "Join on identically named columns",
        "and": "Logical AND",
        "or": "Logical OR",
        "not": "Logical negation",
        "in": "Membership test",
        "is": "Null / boolean test",
        "null": "Absence-of-value literal",
        "like": "Pattern match",
        "between": "Range test",
        "case": "Conditional expression",
        "when": "Branch of a case expression",
        "then": "Result of a case branch",
        "else": "Fallback of a case expression",
        "end": "Close a case expression",
        "create": "Create a table, view, schema or other object",
        "replace": "Overwrite an existing object (create or replace)",
        "view": "Stored query",
        "schema": "Namespace for tables and views",
        "insert": "Add rows to a table",
        "into": "Target table of an insert",
        "update": "Modify rows in a table",
        "set": "Assignments of an update",
        "delete": "Remove rows from a table",
        "drop": "Remove an object",
        "alter": "Change an existing object",
        "if": "Guard a DDL statement (if exists / if not exists)",
        "exists": "Subquery existence test",
        "primary": "Primary key constraint",
        "key": "Key constraint",
        "copy": "Copy a table or query to or from a file",
        "to": "Destination of copy",
        "describe": "Show the columns of a table or query",
        "show": "List tables or settings",
        "pragma": "Engine-specific setting or introspection",
        "install": "Install an engine extension",
        "load": "Load an engine extension",
        "attach": "Attach another database file",
        "true": "Boolean literal",
        "false": "Boolean literal",
    }

    tokens = [
        "KEYWORD",
        "IDENTIFIER",
        "QUOTED_IDENTIFIER",
        "NUMBER",
        "STRING",
        "PARAMETER",
        "OPERATOR",
        "LPAREN",
        "RPAREN",
        "LBRACKET",
        "RBRACKET",
        "LBRACE",
        "RBRACE",
        "COMMA",
        "DOT",
        "SEMICOLON",
    ]

    t_LPAREN = r"\("
    t_RPAREN = r"\)"
    t_LBRACKET = r"\["
    t_RBRACKET = r"\]"
    t_LBRACE = r"\{"
    t_RBRACE = r"\}"
    t_COMMA = r","
    t_DOT = r"\."
    t_SEMICOLON = r";"
    t_OPERATOR = r"::|<>|!=|<=|>=|\|\||->>|->|[-+*/%<>=!~^&|:@\#]"

    t_ignore = " \t\r"

    def __init__(self) -> None:
        self.lexer: lex.Lexer = None  # type: ignore

    def t_BLOCK_COMMENT(self, t: lex.LexToken) -> None:
        r"/\*(.|\n)*?\*/"
        t.lexer.lineno += t.value.count("\n")

    def t_UNTERMINATED_COMMENT(self, t: lex.LexToken) -> None:
        r"/\*(.|\n)*"
        raise SyntaxError(f"Unterminated block comment at position {t.lexpos}")

    def t_LINE_COMMENT(self, t: lex.LexToken) -> None:
        r"--[^\n]*"
        pass

    def t_ESCAPE_STRING(self, t: lex.LexToken) -> lex.LexToken:
        r"[eE]'([^'\\]|\\(.|\n)|'')*'"
        t.lexer.lineno += t.value.count("\n")
        t.type = "STRING"
        return t

    def t_UNTERMINATED_ESCAPE_STRING(self, t: lex.LexToken) -> None:
        r"[eE]'([^'\\]|\\(.|\n)|'')*"
        raise SyntaxError(f"Unterminated string literal at position {t.lexpos}")

    # Backslash is an ordinary character outside E'...' strings
    def t_STRING(self, t: lex.LexToken) -> lex.LexToken:
        r"'([^']|'')*'"
        t.lexer.lineno += t.value.count("\n")
        return t

    def t_UNTERMINATED_STRING(self, t: lex.LexToken) -> None:
        r"'([^']|'')*"
        raise SyntaxError(f"Unterminated string literal at position {t.lexpos}")

    def t_QUOTED_IDENTIFIER(self, t: lex.LexToken) -> lex.LexToken:
        r'"([^"]|"")*"'
        t.lexer.lineno += t.value.count("\n")
        t.value = t.value[1:-1].replace('""', '"')
        return t

    def t_UNTERMINATED_IDENTIFIER(self, t: lex.LexToken) -> None:
        r'"([^"]|"")*'
        raise SyntaxError(f"Unterminated quoted identifier at position {t.lexpos}")

    def t_NUMBER(self, t: lex.LexToken) -> lex.LexToken:
        r"(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?"
        return t

    def t_PARAMETER(self, t: lex.LexToken) -> lex.LexToken:
        r"\$\d+|\?"
        return t

    def t_IDENTIFIER(self, t: lex.LexToken) -> lex.LexToken:
        r"[^\W\d][\w$]*"
        if t.value.lower() in self.reserved:
            t.type = "KEYWORD"
        return t

    def t_NEWLINE(self, t: lex.LexToken) -> None:
        r"\n+"
        t.lexer.lineno += len(t.value)

    def t_error(self, t: lex.LexToken) -> None:
        raise SyntaxError(f"Illegal character '{t.value[0]}' at position {t.lexpos}")

    # --- Lexer methods ---

    def build(self, **kwargs) -> None:  # type: ignore
        """Build the lexer."""
        self.lexer = lex.lex(module=self, **kwargs)

    def input(self, data: str) -> None:
        """Set the input string to tokenize."""
        self.lexer.input(data)

    def token(self) -> lex.LexToken | None:
        """Return the next token."""
        return self.lexer.token()

    def tokenize(self, data: str) -> list[lex.LexToken]:
        """Tokenize the input and return all tokens."""
        self.input(data)
        tokens = []
        while True:
            tok = self.token()
            if tok is None:
                break
            tokens.append(tok)
        return tokens


# Module-level set of reserved keywords (lowercase) for use by other modules
RESERVED_KEYWORDS: frozenset[str] = frozenset(SqlLexer.reserved.keys())
