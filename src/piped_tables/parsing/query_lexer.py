"""Lexer for the PTQ (Piped Tables Query) language."""

import re

import ply.lex as lex

from piped_tables.errors import LexError

_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "\\": "\\", '"': '"'}
_ESCAPE_RE = re.compile(r"\\(.)", re.DOTALL)


class QueryLexer:
    """Lexer for tokenizing PTQ queries."""

    # Reserved keywords (matched case-insensitively)
    reserved = {
        "and": "AND",
        "or": "OR",
        "not": "NOT",
    }

    # Token list
    tokens = [
        "PIPE",
        "FILTER",
        "SELECT",
        "SORT_ASC",
        "SORT_DESC",
        "GROUP",
        "LIMIT",
        "DROP",
        "LPAREN",
        "RPAREN",
        "LBRACKET",
        "RBRACKET",
        "SEMICOLON",
        "COMMA",
        "COLON",
        "PLUS",
        "MINUS",
        "STAR",
        "PERCENT",
        "EQ",
        "NE",
        "LE",
        "GE",
        "LT",
        "GT",
        "IDENTIFIER",
        "NUMBER",
        "STRING",
        "SYMBOL",
    ] + list(reserved.values())

    # Pipeline operators
    t_PIPE = r"\|"
    t_FILTER = r"\?"
    t_SELECT = r"!"
    t_SORT_ASC = r"\^"
    t_GROUP = r"@"
    t_LIMIT = r"\#"
    t_DROP = r"_"

    # Delimiters
    t_LPAREN = r"\("
    t_RPAREN = r"\)"
    t_LBRACKET = r"\["
    t_RBRACKET = r"\]"
    t_SEMICOLON = r";"
    t_COMMA = r","
    t_COLON = r":"

    # Arithmetic (% is division in PTQ)
    t_PLUS = r"\+"
    t_MINUS = r"-"
    t_STAR = r"\*"
    t_PERCENT = r"%"

    # Comparison; PLY sorts string-defined tokens longest-first
    t_NE = r"<>"
    t_LE = r"<="
    t_GE = r">="
    t_EQ = r"="
    t_LT = r"<"
    t_GT = r">"

    t_AND = r"&"

    t_ignore = " \t\r"

    def __init__(self) -> None:
        self.lexer: lex.Lexer = None  # type: ignore

    def t_COMMENT(self, t: lex.LexToken) -> None:
        r"//[^\n]*"
        pass  # Ignore comments

    def t_SORT_DESC(self, t: lex.LexToken) -> lex.LexToken:
        r"v(?=\[)"
        # A bare v is an identifier; only v[ is the descending sort operator
        return t

    def t_NUMBER(self, t: lex.LexToken) -> lex.LexToken:
        r"\d+(?:\.\d*)?|\.\d+"
        t.value = float(t.value)
        return t

    def t_STRING(self, t: lex.LexToken) -> lex.LexToken:
        r'"([^"\\]|\\.)*"'
        t.lexer.lineno += t.value.count("\n")
        t.value = _ESCAPE_RE.sub(lambda m: _ESCAPES.get(m.group(1), m.group(1)), t.value[1:-1])
        return t

    def t_SYMBOL(self, t: lex.LexToken) -> lex.LexToken:
        r"`[a-zA-Z0-9_]*"
        t.value = t.value[1:]
        return t

    def t_IDENTIFIER(self, t: lex.LexToken) -> lex.LexToken:
        r"[a-zA-Z][a-zA-Z0-9_.]*"
        t.type = self.reserved.get(t.value.lower(), "IDENTIFIER")
        return t

    def t_NEWLINE(self, t: lex.LexToken) -> None:
        r"\n+"
        t.lexer.lineno += len(t.value)

    def t_error(self, t: lex.LexToken) -> None:
        column = self.column_of(t.lexpos)
        if t.value[0] == '"':
            raise LexError("Unterminated string", t.lineno, column)
        raise LexError(f"Unexpected character '{t.value[0]}'", t.lineno, column)

    # --- Lexer methods ---

    def build(self, **kwargs) -> None:  # type: ignore
        """Build the lexer."""
        self.lexer = lex.lex(module=self, **kwargs)

    def input(self, data: str) -> None:
        """Set the input string to tokenize."""
        self.lexer.input(data)
        self.lexer.lineno = 1

    def token(self) -> lex.LexToken | None:
        """Return the next token, annotated with its 1-based column."""
        tok = self.lexer.token()
        if tok is not None:
            tok.column = self.column_of(tok.lexpos)
        return tok

    def column_of(self, lexpos: int) -> int:
        """Translate an absolute input offset into a 1-based column number."""
        return lexpos - self.lexer.lexdata.rfind("\n", 0, lexpos)

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
