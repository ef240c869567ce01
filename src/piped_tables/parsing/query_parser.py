"""Parser for the PTQ (Piped Tables Query) language."""

from __future__ import annotations

import logging
import math
from typing import Any

import ply.yacc as yacc

from piped_tables.errors import ParseError
from piped_tables.parsing.query_ast import (
    BinaryOp,
    BinaryOperator,
    ColumnSpec,
    DropOp,
    FilterOp,
    FunctionCall,
    GroupOp,
    LimitOp,
    Literal,
    Pipeline,
    SelectOp,
    SortOp,
    UnaryOp,
    UnaryOperator,
    Variable,
)
from piped_tables.parsing.query_lexer import QueryLexer

logger = logging.getLogger(__name__)

_BINARY_OPERATORS = {
    "OR": BinaryOperator.OR,
    "PIPE": BinaryOperator.OR,
    "AND": BinaryOperator.AND,
    "EQ": BinaryOperator.EQ,
    "NE": BinaryOperator.NE,
    "LT": BinaryOperator.LT,
    "GT": BinaryOperator.GT,
    "LE": BinaryOperator.LE,
    "GE": BinaryOperator.GE,
    "PLUS": BinaryOperator.ADD,
    "MINUS": BinaryOperator.SUB,
    "STAR": BinaryOperator.MUL,
    "PERCENT": BinaryOperator.DIV,
}

# Human-readable names used when reporting what the parser expected
_TOKEN_DESCRIPTIONS = {
    "$end": "end of input",
    "PIPE": "'|'",
    "FILTER": "'?'",
    "SELECT": "'!'",
    "SORT_ASC": "'^'",
    "SORT_DESC": "'v'",
    "GROUP": "'@'",
    "LIMIT": "'#'",
    "DROP": "'_'",
    "LPAREN": "'('",
    "RPAREN": "')'",
    "LBRACKET": "'['",
    "RBRACKET": "']'",
    "SEMICOLON": "';'",
    "COMMA": "','",
    "COLON": "':'",
    "PLUS": "'+'",
    "MINUS": "'-'",
    "STAR": "'*'",
    "PERCENT": "'%'",
    "EQ": "'='",
    "NE": "'<>'",
    "LE": "'<='",
    "GE": "'>='",
    "LT": "'<'",
    "GT": "'>'",
    "AND": "'and'",
    "OR": "'or'",
    "NOT": "'not'",
    "IDENTIFIER": "identifier",
    "NUMBER": "number",
    "STRING": "string",
    "SYMBOL": "symbol",
}


class QueryParser:
    """Parser for PTQ queries.

    Produces an immutable :class:`Pipeline`. The grammar is LALR, built by
    ``ply.yacc``; operator precedence is declared in ``precedence`` below.
    """

    tokens = QueryLexer.tokens

    # Operator precedence: loosest to tightest
    precedence = (
        ("left", "OR", "PIPE"),
        ("left", "AND"),
        ("left", "EQ", "NE", "LT", "GT", "LE", "GE"),
        ("left", "PLUS", "MINUS"),
        ("left", "STAR", "PERCENT"),
        ("right", "NOT", "UMINUS"),
    )

    def __init__(self) -> None:
        self.lexer = QueryLexer()
        self.lexer.build()
        self.parser: yacc.LRParser = None  # type: ignore
        self._text = ""

    # ---- Pipeline ----

    def p_pipeline(self, p: yacc.YaccProduction) -> None:
        """pipeline : IDENTIFIER operations"""
        p[0] = Pipeline(table=p[1], operations=tuple(p[2]))

    def p_operations_empty(self, p: yacc.YaccProduction) -> None:
        """operations : """
        p[0] = []

    def p_operations_multiple(self, p: yacc.YaccProduction) -> None:
        """operations : operations PIPE operation"""
        p[0] = p[1] + [p[3]]

    # ---- Operations ----

    def p_operation_filter(self, p: yacc.YaccProduction) -> None:
        """operation : FILTER LBRACKET expression RBRACKET"""
        p[0] = FilterOp(condition=p[3])

    def p_operation_select(self, p: yacc.YaccProduction) -> None:
        """operation : SELECT LBRACKET column_list RBRACKET"""
        p[0] = SelectOp(columns=tuple(p[3]))

    def p_operation_sort(self, p: yacc.YaccProduction) -> None:
        """operation : SORT_ASC LBRACKET IDENTIFIER RBRACKET
                     | SORT_DESC LBRACKET IDENTIFIER RBRACKET"""
        p[0] = SortOp(column=p[3], ascending=p.slice[1].type == "SORT_ASC")

    def p_operation_group(self, p: yacc.YaccProduction) -> None:
        """operation : GROUP LBRACKET identifier_list RBRACKET"""
        p[0] = GroupOp(columns=tuple(p[3]))

    def p_operation_limit(self, p: yacc.YaccProduction) -> None:
        """operation : LIMIT LBRACKET count RBRACKET"""
        p[0] = LimitOp(count=p[3])

    def p_operation_drop(self, p: yacc.YaccProduction) -> None:
        """operation : DROP LBRACKET NUMBER RBRACKET"""
        p[0] = DropOp(count=self._count(p, 3))

    def p_count(self, p: yacc.YaccProduction) -> None:
        """count : NUMBER"""
        p[0] = self._count(p, 1)

    def p_count_negative(self, p: yacc.YaccProduction) -> None:
        """count : MINUS NUMBER"""
        p[0] = -self._count(p, 2)

    @staticmethod
    def _count(p: yacc.YaccProduction, index: int) -> int:
        value = p[index]
        if not math.isfinite(value):
            token = p.slice[index]
            raise ParseError(token.lineno, token.column, "a finite count", f"NUMBER '{value}'")
        return int(value)

    # ---- Column specs ----

    def p_column_list(self, p: yacc.YaccProduction) -> None:
        """column_list : column_items
                       | column_items separator"""
        p[0] = p[1]

    def p_column_items_single(self, p: yacc.YaccProduction) -> None:
        """column_items : column_spec"""
        p[0] = [p[1]]

    def p_column_items_multiple(self, p: yacc.YaccProduction) -> None:
        """column_items : column_items separator column_spec"""
        p[0] = p[1] + [p[3]]

    def p_column_spec_wildcard(self, p: yacc.YaccProduction) -> None:
        """column_spec : STAR"""
        p[0] = ColumnSpec(wildcard=True)

    def p_column_spec_aliased(self, p: yacc.YaccProduction) -> None:
        """column_spec : IDENTIFIER COLON expression"""
        p[0] = ColumnSpec(expression=p[3], alias=p[1])

    def p_column_spec_expression(self, p: yacc.YaccProduction) -> None:
        """column_spec : expression"""
        p[0] = ColumnSpec(expression=p[1])

    def p_separator(self, p: yacc.YaccProduction) -> None:
        """separator : SEMICOLON
                     | COMMA"""
        p[0] = p[1]

    def p_identifier_list(self, p: yacc.YaccProduction) -> None:
        """identifier_list : identifier_items
                           | identifier_items separator"""
        p[0] = p[1]

    def p_identifier_items_single(self, p: yacc.YaccProduction) -> None:
        """identifier_items : IDENTIFIER"""
        p[0] = [p[1]]

    def p_identifier_items_multiple(self, p: yacc.YaccProduction) -> None:
        """identifier_items : identifier_items separator IDENTIFIER"""
        p[0] = p[1] + [p[3]]

    # ---- Expressions ----

    def p_expression_binary(self, p: yacc.YaccProduction) -> None:
        """expression : expression OR expression
                      | expression PIPE expression
                      | expression AND expression
                      | expression EQ expression
                      | expression NE expression
                      | expression LT expression
                      | expression GT expression
                      | expression LE expression
                      | expression GE expression
                      | expression PLUS expression
                      | expression MINUS expression
                      | expression STAR expression
                      | expression PERCENT expression"""
        p[0] = BinaryOp(op=_BINARY_OPERATORS[p.slice[2].type], left=p[1], right=p[3])

    def p_expression_not(self, p: yacc.YaccProduction) -> None:
        """expression : NOT expression"""
        p[0] = UnaryOp(op=UnaryOperator.NOT, operand=p[2])

    def p_expression_negate(self, p: yacc.YaccProduction) -> None:
        """expression : MINUS expression %prec UMINUS"""
        p[0] = UnaryOp(op=UnaryOperator.NEGATE, operand=p[2])

    def p_expression_paren(self, p: yacc.YaccProduction) -> None:
        """expression : LPAREN expression RPAREN"""
        p[0] = p[2]

    def p_expression_number(self, p: yacc.YaccProduction) -> None:
        """expression : NUMBER"""
        p[0] = Literal(p[1])

    def p_expression_text(self, p: yacc.YaccProduction) -> None:
        """expression : STRING
                      | SYMBOL"""
        p[0] = Literal(p[1])

    def p_expression_variable(self, p: yacc.YaccProduction) -> None:
        """expression : IDENTIFIER"""
        p[0] = Variable(p[1])

    def p_expression_call_empty(self, p: yacc.YaccProduction) -> None:
        """expression : IDENTIFIER LBRACKET RBRACKET"""
        p[0] = FunctionCall(name=p[1])

    def p_expression_call(self, p: yacc.YaccProduction) -> None:
        """expression : IDENTIFIER LBRACKET argument_list RBRACKET"""
        p[0] = FunctionCall(name=p[1], args=tuple(p[3]))

    def p_argument_list_single(self, p: yacc.YaccProduction) -> None:
        """argument_list : expression"""
        p[0] = [p[1]]

    def p_argument_list_multiple(self, p: yacc.YaccProduction) -> None:
        """argument_list : argument_list separator expression"""
        p[0] = p[1] + [p[3]]

    # ---- Errors ----

    def p_error(self, p: yacc.YaccProduction) -> None:
        expected = self._describe_expected()
        if p:
            raise ParseError(p.lineno, p.column, expected, f"{p.type} '{p.value}'")
        line = self._text.count("\n") + 1
        column = len(self._text) - self._text.rfind("\n")
        raise ParseError(line, column, expected, "end of input")

    def _describe_expected(self) -> str:
        """Describe the tokens acceptable in the parser's current state."""
        statestack = getattr(self.parser, "statestack", None)
        if not statestack:
            return "a valid token"
        if statestack == [0]:
            return "table name"
        names = sorted(self.parser.action[statestack[-1]])
        descriptions = [_TOKEN_DESCRIPTIONS.get(name, name) for name in names]
        if len(descriptions) == 1:
            return descriptions[0]
        return "one of " + ", ".join(descriptions)

    def build(self, **kwargs: Any) -> None:
        """Build the parser."""
        kwargs.setdefault("debug", False)
        kwargs.setdefault("write_tables", False)
        kwargs.setdefault("errorlog", yacc.NullLogger())
        self.parser = yacc.yacc(module=self, start="pipeline", **kwargs)

    def parse(self, data: str) -> Pipeline:
        """Parse a query string."""
        if self.parser is None:
            self.build()

        self._text = data
        pipeline = self.parser.parse(data, lexer=self.lexer)
        logger.debug("Parsed %r into %d operation(s)", pipeline.table, len(pipeline.operations))
        return pipeline
