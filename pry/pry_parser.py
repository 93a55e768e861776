"""
Turns fragment text into pry_ast nodes.

Tokenizing is driven by the koine grammar in grammar/pry_grammar.yaml; the
recursive descent parser below applies Go's automatic semicolon rule and
operator precedence on top of the token list, one method per production.
"""
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterator, List, Optional

import yaml
from koine import Parser as KoineParser

from pry import pry_ast as ast
from pry.pry_errors import ParseError


GRAMMAR_PATH = Path(__file__).parent.parent / "grammar" / "pry_grammar.yaml"

TOKEN_KINDS = {'imag', 'float', 'int', 'char', 'string', 'raw_string', 'ident', 'op'}

KEYWORDS = {
    'break', 'case', 'chan', 'const', 'continue', 'default', 'defer', 'else',
    'fallthrough', 'for', 'func', 'go', 'goto', 'if', 'import', 'interface',
    'map', 'package', 'range', 'return', 'select', 'struct', 'switch', 'type',
    'var',
}

ASSIGN_TOKENS = {':=', '=', '+=', '-=', '*=', '/=', '%=', '&=', '|=', '^=', '<<=', '>>=', '&^='}

# Binary operator precedence, highest binds tightest.
PRECEDENCE = {
    '||': 1,
    '&&': 2,
    '==': 3, '!=': 3, '<': 3, '<=': 3, '>': 3, '>=': 3,
    '+': 4, '-': 4, '|': 4, '^': 4,
    '*': 5, '/': 5, '%': 5, '<<': 5, '>>': 5, '&': 5, '&^': 5,
}

UNARY_OPS = {'+', '-', '!', '^', '&'}

LITERAL_KINDS = {'int': 'INT', 'float': 'FLOAT', 'imag': 'IMAG', 'char': 'CHAR', 'string': 'STRING', 'raw_string': 'STRING'}


@dataclass
class Token:
    kind: str       # a grammar tag, 'keyword', 'semi' for inserted semicolons, or 'eof'
    text: str
    line: int = 1
    col: int = 1

    @property
    def end_line(self) -> int:
        return self.line + self.text.count('\n')


# =================================================================
# Tokenizer
# =================================================================

class Tokenizer:
    """Wraps the koine token grammar and Go's semicolon insertion."""

    _parser: Optional[KoineParser] = None

    def __init__(self):
        if Tokenizer._parser is None:
            with GRAMMAR_PATH.open(encoding="utf-8") as f:
                grammar_def = yaml.safe_load(f)
            Tokenizer._parser = KoineParser(grammar_def)
        self.parser = Tokenizer._parser

    def tokenize(self, source: str) -> List[Token]:
        parse_out = self.parser.parse(source)
        if parse_out.get('status') != 'success':
            node = parse_out.get('error_node') or {}
            message = parse_out.get('error_message') or "invalid token"
            raise ParseError(str(message), node.get('line'), node.get('col'))
        raw = list(self._leaves(parse_out.get('ast')))
        return self._insert_semicolons(raw)

    def _leaves(self, node: Any) -> Iterator[Token]:
        if isinstance(node, list):
            for n in node:
                yield from self._leaves(n)
            return
        if not isinstance(node, dict):
            return
        tag = node.get('tag')
        if tag in TOKEN_KINDS and 'text' in node:
            text = node['text']
            kind = 'keyword' if tag == 'ident' and text in KEYWORDS else tag
            yield Token(kind, text, node.get('line') or 1, node.get('col') or 1)
            return
        children = node.get('children')
        if isinstance(children, dict):
            children = list(children.values())
        yield from self._leaves(children or [])

    def _ends_statement(self, tok: Token) -> bool:
        if tok.kind in ('ident', 'int', 'float', 'imag', 'char', 'string', 'raw_string'):
            return True
        if tok.kind == 'keyword':
            return tok.text in ('return', 'break', 'continue', 'fallthrough')
        return tok.text in (')', ']', '}', '++', '--')

    def _insert_semicolons(self, raw: List[Token]) -> List[Token]:
        out: List[Token] = []
        for i, tok in enumerate(raw):
            out.append(tok)
            nxt = raw[i + 1] if i + 1 < len(raw) else None
            if nxt is not None and nxt.line > tok.end_line and self._ends_statement(tok):
                out.append(Token('semi', ';', tok.end_line, tok.col + len(tok.text)))
        last = raw[-1] if raw else None
        line = last.end_line if last else 1
        col = (last.col + len(last.text)) if last else 1
        out.append(Token('eof', '', line, col))
        return out


# =================================================================
# Parser
# =================================================================

class Parser:
    """Recursive descent parser over a token list."""

    def __init__(self, tokens: List[Token]):
        self.tokens = tokens
        self.pos = 0

    # --- Helpers ---

    def current(self) -> Token:
        return self.tokens[self.pos]

    def peek(self, offset: int = 1) -> Token:
        idx = min(self.pos + offset, len(self.tokens) - 1)
        return self.tokens[idx]

    def advance(self) -> Token:
        tok = self.tokens[self.pos]
        if tok.kind != 'eof':
            self.pos += 1
        return tok

    def at(self, text: str) -> bool:
        tok = self.current()
        return tok.text == text and tok.kind in ('op', 'semi', 'keyword')

    def at_eof(self) -> bool:
        return self.current().kind == 'eof'

    def expect(self, text: str) -> Token:
        if not self.at(text):
            raise self.error(f"expected '{text}', found {self._describe(self.current())}")
        return self.advance()

    def expect_ident(self) -> Token:
        tok = self.current()
        if tok.kind != 'ident':
            raise self.error(f"expected identifier, found {self._describe(tok)}")
        return self.advance()

    def error(self, msg: str) -> ParseError:
        tok = self.current()
        return ParseError(msg, tok.line, tok.col)

    def _describe(self, tok: Token) -> str:
        if tok.kind == 'eof':
            return "EOF"
        if tok.kind == 'semi':
            return "newline"
        return f"'{tok.text}'"

    def _pos(self) -> ast.Pos:
        tok = self.current()
        return (tok.line, tok.col)

    # --- Top level ---

    def parse_fragment(self) -> ast.BlockStmt:
        """Fragment = StatementList EOF."""
        pos = self._pos()
        if self.at_eof():
            raise self.error("expected statement, found EOF")
        stmts = self.parse_stmt_list()
        if not self.at_eof():
            raise self.error(f"unexpected {self._describe(self.current())}")
        return ast.BlockStmt(stmts, pos)

    def parse_expression_only(self) -> ast.Expr:
        x = self.parse_expr()
        while self.at(';'):
            self.advance()
        if not self.at_eof():
            raise self.error(f"unexpected {self._describe(self.current())} after expression")
        return x

    # --- Statements ---

    def parse_stmt_list(self) -> List[ast.Stmt]:
        stmts: List[ast.Stmt] = []
        while not self.at('}') and not self.at_eof():
            if self.at(';'):
                self.advance()
                continue
            stmts.append(self.parse_stmt())
            if not self.at('}') and not self.at_eof():
                self.expect(';')
        return stmts

    def parse_block(self) -> ast.BlockStmt:
        pos = self._pos()
        self.expect('{')
        stmts = self.parse_stmt_list()
        self.expect('}')
        return ast.BlockStmt(stmts, pos)

    def parse_stmt(self) -> ast.Stmt:
        tok = self.current()
        if self.at('{'):
            return self.parse_block()
        if tok.kind == 'keyword':
            if tok.text == 'return':
                return self.parse_return()
            if tok.text not in ('func', 'map', 'chan', 'interface'):
                return self.skip_unsupported()
        return self.parse_simple_stmt()

    def parse_return(self) -> ast.ReturnStmt:
        pos = self._pos()
        self.expect('return')
        if self.at(';') or self.at('}') or self.at_eof():
            return ast.ReturnStmt([], pos)
        return ast.ReturnStmt(self.parse_expr_list(), pos)

    def skip_unsupported(self) -> ast.BadStmt:
        """Consumes a statement the evaluator does not implement (if, for, var, ...)."""
        pos = self._pos()
        keyword = self.advance().text
        depth = 0
        while not self.at_eof():
            tok = self.current()
            if tok.kind == 'op' and tok.text in ('(', '[', '{'):
                depth += 1
            elif tok.kind == 'op' and tok.text in (')', ']', '}'):
                if depth == 0:
                    break
                depth -= 1
            elif tok.text == ';' and depth == 0:
                break
            self.advance()
        return ast.BadStmt(keyword, pos)

    def parse_simple_stmt(self) -> ast.Stmt:
        pos = self._pos()
        lhs = self.parse_expr_list()
        tok = self.current()
        if tok.kind == 'op' and tok.text in ASSIGN_TOKENS:
            self.advance()
            rhs = self.parse_expr_list()
            return ast.AssignStmt(lhs, tok.text, rhs, pos)
        if len(lhs) > 1:
            raise self.error(f"expected 1 expression, found {len(lhs)}")
        if self.at('++') or self.at('--'):
            return ast.IncDecStmt(lhs[0], self.advance().text, pos)
        if self.at('<-'):
            self.advance()
            return ast.SendStmt(lhs[0], self.parse_expr(), pos)
        return ast.ExprStmt(lhs[0], pos)

    # --- Expressions ---

    def parse_expr_list(self) -> List[ast.Expr]:
        exprs = [self.parse_expr()]
        while self.at(','):
            self.advance()
            exprs.append(self.parse_expr())
        return exprs

    def parse_expr(self) -> ast.Expr:
        return self.parse_binary(1)

    def parse_binary(self, min_prec: int) -> ast.Expr:
        x = self.parse_unary()
        while True:
            tok = self.current()
            prec = PRECEDENCE.get(tok.text, 0) if tok.kind == 'op' else 0
            if prec < min_prec:
                return x
            self.advance()
            y = self.parse_binary(prec + 1)
            x = ast.BinaryExpr(tok.text, x, y, (tok.line, tok.col))

    def parse_unary(self) -> ast.Expr:
        pos = self._pos()
        tok = self.current()
        if tok.kind == 'op' and tok.text in UNARY_OPS:
            self.advance()
            return ast.UnaryExpr(tok.text, self.parse_unary(), pos)
        if self.at('<-'):
            if self.peek().text == 'chan' and self.peek().kind == 'keyword':
                return self.parse_primary()
            self.advance()
            return ast.UnaryExpr('<-', self.parse_unary(), pos)
        if self.at('*'):
            self.advance()
            return ast.StarExpr(self.parse_unary(), pos)
        return self.parse_primary()

    def parse_primary(self) -> ast.Expr:
        x = self.parse_operand()
        while True:
            pos = self._pos()
            if self.at('.'):
                self.advance()
                x = ast.SelectorExpr(x, self.expect_ident().text, pos)
            elif self.at('['):
                x = self.parse_index_or_slice(x)
            elif self.at('('):
                x = self.parse_call(x)
            elif self.at('{') and self._is_literal_type(x):
                x = self.parse_composite_lit(x)
            else:
                return x

    def _is_literal_type(self, x: ast.Expr) -> bool:
        if isinstance(x, (ast.ArrayType, ast.MapType)):
            return True
        if isinstance(x, ast.SelectorExpr):
            return isinstance(x.x, ast.Ident)
        return isinstance(x, ast.Ident)

    def parse_index_or_slice(self, x: ast.Expr) -> ast.Expr:
        pos = self._pos()
        self.expect('[')
        low = None if self.at(':') else self.parse_expr()
        if self.at(':'):
            self.advance()
            high = None if self.at(']') else self.parse_expr()
            self.expect(']')
            return ast.SliceExpr(x, low, high, pos)
        self.expect(']')
        return ast.IndexExpr(x, low, pos)

    def parse_call(self, fun: ast.Expr) -> ast.CallExpr:
        pos = self._pos()
        self.expect('(')
        args: List[ast.Expr] = []
        ellipsis = False
        while not self.at(')'):
            args.append(self.parse_type_or_expr())
            if self.at('...'):
                self.advance()
                ellipsis = True
            if not self.at(','):
                break
            self.advance()
        self.expect(')')
        return ast.CallExpr(fun, args, ellipsis, pos)

    def parse_composite_lit(self, typ: Optional[ast.Expr]) -> ast.CompositeLit:
        pos = self._pos()
        self.expect('{')
        elts: List[ast.Expr] = []
        while not self.at('}'):
            elts.append(self.parse_element())
            if not self.at(','):
                break
            self.advance()
        self.expect('}')
        return ast.CompositeLit(typ, elts, pos)

    def parse_element(self) -> ast.Expr:
        pos = self._pos()
        x = self.parse_composite_lit(None) if self.at('{') else self.parse_expr()
        if self.at(':'):
            self.advance()
            value = self.parse_composite_lit(None) if self.at('{') else self.parse_expr()
            return ast.KeyValueExpr(x, value, pos)
        return x

    def parse_operand(self) -> ast.Expr:
        pos = self._pos()
        tok = self.current()
        if tok.kind in LITERAL_KINDS:
            self.advance()
            return ast.BasicLit(LITERAL_KINDS[tok.kind], tok.text, pos)
        if tok.kind == 'ident':
            self.advance()
            return ast.Ident(tok.text, pos)
        if self.at('('):
            self.advance()
            x = self.parse_type_or_expr()
            self.expect(')')
            return ast.ParenExpr(x, pos)
        if self.at('func'):
            ftype = self.parse_func_type()
            if self.at('{'):
                return ast.FuncLit(ftype, self.parse_block(), pos)
            return ftype
        if self.at('[') or self.at('map') or self.at('chan') or self.at('<-') or self.at('interface'):
            return self.parse_type()
        if self.at('struct'):
            raise self.error("struct types are not supported")
        raise self.error(f"expected operand, found {self._describe(tok)}")

    def parse_type_or_expr(self) -> ast.Expr:
        return self.parse_expr()

    # --- Types ---

    def parse_type(self) -> ast.Expr:
        pos = self._pos()
        tok = self.current()
        if tok.kind == 'ident':
            self.advance()
            x: ast.Expr = ast.Ident(tok.text, pos)
            if self.at('.') and self.peek().kind == 'ident':
                self.advance()
                x = ast.SelectorExpr(x, self.advance().text, pos)
            return x
        if self.at('['):
            self.advance()
            length = None
            if self.at('...'):
                self.advance()
            elif not self.at(']'):
                length = self.parse_expr()
            self.expect(']')
            return ast.ArrayType(length, self.parse_type(), pos)
        if self.at('map'):
            self.advance()
            self.expect('[')
            key = self.parse_type()
            self.expect(']')
            return ast.MapType(key, self.parse_type(), pos)
        if self.at('chan'):
            self.advance()
            direction = 'both'
            if self.at('<-'):
                self.advance()
                direction = 'send'
            return ast.ChanType(direction, self.parse_type(), pos)
        if self.at('<-'):
            self.advance()
            self.expect('chan')
            return ast.ChanType('recv', self.parse_type(), pos)
        if self.at('func'):
            return self.parse_func_type()
        if self.at('*'):
            self.advance()
            return ast.StarExpr(self.parse_type(), pos)
        if self.at('('):
            self.advance()
            x = self.parse_type()
            self.expect(')')
            return ast.ParenExpr(x, pos)
        if self.at('interface'):
            self.advance()
            self.expect('{')
            if not self.at('}'):
                raise self.error("only the empty interface is supported")
            self.expect('}')
            return ast.Ident('any', pos)
        raise self.error(f"expected type, found {self._describe(tok)}")

    def _starts_type(self) -> bool:
        tok = self.current()
        if tok.kind == 'ident':
            return True
        return any(self.at(t) for t in ('[', 'map', 'chan', 'func', '*', '(', 'interface', '<-'))

    def parse_func_type(self) -> ast.FuncType:
        pos = self._pos()
        self.expect('func')
        params = self.parse_params()
        results: List[ast.Field] = []
        if self.at('('):
            results = self.parse_params()
        elif self._starts_type():
            rpos = self._pos()
            results = [ast.Field([], self.parse_type(), rpos)]
        return ast.FuncType(params, results, pos)

    def parse_params(self) -> List[ast.Field]:
        """Go parameter lists: either all named, `(a, b int, c ...string)`,
        or all anonymous, `(int, string)`."""
        self.expect('(')
        entries = []
        while not self.at(')'):
            pos = self._pos()
            first = self._parse_param_type()
            if not self.at(',') and not self.at(')'):
                if not isinstance(first, ast.Ident):
                    raise self.error("mixed named and unnamed parameters")
                entries.append((first.name, self._parse_param_type(), pos))
            else:
                entries.append((None, first, pos))
            if not self.at(','):
                break
            self.advance()
        self.expect(')')

        if not any(name is not None for name, _, _ in entries):
            return [ast.Field([], typ, pos) for _, typ, pos in entries]

        fields: List[ast.Field] = []
        pending: List[str] = []
        for name, typ, pos in entries:
            if name is None:
                if not isinstance(typ, ast.Ident):
                    raise ParseError("mixed named and unnamed parameters", pos[0], pos[1])
                pending.append(typ.name)
            else:
                fields.append(ast.Field(pending + [name], typ, pos))
                pending = []
        if pending:
            tok = self.current()
            raise ParseError("mixed named and unnamed parameters", tok.line, tok.col)
        return fields

    def _parse_param_type(self) -> ast.Expr:
        if self.at('...'):
            pos = self._pos()
            self.advance()
            return ast.Ellipsis(self.parse_type(), pos)
        return self.parse_type()


# =================================================================
# Entry points
# =================================================================

def tokenize(source: str) -> List[Token]:
    return Tokenizer().tokenize(source)


def parse(source: str) -> ast.BlockStmt:
    """Parses a fragment: one or more statements separated by ';' or newlines."""
    return Parser(tokenize(source)).parse_fragment()


def parse_expr(source: str) -> ast.Expr:
    """Parses text that must hold exactly one expression."""
    return Parser(tokenize(source)).parse_expression_only()
