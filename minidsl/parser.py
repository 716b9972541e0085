"""
Precedence-climbing parser for MiniDSL.

Consumes the token list from the Lexer and emits a flat list of IR
instructions (see ir.py). There is no AST: every sub-expression is
evaluated into a fresh temporary (__temp__0, __temp__1, ...) as soon as it
is parsed.

Grammar:

  program    := statement*
  statement  := 'let' IDENT '=' expr ';'
              | 'let' IDENT '[' NUMBER ']' ';'
              | IDENT '=' expr ';'
              | IDENT '[' expr ']' '=' expr ';'
              | 'out' expr ';'
              | 'in' IDENT ';'
              | 'if' atom '<=' atom 'goto' IDENT ';'
              | 'goto' IDENT ';'
              | IDENT ':'
              | 'halt' ';'
  atom       := IDENT | NUMBER
  expr       := prefix (('+' | '-') expr)*
  prefix     := NUMBER | IDENT | IDENT '[' expr ']' | '(' expr ')'

`+` and `-` share one precedence level, so chains associate to the left.
The first error aborts the parse.
"""

from __future__ import annotations
from typing import Dict, List, Optional
from .lexer import Lexer, Token, TokenType
from .ir import IROp, Instruction, Literal, Variable, Label, Operand, TEMP_PREFIX


class ParseError(Exception):
    def __init__(self, message: str, token: Token):
        self.token = token
        loc = f"L{token.line}:{token.col}"
        super().__init__(f"Parse error at {loc}: {message} (got {token.type.name} = {token.text!r})")


# Binary operator precedence (higher binds tighter)
PRECEDENCE: Dict[TokenType, int] = {
    TokenType.PLUS: 1,
    TokenType.MINUS: 1,
}

BINARY_OPS: Dict[TokenType, IROp] = {
    TokenType.PLUS: IROp.ADD,
    TokenType.MINUS: IROp.SUB,
}


class Parser:
    """Statement parser emitting IR quadruples."""

    def __init__(self, tokens: List[Token]):
        self.tokens = tokens
        self.pos = 0
        self.ir: List[Instruction] = []
        self._temp_counter = 0
        self._line = 1

    # ── Helpers ─────────────────────────────

    def _cur(self) -> Token:
        return self.tokens[self.pos]

    def _peek(self, offset: int = 0) -> Token:
        i = self.pos + offset
        if i < len(self.tokens):
            return self.tokens[i]
        return self.tokens[-1]  # EOF

    def _at(self, *types: TokenType) -> bool:
        return self._cur().type in types

    def _advance(self) -> Token:
        tok = self.tokens[self.pos]
        if tok.type == TokenType.IDENT and tok.text.startswith(TEMP_PREFIX):
            raise ParseError(f"Names starting with '{TEMP_PREFIX}' are reserved for compiler temporaries", tok)
        if self.pos < len(self.tokens) - 1:
            self.pos += 1
        return tok

    def _expect(self, ttype: TokenType, msg: str = "") -> Token:
        if self._cur().type != ttype:
            if not msg:
                msg = f"Expected {ttype.value!r}"
            raise ParseError(msg, self._cur())
        return self._advance()

    def _match(self, *types: TokenType) -> Optional[Token]:
        if self._cur().type in types:
            return self._advance()
        return None

    def _new_temp(self) -> Variable:
        temp = Variable(f"{TEMP_PREFIX}{self._temp_counter}")
        self._temp_counter += 1
        return temp

    def _emit(self, op: IROp, arg1: Optional[Operand] = None,
              arg2: Optional[Operand] = None, result: Optional[Operand] = None):
        self.ir.append(Instruction(op, arg1, arg2, result, line=self._line))

    # ── Top-level parsing ─────────────────────

    def parse(self) -> List[Instruction]:
        """Parse the full token stream into an IR list."""
        while not self._at(TokenType.EOF):
            self._parse_statement()
        return self.ir

    def at_end(self) -> bool:
        return self._at(TokenType.EOF)

    def parse_statement(self) -> List[Instruction]:
        """Parse exactly one statement and return only the IR it produced."""
        start = len(self.ir)
        self._parse_statement()
        return self.ir[start:]

    def _parse_statement(self):
        tok = self._cur()
        self._line = tok.line

        if tok.type == TokenType.KW_LET:
            self._parse_let()
        elif tok.type == TokenType.KW_OUT:
            self._parse_out()
        elif tok.type == TokenType.KW_IN:
            self._advance()
            name = self._expect(TokenType.IDENT, "Expected variable name after 'in'")
            self._expect(TokenType.SEMI, "Expected ';' after in statement")
            self._emit(IROp.IN, result=Variable(name.text))
        elif tok.type == TokenType.KW_IF:
            self._parse_if()
        elif tok.type == TokenType.KW_GOTO:
            self._advance()
            target = self._expect(TokenType.IDENT, "Expected label after 'goto'")
            self._expect(TokenType.SEMI, "Expected ';' after goto")
            self._emit(IROp.GOTO, result=Label(target.text))
        elif tok.type == TokenType.KW_HALT:
            self._advance()
            self._expect(TokenType.SEMI, "Expected ';' after halt")
            self._emit(IROp.HALT)
        elif tok.type == TokenType.IDENT:
            self._parse_ident_statement()
        else:
            raise ParseError("Expected statement", tok)

    # ── Statements ────────────────────────────

    def _parse_let(self):
        self._expect(TokenType.KW_LET)
        name = self._expect(TokenType.IDENT, "Expected variable name after 'let'")

        # let arr[N];
        if self._match(TokenType.LBRACKET):
            size = self._expect(TokenType.NUMBER, "Expected array length")
            self._expect(TokenType.RBRACKET, "Expected ']' after array length")
            self._expect(TokenType.SEMI, "Expected ';' after array declaration")
            self._emit(IROp.ARRAY_DECL, Variable(name.text), Literal(size.value))
            return

        self._expect(TokenType.ASSIGN, "Expected '=' in let statement")
        value = self._parse_expr()
        self._expect(TokenType.SEMI, "Expected ';' after let statement")
        self._emit(IROp.STORE, value, result=Variable(name.text))

    def _parse_ident_statement(self):
        """Label, assignment or indexed assignment, chosen by the next token."""
        name = self._cur()
        nxt = self._peek(1)

        if nxt.type == TokenType.COLON:
            self._advance()
            self._advance()
            self._emit(IROp.LABEL, result=Label(name.text))
        elif nxt.type == TokenType.ASSIGN:
            self._advance()
            self._advance()
            value = self._parse_expr()
            self._expect(TokenType.SEMI, "Expected ';' after assignment")
            self._emit(IROp.STORE, value, result=Variable(name.text))
        elif nxt.type == TokenType.LBRACKET:
            self._advance()
            self._advance()
            index = self._parse_index()
            self._expect(TokenType.ASSIGN, "Expected '=' in indexed assignment")
            value = self._parse_expr()
            self._expect(TokenType.SEMI, "Expected ';' after indexed assignment")
            self._emit(IROp.STORE_INDEXED, index, value, Variable(name.text))
        else:
            raise ParseError("Expected ':', '=' or '[' after identifier", nxt)

    def _parse_out(self):
        self._expect(TokenType.KW_OUT)
        # A bare atom is output directly; anything else goes through a temp
        if self._at(TokenType.IDENT, TokenType.NUMBER) and self._peek(1).type == TokenType.SEMI:
            value = self._parse_atom()
        else:
            value = self._parse_expr()
        self._expect(TokenType.SEMI, "Expected ';' after out statement")
        self._emit(IROp.OUT, value)

    def _parse_if(self):
        self._expect(TokenType.KW_IF)
        left = self._parse_atom()
        self._expect(TokenType.LE, "Expected '<=' in if statement")
        right = self._parse_atom()
        self._expect(TokenType.KW_GOTO, "Expected 'goto' in if statement")
        target = self._expect(TokenType.IDENT, "Expected label after 'goto'")
        self._expect(TokenType.SEMI, "Expected ';' after if statement")
        self._emit(IROp.IF_LEQ_GOTO, left, right, Label(target.text))

    # ── Expressions ───────────────────────────

    def _parse_atom(self) -> Operand:
        tok = self._cur()
        if tok.type == TokenType.NUMBER:
            self._advance()
            return Literal(tok.value)
        if tok.type == TokenType.IDENT:
            self._advance()
            return Variable(tok.text)
        raise ParseError("Expected identifier or number", tok)

    def _parse_index(self) -> Operand:
        """Parse `expr ']'` after an opening bracket.

        A bare number stays a Literal so codegen can bounds-check it.
        """
        if self._at(TokenType.NUMBER) and self._peek(1).type == TokenType.RBRACKET:
            index: Operand = Literal(self._advance().value)
        else:
            index = self._parse_expr()
        self._expect(TokenType.RBRACKET, "Expected ']' after index")
        return index

    def _parse_expr(self, min_prec: int = 0) -> Operand:
        left = self._parse_prefix()

        while PRECEDENCE.get(self._cur().type, 0) > min_prec:
            op_tok = self._advance()
            right = self._parse_expr(PRECEDENCE[op_tok.type])
            temp = self._new_temp()
            self._emit(BINARY_OPS[op_tok.type], left, right, temp)
            left = temp

        return left

    def _parse_prefix(self) -> Operand:
        tok = self._cur()

        if tok.type == TokenType.NUMBER:
            self._advance()
            temp = self._new_temp()
            self._emit(IROp.LOAD_CONST, Literal(tok.value), result=temp)
            return temp

        if tok.type == TokenType.IDENT:
            self._advance()
            if self._match(TokenType.LBRACKET):
                index = self._parse_index()
                temp = self._new_temp()
                self._emit(IROp.LOAD_INDEXED, Variable(tok.text), index, temp)
                return temp
            temp = self._new_temp()
            self._emit(IROp.LOAD_VAR, Variable(tok.text), result=temp)
            return temp

        if tok.type == TokenType.LPAREN:
            self._advance()
            inner = self._parse_expr(0)
            self._expect(TokenType.RPAREN, "Expected ')'")
            return inner

        raise ParseError("Expected expression", tok)


def parse_source(source: str) -> List[Instruction]:
    """Lex and parse a source string."""
    return Parser(Lexer(source).tokenize()).parse()
