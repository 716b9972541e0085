"""
Lexer / Tokenizer for MiniDSL.

Converts source text into a stream of tokens for the parser. The language
is small: six keywords, identifiers, unsigned decimal numbers and a handful
of single-character operators plus `<=`.

Whitespace and `//` line comments are skipped. Every token records the
line and column it started on. Any character outside the language
(including a lone `<` or `/`) is a LexerError.
"""

from __future__ import annotations
import enum
from dataclasses import dataclass
from typing import Dict, List, Optional


# ──────────────────────────────────────────────
# Token types
# ──────────────────────────────────────────────

class TokenType(enum.Enum):
    # Literals / names
    NUMBER = "NUMBER"
    IDENT = "IDENT"

    # Keywords
    KW_LET = "let"
    KW_IF = "if"
    KW_GOTO = "goto"
    KW_OUT = "out"
    KW_IN = "in"
    KW_HALT = "halt"

    # Operators
    PLUS = "+"
    MINUS = "-"
    LE = "<="
    ASSIGN = "="

    # Punctuation
    COLON = ":"
    SEMI = ";"
    LPAREN = "("
    RPAREN = ")"
    LBRACKET = "["
    RBRACKET = "]"

    # Special
    EOF = "EOF"


# ──────────────────────────────────────────────
# Token data class
# ──────────────────────────────────────────────

@dataclass(frozen=True)
class Token:
    type: TokenType
    text: str
    line: int
    col: int

    @property
    def value(self) -> int:
        """Numeric value of a NUMBER token."""
        return int(self.text)

    def __repr__(self):
        return f"Token({self.type.name}, {self.text!r}, L{self.line}:{self.col})"


KEYWORDS: Dict[str, TokenType] = {
    "let": TokenType.KW_LET,
    "if": TokenType.KW_IF,
    "goto": TokenType.KW_GOTO,
    "out": TokenType.KW_OUT,
    "in": TokenType.KW_IN,
    "halt": TokenType.KW_HALT,
}

DIGITS = "0123456789"


def _is_ident_start(ch: str) -> bool:
    return ch.isascii() and (ch.isalpha() or ch == "_")


def _is_ident_char(ch: str) -> bool:
    return ch.isascii() and (ch.isalnum() or ch == "_")


SINGLE_CHAR_OPS: Dict[str, TokenType] = {
    "+": TokenType.PLUS,
    "-": TokenType.MINUS,
    "=": TokenType.ASSIGN,
    ":": TokenType.COLON,
    ";": TokenType.SEMI,
    "(": TokenType.LPAREN,
    ")": TokenType.RPAREN,
    "[": TokenType.LBRACKET,
    "]": TokenType.RBRACKET,
}


# ──────────────────────────────────────────────
# Lexer
# ──────────────────────────────────────────────

class LexerError(Exception):
    def __init__(self, message: str, line: int, col: int):
        self.line = line
        self.col = col
        super().__init__(f"Lexer error at L{line}:{col}: {message}")


class Lexer:
    """Produces Tokens on demand, with one token of lookahead."""

    def __init__(self, source: str):
        self.source = source
        self.pos = 0
        self.line = 1
        self.col = 1
        self._lookahead: Optional[Token] = None

    def _peek(self, offset: int = 0) -> str:
        i = self.pos + offset
        return self.source[i] if i < len(self.source) else "\0"

    def _advance(self) -> str:
        ch = self.source[self.pos]
        self.pos += 1
        if ch == "\n":
            self.line += 1
            self.col = 1
        else:
            self.col += 1
        return ch

    def _skip_trivia(self):
        """Skip whitespace and // comments."""
        while self.pos < len(self.source):
            ch = self._peek()
            if ch in " \t\r\n":
                self._advance()
            elif ch == "/" and self._peek(1) == "/":
                while self.pos < len(self.source) and self._peek() != "\n":
                    self._advance()
            else:
                break

    def _read_while(self, pred) -> str:
        start = self.pos
        while self.pos < len(self.source) and pred(self.source[self.pos]):
            self._advance()
        return self.source[start:self.pos]

    def _scan(self) -> Token:
        self._skip_trivia()
        line, col = self.line, self.col

        if self.pos >= len(self.source):
            return Token(TokenType.EOF, "", line, col)

        ch = self._peek()

        if ch in DIGITS:
            text = self._read_while(lambda c: c in DIGITS)
            return Token(TokenType.NUMBER, text, line, col)

        if _is_ident_start(ch):
            text = self._read_while(_is_ident_char)
            ttype = KEYWORDS.get(text, TokenType.IDENT)
            return Token(ttype, text, line, col)

        if ch == "<":
            if self._peek(1) == "=":
                self._advance()
                self._advance()
                return Token(TokenType.LE, "<=", line, col)
            raise LexerError("Unexpected character '<' (only '<=' is supported)", line, col)

        if ch in SINGLE_CHAR_OPS:
            self._advance()
            return Token(SINGLE_CHAR_OPS[ch], ch, line, col)

        raise LexerError(f"Unexpected character: {ch!r}", line, col)

    # ── Public API ────────────────────────────

    def next_token(self) -> Token:
        """Consume and return the next token (EOF repeats at end of input)."""
        if self._lookahead is not None:
            tok, self._lookahead = self._lookahead, None
            return tok
        return self._scan()

    def peek_token(self) -> Token:
        """Return the next token without consuming it."""
        if self._lookahead is None:
            self._lookahead = self._scan()
        return self._lookahead

    def tokenize(self) -> List[Token]:
        """Tokenize the remaining source and return a list ending in EOF."""
        tokens: List[Token] = []
        while True:
            tok = self.next_token()
            tokens.append(tok)
            if tok.type == TokenType.EOF:
                return tokens
