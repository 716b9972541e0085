"""
Lexer tests for MiniDSL.

Tests cover:
  - Keywords, identifiers, numbers, operators
  - Line/column tracking
  - Comment and whitespace skipping
  - Lookahead (peek_token / next_token)
  - Rejected characters
"""
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest
from minidsl.lexer import Lexer, LexerError, Token, TokenType


def _types(source: str) -> list:
    return [t.type for t in Lexer(source).tokenize()]


# ─── Token kinds ─────────────────────

class TestTokenKinds:
    def test_let_statement(self):
        assert _types("let x = 5;") == [
            TokenType.KW_LET, TokenType.IDENT, TokenType.ASSIGN,
            TokenType.NUMBER, TokenType.SEMI, TokenType.EOF,
        ]

    def test_all_keywords(self):
        assert _types("let if goto out in halt") == [
            TokenType.KW_LET, TokenType.KW_IF, TokenType.KW_GOTO,
            TokenType.KW_OUT, TokenType.KW_IN, TokenType.KW_HALT, TokenType.EOF,
        ]

    def test_keyword_prefix_is_identifier(self):
        toks = Lexer("letter inx halted").tokenize()
        assert [t.type for t in toks[:3]] == [TokenType.IDENT] * 3
        assert toks[0].text == "letter"

    def test_operators(self):
        assert _types("+ - <= = : ; ( ) [ ]") == [
            TokenType.PLUS, TokenType.MINUS, TokenType.LE, TokenType.ASSIGN,
            TokenType.COLON, TokenType.SEMI, TokenType.LPAREN, TokenType.RPAREN,
            TokenType.LBRACKET, TokenType.RBRACKET, TokenType.EOF,
        ]

    def test_identifier_with_underscore_and_digits(self):
        tok = Lexer("_tmp_2").next_token()
        assert tok.type == TokenType.IDENT
        assert tok.text == "_tmp_2"

    def test_number_value(self):
        tok = Lexer("255").next_token()
        assert tok.type == TokenType.NUMBER
        assert tok.value == 255

    def test_adjacent_tokens_without_spaces(self):
        toks = Lexer("arr[i]=x+1;").tokenize()
        assert [t.text for t in toks[:-1]] == ["arr", "[", "i", "]", "=", "x", "+", "1", ";"]

    def test_empty_source(self):
        assert _types("") == [TokenType.EOF]


# ─── Positions and trivia ─────────────────────

class TestPositions:
    def test_line_and_column(self):
        toks = Lexer("let x\n  = 5;").tokenize()
        assign = toks[2]
        assert assign.type == TokenType.ASSIGN
        assert (assign.line, assign.col) == (2, 3)

    def test_comment_is_skipped(self):
        toks = Lexer("out x; // print it\nhalt;").tokenize()
        assert [t.type for t in toks] == [
            TokenType.KW_OUT, TokenType.IDENT, TokenType.SEMI,
            TokenType.KW_HALT, TokenType.SEMI, TokenType.EOF,
        ]
        assert toks[3].line == 2

    def test_comment_at_end_of_file(self):
        assert _types("halt; // done") == [TokenType.KW_HALT, TokenType.SEMI, TokenType.EOF]

    def test_texts_rebuild_source_without_trivia(self):
        src = "let x = 1 + 2; // c\nout x;\n"
        joined = "".join(t.text for t in Lexer(src).tokenize())
        assert joined == "letx=1+2;outx;"

    def test_token_repr(self):
        tok = Lexer("let x = 5;").tokenize()[3]
        assert repr(tok) == "Token(NUMBER, '5', L1:9)"

    def test_tokens_are_immutable(self):
        tok = Lexer("x").next_token()
        with pytest.raises(Exception):
            tok.text = "y"


# ─── Lookahead ─────────────────────

class TestLookahead:
    def test_peek_does_not_consume(self):
        lx = Lexer("out 5;")
        assert lx.peek_token().type == TokenType.KW_OUT
        assert lx.peek_token().type == TokenType.KW_OUT
        assert lx.next_token().type == TokenType.KW_OUT
        assert lx.next_token().type == TokenType.NUMBER

    def test_eof_repeats(self):
        lx = Lexer("halt")
        lx.next_token()
        assert lx.next_token().type == TokenType.EOF
        assert lx.next_token().type == TokenType.EOF


# ─── Errors ─────────────────────

class TestLexerErrors:
    def test_lone_less_than(self):
        with pytest.raises(LexerError) as exc:
            Lexer("if a < b goto x;").tokenize()
        assert exc.value.line == 1
        assert exc.value.col == 6

    def test_lone_slash(self):
        with pytest.raises(LexerError):
            Lexer("x = 4 / 2;").tokenize()

    def test_unknown_character_reports_location(self):
        with pytest.raises(LexerError, match=r"L2:3"):
            Lexer("halt;\nx @ 1;").tokenize()

    def test_star_is_rejected(self):
        with pytest.raises(LexerError, match="Unexpected character"):
            Lexer("x = 2 * 3;").tokenize()

    @pytest.mark.parametrize("ch", ["²", "٣", "½"])
    def test_non_ascii_digit_is_rejected(self, ch):
        with pytest.raises(LexerError) as exc:
            Lexer(f"let x = {ch};").tokenize()
        assert (exc.value.line, exc.value.col) == (1, 9)

    def test_non_ascii_letter_is_rejected(self):
        with pytest.raises(LexerError, match="L1:5"):
            Lexer("let é = 1;").tokenize()

    def test_non_ascii_letter_ends_identifier(self):
        with pytest.raises(LexerError, match="L1:6"):
            Lexer("let xé = 1;").tokenize()

    def test_number_stops_at_non_ascii_digit(self):
        with pytest.raises(LexerError, match="L1:10"):
            Lexer("let x = 1²;").tokenize()
