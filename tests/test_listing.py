"""
Listing / disassembler tests.
"""
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from minidsl import compile_source
from minidsl.listing import disassemble, format_listing, hex_dump
from minidsl.parser import parse_source


class TestHexDump:
    def test_format(self):
        assert hex_dump(bytes([0x02, 0x03, 0x01, 0xFF])) == "02 03 01 FF"

    def test_empty(self):
        assert hex_dump(b"") == ""


class TestDisassemble:
    def test_rows(self):
        rows = disassemble(compile_source("halt;"))
        assert rows == [
            (0x2000, bytes([0x02, 0x03, 0x01]), "LOADI  R3, #1"),
            (0x2003, bytes([0x00]), "HALT"),
        ]

    def test_every_layout(self):
        code = bytes([
            0x01, 0x00, 0x80, 0x00,     # LOAD   R0, $8000
            0x03, 0x80, 0x01, 0x00,     # STORE  $8001, R0
            0x04, 0xFF, 0x00, 0x05,     # STOREI $FF00, #5
            0x06, 0x01, 0x00,           # SUB    R1, R0
            0x08, 0x02, 0x20, 0x00,     # JZ     R2, $2000
            0x09, 0x00,                 # IN     R0
            0x0A, 0x0B,                 # LOADX, STOREX
            0x0C, 0x01,                 # TRAP   #$01
        ])
        texts = [text for _, _, text in disassemble(code)]
        assert texts[0] == "LOAD   R0, $8000"
        assert texts[1] == "STORE  $8001, R0"
        assert texts[2].startswith("STOREI $FF00, #5")
        assert texts[2].endswith("; OUT")
        assert texts[3] == "SUB    R1, R0"
        assert texts[4] == "JZ     R2, $2000"
        assert texts[5] == "IN     R0"
        assert texts[6:8] == ["LOADX", "STOREX"]
        assert texts[8] == "TRAP   #$01"

    def test_unknown_byte(self):
        rows = disassemble(bytes([0xEE, 0x00]))
        assert rows[0] == (0x2000, bytes([0xEE]), "DB     $EE")
        assert rows[1][2] == "HALT"

    def test_truncated_instruction(self):
        rows = disassemble(bytes([0x01, 0x00]))
        assert rows == [(0x2000, bytes([0x01, 0x00]), "DB     $01, $00")]

    def test_symbols_annotate_addresses(self):
        rows = disassemble(bytes([0x01, 0x00, 0x80, 0x00]), symbols={"x": 0x8000})
        assert rows[0][2].endswith("; x")

    def test_origin(self):
        rows = disassemble(bytes([0x00, 0x00]), origin=0x3000)
        assert [addr for addr, _, _ in rows] == [0x3000, 0x3001]


class TestFormatListing:
    def test_header_ir_and_body(self):
        src = "let x = 1; out x; halt;"
        text = format_listing(compile_source(src), 0x2000, parse_source(src))
        lines = text.splitlines()
        assert lines[0] == "; MiniDSL listing  origin $2000  size 24 bytes"
        assert "; IR:" in lines
        assert any("out x" in line for line in lines)
        assert lines[-1].startswith("$2017  00")
        assert lines[-1].endswith("HALT")

    def test_without_ir(self):
        text = format_listing(bytes([0x00]))
        assert "; IR:" not in text
        assert "$2000  00" in text
