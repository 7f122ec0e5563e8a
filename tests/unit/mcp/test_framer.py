"""Unit tests for the ndjson line framer."""

import pytest

from mcphost.mcp.framer import LineFramer


@pytest.fixture
def framer() -> LineFramer:
    return LineFramer()


class TestLineFramer:
    """Tests for LineFramer.feed()."""

    def test_single_complete_line(self, framer):
        assert framer.feed(b'{"id":1}\n') == ['{"id":1}']
        assert framer.pending == ""

    def test_partial_line_is_held_back(self, framer):
        assert framer.feed(b'{"id":') == []
        assert framer.pending == '{"id":'
        assert framer.feed(b"1}\n") == ['{"id":1}']

    def test_multiple_lines_in_one_chunk_keep_order(self, framer):
        lines = framer.feed(b'{"id":1}\n{"id":2}\n{"id":3}\n')
        assert lines == ['{"id":1}', '{"id":2}', '{"id":3}']

    def test_trailing_fragment_retained(self, framer):
        assert framer.feed(b'{"id":1}\n{"id"') == ['{"id":1}']
        assert framer.pending == '{"id"'
        assert framer.feed(b":2}\n") == ['{"id":2}']

    def test_empty_lines_skipped(self, framer):
        assert framer.feed(b'\n\n{"id":1}\n  \n\r\n') == ['{"id":1}']

    def test_crlf_line_endings_stripped(self, framer):
        assert framer.feed(b'{"id":1}\r\n') == ['{"id":1}']

    def test_empty_chunk(self, framer):
        assert framer.feed(b"") == []

    def test_newline_only_chunk_completes_buffered_line(self, framer):
        framer.feed(b'{"id":1}')
        assert framer.feed(b"\n") == ['{"id":1}']

    def test_multibyte_character_split_across_chunks(self, framer):
        data = '{"text":"héllo ✓"}\n'.encode()
        split = data.index("✓".encode()) + 1  # inside the 3-byte sequence
        assert framer.feed(data[:split]) == []
        assert framer.feed(data[split:]) == ['{"text":"héllo ✓"}']

    def test_accepts_text_chunks(self, framer):
        assert framer.feed('{"a":1}\n{"b"') == ['{"a":1}']
        assert framer.feed(":2}\n") == ['{"b":2}']

    def test_reset_drops_partial_line(self, framer):
        framer.feed(b'{"id":1')
        framer.reset()
        assert framer.pending == ""
        assert framer.feed(b'{"id":2}\n') == ['{"id":2}']

    def test_invalid_utf8_replaced_not_raised(self, framer):
        lines = framer.feed(b'{"x":"\xff"}\n')
        assert len(lines) == 1
        assert "�" in lines[0]
