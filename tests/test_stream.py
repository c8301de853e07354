from __future__ import annotations

from quill.stream import collect_stream_text, iter_stream_text, parse_stream_line, plain_text


class TestParseStreamLine:
    def test_text_line(self) -> None:
        assert parse_stream_line('0:"Hello"') == "Hello"
        assert parse_stream_line('  0:" world"\r') == " world"

    def test_non_text_lines(self) -> None:
        assert parse_stream_line('d:{"finishReason":"stop"}') is None
        assert parse_stream_line("") is None

    def test_malformed_payloads(self) -> None:
        assert parse_stream_line("0:not-json") is None
        assert parse_stream_line("0:123") is None


class TestIterStreamText:
    def test_lines_split_across_chunks(self) -> None:
        chunks = [b'0:"Hel', b'lo"\n0:" wor', b'ld"\nd:{"finishReason":"stop"}\n']
        assert list(iter_stream_text(chunks)) == ["Hello", " world"]

    def test_multibyte_character_split_across_chunks(self) -> None:
        data = '0:"你好"\n'.encode("utf-8")
        assert collect_stream_text([data[:4], data[4:]]) == "你好"

    def test_trailing_line_without_newline(self) -> None:
        assert collect_stream_text(['0:"a"\n', '0:"b"']) == "ab"

    def test_empty_stream(self) -> None:
        assert collect_stream_text([]) == ""


class TestPlainText:
    def test_decodes_stream_transcript(self) -> None:
        assert plain_text('0:"Hello"\n0:" world"\nd:{"finishReason":"stop"}\n') == "Hello world"

    def test_plain_text_passes_through(self) -> None:
        assert plain_text("0: not a stream, just a list item") == "0: not a stream, just a list item"
        assert plain_text("Add a FAQ section.") == "Add a FAQ section."
