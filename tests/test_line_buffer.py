from __future__ import annotations

import allure

from wine_bottles.tasks.lines import LineBuffer

pytestmark = [
    allure.epic("Task Engine"),
    allure.feature("Line Splitting"),
]


def test_feed_returns_complete_lines_and_keeps_partial_tail() -> None:
    buffer = LineBuffer()

    assert buffer.feed(b"A\nB\nC") == ["A", "B"]
    assert buffer
    assert buffer.flush() == "C"
    assert not buffer


def test_partial_lines_join_across_chunks() -> None:
    buffer = LineBuffer()

    assert buffer.feed(b"hel") == []
    assert buffer.feed(b"lo\nwor") == ["hello"]
    assert buffer.feed(b"ld\n") == ["world"]
    assert buffer.flush() is None


def test_empty_lines_are_preserved() -> None:
    buffer = LineBuffer()

    assert buffer.feed(b"first\n\n\nlast\n") == ["first", "", "", "last"]


def test_empty_chunk_is_ignored() -> None:
    buffer = LineBuffer()
    buffer.feed(b"pending")

    assert buffer.feed(b"") == []
    assert buffer.flush() == "pending"


def test_multibyte_character_split_between_chunks_decodes_intact() -> None:
    encoded = "Привет\n".encode()
    buffer = LineBuffer()

    assert buffer.feed(encoded[:3]) == []
    assert buffer.feed(encoded[3:]) == ["Привет"]


def test_invalid_bytes_are_replaced() -> None:
    buffer = LineBuffer()

    assert buffer.feed(b"bad\xfe\n") == ["bad\ufffd"]


def test_carriage_return_is_kept_in_line_text() -> None:
    buffer = LineBuffer()

    assert buffer.feed(b"dos\r\n") == ["dos\r"]


def test_long_unterminated_line_accumulates_until_newline() -> None:
    buffer = LineBuffer()

    for _ in range(1000):
        assert buffer.feed(b"x" * 64) == []
    assert buffer.feed(b"y\nnext") == ["x" * 64_000 + "y"]
    assert buffer.feed(b" part\nlast\n") == ["next part", "last"]
    assert not buffer
