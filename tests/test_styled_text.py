"""StyledText: markup conversion and Telegram HTML rendering."""

from __future__ import annotations

import pytest

from kwotd.notifier.styled_text import Span, Style, StyledText


def test_plain_text() -> None:
    styled = StyledText.from_markup("ghoS")
    assert styled.text == "ghoS"
    assert styled.spans == []


def test_empty_markup() -> None:
    assert StyledText.from_markup("").text == ""


def test_tags_become_spans() -> None:
    styled = StyledText.from_markup("<i>v.</i> fly")
    assert styled.text == "v. fly"
    assert styled.spans == [Span(0, 2, Style.ITALIC)]


def test_nested_tags_close_inner_first() -> None:
    styled = StyledText.from_markup("Qo'noS <small>(<i>name</i>)</small>")
    assert styled.text == "Qo'noS (name)"
    assert styled.spans == [Span(8, 12, Style.ITALIC), Span(7, 13, Style.SMALL)]


def test_line_breaks_and_whitespace() -> None:
    styled = StyledText.from_markup("one  \n two<br/><br/><b>three</b>")
    assert styled.text == "one two\n\nthree"
    assert styled.spans == [Span(9, 14, Style.BOLD)]


def test_entities_are_decoded() -> None:
    assert StyledText.from_markup("a &amp; b").text == "a & b"


def test_add_span_rejects_out_of_range() -> None:
    styled = StyledText("abc")
    with pytest.raises(ValueError):
        styled.add_span(1, 4, Style.BOLD)


def test_to_html_escapes_and_keeps_telegram_styles() -> None:
    styled = StyledText("a<b & c")
    styled.add_span(0, 1, Style.BOLD)
    styled.add_span(4, 7, Style.SERIF)
    assert styled.to_html() == "<b>a</b>&lt;b &amp; c"


def test_to_html_overlapping_spans_stay_well_nested() -> None:
    styled = StyledText("abcdef")
    styled.add_span(0, 4, Style.BOLD)
    styled.add_span(2, 6, Style.ITALIC)
    assert styled.to_html() == "<b>ab</b><b><i>cd</i></b><i>ef</i>"


def test_to_html_custom_tags() -> None:
    styled = StyledText("Hol")
    styled.style_all(Style.SERIF)
    assert styled.to_html({Style.SERIF: "code"}) == "<code>Hol</code>"
