"""Entry markup rendering and synthesized entries."""

from __future__ import annotations

import pytest

from kwotd.database.models import (
    ReferenceEntry,
    format_definition,
    format_entry_name,
    split_part_of_speech,
)


@pytest.mark.parametrize(
    ("pos", "expected"),
    [
        ("v", ("v", [])),
        ("n:name", ("n", ["name"])),
        ("n:pro,inhps", ("n", ["pro", "inhps"])),
        ("", ("", [])),
    ],
)
def test_split_part_of_speech(pos: str, expected: tuple) -> None:
    assert split_part_of_speech(pos) == expected


def test_definition_gets_part_of_speech_label() -> None:
    assert format_definition("fly", "v") == "<i>v.</i> fly"
    assert format_definition("success!", "excl") == "<i>excl.</i> success!"


def test_noun_subtype_label() -> None:
    assert format_definition("I, me", "n:pro") == "<i>pro.</i> I, me"
    assert format_definition("one", "n:num") == "<i>num.</i> one"


def test_names_and_sentences_have_no_label() -> None:
    assert format_definition("Kronos", "n:name") == "Kronos"
    assert format_definition("Today is a good day to die.", "sen") == (
        "Today is a good day to die."
    )


def test_unknown_part_of_speech_has_no_label() -> None:
    assert format_definition("something", "") == "something"


def test_links_render_as_bold_words() -> None:
    assert format_definition("homeworld of the {tlhIngan:n}", "n") == (
        "<i>n.</i> homeworld of the <b>tlhIngan</b>"
    )
    assert format_definition("see {Qapla'}", "excl") == "<i>excl.</i> see <b>Qapla'</b>"


def test_name_entries_are_marked() -> None:
    assert format_entry_name("Qo'noS", "n:name") == "Qo'noS <small>(<i>name</i>)</small>"
    assert format_entry_name("ghoS", "v") == "ghoS"


def test_synthesize_splits_query_key_at_first_colon() -> None:
    entry = ReferenceEntry.synthesize("Qo'noS:n:name", "Kronos")

    assert entry.id is None
    assert entry.headword == "Qo'noS"
    assert entry.part_of_speech == "n:name"
    assert entry.formatted_name == "Qo'noS <small>(<i>name</i>)</small>"
    assert entry.formatted_definition == "Kronos"


def test_synthesize_without_tags() -> None:
    entry = ReferenceEntry.synthesize("mu'", "word")
    assert entry.headword == "mu'"
    assert entry.part_of_speech == ""
    assert entry.formatted_definition == "word"


def test_from_db_row() -> None:
    row = {"id": 5, "entry_name": "ghoS", "part_of_speech": "v", "definition": "go"}
    entry = ReferenceEntry.from_db_row(row)
    assert entry == ReferenceEntry(5, "ghoS", "v", "go", "ghoS", "<i>v.</i> go")
    assert entry.to_db_dict() == row


@pytest.mark.parametrize(
    ("pos", "expected"),
    [
        ("v:archaic", "Daq <small>(<i>archaic</i>)</small>"),
        ("n:reg", "Daq <small>(<i>regional</i>)</small>"),
        ("v:slang,reg", "Daq <small>(<i>regional</i>, <i>slang</i>)</small>"),
        ("n:name,archaic", "Daq <small>(<i>archaic</i>, <i>name</i>)</small>"),
        ("v:hyp", "<sup><small>?</small></sup>Daq"),
        (
            "v:extcan,slang",
            "<sup><small>?</small></sup>Daq <small>(<i>slang</i>)</small>",
        ),
    ],
)
def test_usage_attributes_in_entry_name(pos: str, expected: str) -> None:
    assert format_entry_name("Daq", pos) == expected


def test_uncertain_entry_title_is_superscript() -> None:
    from kwotd.notifier.formatters import format_title
    from kwotd.notifier.styled_text import Style

    title = format_title(ReferenceEntry.build(3, "Daq", "v:hyp", "be located"))

    assert title.text == "?Daq"
    assert Style.SUPERSCRIPT in {span.style for span in title.spans}


def test_synthesized_feed_text_is_not_markup() -> None:
    from kwotd.notifier.styled_text import StyledText

    entry = ReferenceEntry.synthesize("Daq:v", "be x<y or a&b")

    assert entry.definition == "be x<y or a&b"
    assert StyledText.from_markup(entry.formatted_definition).text == "v. be x<y or a&b"
