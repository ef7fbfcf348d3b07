"""Map feed part-of-speech tags onto dictionary query keys."""

from __future__ import annotations

# Feed part of speech → tag suffix used by the dictionary.
POS_SUFFIXES = {
    "verb": ":v",
    "v": ":v",
    "noun": ":n",
    "n": ":n",
    "name": ":n:name",
    "num": ":n:num",
    "pro": ":n:pro",
    "adv": ":adv",
    "conj": ":conj",
    "ques": ":ques",
    "excl": ":excl",
}


def build_query_key(headword: str, part_of_speech: str) -> str:
    """Append the dictionary tags for `part_of_speech` to `headword`.

    Unknown tags add nothing, so the lookup falls back to the bare word.

    >>> build_query_key("Qapla'", "excl")
    "Qapla':excl"
    """
    return headword + POS_SUFFIXES.get(part_of_speech, "")
