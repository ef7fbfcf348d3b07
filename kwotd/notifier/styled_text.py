"""KWOTD Notifier — Styled Text.

Plain text plus an ordered list of (range, style) annotations, kept
independent of any rendering surface. Dictionary markup is converted
with selectolax; `to_html()` renders the result for Telegram.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from selectolax.parser import HTMLParser, Node


class Style(str, Enum):
    BOLD = "bold"
    ITALIC = "italic"
    SERIF = "serif"
    SMALL = "small"
    SUPERSCRIPT = "superscript"


# Markup tag → style it applies.
_TAG_STYLES = {
    "b": Style.BOLD,
    "strong": Style.BOLD,
    "i": Style.ITALIC,
    "em": Style.ITALIC,
    "small": Style.SMALL,
    "sup": Style.SUPERSCRIPT,
}

# Style → Telegram HTML tag. Telegram has no typeface or size control,
# so SERIF, SMALL and SUPERSCRIPT render as plain text there.
TELEGRAM_TAGS = {
    Style.BOLD: "b",
    Style.ITALIC: "i",
}

_WHITESPACE = re.compile(r"[ \t\r\n\f]+")


@dataclass(frozen=True)
class Span:
    """A style applied to text[start:end]."""

    start: int
    end: int
    style: Style


def escape_html(text: str) -> str:
    """Escape the characters Telegram HTML treats specially."""
    return text.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


@dataclass
class StyledText:
    """Text with style spans, in the order they were applied.

    Attributes:
        text: The plain text.
        spans: Style annotations over `text`.
    """

    text: str = ""
    spans: list[Span] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.text)

    def add_span(self, start: int, end: int, style: Style) -> None:
        """Apply `style` to text[start:end].

        Raises:
            ValueError: If the range falls outside the text.
        """
        if not (0 <= start <= end <= len(self.text)):
            raise ValueError(f"Span {start}:{end} outside text of length {len(self.text)}")
        self.spans.append(Span(start, end, style))

    def style_all(self, style: Style) -> None:
        self.add_span(0, len(self.text), style)

    def spans_with(self, style: Style) -> list[Span]:
        return [s for s in self.spans if s.style == style]

    def substring(self, span: Span) -> str:
        return self.text[span.start:span.end]

    @classmethod
    def from_markup(cls, markup: str) -> "StyledText":
        """Convert simple HTML markup into styled text.

        Recognises b/strong, i/em, small and sup as styles and br as a
        line break. Other tags contribute their text only. Runs of
        whitespace collapse to a single space, as in HTML rendering.

        Args:
            markup: Markup such as "<i>v.</i> fly".

        Returns:
            The equivalent StyledText.
        """
        result = cls()
        body: Optional[Node] = HTMLParser(markup).body if markup else None
        if body is not None:
            parts: list[str] = []
            result._walk(body, parts)
            result.text = "".join(parts)
        return result

    def _walk(self, node: Node, parts: list[str]) -> None:
        for child in node.iter(include_text=True):
            tag = child.tag
            if tag == "-text":
                parts.append(_WHITESPACE.sub(" ", child.text(deep=False)))
            elif tag == "br":
                parts.append("\n")
            elif tag.startswith("_") or tag.startswith("-"):
                continue  # comments and other non-element nodes
            else:
                start = sum(len(p) for p in parts)
                self._walk(child, parts)
                style = _TAG_STYLES.get(tag)
                if style is not None:
                    end = sum(len(p) for p in parts)
                    self.spans.append(Span(start, end, style))

    def to_html(self, tags: Optional[dict[Style, str]] = None) -> str:
        """Render as HTML, re-opening tags per segment so nesting stays valid.

        Args:
            tags: Style → tag name mapping. Defaults to TELEGRAM_TAGS;
                styles without a tag are dropped.

        Returns:
            Escaped HTML string.
        """
        tags = TELEGRAM_TAGS if tags is None else tags
        spans = [s for s in self.spans if s.style in tags and s.start < s.end]
        bounds = sorted(
            {0, len(self.text)}
            | {s.start for s in spans}
            | {s.end for s in spans}
        )

        out: list[str] = []
        for start, end in zip(bounds, bounds[1:]):
            segment = escape_html(self.text[start:end])
            active: list[str] = []
            for s in spans:
                tag = tags[s.style]
                if s.start <= start and end <= s.end and tag not in active:
                    active.append(tag)
            opening = "".join(f"<{t}>" for t in active)
            closing = "".join(f"</{t}>" for t in reversed(active))
            out.append(f"{opening}{segment}{closing}")
        return "".join(out)
