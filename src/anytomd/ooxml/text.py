"""Run, paragraph and hyperlink state shared by the OOXML converters."""

from __future__ import annotations

from ..markdown import wrap_emphasis
from ..models import ConversionResult, WarningCode

_OFF_VALUES = frozenset({"0", "false"})


def is_on(value: str | None) -> bool:
    """Toggle properties are on when present, unless ``val`` says otherwise."""

    return value is None or value.strip().lower() not in _OFF_VALUES


class ParagraphBuffer:
    """Accumulates the Markdown text of one paragraph.

    Run properties reset at every run start. Text lands in the hyperlink
    buffer while a hyperlink is open, otherwise in the paragraph itself.
    """

    def __init__(self) -> None:
        self.bold = False
        self.italic = False
        self._parts: list[str] = []
        self._plain: list[str] = []
        self._link_parts: list[str] | None = None
        self._link_url: str | None = None
        self._link_missing: str | None = None

    @property
    def in_hyperlink(self) -> bool:
        return self._link_parts is not None

    def _buffer(self) -> list[str]:
        return self._link_parts if self._link_parts is not None else self._parts

    def begin_run(self) -> None:
        self.bold = False
        self.italic = False

    def append_text(self, text: str) -> None:
        if not text:
            return
        self._plain.append(text)
        if self.bold or self.italic:
            text = wrap_emphasis(text, self.bold, self.italic)
        self._buffer().append(text)

    def append_markdown(self, markdown: str) -> None:
        self._buffer().append(markdown)

    def append_break(self) -> None:
        self._plain.append("\n")
        self._buffer().append("\n")

    def begin_hyperlink(self, url: str | None, missing_id: str | None = None) -> None:
        """Open a hyperlink; ``missing_id`` names a relationship that did not resolve."""

        self._link_parts = []
        self._link_url = url
        self._link_missing = missing_id

    def end_hyperlink(self, result: ConversionResult, location: str | None = None) -> None:
        if self._link_parts is None:
            return
        text = "".join(self._link_parts)
        self._link_parts = None
        if self._link_url:
            self._parts.append(f"[{text}]({self._link_url})")
        else:
            self._parts.append(text)
            if self._link_missing:
                result.warn(
                    WarningCode.SKIPPED_ELEMENT,
                    f"hyperlink target not found for relationship '{self._link_missing}'",
                    location or self._link_missing,
                )
        self._link_url = None
        self._link_missing = None

    def plain_text(self) -> str:
        """Text without Markdown decoration, used for titles."""

        return "".join(self._plain)

    def text(self) -> str:
        parts = list(self._parts)
        if self._link_parts is not None:
            parts.extend(self._link_parts)
        return "".join(parts)


__all__ = ["ParagraphBuffer", "is_on"]
