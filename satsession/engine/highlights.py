"""
Per-question text highlighting over an lxml render tree.

Question text is rendered from its source markup into a small HTML tree.
Highlights are stored as anchors (character offsets into the tree's text
content) together with the highlighted text, never as references into
the tree, so they survive the tree being rebuilt from scratch.
"""
from __future__ import annotations

import enum
import logging
import re
import uuid
from dataclasses import dataclass
from typing import Callable

from lxml import etree

from satsession import config
from satsession.errors import HighlightAnchorError, InvalidActionError

log = logging.getLogger(__name__)

MARK_TAG = "mark"
MARK_CLASS = "custom-highlight"
REMOVE_ACTION = "remove-highlight"
BLOCK_TAGS = {"div", "p"}

_PARAGRAPH_SPLIT = re.compile(r"\n\s*\n")
_INLINE_MARKUP = re.compile(
    r"\*\*(?P<strong>.+?)\*\*|(?<!\*)\*(?P<em>[^*]+?)\*(?!\*)|~(?P<u>.+?)~"
)
_WHITESPACE = re.compile(r"\s+")
_PUNCTUATION_ONLY = re.compile(r"[^\w\s]*")


@dataclass
class Highlight:
    """A user highlight over one question's text."""

    id: str
    question_key: str
    text: str
    color: str
    start: int
    end: int

    @property
    def color_value(self) -> str:
        return config.HIGHLIGHT_COLORS.get(self.color, "")

    def to_dict(self) -> dict[str, object]:
        return {
            "id": self.id,
            "questionKey": self.question_key,
            "text": self.text,
            "color": self.color,
            "colorValue": self.color_value,
            "anchor": {"start": self.start, "end": self.end},
        }

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> "Highlight":
        anchor = data.get("anchor")
        if not isinstance(anchor, dict):
            anchor = {}
        return cls(
            id=str(data["id"]),
            question_key=str(data.get("questionKey", "")),
            text=str(data.get("text", "")),
            color=str(data.get("color", "")).lower(),
            start=int(anchor.get("start", -1)),
            end=int(anchor.get("end", -1)),
        )


# ---------------------------------------------------------------------------
# Render tree helpers
# ---------------------------------------------------------------------------

def _append_inline(parent: etree._Element, text: str) -> None:
    """Append markup-bearing text to ``parent`` as text and format elements."""
    last = None
    cursor = 0

    def add_text(value: str) -> None:
        if not value:
            return
        if last is None:
            parent.text = (parent.text or "") + value
        else:
            last.tail = (last.tail or "") + value

    for match in _INLINE_MARKUP.finditer(text):
        add_text(text[cursor:match.start()])
        tag = match.lastgroup
        element = etree.SubElement(parent, tag)
        element.text = match.group(tag)
        last = element
        cursor = match.end()
    add_text(text[cursor:])


def render_markup(source: str) -> etree._Element:
    """Build the pristine render tree for a question's source text."""
    root = etree.Element("div", {"class": "question-text"})
    for paragraph in _PARAGRAPH_SPLIT.split(source or ""):
        if not paragraph.strip():
            continue
        p = etree.SubElement(root, "p")
        _append_inline(p, paragraph.strip())
    return root


def text_of(element: etree._Element) -> str:
    return "".join(element.itertext())


def _items(element: etree._Element) -> list:
    """Mixed content of ``element`` as a list of strings and child elements.

    Child tails are detached so each child measures only its own text.
    """
    items: list = []
    if element.text:
        items.append(element.text)
    for child in element:
        tail = child.tail
        child.tail = None
        items.append(child)
        if tail:
            items.append(tail)
    return items


def _set_items(element: etree._Element, items: list) -> None:
    """Replace the mixed content of ``element``; adjacent strings merge."""
    for child in list(element):
        element.remove(child)
    element.text = None
    last = None
    for item in items:
        if isinstance(item, str):
            if last is None:
                element.text = (element.text or "") + item
            else:
                last.tail = (last.tail or "") + item
            continue
        item.tail = None
        element.append(item)
        last = item


def _length(item) -> int:
    return len(item) if isinstance(item, str) else len(text_of(item))


def _wrap_range(
    element: etree._Element,
    base: int,
    start: int,
    end: int,
    make_mark: Callable[[], etree._Element],
) -> None:
    """Wrap text offsets [start, end) below ``element`` in mark elements.

    Contiguous covered siblings share one mark; formatting elements that
    are only partly covered are descended into so they are never split.
    """
    rebuilt: list = []
    pending: list = []

    def flush() -> None:
        if pending:
            mark = make_mark()
            _set_items(mark, list(pending))
            rebuilt.append(mark)
            pending.clear()

    pos = base
    for item in _items(element):
        length = _length(item)
        lo, hi = pos, pos + length
        is_block = not isinstance(item, str) and item.tag in BLOCK_TAGS
        if hi <= start or lo >= end:
            flush()
            rebuilt.append(item)
        elif start <= lo and hi <= end and not is_block:
            pending.append(item)
        elif isinstance(item, str):
            cut_lo = max(start - lo, 0)
            cut_hi = min(end - lo, length)
            if cut_lo:
                flush()
                rebuilt.append(item[:cut_lo])
            pending.append(item[cut_lo:cut_hi])
            if cut_hi < length:
                flush()
                rebuilt.append(item[cut_hi:])
        else:
            flush()
            _wrap_range(item, lo, start, end, make_mark)
            rebuilt.append(item)
        pos = hi
    flush()
    _set_items(element, rebuilt)


class HighlightSurface:
    """The rendered text of one question and the marks applied to it."""

    def __init__(self, source: str):
        self.source = source
        self.root = render_markup(source)

    @property
    def text(self) -> str:
        return text_of(self.root)

    def to_html(self) -> str:
        return etree.tostring(self.root, encoding="unicode", method="html")

    def marks(self, highlight_id: str | None = None) -> list[etree._Element]:
        found = [
            mark
            for mark in self.root.iter(MARK_TAG)
            if mark.get("class") == MARK_CLASS
        ]
        if highlight_id is None:
            return found
        return [mark for mark in found if mark.get("data-highlight-id") == highlight_id]

    def locate(self, highlight: Highlight) -> tuple[int, int]:
        """Find the span of ``highlight`` in the current text.

        The recorded anchor wins when it still covers the recorded text;
        otherwise the text must occur exactly once.
        """
        text = self.text
        if (
            0 <= highlight.start < highlight.end <= len(text)
            and text[highlight.start:highlight.end] == highlight.text
        ):
            return highlight.start, highlight.end
        if not highlight.text:
            raise HighlightAnchorError(highlight.id, "empty highlight text")
        matches = [m.start() for m in re.finditer(re.escape(highlight.text), text)]
        if len(matches) == 1:
            return matches[0], matches[0] + len(highlight.text)
        if not matches:
            raise HighlightAnchorError(highlight.id, "text not found")
        raise HighlightAnchorError(
            highlight.id, f"ambiguous match ({len(matches)} occurrences)"
        )

    def wrap(self, highlight: Highlight, start: int, end: int) -> None:
        def make_mark() -> etree._Element:
            return etree.Element(
                MARK_TAG,
                {
                    "class": MARK_CLASS,
                    "data-highlight-id": highlight.id,
                    "data-color": highlight.color,
                    "data-action": REMOVE_ACTION,
                    "style": f"background-color: {highlight.color_value}",
                },
            )

        _wrap_range(self.root, 0, start, end, make_mark)

    def apply(self, highlight: Highlight) -> None:
        start, end = self.locate(highlight)
        self.wrap(highlight, start, end)

    def unwrap(self, highlight_id: str) -> bool:
        """Reinsert the contents of every mark of ``highlight_id`` in place."""
        marks = self.marks(highlight_id)
        for mark in marks:
            parent = mark.getparent()
            items: list = []
            for item in _items(parent):
                if item is mark:
                    items.extend(_items(mark))
                else:
                    items.append(item)
            _set_items(parent, items)
        return bool(marks)


# ---------------------------------------------------------------------------
# Selection state machine
# ---------------------------------------------------------------------------

class HighlightState(str, enum.Enum):
    IDLE = "idle"
    SELECTING = "selecting"
    COLOR_PENDING = "color-pending"


@dataclass
class PendingSelection:
    start: int
    end: int
    text: str


def is_valid_selection(
    text: str,
    min_length: int = config.HIGHLIGHT_MIN_LENGTH,
    max_length: int = config.HIGHLIGHT_MAX_LENGTH,
) -> bool:
    """Reject empty, too short, too long, or punctuation-only selections."""
    if not isinstance(text, str):
        return False
    clean = _WHITESPACE.sub(" ", text).strip()
    if not min_length <= len(clean) <= max_length:
        return False
    return not _PUNCTUATION_ONLY.fullmatch(clean)


class HighlightController:
    """Highlight lifecycle for the currently displayed question.

    ``highlights`` is the session's per-question mapping and is mutated in
    place; the render tree is rebuilt whenever a question is displayed.
    """

    def __init__(self, highlights: dict[str, list[Highlight]]):
        self.highlights = highlights
        self.mode_enabled = False
        self.state = HighlightState.IDLE
        self.pending: PendingSelection | None = None
        self.question_key: str | None = None
        self.surface: HighlightSurface | None = None
        self.skipped: list[str] = []

    @property
    def current(self) -> list[Highlight]:
        if self.question_key is None:
            return []
        return self.highlights.get(self.question_key, [])

    def display(self, question_key: str, source: str) -> HighlightSurface:
        """Rebuild the question's text and reapply its highlights in order."""
        self.cancel()
        self.question_key = question_key
        self.surface = HighlightSurface(source)
        self.skipped = []
        for highlight in self.highlights.get(question_key, []):
            try:
                self.surface.apply(highlight)
            except HighlightAnchorError as exc:
                log.warning("%s (question %s)", exc, question_key)
                self.skipped.append(highlight.id)
        return self.surface

    def toggle_mode(self) -> bool:
        self.mode_enabled = not self.mode_enabled
        if not self.mode_enabled:
            self.cancel()
        return self.mode_enabled

    def _selection(self, start: int, end: int) -> PendingSelection | None:
        if self.surface is None:
            return None
        text = self.surface.text
        if not 0 <= start < end <= len(text):
            return None
        raw = text[start:end]
        if not is_valid_selection(raw):
            return None
        # Anchor the trimmed span so the stored text matches the anchor
        lead = len(raw) - len(raw.lstrip())
        trail = len(raw) - len(raw.rstrip())
        return PendingSelection(start + lead, end - trail, raw.strip())

    def begin_selection(self, start: int, end: int) -> bool:
        """idle -> selecting; invalid selections return to idle."""
        if not self.mode_enabled:
            return False
        selection = self._selection(start, end)
        if selection is None:
            self.cancel()
            return False
        self.pending = selection
        self.state = HighlightState.SELECTING
        return True

    def release_selection(self, start: int | None = None, end: int | None = None) -> bool:
        """selecting -> color-pending, capturing the final selection."""
        if self.state is not HighlightState.SELECTING or self.pending is None:
            return False
        if start is not None and end is not None:
            selection = self._selection(start, end)
            if selection is None:
                self.cancel()
                return False
            self.pending = selection
        self.state = HighlightState.COLOR_PENDING
        return True

    def commit(self, color: str) -> Highlight:
        """color-pending -> idle, creating and wrapping the highlight."""
        if self.state is not HighlightState.COLOR_PENDING or self.pending is None:
            raise InvalidActionError("No selection is waiting for a color")
        color = (color or "").lower()
        if color not in config.HIGHLIGHT_COLORS:
            raise InvalidActionError(f"Unknown highlight color: {color}")
        highlight = Highlight(
            id=f"highlight-{uuid.uuid4().hex[:12]}",
            question_key=self.question_key,
            text=self.pending.text,
            color=color,
            start=self.pending.start,
            end=self.pending.end,
        )
        self.surface.wrap(highlight, highlight.start, highlight.end)
        self.highlights.setdefault(self.question_key, []).append(highlight)
        log.debug("Highlight %s added to question %s", highlight.id, self.question_key)
        self.pending = None
        self.state = HighlightState.IDLE
        return highlight

    def cancel(self) -> None:
        self.pending = None
        self.state = HighlightState.IDLE

    def remove(self, highlight_id: str) -> bool:
        if self.question_key is None:
            return False
        existing = self.highlights.get(self.question_key, [])
        remaining = [h for h in existing if h.id != highlight_id]
        if len(remaining) == len(existing):
            return False
        if self.surface is not None:
            self.surface.unwrap(highlight_id)
        if remaining:
            self.highlights[self.question_key] = remaining
        else:
            self.highlights.pop(self.question_key, None)
        return True

    def clear_all(self) -> None:
        if self.question_key is None:
            return
        self.highlights.pop(self.question_key, None)
        if self.surface is not None:
            self.surface = HighlightSurface(self.surface.source)
        self.cancel()

    def render(self) -> str:
        if self.surface is None:
            return ""
        return self.surface.to_html()
