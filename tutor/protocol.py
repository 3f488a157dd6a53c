"""Parser for the line-oriented quiz micro-format the tutor model is prompted to emit.

    SORU: <stem>
    A) <opt> B) <opt> C) <opt> D) <opt>
    CEVAP: <label>
    YAKIN: <label>

Batch responses separate items with ``---``. Nothing here raises: missing markers
become absent fields, and text that is not quiz-shaped comes back as a plain message.
Callers only ever see ``parse_single`` / ``parse_batch`` / ``render_item``, so the
marker set can change without touching them.
"""

from __future__ import annotations

import logging
import re

from tutor.schemas import LABELS, Message, Presentation, QuizOption, Speaker

logger = logging.getLogger(__name__)

STEM_MARKER = "SORU:"
ANSWER_MARKER = "CEVAP:"
CLOSE_MARKER = "YAKIN:"
BATCH_DELIMITER = "---"
MISSING_STEM = "Soru yüklenemedi."

_OPTION_PATTERNS = {
    label: re.compile(rf"{label}\)\s*(.*?)(?=\s*[B-D]\)|\s*CEVAP:|\s*YAKIN:|\Z)", re.DOTALL)
    for label in LABELS
}
_ANSWER_PATTERN = re.compile(r"CEVAP:\s*([A-D])")
_CLOSE_PATTERN = re.compile(r"YAKIN:\s*([A-D])")


def _is_quiz_shaped(text: str) -> bool:
    return STEM_MARKER in text and "A)" in text


def _extract_stem(text: str) -> str:
    _, _, after = text.partition(STEM_MARKER)
    stem, _, _ = after.partition("A)")
    return stem.strip()


def _extract_options(text: str) -> list[QuizOption]:
    options: list[QuizOption] = []
    for label, pattern in _OPTION_PATTERNS.items():
        match = pattern.search(text)
        if match is None:
            continue
        option_text = match.group(1).strip()
        if option_text:
            options.append(QuizOption(label=label, text=option_text))
    return options


def _extract_label(pattern: re.Pattern[str], text: str, present: set[str]) -> str | None:
    match = pattern.search(text)
    if match is None:
        return None
    label = match.group(1)
    # A label pointing at a dropped option would make the item ungradable anyway.
    return label if label in present else None


def _parse_quiz(text: str, *, stem_fallback: str | None) -> Message | None:
    options = _extract_options(text)
    if not options:
        return None
    present = {o.label for o in options}
    stem = _extract_stem(text) or (stem_fallback or "")
    return Message(
        speaker=Speaker.tutor,
        body=stem,
        presentation=Presentation.quiz,
        options=options,
        correctLabel=_extract_label(_ANSWER_PATTERN, text, present),
        closeLabel=_extract_label(_CLOSE_PATTERN, text, present),
    )


def parse_single(raw_text: str) -> Message:
    """Turn one model reply into a quiz item when it is quiz-shaped, else a plain message."""
    text = raw_text or ""
    if _is_quiz_shaped(text):
        item = _parse_quiz(text, stem_fallback=None)
        if item is not None:
            return item
        logger.info("Quiz-shaped reply had no usable options; keeping it as plain text")
    return Message(speaker=Speaker.tutor, body=text)


def parse_batch(raw_text: str) -> list[Message]:
    """Split a batch reply on ``---`` and keep only the segments that parse into usable items."""
    items: list[Message] = []
    segments = (raw_text or "").split(BATCH_DELIMITER)
    for segment in segments:
        if not _is_quiz_shaped(segment):
            continue
        item = _parse_quiz(segment, stem_fallback=MISSING_STEM)
        if item is not None:
            items.append(item)
    dropped = len(segments) - len(items)
    if dropped:
        logger.debug("Dropped %d of %d batch segments", dropped, len(segments))
    return items


def render_item(item: Message) -> str:
    """Write a quiz item back out in the micro-format."""
    lines = [f"{STEM_MARKER} {item.body}", " ".join(o.display for o in item.options)]
    if item.correctLabel:
        lines.append(f"{ANSWER_MARKER} {item.correctLabel}")
    if item.closeLabel:
        lines.append(f"{CLOSE_MARKER} {item.closeLabel}")
    return "\n".join(lines)
