"""Text normalization shared by every extraction path."""

from __future__ import annotations

from collections.abc import Iterable
import dataclasses
import re

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")
_HORIZONTAL_WS = re.compile(r"[ \t\f\v\u00a0]+")
_SPACES_AROUND_NEWLINE = re.compile(r" *\n *")
_EXCESS_NEWLINES = re.compile(r"\n{3,}")
_SPACE_BEFORE_PUNCT = re.compile(r" +([.,;:!?])")
_TRAILING_WS_BEFORE_NEWLINE = re.compile(r"[ \t]+\n")
_ALPHANUMERIC = re.compile(r"[^\W_]", re.UNICODE)


def normalize_whitespace(text: str) -> str:
    """Normalize raw engine output.

    Collapses runs of horizontal whitespace, strips spaces before
    punctuation and around line breaks, drops control characters and keeps
    at most one blank line between blocks (the page separator).
    """
    if not text:
        return ""
    cleaned = text.replace("\r\n", "\n").replace("\r", "\n")
    cleaned = _CONTROL_CHARS.sub("", cleaned)
    cleaned = _HORIZONTAL_WS.sub(" ", cleaned)
    cleaned = _SPACES_AROUND_NEWLINE.sub("\n", cleaned)
    cleaned = _EXCESS_NEWLINES.sub("\n\n", cleaned)
    cleaned = _SPACE_BEFORE_PUNCT.sub(r"\1", cleaned)
    return cleaned.strip()


def normalize_study_text(text: str) -> str:
    """Final normalization applied to every dispatched result."""
    if not text:
        return ""
    cleaned = text.replace("\r\n", "\n")
    cleaned = _TRAILING_WS_BEFORE_NEWLINE.sub("\n", cleaned)
    cleaned = _EXCESS_NEWLINES.sub("\n\n", cleaned)
    return cleaned.strip()


def merge_warnings(*groups: Iterable[str] | None) -> tuple[str, ...] | None:
    """Union warning groups, dropping blanks and duplicates in first-seen order.

    Returns None when nothing remains.
    """
    merged: dict[str, None] = {}
    for group in groups:
        for warning in group or ():
            if warning:
                merged.setdefault(warning, None)
    return tuple(merged) or None


def append_study_text(current: str, incoming: str) -> str:
    """Append newly extracted text to an existing note block."""
    existing = (current or "").strip()
    nxt = (incoming or "").strip()
    if not nxt:
        return existing
    if not existing:
        return nxt
    return f"{existing}\n\n{nxt}"


@dataclasses.dataclass(frozen=True, slots=True)
class TextStatistics:
    """Simple counts describing a block of extracted text."""

    characters: int
    characters_no_spaces: int
    words: int
    lines: int
    paragraphs: int
    average_words_per_line: float
    readability_score: float


def text_statistics(text: str) -> TextStatistics:
    """Compute counts and a crude readability score (share of alphanumerics)."""
    characters = len(text)
    stripped = text.strip()
    words = len(stripped.split()) if stripped else 0
    lines = len(text.split("\n"))
    paragraphs = len(re.split(r"\n\s*\n", text))
    alphanumeric = len(_ALPHANUMERIC.findall(text))
    readability = (alphanumeric / characters) * 100 if characters else 0.0
    return TextStatistics(
        characters=characters,
        characters_no_spaces=len(re.sub(r"\s", "", text)),
        words=words,
        lines=lines,
        paragraphs=paragraphs,
        average_words_per_line=round(words / lines, 2) if lines else 0.0,
        readability_score=round(readability, 2),
    )
