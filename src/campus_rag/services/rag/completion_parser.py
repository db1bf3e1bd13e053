"""
Parser for raw generation output.

Grammar of a completion::

    completion := (text | label | marker)*
    label      := "FOLLOW-UP SUGGESTION" ["S"] ":"   (case-insensitive, hyphen optional)
    marker     := "<" (text | marker)* ">"

Each top-level marker's stripped content is one follow-up question; nested
brackets stay inside it. Labels and markers are removed from the answer. A
stray ``>`` outside any marker is ordinary text. An unclosed ``<`` is a
ParseError, which ``parse_completion`` degrades to "no follow-ups".
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
import re

from campus_rag.errors import ParseError

logger = logging.getLogger(__name__)

FOLLOW_UP_LABEL_PATTERN = re.compile(r"follow[\s-]?up\s+suggestions?\s*:", re.IGNORECASE)
_TRAILING_SPACE_PATTERN = re.compile(r"[ \t]+$", re.MULTILINE)
_BLANK_LINES_PATTERN = re.compile(r"\n{3,}")


@dataclass(frozen=True)
class ParsedCompletion:
    answer: str
    follow_ups: tuple[str, ...]


def split_markers(text: str) -> tuple[str, list[str]]:
    """Return ``(text_without_markers, marker_contents)``; raise ParseError on an unclosed marker."""
    remaining: list[str] = []
    markers: list[str] = []
    current: list[str] = []
    depth = 0
    opened_at = -1

    for position, char in enumerate(text):
        if char == "<":
            if depth == 0:
                opened_at = position
                current = []
            else:
                current.append(char)
            depth += 1
        elif char == ">" and depth > 0:
            depth -= 1
            if depth == 0:
                markers.append("".join(current))
            else:
                current.append(char)
        elif depth > 0:
            current.append(char)
        else:
            remaining.append(char)

    if depth > 0:
        raise ParseError(f"unclosed follow-up marker at offset {opened_at}")

    return "".join(remaining), markers


def parse_completion(raw: str) -> ParsedCompletion:
    text = raw.strip()
    if "<" not in text and not FOLLOW_UP_LABEL_PATTERN.search(text):
        return ParsedCompletion(answer=text, follow_ups=())

    try:
        without_markers, markers = split_markers(text)
    except ParseError as exc:
        logger.warning("[completion_parser] %s; returning answer without follow-ups", exc)
        return ParsedCompletion(answer=text, follow_ups=())

    follow_ups = tuple(marker.strip() for marker in markers if marker.strip())
    answer = FOLLOW_UP_LABEL_PATTERN.sub("", without_markers)
    answer = _TRAILING_SPACE_PATTERN.sub("", answer)
    answer = _BLANK_LINES_PATTERN.sub("\n\n", answer).strip()
    return ParsedCompletion(answer=answer, follow_ups=follow_ups)
