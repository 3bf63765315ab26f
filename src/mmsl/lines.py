"""Line classification for M-MSL text.

Every input line falls into exactly one :class:`LineType`, tested in this
order:

  1. HEADER              ``@BPM 120``              (accepted before the first section only)
  2. SECTION             ``[Chorus]``
  3. PERFORMANCE_LYRIC   ``(softly) We are the fire``
  4. PERFORMANCE         ``(full band)``
  5. CUE                 ``<SFX thunder duration=2s>``
  6. LYRIC               anything else

A line that opens with a marker character (``@ [ ( <``) but does not form a
well-formed marker is still a LYRIC; it carries a SyntaxWarning so the
author can fix it. Classification never raises.
"""

import re
from dataclasses import dataclass
from enum import Enum, auto

from .diagnostics import Category, Diagnostic, warning

# ---------------------------------------------------------------------------
# Regexes
# ---------------------------------------------------------------------------

# @Key value  (key is case-insensitive, value runs to end of line)
HEADER_RE = re.compile(r"^@([A-Za-z][\w-]*)\s+(\S.*)$")

# [Section Label]  (no nested brackets)
SECTION_RE = re.compile(r"^\[([^\[\]]+)\]$")

# (performance) lyric text  (the lyric may not start another group)
PERFORMANCE_LYRIC_RE = re.compile(r"^\(([^()]+)\)\s*([^(\s].*)$")

# (performance)
PERFORMANCE_RE = re.compile(r"^\(([^()]+)\)$")

# <cue body>
CUE_RE = re.compile(r"^<([^<>]+)>$")

_MARKER_CHARS = "@[(<"


# ---------------------------------------------------------------------------
# LineType
# ---------------------------------------------------------------------------


class LineType(Enum):
    BLANK = auto()  # empty or whitespace only
    HEADER = auto()  # @Key value
    SECTION = auto()  # [Label]
    PERFORMANCE_LYRIC = auto()  # (direction) lyric
    PERFORMANCE = auto()  # (direction)
    CUE = auto()  # <body>
    LYRIC = auto()  # everything else


@dataclass(frozen=True)
class ClassifiedLine:
    kind: LineType
    line_no: int
    text: str  # the stripped line
    key: str | None = None  # HEADER, lower-cased
    value: str | None = None  # HEADER
    label: str | None = None  # SECTION
    performance: str | None = None  # PERFORMANCE, PERFORMANCE_LYRIC
    lyric: str | None = None  # PERFORMANCE_LYRIC, LYRIC
    body: str | None = None  # CUE
    warning: Diagnostic | None = None


# ---------------------------------------------------------------------------
# Line classification
# ---------------------------------------------------------------------------


def split_lines(text: str) -> list[str]:
    """Split on ``\\n`` only, dropping one trailing ``\\r`` per line.

    Unlike ``str.splitlines`` this leaves form feeds, ``\\x85`` and
    ``\\u2028`` inside the line they appear in, so line numbers match what
    an editor shows.
    """
    if not text:
        return []
    lines = text.split("\n")
    if lines[-1] == "":
        lines.pop()
    return [line[:-1] if line.endswith("\r") else line for line in lines]


def classify_line(line: str, line_no: int) -> ClassifiedLine:
    """Classify a single line of M-MSL text.

    Args:
        line:    A single line of raw text (trailing newline optional).
        line_no: 1-based line number, carried into any warning.

    Returns:
        A :class:`ClassifiedLine` with the fields relevant to its kind.
    """
    stripped = line.strip()
    if not stripped:
        return ClassifiedLine(LineType.BLANK, line_no, stripped)

    m = HEADER_RE.match(stripped)
    if m:
        return ClassifiedLine(
            LineType.HEADER, line_no, stripped, key=m.group(1).lower(), value=m.group(2).strip()
        )

    m = SECTION_RE.match(stripped)
    if m and m.group(1).strip():
        return ClassifiedLine(LineType.SECTION, line_no, stripped, label=_collapse(m.group(1)))

    m = PERFORMANCE_LYRIC_RE.match(stripped)
    if m and m.group(1).strip():
        return ClassifiedLine(
            LineType.PERFORMANCE_LYRIC,
            line_no,
            stripped,
            performance=_collapse(m.group(1)),
            lyric=m.group(2).strip(),
        )

    m = PERFORMANCE_RE.match(stripped)
    if m and m.group(1).strip():
        return ClassifiedLine(LineType.PERFORMANCE, line_no, stripped, performance=_collapse(m.group(1)))

    m = CUE_RE.match(stripped)
    if m and m.group(1).strip():
        return ClassifiedLine(LineType.CUE, line_no, stripped, body=m.group(1).strip())

    if stripped[0] in _MARKER_CHARS:
        return ClassifiedLine(
            LineType.LYRIC,
            line_no,
            stripped,
            lyric=stripped,
            warning=warning(
                Category.SYNTAX_WARNING,
                f"Malformed {_marker_name(stripped[0])} marker, treated as lyric: {stripped!r}",
                line=line_no,
            ),
        )

    return ClassifiedLine(LineType.LYRIC, line_no, stripped, lyric=stripped)


def _collapse(text: str) -> str:
    """Strip and collapse internal whitespace runs to single spaces."""
    return " ".join(text.split())


def _marker_name(char: str) -> str:
    return {"@": "header", "[": "section", "(": "performance", "<": "cue"}[char]
