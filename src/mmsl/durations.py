"""Conversion of literal durations into beat counts.

Supported units (case-insensitive):

    ms              milliseconds      (ms / 1000) * bpm / 60
    s, (none)       seconds           seconds * bpm / 60
    beats, beat, b  beats             unchanged
    bar, bars       bars              n * beats_per_bar

A bare number is read as seconds. Every function here is pure: identical
inputs give bit-for-bit identical outputs.
"""

import re

DURATION_RE = re.compile(r"^(\d+(?:\.\d+)?)(ms|s|beats|beat|b|bars|bar)?$", re.IGNORECASE)

_BEAT_UNITS = {"beats", "beat", "b"}
_BAR_UNITS = {"bar", "bars"}


def to_beats(value: float, unit: str | None, bpm: float, beats_per_bar: int) -> float:
    """Convert *value* expressed in *unit* to beats at *bpm*.

    Raises ``ValueError`` for a non-positive bpm or an unknown unit.
    """
    if not bpm > 0:
        raise ValueError(f"bpm must be > 0, got {bpm!r}")
    unit = (unit or "s").lower()
    if unit == "ms":
        return (value / 1000) * bpm / 60
    if unit == "s":
        return value * bpm / 60
    if unit in _BEAT_UNITS:
        return float(value)
    if unit in _BAR_UNITS:
        return float(value * beats_per_bar)
    raise ValueError(f"unknown duration unit: {unit!r}")


def match_duration(text: str) -> tuple[float, str | None] | None:
    """Return ``(number, unit)`` if *text* is a duration literal, else ``None``."""
    m = DURATION_RE.match(text.strip())
    if not m:
        return None
    unit = m.group(2).lower() if m.group(2) else None
    return float(m.group(1)), unit


def parse_duration(text: str, bpm: float, beats_per_bar: int) -> float:
    """Convert a literal such as ``"500ms"`` or ``"2bars"`` to beats.

    Raises ``ValueError`` when *text* is not a duration literal.
    """
    matched = match_duration(text)
    if matched is None:
        raise ValueError(f"not a duration literal: {text!r}")
    value, unit = matched
    return to_beats(value, unit, bpm, beats_per_bar)


def beats_to_seconds(beats: float, bpm: float) -> float:
    if not bpm > 0:
        raise ValueError(f"bpm must be > 0, got {bpm!r}")
    return beats * 60 / bpm
