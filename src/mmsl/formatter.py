"""Canonical M-MSL formatter.

Renders a :class:`~mmsl.models.Song` back to M-MSL text.

Item → line mapping
-------------------

+--------------------------+------------------------------------------+
| Item                     | Line                                     |
+==========================+==========================================+
| ``Performance``          | ``(text)``                               |
+--------------------------+------------------------------------------+
| ``Lyric``                | ``text``                                 |
+--------------------------+------------------------------------------+
| ``Cue``                  | ``<category name key=value ... args>``   |
+--------------------------+------------------------------------------+

Timing parameters are written back in beats (``duration=8beats``), so the
rendered text parses to the same Song at any tempo.

Usage::

    from mmsl.formatter import MmslFormatter
    text = MmslFormatter().render(song)
"""

from .cues import TIMING_KEYS, coerce_value
from .models import DEFAULT_VERSION, Cue, Lyric, Performance, Section, Song
from .tempo import song_segments

# stored key -> key written back (start_beats goes back out as "start")
_BEAT_KEYS = {stored: key for key, (stored, _) in reversed(TIMING_KEYS.items())}


class MmslFormatter:
    """Render a :class:`~mmsl.models.Song` to M-MSL text."""

    def render(self, song: Song) -> str:
        """Return M-MSL text for *song*.

        The returned string ends with a single newline and uses Unix line
        endings (``\\n``) throughout.
        """
        parts: list[str] = []

        # --- Header block ---
        if song.version != DEFAULT_VERSION:
            parts.append(f"@MMSLVersion {song.version}")
        if song.title:
            parts.append(f"@Title {song.title}")
        parts.append(f"@BPM {song.bpm}")
        parts.append(f"@BeatsPerBar {song.beats_per_bar}")
        if song.time_signature:
            parts.append(f"@TimeSignature {song.time_signature}")
        if song.key:
            parts.append(f"@Key {song.key}")
        if song.instruments:
            parts.append(f"@Instruments {', '.join(song.instruments)}")
        if song.tempo_changes:
            entries = ", ".join(f"{_number(s.start_beat)}:{_number(s.bpm)}" for s in song_segments(song))
            parts.append(f"@TempoMap {entries}")

        # --- Section blocks ---
        for section in song.sections:
            parts.append("")  # blank line before every section
            parts.extend(_render_section(section))

        return "\n".join(parts) + "\n"


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _render_section(section: Section) -> list[str]:
    lines = [f"[{section.label}]"]
    for item in section.items:
        match item:
            case Performance(text=text):
                lines.append(f"({text})")
            case Lyric(text=text):
                lines.append(text)
            case Cue():
                lines.append(_render_cue(item))
    return lines


def _render_cue(cue: Cue) -> str:
    tokens = []
    if cue.category:
        tokens.append(cue.category.upper())
    tokens.append(cue.name)
    for key, value in cue.params.items():
        if key in _BEAT_KEYS:
            tokens.append(f"{_BEAT_KEYS[key]}={_number(value)}beats")
        else:
            tokens.append(f"{key}={_value(value)}")
    tokens.extend(_quote(arg) for arg in cue.args)
    return "<" + " ".join(t for t in tokens if t) + ">"


def _value(value) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    return _quote(value)


def _quote(text: str) -> str:
    if not text or any(c.isspace() for c in text) or "=" in text or not isinstance(coerce_value(text), str):
        return f'"{text}"'
    return text


def _number(value) -> str:
    """Format a number without a trailing ``.0``."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)
