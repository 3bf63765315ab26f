"""Canonical IR serialization.

The IR is a plain ``dict`` whose field order is fixed, so serializing the same
song twice always produces byte-identical JSON::

    {
      "mmsl_version": "1.0",
      "title": "...",
      "bpm": 120,
      "beatsPerBar": 4,
      "key": null,
      "timeSignature": null,
      "instruments": [],
      "tempoMap": [{"startBeat": 0, "bpm": 120}],
      "sections": [{"id": "chorus", "label": "Chorus", "items": [...]}]
    }

Section ids
-----------

An id is :func:`slugify` of the label. When two sections of one song slug to
the same id, the first keeps the bare slug and each later one gets the next
free numeric suffix: ``chorus``, ``chorus-2``, ``chorus-3``. A suffix already
taken by another label (a literal ``[Chorus 2]``) is skipped.
"""

import json
import re

from .models import Cue, Event, Lyric, Performance, Song
from .tempo import song_segments


def slugify(label: str) -> str:
    """Convert a section label to a lowercase hyphenated id."""
    text = label.lower()
    text = re.sub(r"[^\w\s-]", "", text)  # drop punctuation
    text = re.sub(r"[\s_]+", "-", text)  # spaces/underscores -> hyphens
    text = re.sub(r"-{2,}", "-", text)  # collapse multiple hyphens
    return text.strip("-") or "section"


class SectionIds:
    """Hands out unique section ids in source order for one song."""

    def __init__(self):
        self._used: set[str] = set()

    def allocate(self, label: str) -> str:
        base = slugify(label)
        candidate = base
        n = 2
        while candidate in self._used:
            candidate = f"{base}-{n}"
            n += 1
        self._used.add(candidate)
        return candidate


def item_to_dict(item) -> dict:
    match item:
        case Performance(text=text):
            return {"type": "performance", "text": text}
        case Lyric(text=text):
            return {"type": "lyric", "text": text}
        case Cue():
            return {
                "type": "cue",
                "name": item.name,
                "category": item.category,
                "params": dict(item.params),
                "args": list(item.args),
            }
    raise TypeError(f"not an item: {item!r}")


def song_to_ir(song: Song) -> dict:
    """Return the canonical IR for *song*."""
    return {
        "mmsl_version": song.version,
        "title": song.title,
        "bpm": song.bpm,
        "beatsPerBar": song.beats_per_bar,
        "key": song.key,
        "timeSignature": song.time_signature,
        "instruments": list(song.instruments),
        "tempoMap": [{"startBeat": s.start_beat, "bpm": s.bpm} for s in song_segments(song)],
        "sections": [
            {
                "id": section.id,
                "label": section.label,
                "items": [item_to_dict(item) for item in section.items],
            }
            for section in song.sections
        ],
    }


def dumps_ir(ir: dict) -> str:
    """Serialize an IR (or event list) to JSON text ending with a newline.

    Raises ValueError for infinite or NaN numbers, which JSON cannot hold.
    """
    return json.dumps(ir, indent=2, ensure_ascii=False, allow_nan=False) + "\n"


def event_to_dict(event: Event, fps: float | None = None) -> dict:
    data = {
        "timeBeats": event.time_beats,
        "timeSeconds": event.time_seconds,
        "type": event.type,
        "payload": dict(event.payload),
    }
    if fps is not None:
        data["frame"] = seconds_to_frame(event.time_seconds, fps)
    return data


def events_to_list(events, fps: float | None = None) -> list[dict]:
    return [event_to_dict(e, fps) for e in events]


def seconds_to_frame(seconds: float, fps: float) -> int:
    """Nearest video frame for *seconds*, halves rounding up."""
    return int(seconds * fps + 0.5)
