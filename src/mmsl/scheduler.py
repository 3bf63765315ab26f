"""Event scheduling: flatten a Song into a time-ordered Event list.

The scheduler walks sections and items in source order with a beat cursor:

* section, performance and lyric events fire at the cursor and never move it;
* a cue fires at the cursor, then the cursor advances by its
  ``duration_beats`` (times ``repeat``; each repetition is its own event);
* a cue with an explicit ``start_beats`` fires at that beat and leaves the
  cursor where it was;
* a ``repeat`` above *max_repeat* is not expanded: the cue fires once, as it
  does for any other invalid repeat.

Events are sorted by ``(time_beats, source order)``. The list is rebuilt on
every call; pass a different :class:`~mmsl.tempo.TempoMap` to re-time it.
"""

import logging
import math

from .ir import seconds_to_frame
from .models import DEFAULT_MAX_REPEAT, Cue, Event, Lyric, Performance, Song
from .tempo import TempoMap

logger = logging.getLogger(__name__)


def schedule(song: Song, tempo_map: TempoMap | None = None, max_repeat: int = DEFAULT_MAX_REPEAT) -> list[Event]:
    """Return the events of *song*, timed against *tempo_map*.

    Uses ``TempoMap.from_song(song)`` when no tempo map is given, which raises
    TempoMapConflict for an invalid declared tempo map.
    Cues repeating more than *max_repeat* times fire once.
    """
    if tempo_map is None:
        tempo_map = TempoMap.from_song(song)

    timeline: list[tuple[float, int, str, dict]] = []
    cursor = 0.0

    def emit(beat: float, kind: str, payload: dict) -> None:
        payload["order"] = len(timeline)
        timeline.append((beat, len(timeline), kind, payload))

    for section in song.sections:
        emit(cursor, "section", {"section_id": section.id, "label": section.label, "line": section.line})
        for item in section.items:
            base = {"section_id": section.id, "line": item.line}
            match item:
                case Performance(text=text):
                    emit(cursor, "performance", {**base, "text": text})
                case Lyric(text=text):
                    emit(cursor, "lyric", {**base, "text": text})
                case Cue():
                    cursor = _schedule_cue(item, cursor, base, emit, max_repeat)

    timeline.sort(key=lambda entry: (entry[0], entry[1]))
    events = [
        Event(time_beats=beat, time_seconds=tempo_map.seconds_at(beat), type=kind, payload=payload)
        for beat, _, kind, payload in timeline
    ]
    logger.debug("Scheduled %d events, final cursor at beat %s", len(events), cursor)
    return events


def _schedule_cue(cue: Cue, cursor: float, base: dict, emit, max_repeat: int) -> float:
    """Emit the events of one cue and return the new cursor position."""
    params = cue.params
    duration = _non_negative(params.get("duration_beats")) or 0.0
    repeat = params.get("repeat")
    if not isinstance(repeat, int) or isinstance(repeat, bool) or not 1 <= repeat <= max_repeat:
        repeat = 1

    start = _non_negative(params.get("start_beats"))
    explicit = start is not None
    if not explicit:
        start = cursor

    payload = {**base, "name": cue.name, "category": cue.category, "params": dict(params), "args": list(cue.args)}
    if duration > 0 and repeat > 1:
        for index in range(repeat):
            emit(start + index * duration, "cue", {**payload, "repeat_index": index})
    else:
        emit(start, "cue", payload)

    if explicit:
        return cursor
    return cursor + duration * repeat


def _non_negative(value) -> float | None:
    if isinstance(value, float) and math.isfinite(value) and value >= 0:
        return value
    if isinstance(value, int) and not isinstance(value, bool) and value >= 0:
        return float(value)
    return None


def beat_to_frame(beats: float, bpm: float, fps: float) -> int:
    """Video frame for a beat position at a constant *bpm*."""
    return seconds_to_frame(beats * 60 / bpm, fps)
