"""Tempo map: beat positions to absolute seconds.

A tempo map is an ordered list of :class:`~mmsl.models.TempoSegment`, each
holding from its ``start_beat`` until the next one begins. ``seconds_at``
integrates piecewise::

    seconds_at(b) = offset[i] + (b - start[i]) * 60 / bpm[i]

where *i* is the segment containing *b* (found by binary search) and
``offset[i]`` is the cumulative duration of every earlier segment. The offset
table is rebuilt lazily after the segment list changes and cached otherwise.
"""

import bisect
import logging
import math
from collections.abc import Iterable

from .exceptions import TempoMapConflict
from .models import Song, TempoSegment

logger = logging.getLogger(__name__)


def song_segments(song: Song) -> list[TempoSegment]:
    """Segments in effect for *song*: its declared tempo changes, with the
    header bpm filling beat 0 when no declared segment starts there."""
    segments = list(song.tempo_changes)
    if not any(s.start_beat == 0 for s in segments):
        segments.insert(0, TempoSegment(start_beat=0, bpm=song.bpm))
    return segments


def check_segments(segments: Iterable[TempoSegment]) -> None:
    """Raise TempoMapConflict unless *segments* form a valid tempo map."""
    previous = None
    for index, segment in enumerate(segments):
        if not segment.bpm > 0 or not math.isfinite(segment.bpm):
            raise TempoMapConflict(f"bpm must be a finite number > 0, got {segment.bpm}", segment.start_beat)
        if not math.isfinite(segment.start_beat):
            raise TempoMapConflict(f"start beat must be finite, got {segment.start_beat}", segment.start_beat)
        if index == 0 and segment.start_beat != 0:
            raise TempoMapConflict("first segment must start at beat 0", segment.start_beat)
        if previous is not None:
            if segment.start_beat == previous.start_beat:
                raise TempoMapConflict(
                    f"two segments start at beat {segment.start_beat}", segment.start_beat
                )
            if segment.start_beat < previous.start_beat:
                raise TempoMapConflict(
                    f"segment at beat {segment.start_beat} is out of order", segment.start_beat
                )
        previous = segment


class TempoMap:
    """Beat/seconds conversion over a piecewise-constant tempo."""

    def __init__(self, segments: Iterable[TempoSegment]):
        segments = list(segments)
        if not segments:
            raise TempoMapConflict("tempo map has no segments")
        check_segments(segments)
        self._segments = segments
        self._starts = [s.start_beat for s in segments]
        self._offsets: list[float] | None = None

    @classmethod
    def from_song(cls, song: Song) -> "TempoMap":
        return cls(song_segments(song))

    @property
    def segments(self) -> tuple[TempoSegment, ...]:
        return tuple(self._segments)

    def add_segment(self, start_beat: float, bpm: float) -> None:
        """Insert a tempo change. Raises TempoMapConflict if one already starts there."""
        if not bpm > 0 or not math.isfinite(bpm):
            raise TempoMapConflict(f"bpm must be a finite number > 0, got {bpm}", start_beat)
        if start_beat < 0:
            raise TempoMapConflict("segments cannot start before beat 0", start_beat)
        index = bisect.bisect_left(self._starts, start_beat)
        if index < len(self._starts) and self._starts[index] == start_beat:
            raise TempoMapConflict(f"two segments start at beat {start_beat}", start_beat)
        self._starts.insert(index, start_beat)
        self._segments.insert(index, TempoSegment(start_beat=start_beat, bpm=bpm))
        self._offsets = None

    def segment_index(self, beat: float) -> int:
        """Index of the segment containing *beat*."""
        if beat < 0:
            raise ValueError(f"beat must be >= 0, got {beat}")
        return bisect.bisect_right(self._starts, beat) - 1

    def segment_at(self, beat: float) -> TempoSegment:
        return self._segments[self.segment_index(beat)]

    def bpm_at(self, beat: float) -> float:
        return self.segment_at(beat).bpm

    def seconds_at(self, beat: float) -> float:
        """Absolute time in seconds of *beat*."""
        index = self.segment_index(beat)
        segment = self._segments[index]
        return self._offset_table()[index] + (beat - segment.start_beat) * 60 / segment.bpm

    def beat_at(self, seconds: float) -> float:
        """Inverse of :meth:`seconds_at`."""
        if seconds < 0:
            raise ValueError(f"seconds must be >= 0, got {seconds}")
        offsets = self._offset_table()
        index = bisect.bisect_right(offsets, seconds) - 1
        segment = self._segments[index]
        return segment.start_beat + (seconds - offsets[index]) * segment.bpm / 60

    def _offset_table(self) -> list[float]:
        if self._offsets is None:
            offsets = [0.0]
            for previous, segment in zip(self._segments, self._segments[1:]):
                offsets.append(offsets[-1] + (segment.start_beat - previous.start_beat) * 60 / previous.bpm)
            self._offsets = offsets
            logger.debug("Rebuilt tempo offsets for %d segments", len(offsets))
        return self._offsets
