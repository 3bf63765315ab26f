from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Union

DEFAULT_VERSION = "1.0"
DEFAULT_BPM = 120
DEFAULT_BEATS_PER_BAR = 4
DEFAULT_MAX_REPEAT = 1000

ParamValue = Union[int, float, bool, str]


@dataclass(frozen=True)
class Performance:
    """A performance direction, e.g. ``(whispered)``."""

    text: str
    line: int = 0


@dataclass(frozen=True)
class Lyric:
    """A sung line of text."""

    text: str
    line: int = 0


@dataclass(frozen=True)
class Cue:
    """A production trigger such as ``<SFX thunder duration=2s>``.

    Timing parameters are already normalized to beats and stored under
    ``<key>_beats`` (``duration_beats``, ``start_beats``...). Positional tokens
    that are not ``key=value`` pairs are kept in *args*.
    """

    name: str
    category: str | None = None
    params: Mapping[str, ParamValue] = field(default_factory=dict)
    args: tuple[str, ...] = ()
    line: int = 0

    def __post_init__(self):
        # Read-only view so the parsed tree cannot be edited through a cue
        if not isinstance(self.params, MappingProxyType):
            object.__setattr__(self, "params", MappingProxyType(dict(self.params)))


Item = Union[Performance, Lyric, Cue]


@dataclass(frozen=True)
class Section:
    """A labelled section of a song (verse, chorus, bridge, etc.)."""

    id: str  # slug of the label, unique within the song
    label: str
    items: tuple[Item, ...] = ()
    line: int = 0


@dataclass(frozen=True)
class TempoSegment:
    """Tempo in effect from *start_beat* until the next segment starts."""

    start_beat: float
    bpm: float


@dataclass(frozen=True)
class Song:
    """Parsed song tree. Immutable once built by the parser."""

    title: str | None = None
    bpm: int | float = DEFAULT_BPM
    beats_per_bar: int = DEFAULT_BEATS_PER_BAR
    key: str | None = None
    version: str = DEFAULT_VERSION
    time_signature: str | None = None
    instruments: tuple[str, ...] = ()
    tempo_changes: tuple[TempoSegment, ...] = ()
    sections: tuple[Section, ...] = ()


@dataclass(frozen=True)
class Event:
    """A flattened, time-stamped instruction for downstream renderers."""

    time_beats: float
    time_seconds: float
    type: str  # "section", "performance", "lyric" or "cue"
    payload: Mapping[str, Any] = field(default_factory=dict)
