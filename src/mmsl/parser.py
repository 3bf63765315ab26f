"""Grammar parser: classified lines to a :class:`~mmsl.models.Song` tree.

The parser is a two-state machine:

``BEFORE_SECTION``
    Header lines (``@Key value``) are accepted. The first repeated key keeps
    its first value. Any other content ends the header block.

``IN_SECTION``
    A ``[Label]`` line closes the current section and opens a new one. A
    section is only kept if it holds at least one item. Header lines are
    ignored with a warning.

Content that appears before any ``[Label]`` line opens an implicit leading
section labelled ``Intro``.

Recognised headers (case-insensitive)::

    @MMSLVersion 1.0     (alias @Version)
    @Title Song title
    @BPM 120
    @BeatsPerBar 4
    @TimeSignature 3/4   (numerator is the beats-per-bar when @BeatsPerBar is absent)
    @Key Am
    @Instruments guitar, drums
    @TempoMap 0:120, 16:90

Each call to :func:`parse` builds its own :class:`ParseContext`; nothing is
shared between calls.
"""

import logging
import math
import re
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from enum import Enum, auto

from .config import MmslConfig
from .cues import tokenize_cue
from .diagnostics import Category, Diagnostic, error, fatal, warning
from .ir import SectionIds
from .lines import ClassifiedLine, LineType, classify_line, split_lines
from .models import DEFAULT_VERSION, Cue, Item, Lyric, Performance, Section, Song, TempoSegment

logger = logging.getLogger(__name__)

IMPLICIT_SECTION_LABEL = "Intro"

_HEADER_ALIASES = {"version": "mmslversion"}
_KNOWN_HEADERS = frozenset(
    {"mmslversion", "title", "bpm", "beatsperbar", "timesignature", "key", "instruments", "tempomap"}
)

_NUMBER_RE = re.compile(r"^\d+(?:\.\d+)?$")
_TIME_SIGNATURE_RE = re.compile(r"^(\d+)\s*/\s*(\d+)$")
_TEMPO_ENTRY_RE = re.compile(r"^(\d+(?:\.\d+)?)\s*:\s*(\d+(?:\.\d+)?)$")

ProgressCallback = Callable[[int, int], None]


class State(Enum):
    BEFORE_SECTION = auto()
    IN_SECTION = auto()


@dataclass
class _OpenSection:
    label: str
    line: int
    items: list[Item] = field(default_factory=list)


@dataclass
class ParseContext:
    """Per-call parser state: header values, open section and diagnostics."""

    config: MmslConfig
    state: State = State.BEFORE_SECTION
    headers: dict[str, tuple[str, int]] = field(default_factory=dict)  # key -> (value, line)
    bpm: int | float = 0
    beats_per_bar: int = 0
    title: str | None = None
    key: str | None = None
    version: str = DEFAULT_VERSION
    time_signature: str | None = None
    instruments: tuple[str, ...] = ()
    tempo_changes: tuple[TempoSegment, ...] = ()
    current: _OpenSection | None = None
    sections: list[Section] = field(default_factory=list)
    section_ids: SectionIds = field(default_factory=SectionIds)
    diagnostics: list[Diagnostic] = field(default_factory=list)


@dataclass(frozen=True)
class ParseResult:
    song: Song
    diagnostics: tuple[Diagnostic, ...]


def parse(
    text: str,
    config: MmslConfig | None = None,
    on_progress: ProgressCallback | None = None,
    source: str | None = None,
) -> ParseResult:
    """Parse M-MSL *text* into a Song plus the diagnostics found on the way.

    Malformed markup never raises: it is kept as lyric text and reported.

    Args:
        text:        The whole document.
        config:      Tempo defaults and overrides; ``MmslConfig()`` if omitted.
        on_progress: Called as ``on_progress(line_no, total_lines)`` after each line.
        source:      Stamped on every diagnostic when given (a file name, say).
    """
    ctx = ParseContext(config=config or MmslConfig())
    lines = split_lines(text.lstrip("\ufeff"))
    total = len(lines)

    for line_no, raw in enumerate(lines, start=1):
        _feed(ctx, classify_line(raw, line_no))
        if on_progress is not None:
            on_progress(line_no, total)

    if ctx.state is State.BEFORE_SECTION:
        _resolve_headers(ctx)
    _close_section(ctx)

    song = Song(
        title=ctx.title,
        bpm=ctx.bpm,
        beats_per_bar=ctx.beats_per_bar,
        key=ctx.key,
        version=ctx.version,
        time_signature=ctx.time_signature,
        instruments=ctx.instruments,
        tempo_changes=ctx.tempo_changes,
        sections=tuple(ctx.sections),
    )
    logger.debug("Parsed %d lines into %d sections", total, len(song.sections))
    diagnostics = ctx.diagnostics
    if source is not None:
        diagnostics = [replace(d, source=source) for d in diagnostics]
    return ParseResult(song=song, diagnostics=tuple(diagnostics))


# ---------------------------------------------------------------------------
# State machine
# ---------------------------------------------------------------------------


def _feed(ctx: ParseContext, line: ClassifiedLine) -> None:
    if line.warning is not None:
        ctx.diagnostics.append(line.warning)

    if line.kind is LineType.BLANK:
        return

    if line.kind is LineType.HEADER:
        if ctx.state is State.BEFORE_SECTION:
            _store_header(ctx, line)
        else:
            ctx.diagnostics.append(
                warning(
                    Category.SYNTAX_WARNING,
                    f"Header @{line.key} after the first section is ignored",
                    line=line.line_no,
                    field=line.key,
                )
            )
        return

    if line.kind is LineType.SECTION:
        _enter_section(ctx)
        _close_section(ctx)
        ctx.current = _OpenSection(label=line.label, line=line.line_no)
        return

    if ctx.current is None:
        _enter_section(ctx)
        ctx.current = _OpenSection(label=IMPLICIT_SECTION_LABEL, line=line.line_no)
        logger.debug("Content before the first section, opened implicit %r", IMPLICIT_SECTION_LABEL)

    items = ctx.current.items
    if line.kind is LineType.PERFORMANCE_LYRIC:
        items.append(Performance(text=line.performance, line=line.line_no))
        items.append(Lyric(text=line.lyric, line=line.line_no))
    elif line.kind is LineType.PERFORMANCE:
        items.append(Performance(text=line.performance, line=line.line_no))
    elif line.kind is LineType.CUE:
        items.append(_build_cue(ctx, line))
    else:
        items.append(Lyric(text=line.lyric, line=line.line_no))


def _enter_section(ctx: ParseContext) -> None:
    """Leave BEFORE_SECTION, fixing the header values for the rest of the parse."""
    if ctx.state is State.BEFORE_SECTION:
        _resolve_headers(ctx)
        ctx.state = State.IN_SECTION


def _close_section(ctx: ParseContext) -> None:
    current = ctx.current
    ctx.current = None
    if current is None:
        return
    if not current.items:
        ctx.diagnostics.append(
            warning(
                Category.SYNTAX_WARNING,
                f"Section [{current.label}] has no items and was dropped",
                line=current.line,
            )
        )
        return
    ctx.sections.append(
        Section(
            id=ctx.section_ids.allocate(current.label),
            label=current.label,
            items=tuple(current.items),
            line=current.line,
        )
    )


def _build_cue(ctx: ParseContext, line: ClassifiedLine) -> Cue:
    tokens = tokenize_cue(line.body, line.line_no, ctx.bpm, ctx.beats_per_bar)
    ctx.diagnostics.extend(tokens.warnings)
    return Cue(
        name=tokens.name,
        category=tokens.category,
        params=tokens.params,
        args=tokens.args,
        line=line.line_no,
    )


# ---------------------------------------------------------------------------
# Headers
# ---------------------------------------------------------------------------


def _store_header(ctx: ParseContext, line: ClassifiedLine) -> None:
    key = _HEADER_ALIASES.get(line.key, line.key)
    if key not in _KNOWN_HEADERS:
        ctx.diagnostics.append(
            warning(Category.SCHEMA_VIOLATION, f"Unknown header @{line.key}", line=line.line_no, field=line.key)
        )
        return
    if key in ctx.headers:
        first_line = ctx.headers[key][1]
        ctx.diagnostics.append(
            warning(
                Category.SYNTAX_WARNING,
                f"Repeated header @{line.key}, keeping the value from line {first_line}",
                line=line.line_no,
                field=key,
            )
        )
        return
    ctx.headers[key] = (line.value, line.line_no)


def _resolve_headers(ctx: ParseContext) -> None:
    """Turn the raw header values into typed song fields."""
    config = ctx.config
    headers = ctx.headers

    if "mmslversion" in headers:
        ctx.version = headers["mmslversion"][0]
    if "title" in headers:
        ctx.title = headers["title"][0]
    if "key" in headers:
        ctx.key = headers["key"][0]
    if "instruments" in headers:
        ctx.instruments = tuple(s.strip() for s in headers["instruments"][0].split(",") if s.strip())

    if "tempomap" in headers:
        ctx.tempo_changes = _parse_tempo_map(ctx, *headers["tempomap"])

    numerator = None
    if "timesignature" in headers:
        value, line_no = headers["timesignature"]
        m = _TIME_SIGNATURE_RE.match(value)
        if m and int(m.group(1)) > 0 and int(m.group(2)) > 0:
            ctx.time_signature = f"{m.group(1)}/{m.group(2)}"
            numerator = int(m.group(1))
        else:
            ctx.diagnostics.append(
                error(
                    Category.SCHEMA_VIOLATION,
                    f"Invalid time signature {value!r}, expected N/D",
                    line=line_no,
                    field="timeSignature",
                )
            )

    header_bpm = _positive_header(ctx, "bpm", "bpm")
    if header_bpm is None:
        header_bpm = next((s.bpm for s in ctx.tempo_changes if s.start_beat == 0), None)
    ctx.bpm = config.bpm or header_bpm or config.default_bpm
    if isinstance(ctx.bpm, float) and ctx.bpm.is_integer():
        ctx.bpm = int(ctx.bpm)

    header_bpb = _positive_header(ctx, "beatsperbar", "beatsPerBar", integer=True)
    ctx.beats_per_bar = config.beats_per_bar or header_bpb or numerator or config.default_beats_per_bar


def _positive_header(ctx: ParseContext, key: str, field_name: str, integer: bool = False):
    """Numeric header value if present and > 0, else None (with an error if malformed)."""
    if key not in ctx.headers:
        return None
    value, line_no = ctx.headers[key]
    if _NUMBER_RE.match(value) and math.isfinite(float(value)):
        number = _number(value)
        if number > 0 and (not integer or isinstance(number, int)):
            return number
    kind = "a positive integer" if integer else "a number > 0"
    ctx.diagnostics.append(
        error(
            Category.SCHEMA_VIOLATION,
            f"Invalid @{field_name} {value!r}, must be {kind}; using the default",
            line=line_no,
            field=field_name,
        )
    )
    return None


def _parse_tempo_map(ctx: ParseContext, value: str, line_no: int) -> tuple[TempoSegment, ...]:
    segments = []
    for entry in value.split(","):
        m = _TEMPO_ENTRY_RE.match(entry.strip())
        if not m or not all(math.isfinite(float(g)) for g in m.groups()):
            ctx.diagnostics.append(
                fatal(
                    Category.TEMPO_MAP_CONFLICT,
                    f"Unreadable tempo map entry {entry.strip()!r}, expected beat:bpm",
                    line=line_no,
                    field="tempoMap",
                )
            )
            return ()
        segments.append(TempoSegment(start_beat=_number(m.group(1)), bpm=_number(m.group(2))))
    return tuple(segments)


def _number(text: str) -> int | float:
    return int(text) if text.isdigit() else float(text)
