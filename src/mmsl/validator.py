"""Batch validation of a parsed Song.

All checks run in one pass and every problem is returned; nothing here fails
fast or raises. Song-level diagnostics (empty song, bpm, tempo map) point at
line 1.
"""

import logging
import math
import re

from .config import MmslConfig
from .cues import EXTENSION_PREFIX, RECOGNIZED_KEYS, TIMING_KEYS
from .diagnostics import Category, Diagnostic, Severity, error, fatal
from .exceptions import TempoMapConflict
from .models import Cue, Song
from .registry import CueNamespace
from .tempo import check_segments, song_segments

logger = logging.getLogger(__name__)

CUE_NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]*$")
EXTENSION_KEY_RE = re.compile(r"^x-[a-z0-9][a-z0-9_-]*$")
PAN_POSITIONS = frozenset({"left", "center", "right"})

_BEAT_KEYS = frozenset(stored for stored, _ in TIMING_KEYS.values())
_UNIT_INTERVAL_KEYS = ("intensity", "volume")
_RANGED_KEYS = frozenset({"repeat", "pan", *_UNIT_INTERVAL_KEYS})  # bounds checked on their own


def validate(song: Song, config: MmslConfig | None = None, namespace: CueNamespace | None = None) -> list[Diagnostic]:
    """Return every schema and range problem in *song*.

    *namespace* is the set of known cue names; when omitted it is taken from
    *config* (``known_cues`` / ``catalog_path``). Without either, cue names
    are not checked against a namespace.
    """
    config = config or MmslConfig()
    if namespace is None:
        namespace = config.namespace()

    diagnostics: list[Diagnostic] = []
    diagnostics.extend(_check_song(song))
    diagnostics.extend(_check_tempo_map(song))
    for section in song.sections:
        for item in section.items:
            match item:
                case Cue():
                    diagnostics.extend(_check_cue(item, config, namespace))

    logger.debug("Validation found %d diagnostics", len(diagnostics))
    return diagnostics


def _check_song(song: Song) -> list[Diagnostic]:
    issues = []
    if not song.sections:
        issues.append(fatal(Category.SCHEMA_VIOLATION, "empty song", line=1, field="sections"))
    if not _is_finite(song.bpm) or not song.bpm > 0:
        issues.append(error(Category.RANGE_VIOLATION, f"bpm must be a finite number > 0, got {song.bpm!r}", line=1, field="bpm"))
    if not isinstance(song.beats_per_bar, int) or isinstance(song.beats_per_bar, bool) or song.beats_per_bar < 1:
        issues.append(
            error(
                Category.RANGE_VIOLATION,
                f"beatsPerBar must be a positive integer, got {song.beats_per_bar!r}",
                line=1,
                field="beatsPerBar",
            )
        )
    return issues


def _check_tempo_map(song: Song) -> list[Diagnostic]:
    if not _is_finite(song.bpm) or not song.bpm > 0:
        return []  # already reported by _check_song
    try:
        check_segments(song_segments(song))
    except TempoMapConflict as exc:
        return [fatal(Category.TEMPO_MAP_CONFLICT, exc.reason, line=1, field="tempoMap")]
    return []


def _check_cue(cue: Cue, config: MmslConfig, namespace: CueNamespace | None) -> list[Diagnostic]:
    issues = []
    line = cue.line

    # --- Name ---
    if not cue.name:
        issues.append(error(Category.SCHEMA_VIOLATION, "Cue has no name", line=line, field="name"))
    elif not CUE_NAME_RE.match(cue.name):
        issues.append(
            error(
                Category.SCHEMA_VIOLATION,
                f"Cue name {cue.name!r} may only contain letters, digits, '_', '.' and '-'",
                line=line,
                field="name",
            )
        )
    elif namespace is not None and not namespace.is_known(cue.name, cue.category):
        issues.append(
            _strictable(config, Category.UNKNOWN_CUE, f"Unknown cue {cue.name!r}", line, "name")
        )

    # --- Parameters ---
    params = cue.params
    if "repeat" in params:
        repeat = params["repeat"]
        if not _is_number(repeat):
            issues.append(error(Category.SCHEMA_VIOLATION, f"repeat must be an integer, got {repeat!r}", line=line, field="repeat"))
        elif not isinstance(repeat, int) or repeat < 1:
            issues.append(error(Category.RANGE_VIOLATION, f"repeat must be an integer >= 1, got {repeat!r}", line=line, field="repeat"))
        elif repeat > config.max_repeat:
            issues.append(
                error(
                    Category.RANGE_VIOLATION,
                    f"repeat must be at most {config.max_repeat}, got {repeat}",
                    line=line,
                    field="repeat",
                )
            )

    for key in _UNIT_INTERVAL_KEYS:
        if key not in params:
            continue
        value = params[key]
        if not _is_number(value):
            issues.append(error(Category.SCHEMA_VIOLATION, f"{key} must be a number, got {value!r}", line=line, field=key))
        elif not 0 <= value <= 1:
            issues.append(error(Category.RANGE_VIOLATION, f"{key} must be between 0 and 1, got {value!r}", line=line, field=key))

    if "pan" in params:
        pan = params["pan"]
        if _is_number(pan):
            if not -1 <= pan <= 1:
                issues.append(error(Category.RANGE_VIOLATION, f"pan must be between -1 and 1, got {pan!r}", line=line, field="pan"))
        elif not isinstance(pan, str) or pan.lower() not in PAN_POSITIONS:
            issues.append(
                error(Category.RANGE_VIOLATION, f"pan must be left, center, right or a number, got {pan!r}", line=line, field="pan")
            )

    for key, value in params.items():
        if key not in _RANGED_KEYS and _is_number(value) and not _is_finite(value):
            issues.append(error(Category.RANGE_VIOLATION, f"{key} must be a finite number, got {value!r}", line=line, field=key))
        elif key in _BEAT_KEYS:
            if not _is_number(value) or value < 0:
                issues.append(error(Category.RANGE_VIOLATION, f"{key} must be >= 0, got {value!r}", line=line, field=key))
        elif key in TIMING_KEYS:
            if _is_number(value) and value < 0:
                issues.append(error(Category.RANGE_VIOLATION, f"{key} must be >= 0, got {value!r}", line=line, field=key))
            else:
                issues.append(
                    error(Category.SCHEMA_VIOLATION, f"{key} is not a duration literal: {value!r}", line=line, field=key)
                )
        elif key.startswith(EXTENSION_PREFIX):
            if not EXTENSION_KEY_RE.match(key):
                issues.append(
                    error(Category.SCHEMA_VIOLATION, f"Malformed extension key {key!r}", line=line, field=key)
                )
        elif key not in RECOGNIZED_KEYS:
            issues.append(
                _strictable(
                    config,
                    Category.SCHEMA_VIOLATION,
                    f"Unrecognized cue parameter {key!r}; prefix vendor keys with {EXTENSION_PREFIX!r}",
                    line,
                    key,
                )
            )

    return issues


def _strictable(config: MmslConfig, category: Category, message: str, line: int, field: str) -> Diagnostic:
    severity = Severity.ERROR if config.strict else Severity.WARNING
    return Diagnostic(category, severity, message, line=line, field=field)


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_finite(value) -> bool:
    return _is_number(value) and (isinstance(value, int) or math.isfinite(value))
