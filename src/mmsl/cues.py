"""Cue body tokenizer.

Splits the text between ``<`` and ``>`` into a name, an optional category and
parameters::

    <SFX guitar_solo duration=8beats pan=left "crowd roar">
     ^^^ ^^^^^^^^^^^ ^^^^^^^^^^^^^^^ ^^^^^^^^ ^^^^^^^^^^^^
     category  name  timing param    param    positional arg

Timing parameters (``duration``, ``start``, ``fade_in``, ``fade_out``,
``start_beat``) are converted to beats on the spot and stored as
``<key>_beats``; ``start_beat`` is stored as ``start_beats``. A bare number
on a timing key is read as seconds, except on ``start_beat`` where it is read
as beats. Other values are coerced to int, float or bool when they look like
one and otherwise kept as strings. Quoted values always stay strings.
"""

import re
from dataclasses import dataclass

from .diagnostics import Category, Diagnostic, warning
from .durations import match_duration, to_beats
from .registry import is_category

# timing key -> (stored key, unit of a bare number)
TIMING_KEYS = {
    "duration": ("duration_beats", "s"),
    "start": ("start_beats", "s"),
    "start_beat": ("start_beats", "beats"),
    "fade_in": ("fade_in_beats", "s"),
    "fade_out": ("fade_out_beats", "s"),
}

RECOGNIZED_KEYS = frozenset(
    {"duration", "repeat", "intensity", "volume", "pan", "start", "start_beat", "pitch", "fade_in", "fade_out", "track"}
)

# Vendor extension keys: x-reverb=0.3
EXTENSION_PREFIX = "x-"

# A token is a run of non-space characters and "quoted strings"
_TOKEN_RE = re.compile(r'(?:"[^"]*"|[^\s"])+')
_INT_RE = re.compile(r"^[+-]?\d+$")
_FLOAT_RE = re.compile(r"^[+-]?(?:\d+\.\d*|\.\d+)$")


@dataclass(frozen=True)
class CueTokens:
    name: str
    category: str | None
    params: dict
    args: tuple[str, ...]
    warnings: tuple[Diagnostic, ...] = ()


def split_tokens(body: str) -> tuple[list[str], bool]:
    """Split *body* on whitespace, keeping double-quoted runs together.

    Returns the tokens and whether an unterminated quote had to be dropped.
    """
    unterminated = body.count('"') % 2 == 1
    if unterminated:
        cut = body.rfind('"')
        body = body[:cut] + body[cut + 1 :]
    return _TOKEN_RE.findall(body), unterminated


def coerce_value(raw: str):
    """Coerce a raw parameter value: int, float, bool, else the string itself."""
    if '"' in raw:
        return raw.replace('"', "")
    if _INT_RE.match(raw):
        return int(raw)
    if _FLOAT_RE.match(raw):
        return float(raw)
    if raw.lower() in ("true", "false"):
        return raw.lower() == "true"
    return raw


def tokenize_cue(body: str, line_no: int, bpm: float, beats_per_bar: int) -> CueTokens:
    """Tokenize one cue body.

    *bpm* and *beats_per_bar* are the song's header values, used to convert
    timing parameters to beats. Problems become warnings on the result; this
    function never raises for malformed cue text.
    """
    warnings: list[Diagnostic] = []
    tokens, unterminated = split_tokens(body)
    if unterminated:
        warnings.append(
            warning(Category.SYNTAX_WARNING, "Unterminated quote in cue, stray quote dropped", line=line_no)
        )

    category = None
    name = ""
    if tokens and "=" not in tokens[0]:
        if is_category(tokens[0]) and len(tokens) > 1 and "=" not in tokens[1]:
            category = tokens[0].lower()
            name = tokens[1].replace('"', "")
            tokens = tokens[2:]
        elif is_category(tokens[0]) and len(tokens) == 1:
            category = tokens[0].lower()
            tokens = []
        else:
            name = tokens[0].replace('"', "")
            tokens = tokens[1:]

    params: dict = {}
    args: list[str] = []
    for token in tokens:
        key, sep, raw = token.partition("=")
        key = key.lower()
        quoted = token.startswith('"')
        if quoted or not sep or not key:
            if sep and not key and not quoted:
                warnings.append(
                    warning(Category.SYNTAX_WARNING, f"Parameter without a key: {token!r}", line=line_no)
                )
            args.append(token.replace('"', ""))
            continue

        stored_key, value = _convert(key, raw, bpm, beats_per_bar)
        if stored_key in params:
            warnings.append(
                warning(
                    Category.SYNTAX_WARNING,
                    f"Duplicate parameter {key!r}, keeping the first value",
                    line=line_no,
                    field=key,
                )
            )
            continue
        params[stored_key] = value

    return CueTokens(name=name, category=category, params=params, args=tuple(args), warnings=tuple(warnings))


def _convert(key: str, raw: str, bpm: float, beats_per_bar: int):
    """Return ``(stored_key, value)`` for one ``key=value`` pair."""
    if key in TIMING_KEYS and '"' not in raw:
        matched = match_duration(raw)
        if matched is not None:
            stored_key, bare_unit = TIMING_KEYS[key]
            number, unit = matched
            return stored_key, to_beats(number, unit or bare_unit, bpm, beats_per_bar)
    return key, coerce_value(raw)
