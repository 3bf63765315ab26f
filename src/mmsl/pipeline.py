"""End-to-end processing of one or many M-MSL documents.

classify → parse → tokenize cues → normalize durations → validate →
serialize, with the tempo map and event schedule built on demand from the
result. A fatal diagnostic (empty song, unreadable tempo map, oversized
input) means no IR for that document; other documents are unaffected.
"""

import dataclasses
import logging
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path

from .config import MmslConfig
from .diagnostics import Category, Diagnostic, fatal, has_errors, has_fatal
from .exceptions import InputError, TempoMapConflict
from .ir import dumps_ir, song_to_ir
from .lines import split_lines
from .models import DEFAULT_MAX_REPEAT, Event, Song
from .parser import ProgressCallback, parse
from .registry import CueNamespace
from .scheduler import schedule
from .tempo import TempoMap
from .validator import validate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PipelineResult:
    source: str
    song: Song | None
    ir: dict | None
    diagnostics: tuple[Diagnostic, ...]
    tempo_map: TempoMap | None = None
    max_repeat: int = DEFAULT_MAX_REPEAT

    @property
    def ok(self) -> bool:
        """True when an IR was produced and no diagnostic is an error."""
        return self.ir is not None and not has_errors(self.diagnostics)

    @property
    def warnings(self) -> tuple[Diagnostic, ...]:
        return tuple(d for d in self.diagnostics if not d.is_error)

    def ir_json(self) -> str:
        if self.ir is None:
            raise ValueError(f"No IR for {self.source}: processing hit a fatal diagnostic")
        return dumps_ir(self.ir)

    def events(self, tempo_map: TempoMap | None = None) -> list[Event]:
        """A fresh event list; pass *tempo_map* to re-time against an edited map."""
        if self.song is None:
            raise ValueError(f"No song for {self.source}: processing hit a fatal diagnostic")
        return schedule(self.song, tempo_map or self.tempo_map, self.max_repeat)


def read_source(path: str | Path) -> str:
    """Read a UTF-8 document. Raises InputError when it cannot be read."""
    try:
        return Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise InputError(str(path), str(exc)) from exc


def process(
    text: str,
    config: MmslConfig | None = None,
    source: str = "<input>",
    on_progress: ProgressCallback | None = None,
    namespace: CueNamespace | None = None,
) -> PipelineResult:
    """Run the whole pipeline on *text*.

    Never raises for problems in the document itself; everything found is in
    ``result.diagnostics``. Raises InputError only when the configured cue
    catalog cannot be read.
    """
    config = config or MmslConfig()
    if namespace is None:
        namespace = config.namespace()

    line_count = len(split_lines(text))
    if config.max_lines is not None and line_count > config.max_lines:
        diagnostic = fatal(
            Category.SCHEMA_VIOLATION,
            f"Input has {line_count} lines, more than the limit of {config.max_lines}",
            line=config.max_lines + 1,
            field="input",
        )
        return _result(source, config, None, None, [diagnostic])

    parsed = parse(text, config, on_progress, source=source)
    diagnostics = list(parsed.diagnostics)
    diagnostics.extend(validate(parsed.song, config, namespace))

    if has_fatal(diagnostics):
        logger.info("%s: fatal diagnostics, no IR emitted", source)
        return _result(source, config, None, None, diagnostics)

    try:
        tempo_map = TempoMap.from_song(parsed.song)
    except TempoMapConflict as exc:
        diagnostics.append(fatal(Category.TEMPO_MAP_CONFLICT, exc.reason, line=1, field="tempoMap"))
        return _result(source, config, None, None, diagnostics)

    return _result(source, config, parsed.song, song_to_ir(parsed.song), diagnostics, tempo_map)


def process_file(path: str | Path, config: MmslConfig | None = None, **kwargs) -> PipelineResult:
    """Read and process one file. Raises InputError when it cannot be read."""
    return process(read_source(path), config, source=str(path), **kwargs)


def process_many(
    documents: Iterable[tuple[str, str]],
    config: MmslConfig | None = None,
    max_workers: int | None = None,
) -> list[PipelineResult]:
    """Process ``(source, text)`` pairs concurrently, results in input order.

    Calls share only the frozen config and the read-only cue namespace.
    """
    config = config or MmslConfig()
    namespace = config.namespace()
    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        futures = [
            pool.submit(process, text, config, source=source, namespace=namespace)
            for source, text in documents
        ]
        return [f.result() for f in futures]


def _result(source, config, song, ir, diagnostics, tempo_map=None) -> PipelineResult:
    stamped = tuple(dataclasses.replace(d, source=source) for d in diagnostics)
    return PipelineResult(
        source=source,
        song=song,
        ir=ir,
        diagnostics=stamped,
        tempo_map=tempo_map,
        max_repeat=config.max_repeat,
    )
