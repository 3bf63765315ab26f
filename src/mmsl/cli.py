import sys
from pathlib import Path

import click

from .config import MmslConfig
from .diagnostics import Category, Diagnostic, Severity
from .exceptions import InputError
from .formatter import MmslFormatter
from .ir import dumps_ir, events_to_list
from .log import setup_logging
from .pipeline import PipelineResult, process, read_source

EXIT_UNREADABLE = 1
EXIT_INVALID = 2


def _pipeline_options(func):
    """Options shared by every command that runs the parse pipeline."""
    options = [
        click.argument("file"),
        click.option("--strict", is_flag=True, default=False,
                     help="Treat unknown cues and parameters as errors."),
        click.option("--bpm", type=click.FloatRange(min=0, min_open=True), default=None,
                     help="Tempo to use instead of the @BPM header."),
        click.option("--beats-per-bar", type=click.IntRange(min=1), default=None,
                     help="Beats per bar to use instead of the @BeatsPerBar header."),
        click.option("--catalog", "catalog_path", type=click.Path(path_type=Path), default=None,
                     metavar="PATH", help="JSON cue catalog of known cue names."),
        click.option("--max-lines", type=click.IntRange(min=1), default=None,
                     help="Reject inputs longer than N lines."),
        click.option("--max-repeat", type=click.IntRange(min=1), default=None,
                     help="Largest repeat= a cue may use."),
    ]
    for option in reversed(options):
        func = option(func)
    return func


@click.group()
@click.option("-v", "--verbose", is_flag=True, default=False, help="Log pipeline details to stderr.")
def main(verbose: bool) -> None:
    """Parse M-MSL lyric/cue markup into a beat-normalized IR.

    \b
    Exit status:
      0  success, output on stdout
      1  input could not be read
      2  validation failed or bad configuration, diagnostics on stderr
    """
    setup_logging(verbose)


@main.command("parse")
@_pipeline_options
def parse_command(file: str, **options) -> None:
    """Print the IR of FILE as JSON ("-" reads stdin)."""
    result = _run(file, **options)
    click.echo(result.ir_json(), nl=False)


@main.command("schedule")
@_pipeline_options
@click.option("--fps", type=click.FloatRange(min=0, min_open=True), default=None,
              help="Add the video frame of each event at this frame rate.")
def schedule_command(file: str, fps: float | None, **options) -> None:
    """Print the time-ordered event list of FILE as JSON."""
    result = _run(file, **options)
    click.echo(dumps_ir(events_to_list(result.events(), fps)), nl=False)


@main.command("format")
@_pipeline_options
def format_command(file: str, **options) -> None:
    """Print FILE re-rendered as canonical M-MSL."""
    result = _run(file, **options)
    click.echo(MmslFormatter().render(result.song), nl=False)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _run(file: str, strict: bool, bpm, beats_per_bar, catalog_path, max_lines, max_repeat) -> PipelineResult:
    """Read and process FILE, exiting on unreadable input or failed validation."""
    try:
        config = MmslConfig.from_env(
            strict=strict or None,
            bpm=bpm,
            beats_per_bar=beats_per_bar,
            catalog_path=catalog_path,
            max_lines=max_lines,
            max_repeat=max_repeat,
        )
    except ValueError as exc:
        diagnostic = Diagnostic(
            Category.SCHEMA_VIOLATION,
            Severity.FATAL,
            f"Invalid configuration: {exc}",
            field="config",
            source="environment",
        )
        click.echo(diagnostic.to_json(), err=True)
        sys.exit(EXIT_INVALID)

    try:
        if file == "-":
            text, source = click.get_text_stream("stdin").read(), "<stdin>"
        else:
            text, source = read_source(file), file
        result = process(text, config, source=source)
    except InputError as exc:
        diagnostic = Diagnostic(Category.IO_ERROR, Severity.FATAL, str(exc), source=exc.source)
        click.echo(diagnostic.to_json(), err=True)
        sys.exit(EXIT_UNREADABLE)

    for diagnostic in result.diagnostics:
        click.echo(diagnostic.to_json(), err=True)
    if not result.ok:
        sys.exit(EXIT_INVALID)
    return result
