import json

from click.testing import CliRunner

from mmsl.cli import main

CHORUS = """\
@BPM 120
[Chorus]
(full)
We are the fire!
<SFX guitar_solo duration=8beats>
after the solo
"""

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _write(tmp_path, text, name="song.mmsl"):
    path = tmp_path / name
    path.write_text(text, encoding="utf-8")
    return str(path)


def _invoke(*args, **kwargs):
    return CliRunner().invoke(main, list(args), **kwargs)


def _diagnostics(result):
    return [json.loads(line) for line in result.stderr.splitlines() if line.strip()]


# ---------------------------------------------------------------------------
# --help
# ---------------------------------------------------------------------------


def test_help_output():
    result = _invoke("--help")
    assert result.exit_code == 0
    assert "Parse M-MSL" in result.output
    assert "parse" in result.output


def test_parse_help_lists_options():
    result = _invoke("parse", "--help")
    assert result.exit_code == 0
    for option in ("--strict", "--bpm", "--beats-per-bar", "--catalog"):
        assert option in result.output


# ---------------------------------------------------------------------------
# parse
# ---------------------------------------------------------------------------


def test_parse_prints_ir(tmp_path):
    result = _invoke("parse", _write(tmp_path, CHORUS))
    assert result.exit_code == 0
    ir = json.loads(result.stdout)
    assert ir["bpm"] == 120
    assert ir["sections"][0]["id"] == "chorus"
    assert result.stderr == ""


def test_parse_output_is_stable(tmp_path):
    path = _write(tmp_path, CHORUS)
    assert _invoke("parse", path).stdout == _invoke("parse", path).stdout


def test_parse_reads_stdin():
    result = _invoke("parse", "-", input=CHORUS)
    assert result.exit_code == 0
    assert json.loads(result.stdout)["sections"][0]["label"] == "Chorus"


def test_bpm_and_beats_per_bar_options(tmp_path):
    path = _write(tmp_path, "[V]\n<pad duration=1bar>\n<hit duration=1s>\n")
    result = _invoke("parse", "--bpm", "60", "--beats-per-bar", "3", path)
    ir = json.loads(result.stdout)
    assert ir["bpm"] == 60
    assert ir["beatsPerBar"] == 3
    params = [item["params"] for item in ir["sections"][0]["items"]]
    assert params == [{"duration_beats": 3.0}, {"duration_beats": 1.0}]


def test_warnings_go_to_stderr_with_exit_zero(tmp_path):
    result = _invoke("parse", _write(tmp_path, "[V]\n[Chorus\n"))
    assert result.exit_code == 0
    assert json.loads(result.stdout)["sections"][0]["items"][0]["text"] == "[Chorus"
    [diagnostic] = _diagnostics(result)
    assert diagnostic["category"] == "SyntaxWarning"
    assert diagnostic["severity"] == "warning"
    assert diagnostic["line"] == 2


# ---------------------------------------------------------------------------
# Error handling
# ---------------------------------------------------------------------------


def test_validation_failure_exits_two(tmp_path):
    path = _write(tmp_path, '[V]\n<boom repeat=0 intensity=1.5 pan="north">\n')
    result = _invoke("parse", path)
    assert result.exit_code == 2
    assert result.stdout == ""
    diagnostics = _diagnostics(result)
    assert [d["field"] for d in diagnostics] == ["repeat", "intensity", "pan"]
    assert all(d["category"] == "RangeViolation" for d in diagnostics)
    assert all(d["source"] == path for d in diagnostics)


def test_empty_song_exits_two(tmp_path):
    result = _invoke("parse", _write(tmp_path, "@BPM 120\n"))
    assert result.exit_code == 2
    assert _diagnostics(result)[0]["message"] == "empty song"


def test_missing_file_exits_one(tmp_path):
    result = _invoke("parse", str(tmp_path / "missing.mmsl"))
    assert result.exit_code == 1
    assert _diagnostics(result)[0]["category"] == "IOError"


def test_missing_catalog_exits_one(tmp_path):
    result = _invoke("parse", "--catalog", str(tmp_path / "nope.json"), _write(tmp_path, CHORUS))
    assert result.exit_code == 1


def test_strict_flag_with_catalog(tmp_path):
    catalog = tmp_path / "cues.json"
    catalog.write_text(json.dumps(["thunder"]))
    path = _write(tmp_path, "[V]\n<kazoo>\n")

    lenient = _invoke("parse", "--catalog", str(catalog), path)
    assert lenient.exit_code == 0
    assert _diagnostics(lenient)[0]["category"] == "UnknownCue"

    strict = _invoke("parse", "--strict", "--catalog", str(catalog), path)
    assert strict.exit_code == 2
    assert _diagnostics(strict)[0]["severity"] == "error"


def test_max_lines_option(tmp_path):
    result = _invoke("parse", "--max-lines", "2", _write(tmp_path, CHORUS))
    assert result.exit_code == 2
    assert _diagnostics(result)[0]["field"] == "input"


# ---------------------------------------------------------------------------
# schedule / format
# ---------------------------------------------------------------------------


def test_schedule_prints_events(tmp_path):
    result = _invoke("schedule", _write(tmp_path, CHORUS))
    assert result.exit_code == 0
    events = json.loads(result.stdout)
    cue = [e for e in events if e["type"] == "cue"][0]
    assert cue["timeBeats"] == 0
    assert cue["timeSeconds"] == 0
    assert events[-1]["timeBeats"] == 8
    assert "frame" not in events[-1]


def test_schedule_fps_adds_frames(tmp_path):
    result = _invoke("schedule", "--fps", "30", _write(tmp_path, CHORUS))
    assert json.loads(result.stdout)[-1]["frame"] == 120


def test_format_prints_canonical_text(tmp_path):
    result = _invoke("format", _write(tmp_path, "@bpm 100\n[Verse]\n(soft) hello\n<sfx boom duration=3s>\n"))
    assert result.exit_code == 0
    assert result.stdout == "@BPM 100\n@BeatsPerBar 4\n\n[Verse]\n(soft)\nhello\n<SFX boom duration=5beats>\n"


def test_verbose_flag_accepted(tmp_path):
    result = _invoke("-v", "parse", _write(tmp_path, CHORUS))
    assert result.exit_code == 0
    assert json.loads(result.stdout)["title"] is None


def test_bad_environment_exits_two(tmp_path):
    path = _write(tmp_path, CHORUS)
    for value in ("abc", "-5"):
        result = _invoke("parse", path, env={"MMSL_DEFAULT_BPM": value})
        assert result.exit_code == 2
        assert result.stdout == ""
        diagnostic = _diagnostics(result)[0]
        assert diagnostic["field"] == "config"
        assert diagnostic["severity"] == "fatal"


def test_max_repeat_option(tmp_path):
    path = _write(tmp_path, "[V]\n<clap duration=1beats repeat=3>\n")
    assert _invoke("schedule", path).exit_code == 0
    result = _invoke("schedule", path, "--max-repeat", "2")
    assert result.exit_code == 2
    assert _diagnostics(result)[0]["field"] == "repeat"
