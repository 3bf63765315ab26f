from mmsl.config import MmslConfig
from mmsl.diagnostics import Category, Severity
from mmsl.models import Cue, Lyric, Performance, TempoSegment
from mmsl.parser import parse

CHORUS = """\
@BPM 120
[Chorus]
(full)
We are the fire!
<SFX guitar_solo duration=8beats>
"""


def _categories(result):
    return [d.category for d in result.diagnostics]


# ---------------------------------------------------------------------------
# Song structure
# ---------------------------------------------------------------------------


def test_chorus_example():
    result = parse(CHORUS)
    song = result.song
    assert song.bpm == 120
    assert len(song.sections) == 1
    section = song.sections[0]
    assert section.id == "chorus"
    assert section.label == "Chorus"
    assert [type(i) for i in section.items] == [Performance, Lyric, Cue]
    cue = section.items[2]
    assert cue.name == "guitar_solo"
    assert cue.category == "sfx"
    assert cue.params["duration_beats"] == 8
    assert result.diagnostics == ()


def test_items_keep_source_lines():
    section = parse(CHORUS).song.sections[0]
    assert section.line == 2
    assert [i.line for i in section.items] == [3, 4, 5]


def test_sections_preserve_order():
    text = "[Verse 1]\na\n[Chorus]\nb\n[Verse 2]\nc\n"
    song = parse(text).song
    assert [s.label for s in song.sections] == ["Verse 1", "Chorus", "Verse 2"]
    assert [s.id for s in song.sections] == ["verse-1", "chorus", "verse-2"]


def test_inline_performance_splits_into_two_items():
    items = parse("[Verse]\n(softly) Hold me close\n").song.sections[0].items
    assert items == (Performance(text="softly", line=2), Lyric(text="Hold me close", line=2))


def test_blank_lines_skipped():
    song = parse("\n\n[Verse]\n\nline one\n\n\nline two\n").song
    assert [i.text for i in song.sections[0].items] == ["line one", "line two"]


def test_crlf_line_endings():
    song = parse("@Title Fire\r\n[Verse]\r\nline\r\n").song
    assert song.title == "Fire"
    assert song.sections[0].items == (Lyric(text="line", line=3),)


def test_empty_section_dropped_with_warning():
    result = parse("[Intro]\n[Verse]\nline\n")
    assert [s.label for s in result.song.sections] == ["Verse"]
    assert _categories(result) == [Category.SYNTAX_WARNING]
    assert result.diagnostics[0].line == 1


def test_duplicate_labels_get_suffixes():
    song = parse("[Chorus]\na\n[Verse]\nb\n[Chorus]\nc\n[Chorus]\nd\n").song
    assert [s.id for s in song.sections] == ["chorus", "verse", "chorus-2", "chorus-3"]


def test_dropped_section_does_not_consume_slug():
    song = parse("[Chorus]\n[Chorus]\nline\n").song
    assert [s.id for s in song.sections] == ["chorus"]


# ---------------------------------------------------------------------------
# Implicit leading section
# ---------------------------------------------------------------------------


def test_content_before_first_section_goes_to_intro():
    song = parse("@BPM 100\nhello there\n[Verse]\nline\n").song
    assert [s.id for s in song.sections] == ["intro", "verse"]
    assert song.sections[0].items == (Lyric(text="hello there", line=2),)


def test_implicit_intro_and_explicit_intro_do_not_collide():
    song = parse("pre\n[Intro]\nline\n").song
    assert [s.id for s in song.sections] == ["intro", "intro-2"]


def test_header_after_content_ignored():
    result = parse("hello\n@BPM 90\n[Verse]\nline\n")
    assert result.song.bpm == 120
    assert result.diagnostics[0].field == "bpm"


# ---------------------------------------------------------------------------
# Headers
# ---------------------------------------------------------------------------


def test_all_headers():
    text = """\
@MMSLVersion 1.1
@Title Burning Bright
@BPM 96
@TimeSignature 3/4
@Key Am
@Instruments guitar, drums , bass
[Verse]
line
"""
    result = parse(text)
    song = result.song
    assert song.version == "1.1"
    assert song.title == "Burning Bright"
    assert song.bpm == 96
    assert song.time_signature == "3/4"
    assert song.beats_per_bar == 3
    assert song.key == "Am"
    assert song.instruments == ("guitar", "drums", "bass")
    assert result.diagnostics == ()


def test_version_alias():
    assert parse("@Version 2.0\n[V]\nx\n").song.version == "2.0"


def test_beats_per_bar_header_wins_over_time_signature():
    song = parse("@TimeSignature 6/8\n@BeatsPerBar 2\n[V]\nx\n").song
    assert song.beats_per_bar == 2
    assert song.time_signature == "6/8"


def test_headers_case_insensitive():
    assert parse("@bpm 90\n[V]\nx\n").song.bpm == 90


def test_fractional_bpm():
    assert parse("@BPM 92.5\n[V]\nx\n").song.bpm == 92.5


def test_defaults_without_headers():
    song = parse("[V]\nx\n").song
    assert song.bpm == 120
    assert song.beats_per_bar == 4
    assert song.title is None


def test_first_seen_header_wins():
    result = parse("@BPM 100\n@BPM 140\n[V]\nx\n")
    assert result.song.bpm == 100
    assert result.diagnostics[0].category == Category.SYNTAX_WARNING
    assert result.diagnostics[0].line == 2


def test_header_inside_section_ignored():
    result = parse("[Verse]\n@BPM 60\nline\n")
    assert result.song.bpm == 120
    assert len(result.song.sections[0].items) == 1
    assert result.diagnostics[0].severity == Severity.WARNING


def test_unknown_header_warns():
    result = parse("@Mood sad\n[V]\nx\n")
    assert result.diagnostics[0].category == Category.SCHEMA_VIOLATION
    assert result.diagnostics[0].severity == Severity.WARNING


def test_invalid_bpm_falls_back_to_default():
    result = parse("@BPM fast\n[V]\n<boom duration=1s>\n")
    assert result.song.bpm == 120
    assert result.song.sections[0].items[0].params["duration_beats"] == 2.0
    assert result.diagnostics[0].severity == Severity.ERROR
    assert result.diagnostics[0].field == "bpm"


def test_zero_bpm_is_an_error():
    result = parse("@BPM 0\n[V]\nx\n")
    assert result.song.bpm == 120
    assert result.diagnostics[0].field == "bpm"


def test_invalid_time_signature():
    result = parse("@TimeSignature waltz\n[V]\nx\n")
    assert result.song.beats_per_bar == 4
    assert result.diagnostics[0].field == "timeSignature"


def test_tempo_map_header():
    song = parse("@BPM 120\n@TempoMap 0:120, 16:90\n[V]\nx\n").song
    assert song.tempo_changes == (TempoSegment(0, 120), TempoSegment(16, 90))


def test_tempo_map_supplies_bpm_without_bpm_header():
    assert parse("@TempoMap 0:100, 8:140\n[V]\nx\n").song.bpm == 100


def test_unreadable_tempo_map_is_fatal():
    result = parse("@TempoMap 0:120, sixteen:90\n[V]\nx\n")
    assert result.song.tempo_changes == ()
    assert result.diagnostics[0].category == Category.TEMPO_MAP_CONFLICT
    assert result.diagnostics[0].severity == Severity.FATAL


# ---------------------------------------------------------------------------
# Config overrides
# ---------------------------------------------------------------------------


def test_config_bpm_overrides_header():
    song = parse("@BPM 100\n[V]\n<boom duration=1s>\n", MmslConfig(bpm=60)).song
    assert song.bpm == 60
    assert song.sections[0].items[0].params["duration_beats"] == 1.0


def test_config_beats_per_bar_overrides_header():
    song = parse("@BeatsPerBar 4\n[V]\n<pad duration=1bar>\n", MmslConfig(beats_per_bar=3)).song
    assert song.beats_per_bar == 3
    assert song.sections[0].items[0].params["duration_beats"] == 3.0


def test_config_default_bpm():
    assert parse("[V]\nx\n", MmslConfig(default_bpm=80)).song.bpm == 80


# ---------------------------------------------------------------------------
# Malformed input and progress
# ---------------------------------------------------------------------------


def test_malformed_marker_becomes_lyric():
    result = parse("[Verse]\n<SFX boom\n")
    assert result.song.sections[0].items == (Lyric(text="<SFX boom", line=2),)
    assert _categories(result) == [Category.SYNTAX_WARNING]


def test_cue_warnings_collected():
    result = parse('[Verse]\n<crowd note="loud>\n')
    assert result.diagnostics[0].line == 2


def test_headers_only_has_no_sections():
    result = parse("@BPM 120\n@Title Nothing\n")
    assert result.song.sections == ()
    assert result.song.title == "Nothing"


def test_progress_callback_called_per_line():
    calls = []
    parse(CHORUS, on_progress=lambda line_no, total: calls.append((line_no, total)))
    assert calls == [(1, 5), (2, 5), (3, 5), (4, 5), (5, 5)]


def test_parse_is_idempotent():
    assert parse(CHORUS) == parse(CHORUS)


def test_form_feed_and_line_separator_stay_on_their_line():
    result = parse("[V]\nfirst\x0cpart\u2028more\nsecond\n")
    items = result.song.sections[0].items
    assert [i.text for i in items] == ["first\x0cpart\u2028more", "second"]
    assert [i.line for i in items] == [2, 3]


def test_source_stamped_on_diagnostics():
    result = parse("[V]\n\n[W]\nx\n", source="song.mmsl")
    assert result.diagnostics
    assert all(d.source == "song.mmsl" for d in result.diagnostics)
    assert parse("[V]\n\n[W]\nx\n").diagnostics[0].source is None


def test_overflowing_bpm_is_an_error():
    result = parse("@BPM " + "9" * 400 + ".5\n[V]\nx\n")
    assert result.song.bpm == 120
    assert result.diagnostics[0].field == "bpm"
    assert result.diagnostics[0].severity == Severity.ERROR


def test_overflowing_tempo_map_entry_is_fatal():
    result = parse("@TempoMap 0:" + "9" * 400 + "\n[V]\nx\n")
    assert result.song.tempo_changes == ()
    assert result.diagnostics[0].category == Category.TEMPO_MAP_CONFLICT
    assert result.diagnostics[0].is_fatal
