"""Tests for .osu parsing and writing."""

from __future__ import annotations

from pathlib import Path

import pytest

import osu_store
from beatmap_models import DifficultyPoint, EffectPoint, HitObjectKind, SamplePoint, TimingPoint
from demo_beatmap import build_demo_beatmap
from marathon import beatmap_duration, merge_with_gap

SAMPLE_OSU = """osu file format v14

[General]
AudioFilename: audio.mp3
Mode: 3

[Metadata]
Title:Song
Artist:Someone
Creator:mapper
Version:Hard
BeatmapID:123

[Difficulty]
HPDrainRate:5
CircleSize:4

[Events]
//Background and Video events
0,0,"bg.jpg",0,0

[TimingPoints]
0,500,4,2,0,60,1,0
1000,-50,4,2,0,60,0,1
2000,400,3,1,0,80,1,0

[HitObjects]
64,192,500,1,0,0:0:0:0:
192,192,1000,128,0,1500:0:0:0:0:
256,192,2000,2,0,B|300:100,1,100
256,192,3000,12,0,3500
"""


@pytest.fixture
def sample_beatmap():
    return osu_store.parse_beatmap_text(SAMPLE_OSU)


class TestParseBeatmapText:
    """Tests for parse_beatmap_text."""

    def test_header_and_metadata(self, sample_beatmap):
        assert sample_beatmap.format_version == 14
        assert sample_beatmap.version == "Hard"
        assert sample_beatmap.metadata == {"Title": "Song", "Artist": "Someone", "Creator": "mapper", "BeatmapID": "123"}
        assert sample_beatmap.difficulty == {"HPDrainRate": "5", "CircleSize": "4"}

    def test_raw_sections_are_kept(self, sample_beatmap):
        assert sample_beatmap.sections["General"] == ["AudioFilename: audio.mp3", "Mode: 3"]
        assert sample_beatmap.sections["Events"] == ["//Background and Video events", '0,0,"bg.jpg",0,0']

    def test_hit_object_kinds(self, sample_beatmap):
        kinds = [item.kind for item in sample_beatmap.hit_objects]
        assert kinds == [HitObjectKind.CIRCLE, HitObjectKind.HOLD, HitObjectKind.SLIDER, HitObjectKind.SPINNER]

    def test_hold_and_spinner_store_relative_duration(self, sample_beatmap):
        hold = sample_beatmap.hit_objects[1]
        spinner = sample_beatmap.hit_objects[3]

        assert hold.start_time == 1000.0
        assert hold.duration == 500.0
        assert hold.hit_sample == "0:0:0:0:"
        assert spinner.duration == 500.0

    def test_spinner_start_sets_duration(self, sample_beatmap):
        """The spinner starts after the hold ends, and its own length does not count."""
        assert beatmap_duration(sample_beatmap) == 3000.0

    def test_timing_lines_split_into_control_points(self, sample_beatmap):
        control_points = sample_beatmap.control_points

        assert control_points.timing_points == [
            TimingPoint(time=0.0, beat_length=500.0, meter=4),
            TimingPoint(time=2000.0, beat_length=400.0, meter=3),
        ]
        assert control_points.difficulty_points == [
            DifficultyPoint(time=0.0, slider_velocity=1.0),
            DifficultyPoint(time=1000.0, slider_velocity=2.0),
            DifficultyPoint(time=2000.0, slider_velocity=1.0),
        ]
        assert control_points.effect_points == [
            EffectPoint(time=0.0, kiai=False),
            EffectPoint(time=1000.0, kiai=True),
            EffectPoint(time=2000.0, kiai=False),
        ]
        # The 1000 ms line repeats the sample settings, so it adds no sample point.
        assert control_points.sample_points == [
            SamplePoint(time=0.0, sample_set=2, sample_index=0, volume=60),
            SamplePoint(time=2000.0, sample_set=1, sample_index=0, volume=80),
        ]

    def test_slider_velocity_is_clamped(self):
        beatmap = osu_store.parse_beatmap_text("osu file format v14\n[TimingPoints]\n0,500,4,0,0,100,1,0\n10,-5,4,0,0,100,0,0\n")
        assert beatmap.control_points.difficulty_points[-1].slider_velocity == 10.0

    def test_timing_line_after_inherited_line_keeps_velocity(self):
        """An uninherited line at the same time as an inherited line does not reset its velocity."""
        beatmap = osu_store.parse_beatmap_text("osu file format v14\n[TimingPoints]\n0,-50,4,0,0,100,0,0\n0,500,4,0,0,100,1,0\n")

        assert beatmap.control_points.timing_points == [TimingPoint(time=0.0, beat_length=500.0, meter=4)]
        assert beatmap.control_points.difficulty_points == [DifficultyPoint(time=0.0, slider_velocity=2.0)]

    def test_inherited_line_after_timing_line_sets_velocity(self):
        beatmap = osu_store.parse_beatmap_text("osu file format v14\n[TimingPoints]\n0,500,4,0,0,100,1,0\n0,-50,4,0,0,100,0,0\n")

        assert beatmap.control_points.difficulty_points == [DifficultyPoint(time=0.0, slider_velocity=2.0)]

    def test_missing_header_raises(self):
        with pytest.raises(osu_store.BeatmapParseError):
            osu_store.parse_beatmap_text("[HitObjects]\n64,192,500,1,0\n")

    def test_empty_text_raises(self):
        with pytest.raises(osu_store.BeatmapParseError):
            osu_store.parse_beatmap_text("\n\n")

    def test_bad_number_raises(self):
        with pytest.raises(osu_store.BeatmapParseError):
            osu_store.parse_beatmap_text("osu file format v14\n[HitObjects]\n64,192,soon,1,0\n")

    def test_hold_without_end_time_raises(self):
        with pytest.raises(osu_store.BeatmapValidationError):
            osu_store.parse_beatmap_text("osu file format v14\n[HitObjects]\n64,192,500,128,0\n")

    def test_unknown_type_raises(self):
        with pytest.raises(osu_store.BeatmapValidationError):
            osu_store.parse_beatmap_text("osu file format v14\n[HitObjects]\n64,192,500,0,0\n")

    def test_byte_order_mark_is_ignored(self):
        beatmap = osu_store.parse_beatmap_text("\ufeffosu file format v12\n[Metadata]\nVersion:Easy\n")
        assert beatmap.format_version == 12
        assert beatmap.version == "Easy"


class TestFormatBeatmap:
    """Tests for format_beatmap."""

    def test_lines_are_reproduced(self, sample_beatmap):
        text = osu_store.format_beatmap(sample_beatmap)

        for line in SAMPLE_OSU.splitlines():
            if line.strip():
                assert line in text.splitlines()

    def test_section_order(self, sample_beatmap):
        lines = osu_store.format_beatmap(sample_beatmap).splitlines()
        headers = [line for line in lines if line.startswith("[")]
        assert headers == ["[General]", "[Metadata]", "[Difficulty]", "[Events]", "[TimingPoints]", "[HitObjects]"]

    def test_reparse_is_equal(self, sample_beatmap):
        assert osu_store.parse_beatmap_text(osu_store.format_beatmap(sample_beatmap)) == sample_beatmap

    def test_demo_beatmap_reparse_is_equal(self):
        demo = build_demo_beatmap(difficulty="medium")
        assert osu_store.parse_beatmap_text(osu_store.format_beatmap(demo)) == demo

    def test_velocity_survives_timing_reset(self, sample_beatmap):
        """An inherited line follows an uninherited line when the active velocity is not 1."""
        text = "osu file format v14\n[TimingPoints]\n0,500,4,0,0,100,1,0\n0,-50,4,0,0,100,0,0\n"
        beatmap = osu_store.parse_beatmap_text(text)

        lines = osu_store.format_beatmap(beatmap).splitlines()

        assert "0,500,4,0,0,100,1,0" in lines
        assert "0,-50,4,0,0,100,0,0" in lines

    def test_merged_output_has_shifted_lines(self, sample_beatmap):
        merged = merge_with_gap([sample_beatmap, sample_beatmap], gap_ms=1000.0)
        lines = osu_store.format_beatmap(merged).splitlines()

        assert "Version:Hard Marathon (2 maps)" in lines
        # Second copy starts 3000 + 1000 ms later.
        assert "64,192,4500,1,0,0:0:0:0:" in lines
        assert "192,192,5000,128,0,5500:0:0:0:0:" in lines
        assert "4000,500,4,2,0,60,1,0" in lines


class TestLoadAndSave:
    """Tests for load_beatmap and save_beatmap."""

    def test_save_then_load(self, tmp_path: Path, sample_beatmap):
        output_path = tmp_path / "nested" / "out.osu"

        osu_store.save_beatmap(output_path, sample_beatmap)

        assert output_path.exists()
        assert osu_store.load_beatmap(output_path) == sample_beatmap

    def test_missing_file_raises(self, tmp_path: Path):
        with pytest.raises(osu_store.BeatmapParseError):
            osu_store.load_beatmap(tmp_path / "missing.osu")

    def test_invalid_utf8_raises(self, tmp_path: Path):
        bad_path = tmp_path / "bad.osu"
        bad_path.write_bytes(b"osu file format v14\n\xff\xfe\xfa")
        with pytest.raises(osu_store.BeatmapParseError):
            osu_store.load_beatmap(bad_path)

    def test_unwritable_directory_raises(self, tmp_path: Path, sample_beatmap):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory", encoding="utf-8")
        with pytest.raises(osu_store.BeatmapFileError):
            osu_store.save_beatmap(blocker / "out.osu", sample_beatmap)
