# -*- coding: utf-8 -*-
########################
# osu_store.py
########################
# Purpose:
# - Parse and write osu! .osu beatmap files.
# - Convert between .osu sections and the internal beatmap_models.Beatmap representation.
#
# Design notes:
# - Pure parsing and serialization. marathon.py never imports this module.
# - Parsing must be tolerant of minor format variance but never silently accept invalid lines.
# - Sections the merge does not interpret (General, Editor, Events, Colours, ...) are kept as raw lines.
# - One timing line yields up to four control points. Points equal to the previous point of the
#   same kind are dropped as redundant, matching how the game itself reads timing lines.
# - Hold and spinner end times are absolute in the file and relative (duration) in the model.
#
########################
# Interfaces:
# Public exceptions:
# - class BeatmapFileError(Exception)
# - class BeatmapParseError(BeatmapFileError)
# - class BeatmapValidationError(BeatmapFileError)
#
# Public functions:
# - parse_beatmap_text(beatmap_text: str, *, source_name: str = "<text>") -> Beatmap
# - load_beatmap(beatmap_path: pathlib.Path) -> Beatmap
# - format_beatmap(beatmap: Beatmap) -> str
# - save_beatmap(output_path: pathlib.Path, beatmap: Beatmap) -> None
#
# Inputs:
# - .osu file text (UTF-8, optional BOM).
#
# Outputs:
# - Beatmap for merging, or .osu text written to disk.
#
########################

from __future__ import annotations

import bisect
import dataclasses
import logging
import re
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from beatmap_models import (
    Beatmap,
    ControlPoints,
    DifficultyPoint,
    EffectPoint,
    HitObject,
    HitObjectKind,
    SamplePoint,
    TimingPoint,
)

logger = logging.getLogger(__name__)


class BeatmapFileError(Exception):
    """Base error for .osu parsing and serialization."""


class BeatmapParseError(BeatmapFileError):
    """Raised when the text cannot be parsed into expected .osu structure."""


class BeatmapValidationError(BeatmapFileError):
    """Raised when a line parses but cannot be represented in the beatmap model."""


_FORMAT_HEADER_PATTERN = re.compile(r"^osu file format v(\d+)\s*$")
_SECTION_PATTERN = re.compile(r"^\[([A-Za-z]+)\]\s*$")

_SECTION_ORDER = ["General", "Editor", "Metadata", "Difficulty", "Events", "TimingPoints", "Colours", "HitObjects"]

_METADATA_KEY_ORDER = [
    "Title",
    "TitleUnicode",
    "Artist",
    "ArtistUnicode",
    "Creator",
    "Version",
    "Source",
    "Tags",
    "BeatmapID",
    "BeatmapSetID",
]

_TYPE_CIRCLE = 1
_TYPE_SLIDER = 2
_TYPE_SPINNER = 8
_TYPE_HOLD = 128

_EFFECT_KIAI = 1
_EFFECT_OMIT_FIRST_BAR_LINE = 8

_MIN_SLIDER_VELOCITY = 0.1
_MAX_SLIDER_VELOCITY = 10.0


def _parse_float(text: str, *, what: str, line: str) -> float:
    try:
        return float(text.strip())
    except ValueError as exc:
        raise BeatmapParseError(f"Invalid {what} {text!r} in line {line!r}") from exc


def _parse_int(text: str, *, what: str, line: str, default: int) -> int:
    stripped = text.strip()
    if not stripped:
        return default
    try:
        return int(stripped)
    except ValueError:
        # Some editors write integral fields as floats.
        return int(_parse_float(stripped, what=what, line=line))


def _format_number(value: float) -> str:
    number = float(value)
    if number.is_integer():
        return str(int(number))
    return repr(number)


def _same_settings(previous, current) -> bool:
    return dataclasses.replace(previous, time=current.time) == current


def _add_control_point(points: List, point, *, replace_same_time: bool = True) -> None:
    """
    Append a point and drop it when it repeats the active settings.

    A later line at the same time replaces the earlier point unless replace_same_time
    is False, in which case the earlier point is kept.
    """
    if points and points[-1].time == point.time:
        if not replace_same_time:
            return
        points.pop()
    if points and _same_settings(points[-1], point):
        return
    points.append(point)


def _parse_timing_line(line: str, control_points: ControlPoints) -> None:
    parts = line.split(",")
    if len(parts) < 2:
        raise BeatmapParseError(f"Timing point needs at least time and beat length: {line!r}")

    def field_or_empty(index: int) -> str:
        return parts[index] if len(parts) > index else ""

    time_ms = _parse_float(parts[0], what="timing point time", line=line)
    beat_length = _parse_float(parts[1], what="beat length", line=line)
    meter = _parse_int(field_or_empty(2), what="meter", line=line, default=4)
    sample_set = _parse_int(field_or_empty(3), what="sample set", line=line, default=0)
    sample_index = _parse_int(field_or_empty(4), what="sample index", line=line, default=0)
    volume = _parse_int(field_or_empty(5), what="volume", line=line, default=100)
    uninherited = field_or_empty(6).strip() != "0"
    effects = _parse_int(field_or_empty(7), what="effects", line=line, default=0)

    if meter <= 0:
        meter = 4

    slider_velocity = 1.0
    if uninherited:
        control_points.timing_points.append(
            TimingPoint(
                time=time_ms,
                beat_length=beat_length,
                meter=meter,
                omit_first_bar_line=bool(effects & _EFFECT_OMIT_FIRST_BAR_LINE),
            )
        )
    elif beat_length < 0.0:
        slider_velocity = min(_MAX_SLIDER_VELOCITY, max(_MIN_SLIDER_VELOCITY, 100.0 / -beat_length))

    # An uninherited line carries no velocity of its own, so it must not reset the
    # velocity of an inherited line at the same time.
    _add_control_point(
        control_points.difficulty_points,
        DifficultyPoint(time=time_ms, slider_velocity=slider_velocity),
        replace_same_time=not uninherited,
    )
    _add_control_point(control_points.effect_points, EffectPoint(time=time_ms, kiai=bool(effects & _EFFECT_KIAI)))
    _add_control_point(
        control_points.sample_points,
        SamplePoint(time=time_ms, sample_set=sample_set, sample_index=sample_index, volume=volume),
    )


def _parse_hit_object_line(line: str) -> HitObject:
    parts = line.split(",")
    if len(parts) < 5:
        raise BeatmapParseError(f"Hit object needs at least x, y, time, type and hitsound: {line!r}")

    x = int(_parse_float(parts[0], what="x position", line=line))
    y = int(_parse_float(parts[1], what="y position", line=line))
    start_time = _parse_float(parts[2], what="hit object time", line=line)
    type_flags = _parse_int(parts[3], what="type", line=line, default=0)
    hit_sound = _parse_int(parts[4], what="hitsound", line=line, default=0)

    if type_flags & _TYPE_HOLD:
        if len(parts) < 6:
            raise BeatmapValidationError(f"Hold note is missing its end time: {line!r}")
        end_text, _, hit_sample = parts[5].partition(":")
        end_time = _parse_float(end_text, what="hold end time", line=line)
        return HitObject(
            start_time=start_time,
            kind=HitObjectKind.HOLD,
            duration=end_time - start_time,
            x=x,
            y=y,
            type_flags=type_flags,
            hit_sound=hit_sound,
            params="",
            hit_sample=hit_sample,
        )

    if type_flags & _TYPE_SPINNER:
        if len(parts) < 6:
            raise BeatmapValidationError(f"Spinner is missing its end time: {line!r}")
        end_time = _parse_float(parts[5], what="spinner end time", line=line)
        return HitObject(
            start_time=start_time,
            kind=HitObjectKind.SPINNER,
            duration=end_time - start_time,
            x=x,
            y=y,
            type_flags=type_flags,
            hit_sound=hit_sound,
            params="",
            hit_sample=parts[6] if len(parts) > 6 else "",
        )

    if type_flags & _TYPE_SLIDER:
        if len(parts) < 8:
            raise BeatmapValidationError(f"Slider needs curve, slides and length: {line!r}")
        return HitObject(
            start_time=start_time,
            kind=HitObjectKind.SLIDER,
            x=x,
            y=y,
            type_flags=type_flags,
            hit_sound=hit_sound,
            params=",".join(parts[5:10]),
            hit_sample=parts[10] if len(parts) > 10 else "",
        )

    if type_flags & _TYPE_CIRCLE:
        return HitObject(
            start_time=start_time,
            kind=HitObjectKind.CIRCLE,
            x=x,
            y=y,
            type_flags=type_flags,
            hit_sound=hit_sound,
            params="",
            hit_sample=parts[5] if len(parts) > 5 else "",
        )

    raise BeatmapValidationError(f"Unsupported hit object type {type_flags}: {line!r}")


def _parse_key_value(line: str) -> Optional[tuple]:
    if ":" not in line:
        return None
    key, value = line.split(":", 1)
    return key.strip(), value.strip()


def parse_beatmap_text(beatmap_text: str, *, source_name: str = "<text>") -> Beatmap:
    lines = beatmap_text.lstrip("\ufeff").splitlines()

    format_version: Optional[int] = None
    current_section: Optional[str] = None
    beatmap = Beatmap()

    for raw_line in lines:
        line = raw_line.rstrip()

        if format_version is None:
            if not line.strip():
                continue
            header_match = _FORMAT_HEADER_PATTERN.match(line.strip())
            if header_match is None:
                raise BeatmapParseError(f"Missing 'osu file format' header in {source_name}")
            format_version = int(header_match.group(1))
            continue

        section_match = _SECTION_PATTERN.match(line.strip())
        if section_match is not None:
            current_section = section_match.group(1)
            if current_section not in ("Metadata", "Difficulty", "TimingPoints", "HitObjects"):
                beatmap.sections.setdefault(current_section, [])
            continue

        if current_section is None:
            if line.strip():
                logger.warning("Skipping line outside any section in %s: %r", source_name, line)
            continue

        if current_section in ("Metadata", "Difficulty", "TimingPoints", "HitObjects"):
            stripped = line.strip()
            if not stripped or stripped.startswith("//"):
                continue

            if current_section == "TimingPoints":
                _parse_timing_line(stripped, beatmap.control_points)
            elif current_section == "HitObjects":
                beatmap.hit_objects.append(_parse_hit_object_line(stripped))
            else:
                pair = _parse_key_value(stripped)
                if pair is None:
                    logger.warning("Skipping malformed %s line in %s: %r", current_section, source_name, line)
                    continue
                key, value = pair
                if current_section == "Difficulty":
                    beatmap.difficulty[key] = value
                elif key == "Version":
                    beatmap.version = value
                else:
                    beatmap.metadata[key] = value
            continue

        beatmap.sections[current_section].append(line)

    if format_version is None:
        raise BeatmapParseError(f"Empty beatmap text in {source_name}")

    beatmap.format_version = format_version
    for section_name, section_lines in beatmap.sections.items():
        while section_lines and not section_lines[-1].strip():
            section_lines.pop()

    logger.debug(
        "Parsed %s: version=%r, %d hit objects, %d timing points",
        source_name,
        beatmap.version,
        len(beatmap.hit_objects),
        len(beatmap.control_points.timing_points),
    )
    return beatmap


def load_beatmap(beatmap_path: Path) -> Beatmap:
    try:
        beatmap_text = Path(beatmap_path).read_text(encoding="utf-8-sig")
    except UnicodeDecodeError as exc:
        raise BeatmapParseError(f"Beatmap is not valid UTF-8: {beatmap_path}") from exc
    except OSError as exc:
        raise BeatmapParseError(f"Failed to read beatmap: {beatmap_path}") from exc

    return parse_beatmap_text(beatmap_text, source_name=str(beatmap_path))


def _active_at(points: Sequence, times: Sequence[float], time_ms: float):
    index = bisect.bisect_right(times, time_ms) - 1
    if index < 0:
        return None
    return points[index]


def _format_timing_lines(control_points: ControlPoints) -> List[str]:
    """Fold the four control point lists back into .osu timing lines.

    An uninherited line is written for every timing point. An inherited line
    is written wherever another kind changes without a timing point, or where
    a non-default slider velocity must survive the reset an uninherited line causes.
    """
    timing_points = sorted(control_points.timing_points, key=lambda point: point.time)
    difficulty_points = sorted(control_points.difficulty_points, key=lambda point: point.time)
    effect_points = sorted(control_points.effect_points, key=lambda point: point.time)
    sample_points = sorted(control_points.sample_points, key=lambda point: point.time)

    timing_times = [point.time for point in timing_points]
    difficulty_times = [point.time for point in difficulty_points]
    effect_times = [point.time for point in effect_points]
    sample_times = [point.time for point in sample_points]

    all_times = sorted(set(timing_times) | set(difficulty_times) | set(effect_times) | set(sample_times))

    lines: List[str] = []
    for time_ms in all_times:
        active_timing = _active_at(timing_points, timing_times, time_ms)
        active_difficulty = _active_at(difficulty_points, difficulty_times, time_ms)
        active_effect = _active_at(effect_points, effect_times, time_ms)
        active_sample = _active_at(sample_points, sample_times, time_ms) or SamplePoint(time=time_ms)

        meter = active_timing.meter if active_timing is not None else 4
        slider_velocity = active_difficulty.slider_velocity if active_difficulty is not None else 1.0
        kiai_bit = _EFFECT_KIAI if (active_effect is not None and active_effect.kiai) else 0
        sample_fields = f"{active_sample.sample_set},{active_sample.sample_index},{active_sample.volume}"

        timing_here = [
            timing_points[index]
            for index in range(bisect.bisect_left(timing_times, time_ms), bisect.bisect_right(timing_times, time_ms))
        ]
        for timing_point in timing_here:
            effects = kiai_bit | (_EFFECT_OMIT_FIRST_BAR_LINE if timing_point.omit_first_bar_line else 0)
            lines.append(
                f"{_format_number(time_ms)},{_format_number(timing_point.beat_length)},{timing_point.meter},"
                f"{sample_fields},1,{effects}"
            )

        if not timing_here or slider_velocity != 1.0:
            lines.append(
                f"{_format_number(time_ms)},{_format_number(-100.0 / slider_velocity)},{meter},"
                f"{sample_fields},0,{kiai_bit}"
            )

    return lines


def _format_hit_object(hit_object: HitObject) -> str:
    fields = [
        str(int(hit_object.x)),
        str(int(hit_object.y)),
        _format_number(hit_object.start_time),
        str(int(hit_object.type_flags)),
        str(int(hit_object.hit_sound)),
    ]
    end_time_text = _format_number(float(hit_object.start_time) + float(hit_object.duration))

    if hit_object.kind is HitObjectKind.HOLD:
        fields.append(f"{end_time_text}:{hit_object.hit_sample}")
    elif hit_object.kind is HitObjectKind.SPINNER:
        fields.append(end_time_text)
        if hit_object.hit_sample:
            fields.append(hit_object.hit_sample)
    elif hit_object.kind is HitObjectKind.SLIDER:
        fields.append(hit_object.params)
        if hit_object.hit_sample:
            fields.append(hit_object.hit_sample)
    elif hit_object.hit_sample:
        fields.append(hit_object.hit_sample)

    return ",".join(fields)


def _format_metadata_lines(beatmap: Beatmap) -> List[str]:
    entries: Dict[str, str] = dict(beatmap.metadata)
    entries["Version"] = beatmap.version

    ordered_keys = [key for key in _METADATA_KEY_ORDER if key in entries]
    ordered_keys += [key for key in entries if key not in _METADATA_KEY_ORDER]
    return [f"{key}:{entries[key]}" for key in ordered_keys]


def format_beatmap(beatmap: Beatmap) -> str:
    section_bodies: Dict[str, List[str]] = {name: list(body) for name, body in beatmap.sections.items()}
    section_bodies["Metadata"] = _format_metadata_lines(beatmap)
    section_bodies["Difficulty"] = [f"{key}:{value}" for key, value in beatmap.difficulty.items()]
    section_bodies["TimingPoints"] = _format_timing_lines(beatmap.control_points)
    section_bodies["HitObjects"] = [_format_hit_object(hit_object) for hit_object in beatmap.hit_objects]

    ordered_names = [name for name in _SECTION_ORDER if name in section_bodies and name != "HitObjects"]
    ordered_names += [name for name in section_bodies if name not in _SECTION_ORDER]
    ordered_names.append("HitObjects")

    lines: List[str] = [f"osu file format v{int(beatmap.format_version)}", ""]
    for name in ordered_names:
        lines.append(f"[{name}]")
        lines.extend(section_bodies[name])
        lines.append("")

    return "\n".join(lines)


def save_beatmap(output_path: Path, beatmap: Beatmap) -> None:
    output_path = Path(output_path)
    try:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(format_beatmap(beatmap), encoding="utf-8")
    except OSError as exc:
        raise BeatmapFileError(f"Failed to write beatmap: {output_path}") from exc

    logger.debug("Saved %s: %d hit objects", output_path, len(beatmap.hit_objects))
