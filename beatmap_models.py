# -*- coding: utf-8 -*-
########################
# beatmap_models.py
########################
# Purpose:
# - Core data models for beatmaps: hit objects, the four control point lists, and the Beatmap container.
# - Shared by marathon.py (merging), osu_store.py (file I/O) and demo_beatmap.py.
#
# Design notes:
# - Timed elements are frozen dataclasses. Shifting creates new instances via dataclasses.replace.
# - Beatmap itself is mutable: a merge result is seeded as a deep copy and extended in place.
# - Non-timed metadata is carried verbatim so it survives a merge untouched.
# - No file I/O here. Pure data definitions.
#
########################
# Interfaces:
# Public enums:
# - class HitObjectKind(enum.Enum): CIRCLE | SLIDER | SPINNER | HOLD
#
# Public dataclasses:
# - HitObject(start_time: float, kind: HitObjectKind, duration: float, x: int, y: int,
#             type_flags: int, hit_sound: int, params: str, hit_sample: str)
#   - end_time() -> float
# - TimingPoint(time: float, beat_length: float, meter: int, omit_first_bar_line: bool)
# - EffectPoint(time: float, kiai: bool)
# - DifficultyPoint(time: float, slider_velocity: float)
# - SamplePoint(time: float, sample_set: int, sample_index: int, volume: int)
# - ControlPoints(timing_points, effect_points, difficulty_points, sample_points)
#   - collections() -> dict[str, list]
# - Beatmap(version: str, hit_objects: list[HitObject], control_points: ControlPoints,
#           format_version: int, metadata: dict[str, str], difficulty: dict[str, str],
#           sections: dict[str, list[str]])
#
# Inputs/Outputs:
# - Times and durations are floating-point milliseconds.
#
########################

from __future__ import annotations

from dataclasses import dataclass, field
import enum
from typing import Dict, List


class HitObjectKind(enum.Enum):
    CIRCLE = "circle"
    SLIDER = "slider"
    SPINNER = "spinner"
    HOLD = "hold"


@dataclass(frozen=True)
class HitObject:
    start_time: float
    kind: HitObjectKind = HitObjectKind.CIRCLE
    # Only HOLD lengths count towards playable duration. SPINNER keeps its length for serialization.
    duration: float = 0.0
    x: int = 256
    y: int = 192
    type_flags: int = 1
    hit_sound: int = 0
    params: str = ""
    hit_sample: str = "0:0:0:0:"

    def end_time(self) -> float:
        if self.kind is HitObjectKind.HOLD:
            return float(self.start_time) + float(self.duration)
        return float(self.start_time)


@dataclass(frozen=True)
class TimingPoint:
    time: float
    beat_length: float = 500.0
    meter: int = 4
    omit_first_bar_line: bool = False


@dataclass(frozen=True)
class EffectPoint:
    time: float
    kiai: bool = False


@dataclass(frozen=True)
class DifficultyPoint:
    time: float
    slider_velocity: float = 1.0


@dataclass(frozen=True)
class SamplePoint:
    time: float
    sample_set: int = 0
    sample_index: int = 0
    volume: int = 100


@dataclass
class ControlPoints:
    timing_points: List[TimingPoint] = field(default_factory=list)
    effect_points: List[EffectPoint] = field(default_factory=list)
    difficulty_points: List[DifficultyPoint] = field(default_factory=list)
    sample_points: List[SamplePoint] = field(default_factory=list)

    def collections(self) -> Dict[str, list]:
        """Name -> list mapping of the four control point lists, in a fixed order."""
        return {
            "timing_points": self.timing_points,
            "effect_points": self.effect_points,
            "difficulty_points": self.difficulty_points,
            "sample_points": self.sample_points,
        }


@dataclass
class Beatmap:
    version: str = ""
    hit_objects: List[HitObject] = field(default_factory=list)
    control_points: ControlPoints = field(default_factory=ControlPoints)
    format_version: int = 14
    metadata: Dict[str, str] = field(default_factory=dict)
    difficulty: Dict[str, str] = field(default_factory=dict)
    sections: Dict[str, List[str]] = field(default_factory=dict)
