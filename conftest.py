"""Shared pytest fixtures for beatmap marathon tests."""

from __future__ import annotations

import pytest

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


def make_beatmap(version: str, hit_times, *, control_times=(0.0,), holds=()) -> Beatmap:
    """Build a beatmap with taps at hit_times, (start, duration) holds, and one point of each kind per control time."""
    hit_objects = [HitObject(start_time=float(time_ms)) for time_ms in hit_times]
    hit_objects += [
        HitObject(start_time=float(start_ms), kind=HitObjectKind.HOLD, duration=float(duration_ms), type_flags=128)
        for start_ms, duration_ms in holds
    ]
    control_points = ControlPoints(
        timing_points=[TimingPoint(time=float(time_ms)) for time_ms in control_times],
        effect_points=[EffectPoint(time=float(time_ms)) for time_ms in control_times],
        difficulty_points=[DifficultyPoint(time=float(time_ms)) for time_ms in control_times],
        sample_points=[SamplePoint(time=float(time_ms)) for time_ms in control_times],
    )
    return Beatmap(
        version=version,
        hit_objects=hit_objects,
        control_points=control_points,
        metadata={"Title": f"Song {version}"},
    )


@pytest.fixture
def map_a() -> Beatmap:
    """One tap at 1000 ms."""
    return make_beatmap("A", [1000.0])


@pytest.fixture
def map_b() -> Beatmap:
    """One tap at 0 ms."""
    return make_beatmap("B", [0.0])


@pytest.fixture
def map_c() -> Beatmap:
    """Taps at 0 and 250 ms plus a hold from 100 to 400 ms, control points at 0 and 200 ms."""
    return make_beatmap("C", [0.0, 250.0], control_times=(0.0, 200.0), holds=[(100.0, 300.0)])
