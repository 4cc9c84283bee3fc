# demo_beatmap.py
from __future__ import annotations

from typing import List

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

_LANE_COUNT = 4
_PLAYFIELD_WIDTH = 512


def _lane_x(lane: int) -> int:
    # osu!mania maps x to a column by dividing the playfield width evenly.
    column_width = _PLAYFIELD_WIDTH // _LANE_COUNT
    return lane * column_width + column_width // 2


def build_demo_beatmap(*, difficulty: str, start_ms: float = 1000.0) -> Beatmap:
    normalized_difficulty = (difficulty or "easy").strip().lower() or "easy"

    if normalized_difficulty == "hard":
        beat_length_ms = 400.0
        total_notes = 32
    elif normalized_difficulty == "medium":
        beat_length_ms = 500.0
        total_notes = 24
    else:
        normalized_difficulty = "easy"
        beat_length_ms = 600.0
        total_notes = 16

    # Deterministic lane pattern that covers all lanes.
    lane_pattern = [
        0, 1, 2, 3,
        1, 0, 3, 2,
        0, 2, 1, 3,
        2, 3, 0, 1,
    ]

    hit_objects: List[HitObject] = []
    current_time_ms = float(start_ms)

    for note_index in range(total_notes):
        lane = lane_pattern[note_index % len(lane_pattern)]
        if note_index % 8 == 7:
            hit_objects.append(
                HitObject(
                    start_time=current_time_ms,
                    kind=HitObjectKind.HOLD,
                    duration=beat_length_ms * 1.5,
                    x=_lane_x(lane),
                    type_flags=128,
                )
            )
            current_time_ms += beat_length_ms * 2.0
            continue

        hit_objects.append(HitObject(start_time=current_time_ms, x=_lane_x(lane), type_flags=1))
        current_time_ms += beat_length_ms

    kiai_start_ms = float(start_ms) + beat_length_ms * (total_notes // 2)
    control_points = ControlPoints(
        timing_points=[TimingPoint(time=float(start_ms), beat_length=beat_length_ms, meter=4)],
        effect_points=[EffectPoint(time=float(start_ms), kiai=False), EffectPoint(time=kiai_start_ms, kiai=True)],
        difficulty_points=[DifficultyPoint(time=float(start_ms), slider_velocity=1.0)],
        sample_points=[SamplePoint(time=float(start_ms), sample_set=1, sample_index=0, volume=70)],
    )

    return Beatmap(
        version=normalized_difficulty.capitalize(),
        hit_objects=hit_objects,
        control_points=control_points,
        metadata={
            "Title": f"Demo {normalized_difficulty}",
            "Artist": "Beatmap Marathon",
            "Creator": "demo",
        },
        difficulty={"HPDrainRate": "5", "CircleSize": str(_LANE_COUNT), "OverallDifficulty": "5"},
        sections={"General": ["AudioFilename: audio.mp3", "Mode: 3"]},
    )
