# -*- coding: utf-8 -*-
########################
# marathon.py
########################
# Purpose:
# - Merge an ordered sequence of beatmaps into one marathon beatmap that plays them back-to-back.
# - Compute the playable duration of a single beatmap.
#
# Key Logic:
# - The first beatmap is deep copied and used as the accumulation base.
# - Every later beatmap has all five timed collections shifted by a running offset and appended.
# - Uniform-gap merging folds the gap into the offset advance after each map.
# - Transition merging adds the per-pair gap before shifting the next map.
#   Both place maps identically but the operand grouping differs and is kept exactly.
# - After appending, all five collections are stably sorted by time and the label is rewritten.
#
# Design notes:
# - Inputs are never mutated. Timed elements are frozen and copied with dataclasses.replace.
# - Negative times and durations pass through unvalidated.
# - NaN times are a detectable failure (UnorderableTimeError) rather than undefined ordering.
# - No module level mutable state. No file I/O.
#
########################
# Interfaces:
# Public exceptions:
# - class MarathonError(Exception)
# - class EmptyInputError(MarathonError)
# - class TransitionCountMismatchError(MarathonError)
# - class UnorderableTimeError(MarathonError)
#
# Public functions:
# - beatmap_duration(beatmap: Beatmap) -> float
# - merge_with_gap(beatmaps: Sequence[Beatmap], gap_ms: Optional[float] = None) -> Beatmap
# - merge_with_transitions(beatmaps: Sequence[Beatmap], transitions: Optional[Sequence[float]] = None) -> Beatmap
#
# Inputs:
# - Beatmaps produced by osu_store.py or built in memory.
#
# Outputs:
# - A new Beatmap owned by the caller, ready for osu_store.save_beatmap.
#
########################
# Smoke Tests:
#   - python marathon.py
########################

from __future__ import annotations

import copy
import dataclasses
import logging
import math
from typing import List, Optional, Sequence

from beatmap_models import Beatmap, HitObject

logger = logging.getLogger(__name__)


class MarathonError(Exception):
    """Base error for marathon merging."""


class EmptyInputError(MarathonError):
    """Raised when no beatmaps are supplied to a merge."""


class TransitionCountMismatchError(MarathonError):
    """Raised when the transition list length is not exactly one less than the beatmap count."""


class UnorderableTimeError(MarathonError):
    """Raised when a timed collection contains a NaN time and cannot be ordered."""


def beatmap_duration(beatmap: Beatmap) -> float:
    """Return the playable length of a beatmap in milliseconds.

    This is the latest end time over all hit objects (hold notes count their
    sustain), or 0.0 when the beatmap has no hit objects. Negative values are
    not clamped.
    """
    if not beatmap.hit_objects:
        return 0.0
    return max(hit_object.end_time() for hit_object in beatmap.hit_objects)


def _append_shifted(result: Beatmap, source: Beatmap, offset_ms: float) -> None:
    for hit_object in source.hit_objects:
        result.hit_objects.append(dataclasses.replace(hit_object, start_time=hit_object.start_time + offset_ms))

    result_collections = result.control_points.collections()
    for name, points in source.control_points.collections().items():
        target_points = result_collections[name]
        for point in points:
            target_points.append(dataclasses.replace(point, time=point.time + offset_ms))


def _hit_object_time(hit_object: HitObject) -> float:
    return hit_object.start_time


def _point_time(point) -> float:
    return point.time


def _sort_by_time(items: List, *, collection_name: str, time_of) -> None:
    for item in items:
        if math.isnan(time_of(item)):
            raise UnorderableTimeError(f"NaN time in {collection_name}: {item!r}")
    items.sort(key=time_of)


def _finalize(result: Beatmap, *, map_count: int) -> Beatmap:
    _sort_by_time(result.hit_objects, collection_name="hit_objects", time_of=_hit_object_time)
    for name, points in result.control_points.collections().items():
        _sort_by_time(points, collection_name=name, time_of=_point_time)

    result.version = f"{result.version} Marathon ({map_count} maps)"

    logger.info(
        "Merged %d beatmaps into %r: %d hit objects, %d timing points",
        map_count,
        result.version,
        len(result.hit_objects),
        len(result.control_points.timing_points),
    )
    return result


def merge_with_gap(beatmaps: Sequence[Beatmap], gap_ms: Optional[float] = None) -> Beatmap:
    """Concatenate beatmaps with the same gap between every consecutive pair."""
    if not beatmaps:
        raise EmptyInputError("Cannot merge an empty sequence of beatmaps")

    gap = float(gap_ms) if gap_ms is not None else 0.0
    result = copy.deepcopy(beatmaps[0])

    if len(beatmaps) == 1:
        return result

    offset_ms = beatmap_duration(result) + gap
    logger.debug("Uniform merge of %d beatmaps, gap=%.3f ms", len(beatmaps), gap)

    for index, beatmap in enumerate(beatmaps[1:], start=1):
        logger.debug("Appending beatmap %d (%r) at offset %.3f ms", index, beatmap.version, offset_ms)
        _append_shifted(result, beatmap, offset_ms)
        offset_ms += beatmap_duration(beatmap) + gap

    return _finalize(result, map_count=len(beatmaps))


def merge_with_transitions(
    beatmaps: Sequence[Beatmap],
    transitions: Optional[Sequence[float]] = None,
) -> Beatmap:
    """Concatenate beatmaps with an explicit gap before each beatmap after the first."""
    if not beatmaps:
        raise EmptyInputError("Cannot merge an empty sequence of beatmaps")

    expected_count = len(beatmaps) - 1
    transition_values = [float(value) for value in transitions] if transitions is not None else [0.0] * expected_count
    if len(transition_values) != expected_count:
        raise TransitionCountMismatchError(
            f"Expected {expected_count} transitions for {len(beatmaps)} beatmaps, got {len(transition_values)}"
        )

    result = copy.deepcopy(beatmaps[0])

    if len(beatmaps) == 1:
        return result

    offset_ms = beatmap_duration(result)
    logger.debug("Transition merge of %d beatmaps, transitions=%r", len(beatmaps), transition_values)

    for index, beatmap in enumerate(beatmaps[1:], start=1):
        offset_ms += transition_values[index - 1]
        logger.debug("Appending beatmap %d (%r) at offset %.3f ms", index, beatmap.version, offset_ms)
        _append_shifted(result, beatmap, offset_ms)
        offset_ms += beatmap_duration(beatmap)

    return _finalize(result, map_count=len(beatmaps))


def _run_unit_tests() -> None:
    from beatmap_models import ControlPoints, HitObjectKind, TimingPoint

    first = Beatmap(
        version="Easy",
        hit_objects=[HitObject(start_time=1000.0)],
        control_points=ControlPoints(timing_points=[TimingPoint(time=0.0)]),
    )
    second = Beatmap(
        version="Hard",
        hit_objects=[HitObject(start_time=0.0), HitObject(start_time=200.0, kind=HitObjectKind.HOLD, duration=300.0)],
        control_points=ControlPoints(timing_points=[TimingPoint(time=0.0)]),
    )

    assert beatmap_duration(Beatmap()) == 0.0
    assert beatmap_duration(second) == 500.0

    merged = merge_with_gap([first, second], gap_ms=500.0)
    assert [item.start_time for item in merged.hit_objects] == [1000.0, 1500.0, 1700.0]
    assert [item.time for item in merged.control_points.timing_points] == [0.0, 1500.0]
    assert merged.version == "Easy Marathon (2 maps)"
    assert second.hit_objects[0].start_time == 0.0

    same = merge_with_transitions([first, second], [500.0])
    assert [item.start_time for item in same.hit_objects] == [1000.0, 1500.0, 1700.0]

    try:
        merge_with_transitions([first, second, first], [100.0])
    except TransitionCountMismatchError:
        pass
    else:
        raise AssertionError("Expected TransitionCountMismatchError")

    try:
        merge_with_gap([])
    except EmptyInputError:
        pass
    else:
        raise AssertionError("Expected EmptyInputError")


if __name__ == "__main__":
    _run_unit_tests()
    print("marathon.py: ok")
