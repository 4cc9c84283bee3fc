"""
marathon_cli.py

Command line entrypoint that merges .osu beatmaps into one marathon beatmap.

Integration
- Loads config (merge mode, default gap, output location, logging)
- Reads input beatmaps with osu_store, or builds demo beatmaps with --demo
- Merges with marathon.merge_with_gap or marathon.merge_with_transitions
- Writes the result with osu_store and prints a JSON summary

Exit codes
- 0 on success
- 2 on invalid input, unreadable files or invalid config
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional, Sequence

import marathon
import osu_store
from beatmap_models import Beatmap
from config import AppConfig, load_config
from demo_beatmap import build_demo_beatmap

logger = logging.getLogger(__name__)


def configure_logging(level: str, format_string: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format=format_string,
        handlers=[logging.StreamHandler(sys.stderr)],
        force=True,
    )


def _parse_transitions(transitions_text: str) -> List[float]:
    values: List[float] = []
    for item in transitions_text.split(","):
        item_text = item.strip()
        if not item_text:
            continue
        try:
            values.append(float(item_text))
        except ValueError as exc:
            raise ValueError(f"Invalid transition value: {item_text!r}") from exc
    return values


def _default_output_path(*, first_input: Optional[Path], app_config: AppConfig) -> Path:
    stem = first_input.stem if first_input is not None else "demo"
    file_name = f"{stem}{app_config.output.file_name_suffix}.osu"

    if app_config.output.directory:
        return Path(app_config.output.directory) / file_name
    if first_input is not None:
        return first_input.parent / file_name
    return Path.cwd() / file_name


def _load_inputs(input_paths: Sequence[Path], *, demo: bool) -> List[Beatmap]:
    if demo:
        return [
            build_demo_beatmap(difficulty="easy"),
            build_demo_beatmap(difficulty="medium"),
            build_demo_beatmap(difficulty="hard"),
        ]
    return [osu_store.load_beatmap(input_path) for input_path in input_paths]


def _merge(beatmaps: List[Beatmap], *, app_config: AppConfig, gap_ms: Optional[float], transitions: Optional[List[float]]) -> Beatmap:
    if transitions is not None:
        return marathon.merge_with_transitions(beatmaps, transitions)

    gap_value = gap_ms if gap_ms is not None else app_config.merge.default_gap_ms
    if app_config.merge.mode == "transitions":
        # No explicit list given: every transition uses the same gap.
        return marathon.merge_with_transitions(beatmaps, [gap_value] * max(0, len(beatmaps) - 1))

    return marathon.merge_with_gap(beatmaps, gap_value)


def build_argument_parser() -> argparse.ArgumentParser:
    argument_parser = argparse.ArgumentParser(description="Merge .osu beatmaps into one back-to-back marathon beatmap.")
    argument_parser.add_argument("inputs", nargs="*", type=Path, help="Input .osu files, in play order.")
    argument_parser.add_argument("-o", "--output", type=Path, default=None, help="Output .osu path.")
    argument_parser.add_argument("--gap-ms", type=float, default=None, help="Uniform gap between beatmaps in milliseconds.")
    argument_parser.add_argument(
        "--transitions",
        default=None,
        help="Comma separated per-pair gaps in milliseconds. Must hold one value fewer than the number of inputs.",
    )
    argument_parser.add_argument("--config", type=Path, default=None, help="Path to a marathon_config.json file.")
    argument_parser.add_argument("--verbose", action="store_true", help="Log at DEBUG level.")
    argument_parser.add_argument("--demo", action="store_true", help="Merge three built-in demo beatmaps instead of reading inputs.")
    return argument_parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parsed_args = build_argument_parser().parse_args(argv)

    try:
        app_config, _config_path = load_config(parsed_args.config)
    except (OSError, ValueError) as exception:
        print(json.dumps({"ok": False, "error": str(exception)}, ensure_ascii=False, indent=2))
        return 2

    configure_logging("DEBUG" if parsed_args.verbose else app_config.logging.level, app_config.logging.format)

    input_paths = [Path(path) for path in parsed_args.inputs]
    if not parsed_args.demo and not input_paths:
        print(json.dumps({"ok": False, "error": "No input beatmaps given (pass .osu paths or --demo)"}, ensure_ascii=False, indent=2))
        return 2

    try:
        transitions = _parse_transitions(parsed_args.transitions) if parsed_args.transitions is not None else None
        beatmaps = _load_inputs(input_paths, demo=bool(parsed_args.demo))
        merged = _merge(beatmaps, app_config=app_config, gap_ms=parsed_args.gap_ms, transitions=transitions)

        output_path = parsed_args.output
        if output_path is None:
            output_path = _default_output_path(
                first_input=None if parsed_args.demo else input_paths[0],
                app_config=app_config,
            )
        osu_store.save_beatmap(output_path, merged)
    except (marathon.MarathonError, osu_store.BeatmapFileError, ValueError) as exception:
        logger.debug("Merge failed", exc_info=True)
        print(json.dumps({"ok": False, "error": str(exception)}, ensure_ascii=False, indent=2))
        return 2

    output_payload = {
        "ok": True,
        "output_path": str(output_path),
        "version": merged.version,
        "map_count": len(beatmaps),
        "hit_object_count": len(merged.hit_objects),
        "duration_ms": marathon.beatmap_duration(merged),
    }
    print(json.dumps(output_payload, ensure_ascii=False, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
