from __future__ import annotations

import argparse
import json
import logging
from dataclasses import asdict
from pathlib import Path

import cv2

from pawtrack.core.analytics.pipeline import ActivityPipeline
from pawtrack.core.analytics.statistics import compute_statistics
from pawtrack.core.detectors.yolo import YoloObjectDetector
from pawtrack.core.types import ActivityEvent
from pawtrack.core.zones import ZoneRegistry


class _DummyDetector:
    def detect(self, frame):  # pragma: no cover - trivial
        return []


def _parse_point(value: str) -> tuple[float, float]:
    try:
        x, y = value.split(",")
        return float(x), float(y)
    except ValueError:
        raise argparse.ArgumentTypeError("expected x,y") from None


def _event_to_json(event: ActivityEvent) -> dict:
    data = asdict(event)
    data["activity"] = event.activity.value
    return data


def run(args):
    cap = cv2.VideoCapture(args.input)
    if not cap.isOpened():
        raise SystemExit(f"Cannot open video {args.input}")
    detector = (
        _DummyDetector()
        if args.mock
        else YoloObjectDetector(args.model, conf=args.conf)
    )
    zones = ZoneRegistry({"food": args.food, "water": args.water, "bed": args.bed})
    pipeline = ActivityPipeline(
        detector,
        source_id=Path(args.input).name,
        subject_name=args.pet_name,
        zones=zones,
    )
    events: list[ActivityEvent] = []
    pipeline.events.subscribe(events.append)

    frames = 0
    try:
        while True:
            ok, frame = cap.read()
            if not ok:
                break
            pipeline.process(frame)
            frames += 1
            if args.max_frames and frames >= args.max_frames:
                break
    finally:
        cap.release()

    stats = compute_statistics(events, events[-1:])
    out_path = Path(args.output)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    with open(out_path, "w", encoding="utf-8") as f:
        json.dump(
            {
                "frames": frames,
                "events": [_event_to_json(e) for e in events],
                "statistics": {name: asdict(s) for name, s in stats.items()},
            },
            f,
            indent=2,
        )
    print(f"Wrote {len(events)} activity events from {frames} frames to {out_path}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Classify pet activity in a video")
    parser.add_argument("--input", required=True, help="Path to video file")
    parser.add_argument("--output", required=True, help="Where to save JSON output")
    parser.add_argument("--model", default="yolo11n.pt")
    parser.add_argument("--conf", type=float, default=0.5)
    parser.add_argument("--pet-name", default="My Dog")
    parser.add_argument("--food", type=_parse_point, default=None, help="Food zone as x,y")
    parser.add_argument("--water", type=_parse_point, default=None, help="Water zone as x,y")
    parser.add_argument("--bed", type=_parse_point, default=None, help="Bed zone as x,y")
    parser.add_argument("--max-frames", type=int, default=0, help="Limit frames for quick tests")
    parser.add_argument(
        "--mock", action="store_true", help="Use dummy detector (no model download)"
    )
    parser.add_argument("--log-level", default="INFO")
    cli_args = parser.parse_args()
    logging.basicConfig(level=cli_args.log_level.upper())
    run(cli_args)
