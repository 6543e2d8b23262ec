from __future__ import annotations

import argparse
import asyncio
import json
import logging
from dataclasses import asdict, is_dataclass
from enum import Enum
from pathlib import Path

import cv2
import numpy as np

from deskwatch.core.analytics.pipeline import MonitorPipeline
from deskwatch.core.detectors.yolo import DEFAULT_MODEL, NullDetector, YoloDeskDetector
from deskwatch.core.timeutil import ManualClock, format_duration

FALLBACK_FPS = 30.0


def _to_jsonable(obj):
    if is_dataclass(obj):
        return _to_jsonable(asdict(obj))
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, np.ndarray):
        return obj.tolist()
    if isinstance(obj, dict):
        return {str(k): _to_jsonable(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_to_jsonable(v) for v in obj]
    return obj


async def _replay(cap: cv2.VideoCapture, pipeline: MonitorPipeline, clock: ManualClock, args) -> list:
    fps = float(cap.get(cv2.CAP_PROP_FPS) or 0.0)
    frame_ms = 1000.0 / (fps if fps > 0 else FALLBACK_FPS)
    frames = []
    while True:
        ok, frame = cap.read()
        if not ok:
            break
        result = await pipeline.process_frame(frame)
        clock.advance(frame_ms)
        if result is not None:
            frames.append(_to_jsonable(result))
        if args.max_frames and len(frames) >= args.max_frames:
            break
    return frames


def run(args):
    """Replay a recorded video through a monitoring session on a simulated clock.

    Frame timestamps follow the video's own frame rate, so a one-hour clip
    accounts one hour of desk time regardless of inference speed.
    """

    cap = cv2.VideoCapture(args.input)
    if not cap.isOpened():
        raise SystemExit(f"Cannot open video {args.input}")
    detector = NullDetector() if args.mock else YoloDeskDetector(args.model, conf=args.conf)
    clock = ManualClock(args.start_ms)
    pipeline = MonitorPipeline(
        detector=detector,
        clock=clock,
        person_confidence=args.person_conf,
        head_confidence=args.head_conf,
        head_match_iou=args.head_iou,
        status_window=args.window,
    )
    try:
        frames = asyncio.run(_replay(cap, pipeline, clock, args))
    finally:
        cap.release()
    pipeline.close()

    outputs = {"frames": frames, **pipeline.export_snapshot()}
    out_path = Path(args.output)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    with open(out_path, "w", encoding="utf-8") as f:
        json.dump(outputs, f, indent=2)

    ledger = outputs["ledger"]
    print(
        f"Wrote {len(frames)} frame results to {out_path} "
        f"(working {format_duration(ledger['workingTime'])}, "
        f"idle {format_duration(ledger['idleTime'])}, "
        f"productivity {ledger['overallProductivity']:.1f}%)"
    )


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Replay a video through the desk monitor")
    parser.add_argument("--input", required=True, help="Path to video file")
    parser.add_argument("--output", required=True, help="Where to save JSON output")
    parser.add_argument("--model", default=DEFAULT_MODEL)
    parser.add_argument("--conf", type=float, default=0.25, help="Detector confidence floor")
    parser.add_argument("--person-conf", type=float, default=0.40)
    parser.add_argument("--head-conf", type=float, default=0.30)
    parser.add_argument("--head-iou", type=float, default=0.1)
    parser.add_argument("--window", type=int, default=30, help="Smoothing window in frames")
    parser.add_argument(
        "--start-ms", type=float, default=0.0, help="Simulated clock start (epoch ms)"
    )
    parser.add_argument("--max-frames", type=int, default=0, help="Limit frames for quick tests")
    parser.add_argument(
        "--mock", action="store_true", help="Use a detector that sees nobody (no model download)"
    )
    parser.add_argument("--log-level", default="WARNING")
    cli_args = parser.parse_args()
    logging.basicConfig(level=cli_args.log_level.upper())
    run(cli_args)
