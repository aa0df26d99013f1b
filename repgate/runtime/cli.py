# repgate/runtime/cli.py
from __future__ import annotations
import argparse
import dataclasses
import sys
import time
from typing import List, Optional

from repgate.common.config import get_settings, setup_logging
from repgate.counter.exercises import EXERCISES, UnknownExerciseError
from repgate.counter.session import RepSessionManager


def _print_event(ev: dict):
    kind = ev.get("type")
    if kind == "rep":
        print(f"rep {ev['count']}", flush=True)
    elif kind == "status":
        print(f"  {ev['message']}", flush=True)
    elif kind == "stage":
        print(f"  [{ev['stage']}]", flush=True)
    elif kind == "trace" and ev.get("msg", "").startswith("pipeline error"):
        print(ev["msg"], file=sys.stderr, flush=True)


def build_parser() -> argparse.ArgumentParser:
    settings = get_settings()
    p = argparse.ArgumentParser(prog="repgate-camera", description="Count reps from the local webcam.")
    p.add_argument("--exercise", default=settings.default_exercise,
                   help=f"one of: {', '.join(EXERCISES)}")
    p.add_argument("--camera", type=int, default=settings.camera_index, help="OpenCV camera index")
    p.add_argument("--max-fps", type=float, default=settings.max_fps)
    p.add_argument("--show", action="store_true", default=settings.show_window, help="show a preview window")
    return p


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = dataclasses.replace(
        get_settings(), camera_index=args.camera, max_fps=args.max_fps, show_window=args.show
    )
    setup_logging(settings.log_level)

    mgr = RepSessionManager(settings=settings)
    mgr.set_event_sink(_print_event)
    try:
        mgr.start(exercise=args.exercise, source="camera")
    except UnknownExerciseError as e:
        print(f"Error: {e.args[0]}", file=sys.stderr)
        return 2

    print("Counting. Press Ctrl+C to finish.", flush=True)
    try:
        while mgr.active_pipeline is not None:
            time.sleep(0.2)
    except KeyboardInterrupt:
        pass
    final = mgr.stop(mgr.active_id)
    mgr.loader.close()
    print(f"\nDone: {final.total_reps} reps", flush=True)
    return 0


if __name__ == "__main__":
    sys.exit(main())
