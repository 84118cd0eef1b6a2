from __future__ import annotations

import argparse
import contextlib
import logging
import sys
import time
from pathlib import Path
from typing import Optional

import cv2

from analysis.motion.config import apply_overrides, load_overrides
from analysis.motion.dispatcher import DispatchConfig, MotionEventDispatcher
from analysis.motion.engine import MotionEngine
from analysis.motion.events import MotionEventConfig
from analysis.motion.model import BlobBounds, MotionConfig
from capture.presentation import LatestFrameSlot
from capture.session import CaptureSession
from capture.source import CameraSource, NullSource
from common.geometry import Rect
from eventlog import LogConfig, ResilientLogger, make_system_fallback_sink
from record.snapshots import SnapshotConfig, SnapshotStore

_LOG = logging.getLogger(__name__)

_WINDOW = "motion-watch"


def _bell() -> None:
    sys.stdout.write("\a")
    sys.stdout.flush()


def _notify(text: str) -> None:
    # Operator-facing notice.
    print(f"\n*** {text}\n", file=sys.stderr)


def _roi(text: str) -> Rect:
    try:
        return Rect.parse(text)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from None


def build_arg_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        description="Run frame-differencing motion detection on a live camera.",
    )
    ap.add_argument(
        "--source",
        type=str,
        choices=["camera", "null"],
        default="camera",
        help='Frame source ("camera" for a capture device, "null" for synthetic black frames).',
    )
    ap.add_argument(
        "--device",
        type=str,
        default="0",
        help="Capture device index or URL for --source camera.",
    )
    ap.add_argument("--width", type=int, default=None, help="Requested capture width.")
    ap.add_argument("--height", type=int, default=None, help="Requested capture height.")
    ap.add_argument(
        "--config-module",
        type=str,
        default=None,
        help="Python module with UPPER_CASE overrides (default: $MOTIONWATCH_CONFIG_MODULE).",
    )

    # Detection tuning
    ap.add_argument("--threshold", type=int, default=None, help="Gray-level difference cutoff (default 15).")
    ap.add_argument(
        "--roi",
        type=_roi,
        default=None,
        help="Region of interest as x,y,w,h (default: whole frame).",
    )
    ap.add_argument("--min-blob", type=int, nargs=2, metavar=("W", "H"), default=None)
    ap.add_argument("--max-blob", type=int, nargs=2, metavar=("W", "H"), default=None)
    ap.add_argument("--grace-ms", type=float, default=None, help="Motion-stop grace period in ms.")

    # Side effects
    ap.add_argument("--snapshot-dir", type=str, default=None, help="Directory for motion snapshots.")
    ap.add_argument("--log-file", type=str, default=None, help="Motion log file path.")
    ap.add_argument("--no-alert", action="store_true", help="Disable the audible alert.")
    ap.add_argument("--no-save", action="store_true", help="Disable snapshot saving.")
    ap.add_argument("--no-log", action="store_true", help="Disable the motion log file.")
    ap.add_argument("--no-display", action="store_true", help="Do not open a preview window.")

    ap.add_argument(
        "--max-seconds",
        type=int,
        default=0,
        help="If > 0, stop after this many seconds; otherwise run until Ctrl+C (or 'q').",
    )
    ap.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging.",
    )
    return ap


def build_configs(args: argparse.Namespace):
    """Defaults, then config-module overrides, then CLI flags."""
    overrides = load_overrides(args.config_module)

    motion_cfg = apply_overrides(MotionConfig(), overrides)
    if args.threshold is not None:
        motion_cfg.threshold = args.threshold
    if args.roi is not None:
        motion_cfg.roi = args.roi
    if args.min_blob or args.max_blob:
        b = motion_cfg.blob_bounds
        min_w, min_h = args.min_blob or (b.min_width, b.min_height)
        max_w, max_h = args.max_blob or (b.max_width, b.max_height)
        motion_cfg.blob_bounds = BlobBounds(min_w, min_h, max_w, max_h)

    event_cfg = apply_overrides(MotionEventConfig(), overrides)
    if args.grace_ms is not None:
        event_cfg.grace_ms = args.grace_ms

    dispatch_cfg = apply_overrides(DispatchConfig(), overrides)
    if args.no_alert:
        dispatch_cfg.alert_enabled = False
    if args.no_save:
        dispatch_cfg.save_enabled = False

    log_cfg = apply_overrides(LogConfig(), overrides)
    if args.log_file:
        log_cfg.path = Path(args.log_file)
    if args.no_log:
        log_cfg.enabled = False

    snap_cfg = apply_overrides(SnapshotConfig(), overrides)
    if args.snapshot_dir:
        snap_cfg.base_dir = Path(args.snapshot_dir)

    return motion_cfg, event_cfg, dispatch_cfg, log_cfg, snap_cfg


def _make_source(args: argparse.Namespace):
    if args.source == "null":
        return NullSource(width=args.width or 640, height=args.height or 480)
    device = int(args.device) if args.device.isdigit() else args.device
    return CameraSource(device=device, width=args.width, height=args.height)


def _show(slot: LatestFrameSlot, last_version: int) -> tuple[int, bool]:
    """Display the newest frame; returns (version, quit_requested)."""
    version = slot.version
    item = slot.latest()
    if item is not None and version != last_version:
        cv2.imshow(_WINDOW, item.frame)
        cv2.setWindowTitle(_WINDOW, f"{_WINDOW} | {slot.status or ''}")
    key = cv2.waitKey(15) & 0xFF
    return version, key in (ord("q"), 27)


def main(argv: Optional[list[str]] = None) -> int:
    ap = build_arg_parser()
    args = ap.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    motion_cfg, event_cfg, dispatch_cfg, log_cfg, snap_cfg = build_configs(args)

    event_log = ResilientLogger(
        config=log_cfg,
        fallback=make_system_fallback_sink(log_cfg.source_name),
        notifier=_notify,
    )
    snapshots = SnapshotStore(snap_cfg)
    dispatcher = MotionEventDispatcher(
        event_log,
        config=dispatch_cfg,
        event_config=event_cfg,
        alert=_bell,
        snapshots=snapshots,
    )
    slot = LatestFrameSlot()
    session = CaptureSession(
        source=_make_source(args),
        engine=MotionEngine(motion_cfg),
        dispatcher=dispatcher,
        event_log=event_log,
        presentation=slot,
    )

    _LOG.info("Writing motion log to %s, snapshots to %s", log_cfg.path, snap_cfg.base_dir)

    try:
        session.start()
    except Exception as exc:
        _LOG.error("Could not start capture: %s", exc)
        event_log.close()
        snapshots.close()
        return 1

    t0 = time.time()
    last_version = -1
    try:
        while session.running:
            if args.max_seconds > 0 and (time.time() - t0) >= args.max_seconds:
                _LOG.info("Reached max-seconds=%d, exiting loop.", args.max_seconds)
                break
            if args.no_display:
                time.sleep(0.05)
                continue
            last_version, quit_requested = _show(slot, last_version)
            if quit_requested:
                break
    except KeyboardInterrupt:
        _LOG.info("KeyboardInterrupt received, shutting down.")
    finally:
        session.stop()
        event_log.log("INFO: Application is closing.")
        if not args.no_display:
            with contextlib.suppress(Exception):
                cv2.destroyAllWindows()
        snapshots.close()
        event_log.close()

    return 1 if session.last_error is not None else 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
