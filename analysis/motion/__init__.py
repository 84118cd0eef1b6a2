"""Public exports for the motion analysis package."""

from __future__ import annotations

from .background import BackgroundModel, threshold_mask, to_grayscale
from .blobs import extract_blobs, filter_blobs
from .dispatcher import DispatchConfig, DispatchOutcome, MotionEventDispatcher
from .engine import MotionEngine
from .errors import GeometryMismatchError, InvalidFrameError, PipelineError, PipelineErrorKind
from .events import (
    MotionEvent,
    MotionEventConfig,
    MotionEventKind,
    MotionState,
    MotionStateMachine,
    PipelineState,
)
from .model import BlobBounds, MotionConfig, MotionResult
from .roi import RoiCrop, crop_to_roi

__all__ = [
    "MotionEngine",
    "MotionResult",
    "MotionConfig",
    "BlobBounds",
    "BackgroundModel",
    "to_grayscale",
    "threshold_mask",
    "crop_to_roi",
    "RoiCrop",
    "extract_blobs",
    "filter_blobs",
    "MotionEvent",
    "MotionEventKind",
    "MotionEventConfig",
    "MotionState",
    "MotionStateMachine",
    "PipelineState",
    "MotionEventDispatcher",
    "DispatchConfig",
    "DispatchOutcome",
    "PipelineError",
    "PipelineErrorKind",
    "GeometryMismatchError",
    "InvalidFrameError",
]
