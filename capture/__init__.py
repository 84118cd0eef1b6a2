# capture/__init__.py
"""Capture package: frame sources, capture session and presentation handoff."""

from .presentation import LatestFrameSlot, PresentationSink, PresentedFrame
from .session import CaptureSession, SessionStats
from .source import CameraSource, FrameSource, NullSource, ThreadedSource

__all__ = [
    "CaptureSession",
    "SessionStats",
    "FrameSource",
    "ThreadedSource",
    "CameraSource",
    "NullSource",
    "LatestFrameSlot",
    "PresentedFrame",
    "PresentationSink",
]

__version__ = "0.1.0"
