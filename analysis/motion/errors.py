from __future__ import annotations

from enum import Enum


class PipelineErrorKind(str, Enum):
    GEOMETRY_MISMATCH = "geometry_mismatch"
    INVALID_FRAME = "invalid_frame"
    ROI_INVALID = "roi_invalid"
    FILTER_FAILURE = "filter_failure"


class PipelineError(Exception):
    """Base class for frame-pipeline errors."""

    kind: PipelineErrorKind = PipelineErrorKind.INVALID_FRAME


class GeometryMismatchError(PipelineError):
    """Current and previous gray frames differ in size."""

    kind = PipelineErrorKind.GEOMETRY_MISMATCH


class InvalidFrameError(PipelineError):
    """Frame is missing or not a 1- or 3-channel image."""

    kind = PipelineErrorKind.INVALID_FRAME
