from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import cv2
import numpy as np

from common.time import format_file_ts

_LOG = logging.getLogger(__name__)


def _default_base_dir() -> Path:
    return Path.home() / "Desktop" / "Detected Images"


@dataclass
class SnapshotConfig:
    """Configuration for the still-image snapshot store.

    Parameters
    ----------
    base_dir:
        Directory snapshots are written to; created on demand.
    prefix:
        Filename prefix; files are named ``<prefix>_<yyyyMMdd_HHmmss_fff>.jpg``.
    jpeg_quality:
        OpenCV JPEG quality (0-100).
    write_timeout_s:
        Upper bound on a single file write; a slower write raises
        :class:`SnapshotTimeoutError`.
    """

    base_dir: Path = field(default_factory=_default_base_dir)
    prefix: str = "motion"
    jpeg_quality: int = 90
    write_timeout_s: float = 2.0


class SnapshotError(Exception):
    """Base class for snapshot-store errors."""


class SnapshotEncodeError(SnapshotError):
    """The frame could not be encoded as JPEG."""


class SnapshotTimeoutError(SnapshotError):
    """The write did not complete within the configured timeout."""


class SnapshotStore:
    """Persist single JPEG stills of motion frames.

    Writes run on a single worker thread and are waited on for at most
    ``write_timeout_s`` so a stalled disk cannot hold up frame delivery.
    """

    def __init__(self, config: Optional[SnapshotConfig] = None, logger: Optional[logging.Logger] = None) -> None:
        self._cfg = config or SnapshotConfig()
        self._log = logger or _LOG
        self._pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="snapshot-writer")

    @property
    def base_dir(self) -> Path:
        return Path(self._cfg.base_dir)

    def path_for(self, ts_ms: float) -> Path:
        return self.base_dir / f"{self._cfg.prefix}_{format_file_ts(ts_ms)}.jpg"

    def ensure_dir(self) -> bool:
        """Create the base directory if needed; True when it was created."""
        base = self.base_dir
        if base.is_dir():
            return False
        base.mkdir(parents=True, exist_ok=True)
        self._log.debug("Created snapshot directory %s", base)
        return True

    def encode(self, img: np.ndarray) -> bytes:
        try:
            ok, buf = cv2.imencode(".jpg", img, [int(cv2.IMWRITE_JPEG_QUALITY), int(self._cfg.jpeg_quality)])
        except cv2.error as exc:
            raise SnapshotEncodeError(f"cv2.imencode failed: {exc}") from exc
        if not ok:
            raise SnapshotEncodeError("cv2.imencode returned failure for JPEG")
        return buf.tobytes()

    def save(self, img: np.ndarray, ts_ms: float) -> Path:
        """Encode ``img`` and write it under the base directory.

        Raises
        ------
        SnapshotError, OSError
            On encode, timeout or filesystem failure.
        """
        self.ensure_dir()
        data = self.encode(img)
        path = self.path_for(ts_ms)
        fut = self._pool.submit(path.write_bytes, data)
        try:
            fut.result(timeout=float(self._cfg.write_timeout_s))
        except FutureTimeoutError:
            fut.cancel()
            raise SnapshotTimeoutError(
                f"writing {path.name} did not finish within {self._cfg.write_timeout_s:.2f}s"
            ) from None
        self._log.debug("Saved snapshot %s (%d bytes)", path, len(data))
        return path

    def close(self) -> None:
        self._pool.shutdown(wait=False)
