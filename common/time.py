from __future__ import annotations

from datetime import datetime


def now_ms() -> float:
    return datetime.now().timestamp() * 1000.0


def _local(ts_ms: float) -> datetime:
    return datetime.fromtimestamp(ts_ms / 1000.0)


def format_log_ts(ts_ms: float) -> str:
    """``yyyy-MM-dd HH:mm:ss.fff`` in local time, as written to the motion log."""
    return _local(ts_ms).strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]


def format_file_ts(ts_ms: float) -> str:
    """``yyyyMMdd_HHmmss_fff`` in local time, used in snapshot filenames."""
    return _local(ts_ms).strftime("%Y%m%d_%H%M%S_%f")[:-3]
