# tests/conftest.py
import os
import sys
from typing import List

import numpy as np
import pytest

# pytest-dotenv has already loaded .env at this point
pp = os.getenv("PYTHONPATH")
if pp:
    for p in pp.split(os.pathsep):
        if p:
            sys.path.insert(0, p)


class FakeClock:
    """Manually advanced epoch-ms clock."""

    def __init__(self, start_ms: float = 1_700_000_000_000.0) -> None:
        self.now = float(start_ms)

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> float:
        self.now += float(ms)
        return self.now


class RecordingLog:
    """Stand-in for ResilientLogger that just keeps the messages."""

    def __init__(self) -> None:
        self.messages: List[str] = []

    def log(self, message: str) -> None:
        self.messages.append(message)

    def matching(self, prefix: str) -> List[str]:
        return [m for m in self.messages if m.startswith(prefix)]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def event_log() -> RecordingLog:
    return RecordingLog()


def blank(width: int = 640, height: int = 480) -> np.ndarray:
    return np.zeros((height, width, 3), dtype=np.uint8)


def with_square(x: int, y: int, size: int, width: int = 640, height: int = 480) -> np.ndarray:
    img = blank(width, height)
    img[y : y + size, x : x + size] = 255
    return img
