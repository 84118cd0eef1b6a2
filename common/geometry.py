from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Rect:
    """Axis-aligned integer rectangle in frame coordinates."""

    x: int
    y: int
    width: int
    height: int

    def __post_init__(self) -> None:
        if self.width < 0 or self.height < 0:
            raise ValueError(f"Rect size must be non-negative, got {self.width}x{self.height}")

    @property
    def right(self) -> int:
        return self.x + self.width

    @property
    def bottom(self) -> int:
        return self.y + self.height

    @property
    def area(self) -> int:
        return self.width * self.height

    def translated(self, dx: int, dy: int) -> Rect:
        return Rect(self.x + dx, self.y + dy, self.width, self.height)

    def fits_within(self, width: int, height: int) -> bool:
        """True when the rect lies fully inside a ``width`` x ``height`` frame."""
        return self.x >= 0 and self.y >= 0 and self.right <= width and self.bottom <= height

    @classmethod
    def parse(cls, text: str) -> Rect:
        """Parse ``"x,y,w,h"`` (whitespace tolerated)."""
        parts = [p.strip() for p in text.split(",")]
        if len(parts) != 4:
            raise ValueError(f"expected 'x,y,w,h', got {text!r}")
        x, y, w, h = (int(p) for p in parts)
        return cls(x, y, w, h)
