from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Tuple


@dataclass(frozen=True)
class Point:
    x: float
    y: float

    def translate(self, dx: float, dy: float) -> "Point":
        return Point(float(self.x) + float(dx), float(self.y) + float(dy))


@dataclass(frozen=True)
class Rect:
    """Axis-aligned region in pixel coordinates (x, y = top-left corner)."""

    x: int
    y: int
    width: int
    height: int

    @classmethod
    def from_xywh(cls, xywh) -> "Rect":
        x, y, w, h = [int(v) for v in xywh]
        return cls(x, y, w, h)

    @property
    def area(self) -> int:
        return int(self.width) * int(self.height)

    @property
    def center(self) -> Point:
        # Integer halves, matching how cascade hits are centred in pixel space.
        return Point(float(self.x + self.width // 2), float(self.y + self.height // 2))

    def offset(self, dx: int, dy: int) -> "Rect":
        return Rect(self.x + int(dx), self.y + int(dy), self.width, self.height)

    def scaled(self, factor: float) -> "Rect":
        f = float(factor)
        return Rect(
            int(round(self.x * f)),
            int(round(self.y * f)),
            max(1, int(round(self.width * f))),
            max(1, int(round(self.height * f))),
        )

    def clip(self, width: int, height: int) -> Optional["Rect"]:
        """Intersect with an image of the given size; None if nothing is left."""
        x1 = max(0, int(self.x))
        y1 = max(0, int(self.y))
        x2 = min(int(width), int(self.x + self.width))
        y2 = min(int(height), int(self.y + self.height))
        if x2 <= x1 or y2 <= y1:
            return None
        return Rect(x1, y1, x2 - x1, y2 - y1)

    def to_xyxy(self) -> List[int]:
        return [int(self.x), int(self.y), int(self.x + self.width), int(self.y + self.height)]


@dataclass(frozen=True)
class PredictionResult:
    # Raw classifier output; the sign/threshold convention depends on the classifier.
    decision_value: float
    label: Optional[int]
    accepted: bool


Size = Tuple[int, int]
