"""Keypoints detected in an image and filtering by response."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Iterable


@dataclass(slots=True)
class KeyPoint:
    """A salient image point with its scale, orientation and detector score."""

    x: float
    y: float
    size: float = 7.0
    angle: float = -1.0
    response: float = 0.0
    octave: int = 0

    @property
    def pt(self) -> tuple[float, float]:
        """The point as an ``(x, y)`` pair."""
        return (self.x, self.y)

    def scaled(self, factor: float) -> KeyPoint:
        """Return a copy whose coordinates are multiplied by ``factor``."""
        return replace(self, x=self.x * factor, y=self.y * factor)

    def shifted(self, dx: float, dy: float) -> KeyPoint:
        """Return a copy moved by ``(dx, dy)``."""
        return replace(self, x=self.x + dx, y=self.y + dy)


def retain_best(keypoints: Iterable[KeyPoint], n: int) -> list[KeyPoint]:
    """Keep the ``n`` keypoints with the highest response.

    Keypoints whose response ties with the ``n``-th best are kept as well,
    so the result may hold more than ``n`` entries. A negative ``n`` keeps
    everything; ``n == 0`` keeps nothing.
    """
    points = list(keypoints)
    if n < 0 or len(points) <= n:
        return points
    if n == 0:
        return []
    ordered = sorted(points, key=lambda kp: -kp.response)
    cutoff = ordered[n - 1].response
    return [kp for kp in ordered if kp.response >= cutoff]