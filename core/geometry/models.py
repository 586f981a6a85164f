"""Geometry value types."""

from __future__ import annotations

from dataclasses import dataclass

from core.matching.models import FieldType
from core.scanning.models import FieldMapping


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned rectangle in root user space."""

    x: float
    y: float
    width: float
    height: float

    @classmethod
    def from_points(cls, points: list[tuple[float, float]]) -> BoundingBox:
        xs = [point[0] for point in points]
        ys = [point[1] for point in points]
        return cls(x=min(xs), y=min(ys), width=max(xs) - min(xs), height=max(ys) - min(ys))


@dataclass(frozen=True)
class ResolvedField:
    """A field mapping plus its rectangle; ``bbox`` is None when unresolvable."""

    mapping: FieldMapping
    bbox: BoundingBox | None

    @property
    def name(self) -> str:
        return self.mapping.name

    @property
    def type(self) -> FieldType:
        return self.mapping.type
