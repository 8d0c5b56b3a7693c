"""Reading parking-space annotations stored as rotated rectangles in XML."""

from __future__ import annotations

import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from parkwatch.geometry import Rect, rotated_rect_to_bounding_rect

PathLike = Union[str, Path]

_LEADING_FLOAT = re.compile(r"\s*[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


class AnnotationError(ValueError):
    """Raised when an annotation file cannot be read or parsed."""


@dataclass(frozen=True)
class ParkingSpace:
    """One annotated parking space: a rectangle rotated by ``angle`` degrees about its centre."""

    center: tuple[float, float]
    size: tuple[float, float]
    angle: float

    def bounding_rect(self) -> Rect:
        """Axis-aligned box enclosing the rotated rectangle."""
        return rotated_rect_to_bounding_rect(self.center, self.size, self.angle)


def _as_float(text: Optional[str]) -> float:
    """Leading number of an attribute value; 0.0 when missing or not numeric."""
    if text is None:
        return 0.0
    match = _LEADING_FLOAT.match(text)
    return float(match.group()) if match else 0.0


def _attribute(space: ET.Element, child: str, name: str) -> float:
    node = space.find(f"rotatedRect/{child}")
    return _as_float(None if node is None else node.get(name))


def parse_parking_spaces(path: PathLike) -> list[ParkingSpace]:
    """All ``space`` entries under the ``parking`` root of the file at ``path``.

    Missing elements or attributes read as 0.
    """
    try:
        root = ET.parse(path).getroot()
    except (OSError, ET.ParseError) as exc:
        raise AnnotationError(f"could not load annotation file {path}") from exc
    if root.tag != "parking":
        return []
    return [
        ParkingSpace(
            center=(_attribute(space, "center", "x"), _attribute(space, "center", "y")),
            size=(_attribute(space, "size", "w"), _attribute(space, "size", "h")),
            angle=_attribute(space, "angle", "d"),
        )
        for space in root.findall("space")
    ]


def reference_boxes(path: PathLike) -> list[Rect]:
    """Axis-aligned bounding boxes of every annotated parking space in the file."""
    return [space.bounding_rect() for space in parse_parking_spaces(path)]