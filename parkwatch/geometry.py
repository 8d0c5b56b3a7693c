"""Axis-aligned rectangles and the box operations used for parking detection."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Sequence

PARKED_DISTANCE_THRESHOLD = 800


def _half(value: int) -> int:
    """Integer halving that truncates toward zero."""
    return int(value / 2)


@dataclass(frozen=True)
class Rect:
    """An integer axis-aligned rectangle given by its top-left corner and size."""

    x: int = 0
    y: int = 0
    width: int = 0
    height: int = 0

    def area(self) -> int:
        """Width times height."""
        return self.width * self.height

    @property
    def empty(self) -> bool:
        return self.width <= 0 or self.height <= 0

    def intersection(self, other: Rect) -> Rect:
        """Overlap of two rectangles, or an all-zero rectangle if they do not overlap."""
        if self.empty or other.empty:
            return Rect()
        x1 = max(self.x, other.x)
        y1 = max(self.y, other.y)
        width = min(self.x + self.width, other.x + other.width) - x1
        height = min(self.y + self.height, other.y + other.height) - y1
        if width <= 0 or height <= 0:
            return Rect()
        return Rect(x1, y1, width, height)

    def __and__(self, other: Rect) -> Rect:
        return self.intersection(other)

    def center(self) -> tuple[int, int]:
        """Integer centre point of the rectangle."""
        return (self.x + _half(self.width), self.y + _half(self.height))


def compute_iou(box_a: Rect, box_b: Rect) -> float:
    """Intersection over union; NaN when both boxes have no area."""
    x_a = max(box_a.x, box_b.x)
    y_a = max(box_a.y, box_b.y)
    x_b = min(box_a.x + box_a.width, box_b.x + box_b.width)
    y_b = min(box_a.y + box_a.height, box_b.y + box_b.height)

    inter_area = max(0, x_b - x_a) * max(0, y_b - y_a)
    union = box_a.area() + box_b.area() - inter_area
    if union == 0:
        return math.nan
    return inter_area / union


def calculate_iou(box1: Rect, box2: Rect) -> float:
    """Intersection over union, returning 0.0 when the union is not positive."""
    x1 = max(box1.x, box2.x)
    y1 = max(box1.y, box2.y)
    x2 = min(box1.x + box1.width, box2.x + box2.width)
    y2 = min(box1.y + box1.height, box2.y + box2.height)

    intersection_area = max(0, x2 - x1) * max(0, y2 - y1)
    union_area = box1.area() + box2.area() - intersection_area
    return intersection_area / union_area if union_area > 0 else 0.0


def compute_intersection(rect1: Rect, rect2: Rect) -> Rect:
    """Overlap of two rectangles, or an all-zero rectangle if there is none."""
    x1 = max(rect1.x, rect2.x)
    y1 = max(rect1.y, rect2.y)
    x2 = min(rect1.x + rect1.width, rect2.x + rect2.width)
    y2 = min(rect1.y + rect1.height, rect2.y + rect2.height)
    if x1 < x2 and y1 < y2:
        return Rect(x1, y1, x2 - x1, y2 - y1)
    return Rect()


def compute_area(rect: Rect) -> int:
    """Area of a rectangle."""
    return rect.width * rect.height


def compute_slant_angle(x1: int, y1: int, x2: int, y2: int) -> float:
    """Angle in degrees of the line from (x1, y1) to (x2, y2)."""
    return math.degrees(math.atan2(y2 - y1, x2 - x1))


def _rotated_corners(
    center: Sequence[float], size: Sequence[float], angle: float
) -> list[tuple[float, float]]:
    cx, cy = center
    width, height = size
    rad = math.radians(angle)
    b = math.cos(rad) * 0.5
    a = math.sin(rad) * 0.5
    p0 = (cx - a * height - b * width, cy + b * height - a * width)
    p1 = (cx + a * height - b * width, cy - b * height - a * width)
    p2 = (2 * cx - p0[0], 2 * cy - p0[1])
    p3 = (2 * cx - p1[0], 2 * cy - p1[1])
    return [p0, p1, p2, p3]


def rotated_rect_to_bounding_rect(
    center: Sequence[float], size: Sequence[float], angle: float
) -> Rect:
    """Axis-aligned box spanning the truncated corners of a rotated rectangle.

    ``center`` is ``(x, y)``, ``size`` is ``(width, height)`` and ``angle`` is in degrees.
    """
    corners = _rotated_corners(center, size, angle)
    xs = [int(px) for px, _ in corners]
    ys = [int(py) for _, py in corners]
    x_min, x_max = min(xs), max(xs)
    y_min, y_max = min(ys), max(ys)
    return Rect(x_min, y_min, x_max - x_min, y_max - y_min)


def merge_rectangles(rectangles: Sequence[Rect], overlap_thresh: float) -> list[Rect]:
    """Greedily merge each rectangle with later ones overlapping it by at least the threshold."""
    merged_rectangles: list[Rect] = []
    used = [False] * len(rectangles)

    for i, rect1 in enumerate(rectangles):
        if used[i]:
            continue
        merged = rect1
        for j in range(i + 1, len(rectangles)):
            if used[j]:
                continue
            rect2 = rectangles[j]
            inter = compute_intersection(rect1, rect2)
            if inter.area() <= 0:
                continue
            inter_area = compute_area(inter)
            union_area = compute_area(rect1) + compute_area(rect2) - inter_area
            if inter_area / union_area >= overlap_thresh:
                left = min(merged.x, rect2.x)
                top = min(merged.y, rect2.y)
                right = max(merged.x + merged.width, rect2.x + rect2.width)
                bottom = max(merged.y + merged.height, rect2.y + rect2.height)
                merged = Rect(left, top, right - left, bottom - top)
                used[j] = True
        merged_rectangles.append(merged)

    return merged_rectangles


def apply_nms(boxes: Sequence[Rect], threshold: float) -> list[Rect]:
    """Keep boxes in order, dropping any whose IoU with a kept earlier box exceeds the threshold."""
    result: list[Rect] = []
    selected = [True] * len(boxes)

    for i, box in enumerate(boxes):
        if not selected[i]:
            continue
        result.append(box)
        for j in range(i + 1, len(boxes)):
            if selected[j] and compute_iou(box, boxes[j]) > threshold:
                selected[j] = False
    return result


def is_properly_parked(test_box: Rect, reference_boxes: Iterable[Rect]) -> bool:
    """True if the box centre lies close enough to the centre of any reference box."""
    tx, ty = test_box.center()
    for ref in reference_boxes:
        rx, ry = ref.center()
        if math.hypot(rx - tx, ry - ty) < PARKED_DISTANCE_THRESHOLD:
            return True
    return False