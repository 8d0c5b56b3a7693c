"""Colour-based car detection and line-based parking space detection."""

from __future__ import annotations

import logging
import math
from bisect import bisect_right
from pathlib import Path
from typing import Sequence, Union

import numpy as np

from parkwatch.geometry import Rect, apply_nms, merge_rectangles, rotated_rect_to_bounding_rect
from parkwatch.imaging import (
    bgr_to_gray,
    bgr_to_hsv,
    bounding_rect,
    canny,
    contour_area,
    find_external_contours,
    gaussian_blur,
    hough_lines_p,
    in_range,
    morphology_close,
    morphology_open,
)
from parkwatch.render import load_image

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

# HSV ranges (hue 0-180, saturation and value 0-255) of typical car colours.
CAR_COLOR_RANGES = (
    ((0, 0, 200), (180, 25, 255)),  # white
    ((100, 150, 0), (140, 255, 255)),  # blue
    ((0, 150, 0), (10, 255, 255)),  # red, low hues
    ((170, 150, 0), (180, 255, 255)),  # red, high hues
    ((0, 0, 0), (180, 255, 50)),  # black
)

MORPH_KERNEL_SIZE = 5
MIN_CAR_AREA = 1000
MIN_ASPECT_RATIO = 0.5
MAX_ASPECT_RATIO = 10.0
CAR_NMS_THRESHOLD = 0.1

CANNY_LOW = 30
CANNY_HIGH = 120
HOUGH_THRESHOLD = 100
HOUGH_MIN_LINE_LENGTH = 50
HOUGH_MAX_LINE_GAP = 10
MIN_LINE_EXTENT = 10
MIN_SLANT = 5.0
MAX_SLANT = 45.0
CLEARANCE = 10


def car_detect(img: np.ndarray) -> list[Rect]:
    """Bounding boxes of large blobs of car-like colour, after non-maximum suppression."""
    hsv = bgr_to_hsv(img)
    combined = np.zeros(hsv.shape[:2], dtype=np.uint8)
    for lower, upper in CAR_COLOR_RANGES:
        combined |= in_range(hsv, lower, upper)

    opened = morphology_open(combined, MORPH_KERNEL_SIZE)
    closed = morphology_close(opened, MORPH_KERNEL_SIZE)

    boxes: list[Rect] = []
    for contour in find_external_contours(closed):
        if contour_area(contour) <= MIN_CAR_AREA:
            continue
        box = bounding_rect(contour)
        aspect_ratio = box.width / box.height
        if MIN_ASPECT_RATIO <= aspect_ratio <= MAX_ASPECT_RATIO:
            boxes.append(box)

    return apply_nms(boxes, CAR_NMS_THRESHOLD)


def detect_cars_in_bounding_boxes(
    image: np.ndarray, bounding_boxes: Sequence[Rect], min_car_area: float = 500
) -> list[Rect]:
    """Parking spaces, among ``bounding_boxes``, inside which a car is detected.

    Spaces that leave the image or have no area are skipped. ``min_car_area`` is
    accepted for interface compatibility; the car detector uses its own limit.
    """
    height, width = image.shape[:2]
    occupied: list[Rect] = []
    for bbox in bounding_boxes:
        if bbox.x < 0 or bbox.y < 0 or bbox.x + bbox.width > width or bbox.y + bbox.height > height:
            continue
        if bbox.empty:
            continue
        roi = image[bbox.y : bbox.y + bbox.height, bbox.x : bbox.x + bbox.width]
        if any(box.width > 0 and box.height > 0 for box in car_detect(roi)):
            occupied.append(bbox)
    return occupied


def _first_greater(sorted_values: list[int], value: int) -> int:
    index = bisect_right(sorted_values, value)
    return sorted_values[index] if index < len(sorted_values) else value


def _parking_spaces_from_image(image: np.ndarray, overlap_thresh: float) -> list[Rect]:
    gray = bgr_to_gray(image)
    blurred = gaussian_blur(gray, (3, 3), 0)
    edges = canny(blurred, CANNY_LOW, CANNY_HIGH)
    lines = hough_lines_p(
        edges, 1, math.pi / 180, HOUGH_THRESHOLD, HOUGH_MIN_LINE_LENGTH, HOUGH_MAX_LINE_GAP
    )
    if not lines:
        logger.info("No lines were detected")
        return []

    end_xs = sorted(x2 for _, _, x2, _ in lines)
    end_ys = sorted(y2 for _, _, _, y2 in lines)

    rects: list[Rect] = []
    for x1, y1, x2, y2 in lines:
        if x2 - x1 <= MIN_LINE_EXTENT or y2 - y1 <= MIN_LINE_EXTENT:
            continue
        angle = math.degrees(math.atan2(y2 - y1, x2 - x1))
        if not MIN_SLANT < angle < MAX_SLANT:
            continue
        t1 = _first_greater(end_xs, x2)
        t2 = _first_greater(end_ys, y2)
        center = (float((x1 + x2) // 2), float((y1 + t2) // 2))
        size = (float(t1 - x1 - CLEARANCE), float(t2 - y1 + CLEARANCE))
        rects.append(rotated_rect_to_bounding_rect(center, size, angle))

    return merge_rectangles(rects, overlap_thresh)


def detect_parking_lots_and_cars(image_path: PathLike, overlap_thresh: float) -> list[Rect]:
    """Parking space boxes found from the slanted painted lines of the image at ``image_path``.

    Raises ``ImageLoadError`` if the image cannot be read.
    """
    return _parking_spaces_from_image(load_image(image_path), overlap_thresh)