"""Raster operations on numpy images: colour conversion, filtering, edges, lines and contours.

Colour images are ``(height, width, 3)`` arrays in blue-green-red channel order;
masks and grey images are ``(height, width)`` arrays of ``uint8``.
"""

from __future__ import annotations

import math
from typing import Sequence, Union

import numpy as np
from scipy import ndimage

from parkwatch.geometry import Rect

SizeLike = Union[int, Sequence[int]]

_GRAY_SHIFT = 14
_GRAY_B, _GRAY_G, _GRAY_R = 1868, 9617, 4899

_HSV_SHIFT = 12
_HUE_RANGE = 180

_SMALL_GAUSSIAN_KERNELS = {
    1: (1.0,),
    3: (0.25, 0.5, 0.25),
    5: (0.0625, 0.25, 0.375, 0.25, 0.0625),
    7: (0.03125, 0.109375, 0.21875, 0.28125, 0.21875, 0.109375, 0.03125),
}

_TG22 = 13573  # tan(22.5 degrees) in 15-bit fixed point
_HOUGH_SEED = 0xFFFFFFFF
_HOUGH_SHIFT = 16

# Chain codes: index is the code, value is (row step, column step).
_CHAIN_OFFSETS = ((0, 1), (-1, 1), (-1, 0), (-1, -1), (0, -1), (1, -1), (1, 0), (1, 1))
_CHAIN_CODES = {offset: code for code, offset in enumerate(_CHAIN_OFFSETS)}


def _require_bgr(image: np.ndarray) -> np.ndarray:
    array = np.asarray(image)
    if array.ndim != 3 or array.shape[2] != 3:
        raise ValueError("expected a colour image of shape (height, width, 3)")
    return array


def _require_2d(image: np.ndarray, what: str) -> np.ndarray:
    array = np.asarray(image)
    if array.ndim != 2:
        raise ValueError(f"expected a single-channel {what} of shape (height, width)")
    return array


def _pair(size: SizeLike) -> tuple[int, int]:
    if isinstance(size, (int, np.integer)):
        width = height = int(size)
    else:
        width, height = (int(v) for v in size)
    if width <= 0 or height <= 0:
        raise ValueError("kernel size must be positive")
    return width, height


def bgr_to_gray(image: np.ndarray) -> np.ndarray:
    """Luma of a BGR image using the fixed-point 0.299/0.587/0.114 weights."""
    array = _require_bgr(image).astype(np.int64)
    b, g, r = array[..., 0], array[..., 1], array[..., 2]
    luma = (b * _GRAY_B + g * _GRAY_G + r * _GRAY_R + (1 << (_GRAY_SHIFT - 1))) >> _GRAY_SHIFT
    return np.clip(luma, 0, 255).astype(np.uint8)


def _division_table(numerator: float) -> np.ndarray:
    table = np.zeros(256, dtype=np.int64)
    table[1:] = np.rint(numerator / np.arange(1, 256)).astype(np.int64)
    return table


_SDIV_TABLE = _division_table(255.0 * (1 << _HSV_SHIFT))
_HDIV_TABLE = _division_table(_HUE_RANGE * (1 << _HSV_SHIFT) / 6.0)


def bgr_to_hsv(image: np.ndarray) -> np.ndarray:
    """HSV of an 8-bit BGR image with hue in [0, 180) and saturation and value in [0, 255]."""
    array = _require_bgr(image).astype(np.int64)
    b, g, r = array[..., 0], array[..., 1], array[..., 2]
    v = np.maximum(np.maximum(b, g), r)
    vmin = np.minimum(np.minimum(b, g), r)
    diff = v - vmin

    half = 1 << (_HSV_SHIFT - 1)
    s = (diff * _SDIV_TABLE[v] + half) >> _HSV_SHIFT

    hue = np.where(
        v == r,
        g - b,
        np.where(v == g, b - r + 2 * diff, r - g + 4 * diff),
    )
    hue = (hue * _HDIV_TABLE[diff] + half) >> _HSV_SHIFT
    hue = np.where(hue < 0, hue + _HUE_RANGE, hue)

    return np.stack([hue, s, v], axis=-1).astype(np.uint8)


def in_range(image: np.ndarray, lower: Sequence[float], upper: Sequence[float]) -> np.ndarray:
    """Mask of 255 where every channel lies within ``[lower, upper]`` inclusive, else 0."""
    array = np.asarray(image)
    channels = 1 if array.ndim == 2 else array.shape[2]
    lo = np.atleast_1d(np.asarray(lower, dtype=float))
    hi = np.atleast_1d(np.asarray(upper, dtype=float))
    if lo.size < channels or hi.size < channels:
        raise ValueError("bounds must provide a value for every channel")
    if array.ndim == 2:
        inside = (array >= lo[0]) & (array <= hi[0])
    else:
        inside = np.all((array >= lo[:channels]) & (array <= hi[:channels]), axis=2)
    return inside.astype(np.uint8) * 255


def _gaussian_kernel(ksize: int, sigma: float) -> np.ndarray:
    if ksize % 2 == 0:
        raise ValueError("Gaussian kernel size must be odd")
    if sigma <= 0 and ksize in _SMALL_GAUSSIAN_KERNELS:
        return np.array(_SMALL_GAUSSIAN_KERNELS[ksize])
    if sigma <= 0:
        sigma = 0.3 * ((ksize - 1) * 0.5 - 1) + 0.8
    offsets = np.arange(ksize) - (ksize - 1) / 2
    kernel = np.exp(-(offsets**2) / (2 * sigma * sigma))
    return kernel / kernel.sum()


def gaussian_blur(image: np.ndarray, ksize: SizeLike, sigma: float) -> np.ndarray:
    """Separable Gaussian blur with mirrored borders; ``ksize`` is ``(width, height)``.

    A non-positive ``sigma`` is derived from the kernel size.
    """
    array = np.asarray(image)
    kernel_w, kernel_h = _pair(ksize)
    kx = _gaussian_kernel(kernel_w, sigma)
    ky = _gaussian_kernel(kernel_h, sigma)

    blurred = ndimage.correlate1d(array.astype(np.float64), kx, axis=1, mode="mirror")
    blurred = ndimage.correlate1d(blurred, ky, axis=0, mode="mirror")

    if np.issubdtype(array.dtype, np.integer):
        info = np.iinfo(array.dtype)
        return np.clip(np.rint(blurred), info.min, info.max).astype(array.dtype)
    return blurred.astype(array.dtype)


def canny(image: np.ndarray, low: float, high: float) -> np.ndarray:
    """Canny edges (3x3 Sobel, L1 magnitude) as a mask of 255 and 0."""
    gray = _require_2d(image, "image").astype(np.int64)
    if low > high:
        low, high = high, low
    low_i, high_i = math.floor(low), math.floor(high)

    dx = ndimage.sobel(gray, axis=1, mode="nearest")
    dy = ndimage.sobel(gray, axis=0, mode="nearest")
    mag = np.abs(dx) + np.abs(dy)

    padded = np.pad(mag, 1)
    centre = padded[1:-1, 1:-1]
    left, right = padded[1:-1, :-2], padded[1:-1, 2:]
    up, down = padded[:-2, 1:-1], padded[2:, 1:-1]

    ax = np.abs(dx)
    ay = np.abs(dy) << 15
    tg22x = ax * _TG22
    tg67x = tg22x + (ax << 16)
    horizontal = ay < tg22x
    vertical = ~horizontal & (ay > tg67x)
    diagonal = ~horizontal & ~vertical

    # For diagonals the neighbours lie along (-1, -s) and (+1, +s).
    same_sign = (dx ^ dy) >= 0
    up_left, up_right = padded[:-2, :-2], padded[:-2, 2:]
    down_left, down_right = padded[2:, :-2], padded[2:, 2:]
    diag_before = np.where(same_sign, up_left, up_right)
    diag_after = np.where(same_sign, down_right, down_left)

    is_max = np.zeros(mag.shape, dtype=bool)
    is_max |= horizontal & (centre > left) & (centre >= right)
    is_max |= vertical & (centre > up) & (centre >= down)
    is_max |= diagonal & (centre > diag_before) & (centre >= diag_after)

    candidates = is_max & (mag > low_i)
    strong = candidates & (mag > high_i)

    labels, count = ndimage.label(candidates, structure=np.ones((3, 3), dtype=bool))
    if count == 0:
        return np.zeros(mag.shape, dtype=np.uint8)
    keep = np.zeros(count + 1, dtype=bool)
    keep[np.unique(labels[strong])] = True
    keep[0] = False
    return keep[labels].astype(np.uint8) * 255


def hough_lines_p(
    edges: np.ndarray,
    rho: float,
    theta: float,
    threshold: int,
    min_line_length: float,
    max_line_gap: float,
) -> list[tuple[int, int, int, int]]:
    """Progressive probabilistic Hough transform returning segments ``(x1, y1, x2, y2)``.

    Points are visited in a fixed pseudo-random order, so results are repeatable.
    """
    mask = _require_2d(edges, "edge map") != 0
    if rho <= 0 or theta <= 0:
        raise ValueError("rho and theta must be positive")
    height, width = mask.shape
    irho = 1.0 / rho

    numangle = max(1, int(round(math.pi / theta)))
    numrho = int(round(((width + height) * 2 + 1) / rho))
    offset = (numrho - 1) // 2
    angles = np.arange(numangle) * theta
    tab_cos = np.cos(angles) * irho
    tab_sin = np.sin(angles) * irho
    angle_index = np.arange(numangle)
    accum = np.zeros((numangle, numrho), dtype=np.int64)

    def bins(col: int, row: int) -> np.ndarray:
        return np.rint(col * tab_cos + row * tab_sin).astype(np.int64) + offset

    def trace(x: int, y: int, step_x: int, step_y: int, x_major: bool):
        while True:
            col, row = (x, y >> _HOUGH_SHIFT) if x_major else (x >> _HOUGH_SHIFT, y)
            if not (0 <= col < width and 0 <= row < height):
                return
            yield col, row
            x += step_x
            y += step_y

    points = np.argwhere(mask)
    order = np.random.default_rng(_HOUGH_SEED).permutation(len(points))
    lines: list[tuple[int, int, int, int]] = []

    for index in order:
        row, col = (int(v) for v in points[index])
        if not mask[row, col]:
            continue

        accum[angle_index, bins(col, row)] += 1
        votes = accum[angle_index, bins(col, row)]
        best = int(np.argmax(votes))
        if votes[best] < threshold:
            continue

        a = -tab_sin[best]
        b = tab_cos[best]
        if abs(a) > abs(b):
            x_major = True
            step_x = 1 if a > 0 else -1
            step_y = int(round(b * (1 << _HOUGH_SHIFT) / abs(a)))
            start_x, start_y = col, (row << _HOUGH_SHIFT) + (1 << (_HOUGH_SHIFT - 1))
        else:
            x_major = False
            step_y = 1 if b > 0 else -1
            step_x = int(round(a * (1 << _HOUGH_SHIFT) / abs(b)))
            start_x, start_y = (col << _HOUGH_SHIFT) + (1 << (_HOUGH_SHIFT - 1)), row

        ends = [(col, row), (col, row)]
        for k, sign in enumerate((1, -1)):
            gap = 0
            for c, r in trace(start_x, start_y, sign * step_x, sign * step_y, x_major):
                if mask[r, c]:
                    gap = 0
                    ends[k] = (c, r)
                else:
                    gap += 1
                    if gap > max_line_gap:
                        break

        good_line = (
            abs(ends[1][0] - ends[0][0]) >= min_line_length
            or abs(ends[1][1] - ends[0][1]) >= min_line_length
        )

        for k, sign in enumerate((1, -1)):
            for c, r in trace(start_x, start_y, sign * step_x, sign * step_y, x_major):
                if mask[r, c]:
                    if good_line:
                        accum[angle_index, bins(c, r)] -= 1
                    mask[r, c] = False
                if (c, r) == ends[k]:
                    break

        if good_line:
            lines.append((ends[0][0], ends[0][1], ends[1][0], ends[1][1]))

    return lines


def _erode(mask: np.ndarray, size: SizeLike) -> np.ndarray:
    width, height = _pair(size)
    return ndimage.grey_erosion(mask, size=(height, width), mode="nearest")


def _dilate(mask: np.ndarray, size: SizeLike) -> np.ndarray:
    width, height = _pair(size)
    return ndimage.grey_dilation(mask, size=(height, width), mode="nearest")


def morphology_open(mask: np.ndarray, size: SizeLike) -> np.ndarray:
    """Erosion followed by dilation with a rectangular kernel of ``size``."""
    array = np.asarray(mask)
    return _dilate(_erode(array, size), size).astype(array.dtype)


def morphology_close(mask: np.ndarray, size: SizeLike) -> np.ndarray:
    """Dilation followed by erosion with a rectangular kernel of ``size``."""
    array = np.asarray(mask)
    return _erode(_dilate(array, size), size).astype(array.dtype)


def _trace_outer_border(region: np.ndarray, start: tuple[int, int]) -> list[tuple[int, int]]:
    """Follow the outer border of the component in ``region`` from its top-left pixel.

    ``region`` must have a zero frame so that every neighbour lookup is in bounds.
    Returns ``(row, col)`` points.
    """
    first = None
    for turn in range(8):
        dr, dc = _CHAIN_OFFSETS[(4 - turn) % 8]
        if region[start[0] + dr, start[1] + dc]:
            first = (start[0] + dr, start[1] + dc)
            break
    if first is None:
        return [start]

    border: list[tuple[int, int]] = []
    previous, current = first, start
    while True:
        back = _CHAIN_CODES[(previous[0] - current[0], previous[1] - current[1])]
        following = current
        for turn in range(1, 9):
            dr, dc = _CHAIN_OFFSETS[(back + turn) % 8]
            candidate = (current[0] + dr, current[1] + dc)
            if region[candidate]:
                following = candidate
                break
        border.append(current)
        if following == start and current == first:
            return border
        previous, current = current, following


def _compress_chain(points: list[tuple[int, int]]) -> list[tuple[int, int]]:
    """Drop points lying inside straight horizontal, vertical or diagonal runs."""
    if len(points) < 2:
        return points
    count = len(points)

    def step(p: tuple[int, int], q: tuple[int, int]) -> tuple[int, int]:
        return (q[0] - p[0], q[1] - p[1])

    kept = [
        point
        for k, point in enumerate(points)
        if step(points[k - 1], point) != step(point, points[(k + 1) % count])
    ]
    return kept or points[:1]


def find_external_contours(mask: np.ndarray) -> list[np.ndarray]:
    """Outer borders of the 8-connected non-zero regions, ignoring anything inside holes.

    Each contour is an ``(n, 2)`` integer array of ``(x, y)`` corner points;
    contours come in raster order of their top-left pixel.
    """
    foreground = _require_2d(mask, "mask") != 0
    filled = ndimage.binary_fill_holes(foreground)
    labels, count = ndimage.label(filled, structure=np.ones((3, 3), dtype=bool))
    if count == 0:
        return []

    padded = np.pad(labels, 1)
    contours: list[np.ndarray] = []
    for label, slices in enumerate(ndimage.find_objects(labels), start=1):
        rows, cols = slices
        top, bottom = rows.start, rows.stop + 2
        left, right = cols.start, cols.stop + 2
        region = padded[top:bottom, left:right] == label
        start_row, start_col = (int(v) for v in np.argwhere(region)[0])
        border = _compress_chain(_trace_outer_border(region, (start_row, start_col)))
        contours.append(
            np.array([(c + left - 1, r + top - 1) for r, c in border], dtype=np.int64)
        )

    contours.sort(key=lambda contour: (int(contour[0][1]), int(contour[0][0])))
    return contours


def contour_area(contour: np.ndarray) -> float:
    """Unsigned polygon area of a contour by the shoelace formula."""
    points = np.asarray(contour, dtype=np.float64).reshape(-1, 2)
    if len(points) < 3:
        return 0.0
    x, y = points[:, 0], points[:, 1]
    return float(abs(np.sum(x * np.roll(y, -1) - np.roll(x, -1) * y)) / 2.0)


def bounding_rect(points: np.ndarray) -> Rect:
    """Smallest integer rectangle containing every ``(x, y)`` point."""
    array = np.asarray(points).reshape(-1, 2)
    if len(array) == 0:
        return Rect()
    x_min, y_min = (int(math.floor(v)) for v in array.min(axis=0))
    x_max, y_max = (int(math.floor(v)) for v in array.max(axis=0))
    return Rect(x_min, y_min, x_max - x_min + 1, y_max - y_min + 1)