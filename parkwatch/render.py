"""Image input and output, box drawing, mask colouring and the parking minimap.

Images are numpy arrays in blue-green-red channel order, as produced by ``load_image``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Sequence, Union

import numpy as np
from PIL import Image, ImageDraw, ImageFont, UnidentifiedImageError

from parkwatch.geometry import Rect

PathLike = Union[str, Path]
Color = Union[int, Sequence[int]]

FILLED = -1

WHITE = (255, 255, 255)
BLACK = (0, 0, 0)
BLUE = (255, 0, 0)
RED = (0, 0, 255)

CAR_COLOR = RED
EMPTY_COLOR = BLUE

_TEXT_MARGIN = 10
_EMPTY_TEXT_OFFSET = 100
_PARKED_TEXT_OFFSET = 50


class ImageLoadError(OSError):
    """Raised when an image file cannot be read or decoded."""


def load_image(path: PathLike) -> np.ndarray:
    """Read an image file into a ``(height, width, 3)`` BGR ``uint8`` array."""
    try:
        with Image.open(path) as picture:
            rgb = np.asarray(picture.convert("RGB"), dtype=np.uint8)
    except (FileNotFoundError, UnidentifiedImageError, OSError) as exc:
        raise ImageLoadError(f"could not read image {path}") from exc
    return np.ascontiguousarray(rgb[..., ::-1])


def save_image(image: np.ndarray, path: PathLike) -> None:
    """Write a BGR colour image or a single-channel image; the format follows the suffix."""
    array = np.asarray(image)
    if array.dtype != np.uint8:
        raise ValueError("only 8-bit images can be saved")
    if array.ndim == 2:
        picture = Image.fromarray(np.ascontiguousarray(array), mode="L")
    elif array.ndim == 3 and array.shape[2] == 3:
        picture = Image.fromarray(np.ascontiguousarray(array[..., ::-1]), mode="RGB")
    else:
        raise ValueError("expected an image of shape (height, width) or (height, width, 3)")
    picture.save(path)


def _color_value(image: np.ndarray, color: Color) -> np.ndarray:
    values = np.atleast_1d(np.asarray(color))
    if image.ndim == 2:
        return values[0].astype(image.dtype)
    channels = image.shape[2]
    if values.size < channels:
        values = np.concatenate([values, np.zeros(channels - values.size)])
    return values[:channels].astype(image.dtype)


def _fill(image: np.ndarray, x0: int, y0: int, x1: int, y1: int, value: np.ndarray) -> None:
    height, width = image.shape[:2]
    left, top = max(x0, 0), max(y0, 0)
    right, bottom = min(x1, width - 1), min(y1, height - 1)
    if left <= right and top <= bottom:
        image[top : bottom + 1, left : right + 1] = value


def draw_rectangle(image: np.ndarray, rect: Rect, color: Color, thickness: int = 1) -> None:
    """Draw ``rect`` onto ``image`` in place; a negative thickness fills it.

    The outline covers the pixels from ``(x, y)`` to ``(x + width - 1, y + height - 1)``.
    Rectangles without area draw nothing.
    """
    if thickness == 0:
        raise ValueError("thickness must be non-zero")
    if rect.empty:
        return
    value = _color_value(image, color)
    x0, y0 = rect.x, rect.y
    x1, y1 = rect.x + rect.width - 1, rect.y + rect.height - 1

    if thickness < 0:
        _fill(image, x0, y0, x1, y1, value)
        return

    outward = (thickness - 1) // 2
    inward = thickness // 2
    _fill(image, x0 - outward, y0 - outward, x1 + outward, y0 + inward, value)
    _fill(image, x0 - outward, y1 - inward, x1 + outward, y1 + outward, value)
    _fill(image, x0 - outward, y0 - outward, x0 + inward, y1 + outward, value)
    _fill(image, x1 - inward, y0 - outward, x1 + outward, y1 + outward, value)


def colorize_image_based_on_mask(main_image: np.ndarray, mask_image: np.ndarray) -> None:
    """Paint pixels blue where the mask is 1 and red where it is 2, in place."""
    mask = np.asarray(mask_image)
    if main_image.ndim != 3 or main_image.shape[2] != 3 or mask.ndim != 2:
        raise ValueError(
            "Main image must be a color image (3 channels) and mask image must be "
            "grayscale (1 channel)."
        )
    if main_image.shape[:2] != mask.shape:
        raise ValueError("Main image and mask image must have the same dimensions.")
    main_image[mask == 1] = BLUE
    main_image[mask == 2] = RED


def _put_text(image: np.ndarray, text: str, origin: tuple[int, int], color: Color) -> np.ndarray:
    picture = Image.fromarray(np.ascontiguousarray(image), mode="RGB")
    draw = ImageDraw.Draw(picture)
    font = ImageFont.load_default()
    _, _, _, bottom = draw.textbbox((0, 0), text, font=font)
    x, baseline = origin
    draw.text((x, baseline - bottom), text, fill=tuple(color), font=font, stroke_width=1,
              stroke_fill=tuple(color))
    return np.asarray(picture, dtype=np.uint8).copy()


def create_minimap(
    reference_image: np.ndarray,
    reference_boxes: Sequence[Rect],
    detected_boxes: Sequence[Rect],
) -> np.ndarray:
    """Plan of the lot: occupied spaces in red, empty ones in blue, with both counts.

    A detected box occupies the first reference space it overlaps.
    """
    height, width = np.asarray(reference_image).shape[:2]
    minimap = np.full((height, width, 3), 255, dtype=np.uint8)

    matched = [False] * len(reference_boxes)
    properly_parked = 0
    for detected in detected_boxes:
        index = next(
            (i for i, ref in enumerate(reference_boxes) if (detected & ref).area() > 0),
            None,
        )
        if index is not None:
            matched[index] = True
            properly_parked += 1

    empty_spaces = 0
    for ref, occupied in zip(reference_boxes, matched):
        if occupied:
            draw_rectangle(minimap, ref, CAR_COLOR, FILLED)
        else:
            draw_rectangle(minimap, ref, EMPTY_COLOR, FILLED)
            empty_spaces += 1

    minimap = _put_text(
        minimap, f"Empty Spaces: {empty_spaces}", (_TEXT_MARGIN, height - _EMPTY_TEXT_OFFSET), BLACK
    )
    minimap = _put_text(
        minimap,
        f"Properly Parked Cars: {properly_parked}",
        (_TEXT_MARGIN, height - _PARKED_TEXT_OFFSET),
        BLACK,
    )
    return minimap