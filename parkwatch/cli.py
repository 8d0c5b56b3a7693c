"""Command line entry point: detect parking spaces and cars and report quality metrics."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Optional, Sequence

import numpy as np
from PIL import Image, UnidentifiedImageError

from parkwatch.annotations import AnnotationError, parse_parking_spaces
from parkwatch.detection import car_detect, detect_cars_in_bounding_boxes, detect_parking_lots_and_cars
from parkwatch.geometry import is_properly_parked
from parkwatch.imaging import bounding_rect, find_external_contours
from parkwatch.metrics import compute_mean_ap, compute_mean_iou
from parkwatch.render import (
    BLUE,
    RED,
    ImageLoadError,
    colorize_image_based_on_mask,
    create_minimap,
    draw_rectangle,
    load_image,
    save_image,
)

GREEN = (0, 255, 0)
LINE_THICKNESS = 2
MIN_CAR_AREA = 500

_DATASET = "ParkingLot_dataset-20240908T160739Z-001/ParkingLot_dataset"
DEFAULT_REFERENCE_IMAGE = f"{_DATASET}/sequence0/frames/2013-02-24_17_55_12.jpg"
DEFAULT_REFERENCE_XML = f"{_DATASET}/sequence0/bounding_boxes/2013-02-24_17_55_12.xml"
DEFAULT_TEST_IMAGE = f"{_DATASET}/sequence0/frames/2013-02-24_11_30_05.jpg"
DEFAULT_TEST_XML = f"{_DATASET}/sequence0/bounding_boxes/2013-02-24_11_30_05.xml"
DEFAULT_MASK = f"{_DATASET}/sequence5/masks/2013-04-12_15_00_09.png"


class _LoadFailure(Exception):
    pass


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="parkwatch",
        description="Detect parking spaces and parked cars, and score them against ground truth.",
    )
    parser.add_argument("--reference-image", default=DEFAULT_REFERENCE_IMAGE)
    parser.add_argument("--reference-xml", default=DEFAULT_REFERENCE_XML)
    parser.add_argument("--test-image", default=DEFAULT_TEST_IMAGE)
    parser.add_argument("--test-xml", default=DEFAULT_TEST_XML)
    parser.add_argument("--mask", default=DEFAULT_MASK)
    parser.add_argument("--overlap-thresh", type=float, default=0.08)
    parser.add_argument("--iou-threshold", type=float, default=0.5)
    parser.add_argument(
        "--detect-only",
        action="store_true",
        help="only run car detection on the test image, without ground truth",
    )
    parser.add_argument("--output-dir", type=Path, help="directory to write the result images to")
    return parser


def _load(path: str, what: str) -> np.ndarray:
    try:
        return load_image(path)
    except ImageLoadError as exc:
        raise _LoadFailure(f"Failed to load {what} file: {path}") from exc


def _load_mask(path: str) -> np.ndarray:
    try:
        with Image.open(path) as picture:
            return np.asarray(picture.convert("L"), dtype=np.uint8).copy()
    except (UnidentifiedImageError, OSError) as exc:
        raise _LoadFailure(f"Failed to load mask image: {path}") from exc


def _save_all(output_dir: Optional[Path], images: dict[str, np.ndarray]) -> None:
    if output_dir is None:
        return
    output_dir.mkdir(parents=True, exist_ok=True)
    for name, image in images.items():
        save_image(image, output_dir / f"{name}.png")


def _detect_only(args: argparse.Namespace) -> int:
    test_img = _load(args.test_image, "test image")
    for bbox in car_detect(test_img):
        draw_rectangle(test_img, bbox, RED, LINE_THICKNESS)
    _save_all(args.output_dir, {"car_detection": test_img})
    return 0


def _full_run(args: argparse.Namespace) -> int:
    reference_img = _load(args.reference_image, "reference image")
    reference_plot = reference_img.copy()

    try:
        spaces = parse_parking_spaces(args.reference_xml)
    except AnnotationError as exc:
        raise _LoadFailure(f"Failed to load reference XML file: {args.reference_xml}") from exc

    parking_spaces = detect_parking_lots_and_cars(args.reference_image, args.overlap_thresh)
    for box in parking_spaces:
        draw_rectangle(reference_plot, box, GREEN, LINE_THICKNESS)

    test_img = _load(args.test_image, "test image")
    test_detect = test_img.copy()
    test_main = test_img.copy()

    try:
        parse_parking_spaces(args.test_xml)
    except AnnotationError as exc:
        raise _LoadFailure(f"Failed to load test XML file: {args.test_xml}") from exc

    mask = _load_mask(args.mask)

    car_boxes = car_detect(test_detect)
    occupied = detect_cars_in_bounding_boxes(test_detect, parking_spaces, MIN_CAR_AREA)
    for bbox in occupied:
        draw_rectangle(test_detect, bbox, GREEN, LINE_THICKNESS)

    properly_parked = 0
    improperly_parked = 0
    for bbox in car_boxes:
        if is_properly_parked(bbox, occupied):
            properly_parked += 1
            draw_rectangle(test_detect, bbox, BLUE, LINE_THICKNESS)
        else:
            improperly_parked += 1
            draw_rectangle(test_detect, bbox, RED, LINE_THICKNESS)

    reference = [space.bounding_rect() for space in spaces]
    for box in reference:
        draw_rectangle(reference_img, box, GREEN, LINE_THICKNESS)

    colorize_image_based_on_mask(test_img, mask)
    ground_truth_cars = [bounding_rect(contour) for contour in find_external_contours(mask)]

    space_iou = compute_mean_iou(reference, parking_spaces)
    space_ap = compute_mean_ap([reference], [parking_spaces], args.iou_threshold)
    car_iou = compute_mean_iou(ground_truth_cars, car_boxes)
    car_ap = compute_mean_ap([ground_truth_cars], [car_boxes], args.iou_threshold)

    print("Parking spaces:")
    print(f"  meanIoU: {space_iou:.6f}")
    print(f"  meanAP: {space_ap:.6f}")
    print("Cars:")
    print(f"  Properly Parked: {properly_parked}")
    print(f"  Improperly Parked: {improperly_parked}")
    print(f"  meanIoU: {car_iou:.6f}")
    print(f"  meanAP: {car_ap:.6f}")

    minimap = create_minimap(reference_plot, parking_spaces, occupied)

    _save_all(
        args.output_dir,
        {
            "gt_parkinglot": reference_img,
            "parkinglot": reference_plot,
            "input": test_main,
            "gt_car_detection": test_img,
            "car_detection": test_detect,
            "minimap": minimap,
        },
    )
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run detection and evaluation; returns the process exit status."""
    args = _build_parser().parse_args(argv)
    try:
        return _detect_only(args) if args.detect_only else _full_run(args)
    except _LoadFailure as exc:
        print(exc, file=sys.stderr)
        return 1
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())