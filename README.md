# parkwatch

parkwatch works on overhead images of a parking lot. It finds the parking
spaces and works out which of them hold a car. It can also score those
answers against ground-truth annotations.

## What it does

- **Parking-space detection** (`parkwatch.detection.detect_parking_lots_and_cars`).
  The reference image is converted to grey and blurred. Canny edges are then
  found, and a probabilistic Hough transform picks out line segments.
  Segments that slope between 5 and 45 degrees become space boxes, and boxes
  that overlap by at least the given threshold are merged.
- **Car detection** (`parkwatch.detection.car_detect`). Pixels in typical car
  colours (white, blue, red, black) are picked out in HSV space. The mask is
  opened and closed with a 5×5 kernel and its outer contours are traced.
  Blobs with an area of 1000 or less, or with a width-to-height ratio outside
  0.5–10, are dropped. The rest go through non-maximum suppression.
- **Occupancy** (`detect_cars_in_bounding_boxes`). Each space that lies
  inside the image is cropped and checked for a car. The `min_car_area`
  argument is accepted but not used; the car detector applies its own limit.
- **Evaluation** (`parkwatch.metrics`). `compute_mean_iou`,
  `compute_average_precision` and `compute_mean_ap` compare detected boxes
  with ground-truth boxes.
- **Minimap** (`parkwatch.render.create_minimap`). This draws a white plan of
  the lot, with occupied spaces in red and empty spaces in blue. The counts
  "Empty Spaces" and "Properly Parked Cars" are written near the bottom.

Images are NumPy `uint8` arrays in BGR channel order. Pillow reads and writes
them, and NumPy and SciPy do the image processing, in `parkwatch.imaging`.

## Installation

```
pip install .
```

To run the test suite as well:

```
pip install ".[test]"
pytest
```

## Command line

Installing the package provides the `parkwatch` command:

```
parkwatch --help
```

By default it runs the whole pipeline:

1. It detects spaces on the reference image and reads the annotated spaces
   from the reference XML. It also checks that the test XML can be read.
2. It loads the segmentation mask and detects cars on the test image.
3. It decides which detected spaces are occupied. A detected car counts as
   properly parked when its centre lies within 800 pixels of the centre of
   an occupied space.
4. It prints mean IoU and mean AP for the spaces and for the cars, and the
   counts of properly and improperly parked cars.

Options:

- `--reference-image`, `--reference-xml`, `--test-image`, `--test-xml`,
  `--mask`: the input files. Each has a default path inside a
  `ParkingLot_dataset-…/ParkingLot_dataset` directory, relative to the
  current directory.
- `--overlap-thresh` (default 0.08): the merge threshold for detected spaces.
- `--iou-threshold` (default 0.5): the IoU threshold for average precision.
- `--detect-only`: run only car detection on the test image, with no ground
  truth and no metrics.
- `--output-dir DIR`: write the annotated result images to `DIR` as PNG
  files. The full run writes `gt_parkinglot`, `parkinglot`, `input`,
  `gt_car_detection`, `car_detection` and `minimap`. The `--detect-only`
  run writes only `car_detection`.

If an input file cannot be read, the command prints a message to standard
error and exits with status 1.

## Library use

```python
from parkwatch.geometry import Rect, compute_iou, apply_nms
from parkwatch.metrics import compute_mean_iou, compute_mean_ap
from parkwatch.annotations import reference_boxes
from parkwatch.detection import (
    car_detect,
    detect_cars_in_bounding_boxes,
    detect_parking_lots_and_cars,
)
from parkwatch.render import load_image, save_image, create_minimap

spaces = detect_parking_lots_and_cars("reference.jpg", 0.08)
truth = reference_boxes("reference.xml")

print("space mIoU:", compute_mean_iou(truth, spaces))
print("space mAP:", compute_mean_ap([truth], [spaces], 0.5))

test_image = load_image("test.jpg")
cars = car_detect(test_image)
occupied = detect_cars_in_bounding_boxes(test_image, spaces, 500)

minimap = create_minimap(test_image, spaces, occupied)
save_image(minimap, "minimap.png")
```

`Rect` is a frozen, axis-aligned box with fields `x`, `y`, `width` and
`height`. It provides `area()`, `intersection(other)` (also available as
`a & b`) and `center()`. `parkwatch.geometry` also has IoU helpers,
`merge_rectangles`, `apply_nms`, `rotated_rect_to_bounding_rect` and
`is_properly_parked`.

Annotation files have a `parking` root element holding `space` elements.
Each `space` describes a `rotatedRect` with `center` (`x`, `y`), `size`
(`w`, `h`) and `angle` (`d`). `parse_parking_spaces` reads them as
`ParkingSpace` records, treating missing values as 0.
`ParkingSpace.bounding_rect()` gives the axis-aligned box around each
space, and `reference_boxes` returns those boxes for a whole file.

Errors are raised as exceptions:

- `parkwatch.render.ImageLoadError` when an image file cannot be read.
- `parkwatch.annotations.AnnotationError` when an annotation file cannot be
  loaded or parsed.
- `ValueError` for images of the wrong shape.

## What it does not do

parkwatch opens no windows and shows no images on screen. The command prints
its metrics, and result images are only kept when `--output-dir` is given.
Nothing is stored between runs.