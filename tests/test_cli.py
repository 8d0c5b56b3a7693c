import numpy as np
import pytest
from PIL import Image

from parkwatch.annotations import reference_boxes
from parkwatch.cli import GREEN, main
from parkwatch.detection import car_detect
from parkwatch.render import BLUE, RED, load_image

HEIGHT, WIDTH = 60, 80

XML = """<parking>
  <space><rotatedRect>
    <center x="40" y="30" /><size w="20" h="16" /><angle d="0" />
  </rotatedRect></space>
</parking>
"""


def _write_rgb(path, rgb, height=HEIGHT, width=WIDTH):
    Image.fromarray(np.full((height, width, 3), rgb, dtype=np.uint8), mode="RGB").save(path)


@pytest.fixture
def dataset(tmp_path):
    ref_img = tmp_path / "ref.png"
    test_img = tmp_path / "test.png"
    _write_rgb(ref_img, (128, 128, 128))
    _write_rgb(test_img, (128, 128, 128))
    ref_xml = tmp_path / "ref.xml"
    test_xml = tmp_path / "test.xml"
    ref_xml.write_text(XML)
    test_xml.write_text(XML)
    mask = np.zeros((HEIGHT, WIDTH), dtype=np.uint8)
    mask[10:20, 10:30] = 1
    mask_path = tmp_path / "mask.png"
    Image.fromarray(mask, mode="L").save(mask_path)
    return {
        "--reference-image": ref_img,
        "--reference-xml": ref_xml,
        "--test-image": test_img,
        "--test-xml": test_xml,
        "--mask": mask_path,
    }


def _argv(files, **overrides):
    merged = {**files, **overrides}
    argv = []
    for key, value in merged.items():
        argv += [key, str(value)]
    return argv


def test_full_run_writes_results(dataset, tmp_path, capsys):
    out = tmp_path / "out"
    assert main(_argv(dataset, **{"--output-dir": out})) == 0
    names = {p.name for p in out.iterdir()}
    assert names == {
        "gt_parkinglot.png",
        "parkinglot.png",
        "input.png",
        "gt_car_detection.png",
        "car_detection.png",
        "minimap.png",
    }
    stdout = capsys.readouterr().out
    assert "meanIoU" in stdout and "meanAP" in stdout
    assert "Improperly Parked: 0" in stdout


def test_ground_truth_mask_is_colourised(dataset, tmp_path):
    out = tmp_path / "out"
    assert main(_argv(dataset, **{"--output-dir": out})) == 0
    gt = load_image(out / "gt_car_detection.png")
    assert tuple(gt[15, 20]) == BLUE
    assert tuple(gt[40, 60]) == (128, 128, 128)


def test_reference_boxes_are_drawn(dataset, tmp_path):
    out = tmp_path / "out"
    assert main(_argv(dataset, **{"--output-dir": out})) == 0
    drawn = load_image(out / "gt_parkinglot.png")
    (box,) = reference_boxes(dataset["--reference-xml"])
    assert tuple(drawn[box.y, box.x]) == GREEN


def test_minimap_matches_reference_size(dataset, tmp_path):
    out = tmp_path / "out"
    assert main(_argv(dataset, **{"--output-dir": out})) == 0
    assert load_image(out / "minimap.png").shape == (HEIGHT, WIDTH, 3)


def test_missing_reference_image_fails(dataset, tmp_path, capsys):
    argv = _argv(dataset, **{"--reference-image": tmp_path / "none.png"})
    assert main(argv) == 1
    assert "Failed to load reference image file" in capsys.readouterr().err


def test_missing_reference_xml_fails(dataset, tmp_path, capsys):
    argv = _argv(dataset, **{"--reference-xml": tmp_path / "none.xml"})
    assert main(argv) == 1
    assert "Failed to load reference XML file" in capsys.readouterr().err


def test_missing_test_image_fails(dataset, tmp_path, capsys):
    argv = _argv(dataset, **{"--test-image": tmp_path / "none.png"})
    assert main(argv) == 1
    assert "Failed to load test image file" in capsys.readouterr().err


def test_missing_test_xml_fails(dataset, tmp_path, capsys):
    argv = _argv(dataset, **{"--test-xml": tmp_path / "none.xml"})
    assert main(argv) == 1
    assert "Failed to load test XML file" in capsys.readouterr().err


def test_missing_mask_fails(dataset, tmp_path, capsys):
    argv = _argv(dataset, **{"--mask": tmp_path / "none.png"})
    assert main(argv) == 1
    assert "Failed to load mask image" in capsys.readouterr().err


def test_mask_size_mismatch_fails(dataset, tmp_path, capsys):
    small = tmp_path / "small_mask.png"
    Image.fromarray(np.zeros((10, 10), dtype=np.uint8), mode="L").save(small)
    assert main(_argv(dataset, **{"--mask": small})) == 1
    assert "same dimensions" in capsys.readouterr().err


def test_detect_only_marks_cars(tmp_path):
    image_path = tmp_path / "white.png"
    _write_rgb(image_path, (255, 255, 255), height=60, width=60)
    out = tmp_path / "out"
    assert main(["--detect-only", "--test-image", str(image_path), "--output-dir", str(out)]) == 0
    result = load_image(out / "car_detection.png")
    boxes = car_detect(load_image(image_path))
    assert boxes
    for box in boxes:
        assert tuple(result[box.y, box.x]) == RED


def test_detect_only_missing_image_fails(tmp_path, capsys):
    assert main(["--detect-only", "--test-image", str(tmp_path / "none.png")]) == 1
    assert "Failed to load test image file" in capsys.readouterr().err