import math

import pytest

from parkwatch.geometry import (
    Rect,
    apply_nms,
    calculate_iou,
    compute_area,
    compute_intersection,
    compute_iou,
    compute_slant_angle,
    is_properly_parked,
    merge_rectangles,
    rotated_rect_to_bounding_rect,
)


BOXES = [
    Rect(0, 0, 10, 10),
    Rect(5, 5, 10, 10),
    Rect(100, 100, 20, 30),
    Rect(3, 0, 10, 12),
    Rect(50, 50, 1, 1),
]


def test_rect_area_matches_compute_area():
    for box in BOXES:
        assert box.area() == compute_area(box) == box.width * box.height


def test_rect_intersection_matches_compute_intersection():
    for a in BOXES:
        for b in BOXES:
            assert a.intersection(b) == compute_intersection(a, b)
            assert (a & b) == a.intersection(b)


def test_intersection_of_disjoint_is_empty():
    result = compute_intersection(Rect(0, 0, 10, 10), Rect(20, 20, 5, 5))
    assert result == Rect()
    assert result.area() == 0


def test_intersection_is_contained_in_both():
    a, b = Rect(0, 0, 10, 10), Rect(5, 5, 10, 10)
    inter = a.intersection(b)
    for outer in (a, b):
        assert inter.x >= outer.x and inter.y >= outer.y
        assert inter.x + inter.width <= outer.x + outer.width
        assert inter.y + inter.height <= outer.y + outer.height


def test_intersection_with_empty_rect_is_empty():
    assert Rect(0, 0, 10, 10).intersection(Rect(2, 2, 0, 5)) == Rect()


def test_center_truncates():
    assert Rect(10, 20, 5, 7).center() == (12, 23)


def test_iou_of_identical_boxes_is_one():
    for box in BOXES:
        assert compute_iou(box, box) == pytest.approx(1.0)


def test_iou_is_symmetric_and_bounded():
    for a in BOXES:
        for b in BOXES:
            value = compute_iou(a, b)
            assert value == pytest.approx(compute_iou(b, a))
            assert 0.0 <= value <= 1.0


def test_compute_and_calculate_iou_agree_for_nonempty_boxes():
    for a in BOXES:
        for b in BOXES:
            assert compute_iou(a, b) == pytest.approx(calculate_iou(a, b))


def test_iou_disjoint_is_zero():
    assert compute_iou(Rect(0, 0, 10, 10), Rect(50, 50, 10, 10)) == 0.0


def test_iou_of_degenerate_boxes():
    empty = Rect(0, 0, 0, 0)
    assert math.isnan(compute_iou(empty, empty))
    assert calculate_iou(empty, empty) == 0.0


def test_slant_angle_directions():
    assert compute_slant_angle(0, 0, 10, 0) == pytest.approx(0.0)
    assert compute_slant_angle(0, 0, 10, 10) == pytest.approx(45.0)
    assert compute_slant_angle(0, 0, 0, 10) == pytest.approx(90.0)
    assert compute_slant_angle(0, 0, -10, 0) == pytest.approx(180.0)


def test_rotated_rect_without_rotation():
    assert rotated_rect_to_bounding_rect((50, 50), (20, 10), 0) == Rect(40, 45, 20, 10)


def test_rotated_rect_half_turn_is_same_box():
    assert rotated_rect_to_bounding_rect((50, 50), (20, 10), 180) == rotated_rect_to_bounding_rect(
        (50, 50), (20, 10), 0
    )


def test_rotated_rect_contains_center_and_grows_with_rotation():
    plain = rotated_rect_to_bounding_rect((100, 100), (40, 20), 0)
    tilted = rotated_rect_to_bounding_rect((100, 100), (40, 20), 30)
    for box in (plain, tilted):
        assert box.x <= 100 <= box.x + box.width
        assert box.y <= 100 <= box.y + box.height
    assert tilted.height > plain.height


def test_merge_rectangles_joins_overlapping():
    rects = [Rect(0, 0, 10, 10), Rect(2, 0, 10, 10), Rect(100, 100, 5, 5)]
    merged = merge_rectangles(rects, 0.5)
    assert len(merged) == 2
    assert merged[0] == Rect(0, 0, 12, 10)
    assert merged[1] == rects[2]


def test_merge_rectangles_keeps_below_threshold():
    rects = [Rect(0, 0, 10, 10), Rect(9, 9, 10, 10)]
    assert merge_rectangles(rects, 0.5) == rects


def test_merge_rectangles_result_covers_inputs():
    rects = [Rect(0, 0, 10, 10), Rect(3, 1, 10, 10), Rect(1, 4, 10, 10), Rect(200, 0, 4, 4)]
    merged = merge_rectangles(rects, 0.08)
    for rect in rects:
        assert any(rect.intersection(m) == rect for m in merged)


def test_merge_rectangles_empty():
    assert merge_rectangles([], 0.1) == []


def test_apply_nms_drops_overlaps():
    boxes = [Rect(0, 0, 10, 10), Rect(1, 1, 10, 10), Rect(50, 50, 10, 10)]
    assert apply_nms(boxes, 0.1) == [boxes[0], boxes[2]]


def test_apply_nms_result_pairwise_below_threshold():
    boxes = [Rect(i * 3, i * 2, 15, 15) for i in range(10)]
    kept = apply_nms(boxes, 0.3)
    assert kept[0] == boxes[0]
    for i, a in enumerate(kept):
        for b in kept[i + 1:]:
            assert compute_iou(a, b) <= 0.3
    assert all(box in boxes for box in kept)


def test_is_properly_parked():
    refs = [Rect(0, 0, 10, 10)]
    assert is_properly_parked(Rect(100, 100, 10, 10), refs) is True
    assert is_properly_parked(Rect(2000, 2000, 10, 10), refs) is False
    assert is_properly_parked(Rect(0, 0, 10, 10), []) is False


def test_is_properly_parked_any_reference():
    refs = [Rect(5000, 5000, 10, 10), Rect(0, 0, 10, 10)]
    assert is_properly_parked(Rect(10, 10, 4, 4), refs) is True