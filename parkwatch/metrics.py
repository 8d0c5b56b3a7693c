"""Detection quality metrics over lists of bounding boxes."""

from __future__ import annotations

import math
from typing import Sequence

from parkwatch.geometry import Rect, compute_iou

MEAN_IOU_MIN_OVERLAP = 0.1


def compute_mean_iou(gt_boxes: Sequence[Rect], pred_boxes: Sequence[Rect]) -> float:
    """Mean IoU over all ground-truth/prediction pairs whose IoU exceeds 0.1."""
    if not gt_boxes or not pred_boxes:
        return 0.0
    ious = [
        iou
        for gt in gt_boxes
        for pred in pred_boxes
        if (iou := compute_iou(gt, pred)) > MEAN_IOU_MIN_OVERLAP
    ]
    if not ious:
        return 0.0
    return sum(ious) / len(ious)


def compute_average_precision(
    gt_boxes: Sequence[Rect], pred_boxes: Sequence[Rect], iou_threshold: float
) -> float:
    """Score combining precision and recall of pairs matched at the IoU threshold.

    Every ground-truth/prediction pair reaching the threshold counts as a true
    positive; the result is ``precision * recall / (precision + recall)``.
    """
    ious = sorted(
        (
            iou
            for gt in gt_boxes
            for pred in pred_boxes
            if (iou := compute_iou(gt, pred)) >= iou_threshold
        ),
        reverse=True,
    )
    true_positives = sum(1 for iou in ious if iou >= iou_threshold)
    false_positives = len(ious) - true_positives
    false_negatives = len(gt_boxes) - true_positives

    if true_positives == 0:
        return 0.0

    precision = true_positives / (true_positives + false_positives)
    recall_denominator = true_positives + false_negatives
    recall = true_positives / recall_denominator if recall_denominator else math.inf
    if math.isinf(recall):
        return precision
    return precision * recall / (precision + recall)


def compute_mean_ap(
    all_gt_boxes: Sequence[Sequence[Rect]],
    all_pred_boxes: Sequence[Sequence[Rect]],
    iou_threshold: float,
) -> float:
    """Mean of the per-image average precision; 0.0 if the lists differ in length."""
    if len(all_gt_boxes) != len(all_pred_boxes):
        return 0.0
    if not all_gt_boxes:
        return math.nan
    total = sum(
        compute_average_precision(gt, pred, iou_threshold)
        for gt, pred in zip(all_gt_boxes, all_pred_boxes)
    )
    return total / len(all_gt_boxes)