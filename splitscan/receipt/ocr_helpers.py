"""Pure OCR transformation helpers.

Both OCR backends hand back word- or box-level detections; these helpers turn
them into newline-separated receipt lines plus a 0..1 mean confidence.
"""

from typing import Any

# Detections below this are dropped before line grouping
MIN_DETECTION_CONFIDENCE = 0.5
MIN_DETECTION_TEXT_LENGTH = 1


def _boxes_overlap_y(det1: dict, det2: dict, min_overlap_ratio: float = 0.3) -> bool:
    """
    Check if two detection boxes overlap in Y-axis by at least min_overlap_ratio.

    More robust than center-distance comparison for tall boxes whose centers
    are far apart but still share a text row.
    """
    overlap_start = max(det1["y_min"], det2["y_min"])
    overlap_end = min(det1["y_max"], det2["y_max"])
    if overlap_start >= overlap_end:
        return False

    smaller_height = min(det1["y_max"] - det1["y_min"], det2["y_max"] - det2["y_min"])
    # Avoid division by zero for degenerate boxes
    if smaller_height <= 0:
        return False
    return (overlap_end - overlap_start) / smaller_height >= min_overlap_ratio


def _group_detections_by_y_overlap(detections: list[dict]) -> list[list[dict]]:
    """Group detections into rows, top to bottom, each row left to right."""
    lines: list[list[dict]] = []
    for det in sorted(detections, key=lambda d: (d["center_y"], d["min_x"])):
        for line in lines:
            if any(_boxes_overlap_y(det, other, min_overlap_ratio=0.5) for other in line):
                line.append(det)
                break
        else:
            lines.append([det])

    for line in lines:
        line.sort(key=lambda d: d["min_x"])
    lines.sort(key=lambda line: sum(d["center_y"] for d in line) / len(line))
    return lines


def transform_paddleocr_result(raw_result: dict[str, Any]) -> tuple[str, float]:
    """
    Turn a PaddleOCR-style payload into receipt text.

    The payload carries ``detections`` as ``[bbox, [text, confidence]]`` with
    ``bbox`` a list of four ``[x, y]`` points.

    Returns:
        Tuple of (text, mean confidence of the kept detections).
    """
    detection_data = []
    for detection in raw_result.get("detections", []):
        bbox, (text, confidence) = detection
        if confidence < MIN_DETECTION_CONFIDENCE:
            continue
        if len(text.strip()) < MIN_DETECTION_TEXT_LENGTH:
            continue

        y_coords = [point[1] for point in bbox]
        detection_data.append(
            {
                "text": text.strip(),
                "confidence": float(confidence),
                "center_y": sum(y_coords) / len(y_coords),
                "y_min": min(y_coords),
                "y_max": max(y_coords),
                "min_x": min(point[0] for point in bbox),
            }
        )

    if not detection_data:
        return "", 0.0

    lines = _group_detections_by_y_overlap(detection_data)
    text = "\n".join(" ".join(det["text"] for det in line) for line in lines)
    confidence = sum(det["confidence"] for det in detection_data) / len(detection_data)
    return text, confidence


def transform_tesseract_data(data: dict[str, list[Any]]) -> tuple[str, float]:
    """
    Turn pytesseract ``image_to_data`` output (dict form) into receipt text.

    Words are grouped by (block, paragraph, line). Tesseract reports -1 for
    non-word boxes; those are skipped. Confidence is the mean word
    confidence scaled to 0..1.
    """
    lines: dict[tuple[int, int, int], list[str]] = {}
    confidences: list[float] = []
    for index, word in enumerate(data.get("text", [])):
        word = str(word).strip()
        conf = float(data["conf"][index])
        if not word or conf < 0:
            continue
        key = (int(data["block_num"][index]), int(data["par_num"][index]), int(data["line_num"][index]))
        lines.setdefault(key, []).append(word)
        confidences.append(conf)

    if not confidences:
        return "", 0.0
    text = "\n".join(" ".join(words) for words in lines.values())
    return text, sum(confidences) / len(confidences) / 100
