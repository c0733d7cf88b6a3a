"""
Pure utility functions for annotation logic.

These functions have no side effects and can be tested in isolation.
"""

from collections import Counter
from datetime import datetime, timezone
from typing import Dict, Iterable, Optional

import cv2
import numpy as np


def label_width(text: str, minimum: float, char_width: float = 8, padding: float = 16) -> float:
    """
    Width of a label or text box.

    This is a fixed function of the character count; glyphs are never
    measured, so box sizes are identical on every platform.

    Args:
        text: Box content
        minimum: Smallest allowed width
        char_width: Width budget per character
        padding: Horizontal padding added once

    Returns:
        Box width in canvas units
    """
    return max(len(text) * char_width + padding, minimum)


def validate_image(image: np.ndarray) -> None:
    """
    Validate that image has a usable format.

    Raises:
        ValueError: If image is invalid
    """
    if image is None:
        raise ValueError("Image is None")

    if not isinstance(image, np.ndarray):
        raise ValueError(f"Image must be numpy array, got {type(image)}")

    if image.ndim == 3:
        if image.shape[2] not in (3, 4):
            raise ValueError(f"Image must have 3 or 4 channels, got {image.shape[2]}")
    elif image.ndim != 2:
        raise ValueError(f"Image must be 2D or 3D (H, W[, C]), got shape {image.shape}")

    if image.shape[0] == 0 or image.shape[1] == 0:
        raise ValueError(f"Image is empty, got shape {image.shape}")

    if image.dtype != np.uint8:
        raise ValueError(f"Invalid image dtype: {image.dtype}, expected uint8")


def normalize_image(image: np.ndarray) -> np.ndarray:
    """
    Convert a validated image to a contiguous BGR or BGRA array.

    Grayscale images are expanded to BGR; BGRA images keep their alpha
    channel so transparency survives export.
    """
    validate_image(image)
    if image.ndim == 2:
        return cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
    return np.ascontiguousarray(image)


def compute_annotation_statistics(annotations: Iterable) -> Dict[str, int]:
    """
    Count annotations by type.

    Args:
        annotations: Annotation records

    Returns:
        Dictionary with a count per type plus ``total``
    """
    counts = Counter(a.type for a in annotations)
    stats = {
        "total": sum(counts.values()),
        "marker": counts.get("marker", 0),
        "text": counts.get("text", 0),
        "rect": counts.get("rect", 0),
        "circle": counts.get("circle", 0),
    }
    return stats


def export_filename(prefix: str = "annotated", now: Optional[datetime] = None) -> str:
    """
    Suggested filename for an exported image.

    The timestamp is ISO 8601 (UTC unless ``now`` says otherwise) down to
    seconds with ``:`` and ``.`` replaced, e.g.
    ``annotated-2024-05-01T09-30-12.png``.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    stamp = now.strftime("%Y-%m-%dT%H-%M-%S")
    return f"{prefix}-{stamp}.png"
