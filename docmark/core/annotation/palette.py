"""
Fixed style palette for annotations.

Colors are kept as CSS-style hex strings (``#rrggbb`` or ``#rrggbbaa``) and
converted to OpenCV BGR tuples only when drawing.
"""

from dataclasses import dataclass
from typing import Dict, Tuple

from matplotlib.colors import to_rgba


@dataclass(frozen=True)
class Style:
    """Fill, stroke and text color for one style tag."""

    fill: str
    stroke: str
    text_color: str


STYLES: Dict[str, Style] = {
    "primary": Style(fill="#3b82f6", stroke="#2563eb", text_color="#ffffff"),
    "warning": Style(fill="#f59e0b", stroke="#d97706", text_color="#ffffff"),
    "info": Style(fill="#06b6d4", stroke="#0891b2", text_color="#ffffff"),
}

DEFAULT_MARKER_STYLE = "primary"
DEFAULT_HIGHLIGHT_STYLE = "warning"

# Colors that do not depend on the style tag
SELECTED_MARKER_STROKE = "#ffffff"
SELECTED_HIGHLIGHT_STROKE = "#ef4444"
LABEL_FILL = "#fffffff2"
LABEL_TEXT = "#1f2937"
TEXT_BOX_FILL = "#fffffff2"
TEXT_BOX_TEXT = "#1f2937"
TEXT_BOX_SELECTED_FILL = "#3b82f6f2"
TEXT_BOX_SELECTED_TEXT = "#ffffff"
TEXT_BOX_STROKE = "#3b82f6"
PREVIEW_STROKE = "#3b82f6"


def get_style(tag: str) -> Style:
    """
    Resolve a style tag.

    Raises:
        ValueError: If the tag is not part of the palette
    """
    try:
        return STYLES[tag]
    except KeyError:
        raise ValueError(
            f"Unknown style tag {tag!r}, expected one of {sorted(STYLES)}"
        ) from None


def to_bgra(color: str) -> Tuple[Tuple[int, int, int], float]:
    """
    Convert a color string into an OpenCV color and an alpha value.

    Args:
        color: Any color string understood by matplotlib

    Returns:
        ((b, g, r), alpha) with channels in [0, 255] and alpha in [0, 1]
    """
    r, g, b, a = to_rgba(color)
    return (int(round(b * 255)), int(round(g * 255)), int(round(r * 255))), float(a)
