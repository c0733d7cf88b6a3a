"""
Shape rendering for annotations.

Rendering happens in two steps. :func:`describe` turns an annotation into a
list of drawable shapes in canvas units; it is pure and is also what the hit
tester uses as the interactive geometry. :func:`draw_shapes` rasterizes
those shapes onto a BGR image at a given scale and offset (OpenCV for
geometry, Pillow for text), which lets the on-screen view and the
full-resolution export share every rule.
"""

import logging
import math
from dataclasses import dataclass
from functools import lru_cache
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

import cv2
import numpy as np
from matplotlib import font_manager
from PIL import Image, ImageDraw, ImageFont

from docmark.utils.config import get_default_config

from . import palette
from .state import (
    Annotation,
    CircleAnnotation,
    DrawPreview,
    MarkerAnnotation,
    RectAnnotation,
    TextAnnotation,
)
from .utils import label_width

logger = logging.getLogger(__name__)

HIGHLIGHT_DASH = (8, 4)
PREVIEW_DASH = (4, 4)
PREVIEW_OPACITY = 0.7
PREVIEW_STROKE_WIDTH = 2
TEXT_BOX_STROKE_WIDTH = 2
LABEL_STROKE_WIDTH = 2
TEXT_PADDING = 8

FONT_FAMILY = "DejaVu Sans"

_DEFAULT_RENDER_CFG = get_default_config().render


@dataclass(frozen=True)
class CircleShape:
    cx: float
    cy: float
    radius: float
    fill: Optional[str] = None
    stroke: Optional[str] = None
    stroke_width: float = 0
    dash: Optional[Tuple[float, float]] = None
    opacity: float = 1.0

    def bounds(self) -> Tuple[float, float, float, float]:
        pad = self.radius + self.stroke_width
        return self.cx - pad, self.cy - pad, self.cx + pad, self.cy + pad


@dataclass(frozen=True)
class BoxShape:
    x: float
    y: float
    width: float
    height: float
    corner_radius: float = 0
    fill: Optional[str] = None
    stroke: Optional[str] = None
    stroke_width: float = 0
    dash: Optional[Tuple[float, float]] = None
    opacity: float = 1.0

    def bounds(self) -> Tuple[float, float, float, float]:
        pad = self.stroke_width
        return (
            self.x - pad,
            self.y - pad,
            self.x + self.width + pad,
            self.y + self.height + pad,
        )


@dataclass(frozen=True)
class TextShape:
    """Single line of text, vertically centered inside its box."""

    text: str
    x: float
    y: float
    width: float
    height: float
    color: str
    font_size: float
    bold: bool = False
    align: str = "left"
    padding: float = 0
    opacity: float = 1.0

    def bounds(self) -> Tuple[float, float, float, float]:
        return self.x, self.y, self.x + self.width, self.y + self.height


Shape = Union[CircleShape, BoxShape, TextShape]


def _marker_shapes(annotation: MarkerAnnotation, is_selected: bool, cfg) -> List[Shape]:
    style = palette.get_style(annotation.style)
    radius = cfg.marker_radius
    shapes: List[Shape] = [
        CircleShape(
            cx=annotation.x,
            cy=annotation.y,
            radius=radius,
            fill=style.fill,
            stroke=palette.SELECTED_MARKER_STROKE if is_selected else style.stroke,
            stroke_width=(
                cfg.marker_selected_stroke_width
                if is_selected
                else cfg.marker_stroke_width
            ),
        ),
        TextShape(
            text=str(annotation.number),
            x=annotation.x - radius,
            y=annotation.y - radius,
            width=radius * 2,
            height=radius * 2,
            color=style.text_color,
            font_size=cfg.marker_font_size,
            bold=True,
            align="center",
        ),
    ]
    if annotation.label:
        width = label_width(
            annotation.label, cfg.label_min_width, cfg.char_width, cfg.box_padding
        )
        left = annotation.x + cfg.label_offset_x
        top = annotation.y + cfg.label_offset_y
        shapes.append(
            BoxShape(
                x=left,
                y=top,
                width=width,
                height=cfg.label_height,
                corner_radius=cfg.corner_radius,
                fill=palette.LABEL_FILL,
                stroke=style.stroke,
                stroke_width=LABEL_STROKE_WIDTH,
            )
        )
        # Label text is dark on light whatever the marker style
        shapes.append(
            TextShape(
                text=annotation.label,
                x=left,
                y=top,
                width=width,
                height=cfg.label_height,
                color=palette.LABEL_TEXT,
                font_size=cfg.label_font_size,
                padding=TEXT_PADDING,
            )
        )
    return shapes


def _text_shapes(annotation: TextAnnotation, is_selected: bool, cfg) -> List[Shape]:
    width = label_width(
        annotation.text, cfg.text_min_width, cfg.char_width, cfg.box_padding
    )
    return [
        BoxShape(
            x=annotation.x,
            y=annotation.y,
            width=width,
            height=cfg.text_height,
            corner_radius=cfg.corner_radius,
            fill=palette.TEXT_BOX_SELECTED_FILL if is_selected else palette.TEXT_BOX_FILL,
            stroke=palette.TEXT_BOX_STROKE,
            stroke_width=TEXT_BOX_STROKE_WIDTH,
        ),
        TextShape(
            text=annotation.text,
            x=annotation.x,
            y=annotation.y,
            width=width,
            height=cfg.text_height,
            color=palette.TEXT_BOX_SELECTED_TEXT if is_selected else palette.TEXT_BOX_TEXT,
            font_size=cfg.text_font_size,
            padding=TEXT_PADDING,
        ),
    ]


def _highlight_stroke(annotation, is_selected: bool) -> str:
    if is_selected:
        return palette.SELECTED_HIGHLIGHT_STROKE
    return palette.get_style(annotation.style).stroke


def _rect_shapes(annotation: RectAnnotation, is_selected: bool, cfg) -> List[Shape]:
    return [
        BoxShape(
            x=annotation.x,
            y=annotation.y,
            width=annotation.width,
            height=annotation.height,
            stroke=_highlight_stroke(annotation, is_selected),
            stroke_width=cfg.highlight_stroke_width,
            dash=HIGHLIGHT_DASH,
        )
    ]


def _circle_shapes(annotation: CircleAnnotation, is_selected: bool, cfg) -> List[Shape]:
    return [
        CircleShape(
            cx=annotation.x,
            cy=annotation.y,
            radius=annotation.radius,
            stroke=_highlight_stroke(annotation, is_selected),
            stroke_width=cfg.highlight_stroke_width,
            dash=HIGHLIGHT_DASH,
        )
    ]


SHAPE_BUILDERS: Dict[str, Callable[..., List[Shape]]] = {
    MarkerAnnotation.type: _marker_shapes,
    TextAnnotation.type: _text_shapes,
    RectAnnotation.type: _rect_shapes,
    CircleAnnotation.type: _circle_shapes,
}


def describe(annotation: Annotation, is_selected: bool = False, cfg=None) -> List[Shape]:
    """
    Drawable geometry for one annotation.

    Args:
        annotation: Annotation to render
        is_selected: Whether to use the selected look
        cfg: ``render`` section of the configuration

    Returns:
        Shapes in canvas units, in drawing order
    """
    if cfg is None:
        cfg = _DEFAULT_RENDER_CFG
    try:
        builder = SHAPE_BUILDERS[annotation.type]
    except KeyError:
        raise ValueError(f"No renderer for annotation type {annotation.type!r}") from None
    return builder(annotation, is_selected, cfg)


def describe_preview(preview: DrawPreview) -> List[Shape]:
    """Geometry for an in-progress shape. Never filled, never interactive."""
    if preview.kind == "rect":
        return [
            BoxShape(
                x=preview.x,
                y=preview.y,
                width=preview.width,
                height=preview.height,
                stroke=palette.PREVIEW_STROKE,
                stroke_width=PREVIEW_STROKE_WIDTH,
                dash=PREVIEW_DASH,
                opacity=PREVIEW_OPACITY,
            )
        ]
    return [
        CircleShape(
            cx=preview.start_x,
            cy=preview.start_y,
            radius=preview.radius,
            stroke=palette.PREVIEW_STROKE,
            stroke_width=PREVIEW_STROKE_WIDTH,
            dash=PREVIEW_DASH,
            opacity=PREVIEW_OPACITY,
        )
    ]


# Rasterization


class _Transform:
    def __init__(self, scale: float, offset: Tuple[float, float]):
        self.scale = scale
        self.ox, self.oy = offset

    def point(self, x: float, y: float) -> Tuple[float, float]:
        return x * self.scale + self.ox, y * self.scale + self.oy

    def length(self, value: float) -> float:
        return value * self.scale

    def thickness(self, value: float) -> int:
        return max(1, int(round(value * self.scale)))

    def shifted(self, dx: float, dy: float) -> "_Transform":
        return _Transform(self.scale, (self.ox + dx, self.oy + dy))


def _ipt(point) -> Tuple[int, int]:
    # Half-up rounding, so integer shifts of the origin move pixels exactly
    return int(math.floor(point[0] + 0.5)), int(math.floor(point[1] + 0.5))


def _rounded_rect_outline(x0, y0, x1, y1, r) -> List[Tuple[float, float]]:
    """Closed polyline of a (possibly rounded) rectangle, clockwise."""
    r = max(0.0, min(r, (x1 - x0) / 2, (y1 - y0) / 2))
    if r == 0:
        return [(x0, y0), (x1, y0), (x1, y1), (x0, y1)]
    points = []
    corners = (
        (x1 - r, y0 + r, -90),
        (x1 - r, y1 - r, 0),
        (x0 + r, y1 - r, 90),
        (x0 + r, y0 + r, 180),
    )
    steps = max(4, int(r))
    for cx, cy, start in corners:
        for i in range(steps + 1):
            angle = math.radians(start + 90 * i / steps)
            points.append((cx + r * math.cos(angle), cy + r * math.sin(angle)))
    return points


def _circle_outline(cx, cy, r) -> List[Tuple[float, float]]:
    steps = max(32, int(2 * math.pi * r / 2))
    return [
        (cx + r * math.cos(2 * math.pi * i / steps), cy + r * math.sin(2 * math.pi * i / steps))
        for i in range(steps)
    ]


def dash_segments(
    points: Sequence[Tuple[float, float]], dash: float, gap: float
) -> List[List[Tuple[float, float]]]:
    """
    Split a closed polyline into the "on" runs of a dash pattern.

    Args:
        points: Vertices of the closed polyline
        dash: Length of each drawn run
        gap: Length of each skipped run

    Returns:
        List of open polylines to draw
    """
    if len(points) < 2 or dash <= 0:
        return [list(points) + [points[0]]] if points else []
    segments = []
    current = [points[0]]
    on = True
    remaining = dash
    edges = zip(points, list(points[1:]) + [points[0]])
    for (ax, ay), (bx, by) in edges:
        edge_len = math.hypot(bx - ax, by - ay)
        if edge_len == 0:
            continue
        pos = 0.0
        while edge_len - pos > remaining:
            pos += remaining
            t = pos / edge_len
            split = (ax + (bx - ax) * t, ay + (by - ay) * t)
            if on:
                current.append(split)
                segments.append(current)
                current = []
            else:
                current = [split]
            on = not on
            remaining = dash if on else max(gap, 1e-6)
        remaining -= edge_len - pos
        if on:
            current.append((bx, by))
    if on and len(current) > 1:
        segments.append(current)
    return segments


Draw = Callable[[np.ndarray, _Transform], None]


def _blend(canvas: np.ndarray, alpha: float, bounds, draw: Draw, tf: _Transform):
    """
    Run ``draw`` on the canvas, blended with ``alpha``.

    Translucent drawing works on a copy of the region inside ``bounds`` only,
    with the transform moved to that region's origin.
    """
    if alpha <= 0.0:
        return
    if alpha >= 1.0:
        draw(canvas, tf)
        return
    h, w = canvas.shape[:2]
    x0 = max(0, int(math.floor(bounds[0])) - 2)
    y0 = max(0, int(math.floor(bounds[1])) - 2)
    x1 = min(w, int(math.ceil(bounds[2])) + 2)
    y1 = min(h, int(math.ceil(bounds[3])) + 2)
    if x0 >= x1 or y0 >= y1:
        return
    region = canvas[y0:y1, x0:x1]
    overlay = region.copy()
    draw(overlay, tf.shifted(-x0, -y0))
    canvas[y0:y1, x0:x1] = cv2.addWeighted(overlay, alpha, region, 1.0 - alpha, 0)


def _pixel_bounds(shape: Shape, tf: _Transform):
    x0, y0, x1, y1 = shape.bounds()
    px0, py0 = tf.point(x0, y0)
    px1, py1 = tf.point(x1, y1)
    return px0, py0, px1, py1


def _stroke_polyline(canvas, points, color, thickness, dash, tf: _Transform):
    if dash is None:
        runs = [list(points) + [points[0]]]
    else:
        runs = dash_segments(points, tf.length(dash[0]), tf.length(dash[1]))
    for run in runs:
        pts = np.array([_ipt(p) for p in run], dtype=np.int32)
        cv2.polylines(canvas, [pts], False, color, thickness, cv2.LINE_AA)


def _draw_circle(canvas: np.ndarray, shape: CircleShape, tf: _Transform):
    radius = tf.length(shape.radius)
    bounds = _pixel_bounds(shape, tf)
    if shape.fill is not None:
        fill_color, fill_alpha = palette.to_bgra(shape.fill)

        def fill_disc(img, t):
            center = _ipt(t.point(shape.cx, shape.cy))
            cv2.circle(img, center, int(round(radius)), fill_color, -1, cv2.LINE_AA)

        _blend(canvas, fill_alpha * shape.opacity, bounds, fill_disc, tf)

    if shape.stroke is not None and shape.stroke_width > 0:
        color, alpha = palette.to_bgra(shape.stroke)
        thickness = tf.thickness(shape.stroke_width)

        def outline(img, t):
            cx, cy = t.point(shape.cx, shape.cy)
            if shape.dash is None:
                cv2.circle(img, _ipt((cx, cy)), int(round(radius)), color, thickness, cv2.LINE_AA)
            else:
                points = _circle_outline(cx, cy, radius)
                _stroke_polyline(img, points, color, thickness, shape.dash, t)

        _blend(canvas, alpha * shape.opacity, bounds, outline, tf)


def _fill_rounded_rect(img, x0, y0, x1, y1, r, color):
    r = int(max(0, min(r, (x1 - x0) // 2, (y1 - y0) // 2)))
    if r == 0:
        cv2.rectangle(img, (x0, y0), (x1, y1), color, -1)
        return
    cv2.rectangle(img, (x0 + r, y0), (x1 - r, y1), color, -1)
    cv2.rectangle(img, (x0, y0 + r), (x1, y1 - r), color, -1)
    for cx, cy in ((x0 + r, y0 + r), (x1 - r, y0 + r), (x0 + r, y1 - r), (x1 - r, y1 - r)):
        cv2.circle(img, (cx, cy), r, color, -1, cv2.LINE_AA)


def _draw_box(canvas: np.ndarray, shape: BoxShape, tf: _Transform):
    radius = tf.length(shape.corner_radius)
    bounds = _pixel_bounds(shape, tf)

    def corners(t):
        return t.point(shape.x, shape.y), t.point(shape.x + shape.width, shape.y + shape.height)

    if shape.fill is not None:
        fill_color, fill_alpha = palette.to_bgra(shape.fill)

        def fill_box(img, t):
            top_left, bottom_right = corners(t)
            (x0, y0), (x1, y1) = _ipt(top_left), _ipt(bottom_right)
            _fill_rounded_rect(img, x0, y0, x1, y1, radius, fill_color)

        _blend(canvas, fill_alpha * shape.opacity, bounds, fill_box, tf)

    if shape.stroke is not None and shape.stroke_width > 0:
        color, alpha = palette.to_bgra(shape.stroke)
        thickness = tf.thickness(shape.stroke_width)

        def outline(img, t):
            (x0, y0), (x1, y1) = corners(t)
            points = _rounded_rect_outline(x0, y0, x1, y1, radius)
            _stroke_polyline(img, points, color, thickness, shape.dash, t)

        _blend(canvas, alpha * shape.opacity, bounds, outline, tf)


@lru_cache(maxsize=64)
def get_font(size: int, bold: bool = False):
    """
    TrueType font for label text at ``size`` pixels.

    DejaVu Sans ships with matplotlib and covers accented and non-Latin
    scripts; Pillow's built-in font is used if it cannot be opened.
    """
    props = font_manager.FontProperties(
        family=FONT_FAMILY, weight="bold" if bold else "normal"
    )
    path = font_manager.findfont(props)
    try:
        return ImageFont.truetype(path, size)
    except OSError:
        logger.warning(f"Cannot open font {path}, using Pillow's default font")
        return ImageFont.load_default()


def _text_extent(font, text: str) -> Tuple[float, float, float, float]:
    left, top, right, bottom = font.getbbox(text)
    return left, top, right - left, bottom - top


def _draw_text(canvas: np.ndarray, shape: TextShape, tf: _Transform):
    if not shape.text:
        return
    color, alpha = palette.to_bgra(shape.color)
    box_w = tf.length(shape.width)
    box_h = tf.length(shape.height)
    padding = tf.length(shape.padding)

    size = max(1, int(round(tf.length(shape.font_size))))
    font = get_font(size, shape.bold)
    left, top, text_w, text_h = _text_extent(font, shape.text)
    available = box_w - 2 * padding
    if text_w > available > 0:
        # Box size is fixed by the width heuristic, so shrink the glyphs instead
        size = max(1, int(size * available / text_w))
        font = get_font(size, shape.bold)
        left, top, text_w, text_h = _text_extent(font, shape.text)

    if shape.align == "center":
        dx = (box_w - text_w) / 2 - left
    else:
        dx = padding - left
    dy = (box_h - text_h) / 2 - top

    def put_text(img, t):
        box_x, box_y = t.point(shape.x, shape.y)
        h, w = img.shape[:2]
        x0 = max(0, int(math.floor(box_x)))
        y0 = max(0, int(math.floor(box_y)))
        x1 = min(w, int(math.ceil(box_x + box_w)))
        y1 = min(h, int(math.ceil(box_y + box_h)))
        if x0 >= x1 or y0 >= y1:
            return
        # Channels stay in BGR order, so the fill is given as (b, g, r) too
        origin_x, origin_y = _ipt((box_x + dx, box_y + dy))
        patch = Image.fromarray(np.ascontiguousarray(img[y0:y1, x0:x1]))
        ImageDraw.Draw(patch).text(
            (origin_x - x0, origin_y - y0), shape.text, font=font, fill=color
        )
        img[y0:y1, x0:x1] = np.asarray(patch)

    _blend(canvas, alpha * shape.opacity, _pixel_bounds(shape, tf), put_text, tf)


SHAPE_DRAWERS: Dict[type, Callable[[np.ndarray, Shape, _Transform], None]] = {
    CircleShape: _draw_circle,
    BoxShape: _draw_box,
    TextShape: _draw_text,
}


def draw_shapes(
    canvas: np.ndarray,
    shapes: Sequence[Shape],
    scale: float = 1.0,
    offset: Tuple[float, float] = (0.0, 0.0),
) -> np.ndarray:
    """
    Rasterize shapes onto a BGR canvas in place.

    Args:
        canvas: HxWx3 uint8 image
        shapes: Shapes in canvas units
        scale: Canvas units to pixels
        offset: Pixel position of the canvas origin

    Returns:
        The same canvas
    """
    tf = _Transform(scale, offset)
    for shape in shapes:
        SHAPE_DRAWERS[type(shape)](canvas, shape, tf)
    return canvas


def _flatten(image: np.ndarray, background) -> np.ndarray:
    """Composite a BGRA image over a solid BGR color."""
    alpha = image[:, :, 3:4].astype(np.float32) / 255.0
    color = np.array(background, dtype=np.float32)
    flat = image[:, :, :3].astype(np.float32) * alpha + color * (1.0 - alpha)
    return np.clip(flat + 0.5, 0, 255).astype(np.uint8)


def _place_image(image: np.ndarray, canvas_size, scale, offset, background) -> np.ndarray:
    width, height = canvas_size
    color, _ = palette.to_bgra(background)
    canvas = np.empty((height, width, 3), dtype=np.uint8)
    canvas[:] = color
    if image.shape[2] == 4:
        image = _flatten(image, color)

    image_h, image_w = image.shape[:2]
    shown_w = max(1, int(round(image_w * scale)))
    shown_h = max(1, int(round(image_h * scale)))
    if (shown_w, shown_h) == (image_w, image_h):
        shown = image
    else:
        interpolation = cv2.INTER_AREA if scale < 1 else cv2.INTER_LINEAR
        shown = cv2.resize(image, (shown_w, shown_h), interpolation=interpolation)

    left, top = int(round(offset[0])), int(round(offset[1]))
    src_x0, src_y0 = max(0, -left), max(0, -top)
    dst_x0, dst_y0 = max(0, left), max(0, top)
    copy_w = min(shown_w - src_x0, width - dst_x0)
    copy_h = min(shown_h - src_y0, height - dst_y0)
    if copy_w > 0 and copy_h > 0:
        canvas[dst_y0:dst_y0 + copy_h, dst_x0:dst_x0 + copy_w] = shown[
            src_y0:src_y0 + copy_h, src_x0:src_x0 + copy_w
        ]
    return canvas


def _draw_annotations(canvas, annotations, selected_id, preview, cfg, scale, offset):
    for annotation in annotations:
        shapes = describe(annotation, annotation.id == selected_id, cfg)
        draw_shapes(canvas, shapes, scale, offset)
    if preview is not None:
        draw_shapes(canvas, describe_preview(preview), scale, offset)
    return canvas


def _render_keeping_alpha(image, annotations, selected_id, preview, cfg):
    """
    Draw on the color planes of a BGRA image and make drawn pixels opaque.

    Drawing a second time over the inverted colors finds every touched
    pixel, including those painted with the very color already there.
    """
    bgr = np.ascontiguousarray(image[:, :, :3])
    inverted = 255 - bgr
    drawn = _draw_annotations(bgr.copy(), annotations, selected_id, preview, cfg, 1.0, (0.0, 0.0))
    drawn_inverted = _draw_annotations(
        inverted.copy(), annotations, selected_id, preview, cfg, 1.0, (0.0, 0.0)
    )
    touched = np.any(drawn != bgr, axis=2) | np.any(drawn_inverted != inverted, axis=2)
    alpha = image[:, :, 3].copy()
    alpha[touched] = 255
    return np.dstack([drawn, alpha])


def render_frame(
    image: np.ndarray,
    annotations: Sequence[Annotation],
    selected_id: Optional[int] = None,
    preview: Optional[DrawPreview] = None,
    cfg=None,
    scale: float = 1.0,
    offset: Tuple[float, float] = (0.0, 0.0),
    canvas_size: Optional[Tuple[int, int]] = None,
    background: str = "#f3f4f6",
    keep_alpha: bool = False,
) -> np.ndarray:
    """
    Compose a frame: base image, annotations in list order, then the preview.

    Args:
        image: BGR or BGRA base image
        annotations: Annotations in z-order
        selected_id: Id drawn with the selected look, if any
        preview: In-progress shape, if any
        cfg: ``render`` section of the configuration
        scale: Canvas units to pixels
        offset: Pixel position of the image origin
        canvas_size: (width, height) of the frame; defaults to the image size
        background: Color around the image and behind transparent pixels
        keep_alpha: Return BGRA for a BGRA image drawn at its own size,
            instead of flattening it over ``background``

    Returns:
        New BGR frame, or BGRA when ``keep_alpha`` applies
    """
    native = canvas_size is None and scale == 1.0 and tuple(offset) == (0.0, 0.0)
    has_alpha = image.shape[2] == 4
    if native and has_alpha and keep_alpha:
        return _render_keeping_alpha(image, annotations, selected_id, preview, cfg)

    if native and not has_alpha:
        canvas = image.copy()
    else:
        if canvas_size is None:
            canvas_size = (image.shape[1], image.shape[0])
        canvas = _place_image(image, canvas_size, scale, offset, background)
    return _draw_annotations(canvas, annotations, selected_id, preview, cfg, scale, offset)
