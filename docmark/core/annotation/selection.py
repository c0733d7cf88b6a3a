"""
Hit testing, selection and dragging.

Selection is view state: it decides how annotations are drawn and which
annotation a drag moves, but it never changes the annotation list itself.
"""

import logging
import math
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from docmark.utils.config import get_default_config

from .events import AnnotationEvent, EventEmitter, EventType
from .renderer import BoxShape, CircleShape, Shape, describe
from .state import Annotation

logger = logging.getLogger(__name__)


def shape_contains(shape: Shape, x: float, y: float, tolerance: float = 0) -> bool:
    """
    Whether a point lands on the interactive part of a shape.

    Filled shapes react on their whole area, outline-only shapes only on a
    band around the stroke. Text never reacts on its own; it always sits on
    top of a filled shape.
    """
    if isinstance(shape, CircleShape):
        dist = math.hypot(x - shape.cx, y - shape.cy)
        if shape.fill is not None:
            return dist <= shape.radius + shape.stroke_width / 2
        band = max(tolerance, shape.stroke_width / 2)
        return abs(dist - shape.radius) <= band

    if isinstance(shape, BoxShape):
        x0, y0 = shape.x, shape.y
        x1, y1 = shape.x + shape.width, shape.y + shape.height
        if shape.fill is not None:
            pad = shape.stroke_width / 2
            return x0 - pad <= x <= x1 + pad and y0 - pad <= y <= y1 + pad
        band = max(tolerance, shape.stroke_width / 2)
        outer = x0 - band <= x <= x1 + band and y0 - band <= y <= y1 + band
        inner = x0 + band < x < x1 - band and y0 + band < y < y1 - band
        return outer and not inner

    return False


class HitTester:
    """Finds the topmost annotation under a point."""

    def __init__(self, cfg=None):
        if cfg is None:
            cfg = get_default_config()
        self.cfg = cfg

    def hit_test(
        self,
        annotations: Sequence[Annotation],
        x: float,
        y: float,
        selected_id: Optional[int] = None,
    ) -> Optional[int]:
        """
        Find the annotation under (x, y).

        Args:
            annotations: Annotations in z-order (last is topmost)
            x: X coordinate in canvas units
            y: Y coordinate in canvas units
            selected_id: Currently selected id, whose geometry may differ

        Returns:
            Id of the topmost hit annotation, or None for the background
        """
        tolerance = self.cfg.selection.hit_tolerance
        for annotation in reversed(annotations):
            shapes = describe(annotation, annotation.id == selected_id, self.cfg.render)
            if any(shape_contains(s, x, y, tolerance) for s in shapes):
                return annotation.id
        return None


@dataclass
class DragState:
    """An annotation being moved; only the view sees ``x``/``y`` until drop."""

    annotation_id: int
    pointer_x: float
    pointer_y: float
    origin_x: float
    origin_y: float
    x: float
    y: float

    @property
    def moved(self) -> bool:
        return (self.x, self.y) != (self.origin_x, self.origin_y)


class Selection:
    """Holds the single selected annotation id and the active drag."""

    def __init__(self, events: Optional[EventEmitter] = None):
        self.events = events if events is not None else EventEmitter()
        self.selected_id: Optional[int] = None
        self.drag: Optional[DragState] = None

    def select(self, annotation_id: int) -> bool:
        """Select one annotation exclusively. Returns whether it changed."""
        if self.selected_id == annotation_id:
            return False
        previous = self.selected_id
        self.selected_id = annotation_id
        self._emit(previous)
        return True

    def clear(self) -> bool:
        """Deselect. Returns whether anything was selected."""
        if self.selected_id is None:
            return False
        previous = self.selected_id
        self.selected_id = None
        self._emit(previous)
        return True

    def _emit(self, previous: Optional[int]):
        logger.debug(f"Selection {previous} -> {self.selected_id}")
        self.events.emit(
            AnnotationEvent(
                EventType.SELECTION_CHANGED,
                {"selected_id": self.selected_id, "previous_id": previous},
            )
        )

    def begin_drag(self, annotation: Annotation, x: float, y: float) -> DragState:
        self.drag = DragState(
            annotation_id=annotation.id,
            pointer_x=x,
            pointer_y=y,
            origin_x=annotation.x,
            origin_y=annotation.y,
            x=annotation.x,
            y=annotation.y,
        )
        return self.drag

    def update_drag(self, x: float, y: float) -> Optional[DragState]:
        """Move the dragged annotation visually. No-op without a drag."""
        drag = self.drag
        if drag is None:
            return None
        drag.x = drag.origin_x + (x - drag.pointer_x)
        drag.y = drag.origin_y + (y - drag.pointer_y)
        self.events.emit(
            AnnotationEvent(
                EventType.DRAG_MOVED,
                {"annotation_id": drag.annotation_id, "x": drag.x, "y": drag.y},
            )
        )
        return drag

    def end_drag(self) -> Optional[Tuple[int, float, float]]:
        """
        Finish the drag.

        Returns:
            (annotation_id, x, y) to commit, or None if nothing moved
        """
        drag, self.drag = self.drag, None
        if drag is None or not drag.moved:
            return None
        return drag.annotation_id, drag.x, drag.y

    def cancel_drag(self):
        self.drag = None

    def apply_drag(self, annotations: Sequence[Annotation]) -> Tuple[Annotation, ...]:
        """Annotations as they should be displayed while a drag is active."""
        drag = self.drag
        if drag is None:
            return tuple(annotations)
        return tuple(
            a.moved_to(drag.x, drag.y) if a.id == drag.annotation_id else a
            for a in annotations
        )
