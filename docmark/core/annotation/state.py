"""
State for the annotation canvas.

Contains the annotation record types plus the transient interaction state
(draw preview, pending text requests) that never enters the annotation list.
"""

import dataclasses
import math
from concurrent.futures import Future
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, Optional, Type

from .palette import DEFAULT_HIGHLIGHT_STYLE, DEFAULT_MARKER_STYLE, get_style


@dataclass(frozen=True)
class Annotation:
    """
    Common part of every annotation.

    ``x``/``y`` are canvas coordinates; their meaning depends on the variant
    (center for markers and circles, top-left for rects, anchor for text).
    """

    type: ClassVar[str] = ""

    id: int
    x: float
    y: float

    def moved_to(self, x: float, y: float) -> "Annotation":
        """Copy of this annotation with only the position changed."""
        return dataclasses.replace(self, x=x, y=y)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        data = {"type": self.type}
        data.update(dataclasses.asdict(self))
        return data


@dataclass(frozen=True)
class MarkerAnnotation(Annotation):
    """Numbered marker with an optional label pill."""

    type: ClassVar[str] = "marker"

    number: int = 1
    label: str = ""
    style: str = DEFAULT_MARKER_STYLE

    def __post_init__(self):
        if self.number < 1:
            raise ValueError(f"Marker number must be >= 1, got {self.number}")
        get_style(self.style)


@dataclass(frozen=True)
class TextAnnotation(Annotation):
    """Free text label in a rounded box."""

    type: ClassVar[str] = "text"

    text: str = ""

    def __post_init__(self):
        if not self.text:
            raise ValueError("Text annotation needs non-empty text")


@dataclass(frozen=True)
class RectAnnotation(Annotation):
    """Rectangle highlight, ``x``/``y`` is the top-left corner."""

    type: ClassVar[str] = "rect"

    width: float = 0.0
    height: float = 0.0
    style: str = DEFAULT_HIGHLIGHT_STYLE

    def __post_init__(self):
        if self.width <= 0 or self.height <= 0:
            raise ValueError(
                f"Rect size must be positive, got {self.width}x{self.height}"
            )
        get_style(self.style)


@dataclass(frozen=True)
class CircleAnnotation(Annotation):
    """Circle highlight, ``x``/``y`` is the center."""

    type: ClassVar[str] = "circle"

    radius: float = 0.0
    style: str = DEFAULT_HIGHLIGHT_STYLE

    def __post_init__(self):
        if self.radius <= 0:
            raise ValueError(f"Circle radius must be positive, got {self.radius}")
        get_style(self.style)


ANNOTATION_TYPES: Dict[str, Type[Annotation]] = {
    cls.type: cls
    for cls in (MarkerAnnotation, TextAnnotation, RectAnnotation, CircleAnnotation)
}


def annotation_from_dict(data: dict) -> Annotation:
    """
    Create an annotation from its dictionary form.

    Raises:
        ValueError: If the type tag is unknown or a field is invalid
    """
    type_tag = data.get("type")
    cls = ANNOTATION_TYPES.get(type_tag)
    if cls is None:
        raise ValueError(f"Unknown annotation type: {type_tag!r}")
    names = {f.name for f in dataclasses.fields(cls)}
    return cls(**{k: v for k, v in data.items() if k in names})


@dataclass
class DrawPreview:
    """
    In-progress rect/circle shape while the pointer is held down.

    For rects ``x``/``y``/``width``/``height`` is the normalized bounding box
    of the start point and the current point; for circles the center stays
    on the start point and only ``radius`` changes.
    """

    kind: str
    start_x: float
    start_y: float
    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0
    radius: float = 0.0

    def __post_init__(self):
        if self.kind not in ("rect", "circle"):
            raise ValueError(f"Cannot preview shape kind {self.kind!r}")
        self.x = self.start_x
        self.y = self.start_y

    def update(self, x: float, y: float):
        """Recompute the extent for the current pointer position."""
        if self.kind == "rect":
            self.x = min(x, self.start_x)
            self.y = min(y, self.start_y)
            self.width = abs(x - self.start_x)
            self.height = abs(y - self.start_y)
        else:
            self.radius = math.hypot(x - self.start_x, y - self.start_y)

    def exceeds(self, min_size: float) -> bool:
        """Whether the shape is large enough to become an annotation."""
        if self.kind == "rect":
            return self.width > min_size and self.height > min_size
        return self.radius > min_size

    def to_annotation(self, annotation_id: int) -> Annotation:
        if self.kind == "rect":
            return RectAnnotation(
                id=annotation_id,
                x=self.x,
                y=self.y,
                width=self.width,
                height=self.height,
            )
        return CircleAnnotation(
            id=annotation_id, x=self.start_x, y=self.start_y, radius=self.radius
        )


@dataclass
class TextRequest:
    """
    A pending request for text from the text-entry collaborator.

    The collaborator answers with :meth:`respond` or :meth:`cancel`, at any
    later time; the creation it belongs to waits on ``future``.
    """

    request_id: int
    kind: str  # "marker_label" or "text"
    prompt: str
    x: float
    y: float
    number: Optional[int] = None
    future: Future = field(default_factory=Future, repr=False, compare=False)

    @property
    def is_pending(self) -> bool:
        return not self.future.done()

    def respond(self, text: Optional[str]) -> bool:
        """Answer the request. Returns False if it was already resolved."""
        if self.future.done():
            return False
        self.future.set_result(text or "")
        return True

    def cancel(self) -> bool:
        """Cancel the request. Returns False if it was already resolved."""
        if self.future.done():
            return False
        return self.future.cancel()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "request_id": self.request_id,
            "kind": self.kind,
            "prompt": self.prompt,
            "x": self.x,
            "y": self.y,
            "number": self.number,
        }
