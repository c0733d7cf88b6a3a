"""
Core annotation module - UI-agnostic annotation canvas logic.

This module provides the interaction engine for placing markers, text
labels and highlight shapes on an image. It can be used with any UI
framework (Tkinter, Qt, Web, CLI, etc).
"""

from .session import AnnotationSession
from .events import AnnotationEvent, EventType, EventEmitter
from .export import ExportArtifact, ExportEngine, save_artifact
from .selection import HitTester, Selection
from .state import (
    Annotation,
    MarkerAnnotation,
    TextAnnotation,
    RectAnnotation,
    CircleAnnotation,
    DrawPreview,
    TextRequest,
    annotation_from_dict,
)
from .store import AnnotationStore
from .tools import Tool, ToolController
from .viewport import CoordinateMapper, PointerEvent

__all__ = [
    "AnnotationSession",
    "AnnotationEvent",
    "EventType",
    "EventEmitter",
    "ExportArtifact",
    "ExportEngine",
    "save_artifact",
    "HitTester",
    "Selection",
    "Annotation",
    "MarkerAnnotation",
    "TextAnnotation",
    "RectAnnotation",
    "CircleAnnotation",
    "DrawPreview",
    "TextRequest",
    "annotation_from_dict",
    "AnnotationStore",
    "Tool",
    "ToolController",
    "CoordinateMapper",
    "PointerEvent",
]
