"""
Event system for the annotation canvas.

Provides a decoupled way for the annotation core to notify views
about state changes without depending on specific UI frameworks.
"""

import logging
from enum import Enum
from typing import Any, Callable, Dict, List, Optional
from dataclasses import dataclass

logger = logging.getLogger(__name__)


class EventType(Enum):
    """Types of events that can occur on the annotation canvas."""

    # Image events
    IMAGE_LOADED = "image_loaded"
    SESSION_RESET = "session_reset"

    # Annotation list events
    ANNOTATION_ADDED = "annotation_added"
    ANNOTATION_UPDATED = "annotation_updated"
    ANNOTATION_REMOVED = "annotation_removed"
    ANNOTATIONS_CLEARED = "annotations_cleared"

    # Interaction events
    TOOL_CHANGED = "tool_changed"
    SELECTION_CHANGED = "selection_changed"
    PREVIEW_UPDATED = "preview_updated"
    DRAG_MOVED = "drag_moved"

    # Text elicitation events
    INPUT_REQUESTED = "input_requested"
    INPUT_RESOLVED = "input_resolved"

    # Export events
    EXPORT_COMPLETED = "export_completed"


@dataclass
class AnnotationEvent:
    """Event that occurs on the annotation canvas."""

    event_type: EventType
    data: Optional[Dict[str, Any]] = None

    def __post_init__(self):
        if self.data is None:
            self.data = {}


class EventEmitter:
    """
    Simple event emitter for pub/sub pattern.

    Allows views to subscribe to events without tight coupling.
    """

    def __init__(self):
        self._listeners: Dict[EventType, List[Callable]] = {}

    def on(self, event_type: EventType, callback: Callable[[AnnotationEvent], None]):
        """Subscribe to an event type."""
        if event_type not in self._listeners:
            self._listeners[event_type] = []
        self._listeners[event_type].append(callback)

    def off(self, event_type: EventType, callback: Callable[[AnnotationEvent], None]):
        """Unsubscribe from an event type."""
        if event_type in self._listeners:
            self._listeners[event_type].remove(callback)

    def on_any(self, callback: Callable[[AnnotationEvent], None]):
        """Subscribe to every event type."""
        for event_type in EventType:
            self.on(event_type, callback)

    def emit(self, event: AnnotationEvent):
        """Emit an event to all subscribers."""
        if event.event_type in self._listeners:
            for callback in list(self._listeners[event.event_type]):
                try:
                    callback(event)
                except Exception:
                    # Log but don't crash on listener errors
                    logger.exception(
                        "Error in event listener for %s", event.event_type.value
                    )

    def clear(self):
        """Clear all event listeners."""
        self._listeners.clear()
