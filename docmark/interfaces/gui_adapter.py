"""
GUI adapter for the annotation session.

Bridges the AnnotationSession with a concrete on-screen canvas widget.
"""

import logging
from typing import Callable, Optional

import numpy as np

from ..core.annotation import AnnotationEvent, AnnotationSession, EventType
from ..core.annotation.export import DownloadAction, ExportArtifact
from ..core.annotation.viewport import CoordinateMapper, PointerEvent

logger = logging.getLogger(__name__)


class GUIAnnotationAdapter:
    """
    Adapter connecting AnnotationSession to a GUI canvas.

    Provides a layer that:
    - Tracks the container size and maps pointer events to canvas coordinates
    - Translates session events to a repaint callback
    - Renders container-sized frames for display
    """

    def __init__(
        self,
        session: AnnotationSession,
        update_image_callback: Optional[Callable] = None,
    ):
        """
        Initialize adapter.

        Args:
            session: Core annotation session
            update_image_callback: Callback to request a repaint
        """
        self.session = session
        self.update_image_callback = update_image_callback
        self.mapper = CoordinateMapper(
            allow_upscale=session.cfg.view.allow_upscale
        )
        self.mapper.set_image_size(*(session.image_size or (None, None)))

        # Subscribe to session events
        self._setup_event_handlers()

    def _setup_event_handlers(self):
        """Setup event handlers for session events."""
        self.session.events.on(EventType.IMAGE_LOADED, self._on_image_loaded)
        self.session.events.on(EventType.SESSION_RESET, self._on_session_reset)
        for event_type in (
            EventType.ANNOTATION_ADDED,
            EventType.ANNOTATION_UPDATED,
            EventType.ANNOTATION_REMOVED,
            EventType.ANNOTATIONS_CLEARED,
            EventType.SELECTION_CHANGED,
            EventType.PREVIEW_UPDATED,
            EventType.DRAG_MOVED,
        ):
            self.session.events.on(event_type, self._on_view_changed)

    def _on_image_loaded(self, event: AnnotationEvent):
        """Handle a new base image."""
        self.mapper.set_image_size(event.data["width"], event.data["height"])
        self._request_repaint()

    def _on_session_reset(self, event: AnnotationEvent):
        self.mapper.set_image_size(None)
        self._request_repaint()

    def _on_view_changed(self, event: AnnotationEvent):
        """Handle anything that changes what is on screen."""
        self._request_repaint()

    def _request_repaint(self):
        if self.update_image_callback:
            self.update_image_callback()

    # Container and pointer input

    def resize(self, width: int, height: int, left: float = 0.0, top: float = 0.0):
        """Call on load and on every container resize."""
        self.mapper.resize(width, height, left, top)
        self._request_repaint()

    def on_pointer_down(self, event: PointerEvent):
        self.session.pointer_down(*self._map(event))

    def on_pointer_move(self, event: PointerEvent):
        self.session.pointer_move(*self._map(event))

    def on_pointer_up(self, event: Optional[PointerEvent] = None):
        if event is None:
            self.session.pointer_up()
        else:
            self.session.pointer_up(*self._map(event))

    def _map(self, event: PointerEvent):
        position = self.mapper.to_canvas(event)
        if position is None:
            logger.debug("Pointer event before the surface is measured")
            return None, None
        return position

    # Output

    def get_visualization(self) -> Optional[np.ndarray]:
        """
        Get a container-sized frame for display.

        Returns:
            BGR frame, or None before an image is loaded and measured
        """
        layout = self.mapper.layout()
        if layout is None:
            return None
        return self.session.render_view(
            scale=layout.scale,
            offset=(layout.offset_x, layout.offset_y),
            canvas_size=(layout.width, layout.height),
        )

    def export(self, download: Optional[DownloadAction] = None) -> Optional[ExportArtifact]:
        """Export, skipped silently until the surface is ready."""
        if not self.mapper.is_measured:
            logger.debug("Export skipped: surface not measured")
            return None
        return self.session.export(download)

    @property
    def annotations(self):
        """Current annotation list, for stats or list views."""
        return self.session.annotations
