"""
Annotation session management.

Core logic for the annotation canvas: routes pointer input, owns the
annotation list and the view state, and exports the result.
UI-agnostic - can be used with any interface (GUI, Web, CLI).
"""

import logging
from typing import Any, Dict, Optional, Tuple, Union

import numpy as np

from docmark.utils.config import get_default_config

from .events import AnnotationEvent, EventEmitter, EventType
from .export import DownloadAction, ExportArtifact, ExportEngine
from .renderer import render_frame
from .selection import HitTester, Selection
from .state import Annotation, DrawPreview, TextRequest
from .store import AnnotationStore
from .tools import TextProvider, Tool, ToolController
from .utils import compute_annotation_statistics, normalize_image

logger = logging.getLogger(__name__)


class AnnotationSession:
    """
    Manages the state and logic of an annotation canvas.

    This class handles:
    - The base image and its annotation list
    - Routing pointer input to selection/drag or to the active tool
    - Pending text requests for markers and text labels
    - Export at the image's native resolution
    - Event emission for view updates

    All coordinates are canvas coordinates (pixels of the base image);
    mapping from screen positions happens in the interface adapter.
    """

    def __init__(self, cfg=None, text_provider: Optional[TextProvider] = None):
        """
        Initialize annotation session.

        Args:
            cfg: Configuration tree, defaults to ``get_default_config()``
            text_provider: Collaborator called with every text request
        """
        if cfg is None:
            cfg = get_default_config()
        self.cfg = cfg

        # Event emitter for UI notifications
        self.events = EventEmitter()

        self.store = AnnotationStore(self.events)
        self.tools = ToolController(
            self.store, self.events, cfg, text_provider=text_provider
        )
        self.selection = Selection(self.events)
        self.hit_tester = HitTester(cfg)
        self.exporter = ExportEngine(cfg)

        self._image: Optional[np.ndarray] = None
        self.image_path: Optional[str] = None

    # Image lifecycle

    def load_image(self, image: np.ndarray, image_path: Optional[str] = None):
        """
        Load a new base image.

        Annotations are not portable across images, so the list, the
        selection and every in-progress interaction are discarded.

        Args:
            image: BGR (or grayscale/BGRA) uint8 image as numpy array
            image_path: Optional path to the image file

        Raises:
            ValueError: If the image is not a usable array
        """
        image = normalize_image(image)
        self._discard_interaction()
        self._image = image
        self.image_path = image_path
        if len(self.store):
            self.store.clear()

        height, width = image.shape[:2]
        logger.debug(f"Loaded {width}x{height} image {image_path or ''}")
        self.events.emit(
            AnnotationEvent(
                EventType.IMAGE_LOADED,
                {"width": width, "height": height, "path": image_path},
            )
        )

    def reset(self):
        """Tear down: drop the image and every annotation."""
        self._discard_interaction()
        self._image = None
        self.image_path = None
        if len(self.store):
            self.store.clear()
        self.events.emit(AnnotationEvent(EventType.SESSION_RESET))

    def _discard_interaction(self):
        self.tools.drop_pending()
        self.tools.cancel_draw()
        self.selection.cancel_drag()
        self.selection.clear()

    @property
    def image(self) -> Optional[np.ndarray]:
        return self._image

    @property
    def image_size(self) -> Optional[Tuple[int, int]]:
        """Intrinsic (width, height) of the base image."""
        if self._image is None:
            return None
        return self._image.shape[1], self._image.shape[0]

    # Read API

    @property
    def annotations(self) -> Tuple[Annotation, ...]:
        return self.store.snapshot()

    @property
    def selected_id(self) -> Optional[int]:
        return self.selection.selected_id

    @property
    def tool(self) -> Tool:
        return self.tools.tool

    @property
    def preview(self) -> Optional[DrawPreview]:
        return self.tools.preview

    @property
    def pending_requests(self) -> Tuple[TextRequest, ...]:
        return self.tools.pending_requests

    def get_statistics(self) -> Dict[str, int]:
        return compute_annotation_statistics(self.store)

    # Collaborator actions

    def set_tool(self, tool: Union[Tool, str]) -> bool:
        return self.tools.set_tool(tool)

    def respond_to_input(self, request_id: int, text: Optional[str]) -> bool:
        return self.tools.respond(request_id, text)

    def cancel_input(self, request_id: int) -> bool:
        return self.tools.cancel_request(request_id)

    def remove_annotation(self, annotation_id: int) -> bool:
        """
        Delete one annotation.

        Marker numbers of the remaining markers are left as they are.
        """
        if self.selection.drag and self.selection.drag.annotation_id == annotation_id:
            self.selection.cancel_drag()
        removed = self.store.remove(annotation_id)
        if removed and self.selection.selected_id == annotation_id:
            self.selection.clear()
        return removed

    def remove_selected(self) -> bool:
        """Delete the selected annotation. Returns False if none is selected."""
        if self.selection.selected_id is None:
            return False
        return self.remove_annotation(self.selection.selected_id)

    def clear_annotations(self):
        """Delete every annotation, keeping the image."""
        self.selection.cancel_drag()
        self.selection.clear()
        self.store.clear()

    # Pointer input, canvas coordinates

    def pointer_down(self, x: Optional[float], y: Optional[float]):
        """
        Handle a pointer press.

        A press on an annotation selects it and starts a drag, whatever the
        active tool. A press on the background clears the selection and is
        handed to the active tool.
        """
        if x is None or y is None or self._image is None:
            logger.debug("Pointer down ignored: no position or no image")
            return

        hit_id = self.hit_tester.hit_test(
            self.store.snapshot(), x, y, self.selection.selected_id
        )
        if hit_id is not None:
            # A draw whose release was lost ends here, uncommitted
            self.tools.cancel_draw()
            self.selection.select(hit_id)
            self.selection.begin_drag(self.store.get(hit_id), x, y)
            return

        self.selection.clear()
        self.tools.pointer_down(x, y)

    def pointer_move(self, x: Optional[float], y: Optional[float]):
        if x is None or y is None:
            return
        if self.selection.drag is not None:
            self.selection.update_drag(x, y)
        else:
            self.tools.pointer_move(x, y)

    def pointer_up(self, x: Optional[float] = None, y: Optional[float] = None):
        """
        Handle a pointer release.

        Ends a drag (committing the final position once) or finishes the
        in-progress shape.
        """
        if self.selection.drag is not None:
            if x is not None and y is not None:
                self.selection.update_drag(x, y)
            drop = self.selection.end_drag()
            if drop is not None:
                annotation_id, new_x, new_y = drop
                current = self.store.get(annotation_id)
                if current is not None:
                    self.store.replace_one(annotation_id, current.moved_to(new_x, new_y))
            return None
        return self.tools.pointer_up(x, y)

    # Rendering and export

    def get_display_annotations(self) -> Tuple[Annotation, ...]:
        """Annotations as currently displayed, including a drag in progress."""
        return self.selection.apply_drag(self.store.snapshot())

    def render_view(
        self,
        scale: float = 1.0,
        offset: Tuple[float, float] = (0.0, 0.0),
        canvas_size: Optional[Tuple[int, int]] = None,
    ) -> Optional[np.ndarray]:
        """
        Render the live view: selection look, drag position and preview.

        Returns:
            BGR frame, or None if no image is loaded
        """
        if self._image is None:
            return None
        return render_frame(
            self._image,
            self.get_display_annotations(),
            selected_id=self.selection.selected_id,
            preview=self.tools.preview,
            cfg=self.cfg.render,
            scale=scale,
            offset=offset,
            canvas_size=canvas_size,
            background=self.cfg.view.background,
        )

    def export(self, download: Optional[DownloadAction] = None) -> Optional[ExportArtifact]:
        """
        Export the annotated image at native resolution.

        Returns:
            The PNG artifact, or None if no image is loaded
        """
        artifact = self.exporter.export(self._image, self.store.snapshot(), download)
        if artifact is not None:
            self.events.emit(
                AnnotationEvent(
                    EventType.EXPORT_COMPLETED,
                    {
                        "filename": artifact.filename,
                        "width": artifact.width,
                        "height": artifact.height,
                    },
                )
            )
        return artifact

    def get_visualization_data(self) -> Dict[str, Any]:
        """
        Get data needed for visualization.

        Returns:
            Dictionary with visualization data
        """
        return {
            "image": self._image,
            "annotations": self.get_display_annotations(),
            "selected_id": self.selection.selected_id,
            "preview": self.tools.preview,
            "tool": self.tools.tool.value,
            "pending_requests": self.tools.pending_requests,
            "statistics": self.get_statistics(),
        }
