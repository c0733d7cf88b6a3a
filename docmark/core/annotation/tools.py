"""
Tool controller.

Turns pointer input on the empty canvas into new annotations according to
the active tool. Marker and text creation ask the text-entry collaborator
for input without blocking: the request is recorded as pending and the
annotation is created when the answer arrives, while pointer events keep
being processed in the meantime.
"""

import logging
from concurrent.futures import Future
from enum import Enum
from gettext import gettext as _
from typing import Callable, Dict, Optional, Tuple, Union

from docmark.utils.config import get_default_config
from docmark.utils.misc import incrf

from .events import AnnotationEvent, EventEmitter, EventType
from .state import DrawPreview, MarkerAnnotation, TextAnnotation, TextRequest
from .store import AnnotationStore

logger = logging.getLogger(__name__)

TextProvider = Callable[[TextRequest], None]


class Tool(Enum):
    """Tools offered by the toolbar."""

    SELECT = "select"
    MARKER = "marker"
    TEXT = "text"
    RECT = "rect"
    CIRCLE = "circle"

    @classmethod
    def parse(cls, value: Union["Tool", str]) -> "Tool":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise ValueError(
                f"Unknown tool {value!r}, expected one of {[t.value for t in cls]}"
            ) from None


SHAPE_TOOLS = (Tool.RECT, Tool.CIRCLE)


class ToolController:
    """
    State machine for the active tool.

    Sub-states are ``idle``, ``drawing`` (a rect/circle preview exists) and
    ``awaiting input`` (one or more text requests are pending). Drawing and
    awaiting input can overlap.
    """

    def __init__(
        self,
        store: AnnotationStore,
        events: Optional[EventEmitter] = None,
        cfg=None,
        text_provider: Optional[TextProvider] = None,
    ):
        """
        Initialize the controller.

        Args:
            store: Annotation list new annotations are appended to
            events: Emitter for tool, preview and input events
            cfg: Configuration tree
            text_provider: Collaborator called with every new TextRequest
        """
        if cfg is None:
            cfg = get_default_config()
        self.store = store
        self.events = events if events is not None else store.events
        self.cfg = cfg
        self.text_provider = text_provider

        self.tool = Tool.MARKER
        self.preview: Optional[DrawPreview] = None
        self._pending: Dict[int, TextRequest] = {}
        self._request_ids = incrf()

    @property
    def is_drawing(self) -> bool:
        return self.preview is not None

    @property
    def awaiting_input(self) -> bool:
        return bool(self._pending)

    @property
    def pending_requests(self) -> Tuple[TextRequest, ...]:
        return tuple(self._pending.values())

    def set_tool(self, tool: Union[Tool, str]) -> bool:
        """
        Switch the active tool.

        Returns:
            True if the tool changed, False if it was already active
        """
        tool = Tool.parse(tool)
        if tool == self.tool:
            return False
        previous, self.tool = self.tool, tool
        logger.debug(f"Tool {previous.value} -> {tool.value}")
        self.events.emit(
            AnnotationEvent(
                EventType.TOOL_CHANGED, {"tool": tool.value, "previous": previous.value}
            )
        )
        return True

    # Pointer handling, canvas coordinates, background only

    def pointer_down(self, x: float, y: float):
        if self.tool == Tool.MARKER:
            number = (
                self.store.count(MarkerAnnotation.type)
                + sum(1 for r in self._pending.values() if r.kind == "marker_label")
                + 1
            )
            self._request_text(
                "marker_label", _("Enter label for marker (optional):"), x, y, number
            )
        elif self.tool == Tool.TEXT:
            self._request_text("text", _("Enter text:"), x, y)
        elif self.tool in SHAPE_TOOLS:
            self.preview = DrawPreview(kind=self.tool.value, start_x=x, start_y=y)
            self._emit_preview()

    def pointer_move(self, x: float, y: float):
        if self.preview is None:
            return
        self.preview.update(x, y)
        self._emit_preview()

    def pointer_up(self, x: Optional[float] = None, y: Optional[float] = None):
        """
        Finish a draw, committing the preview if it is large enough.

        Position is optional; without one the last previewed extent is used.
        """
        preview = self.preview
        if preview is None:
            return None
        if x is not None and y is not None:
            preview.update(x, y)
        self.preview = None

        created = None
        if preview.exceeds(self.cfg.tools.min_shape_size):
            created = self.store.append(preview.to_annotation(self.store.next_id()))
        else:
            logger.debug(f"Discarded {preview.kind} below minimum size")
        self._emit_preview()
        return created

    def cancel_draw(self):
        """Abandon the in-progress shape, if any."""
        if self.preview is not None:
            self.preview = None
            self._emit_preview()

    def _emit_preview(self):
        self.events.emit(
            AnnotationEvent(
                EventType.PREVIEW_UPDATED,
                {"preview": None if self.preview is None else vars(self.preview).copy()},
            )
        )

    # Text elicitation

    def _request_text(self, kind: str, prompt: str, x: float, y: float, number=None):
        request = TextRequest(
            request_id=next(self._request_ids),
            kind=kind,
            prompt=prompt,
            x=x,
            y=y,
            number=number,
        )
        self._pending[request.request_id] = request
        request.future.add_done_callback(
            lambda future: self._on_response(request, future)
        )
        self.events.emit(
            AnnotationEvent(EventType.INPUT_REQUESTED, {"request": request.to_dict()})
        )
        if self.text_provider is not None:
            try:
                self.text_provider(request)
            except Exception:
                self._pending.pop(request.request_id, None)
                raise
        return request

    def respond(self, request_id: int, text: Optional[str]) -> bool:
        """Answer a pending request. Returns False if it is not pending."""
        request = self._pending.get(request_id)
        if request is None:
            return False
        return request.respond(text)

    def cancel_request(self, request_id: int) -> bool:
        """Cancel a pending request. Returns False if it is not pending."""
        request = self._pending.get(request_id)
        if request is None:
            return False
        return request.cancel()

    def drop_pending(self):
        """Forget every pending request; late answers are ignored."""
        pending = list(self._pending.values())
        self._pending.clear()
        for request in pending:
            request.cancel()
        if pending:
            logger.debug(f"Dropped {len(pending)} pending text request(s)")

    def _on_response(self, request: TextRequest, future: Future):
        if self._pending.pop(request.request_id, None) is None:
            logger.debug(f"Ignoring answer to dropped request {request.request_id}")
            return
        text = None if future.cancelled() else future.result()
        self.events.emit(
            AnnotationEvent(
                EventType.INPUT_RESOLVED,
                {
                    "request_id": request.request_id,
                    "cancelled": future.cancelled(),
                },
            )
        )

        if request.kind == "marker_label":
            # A cancelled label still places the marker, just without a label
            self.store.append(
                MarkerAnnotation(
                    id=self.store.next_id(),
                    x=request.x,
                    y=request.y,
                    number=request.number,
                    label=text or "",
                )
            )
        elif text:
            self.store.append(
                TextAnnotation(id=self.store.next_id(), x=request.x, y=request.y, text=text)
            )
        else:
            logger.debug("Empty text, no annotation created")
