"""
The annotation list.

The store is the single owner of the ordered annotation list. List order is
z-order for rendering and compositing order for export. Every mutation
replaces the whole tuple, so a snapshot handed to a renderer never changes
underneath it.
"""

import logging
from typing import Iterator, Optional, Tuple

from docmark.utils.misc import incrf

from .events import AnnotationEvent, EventEmitter, EventType
from .state import Annotation

logger = logging.getLogger(__name__)


class AnnotationStore:
    """Ordered, immutable-snapshot list of annotations."""

    def __init__(self, events: Optional[EventEmitter] = None):
        self.events = events if events is not None else EventEmitter()
        self._items: Tuple[Annotation, ...] = ()
        # Never reset, so ids stay unique across clears and image loads
        self._ids = incrf()

    def next_id(self) -> int:
        """Reserve a fresh annotation id."""
        return next(self._ids)

    def snapshot(self) -> Tuple[Annotation, ...]:
        return self._items

    def get(self, annotation_id: int) -> Optional[Annotation]:
        for annotation in self._items:
            if annotation.id == annotation_id:
                return annotation
        return None

    def count(self, type_tag: Optional[str] = None) -> int:
        """Number of annotations, optionally only those of one type."""
        if type_tag is None:
            return len(self._items)
        return sum(1 for a in self._items if a.type == type_tag)

    def append(self, annotation: Annotation) -> Annotation:
        """
        Append an annotation on top of the others.

        Raises:
            ValueError: If an annotation with the same id is already stored
        """
        if self.get(annotation.id) is not None:
            raise ValueError(f"Duplicate annotation id {annotation.id}")
        self._items = self._items + (annotation,)
        logger.debug(f"Added {annotation.type} annotation {annotation.id}")
        self.events.emit(
            AnnotationEvent(
                EventType.ANNOTATION_ADDED,
                {"annotation": annotation.to_dict(), "count": len(self._items)},
            )
        )
        return annotation

    def replace_one(self, annotation_id: int, annotation: Annotation) -> bool:
        """
        Replace the annotation with ``annotation_id`` in place.

        Returns:
            True if it was found and replaced
        """
        if annotation.id != annotation_id:
            raise ValueError(
                f"Replacement id {annotation.id} does not match {annotation_id}"
            )
        if self.get(annotation_id) is None:
            return False
        self._items = tuple(
            annotation if a.id == annotation_id else a for a in self._items
        )
        self.events.emit(
            AnnotationEvent(
                EventType.ANNOTATION_UPDATED, {"annotation": annotation.to_dict()}
            )
        )
        return True

    def remove(self, annotation_id: int) -> bool:
        """
        Remove one annotation.

        Returns:
            True if it was found and removed
        """
        remaining = tuple(a for a in self._items if a.id != annotation_id)
        if len(remaining) == len(self._items):
            return False
        self._items = remaining
        logger.debug(f"Removed annotation {annotation_id}")
        self.events.emit(
            AnnotationEvent(
                EventType.ANNOTATION_REMOVED,
                {"annotation_id": annotation_id, "count": len(remaining)},
            )
        )
        return True

    def clear(self):
        """Remove every annotation."""
        removed = len(self._items)
        self._items = ()
        self.events.emit(
            AnnotationEvent(EventType.ANNOTATIONS_CLEARED, {"removed": removed})
        )

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Annotation]:
        return iter(self._items)
