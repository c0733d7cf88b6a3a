"""
Export of the annotated image.

The export is always rendered at the base image's intrinsic resolution,
independent of how large the image is shown on screen, and never contains
selection highlighting or in-progress shapes.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional, Sequence, Union

import cv2
import numpy as np

from docmark.utils.config import get_default_config

from .renderer import render_frame
from .state import Annotation
from .utils import export_filename

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExportArtifact:
    """Encoded PNG plus the suggested filename."""

    filename: str
    data: bytes
    width: int
    height: int
    mime_type: str = "image/png"


DownloadAction = Callable[[ExportArtifact], None]


class ExportEngine:
    """Composites and encodes the base image with its annotations."""

    def __init__(self, cfg=None, clock: Optional[Callable[[], datetime]] = None):
        if cfg is None:
            cfg = get_default_config()
        self.cfg = cfg
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def render(
        self, image: Optional[np.ndarray], annotations: Sequence[Annotation]
    ) -> Optional[np.ndarray]:
        """
        Render the composite at the image's native size.

        Returns:
            BGR (BGRA for a BGRA input) image of the same width and height as
            ``image``, or None when there is no usable image
        """
        if image is None or image.size == 0:
            logger.debug("Export skipped: no image loaded")
            return None
        # Snapshot so the exported content is fixed at call time
        annotations = tuple(annotations)
        return render_frame(
            image,
            annotations,
            selected_id=None,
            preview=None,
            cfg=self.cfg.render,
            keep_alpha=True,
        )

    def export(
        self,
        image: Optional[np.ndarray],
        annotations: Sequence[Annotation],
        download: Optional[DownloadAction] = None,
    ) -> Optional[ExportArtifact]:
        """
        Render, encode as PNG and hand the result to ``download``.

        Args:
            image: BGR base image, or None if nothing is loaded
            annotations: Annotations in compositing order
            download: Collaborator that receives the artifact

        Returns:
            The artifact, or None if export was skipped
        """
        composite = self.render(image, annotations)
        if composite is None:
            return None

        ok, encoded = cv2.imencode(".png", composite)
        if not ok:
            raise RuntimeError("PNG encoding failed")

        height, width = composite.shape[:2]
        artifact = ExportArtifact(
            filename=export_filename(self.cfg.export.prefix, self.clock()),
            data=encoded.tobytes(),
            width=width,
            height=height,
        )
        logger.info(f"Exported {width}x{height} image as {artifact.filename}")
        if download is not None:
            download(artifact)
        return artifact


def save_artifact(artifact: ExportArtifact, directory: Union[str, Path]) -> Path:
    """Default download action: write the artifact into ``directory``."""
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / artifact.filename
    path.write_bytes(artifact.data)
    logger.debug(f"Wrote {len(artifact.data)} bytes to {path}")
    return path
