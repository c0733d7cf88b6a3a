"""
Replay of recorded pointer interactions.

A script is a JSON list of steps, each an object with one action:

    {"tool": "marker"}
    {"down": [x, y], "text": "Submit"}     # answer the request it opens
    {"down": [x, y]}  {"move": [x, y]}  {"up": [x, y]}
    {"text": "..."} / {"cancel": true}     # answer the oldest pending request
    {"delete": annotation_id}  {"delete": "selected"}  {"clear": true}

Coordinates are canvas coordinates, i.e. pixels of the image.
"""

import json
import logging
from gettext import gettext as _
from pathlib import Path

import cv2

from docmark.core.annotation import AnnotationSession, save_artifact
from docmark.utils.config import load_config

logger = logging.getLogger(__name__)


def _answer_oldest(session: AnnotationSession, step: dict):
    pending = session.pending_requests
    if not pending:
        logger.warning(_("Step {step} answers a request but none is pending").format(step=step))
        return
    request = pending[0]
    if step.get("cancel"):
        session.cancel_input(request.request_id)
    else:
        session.respond_to_input(request.request_id, step.get("text", ""))


def replay_script(session: AnnotationSession, steps):
    for index, step in enumerate(steps):
        logger.debug(f"Step {index}: {step}")
        if "tool" in step:
            session.set_tool(step["tool"])
        elif "down" in step:
            before = {r.request_id for r in session.pending_requests}
            session.pointer_down(*step["down"])
            opened = [r for r in session.pending_requests if r.request_id not in before]
            if opened and ("text" in step or step.get("cancel")):
                if step.get("cancel"):
                    session.cancel_input(opened[0].request_id)
                else:
                    session.respond_to_input(opened[0].request_id, step["text"])
        elif "move" in step:
            session.pointer_move(*step["move"])
        elif "up" in step:
            session.pointer_up(*step["up"])
        elif "text" in step or "cancel" in step:
            _answer_oldest(session, step)
        elif "delete" in step:
            if step["delete"] == "selected":
                session.remove_selected()
            else:
                session.remove_annotation(int(step["delete"]))
        elif "clear" in step:
            session.clear_annotations()
        else:
            raise ValueError(_("Unknown script step: {step}").format(step=step))


def handle(args):
    image = cv2.imread(str(args.image), cv2.IMREAD_UNCHANGED)
    if image is None:
        raise ValueError(_("Cannot read image {path}").format(path=args.image))

    steps = json.loads(Path(args.script).read_text())
    if not isinstance(steps, list):
        raise ValueError(_("Script must be a JSON list of steps"))

    session = AnnotationSession(load_config())
    session.load_image(image, str(args.image))
    replay_script(session, steps)

    for request in session.pending_requests:
        logger.warning(
            _("Request {id} ({kind}) was never answered").format(
                id=request.request_id, kind=request.kind
            )
        )

    print(json.dumps(session.get_statistics()))
    artifact = session.export(lambda a: save_artifact(a, args.output))
    if artifact is not None:
        print(Path(args.output) / artifact.filename)
