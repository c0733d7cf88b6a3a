# flake8: noqa E501

from gettext import gettext as _
from pathlib import Path

COMMAND_DESCRIPTION = _("Replay a pointer interaction script on an image and export the result")


def command(subparser):
    subparser.add_argument("image", type=Path)
    subparser.add_argument("script", type=Path)
    subparser.add_argument(
        "-o",
        "--output",
        dest="output",
        type=Path,
        default=Path("."),
        help=_("Folder where the exported PNG is written"),
    )

    def handle(args):
        from .replay import handle as replay_handle

        replay_handle(args)

    return handle
