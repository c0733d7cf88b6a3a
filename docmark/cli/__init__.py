import docmark.utils.i18n  # noqa: F401

"""Command line interface for docmark.

Subcommands are the sub-packages of this module. Each one exposes a
``COMMAND_DESCRIPTION`` and a ``command(subparser)`` function that adds its
arguments and returns the handler to run.
"""

import logging
import sys
from argparse import ArgumentDefaultsHelpFormatter, ArgumentParser
from gettext import gettext as _
from pathlib import Path
from typing import List, Optional

from docmark.utils.misc import load_module

logger = logging.getLogger(__name__)

VERSION_FILE = Path(__file__).parent.parent / "VERSION"


def get_version() -> str:
    return VERSION_FILE.read_text().strip()


def common_flags(parser):
    parser.add_argument(
        "-v",
        "--verbose",
        dest="verbose",
        action="store_true",
        help=_("Log every interaction step"),
    )
    parser.add_argument(
        "-V",
        "--version",
        dest="is_show_version",
        action="store_true",
        help=_("Print version and exit"),
    )


def discover_subcommands():
    """Yield ``(name, module)`` for every subcommand package, sorted by name."""
    for init_file in sorted(Path(__file__).parent.glob("*/__init__.py")):
        name = init_file.parent.name
        if name.startswith("_"):
            continue
        yield name, load_module(init_file, module_name=f"docmark.cli.{name}")


def build_parser() -> ArgumentParser:
    parser = ArgumentParser(prog="docmark", formatter_class=ArgumentDefaultsHelpFormatter)
    common_flags(parser)
    subparsers = parser.add_subparsers()
    for name, submodule in discover_subcommands():
        subparser = subparsers.add_parser(name, help=submodule.COMMAND_DESCRIPTION)
        common_flags(subparser)
        subparser.set_defaults(fn=submodule.command(subparser))
    return parser


def main(argv: Optional[List[str]] = None):
    """
    Entry point of ``docmark`` and ``python -m docmark``.

    Args:
        argv: Arguments without the program name, defaults to ``sys.argv[1:]``
    """
    logging.basicConfig()
    if argv is None:
        argv = sys.argv[1:]
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        logging.root.setLevel(logging.DEBUG)

    version = get_version()
    if args.is_show_version:
        print(version)
        sys.exit(0)
    logger.debug(f"{_('Starting')} docmark v{version}")

    fn = getattr(args, "fn", None)
    if fn is None:
        parser.print_help()
        sys.exit(2)
    fn(args)
