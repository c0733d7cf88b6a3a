"""Message catalog setup; imported for its side effect by the CLI."""

import gettext
import logging
from gettext import gettext as _
from pathlib import Path

logger = logging.getLogger(__name__)

DOMAIN = "docmark"
LOCALE_DIR = Path(__file__).parent.parent / "locale"


def setup_i18n(domain: str = DOMAIN, localedir: Path = LOCALE_DIR) -> Path:
    """Bind ``domain`` to ``localedir``; the process-wide default domain is left alone."""
    gettext.bindtextdomain(domain, localedir=str(localedir))
    logger.debug(
        _('Loading locale data from "{locale_folder}"').format(locale_folder=localedir)
    )
    return localedir


setup_i18n()
