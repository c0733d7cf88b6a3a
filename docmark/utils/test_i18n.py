import gettext

from docmark.utils.i18n import DOMAIN, LOCALE_DIR, setup_i18n


def test_setup_i18n_binds_domain(tmp_path):
    assert setup_i18n(DOMAIN, tmp_path) == tmp_path
    assert gettext.bindtextdomain(DOMAIN) == str(tmp_path)
    # No catalog installed, messages pass through untranslated
    assert gettext.gettext("Print version and exit") == "Print version and exit"
    setup_i18n()
    assert gettext.bindtextdomain(DOMAIN) == str(LOCALE_DIR)


def test_setup_i18n_keeps_default_domain():
    before = gettext.textdomain()
    setup_i18n()
    assert gettext.textdomain() == before
