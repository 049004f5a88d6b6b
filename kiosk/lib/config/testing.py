"""Settings overrides for the test suite.

Production entry points read configuration from the environment only and
never import this module.
"""

from collections.abc import Iterator
from contextlib import contextmanager

import kiosk.lib.config.settings as _settings_module
from kiosk.lib.config.settings import Settings, _load_settings


def set_settings(settings: Settings | None) -> None:
    """Install `settings` as what `get_settings()` returns.

    None removes the override; the next lookup re-reads the environment
    because the cached load is dropped as well.
    """
    _settings_module._settings_override = settings
    _load_settings.cache_clear()


@contextmanager
def override_settings(settings: Settings) -> Iterator[Settings]:
    """Install `settings` for the duration of a with-block."""
    previous = _settings_module._settings_override
    set_settings(settings)
    try:
        yield settings
    finally:
        set_settings(previous)
