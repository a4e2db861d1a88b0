"""Root test conftest: keep the host environment out of config resolution."""

import os

import pytest

from webrelay.infra.config import reset_config_cache

_RELAY_ENV_VARS = (
    "WEB_CHANNEL_URL",
    "WEB_CHANNEL_SECRET",
    "WEB_CHANNEL_POLL_INTERVAL_MS",
)


def pytest_configure(config):
    """Drop relay env vars inherited from the developer's shell."""
    for key in _RELAY_ENV_VARS:
        os.environ.pop(key, None)


@pytest.fixture(autouse=True)
def _fresh_config_cache():
    reset_config_cache()
    yield
    reset_config_cache()
