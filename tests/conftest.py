"""Shared pytest fixtures for the test suite."""

import asyncio
import logging
from collections.abc import Callable
from pathlib import Path

import pytest

from kiosk.lib.artifacts import ArtifactStore
from kiosk.lib.config import Settings
from kiosk.lib.config.testing import override_settings


@pytest.fixture(autouse=True)
def configure_caplog(caplog):
    """Ensure caplog captures logs from the kiosk namespace."""
    caplog.set_level(logging.INFO, logger="kiosk")


@pytest.fixture(autouse=True)
def test_settings(tmp_path):
    """Use isolated settings with a temporary scans directory.

    Environment files are ignored so a developer's .env cannot leak in.
    Settings are reset after each test to avoid cross-test pollution.
    """
    scans_dir = tmp_path / "scans"
    scans_dir.mkdir()
    settings = Settings(
        _env_file=None,
        scans_dir=str(scans_dir),
        hub_url="ws://127.0.0.1:9",
        scan_peer_url="ws://127.0.0.1:9/ws/scan",
        mock_scan=False,
    )
    with override_settings(settings):
        yield settings


@pytest.fixture
def scans_dir(test_settings) -> Path:
    return Path(test_settings.scans_dir)


@pytest.fixture
def store(scans_dir) -> ArtifactStore:
    """Artifact store rooted in the temporary scans directory."""
    return ArtifactStore(scans_dir)


async def _wait_until(
    predicate: Callable[[], object], timeout: float = 1.0
) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            pytest.fail("Condition not met in time")
        await asyncio.sleep(0.005)


@pytest.fixture
def wait_until():
    """Poll a predicate until it holds, failing the test after a timeout."""
    return _wait_until
