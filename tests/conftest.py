"""Shared test fixtures and configuration for plugin-metrics tests."""

import logging
import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest

# Add plugin_metrics to path for testing
sys.path.insert(0, str(Path(__file__).parent.parent))

from plugin_metrics.config import MetricsConfig
from plugin_metrics.scheduler import MetricsScheduler
from plugin_metrics.service import HostInfo
from tests.helpers import RecordingTransport


# Environment variables that change how the config is resolved
METRICS_ENV_VARS = (
    "DO_NOT_TRACK",
    "PLUGIN_METRICS_ENABLED",
    "PLUGIN_METRICS_CONFIG",
)


@pytest.fixture(autouse=True)
def isolate_home_directory(tmp_path, monkeypatch):
    """
    Redirect Path.home() to a temporary directory and clear metrics env vars.

    Keeps tests from creating ~/.plugin-metrics/config.yml in the real home
    directory, and from picking up a developer's DO_NOT_TRACK setting.
    """
    fake_home = tmp_path / "home"
    fake_home.mkdir()
    monkeypatch.setattr("pathlib.Path.home", lambda: fake_home)
    monkeypatch.setattr("plugin_metrics.config.CONFIG_PATH", fake_home / ".plugin-metrics" / "config.yml")

    for name in METRICS_ENV_VARS:
        monkeypatch.delenv(name, raising=False)

    yield fake_home


@pytest.fixture
def metrics_logger():
    """A dedicated logger so caplog can target it."""
    log = logging.getLogger("plugin-metrics.test")
    log.setLevel(logging.DEBUG)
    return log


@pytest.fixture
def enabled_config(metrics_logger):
    return MetricsConfig(
        enabled=True,
        server_uuid="00000000-0000-4000-8000-000000000000",
        logger=metrics_logger,
    )


@pytest.fixture
def disabled_config(metrics_logger):
    return MetricsConfig(
        enabled=False,
        server_uuid="00000000-0000-4000-8000-000000000000",
        logger=metrics_logger,
    )


@pytest.fixture
def host():
    return HostInfo(
        plugin_name="ExamplePlugin",
        plugin_version="2.4.1",
        platform_version="1.21.1-R0.1",
        player_count=lambda: 7,
        online_mode=lambda: True,
        platform_family="CPython",
    )


@pytest.fixture
def mock_scheduler():
    """A scheduler stand-in that never starts a thread."""
    return MagicMock(spec=MetricsScheduler)



@pytest.fixture
def transport():
    return RecordingTransport()
