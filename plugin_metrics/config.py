"""
Metrics configuration.

Settings live in a small YAML file shared by every plugin on the host:

    enabled: true
    serverUuid: 4a1e...   # generated once, never changes
    logResponseStatusText: false
    logSentData: false

load_config() resolves the file plus environment overrides into an
immutable MetricsConfig snapshot. It never raises: unreadable files fall
back to defaults and the problem is logged.
"""

import logging
import os
import uuid
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Optional

import yaml

logger = logging.getLogger("plugin-metrics")

CONFIG_PATH = Path.home() / ".plugin-metrics" / "config.yml"

DEFAULT_ENABLED = True
DEFAULT_LOG_RESPONSE = False
DEFAULT_LOG_SENT_DATA = False

CONFIG_HEADER = """\
# Anonymous usage statistics for plugins on this server.
# Collected data is limited to runtime facts (Python version, OS, core count)
# and plugin-defined charts. No personal data is sent.
# Set enabled to false (or export DO_NOT_TRACK=1) to opt out.
"""

_TRUE_VALUES = ("true", "1", "yes", "on")
_FALSE_VALUES = ("false", "0", "no", "off")


@dataclass(frozen=True)
class MetricsConfig:
    """Resolved metrics settings.

    Attributes:
        enabled: Whether metrics are collected and sent at all.
        server_uuid: Random identifier for this server, persisted on first run.
        log_response: Log the collector's status code and body after each send.
        log_sent_data: Log the JSON payload before it is compressed and sent.
        logger: Where the metrics subsystem writes its log lines.
    """

    enabled: bool = DEFAULT_ENABLED
    server_uuid: str = field(default_factory=lambda: str(uuid.uuid4()))
    log_response: bool = DEFAULT_LOG_RESPONSE
    log_sent_data: bool = DEFAULT_LOG_SENT_DATA
    logger: logging.Logger = field(default=logger, repr=False, compare=False)

    def with_enabled(self, enabled: bool) -> "MetricsConfig":
        return replace(self, enabled=enabled)


def get_config_path() -> Path:
    """Config file location, honouring PLUGIN_METRICS_CONFIG."""
    override = os.getenv("PLUGIN_METRICS_CONFIG")
    if override:
        return Path(override).expanduser()
    return CONFIG_PATH


def parse_bool(value: Any, default: bool) -> bool:
    """Lenient boolean parsing for YAML values and env vars."""
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_VALUES:
            return True
        if lowered in _FALSE_VALUES:
            return False
    return default


def _read_yaml(path: Path, log: logging.Logger) -> Optional[dict]:
    """Read the config mapping; None if the file cannot be used."""
    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        log.warning(f"Failed to read metrics config {path}: {e}")
        return None
    if data is None:
        return {}
    if not isinstance(data, dict):
        log.warning(f"Ignoring metrics config {path}: expected a mapping, got {type(data).__name__}")
        return None
    return data


def _write_yaml(path: Path, data: dict, log: logging.Logger) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            f.write(CONFIG_HEADER)
            yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)
    except OSError as e:
        log.warning(f"Failed to save metrics config {path}: {e}")


def apply_env_overrides(enabled: bool) -> bool:
    """Apply DO_NOT_TRACK and PLUGIN_METRICS_ENABLED to the file's flag."""
    if os.getenv("DO_NOT_TRACK"):
        return False
    override = os.getenv("PLUGIN_METRICS_ENABLED")
    if override is not None:
        return parse_bool(override, enabled)
    return enabled


def load_config(
    path: Optional[Path] = None,
    log: Optional[logging.Logger] = None,
) -> MetricsConfig:
    """Load the metrics configuration, creating the file on first run.

    Args:
        path: Config file location (defaults to get_config_path())
        log: Logger stored on the config and used for load problems

    Returns:
        An immutable MetricsConfig snapshot
    """
    log = log or logger
    path = Path(path) if path is not None else get_config_path()

    exists = path.exists()
    data = _read_yaml(path, log) if exists else {}
    # Never overwrite a file we could not parse
    writable = data is not None
    if data is None:
        data = {}

    dirty = False
    if not exists:
        data = {
            "enabled": DEFAULT_ENABLED,
            "logResponseStatusText": DEFAULT_LOG_RESPONSE,
            "logSentData": DEFAULT_LOG_SENT_DATA,
        }
        dirty = True

    server_uuid = data.get("serverUuid")
    if not isinstance(server_uuid, str) or not server_uuid.strip():
        server_uuid = str(uuid.uuid4())
        data["serverUuid"] = server_uuid
        dirty = True

    if dirty and writable:
        _write_yaml(path, data, log)

    enabled = apply_env_overrides(parse_bool(data.get("enabled"), DEFAULT_ENABLED))

    return MetricsConfig(
        enabled=enabled,
        server_uuid=server_uuid,
        log_response=parse_bool(data.get("logResponseStatusText"), DEFAULT_LOG_RESPONSE),
        log_sent_data=parse_bool(data.get("logSentData"), DEFAULT_LOG_SENT_DATA),
        logger=log,
    )
