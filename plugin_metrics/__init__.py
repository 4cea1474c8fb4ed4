"""
plugin-metrics - anonymous, opt-in usage metrics for host plugins

Every 30 minutes (after a randomized first delay) the service collects a
small JSON document describing the runtime and any plugin-defined charts,
gzips it and posts it to the metrics collector. Nothing blocks the host,
failures are logged and dropped, and the shared config file's `enabled`
flag (or DO_NOT_TRACK) turns everything off.
"""

from .version import __version__

from .charts import (
    AdvancedPieChart,
    ChartRegistry,
    CustomChart,
    MetricsChart,
    PlatformChart,
    ServiceVersionChart,
    SimplePieChart,
    SingleLineChart,
)
from .client import API_ENDPOINT, METRICS_VERSION, MetricsClient, compress
from .config import MetricsConfig, load_config
from .json_value import JsonArray, JsonObject, JsonPrimitive, JsonValue
from .scheduler import MetricsScheduler, SchedulerStateError
from .service import HostInfo, MetricsService

__all__ = [
    "__version__",
    # Service
    "MetricsService",
    "HostInfo",
    # Charts
    "MetricsChart",
    "SimplePieChart",
    "CustomChart",
    "AdvancedPieChart",
    "SingleLineChart",
    "PlatformChart",
    "ServiceVersionChart",
    "ChartRegistry",
    # JSON model
    "JsonValue",
    "JsonObject",
    "JsonArray",
    "JsonPrimitive",
    # Delivery and scheduling
    "MetricsClient",
    "compress",
    "API_ENDPOINT",
    "METRICS_VERSION",
    "MetricsScheduler",
    "SchedulerStateError",
    # Configuration
    "MetricsConfig",
    "load_config",
]
