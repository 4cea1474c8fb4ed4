"""
Metrics service facade.

Wires the configuration, chart registry, scheduler and HTTP client
together. A host plugin creates one MetricsService at startup, registers
its charts, and calls shutdown() when it unloads.
"""

import logging
import os
import platform
from concurrent.futures import Future
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

import httpx
import psutil

from plugin_metrics.charts import (
    ChartRegistry,
    MetricsChart,
    PlatformChart,
    ServiceVersionChart,
)
from plugin_metrics.client import METRICS_VERSION, MetricsClient
from plugin_metrics.config import MetricsConfig, load_config
from plugin_metrics.json_value import JsonObject
from plugin_metrics.scheduler import MetricsScheduler

logger = logging.getLogger("plugin-metrics")


@dataclass
class HostInfo:
    """Facts about the host plugin and the server it runs in.

    Attributes:
        plugin_name: Name of the plugin reporting metrics.
        plugin_version: Version string reported in the service section.
        platform_version: Version string of the host platform.
        player_count: Returns the number of users currently online.
        online_mode: Returns whether the server authenticates its users.
        platform_family: Runtime family for the platform chart; detected
            from the interpreter when None.
    """

    plugin_name: str
    plugin_version: str
    platform_version: str = ""
    player_count: Callable[[], int] = field(default=lambda: 0)
    online_mode: Callable[[], bool] = field(default=lambda: True)
    platform_family: Optional[str] = None


def get_os_info() -> str:
    return f"{platform.system()} {platform.release()}".strip()


def get_core_count() -> int:
    return psutil.cpu_count(logical=True) or os.cpu_count() or 1


class MetricsService:
    """Anonymous usage metrics for one host plugin.

    When the configuration is disabled the instance stays dormant: nothing
    is scheduled, no built-in charts are registered, and charts registered
    later are never collected.
    """

    def __init__(
        self,
        host: HostInfo,
        service_id: int,
        config: Optional[MetricsConfig] = None,
        client: Optional[MetricsClient] = None,
        scheduler: Optional[MetricsScheduler] = None,
        config_path: Optional[Path] = None,
    ):
        """
        Initialize the service and, if enabled, start the schedule.

        Args:
            host: Host plugin collaborator
            service_id: Numeric id of the plugin on the collector
            config: Pre-resolved configuration (loaded from disk when None)
            client: HTTP client (created from the config when None)
            scheduler: Scheduler (created when None and metrics are enabled)
            config_path: Config file used by load_config() and reload_config()
        """
        self.host = host
        self.service_id = service_id
        self._config_path = config_path
        self._config = config if config is not None else load_config(config_path)
        self._charts = ChartRegistry()
        self._client = client
        self._scheduler: Optional[MetricsScheduler] = None
        self._shutdown = False

        if not self._config.enabled:
            self.log.debug(f"Metrics disabled for {host.plugin_name}")
            return

        owns_client = self._client is None
        if owns_client:
            self._client = MetricsClient(self._config)
        self._scheduler = scheduler or MetricsScheduler(
            is_enabled=lambda: self._config.enabled, log=self.log
        )
        try:
            self._scheduler.schedule(self.collect_and_send)
        except Exception:
            if owns_client:
                self._client.close()
            raise
        self._register_core_charts()

    @property
    def config(self) -> MetricsConfig:
        return self._config

    @property
    def log(self) -> logging.Logger:
        return self._config.logger or logger

    @property
    def enabled(self) -> bool:
        return self._config.enabled

    @property
    def charts(self) -> ChartRegistry:
        return self._charts

    @property
    def scheduler(self) -> Optional[MetricsScheduler]:
        return self._scheduler

    def register_chart(self, chart: MetricsChart) -> None:
        """Add a chart; allowed at any time and from any thread."""
        self._charts.register(chart)

    def _register_core_charts(self) -> None:
        self.register_chart(PlatformChart(self.service_id, self.host.platform_family))
        self.register_chart(ServiceVersionChart(self.host.plugin_version))

    def collect_platform_data(self) -> JsonObject:
        return (
            JsonObject()
            .add("playerCount", self.host.player_count())
            .add("onlineMode", self.host.online_mode())
            .add("platformVersion", self.host.platform_version)
            .add("osInfo", get_os_info())
            .add("pythonVersion", platform.python_version())
            .add("coreCount", get_core_count())
        )

    def collect_service_data(self) -> JsonObject:
        return JsonObject().add("pluginVersion", self.host.plugin_version)

    def build_payload(self) -> JsonObject:
        """Assemble this cycle's envelope."""
        return (
            JsonObject()
            .add("serverUUID", self._config.server_uuid)
            .add("metricsVersion", METRICS_VERSION)
            .add("platform", self.collect_platform_data())
            .add("service", self.collect_service_data())
            .add("customCharts", self._charts.collect_all(self.log))
        )

    def collect_and_send(self) -> Optional["Future[httpx.Response]"]:
        """Run one collection cycle.

        Returns:
            The pending submission, or None if the cycle failed before sending.
        """
        try:
            payload = self.build_payload()
            future = self._client.post(payload)
            future.add_done_callback(self._on_response)
            return future
        except Exception:
            self.log.warning("Metrics collection failed", exc_info=True)
            return None

    def _on_response(self, future: "Future[httpx.Response]") -> None:
        # Runs on the sender thread, or inline if the future already failed
        error = future.exception()
        if error is not None:
            self.log.warning(f"Metrics submission error: {error}", exc_info=error)
            return
        if self._config.log_response:
            response = future.result()
            self.log.info(f"Metrics response: {response.status_code} {response.text}")

    def reload_config(self) -> MetricsConfig:
        """Re-read the configuration file.

        The scheduler checks the enabled flag before every run, so opting
        out takes effect at the next tick. Enabling a service that started
        dormant still requires a restart.
        """
        config = load_config(self._config_path, self._config.logger)
        self._config = config
        if self._client is not None:
            self._client.config = config
        return config

    def shutdown(self) -> None:
        """Stop the schedule and release the client. Idempotent."""
        if self._shutdown:
            return
        self._shutdown = True
        if self._scheduler is not None:
            self._scheduler.shutdown()
        if self._client is not None:
            self._client.close()

    def __enter__(self) -> "MetricsService":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()
