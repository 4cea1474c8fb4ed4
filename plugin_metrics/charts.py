"""
Chart definitions and the chart registry.

A chart is a named unit of host-supplied metric data. Each collection cycle
asks every registered chart for its data; a chart that fails or has nothing
to report is left out of that cycle's payload without affecting the others.
"""

import logging
import platform
import threading
from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any, Callable, Iterator, Optional

from plugin_metrics.json_value import JsonArray, JsonObject, JsonPrimitive, JsonValue

logger = logging.getLogger("plugin-metrics")


class MetricsChart(ABC):
    """Base class for all charts.

    Subclasses implement collect_data(); collect() wraps it with the
    {"chartId": ..., "data": ...} envelope and per-chart fault isolation.
    """

    def __init__(self, chart_id: str):
        if not isinstance(chart_id, str) or not chart_id:
            raise ValueError("chart_id must be a non-empty string")
        self.chart_id = chart_id

    def collect(self, log: Optional[logging.Logger] = None) -> Optional[JsonObject]:
        """Collect this chart's data for one cycle.

        Args:
            log: Logger used to report a failing chart (defaults to the
                package logger)

        Returns:
            The chart envelope, or None if the chart has no data this cycle
            or its callback raised.
        """
        try:
            data = self.collect_data()
        except Exception:
            (log or logger).warning(f"Failed to collect chart: {self.chart_id}", exc_info=True)
            return None
        if data is None:
            return None
        return JsonObject().add("chartId", self.chart_id).add("data", data)

    @abstractmethod
    def collect_data(self) -> Optional[JsonValue]:
        """Return this cycle's data, or None when there is nothing to report."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.chart_id!r})"


def _require_callable(fn: Any, name: str) -> Callable:
    if not callable(fn):
        raise TypeError(f"{name} must be callable")
    return fn


class SimplePieChart(MetricsChart):
    """A single string value per server, e.g. the configured language."""

    def __init__(self, chart_id: str, value_fn: Callable[[], Optional[str]]):
        super().__init__(chart_id)
        self.value_fn = _require_callable(value_fn, "value_fn")

    def collect_data(self) -> Optional[JsonValue]:
        value = self.value_fn()
        if value is None or value == "":
            return None
        return JsonPrimitive(value)


class CustomChart(MetricsChart):
    """Arbitrary structured data produced by the host.

    data_fn may return a mapping, a sequence, a scalar, or a ready-made
    JsonValue. Returning None skips the chart for this cycle.
    """

    def __init__(self, chart_id: str, data_fn: Callable[[], Any]):
        super().__init__(chart_id)
        self.data_fn = _require_callable(data_fn, "data_fn")

    def collect_data(self) -> Optional[JsonValue]:
        data = self.data_fn()
        if data is None:
            return None
        return JsonValue.of(data)


class AdvancedPieChart(MetricsChart):
    """Several weighted values per server, e.g. {"sqlite": 1, "mysql": 2}."""

    def __init__(self, chart_id: str, values_fn: Callable[[], Optional[Mapping[str, int]]]):
        super().__init__(chart_id)
        self.values_fn = _require_callable(values_fn, "values_fn")

    def collect_data(self) -> Optional[JsonValue]:
        values = self.values_fn()
        if not values:
            return None
        counted = JsonObject()
        for key, count in values.items():
            if count == 0:
                continue
            counted.add(str(key), count)
        if not len(counted):
            return None
        return JsonObject().add("values", counted)


class SingleLineChart(MetricsChart):
    """One integer per server, summed across servers by the collector."""

    def __init__(self, chart_id: str, value_fn: Callable[[], Optional[int]]):
        super().__init__(chart_id)
        self.value_fn = _require_callable(value_fn, "value_fn")

    def collect_data(self) -> Optional[JsonValue]:
        value = self.value_fn()
        if not value:
            return None
        return JsonObject().add("value", value)


def detect_platform_family() -> str:
    """Name of the running interpreter implementation (CPython, PyPy, ...)."""
    return platform.python_implementation() or "Python"


class PlatformChart(MetricsChart):
    """Built-in chart describing the service id and runtime family."""

    def __init__(self, service_id: int, platform_family: Optional[str] = None):
        super().__init__("platform")
        self.service_id = service_id
        self.platform_family = platform_family

    def collect_data(self) -> Optional[JsonValue]:
        return (
            JsonObject()
            .add("serviceId", self.service_id)
            .add("serverType", self.platform_family or detect_platform_family())
        )


class ServiceVersionChart(MetricsChart):
    """Built-in chart reporting the host plugin's version string."""

    def __init__(self, version: str):
        super().__init__("serviceVersion")
        self.version = version

    def collect_data(self) -> Optional[JsonValue]:
        return JsonPrimitive(self.version)


class ChartRegistry:
    """Thread-safe, append-only set of charts.

    Charts are stored by object identity, so two charts with the same id
    are kept as independent entries. Iteration works on a snapshot taken
    under the lock, which makes registering a chart from inside another
    chart's callback safe.
    """

    def __init__(self):
        self._lock = threading.Lock()
        # dict keeps registration order; keys are identity-hashed charts
        self._charts: dict[MetricsChart, None] = {}

    def register(self, chart: MetricsChart) -> None:
        if not isinstance(chart, MetricsChart):
            raise TypeError(f"Expected a MetricsChart, got {type(chart).__name__}")
        with self._lock:
            self._charts[chart] = None

    def snapshot(self) -> list[MetricsChart]:
        with self._lock:
            return list(self._charts)

    def collect_all(self, log: Optional[logging.Logger] = None) -> JsonArray:
        """Collect every registered chart into a JSON array.

        Charts that raise or report nothing are omitted.
        """
        results = JsonArray()
        for chart in self.snapshot():
            envelope = chart.collect(log)
            if envelope is not None:
                results.add(envelope)
        return results

    def __iter__(self) -> Iterator[MetricsChart]:
        return iter(self.snapshot())

    def __len__(self) -> int:
        with self._lock:
            return len(self._charts)

    def __contains__(self, chart: object) -> bool:
        with self._lock:
            return chart in self._charts
