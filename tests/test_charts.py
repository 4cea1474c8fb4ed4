"""
Unit tests for plugin_metrics.charts.

Tests chart kinds, per-chart fault isolation, and the concurrent registry.
"""

import json
import logging
import threading

import pytest

from plugin_metrics.charts import (
    AdvancedPieChart,
    ChartRegistry,
    CustomChart,
    MetricsChart,
    PlatformChart,
    ServiceVersionChart,
    SimplePieChart,
    SingleLineChart,
    detect_platform_family,
)


def _parsed(envelope):
    return json.loads(envelope.to_json())


def _boom():
    raise RuntimeError("chart exploded")


# ──────────────────────────────────────────────────────────────────
# Chart kinds
# ──────────────────────────────────────────────────────────────────


class TestSimplePieChart:
    def test_wraps_value_with_id(self):
        chart = SimplePieChart("language", lambda: "en")
        assert _parsed(chart.collect()) == {"chartId": "language", "data": "en"}

    def test_none_is_absent(self):
        assert SimplePieChart("language", lambda: None).collect() is None

    def test_empty_string_is_absent(self):
        assert SimplePieChart("language", lambda: "").collect() is None


class TestCustomChart:
    def test_mapping_data(self):
        chart = CustomChart("x", lambda: {"a": 1})
        assert chart.collect().to_json() == '{"chartId":"x","data":{"a":1}}'

    def test_array_data(self):
        chart = CustomChart("list", lambda: [1, 2, 3])
        assert _parsed(chart.collect())["data"] == [1, 2, 3]

    def test_primitive_data(self):
        assert _parsed(CustomChart("n", lambda: 5).collect())["data"] == 5

    def test_none_is_absent(self):
        assert CustomChart("x", lambda: None).collect() is None


class TestAdvancedPieChart:
    def test_values_wrapped(self):
        chart = AdvancedPieChart("storage", lambda: {"sqlite": 3, "mysql": 1})
        assert _parsed(chart.collect())["data"] == {"values": {"sqlite": 3, "mysql": 1}}

    def test_zero_entries_skipped(self):
        chart = AdvancedPieChart("storage", lambda: {"sqlite": 0, "mysql": 2})
        assert _parsed(chart.collect())["data"] == {"values": {"mysql": 2}}

    def test_all_zero_is_absent(self):
        assert AdvancedPieChart("storage", lambda: {"sqlite": 0}).collect() is None

    def test_empty_is_absent(self):
        assert AdvancedPieChart("storage", lambda: {}).collect() is None


class TestSingleLineChart:
    def test_value_wrapped(self):
        chart = SingleLineChart("homes", lambda: 12)
        assert _parsed(chart.collect())["data"] == {"value": 12}

    def test_zero_is_absent(self):
        assert SingleLineChart("homes", lambda: 0).collect() is None


class TestBuiltinCharts:
    def test_platform_chart(self):
        chart = PlatformChart(1234, "CPython")
        assert _parsed(chart.collect()) == {
            "chartId": "platform",
            "data": {"serviceId": 1234, "serverType": "CPython"},
        }

    def test_platform_chart_detects_family(self):
        data = _parsed(PlatformChart(1).collect())["data"]
        assert data["serverType"] == detect_platform_family()
        assert data["serverType"]

    def test_service_version_chart(self):
        chart = ServiceVersionChart("2.4.1")
        assert _parsed(chart.collect()) == {"chartId": "serviceVersion", "data": "2.4.1"}


class TestChartValidation:
    def test_empty_id_rejected(self):
        with pytest.raises(ValueError):
            SimplePieChart("", lambda: "x")

    def test_non_string_id_rejected(self):
        with pytest.raises(ValueError):
            CustomChart(None, lambda: 1)

    def test_non_callable_rejected(self):
        with pytest.raises(TypeError):
            SimplePieChart("id", "not callable")

    def test_base_class_is_abstract(self):
        with pytest.raises(TypeError):
            MetricsChart("id")


class TestChartFaultIsolation:
    def test_failing_chart_returns_none_and_logs(self, caplog, metrics_logger):
        chart = CustomChart("broken", _boom)
        with caplog.at_level(logging.WARNING, logger=metrics_logger.name):
            assert chart.collect(metrics_logger) is None
        assert "Failed to collect chart: broken" in caplog.text
        assert "chart exploded" in caplog.text

    def test_failure_logged_to_package_logger_by_default(self, caplog):
        with caplog.at_level(logging.WARNING, logger="plugin-metrics"):
            assert CustomChart("broken", _boom).collect() is None
        assert "broken" in caplog.text


# ──────────────────────────────────────────────────────────────────
# Registry
# ──────────────────────────────────────────────────────────────────


class TestChartRegistry:
    def test_empty_registry_serializes_to_empty_array(self):
        assert ChartRegistry().collect_all().to_json() == "[]"

    def test_register_rejects_non_charts(self):
        with pytest.raises(TypeError):
            ChartRegistry().register(lambda: 1)

    def test_duplicate_ids_kept_as_separate_entries(self):
        registry = ChartRegistry()
        registry.register(SimplePieChart("same", lambda: "a"))
        registry.register(SimplePieChart("same", lambda: "b"))
        result = json.loads(registry.collect_all().to_json())
        assert result == [
            {"chartId": "same", "data": "a"},
            {"chartId": "same", "data": "b"},
        ]

    def test_same_instance_registered_once(self):
        registry = ChartRegistry()
        chart = SimplePieChart("once", lambda: "a")
        registry.register(chart)
        registry.register(chart)
        assert len(registry) == 1
        assert chart in registry

    def test_one_failing_chart_of_n(self, caplog, metrics_logger):
        registry = ChartRegistry()
        for i in range(4):
            registry.register(SingleLineChart(f"ok-{i}", lambda i=i: i + 1))
        registry.register(CustomChart("bad", _boom))

        with caplog.at_level(logging.WARNING, logger=metrics_logger.name):
            result = registry.collect_all(metrics_logger)

        assert len(result) == 4
        ids = [entry["chartId"] for entry in json.loads(result.to_json())]
        assert "bad" not in ids
        assert "Failed to collect chart: bad" in caplog.text

    def test_absent_charts_contribute_nothing(self):
        registry = ChartRegistry()
        registry.register(CustomChart("none", lambda: None))
        registry.register(SimplePieChart("some", lambda: "v"))
        result = json.loads(registry.collect_all().to_json())
        assert result == [{"chartId": "some", "data": "v"}]

    def test_register_during_collection(self):
        """A chart callback may register further charts without breaking iteration."""
        registry = ChartRegistry()

        def register_more():
            registry.register(SimplePieChart("late", lambda: "later"))
            return "first"

        registry.register(SimplePieChart("early", register_more))

        first = json.loads(registry.collect_all().to_json())
        assert first == [{"chartId": "early", "data": "first"}]

        # The chart added during the first cycle shows up in the next one
        second_ids = [entry["chartId"] for entry in json.loads(registry.collect_all().to_json())]
        assert second_ids == ["early", "late"]
        assert len(registry) == 3

    def test_concurrent_registration(self):
        registry = ChartRegistry()
        start = threading.Barrier(8)

        def worker(n):
            start.wait()
            for i in range(50):
                registry.register(SingleLineChart(f"c-{n}-{i}", lambda: 1))
                registry.collect_all()

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=10)

        assert len(registry) == 400
        assert len(registry.collect_all()) == 400
