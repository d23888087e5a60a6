"""
Unit tests for the metrics collector.

Tests cover:
- Counters and drop reasons, including unknown reasons
- Bounded histograms and their statistics
- Snapshots, reset and the summary report
- The process-wide singleton and concurrent updates
"""

import logging
import threading

import pytest

from arloc_core.metrics import CounterSnapshot, MetricsCollector, get_metrics, reset_metrics


@pytest.fixture
def collector() -> MetricsCollector:
    return MetricsCollector()


class TestCounters:

    def test_standard_counters_reported_at_zero(self, collector: MetricsCollector):
        snapshot = collector.snapshot()

        for name in MetricsCollector.STANDARD_COUNTERS:
            assert snapshot.counters[name] == 0
        assert collector.get_counter('never_touched') == 0

    def test_increment_by_value(self, collector: MetricsCollector):
        collector.increment('tracking_polls')
        collector.increment('tracking_polls', 4)

        assert collector.get_counter('tracking_polls') == 5

    def test_drop_counts_reason_and_total(self, collector: MetricsCollector):
        collector.increment_drop('invalid_coordinate', 3)
        collector.increment_drop('no_fix')

        assert collector.get_drop_count('invalid_coordinate') == 3
        assert collector.get_counter('fixes_dropped') == 4

    def test_unknown_reason_logged_and_counted(self, collector: MetricsCollector, caplog):
        with caplog.at_level(logging.WARNING, logger='arloc_core.metrics.counters'):
            collector.increment_drop('gremlins')

        assert "gremlins" in caplog.text
        assert collector.get_drop_count('gremlins') == 1


class TestHistograms:

    def test_stats(self, collector: MetricsCollector):
        for value in (2.0, 4.0, 9.0):
            collector.record_histogram('fix_accuracy_m', value)

        stats = collector.get_histogram_stats('fix_accuracy_m')

        assert stats['count'] == 3
        assert stats['min'] == 2.0
        assert stats['max'] == 9.0
        assert stats['mean'] == pytest.approx(5.0)
        assert stats['median'] == 4.0

    def test_missing_histogram(self, collector: MetricsCollector):
        assert collector.get_histogram_stats('positioning_wait_ticks') is None

    def test_p95_nearest_rank(self, collector: MetricsCollector):
        for tick in range(1, 21):
            collector.record_histogram('positioning_wait_ticks', float(tick))

        assert collector.get_histogram_stats('positioning_wait_ticks')['p95'] == 20.0

    def test_capacity_keeps_latest_samples(self):
        collector = MetricsCollector(histogram_capacity=4)
        for tick in range(10):
            collector.record_histogram('positioning_wait_ticks', float(tick))

        stats = collector.get_histogram_stats('positioning_wait_ticks')

        assert stats['count'] == 4
        assert stats['min'] == 6.0


class TestReporting:

    def test_snapshot_detached_from_collector(self, collector: MetricsCollector):
        collector.increment_drop('stale_fix')
        snapshot = collector.snapshot()

        collector.increment_drop('stale_fix')

        assert isinstance(snapshot, CounterSnapshot)
        assert snapshot.drop_reasons['stale_fix'] == 1
        assert snapshot.drop_reasons['consumer_error'] == 0
        assert snapshot.total_dropped() == 1

    def test_drop_rate(self):
        snapshot = CounterSnapshot(timestamp=0.0, counters={}, drop_reasons={'no_fix': 3, 'stale_fix': 1})

        assert snapshot.drop_rate(16) == 25.0
        assert snapshot.drop_rate(0) == 0.0

    def test_reset(self, collector: MetricsCollector):
        collector.increment('origins_set')
        collector.record_histogram('fix_accuracy_m', 3.0)

        collector.reset()

        assert collector.get_counter('origins_set') == 0
        assert collector.snapshot().histograms == {}

    def test_summary_sections(self, collector: MetricsCollector):
        assert not any(line.startswith("DROP REASONS") for line in collector.summary_lines())

        collector.increment('fixes_published', 2)
        collector.increment_drop('consumer_error')
        collector.record_histogram('fix_accuracy_m', 1.5)
        lines = collector.summary_lines()

        assert lines[0].startswith("METRICS SUMMARY")
        assert "DROP REASONS:" in lines
        assert any("consumer_error" in line and "100.0%" in line for line in lines)
        assert any(line.strip().startswith("fix_accuracy_m: count=1") for line in lines)


class TestProcessWide:

    def test_get_metrics_is_shared(self):
        assert get_metrics() is get_metrics()

    def test_reset_metrics_replaces_collector(self):
        before = get_metrics()
        before.increment('waypoints_set')

        reset_metrics()

        assert get_metrics() is not before
        assert get_metrics().get_counter('waypoints_set') == 0

    def test_parallel_updates_are_not_lost(self, collector: MetricsCollector):
        def poll():
            for _ in range(500):
                collector.increment('positioning_polls')
                collector.record_histogram('fix_accuracy_m', 1.0)

        workers = [threading.Thread(target=poll) for _ in range(6)]
        for w in workers:
            w.start()
        for w in workers:
            w.join()

        assert collector.get_counter('positioning_polls') == 3000
        assert collector.get_histogram_stats('fix_accuracy_m')['count'] == 3000
