"""
Acquisition diagnostics: counters, fix drop reasons and sample histograms.

Every fix the state machine refuses is counted under one of DROP_REASONS,
so a READY session with no fixes reaching consumers can be explained from
the report alone.
"""

import logging
import statistics
import threading
import time
from collections import Counter, deque
from dataclasses import dataclass, field
from typing import Deque, Dict, List, Optional

logger = logging.getLogger(__name__)

DROP_REASONS = {
    'invalid_coordinate': 'Latitude/longitude out of range or not finite',
    'no_fix': 'Positioning reported RUNNING without a fix',
    'stale_fix': 'Fix timestamp stopped advancing',
    'consumer_error': 'Fix consumer raised while handling a fix',
}

STANDARD_COUNTERS = (
    'positioning_polls',
    'tracking_polls',
    'permission_polls',
    'state_transitions',
    'fixes_accepted',
    'fixes_published',
    'origins_set',
    'waypoints_set',
)


@dataclass
class CounterSnapshot:
    timestamp: float
    counters: Dict[str, int]
    drop_reasons: Dict[str, int]
    histograms: Dict[str, List[float]] = field(default_factory=dict)

    def total_dropped(self) -> int:
        return sum(self.drop_reasons.values())

    def drop_rate(self, total_fixes: int) -> float:
        """Dropped fixes as a percentage of total_fixes (0 when nothing was seen)."""
        if not total_fixes:
            return 0.0
        return 100.0 * self.total_dropped() / total_fixes


def _describe_samples(samples: List[float]) -> Dict[str, float]:
    ordered = sorted(samples)
    count = len(ordered)
    # Nearest-rank p95
    p95_index = min(count - 1, int(count * 0.95))
    return {
        'count': count,
        'min': ordered[0],
        'max': ordered[-1],
        'mean': statistics.mean(ordered),
        'median': statistics.median(ordered),
        'p95': ordered[p95_index],
    }


class MetricsCollector:
    """
    Thread-safe metrics for one process.

    Histograms keep the most recent histogram_capacity samples per name.
    """

    DROP_REASONS = DROP_REASONS
    STANDARD_COUNTERS = STANDARD_COUNTERS

    def __init__(self, histogram_capacity: int = 10000):
        self.histogram_capacity = histogram_capacity
        self._lock = threading.Lock()
        self._counters: Counter = Counter()
        self._drops: Counter = Counter()
        self._histograms: Dict[str, Deque[float]] = {}
        self._start_time = time.time()

    def increment(self, counter_name: str, value: int = 1):
        with self._lock:
            self._counters[counter_name] += value

    def increment_drop(self, reason: str, value: int = 1):
        """
        Count value dropped fixes under reason.

        Reasons outside DROP_REASONS are counted anyway and logged.
        """
        if reason not in DROP_REASONS:
            logger.warning(f"Unknown drop reason '{reason}'")
        with self._lock:
            self._drops[reason] += value
            self._counters['fixes_dropped'] += value

    def get_counter(self, counter_name: str) -> int:
        with self._lock:
            return self._counters[counter_name]

    def get_drop_count(self, reason: str) -> int:
        with self._lock:
            return self._drops[reason]

    def record_histogram(self, histogram_name: str, value: float):
        with self._lock:
            samples = self._histograms.get(histogram_name)
            if samples is None:
                samples = deque(maxlen=self.histogram_capacity)
                self._histograms[histogram_name] = samples
            samples.append(value)

    def get_histogram_stats(self, histogram_name: str) -> Optional[Dict[str, float]]:
        """count/min/max/mean/median/p95 of a histogram, None if it has no samples."""
        with self._lock:
            samples = list(self._histograms.get(histogram_name, ()))
        return _describe_samples(samples) if samples else None

    def snapshot(self) -> CounterSnapshot:
        with self._lock:
            counters = {name: 0 for name in STANDARD_COUNTERS}
            counters.update(self._counters)
            drops = {reason: 0 for reason in DROP_REASONS}
            drops.update(self._drops)
            histograms = {name: list(samples) for name, samples in self._histograms.items()}
        return CounterSnapshot(time.time(), counters, drops, histograms)

    def reset(self):
        with self._lock:
            self._counters.clear()
            self._drops.clear()
            self._histograms.clear()
            self._start_time = time.time()

    def get_uptime(self) -> float:
        return time.time() - self._start_time

    def summary_lines(self) -> List[str]:
        """Report for the log, one entry per line."""
        snap = self.snapshot()
        lines = [f"METRICS SUMMARY (uptime: {self.get_uptime():.1f}s)", "COUNTERS:"]
        lines += [f"  {name:30s}: {value:8d}" for name, value in sorted(snap.counters.items())]

        dropped = snap.total_dropped()
        if dropped:
            lines.append("DROP REASONS:")
            lines += [
                f"  {reason:30s}: {count:8d} ({100.0 * count / dropped:5.1f}%)"
                for reason, count in sorted(snap.drop_reasons.items()) if count
            ]

        if snap.histograms:
            lines.append("HISTOGRAMS:")
            for name, samples in sorted(snap.histograms.items()):
                stats = _describe_samples(samples)
                lines.append(f"  {name}: count={stats['count']}, mean={stats['mean']:.3f}, "
                             f"p95={stats['p95']:.3f}")
        return lines
