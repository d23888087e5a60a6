"""
Metrics Module: Diagnostics, counters, histograms.

Usage:
    from arloc_core.metrics import get_metrics

    metrics = get_metrics()
    metrics.increment('fixes_accepted')
    metrics.increment_drop('invalid_coordinate')
    metrics.record_histogram('fix_accuracy_m', 3.5)
"""

from .counters import CounterSnapshot, MetricsCollector

_global_metrics = None


def get_metrics() -> MetricsCollector:
    """
    Get the global metrics collector singleton.

    Returns:
        MetricsCollector instance
    """
    global _global_metrics
    if _global_metrics is None:
        _global_metrics = MetricsCollector()
    return _global_metrics


def reset_metrics():
    """Reset global metrics (for testing)."""
    global _global_metrics
    _global_metrics = MetricsCollector()


__all__ = ['CounterSnapshot', 'MetricsCollector', 'get_metrics', 'reset_metrics']
