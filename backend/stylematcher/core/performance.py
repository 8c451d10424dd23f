"""
Performance monitoring and metrics collection.
"""
import inspect
import time
import logging
import threading
from collections import defaultdict, deque
from functools import wraps
from typing import Any, Deque, Dict, List, Optional

logger = logging.getLogger(__name__)

# Samples kept per metric
MAX_SAMPLES = 1000

_metrics_lock = threading.Lock()
_metrics: Dict[str, Deque[Dict[str, Any]]] = defaultdict(lambda: deque(maxlen=MAX_SAMPLES))


def _percentile(ordered: List[float], fraction: float) -> float:
    if not ordered:
        return 0.0
    return ordered[min(int(len(ordered) * fraction), len(ordered) - 1)]


class PerformanceMonitor:
    """Record durations and summarize them per metric name."""

    @staticmethod
    def record_metric(name: str, value: float, metadata: Optional[Dict[str, Any]] = None):
        """
        Record a performance metric.

        Args:
            name: Metric name (e.g. 'parse_file', 'generate_suggestions')
            value: Metric value, usually a duration in seconds
            metadata: Optional context (correlation_id, status, ...)
        """
        with _metrics_lock:
            _metrics[name].append({
                'value': value,
                'timestamp': time.time(),
                'metadata': metadata or {},
            })

    @staticmethod
    def _summarize(samples) -> Optional[Dict[str, float]]:
        values = [s['value'] for s in samples]
        if not values:
            return None
        ordered = sorted(values)
        return {
            'count': len(values),
            'min': ordered[0],
            'max': ordered[-1],
            'mean': sum(values) / len(values),
            'p50': _percentile(ordered, 0.5),
            'p95': _percentile(ordered, 0.95),
            'p99': _percentile(ordered, 0.99),
        }

    @staticmethod
    def get_stats(metric_name: str) -> Optional[Dict[str, float]]:
        """Summary statistics for one metric, or None if nothing was recorded."""
        with _metrics_lock:
            samples = list(_metrics.get(metric_name, ()))
        return PerformanceMonitor._summarize(samples)

    @staticmethod
    def get_all_metrics() -> Dict[str, Dict[str, float]]:
        with _metrics_lock:
            snapshot = {name: list(samples) for name, samples in _metrics.items()}
        return {name: PerformanceMonitor._summarize(samples) for name, samples in snapshot.items()}

    @staticmethod
    def clear_metrics():
        """Clear all metrics (useful for testing)."""
        with _metrics_lock:
            _metrics.clear()


def _correlation_id(args, kwargs) -> Optional[str]:
    request = kwargs.get('request')
    if request is None and args:
        request = args[0]
    state = getattr(request, 'state', None)
    return getattr(state, 'correlation_id', None) if state is not None else None


def _finish(metric_name: str, started: float, correlation_id: Optional[str], error: Optional[Exception] = None):
    duration = time.time() - started
    metadata: Dict[str, Any] = {'correlation_id': correlation_id, 'status': 'success' if error is None else 'error'}
    if error is not None:
        metadata['error'] = str(error)
    PerformanceMonitor.record_metric(metric_name, duration, metadata)

    if error is None:
        logger.debug(
            f"{metric_name} completed in {duration:.3f}s",
            extra={'metric': metric_name, 'duration': duration}
        )
    else:
        logger.error(
            f"{metric_name} failed after {duration:.3f}s: {error}",
            extra={'metric': metric_name, 'duration': duration},
            exc_info=True
        )


def track_performance(metric_name: str):
    """
    Decorator to track function execution time (sync or async).

    Usage:
        @track_performance("classify_columns")
        def classify_columns(...):
            ...
    """
    def decorator(func):
        if inspect.iscoroutinefunction(func):
            @wraps(func)
            async def async_wrapper(*args, **kwargs):
                started = time.time()
                correlation_id = _correlation_id(args, kwargs)
                try:
                    result = await func(*args, **kwargs)
                except Exception as e:
                    _finish(metric_name, started, correlation_id, e)
                    raise
                _finish(metric_name, started, correlation_id)
                return result
            return async_wrapper

        @wraps(func)
        def sync_wrapper(*args, **kwargs):
            started = time.time()
            correlation_id = _correlation_id(args, kwargs)
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                _finish(metric_name, started, correlation_id, e)
                raise
            _finish(metric_name, started, correlation_id)
            return result
        return sync_wrapper

    return decorator
