"""
Metrics Collection for the Recurring Task Engine.

Counters and timers for occurrence advancement and iteration previews.
"""

import time
from typing import Dict, Any, Callable
from collections import defaultdict
from datetime import datetime
from functools import wraps
import threading


class MetricsCollector:
    """Collects and manages metrics for the recurring task engine."""

    def __init__(self):
        """Initialize metrics collector."""
        self.metrics = defaultdict(int)
        self.timers = defaultdict(float)
        self.lock = threading.Lock()

        # Initialize counters
        self.metrics["recurring_instances_created_total"] = 0
        self.metrics["recurring_series_exhausted_total"] = 0
        self.metrics["recurring_occurrences_skipped_total"] = 0
        self.metrics["recurring_advancement_errors_total"] = 0
        self.metrics["recurring_previews_total"] = 0

    def increment_counter(self, metric_name: str, value: int = 1):
        """Increment a counter metric."""
        with self.lock:
            self.metrics[metric_name] += value

    def record_timer(self, metric_name: str, duration: float):
        """Record a timing metric."""
        with self.lock:
            self.timers[metric_name] += duration

    def get_metrics(self) -> Dict[str, Any]:
        """Get current metrics values."""
        with self.lock:
            return {
                "counters": dict(self.metrics),
                "timers": dict(self.timers),
                "timestamp": datetime.utcnow().isoformat()
            }

    def instance_created(self):
        """Record that a recurring instance was materialized."""
        self.increment_counter("recurring_instances_created_total")

    def series_exhausted(self):
        """Record that a series reached its end date."""
        self.increment_counter("recurring_series_exhausted_total")

    def occurrence_skipped(self):
        """Record that an occurrence was skipped or rolled over."""
        self.increment_counter("recurring_occurrences_skipped_total")

    def advancement_error(self):
        """Record that an advancement was rolled back."""
        self.increment_counter("recurring_advancement_errors_total")

    def preview_served(self):
        """Record that an iteration preview was computed."""
        self.increment_counter("recurring_previews_total")

    def time_operation(self, metric_name: str) -> Callable:
        """Decorator that accumulates the wall time of the wrapped call."""
        def decorator(func):
            @wraps(func)
            def wrapper(*args, **kwargs):
                start_time = time.time()
                try:
                    return func(*args, **kwargs)
                finally:
                    self.record_timer(metric_name, time.time() - start_time)
            return wrapper
        return decorator


# Global metrics instance
metrics_collector = MetricsCollector()
