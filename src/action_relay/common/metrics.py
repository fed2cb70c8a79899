import time
from functools import wraps
from typing import Callable, Dict, Optional, Union

from loguru import logger
from prometheus_client import REGISTRY, Counter, Gauge, Histogram, start_http_server


class MetricsRegistry:
    def __init__(self, registry=None):
        # Use a provided registry or the default one
        self.registry = registry or REGISTRY

        # Inbound metrics
        self.actions_received_total = Counter(
            "action_relay_actions_received_total",
            "Total number of actions received",
            ["action"],
            registry=self.registry,
        )

        # Forwarder metrics
        self.forward_total = Counter(
            "action_relay_forward_total",
            "Total number of payloads delivered to a webhook",
            ["target"],
            registry=self.registry,
        )
        self.forward_errors = Counter(
            "action_relay_forward_errors",
            "Total number of failed webhook attempts",
            ["target", "status_code"],
            registry=self.registry,
        )
        self.forward_retry_total = Counter(
            "action_relay_forward_retry_total",
            "Total number of webhook forward retries",
            ["target"],
            registry=self.registry,
        )
        self.forward_latency = Histogram(
            "action_relay_forward_seconds",
            "Time spent forwarding payloads, retries included",
            ["target"],
            registry=self.registry,
        )
        self.async_dispatch_total = Counter(
            "action_relay_async_dispatch_total",
            "Total number of fire-and-forget dispatches",
            ["target"],
            registry=self.registry,
        )

        # Common metrics
        self.up = Gauge(
            "action_relay_up",
            "Whether the action relay service is up",
            ["component"],
            registry=self.registry,
        )


# Global metrics registry
metrics = MetricsRegistry()


def start_metrics_server(port: int = 9090, host: str = "127.0.0.1"):
    """Start the Prometheus metrics server."""
    start_http_server(port, host)


def measure_time(
    metric: Histogram, labels: Optional[Union[Dict[str, str], Callable]] = None
) -> Callable:
    """Decorator to measure the execution time of a coroutine function.

    ``labels`` is either a fixed label dict or a callable receiving the
    decorated function's arguments and returning one.
    """

    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            labels_dict = {}
            if callable(labels):
                try:
                    labels_dict = labels(*args, **kwargs)
                except Exception as e:
                    logger.error(f"Error getting labels from function: {e}")
            elif isinstance(labels, dict):
                labels_dict = labels

            start_time = time.time()
            try:
                return await func(*args, **kwargs)
            finally:
                duration = time.time() - start_time
                try:
                    metric.labels(**labels_dict).observe(duration)
                except Exception as e:
                    logger.error(f"Error recording metric: {e}")

        return wrapper

    return decorator
