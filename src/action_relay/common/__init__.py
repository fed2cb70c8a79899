"""Common configuration, models and utilities for the action relay."""

from action_relay.common.config import MetricsConfig, RelayConfig
from action_relay.common.log import configure_logging
from action_relay.common.models import (
    FORWARDED_ASYNC,
    Action,
    ActionPayload,
    Day,
    DeliveryOutcome,
)
from action_relay.common.metrics import (
    MetricsRegistry,
    metrics,
    measure_time,
    start_metrics_server,
)

__all__ = [
    # Config
    "MetricsConfig",
    "RelayConfig",
    # Logging
    "configure_logging",
    # Models
    "FORWARDED_ASYNC",
    "Action",
    "ActionPayload",
    "Day",
    "DeliveryOutcome",
    # Metrics
    "MetricsRegistry",
    "metrics",
    "measure_time",
    "start_metrics_server",
]
