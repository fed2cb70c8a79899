"""Outbound webhook delivery for the action relay."""

from action_relay.forwarder.batch import (
    reconcile,
    failure_report,
    regenerate_all,
    regenerate_all_in_background,
)
from action_relay.forwarder.client import WebhookForwarder

__all__ = [
    "WebhookForwarder",
    "regenerate_all",
    "regenerate_all_in_background",
    "reconcile",
    "failure_report",
]
