"""Fan-out of the regenerate-all action and reconciliation of its outcomes.

The payload goes to a primary destination and, when configured, to an
additional one. Neither delivery gates the other. The caller gets the first
2xx answer, primary first, or a failure report holding both outcomes.
"""

import asyncio
from typing import Any, Dict, Optional, Tuple

from loguru import logger

from action_relay.common.models import DeliveryOutcome
from action_relay.forwarder.client import WebhookForwarder


BATCH_FAILURE_MESSAGE = "Failed to forward regenerate-all to any destination"


async def regenerate_all(
    forwarder: WebhookForwarder,
    payload: Any,
    primary_url: str,
    additional_url: Optional[str] = None,
) -> Tuple[DeliveryOutcome, Optional[DeliveryOutcome]]:
    """Forward ``payload`` to both destinations and return their outcomes."""
    if not additional_url:
        return await forwarder.forward(primary_url, payload), None

    primary, additional = await asyncio.gather(
        forwarder.forward(primary_url, payload),
        forwarder.forward(additional_url, payload),
    )
    return primary, additional


def reconcile(
    primary: DeliveryOutcome, additional: Optional[DeliveryOutcome] = None
) -> Optional[DeliveryOutcome]:
    """Pick the outcome to pass through, or None when neither side got a 2xx."""
    if primary.succeeded:
        return primary
    if additional is not None and additional.succeeded:
        return additional
    return None


def failure_report(
    primary: DeliveryOutcome, additional: Optional[DeliveryOutcome] = None
) -> Dict[str, Any]:
    return {
        "error": BATCH_FAILURE_MESSAGE,
        "primary": primary.summary(),
        "additional": additional.summary() if additional is not None else None,
    }


async def regenerate_all_in_background(
    forwarder: WebhookForwarder,
    payload: Any,
    primary_url: str,
    additional_url: Optional[str] = None,
) -> Optional[DeliveryOutcome]:
    """Full fan-out and reconciliation whose verdict is only logged."""
    primary, additional = await regenerate_all(
        forwarder, payload, primary_url, additional_url
    )
    chosen = reconcile(primary, additional)
    if chosen is None:
        logger.error(
            f"Background regenerate-all failed: {failure_report(primary, additional)}"
        )
    else:
        source = "primary" if chosen is primary else "additional"
        logger.info(
            f"Background regenerate-all delivered via {source} destination "
            f"(status={chosen.status})"
        )
    return chosen
