import asyncio
from typing import Any, Awaitable, Dict, Optional, Set
from urllib.parse import urlparse

import aiohttp
from loguru import logger

from action_relay.common.metrics import metrics, measure_time
from action_relay.common.models import DeliveryOutcome


# Only these mean the payload may not have reached the destination.
TRANSPORT_ERRORS = (aiohttp.ClientError, asyncio.TimeoutError)


def target_label(url: str) -> str:
    parsed_url = urlparse(url)
    return f"{parsed_url.netloc}{parsed_url.path}"


def describe_error(error: BaseException) -> str:
    message = str(error)
    if not message:
        return type(error).__name__
    return f"{type(error).__name__}: {message}"


class WebhookForwarder:
    """POSTs JSON payloads to webhooks with a bounded, linearly backed-off retry.

    ``forward`` waits for the outcome; ``dispatch`` runs the same sequence in a
    detached task and only logs the result. Detached tasks are kept referenced
    until they finish and can be awaited with ``drain``.
    """

    def __init__(
        self,
        timeout: float = 10.0,
        max_retries: int = 0,
        backoff_step: float = 0.2,
        headers: Dict[str, str] = None,
    ):
        self.timeout = timeout
        self.max_retries = max_retries
        self.backoff_step = backoff_step
        self.headers = headers or {}
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    @measure_time(
        metrics.forward_latency,
        lambda self, url, *args, **kwargs: {"target": target_label(url)},
    )
    async def forward(
        self,
        url: str,
        payload: Any,
        timeout: Optional[float] = None,
        max_retries: Optional[int] = None,
    ) -> DeliveryOutcome:
        """Forward ``payload`` to ``url`` and return the delivery outcome.

        Any HTTP response, whatever its status, ends the sequence. Transport
        errors and timeouts are retried up to ``max_retries`` more times,
        sleeping ``backoff_step * n`` before retry ``n``.
        """
        timeout = self.timeout if timeout is None else timeout
        max_retries = self.max_retries if max_retries is None else max_retries
        attempts = max_retries + 1
        label = target_label(url)
        last_error: Optional[BaseException] = None

        for attempt in range(attempts):
            if attempt:
                backoff = self.backoff_step * attempt
                metrics.forward_retry_total.labels(target=label).inc()
                logger.info(
                    f"Retrying forward to {url} "
                    f"(attempt {attempt + 1}/{attempts}, backoff={backoff:.3f}s)"
                )
                await asyncio.sleep(backoff)

            try:
                outcome = await self._post(url, payload, timeout)
            except TRANSPORT_ERRORS as e:
                last_error = e
                metrics.forward_errors.labels(target=label, status_code="error").inc()
                logger.error(
                    f"Error forwarding to {url} "
                    f"(attempt {attempt + 1}/{attempts}): {describe_error(e)}"
                )
                continue

            if outcome.succeeded:
                metrics.forward_total.labels(target=label).inc()
                logger.info(f"Forwarded to {url} (status={outcome.status})")
            else:
                metrics.forward_errors.labels(
                    target=label, status_code=outcome.status
                ).inc()
                logger.warning(
                    f"Downstream {url} answered with status {outcome.status}: "
                    f"{outcome.text}"
                )
            return outcome

        logger.error(f"Giving up forwarding to {url} after {attempts} attempts")
        return DeliveryOutcome.failure(describe_error(last_error))

    async def _post(self, url: str, payload: Any, timeout: float) -> DeliveryOutcome:
        client_timeout = aiohttp.ClientTimeout(total=timeout)
        async with aiohttp.ClientSession(timeout=client_timeout) as session:
            async with session.post(url, json=payload, headers=self.headers) as response:
                body = await response.read()
                return DeliveryOutcome.response(
                    status=response.status,
                    body=body,
                    content_type=response.headers.get("Content-Type"),
                )

    def dispatch(self, url: str, payload: Any) -> DeliveryOutcome:
        """Fire-and-forget ``forward``; must be called from a running loop."""
        metrics.async_dispatch_total.labels(target=target_label(url)).inc()
        self.spawn(self._forward_and_log(url, payload), f"forward to {url}")
        return DeliveryOutcome.forwarded_async()

    async def _forward_and_log(self, url: str, payload: Any) -> DeliveryOutcome:
        outcome = await self.forward(url, payload)
        if outcome.delivered:
            logger.info(
                f"Fire-and-forget delivery to {url} finished (status={outcome.status})"
            )
        else:
            logger.error(f"Fire-and-forget delivery to {url} failed: {outcome.error}")
        return outcome

    def spawn(self, coro: Awaitable, description: str) -> asyncio.Task:
        """Run ``coro`` detached from the caller, keeping it alive until done."""
        task = asyncio.ensure_future(coro)
        task.set_name(description)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning(f"Background task cancelled: {task.get_name()}")
        elif task.exception() is not None:
            logger.opt(exception=task.exception()).error(
                f"Background task failed: {task.get_name()}"
            )

    async def drain(self) -> None:
        """Wait for every detached task, including ones spawned meanwhile."""
        while self._tasks:
            logger.info(f"Waiting for {len(self._tasks)} background deliveries")
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
