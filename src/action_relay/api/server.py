from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from action_relay.api.routes import build_legacy_router, router
from action_relay.common.config import RelayConfig
from action_relay.common.log import configure_logging
from action_relay.common.metrics import metrics, start_metrics_server
from action_relay.forwarder.client import WebhookForwarder


def create_forwarder(config: RelayConfig) -> WebhookForwarder:
    return WebhookForwarder(
        timeout=config.webhook_timeout,
        max_retries=config.webhook_retries,
        backoff_step=config.webhook_backoff,
        headers=config.webhook_headers,
    )


def log_startup(config: RelayConfig) -> None:
    logger.info(f"✅ Server running on http://{config.host}:{config.port}")
    logger.info(f"Actions target: {config.target_server}")
    logger.info(f"Regenerate-all target: {config.regenerate_url}")
    if config.additional_regenerate_webhook:
        logger.info(
            f"Additional regenerate-all webhook: {config.additional_regenerate_webhook}"
        )
    mode = "fire-and-forget" if config.fire_and_forget else "synchronous"
    logger.info(
        f"Forwarding mode: {mode} "
        f"(timeout={config.webhook_timeout_ms}ms, retries={config.webhook_retries})"
    )


def create_app(
    config: RelayConfig, forwarder: Optional[WebhookForwarder] = None
) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(config.log_level)

        # Start metrics server if enabled
        if config.metrics.enabled:
            start_metrics_server(config.metrics.port, config.metrics.host)
            logger.info(
                f"Metrics server started on {config.metrics.host}:{config.metrics.port}"
            )

        metrics.up.labels(component="relay").set(1)
        log_startup(config)

        yield

        # Background deliveries outlive their requests, not the process
        await app.state.forwarder.drain()
        metrics.up.labels(component="relay").set(0)
        logger.info("Webhook Action Relay shutting down")

    app = FastAPI(
        title="Webhook Action Relay",
        description="Relays day approve/regenerate actions to downstream webhooks",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.config = config
    app.state.forwarder = forwarder or create_forwarder(config)

    app.include_router(router)
    if config.legacy_routes:
        app.include_router(build_legacy_router(config.legacy_capitalize_days))

    return app


def run_server(config: RelayConfig):
    app = create_app(config)

    uvicorn.run(
        app,
        host=config.host,
        port=config.port,
        log_level="info",
    )
