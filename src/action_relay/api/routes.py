import json
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from loguru import logger

from action_relay.common.config import RelayConfig
from action_relay.common.metrics import metrics
from action_relay.common.models import (
    FORWARDED_ASYNC,
    Action,
    ActionPayload,
    Day,
    DeliveryOutcome,
)
from action_relay.forwarder.batch import (
    failure_report,
    reconcile,
    regenerate_all,
    regenerate_all_in_background,
)
from action_relay.forwarder.client import WebhookForwarder


DEFAULT_BATCH_PAYLOAD = {"action": "regenerate-all"}

# Statuses that must not carry a body
BODYLESS_STATUSES = (204, 304)


router = APIRouter()


async def get_config(request: Request) -> RelayConfig:
    return request.app.state.config


async def get_forwarder(request: Request) -> WebhookForwarder:
    return request.app.state.forwarder


def accepted_response() -> JSONResponse:
    return JSONResponse(
        status_code=202, content={"status": "accepted", "info": FORWARDED_ASYNC}
    )


def passthrough_response(
    outcome: DeliveryOutcome, fallback: Optional[str] = None
) -> Response:
    """Relay a downstream answer, substituting ``fallback`` for an empty body."""
    if outcome.status in BODYLESS_STATUSES:
        return Response(status_code=outcome.status)
    if not outcome.body:
        return PlainTextResponse(fallback or "", status_code=outcome.status)
    return Response(
        content=outcome.body,
        status_code=outcome.status,
        media_type=outcome.content_type or "text/plain",
    )


async def read_batch_payload(request: Request) -> Any:
    body = await request.body()
    if not body.strip():
        return dict(DEFAULT_BATCH_PAYLOAD)
    try:
        content = json.loads(body)
    except json.JSONDecodeError:
        raise HTTPException(status_code=400, detail="Invalid JSON payload")
    if content is None or content == {}:
        return dict(DEFAULT_BATCH_PAYLOAD)
    return content


async def relay_action(
    day: str,
    action: Action,
    config: RelayConfig,
    forwarder: WebhookForwarder,
) -> Response:
    payload = ActionPayload(day=day, action=action).model_dump(mode="json")
    metrics.actions_received_total.labels(action=action.value).inc()

    if config.fire_and_forget:
        forwarder.dispatch(config.target_server, payload)
        logger.info(f"Dispatched {action.verb} for {day} to {config.target_server}")
        return accepted_response()

    outcome = await forwarder.forward(config.target_server, payload)
    if not outcome.delivered:
        logger.error(f"Error sending POST for {day} {action.verb}: {outcome.error}")
        return PlainTextResponse(f"Failed to {action.verb} {day}", status_code=500)
    return passthrough_response(outcome, f"{day} has been {action.value}")


@router.get("/api/photos/{day}")
async def get_photos(day: str):
    return {"day": day, "message": f"Photos for {day} are not available yet"}


@router.post("/api/actions/regenerate-all")
async def regenerate_all_days(
    request: Request,
    config: RelayConfig = Depends(get_config),
    forwarder: WebhookForwarder = Depends(get_forwarder),
):
    payload = await read_batch_payload(request)
    metrics.actions_received_total.labels(action="regenerate-all").inc()
    primary_url = config.regenerate_url
    additional_url = config.additional_regenerate_webhook

    if config.fire_and_forget:
        forwarder.spawn(
            regenerate_all_in_background(forwarder, payload, primary_url, additional_url),
            "regenerate-all",
        )
        logger.info("Dispatched regenerate-all")
        return accepted_response()

    primary, additional = await regenerate_all(
        forwarder, payload, primary_url, additional_url
    )
    chosen = reconcile(primary, additional)
    if chosen is None:
        report = failure_report(primary, additional)
        logger.error(f"regenerate-all failed: {report}")
        return JSONResponse(status_code=500, content=report)
    return passthrough_response(chosen)


@router.post("/api/actions/approve/{day}")
async def approve_day(
    day: str,
    config: RelayConfig = Depends(get_config),
    forwarder: WebhookForwarder = Depends(get_forwarder),
):
    return await relay_action(day, Action.APPROVED, config, forwarder)


@router.post("/api/actions/regenerate-single/{day}")
async def regenerate_day(
    day: str,
    config: RelayConfig = Depends(get_config),
    forwarder: WebhookForwarder = Depends(get_forwarder),
):
    return await relay_action(day, Action.REGENERATED, config, forwarder)


@router.get("/health")
async def health_check():
    return {"status": "ok"}


def legacy_day_handler(day: Day, action: Action, capitalize: bool = False):
    """Build the GET handler of one legacy ``/{day}/{verb}`` route.

    Legacy routes answer with plain text and treat any non-2xx downstream
    status as a failure.
    """
    name = day.display_name if capitalize else day.value

    async def handler(
        config: RelayConfig = Depends(get_config),
        forwarder: WebhookForwarder = Depends(get_forwarder),
    ) -> Response:
        payload = ActionPayload(day=name, action=action).model_dump(mode="json")
        metrics.actions_received_total.labels(action=action.value).inc()

        if config.fire_and_forget:
            forwarder.dispatch(config.target_server, payload)
            return accepted_response()

        outcome = await forwarder.forward(config.target_server, payload)
        if not outcome.succeeded:
            reason = outcome.error or f"status {outcome.status}"
            logger.error(f"Error sending POST for {name} {action.verb}: {reason}")
            return PlainTextResponse(f"Failed to {action.verb} {name}", status_code=500)
        return PlainTextResponse(f"{name} has been {action.value}")

    handler.__name__ = f"legacy_{action.verb}_{day.value}"
    return handler


def build_legacy_router(capitalize: bool = False) -> APIRouter:
    legacy_router = APIRouter(tags=["legacy"])
    for day in Day:
        for action in Action:
            legacy_router.add_api_route(
                f"/{day.value}/{action.verb}",
                legacy_day_handler(day, action, capitalize),
                methods=["GET"],
                response_class=PlainTextResponse,
            )
    return legacy_router
