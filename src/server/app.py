"""FastAPI application exposing the WhatsApp webhook and health check."""

from __future__ import annotations

import asyncio
import json
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

from fastapi import BackgroundTasks, FastAPI, Request, Response
from fastapi.responses import JSONResponse, PlainTextResponse

from src.audit.logger import AuditLogger
from src.clients.gemini import GeminiClient
from src.clients.whatsapp import WhatsAppClient
from src.config import RelayConfig
from src.models import AuditEvent, AuditEventType, RiskLevel
from src.persona import Persona, load_persona
from src.webhook.handler import WebhookHandler
from src.webhook.whatsapp import WhatsAppWebhook

logger = logging.getLogger(__name__)

SERVICE_NAME = "whatsapp-gemini-relay"
VERSION = "2.1.0"
WEBHOOK_PATH = "/webhook"
HEALTH_PATH = "/health"


def create_app_from_env() -> FastAPI:
    """Factory for uvicorn --factory: reads config from environment variables."""
    config = RelayConfig.from_env()
    return create_app(config)


def _log_task_exception(loop: asyncio.AbstractEventLoop, context: dict[str, Any]) -> None:
    logger.error(
        "Unhandled exception in event loop: %s",
        context.get("message"),
        exc_info=context.get("exception"),
    )


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    asyncio.get_running_loop().set_exception_handler(_log_task_exception)
    config: RelayConfig = app.state.config
    logger.info(
        "Relay listening: webhook=%s health=%s model=%s phone_number_id=%s",
        WEBHOOK_PATH, HEALTH_PATH, config.gemini_model, config.phone_number_id,
    )
    yield


def create_app(
    config: RelayConfig,
    persona: Persona | None = None,
    audit_logger: AuditLogger | None = None,
    handler: WebhookHandler | None = None,
) -> FastAPI:
    """Create the relay app. Collaborators default to ones built from config."""
    if persona is None:
        persona = load_persona(config.persona_path)
    if audit_logger is None and config.audit_log_path:
        audit_logger = AuditLogger(config.audit_log_path)
    if handler is None:
        handler = WebhookHandler(
            completion=GeminiClient(
                api_key=config.gemini_api_key,
                model=config.gemini_model,
                persona=persona,
                api_base=config.gemini_api_base,
                timeout=config.upstream_timeout,
            ),
            delivery=WhatsAppClient(
                access_token=config.whatsapp_token,
                phone_number_id=config.phone_number_id,
                api_base=config.whatsapp_api_base,
                api_version=config.whatsapp_api_version,
                timeout=config.upstream_timeout,
            ),
            persona=persona,
            audit_logger=audit_logger,
        )

    webhook = WhatsAppWebhook(
        app_secret=config.app_secret, verify_token=config.verify_token,
    )
    started = time.monotonic()

    app = FastAPI(docs_url=None, redoc_url=None, lifespan=_lifespan)
    app.state.config = config

    def _audit(request: Request, event_type: AuditEventType, result: str) -> None:
        if not audit_logger:
            return
        try:
            audit_logger.log(AuditEvent(
                event_type=event_type,
                source_ip=request.client.host if request.client else None,
                action=f"{request.method} {request.url.path}",
                result=result,
                risk_level=RiskLevel.INFO if result == "success" else RiskLevel.HIGH,
            ))
        except OSError:
            logger.exception("Failed to write audit event %s", event_type.value)

    @app.get(HEALTH_PATH)
    async def health() -> dict[str, object]:
        return {
            "status": "ok",
            "timestamp": datetime.now(UTC).isoformat(),
            "uptime": round(time.monotonic() - started, 3),
            "version": VERSION,
            "service": SERVICE_NAME,
            "config": {
                "phone_number_id": (
                    "configured" if config.phone_number_configured else "placeholder"
                ),
                "model": config.gemini_model,
            },
        }

    @app.get(WEBHOOK_PATH)
    async def verify_webhook(request: Request) -> Response:
        challenge = webhook.handle_verification(request.query_params)
        if challenge is None:
            logger.error("Webhook verification failed")
            _audit(request, AuditEventType.VERIFICATION_FAILURE, "failure")
            return JSONResponse({"error": "Verification failed"}, status_code=403)
        logger.info("Webhook verified")
        _audit(request, AuditEventType.VERIFICATION_SUCCESS, "success")
        return PlainTextResponse(challenge)

    @app.post(WEBHOOK_PATH)
    async def receive_webhook(
        request: Request, background_tasks: BackgroundTasks,
    ) -> Response:
        # Raw bytes: the signature covers the body exactly as sent
        body = await request.body()
        if not webhook.verify_signature(request.headers, body):
            logger.warning("Invalid webhook signature")
            _audit(request, AuditEventType.SIGNATURE_FAILURE, "blocked")
            return JSONResponse({"error": "Invalid webhook signature"}, status_code=403)

        try:
            payload = json.loads(body)
        except (json.JSONDecodeError, UnicodeDecodeError):
            logger.debug("Signed webhook body is not JSON; ignored")
        else:
            # Runs after the 200 is sent so Meta never re-delivers on slow upstreams
            background_tasks.add_task(handler.process, payload)
        return PlainTextResponse("EVENT_RECEIVED")

    return app
