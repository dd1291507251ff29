"""FastAPI application exposing the VK webhook and send routes."""

from __future__ import annotations

import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.requests import ClientDisconnect

from vkbridge.audit.logger import AuditLogger
from vkbridge.backend import MemoryBackend
from vkbridge.channels import ChannelRegistry, load_channels_from_file
from vkbridge.models import OutboundMessage
from vkbridge.server.auth_middleware import AuthMiddleware
from vkbridge.webhook.errors import BodyReadError, ChannelError, SendError
from vkbridge.webhook.events import MAX_BODY_SIZE
from vkbridge.webhook.models import error_body
from vkbridge.webhook.outbound import API_BASE_URL
from vkbridge.webhook.vk import VKHandler, new_handler

logger = logging.getLogger(__name__)


def create_app_from_env() -> FastAPI:
    """Factory for uvicorn --factory: reads config from environment variables."""
    logging.basicConfig(level=os.environ.get("VKBRIDGE_LOG_LEVEL", "INFO"))
    token = os.environ["VKBRIDGE_API_TOKEN"]
    channels_path = os.environ.get("VKBRIDGE_CHANNELS_PATH", "config/channels.json")
    api_base_url = os.environ.get("VK_API_BASE_URL", API_BASE_URL)
    audit_log = os.environ.get("AUDIT_LOG_PATH")

    audit_logger = AuditLogger.from_env(audit_log) if audit_log else None
    registry = load_channels_from_file(channels_path)
    handler = new_handler(
        MemoryBackend(), audit_logger=audit_logger, api_base_url=api_base_url,
    )
    return create_app(handler, registry, token, audit_logger)


async def read_body(request: Request, limit: int = MAX_BODY_SIZE) -> bytes:
    """Read the request body, giving up as soon as it grows past ``limit``."""
    body = bytearray()
    try:
        async for chunk in request.stream():
            body.extend(chunk)
            if len(body) > limit:
                raise BodyReadError(
                    f"request body exceeds maximum size of {limit} bytes", too_large=True,
                )
    except ClientDisconnect as exc:
        raise BodyReadError("unable to read request body: client disconnected") from exc
    return bytes(body)


def create_app(
    handler: VKHandler,
    registry: ChannelRegistry,
    token: str,
    audit_logger: AuditLogger | None = None,
) -> FastAPI:
    """Create the app with the VK handler wired to its channel registry."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await handler.aclose()

    app = FastAPI(docs_url=None, redoc_url=None, lifespan=lifespan)

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.post("/c/vk/{channel_uuid}/receive")
    async def receive(channel_uuid: str, request: Request) -> Response:
        channel = registry.get(channel_uuid)
        if channel is None:
            return JSONResponse(error_body("channel not found"), status_code=404)

        try:
            body = await read_body(request)
            result = await handler.receive_event(channel, body)
        except ChannelError as exc:
            logger.warning(
                "VK webhook for channel %s failed with %s: %s",
                channel_uuid, type(exc).__name__, exc,
            )
            return JSONResponse(error_body(str(exc)), status_code=exc.status_code)

        return Response(
            content=result.response.text,
            status_code=result.response.status_code,
            media_type=result.response.media_type,
        )

    @app.post("/c/vk/{channel_uuid}/send")
    async def send(channel_uuid: str, request: Request) -> Response:
        channel = registry.get(channel_uuid)
        if channel is None:
            return JSONResponse({"error": "channel not found"}, status_code=404)

        try:
            msg = OutboundMessage.model_validate_json(await request.body())
        except ValidationError as exc:
            return JSONResponse(
                {"error": "invalid message", "detail": str(exc)},
                status_code=400,
            )
        if msg.channel_uuid != channel_uuid:
            return JSONResponse({"error": "channel mismatch"}, status_code=400)

        try:
            status = await handler.send_msg(channel, msg)
        except SendError as exc:
            if exc.status is None:
                raise
            return JSONResponse(exc.status.model_dump(mode="json"), status_code=exc.status_code)
        return JSONResponse(status.model_dump(mode="json"))

    app.add_middleware(AuthMiddleware, token=token, audit_logger=audit_logger)

    return app
