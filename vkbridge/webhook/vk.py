"""VK channel handler: Callback API webhooks in, ``messages.send`` out.

Inbound flow: size check, envelope decode, shared secret check, then
dispatch on the event type (server verification, new message or ignored).

Outbound flow: build parameters, render attachments, one POST to
``messages.send``, interpret the response into a :class:`MsgStatus`.
"""

from __future__ import annotations

import logging
import time
from datetime import UTC, datetime

import httpx

from vkbridge.audit.logger import AuditLogger
from vkbridge.backend import Backend
from vkbridge.models import (
    URN,
    AuditEventType,
    CanonicalInboundMessage,
    ChannelConfig,
    ChannelLog,
    MsgStatus,
    MsgStatusValue,
    OutboundMessage,
    RiskLevel,
    redact_token,
)
from vkbridge.webhook.attachments import take_first_attachment_url
from vkbridge.webhook.errors import (
    AuthenticationError,
    BackendWriteError,
    BuildError,
    MalformedPayloadError,
    SendError,
    TransportError,
    UnexpectedResponseError,
    UnsupportedEventError,
    UserLookupError,
)
from vkbridge.webhook.events import (
    MessagePayload,
    NewMessageEvent,
    ServerVerification,
    check_body_size,
    decode_envelope,
    parse_event,
    validate_secret,
)
from vkbridge.webhook.media import MediaUploader, VKPhotoUploader
from vkbridge.webhook.models import ReceiveResult, WebhookResponse, ignored_response
from vkbridge.webhook.outbound import (
    API_BASE_URL,
    PARAM_ATTACHMENT,
    SCHEME,
    SEND_MESSAGE_PATH,
    build_send_params,
    build_send_request,
    render_attachments,
)
from vkbridge.webhook.responses import interpret_send_response
from vkbridge.webhook.users import UserLookup, VKUserLookup

logger = logging.getLogger(__name__)

CHANNEL_TYPE = "VK"

# VK requires this exact body in reply to every accepted message event
RESPONSE_INCOMING_MESSAGE = "ok"

_SEND_TIMEOUT_SECONDS = 30.0


class VKHandler:
    """Translates between VK and the host's canonical messages."""

    channel_type = CHANNEL_TYPE

    def __init__(
        self,
        backend: Backend,
        client: httpx.AsyncClient,
        user_lookup: UserLookup,
        media_uploader: MediaUploader | None = None,
        audit_logger: AuditLogger | None = None,
        api_base_url: str = API_BASE_URL,
    ) -> None:
        self._backend = backend
        self._client = client
        self._user_lookup = user_lookup
        self._media_uploader = media_uploader
        self._audit = audit_logger
        self._send_url = f"{api_base_url.rstrip('/')}{SEND_MESSAGE_PATH}"

    async def aclose(self) -> None:
        await self._client.aclose()

    # --- Inbound ---

    async def receive_event(self, channel: ChannelConfig, body: bytes) -> ReceiveResult:
        """Handle one Callback API request body for ``channel``."""
        check_body_size(body)
        envelope = decode_envelope(body)

        try:
            validate_secret(envelope, channel)
        except AuthenticationError as exc:
            logger.warning("Rejected VK event for channel %s: %s", channel.uuid, exc)
            if self._audit:
                self._audit.record(
                    AuditEventType.WEBHOOK_REJECTED,
                    action=f"receive:{envelope.type or 'unknown'}",
                    result="failure",
                    risk_level=RiskLevel.HIGH,
                    channel_uuid=channel.uuid,
                    reason=str(exc),
                )
            raise

        try:
            event = parse_event(envelope, body)
        except UnsupportedEventError as exc:
            logger.info(
                "Ignoring VK event type %r for channel %s", exc.event_type, channel.uuid,
            )
            if self._audit:
                self._audit.record(
                    AuditEventType.WEBHOOK_IGNORED,
                    action=f"receive:{exc.event_type or 'unknown'}",
                    result="ignored",
                    channel_uuid=channel.uuid,
                )
            return ReceiveResult(response=ignored_response(str(exc)), ignored=True)

        if isinstance(event, ServerVerification):
            return self.verify_server(channel)
        return await self.receive_message(channel, event.event)

    def verify_server(self, channel: ChannelConfig) -> ReceiveResult:
        """Echo the channel's verification string, verbatim."""
        return ReceiveResult(response=WebhookResponse(text=channel.verification_string))

    async def receive_message(
        self, channel: ChannelConfig, event: NewMessageEvent,
    ) -> ReceiveResult:
        payload = event.message
        msg = CanonicalInboundMessage(
            channel_uuid=channel.uuid,
            urn=URN.from_parts(SCHEME, payload.from_id),
            text=payload.text,
            received_on=_received_on(payload.date),
            external_id=str(payload.id),
        )
        msg.with_contact_name(await self._contact_name(channel, payload.from_id))

        attachment = take_first_attachment_url(payload.attachments) or _geo_attachment(payload)
        if attachment:
            msg.with_attachment(attachment)

        try:
            await self._backend.write_msg(msg)
        except Exception as exc:  # any backend failure fails the request
            raise BackendWriteError(f"unable to write message: {exc}") from exc

        if self._audit:
            self._audit.record(
                AuditEventType.MESSAGE_RECEIVED,
                action="receive:message_new",
                result="success",
                channel_uuid=channel.uuid,
                external_id=msg.external_id,
            )
        return ReceiveResult(
            response=WebhookResponse(text=RESPONSE_INCOMING_MESSAGE),
            events=[msg],
        )

    async def _contact_name(self, channel: ChannelConfig, user_id: int) -> str:
        try:
            user = await self._user_lookup.lookup(channel, user_id)
        except UserLookupError as exc:
            logger.error(
                "Error getting VK user %s for channel %s: %s", user_id, channel.uuid, exc,
            )
            return ""
        return f"{user.first_name} {user.last_name}"

    # --- Outbound ---

    async def send_msg(self, channel: ChannelConfig, msg: OutboundMessage) -> MsgStatus:
        """Send ``msg`` once. Failures raise a SendError carrying the status."""
        status = MsgStatus(channel_uuid=channel.uuid, msg_id=msg.id)
        try:
            await self._send(channel, msg, status)
        except SendError as exc:
            exc.status = status
            logger.warning("Failed sending msg %s on channel %s: %s", msg.id, channel.uuid, exc)
            if self._audit:
                self._audit.record(
                    AuditEventType.MESSAGE_FAILED,
                    action="send",
                    result="failure",
                    risk_level=RiskLevel.MEDIUM,
                    channel_uuid=channel.uuid,
                    msg_id=msg.id,
                    error=str(exc),
                )
            raise

        if self._audit:
            self._audit.record(
                AuditEventType.MESSAGE_SENT,
                action="send",
                result="success",
                channel_uuid=channel.uuid,
                msg_id=msg.id,
                external_id=status.external_id,
            )
        return status

    async def _send(self, channel: ChannelConfig, msg: OutboundMessage, status: MsgStatus) -> None:
        try:
            params = build_send_params(channel, msg)
            request = build_send_request(self._client, self._send_url, params)
        except BuildError as exc:
            status.add_log(ChannelLog(
                description="Message Send Error",
                channel_uuid=channel.uuid,
                msg_id=msg.id,
                error=str(exc),
            ))
            raise

        rendered = await render_attachments(channel, msg, self._media_uploader)
        for failure in rendered.failures:
            status.add_log(ChannelLog(
                description="Attachment Render Error",
                channel_uuid=channel.uuid,
                msg_id=msg.id,
                error=failure,
            ))
        if rendered.param:
            params[PARAM_ATTACHMENT] = rendered.param
            request = build_send_request(self._client, self._send_url, params)

        start = time.monotonic()
        response: httpx.Response | None = None
        error: httpx.HTTPError | None = None
        try:
            response = await self._client.send(request)
        except httpx.HTTPError as exc:
            error = exc

        log = ChannelLog(
            description="Message Sent",
            channel_uuid=channel.uuid,
            msg_id=msg.id,
            method=request.method,
            url=redact_token(str(request.url)),
            request=redact_token(f"{request.method} {request.url}"),
            status_code=response.status_code if response is not None else None,
            response=response.text if response is not None else "",
            error=f"Message Send Error: {error}" if error is not None else None,
            elapsed_ms=int((time.monotonic() - start) * 1000),
        )
        status.add_log(log)

        if response is None:
            raise TransportError(f"Message Send Error: {error}") from error
        if response.status_code // 100 != 2:
            log.error = f"received non 200 status: {response.status_code}"
            raise TransportError(log.error)

        try:
            external_id = interpret_send_response(response.content)
        except UnexpectedResponseError as exc:
            log.error = str(exc)
            raise

        status.set_external_id(external_id)
        status.set_status(MsgStatusValue.SENT)


def _received_on(timestamp: int) -> datetime:
    try:
        return datetime.fromtimestamp(timestamp, UTC)
    except (OverflowError, OSError, ValueError) as exc:
        raise MalformedPayloadError(f"invalid message date: {timestamp}") from exc


def _geo_attachment(payload: MessagePayload) -> str:
    if payload.geo is None:
        return ""
    coords = payload.geo.coordinates
    if coords.latitude == 0 and coords.longitude == 0:
        return ""
    return f"geo:{coords.latitude:f},{coords.longitude:f}"


def new_handler(
    backend: Backend,
    client: httpx.AsyncClient | None = None,
    user_lookup: UserLookup | None = None,
    media_uploader: MediaUploader | None = None,
    audit_logger: AuditLogger | None = None,
    api_base_url: str = API_BASE_URL,
) -> VKHandler:
    """Build a VKHandler wired with its collaborators.

    Missing collaborators default to the VK API implementations sharing one
    httpx client.
    """
    client = client or httpx.AsyncClient(timeout=_SEND_TIMEOUT_SECONDS)
    return VKHandler(
        backend=backend,
        client=client,
        user_lookup=user_lookup or VKUserLookup(client, api_base_url),
        media_uploader=media_uploader or VKPhotoUploader(client, api_base_url),
        audit_logger=audit_logger,
        api_base_url=api_base_url,
    )
