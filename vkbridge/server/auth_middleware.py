"""ASGI middleware guarding the host-facing routes with a Bearer token.

VK webhook routes are public at this layer: they authenticate with the
channel's shared secret instead.
"""

from __future__ import annotations

import hmac
import re

from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.types import ASGIApp, Receive, Scope, Send

from vkbridge.audit.logger import AuditLogger
from vkbridge.models import AuditEvent, AuditEventType, RiskLevel

PUBLIC_PATHS = {"/health"}

# Matches /c/vk/<channel uuid>/receive
WEBHOOK_PATH_RE = re.compile(r"^/c/vk/[^/]+/receive/?$")


class AuthMiddleware:
    """Validates Bearer tokens using constant-time comparison."""

    def __init__(
        self,
        app: ASGIApp,
        token: str,
        audit_logger: AuditLogger | None = None,
    ) -> None:
        self.app = app
        self._token = token.encode()
        self.audit_logger = audit_logger

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request = Request(scope)
        path = request.url.path

        if path in PUBLIC_PATHS or WEBHOOK_PATH_RE.match(path):
            await self.app(scope, receive, send)
            return

        auth_header = request.headers.get("authorization", "")
        if not auth_header.startswith("Bearer "):
            reason = "missing_token" if not auth_header else "invalid_format"
            self._log(request, AuditEventType.AUTH_FAILURE, "failure", reason)
            response = JSONResponse({"error": "Authentication required"}, status_code=401)
            await response(scope, receive, send)
            return

        if not hmac.compare_digest(auth_header[7:].encode(), self._token):
            self._log(request, AuditEventType.AUTH_FAILURE, "failure", "invalid_token")
            response = JSONResponse({"error": "Access denied"}, status_code=403)
            await response(scope, receive, send)
            return

        self._log(request, AuditEventType.AUTH_SUCCESS, "success")
        await self.app(scope, receive, send)

    def _log(
        self,
        request: Request,
        event_type: AuditEventType,
        result: str,
        reason: str | None = None,
    ) -> None:
        if not self.audit_logger:
            return
        self.audit_logger.log(AuditEvent(
            event_type=event_type,
            source_ip=request.client.host if request.client else None,
            action=f"{request.method} {request.url.path}",
            result=result,
            risk_level=RiskLevel.HIGH if reason else RiskLevel.INFO,
            details={"reason": reason} if reason else None,
        ))
