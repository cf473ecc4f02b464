"""Tenant middleware.

Pure ASGI so that the tenant binding spans the whole response, including
streamed bodies, and is released only after the last message is sent.
"""

import logging

from starlette.datastructures import Headers, MutableHeaders
from starlette.responses import JSONResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from saas_platform.app.tenancy.context import TenantBinding
from saas_platform.app.tenancy.errors import TenancyError
from saas_platform.app.tenancy.pipeline import TenantPipeline, TenantRequest
from saas_platform.app.tenancy.resolver import host_from_header

logger = logging.getLogger(__name__)

NOTICE_HEADER = "X-Tenant-Notice"


class TenantMiddleware:
    """Resolves the tenant and binds its database around the downstream app."""

    def __init__(
        self,
        app: ASGIApp,
        pipeline: TenantPipeline,
        tenant_header: str = "X-Tenant-Domain",
    ) -> None:
        """Initialize tenant middleware.

        Args:
            app: Downstream ASGI application
            pipeline: Tenant pipeline
            tenant_header: Header carrying the tenant key in header mode
        """
        self.app = app
        self._pipeline = pipeline
        self._tenant_header = tenant_header

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = Headers(scope=scope)
        request = TenantRequest(
            host=host_from_header(headers.get("host")),
            path=scope["path"],
            tenant_header=headers.get(self._tenant_header),
        )
        response_started = False

        async def call_next(binding: TenantBinding | None) -> None:
            async def send_wrapper(message: Message) -> None:
                nonlocal response_started
                if message["type"] == "http.response.start":
                    response_started = True
                    if binding is not None and binding.advisory:
                        MutableHeaders(scope=message).append(NOTICE_HEADER, binding.advisory)
                await send(message)

            await self.app(scope, receive, send_wrapper)

        try:
            await self._pipeline.handle(request, call_next)
        except TenancyError as e:
            if response_started:
                logger.error("Tenancy error after response started: %s", e.message)
                raise
            response = JSONResponse(e.to_body(), status_code=e.status_code)
            await response(scope, receive, send)
