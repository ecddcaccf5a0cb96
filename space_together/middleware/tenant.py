from fastapi import Request
from fastapi.responses import Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from space_together.core.logging import logger


class TenantMiddleware(BaseHTTPMiddleware):
    """Binds the tenant database handle for the request, if a school was resolved.

    Must run after ``AuthMiddleware`` so a verified school token can take part
    in resolution. Requests that resolve to no school continue against the
    control plane with ``request.state.tenant_db`` left as ``None``.
    """

    def __init__(self, app, exclude_prefixes=("/events",)):
        super().__init__(app)
        self.exclude_prefixes = tuple(exclude_prefixes)

    def _is_excluded(self, path: str) -> bool:
        return any(
            path == prefix or path.startswith(prefix.rstrip("/") + "/")
            for prefix in self.exclude_prefixes
        )

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint
    ) -> Response:
        request.state.tenant_name = None
        request.state.tenant_db = None

        if self._is_excluded(request.url.path):
            return await call_next(request)

        tenant_name = request.app.state.tenant_resolver.resolve_request(request)
        if tenant_name:
            request.state.tenant_name = tenant_name
            request.state.tenant_db = request.app.state.mongo.for_tenant(tenant_name)
            logger.debug(f"Request bound to tenant {tenant_name}", extra={"tenant": tenant_name})

        return await call_next(request)
