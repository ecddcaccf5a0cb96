from fastapi import Request
from fastapi.responses import Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from space_together.core.errors import AuthenticationError, ConfigMissing
from space_together.core.logging import logger
from space_together.core.security import TokenCodec


SCHOOL_TOKEN_HEADER = "School-Token"


class AuthMiddleware(BaseHTTPMiddleware):
    """Attaches the verified user principal and school identity to ``request.state``.

    Missing or invalid credentials are not rejected here; routes that need them
    declare it through the dependencies in ``core.dependencies``.
    """

    def _extract_token(self, request: Request) -> str | None:
        """Extract the user token from the Authorization header, with or without ``Bearer``"""
        auth_header = request.headers.get("Authorization")
        if not auth_header or not auth_header.strip():
            return None
        return auth_header

    def _extract_school_token(self, request: Request) -> str | None:
        token = request.headers.get(SCHOOL_TOKEN_HEADER)
        return token if token and token.strip() else None

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint
    ) -> Response:
        request.state.principal = None
        request.state.school = None
        codec: TokenCodec = request.app.state.token_codec

        token = self._extract_token(request)
        if token:
            try:
                request.state.principal = codec.verify_user(token)
            except (AuthenticationError, ConfigMissing) as e:
                logger.debug(f"User token rejected on {request.url.path}: {e.message}")

        school_token = self._extract_school_token(request)
        if school_token:
            try:
                request.state.school = codec.verify_school(school_token)
            except (AuthenticationError, ConfigMissing) as e:
                logger.debug(f"School token rejected on {request.url.path}: {e.message}")

        return await call_next(request)
