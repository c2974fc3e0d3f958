import hmac
from typing import Iterable, Tuple

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from apps.edusave.utils.envelope import error

TOKEN_HEADER = "X-Internal-Token"


class InternalOnlyGate(BaseHTTPMiddleware):
    """
    Guards the admin surface with a shared internal token.

    An empty token disables the gate (local development).
    """

    def __init__(
        self,
        app,
        internal_token: str = "",
        protected_prefixes: Iterable[str] = ("/admin",),
        exempt_prefixes: Iterable[str] = (),
    ) -> None:
        super().__init__(app)
        self.internal_token = internal_token or ""
        self.protected_prefixes: Tuple[str, ...] = tuple(protected_prefixes)
        self.exempt_prefixes: Tuple[str, ...] = tuple(exempt_prefixes)

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        if (
            self.internal_token
            and path.startswith(self.protected_prefixes)
            and not path.startswith(self.exempt_prefixes)
        ):
            supplied = request.headers.get(TOKEN_HEADER, "")
            if not hmac.compare_digest(supplied, self.internal_token):
                return error("Missing or invalid internal token", "unauthorized", 401)
        return await call_next(request)
