from typing import Any, Callable, Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from .authorizer import Authorizer
from .engine import Rbac

RoleLoader = Callable[[Request, Authorizer], Any]


class AuthorizerMiddleware(BaseHTTPMiddleware):
    """Attach a fresh Authorizer to ``request.state.authorizer``.

    ``role_loader`` is called with the request and the new authorizer and
    may add roles directly or schedule ``add_async`` resolutions. It may be
    sync or async. Resolution keeps running while the endpoint starts; the
    RBAC decorators wait for it before checking.
    """

    def __init__(self, app, rbac: Rbac, role_loader: Optional[RoleLoader] = None):
        super().__init__(app)
        self.rbac = rbac
        self.role_loader = role_loader

    async def dispatch(self, request: Request, call_next):
        authorizer = self.rbac.authorizer()
        if self.role_loader is not None:
            try:
                result = self.role_loader(request, authorizer)
                # await if coroutine
                if hasattr(result, "__await__"):
                    await result
            except Exception as e:
                return JSONResponse(
                    {"error": "Role loading error", "detail": str(e)},
                    status_code=500,
                )

        request.state.authorizer = authorizer
        return await call_next(request)
