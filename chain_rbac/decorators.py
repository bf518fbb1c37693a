"""
RBAC Decorators - FastAPI decorators for role and permission checking.

Endpoints are protected against the per-request ``Authorizer`` stored on
``request.state.authorizer`` (see ``AuthorizerMiddleware``). Every check
first awaits outstanding role resolution without blocking the event loop.
"""

import inspect
import logging
import time
from functools import wraps
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from fastapi import Depends, HTTPException, Request

from .authorizer import Authorizer

logger = logging.getLogger(__name__)


def get_current_authorizer(request: Request) -> Authorizer:
    """
    Extract the per-request authorizer from request state.

    Args:
        request: FastAPI request object

    Returns:
        The authorizer attached by the middleware

    Raises:
        HTTPException: 401 if no authorizer is attached
    """
    authorizer = getattr(request.state, "authorizer", None)
    if authorizer is None:
        logger.warning(
            "Authorizer not found in request state - authorizer middleware may not be configured",
            extra={"endpoint": request.url.path, "method": request.method},
        )
        raise HTTPException(
            status_code=401,
            detail="Authorization required - authorizer not found in request state",
        )
    return authorizer


def _find_request(args: Sequence[Any], kwargs: Dict[str, Any]) -> Optional[Request]:
    for value in list(args) + list(kwargs.values()):
        if isinstance(value, Request):
            return value
    return None


def _as_list(values: Union[str, List[str]], kind: str) -> List[str]:
    if isinstance(values, str):
        values = [values]
    values = list(values)
    if not values or not all(values):
        raise ValueError(f"At least one non-empty {kind} is required")
    return values


async def _call(func: Callable, *args, **kwargs):
    if inspect.iscoroutinefunction(func):
        return await func(*args, **kwargs)
    return func(*args, **kwargs)


def require_permissions(permissions: Union[str, List[str]]):
    """
    Decorator to require all of the given permissions for an endpoint.

    Args:
        permissions: Single permission string or list of permission strings

    Example:
        @app.get("/accounts/{account_id}")
        @require_permissions("get")
        async def get_account(request: Request, account_id: str):
            pass

    Raises:
        HTTPException: 401 without an authorizer, 403 when a permission is missing
    """
    permissions = _as_list(permissions, "permission")

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        async def wrapper(*args, **kwargs):
            start_time = time.time()
            request = _find_request(args, kwargs)
            if request is None:
                logger.error(
                    f"Request object not found in {func.__name__} - ensure Request is a parameter",
                    extra={"function": func.__name__},
                )
                raise HTTPException(
                    status_code=500,
                    detail="Internal server error - Request object not found",
                )

            authorizer = get_current_authorizer(request)
            await authorizer.wait_async()

            denied_permissions = [
                perm for perm in permissions if not authorizer.has_permission(perm)
            ]
            if denied_permissions:
                logger.warning(
                    f"Access denied to {func.__name__} - missing permissions: {denied_permissions}",
                    extra={
                        "endpoint": request.url.path,
                        "denied_permissions": denied_permissions,
                        "required_permissions": permissions,
                    },
                )
                raise HTTPException(
                    status_code=403,
                    detail=f"Insufficient permissions. Required: {', '.join(denied_permissions)}",
                )

            check_time = time.time() - start_time
            logger.debug(
                f"Permission check passed for {func.__name__} ({check_time:.3f}s)",
                extra={"permissions": permissions, "check_time": check_time},
            )
            return await _call(func, *args, **kwargs)

        return wrapper

    return decorator


def require_roles(roles: Union[str, List[str]]):
    """
    Decorator to require at least one of the given flattened roles

    Args:
        roles: Single role name or list of role names

    Example:
        @require_roles(["use.Account.Admin", "auth.Authenticated"])
        async def manage_account(request: Request):
            pass
    """
    roles = _as_list(roles, "role")

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        async def wrapper(*args, **kwargs):
            request = _find_request(args, kwargs)
            if request is None:
                raise HTTPException(status_code=500, detail="Request object not found")

            authorizer = get_current_authorizer(request)
            await authorizer.wait_async()

            if not any(authorizer.has_role(role) for role in roles):
                logger.warning(f"Role check failed for {func.__name__}: required {roles}")
                raise HTTPException(
                    status_code=403,
                    detail={
                        "error": "Insufficient role permissions",
                        "required_roles": roles,
                    },
                )

            logger.info(f"Role check passed for {func.__name__}: {roles}")
            return await _call(func, *args, **kwargs)

        return wrapper

    return decorator


# Helper dependency for FastAPI dependency injection
def RBACPermission(permission: str):
    """
    FastAPI dependency for permission checking

    Example:
        @app.get("/accounts")
        async def list_accounts(_: None = RBACPermission("list")):
            pass
    """

    async def check_permission(request: Request):
        authorizer = get_current_authorizer(request)
        await authorizer.wait_async()
        if not authorizer.has_permission(permission):
            raise HTTPException(
                status_code=403, detail=f"Permission denied: {permission}"
            )

    return Depends(check_permission)
