from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Iterable, List, Optional, Union

RoleNames = Optional[Iterable[str]]
Resolver = Callable[[], Union[RoleNames, Awaitable[RoleNames]]]


async def _await(awaitable: Awaitable[Any]) -> Any:
    return await awaitable


def _run_coro_sync(awaitable: Awaitable[Any]) -> Any:
    # Resolvers run on their own worker thread, which never has a loop.
    return asyncio.run(_await(awaitable))


def resolve_roles(resolver: Resolver) -> List[str]:
    """Call a role resolver and run it to completion if it is async.

    Returns the resolved role names as a list. ``None`` means no roles.
    Raises whatever the resolver raises, or TypeError for a bad result.
    """
    result = resolver()
    if hasattr(result, "__await__"):
        result = _run_coro_sync(result)
    if result is None:
        return []
    if isinstance(result, (str, bytes)):
        raise TypeError(
            f"resolver must return an iterable of role names, got {type(result).__name__}"
        )
    roles = list(result)
    for role in roles:
        if not isinstance(role, str):
            raise TypeError(
                f"role names must be strings, got {type(role).__name__}: {role!r}"
            )
    return roles
