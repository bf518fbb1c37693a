"""
Authorizer - per-request accumulation of roles and permission queries.

An authorizer collects the roles a principal holds. Some are known up
front and added with ``add``; others come from slow sources (a database,
an identity provider) and are resolved in the background with
``add_async``. Every query first waits for all background resolution
started on the same authorizer, so an answer is never given against a
partially resolved role set.

Example:
    >>> az = rbac.authorizer()
    >>> az.add_async(lambda: fetch_roles(user_id))
    >>> if az.err() is not None:
    ...     log.warning("role lookup failed: %s", az.err())
    >>> az.has_permission("get")
    True
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import threading
from typing import TYPE_CHECKING, FrozenSet, Optional, Set

from .adapters import Resolver, resolve_roles
from .errors import ResolutionError

if TYPE_CHECKING:
    from .engine import Rbac

logger = logging.getLogger(__name__)

_thread_ids = itertools.count(1)


class Authorizer:
    """
    Accumulates roles for one authorization context and answers queries.

    Authorizers are cheap: create one per request or session and drop it
    when done. They own no external resources. All methods are thread-safe.

    Thread Safety:
        The held roles and recorded errors are guarded by a lock. Pending
        background work is tracked by a condition-guarded counter which
        can go back up after a wait returned, so ``add_async`` may be
        called again after a query.
    """

    def __init__(self, rbac: "Rbac", *roles: str):
        self.rbac = rbac
        self._settings = rbac.settings
        self._lock = threading.Lock()
        self._roles: Set[str] = set()
        self._errors: Set[str] = set()
        self._pending = 0
        self._idle = threading.Condition(threading.Lock())
        self.add(*roles)

    # Accumulation
    def add(self, *roles: str) -> None:
        """
        Add roles directly.

        Roles are not checked against the index; an unknown role simply
        grants nothing. Adding a role twice has no further effect.
        """
        if not roles:
            return
        with self._lock:
            self._roles.update(roles)
        logger.debug("Added roles %s", list(roles))

    def add_async(self, resolver: Resolver) -> None:
        """
        Resolve roles in the background and add them.

        ``resolver`` takes no arguments and returns an iterable of role
        names, or an awaitable of one. It runs on its own worker thread and
        this call returns immediately.

        If the resolver raises, its message is recorded and none of its
        roles are added. Role names unknown to the index are recorded as
        ``role <name> not allowed`` but are still added.

        There is no timeout: a resolver that never returns blocks every
        later query on this authorizer. Resolvers must bound their own I/O.
        """
        with self._idle:
            self._pending += 1
        try:
            worker = threading.Thread(
                target=self._resolve,
                args=(resolver,),
                name=f"{self._settings.resolver_thread_name}-{next(_thread_ids)}",
                daemon=True,
            )
            worker.start()
        except BaseException:
            self._task_done()
            raise

    def _resolve(self, resolver: Resolver) -> None:
        try:
            try:
                roles = resolve_roles(resolver)
            except Exception as e:
                message = str(e) or type(e).__name__
                logger.warning(
                    f"Role resolver failed: {message}",
                    extra={"error": message},
                )
                self._record_error(message)
                return

            for role in roles:
                if not self.rbac.has_role_name(role):
                    logger.warning(
                        f"Resolver returned unknown role '{role}'",
                        extra={"role_name": role},
                    )
                    self._record_error(f"role {role} not allowed")
            self.add(*roles)
        finally:
            self._task_done()

    def _record_error(self, message: str) -> None:
        with self._lock:
            self._errors.add(message)

    def _task_done(self) -> None:
        with self._idle:
            self._pending -= 1
            if self._pending == 0:
                self._idle.notify_all()

    # Waiting
    @property
    def pending(self) -> int:
        """Number of background resolutions still running."""
        with self._idle:
            return self._pending

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Block until all background resolutions have finished.

        Args:
            timeout: Seconds to wait at most. None waits indefinitely.

        Returns:
            False if the timeout expired first, True otherwise.
        """
        with self._idle:
            return self._idle.wait_for(lambda: self._pending == 0, timeout)

    async def wait_async(self) -> None:
        """Like ``wait`` but without blocking the running event loop."""
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self.wait)

    # Queries
    def err(self) -> Optional[ResolutionError]:
        """
        Return every error recorded during background resolution.

        Waits for pending resolutions first.

        Returns:
            None if nothing went wrong, otherwise a single ResolutionError
            combining the distinct messages.
        """
        self.wait()
        with self._lock:
            messages = set(self._errors)
        if not messages:
            return None
        return ResolutionError(messages, separator=self._settings.error_separator)

    def raise_for_errors(self) -> None:
        """Raise the combined ResolutionError if any error was recorded."""
        error = self.err()
        if error is not None:
            raise error

    @property
    def roles(self) -> FrozenSet[str]:
        """Snapshot of the held role names, after pending resolutions."""
        self.wait()
        with self._lock:
            return frozenset(self._roles)

    def has_permission(self, permission: str) -> bool:
        """
        Check whether any held role grants ``permission``.

        Waits for pending resolutions first. Unknown permissions are
        simply not granted.
        """
        self.wait()
        granting = self.rbac.roles_with_permission(permission)
        with self._lock:
            allowed = not granting.isdisjoint(self._roles)
        if self._settings.debug:
            logger.debug(
                f"Permission check {permission} -> {'ALLOWED' if allowed else 'DENIED'}"
            )
        return allowed

    def has_any_permission(self, *permissions: str) -> bool:
        """Check whether at least one of ``permissions`` is granted."""
        self.wait()
        return any(self.has_permission(p) for p in permissions)

    def has_all_permissions(self, *permissions: str) -> bool:
        """Check whether every one of ``permissions`` is granted."""
        self.wait()
        return all(self.has_permission(p) for p in permissions)

    def has_role(self, role: str) -> bool:
        """
        Check whether the exact flattened role name is held.

        Waits for pending resolutions first.
        """
        self.wait()
        with self._lock:
            held = role in self._roles
        if self._settings.debug:
            logger.debug(f"Role check {role} -> {'HELD' if held else 'NOT HELD'}")
        return held

    def __repr__(self) -> str:
        with self._lock:
            held = sorted(self._roles)
        return f"Authorizer(roles={held!r}, pending={self.pending})"
