"""
Tests for role accumulation and queries on the Authorizer
"""

import asyncio
import threading
import time

import pytest

from chain_rbac import Authorizer, Rbac, ResolutionError, Settings


def gated(roles, gate: threading.Event, started: threading.Event = None):
    """Resolver that returns ``roles`` once ``gate`` is set"""

    def resolver():
        if started is not None:
            started.set()
        assert gate.wait(5)
        return roles

    return resolver


def failing(message):
    def resolver():
        raise RuntimeError(message)

    return resolver


class TestSyncRoles:
    """Test roles added directly"""

    def test_initial_roles(self, rbac):
        az = rbac.authorizer("use.Account.Member")
        assert isinstance(az, Authorizer)
        assert az.has_role("use.Account.Member")
        assert az.has_permission("get")
        assert not az.has_permission("update")
        assert az.err() is None

    def test_no_roles(self, rbac):
        az = rbac.authorizer()
        assert az.roles == frozenset()
        assert not az.has_permission("list")
        assert not az.has_role("auth.Unauthenticated")

    def test_add_is_idempotent(self, rbac):
        az = rbac.authorizer("auth.Authenticated")
        az.add("auth.Authenticated", "auth.Authenticated")
        assert az.roles == {"auth.Authenticated"}

    def test_inherited_permissions(self, rbac):
        az = rbac.authorizer("use.Account.Admin")
        for perm in ("get", "update", "delete"):
            assert az.has_permission(perm)
        assert not az.has_permission("list")

    def test_roles_from_several_chains(self, rbac):
        az = rbac.authorizer("auth.Authenticated")
        az.add("use.Account.Member")
        assert az.has_permission("list")
        assert az.has_permission("create")
        assert az.has_permission("get")
        assert not az.has_permission("delete")

    def test_unknown_sync_role_is_inert(self, rbac):
        az = rbac.authorizer("use.Account.Owner")
        assert az.has_role("use.Account.Owner")
        assert not az.has_permission("get")
        assert az.err() is None

    def test_unknown_permission(self, rbac):
        az = rbac.authorizer("use.Account.Admin")
        assert not az.has_permission("launch")

    def test_role_ids_are_not_flattened_names(self, rbac):
        az = rbac.authorizer("Member")
        assert not az.has_permission("get")
        assert not az.has_role("use.Account.Member")

    def test_any_and_all_permissions(self, rbac):
        az = rbac.authorizer("use.Account.Member")
        assert az.has_any_permission("update", "get")
        assert not az.has_any_permission("update", "delete")
        assert not az.has_any_permission()
        assert az.has_all_permissions("get")
        assert not az.has_all_permissions("get", "update")


class TestAsyncRoles:
    """Test roles resolved in the background"""

    def test_end_to_end(self, rbac):
        az = rbac.authorizer()

        def resolver():
            time.sleep(0.05)
            return ["use.Account.Member"]

        az.add_async(resolver)
        assert az.err() is None
        assert az.has_permission("get")
        assert not az.has_permission("update")
        assert not az.has_permission("list")
        assert az.has_role("use.Account.Member")

    def test_add_async_returns_immediately(self, rbac):
        gate = threading.Event()
        az = rbac.authorizer()
        az.add_async(gated(["use.Account.Member"], gate))
        assert az.pending == 1
        assert not az.wait(timeout=0.05)
        gate.set()
        assert az.wait(timeout=5)
        assert az.pending == 0

    @pytest.mark.parametrize(
        "query",
        [
            lambda az: az.has_permission("get"),
            lambda az: az.has_role("use.Account.Member"),
            lambda az: az.err() is None,
        ],
    )
    def test_queries_block_until_resolved(self, rbac, query):
        gate = threading.Event()
        started = threading.Event()
        az = rbac.authorizer()
        az.add_async(gated(["use.Account.Member"], gate, started))
        assert started.wait(5)

        results = []
        querier = threading.Thread(target=lambda: results.append(query(az)))
        querier.start()
        querier.join(0.1)
        assert querier.is_alive()
        assert results == []

        gate.set()
        querier.join(5)
        assert results == [True]

    def test_resolver_failure(self, rbac):
        az = rbac.authorizer()
        az.add_async(failing("boom"))
        error = az.err()
        assert isinstance(error, ResolutionError)
        assert "boom" in str(error)
        assert "boom" in error
        assert az.roles == frozenset()

    def test_resolver_failure_without_message(self, rbac):
        az = rbac.authorizer()

        def resolver():
            raise LookupError()

        az.add_async(resolver)
        assert az.err().messages == ("LookupError",)

    def test_failure_does_not_stop_other_resolvers(self, rbac):
        az = rbac.authorizer("auth.Authenticated")
        az.add_async(failing("boom"))
        az.add_async(lambda: ["use.Account.Member"])
        assert az.err().messages == ("boom",)
        assert az.has_permission("get")
        assert az.has_permission("create")

    def test_unknown_role(self, rbac):
        az = rbac.authorizer()
        az.add_async(lambda: ["use.Account.Owner", "use.Account.Member"])
        error = az.err()
        assert error is not None
        assert error.messages == ("role use.Account.Owner not allowed",)
        assert "not allowed" in str(error)
        assert az.has_role("use.Account.Owner")
        assert az.has_role("use.Account.Member")
        assert az.has_permission("get")

    def test_errors_are_combined_and_deduplicated(self, rbac):
        az = rbac.authorizer()
        az.add_async(failing("boom"))
        az.add_async(failing("boom"))
        az.add_async(lambda: ["ghost"])
        error = az.err()
        assert error.messages == ("boom", "role ghost not allowed")
        assert str(error) == "boom; role ghost not allowed"

    def test_custom_error_separator(self, auth_chain):
        rbac = Rbac(auth_chain, settings=Settings(error_separator=" | "))
        az = rbac.authorizer()
        az.add_async(failing("a"))
        az.add_async(failing("b"))
        assert str(az.err()) == "a | b"

    def test_raise_for_errors(self, rbac):
        az = rbac.authorizer()
        az.add_async(lambda: ["use.Account.Member"])
        az.raise_for_errors()

        az.add_async(failing("boom"))
        with pytest.raises(ResolutionError, match="boom"):
            az.raise_for_errors()

    def test_none_means_no_roles(self, rbac):
        az = rbac.authorizer()
        az.add_async(lambda: None)
        assert az.err() is None
        assert az.roles == frozenset()

    def test_string_result_is_rejected(self, rbac):
        az = rbac.authorizer()
        az.add_async(lambda: "use.Account.Member")
        error = az.err()
        assert "iterable of role names" in str(error)
        assert not az.has_role("use.Account.Member")

    def test_unhashable_role_is_recorded(self, rbac):
        az = rbac.authorizer()
        az.add_async(lambda: [["use.Account.Member"], "auth.Authenticated"])
        error = az.err()
        assert error is not None
        assert "role names must be strings" in str(error)
        assert az.roles == frozenset()

    def test_coroutine_resolver(self, rbac):
        async def resolver():
            await asyncio.sleep(0.01)
            return ["use.Account.Admin"]

        az = rbac.authorizer()
        az.add_async(resolver)
        assert az.err() is None
        assert az.has_permission("delete")

    def test_failing_coroutine_resolver(self, rbac):
        async def resolver():
            await asyncio.sleep(0)
            raise RuntimeError("remote lookup failed")

        az = rbac.authorizer()
        az.add_async(resolver)
        assert str(az.err()) == "remote lookup failed"

    def test_add_async_after_query(self, rbac):
        az = rbac.authorizer()
        az.add_async(lambda: ["auth.Unauthenticated"])
        assert az.has_permission("list")
        assert not az.has_permission("get")

        gate = threading.Event()
        az.add_async(gated(["use.Account.Member"], gate))
        threading.Timer(0.05, gate.set).start()
        assert az.has_permission("get")

    def test_nested_add_async(self, rbac):
        az = rbac.authorizer()

        def outer():
            az.add_async(lambda: ["use.Account.Member"])
            return ["auth.Authenticated"]

        az.add_async(outer)
        assert az.has_permission("get")
        assert az.has_permission("create")

    def test_many_concurrent_resolvers(self, rbac):
        gate = threading.Event()
        az = rbac.authorizer()
        names = [f"ghost.{i}" for i in range(50)]
        for name in names:
            az.add_async(gated([name, "use.Account.Member"], gate))
        gate.set()

        assert az.roles == set(names) | {"use.Account.Member"}
        assert len(az.err().messages) == len(names)

    def test_authorizers_are_independent(self, rbac):
        gate = threading.Event()
        blocked = rbac.authorizer()
        blocked.add_async(gated(["use.Account.Admin"], gate))

        free = rbac.authorizer("use.Account.Member")
        assert free.has_permission("get")
        assert not free.has_permission("update")
        assert blocked.pending == 1

        gate.set()
        assert blocked.has_permission("update")


class TestWaitAsync:
    """Test awaiting resolution from an event loop"""

    @pytest.mark.asyncio
    async def test_wait_async(self, rbac):
        gate = threading.Event()
        az = rbac.authorizer()
        az.add_async(gated(["use.Account.Member"], gate))

        waiter = asyncio.ensure_future(az.wait_async())
        await asyncio.sleep(0.05)
        assert not waiter.done()

        gate.set()
        await asyncio.wait_for(waiter, timeout=5)
        assert az.pending == 0
        assert az.has_permission("get")
