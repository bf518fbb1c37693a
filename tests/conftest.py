import os
import sys

import pytest

# Ensure project root is on sys.path so tests can import the package under test
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from chain_rbac import Rbac, Settings, chain  # noqa: E402
from chain_rbac.settings import reset_settings  # noqa: E402


@pytest.fixture(autouse=True)
def fresh_settings():
    """Drop cached settings between tests"""
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def settings():
    return Settings()


@pytest.fixture
def auth_chain():
    return chain("auth").add("Unauthenticated", ["list"]).add("Authenticated", ["create"])


@pytest.fixture
def account_chain():
    return chain("use.Account").add("Member", ["get"]).add("Admin", ["update", "delete"])


@pytest.fixture
def rbac(auth_chain, account_chain, settings):
    """Index built from the auth and use.Account chains"""
    return Rbac(auth_chain, account_chain, settings=settings)
