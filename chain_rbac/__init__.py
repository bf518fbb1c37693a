"""
chain-rbac: in-process role-chain based access control

Roles are declared in ordered chains where every role inherits the
permissions of the roles before it. The chains are flattened into an
immutable index, and per request an authorizer accumulates the roles a
principal holds, some resolved in the background, and answers permission
and role queries once resolution has finished.

Example:
    >>> from chain_rbac import Rbac, chain
    >>>
    >>> account = chain("use.Account").add("Member", ["get"]).add("Admin", ["update"])
    >>> rbac = Rbac(account)
    >>>
    >>> az = rbac.authorizer()
    >>> az.add_async(lambda: ["use.Account.Member"])
    >>> az.err() is None
    True
    >>> az.has_permission("get"), az.has_permission("update")
    (True, False)

See Also:
    - `examples/` directory for a FastAPI application
"""

__version__ = "0.1.0"

from .authorizer import Authorizer
from .engine import Rbac, new_rbac
from .errors import ConfigurationError, RBACError, ResolutionError
from .models import Role, RoleChain, chain
from .settings import Settings, get_settings

# FastAPI integration (optional import)
try:
    from .decorators import RBACPermission, require_permissions, require_roles
    from .middleware import AuthorizerMiddleware

    _fastapi_available = True
except ImportError:
    _fastapi_available = False

__all__ = [
    "Authorizer",
    "ConfigurationError",
    "RBACError",
    "Rbac",
    "ResolutionError",
    "Role",
    "RoleChain",
    "Settings",
    "chain",
    "get_settings",
    "new_rbac",
]

if _fastapi_available:
    __all__.extend(
        [
            "AuthorizerMiddleware",
            "RBACPermission",
            "require_permissions",
            "require_roles",
        ]
    )
