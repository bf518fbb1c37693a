"""
RBAC Engine - the permission index built from role chains.

``Rbac`` flattens one or more role chains into three read-only lookup
tables:

- permission -> flattened role names that grant it
- chain name -> role ids defined in that chain
- flattened role name -> permissions it grants

The index is built once, usually at process start, and is then shared by
every ``Authorizer`` without locking. Nothing in it can change after the
constructor returns; a different role layout needs a new ``Rbac``.
"""

import logging
from types import MappingProxyType
from typing import Dict, FrozenSet, Mapping, Optional, Set

from .authorizer import Authorizer
from .errors import ConfigurationError
from .models import RoleChain
from .settings import Settings, get_settings

logger = logging.getLogger(__name__)


def _freeze(table: Dict[str, Set[str]]) -> Mapping[str, FrozenSet[str]]:
    return MappingProxyType({key: frozenset(values) for key, values in table.items()})


class Rbac:
    """
    Immutable role-based access controller made up of role chains.

    Roles are flattened to ``{chainName}.{roleId}``; those names are what
    authorizers hold and what ``has_role`` compares against.

    Chains passed under the same name merge their role ids in
    ``chain_to_role_ids``; a later chain does not replace an earlier one.

    Example:
        >>> auth = chain("auth").add("Unauthenticated", ["list"])
        >>> account = chain("use.Account").add("Member", ["get"])
        >>> rbac = Rbac(auth, account)
        >>> rbac.chain_has_role_id("use.Account", "Member")
        True
        >>> az = rbac.authorizer("use.Account.Member")
        >>> az.has_permission("get")
        True

    Raises:
        ConfigurationError: If no chains are given, two roles flatten to the
            same name, or a role lists the same permission twice.
    """

    def __init__(self, *role_chains: RoleChain, settings: Optional[Settings] = None):
        if not role_chains:
            raise ConfigurationError("no role chains provided", code="no_chains")

        self.settings = settings or get_settings()
        self.settings.validate_configuration()

        permission_to_roles: Dict[str, Set[str]] = {}
        chain_to_role_ids: Dict[str, Set[str]] = {}
        role_to_permissions: Dict[str, Set[str]] = {}

        for role_chain in role_chains:
            role_ids = chain_to_role_ids.setdefault(role_chain.name, set())
            for role in role_chain.roles:
                role_ids.add(role.id)
                role_name = self.role_name(role_chain.name, role.id)
                if role_name in role_to_permissions:
                    raise ConfigurationError(
                        f"duplicate role {role_name}", code="duplicate_role"
                    )

                granted = role_to_permissions[role_name] = set()
                for permission in role.permissions:
                    if permission in granted:
                        raise ConfigurationError(
                            f"duplicate permission {permission} in role {role_name}",
                            code="duplicate_permission",
                        )
                    granted.add(permission)
                    permission_to_roles.setdefault(permission, set()).add(role_name)

        self._permission_to_roles = _freeze(permission_to_roles)
        self._chain_to_role_ids = _freeze(chain_to_role_ids)
        self._role_to_permissions = _freeze(role_to_permissions)

        logger.info(
            "RBAC index built with %d chains, %d roles and %d permissions",
            len(self._chain_to_role_ids),
            len(self._role_to_permissions),
            len(self._permission_to_roles),
            extra={"chains": sorted(self._chain_to_role_ids)},
        )

    def role_name(self, chain_name: str, role_id: str) -> str:
        """Return the flattened name of ``role_id`` in ``chain_name``."""
        return f"{chain_name}{self.settings.role_separator}{role_id}"

    # Lookup tables
    @property
    def permission_to_roles(self) -> Mapping[str, FrozenSet[str]]:
        return self._permission_to_roles

    @property
    def chain_to_role_ids(self) -> Mapping[str, FrozenSet[str]]:
        return self._chain_to_role_ids

    @property
    def role_to_permissions(self) -> Mapping[str, FrozenSet[str]]:
        return self._role_to_permissions

    @property
    def roles(self) -> FrozenSet[str]:
        """All flattened role names known to the index."""
        return frozenset(self._role_to_permissions)

    # Queries
    def chain_has_role_id(self, chain_name: str, role_id: str) -> bool:
        """
        Check whether a role id exists in the given chain.

        Args:
            chain_name: Name of the chain.
            role_id: Id of the role within the chain.

        Returns:
            False if either the chain or the role id is unknown.
        """
        return role_id in self._chain_to_role_ids.get(chain_name, frozenset())

    def has_role_name(self, role: str) -> bool:
        """Check whether a flattened role name is defined."""
        return role in self._role_to_permissions

    def role_permissions(self, role: str) -> FrozenSet[str]:
        """Permissions granted by a flattened role name, empty if unknown."""
        return self._role_to_permissions.get(role, frozenset())

    def roles_with_permission(self, permission: str) -> FrozenSet[str]:
        """Flattened role names granting ``permission``, empty if unknown."""
        return self._permission_to_roles.get(permission, frozenset())

    def authorizer(self, *roles: str) -> Authorizer:
        """
        Return a new authorizer bound to this index.

        Args:
            *roles: Role names the caller already holds. They are added
                synchronously and are not checked against the index.
        """
        return Authorizer(self, *roles)

    def __repr__(self) -> str:
        return (
            f"Rbac(chains={len(self._chain_to_role_ids)}, "
            f"roles={len(self._role_to_permissions)})"
        )


def new_rbac(*role_chains: RoleChain, settings: Optional[Settings] = None) -> Rbac:
    """Build an ``Rbac`` index from role chains (see ``Rbac``)."""
    return Rbac(*role_chains, settings=settings)
