"""
Role chain models - the builder side of chain-rbac.

A role chain is an ordered list of roles where every role extends the
permissions of the roles added before it:

    >>> account = chain("use.Account")
    >>> _ = account.add("Member", ["get"]).add("Admin", ["update", "delete"])
    >>> account.roles[-1].permissions
    ('get', 'update', 'delete')

Chains are plain, synchronous builders. Name uniqueness and duplicate
detection happen when the chains are handed to ``Rbac``.
"""

from dataclasses import dataclass
from typing import Iterable, List, Tuple


@dataclass(frozen=True)
class Role:
    """
    A role inside a chain.

    Attributes:
        id: Identifier of the role, unique within its chain.
        permissions: Effective permissions of the role, including every
            permission inherited from earlier roles in the chain.
    """

    id: str
    permissions: Tuple[str, ...] = ()


class RoleChain:
    """
    Chain of roles which extend each other's permissions.

    Attributes:
        name: Name of the chain, used as the prefix of flattened role names.
    """

    def __init__(self, name: str):
        self.name = name
        self._roles: List[Role] = []
        self._permissions: Tuple[str, ...] = ()

    @property
    def roles(self) -> Tuple[Role, ...]:
        """Roles in the order they were added."""
        return tuple(self._roles)

    @property
    def permissions(self) -> Tuple[str, ...]:
        """Cumulative permissions granted by the last role of the chain."""
        return self._permissions

    def add(self, role_id: str, permissions: Iterable[str] = ()) -> "RoleChain":
        """
        Add a role that extends the permissions of all previous roles.

        Permissions already inherited are not repeated. Literal duplicates
        inside ``permissions`` are kept as given so that index construction
        can reject them.

        Args:
            role_id: Id of the role within this chain.
            permissions: Permissions the role grants on top of the chain.

        Returns:
            The chain itself, so calls can be chained.
        """
        inherited = set(self._permissions)
        extended = self._permissions + tuple(
            p for p in permissions if p not in inherited
        )
        self._roles.append(Role(id=role_id, permissions=extended))
        self._permissions = extended
        return self

    def __len__(self) -> int:
        return len(self._roles)

    def __repr__(self) -> str:
        role_ids = [role.id for role in self._roles]
        return f"RoleChain(name={self.name!r}, roles={role_ids!r})"


def chain(name: str) -> RoleChain:
    """Return a new, empty role chain called ``name``."""
    return RoleChain(name)
