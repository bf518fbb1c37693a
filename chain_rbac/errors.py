"""
Error types raised and reported by chain-rbac.

Two kinds of failure exist:

- ``ConfigurationError`` aborts index construction. No partial index is
  ever returned.
- ``ResolutionError`` is never raised by the library itself. It collects
  the messages recorded while an ``Authorizer`` resolved roles in the
  background and is handed back by ``Authorizer.err()``.
"""

from typing import Iterable, Optional, Tuple


class RBACError(Exception):
    """Base chain-rbac error with optional machine-readable code."""

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.code = code


class ConfigurationError(RBACError):
    """Invalid role chains or settings detected at construction time."""


class ResolutionError(RBACError):
    """
    Combined error for everything that went wrong during async resolution.

    Attributes:
        messages: Distinct recorded messages, sorted so the combined text
            is stable for a given set of failures.
    """

    def __init__(self, messages: Iterable[str], separator: str = "; "):
        self.messages: Tuple[str, ...] = tuple(sorted(set(messages)))
        super().__init__(separator.join(self.messages), code="resolution_failed")

    def __contains__(self, message: str) -> bool:
        return message in self.messages
