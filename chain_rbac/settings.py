"""
Configuration settings for chain-rbac.

Settings are read from the environment (prefix ``CHAIN_RBAC_``), from a
``.env`` file or passed directly. The defaults reproduce the canonical
``{chain}.{role}`` naming, so most applications never need to touch them.
"""

from typing import Optional

from pydantic import ConfigDict, Field, ValidationError
from pydantic_settings import BaseSettings

from .errors import ConfigurationError


class Settings(BaseSettings):
    """
    Configuration settings for role chains and authorizers.

    Environment Variable Mapping:
        Every field can be set with a ``CHAIN_RBAC_`` prefix, for example
        ``CHAIN_RBAC_DEBUG=true``.

    Example:
        >>> settings = Settings(error_separator=" | ")
        >>> rbac = Rbac(auth_chain, settings=settings)
    """

    role_separator: str = Field(
        default=".",
        description="Joins a chain name and a role id into the flattened role name",
    )
    error_separator: str = Field(
        default="; ",
        description="Joins recorded messages in the combined resolution error",
    )
    resolver_thread_name: str = Field(
        default="chain-rbac-resolver",
        description="Thread name prefix for async role resolvers",
    )

    debug: bool = False
    """Log every permission and role query decision at DEBUG level."""

    model_config = ConfigDict(
        env_file=".env", env_prefix="CHAIN_RBAC_", case_sensitive=False, extra="ignore"
    )

    def validate_configuration(self) -> None:
        """
        Validate the current configuration.

        Raises:
            ConfigurationError: If a separator is empty.
        """
        if not self.role_separator:
            raise ConfigurationError(
                "role_separator cannot be empty", code="invalid_settings"
            )
        if not self.error_separator:
            raise ConfigurationError(
                "error_separator cannot be empty", code="invalid_settings"
            )


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Return the process-wide settings, loading them on first use.

    Raises:
        ConfigurationError: If a ``CHAIN_RBAC_`` value is invalid.
    """
    global _settings
    if _settings is None:
        try:
            settings = Settings()
        except ValidationError as e:
            raise ConfigurationError(
                f"invalid chain-rbac settings: {e}", code="invalid_settings"
            ) from e
        settings.validate_configuration()
        _settings = settings
    return _settings


def reset_settings() -> None:
    """Forget the cached settings so the next call reloads them."""
    global _settings
    _settings = None
