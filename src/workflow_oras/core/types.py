"""Configuration types for registry access."""

import os
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..credentials import UsernamePasswordCredentials
    from .reference import ContainerRef


def default_timeout() -> int:
    """Request timeout in seconds, overridable through the environment."""
    return int(os.getenv("WORKFLOW_ORAS_TIMEOUT", "30"))


@dataclass(frozen=True)
class RegistryConfig:
    """Connection settings for a single registry."""

    url: str
    timeout: int = field(default_factory=default_timeout)
    username: str | None = None
    password: str | None = field(default=None, repr=False)

    @property
    def base_url(self) -> str:
        return self.url.rstrip("/")

    @property
    def has_credentials(self) -> bool:
        return self.username is not None and self.password is not None

    @classmethod
    def for_reference(
        cls,
        reference: "ContainerRef",
        credentials: "UsernamePasswordCredentials | None" = None,
        insecure: bool | None = None,
        timeout: int | None = None,
    ) -> "RegistryConfig":
        """Build the configuration to reach ``reference``'s registry.

        Anonymous access is insecure (plain http) unless told otherwise;
        authenticated access uses https unless ``insecure`` is set.
        """
        if insecure is None:
            insecure = credentials is None
        scheme = "http" if insecure else "https"
        return cls(
            url=f"{scheme}://{reference.registry}",
            timeout=timeout if timeout is not None else default_timeout(),
            username=credentials.username if credentials else None,
            password=credentials.password if credentials else None,
        )
