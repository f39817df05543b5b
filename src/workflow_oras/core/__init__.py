"""Registry access primitives."""

from .reference import ContainerRef
from .registry_client import RegistryClient
from .types import RegistryConfig

__all__ = ["ContainerRef", "RegistryClient", "RegistryConfig"]
