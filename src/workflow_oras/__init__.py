"""workflow-oras - Async loading of pipeline definitions from OCI registries."""

__version__ = "0.1.0"

from .core.reference import ContainerRef
from .core.registry_client import RegistryClient
from .core.types import RegistryConfig
from .definition import DISPLAY_NAME, SYMBOL, OrasFlowDefinition
from .exceptions import (
    ArchiveError,
    BackendUnavailableError,
    BlobFetchError,
    ExecutionContextError,
    InvalidArtifactTypeError,
    MalformedReferenceError,
    ManifestError,
    MissingCredentialsError,
    MissingScriptPathError,
    NoDigestError,
    OrasFlowError,
    PathEscapeError,
    RegistryConnectionError,
    RegistryError,
)
from .fetcher import (
    ARTIFACT_TYPE_REPO,
    ARTIFACT_TYPE_SCRIPT,
    ArtifactMode,
    fetch_script,
)
from .pipeline import check_registry_connectivity, fetch_pipeline_script, get_manifest
from .resolver import ResolvedReference, resolve_reference

__all__ = [
    "ARTIFACT_TYPE_REPO",
    "ARTIFACT_TYPE_SCRIPT",
    "DISPLAY_NAME",
    "SYMBOL",
    "ArtifactMode",
    "ContainerRef",
    "OrasFlowDefinition",
    "RegistryClient",
    "RegistryConfig",
    "ResolvedReference",
    "check_registry_connectivity",
    "fetch_pipeline_script",
    "fetch_script",
    "get_manifest",
    "resolve_reference",
    "OrasFlowError",
    "RegistryError",
    "RegistryConnectionError",
    "ManifestError",
    "BlobFetchError",
    "MalformedReferenceError",
    "MissingCredentialsError",
    "InvalidArtifactTypeError",
    "NoDigestError",
    "PathEscapeError",
    "MissingScriptPathError",
    "BackendUnavailableError",
    "ExecutionContextError",
    "ArchiveError",
]
