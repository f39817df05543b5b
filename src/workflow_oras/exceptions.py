"""Custom exceptions for fetching pipeline definitions from OCI registries."""


class OrasFlowError(Exception):
    """Base exception for all pipeline fetch errors."""

    pass


class RegistryError(OrasFlowError):
    """Base exception for registry transport errors."""

    pass


class RegistryConnectionError(RegistryError):
    """Raised when unable to connect to the registry."""

    pass


class ManifestError(RegistryError):
    """Raised when manifest retrieval or parsing fails."""

    pass


class BlobFetchError(RegistryError):
    """Raised when a blob cannot be downloaded or fails verification."""

    pass


class MalformedReferenceError(OrasFlowError, ValueError):
    """Raised when a container reference cannot be parsed."""

    pass


class MissingCredentialsError(OrasFlowError):
    """Raised when a credential id does not resolve for the job."""

    pass


class InvalidArtifactTypeError(OrasFlowError):
    """Raised when the manifest artifact type does not match the fetch mode."""

    def __init__(self, message: str, expected: str, found: str | None) -> None:
        super().__init__(message)
        self.expected = expected
        self.found = found


class NoDigestError(OrasFlowError):
    """Raised when the resolved layer carries no digest."""

    pass


class PathEscapeError(OrasFlowError):
    """Raised when a path normalizes outside of its root directory."""

    pass


class MissingScriptPathError(OrasFlowError):
    """Raised when the requested script is absent after extraction."""

    pass


class BackendUnavailableError(OrasFlowError):
    """Raised when no workspace or computer can host the extraction."""

    pass


class ExecutionContextError(OrasFlowError):
    """Raised when invoked outside of a supported run context."""

    pass


class ArchiveError(OrasFlowError):
    """Raised when a layer archive cannot be unpacked."""

    pass
