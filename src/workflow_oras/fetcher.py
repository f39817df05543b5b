"""Manifest validation and retrieval of pipeline script text."""

import asyncio
import logging
import shutil
from enum import Enum
from pathlib import Path
from typing import AsyncContextManager, Callable, Optional, Protocol

import aiofiles

from .core.reference import ContainerRef
from .exceptions import (
    BackendUnavailableError,
    InvalidArtifactTypeError,
    MissingScriptPathError,
    NoDigestError,
)
from .host import TaskListener
from .models import ManifestInfo
from .utils.digest import validate_digest
from .utils.paths import resolve_within

logger = logging.getLogger(__name__)

ARTIFACT_TYPE_SCRIPT = "application/vnd.jenkins.pipeline.manifest.v1+json"
ARTIFACT_TYPE_REPO = "application/vnd.jenkins.repo.manifest.v1+json"


class ArtifactMode(Enum):
    """How the artifact behind a reference is turned into script text."""

    SINGLE_SCRIPT = (ARTIFACT_TYPE_SCRIPT, "pipeline")
    PACKAGED_REPOSITORY = (ARTIFACT_TYPE_REPO, "repository")

    def __init__(self, artifact_type: str, label: str) -> None:
        self.artifact_type = artifact_type
        self.label = label


class ArtifactRegistry(Protocol):
    """Registry operations the fetcher depends on."""

    async def get_manifest(self, reference: ContainerRef) -> ManifestInfo: ...

    async def fetch_blob(self, reference: ContainerRef) -> bytes: ...

    async def pull_artifact(
        self,
        reference: ContainerRef,
        directory: Path,
        manifest: Optional[ManifestInfo] = None,
    ) -> list[Path]: ...


ExtractionDirectory = Callable[[], AsyncContextManager[Path]]


def has_script_path(script_path: Optional[str]) -> bool:
    return bool(script_path)


def select_mode(script_path: Optional[str]) -> ArtifactMode:
    if has_script_path(script_path):
        return ArtifactMode.PACKAGED_REPOSITORY
    return ArtifactMode.SINGLE_SCRIPT


def ensure_artifact_type(
    mode: ArtifactMode, manifest: ManifestInfo, reference: ContainerRef
) -> None:
    """Reject manifests whose artifact type does not match ``mode``.

    Raises:
        InvalidArtifactTypeError: Naming the expected and found types
    """
    if manifest.artifact_type == mode.artifact_type:
        return
    raise InvalidArtifactTypeError(
        f"The container reference {reference} does not point to a valid "
        f"{mode.label} manifest. Make sure to set {mode.artifact_type} artifact "
        f"type when pushing the artifact. Found artifact type "
        f"{manifest.artifact_type} instead",
        expected=mode.artifact_type,
        found=manifest.artifact_type,
    )


def first_layer_digest(manifest: ManifestInfo, reference: ContainerRef) -> str:
    """Digest of the layer holding a single pipeline script.

    Raises:
        NoDigestError: If the manifest has no layer or the digest is empty
            or malformed
    """
    if not manifest.layers or not manifest.layers[0].digest:
        raise NoDigestError(f"No digest found for the container reference: {reference}")
    digest = manifest.layers[0].digest
    if not validate_digest(digest):
        raise NoDigestError(
            f"Invalid digest {digest} for the container reference: {reference}"
        )
    return digest


async def _remove_directory(path: Path) -> None:
    if path.exists():
        loop = asyncio.get_event_loop()
        await loop.run_in_executor(None, shutil.rmtree, path)


async def _fetch_single_script(
    registry: ArtifactRegistry,
    reference: ContainerRef,
    manifest: ManifestInfo,
    listener: TaskListener,
) -> str:
    digest = first_layer_digest(manifest, reference)
    listener.info(
        f"Using pipeline script from container {reference} with digest {digest}"
    )
    data = await registry.fetch_blob(reference.with_digest(digest))
    return data.decode("utf-8", errors="replace")


async def _fetch_packaged_script(
    registry: ArtifactRegistry,
    reference: ContainerRef,
    manifest: ManifestInfo,
    listener: TaskListener,
    script_path: str,
    extraction_dir: Optional[ExtractionDirectory],
) -> str:
    if extraction_dir is None:
        raise BackendUnavailableError(
            f"No extraction directory available to unpack {reference}"
        )

    async with extraction_dir() as root:
        try:
            resolved = resolve_within(root, script_path)
            listener.info(
                f"Using pipeline script {script_path} from container {reference} "
                f"with digest {manifest.digest}"
            )
            await _remove_directory(root)
            await registry.pull_artifact(reference, root, manifest)
            if not resolved.is_file():
                raise MissingScriptPathError(
                    f"Script path does not exist in the container {reference}: "
                    f"{script_path}"
                )
            async with aiofiles.open(
                resolved, encoding="utf-8", errors="replace"
            ) as f:
                return await f.read()
        finally:
            await _remove_directory(root)


async def fetch_script(
    registry: ArtifactRegistry,
    reference: ContainerRef,
    listener: TaskListener,
    script_path: Optional[str] = None,
    extraction_dir: Optional[ExtractionDirectory] = None,
) -> str:
    """Fetch the pipeline script ``reference`` points to.

    Without a script path the manifest must describe a single pipeline
    script whose first layer is the script itself. With one, the manifest
    must describe a packaged repository; it is unpacked into the directory
    provided by ``extraction_dir`` and the script read from it. That
    directory is removed afterwards whatever the outcome.

    Args:
        registry: Registry holding the artifact
        reference: Parsed container reference
        listener: Receives the lines naming the artifact used
        script_path: Path of the script inside a packaged repository
        extraction_dir: Factory of a leased extraction directory

    Returns:
        The script text

    Raises:
        InvalidArtifactTypeError: If the manifest type does not match the mode
        NoDigestError: If the script layer has no digest
        PathEscapeError: If the script path leaves the extraction directory
        MissingScriptPathError: If the script is not in the repository
        BackendUnavailableError: If no extraction directory is available
    """
    mode = select_mode(script_path)
    manifest = await registry.get_manifest(reference)
    ensure_artifact_type(mode, manifest, reference)
    logger.debug("Fetching %s as %s", reference, mode.name)

    if mode is ArtifactMode.SINGLE_SCRIPT:
        return await _fetch_single_script(registry, reference, manifest, listener)
    return await _fetch_packaged_script(
        registry, reference, manifest, listener, script_path or "", extraction_dir
    )
