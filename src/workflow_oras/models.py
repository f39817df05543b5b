"""Data models for OCI manifests and their layers."""

from dataclasses import dataclass, field
from typing import Any

from .exceptions import ManifestError

OCI_MANIFEST_MEDIA_TYPE = "application/vnd.oci.image.manifest.v1+json"
DOCKER_MANIFEST_MEDIA_TYPE = "application/vnd.docker.distribution.manifest.v2+json"

ANNOTATION_TITLE = "org.opencontainers.image.title"
ANNOTATION_UNPACK = "io.deis.oras.content.unpack"


@dataclass
class LayerInfo:
    """One content blob referenced by a manifest."""

    digest: str
    size: int
    media_type: str
    annotations: dict[str, str] = field(default_factory=dict)

    @property
    def title(self) -> str | None:
        """File or directory name the layer was pushed from."""
        return self.annotations.get(ANNOTATION_TITLE)

    @property
    def unpack(self) -> bool:
        """Whether the layer is an archive of a directory."""
        return self.annotations.get(ANNOTATION_UNPACK, "").lower() == "true"

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> "LayerInfo":
        return cls(
            digest=data.get("digest") or "",
            size=int(data.get("size", 0)),
            media_type=data.get("mediaType", ""),
            annotations=dict(data.get("annotations") or {}),
        )


@dataclass
class ManifestInfo:
    """OCI image manifest of a resolved reference."""

    digest: str
    media_type: str
    artifact_type: str | None
    layers: list[LayerInfo]
    annotations: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_json(cls, data: Any, digest: str) -> "ManifestInfo":
        """Build from a decoded manifest document.

        The OCI 1.1 ``artifactType`` field is preferred; artifacts pushed by
        older clients only carry the type as the config media type.

        Raises:
            ManifestError: If the document is not an image manifest
        """
        if not isinstance(data, dict):
            raise ManifestError("Manifest must be a JSON object")
        if data.get("schemaVersion") != 2:
            raise ManifestError(
                f"Unsupported manifest schema version: {data.get('schemaVersion')}"
            )

        layers = data.get("layers") or []
        if not isinstance(layers, list):
            raise ManifestError("Manifest layers must be a list")

        artifact_type = data.get("artifactType")
        if not artifact_type:
            config = data.get("config") or {}
            if isinstance(config, dict):
                artifact_type = config.get("mediaType")

        return cls(
            digest=digest,
            media_type=data.get("mediaType", OCI_MANIFEST_MEDIA_TYPE),
            artifact_type=artifact_type,
            layers=[LayerInfo.from_json(layer) for layer in layers],
            annotations=dict(data.get("annotations") or {}),
        )
