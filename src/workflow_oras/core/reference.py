"""Container reference parsing."""

import re
from dataclasses import dataclass, replace

from ..exceptions import MalformedReferenceError
from ..utils.digest import validate_digest

DEFAULT_TAG = "latest"

# OCI distribution spec grammar
_PATH_COMPONENT = r"[a-z0-9]+(?:(?:\.|_|__|-+)[a-z0-9]+)*"
REPOSITORY_PATTERN = re.compile(rf"^{_PATH_COMPONENT}(?:/{_PATH_COMPONENT})*$")
TAG_PATTERN = re.compile(r"^[A-Za-z0-9_][A-Za-z0-9_.-]{0,127}$")
HOST_PATTERN = re.compile(
    r"^(?:[A-Za-z0-9](?:[A-Za-z0-9-]*[A-Za-z0-9])?"
    r"(?:\.[A-Za-z0-9](?:[A-Za-z0-9-]*[A-Za-z0-9])?)*"
    r"|\[[0-9A-Fa-f:]+\])(?::[0-9]+)?$"
)


def _looks_like_host(component: str) -> bool:
    return "." in component or ":" in component or component == "localhost"


@dataclass(frozen=True)
class ContainerRef:
    """Parsed locator of an OCI artifact."""

    registry: str
    repository: str
    tag: str | None = DEFAULT_TAG
    digest: str | None = None

    @classmethod
    def parse(cls, raw: str) -> "ContainerRef":
        """Parse ``host[:port]/repository[:tag][@digest]``.

        Raises:
            MalformedReferenceError: If the reference cannot be parsed
        """
        if not isinstance(raw, str) or not raw.strip():
            raise MalformedReferenceError(f"Invalid container reference: {raw!r}")

        value = raw.strip()
        digest = None
        if "@" in value:
            value, digest = value.split("@", 1)
            if not validate_digest(digest):
                raise MalformedReferenceError(
                    f"Invalid digest in container reference {raw}: {digest}"
                )

        if "/" not in value:
            raise MalformedReferenceError(
                f"Container reference {raw} must include a registry host"
            )
        registry, remainder = value.split("/", 1)
        if not _looks_like_host(registry) or not HOST_PATTERN.match(registry):
            raise MalformedReferenceError(
                f"Invalid registry host in container reference {raw}: {registry}"
            )

        tag = None
        last_slash = remainder.rfind("/")
        colon = remainder.rfind(":")
        if colon > last_slash:
            remainder, tag = remainder[:colon], remainder[colon + 1 :]
            if not TAG_PATTERN.match(tag):
                raise MalformedReferenceError(
                    f"Invalid tag in container reference {raw}: {tag}"
                )

        if not REPOSITORY_PATTERN.match(remainder):
            raise MalformedReferenceError(
                f"Invalid repository in container reference {raw}: {remainder}"
            )

        if tag is None and digest is None:
            tag = DEFAULT_TAG
        return cls(registry=registry, repository=remainder, tag=tag, digest=digest)

    @property
    def reference(self) -> str:
        """Manifest lookup key; the digest wins over the tag."""
        return self.digest or self.tag or DEFAULT_TAG

    def with_digest(self, digest: str) -> "ContainerRef":
        """Return a copy addressing ``digest``."""
        return replace(self, digest=digest)

    def __str__(self) -> str:
        value = f"{self.registry}/{self.repository}"
        if self.tag:
            value += f":{self.tag}"
        if self.digest:
            value += f"@{self.digest}"
        return value
