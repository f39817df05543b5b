"""OCI distribution API async client implementation."""

import asyncio
import json
import logging
import re
from pathlib import Path
from typing import Mapping, Optional

import aiofiles
import aiohttp

from ..exceptions import (
    BlobFetchError,
    ManifestError,
    RegistryConnectionError,
    RegistryError,
)
from ..models import DOCKER_MANIFEST_MEDIA_TYPE, OCI_MANIFEST_MEDIA_TYPE, ManifestInfo
from ..tar.extract import extract_layer_archive
from ..utils.digest import calculate_digest, validate_digest, verify_digest
from ..utils.paths import resolve_within
from .reference import ContainerRef
from .types import RegistryConfig

logger = logging.getLogger(__name__)

MANIFEST_ACCEPT = f"{OCI_MANIFEST_MEDIA_TYPE}, {DOCKER_MANIFEST_MEDIA_TYPE}"

_CHALLENGE_PARAM = re.compile(r'(\w+)="([^"]*)"')


def parse_challenge(header: str) -> tuple[str, dict[str, str]]:
    """Split a ``WWW-Authenticate`` header into scheme and parameters."""
    scheme, _, params = header.strip().partition(" ")
    return scheme.lower(), dict(_CHALLENGE_PARAM.findall(params))


class RegistryClient:
    """OCI registry client for pulling manifests, blobs and artifacts."""

    def __init__(
        self,
        config: RegistryConfig,
        connector: Optional[aiohttp.BaseConnector] = None,
    ) -> None:
        """Initialize the registry client.

        Args:
            config: Registry URL, timeout and optional credentials
            connector: aiohttp connector for connection pooling
        """
        self.config = config
        self.registry_url = config.base_url
        self.connector = connector
        self.session: Optional[aiohttp.ClientSession] = None
        self._authorization: Optional[str] = None

    async def __aenter__(self) -> "RegistryClient":
        """Enter async context manager."""
        if not self.session:
            self.session = aiohttp.ClientSession(
                connector=self.connector,
                timeout=aiohttp.ClientTimeout(total=self.config.timeout),
            )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Exit async context manager."""
        await self.close()

    async def close(self) -> None:
        """Close the client session."""
        if self.session and not self.session.closed:
            await self.session.close()
        self.session = None

    def _session(self) -> aiohttp.ClientSession:
        if self.session is None or self.session.closed:
            raise RegistryError("Registry client is not open; use 'async with'")
        return self.session

    async def check_registry_v2(self) -> bool:
        """Check if the registry supports v2 API.

        Returns:
            True if v2 API is supported
        """
        try:
            status, _, _ = await self._get(f"{self.registry_url}/v2/")
            return status == 200
        except aiohttp.ClientError:
            return False

    async def _get_once(
        self, url: str, headers: Optional[Mapping[str, str]] = None
    ) -> tuple[int, Mapping[str, str], bytes]:
        request_headers = dict(headers or {})
        if self._authorization:
            request_headers["Authorization"] = self._authorization
        async with self._session().get(url, headers=request_headers) as resp:
            body = await resp.read()
            return resp.status, resp.headers, body

    async def _get(
        self, url: str, headers: Optional[Mapping[str, str]] = None
    ) -> tuple[int, Mapping[str, str], bytes]:
        """GET ``url``, answering one authentication challenge if needed."""
        status, resp_headers, body = await self._get_once(url, headers)
        if status == 401:
            challenge = resp_headers.get("WWW-Authenticate", "")
            if challenge and await self._authenticate(challenge):
                status, resp_headers, body = await self._get_once(url, headers)
        return status, resp_headers, body

    async def _authenticate(self, challenge: str) -> bool:
        """Answer a ``WWW-Authenticate`` challenge.

        Returns:
            True if an ``Authorization`` header is now available

        Raises:
            RegistryConnectionError: If the token endpoint refuses the request
        """
        scheme, params = parse_challenge(challenge)
        basic = None
        if self.config.has_credentials:
            basic = aiohttp.BasicAuth(self.config.username, self.config.password)

        if scheme == "basic":
            if basic is None:
                return False
            self._authorization = basic.encode()
            return True

        if scheme != "bearer" or "realm" not in params:
            return False

        query = {key: params[key] for key in ("service", "scope") if key in params}
        logger.debug("Requesting registry token from %s", params["realm"])
        async with self._session().get(
            params["realm"], params=query, auth=basic
        ) as resp:
            if resp.status != 200:
                raise RegistryConnectionError(
                    f"Failed to obtain token from {params['realm']}: HTTP {resp.status}"
                )
            data = await resp.json(content_type=None)

        token = None
        if isinstance(data, dict):
            token = data.get("token") or data.get("access_token")
        if not token:
            raise RegistryConnectionError(
                f"Token endpoint {params['realm']} returned no token"
            )
        self._authorization = f"Bearer {token}"
        return True

    async def get_manifest(self, reference: ContainerRef) -> ManifestInfo:
        """Retrieve the manifest of ``reference``.

        Args:
            reference: Parsed container reference

        Returns:
            Parsed manifest

        Raises:
            RegistryConnectionError: If the registry cannot be reached
            ManifestError: If retrieval or parsing fails
        """
        url = (
            f"{self.registry_url}/v2/{reference.repository}"
            f"/manifests/{reference.reference}"
        )
        try:
            status, headers, body = await self._get(url, {"Accept": MANIFEST_ACCEPT})
        except aiohttp.ClientError as e:
            raise RegistryConnectionError(
                f"Failed to get manifest for {reference}: {e}"
            ) from e

        if status != 200:
            raise ManifestError(
                f"Failed to get manifest for {reference}: HTTP {status}"
            )

        if reference.digest and not verify_digest(body, reference.digest):
            raise ManifestError(
                f"Manifest for {reference} does not match digest {reference.digest}"
            )

        try:
            data = json.loads(body)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ManifestError(f"Invalid manifest for {reference}: {e}") from e

        digest = headers.get("Docker-Content-Digest") or calculate_digest(body)
        return ManifestInfo.from_json(data, digest)

    async def fetch_blob(self, reference: ContainerRef) -> bytes:
        """Download the blob addressed by ``reference.digest``.

        Raises:
            BlobFetchError: If the blob cannot be downloaded or fails verification
        """
        digest = reference.digest
        if not digest or not validate_digest(digest):
            raise BlobFetchError(f"Invalid digest format: {digest}")

        url = f"{self.registry_url}/v2/{reference.repository}/blobs/{digest}"
        try:
            status, _, body = await self._get(url)
        except aiohttp.ClientError as e:
            raise BlobFetchError(f"Failed to fetch blob {digest}: {e}") from e

        if status != 200:
            raise BlobFetchError(f"Failed to fetch blob {digest}: HTTP {status}")
        if not verify_digest(body, digest):
            raise BlobFetchError(f"Blob content does not match digest {digest}")
        return body

    async def pull_artifact(
        self,
        reference: ContainerRef,
        directory: Path,
        manifest: Optional[ManifestInfo] = None,
    ) -> list[Path]:
        """Download every titled layer of ``reference`` into ``directory``.

        Layers flagged for unpacking are extracted; other layers are written
        under their title. Layers without a title are skipped.

        Args:
            reference: Parsed container reference
            directory: Target directory, created if missing
            manifest: Manifest already retrieved for ``reference``

        Returns:
            Paths of the files written
        """
        if manifest is None:
            manifest = await self.get_manifest(reference)

        directory.mkdir(parents=True, exist_ok=True)
        loop = asyncio.get_event_loop()
        written: list[Path] = []

        for layer in manifest.layers:
            if not layer.title:
                logger.debug("Skipping untitled layer %s", layer.digest)
                continue

            data = await self.fetch_blob(reference.with_digest(layer.digest))
            if layer.unpack:
                files = await loop.run_in_executor(
                    None, extract_layer_archive, data, directory, layer.title
                )
                written.extend(files)
                continue

            destination = resolve_within(directory, layer.title)
            destination.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(destination, "wb") as f:
                await f.write(data)
            written.append(destination)

        logger.debug("Pulled %d files from %s", len(written), reference)
        return written
