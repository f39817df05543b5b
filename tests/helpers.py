"""Test helpers: artifact builders and an in-process registry."""

import base64
import io
import json
import tarfile

from aiohttp import web

from workflow_oras.fetcher import ARTIFACT_TYPE_REPO, ARTIFACT_TYPE_SCRIPT
from workflow_oras.models import (
    ANNOTATION_TITLE,
    ANNOTATION_UNPACK,
    OCI_MANIFEST_MEDIA_TYPE,
)
from workflow_oras.utils.digest import calculate_digest

EMPTY_CONFIG = {
    "mediaType": "application/vnd.oci.empty.v1+json",
    "digest": "sha256:44136fa355b3678a1146ad16f7e8649e94fb4fc21fe77e8310c060f61caaff8a",
    "size": 2,
}

HELLO_WORLD = "node { echo 'Hello World' }"
TOKEN = "test-token"


def make_tar_gz(files: dict[str, str], prefix: str = "") -> bytes:
    """Create a gzipped tar holding ``files`` (name -> text)."""
    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w:gz") as tar:
        for name, content in files.items():
            data = content.encode("utf-8")
            info = tarfile.TarInfo(f"{prefix}{name}")
            info.size = len(data)
            tar.addfile(info, fileobj=io.BytesIO(data))
    return buffer.getvalue()


def layer_descriptor(
    data: bytes,
    title: str | None = None,
    unpack: bool = False,
    media_type: str = "application/vnd.oci.image.layer.v1.tar",
) -> dict:
    annotations = {}
    if title:
        annotations[ANNOTATION_TITLE] = title
    if unpack:
        annotations[ANNOTATION_UNPACK] = "true"
        media_type = "application/vnd.oci.image.layer.v1.tar+gzip"
    descriptor = {
        "mediaType": media_type,
        "digest": calculate_digest(data),
        "size": len(data),
    }
    if annotations:
        descriptor["annotations"] = annotations
    return descriptor


def build_manifest(artifact_type: str | None, layers: list[dict]) -> dict:
    manifest = {
        "schemaVersion": 2,
        "mediaType": OCI_MANIFEST_MEDIA_TYPE,
        "config": EMPTY_CONFIG,
        "layers": layers,
    }
    if artifact_type:
        manifest["artifactType"] = artifact_type
    return manifest


class FakeRegistry:
    """Serves manifests and blobs over the OCI distribution API.

    With a username set, requests must authenticate with basic auth or,
    in ``bearer`` mode, with a token obtained from ``/token``.
    """

    def __init__(
        self,
        username: str | None = None,
        password: str | None = None,
        auth: str = "basic",
    ) -> None:
        self.username = username
        self.password = password
        self.auth = auth
        self.manifests: dict[tuple[str, str], bytes] = {}
        self.blobs: dict[str, bytes] = {}
        self.requests: list[str] = []
        self.accept_headers: list[str] = []

    def push_blob(self, data: bytes) -> str:
        digest = calculate_digest(data)
        self.blobs[digest] = data
        return digest

    def push_manifest(self, repository: str, tag: str, manifest: dict) -> str:
        body = json.dumps(manifest).encode("utf-8")
        digest = calculate_digest(body)
        self.manifests[(repository, tag)] = body
        self.manifests[(repository, digest)] = body
        return digest

    def push_script(
        self,
        repository: str,
        tag: str,
        script: str = HELLO_WORLD,
        artifact_type: str | None = ARTIFACT_TYPE_SCRIPT,
    ) -> str:
        """Push a single-script artifact and return its layer digest."""
        data = script.encode("utf-8")
        digest = self.push_blob(data)
        self.push_manifest(
            repository,
            tag,
            build_manifest(
                artifact_type, [layer_descriptor(data, title="Jenkinsfile")]
            ),
        )
        return digest

    def push_repository(
        self,
        repository: str,
        tag: str,
        files: dict[str, str],
        artifact_type: str | None = ARTIFACT_TYPE_REPO,
        title: str = "resources",
    ) -> str:
        """Push a packaged repository artifact and return its manifest digest."""
        data = make_tar_gz(files)
        self.push_blob(data)
        return self.push_manifest(
            repository,
            tag,
            build_manifest(artifact_type, [layer_descriptor(data, title, unpack=True)]),
        )

    def blob_requests(self) -> list[str]:
        return [path for path in self.requests if "/blobs/" in path]

    def _authorized(self, request: web.Request) -> bool:
        if self.username is None:
            return True
        header = request.headers.get("Authorization", "")
        if self.auth == "bearer":
            return header == f"Bearer {TOKEN}"
        return header == self._basic_header()

    def _basic_header(self) -> str:
        raw = f"{self.username}:{self.password}".encode("utf-8")
        return f"Basic {base64.b64encode(raw).decode('ascii')}"

    def _challenge(self, request: web.Request) -> web.Response:
        if self.auth == "bearer":
            realm = f"{request.scheme}://{request.host}/token"
            value = f'Bearer realm="{realm}",service="fake",scope="repository:pull"'
        else:
            value = 'Basic realm="fake"'
        return web.Response(status=401, headers={"WWW-Authenticate": value})

    async def _version(self, request: web.Request) -> web.Response:
        return web.json_response({})

    async def _token(self, request: web.Request) -> web.Response:
        if request.headers.get("Authorization", "") != self._basic_header():
            return web.Response(status=401)
        return web.json_response({"token": TOKEN})

    async def _manifest(self, request: web.Request) -> web.Response:
        self.requests.append(request.path)
        self.accept_headers.append(request.headers.get("Accept", ""))
        if not self._authorized(request):
            return self._challenge(request)
        key = (request.match_info["name"], request.match_info["reference"])
        body = self.manifests.get(key)
        if body is None:
            return web.json_response(
                {"errors": [{"code": "MANIFEST_UNKNOWN"}]}, status=404
            )
        return web.Response(
            body=body,
            headers={
                "Content-Type": OCI_MANIFEST_MEDIA_TYPE,
                "Docker-Content-Digest": calculate_digest(body),
            },
        )

    async def _blob(self, request: web.Request) -> web.Response:
        self.requests.append(request.path)
        if not self._authorized(request):
            return self._challenge(request)
        data = self.blobs.get(request.match_info["digest"])
        if data is None:
            return web.json_response({"errors": [{"code": "BLOB_UNKNOWN"}]}, status=404)
        return web.Response(body=data, content_type="application/octet-stream")

    def app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/v2/", self._version)
        app.router.add_get("/token", self._token)
        app.router.add_get("/v2/{name:.+}/manifests/{reference}", self._manifest)
        app.router.add_get("/v2/{name:.+}/blobs/{digest}", self._blob)
        return app
