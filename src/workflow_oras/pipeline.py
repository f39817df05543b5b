"""Async functional pipeline fetch operations."""

import tempfile
import uuid
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Optional

from .core.reference import ContainerRef
from .core.registry_client import RegistryClient
from .core.types import RegistryConfig
from .credentials import UsernamePasswordCredentials
from .fetcher import fetch_script, has_script_path
from .host import TaskListener
from .models import ManifestInfo
from .workspace import WorkspaceList

_workspaces = WorkspaceList()


def _credentials(
    username: Optional[str], password: Optional[str]
) -> Optional[UsernamePasswordCredentials]:
    if username is None:
        return None
    return UsernamePasswordCredentials(
        id="inline", username=username, password=password or ""
    )


async def check_registry_connectivity(registry_url: str, timeout: int = 10) -> bool:
    """레지스트리가 OCI distribution v2 API를 지원하는지 확인합니다.

    Args:
        registry_url: 레지스트리 URL (예: "http://localhost:5000")
        timeout: 요청 타임아웃 (초, 기본값: 10초)

    Returns:
        bool: ``/v2/`` 엔드포인트가 200을 반환하면 True

    Examples:
        accessible = await check_registry_connectivity("http://localhost:5000")
    """
    config = RegistryConfig(url=registry_url, timeout=timeout)
    async with RegistryClient(config) as client:
        return await client.check_registry_v2()


async def get_manifest(
    container_ref: str,
    username: Optional[str] = None,
    password: Optional[str] = None,
    timeout: int = 30,
    insecure: Optional[bool] = None,
) -> ManifestInfo:
    """컨테이너 참조의 매니페스트를 조회합니다.

    Args:
        container_ref: 컨테이너 참조 (예: "localhost:5000/pipeline:latest")
        username: 레지스트리 사용자명 (선택사항)
        password: 레지스트리 비밀번호 (선택사항)
        timeout: 요청 타임아웃 (초, 기본값: 30초)
        insecure: True면 http, False면 https (기본값: 인증 없을 때 http)

    Returns:
        ManifestInfo: artifact type, 레이어 목록, digest를 담은 매니페스트

    Raises:
        MalformedReferenceError: 참조를 해석할 수 없는 경우
        RegistryError: 요청 실패 시

    Examples:
        manifest = await get_manifest("localhost:5000/pipeline:latest")
        print(f"artifact type: {manifest.artifact_type}")
    """
    reference = ContainerRef.parse(container_ref)
    config = RegistryConfig.for_reference(
        reference, _credentials(username, password), insecure=insecure, timeout=timeout
    )
    async with RegistryClient(config) as client:
        return await client.get_manifest(reference)


async def fetch_pipeline_script(
    container_ref: str,
    script_path: Optional[str] = None,
    username: Optional[str] = None,
    password: Optional[str] = None,
    workdir: Optional[Path] = None,
    timeout: int = 30,
    insecure: Optional[bool] = None,
    listener: Optional[TaskListener] = None,
) -> str:
    """레지스트리에 저장된 파이프라인 스크립트를 가져옵니다.

    script_path가 없으면 단일 스크립트 artifact
    (application/vnd.jenkins.pipeline.manifest.v1+json)의 첫 번째 레이어를 읽고,
    있으면 저장소 artifact (application/vnd.jenkins.repo.manifest.v1+json)를
    임시 디렉토리에 풀어 해당 파일을 읽습니다. 임시 디렉토리는 항상 삭제됩니다.

    Args:
        container_ref: 컨테이너 참조 (예: "localhost:5000/pipeline:latest")
        script_path: 저장소 artifact 내부의 스크립트 경로 (예: "Jenkinsfile")
        username: 레지스트리 사용자명 (선택사항)
        password: 레지스트리 비밀번호 (선택사항)
        workdir: 압축 해제 디렉토리를 만들 상위 디렉토리 (기본값: 시스템 임시
            디렉토리). 상위 디렉토리와 기존 파일은 삭제되지 않습니다
        timeout: 요청 타임아웃 (초, 기본값: 30초)
        insecure: True면 http, False면 https (기본값: 인증 없을 때 http)
        listener: 사용된 artifact 정보를 출력할 대상 (기본값: 표준 출력)

    Returns:
        str: 파이프라인 스크립트 내용

    Raises:
        MalformedReferenceError: 참조를 해석할 수 없는 경우
        InvalidArtifactTypeError: artifact type이 일치하지 않는 경우
        NoDigestError: 스크립트 레이어에 digest가 없는 경우
        PathEscapeError: script_path가 압축 해제 디렉토리를 벗어나는 경우
        MissingScriptPathError: script_path가 artifact에 없는 경우
        RegistryError: 요청 실패 시

    Examples:
        # 단일 스크립트 artifact
        script = await fetch_pipeline_script("localhost:5000/pipeline:latest")

        # 저장소 artifact 내부의 Jenkinsfile
        script = await fetch_pipeline_script(
            "localhost:5000/repo:latest", script_path="Jenkinsfile"
        )
    """
    reference = ContainerRef.parse(container_ref)
    config = RegistryConfig.for_reference(
        reference, _credentials(username, password), insecure=insecure, timeout=timeout
    )
    parent = workdir if workdir is not None else Path(tempfile.gettempdir())
    directory = parent / f"workflow-oras-{uuid.uuid4().hex}"

    @asynccontextmanager
    async def extraction_dir() -> AsyncIterator[Path]:
        async with _workspaces.allocate(directory) as lease:
            yield lease.path

    async with RegistryClient(config) as client:
        return await fetch_script(
            client,
            reference,
            listener or TaskListener(),
            script_path=script_path,
            extraction_dir=extraction_dir if has_script_path(script_path) else None,
        )
