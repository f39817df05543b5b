"""Pipeline definition pulled from an OCI registry."""

import json
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, AsyncIterator, Optional, Sequence

from .credentials import CredentialLookup, CredentialStore
from .exceptions import BackendUnavailableError, ExecutionContextError
from .fetcher import ExtractionDirectory, fetch_script, has_script_path
from .host import (
    Computer,
    FlowExecution,
    FlowExecutionOwner,
    ReplayAction,
    Run,
    TaskListener,
)
from .resolver import resolve_reference
from .workspace import download_folder

logger = logging.getLogger(__name__)

SYMBOL = "cpsOras"
DISPLAY_NAME = "Pipeline script from ORAS"


def _extraction_dir(computer: Optional[Computer], run: Run) -> ExtractionDirectory:
    @asynccontextmanager
    async def allocate() -> AsyncIterator[Path]:
        folder = download_folder(run)
        if computer is None or not computer.online:
            raise BackendUnavailableError(
                f"Cannot unpack for {run.display_name}: the node may be offline"
            )
        async with computer.workspace_list.allocate(folder) as lease:
            yield lease.path

    return allocate


@dataclass
class OrasFlowDefinition:
    """Job configuration selecting a pipeline stored as an OCI artifact.

    Attributes:
        container_ref: Reference such as ``my-registry/my-container:latest``
        credentials_id: Username/password credentials used to pull
        script_path: Path of the script inside a packaged repository; when
            empty the artifact must be a single pipeline script
    """

    container_ref: str
    credentials_id: str = ""
    script_path: str = ""

    def to_dict(self) -> dict[str, str]:
        return {
            "containerRef": self.container_ref,
            "credentialsId": self.credentials_id,
            "scriptPath": self.script_path,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "OrasFlowDefinition":
        if not data.get("containerRef"):
            raise ValueError("containerRef is required")
        return cls(
            container_ref=data["containerRef"],
            credentials_id=data.get("credentialsId") or "",
            script_path=data.get("scriptPath") or "",
        )

    def to_json(self) -> str:
        return json.dumps({"$class": SYMBOL, **self.to_dict()})

    @classmethod
    def from_json(cls, payload: str) -> "OrasFlowDefinition":
        data = json.loads(payload)
        if data.get("$class", SYMBOL) != SYMBOL:
            raise ValueError(f"Not a {SYMBOL} definition: {data.get('$class')}")
        return cls.from_dict(data)

    async def create(
        self,
        owner: FlowExecutionOwner,
        listener: TaskListener,
        actions: Sequence[Any] = (),
        credential_lookup: Optional[CredentialLookup] = None,
        timeout: Optional[int] = None,
        insecure: Optional[bool] = None,
    ) -> FlowExecution:
        """Fetch the pipeline script and wrap it for the workflow engine.

        Raises:
            ExecutionContextError: If the owner is not running a build
            OrasFlowError: If resolving or fetching the script fails
        """
        for action in actions:
            if isinstance(action, ReplayAction):
                logger.debug("Replaying %s with an edited script", self.container_ref)
                return action.create(self, owner, actions)

        run = owner.executable
        if not isinstance(run, Run):
            raise ExecutionContextError("Can only pull a Jenkinsfile in a run")

        if credential_lookup is None:
            credential_lookup = CredentialStore()
        resolved = resolve_reference(
            self.container_ref,
            self.credentials_id,
            item=run.parent,
            lookup=credential_lookup,
            run=run,
            timeout=timeout,
            insecure=insecure,
        )

        extraction_dir = None
        if has_script_path(self.script_path):
            extraction_dir = _extraction_dir(owner.computer, run)

        async with resolved.client as client:
            script = await fetch_script(
                client,
                resolved.reference,
                listener,
                script_path=self.script_path,
                extraction_dir=extraction_dir,
            )
        return FlowExecution(script=script, sandbox=True, owner=owner)
