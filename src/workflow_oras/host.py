"""Minimal model of the host a pipeline definition is created in."""

import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional, Sequence, TextIO

from .workspace import WorkspaceList

if TYPE_CHECKING:
    from .credentials import Credentials

EXTENDED_READ = "Item.EXTENDED_READ"
USE_ITEM = "Credentials.USE_ITEM"


@dataclass
class Item:
    """A job, identified by its full name."""

    full_name: str
    workspace: Optional[Path] = None
    top_level: bool = True
    permissions: frozenset[str] = frozenset()

    def has_permission(self, permission: str) -> bool:
        return permission in self.permissions


@dataclass
class Run:
    """One execution of an item."""

    parent: Item
    number: int = 1
    tracked_credentials: list[str] = field(default_factory=list)

    @property
    def display_name(self) -> str:
        return f"{self.parent.full_name} #{self.number}"

    def track_credentials(self, credentials: "Credentials") -> None:
        """Record that ``credentials`` were used by this run."""
        if credentials.id not in self.tracked_credentials:
            self.tracked_credentials.append(credentials.id)


@dataclass
class Computer:
    """The node whose workspaces host extraction directories."""

    name: str = "built-in"
    online: bool = True
    workspace_list: WorkspaceList = field(default_factory=WorkspaceList)


@dataclass
class FlowExecutionOwner:
    executable: Any
    computer: Optional[Computer] = None


class TaskListener:
    """Operator-facing output of a run.

    Lines are written to ``stream`` and mirrored to the module logger.
    """

    def __init__(self, stream: Optional[TextIO] = None) -> None:
        self.stream = stream if stream is not None else sys.stdout
        self._logger = logging.getLogger(__name__)

    def info(self, message: str) -> None:
        self.stream.write(f"{message}\n")
        self.stream.flush()
        self._logger.info(message)


@dataclass
class FlowExecution:
    """Script text handed to the workflow engine."""

    script: str
    sandbox: bool
    owner: FlowExecutionOwner


@dataclass
class ReplayAction:
    """Replays a previous run with an edited script."""

    script: str

    def create(
        self, definition: Any, owner: FlowExecutionOwner, actions: Sequence[Any]
    ) -> FlowExecution:
        return FlowExecution(script=self.script, sandbox=True, owner=owner)
