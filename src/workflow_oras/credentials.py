"""Credential lookup scoped to the invoking job."""

import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional, Protocol

from .host import EXTENDED_READ, USE_ITEM, Item

logger = logging.getLogger(__name__)

EMPTY_OPTION = ("- none -", "")


@dataclass(frozen=True)
class Credentials:
    id: str
    description: str = ""


@dataclass(frozen=True)
class UsernamePasswordCredentials(Credentials):
    username: str = ""
    password: str = field(default="", repr=False)


@dataclass(frozen=True)
class SecretTextCredentials(Credentials):
    secret: str = field(default="", repr=False)


class CredentialLookup(Protocol):
    """Returns the credentials visible to an item."""

    def lookup_credentials(self, item: Optional[Item]) -> Iterable[Credentials]: ...


class CredentialStore:
    """In-memory credential store.

    Credentials added without a scope are global; a scope restricts them to
    the item with that full name and to items inside it.
    """

    def __init__(self) -> None:
        self._entries: list[tuple[Optional[str], Credentials]] = []

    def add(self, credentials: Credentials, scope: Optional[str] = None) -> None:
        self._entries.append((scope, credentials))

    def lookup_credentials(self, item: Optional[Item]) -> list[Credentials]:
        visible = []
        for scope, credentials in self._entries:
            if scope is None:
                visible.append(credentials)
            elif item is not None and (
                item.full_name == scope or item.full_name.startswith(f"{scope}/")
            ):
                visible.append(credentials)
        return visible


def get_credentials(
    lookup: CredentialLookup, item: Optional[Item], credentials_id: Optional[str]
) -> Optional[UsernamePasswordCredentials]:
    """Find the username/password credentials with ``credentials_id``.

    Returns:
        The first match visible to ``item``, or None when the id is empty
        or nothing matches
    """
    if not credentials_id:
        return None
    for credentials in lookup.lookup_credentials(item):
        if (
            isinstance(credentials, UsernamePasswordCredentials)
            and credentials.id == credentials_id
        ):
            return credentials
    logger.debug("No username/password credentials with id %s", credentials_id)
    return None


def _describe(credentials: UsernamePasswordCredentials) -> str:
    name = f"{credentials.username}/******"
    if credentials.description:
        name += f" ({credentials.description})"
    return name


def list_credential_options(
    lookup: CredentialLookup,
    item: Optional[Item],
    current: Optional[str] = None,
    is_admin: bool = False,
) -> list[tuple[str, str]]:
    """Options offered when configuring the credential id of a job.

    Callers without permission to see the item's credentials only get the
    currently configured value back.

    Returns:
        (display name, credential id) pairs
    """
    options: list[tuple[str, str]] = []
    if item is None:
        allowed = is_admin
    else:
        allowed = item.has_permission(EXTENDED_READ) or item.has_permission(USE_ITEM)

    if allowed:
        options.append(EMPTY_OPTION)
        for credentials in lookup.lookup_credentials(item):
            if isinstance(credentials, UsernamePasswordCredentials):
                options.append((_describe(credentials), credentials.id))

    if current and all(value != current for _, value in options):
        options.append((f"- current - ({current})", current))
    return options
