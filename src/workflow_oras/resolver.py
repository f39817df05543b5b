"""Resolution of a container reference into an authenticated client."""

import logging
from dataclasses import dataclass
from typing import Optional

from .core.reference import ContainerRef
from .core.registry_client import RegistryClient
from .core.types import RegistryConfig
from .credentials import CredentialLookup, UsernamePasswordCredentials, get_credentials
from .exceptions import MissingCredentialsError
from .host import Item, Run

logger = logging.getLogger(__name__)


@dataclass
class ResolvedReference:
    reference: ContainerRef
    client: RegistryClient
    credentials: Optional[UsernamePasswordCredentials] = None


def resolve_reference(
    raw_reference: str,
    credentials_id: Optional[str],
    item: Optional[Item],
    lookup: CredentialLookup,
    run: Optional[Run] = None,
    timeout: Optional[int] = None,
    insecure: Optional[bool] = None,
) -> ResolvedReference:
    """Parse ``raw_reference`` and build a registry client for it.

    Without a credential id the client is anonymous. With one, the
    credentials must be visible to ``item``; they are tracked against
    ``run`` once found.

    Args:
        raw_reference: Reference such as ``registry.example/repo:tag``
        credentials_id: Optional username/password credential id
        item: Job whose scope the credentials are looked up in
        lookup: Credential source
        run: Run to record credential usage on
        timeout: Request timeout in seconds
        insecure: Force plain http (True) or https (False)

    Returns:
        The parsed reference with an unopened client

    Raises:
        MalformedReferenceError: If the reference cannot be parsed
        MissingCredentialsError: If the credential id does not resolve
    """
    reference = ContainerRef.parse(raw_reference)

    credentials = None
    if credentials_id:
        credentials = get_credentials(lookup, item, credentials_id)
        if credentials is None:
            raise MissingCredentialsError(
                f"No credentials found with ID: {credentials_id}"
            )
        if run is not None:
            run.track_credentials(credentials)
        logger.debug("Using credentials %s for %s", credentials_id, reference)
    else:
        logger.debug("Using anonymous access for %s", reference)

    config = RegistryConfig.for_reference(
        reference, credentials=credentials, insecure=insecure, timeout=timeout
    )
    return ResolvedReference(
        reference=reference, client=RegistryClient(config), credentials=credentials
    )
