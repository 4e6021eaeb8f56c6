"""GCP Secret Manager client wrapper."""
import logging
import re
from abc import ABC, abstractmethod
from typing import Optional

from google.api_core import exceptions as google_exceptions
from google.auth import exceptions as auth_exceptions
from google.cloud import secretmanager

from .errors import InvalidResource, SecretAccessError

logger = logging.getLogger(__name__)

# projects/<project>/secrets/<name>[/versions/<version>]
_RESOURCE_RE = re.compile(
    r"^projects/(?P<project>[^/]+)/secrets/(?P<secret>[^/]+)(?:/versions/(?P<version>[^/]+))?$"
)
_VERSION_RE = re.compile(r"[^/\s]+")

DEFAULT_VERSION = "latest"

# Seconds allowed for a single access_secret_version call.
DEFAULT_TIMEOUT = 30.0


def resource_version_name(secret: str, version: Optional[str] = None) -> str:
    """
    Build the fully qualified secret version name.

    Args:
        secret: Secret resource, projects/<id>/secrets/<name>, optionally
            with an embedded /versions/<n>
        version: Explicit version; conflicts with an embedded one

    Returns:
        projects/<id>/secrets/<name>/versions/<version or "latest">

    Raises:
        InvalidResource: If the resource does not have the required shape
            or version, or names a version twice
    """
    match = _RESOURCE_RE.match(secret or "")
    if not match:
        raise InvalidResource(
            f"Invalid GCP secret resource '{secret}'. "
            f"Expected 'projects/<project>/secrets/<name>'"
        )
    if version is not None and not version.strip():
        raise InvalidResource(f"Empty version given for GCP secret '{secret}'")
    if version is not None and not _VERSION_RE.fullmatch(version):
        raise InvalidResource(
            f"Invalid version '{version}' for GCP secret '{secret}': a version number or alias is expected"
        )

    embedded = match.group("version")
    if embedded and version is not None:
        raise InvalidResource(
            f"GCP secret '{secret}' embeds version '{embedded}' and also sets version '{version}'"
        )

    return (
        f"projects/{match.group('project')}/secrets/{match.group('secret')}"
        f"/versions/{embedded or version or DEFAULT_VERSION}"
    )


class SecretAccess(ABC):
    """Capability to read a secret payload from an external store."""

    @abstractmethod
    def fetch_secret(self, resource_id: str) -> bytes:
        """Return the payload of a fully qualified secret version.

        Raises SecretAccessError on any provider failure.
        """
        pass


class GCPSecretClient(SecretAccess):
    """Wrapper around GCP Secret Manager client."""

    def __init__(self, timeout: float = DEFAULT_TIMEOUT):
        self._client = None
        self.timeout = timeout

    @property
    def client(self) -> secretmanager.SecretManagerServiceClient:
        """Lazy-initialize client."""
        if self._client is None:
            self._client = secretmanager.SecretManagerServiceClient()
        return self._client

    def fetch_secret(self, resource_id: str) -> bytes:
        """
        Fetch a secret version from GCP Secret Manager.

        Args:
            resource_id: projects/<id>/secrets/<name>/versions/<version>

        Returns:
            Raw secret payload

        Raises:
            SecretAccessError: On authentication, permission, network or
                not-found failures; the provider message is kept as-is
        """
        logger.debug(f"Accessing GCP secret {resource_id}")
        try:
            response = self.client.access_secret_version(
                request={"name": resource_id}, timeout=self.timeout
            )
        except auth_exceptions.GoogleAuthError as e:
            raise SecretAccessError(f"GCP credentials unavailable for {resource_id}: {e}") from e
        except google_exceptions.GoogleAPIError as e:
            raise SecretAccessError(f"GCP fetch failed for {resource_id}: {e}") from e
        return response.payload.data
