"""Turn value specs into bytes: key sources, decryption and static checks."""
import logging
import os
from typing import Optional

from ..domains.errors import (
    ConfigurationError,
    KeyFileError,
    KeyFileNotFound,
)
from ..domains.gcp_client import GCPSecretClient, SecretAccess, resource_version_name
from ..domains.gpg_keyring import GpgKeyring, Keyring, normalize_fingerprint
from ..domains.models import (
    FileKey,
    GcpKey,
    GpgKey,
    KeySource,
    LiteralKey,
    Plain,
    Secure,
    ValueSpec,
)
from ..domains.pgp import Decryptor, PgpDecryptor

logger = logging.getLogger(__name__)


def validate_key_source(key_source: KeySource) -> None:
    """
    Check a key source without touching any backend.

    Raises:
        ConfigurationError: If the key source is malformed
    """
    if isinstance(key_source, LiteralKey):
        key_source.value.validate()
    elif isinstance(key_source, FileKey):
        if not key_source.path:
            raise ConfigurationError("key file path cannot be empty")
    elif isinstance(key_source, GpgKey):
        normalize_fingerprint(key_source.fingerprint)
    elif isinstance(key_source, GcpKey):
        resource_version_name(key_source.secret, key_source.version)
    else:
        raise ConfigurationError(f"Unsupported key source: {type(key_source).__name__}")


def validate_value_spec(spec: ValueSpec) -> None:
    """
    Check a value spec without touching any backend.

    Raises:
        ConfigurationError: If the spec or its key source is malformed
    """
    if isinstance(spec, Plain):
        spec.value.validate()
    elif isinstance(spec, Secure):
        spec.ciphertext.validate()
        validate_key_source(spec.key_source)
    else:
        raise ConfigurationError(f"Unsupported value spec: {type(spec).__name__}")


class KeySourceResolver:
    """Produces raw private key bytes from a key source."""

    def __init__(self, secret_access: Optional[SecretAccess] = None, keyring: Optional[Keyring] = None):
        self._secret_access = secret_access
        self._keyring = keyring

    @property
    def secret_access(self) -> SecretAccess:
        """Lazy-initialize the GCP client; it is only needed for gcp key sources."""
        if self._secret_access is None:
            self._secret_access = GCPSecretClient()
        return self._secret_access

    @property
    def keyring(self) -> Keyring:
        """Lazy-initialize the GnuPG keyring; it is only needed for gpg key sources."""
        if self._keyring is None:
            self._keyring = GpgKeyring()
        return self._keyring

    def resolve(self, key_source: KeySource) -> bytes:
        """
        Obtain private key material.

        Args:
            key_source: Where the key lives

        Returns:
            Raw key bytes (ASCII-armored for every supported source)

        Raises:
            ConfigurationError: If the key source is malformed
            KeySourceError: If the key cannot be obtained
        """
        if isinstance(key_source, LiteralKey):
            logger.debug("Using private key embedded in manifest")
            return key_source.value.decode()

        if isinstance(key_source, FileKey):
            path = os.path.expanduser(key_source.path)
            logger.debug(f"Reading private key from file {path}")
            try:
                with open(path, 'rb') as f:
                    return f.read()
            except FileNotFoundError as e:
                raise KeyFileNotFound(f"Key file not found: {path}") from e
            except OSError as e:
                raise KeyFileError(f"Failed to read key file {path}: {e.strerror or e}") from e

        if isinstance(key_source, GpgKey):
            logger.debug(f"Looking up private key {key_source.fingerprint} in GnuPG keyring")
            return self.keyring.find_private_key(key_source.fingerprint)

        if isinstance(key_source, GcpKey):
            # Validates the resource before any network call is made.
            name = resource_version_name(key_source.secret, key_source.version)
            logger.debug(f"Fetching private key from GCP secret {name}")
            return self.secret_access.fetch_secret(name)

        raise ConfigurationError(f"Unsupported key source: {type(key_source).__name__}")


class ValueProvider:
    """Evaluates plain and secure leaves into bytes. Never logs values."""

    def __init__(self, key_resolver: Optional[KeySourceResolver] = None, decryptor: Optional[Decryptor] = None):
        self.key_resolver = key_resolver or KeySourceResolver()
        self.decryptor = decryptor or PgpDecryptor()

    def resolve(self, spec: ValueSpec) -> bytes:
        """
        Resolve a leaf value.

        Args:
            spec: Plain or Secure value spec

        Returns:
            Resolved bytes

        Raises:
            ConfigurationError: If the spec is malformed
            EncodingError: If a base64 form is invalid
            KeySourceError: If the key cannot be obtained
            DecryptionError: If decryption fails
        """
        if isinstance(spec, Plain):
            return spec.value.decode()

        if isinstance(spec, Secure):
            validate_value_spec(spec)
            message = spec.ciphertext.decode()
            key_material = self.key_resolver.resolve(spec.key_source)
            return self.decryptor.decrypt(key_material, message)

        raise ConfigurationError(f"Unsupported value spec: {type(spec).__name__}")
