"""Access to private keys held in the operator's GnuPG keyring."""
import logging
import re
from abc import ABC, abstractmethod
from typing import Optional

import gnupg

from .errors import ConfigurationError, KeyNotFound

logger = logging.getLogger(__name__)

_SEPARATORS_RE = re.compile(r"[\s:\-]")
_HEX_RE = re.compile(r"^[0-9A-F]+$")


def normalize_fingerprint(fingerprint: str) -> str:
    """
    Normalize a fingerprint for comparison.

    Whitespace, ':' and '-' separators and a leading '0x' are dropped and
    the result is upper-cased.

    Raises:
        ConfigurationError: If the result is empty or not hexadecimal
    """
    normalized = _SEPARATORS_RE.sub("", fingerprint or "").upper()
    if normalized.startswith("0X"):
        normalized = normalized[2:]
    if not normalized or not _HEX_RE.match(normalized):
        raise ConfigurationError(f"Invalid GPG fingerprint '{fingerprint}': expected hex digits")
    return normalized


def _key_fingerprints(key: dict) -> list:
    """Primary and subkey fingerprints of a python-gnupg key listing entry."""
    fingerprints = [key.get("fingerprint", "").upper()]
    for subkey in key.get("subkeys") or []:
        # [keyid, capabilities, fingerprint, ...]
        if len(subkey) > 2 and subkey[2]:
            fingerprints.append(subkey[2].upper())
    return fingerprints


class Keyring(ABC):
    """Capability to export a private key from a local keyring."""

    @abstractmethod
    def find_private_key(self, fingerprint: str) -> bytes:
        """Return the ASCII-armored private key for *fingerprint*.

        Raises KeyNotFound unless exactly one private key matches.
        """
        pass


class GpgKeyring(Keyring):
    """GnuPG keyring accessed through python-gnupg."""

    def __init__(self, gnupghome: Optional[str] = None, gpgbinary: str = "gpg"):
        self.gnupghome = gnupghome
        self.gpgbinary = gpgbinary
        self._gpg = None

    @property
    def gpg(self) -> gnupg.GPG:
        """Lazy-initialize the GnuPG wrapper."""
        if self._gpg is None:
            try:
                self._gpg = gnupg.GPG(gpgbinary=self.gpgbinary, gnupghome=self.gnupghome)
            except (OSError, ValueError) as e:
                raise KeyNotFound(f"GnuPG is not available: {e}") from e
        return self._gpg

    def find_private_key(self, fingerprint: str) -> bytes:
        """
        Export the single private key whose fingerprint matches exactly.

        Args:
            fingerprint: Primary or subkey fingerprint, any case, separators allowed

        Returns:
            ASCII-armored private key block

        Raises:
            KeyNotFound: If zero or more than one key matches, or export fails
        """
        wanted = normalize_fingerprint(fingerprint)
        matches = [
            key["fingerprint"].upper()
            for key in self.gpg.list_keys(secret=True)
            if wanted in _key_fingerprints(key)
        ]

        if not matches:
            raise KeyNotFound(f"No private key found for fingerprint {wanted} in the GnuPG keyring")
        if len(matches) > 1:
            raise KeyNotFound(
                f"Fingerprint {wanted} is ambiguous: {len(matches)} private keys match"
            )

        logger.debug(f"Exporting private key {matches[0]} from GnuPG keyring")
        exported = self.gpg.export_keys(matches[0], secret=True, armor=True, expect_passphrase=False)
        if not exported or not str(exported).strip():
            raise KeyNotFound(f"GnuPG returned no private key material for fingerprint {wanted}")
        if isinstance(exported, bytes):
            return exported
        return str(exported).encode("utf-8")
