"""Domain models for manifests, value specs and ephemeral files."""
import base64
import binascii
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, List, Optional, Tuple, Union

from .errors import ConfigurationError, EncodingError


@dataclass(frozen=True)
class EncodedValue:
    """A value given either as a literal string or as base64-encoded bytes."""
    literal: Optional[str] = None
    base64: Optional[str] = None

    def validate(self) -> None:
        """
        Check that exactly one form is set.

        Raises:
            ConfigurationError: If both or neither form is set
        """
        if self.literal is not None and self.base64 is not None:
            raise ConfigurationError("value sets both 'literal' and 'base64'; exactly one is allowed")
        if self.literal is None and self.base64 is None:
            raise ConfigurationError("value sets neither 'literal' nor 'base64'")

    def decode(self) -> bytes:
        """
        Resolve the value to bytes.

        Literals are UTF-8 encoded as-is. Base64 may span several lines;
        whitespace is ignored.

        Raises:
            ConfigurationError: If both or neither form is set
            EncodingError: If the base64 form is not valid base64
        """
        self.validate()
        if self.literal is not None:
            return self.literal.encode("utf-8")
        try:
            return base64.b64decode("".join(self.base64.split()), validate=True)
        except (binascii.Error, ValueError) as e:
            raise EncodingError(f"invalid base64 value: {e}") from e


@dataclass(frozen=True)
class LiteralKey:
    """Private key embedded in the manifest."""
    value: EncodedValue


@dataclass(frozen=True)
class FileKey:
    """Private key read from a file."""
    path: str


@dataclass(frozen=True)
class GpgKey:
    """Private key exported from the local GnuPG keyring."""
    fingerprint: str


@dataclass(frozen=True)
class GcpKey:
    """Private key stored in GCP Secret Manager."""
    secret: str
    version: Optional[str] = None


KeySource = Union[LiteralKey, FileKey, GpgKey, GcpKey]


@dataclass(frozen=True)
class Plain:
    """Inline value."""
    value: EncodedValue


@dataclass(frozen=True)
class Secure:
    """PGP-encrypted value and where to find the key that opens it."""
    key_source: KeySource
    ciphertext: EncodedValue


ValueSpec = Union[Plain, Secure]


@dataclass
class Profile:
    """A named set of environment variables and ephemeral files."""
    name: str
    keep: Optional[List[str]] = None
    vars: Dict[str, ValueSpec] = field(default_factory=dict)
    files: Dict[str, ValueSpec] = field(default_factory=dict)


@dataclass
class Manifest:
    """Parsed manifest: a version string and its profiles."""
    version: str
    profiles: Dict[str, Profile] = field(default_factory=dict)

    def get_profile(self, name: str) -> Profile:
        """
        Look up a profile by name.

        Raises:
            ConfigurationError: If the profile is not declared
        """
        try:
            return self.profiles[name]
        except KeyError:
            available = ", ".join(sorted(self.profiles)) or "none"
            raise ConfigurationError(
                f"Profile '{name}' not found in manifest (available: {available})"
            ) from None


def validate_variable_name(name: str) -> None:
    """
    Check that a name can be used as an environment variable.

    Raises:
        ConfigurationError: If the name is empty or contains '=' or NUL
    """
    if not name:
        raise ConfigurationError("variable name cannot be empty")
    if "=" in name or "\x00" in name:
        raise ConfigurationError("variable name cannot contain '=' or NUL characters")


class ResolvedEnvironment(Mapping):
    """Immutable mapping of variable name to resolved value."""

    def __init__(self, values: Optional[Dict[str, str]] = None):
        values = dict(values or {})
        for name, value in values.items():
            validate_variable_name(name)
            if "\x00" in value:
                raise ConfigurationError(f"value of '{name}' contains a NUL character")
        self._values = values

    def __getitem__(self, name: str) -> str:
        return self._values[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        # Values are secrets; only names are shown.
        return f"ResolvedEnvironment({sorted(self._values)!r})"


class FileState(Enum):
    """Lifecycle of an ephemeral file."""
    PENDING = "pending"
    CREATED = "created"
    REMOVAL_FAILED = "removal_failed"
    REMOVED = "removed"


@dataclass
class EphemeralFile:
    """A file written for the duration of one invocation."""
    path: str
    content: bytes = field(repr=False)
    state: FileState = FileState.PENDING


@dataclass
class CleanupReport:
    """Outcome of removing staged files. Failures never change the exit code."""
    removed: List[str] = field(default_factory=list)
    failures: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures
