"""Exception hierarchy for secenv.

Messages name the offending manifest entry, key source or path. They must
never carry resolved plaintext, key material or passphrases.
"""
from typing import List


class SecenvError(Exception):
    """Base class for all secenv errors."""
    pass


class ConfigurationError(SecenvError):
    """Malformed manifest content (bad encodings, key sources, patterns)."""
    pass


class ManifestError(ConfigurationError):
    """Manifest file could not be read, parsed or is structurally invalid."""
    pass


class InvalidResource(ConfigurationError):
    """GCP secret resource id does not have the required shape."""
    pass


class ResolutionError(SecenvError):
    """A leaf value could not be turned into bytes."""
    pass


class EncodingError(ResolutionError):
    """Value is not valid base64 (or not valid UTF-8 where text is required)."""
    pass


class KeySourceError(ResolutionError):
    """Private key material could not be obtained."""
    pass


class KeyFileNotFound(KeySourceError):
    """Key file does not exist."""
    pass


class KeyFileError(KeySourceError):
    """Key file exists but could not be read."""
    pass


class KeyNotFound(KeySourceError):
    """Keyring holds zero or more than one private key for a fingerprint."""
    pass


class SecretAccessError(KeySourceError):
    """The external secret store refused or failed the request."""
    pass


class DecryptionError(ResolutionError):
    """Base class for decryption failures."""
    pass


class InvalidKey(DecryptionError):
    """Key material is not exactly one ASCII-armored private key."""
    pass


class InvalidMessage(DecryptionError):
    """Ciphertext is not an ASCII-armored PGP message."""
    pass


class PassphraseRequired(DecryptionError):
    """Key is passphrase protected and no passphrase is available."""
    pass


class DecryptionFailed(DecryptionError):
    """Wrong key, bad passphrase, corrupted message or unsupported algorithm."""
    pass


class StageError(SecenvError):
    """Ephemeral files could not be staged; the invocation is aborted."""
    pass


class AlreadyExists(StageError):
    """Destination exists and overwriting was not requested."""
    pass


class DirectoryCreationError(StageError):
    """Parent directories of a destination could not be created."""
    pass


class FileWriteError(StageError):
    """Destination could not be written."""
    pass


class LaunchError(SecenvError):
    """The target command could not be spawned."""
    pass


class EntryError(SecenvError):
    """A failure attributed to one profile entry.

    Attributes:
        kind: "variable", "file" or "keep" (keep-pattern)
        name: Variable name, file path or pattern
        cause: The underlying secenv error
    """

    def __init__(self, kind: str, name: str, cause: SecenvError):
        self.kind = kind
        self.name = name
        self.cause = cause
        super().__init__(f"{kind} '{name}': {cause}")


class ProfileResolutionError(SecenvError):
    """One or more entries of a profile failed validation or resolution."""

    def __init__(self, profile: str, errors: List[EntryError]):
        self.profile = profile
        self.errors = list(errors)
        lines = [f"Profile '{profile}' could not be resolved ({len(self.errors)} error(s)):"]
        lines.extend(f"  {error}" for error in self.errors)
        super().__init__("\n".join(lines))

    @property
    def is_configuration_error(self) -> bool:
        """True when every failure is a static configuration problem."""
        return all(isinstance(error.cause, ConfigurationError) for error in self.errors)
