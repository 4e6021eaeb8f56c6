"""Manifest loader for secenv."""
import logging
import os
from typing import Any, Dict, Optional, Tuple

import yaml

from .errors import ManifestError
from .models import (
    EncodedValue,
    FileKey,
    GcpKey,
    GpgKey,
    KeySource,
    LiteralKey,
    Manifest,
    Plain,
    Profile,
    Secure,
    ValueSpec,
)

logger = logging.getLogger(__name__)

DEFAULT_MANIFEST_PATH = "secenv.yml"

EXAMPLE_MANIFEST = """\
version: "{version}"

profiles:
  default:
    env:
      # Uncomment to only pass matching host variables to the command.
      # keep: ["^PATH$", "^LC_.*"]
      vars:
        # Plain literal value
        APP_NAME:
          plain:
            literal: myapp

        # Plain base64-encoded value ("localhost")
        # DB_HOST:
        #   plain:
        #     base64: bG9jYWxob3N0

        # Secure value, PGP private key read from a file
        # SECRET_TOKEN:
        #   secure:
        #     secret:
        #       pgp:
        #         file: /path/to/private.key
        #     value:
        #       literal: |
        #         -----BEGIN PGP MESSAGE-----
        #         ...
        #         -----END PGP MESSAGE-----

        # Secure value, PGP private key stored in GCP Secret Manager
        # API_KEY:
        #   secure:
        #     secret:
        #       pgp:
        #         gcp:
        #           secret: projects/my-project/secrets/my-pgp-key
        #           # version: "3"  # defaults to latest
        #     value:
        #       base64: <base64-encoded ASCII-armored message>

        # Secure value, PGP private key from the local GnuPG keyring
        # DB_PASSWORD:
        #   secure:
        #     secret:
        #       pgp:
        #         gpg:
        #           fingerprint: 0123456789ABCDEF0123456789ABCDEF01234567
        #     value:
        #       literal: "-----BEGIN PGP MESSAGE-----..."

    # Files written before the command runs and removed afterwards.
    # files:
    #   ./.credentials.json:
    #     plain:
    #       literal: '{{"user": "me"}}'
"""


def _where(path: Tuple[str, ...]) -> str:
    return ".".join(path) or "<root>"


def _expect_mapping(value: Any, path: Tuple[str, ...]) -> Dict[str, Any]:
    if not isinstance(value, dict):
        raise ManifestError(f"'{_where(path)}' must be a mapping, got {type(value).__name__}")
    return value


def _expect_string(value: Any, path: Tuple[str, ...]) -> str:
    # YAML turns unquoted numbers into ints; those are accepted as text.
    if isinstance(value, bool) or not isinstance(value, (str, int)):
        raise ManifestError(f"'{_where(path)}' must be a string, got {type(value).__name__}")
    return str(value)


def _single_variant(node: Dict[str, Any], variants: Tuple[str, ...], path: Tuple[str, ...]) -> str:
    unknown = sorted(set(node) - set(variants))
    if unknown:
        raise ManifestError(
            f"Unknown key(s) {', '.join(unknown)} in '{_where(path)}' (expected one of: {', '.join(variants)})"
        )
    present = [name for name in variants if name in node]
    if len(present) != 1:
        raise ManifestError(
            f"'{_where(path)}' must set exactly one of: {', '.join(variants)}"
        )
    return present[0]


def parse_encoded_value(node: Any, path: Tuple[str, ...]) -> EncodedValue:
    """
    Build an EncodedValue. Both/neither forms are accepted here and
    rejected by static validation, before any secret is accessed.
    """
    node = _expect_mapping(node, path)
    unknown = sorted(set(node) - {"literal", "base64"})
    if unknown:
        raise ManifestError(f"Unknown key(s) {', '.join(unknown)} in '{_where(path)}'")
    literal = node.get("literal")
    encoded = node.get("base64")
    return EncodedValue(
        literal=None if literal is None else _expect_string(literal, path + ("literal",)),
        base64=None if encoded is None else _expect_string(encoded, path + ("base64",)),
    )


def parse_key_source(node: Any, path: Tuple[str, ...]) -> KeySource:
    """Parse a `secret` node: {pgp: {literal|file|gpg|gcp: ...}}."""
    node = _expect_mapping(node, path)
    _single_variant(node, ("pgp",), path)
    path = path + ("pgp",)
    pgp = _expect_mapping(node["pgp"], path)
    kind = _single_variant(pgp, ("literal", "file", "gpg", "gcp"), path)
    body = pgp[kind]
    path = path + (kind,)

    if kind == "literal":
        return LiteralKey(value=parse_encoded_value(body, path))
    if kind == "file":
        return FileKey(path=_expect_string(body, path))
    if kind == "gpg":
        body = _expect_mapping(body, path)
        unknown = sorted(set(body) - {"fingerprint"})
        if unknown or "fingerprint" not in body:
            raise ManifestError(f"'{_where(path)}' must set only 'fingerprint'")
        return GpgKey(fingerprint=_expect_string(body["fingerprint"], path + ("fingerprint",)))

    body = _expect_mapping(body, path)
    unknown = sorted(set(body) - {"secret", "version"})
    if unknown or "secret" not in body:
        raise ManifestError(f"'{_where(path)}' must set 'secret' and optionally 'version'")
    version = body.get("version")
    return GcpKey(
        secret=_expect_string(body["secret"], path + ("secret",)),
        version=None if version is None else _expect_string(version, path + ("version",)),
    )


def parse_value_spec(node: Any, path: Tuple[str, ...]) -> ValueSpec:
    """Parse a leaf value: {plain: <encoded>} or {secure: {secret, value}}."""
    node = _expect_mapping(node, path)
    kind = _single_variant(node, ("plain", "secure"), path)
    path = path + (kind,)
    if kind == "plain":
        return Plain(value=parse_encoded_value(node["plain"], path))

    secure = _expect_mapping(node["secure"], path)
    unknown = sorted(set(secure) - {"secret", "value"})
    if unknown or "secret" not in secure or "value" not in secure:
        raise ManifestError(f"'{_where(path)}' must set exactly 'secret' and 'value'")
    return Secure(
        key_source=parse_key_source(secure["secret"], path + ("secret",)),
        ciphertext=parse_encoded_value(secure["value"], path + ("value",)),
    )


def parse_profile(name: str, node: Any) -> Profile:
    """Parse one profile: {env: {keep, vars}, files}."""
    path = ("profiles", name)
    node = _expect_mapping(node if node is not None else {}, path)
    unknown = sorted(set(node) - {"env", "files"})
    if unknown:
        raise ManifestError(f"Unknown key(s) {', '.join(unknown)} in '{_where(path)}'")

    env = _expect_mapping(node.get("env") or {}, path + ("env",))
    unknown = sorted(set(env) - {"keep", "vars"})
    if unknown:
        raise ManifestError(f"Unknown key(s) {', '.join(unknown)} in '{_where(path + ('env',))}'")

    keep = env.get("keep")
    if keep is not None:
        if not isinstance(keep, list):
            raise ManifestError(f"'{_where(path + ('env', 'keep'))}' must be a list of patterns")
        keep = [_expect_string(pattern, path + ("env", "keep")) for pattern in keep]

    variables = _expect_mapping(env.get("vars") or {}, path + ("env", "vars"))
    files = _expect_mapping(node.get("files") or {}, path + ("files",))

    return Profile(
        name=name,
        keep=keep,
        vars={
            str(var): parse_value_spec(spec, path + ("env", "vars", str(var)))
            for var, spec in variables.items()
        },
        files={
            str(dest): parse_value_spec(spec, path + ("files", str(dest)))
            for dest, spec in files.items()
        },
    )


def parse_manifest(data: Any) -> Manifest:
    """
    Convert a parsed YAML document into a Manifest.

    Raises:
        ManifestError: If the document is structurally invalid
    """
    if not data:
        raise ManifestError("Manifest is empty")
    data = _expect_mapping(data, ())
    unknown = sorted(set(data) - {"version", "profiles"})
    if unknown:
        raise ManifestError(f"Unknown top-level key(s) in manifest: {', '.join(unknown)}")
    if "version" not in data:
        raise ManifestError(
            "Missing 'version' in manifest\n"
            "Required format:\n"
            "version: \"0.1.0\"\n"
            "profiles:\n"
            "  default: ..."
        )

    profiles = _expect_mapping(data.get("profiles") or {}, ("profiles",))
    return Manifest(
        version=_expect_string(data["version"], ("version",)),
        profiles={str(name): parse_profile(str(name), node) for name, node in profiles.items()},
    )


def _parse_version(version: str) -> Tuple[int, int, int]:
    parts = version.strip().split(".")
    if len(parts) != 3 or not all(part.isdigit() for part in parts):
        raise ManifestError(f"Invalid version format in manifest: '{version}' (expected MAJOR.MINOR.PATCH)")
    return int(parts[0]), int(parts[1]), int(parts[2])


def check_version(manifest_version: str, program_version: str) -> None:
    """
    Reject manifests written for an incompatible program version.

    Raises:
        ManifestError: On a major mismatch, or when the manifest is newer
    """
    program = _parse_version(program_version)
    if program == (0, 0, 0):
        # Development build.
        return
    manifest = _parse_version(manifest_version)

    if manifest[0] != program[0]:
        raise ManifestError(
            f"Manifest version {manifest_version} is incompatible with secenv {program_version}. "
            f"Major version mismatch."
        )
    if manifest > program:
        raise ManifestError(
            f"Manifest version {manifest_version} is newer than secenv {program_version}. "
            f"Please upgrade secenv."
        )


def load_manifest(config_path: str, program_version: Optional[str] = None) -> Manifest:
    """
    Load and validate a manifest from a YAML file.

    Args:
        config_path: Path to the manifest
        program_version: When given, the manifest version is checked against it

    Returns:
        Parsed Manifest

    Raises:
        ManifestError: If the file is missing, unreadable, invalid or incompatible
    """
    if not os.path.exists(config_path):
        raise ManifestError(
            f"Manifest not found at: {config_path}\n"
            f"Create one with: secenv init --path {config_path}"
        )

    try:
        with open(config_path, 'r') as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ManifestError(f"Failed to parse YAML manifest at {config_path}: {e}") from e
    except OSError as e:
        raise ManifestError(f"Failed to read manifest at {config_path}: {e}") from e

    try:
        manifest = parse_manifest(data)
    except ManifestError as e:
        raise ManifestError(f"Invalid manifest at {config_path}: {e}") from e

    if program_version is not None:
        check_version(manifest.version, program_version)

    logger.info(f"Manifest loaded successfully from {config_path}")
    logger.debug(f"Profiles declared: {', '.join(sorted(manifest.profiles)) or 'none'}")
    return manifest


def write_example_manifest(path: str, program_version: str, force: bool = False) -> None:
    """
    Write a commented example manifest.

    Raises:
        ManifestError: If the file exists and force is not set, or writing fails
    """
    if os.path.exists(path) and not force:
        raise ManifestError(f"Manifest '{path}' already exists. Use --force to overwrite.")
    try:
        with open(path, 'w') as f:
            f.write(EXAMPLE_MANIFEST.format(version=program_version))
    except OSError as e:
        raise ManifestError(f"Failed to write manifest {path}: {e}") from e
    logger.info(f"Example manifest written to {path}")
