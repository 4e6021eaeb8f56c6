"""Resolve every variable and file declared by a profile."""
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Pattern

from ..domains.errors import (
    ConfigurationError,
    EncodingError,
    EntryError,
    ProfileResolutionError,
    SecenvError,
)
from ..domains.models import (
    EphemeralFile,
    Profile,
    ResolvedEnvironment,
    validate_variable_name,
)
from .environment import compile_keep_pattern
from .value_provider import ValueProvider, validate_value_spec

logger = logging.getLogger(__name__)


@dataclass
class ResolvedProfile:
    """Everything a profile resolves to for one invocation."""
    name: str
    environment: ResolvedEnvironment
    files: List[EphemeralFile] = field(default_factory=list)
    keep_patterns: Optional[List[Pattern]] = None


class ProfileResolver:
    """
    Drives the value provider over a profile's variables and files.

    Every entry is attempted; failures are aggregated and each one is
    attributed to its variable name or file path.
    """

    def __init__(self, value_provider: Optional[ValueProvider] = None):
        self.value_provider = value_provider or ValueProvider()

    def validate(self, profile: Profile) -> List[Pattern]:
        """
        Static checks, run before any secret access.

        Returns:
            Compiled keep patterns (empty list when keep is absent)

        Raises:
            ProfileResolutionError: Listing every malformed entry
        """
        errors: List[EntryError] = []
        patterns: List[Pattern] = []

        for pattern in profile.keep or []:
            try:
                patterns.append(compile_keep_pattern(pattern))
            except ConfigurationError as e:
                errors.append(EntryError("keep", pattern, e))

        for name, spec in profile.vars.items():
            try:
                validate_variable_name(name)
                validate_value_spec(spec)
            except ConfigurationError as e:
                errors.append(EntryError("variable", name, e))

        for path, spec in profile.files.items():
            try:
                if not path:
                    raise ConfigurationError("file path cannot be empty")
                validate_value_spec(spec)
            except ConfigurationError as e:
                errors.append(EntryError("file", path, e))

        if errors:
            raise ProfileResolutionError(profile.name, errors)
        return patterns

    def resolve(self, profile: Profile) -> ResolvedProfile:
        """
        Resolve a profile.

        Returns:
            ResolvedProfile with the variables, the pending files in
            manifest order, and the compiled keep patterns

        Raises:
            ProfileResolutionError: If any entry fails; nothing is resolved
                when static validation already fails
        """
        patterns = self.validate(profile)
        errors: List[EntryError] = []

        variables: Dict[str, str] = {}
        for name, spec in profile.vars.items():
            try:
                raw = self.value_provider.resolve(spec)
                try:
                    value = raw.decode("utf-8")
                except UnicodeDecodeError as e:
                    raise EncodingError("resolved value is not valid UTF-8 text") from e
                if "\x00" in value:
                    raise EncodingError("resolved value contains a NUL character")
                variables[name] = value
                logger.debug(f"Resolved variable {name}")
            except SecenvError as e:
                errors.append(EntryError("variable", name, e))

        files: List[EphemeralFile] = []
        for path, spec in profile.files.items():
            try:
                files.append(EphemeralFile(path=path, content=self.value_provider.resolve(spec)))
                logger.debug(f"Resolved file {path}")
            except SecenvError as e:
                errors.append(EntryError("file", path, e))

        if errors:
            raise ProfileResolutionError(profile.name, errors)

        return ResolvedProfile(
            name=profile.name,
            environment=ResolvedEnvironment(variables),
            files=files,
            keep_patterns=None if profile.keep is None else patterns,
        )
