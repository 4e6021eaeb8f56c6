"""Compose the child environment and render resolved variables."""
import re
from typing import Dict, List, Mapping, Optional, Pattern, Sequence

from ..domains.errors import ConfigurationError


def compile_keep_pattern(pattern: str) -> Pattern:
    """
    Compile one keep pattern. Patterns are not anchored implicitly.

    Raises:
        ConfigurationError: If the pattern is not a valid regular expression
    """
    try:
        return re.compile(pattern)
    except re.error as e:
        raise ConfigurationError(f"invalid keep pattern '{pattern}': {e}") from e


def compose(
    resolved: Mapping[str, str],
    host_env: Mapping[str, str],
    keep_patterns: Optional[Sequence[Pattern]] = None,
) -> Dict[str, str]:
    """
    Merge resolved variables with the host environment.

    Args:
        resolved: Variables resolved from the profile
        host_env: The host environment
        keep_patterns: None keeps every host variable; a list (possibly
            empty) keeps only host variables whose name matches any pattern

    Returns:
        The child environment; resolved values win on name collisions
    """
    if keep_patterns is None:
        env = dict(host_env)
    else:
        env = {
            name: value
            for name, value in host_env.items()
            if any(pattern.search(name) for pattern in keep_patterns)
        }
    env.update(resolved)
    return env


def format_variables(variables: Mapping[str, str]) -> List[str]:
    """NAME=VALUE lines sorted by name. Values are not quoted or escaped."""
    return [f"{name}={variables[name]}" for name in sorted(variables)]
