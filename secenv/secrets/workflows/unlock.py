"""Workflow for unlocking a profile and running a command with it."""
import logging
import os
from typing import Mapping, Optional, Sequence

from ..domains.models import Manifest
from .environment import compose
from .launcher import ExitOutcome, ProcessLauncher
from .profile_resolver import ProfileResolver

logger = logging.getLogger(__name__)


def unlock(
    manifest: Manifest,
    profile_name: str,
    command: Optional[Sequence[str]] = None,
    force: bool = False,
    host_env: Optional[Mapping[str, str]] = None,
    resolver: Optional[ProfileResolver] = None,
    launcher: Optional[ProcessLauncher] = None,
) -> ExitOutcome:
    """
    Resolve a profile and run *command* with it.

    Args:
        manifest: Parsed manifest
        profile_name: Profile to unlock
        command: argv to run; without one the resolved variables are printed
        force: Overwrite files that already exist
        host_env: Host environment (defaults to os.environ)
        resolver: Profile resolver (defaults to GCP/GnuPG backed resolution)
        launcher: Process launcher

    Returns:
        ExitOutcome of the command (success when only printing)

    Behavior:
        - Nothing is staged or run unless every entry resolves
        - Files are created before the command and removed after it,
          whether it succeeds, fails or is interrupted
        - With keep patterns only matching host variables are passed on
    """
    profile = manifest.get_profile(profile_name)
    resolver = resolver or ProfileResolver()
    launcher = launcher or ProcessLauncher()

    resolved = resolver.resolve(profile)
    logger.info(
        f"Profile '{profile_name}': {len(resolved.environment)} variable(s), {len(resolved.files)} file(s)"
    )

    env = compose(
        resolved.environment,
        os.environ if host_env is None else host_env,
        resolved.keep_patterns,
    )
    return launcher.run(
        env,
        command,
        files=resolved.files,
        force=force,
        variables=resolved.environment,
    )
