"""Run the target command with staged files and the composed environment."""
import logging
import subprocess
import sys
from dataclasses import dataclass
from typing import Mapping, Optional, Sequence

from ..domains.errors import LaunchError
from ..domains.models import EphemeralFile
from .environment import format_variables
from .ephemeral_files import EphemeralFileManager

logger = logging.getLogger(__name__)

# Outcome codes; the CLI maps its own failures to further codes.
EXIT_SUCCESS = 0
EXIT_SIGNALED = 128

# Grace period before SIGKILL after SIGTERM when stopping the child.
GRACEFUL_SHUTDOWN_S = 5


@dataclass(frozen=True)
class ExitOutcome:
    """How the child ended. returncode follows subprocess: negative means signal."""
    returncode: int = EXIT_SUCCESS

    @property
    def signal(self) -> Optional[int]:
        return -self.returncode if self.returncode < 0 else None

    @property
    def exit_code(self) -> int:
        """Child's exit code, or EXIT_SIGNALED when it was killed by a signal."""
        if self.signal is not None:
            return EXIT_SIGNALED
        return self.returncode


def _terminate_process(proc: subprocess.Popen) -> None:
    """
    Stop the child: SIGTERM, wait up to GRACEFUL_SHUTDOWN_S, then SIGKILL.

    A second interrupt while waiting escalates straight to SIGKILL.
    """
    if proc.poll() is not None:
        return
    try:
        proc.terminate()
        proc.wait(timeout=GRACEFUL_SHUTDOWN_S)
    except (subprocess.TimeoutExpired, KeyboardInterrupt):
        proc.kill()
        proc.wait()
    except ProcessLookupError:
        pass


class ProcessLauncher:
    """Stages files, runs the command (or prints variables), always cleans up."""

    def __init__(self, file_manager: Optional[EphemeralFileManager] = None, stdout=None):
        self.file_manager = file_manager or EphemeralFileManager()
        self._stdout = stdout

    @property
    def stdout(self):
        return self._stdout if self._stdout is not None else sys.stdout

    def run(
        self,
        env: Mapping[str, str],
        command: Optional[Sequence[str]] = None,
        files: Sequence[EphemeralFile] = (),
        force: bool = False,
        variables: Optional[Mapping[str, str]] = None,
    ) -> ExitOutcome:
        """
        Stage files, then run *command* with *env*, then remove the files.

        Args:
            env: Complete child environment
            command: argv; when empty or None, *variables* are printed instead
            files: Pending ephemeral files
            force: Overwrite existing destinations
            variables: What to print without a command (defaults to env)

        Returns:
            ExitOutcome mirroring the child; cleanup never changes it

        Raises:
            StageError: If staging fails; the command is not spawned
            LaunchError: If the command cannot be spawned
            KeyboardInterrupt: If interrupted; the child is stopped and
                files are removed before this propagates
        """
        with self.file_manager.staged(files, force):
            if not command:
                self._print(env if variables is None else variables)
                return ExitOutcome(EXIT_SUCCESS)
            return self._spawn_and_wait(list(command), env)

    def _print(self, variables: Mapping[str, str]) -> None:
        for line in format_variables(variables):
            print(line, file=self.stdout)
        self.stdout.flush()

    def _spawn_and_wait(self, command: Sequence[str], env: Mapping[str, str]) -> ExitOutcome:
        logger.info(f"Running {command[0]}")
        try:
            proc = subprocess.Popen(command, env=dict(env))
        except OSError as e:
            raise LaunchError(f"Failed to execute command '{command[0]}': {e.strerror or e}") from e

        try:
            returncode = proc.wait()
        except KeyboardInterrupt:
            logger.warning("Interrupted, stopping command")
            _terminate_process(proc)
            raise

        outcome = ExitOutcome(returncode)
        if outcome.signal is not None:
            logger.warning(f"Command {command[0]} was terminated by signal {outcome.signal}")
        else:
            logger.debug(f"Command {command[0]} exited with code {returncode}")
        return outcome
