"""CLI entrypoint for secenv."""
import argparse
import logging
import signal
import sys

from ..secrets.domains.config_loader import (
    DEFAULT_MANIFEST_PATH,
    load_manifest,
    write_example_manifest,
)
from ..secrets.domains.errors import LaunchError, ProfileResolutionError, SecenvError
from ..secrets.domains.passphrase import PASSPHRASE_ENV_VAR, default_passphrase_provider
from ..secrets.domains.pgp import PgpDecryptor
from ..secrets.workflows.launcher import EXIT_SIGNALED
from ..secrets.workflows.profile_resolver import ProfileResolver
from ..secrets.workflows.unlock import unlock
from ..secrets.workflows.value_provider import ValueProvider
from .validators import normalize_command, validate_profile_name

VERSION = "0.1.0"

# Exit codes (the command's own code and EXIT_SIGNALED come from the launcher)
EXIT_FAILURE = 1
EXIT_USAGE = 2
EXIT_LAUNCH_FAILURE = 127

# Configure logging to stderr; stdout is reserved for NAME=VALUE output
logging.basicConfig(
    level=logging.WARNING,
    format="%(message)s",
    stream=sys.stderr
)
logger = logging.getLogger(__name__)


def _set_verbosity(verbose: int) -> None:
    if verbose >= 2:
        logging.getLogger().setLevel(logging.DEBUG)
    elif verbose == 1:
        logging.getLogger().setLevel(logging.INFO)


def _install_signal_handlers() -> None:
    """Route SIGTERM/SIGHUP through the interrupt path so staged files are removed."""
    for name in ("SIGTERM", "SIGHUP"):
        signum = getattr(signal, name, None)
        if signum is not None:
            signal.signal(signum, signal.default_int_handler)


def cmd_version(args):
    """Show version information."""
    print(f"secenv {VERSION}")


def cmd_init(args):
    """Write an example manifest."""
    try:
        write_example_manifest(args.path, VERSION, force=args.force)
    except SecenvError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(EXIT_FAILURE)

    print(f"Created example manifest: {args.path}")
    print("Edit the file to add your own variables, files and PGP keys.")


def cmd_unlock(args):
    """Resolve a profile and run a command with it (or print its variables)."""
    validate_profile_name(args.profile)
    command = normalize_command(args.command)

    try:
        manifest = load_manifest(args.config, program_version=VERSION)
        passphrases = default_passphrase_provider(prompt=not args.no_prompt)
        resolver = ProfileResolver(ValueProvider(decryptor=PgpDecryptor(passphrases=passphrases)))
        outcome = unlock(manifest, args.profile, command, force=args.force, resolver=resolver)
    except LaunchError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(EXIT_LAUNCH_FAILURE)
    except ProfileResolutionError as e:
        print(f"Error: {e}", file=sys.stderr)
        if e.is_configuration_error:
            print(f"\nNo secrets were accessed. Fix the entries above in {args.config}", file=sys.stderr)
        sys.exit(EXIT_FAILURE)
    except SecenvError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(EXIT_FAILURE)

    sys.exit(outcome.exit_code)


def main(argv=None):
    """Main CLI entrypoint.

    Exit codes:
        0   - Success
        N   - The command's own exit code
        1   - Manifest, resolution or staging error (nothing was run)
        2   - Usage errors (invalid arguments)
        127 - The command could not be started
        128 - The command (or secenv) was terminated by a signal
    """
    parser = argparse.ArgumentParser(
        prog="secenv",
        description="secenv - run commands with secrets from a declarative manifest",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Exit codes:
  0   - Success
  N   - The command's own exit code
  1   - Manifest, resolution or staging error (nothing was run)
  2   - Usage error (invalid arguments)
  127 - The command could not be started
  128 - The command (or secenv) was terminated by a signal

Environment variables:
  {PASSPHRASE_ENV_VAR} - Passphrase for protected PGP keys
  GNUPGHOME - GnuPG home used for 'gpg' key sources

Files declared by the profile are created before the command runs and
removed after it exits, also when it fails or is interrupted.
        """
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Log progress to stderr (-vv for debug output; values are never logged)"
    )

    subparsers = parser.add_subparsers(dest="command_name", help="Available commands")

    # version command
    _version_parser = subparsers.add_parser(
        "version",
        help="Show version information",
        description="Display the current version of secenv"
    )

    # init command
    init_parser = subparsers.add_parser(
        "init",
        help="Create an example manifest",
        description="Write a commented example manifest to get started."
    )
    init_parser.add_argument(
        "-p", "--path",
        default=DEFAULT_MANIFEST_PATH,
        help=f"Path for the new manifest (default: {DEFAULT_MANIFEST_PATH})"
    )
    init_parser.add_argument(
        "-f", "--force",
        action="store_true",
        help="Overwrite an existing file"
    )

    # unlock command
    unlock_parser = subparsers.add_parser(
        "unlock",
        help="Unlock a profile and run a command",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        description="""
Resolve the variables and files of a profile, decrypting secure values,
then run COMMAND with the variables in its environment.

Without COMMAND the variables are printed as NAME=VALUE lines, sorted by
name and unquoted, e.g. for: eval "$(secenv unlock)"

Examples:
  secenv unlock -- env
  secenv unlock -p production -- ./deploy.sh --verbose
        """
    )
    unlock_parser.add_argument(
        "-c", "--config",
        default=DEFAULT_MANIFEST_PATH,
        help=f"Path to the manifest (default: {DEFAULT_MANIFEST_PATH})"
    )
    unlock_parser.add_argument(
        "-p", "--profile",
        default="default",
        help="Profile to unlock (default: default)"
    )
    unlock_parser.add_argument(
        "-f", "--force",
        action="store_true",
        help="Overwrite files that already exist (they are removed afterwards)"
    )
    unlock_parser.add_argument(
        "--no-prompt",
        action="store_true",
        help=f"Never prompt for PGP passphrases (use {PASSPHRASE_ENV_VAR})"
    )
    unlock_parser.add_argument(
        "command",
        nargs=argparse.REMAINDER,
        metavar="COMMAND",
        help="Command to run, after '--'"
    )

    args = parser.parse_args(argv)
    _set_verbosity(args.verbose)

    # If no command provided, show help and exit with usage error code
    if not args.command_name:
        parser.print_help()
        sys.exit(EXIT_USAGE)

    _install_signal_handlers()

    # Route to command handlers
    try:
        if args.command_name == "version":
            cmd_version(args)
        elif args.command_name == "init":
            cmd_init(args)
        elif args.command_name == "unlock":
            cmd_unlock(args)
        else:
            parser.print_help()
            sys.exit(EXIT_USAGE)
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        sys.exit(EXIT_SIGNALED)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(EXIT_FAILURE)


if __name__ == "__main__":
    main()
