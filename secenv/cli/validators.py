"""Input validation for CLI arguments."""
import re
import sys
from typing import List, Optional


def validate_profile_name(name: str) -> None:
    """
    Validate a profile name given on the command line.

    Args:
        name: Profile name to validate

    Raises:
        SystemExit with code 2 if validation fails
    """
    if not name:
        print("Error: Profile name cannot be empty", file=sys.stderr)
        sys.exit(2)

    if not re.match(r'^[A-Za-z0-9_.-]+$', name):
        print(f"Error: Invalid profile name '{name}'", file=sys.stderr)
        print("\nAllowed characters: letters, numbers, dots (.), underscores (_), hyphens (-)", file=sys.stderr)
        sys.exit(2)


def normalize_command(command: Optional[List[str]]) -> Optional[List[str]]:
    """
    Turn the trailing COMMAND arguments into an argv, or None.

    argparse may keep the '--' separator; it is dropped here.

    Raises:
        SystemExit with code 2 if the program name is empty
    """
    if not command:
        return None
    if command[0] == "--":
        command = command[1:]
    if not command:
        return None
    if not command[0]:
        print("Error: Command cannot be an empty string", file=sys.stderr)
        sys.exit(2)
    return command
