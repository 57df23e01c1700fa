"""Error formatting utilities.

Turns errors into the single user-facing message shown by the host.
"""

from typing import Any

# Trailing stderr lines kept when describing a failed command.
STDERR_TAIL_LINES = 5


def format_error(error: Any) -> str:
    """Format an error into a user-friendly one-paragraph message."""
    from ..lsp.errors import CommandError, JuliaLSError

    if isinstance(error, CommandError):
        message = str(error)
        tail = [line for line in error.stderr.splitlines() if line.strip()][-STDERR_TAIL_LINES:]
        if tail:
            message += ":\n" + "\n".join(tail)
        return message

    if isinstance(error, JuliaLSError):
        return str(error)

    if isinstance(error, Exception):
        return f"{error.__class__.__name__}: {error}"

    return str(error)
