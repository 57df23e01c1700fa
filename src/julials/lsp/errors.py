"""Errors raised while bootstrapping and supervising the language server."""

from typing import Sequence


class JuliaLSError(Exception):
    """Base class for julials errors."""


class ConfigurationError(JuliaLSError):
    """No interpreter could be resolved and no precompiled server exists."""


class CommandError(JuliaLSError):
    """An external command exited non-zero or could not be launched."""

    def __init__(self, cmd: Sequence[str], returncode: int | None, stderr: str = ""):
        self.cmd = list(cmd)
        self.returncode = returncode
        self.stderr = stderr
        if returncode is None:
            reason = "could not be launched"
        else:
            reason = f"exited with status {returncode}"
        super().__init__(f"command {self.cmd[0] if self.cmd else '?'} {reason}")


class ServerStartError(JuliaLSError):
    """The server process could not be spawned or failed to initialize."""


class ResponseError(JuliaLSError):
    """The server answered a request with a JSON-RPC error."""

    def __init__(self, code: int | None, message: str):
        self.code = code
        super().__init__(message)


class RegistrationError(JuliaLSError):
    """A client with the same id is already registered with the host."""
