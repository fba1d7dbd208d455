"""Failure types for the charging bridge.

Every public operation either returns a result or raises one of these.
``kind`` is a short machine-readable tag used by the HTTP API and the
scheduler when reporting the failure.
"""

NORMAL_CLOSURE = 1000
ABNORMAL_CLOSURE = 1006


class GigachargerError(Exception):
    kind = "error"


class ConfigurationError(GigachargerError):
    """No charger id could be resolved."""

    kind = "configuration"


class CredentialError(GigachargerError):
    """Login is required but no email/password are configured."""

    kind = "credentials"


class AuthenticationError(GigachargerError):
    kind = "authentication"

    NETWORK = "network"
    MISSING_COOKIE = "missing_cookie"

    def __init__(self, message: str, cause: str = NETWORK) -> None:
        super().__init__(message)
        self.cause = cause


class ChargerConnectionError(GigachargerError):
    """The WebSocket could not be opened or broke while waiting."""

    kind = "connection"


class SendError(GigachargerError):
    kind = "send"


class UnexpectedClosure(GigachargerError):
    """The socket closed before the charger replied."""

    kind = "closure"

    def __init__(self, code: int, reason: str = "") -> None:
        super().__init__(f"Unexpected connection closure (code={code}{', ' + reason if reason else ''})")
        self.code = code
        self.reason = reason

    @property
    def abnormal(self) -> bool:
        return self.code != NORMAL_CLOSURE


class AuthorizationTimeout(GigachargerError):
    kind = "timeout"


class RemoteCommandError(GigachargerError):
    """A vehicle API command failed or reported ``result: false``."""

    kind = "remote_command"
