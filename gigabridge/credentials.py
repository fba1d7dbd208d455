from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone


@dataclass(frozen=True)
class SessionToken:
    """Value of the vendor's ``manix-sess`` cookie."""

    value: str
    acquired_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def short(self) -> str:
        # enough to tell tokens apart in logs
        return f"{self.value[:6]}..."


class CredentialStore:
    """Holds at most one session token in process memory.

    Not synchronised; :class:`~gigabridge.orchestrator.SessionOrchestrator`
    is the only writer and serialises its own access.
    """

    def __init__(self) -> None:
        self._token: SessionToken | None = None

    def get_cached(self) -> SessionToken | None:
        return self._token

    def set(self, token: SessionToken) -> None:
        self._token = token

    def clear(self) -> None:
        self._token = None
