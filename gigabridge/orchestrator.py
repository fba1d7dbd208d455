from __future__ import annotations

import asyncio
import logging

from .auth import Authenticator
from .authorizer import ChargeAuthorizer, ChargeResult
from .credentials import CredentialStore, SessionToken
from .errors import (
    AuthorizationTimeout,
    ChargerConnectionError,
    ConfigurationError,
    CredentialError,
    GigachargerError,
    SendError,
    UnexpectedClosure,
)

logger = logging.getLogger(__name__)

DEFAULT_REAUTH_ON = frozenset({"connection", "abnormal_closure"})


def is_reauth_trigger(error: GigachargerError, kinds) -> bool:
    """Whether ``error`` looks like the vendor rejecting a stale session."""
    if isinstance(error, ChargerConnectionError):
        return "connection" in kinds
    if isinstance(error, UnexpectedClosure):
        return "closure" in kinds or ("abnormal_closure" in kinds and error.abnormal)
    if isinstance(error, SendError):
        return "send" in kinds
    if isinstance(error, AuthorizationTimeout):
        return "timeout" in kinds
    return False


class SessionOrchestrator:
    """Ensures a session token, then authorizes charging with it.

    Only one login-or-authorize flow runs at a time. Concurrent requests for
    the same charger share the in-flight flow and its result; requests for
    other chargers wait for the lock.
    """

    def __init__(
        self,
        authenticator: Authenticator,
        authorizer: ChargeAuthorizer,
        store: CredentialStore | None = None,
        email: str | None = None,
        password: str | None = None,
        default_charger_id: str | None = None,
        reauth_on=DEFAULT_REAUTH_ON,
    ) -> None:
        self.authenticator = authenticator
        self.authorizer = authorizer
        self.store = store if store is not None else CredentialStore()
        self.email = email
        self.password = password
        self.default_charger_id = default_charger_id
        self.reauth_on = frozenset(reauth_on)
        self._lock = asyncio.Lock()
        self._inflight: dict[str, asyncio.Future] = {}

    @property
    def has_token(self) -> bool:
        return self.store.get_cached() is not None

    def invalidate(self) -> None:
        logger.info("Dropping cached Gigacharger session")
        self.store.clear()

    async def authorize_charging(self, charger_id: str | None = None) -> ChargeResult:
        charger_id = charger_id or self.default_charger_id
        if not charger_id:
            logger.error("No charger ID supplied - check env variables")
            raise ConfigurationError("No charger ID supplied")

        task = self._inflight.get(charger_id)
        if task is None:
            task = asyncio.ensure_future(self._run(charger_id))
            self._inflight[charger_id] = task
            task.add_done_callback(lambda t, cid=charger_id: self._forget(cid, t))
        else:
            logger.info(f"Joining in-flight authorization for charger {charger_id}")
        # shield: one caller giving up must not cancel the flow for the others
        return await asyncio.shield(task)

    def _forget(self, charger_id: str, task: asyncio.Future) -> None:
        if self._inflight.get(charger_id) is task:
            del self._inflight[charger_id]

    async def _run(self, charger_id: str) -> ChargeResult:
        async with self._lock:
            logger.info(f"Starting authorization for charger ID {charger_id}")
            token, fresh = await self._ensure_token()
            try:
                return await self.authorizer.authorize(token, charger_id)
            except GigachargerError as e:
                if fresh or not is_reauth_trigger(e, self.reauth_on):
                    raise
                if not self.email or not self.password:
                    logger.error(f"Cached session may be stale ({e.kind}) but no credentials are configured to log in again")
                    raise
                logger.warning(f"Authorization with cached session failed ({e.kind}): {e} - logging in again")

            self.store.clear()
            token, _ = await self._ensure_token()
            return await self.authorizer.authorize(token, charger_id)

    async def _ensure_token(self) -> tuple[SessionToken, bool]:
        """Return the cached token, logging in first when there is none.

        The flag tells whether the token was obtained by this call.
        """
        token = self.store.get_cached()
        if token is not None:
            return token, False

        logger.info("Not authenticated with Gigacharger - attempting to log in...")
        if not self.email or not self.password:
            logger.error("No credentials for Gigacharger supplied - check env variables")
            raise CredentialError("No Gigacharger credentials supplied")
        token = await self.authenticator.login(self.email, self.password)
        self.store.set(token)
        return token, True
