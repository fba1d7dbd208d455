from __future__ import annotations

import asyncio
import json
import logging
import ssl
from dataclasses import dataclass

import websockets
from websockets.exceptions import ConnectionClosed, InvalidHandshake, InvalidURI, WebSocketException

from .config import GIGACHARGER_TIMEOUT_SEC, GIGACHARGER_WS_URL, USER_AGENT
from .credentials import SessionToken
from .errors import (
    ABNORMAL_CLOSURE,
    NORMAL_CLOSURE,
    AuthorizationTimeout,
    ChargerConnectionError,
    GigachargerError,
    SendError,
    UnexpectedClosure,
)

logger = logging.getLogger(__name__)


class AuthorizerState:
    CONNECTING = "Connecting"
    OPEN = "Open"
    AWAITING_REPLY = "AwaitingReply"
    CLOSED_SUCCESS = "Closed[Success]"
    CLOSED_FAILURE = "Closed[Failure]"

    TERMINAL = (CLOSED_SUCCESS, CLOSED_FAILURE)


@dataclass
class ChargeResult:
    charger_id: str
    energy_kwh: float | None
    status: str | None = None
    raw: str = ""


def build_command(charger_id: str) -> str:
    return json.dumps(["drain/start", charger_id], separators=(",", ":"))


def parse_reply(raw: str) -> tuple[str | None, float | None]:
    """Return ``(status tag, kWh)`` from a reply such as
    ``["session",[10334,1441,0.001,7400,1],null]``.

    The energy counter is the second field, either directly or inside the
    nested array, in watt-hours.
    """
    try:
        reply = json.loads(raw)
    except ValueError:
        return None, None
    if not isinstance(reply, list) or not reply:
        return None, None

    status = reply[0] if isinstance(reply[0], str) else None
    counter = reply[1] if len(reply) > 1 else None
    if isinstance(counter, list):
        counter = counter[1] if len(counter) > 1 else None
    if isinstance(counter, bool) or not isinstance(counter, (int, float)):
        return status, None
    return status, counter / 1000


def insecure_ssl_context() -> ssl.SSLContext:
    # The vendor's WebSocket host serves a certificate that does not validate.
    # Used for that endpoint only; nothing else in the bridge skips verification.
    ctx = ssl.create_default_context()
    ctx.check_hostname = False
    ctx.verify_mode = ssl.CERT_NONE
    return ctx


def _closure(e: ConnectionClosed) -> UnexpectedClosure:
    code = e.rcvd.code if e.rcvd is not None else ABNORMAL_CLOSURE
    reason = e.rcvd.reason if e.rcvd is not None else ""
    logger.error(f"Gigacharger closed the connection before replying (code={code})")
    return UnexpectedClosure(code, reason)


class _Attempt:
    """One authorization run. Settles exactly once; later events are ignored."""

    def __init__(self, charger_id: str) -> None:
        self.charger_id = charger_id
        self.state = AuthorizerState.CONNECTING
        self.ws = None
        self.outcome: ChargeResult | GigachargerError | None = None

    def move(self, state: str) -> None:
        if self.state in AuthorizerState.TERMINAL:
            return
        logger.debug(f"[{self.charger_id}] {self.state} -> {state}")
        self.state = state

    def settle(self, outcome: ChargeResult | GigachargerError) -> bool:
        if self.state in AuthorizerState.TERMINAL:
            logger.debug(f"[{self.charger_id}] ignoring late outcome: {outcome!r}")
            return False
        self.move(
            AuthorizerState.CLOSED_SUCCESS if isinstance(outcome, ChargeResult) else AuthorizerState.CLOSED_FAILURE
        )
        self.outcome = outcome
        return True

    def result(self) -> ChargeResult:
        if isinstance(self.outcome, GigachargerError):
            raise self.outcome
        if self.outcome is None:
            raise ChargerConnectionError("Authorization ended without an outcome")
        return self.outcome


class ChargeAuthorizer:
    """Sends one ``drain/start`` command over a short-lived WebSocket.

    The vendor protocol has no request ids: one socket carries exactly one
    command and the first frame received is taken as its reply.
    """

    def __init__(
        self,
        ws_url: str = GIGACHARGER_WS_URL,
        user_agent: str = USER_AGENT,
        timeout: float = GIGACHARGER_TIMEOUT_SEC,
        verify_tls: bool = False,
        close_timeout: float = 5.0,
        close_grace: float = 0.25,
    ) -> None:
        self.ws_url = ws_url
        self.user_agent = user_agent
        self.timeout = timeout
        self.verify_tls = verify_tls
        self.close_timeout = close_timeout
        self.close_grace = close_grace

    def _connect_kwargs(self, token: SessionToken) -> dict:
        kwargs = {
            "additional_headers": {
                "Cookie": f"manix-sess={token.value}",
                "Cache-Control": "no-cache",
                "Pragma": "no-cache",
                "Accept-Encoding": "gzip, deflate",
                "Accept-Language": "en-US,en;q=0.9",
            },
            "user_agent_header": self.user_agent,
            "open_timeout": None,  # bounded by self.timeout
            "close_timeout": self.close_timeout,
        }
        if self.ws_url.startswith("wss://") and not self.verify_tls:
            kwargs["ssl"] = insecure_ssl_context()
        return kwargs

    async def authorize(self, token: SessionToken, charger_id: str) -> ChargeResult:
        attempt = _Attempt(charger_id)
        logger.info(f"Authorizing charging on {charger_id} via {self.ws_url}")
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.timeout
        try:
            await asyncio.wait_for(self._exchange(attempt, token), timeout=self.timeout)
        except asyncio.TimeoutError:
            if attempt.settle(AuthorizationTimeout(f"No reply from Gigacharger within {self.timeout:g}s")):
                logger.error("Gigacharger request timed out")
        finally:
            # whatever is left of the budget, but always enough to send the close frame
            await self._close(attempt, max(deadline - loop.time(), self.close_grace))
        result = attempt.result()
        logger.info(f"Charging authorized on {charger_id}: energy transfer {result.energy_kwh} kWh")
        return result

    async def _exchange(self, attempt: _Attempt, token: SessionToken) -> None:
        try:
            attempt.ws = await websockets.connect(self.ws_url, **self._connect_kwargs(token))
        except (OSError, InvalidHandshake, InvalidURI) as e:
            logger.error(f"Could not connect to Gigacharger's WebSocket: {e}")
            attempt.settle(ChargerConnectionError(f"Could not connect to Gigacharger's WebSocket: {e}"))
            return

        attempt.move(AuthorizerState.OPEN)
        try:
            await attempt.ws.send(build_command(attempt.charger_id))
        except ConnectionClosed as e:
            attempt.settle(_closure(e))
            return
        except (OSError, WebSocketException) as e:
            logger.error(f"Error sending the start command: {e}")
            attempt.settle(SendError(f"Could not authorize charging - error sending the start command: {e}"))
            return

        attempt.move(AuthorizerState.AWAITING_REPLY)
        try:
            raw = await attempt.ws.recv()
        except ConnectionClosed as e:
            attempt.settle(_closure(e))
            return
        except (OSError, WebSocketException) as e:
            logger.error(f"WebSocket error while waiting for reply: {e}")
            attempt.settle(ChargerConnectionError(f"WebSocket error: {e}"))
            return

        if isinstance(raw, bytes):
            raw = raw.decode("utf-8", errors="replace")
        logger.info(f"Response from Gigacharger: {raw}")
        status, energy_kwh = parse_reply(raw)
        if energy_kwh is None:
            logger.warning("Reply carried no energy counter")
        attempt.settle(ChargeResult(attempt.charger_id, energy_kwh, status, raw))

    async def _close(self, attempt: _Attempt, budget: float) -> None:
        """Close with code 1000; drop the connection if the peer does not
        finish the closing handshake within ``budget`` seconds."""
        ws = attempt.ws
        if ws is None:
            return
        try:
            await asyncio.wait_for(ws.close(code=NORMAL_CLOSURE), timeout=budget)
        except asyncio.TimeoutError:
            logger.warning("Closing handshake with Gigacharger did not finish - dropping the connection")
            ws.transport.abort()
