from __future__ import annotations

import logging

import httpx

from .config import GIGACHARGER_API_HOST, USER_AGENT
from .credentials import SessionToken
from .errors import AuthenticationError

logger = logging.getLogger(__name__)

SESSION_COOKIE = "manix-sess"


def extract_session_cookie(set_cookie_headers: list[str]) -> str | None:
    """Return the value between ``manix-sess=`` and the next ``;``."""
    marker = f"{SESSION_COOKIE}="
    for header in set_cookie_headers:
        if marker not in header:
            continue
        value = header.split(marker, 1)[1].split(";", 1)[0]
        if value:
            return value
    return None


class Authenticator:
    """Exchanges email/password for a session token.

    The login request mimics the vendor's Android app (webview headers and
    the ``X-Requested-With`` package name); the token comes back as a cookie.
    """

    def __init__(
        self,
        api_host: str = GIGACHARGER_API_HOST,
        user_agent: str = USER_AGENT,
        client: httpx.AsyncClient | None = None,
        timeout: float = 15.0,
    ) -> None:
        self.api_host = api_host.rstrip("/")
        self.user_agent = user_agent
        self.timeout = timeout
        self._client = client

    def _headers(self) -> dict:
        return {
            "User-Agent": self.user_agent,
            "X-Requested-With": "net.gigacharger.app",
            "Sec-Fetch-Site": "cross-site",
            "Sec-Fetch-Mode": "cors",
            "Sec-Fetch-Dest": "empty",
            "Accept-Encoding": "gzip, deflate",
            "Accept-Language": "en-US,en;q=0.9",
            "Accept": "application/json",
        }

    async def _post(self, client: httpx.AsyncClient, email: str, password: str) -> httpx.Response:
        # (None, value) parts make httpx send multipart/form-data without filenames
        form = {
            "remember": (None, "1"),
            "email": (None, email),
            "password": (None, password),
        }
        resp = await client.post(
            f"{self.api_host}/login", files=form, headers=self._headers(), timeout=self.timeout
        )
        resp.raise_for_status()
        return resp

    async def login(self, email: str, password: str) -> SessionToken:
        logger.info(f"Logging in to Gigacharger as {email}")
        try:
            if self._client is not None:
                resp = await self._post(self._client, email, password)
            else:
                async with httpx.AsyncClient() as client:
                    resp = await self._post(client, email, password)
        except httpx.HTTPError as e:
            logger.error(f"Gigacharger login request failed: {e}")
            raise AuthenticationError(f"Could not log in to Gigacharger: {e}") from e

        value = extract_session_cookie(resp.headers.get_list("set-cookie"))
        if value is None:
            logger.error("Gigacharger login response carried no session cookie")
            raise AuthenticationError(
                "Unable to log in to Gigacharger - no session cookie found in response",
                cause=AuthenticationError.MISSING_COOKIE,
            )
        token = SessionToken(value)
        logger.info(f"Login successful - session {token.short()}")
        return token
