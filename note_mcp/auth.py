"""Session management for the note MCP Server.

This module handles:
- Holding the dynamic session cookie and XSRF token obtained at runtime
- Logging in with email/password and discovering the XSRF token, which the
  note API hands out from different places depending on the endpoint
- Building the auth headers for each request from static and dynamic credentials
"""
import asyncio
import json
import threading
from http.cookiejar import CookieJar, DefaultCookiePolicy
import httpx
from typing import Optional
import logging

from .config import (
    API_BASE_URL,
    CURRENT_USER_PATH,
    DEBUG,
    DEFAULT_HEADERS,
    HTTP_TIMEOUT_SECONDS,
    SESSION_COOKIE_NAME,
    SIGN_IN_PATH,
    USER_AGENT,
    XSRF_COOKIE_NAME,
    XSRF_HEADER_NAME,
)
from .models import AuthStatusResponse, Credentials

logger = logging.getLogger(__name__)


class ConfigurationError(Exception):
    """Raised when an authenticated call is made but no credentials are configured."""
    pass


class AuthenticationError(Exception):
    """Raised when a login required to proceed with a request fails."""
    pass


class AuthorizationError(Exception):
    """Raised when the API rejects a request with 401 or 403."""
    pass


def cookieless_jar() -> CookieJar:
    """Cookie jar that stores nothing.

    Session cookies live in AuthState only; HTTP clients must not replay
    Set-Cookie values on their own.
    """
    return CookieJar(policy=DefaultCookiePolicy(allowed_domains=[]))


def _mask(value: Optional[str]) -> str:
    if not value:
        return "<none>"
    return value[:6] + "..."


class AuthState:
    """Session cookie and XSRF token obtained at runtime.

    Both values start unset and are only written by `SessionManager.login`.
    They may be set independently of each other.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._session_cookie: Optional[str] = None
        self._xsrf_token: Optional[str] = None

    @property
    def session_cookie(self) -> Optional[str]:
        """Full `name=value` cookie pair, or None."""
        return self._session_cookie

    @property
    def xsrf_token(self) -> Optional[str]:
        return self._xsrf_token

    @property
    def is_authenticated(self) -> bool:
        return self._session_cookie is not None

    def update(
        self,
        session_cookie: Optional[str] = None,
        xsrf_token: Optional[str] = None,
    ) -> None:
        """Store new values together. None leaves a value unchanged."""
        with self._lock:
            if session_cookie is not None:
                self._session_cookie = session_cookie
            if xsrf_token is not None:
                self._xsrf_token = xsrf_token

    def snapshot(self) -> tuple[Optional[str], Optional[str]]:
        """Return (session_cookie, xsrf_token) read together."""
        with self._lock:
            return self._session_cookie, self._xsrf_token


def _cookie_pairs(response: httpx.Response) -> list[str]:
    """Return the leading `name=value` segment of every Set-Cookie header."""
    return [
        header.split(";", 1)[0].strip()
        for header in response.headers.get_list("set-cookie")
    ]


def tokens_from_set_cookie(response: httpx.Response) -> tuple[Optional[str], Optional[str]]:
    """Scan Set-Cookie headers for the session cookie and the XSRF token.

    Returns:
        (session cookie pair, XSRF token value); either may be None
    """
    session_cookie = None
    xsrf_token = None
    for pair in _cookie_pairs(response):
        name, _, value = pair.partition("=")
        if name == SESSION_COOKIE_NAME and value:
            session_cookie = pair
        elif name == XSRF_COOKIE_NAME and value:
            xsrf_token = value
    return session_cookie, xsrf_token


def session_cookie_from_body(text: str) -> Optional[str]:
    """Build the session cookie from a `{"data": {"token": ...}}` login body.

    Some successful logins return an empty or non-JSON body, so parse
    failures yield None.
    """
    try:
        payload = json.loads(text)
    except ValueError:
        return None
    if not isinstance(payload, dict):
        return None
    data = payload.get("data")
    if isinstance(data, dict) and data.get("token"):
        return f"{SESSION_COOKIE_NAME}={data['token']}"
    return None


def _retrieve_exception(task: asyncio.Future) -> None:
    """Mark a finished login task's exception as retrieved.

    Every caller awaiting the task may have been cancelled, in which case
    nobody else reads the exception and asyncio reports it at shutdown.
    """
    if not task.cancelled() and task.exception() is not None:
        logger.error(f"[SessionManager] Login task failed: {task.exception()!r}")


class SessionManager:
    """Owns the credential store and the session state of the process.

    Key features:
    - Logs in with email/password and collects the session cookie and XSRF
      token from the response body, Set-Cookie headers and X-XSRF-TOKEN header
    - Falls back to /v2/current_user to discover a missing XSRF token
    - Runs at most one login at a time; concurrent callers share its result
    - Builds per-request auth headers with operator-supplied cookies first
    """

    def __init__(
        self,
        credentials: Optional[Credentials] = None,
        base_url: str = API_BASE_URL,
        debug: bool = DEBUG,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = HTTP_TIMEOUT_SECONDS,
    ):
        """Initialize the session manager."""
        self.credentials = credentials if credentials is not None else Credentials.from_env()
        self.state = AuthState()
        self.debug = debug
        self.last_login_error: Optional[str] = None
        self._base_url = base_url.rstrip("/")
        self._transport = transport
        self._timeout = timeout
        self._http_client: Optional[httpx.AsyncClient] = None
        self._login_task: Optional[asyncio.Task] = None

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(
                timeout=self._timeout,
                transport=self._transport,
                cookies=cookieless_jar(),
            )
        return self._http_client

    async def close(self):
        """Close the HTTP client."""
        if self._http_client and not self._http_client.is_closed:
            await self._http_client.aclose()

    # ==========================================================================
    # Auth Headers
    # ==========================================================================

    def has_auth(self) -> bool:
        """Check whether any way to authenticate exists."""
        return self.state.is_authenticated or self.credentials.any_static_auth

    def build_auth_headers(self) -> dict[str, str]:
        """Build the Cookie and X-XSRF-TOKEN headers for a request.

        A configured cookie always wins over one obtained by login, even when
        the configured one may have expired. The XSRF token is chosen on its
        own: dynamic first, then configured.

        Returns:
            Header dict, empty when no credentials are available
        """
        headers: dict[str, str] = {}
        session_cookie, xsrf_token = self.state.snapshot()

        if self.credentials.has_static_cookie:
            if self.credentials.session_cookie:
                headers["Cookie"] = f"{SESSION_COOKIE_NAME}={self.credentials.session_cookie}"
        elif session_cookie:
            headers["Cookie"] = session_cookie

        if xsrf_token:
            headers[XSRF_HEADER_NAME] = xsrf_token
        elif self.credentials.xsrf_token:
            headers[XSRF_HEADER_NAME] = self.credentials.xsrf_token

        return headers

    # ==========================================================================
    # Login
    # ==========================================================================

    async def login(self) -> bool:
        """Log in with the configured email and password.

        Concurrent callers wait for the login already in flight instead of
        sending another sign-in request.

        Returns:
            True if the sign-in succeeded and a session cookie is in use
        """
        if not self.credentials.has_login_credentials:
            self.last_login_error = "Email or password is not configured"
            logger.error("[SessionManager] Email or password is not configured; cannot log in")
            return False

        if self._login_task is None or self._login_task.done():
            self._login_task = asyncio.ensure_future(self._login())
            self._login_task.add_done_callback(_retrieve_exception)
        elif self.debug:
            logger.debug("[SessionManager] Waiting for login already in progress")

        return await asyncio.shield(self._login_task)

    async def _login(self) -> bool:
        client = await self._get_http_client()
        url = f"{self._base_url}{SIGN_IN_PATH}"

        if self.debug:
            logger.debug(f"[SessionManager] Attempting login to {url}")

        try:
            response = await client.post(
                url,
                json={"login": self.credentials.email, "password": self.credentials.password},
                headers=DEFAULT_HEADERS,
            )
            response_text = response.text
        except httpx.RequestError as e:
            self.last_login_error = f"Network error: {e}"
            logger.error(f"[SessionManager] Network error during login: {e}")
            return False

        if self.debug:
            logger.debug(
                f"[SessionManager] Login response: {response.status_code} {response.reason_phrase}, "
                f"headers={sorted(response.headers.keys())}, body={len(response_text)} chars"
            )

        if not response.is_success:
            self.last_login_error = f"{response.status_code} {response.reason_phrase}"
            logger.error(
                f"[SessionManager] Login failed: {response.status_code} "
                f"{response.reason_phrase} - {response_text}"
            )
            return False

        session_cookie = session_cookie_from_body(response_text)
        if session_cookie and self.debug:
            logger.debug("[SessionManager] Session token found in response body")

        cookie_from_header, xsrf_token = tokens_from_set_cookie(response)
        if cookie_from_header:
            session_cookie = cookie_from_header
            if self.debug:
                logger.debug(f"[SessionManager] Session cookie from Set-Cookie: {_mask(session_cookie.partition('=')[2])}")

        header_token = response.headers.get(XSRF_HEADER_NAME)
        if header_token:
            xsrf_token = header_token
        elif self.debug and not xsrf_token:
            logger.debug("[SessionManager] XSRF token not found in login response")

        # A cookie kept from an earlier login still counts as a session
        effective_cookie = session_cookie or self.state.session_cookie
        if not effective_cookie:
            self.last_login_error = "Login succeeded but no session cookie was returned"
            logger.error("[SessionManager] Login succeeded but session cookie was not found")
            return False
        if not session_cookie and self.debug:
            logger.debug("[SessionManager] No new session cookie; keeping the existing one")

        if not xsrf_token:
            xsrf_token = await self._discover_xsrf_token(client, effective_cookie)

        self.state.update(session_cookie=session_cookie, xsrf_token=xsrf_token)
        self.last_login_error = None

        logger.info(
            f"[SessionManager] Login successful. Session cookie obtained "
            f"(XSRF token: {'yes' if self.state.xsrf_token else 'no'})"
        )
        return True

    async def _discover_xsrf_token(
        self,
        client: httpx.AsyncClient,
        session_cookie: str,
    ) -> Optional[str]:
        """Fetch the current user to obtain an XSRF token.

        Failures are logged and return None; the login itself has already
        succeeded at this point.
        """
        logger.info("[SessionManager] Trying to obtain XSRF token from current_user API")

        try:
            response = await client.get(
                f"{self._base_url}{CURRENT_USER_PATH}",
                headers={
                    "Accept": "application/json",
                    "User-Agent": USER_AGENT,
                    "Cookie": session_cookie,
                },
            )
        except httpx.HTTPError as e:
            logger.warning(f"[SessionManager] Error fetching current_user for XSRF token: {e}")
            return None

        xsrf_token = response.headers.get(XSRF_HEADER_NAME)
        if not xsrf_token:
            _, xsrf_token = tokens_from_set_cookie(response)

        if xsrf_token:
            if self.debug:
                logger.debug(f"[SessionManager] XSRF token from current_user: {_mask(xsrf_token)}")
        else:
            logger.warning("[SessionManager] Could not obtain XSRF token from current_user API")
        return xsrf_token

    # ==========================================================================
    # Status
    # ==========================================================================

    def get_status(self) -> AuthStatusResponse:
        """Summarize the auth state without exposing secrets."""
        session_cookie, xsrf_token = self.state.snapshot()
        return AuthStatusResponse(
            has_static_cookie=self.credentials.has_static_cookie,
            has_login_credentials=self.credentials.has_login_credentials,
            any_static_auth=self.credentials.any_static_auth,
            authenticated=session_cookie is not None,
            has_xsrf_token=bool(xsrf_token or self.credentials.xsrf_token),
            last_login_error=self.last_login_error,
        )


# Global session manager instance
session_manager = SessionManager()
