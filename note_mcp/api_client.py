"""API Client for the note API.

Every request goes through `NoteAPIClient.request`, which attaches the auth
headers from the session manager and logs in on demand when a call requires
authentication and no credentials are in use yet.
"""
import httpx
import time
from typing import Any, Callable, Optional, Sequence
import logging

from .config import API_BASE_URL, DEFAULT_HEADERS, HTTP_TIMEOUT_SECONDS
from .auth import (
    session_manager,
    SessionManager,
    AuthenticationError,
    AuthorizationError,
    ConfigurationError,
    cookieless_jar,
)

logger = logging.getLogger(__name__)


class APIError(Exception):
    """Raised when an API request fails."""
    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        reason: Optional[str] = None,
        body: Optional[str] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.reason = reason
        self.body = body


# Places where list endpoints put their items, most specific first
NOTE_LIST_PATHS: tuple[tuple[str, ...], ...] = (
    ("data", "notes", "contents"),
    ("data", "notes"),
    ("data", "contents"),
    ("notes",),
    ("contents",),
)


def extract_items(data: Any, paths: Sequence[Sequence[str]]) -> list:
    """Return the first list found along the given key paths.

    The note API nests list results under different keys depending on the
    endpoint and version. Returns an empty list when no path matches.
    """
    for path in paths:
        node = data
        for key in path:
            if not isinstance(node, dict):
                break
            node = node.get(key)
        else:
            if isinstance(node, list):
                return node
    return []


def _dig(data: Any, *keys: str, default: Any = None) -> Any:
    for key in keys:
        if not isinstance(data, dict):
            return default
        data = data.get(key)
    return default if data is None else data


def _alternative_path(path: str) -> Optional[str]:
    if "/v3/notes/" in path:
        return path.replace("/v3/notes/", "/v2/notes/")
    if "/v3/searches" in path:
        return path.replace("/v3/searches", "/v2/searches")
    return None


# ==============================================================================
# Draft Save Strategies
# ==============================================================================

DraftRequest = tuple[str, Optional[dict], dict]


def _draft_request_v3(
    title: str, body: str, tags: list[str], draft_id: Optional[str], user_id: str
) -> DraftRequest:
    endpoint = f"/v3/notes/{draft_id}/draft" if draft_id else "/v3/notes/draft"
    payload = {
        "title": title,
        "body": body,
        "status": "draft",
        "tags": tags,
        "publish_at": None,
        "eyecatch_image": None,
        "price": 0,
        "is_magazine_note": False,
    }
    return endpoint, None, payload


def _draft_request_v1(
    title: str, body: str, tags: list[str], draft_id: Optional[str], user_id: str
) -> DraftRequest:
    params = {"user_id": user_id}
    if draft_id:
        params = {"id": draft_id, **params}
    return "/v1/text_notes/draft_save", params, {"title": title, "body": body, "tags": tags}


# Tried in order until one succeeds
DRAFT_STRATEGIES: list[tuple[str, Callable[..., DraftRequest]]] = [
    ("v3 draft API", _draft_request_v3),
    ("v1 draft_save API", _draft_request_v1),
]


class NoteAPIClient:
    """Client for the note API.

    This client:
    - Attaches auth headers (static or login-derived) to every request
    - Logs in before a request that requires auth when no credentials are in use
    - Maps HTTP failures to AuthorizationError / APIError
    - Provides methods for the endpoints exposed as tools
    """

    def __init__(
        self,
        session: SessionManager,
        base_url: str = API_BASE_URL,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = HTTP_TIMEOUT_SECONDS,
    ):
        """Initialize the API client."""
        self.session = session
        self._base_url = base_url.rstrip("/")
        self._transport = transport
        self._timeout = timeout
        self._http_client: Optional[httpx.AsyncClient] = None

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout,
                transport=self._transport,
                cookies=cookieless_jar(),
            )
        return self._http_client

    async def close(self):
        """Close the HTTP client."""
        if self._http_client and not self._http_client.is_closed:
            await self._http_client.aclose()

    async def _auth_headers(self, require_auth: bool) -> dict[str, str]:
        """Resolve auth headers, logging in if the call requires it.

        Raises:
            AuthenticationError: If the login needed for this call fails
            ConfigurationError: If auth is required and nothing is configured
        """
        auth_headers = self.session.build_auth_headers()
        if not require_auth or auth_headers:
            return auth_headers

        if self.session.credentials.has_login_credentials:
            if await self.session.login():
                return self.session.build_auth_headers()
            raise AuthenticationError(
                "Authentication required: login to note failed. "
                "Check NOTE_EMAIL and NOTE_PASSWORD."
            )

        raise ConfigurationError(
            "Authentication required: no credentials configured. "
            "Set NOTE_SESSION_V5 or NOTE_EMAIL/NOTE_PASSWORD in the environment or .env file."
        )

    async def request(
        self,
        path: str,
        method: str = "GET",
        body: Optional[Any] = None,
        require_auth: bool = False,
        params: Optional[dict] = None,
    ) -> Any:
        """Make a request to the note API.

        Args:
            path: API path relative to the base URL (e.g., "/v2/current_user")
            method: HTTP method
            body: JSON body, sent for POST and PUT only
            require_auth: Never send the request without credentials
            params: Query parameters

        Returns:
            Parsed JSON response ({} for an empty body)

        Raises:
            ConfigurationError: If auth is required and nothing is configured
            AuthenticationError: If the login needed for this call fails
            AuthorizationError: If the API returns 401 or 403
            APIError: If the request fails for any other reason
        """
        method = method.upper()
        auth_headers = await self._auth_headers(require_auth)
        headers = {**DEFAULT_HEADERS, **auth_headers}
        json_body = body if body is not None and method in ("POST", "PUT") else None

        if self.session.debug:
            logger.debug(f"[APIClient] {method} {self._base_url}{path} params={params}")
            logger.debug(f"[APIClient] Request headers: {sorted(headers)}")
            if json_body is not None:
                logger.debug(f"[APIClient] Request body: {json_body}")

        client = await self._get_http_client()
        try:
            response = await client.request(
                method, path, params=params, json=json_body, headers=headers
            )
        except httpx.RequestError as e:
            logger.error(f"[APIClient] Network error on {path}: {e}")
            raise APIError(f"Network error: {e}") from e

        if not response.is_success:
            self._raise_for_status(path, response)

        if not response.content.strip():
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise APIError(
                f"Invalid JSON in response from {path}",
                status_code=response.status_code,
                reason=response.reason_phrase,
                body=response.text,
            ) from e

    def _raise_for_status(self, path: str, response: httpx.Response) -> None:
        error_text = response.text
        status = response.status_code

        if self.session.debug:
            logger.debug(f"[APIClient] API error on path {path}: {status} {response.reason_phrase}")
            logger.debug(f"[APIClient] API error response body: {error_text}")
            alternative = _alternative_path(path)
            if alternative:
                logger.debug(f"[APIClient] Alternative endpoint suggestion: {alternative}")

        if status in (401, 403):
            raise AuthorizationError(
                f"API returned {status}: access to note was denied. Check your credentials "
                f"(the session cookie may have expired)."
            )
        elif status == 404:
            logger.warning(
                f"[APIClient] 404 Not Found: endpoint {path} does not exist or has changed. "
                f"Check the API version."
            )
        elif status == 400:
            logger.warning(f"[APIClient] 400 Bad Request on {path}: request parameters may be invalid.")

        raise APIError(
            f"API error: {status} {response.reason_phrase} - {error_text}",
            status_code=status,
            reason=response.reason_phrase,
            body=error_text,
        )

    # ==========================================================================
    # Search Methods
    # ==========================================================================

    async def search_notes(self, query: str, size: int = 10, start: int = 0) -> dict:
        """Search public notes.

        Returns:
            {"total": int, "notes": list}
        """
        data = await self.request(
            "/v3/searches",
            params={"context": "note", "q": query, "size": size, "start": start},
        )
        notes = extract_items(data, NOTE_LIST_PATHS)
        return {"total": _dig(data, "data", "notesCount", default=len(notes)), "notes": notes}

    async def search_users(self, query: str, size: int = 10, start: int = 0) -> dict:
        """Search note users.

        Returns:
            {"total": int, "users": list}
        """
        data = await self.request(
            "/v3/searches",
            params={"context": "user", "q": query, "size": size, "start": start},
        )
        users = extract_items(data, [("data", "users"), ("users",)])
        return {"total": _dig(data, "data", "usersCount", default=len(users)), "users": users}

    # ==========================================================================
    # User Methods
    # ==========================================================================

    async def get_user(self, username: str) -> dict:
        data = await self.request(f"/v3/users/{username}")
        return _dig(data, "data", default={})

    async def get_user_notes(self, username: str, page: int = 1) -> dict:
        """List a creator's published notes.

        Returns:
            {"total": int, "page": int, "is_last_page": bool | None, "notes": list}
        """
        data = await self.request(
            f"/v2/creators/{username}/contents",
            params={"kind": "note", "page": page},
        )
        notes = extract_items(data, NOTE_LIST_PATHS)
        return {
            "total": _dig(data, "data", "totalCount", default=len(notes)),
            "page": page,
            "is_last_page": _dig(data, "data", "isLastPage"),
            "notes": notes,
        }

    # ==========================================================================
    # Note Methods
    # ==========================================================================

    async def get_note(self, note_id: str) -> dict:
        """Get a note (including draft content visible to its author)."""
        data = await self.request(
            f"/v3/notes/{note_id}",
            params={"draft": "true", "draft_reedit": "false", "ts": str(int(time.time() * 1000))},
            require_auth=True,
        )
        return _dig(data, "data", default={})

    async def get_comments(self, note_id: str) -> list:
        data = await self.request(f"/v1/note/{note_id}/comments")
        return extract_items(data, [("comments",), ("data", "comments")])

    async def get_likes(self, note_id: str) -> list:
        data = await self.request(f"/v3/notes/{note_id}/likes")
        return extract_items(data, [("data", "likes"), ("likes",)])

    async def post_comment(self, note_id: str, text: str) -> Any:
        return await self.request(
            f"/v1/note/{note_id}/comments", "POST", {"text": text}, require_auth=True
        )

    async def like_note(self, note_id: str) -> Any:
        return await self.request(f"/v3/notes/{note_id}/likes", "POST", {}, require_auth=True)

    async def unlike_note(self, note_id: str) -> Any:
        return await self.request(f"/v3/notes/{note_id}/likes", "DELETE", require_auth=True)

    async def save_draft(
        self,
        title: str,
        body: str,
        tags: Optional[list[str]] = None,
        draft_id: Optional[str] = None,
    ) -> dict:
        """Save a draft, trying each endpoint in DRAFT_STRATEGIES in turn.

        Returns:
            {"strategy": name of the endpoint that worked, "data": response}

        Raises:
            APIError: If every strategy fails; the message lists each error
        """
        errors = []
        for name, build_request in DRAFT_STRATEGIES:
            path, params, payload = build_request(
                title, body, tags or [], draft_id, self.session.credentials.user_id
            )
            try:
                data = await self.request(path, "POST", payload, require_auth=True, params=params)
            except (APIError, AuthorizationError) as e:
                logger.warning(f"[APIClient] Draft save via {name} failed: {e}")
                errors.append(f"{name}: {e}")
                continue
            logger.info(f"[APIClient] Draft saved via {name}")
            return {"strategy": name, "data": data}

        raise APIError("Failed to save draft. " + " | ".join(errors))

    async def get_my_notes(self, page: int = 1, per_page: int = 20, status: str = "all") -> dict:
        """List the configured user's notes, drafts included.

        Raises:
            ConfigurationError: If NOTE_USER_ID is not set
        """
        if not self.session.credentials.user_id:
            raise ConfigurationError("NOTE_USER_ID is not set. Check your environment or .env file.")

        params = {
            "page": page,
            "per_page": per_page,
            "draft": "true",
            "draft_reedit": "false",
            "ts": str(int(time.time() * 1000)),
        }
        if status in ("draft", "public"):
            params["status"] = status

        data = await self.request("/v2/note_list/contents", params=params, require_auth=True)
        notes = extract_items(data, NOTE_LIST_PATHS)
        return {
            "total": _dig(data, "data", "totalCount", default=len(notes)),
            "page": page,
            "per_page": per_page,
            "status": status,
            "notes": notes,
        }


# Global API client instance
api_client = NoteAPIClient(session_manager)
