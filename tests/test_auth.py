"""Tests for note login and auth header selection."""

from __future__ import annotations

import asyncio

import httpx
import pytest

from note_mcp.auth import AuthState, session_cookie_from_body, tokens_from_set_cookie
from note_mcp.models import Credentials

from .conftest import request_json


def fail_on_request(request: httpx.Request) -> httpx.Response:
    raise AssertionError(f"HTTP should not be called: {request.method} {request.url}")


# ==============================================================================
# Credentials
# ==============================================================================

def test_credentials_derived_flags() -> None:
    assert not Credentials().any_static_auth
    assert Credentials(xsrf_token="X").has_static_cookie
    assert Credentials(session_cookie="S").has_static_cookie
    assert not Credentials(email="a@b.com").any_static_auth
    assert Credentials(email="a@b.com", password="x").any_static_auth
    assert not Credentials(email="a@b.com", password="x").has_static_cookie


def test_credentials_keep_surrounding_whitespace() -> None:
    credentials = Credentials(email="a@b.com", password="  secret  ")
    assert credentials.password == "  secret  "


# ==============================================================================
# Auth Header Builder
# ==============================================================================

def test_build_auth_headers_empty_without_credentials(make_session) -> None:
    session, _ = make_session(fail_on_request)
    assert session.build_auth_headers() == {}


def test_static_cookie_wins_over_dynamic_cookie(make_session) -> None:
    session, _ = make_session(fail_on_request, session_cookie="STATIC")
    session.state.update(session_cookie="_note_session_v5=DYNAMIC")

    headers = session.build_auth_headers()

    assert headers["Cookie"] == "_note_session_v5=STATIC"
    assert "DYNAMIC" not in headers["Cookie"]


def test_static_xsrf_only_suppresses_dynamic_cookie(make_session) -> None:
    """A configured XSRF token alone still counts as a static cookie setup."""
    session, _ = make_session(fail_on_request, xsrf_token="STATIC-X")
    session.state.update(session_cookie="_note_session_v5=DYNAMIC")

    assert session.build_auth_headers() == {"X-XSRF-TOKEN": "STATIC-X"}


def test_dynamic_cookie_used_without_static_cookie(make_session) -> None:
    session, _ = make_session(fail_on_request, email="a@b.com", password="x")
    session.state.update(session_cookie="_note_session_v5=DYNAMIC")

    assert session.build_auth_headers() == {"Cookie": "_note_session_v5=DYNAMIC"}


def test_dynamic_xsrf_preferred_over_static(make_session) -> None:
    session, _ = make_session(fail_on_request, session_cookie="S", xsrf_token="STATIC-X")
    session.state.update(xsrf_token="DYNAMIC-X")

    headers = session.build_auth_headers()

    assert headers["X-XSRF-TOKEN"] == "DYNAMIC-X"
    assert headers["Cookie"] == "_note_session_v5=S"


def test_build_auth_headers_is_idempotent(make_session) -> None:
    session, _ = make_session(fail_on_request, xsrf_token="X")
    session.state.update(session_cookie="_note_session_v5=D", xsrf_token="Y")

    assert session.build_auth_headers() == session.build_auth_headers()


def test_auth_state_update_keeps_unspecified_fields() -> None:
    state = AuthState()
    state.update(session_cookie="_note_session_v5=A", xsrf_token="X")
    state.update(session_cookie="_note_session_v5=B")

    assert state.snapshot() == ("_note_session_v5=B", "X")
    assert state.is_authenticated


# ==============================================================================
# Token extraction helpers
# ==============================================================================

def test_session_cookie_from_body_tolerates_non_json() -> None:
    assert session_cookie_from_body('{"data":{"token":"T1"}}') == "_note_session_v5=T1"
    assert session_cookie_from_body("") is None
    assert session_cookie_from_body("<html>ok</html>") is None
    assert session_cookie_from_body("[1, 2]") is None
    assert session_cookie_from_body('{"data": {}}') is None


def test_tokens_from_set_cookie_reads_each_header() -> None:
    response = httpx.Response(
        200,
        headers=[
            ("set-cookie", "other=1; Path=/"),
            ("set-cookie", "_note_session_v5=T2; Path=/; HttpOnly"),
            ("set-cookie", "XSRF-TOKEN=X2; Path=/"),
        ],
    )
    assert tokens_from_set_cookie(response) == ("_note_session_v5=T2", "X2")


# ==============================================================================
# Login Flow
# ==============================================================================

@pytest.mark.parametrize(
    "credentials",
    [{}, {"email": "a@b.com"}, {"password": "x"}, {"session_cookie": "S"}],
)
def test_login_without_email_or_password_makes_no_request(make_session, credentials) -> None:
    session, transport = make_session(fail_on_request, **credentials)

    assert asyncio.run(session.login()) is False
    assert transport.requests == []
    assert session.state.snapshot() == (None, None)


def test_login_with_body_token_discovers_xsrf_via_current_user(make_session) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/api/v1/sessions/sign_in":
            return httpx.Response(200, json={"data": {"token": "T1"}})
        if request.url.path == "/api/v2/current_user":
            return httpx.Response(200, json={}, headers={"X-XSRF-TOKEN": "X1"})
        raise AssertionError(f"unexpected request {request.url}")

    session, transport = make_session(handler, email="a@b.com", password="x")

    async def scenario() -> bool:
        try:
            return await session.login()
        finally:
            await session.close()

    assert asyncio.run(scenario()) is True
    assert session.state.session_cookie == "_note_session_v5=T1"
    assert session.state.xsrf_token == "X1"
    assert transport.paths() == ["/api/v1/sessions/sign_in", "/api/v2/current_user"]

    sign_in, current_user = transport.requests
    assert sign_in.method == "POST"
    assert request_json(sign_in) == {"login": "a@b.com", "password": "x"}
    assert sign_in.headers["User-Agent"].startswith("Mozilla/5.0")
    assert current_user.method == "GET"
    assert current_user.headers["Cookie"] == "_note_session_v5=T1"


def test_login_current_user_set_cookie_fallback(make_session) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/sign_in"):
            return httpx.Response(200, json={"data": {"token": "T1"}})
        return httpx.Response(200, headers={"set-cookie": "XSRF-TOKEN=X3; Path=/"})

    session, transport = make_session(handler, email="a@b.com", password="x")

    assert asyncio.run(session.login()) is True
    assert session.state.xsrf_token == "X3"
    assert len(transport.requests) == 2


def test_login_rejected_returns_false(make_session) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, text="invalid credentials")

    session, transport = make_session(handler, email="a@b.com", password="wrong")

    assert asyncio.run(session.login()) is False
    assert session.state.snapshot() == (None, None)
    assert transport.paths() == ["/api/v1/sessions/sign_in"]
    assert session.last_login_error is not None
    assert "401" in session.last_login_error


def test_login_with_set_cookie_skips_current_user(make_session) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            text="",
            headers=[
                ("set-cookie", "_note_session_v5=T2; Path=/"),
                ("set-cookie", "XSRF-TOKEN=X2; Path=/"),
            ],
        )

    session, transport = make_session(handler, email="a@b.com", password="x")

    assert asyncio.run(session.login()) is True
    assert session.state.snapshot() == ("_note_session_v5=T2", "X2")
    assert transport.paths() == ["/api/v1/sessions/sign_in"]


def test_set_cookie_overrides_body_token(make_session) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={"data": {"token": "FROM-BODY"}},
            headers=[
                ("set-cookie", "_note_session_v5=FROM-COOKIE; Path=/"),
                ("set-cookie", "XSRF-TOKEN=X2; Path=/"),
            ],
        )

    session, _ = make_session(handler, email="a@b.com", password="x")

    assert asyncio.run(session.login()) is True
    assert session.state.session_cookie == "_note_session_v5=FROM-COOKIE"


def test_xsrf_header_overrides_cookie_token(make_session) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            headers=[
                ("set-cookie", "_note_session_v5=T2; Path=/"),
                ("set-cookie", "XSRF-TOKEN=FROM-COOKIE; Path=/"),
                ("x-xsrf-token", "FROM-HEADER"),
            ],
        )

    session, transport = make_session(handler, email="a@b.com", password="x")

    assert asyncio.run(session.login()) is True
    assert session.state.xsrf_token == "FROM-HEADER"
    assert len(transport.requests) == 1


def test_login_without_session_cookie_fails(make_session) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"data": {}}, headers={"x-xsrf-token": "X"})

    session, transport = make_session(handler, email="a@b.com", password="x")

    assert asyncio.run(session.login()) is False
    assert session.state.snapshot() == (None, None)
    assert transport.paths() == ["/api/v1/sessions/sign_in"]


def test_login_keeps_existing_cookie_when_response_has_none(make_session) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/sign_in"):
            return httpx.Response(200, text="")
        return httpx.Response(200, headers={"x-xsrf-token": "X9"})

    session, transport = make_session(handler, email="a@b.com", password="x")
    session.state.update(session_cookie="_note_session_v5=OLD")

    assert asyncio.run(session.login()) is True
    assert session.state.snapshot() == ("_note_session_v5=OLD", "X9")
    assert session.last_login_error is None
    assert transport.paths() == ["/api/v1/sessions/sign_in", "/api/v2/current_user"]
    assert transport.requests[1].headers["Cookie"] == "_note_session_v5=OLD"


def test_current_user_failure_does_not_fail_login(make_session) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/sign_in"):
            return httpx.Response(200, json={"data": {"token": "T1"}})
        raise httpx.ConnectError("connection refused", request=request)

    session, _ = make_session(handler, email="a@b.com", password="x")

    assert asyncio.run(session.login()) is True
    assert session.state.snapshot() == ("_note_session_v5=T1", None)


def test_network_error_on_sign_in_returns_false(make_session) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    session, _ = make_session(handler, email="a@b.com", password="x")

    assert asyncio.run(session.login()) is False
    assert session.state.snapshot() == (None, None)
    assert session.last_login_error is not None
    assert "Network error" in session.last_login_error


def test_concurrent_logins_share_one_sign_in(make_session) -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(0.01)
        return httpx.Response(
            200,
            headers=[
                ("set-cookie", "_note_session_v5=T2; Path=/"),
                ("set-cookie", "XSRF-TOKEN=X2; Path=/"),
            ],
        )

    session, transport = make_session(handler, email="a@b.com", password="x")

    async def scenario() -> list[bool]:
        return list(await asyncio.gather(*(session.login() for _ in range(5))))

    assert asyncio.run(scenario()) == [True] * 5
    assert transport.paths() == ["/api/v1/sessions/sign_in"]
    assert session.state.snapshot() == ("_note_session_v5=T2", "X2")


def test_login_posts_password_unchanged(make_session) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, headers={"set-cookie": "_note_session_v5=T2; Path=/"})

    session, transport = make_session(handler, email="a@b.com", password="  secret  ")

    assert asyncio.run(session.login()) is True
    assert request_json(transport.requests[0]) == {"login": "a@b.com", "password": "  secret  "}


def test_failed_login_task_is_logged_after_caller_cancelled(make_session, caplog) -> None:
    session, _ = make_session(fail_on_request, email="a@b.com", password="x")

    async def failing_login() -> bool:
        await asyncio.sleep(0.01)
        raise RuntimeError("boom")

    session._login = failing_login

    async def scenario() -> list[dict]:
        unhandled: list[dict] = []
        asyncio.get_running_loop().set_exception_handler(
            lambda loop, context: unhandled.append(context)
        )
        caller = asyncio.ensure_future(session.login())
        await asyncio.sleep(0)
        caller.cancel()
        with pytest.raises(asyncio.CancelledError):
            await caller
        await asyncio.sleep(0.05)
        assert session._login_task.done()
        session._login_task = None
        return unhandled

    with caplog.at_level("ERROR", logger="note_mcp.auth"):
        assert asyncio.run(scenario()) == []

    assert "Login task failed" in caplog.text
    assert "boom" in caplog.text


def test_login_task_exception_reaches_waiting_caller(make_session) -> None:
    session, _ = make_session(fail_on_request, email="a@b.com", password="x")

    async def failing_login() -> bool:
        raise RuntimeError("boom")

    session._login = failing_login

    with pytest.raises(RuntimeError, match="boom"):
        asyncio.run(session.login())


def test_status_reports_without_secrets(make_session) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, headers={"set-cookie": "_note_session_v5=SECRET; Path=/"})

    session, _ = make_session(handler, email="a@b.com", password="x")
    asyncio.run(session.login())

    status = session.get_status()

    assert status.authenticated is True
    assert status.has_login_credentials is True
    assert status.has_static_cookie is False
    assert status.has_xsrf_token is False
    assert "SECRET" not in status.model_dump_json()
