"""Shared fixtures for the note MCP tests.

HTTP traffic is stubbed with `httpx.MockTransport`; each recorder keeps the
requests it saw so tests can assert on what was (or was not) sent.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

import httpx
import pytest

from note_mcp.api_client import NoteAPIClient
from note_mcp.auth import SessionManager
from note_mcp.models import Credentials

BASE_URL = "https://note.test/api"


class RecordingTransport(httpx.MockTransport):
    """MockTransport that records every request it handles."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]) -> None:
        self.requests: list[httpx.Request] = []

        def recording_handler(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        super().__init__(recording_handler)

    def paths(self) -> list[str]:
        return [request.url.path for request in self.requests]


def request_json(request: httpx.Request) -> Any:
    return json.loads(request.content) if request.content else None


@pytest.fixture
def make_session() -> Callable[..., tuple[SessionManager, RecordingTransport]]:
    """Build a SessionManager whose HTTP calls go to a recording transport."""

    def factory(
        handler: Callable[[httpx.Request], httpx.Response],
        **credentials: str,
    ) -> tuple[SessionManager, RecordingTransport]:
        transport = RecordingTransport(handler)
        session = SessionManager(
            credentials=Credentials(**credentials),
            base_url=BASE_URL,
            debug=True,
            transport=transport,
        )
        return session, transport

    return factory


@pytest.fixture
def make_client(
    make_session: Callable[..., tuple[SessionManager, RecordingTransport]],
) -> Callable[..., tuple[NoteAPIClient, RecordingTransport]]:
    """Build a NoteAPIClient sharing one recording transport with its session."""

    def factory(
        handler: Callable[[httpx.Request], httpx.Response],
        **credentials: str,
    ) -> tuple[NoteAPIClient, RecordingTransport]:
        session, transport = make_session(handler, **credentials)
        client = NoteAPIClient(session, base_url=BASE_URL, transport=transport)
        return client, transport

    return factory
