"""note MCP Server.

An MCP server that exposes the note.com API as tools and prompts, with
login-on-demand session management.

Architecture:
- SessionManager holds static credentials plus the session cookie and XSRF
  token obtained by login, and builds per-request auth headers
- NoteAPIClient dispatches requests, logging in when a call requires auth
- MCP endpoint at /mcp for agent tool calls, REST API at /session

Run with:
    uvicorn note_mcp.main:app --port 3000
"""
from .main import (
    app,
    mcp,
    main,
)
from .auth import (
    session_manager,
    SessionManager,
    AuthState,
    AuthenticationError,
    AuthorizationError,
    ConfigurationError,
)
from .api_client import api_client, NoteAPIClient, APIError, extract_items
from .models import (
    Credentials,
    AuthStatusResponse,
    LoginResponse,
    ErrorResponse,
)

__all__ = [
    # ASGI Application
    "app",
    "mcp",
    "main",
    # Session management
    "session_manager",
    "SessionManager",
    "AuthState",
    "AuthenticationError",
    "AuthorizationError",
    "ConfigurationError",
    # API client
    "api_client",
    "NoteAPIClient",
    "APIError",
    "extract_items",
    # Models
    "Credentials",
    "AuthStatusResponse",
    "LoginResponse",
    "ErrorResponse",
]
