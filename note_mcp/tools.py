"""MCP Tools for note.

This module defines the tools that the agent can use to interact with note.
Each tool:
- Receives inputs validated by Pydantic models
- Calls the API client, which handles authentication
- Returns JSON, or an error envelope if anything fails
"""
import json
from typing import Any
import logging

from .models import (
    ErrorResponse,
    GetMyNotesInput,
    NoteIdInput,
    PostCommentInput,
    SaveDraftInput,
    SearchNotesInput,
    SearchUsersInput,
    UsernameInput,
    UserNotesInput,
)
from .api_client import api_client, APIError
from .auth import (
    session_manager,
    AuthenticationError,
    AuthorizationError,
    ConfigurationError,
)

logger = logging.getLogger(__name__)


# ==============================================================================
# Response Helpers
# ==============================================================================

def to_json(data: Any) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False)


def error_envelope(error: str, detail: str) -> str:
    return ErrorResponse(error=error, detail=detail).model_dump_json(indent=2)


def auth_required_response() -> str:
    return error_envelope(
        "authentication_required",
        "This tool requires authentication. Set NOTE_SESSION_V5 or "
        "NOTE_EMAIL/NOTE_PASSWORD in the environment or .env file.",
    )


def handle_error(e: Exception) -> str:
    """Format an error as an envelope."""
    if isinstance(e, ConfigurationError):
        return error_envelope("configuration_error", str(e))
    elif isinstance(e, AuthenticationError):
        return error_envelope("authentication_failed", f"{e} The email or password may be wrong.")
    elif isinstance(e, AuthorizationError):
        return error_envelope("authorization_error", f"{e} Please re-authenticate.")
    elif isinstance(e, APIError):
        if e.status_code == 404:
            return error_envelope(
                "not_found", f"{e} Check the ID or name you passed and the API version."
            )
        return error_envelope("api_error", str(e))
    else:
        return error_envelope("unexpected_error", f"{type(e).__name__}: {e}")


# ==============================================================================
# Tool Functions (to be registered with MCP server)
# ==============================================================================

async def search_notes_tool(params: SearchNotesInput) -> str:
    try:
        result = await api_client.search_notes(params.query, size=params.size, start=params.start)
        return to_json(result)
    except Exception as e:
        logger.error(f"[Tools] search_notes failed: {e}")
        return handle_error(e)


async def search_users_tool(params: SearchUsersInput) -> str:
    try:
        result = await api_client.search_users(params.query, size=params.size, start=params.start)
        return to_json(result)
    except Exception as e:
        logger.error(f"[Tools] search_users failed: {e}")
        return handle_error(e)


# ==============================================================================
# User Tools
# ==============================================================================

async def get_user_tool(params: UsernameInput) -> str:
    try:
        return to_json(await api_client.get_user(params.username))
    except Exception as e:
        logger.error(f"[Tools] get_user failed: {e}")
        return handle_error(e)


async def get_user_notes_tool(params: UserNotesInput) -> str:
    try:
        return to_json(await api_client.get_user_notes(params.username, page=params.page))
    except Exception as e:
        logger.error(f"[Tools] get_user_notes failed: {e}")
        return handle_error(e)


# ==============================================================================
# Note Tools
# ==============================================================================

async def get_note_tool(params: NoteIdInput) -> str:
    try:
        return to_json(await api_client.get_note(params.note_id))
    except Exception as e:
        logger.error(f"[Tools] get_note failed: {e}")
        return handle_error(e)


async def get_comments_tool(params: NoteIdInput) -> str:
    try:
        return to_json({"comments": await api_client.get_comments(params.note_id)})
    except Exception as e:
        logger.error(f"[Tools] get_comments failed: {e}")
        return handle_error(e)


async def get_likes_tool(params: NoteIdInput) -> str:
    try:
        return to_json({"likes": await api_client.get_likes(params.note_id)})
    except Exception as e:
        logger.error(f"[Tools] get_likes failed: {e}")
        return handle_error(e)


async def post_comment_tool(params: PostCommentInput) -> str:
    if not session_manager.has_auth():
        return auth_required_response()
    try:
        data = await api_client.post_comment(params.note_id, params.text)
        return to_json({"message": "Comment posted", "data": data})
    except Exception as e:
        logger.error(f"[Tools] post_comment failed: {e}")
        return handle_error(e)


async def like_note_tool(params: NoteIdInput) -> str:
    if not session_manager.has_auth():
        return auth_required_response()
    try:
        await api_client.like_note(params.note_id)
        return to_json({"message": "Liked note"})
    except Exception as e:
        logger.error(f"[Tools] like_note failed: {e}")
        return handle_error(e)


async def unlike_note_tool(params: NoteIdInput) -> str:
    if not session_manager.has_auth():
        return auth_required_response()
    try:
        await api_client.unlike_note(params.note_id)
        return to_json({"message": "Removed like"})
    except Exception as e:
        logger.error(f"[Tools] unlike_note failed: {e}")
        return handle_error(e)


async def save_draft_tool(params: SaveDraftInput) -> str:
    """Save a draft note.

    The draft endpoints differ between API versions, so the client tries
    each known endpoint until one accepts the draft.
    """
    if not session_manager.has_auth():
        return auth_required_response()
    try:
        result = await api_client.save_draft(
            title=params.title,
            body=params.body,
            tags=params.tags,
            draft_id=params.draft_id,
        )
        return to_json({
            "success": True,
            "message": f"Draft saved ({result['strategy']})",
            "data": result["data"],
        })
    except Exception as e:
        logger.error(f"[Tools] save_draft failed: {e}")
        return handle_error(e)


async def get_my_notes_tool(params: GetMyNotesInput) -> str:
    try:
        result = await api_client.get_my_notes(
            page=params.page,
            per_page=params.per_page,
            status=params.status,
        )
        total = result["total"]
        result["total_pages"] = -(-total // params.per_page) if isinstance(total, int) else None
        result["has_next_page"] = isinstance(total, int) and params.page * params.per_page < total
        return to_json(result)
    except Exception as e:
        logger.error(f"[Tools] get_my_notes failed: {e}")
        return handle_error(e)


# ==============================================================================
# Session Tools
# ==============================================================================

async def get_session_info_tool() -> str:
    """Describe the current authentication state. Never includes secrets."""
    try:
        return session_manager.get_status().model_dump_json(indent=2)
    except Exception as e:
        logger.error(f"[Tools] get_session_info failed: {e}")
        return handle_error(e)
