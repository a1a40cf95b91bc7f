"""note MCP Server.

An MCP server that exposes the note.com API as tools and prompts:
- Search for notes and users, user profiles and their notes
- Posting comments, likes and drafts (authenticated)
- Listing the configured user's own notes

Architecture:
- SessionManager holds credentials and logs in on demand
- REST API at /session for inspecting auth state and forcing a login
- MCP endpoint at /mcp for agent tool calls (or stdio with --transport stdio)

Run with:
    uvicorn note_mcp.main:app --port 3000

Or:
    python -m note_mcp.main --transport stdio
"""
import asyncio
import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from mcp.server.fastmcp import FastMCP
from starlette.routing import Mount

from .config import DEBUG, HTTP_PORT
from .models import (
    AuthStatusResponse,
    GetMyNotesInput,
    LoginResponse,
    NoteIdInput,
    PostCommentInput,
    SaveDraftInput,
    SearchNotesInput,
    SearchUsersInput,
    UsernameInput,
    UserNotesInput,
)
from .auth import session_manager
from .api_client import api_client
from .prompts import (
    article_analysis_prompt,
    competitor_analysis_prompt,
    content_idea_prompt,
    note_search_prompt,
)
from .tools import (
    get_comments_tool,
    get_likes_tool,
    get_my_notes_tool,
    get_note_tool,
    get_session_info_tool,
    get_user_notes_tool,
    get_user_tool,
    like_note_tool,
    post_comment_tool,
    save_draft_tool,
    search_notes_tool,
    search_users_tool,
    unlike_note_tool,
)


# Configure logging
logging.basicConfig(
    level=logging.DEBUG if DEBUG else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    stream=sys.stderr,  # MCP servers should log to stderr, not stdout
)
logger = logging.getLogger(__name__)


# ==============================================================================
# MCP Server
# ==============================================================================

# Session state lives in SessionManager, so the MCP protocol layer is stateless.
# With streamable_http_path="/streamable" and the mount at "/mcp", the
# endpoint is /mcp/streamable
mcp = FastMCP(
    "note_mcp",
    stateless_http=True,
    streamable_http_path="/streamable"
)

READ_ONLY = {
    "readOnlyHint": True,
    "destructiveHint": False,
    "idempotentHint": True,
    "openWorldHint": True,
}


@mcp.tool(name="note_search_notes", annotations={"title": "Search Notes", **READ_ONLY})
async def note_search_notes(params: SearchNotesInput) -> str:
    """Search public note.com articles by keyword.

    Args:
        params: Input parameters
            - query (str): Search keyword
            - size (int): Number of results (1-20, default: 10)
            - start (int): Offset of the first result (default: 0)

    Returns:
        JSON with the total hit count and the matching notes
    """
    return await search_notes_tool(params)


@mcp.tool(name="note_search_users", annotations={"title": "Search Users", **READ_ONLY})
async def note_search_users(params: SearchUsersInput) -> str:
    """Search note.com users by keyword.

    Args:
        params: Input parameters
            - query (str): Search keyword
            - size (int): Number of results (1-20, default: 10)
            - start (int): Offset of the first result (default: 0)

    Returns:
        JSON with the total hit count and the matching users
    """
    return await search_users_tool(params)


@mcp.tool(name="note_get_user", annotations={"title": "Get User", **READ_ONLY})
async def note_get_user(params: UsernameInput) -> str:
    """Fetch a user's profile, including follower counts."""
    return await get_user_tool(params)


@mcp.tool(name="note_get_user_notes", annotations={"title": "Get User Notes", **READ_ONLY})
async def note_get_user_notes(params: UserNotesInput) -> str:
    """List a user's published notes, one page at a time.

    Args:
        params: Input parameters
            - username (str): note.com user name (urlname)
            - page (int): Page number (default: 1)
    """
    return await get_user_notes_tool(params)


@mcp.tool(name="note_get_note", annotations={"title": "Get Note", **READ_ONLY})
async def note_get_note(params: NoteIdInput) -> str:
    """Fetch a note's details, including draft content when you are its author.

    Requires authentication.

    Args:
        params: Input parameters
            - note_id (str): Note key (e.g., "n4f0c7b884789")
    """
    return await get_note_tool(params)


@mcp.tool(name="note_get_comments", annotations={"title": "Get Comments", **READ_ONLY})
async def note_get_comments(params: NoteIdInput) -> str:
    """List the comments on a note."""
    return await get_comments_tool(params)


@mcp.tool(name="note_get_likes", annotations={"title": "Get Likes", **READ_ONLY})
async def note_get_likes(params: NoteIdInput) -> str:
    """List the likes on a note."""
    return await get_likes_tool(params)


@mcp.tool(
    name="note_post_comment",
    annotations={
        "title": "Post Comment",
        "readOnlyHint": False,
        "destructiveHint": False,
        "idempotentHint": False,
        "openWorldHint": True,
    }
)
async def note_post_comment(params: PostCommentInput) -> str:
    """Post a comment on a note. Requires authentication.

    Args:
        params: Input parameters
            - note_id (str): Note key
            - text (str): Comment body
    """
    return await post_comment_tool(params)


@mcp.tool(
    name="note_like_note",
    annotations={
        "title": "Like Note",
        "readOnlyHint": False,
        "destructiveHint": False,
        "idempotentHint": True,
        "openWorldHint": True,
    }
)
async def note_like_note(params: NoteIdInput) -> str:
    """Like a note. Requires authentication."""
    return await like_note_tool(params)


@mcp.tool(
    name="note_unlike_note",
    annotations={
        "title": "Unlike Note",
        "readOnlyHint": False,
        "destructiveHint": True,
        "idempotentHint": True,
        "openWorldHint": True,
    }
)
async def note_unlike_note(params: NoteIdInput) -> str:
    """Remove your like from a note. Requires authentication."""
    return await unlike_note_tool(params)


@mcp.tool(
    name="note_save_draft",
    annotations={
        "title": "Save Draft Note",
        "readOnlyHint": False,
        "destructiveHint": False,
        "idempotentHint": False,
        "openWorldHint": True,
    }
)
async def note_save_draft(params: SaveDraftInput) -> str:
    """Save an article as a draft, or update an existing draft.

    Requires authentication. Nothing is published.

    Args:
        params: Input parameters
            - title (str): Draft title
            - body (str): Draft body
            - tags (list[str]): Hashtags (at most 10)
            - draft_id (str, optional): Existing draft to update

    Returns:
        JSON describing the saved draft and which endpoint accepted it
    """
    return await save_draft_tool(params)


@mcp.tool(name="note_get_my_notes", annotations={"title": "Get My Notes", **READ_ONLY})
async def note_get_my_notes(params: GetMyNotesInput) -> str:
    """List your own notes, drafts included.

    Requires authentication and NOTE_USER_ID.

    Args:
        params: Input parameters
            - page (int): Page number (default: 1)
            - per_page (int): Notes per page (default: 20)
            - status (str): "all", "draft" or "public"
    """
    return await get_my_notes_tool(params)


@mcp.tool(
    name="note_session_info",
    annotations={
        "title": "Get Session Information",
        "readOnlyHint": True,
        "destructiveHint": False,
        "idempotentHint": True,
        "openWorldHint": False,
    }
)
async def note_session_info() -> str:
    """Get information about the current authentication state.

    Reports which credentials are configured, whether a login succeeded,
    whether an XSRF token is available and why the last login failed.
    """
    return await get_session_info_tool()


# ==============================================================================
# Prompts
# ==============================================================================

@mcp.prompt(name="note-search", description="Search note.com and summarize the results")
def note_search(query: str) -> str:
    return note_search_prompt(query)


@mcp.prompt(name="competitor-analysis", description="Analyze another note.com creator")
def competitor_analysis(username: str) -> str:
    return competitor_analysis_prompt(username)


@mcp.prompt(name="content-idea-generation", description="Generate article ideas for a topic")
def content_idea_generation(topic: str) -> str:
    return content_idea_prompt(topic)


@mcp.prompt(name="article-analysis", description="Analyze a single note.com article")
def article_analysis(note_id: str) -> str:
    return article_analysis_prompt(note_id)


# ==============================================================================
# Startup Authentication
# ==============================================================================

async def authenticate_on_startup() -> None:
    """Log in up front when email/password are configured and report auth status."""
    credentials = session_manager.credentials

    if credentials.has_login_credentials:
        logger.info("[Server] Logging in with email and password...")
        if await session_manager.login():
            logger.info("[Server] Login successful: session cookie obtained")
        else:
            logger.warning(
                f"[Server] Login failed ({session_manager.last_login_error}). "
                f"The email or password may be wrong."
            )

    if credentials.any_static_auth:
        logger.info("[Server] Credentials configured; authenticated tools are available")
    else:
        logger.warning(
            "[Server] No credentials configured; only read-only tools are available. "
            "Set NOTE_SESSION_V5 or NOTE_EMAIL/NOTE_PASSWORD to post, comment or like."
        )


# ==============================================================================
# Combined ASGI Application (REST + MCP)
# ==============================================================================

@asynccontextmanager
async def app_lifespan(app: FastAPI):
    """Combined lifespan for REST API and MCP server.

    The MCP session manager must be started for streamable HTTP to work.
    """
    logger.info("[Server] Starting note API + MCP Server")

    await authenticate_on_startup()

    # Start MCP's session manager (required for streamable HTTP transport)
    async with mcp.session_manager.run():
        yield

    logger.info("[Server] Shutting down...")
    await api_client.close()
    await session_manager.close()


app = FastAPI(
    title="note MCP Server",
    description=(
        "MCP endpoint for note.com tools + REST API for auth state.\n\n"
        "- **REST API**: `/session` - Inspect auth state and force a login\n"
        "- **MCP Endpoint**: `/mcp` - Agent tool access via Model Context Protocol"
    ),
    version="2.1.0",
    lifespan=app_lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.routes.append(Mount("/mcp", app=mcp.streamable_http_app()))


# ==============================================================================
# REST API Endpoints (Session)
# ==============================================================================

@app.get("/health")
async def health():
    """Health check endpoint."""
    return {
        "status": "ok",
        "service": "note-mcp",
        "authenticated": session_manager.state.is_authenticated,
    }


@app.get(
    "/session",
    response_model=AuthStatusResponse,
    summary="Get auth state",
    description="Report which credentials are configured and whether a login succeeded.",
    tags=["Session"],
)
async def get_session():
    return session_manager.get_status()


@app.post(
    "/session/login",
    response_model=LoginResponse,
    summary="Log in now",
    description="Log in with the configured email and password.",
    tags=["Session"],
)
async def login():
    """Log in with the configured email and password."""
    if await session_manager.login():
        return LoginResponse(success=True, message="Login successful. Session cookie obtained.")
    return LoginResponse(
        success=False,
        message=f"Login failed: {session_manager.last_login_error}",
    )


# ==============================================================================
# Entry Point
# ==============================================================================

async def _prepare_stdio() -> None:
    await authenticate_on_startup()
    # The stdio server runs its own event loop; drop clients bound to this one
    await session_manager.close()


def main():
    """Run the server over stdio or streamable HTTP."""
    import argparse
    import uvicorn

    parser = argparse.ArgumentParser(description="note MCP Server")
    parser.add_argument(
        "--transport",
        choices=["http", "stdio"],
        default="http",
        help="MCP transport (default: http)"
    )
    parser.add_argument(
        "--host",
        type=str,
        default="0.0.0.0",
        help="Host to bind to (default: 0.0.0.0)"
    )
    parser.add_argument(
        "--port",
        type=int,
        default=HTTP_PORT,
        help=f"Port to bind to (default: {HTTP_PORT})"
    )
    parser.add_argument(
        "--reload",
        action="store_true",
        help="Enable auto-reload for development"
    )

    args = parser.parse_args()

    if args.transport == "stdio":
        asyncio.run(_prepare_stdio())
        logger.info("[Server] note MCP Server running on stdio transport")
        mcp.run(transport="stdio")
        return

    logger.info(f"[Server] Starting on {args.host}:{args.port}")
    logger.info(f"[Server] REST API: http://{args.host}:{args.port}/session")
    logger.info(f"[Server] MCP Endpoint: http://{args.host}:{args.port}/mcp/streamable")
    logger.info(f"[Server] API Docs: http://{args.host}:{args.port}/docs")

    uvicorn.run(
        "note_mcp.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
    )


if __name__ == "__main__":
    main()
