"""Pydantic models for the note MCP Server"""
from pydantic import BaseModel, Field, ConfigDict
from typing import Literal, Optional

from . import config


# ==============================================================================
# Credential Models
# ==============================================================================

class Credentials(BaseModel):
    """Statically configured credentials, fixed for the process lifetime."""
    model_config = ConfigDict(
        frozen=True,
    )

    email: str = Field(default="", description="Login email address")
    password: str = Field(default="", description="Login password")
    session_cookie: str = Field(default="", description="Pre-provisioned _note_session_v5 value")
    xsrf_token: str = Field(default="", description="Pre-provisioned XSRF token")
    user_id: str = Field(default="", description="note.com user name (urlname)")

    @classmethod
    def from_env(cls) -> "Credentials":
        """Build credentials from the environment loaded in config."""
        return cls(
            email=config.NOTE_EMAIL,
            password=config.NOTE_PASSWORD,
            session_cookie=config.NOTE_SESSION_V5,
            xsrf_token=config.NOTE_XSRF_TOKEN,
            user_id=config.NOTE_USER_ID,
        )

    @property
    def has_static_cookie(self) -> bool:
        return bool(self.session_cookie or self.xsrf_token)

    @property
    def has_login_credentials(self) -> bool:
        return bool(self.email and self.password)

    @property
    def any_static_auth(self) -> bool:
        return self.has_static_cookie or self.has_login_credentials


# ==============================================================================
# Tool Input Models
# ==============================================================================

class SearchNotesInput(BaseModel):
    """Input parameters for the search_notes tool."""
    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True,
        extra='forbid'
    )

    query: str = Field(
        ...,
        description="Search keyword",
        min_length=1,
        max_length=200
    )
    size: int = Field(
        default=10,
        description="Number of results to return (1-20)",
        ge=1,
        le=20
    )
    start: int = Field(
        default=0,
        description="Offset of the first result",
        ge=0
    )


class NoteIdInput(BaseModel):
    """Input parameters for tools that act on a single note."""
    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True,
        extra='forbid'
    )

    note_id: str = Field(
        ...,
        description="Note key (e.g., 'n4f0c7b884789')",
        min_length=1,
        max_length=100
    )


class SearchUsersInput(BaseModel):
    """Input parameters for the search_users tool."""
    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True,
        extra='forbid'
    )

    query: str = Field(..., description="Search keyword", min_length=1, max_length=200)
    size: int = Field(default=10, description="Number of results to return (1-20)", ge=1, le=20)
    start: int = Field(default=0, description="Offset of the first result", ge=0)


class UsernameInput(BaseModel):
    """Input parameters for tools that act on a single user."""
    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True,
        extra='forbid'
    )

    username: str = Field(
        ...,
        description="note.com user name (urlname), e.g. 'note_official'",
        min_length=1,
        max_length=100
    )


class UserNotesInput(BaseModel):
    """Input parameters for the get_user_notes tool."""
    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True,
        extra='forbid'
    )

    username: str = Field(..., description="note.com user name (urlname)", min_length=1, max_length=100)
    page: int = Field(default=1, description="Page number", ge=1)


class PostCommentInput(BaseModel):
    """Input parameters for the post_comment tool."""
    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True,
        extra='forbid'
    )

    note_id: str = Field(..., description="Note key", min_length=1, max_length=100)
    text: str = Field(..., description="Comment body", min_length=1)


class SaveDraftInput(BaseModel):
    """Input parameters for the save_draft tool."""
    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True,
        extra='forbid'
    )

    title: str = Field(..., description="Draft title", min_length=1)
    body: str = Field(..., description="Draft body")
    tags: list[str] = Field(
        default_factory=list,
        description="Hashtags (at most 10)",
        max_length=10
    )
    draft_id: Optional[str] = Field(
        default=None,
        description="Existing draft ID to update; omit to create a new draft"
    )


class GetMyNotesInput(BaseModel):
    """Input parameters for the get_my_notes tool."""
    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True,
        extra='forbid'
    )

    page: int = Field(default=1, description="Page number", ge=1)
    per_page: int = Field(default=20, description="Notes per page (1-100)", ge=1, le=100)
    status: Literal["all", "draft", "public"] = Field(
        default="all",
        description="Filter: 'all', 'draft' (drafts only) or 'public' (published only)"
    )


# ==============================================================================
# REST API Models
# ==============================================================================

class AuthStatusResponse(BaseModel):
    """Current authentication state (secrets are never included)."""
    has_static_cookie: bool = Field(..., description="A session cookie or XSRF token is configured")
    has_login_credentials: bool = Field(..., description="Email and password are configured")
    any_static_auth: bool = Field(..., description="Any configured way to authenticate exists")
    authenticated: bool = Field(..., description="A dynamic session cookie was obtained by login")
    has_xsrf_token: bool = Field(..., description="An XSRF token (dynamic or static) is available")
    last_login_error: Optional[str] = Field(None, description="Reason the last login failed")


class LoginResponse(BaseModel):
    """Response after forcing a login."""
    success: bool = Field(..., description="Whether a session cookie was obtained")
    message: str = Field(..., description="Status message")


class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str = Field(..., description="Error type")
    detail: str = Field(..., description="Error details")
