"""Configuration for the note MCP Server"""
import os

from dotenv import load_dotenv

load_dotenv()

# note API
API_BASE_URL = os.getenv("NOTE_API_BASE_URL", "https://note.com/api")
HTTP_TIMEOUT_SECONDS = float(os.getenv("NOTE_HTTP_TIMEOUT", "30"))

# Credentials (read once at startup)
NOTE_EMAIL = os.getenv("NOTE_EMAIL", "")
NOTE_PASSWORD = os.getenv("NOTE_PASSWORD", "")
NOTE_SESSION_V5 = os.getenv("NOTE_SESSION_V5", "")
NOTE_XSRF_TOKEN = os.getenv("NOTE_XSRF_TOKEN", "")
NOTE_USER_ID = os.getenv("NOTE_USER_ID", "")

# Logging
DEBUG = os.getenv("DEBUG", "false").lower() == "true"

# HTTP transport
HTTP_PORT = int(os.getenv("HTTP_PORT", "3000"))

# Cookie and header names used by note.com
SESSION_COOKIE_NAME = "_note_session_v5"
XSRF_COOKIE_NAME = "XSRF-TOKEN"
XSRF_HEADER_NAME = "X-XSRF-TOKEN"

SIGN_IN_PATH = "/v1/sessions/sign_in"
CURRENT_USER_PATH = "/v2/current_user"

# The API rejects requests without a recognizable browser signature
USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/96.0.4664.110 Safari/537.36"
)

DEFAULT_HEADERS = {
    "Content-Type": "application/json",
    "Accept": "application/json",
    "User-Agent": USER_AGENT,
}
