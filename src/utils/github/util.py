import base64
import datetime
import logging
from typing import Any, Optional

from github import Auth, Github, GithubException
from github.GithubObject import GithubObject

from src.utils.config import DEFAULT_GITHUB_API_URL

logger = logging.getLogger(__name__)

# Upper bound on list_repositories results, fetched as a single page
PAGE_SIZE = 100


def create_github_client(
    token: str, base_url: str = DEFAULT_GITHUB_API_URL, per_page: int = PAGE_SIZE
) -> Github:
    """
    Create the process-wide authenticated GitHub client.

    Args:
        token: Personal access token or app token used for every upstream call.
        base_url: GitHub REST API root (override for GitHub Enterprise).
        per_page: Page size used by paginated listings.

    Returns:
        Github: An authenticated PyGithub client.
    """
    logger.info(f"Creating GitHub client for {base_url}")
    return Github(auth=Auth.Token(token), base_url=base_url, per_page=per_page)


def upstream_error_message(error: Exception) -> str:
    """
    Extract the message GitHub attached to a failed request.

    GitHub error bodies look like ``{"message": "Not Found", ...}``; the
    message is passed through verbatim. Errors without a body fall back to
    ``str(error)``.
    """
    if isinstance(error, GithubException):
        data = error.data
        if isinstance(data, dict) and data.get("message"):
            return str(data["message"])
        if isinstance(data, str) and data:
            return data
        if getattr(error, "message", None):
            return error.message
    return str(error) or error.__class__.__name__


def decode_content(encoded: Optional[str]) -> str:
    """Decode a base64 ``content`` field from the contents API into text"""
    if not encoded:
        return ""
    # Binary blobs decode lossily; invalid bytes become U+FFFD
    return base64.b64decode(encoded).decode("utf-8", errors="replace")


def github_object_to_json(obj: Any) -> Any:
    """
    Convert a GitHub object to a serializable dictionary.
    """
    if isinstance(obj, (str, int, float, bool, type(None))):
        return obj
    elif isinstance(obj, datetime.datetime):
        return obj.isoformat()
    elif isinstance(obj, (list, tuple)):
        return [github_object_to_json(item) for item in obj]
    elif isinstance(obj, dict):
        return {k: github_object_to_json(v) for k, v in obj.items()}
    elif hasattr(obj, "_rawData") and obj._rawData:
        # Raw payload as returned by the API, without triggering a lazy fetch
        return obj._rawData
    elif isinstance(obj, GithubObject):
        return {}
    return str(obj)
