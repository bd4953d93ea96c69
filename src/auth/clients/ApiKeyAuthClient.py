import hmac
import logging
import os
from typing import Optional

from starlette.requests import Request

from .BaseAuthClient import BaseAuthClient

logger = logging.getLogger("ApiKeyAuthClient")


class ApiKeyAuthClient(BaseAuthClient):
    """
    Implementation of BaseAuthClient that requires a shared API key.

    The key is accepted either as ``Authorization: Bearer <key>`` or as an
    ``X-API-Key`` header.
    """

    def __init__(self, api_key: Optional[str] = None):
        """
        Initialize the API key auth client

        Args:
            api_key: Expected key, defaults to the MCP_API_KEY environment variable
        """
        self.api_key = api_key or os.environ.get("MCP_API_KEY")
        if not self.api_key:
            raise ValueError("MCP_API_KEY is required when AUTH_MODE=api_key")

    def _presented_key(self, request: Request) -> Optional[str]:
        authorization = request.headers.get("authorization", "")
        scheme, _, token = authorization.partition(" ")
        if scheme.lower() == "bearer" and token:
            return token.strip()
        return request.headers.get("x-api-key")

    def authenticate(self, request: Request) -> bool:
        presented = self._presented_key(request)
        if not presented:
            logger.warning(f"Rejected request to {request.url.path}: no API key")
            return False
        if not hmac.compare_digest(presented.encode(), self.api_key.encode()):
            logger.warning(f"Rejected request to {request.url.path}: invalid API key")
            return False
        return True
