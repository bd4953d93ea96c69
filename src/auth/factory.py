import logging
import os
from typing import Optional, Type, TypeVar

from .clients.BaseAuthClient import BaseAuthClient

logger = logging.getLogger("auth-factory")

T = TypeVar("T", bound=BaseAuthClient)


def create_auth_client(
    client_type: Optional[Type[T]] = None,
    api_key: Optional[str] = None,
    auth_mode: Optional[str] = None,
) -> BaseAuthClient:
    """
    Factory function to create the appropriate auth client based on environment

    Args:
        client_type: Optional specific client class to instantiate
        api_key: Shared key for the api_key mode
        auth_mode: "none" or "api_key", defaults to the AUTH_MODE environment variable

    Returns:
        An instance of the appropriate BaseAuthClient implementation
    """
    # If client_type is specified, use it directly
    if client_type:
        return client_type()

    mode = (auth_mode or os.environ.get("AUTH_MODE", "none")).lower()

    if mode == "api_key":
        from .clients.ApiKeyAuthClient import ApiKeyAuthClient

        logger.info("Using API key authentication")
        return ApiKeyAuthClient(api_key=api_key)
    elif mode not in ("none", "local"):
        raise ValueError(f"Unsupported AUTH_MODE: {mode}")

    # Default to the pass-through client
    from .clients.LocalAuthClient import LocalAuthClient

    logger.info("Authentication disabled; all requests are allowed")
    return LocalAuthClient()
