import os
import logging
from dataclasses import dataclass
from typing import Mapping, Optional

from src.utils.errors import ConfigurationError

logger = logging.getLogger("gateway-config")

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 3000
DEFAULT_METRICS_PORT = 9091
DEFAULT_GITHUB_API_URL = "https://api.github.com"


@dataclass(frozen=True)
class GatewaySettings:
    """Process-wide settings, resolved once at startup"""

    github_token: str
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    api_key: Optional[str] = None
    auth_mode: str = "none"
    metrics_port: int = DEFAULT_METRICS_PORT
    public_base_url: Optional[str] = None
    github_base_url: str = DEFAULT_GITHUB_API_URL

    @classmethod
    def from_env(
        cls, environ: Optional[Mapping[str, str]] = None, **overrides
    ) -> "GatewaySettings":
        """
        Build settings from environment variables.

        Args:
            environ: Mapping to read from (defaults to os.environ)
            **overrides: Values that win over the environment (e.g. CLI flags).
                ``None`` values are ignored.

        Returns:
            GatewaySettings

        Raises:
            ConfigurationError: If GITHUB_TOKEN is missing or a number is malformed
        """
        env = os.environ if environ is None else environ

        github_token = env.get("GITHUB_TOKEN")
        api_key = env.get("MCP_API_KEY")

        logger.info("Environment check:")
        logger.info(f"- GITHUB_TOKEN exists: {bool(github_token)}")
        logger.info(f"- GITHUB_TOKEN length: {len(github_token or '')}")
        logger.info(f"- MCP_API_KEY exists: {bool(api_key)}")

        if not github_token:
            raise ConfigurationError("GITHUB_TOKEN environment variable is required")

        values = {
            "github_token": github_token,
            "host": env.get("HOST", DEFAULT_HOST),
            "port": _parse_int(env, "PORT", DEFAULT_PORT),
            "api_key": api_key or None,
            "auth_mode": env.get("AUTH_MODE", "none").lower(),
            "metrics_port": _parse_int(env, "METRICS_PORT", DEFAULT_METRICS_PORT),
            "public_base_url": env.get("PUBLIC_BASE_URL") or None,
            "github_base_url": env.get("GITHUB_API_URL", DEFAULT_GITHUB_API_URL),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


def _parse_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}")
