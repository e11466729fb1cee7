"""
Connection settings for a Dify app: the app API key and the API base URL.

Both come from explicit arguments first and from the environment second
(DIFY_API_KEY, DIFY_BASE_URL). A `.env` file is not read here; callers load it
with python-dotenv when they want one.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

ENV_API_KEY = "DIFY_API_KEY"
ENV_BASE_URL = "DIFY_BASE_URL"
DEFAULT_BASE_URL = "https://api.dify.ai"


@dataclass(frozen=True, slots=True)
class AuthConfig:
    """Resolved credentials for one Dify app."""

    api_key: str
    base_url: str = DEFAULT_BASE_URL

    @staticmethod
    def from_env_or_value(api_key: str | None, base_url: str | None = None) -> AuthConfig:
        """
        Resolve the app key and base URL.

        Args:
            api_key: App API key (``app-...``). Falls back to DIFY_API_KEY.
            base_url: API root, e.g. a self-hosted instance. Falls back to
                DIFY_BASE_URL, then to the Dify cloud endpoint.

        Raises:
            ValueError: If no API key is given and DIFY_API_KEY is unset or empty.
        """
        key = api_key or os.getenv(ENV_API_KEY)
        if not key:
            raise ValueError(
                f"API key missing. Define {ENV_API_KEY} in environment or pass api_key value"
            )

        url = base_url or os.getenv(ENV_BASE_URL) or DEFAULT_BASE_URL
        return AuthConfig(api_key=key, base_url=url.rstrip("/"))
