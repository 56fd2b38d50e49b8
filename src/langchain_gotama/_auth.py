"""
Credentials for the Anthropic Messages API.

The key comes from the ``api_key`` argument or from ``ANTHROPIC_API_KEY``;
it travels in the ``x-api-key`` header, never as a bearer token.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field

ENV_API_KEY = "ANTHROPIC_API_KEY"
API_KEY_HEADER = "x-api-key"


def _clean(value: str | None) -> str | None:
    # Claves copiadas de .env suelen traer espacios o saltos de línea.
    if value is None:
        return None
    value = value.strip()
    return value or None


@dataclass(frozen=True, slots=True)
class AuthConfig:
    api_key: str = field(repr=False)

    def headers(self) -> dict[str, str]:
        """Authentication headers for one request."""
        return {API_KEY_HEADER: self.api_key}

    @classmethod
    def from_env_or_value(cls, api_key: str | None) -> AuthConfig:
        """
        Resolve the key: explicit value first, then the environment.

        Raises:
            ValueError: If neither source holds a non-blank key.
        """
        key = _clean(api_key) or _clean(os.getenv(ENV_API_KEY))
        if key is None:
            raise ValueError(
                f"API key missing. Define {ENV_API_KEY} in environment or pass api_key value"
            )
        return cls(api_key=key)
