"""Client configuration."""

from __future__ import annotations

import os

from pydantic import BaseModel, Field

DEFAULT_BASE_URL = "http://localhost:8000"


class ClientConfig(BaseModel):
    """Settings shared by the API client and the auth service.

    The login, register and refresh paths double as the allowlist of
    endpoints that never carry an access token and never trigger a refresh.
    """

    base_url: str = DEFAULT_BASE_URL
    timeout: float = 30.0
    login_path: str = "/auth/login/"
    register_path: str = "/auth/register/"
    refresh_path: str = "/auth/token/refresh/"
    default_headers: dict[str, str] = Field(
        default_factory=lambda: {"Content-Type": "application/json"}
    )

    @property
    def unauthenticated_paths(self) -> tuple[str, ...]:
        return (self.login_path, self.register_path, self.refresh_path)

    @classmethod
    def from_env(cls, prefix: str = "RELAY_") -> ClientConfig:
        """Build a config from environment variables.

        Reads ``<prefix>API_BASE_URL`` and ``<prefix>TIMEOUT``; anything
        missing falls back to the defaults.
        """
        values: dict[str, str] = {}
        base_url = os.environ.get(f"{prefix}API_BASE_URL")
        if base_url:
            values["base_url"] = base_url
        timeout = os.environ.get(f"{prefix}TIMEOUT")
        if timeout:
            values["timeout"] = timeout
        return cls.model_validate(values)
