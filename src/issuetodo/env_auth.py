"""Environment-based credential discovery.

The OAuth/PKCE handshake and secure token storage live outside this package.
What the sync layer needs is a bearer credential; this module finds one in
environment variables or a ``.env`` file so scripts and tests can run the
client without the interactive login.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from .config import ClientConfig
from .logging import get_logger

TOKEN_VARIABLES = ("ISSUETODO_GITHUB_TOKEN", "GITHUB_TOKEN", "GH_TOKEN")
DOTENV_LOCATIONS = ('.env', '.env.local')


@dataclass
class EnvAuthConfig:
    """Configuration for environment-based authentication."""

    load_dotenv: bool = True
    dotenv_path: str | None = None
    github_token_var: str | None = None

    @classmethod
    def from_client_config(cls, cfg: ClientConfig) -> EnvAuthConfig:
        return cls(
            load_dotenv=cfg.env_auth_load_dotenv,
            dotenv_path=cfg.env_auth_dotenv_path,
            github_token_var=cfg.token_env,
        )


class EnvironmentAuthManager:
    """Looks up a GitHub bearer token in the process environment."""

    def __init__(self, config: EnvAuthConfig):
        self.config = config
        self.logger = get_logger()
        self._dotenv_loaded = False
        if config.load_dotenv:
            self._load_dotenv()

    @property
    def dotenv_loaded(self) -> bool:
        return self._dotenv_loaded

    def _load_dotenv(self) -> None:
        """Load the first .env file found; existing variables win."""
        candidates = [self.config.dotenv_path] if self.config.dotenv_path else list(DOTENV_LOCATIONS)
        for location in candidates:
            env_path = Path(location)
            if env_path.exists():
                load_dotenv(str(env_path), override=False)
                self._dotenv_loaded = True
                self.logger.debug(f"Loaded environment variables from {env_path}")
                return

    def get_github_token(self) -> str | None:
        names: list[str] = []
        if self.config.github_token_var:
            names.append(self.config.github_token_var)
        names.extend(n for n in TOKEN_VARIABLES if n not in names)
        for name in names:
            raw = os.getenv(name)
            if raw is None:
                continue
            token = raw.strip()
            if token:
                self.logger.debug(f"Found GitHub token in {name}")
                return token
        return None


def create_env_auth_manager(config: EnvAuthConfig | None = None) -> EnvironmentAuthManager:
    """Factory function to create environment authentication manager."""
    if config is None:
        config = EnvAuthConfig()
    return EnvironmentAuthManager(config)


__all__ = ["EnvAuthConfig", "EnvironmentAuthManager", "create_env_auth_manager", "TOKEN_VARIABLES"]
