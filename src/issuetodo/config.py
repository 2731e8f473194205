from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, cast

import yaml

from .errors import ConfigError

DEFAULT_API_URL = "https://api.github.com"
DEFAULT_PAGE_SIZE = 100
DEFAULT_DEBOUNCE_SECONDS = 0.8
DEFAULT_SAVED_ACK_SECONDS = 1.2
DEFAULT_STATE_FILE = ".issuetodo_state.json"


@dataclass
class ClientConfig:
    api_url: str = DEFAULT_API_URL
    token_env: str | None = None
    page_size: int = DEFAULT_PAGE_SIZE
    request_timeout: float = 30.0
    # Autosave configuration
    debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS
    saved_ack_seconds: float = DEFAULT_SAVED_ACK_SECONDS
    # Persisted selection
    state_file: Path = Path(DEFAULT_STATE_FILE)
    # Logging configuration
    logging_json_enabled: bool = False
    logging_level: str = "INFO"
    # Environment authentication configuration
    env_auth_load_dotenv: bool = True
    env_auth_dotenv_path: str | None = None


def _resolve_env_var(value: Any) -> Any:
    """Resolve environment variable if value starts with $."""
    if isinstance(value, str) and value.startswith('$'):
        return os.getenv(value[1:], value)  # Fallback to original if not found
    return value


def _section(raw: dict[str, Any], name: str) -> dict[str, Any]:
    value = raw.get(name, {}) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"Configuration section '{name}' must be a mapping")
    return cast(dict[str, Any], value)


def load_config(path: str | Path) -> ClientConfig:
    p = Path(path)
    if not p.exists():
        raise ConfigError(f'Configuration file not found: {p}')
    try:
        raw_any = yaml.safe_load(p.read_text(encoding='utf-8')) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f'Invalid YAML in {p}: {exc}') from exc
    if not isinstance(raw_any, dict):
        raise ConfigError(f'Configuration root must be a mapping: {p}')
    raw = cast(dict[str, Any], raw_any)
    gh = _section(raw, 'github')
    autosave = _section(raw, 'autosave')
    state = _section(raw, 'state')
    logging_config = _section(raw, 'logging')
    env_auth = _section(raw, 'environment')

    try:
        page_size = int(gh.get('page_size', DEFAULT_PAGE_SIZE))
        timeout = float(gh.get('timeout', 30.0))
        debounce = float(autosave.get('debounce_seconds', DEFAULT_DEBOUNCE_SECONDS))
        saved_ack = float(autosave.get('saved_ack_seconds', DEFAULT_SAVED_ACK_SECONDS))
    except (TypeError, ValueError) as exc:
        raise ConfigError(f'Invalid numeric setting in {p}: {exc}') from exc
    # GitHub caps list endpoints at 100 entries per page
    if not 1 <= page_size <= DEFAULT_PAGE_SIZE:
        raise ConfigError(f'github.page_size must be between 1 and 100, got {page_size}')
    if debounce < 0 or saved_ack < 0:
        raise ConfigError('autosave intervals must not be negative')

    state_file = Path(str(_resolve_env_var(state.get('file', DEFAULT_STATE_FILE))))
    if not state_file.is_absolute():
        state_file = p.parent / state_file

    return ClientConfig(
        api_url=str(_resolve_env_var(gh.get('api_url', DEFAULT_API_URL))),
        token_env=gh.get('token_env'),
        page_size=page_size,
        request_timeout=timeout,
        debounce_seconds=debounce,
        saved_ack_seconds=saved_ack,
        state_file=state_file,
        logging_json_enabled=bool(logging_config.get('json_enabled', False)),
        logging_level=str(logging_config.get('level', 'INFO')),
        env_auth_load_dotenv=bool(env_auth.get('load_dotenv', True)),
        env_auth_dotenv_path=_resolve_env_var(env_auth.get('dotenv_path')),
    )


__all__ = ["ClientConfig", "ConfigError", "load_config"]
