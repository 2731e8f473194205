import pytest

from issuetodo.config import ClientConfig
from issuetodo.env_auth import (
    TOKEN_VARIABLES,
    EnvAuthConfig,
    EnvironmentAuthManager,
    create_env_auth_manager,
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    # setenv first so variables a .env file adds are removed again on teardown
    for name in TOKEN_VARIABLES + ("CUSTOM_TOKEN",):
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)


def test_env_auth_config_defaults():
    config = EnvAuthConfig()
    assert config.load_dotenv is True
    assert config.dotenv_path is None
    assert config.github_token_var is None


def test_from_client_config():
    cfg = ClientConfig(token_env="CUSTOM_TOKEN", env_auth_load_dotenv=False, env_auth_dotenv_path="x.env")
    config = EnvAuthConfig.from_client_config(cfg)
    assert config == EnvAuthConfig(load_dotenv=False, dotenv_path="x.env", github_token_var="CUSTOM_TOKEN")


def test_no_token():
    manager = EnvironmentAuthManager(EnvAuthConfig(load_dotenv=False))
    assert manager.get_github_token() is None


def test_token_precedence(monkeypatch):
    monkeypatch.setenv("GH_TOKEN", "gh_cli")
    monkeypatch.setenv("GITHUB_TOKEN", "generic")
    manager = EnvironmentAuthManager(EnvAuthConfig(load_dotenv=False))
    assert manager.get_github_token() == "generic"

    monkeypatch.setenv("ISSUETODO_GITHUB_TOKEN", "  scoped  ")
    assert manager.get_github_token() == "scoped"


def test_custom_variable_wins(monkeypatch):
    monkeypatch.setenv("GITHUB_TOKEN", "generic")
    monkeypatch.setenv("CUSTOM_TOKEN", "custom")
    manager = EnvironmentAuthManager(EnvAuthConfig(load_dotenv=False, github_token_var="CUSTOM_TOKEN"))
    assert manager.get_github_token() == "custom"


def test_blank_values_are_skipped(monkeypatch):
    monkeypatch.setenv("ISSUETODO_GITHUB_TOKEN", "   ")
    monkeypatch.setenv("GH_TOKEN", "fallback")
    manager = EnvironmentAuthManager(EnvAuthConfig(load_dotenv=False))
    assert manager.get_github_token() == "fallback"


def test_dotenv_file_is_loaded(tmp_path):
    env_file = tmp_path / "todo.env"
    env_file.write_text("GH_TOKEN=from_dotenv\n")
    manager = create_env_auth_manager(EnvAuthConfig(dotenv_path=str(env_file)))
    assert manager.dotenv_loaded is True
    assert manager.get_github_token() == "from_dotenv"


def test_dotenv_does_not_override(monkeypatch, tmp_path):
    monkeypatch.setenv("GH_TOKEN", "already_set")
    env_file = tmp_path / "todo.env"
    env_file.write_text("GH_TOKEN=from_dotenv\n")
    manager = create_env_auth_manager(EnvAuthConfig(dotenv_path=str(env_file)))
    assert manager.get_github_token() == "already_set"


def test_missing_dotenv_path(tmp_path):
    manager = create_env_auth_manager(EnvAuthConfig(dotenv_path=str(tmp_path / "absent.env")))
    assert manager.dotenv_loaded is False
