"""
Test conftest — isolate Telegram credential environment variables so that
settings tests are not affected by a real bot token or chat id in the
developer's or CI environment.
"""
import pytest

_CREDENTIAL_ENV_VARS = [
    "TELEGRAM_BOT_TOKEN",
    "TELEGRAM_CHAT_ID",
    "FORWARDER_CONFIG",
]


@pytest.fixture(autouse=True)
def _clear_credentials_from_env(monkeypatch):
    """Remove credential env vars for every test so Settings() behaves
    as if none are present unless the test explicitly provides them.
    Also disables .env file loading so local developer .env files don't
    leak real credentials into tests."""
    # Clear from os.environ
    for var in _CREDENTIAL_ENV_VARS:
        monkeypatch.delenv(var, raising=False)

    # Disable .env file loading by patching Settings.model_config
    import config.settings as settings_module
    from pydantic_settings import SettingsConfigDict
    patched_config = SettingsConfigDict(
        env_file=None,
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
        case_sensitive=False,
    )
    monkeypatch.setattr(settings_module.Settings, "model_config", patched_config)
