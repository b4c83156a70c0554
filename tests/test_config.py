import json
import logging

import keyring
import pytest
from keyring.errors import KeyringError, PasswordDeleteError

from agentic_cli.config import AppConfig, ConfigManager, ProviderConfig, default_config_path
from agentic_cli.credentials import CredentialStore, resolve_api_key
from agentic_cli.errors import ConfigurationError, UnsupportedProviderError
from agentic_cli.provider import ProviderType, env_var_names, get_env_api_key
from agentic_cli.providers import AnthropicProvider, OpenAIProvider, ProviderFactory, create_provider_factory


class TestConfigManager:
    def test_missing_file_is_created_with_defaults(self, tmp_path):
        path = tmp_path / "nested" / "config.json"
        manager = ConfigManager(path)

        config = manager.load()

        assert config == AppConfig()
        assert json.loads(path.read_text()) == {"default_provider": None, "providers": {}}

    def test_invalid_json_falls_back_to_defaults(self, tmp_path, caplog):
        path = tmp_path / "config.json"
        path.write_text("{not json")

        with caplog.at_level(logging.ERROR):
            config = ConfigManager(path).load()

        assert config == AppConfig()
        assert "Error reading config file" in caplog.text
        # the broken file is left alone
        assert path.read_text() == "{not json"

    def test_set_and_get_round_trip(self, tmp_path):
        path = tmp_path / "config.json"
        ConfigManager(path).set("default_provider", "anthropic")

        assert ConfigManager(path).get("default_provider") == "anthropic"
        assert ConfigManager(path).get("nonsense", "fallback") == "fallback"

    def test_unknown_key_is_rejected(self, tmp_path):
        with pytest.raises(ConfigurationError):
            ConfigManager(tmp_path / "config.json").set("colour", "blue")

    def test_mcp_and_roles_sections_round_trip(self, tmp_path):
        path = tmp_path / "config.json"
        manager = ConfigManager(path)
        manager.set("mcp", {"name": "team-tools", "tool_prefix": "team_"})
        manager.set("roles", {"qa": {"provider": "anthropic", "temperature": 0.5}})

        config = ConfigManager(path).load()

        assert config.mcp == {"name": "team-tools", "tool_prefix": "team_"}
        assert config.roles["qa"]["provider"] == "anthropic"
        assert AppConfig().to_dict() == {"default_provider": None, "providers": {}}

    def test_section_must_be_an_object(self, tmp_path, caplog):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"roles": ["coder"]}))

        with caplog.at_level(logging.ERROR):
            config = ConfigManager(path).load()

        assert config == AppConfig()
        assert "'roles' must be a JSON object" in caplog.text

    def test_provider_alias_defaults_type(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(
            json.dumps(
                {
                    "default_provider": "work",
                    "providers": {
                        "openai": {"model": "gpt-4.1"},
                        "work": {"provider_type": "anthropic", "instance_name": "work", "temperature": 0.2},
                    },
                }
            )
        )
        manager = ConfigManager(path)

        assert manager.get_provider_config("openai") == ProviderConfig("openai", model="gpt-4.1")
        work = manager.get_provider_config("work")
        assert (work.provider_type, work.instance_name, work.temperature) == ("anthropic", "work", 0.2)
        assert manager.get_provider_config("missing") is None

    def test_stored_provider_config_never_keeps_keys(self, tmp_path):
        path = tmp_path / "config.json"
        ConfigManager(path).set_provider_config(
            "openai", ProviderConfig("openai", api_key="sk-secret", model="gpt-4o")
        )

        stored = json.loads(path.read_text())["providers"]["openai"]
        assert "api_key" not in stored
        assert stored["model"] == "gpt-4o"

    def test_config_path_from_environment(self, tmp_path, monkeypatch):
        monkeypatch.delenv("AGENTIC_CLI_CONFIG", raising=False)
        monkeypatch.setenv("AGENTIC_CLI_HOME", str(tmp_path))
        assert default_config_path() == tmp_path / "config.json"

        monkeypatch.setenv("AGENTIC_CLI_CONFIG", str(tmp_path / "other.json"))
        assert default_config_path() == tmp_path / "other.json"

    def test_provider_config_requires_type(self):
        with pytest.raises(ConfigurationError):
            ProviderConfig.from_dict({"model": "x"})


class TestEnvironmentKeys:
    def test_env_var_names(self):
        assert env_var_names(ProviderType.GOOGLE) == ("GEMINI_API_KEY", "GOOGLE_API_KEY")
        assert env_var_names("mystery") == ()

    def test_first_set_variable_wins(self, monkeypatch):
        monkeypatch.delenv("XAI_API_KEY", raising=False)
        monkeypatch.setenv("GROK_API_KEY", "grok-key")

        assert get_env_api_key("grok") == "grok-key"


@pytest.fixture
def fake_keyring(monkeypatch):
    secrets = {}

    def get_password(service, account):
        return secrets.get((service, account))

    def set_password(service, account, secret):
        secrets[(service, account)] = secret

    def delete_password(service, account):
        if (service, account) not in secrets:
            raise PasswordDeleteError("not found")
        del secrets[(service, account)]

    monkeypatch.setattr(keyring, "get_password", get_password)
    monkeypatch.setattr(keyring, "set_password", set_password)
    monkeypatch.setattr(keyring, "delete_password", delete_password)
    return secrets


class TestCredentialStore:
    def test_set_get_delete(self, fake_keyring):
        store = CredentialStore()

        store.set_secret("openai", "sk-1", "work")

        assert fake_keyring == {("agentic-cli-openai", "work"): "sk-1"}
        assert store.get_secret("openai", "work") == "sk-1"
        assert store.get_secret("openai") is None
        assert store.delete_secret("openai", "work") is True
        assert store.delete_secret("openai", "work") is False

    def test_empty_secret_is_rejected(self, fake_keyring):
        with pytest.raises(ConfigurationError):
            CredentialStore().set_secret("openai", "")

    def test_keychain_failure_on_read_is_logged(self, monkeypatch, caplog):
        def broken(service, account):
            raise KeyringError("locked")

        monkeypatch.setattr(keyring, "get_password", broken)

        with caplog.at_level(logging.ERROR):
            assert CredentialStore().get_secret("openai") is None
        assert "locked" in caplog.text

    def test_resolution_order(self, fake_keyring, monkeypatch):
        monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
        store = CredentialStore()
        store.set_secret("anthropic", "from-keychain")

        assert resolve_api_key(ProviderConfig("anthropic"), store) == "from-keychain"
        monkeypatch.setenv("ANTHROPIC_API_KEY", "from-env")
        assert resolve_api_key(ProviderConfig("anthropic"), store) == "from-env"
        assert resolve_api_key(ProviderConfig("anthropic", api_key="explicit"), store) == "explicit"


class TestProviderFactory:
    def test_instances_are_cached_per_name(self):
        factory = create_provider_factory(credentials=None)

        first = factory.get_provider("openai")
        assert factory.get_provider(ProviderType.OPENAI) is first
        other = factory.get_provider("openai", "work")
        assert other is not first
        assert isinstance(other, OpenAIProvider)
        assert other.name == "OpenAIProvider:work"

    def test_unknown_type(self):
        factory = ProviderFactory()

        assert not factory.has_provider_type("openai")
        with pytest.raises(UnsupportedProviderError):
            factory.get_provider("openai")

    @pytest.mark.asyncio
    async def test_configure_provider(self, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-ant")
        factory = create_provider_factory()

        provider = await factory.configure_provider(
            "anthropic", ProviderConfig("anthropic", instance_name="work", model="claude-x")
        )

        assert isinstance(provider, AnthropicProvider)
        assert provider.model == "claude-x"
        assert factory.get_provider("anthropic", "work") is provider
        await factory.aclose()
        assert not provider.is_configured
