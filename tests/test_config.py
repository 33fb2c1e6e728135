import json

from ingenium.config.loader import (
    camel_to_snake,
    convert_keys,
    convert_to_camel,
    get_config_path,
    load_config,
    save_config,
    snake_to_camel,
)
from ingenium.config.schema import Config


def test_defaults():
    config = Config()
    defaults = config.agents.defaults
    assert defaults.max_tool_iterations == 20
    assert defaults.memory_window == 50
    assert defaults.subagent_max_iterations == 15
    assert config.tools.exec.timeout == 60
    assert config.channels.cli.enabled
    assert config.channels.cli.allow_from == []


def test_key_conversion():
    assert camel_to_snake("maxToolIterations") == "max_tool_iterations"
    assert snake_to_camel("max_tool_iterations") == "maxToolIterations"
    nested = {"agents": {"defaults": {"maxTokens": 10}}, "list": [{"apiKey": "k"}]}
    assert convert_keys(nested) == {"agents": {"defaults": {"max_tokens": 10}}, "list": [{"api_key": "k"}]}
    assert convert_to_camel(convert_keys(nested)) == nested


def test_save_and_load_round_trip(tmp_path):
    path = tmp_path / "config.json"
    config = Config()
    config.agents.defaults.model = "deepseek/deepseek-chat"
    config.providers.deepseek.api_key = "sk-test"
    save_config(config, path)

    raw = json.loads(path.read_text())
    assert raw["agents"]["defaults"]["maxToolIterations"] == 20
    assert raw["providers"]["deepseek"]["apiKey"] == "sk-test"

    loaded = load_config(path)
    assert loaded.agents.defaults.model == "deepseek/deepseek-chat"
    assert loaded.providers.deepseek.api_key == "sk-test"


def test_malformed_file_falls_back_to_defaults(tmp_path, capsys):
    path = tmp_path / "config.json"
    path.write_text("{ nope")

    config = load_config(path)
    assert config.agents.defaults.max_tool_iterations == 20
    assert "Using default configuration." in capsys.readouterr().out


def test_legacy_restrict_to_workspace_is_migrated(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"tools": {"exec": {"timeout": 5, "restrictToWorkspace": True}}}))

    config = load_config(path)
    assert config.tools.restrict_to_workspace is True
    assert config.tools.exec.timeout == 5


def test_default_path_is_under_home(isolated_home):
    assert get_config_path() == isolated_home / ".ingenium" / "config.json"
    assert load_config().agents.defaults.workspace == "~/.ingenium/workspace"


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("INGENIUM_AGENTS__DEFAULTS__MODEL", "openai/gpt-4o")
    monkeypatch.setenv("INGENIUM_TOOLS__EXEC__TIMEOUT", "15")
    config = Config()
    assert config.agents.defaults.model == "openai/gpt-4o"
    assert config.tools.exec.timeout == 15


def test_provider_matching():
    config = Config()
    assert config.get_provider() is None
    assert config.get_api_key() is None

    config.providers.anthropic.api_key = "sk-ant"
    config.providers.openai.api_key = "sk-oai"
    assert config.get_provider_name("anthropic/claude-opus-4-5") == "anthropic"
    assert config.get_provider_name("gpt-4o") == "openai"
    assert config.get_api_key("gpt-4o") == "sk-oai"
    # No keyword match: first configured provider wins
    assert config.get_provider_name("mystery-model") == "anthropic"
    assert config.get_api_base("gpt-4o") is None


def test_gateway_api_base_default():
    config = Config()
    config.providers.openrouter.api_key = "sk-or-abc"
    assert config.get_provider_name("anthropic/claude-opus-4-5") == "openrouter"
    assert config.get_api_base() == "https://openrouter.ai/api/v1"

    config.providers.openrouter.api_base = "https://proxy.local/v1"
    assert config.get_api_base() == "https://proxy.local/v1"


def test_workspace_path_expands_user(isolated_home):
    assert Config().workspace_path == isolated_home / ".ingenium" / "workspace"
