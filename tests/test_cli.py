import json

from typer.testing import CliRunner

from ingenium import __version__
from ingenium.cli import commands
from ingenium.cli.commands import app
from ingenium.providers.base import LLMResponse
from ingenium.session.manager import SessionManager

from .conftest import ScriptedProvider

runner = CliRunner()


def test_version():
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert f"ingenium v{__version__}" in result.stdout


def test_onboard_writes_config_and_templates(isolated_home):
    result = runner.invoke(app, ["onboard"])
    assert result.exit_code == 0

    config_path = isolated_home / ".ingenium" / "config.json"
    data = json.loads(config_path.read_text())
    assert data["agents"]["defaults"]["maxToolIterations"] == 20

    workspace = isolated_home / ".ingenium" / "workspace"
    for name in ("AGENTS.md", "SOUL.md", "USER.md", "memory/MEMORY.md"):
        assert (workspace / name).exists()
    assert (workspace / "skills").is_dir()


def test_onboard_keeps_existing_config_when_declined(isolated_home):
    runner.invoke(app, ["onboard"])
    config_path = isolated_home / ".ingenium" / "config.json"
    config_path.write_text('{"agents": {"defaults": {"model": "mine"}}}')

    result = runner.invoke(app, ["onboard"], input="n\n")
    assert result.exit_code == 0
    assert "mine" in config_path.read_text()


def test_templates_do_not_overwrite(tmp_path):
    (tmp_path / "AGENTS.md").write_text("custom")
    created = commands._create_workspace_templates(tmp_path)
    assert "AGENTS.md" not in created
    assert (tmp_path / "AGENTS.md").read_text() == "custom"
    assert "memory/MEMORY.md" in created


def test_agent_requires_api_key():
    result = runner.invoke(app, ["agent", "-m", "hello"])
    assert result.exit_code == 1
    assert "No API key configured" in result.stdout


def test_agent_single_message(monkeypatch, isolated_home):
    provider = ScriptedProvider([LLMResponse(content="Hi from the agent")])
    monkeypatch.setattr(commands, "_make_provider", lambda config: provider)

    result = runner.invoke(app, ["agent", "-m", "hello", "--no-markdown", "-s", "cli:test"])

    assert result.exit_code == 0
    assert "Hi from the agent" in result.stdout
    stored = SessionManager().get_or_create("cli:test").messages
    assert [m["content"] for m in stored] == ["hello", "Hi from the agent"]


def test_status_and_channels():
    result = runner.invoke(app, ["status"])
    assert result.exit_code == 0
    assert "ingenium Status" in result.stdout

    result = runner.invoke(app, ["channels", "status"])
    assert result.exit_code == 0
    assert "CLI" in result.stdout


def test_sessions_list_and_delete():
    result = runner.invoke(app, ["sessions", "list"])
    assert "No sessions." in result.stdout

    store = SessionManager()
    session = store.get_or_create("cli:old")
    session.add_message("user", "hi")
    store.save(session)

    result = runner.invoke(app, ["sessions", "list"])
    assert "cli:old" in result.stdout

    result = runner.invoke(app, ["sessions", "delete", "cli:old"])
    assert result.exit_code == 0
    assert "Deleted session cli:old" in result.stdout

    result = runner.invoke(app, ["sessions", "delete", "cli:old"])
    assert result.exit_code == 1
