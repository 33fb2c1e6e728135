"""
ingenium 命令行。

- onboard：写入默认配置与工作区模板
- agent：单条消息（-m）或交互模式
- status：配置、工作区、模型与各服务商 Key 的状态
- channels status：已配置渠道一览
- sessions list / delete：会话存储维护

技术栈：Typer 定义命令，Rich 负责终端输出，交互输入由 CLIChannel 中的 prompt_toolkit 完成。
"""

import asyncio
from contextlib import nullcontext
from pathlib import Path

import typer
from rich.console import Console
from rich.markdown import Markdown
from rich.table import Table
from rich.text import Text

from ingenium import __logo__, __version__

app = typer.Typer(
    name="ingenium",
    help=f"{__logo__} ingenium - Personal AI Agent",
    no_args_is_help=True,
)

console = Console()


def _print_agent_response(response: str, render_markdown: bool) -> None:
    content = response or ""
    body = Markdown(content) if render_markdown else Text(content)
    console.print()
    console.print(f"[cyan]{__logo__} ingenium[/cyan]")
    console.print(body)
    console.print()


def version_callback(value: bool):
    if value:
        console.print(f"{__logo__} ingenium v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None, "--version", "-v", callback=version_callback, is_eager=True
    ),
):
    """ingenium - Personal AI Agent."""
    pass


# ============================================================================
# Onboard
# ============================================================================


@app.command()
def onboard():
    """Initialize ingenium configuration and workspace."""
    from ingenium.config.loader import get_config_path, save_config
    from ingenium.config.schema import Config
    from ingenium.utils.helpers import get_workspace_path

    config_path = get_config_path()

    if config_path.exists():
        console.print(f"[yellow]Config already exists at {config_path}[/yellow]")
        if not typer.confirm("Overwrite?"):
            raise typer.Exit()

    config = Config()
    save_config(config)
    console.print(f"[green]✓[/green] Created config at {config_path}")

    workspace = get_workspace_path()
    console.print(f"[green]✓[/green] Created workspace at {workspace}")
    _create_workspace_templates(workspace)

    console.print(f"\n{__logo__} ingenium is ready!")
    console.print("\nNext steps:")
    console.print("  1. Add your API key to [cyan]~/.ingenium/config.json[/cyan]")
    console.print("  2. Chat: [cyan]ingenium agent -m \"Hello!\"[/cyan]")


def _create_workspace_templates(workspace: Path) -> list[str]:
    """写入缺失的引导文件与 memory/MEMORY.md 并创建 skills/，已存在的文件不覆盖。返回新建的相对路径。"""
    templates = {
        "AGENTS.md": """# Agent Instructions

You are a helpful AI assistant. Be concise, accurate, and friendly.

## Guidelines

- Explain what you're doing before taking actions
- Ask for clarification when the request is ambiguous
- Use the spawn tool for long-running work and keep chatting while it runs
- Remember important information in memory/MEMORY.md
""",
        "SOUL.md": """# Soul

I am ingenium, a lightweight AI agent.

## Personality

- Helpful and friendly
- Concise and to the point

## Values

- Accuracy over speed
- Transparency in actions
""",
        "USER.md": """# User

Information about the user goes here.

## Preferences

- Communication style: (casual/formal)
- Timezone: (your timezone)
- Language: (your preferred language)
""",
        "memory/MEMORY.md": """# Long-term Memory

This file stores important information that should persist across sessions.

## User Information

(Important facts about the user)

## Preferences

(User preferences learned over time)
""",
    }

    created = []
    for relative, content in templates.items():
        file_path = workspace / relative
        if file_path.exists():
            continue
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_text(content, encoding="utf-8")
        console.print(f"  [dim]Created {relative}[/dim]")
        created.append(relative)

    # custom skills live in workspace/skills/<name>/SKILL.md
    (workspace / "skills").mkdir(exist_ok=True)
    return created


def _make_provider(config):
    from ingenium.providers.litellm_provider import LiteLLMProvider

    p = config.get_provider()
    model = config.agents.defaults.model
    if not (p and p.api_key):
        console.print("[red]Error: No API key configured.[/red]")
        console.print("Set one in ~/.ingenium/config.json under providers section")
        raise typer.Exit(1)

    return LiteLLMProvider(
        api_key=p.api_key,
        api_base=config.get_api_base(),
        default_model=model,
        extra_headers=p.extra_headers,
        provider_name=config.get_provider_name(),
    )


def _make_agent_loop(config, bus, provider):
    from ingenium.agent.loop import AgentLoop

    defaults = config.agents.defaults
    return AgentLoop(
        bus=bus,
        provider=provider,
        workspace=config.workspace_path,
        model=defaults.model,
        max_iterations=defaults.max_tool_iterations,
        memory_window=defaults.memory_window,
        max_tokens=defaults.max_tokens,
        temperature=defaults.temperature,
        subagent_max_iterations=defaults.subagent_max_iterations,
        brave_api_key=config.tools.web.search.api_key or None,
        exec_config=config.tools.exec,
        restrict_to_workspace=config.tools.restrict_to_workspace,
    )


# ============================================================================
# Agent
# ============================================================================


@app.command()
def agent(
    message: str = typer.Option(None, "--message", "-m", help="Message to send to the agent"),
    session_id: str = typer.Option("cli:direct", "--session", "-s", help="Session ID"),
    markdown: bool = typer.Option(True, "--markdown/--no-markdown", help="Render assistant output as Markdown"),
    logs: bool = typer.Option(False, "--logs/--no-logs", help="Show ingenium runtime logs during chat"),
):
    """
    Chat with the agent.

    With -m the message is processed directly and the reply printed. Without it,
    the agent loop and the terminal channel run on the message bus, so replies
    from background subagents show up while you keep typing.
    """
    from loguru import logger

    from ingenium.bus.queue import MessageBus
    from ingenium.channels.cli import CLIChannel
    from ingenium.channels.manager import ChannelManager
    from ingenium.config.loader import load_config
    from ingenium.utils.helpers import parse_session_key

    config = load_config()
    bus = MessageBus()
    provider = _make_provider(config)

    if logs:
        logger.enable("ingenium")
    else:
        logger.disable("ingenium")

    agent_loop = _make_agent_loop(config, bus, provider)

    if message:
        def _thinking_ctx():
            if logs:
                return nullcontext()
            return console.status("[dim]ingenium is thinking...[/dim]", spinner="dots")

        async def run_once():
            with _thinking_ctx():
                response = await agent_loop.process_direct(message, session_id)
            _print_agent_response(response, render_markdown=markdown)

        asyncio.run(run_once())
        return

    try:
        _, chat_id = parse_session_key(session_id)
    except ValueError:
        chat_id = session_id

    channels = ChannelManager(config, bus)
    channels.register(CLIChannel(
        config.channels.cli,
        bus,
        chat_id=chat_id,
        render_markdown=markdown,
        console=console,
    ))

    console.print(f"{__logo__} Interactive mode (type [bold]exit[/bold] or [bold]Ctrl+C[/bold] to quit)\n")

    async def run_interactive():
        agent_task = agent_loop.start()
        try:
            await channels.start_all()
        finally:
            agent_loop.stop()
            await channels.stop_all()
            await agent_task

    try:
        asyncio.run(run_interactive())
    except KeyboardInterrupt:
        console.print("\nGoodbye!")


# ============================================================================
# Channels
# ============================================================================


channels_app = typer.Typer(help="Manage channels")
app.add_typer(channels_app, name="channels")


@channels_app.command("status")
def channels_status():
    """Show channel status."""
    from ingenium.config.loader import load_config

    config = load_config()

    table = Table(title="Channel Status")
    table.add_column("Channel", style="cyan")
    table.add_column("Enabled", style="green")
    table.add_column("Configuration", style="yellow")

    cli = config.channels.cli
    allow = ", ".join(cli.allow_from) if cli.allow_from else "[dim]open to all senders[/dim]"
    table.add_row(
        "CLI",
        "✓" if cli.enabled else "✗",
        allow,
    )

    console.print(table)


# ============================================================================
# Sessions
# ============================================================================


sessions_app = typer.Typer(help="Manage conversation sessions")
app.add_typer(sessions_app, name="sessions")


@sessions_app.command("list")
def sessions_list():
    """List stored sessions, most recently updated first."""
    from ingenium.session.manager import SessionManager

    sessions = SessionManager().list_sessions()
    if not sessions:
        console.print("No sessions.")
        return

    table = Table(title="Sessions")
    table.add_column("Key", style="cyan")
    table.add_column("Created")
    table.add_column("Updated")

    for s in sessions:
        table.add_row(
            s["key"],
            (s.get("created_at") or "")[:16].replace("T", " "),
            (s.get("updated_at") or "")[:16].replace("T", " "),
        )

    console.print(table)


@sessions_app.command("delete")
def sessions_delete(
    key: str = typer.Argument(..., help="Session key, e.g. cli:direct"),
):
    """Delete a stored session."""
    from ingenium.session.manager import SessionManager

    if SessionManager().delete(key):
        console.print(f"[green]✓[/green] Deleted session {key}")
    else:
        console.print(f"[red]Session {key} not found[/red]")
        raise typer.Exit(1)


# ============================================================================
# Status
# ============================================================================


@app.command()
def status():
    """Show ingenium status."""
    from ingenium.config.loader import get_config_path, load_config
    from ingenium.providers.registry import PROVIDERS

    config_path = get_config_path()
    config = load_config()
    workspace = config.workspace_path

    console.print(f"{__logo__} ingenium Status\n")

    console.print(f"Config: {config_path} {'[green]✓[/green]' if config_path.exists() else '[red]✗[/red]'}")
    console.print(f"Workspace: {workspace} {'[green]✓[/green]' if workspace.exists() else '[red]✗[/red]'}")

    if config_path.exists():
        console.print(f"Model: {config.agents.defaults.model}")

        for spec in PROVIDERS:
            p = getattr(config.providers, spec.name, None)
            if p is None:
                continue
            if spec.is_local:
                if p.api_base:
                    console.print(f"{spec.label}: [green]✓ {p.api_base}[/green]")
                else:
                    console.print(f"{spec.label}: [dim]not set[/dim]")
            else:
                has_key = bool(p.api_key)
                console.print(f"{spec.label}: {'[green]✓[/green]' if has_key else '[dim]not set[/dim]'}")


if __name__ == "__main__":
    app()
