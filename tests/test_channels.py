import asyncio
import io
from types import SimpleNamespace

from rich.console import Console

from ingenium.bus.events import OutboundMessage
from ingenium.channels.base import BaseChannel
from ingenium.channels.cli import CLIChannel
from ingenium.channels.manager import ChannelManager
from ingenium.config.schema import CLIChannelConfig, Config


class FakeChannel(BaseChannel):
    name = "fake"

    def __init__(self, config, bus):
        super().__init__(config, bus)
        self.sent: list[OutboundMessage] = []
        self._stopped = asyncio.Event()

    async def start(self) -> None:
        self._running = True
        await self._stopped.wait()
        self._running = False

    async def stop(self) -> None:
        self._stopped.set()

    async def send(self, msg: OutboundMessage) -> None:
        self.sent.append(msg)


def _scripted_reader(lines):
    pending = list(lines)

    async def read() -> str:
        if not pending:
            raise EOFError
        return pending.pop(0)

    return read


def test_allow_list():
    open_channel = FakeChannel(SimpleNamespace(allow_from=[]), None)
    assert open_channel.is_allowed("anyone")

    closed = FakeChannel(SimpleNamespace(allow_from=["alice", "123"]), None)
    assert closed.is_allowed("alice")
    assert closed.is_allowed("123|bob")
    assert closed.is_allowed("999|alice")
    assert not closed.is_allowed("mallory")
    assert not closed.is_allowed("mallory|eve")


async def test_handle_message_publishes_allowed_senders(bus):
    channel = FakeChannel(SimpleNamespace(allow_from=["7"]), bus)

    await channel._handle_message(sender_id="8", chat_id="room", content="intruder")
    assert bus.inbound_size == 0

    await channel._handle_message(sender_id=7, chat_id=100, content="hi", metadata={"k": "v"})
    msg = await bus.consume_inbound()
    assert (msg.channel, msg.sender_id, msg.chat_id, msg.content) == ("fake", "7", "100", "hi")
    assert msg.media == []
    assert msg.metadata == {"k": "v"}


def test_manager_creates_cli_channel_from_config(bus):
    manager = ChannelManager(Config(), bus)
    assert manager.enabled_channels == ["cli"]
    assert isinstance(manager.get_channel("cli"), CLIChannel)
    assert bus.subscriber_count("cli") == 1
    assert manager.get_status() == {"cli": {"enabled": True, "running": False}}


def test_manager_respects_disabled_cli(bus):
    config = Config()
    config.channels.cli.enabled = False
    manager = ChannelManager(config, bus)
    assert manager.enabled_channels == []
    assert manager.get_channel("cli") is None


def test_register_replaces_same_name(bus):
    manager = ChannelManager(Config(), bus)
    replacement = CLIChannel(CLIChannelConfig(), bus, chat_id="other")
    manager.register(replacement)

    assert manager.get_channel("cli") is replacement
    assert bus.subscriber_count("cli") == 1


async def test_start_all_without_channels_returns(bus):
    config = Config()
    config.channels.cli.enabled = False
    await asyncio.wait_for(ChannelManager(config, bus).start_all(), 1.0)


async def test_start_dispatch_and_stop(bus):
    config = Config()
    config.channels.cli.enabled = False
    manager = ChannelManager(config, bus)
    fake = FakeChannel(SimpleNamespace(allow_from=[]), bus)
    manager.register(fake)

    running = asyncio.create_task(manager.start_all())
    await asyncio.sleep(0.01)
    assert fake.is_running

    await bus.publish_outbound(OutboundMessage(channel="fake", chat_id="1", content="hello"))
    await bus.publish_outbound(OutboundMessage(channel="unknown", chat_id="1", content="dropped"))
    await asyncio.sleep(0.1)
    assert [m.content for m in fake.sent] == ["hello"]

    await manager.stop_all()
    await asyncio.wait_for(running, 1.0)
    assert not fake.is_running
    assert not bus.is_running
    assert bus.subscriber_count("fake") == 0


async def test_cli_channel_publishes_lines_until_exit(bus):
    out = io.StringIO()
    channel = CLIChannel(
        CLIChannelConfig(),
        bus,
        console=Console(file=out, force_terminal=False),
        reader=_scripted_reader(["hello", "   ", "exit", "never read"]),
    )

    await asyncio.wait_for(channel.start(), 1.0)

    assert bus.inbound_size == 1
    msg = await bus.consume_inbound()
    assert (msg.channel, msg.sender_id, msg.chat_id, msg.content) == ("cli", "user", "direct", "hello")
    assert not channel.is_running
    assert "Goodbye!" in out.getvalue()


async def test_cli_channel_stops_on_eof(bus):
    channel = CLIChannel(
        CLIChannelConfig(),
        bus,
        chat_id="room",
        console=Console(file=io.StringIO()),
        reader=_scripted_reader(["one"]),
    )

    await asyncio.wait_for(channel.start(), 1.0)
    msg = await bus.consume_inbound()
    assert msg.session_key == "cli:room"


async def test_cli_channel_respects_allow_list(bus):
    channel = CLIChannel(
        CLIChannelConfig(allow_from=["someone-else"]),
        bus,
        console=Console(file=io.StringIO()),
        reader=_scripted_reader(["hi"]),
    )
    await asyncio.wait_for(channel.start(), 1.0)
    assert bus.inbound_size == 0


async def test_cli_channel_send_renders_reply(bus):
    out = io.StringIO()
    channel = CLIChannel(CLIChannelConfig(), bus, render_markdown=False, console=Console(file=out))

    await channel.send(OutboundMessage(channel="cli", chat_id="direct", content="**bold** reply"))

    text = out.getvalue()
    assert "ingenium" in text
    assert "**bold** reply" in text


async def test_stop_all_right_after_start(bus):
    config = Config()
    config.channels.cli.enabled = False
    manager = ChannelManager(config, bus)
    manager.register(FakeChannel(SimpleNamespace(allow_from=[]), bus))

    running = asyncio.create_task(manager.start_all())
    await asyncio.sleep(0)

    await asyncio.wait_for(manager.stop_all(), 1.0)
    await asyncio.wait_for(running, 1.0)
    assert not bus.is_running
