"""
渠道管理器：按配置创建渠道，统一启停，并把每个渠道的 send 挂到总线的出站订阅上。

出站分发由 MessageBus 完成，ChannelManager 在 start_all() 中通过 start_dispatch() 把它作为后台任务跑起来。
"""

from __future__ import annotations

import asyncio
from typing import Any

from loguru import logger

from ingenium.bus.queue import MessageBus
from ingenium.channels.base import BaseChannel
from ingenium.config.schema import Config


class ChannelManager:
    """
    属性:
        config: 全局配置
        bus: 消息总线
        channels: {渠道名: 渠道实例}
        _dispatch_task: 出站分发循环的任务句柄
    """

    def __init__(self, config: Config, bus: MessageBus):
        self.config = config
        self.bus = bus
        self.channels: dict[str, BaseChannel] = {}
        self._dispatch_task: asyncio.Task | None = None
        self._init_channels()

    def _init_channels(self) -> None:
        if self.config.channels.cli.enabled:
            from ingenium.channels.cli import CLIChannel
            self.register(CLIChannel(self.config.channels.cli, self.bus))
            logger.info("CLI channel enabled")

    def register(self, channel: BaseChannel) -> None:
        """登记渠道并订阅其出站消息。同名渠道会被替换。"""
        existing = self.channels.get(channel.name)
        if existing is not None:
            self.bus.unsubscribe_outbound(existing.name, existing.send)
        self.channels[channel.name] = channel
        self.bus.subscribe_outbound(channel.name, channel.send)

    async def _start_channel(self, name: str, channel: BaseChannel) -> None:
        try:
            await channel.start()
        except Exception as e:
            logger.error(f"Failed to start channel {name}: {e}")

    async def start_all(self) -> None:
        """
        启动出站分发循环与所有渠道。

        渠道的 start() 一般是长期运行的协程，因此本方法在所有渠道都停止后才返回。
        """
        if not self.channels:
            logger.warning("No channels enabled")
            return

        self._dispatch_task = self.bus.start_dispatch()

        tasks = []
        for name, channel in self.channels.items():
            logger.info(f"Starting {name} channel...")
            tasks.append(asyncio.create_task(self._start_channel(name, channel)))
        await asyncio.gather(*tasks, return_exceptions=True)

    async def stop_all(self) -> None:
        """先停分发循环（等它在一个轮询间隔内退出），再逐个停渠道并取消订阅。"""
        logger.info("Stopping all channels...")
        self.bus.stop()
        if self._dispatch_task:
            await self._dispatch_task
            self._dispatch_task = None

        for name, channel in self.channels.items():
            try:
                await channel.stop()
                logger.info(f"Stopped {name} channel")
            except Exception as e:
                logger.error(f"Error stopping {name}: {e}")
            self.bus.unsubscribe_outbound(name, channel.send)

    def get_channel(self, name: str) -> BaseChannel | None:
        return self.channels.get(name)

    def get_status(self) -> dict[str, Any]:
        return {
            name: {
                "enabled": True,
                "running": channel.is_running,
            }
            for name, channel in self.channels.items()
        }

    @property
    def enabled_channels(self) -> list[str]:
        return list(self.channels.keys())
