"""消息渠道：渠道基类、终端渠道与渠道管理器。"""

from ingenium.channels.base import BaseChannel
from ingenium.channels.cli import CLIChannel
from ingenium.channels.manager import ChannelManager

__all__ = ["BaseChannel", "CLIChannel", "ChannelManager"]
