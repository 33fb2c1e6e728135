"""
Agent 可调用的工具。

内置工具：
    - read_file / write_file / edit_file / list_dir：文件系统
    - exec：Shell 命令（危险模式拦截、超时、协作式取消）
    - web_search / web_fetch：Brave 搜索与网页正文抽取
    - message：主动向渠道发消息（仅主 Agent）
    - spawn：创建后台子代理（仅主 Agent）
"""

from ingenium.agent.tools.base import Tool
from ingenium.agent.tools.registry import ToolRegistry

__all__ = ["Tool", "ToolRegistry"]
