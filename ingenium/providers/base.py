"""
LLM 提供者契约。

- ToolCallRequest：模型请求的一次工具调用
- LLMResponse：统一的响应结构，屏蔽各家 API 差异
- LLMProvider：chat() 与 get_default_model() 两个抽象方法

契约要点：chat() 对普通失败（网络、鉴权、限流）不抛异常，
而是返回 finish_reason="error"、content 描述错误、tool_calls 为空的响应，
调用方把它当作一次没有工具调用的最终回答处理。
"""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


@dataclass
class ToolCallRequest:
    """模型返回的工具调用：id 用来把工具结果与请求配对。"""
    id: str
    name: str
    arguments: dict[str, Any]

    def to_message_dict(self) -> dict[str, Any]:
        """转换为写回 assistant 消息时使用的 OpenAI tool_calls 条目。"""
        return {
            "id": self.id,
            "type": "function",
            "function": {
                "name": self.name,
                "arguments": json.dumps(self.arguments, ensure_ascii=False),
            },
        }


@dataclass
class LLMResponse:
    """
    属性：
        content: 文本内容（只有工具调用时可能为 None）
        tool_calls: 模型请求的工具调用，按模型给出的顺序
        finish_reason: "stop" / "tool_calls" / "length" / "error"
        usage: token 用量
        reasoning_content: 部分推理模型返回的思考过程
    """
    content: str | None
    tool_calls: list[ToolCallRequest] = field(default_factory=list)
    finish_reason: str = "stop"
    usage: dict[str, int] = field(default_factory=dict)
    reasoning_content: str | None = None

    @property
    def has_tool_calls(self) -> bool:
        return len(self.tool_calls) > 0


class LLMProvider(ABC):
    """LLM 提供者基类。"""

    def __init__(self, api_key: str | None = None, api_base: str | None = None):
        self.api_key = api_key
        self.api_base = api_base

    @abstractmethod
    async def chat(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
        model: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.7,
    ) -> LLMResponse:
        """
        发送一次对话补全请求。

        参数：
            messages: OpenAI 格式的消息列表
            tools: 工具定义（OpenAI function calling 格式），None 表示不提供工具
            model: 模型标识，None 时使用 get_default_model()
            max_tokens: 最大输出 token 数
            temperature: 采样温度
        """

    @abstractmethod
    def get_default_model(self) -> str:
        pass
