"""LLM 提供者。"""

from ingenium.providers.base import LLMProvider, LLMResponse, ToolCallRequest
from ingenium.providers.litellm_provider import LiteLLMProvider

__all__ = ["LLMProvider", "LLMResponse", "ToolCallRequest", "LiteLLMProvider"]
