"""
基于 LiteLLM 的 LLMProvider 实现。

LiteLLM 把各家模型 API 统一成 OpenAI 兼容格式；
本模块负责按 registry 元数据改写模型名、设置环境变量，
并把响应解析为 LLMResponse。调用失败时返回错误形态的响应，不抛异常。
"""

import json
import os
from typing import Any

import litellm
from litellm import acompletion
from loguru import logger

from ingenium.providers.base import LLMProvider, LLMResponse, ToolCallRequest
from ingenium.providers.registry import find_by_model, find_gateway


class LiteLLMProvider(LLMProvider):
    """
    构造参数：
        api_key / api_base: 服务商凭据与端点
        default_model: 未指定 model 时使用的模型
        extra_headers: 附加请求头
        provider_name: 配置中的服务商名，用于识别网关与本地部署
    """

    def __init__(
        self,
        api_key: str | None = None,
        api_base: str | None = None,
        default_model: str = "anthropic/claude-opus-4-5",
        extra_headers: dict[str, str] | None = None,
        provider_name: str | None = None,
    ):
        super().__init__(api_key, api_base)
        self.default_model = default_model
        self.extra_headers = extra_headers or {}
        self._gateway = find_gateway(provider_name, api_key, api_base)

        if api_key:
            self._setup_env(api_key, api_base, default_model)
        if api_base:
            litellm.api_base = api_base

        litellm.suppress_debug_info = True
        litellm.drop_params = True

    def _setup_env(self, api_key: str, api_base: str | None, model: str) -> None:
        spec = self._gateway or find_by_model(model)
        if not spec:
            return
        # 网关覆盖已有值，标准服务商不覆盖用户环境
        if self._gateway:
            os.environ[spec.env_key] = api_key
        else:
            os.environ.setdefault(spec.env_key, api_key)

        effective_base = api_base or spec.default_api_base
        for env_name, env_val in spec.env_extras:
            resolved = env_val.replace("{api_key}", api_key).replace("{api_base}", effective_base)
            os.environ.setdefault(env_name, resolved)

    def _resolve_model(self, model: str) -> str:
        """补上 LiteLLM 路由所需的前缀，如 deepseek-chat → deepseek/deepseek-chat。"""
        if self._gateway:
            prefix = self._gateway.litellm_prefix
            if self._gateway.strip_model_prefix:
                model = model.split("/")[-1]
            if prefix and not model.startswith(f"{prefix}/"):
                model = f"{prefix}/{model}"
            return model

        spec = find_by_model(model)
        if spec and spec.litellm_prefix and not any(model.startswith(s) for s in spec.skip_prefixes):
            model = f"{spec.litellm_prefix}/{model}"
        return model

    def _apply_model_overrides(self, model: str, kwargs: dict[str, Any]) -> None:
        spec = find_by_model(model)
        if not spec:
            return
        model_lower = model.lower()
        for pattern, overrides in spec.model_overrides:
            if pattern in model_lower:
                kwargs.update(overrides)
                return

    async def chat(
        self,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
        model: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.7,
    ) -> LLMResponse:
        model = self._resolve_model(model or self.default_model)
        kwargs: dict[str, Any] = {
            "model": model,
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        self._apply_model_overrides(model, kwargs)

        if self.api_key:
            kwargs["api_key"] = self.api_key
        if self.api_base:
            kwargs["api_base"] = self.api_base
        if self.extra_headers:
            kwargs["extra_headers"] = self.extra_headers
        if tools:
            kwargs["tools"] = tools
            kwargs["tool_choice"] = "auto"

        try:
            response = await acompletion(**kwargs)
        except Exception as e:
            logger.error(f"LLM call failed ({model}): {e}")
            return LLMResponse(content=f"Error calling LLM: {str(e)}", finish_reason="error")
        return self.parse_response(response)

    @staticmethod
    def parse_response(response: Any) -> LLMResponse:
        """把 OpenAI 形态的补全响应转换为 LLMResponse。"""
        choice = response.choices[0]
        message = choice.message

        tool_calls = []
        for tc in getattr(message, "tool_calls", None) or []:
            args = tc.function.arguments
            if isinstance(args, str):
                try:
                    args = json.loads(args)
                except json.JSONDecodeError:
                    args = {"raw": args}
            tool_calls.append(ToolCallRequest(id=tc.id, name=tc.function.name, arguments=args or {}))

        usage = {}
        if getattr(response, "usage", None):
            usage = {
                "prompt_tokens": response.usage.prompt_tokens,
                "completion_tokens": response.usage.completion_tokens,
                "total_tokens": response.usage.total_tokens,
            }

        return LLMResponse(
            content=message.content,
            tool_calls=tool_calls,
            finish_reason=choice.finish_reason or "stop",
            usage=usage,
            reasoning_content=getattr(message, "reasoning_content", None),
        )

    def get_default_model(self) -> str:
        return self.default_model
