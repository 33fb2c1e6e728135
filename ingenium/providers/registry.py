"""
LLM 服务商元数据表。

各服务商的差异（环境变量名、LiteLLM 前缀、网关/本地检测规则、模型级参数覆盖）
集中声明在 PROVIDERS 中；LiteLLMProvider、Config 与 `ingenium status` 都从这里派生。
PROVIDERS 的顺序即匹配优先级，网关排在最前。

新增服务商：在 PROVIDERS 中加一条 ProviderSpec，并在 config.schema.ProvidersConfig 中加同名字段。
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class ProviderSpec:
    """
    单个服务商的元数据。

    name: ProvidersConfig 中的字段名
    keywords: 按模型名匹配时使用的小写关键词
    env_key: LiteLLM 读取 API Key 的环境变量
    litellm_prefix / skip_prefixes: 模型名前缀改写规则
    env_extras: 额外环境变量，值中可用 {api_key} / {api_base} 占位
    is_gateway / is_local: 网关（可路由任意模型）或本地部署，不参与按模型名匹配
    detect_by_key_prefix / detect_by_base_keyword: 网关自动检测规则
    strip_model_prefix: 网关加前缀前是否先去掉原有前缀
    model_overrides: (模型名片段, 参数覆盖) 列表
    """

    name: str
    keywords: tuple[str, ...]
    env_key: str
    display_name: str = ""
    litellm_prefix: str = ""
    skip_prefixes: tuple[str, ...] = ()
    env_extras: tuple[tuple[str, str], ...] = ()
    is_gateway: bool = False
    is_local: bool = False
    detect_by_key_prefix: str = ""
    detect_by_base_keyword: str = ""
    default_api_base: str = ""
    strip_model_prefix: bool = False
    model_overrides: tuple[tuple[str, dict[str, Any]], ...] = ()

    @property
    def label(self) -> str:
        return self.display_name or self.name.title()


PROVIDERS: tuple[ProviderSpec, ...] = (
    ProviderSpec(
        name="openrouter",
        keywords=("openrouter",),
        env_key="OPENROUTER_API_KEY",
        display_name="OpenRouter",
        litellm_prefix="openrouter",
        is_gateway=True,
        detect_by_key_prefix="sk-or-",
        detect_by_base_keyword="openrouter",
        default_api_base="https://openrouter.ai/api/v1",
    ),
    ProviderSpec(
        name="anthropic",
        keywords=("anthropic", "claude"),
        env_key="ANTHROPIC_API_KEY",
        display_name="Anthropic",
    ),
    ProviderSpec(
        name="openai",
        keywords=("openai", "gpt"),
        env_key="OPENAI_API_KEY",
        display_name="OpenAI",
    ),
    ProviderSpec(
        name="deepseek",
        keywords=("deepseek",),
        env_key="DEEPSEEK_API_KEY",
        display_name="DeepSeek",
        litellm_prefix="deepseek",
        skip_prefixes=("deepseek/",),
    ),
    ProviderSpec(
        name="gemini",
        keywords=("gemini",),
        env_key="GEMINI_API_KEY",
        display_name="Gemini",
        litellm_prefix="gemini",
        skip_prefixes=("gemini/",),
    ),
    ProviderSpec(
        name="vllm",
        keywords=("vllm",),
        env_key="HOSTED_VLLM_API_KEY",
        display_name="vLLM/Local",
        litellm_prefix="hosted_vllm",
        is_local=True,
    ),
)


def find_by_model(model: str) -> ProviderSpec | None:
    """按模型名关键词匹配标准服务商（不区分大小写，跳过网关与本地部署）。"""
    model_lower = model.lower()
    for spec in PROVIDERS:
        if spec.is_gateway or spec.is_local:
            continue
        if any(kw in model_lower for kw in spec.keywords):
            return spec
    return None


def find_gateway(
    provider_name: str | None = None,
    api_key: str | None = None,
    api_base: str | None = None,
) -> ProviderSpec | None:
    """
    判断是否经由网关或本地部署访问模型。

    优先级：配置名直接对应网关/本地 → API Key 前缀 → api_base 关键词。
    """
    if provider_name:
        spec = find_by_name(provider_name)
        if spec and (spec.is_gateway or spec.is_local):
            return spec

    for spec in PROVIDERS:
        if spec.detect_by_key_prefix and api_key and api_key.startswith(spec.detect_by_key_prefix):
            return spec
        if spec.detect_by_base_keyword and api_base and spec.detect_by_base_keyword in api_base:
            return spec
    return None


def find_by_name(name: str) -> ProviderSpec | None:
    for spec in PROVIDERS:
        if spec.name == name:
            return spec
    return None
