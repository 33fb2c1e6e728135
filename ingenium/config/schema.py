"""
配置数据模型。

Config
├── agents.defaults   工作区、模型、采样参数、迭代上限、历史窗口
├── channels          渠道开关与发送者白名单（目前只有 cli）
├── providers         各 LLM 服务商的 api_key / api_base / extra_headers
└── tools             web 搜索、exec 超时、工作区限制

所有字段都有默认值；config.json 只需写出要覆盖的部分。
环境变量同样可以覆盖，如 INGENIUM_AGENTS__DEFAULTS__MODEL=openai/gpt-4o。
"""

from pathlib import Path

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class CLIChannelConfig(BaseModel):
    """终端渠道。allow_from 为空时不做限制。"""
    enabled: bool = True
    allow_from: list[str] = Field(default_factory=list)


class ChannelsConfig(BaseModel):
    cli: CLIChannelConfig = Field(default_factory=CLIChannelConfig)


class AgentDefaults(BaseModel):
    workspace: str = "~/.ingenium/workspace"
    model: str = "anthropic/claude-opus-4-5"
    max_tokens: int = 8192
    temperature: float = 0.7
    max_tool_iterations: int = 20
    memory_window: int = 50
    subagent_max_iterations: int = 15


class AgentsConfig(BaseModel):
    defaults: AgentDefaults = Field(default_factory=AgentDefaults)


class ProviderConfig(BaseModel):
    api_key: str = ""
    api_base: str | None = None
    extra_headers: dict[str, str] | None = None


class ProvidersConfig(BaseModel):
    """字段名与 providers.registry.PROVIDERS 中的 name 一一对应。"""
    anthropic: ProviderConfig = Field(default_factory=ProviderConfig)
    openai: ProviderConfig = Field(default_factory=ProviderConfig)
    openrouter: ProviderConfig = Field(default_factory=ProviderConfig)
    deepseek: ProviderConfig = Field(default_factory=ProviderConfig)
    gemini: ProviderConfig = Field(default_factory=ProviderConfig)
    vllm: ProviderConfig = Field(default_factory=ProviderConfig)


class WebSearchConfig(BaseModel):
    api_key: str = ""
    max_results: int = 5


class WebToolsConfig(BaseModel):
    search: WebSearchConfig = Field(default_factory=WebSearchConfig)


class ExecToolConfig(BaseModel):
    timeout: int = 60


class ToolsConfig(BaseModel):
    """restrict_to_workspace 为 True 时，文件与 exec 工具都被限制在工作区内。"""
    web: WebToolsConfig = Field(default_factory=WebToolsConfig)
    exec: ExecToolConfig = Field(default_factory=ExecToolConfig)
    restrict_to_workspace: bool = False


class Config(BaseSettings):
    """根配置。"""

    agents: AgentsConfig = Field(default_factory=AgentsConfig)
    channels: ChannelsConfig = Field(default_factory=ChannelsConfig)
    providers: ProvidersConfig = Field(default_factory=ProvidersConfig)
    tools: ToolsConfig = Field(default_factory=ToolsConfig)

    model_config = SettingsConfigDict(
        env_prefix="INGENIUM_",
        env_nested_delimiter="__",
    )

    @property
    def workspace_path(self) -> Path:
        return Path(self.agents.defaults.workspace).expanduser()

    def _match_provider(self, model: str | None = None) -> tuple[ProviderConfig | None, str | None]:
        """
        为模型找到已配置 api_key 的服务商。

        先按模型名关键词匹配；匹配不到时退回 PROVIDERS 顺序中第一个有 key 的服务商
        （网关排在最前）。
        """
        from ingenium.providers.registry import PROVIDERS

        model_lower = (model or self.agents.defaults.model).lower()
        for spec in PROVIDERS:
            p = getattr(self.providers, spec.name, None)
            if p and p.api_key and any(kw in model_lower for kw in spec.keywords):
                return p, spec.name

        for spec in PROVIDERS:
            p = getattr(self.providers, spec.name, None)
            if p and p.api_key:
                return p, spec.name
        return None, None

    def get_provider(self, model: str | None = None) -> ProviderConfig | None:
        p, _ = self._match_provider(model)
        return p

    def get_provider_name(self, model: str | None = None) -> str | None:
        _, name = self._match_provider(model)
        return name

    def get_api_key(self, model: str | None = None) -> str | None:
        p = self.get_provider(model)
        return p.api_key if p else None

    def get_api_base(self, model: str | None = None) -> str | None:
        """显式配置的 api_base 优先；网关退回其默认地址；标准服务商返回 None。"""
        from ingenium.providers.registry import find_by_name

        p, name = self._match_provider(model)
        if p and p.api_base:
            return p.api_base
        if name:
            spec = find_by_name(name)
            if spec and spec.is_gateway and spec.default_api_base:
                return spec.default_api_base
        return None
