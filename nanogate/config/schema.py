"""Configuration schema using Pydantic."""
# 配置模型
# JSON 配置文件使用 camelCase 键名，Python 代码中使用 snake_case 属性名

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from nanogate.bus.queue import OverflowPolicy


class Base(BaseModel):
    """camelCase aliases, populate by either name."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


DEFAULT_SYSTEM_PROMPT = (
    "You are a helpful personal assistant. Answer in the user's language, "
    "and use tools when they help you give an accurate answer."
)


class AgentDefaults(Base):
    """Agent 默认配置"""

    model: str = "glm-4-flash"
    workspace: str = "~/.nanogate/workspace"
    max_iterations: int = Field(default=10, ge=1)
    max_history: int = Field(default=50, ge=0)
    temperature: float = 0.7
    max_tokens: int = 4096
    system_prompt: str = DEFAULT_SYSTEM_PROMPT


class AgentsConfig(Base):
    defaults: AgentDefaults = Field(default_factory=AgentDefaults)


class ProviderConfig(Base):
    """单个 LLM 提供者的凭据"""

    api_key: str = ""
    api_base: str | None = None


class ProvidersConfig(Base):
    glm: ProviderConfig = Field(default_factory=ProviderConfig)
    deepseek: ProviderConfig = Field(default_factory=ProviderConfig)
    qwen: ProviderConfig = Field(default_factory=ProviderConfig)
    moonshot: ProviderConfig = Field(default_factory=ProviderConfig)
    openrouter: ProviderConfig = Field(default_factory=ProviderConfig)


class ExecToolConfig(Base):
    """Shell 执行工具配置"""

    enabled: bool = True
    timeout: int = 60
    blocked_commands: list[str] = Field(default_factory=lambda: ["rm -rf", "format", "dd", "mkfs"])
    allow_patterns: list[str] = Field(default_factory=list)


class FileToolConfig(Base):
    enabled: bool = True
    max_file_size: int = 1024 * 1024


class MessageToolConfig(Base):
    enabled: bool = True


class ToolsConfig(Base):
    restrict_to_workspace: bool = True
    timeout: float | None = None
    exec: ExecToolConfig = Field(default_factory=ExecToolConfig)
    file: FileToolConfig = Field(default_factory=FileToolConfig)
    message: MessageToolConfig = Field(default_factory=MessageToolConfig)


class BusConfig(Base):
    """消息总线配置"""

    buffer_size: int = Field(default=256, ge=1)
    overflow: OverflowPolicy = OverflowPolicy.DROP_NEW


class GatewayConfig(Base):
    """HTTP 网关配置"""

    host: str = "0.0.0.0"
    port: int = 18790


class LoggingConfig(Base):
    level: str = "INFO"
    file: str | None = None
    rotation: str = "10 MB"
    retention: str = "7 days"


class ChannelConfig(Base):
    """频道配置（各频道适配器共用）"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    enabled: bool = False
    allow_from: list[str] = Field(default_factory=list)


class Config(Base):
    """Root configuration for nanogate."""

    agents: AgentsConfig = Field(default_factory=AgentsConfig)
    providers: ProvidersConfig = Field(default_factory=ProvidersConfig)
    tools: ToolsConfig = Field(default_factory=ToolsConfig)
    bus: BusConfig = Field(default_factory=BusConfig)
    gateway: GatewayConfig = Field(default_factory=GatewayConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    channels: dict[str, ChannelConfig] = Field(default_factory=dict)

    @property
    def workspace_path(self) -> Path:
        """Expanded workspace path."""
        return Path(self.agents.defaults.workspace).expanduser()

    def get_provider(self, name: str) -> ProviderConfig | None:
        return getattr(self.providers, name.lower(), None)
