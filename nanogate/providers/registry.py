# -*- coding: utf-8 -*-
"""
================================================================================
Provider Registry - LLM 提供者注册表模块
================================================================================

功能描述:
    保存 LLM 提供者的静态元数据（ProviderSpec），用于根据模型名称或
    API 密钥选择后端。注册表在启动时显式构造，冻结后只读，通过依赖注入
    传递给需要它的组件。

匹配规则:
    1. 按注册顺序检查，第一个匹配的描述符胜出
    2. match_by_model: 模型名（小写）包含任一关键词即匹配；无匹配时返回默认描述符
    3. match_by_api_key: API 密钥以 credential_prefix 开头即匹配；无匹配时返回 None

内置提供者（按顺序）:
    glm → deepseek → qwen → moonshot → openrouter

注意:
    - 多个提供者共享 "sk-" 前缀，match_by_api_key 总是返回其中第一个 (deepseek)
    - 网关模型名（如 "openrouter/deepseek-chat"）同样按顺序匹配关键词

================================================================================
"""

import os
from dataclasses import dataclass
from typing import Mapping

from loguru import logger


@dataclass(frozen=True)
class ProviderSpec:
    """
    提供者描述符

    属性说明:
        - name: 提供者名称（小写）
        - keywords: 模型名匹配关键词
        - env_key: 保存 API 密钥的环境变量名
        - model_prefix: 模型名前缀（网关使用）
        - is_gateway: 是否为网关（可路由到多家模型）
        - credential_prefix: API 密钥前缀，None 表示不参与密钥匹配
        - base_url: 默认 API 地址
    """

    name: str
    keywords: tuple[str, ...]
    env_key: str
    model_prefix: str = ""
    is_gateway: bool = False
    credential_prefix: str | None = None
    base_url: str = ""

    def matches_model(self, model: str) -> bool:
        if not model:
            return False
        model_lower = model.lower()
        return any(kw.lower() in model_lower for kw in self.keywords)

    def matches_api_key(self, api_key: str | None) -> bool:
        if not self.credential_prefix or not api_key:
            return False
        return api_key.startswith(self.credential_prefix)


DEFAULT_PROVIDERS: tuple[ProviderSpec, ...] = (
    # 智谱 GLM
    ProviderSpec(
        name="glm",
        keywords=("glm", "zhipu", "智谱"),
        env_key="GLM_API_KEY",
        base_url="https://open.bigmodel.cn/api/paas/v4",
    ),
    ProviderSpec(
        name="deepseek",
        keywords=("deepseek", "深度求索"),
        env_key="DEEPSEEK_API_KEY",
        credential_prefix="sk-",
        base_url="https://api.deepseek.com/v1",
    ),
    # 阿里云百炼
    ProviderSpec(
        name="qwen",
        keywords=("qwen", "dashscope", "通义千问"),
        env_key="DASHSCOPE_API_KEY",
        credential_prefix="sk-",
        base_url="https://dashscope.aliyuncs.com/compatible-mode/v1",
    ),
    ProviderSpec(
        name="moonshot",
        keywords=("moonshot", "kimi", "月之暗面"),
        env_key="MOONSHOT_API_KEY",
        credential_prefix="sk-",
        base_url="https://api.moonshot.cn/v1",
    ),
    ProviderSpec(
        name="openrouter",
        keywords=("openrouter",),
        env_key="OPENROUTER_API_KEY",
        model_prefix="openrouter/",
        is_gateway=True,
        credential_prefix="sk-or-",
        base_url="https://openrouter.ai/api/v1",
    ),
)


class ProviderRegistry:
    """
    ========================================================================
    ProviderRegistry - 提供者注册表类
    ========================================================================

    使用示例:
        registry = ProviderRegistry()
        spec = registry.match_by_model("deepseek-chat")   # deepseek
        spec = registry.match_by_model("unknown-model")   # glm (默认)
        registry.freeze()

    ========================================================================
    """

    def __init__(
        self,
        default_name: str = "glm",
        environ: Mapping[str, str] | None = None,
        register_defaults: bool = True,
    ):
        """
        参数说明:
            default_name: 默认提供者名称
            environ: 检查 API 密钥时使用的环境变量映射（默认 os.environ）
            register_defaults: 是否注册内置提供者
        """
        self._providers: dict[str, ProviderSpec] = {}
        self._default_name = default_name.lower()
        self._environ = environ
        self._frozen = False

        if register_defaults:
            for spec in DEFAULT_PROVIDERS:
                self.register(spec)
            logger.info(f"Registered {len(self._providers)} providers: {', '.join(self._providers)}")

    def register(self, spec: ProviderSpec) -> None:
        """注册提供者，同名描述符会被替换（保持原有顺序）"""
        if self._frozen:
            raise RuntimeError("Provider registry is frozen")
        self._providers[spec.name.lower()] = spec
        logger.debug(f"Registered provider: {spec.name}")

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def get_by_name(self, name: str) -> ProviderSpec | None:
        return self._providers.get(name.lower())

    def match_by_model(self, model: str) -> ProviderSpec | None:
        for spec in self._providers.values():
            if spec.matches_model(model):
                return spec
        return self.get_default_provider()

    def match_by_api_key(self, api_key: str) -> ProviderSpec | None:
        for spec in self._providers.values():
            if spec.matches_api_key(api_key):
                return spec
        return None

    def get_default_provider(self) -> ProviderSpec | None:
        return self._providers.get(self._default_name)

    def all_providers(self) -> list[ProviderSpec]:
        return list(self._providers.values())

    def list_available(self) -> list[ProviderSpec]:
        """返回已配置 API 密钥（环境变量非空）的提供者"""
        return [spec for spec in self._providers.values() if self.has_api_key(spec)]

    def has_api_key(self, spec: ProviderSpec) -> bool:
        environ = os.environ if self._environ is None else self._environ
        return bool(environ.get(spec.env_key))

    def __len__(self) -> int:
        return len(self._providers)

    def __contains__(self, name: str) -> bool:
        return name.lower() in self._providers
