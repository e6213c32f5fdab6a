"""Tool contract shared by every built-in and custom tool."""
# 工具基类：名称 / 描述 / 参数 schema / 启用状态 + 参数校验

from abc import ABC, abstractmethod
from typing import Any

from nanogate.errors import ToolExecutionError
from nanogate.models import ToolArguments, ToolCall, ToolResult

# JSON Schema 类型 → Python 类型
JSON_TYPES: dict[str, type | tuple[type, ...]] = {
    "string": str,
    "integer": int,
    "number": (int, float),
    "boolean": bool,
    "array": list,
    "object": dict,
}


def _join(path: str, key: str) -> str:
    return f"{path}.{key}" if path else key


class Tool(ABC):
    """
    A named capability the LLM can ask for.
    # LLM 按名称请求工具，执行器传入 ToolCall，得到 ToolResult

    Subclasses provide `name`, `description`, `parameters` (JSON schema of
    an object) and `invoke`. `execute` validates the arguments first, so
    `invoke` only sees payloads matching the schema.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Function name exposed to the LLM."""

    @property
    @abstractmethod
    def description(self) -> str:
        pass

    @property
    @abstractmethod
    def parameters(self) -> dict[str, Any]:
        """JSON schema (type=object) of the arguments."""

    def is_enabled(self) -> bool:
        """Disabled tools are skipped at registration."""
        return True

    @abstractmethod
    async def invoke(self, args: ToolArguments) -> str:
        """
        Run the tool and return its textual output.
        # 失败时抛出异常，由 ToolExecutor 转换为失败结果
        """

    async def execute(self, call: ToolCall) -> ToolResult:
        args = call.args
        problems = self.validate_params(args.to_dict())
        if problems:
            raise ToolExecutionError(
                f"Invalid parameters for tool '{self.name}': " + "; ".join(problems),
                details={"tool": self.name, "errors": problems},
            )
        return ToolResult.ok(call.id, await self.invoke(args))

    def validate_params(self, params: dict[str, Any]) -> list[str]:
        """Check params against `parameters`; returns human-readable problems (empty when valid)."""
        schema = self.parameters or {}
        declared = schema.get("type", "object")
        if declared != "object":
            raise ValueError(f"Tool '{self.name}' schema must describe an object, got {declared!r}")
        return self._check(params, {**schema, "type": "object"}, "")

    def _check(self, value: Any, schema: dict[str, Any], path: str) -> list[str]:
        expected = schema.get("type")
        where = path or "parameter"

        python_type = JSON_TYPES.get(expected)
        # bool 是 int 的子类，需要单独排除
        wrong_bool = expected in ("integer", "number") and isinstance(value, bool)
        if python_type is not None and (wrong_bool or not isinstance(value, python_type)):
            return [f"{where} should be {expected}"]

        problems: list[str] = []
        if "enum" in schema and value not in schema["enum"]:
            problems.append(f"{where} must be one of {schema['enum']}")

        if expected in ("integer", "number"):
            problems.extend(self._check_range(value, schema, where))
        elif expected == "string":
            problems.extend(self._check_length(value, schema, where))
        elif expected == "object":
            problems.extend(self._check_object(value, schema, path))
        elif expected == "array" and "items" in schema:
            for index, item in enumerate(value):
                problems.extend(self._check(item, schema["items"], f"{path}[{index}]"))
        return problems

    @staticmethod
    def _check_range(value: float, schema: dict[str, Any], where: str) -> list[str]:
        problems = []
        low, high = schema.get("minimum"), schema.get("maximum")
        if low is not None and value < low:
            problems.append(f"{where} must be >= {low}")
        if high is not None and value > high:
            problems.append(f"{where} must be <= {high}")
        return problems

    @staticmethod
    def _check_length(value: str, schema: dict[str, Any], where: str) -> list[str]:
        problems = []
        shortest, longest = schema.get("minLength"), schema.get("maxLength")
        if shortest is not None and len(value) < shortest:
            problems.append(f"{where} must be at least {shortest} chars")
        if longest is not None and len(value) > longest:
            problems.append(f"{where} must be at most {longest} chars")
        return problems

    def _check_object(self, value: dict[str, Any], schema: dict[str, Any], path: str) -> list[str]:
        properties = schema.get("properties", {})
        problems = [f"missing required {_join(path, key)}" for key in schema.get("required", []) if key not in value]
        for key, item in value.items():
            if key in properties:
                problems.extend(self._check(item, properties[key], _join(path, key)))
        return problems

    def to_schema(self) -> dict[str, Any]:
        """OpenAI function-calling definition."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }
