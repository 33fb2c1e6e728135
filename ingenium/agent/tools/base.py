"""
工具抽象基类。

每个工具对模型暴露三样东西：name、description、parameters（JSON Schema），
以及一个异步的 execute(**kwargs) -> str。

【字符串即结果】
execute 返回给模型的永远是字符串；失败也以 "Error: ..." 文本返回，
让模型能"读到"失败并自行调整，而不是让异常打断工具调用循环。

【协作式取消】
声明 accepts_cancel = True 的工具，会由 ToolRegistry 额外传入
cancel_event（asyncio.Event）关键字参数，工具可在耗时操作中观察它提前结束；
未声明的工具照常执行到结束。
"""

from abc import ABC, abstractmethod
from contextvars import ContextVar
from typing import Any


class Tool(ABC):
    """
    Agent 工具基类。

    子类实现 name / description / parameters / execute；
    validate_params() 与 to_schema() 为通用能力。
    """

    # JSON Schema 类型到 Python 类型的映射
    _TYPE_MAP = {
        "string": str,
        "integer": int,
        "number": (int, float),
        "boolean": bool,
        "array": list,
        "object": dict,
    }

    # 是否接收 cancel_event 参数
    accepts_cancel: bool = False

    @property
    @abstractmethod
    def name(self) -> str:
        """模型调用时使用的函数名。"""

    @property
    @abstractmethod
    def description(self) -> str:
        """告诉模型何时使用该工具。"""

    @property
    @abstractmethod
    def parameters(self) -> dict[str, Any]:
        """参数的 JSON Schema（顶层必须是 object）。"""

    @abstractmethod
    async def execute(self, **kwargs: Any) -> str:
        """执行工具并返回文本结果。"""

    def validate_params(self, params: dict[str, Any]) -> list[str]:
        """
        按 parameters 校验模型给出的参数。

        返回:
            错误信息列表，空列表表示通过

        异常:
            ValueError: 工具自身的 schema 顶层不是 object
        """
        schema = self.parameters or {}
        if schema.get("type", "object") != "object":
            raise ValueError(f"Schema must be object type, got {schema.get('type')!r}")
        return self._validate(params, {**schema, "type": "object"}, "")

    def _validate(self, val: Any, schema: dict[str, Any], path: str) -> list[str]:
        kind = schema.get("type")
        label = path or "parameter"
        expected = self._TYPE_MAP.get(kind)
        # bool 是 int 的子类，数值类型需要单独排除
        if expected and (not isinstance(val, expected) or (kind in ("integer", "number") and isinstance(val, bool))):
            return [f"{label} should be {kind}"]

        errors: list[str] = []
        if "enum" in schema and val not in schema["enum"]:
            errors.append(f"{label} must be one of {schema['enum']}")

        if kind in ("integer", "number"):
            if "minimum" in schema and val < schema["minimum"]:
                errors.append(f"{label} must be >= {schema['minimum']}")
            if "maximum" in schema and val > schema["maximum"]:
                errors.append(f"{label} must be <= {schema['maximum']}")
        elif kind == "string":
            if "minLength" in schema and len(val) < schema["minLength"]:
                errors.append(f"{label} must be at least {schema['minLength']} chars")
            if "maxLength" in schema and len(val) > schema["maxLength"]:
                errors.append(f"{label} must be at most {schema['maxLength']} chars")
        elif kind == "object":
            props = schema.get("properties", {})
            for key in schema.get("required", []):
                if key not in val:
                    errors.append(f"missing required {self._join(path, key)}")
            for key, sub in val.items():
                if key in props:
                    errors.extend(self._validate(sub, props[key], self._join(path, key)))
        elif kind == "array" and "items" in schema:
            for i, item in enumerate(val):
                errors.extend(self._validate(item, schema["items"], f"{path}[{i}]" if path else f"[{i}]"))
        return errors

    @staticmethod
    def _join(path: str, key: str) -> str:
        return f"{path}.{key}" if path else key

    def to_schema(self) -> dict[str, Any]:
        """转换为 OpenAI function calling 的工具定义。"""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


class ContextualTool(Tool):
    """
    需要知道"当前消息来自哪个渠道/聊天"的工具（message、spawn）。

    路由上下文存放在 ContextVar 中：每个 asyncio 任务看到自己设置的值，
    并发处理不同会话时不会互相覆盖。
    """

    def __init__(self, default_channel: str = "", default_chat_id: str = ""):
        self._route: ContextVar[tuple[str, str]] = ContextVar(
            f"{type(self).__name__}_route_{id(self)}",
            default=(default_channel, default_chat_id),
        )

    def set_context(self, channel: str, chat_id: str) -> None:
        self._route.set((channel, chat_id))

    @property
    def current_context(self) -> tuple[str, str]:
        return self._route.get()
