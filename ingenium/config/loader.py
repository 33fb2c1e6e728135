"""
config.json 的读写。

文件使用 camelCase 键名，Python 侧使用 snake_case，读写时递归转换。
"""

import json
from pathlib import Path
from typing import Any

from loguru import logger

from ingenium.config.schema import Config
from ingenium.utils.helpers import get_data_path


def get_config_path() -> Path:
    return Path.home() / ".ingenium" / "config.json"


def get_data_dir() -> Path:
    return get_data_path()


def load_config(config_path: Path | None = None) -> Config:
    """
    加载配置；文件不存在或内容不合法时返回默认配置并打印警告。
    """
    path = config_path or get_config_path()
    if path.exists():
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
            data = _migrate_config(data)
            return Config.model_validate(convert_keys(data))
        except (json.JSONDecodeError, ValueError) as e:
            logger.warning(f"Failed to load config from {path}: {e}")
            print(f"Warning: Failed to load config from {path}: {e}")
            print("Using default configuration.")
    return Config()


def save_config(config: Config, config_path: Path | None = None) -> None:
    path = config_path or get_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    data = convert_to_camel(config.model_dump())
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)


def _migrate_config(data: dict) -> dict:
    """旧格式兼容：tools.exec.restrictToWorkspace 上移为 tools.restrictToWorkspace。"""
    tools = data.get("tools", {})
    exec_cfg = tools.get("exec", {})
    if "restrictToWorkspace" in exec_cfg and "restrictToWorkspace" not in tools:
        tools["restrictToWorkspace"] = exec_cfg.pop("restrictToWorkspace")
    return data


def convert_keys(data: Any) -> Any:
    """递归地把 dict 键名从 camelCase 转为 snake_case。"""
    if isinstance(data, dict):
        return {camel_to_snake(k): convert_keys(v) for k, v in data.items()}
    if isinstance(data, list):
        return [convert_keys(item) for item in data]
    return data


def convert_to_camel(data: Any) -> Any:
    if isinstance(data, dict):
        return {snake_to_camel(k): convert_to_camel(v) for k, v in data.items()}
    if isinstance(data, list):
        return [convert_to_camel(item) for item in data]
    return data


def camel_to_snake(name: str) -> str:
    """maxTokens → max_tokens"""
    result = []
    for i, char in enumerate(name):
        if char.isupper() and i > 0:
            result.append("_")
        result.append(char.lower())
    return "".join(result)


def snake_to_camel(name: str) -> str:
    """max_tokens → maxTokens"""
    components = name.split("_")
    return components[0] + "".join(x.title() for x in components[1:])
