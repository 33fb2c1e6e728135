"""配置：pydantic 模型 + config.json 读写。"""

from ingenium.config.loader import get_config_path, load_config, save_config
from ingenium.config.schema import Config

__all__ = ["Config", "load_config", "save_config", "get_config_path"]
