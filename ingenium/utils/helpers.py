"""
工具函数集合 - 路径管理、字符串处理与会话键编解码。

函数分类：
- 路径管理：ensure_dir, get_data_path, get_workspace_path, get_sessions_path
- 字符串工具：truncate_string, safe_filename
- 时间工具：timestamp, today_date
- 路由工具：create_session_key, parse_session_key
"""

from datetime import datetime
from pathlib import Path

# 会话键中渠道名与聊天 ID 之间的分隔符
SESSION_KEY_DELIMITER = ":"


def ensure_dir(path: Path) -> Path:
    """确保目录存在（递归创建），返回原路径。"""
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_path() -> Path:
    """获取 ingenium 数据目录（~/.ingenium）。"""
    return ensure_dir(Path.home() / ".ingenium")


def get_workspace_path(workspace: str | None = None) -> Path:
    """
    获取工作区路径。

    工作区存放引导文件（AGENTS.md 等）和 memory/ 目录，
    也是文件工具与 exec 工具的默认根目录。

    参数:
        workspace: 自定义路径，为 None 时使用 ~/.ingenium/workspace
    """
    if workspace:
        path = Path(workspace).expanduser()
    else:
        path = Path.home() / ".ingenium" / "workspace"
    return ensure_dir(path)


def get_sessions_path() -> Path:
    """获取会话存储目录（~/.ingenium/sessions）。"""
    return ensure_dir(get_data_path() / "sessions")


def timestamp() -> str:
    return datetime.now().isoformat()


def today_date() -> str:
    """当天日期，格式 YYYY-MM-DD。"""
    return datetime.now().strftime("%Y-%m-%d")


def truncate_string(s: str, max_len: int = 100, suffix: str = "...") -> str:
    """
    截断字符串，超长时以 suffix 结尾，结果总长度不超过 max_len。
    """
    if len(s) <= max_len:
        return s
    return s[: max_len - len(suffix)] + suffix


def safe_filename(name: str) -> str:
    """把文件系统不允许的字符替换为下划线。"""
    unsafe = '<>:"/\\|?*'
    for char in unsafe:
        name = name.replace(char, "_")
    return name.strip()


def create_session_key(channel: str, chat_id: str) -> str:
    """
    由渠道名和聊天 ID 拼出会话键，如 ("telegram", "123") → "telegram:123"。
    """
    return f"{channel}{SESSION_KEY_DELIMITER}{chat_id}"


def parse_session_key(key: str) -> tuple[str, str]:
    """
    把会话键拆回 (channel, chat_id)。

    只在第一个分隔符处切分，因此 chat_id 本身可以包含冒号：
    "whatsapp:123:456" → ("whatsapp", "123:456")。

    异常:
        ValueError: 键中不含分隔符
    """
    channel, sep, chat_id = key.partition(SESSION_KEY_DELIMITER)
    if not sep:
        raise ValueError(f"Invalid session key: {key}")
    return channel, chat_id
