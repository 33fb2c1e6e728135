"""
通用工具子包：路径/字符串辅助函数与异步队列原语。
"""

from ingenium.utils.async_queue import AsyncQueue, BoundedQueue, OperationTimeoutError, with_timeout
from ingenium.utils.helpers import create_session_key, ensure_dir, get_workspace_path, parse_session_key

__all__ = [
    "AsyncQueue",
    "BoundedQueue",
    "OperationTimeoutError",
    "with_timeout",
    "create_session_key",
    "ensure_dir",
    "get_workspace_path",
    "parse_session_key",
]
