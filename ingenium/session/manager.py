"""
会话存储。

每个会话一个 JSONL 文件（~/.ingenium/sessions/<key>.jsonl）：
- 第一行是元数据：{"_type": "metadata", "key", "created_at", "updated_at", "metadata"}
- 其后每行一条消息：{"role", "content", "timestamp", ...附加字段}

SessionManager 在内存中缓存已加载的会话；save() 整文件覆盖写入。
"""

import json
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

from loguru import logger

from ingenium.utils.helpers import ensure_dir, get_sessions_path, safe_filename


@dataclass
class Session:
    """
    一个 (channel, chat_id) 的对话历史。

    属性:
        key: "channel:chat_id"
        messages: 按时间顺序的消息，只追加
        created_at / updated_at: 创建与最后修改时间
        metadata: 会话级附加信息
    """

    key: str
    messages: list[dict[str, Any]] = field(default_factory=list)
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)
    metadata: dict[str, Any] = field(default_factory=dict)

    def add_message(self, role: str, content: str, **kwargs: Any) -> None:
        """追加一条消息，kwargs 作为附加字段保存（如 tools_used）。"""
        self.messages.append({
            "role": role,
            "content": content,
            "timestamp": datetime.now().isoformat(),
            **kwargs,
        })
        self.updated_at = datetime.now()

    def get_history(self, max_messages: int = 50) -> list[dict[str, Any]]:
        """最近 max_messages 条消息，只保留 role 与 content，用于构建模型上下文。"""
        recent = self.messages[-max_messages:] if max_messages > 0 else []
        return [{"role": m["role"], "content": m["content"]} for m in recent]

    def clear(self) -> None:
        self.messages = []
        self.updated_at = datetime.now()


class SessionManager:
    """
    会话的获取、保存、删除与列举。

    查找顺序：内存缓存 → 磁盘文件 → 新建空会话。
    """

    def __init__(self, sessions_dir: Path | None = None):
        self.sessions_dir = ensure_dir(sessions_dir) if sessions_dir else get_sessions_path()
        self._cache: dict[str, Session] = {}

    def _get_session_path(self, key: str) -> Path:
        safe_key = safe_filename(key.replace(":", "_"))
        return self.sessions_dir / f"{safe_key}.jsonl"

    def get_or_create(self, key: str) -> Session:
        if key in self._cache:
            return self._cache[key]

        session = self._load(key)
        if session is None:
            session = Session(key=key)
        self._cache[key] = session
        return session

    def _load(self, key: str) -> Session | None:
        path = self._get_session_path(key)
        if not path.exists():
            return None

        try:
            messages = []
            metadata = {}
            created_at = None
            updated_at = None
            with open(path, encoding="utf-8") as f:
                for line in f:
                    line = line.strip()
                    if not line:
                        continue
                    data = json.loads(line)
                    if data.get("_type") == "metadata":
                        metadata = data.get("metadata", {})
                        if data.get("created_at"):
                            created_at = datetime.fromisoformat(data["created_at"])
                        if data.get("updated_at"):
                            updated_at = datetime.fromisoformat(data["updated_at"])
                    else:
                        messages.append(data)
        except Exception as e:
            logger.warning(f"Failed to load session {key}: {e}")
            return None

        return Session(
            key=key,
            messages=messages,
            created_at=created_at or datetime.now(),
            updated_at=updated_at or datetime.now(),
            metadata=metadata,
        )

    def save(self, session: Session) -> None:
        path = self._get_session_path(session.key)
        with open(path, "w", encoding="utf-8") as f:
            f.write(json.dumps({
                "_type": "metadata",
                "key": session.key,
                "created_at": session.created_at.isoformat(),
                "updated_at": session.updated_at.isoformat(),
                "metadata": session.metadata,
            }, ensure_ascii=False) + "\n")
            for msg in session.messages:
                f.write(json.dumps(msg, ensure_ascii=False) + "\n")
        self._cache[session.key] = session

    def delete(self, key: str) -> bool:
        """删除缓存与文件，文件不存在时返回 False。"""
        self._cache.pop(key, None)
        path = self._get_session_path(key)
        if path.exists():
            path.unlink()
            return True
        return False

    def list_sessions(self) -> list[dict[str, Any]]:
        """
        列出磁盘上的会话，按 updated_at 倒序。

        返回:
            [{"key", "created_at", "updated_at", "path"}, ...]；损坏的文件被跳过
        """
        sessions = []
        for path in self.sessions_dir.glob("*.jsonl"):
            try:
                with open(path, encoding="utf-8") as f:
                    first_line = f.readline().strip()
                data = json.loads(first_line) if first_line else {}
            except (OSError, json.JSONDecodeError) as e:
                logger.warning(f"Skipping unreadable session file {path.name}: {e}")
                continue
            if data.get("_type") != "metadata":
                continue
            sessions.append({
                "key": data.get("key") or path.stem.replace("_", ":", 1),
                "created_at": data.get("created_at"),
                "updated_at": data.get("updated_at"),
                "path": str(path),
            })
        return sorted(sessions, key=lambda x: x.get("updated_at") or "", reverse=True)
