"""会话存储：对话历史以 JSONL 文件持久化，按 "channel:chat_id" 寻址。"""

from ingenium.session.manager import Session, SessionManager

__all__ = ["SessionManager", "Session"]
