"""
Agent 记忆：workspace/memory/ 下的 Markdown 文件。

- MEMORY.md：长期记忆（用户偏好、关键事实），整文件覆盖写
- YYYY-MM-DD.md：每日笔记，追加写，新文件带 "# 日期" 标题

get_memory_context() 的结果由 ContextBuilder 注入系统提示词。
"""

import re
from datetime import date, timedelta
from pathlib import Path

from ingenium.utils.helpers import ensure_dir, today_date

_DAILY_NOTE = re.compile(r"^\d{4}-\d{2}-\d{2}\.md$")


class MemoryStore:
    """长期记忆与每日笔记。"""

    def __init__(self, workspace: Path):
        self.memory_dir = ensure_dir(workspace / "memory")
        self.memory_file = self.memory_dir / "MEMORY.md"

    def get_today_file(self) -> Path:
        return self.memory_dir / f"{today_date()}.md"

    def read_today(self) -> str:
        today_file = self.get_today_file()
        if today_file.exists():
            return today_file.read_text(encoding="utf-8")
        return ""

    def append_today(self, content: str) -> None:
        today_file = self.get_today_file()
        if today_file.exists():
            content = today_file.read_text(encoding="utf-8") + "\n" + content
        else:
            content = f"# {today_date()}\n\n" + content
        today_file.write_text(content, encoding="utf-8")

    def read_long_term(self) -> str:
        if self.memory_file.exists():
            return self.memory_file.read_text(encoding="utf-8")
        return ""

    def write_long_term(self, content: str) -> None:
        self.memory_file.write_text(content, encoding="utf-8")

    def get_recent_memories(self, days: int = 7) -> str:
        """最近 days 天（含今天）的每日笔记，新的在前，以 "---" 分隔。"""
        today = date.today()
        memories = []
        for offset in range(days):
            path = self.memory_dir / f"{(today - timedelta(days=offset)).isoformat()}.md"
            if path.exists():
                memories.append(path.read_text(encoding="utf-8"))
        return "\n\n---\n\n".join(memories)

    def list_memory_files(self) -> list[Path]:
        """所有每日笔记文件，按日期倒序。"""
        files = [p for p in self.memory_dir.iterdir() if p.is_file() and _DAILY_NOTE.match(p.name)]
        return sorted(files, reverse=True)

    def get_memory_context(self) -> str:
        parts = []
        long_term = self.read_long_term()
        if long_term:
            parts.append(f"## Long-term Memory\n{long_term}")
        today = self.read_today()
        if today:
            parts.append(f"## Today's Notes\n{today}")
        return "\n\n".join(parts)
