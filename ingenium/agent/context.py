"""
上下文构建：把身份说明、引导文件、记忆、技能、历史和当前消息组装成模型输入。

系统提示词各部分以 "---" 分隔：
    1. 身份（时间、运行环境、工作区位置、行为约定）
    2. 工作区根目录下的引导文件 AGENTS.md / SOUL.md / USER.md / TOOLS.md / IDENTITY.md
    3. 记忆（MemoryStore.get_memory_context）
    4. Active Skills：always 技能的全文
    5. Skills：全部技能的摘要，Agent 按需用 read_file 读取
"""

import base64
import mimetypes
import platform
import time
from datetime import datetime
from pathlib import Path
from typing import Any

from ingenium.agent.memory import MemoryStore
from ingenium.agent.skills import BUILTIN_SKILLS_DIR, SkillsLoader


class ContextBuilder:
    """构建系统提示词与发给 LLMProvider 的消息列表。"""

    BOOTSTRAP_FILES = ["AGENTS.md", "SOUL.md", "USER.md", "TOOLS.md", "IDENTITY.md"]

    def __init__(self, workspace: Path, builtin_skills_dir: Path | None = BUILTIN_SKILLS_DIR):
        self.workspace = workspace
        self.memory = MemoryStore(workspace)
        self.skills = SkillsLoader(workspace, builtin_skills_dir=builtin_skills_dir)

    def build_system_prompt(self) -> str:
        parts = [self._get_identity()]

        bootstrap = self._load_bootstrap_files()
        if bootstrap:
            parts.append(bootstrap)

        memory = self.memory.get_memory_context()
        if memory:
            parts.append(f"# Memory\n\n{memory}")

        always_skills = self.skills.get_always_skills()
        if always_skills:
            active = self.skills.load_skills_for_context(always_skills)
            if active:
                parts.append(f"# Active Skills\n\n{active}")

        summary = self.skills.build_skills_summary()
        if summary:
            parts.append(f"""# Skills

The following skills extend your capabilities. To use a skill, read its SKILL.md file using the read_file tool.
Skills with available="false" need dependencies installed first - you can try installing them with apt/brew.

{summary}""")

        return "\n\n---\n\n".join(parts)

    def _get_identity(self) -> str:
        now = datetime.now().strftime("%Y-%m-%d %H:%M (%A)")
        tz = time.strftime("%Z") or "UTC"
        workspace_path = str(self.workspace.expanduser().resolve())
        system = platform.system()
        runtime = f"{'macOS' if system == 'Darwin' else system} {platform.machine()}, Python {platform.python_version()}"

        return f"""# ingenium

You are ingenium, a helpful AI assistant. You have access to tools that allow you to:
- Read, write, and edit files
- Execute shell commands
- Search the web and fetch web pages
- Send messages to users on chat channels
- Spawn subagents for complex background tasks

## Current Time
{now} ({tz})

## Runtime
{runtime}

## Workspace
Your workspace is at: {workspace_path}
- Long-term memory: {workspace_path}/memory/MEMORY.md
- Daily notes: {workspace_path}/memory/YYYY-MM-DD.md
- Custom skills: {workspace_path}/skills/{{skill-name}}/SKILL.md

IMPORTANT: When responding to direct questions or conversations, reply directly with your text response.
Only use the 'message' tool when you need to send a message to a specific chat channel.
For normal conversation, just respond with text - do not call the message tool.

Always be helpful, accurate, and concise. When using tools, explain what you're doing.
When remembering something, write to {workspace_path}/memory/MEMORY.md"""

    def _load_bootstrap_files(self) -> str:
        parts = []
        for filename in self.BOOTSTRAP_FILES:
            file_path = self.workspace / filename
            if file_path.exists():
                parts.append(f"## {filename}\n\n{file_path.read_text(encoding='utf-8')}")
        return "\n\n".join(parts)

    def build_messages(
        self,
        history: list[dict[str, Any]],
        current_message: str,
        media: list[str] | None = None,
        channel: str | None = None,
        chat_id: str | None = None,
    ) -> list[dict[str, Any]]:
        """
        组装一次调用的完整消息列表：[system, *history, user]。

        参数：
            history: Session.get_history() 的结果
            current_message: 本次用户输入
            media: 本地图片路径，转成 base64 image_url 块
            channel / chat_id: 写入系统提示词的 "Current Session" 段
        """
        system_prompt = self.build_system_prompt()
        if channel and chat_id:
            system_prompt += f"\n\n## Current Session\nChannel: {channel}\nChat ID: {chat_id}"

        messages: list[dict[str, Any]] = [{"role": "system", "content": system_prompt}]
        messages.extend(history)
        messages.append({"role": "user", "content": self._build_user_content(current_message, media)})
        return messages

    def _build_user_content(self, text: str, media: list[str] | None) -> str | list[dict[str, Any]]:
        """无可用图片时返回纯文本，否则返回图片块在前、文本块在后的多模态内容。"""
        if not media:
            return text

        images = []
        for path in media:
            p = Path(path)
            mime, _ = mimetypes.guess_type(path)
            if not p.is_file() or not mime or not mime.startswith("image/"):
                continue
            b64 = base64.b64encode(p.read_bytes()).decode()
            images.append({"type": "image_url", "image_url": {"url": f"data:{mime};base64,{b64}"}})

        if not images:
            return text
        return images + [{"type": "text", "text": text}]

    @staticmethod
    def add_tool_result(
        messages: list[dict[str, Any]],
        tool_call_id: str,
        tool_name: str,
        result: str,
    ) -> list[dict[str, Any]]:
        messages.append({"role": "tool", "tool_call_id": tool_call_id, "name": tool_name, "content": result})
        return messages

    @staticmethod
    def add_assistant_message(
        messages: list[dict[str, Any]],
        content: str | None,
        tool_calls: list[dict[str, Any]] | None = None,
        reasoning_content: str | None = None,
    ) -> list[dict[str, Any]]:
        """
        追加 assistant 消息。

        tool_calls 必须原样带回，后续 tool 消息才能按 tool_call_id 配对；
        reasoning_content 也需保留，部分推理模型缺少它会拒绝请求。
        """
        msg: dict[str, Any] = {"role": "assistant", "content": content or ""}
        if tool_calls:
            msg["tool_calls"] = tool_calls
        if reasoning_content:
            msg["reasoning_content"] = reasoning_content
        messages.append(msg)
        return messages
