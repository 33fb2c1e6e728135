"""
技能加载器。

技能是 skills/<名称>/SKILL.md 中的 Markdown 指令，教 Agent 如何完成某类任务。
两个来源，同名时工作区优先：
    1. 工作区 workspace/skills/（用户自定义）
    2. 内置 ingenium/skills/（随包发布）

SKILL.md 可以带一段简单的 frontmatter（逐行 "key: value"，不依赖 YAML 库）：

    ---
    description: Work with GitHub issues and pull requests
    always: false
    metadata: {"ingenium": {"requires": {"bins": ["gh"], "env": ["GITHUB_TOKEN"]}}}
    ---

metadata 中 "ingenium" 键下的 always / requires 是 ingenium 专有设置。
requires 未满足（命令不在 PATH 中，或环境变量为空）的技能视为不可用。

系统提示词采用渐进式加载：always 技能注入全文，其余只给摘要，
Agent 需要时再用 read_file 读取完整内容。
"""

import json
import os
import re
import shutil
from pathlib import Path
from typing import Any

BUILTIN_SKILLS_DIR = Path(__file__).parent.parent / "skills"
SKILL_FILE = "SKILL.md"

_FRONTMATTER_RE = re.compile(r"^---\n(.*?)\n---\n?", re.DOTALL)


def _escape_xml(s: str) -> str:
    return s.replace("&", "&amp;").replace("<", "&lt;").replace(">", "&gt;")


class SkillsLoader:
    """
    发现并读取技能。

    属性:
        workspace: 工作区根目录
        workspace_skills: workspace/skills/
        builtin_skills: 内置技能目录，None 表示不使用内置技能
    """

    def __init__(self, workspace: Path, builtin_skills_dir: Path | None = BUILTIN_SKILLS_DIR):
        self.workspace = workspace
        self.workspace_skills = workspace / "skills"
        self.builtin_skills = builtin_skills_dir

    def _roots(self) -> list[tuple[str, Path]]:
        roots = [("workspace", self.workspace_skills)]
        if self.builtin_skills:
            roots.append(("builtin", self.builtin_skills))
        return roots

    def list_skills(self, filter_unavailable: bool = True) -> list[dict[str, str]]:
        """
        列出技能，每项为 {"name", "path", "source"}。

        参数:
            filter_unavailable: 为 True 时去掉依赖不满足的技能
        """
        found: dict[str, dict[str, str]] = {}
        for source, root in self._roots():
            if not root.is_dir():
                continue
            for skill_dir in sorted(root.iterdir()):
                skill_file = skill_dir / SKILL_FILE
                if skill_dir.name in found or not skill_file.is_file():
                    continue
                found[skill_dir.name] = {"name": skill_dir.name, "path": str(skill_file), "source": source}

        skills = list(found.values())
        if filter_unavailable:
            skills = [s for s in skills if not self._missing_requirements(s["name"])]
        return skills

    def load_skill(self, name: str) -> str | None:
        """按名称读取 SKILL.md 全文（工作区优先），找不到返回 None。"""
        for _, root in self._roots():
            skill_file = root / name / SKILL_FILE
            if skill_file.is_file():
                return skill_file.read_text(encoding="utf-8")
        return None

    def load_skills_for_context(self, skill_names: list[str]) -> str:
        """读取多个技能的正文（去掉 frontmatter），以 "---" 分隔。"""
        parts = []
        for name in skill_names:
            content = self.load_skill(name)
            if content:
                parts.append(f"### Skill: {name}\n\n{self._strip_frontmatter(content)}")
        return "\n\n---\n\n".join(parts)

    def build_skills_summary(self) -> str:
        """
        所有技能（含不可用的）的 XML 摘要：名称、描述、位置、available 标记，
        不可用时附上缺失的依赖。没有任何技能时返回空字符串。
        """
        skills = self.list_skills(filter_unavailable=False)
        if not skills:
            return ""

        lines = ["<skills>"]
        for s in skills:
            missing = self._missing_requirements(s["name"])
            lines.append(f'  <skill available="{"false" if missing else "true"}">')
            lines.append(f"    <name>{_escape_xml(s['name'])}</name>")
            lines.append(f"    <description>{_escape_xml(self._get_description(s['name']))}</description>")
            lines.append(f"    <location>{s['path']}</location>")
            if missing:
                lines.append(f"    <requires>{_escape_xml(', '.join(missing))}</requires>")
            lines.append("  </skill>")
        lines.append("</skills>")
        return "\n".join(lines)

    def get_always_skills(self) -> list[str]:
        """标记为 always 且依赖满足的技能名。"""
        result = []
        for s in self.list_skills(filter_unavailable=True):
            meta = self.get_skill_metadata(s["name"]) or {}
            if meta.get("always") is True or self._ingenium_meta(meta).get("always"):
                result.append(s["name"])
        return result

    def get_skill_metadata(self, name: str) -> dict[str, Any] | None:
        """
        解析 frontmatter。"true"/"false" 转为布尔值，其余为去掉引号的字符串。

        技能不存在或没有 frontmatter 时返回 None。
        """
        content = self.load_skill(name)
        if not content:
            return None
        match = _FRONTMATTER_RE.match(content)
        if not match:
            return None

        metadata: dict[str, Any] = {}
        for line in match.group(1).split("\n"):
            if ":" not in line:
                continue
            key, value = line.split(":", 1)
            value = value.strip().strip("\"'")
            if value in ("true", "false"):
                metadata[key.strip()] = value == "true"
            else:
                metadata[key.strip()] = value
        return metadata

    @staticmethod
    def _ingenium_meta(meta: dict[str, Any]) -> dict[str, Any]:
        raw = meta.get("metadata")
        if not raw:
            return {}
        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            return {}
        if not isinstance(data, dict) or not isinstance(data.get("ingenium"), dict):
            return {}
        return data["ingenium"]

    def _missing_requirements(self, name: str) -> list[str]:
        """缺失的依赖，形如 ["CLI: gh", "ENV: GITHUB_TOKEN"]；空列表表示可用。"""
        requires = self._ingenium_meta(self.get_skill_metadata(name) or {}).get("requires") or {}
        missing = [f"CLI: {b}" for b in requires.get("bins", []) if not shutil.which(b)]
        missing += [f"ENV: {e}" for e in requires.get("env", []) if not os.environ.get(e)]
        return missing

    def _get_description(self, name: str) -> str:
        meta = self.get_skill_metadata(name) or {}
        description = meta.get("description")
        return description if isinstance(description, str) and description else name

    @staticmethod
    def _strip_frontmatter(content: str) -> str:
        match = _FRONTMATTER_RE.match(content)
        if match:
            return content[match.end():].strip()
        return content
