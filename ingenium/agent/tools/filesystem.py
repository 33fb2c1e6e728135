"""
文件系统工具：read_file、write_file、edit_file、list_dir。

路径规则：
    - "~" 会被展开；相对路径基于 base_dir（通常是工作区）解析
    - 设置了 allowed_dir 时，解析后的路径必须位于该目录内，否则返回错误

所有工具都按"字符串即结果"约定返回，绝不向外抛出 I/O 异常。
"""

from pathlib import Path
from typing import Any

from ingenium.agent.tools.base import Tool


def _resolve_path(path: str, base_dir: Path | None = None, allowed_dir: Path | None = None) -> Path:
    """
    解析并检查路径。

    异常:
        PermissionError: 路径落在 allowed_dir 之外
    """
    candidate = Path(path).expanduser()
    if not candidate.is_absolute() and base_dir is not None:
        candidate = base_dir / candidate
    resolved = candidate.resolve()
    if allowed_dir is not None:
        root = allowed_dir.expanduser().resolve()
        if resolved != root and not resolved.is_relative_to(root):
            raise PermissionError(f"Path {path} is outside allowed directory {allowed_dir}")
    return resolved


class _FileSystemTool(Tool):
    """文件工具的公共部分：保存 base_dir / allowed_dir 并负责路径解析。"""

    def __init__(self, allowed_dir: Path | None = None, base_dir: Path | None = None):
        self._allowed_dir = allowed_dir
        self._base_dir = base_dir or allowed_dir

    def _resolve(self, path: str) -> Path:
        return _resolve_path(path, self._base_dir, self._allowed_dir)


class ReadFileTool(_FileSystemTool):
    """读取文本文件全部内容。"""

    @property
    def name(self) -> str:
        return "read_file"

    @property
    def description(self) -> str:
        return "Read the contents of a file at the given path."

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "path": {"type": "string", "description": "The file path to read"},
            },
            "required": ["path"],
        }

    async def execute(self, path: str, **kwargs: Any) -> str:
        try:
            file_path = self._resolve(path)
            if not file_path.exists():
                return f"Error: File not found: {path}"
            if not file_path.is_file():
                return f"Error: Not a file: {path}"
            return file_path.read_text(encoding="utf-8")
        except PermissionError as e:
            return f"Error: {e}"
        except Exception as e:
            return f"Error reading file: {str(e)}"


class WriteFileTool(_FileSystemTool):
    """写入文件（覆盖），父目录不存在时自动创建。"""

    @property
    def name(self) -> str:
        return "write_file"

    @property
    def description(self) -> str:
        return "Write content to a file at the given path. Creates parent directories if needed."

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "path": {"type": "string", "description": "The file path to write to"},
                "content": {"type": "string", "description": "The content to write"},
            },
            "required": ["path", "content"],
        }

    async def execute(self, path: str, content: str, **kwargs: Any) -> str:
        try:
            file_path = self._resolve(path)
            file_path.parent.mkdir(parents=True, exist_ok=True)
            file_path.write_text(content, encoding="utf-8")
            return f"Successfully wrote {len(content)} bytes to {path}"
        except PermissionError as e:
            return f"Error: {e}"
        except Exception as e:
            return f"Error writing file: {str(e)}"


class EditFileTool(_FileSystemTool):
    """
    精确文本替换。

    old_text 必须在文件中恰好出现一次：
    不存在时报错，出现多次时要求模型提供更多上下文。
    """

    @property
    def name(self) -> str:
        return "edit_file"

    @property
    def description(self) -> str:
        return "Edit a file by replacing old_text with new_text. The old_text must exist exactly once in the file."

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "path": {"type": "string", "description": "The file path to edit"},
                "old_text": {"type": "string", "description": "The exact text to find and replace"},
                "new_text": {"type": "string", "description": "The text to replace with"},
            },
            "required": ["path", "old_text", "new_text"],
        }

    async def execute(self, path: str, old_text: str, new_text: str, **kwargs: Any) -> str:
        try:
            file_path = self._resolve(path)
            if not file_path.exists():
                return f"Error: File not found: {path}"
            content = file_path.read_text(encoding="utf-8")
            count = content.count(old_text)
            if count == 0:
                return "Error: old_text not found in file. Make sure it matches exactly."
            if count > 1:
                return f"Warning: old_text appears {count} times. Please provide more context to make it unique."
            file_path.write_text(content.replace(old_text, new_text, 1), encoding="utf-8")
            return f"Successfully edited {path}"
        except PermissionError as e:
            return f"Error: {e}"
        except Exception as e:
            return f"Error editing file: {str(e)}"


class ListDirTool(_FileSystemTool):
    """列出目录内容，目录名以 "/" 结尾。"""

    @property
    def name(self) -> str:
        return "list_dir"

    @property
    def description(self) -> str:
        return "List the contents of a directory."

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "path": {"type": "string", "description": "The directory path to list"},
            },
            "required": ["path"],
        }

    async def execute(self, path: str, **kwargs: Any) -> str:
        try:
            dir_path = self._resolve(path)
            if not dir_path.exists():
                return f"Error: Directory not found: {path}"
            if not dir_path.is_dir():
                return f"Error: Not a directory: {path}"
            entries = sorted(dir_path.iterdir(), key=lambda p: (not p.is_dir(), p.name))
            if not entries:
                return f"Directory {path} is empty"
            return "\n".join(f"{p.name}/" if p.is_dir() else p.name for p in entries)
        except PermissionError as e:
            return f"Error: {e}"
        except Exception as e:
            return f"Error listing directory: {str(e)}"
