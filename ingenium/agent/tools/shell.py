"""
Shell 命令执行工具。

防护层次（尽力而为，不是沙箱）：
  1. deny_patterns 黑名单：rm -rf、格式化磁盘、fork 炸弹等
  2. allow_patterns 白名单（可选）
  3. restrict_to_workspace：拒绝 ../ 与工作目录之外的绝对路径
  4. timeout 超时后 kill 子进程
  5. 输出超过 10000 字符时截断

ExecTool 声明 accepts_cancel = True：子代理被取消时，
正在运行的子进程会被 kill，而不是等到超时。
"""

import asyncio
import os
import re
from pathlib import Path
from typing import Any

from ingenium.agent.tools.base import Tool

MAX_OUTPUT_CHARS = 10000

DEFAULT_DENY_PATTERNS = [
    r"\brm\s+-[rf]{1,2}\b",
    r"\bdel\s+/[fq]\b",
    r"\brmdir\s+/s\b",
    r"\b(format|mkfs|diskpart)\b",
    r"\bdd\s+if=",
    r">\s*/dev/sd",
    r"\b(shutdown|reboot|poweroff)\b",
    r":\(\)\s*\{.*\};\s*:",
]


class ExecTool(Tool):
    """执行 Shell 命令，返回合并后的 stdout / stderr 与非零退出码。"""

    accepts_cancel = True

    def __init__(
        self,
        timeout: int = 60,
        working_dir: str | None = None,
        deny_patterns: list[str] | None = None,
        allow_patterns: list[str] | None = None,
        restrict_to_workspace: bool = False,
    ):
        self.timeout = timeout
        self.working_dir = working_dir
        self.deny_patterns = deny_patterns if deny_patterns is not None else list(DEFAULT_DENY_PATTERNS)
        self.allow_patterns = allow_patterns or []
        self.restrict_to_workspace = restrict_to_workspace

    @property
    def name(self) -> str:
        return "exec"

    @property
    def description(self) -> str:
        return "Execute a shell command and return its output. Use with caution."

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "command": {"type": "string", "description": "The shell command to execute"},
                "working_dir": {"type": "string", "description": "Optional working directory for the command"},
            },
            "required": ["command"],
        }

    async def execute(
        self,
        command: str,
        working_dir: str | None = None,
        cancel_event: asyncio.Event | None = None,
        **kwargs: Any,
    ) -> str:
        cwd = working_dir or self.working_dir or os.getcwd()
        guard_error = self._guard_command(command, cwd)
        if guard_error:
            return guard_error

        try:
            process = await asyncio.create_subprocess_shell(
                command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=cwd,
            )
            try:
                stdout, stderr = await self._communicate(process, cancel_event)
            except asyncio.TimeoutError:
                self._kill(process)
                return f"Error: Command timed out after {self.timeout} seconds"
            except asyncio.CancelledError:
                self._kill(process)
                raise

            if stdout is None:
                self._kill(process)
                return "Error: Command cancelled"

            return self._format_output(stdout, stderr, process.returncode)
        except Exception as e:
            return f"Error executing command: {str(e)}"

    async def _communicate(
        self,
        process: asyncio.subprocess.Process,
        cancel_event: asyncio.Event | None,
    ) -> tuple[bytes | None, bytes | None]:
        """
        等待子进程结束。

        有 cancel_event 时与其赛跑：取消先到返回 (None, None)。

        异常:
            asyncio.TimeoutError: 超过 self.timeout
        """
        if cancel_event is None:
            return await asyncio.wait_for(process.communicate(), timeout=self.timeout)

        comm = asyncio.ensure_future(process.communicate())
        waiter = asyncio.ensure_future(cancel_event.wait())
        try:
            done, _ = await asyncio.wait(
                {comm, waiter},
                timeout=self.timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            waiter.cancel()
        if comm in done:
            return comm.result()
        comm.cancel()
        if not done:
            raise asyncio.TimeoutError()
        return None, None

    @staticmethod
    def _kill(process: asyncio.subprocess.Process) -> None:
        if process.returncode is None:
            try:
                process.kill()
            except ProcessLookupError:
                pass

    @staticmethod
    def _format_output(stdout: bytes, stderr: bytes | None, returncode: int | None) -> str:
        output_parts = []
        if stdout:
            output_parts.append(stdout.decode("utf-8", errors="replace"))
        if stderr:
            stderr_text = stderr.decode("utf-8", errors="replace")
            if stderr_text.strip():
                output_parts.append(f"STDERR:\n{stderr_text}")
        if returncode != 0:
            output_parts.append(f"\nExit code: {returncode}")

        result = "\n".join(output_parts) if output_parts else "(no output)"
        if len(result) > MAX_OUTPUT_CHARS:
            result = result[:MAX_OUTPUT_CHARS] + f"\n... (truncated, {len(result) - MAX_OUTPUT_CHARS} more chars)"
        return result

    def _guard_command(self, command: str, cwd: str) -> str | None:
        """安全检查，不通过时返回错误文本。"""
        cmd = command.strip()
        lower = cmd.lower()

        for pattern in self.deny_patterns:
            if re.search(pattern, lower):
                return "Error: Command blocked by safety guard (dangerous pattern detected)"

        if self.allow_patterns and not any(re.search(p, lower) for p in self.allow_patterns):
            return "Error: Command blocked by safety guard (not in allowlist)"

        if self.restrict_to_workspace:
            if "..\\" in cmd or "../" in cmd:
                return "Error: Command blocked by safety guard (path traversal detected)"

            cwd_path = Path(cwd).resolve()
            win_paths = re.findall(r"[A-Za-z]:\\[^\\\"']+", cmd)
            posix_paths = re.findall(r"(?:^|[\s|>])(/[^\s\"'>]+)", cmd)
            for raw in win_paths + posix_paths:
                p = Path(raw.strip()).resolve()
                if p != cwd_path and cwd_path not in p.parents:
                    return "Error: Command blocked by safety guard (path outside working dir)"

        return None
