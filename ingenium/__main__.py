"""
支持 `python -m ingenium` 启动，实际命令定义在 cli/commands.py。
"""

from ingenium.cli.commands import app

if __name__ == "__main__":
    app()
