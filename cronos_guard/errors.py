"""
错误类型（按处理方式分层）。

- `StructuralError`：连分析都无法开始（缺配置 / 无法解析提交历史），直接终止本次运行
- `PayloadBuildError`：单文件 payload 构造失败，只影响该文件（记为 ERROR）
"""

from __future__ import annotations


class StructuralError(RuntimeError):
    """无法开始逐文件分析的致命错误（CLI 以非 0/1 的退出码结束）。"""

    pass


class RevisionHistoryError(StructuralError):
    """无法解析 parent / merge-base 等提交历史。"""

    pass


class GitCommandError(StructuralError):
    """git 命令执行失败。"""

    def __init__(self, args: list[str], returncode: int, stderr: str) -> None:
        super().__init__(f"git command failed ({returncode}): {' '.join(args)}: {stderr.strip()}")
        self.git_args = args
        self.returncode = returncode
        self.stderr = stderr


class PayloadBuildError(ValueError):
    """payload 序列化或自校验失败。"""

    pass


class WorktreeReadError(StructuralError):
    """工作区文件存在但无法读取（权限、I/O 错误等）。"""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"Cannot read working tree file {path}: {reason}")
        self.path = path
