"""
版本控制抽象（只读 oracle）。

Gate 只需要四种能力：列出变更路径、读取某个 revision 的 blob、解析 merge-base、
判断 revision 是否存在；再加上读取工作区文件。用 Protocol 表达，
便于替换为 git CLI 实现或内存实现（单元测试）。
"""

from __future__ import annotations

from typing import Protocol


class BlobNotFoundError(KeyError):
    """路径在指定 revision 中不存在（例如新增文件）。"""

    def __init__(self, rev: str, path: str) -> None:
        super().__init__(f"{rev}:{path}")
        self.rev = rev
        self.path = path


class VersionControl(Protocol):
    """Gate 消费的版本控制接口。"""

    def resolve_revision(self, rev: str) -> str | None: ...

    def list_tracked_paths(self) -> list[str]: ...

    def list_changed_paths(self, base: str, head: str) -> list[str]: ...

    def read_blob(self, rev: str, path: str) -> bytes: ...

    def merge_base(self, left: str, right: str) -> str: ...

    def read_worktree_file(self, path: str) -> bytes: ...
