"""
内存版仓库（`VersionControl` 的最小实现）。

只用于开发/测试：提交历史是线性的 `commits` + `parents`，
`refs` 保存分支名/HEAD 到提交 id 的映射，`worktree` 模拟工作区文件。
"""

from __future__ import annotations

from collections.abc import Mapping, MutableMapping
from dataclasses import dataclass, field

from cronos_guard.errors import RevisionHistoryError
from cronos_guard.vcs.base import BlobNotFoundError


@dataclass
class InMemoryRepository:
    commits: MutableMapping[str, Mapping[str, bytes]]
    parents: MutableMapping[str, str] = field(default_factory=dict)
    refs: MutableMapping[str, str] = field(default_factory=dict)
    worktree: MutableMapping[str, bytes] = field(default_factory=dict)

    @classmethod
    def linear(cls, *snapshots: Mapping[str, bytes]) -> InMemoryRepository:
        """按顺序创建 c0, c1, ... 的线性历史；HEAD 指向最后一个，工作区为其拷贝。"""
        if not snapshots:
            raise ValueError("at least one snapshot is required")
        commits: dict[str, Mapping[str, bytes]] = {}
        parents: dict[str, str] = {}
        for index, tree in enumerate(snapshots):
            sha = f"c{index}"
            commits[sha] = dict(tree)
            if index > 0:
                parents[sha] = f"c{index - 1}"
        head = f"c{len(snapshots) - 1}"
        return cls(commits=commits, parents=parents, refs={"HEAD": head}, worktree=dict(snapshots[-1]))

    def resolve_revision(self, rev: str) -> str | None:
        if rev.endswith("~1"):
            child = self.resolve_revision(rev[:-2])
            if child is None:
                return None
            return self.parents.get(child)
        if rev in self.refs:
            return self.refs[rev]
        if rev in self.commits:
            return rev
        return None

    def list_tracked_paths(self) -> list[str]:
        head = self.resolve_revision("HEAD")
        if head is None:
            return []
        return sorted(self.commits[head])

    def list_changed_paths(self, base: str, head: str) -> list[str]:
        base_tree = self._tree(base)
        head_tree = self._tree(head)
        return sorted(path for path, blob in head_tree.items() if base_tree.get(path) != blob)

    def read_blob(self, rev: str, path: str) -> bytes:
        tree = self._tree(rev)
        if path not in tree:
            raise BlobNotFoundError(rev=rev, path=path)
        return tree[path]

    def merge_base(self, left: str, right: str) -> str:
        left_sha = self.resolve_revision(left)
        right_sha = self.resolve_revision(right)
        if left_sha is None or right_sha is None:
            raise RevisionHistoryError(f"Cannot resolve merge-base of {left} and {right}")
        ancestors = set(self._ancestry(left_sha))
        for sha in self._ancestry(right_sha):
            if sha in ancestors:
                return sha
        raise RevisionHistoryError(f"No common ancestor for {left} and {right}")

    def read_worktree_file(self, path: str) -> bytes:
        if path not in self.worktree:
            raise FileNotFoundError(path)
        return self.worktree[path]

    def _tree(self, rev: str) -> Mapping[str, bytes]:
        sha = self.resolve_revision(rev)
        if sha is None:
            raise RevisionHistoryError(f"Unknown revision: {rev}")
        return self.commits[sha]

    def _ancestry(self, sha: str) -> list[str]:
        chain = [sha]
        while chain[-1] in self.parents:
            chain.append(self.parents[chain[-1]])
        return chain
