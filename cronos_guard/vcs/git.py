from __future__ import annotations

import logging
import os
import subprocess

from cronos_guard.errors import GitCommandError
from cronos_guard.errors import RevisionHistoryError
from cronos_guard.vcs.base import BlobNotFoundError

logger = logging.getLogger(__name__)


class GitRepository:
    """基于 git CLI 的只读仓库访问（工作目录必须是仓库根目录）。"""

    def __init__(self, repo_dir: str, git_bin: str = "git") -> None:
        self._repo_dir = repo_dir
        self._git_bin = git_bin

    @property
    def repo_dir(self) -> str:
        return self._repo_dir

    def resolve_revision(self, rev: str) -> str | None:
        result = _run_git(self._git_bin, ["rev-parse", "--verify", "--quiet", f"{rev}^{{commit}}"], self._repo_dir, check=False)
        if result.returncode != 0:
            return None
        return result.stdout.decode("utf-8").strip()

    def list_tracked_paths(self) -> list[str]:
        result = _run_git(self._git_bin, ["ls-files", "-z", "--full-name"], self._repo_dir)
        return _split_nul(result.stdout)

    def list_changed_paths(self, base: str, head: str) -> list[str]:
        # 只要新增/修改（A/M），删除的文件不参与分析
        result = _run_git(
            self._git_bin,
            ["diff", "--name-only", "--no-renames", "--diff-filter=AM", "-z", base, head],
            self._repo_dir,
        )
        return _split_nul(result.stdout)

    def read_blob(self, rev: str, path: str) -> bytes:
        spec = f"{rev}:{path}"
        exists = _run_git(self._git_bin, ["cat-file", "-e", spec], self._repo_dir, check=False)
        if exists.returncode != 0:
            raise BlobNotFoundError(rev=rev, path=path)
        return _run_git(self._git_bin, ["cat-file", "blob", spec], self._repo_dir).stdout

    def merge_base(self, left: str, right: str) -> str:
        result = _run_git(self._git_bin, ["merge-base", left, right], self._repo_dir, check=False)
        if result.returncode != 0:
            logger.error(f"git merge-base failed: {left} {right}\nstderr={result.stderr.decode('utf-8', errors='replace')}")
            raise RevisionHistoryError(f"Cannot resolve merge-base of {left} and {right}")
        return result.stdout.decode("utf-8").strip()

    def read_worktree_file(self, path: str) -> bytes:
        with open(os.path.join(self._repo_dir, path), "rb") as f:
            return f.read()


def _split_nul(output: bytes) -> list[str]:
    return [item.decode("utf-8", errors="replace") for item in output.split(b"\0") if item]


def _run_git(git_bin: str, args: list[str], cwd: str | None, check: bool = True) -> subprocess.CompletedProcess[bytes]:
    cmd = [git_bin] + args
    try:
        result = subprocess.run(cmd, cwd=cwd, capture_output=True)
    except OSError as exc:
        logger.error(f"git not runnable: {' '.join(cmd)}: {exc}")
        raise GitCommandError(args=cmd, returncode=-1, stderr=str(exc)) from exc
    if check and result.returncode != 0:
        stderr = result.stderr.decode("utf-8", errors="replace")
        logger.error(f"git failed: {' '.join(cmd)}\nstderr={stderr}")
        raise GitCommandError(args=cmd, returncode=result.returncode, stderr=stderr)
    return result
