from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest

from conftest import requires_git
from conftest import run_git
from cronos_guard.errors import GitCommandError
from cronos_guard.errors import RevisionHistoryError
from cronos_guard.gate.changeset import resolve_change_set
from cronos_guard.gate.changeset import suffix_filter
from cronos_guard.gate.models import TriggerContext
from cronos_guard.vcs.base import BlobNotFoundError
from cronos_guard.vcs.git import GitRepository

pytestmark = requires_git


def test_first_commit_has_no_parent(git_repo: Path, commit_files: Callable[..., str]) -> None:
    head = commit_files(git_repo, {"a.py": "x = 1\n", "docs/readme.md": "hi\n"})
    repo = GitRepository(repo_dir=str(git_repo))
    assert repo.resolve_revision("HEAD") == head
    assert repo.resolve_revision("HEAD~1") is None
    assert repo.list_tracked_paths() == ["a.py", "docs/readme.md"]


def test_changed_paths_exclude_deletions(git_repo: Path, commit_files: Callable[..., str]) -> None:
    commit_files(git_repo, {"a.py": "1\n", "b.py": "1\n", "c.py": "1\n"})
    (git_repo / "c.py").unlink()
    commit_files(git_repo, {"a.py": "2\n", "new.py": "n\n"})
    repo = GitRepository(repo_dir=str(git_repo))
    assert repo.list_changed_paths("HEAD~1", "HEAD") == ["a.py", "new.py"]


def test_read_blob_and_missing_blob(git_repo: Path, commit_files: Callable[..., str]) -> None:
    commit_files(git_repo, {"a.py": "old\n"})
    commit_files(git_repo, {"a.py": "new\n", "b.py": "b\n"})
    repo = GitRepository(repo_dir=str(git_repo))
    assert repo.read_blob("HEAD~1", "a.py") == b"old\n"
    with pytest.raises(BlobNotFoundError):
        repo.read_blob("HEAD~1", "b.py")
    assert repo.read_worktree_file("b.py") == b"b\n"


def test_merge_base_and_pull_request_change_set(git_repo: Path, commit_files: Callable[..., str]) -> None:
    base = commit_files(git_repo, {"a.py": "v0\n"})
    run_git(git_repo, "checkout", "-q", "-b", "feature")
    commit_files(git_repo, {"a.py": "v1\n"})
    commit_files(git_repo, {"a.py": "v2\n", "feature.py": "f\n"})
    run_git(git_repo, "checkout", "-q", "main")
    main_head = commit_files(git_repo, {"main_only.py": "m\n"})
    run_git(git_repo, "update-ref", "refs/remotes/origin/main", main_head)
    run_git(git_repo, "checkout", "-q", "feature")

    repo = GitRepository(repo_dir=str(git_repo))
    assert repo.merge_base("origin/main", "HEAD") == base
    change_set = resolve_change_set(
        vcs=repo,
        trigger=TriggerContext(kind="pull_request", base_rev="origin/main"),
        path_filter=suffix_filter([".py"]),
    )
    records = {r.path: r for r in change_set.records}
    assert sorted(records) == ["a.py", "feature.py"]
    assert records["a.py"].old_content == "v0\n"
    assert records["a.py"].new_content == "v2\n"
    assert records["feature.py"].old_content == ""


def test_merge_base_with_unknown_ref_is_structural(git_repo: Path, commit_files: Callable[..., str]) -> None:
    commit_files(git_repo, {"a.py": "1\n"})
    repo = GitRepository(repo_dir=str(git_repo))
    with pytest.raises(RevisionHistoryError):
        repo.merge_base("origin/nope", "HEAD")


def test_missing_git_binary_is_structural(git_repo: Path) -> None:
    repo = GitRepository(repo_dir=str(git_repo), git_bin="definitely-not-git")
    with pytest.raises(GitCommandError):
        repo.list_tracked_paths()
