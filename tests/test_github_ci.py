from __future__ import annotations

from pathlib import Path

import pytest

from cronos_guard.ci.github import TriggerOption
from cronos_guard.ci.github import detect_trigger
from cronos_guard.ci.github import export_final_status
from cronos_guard.ci.github import pull_request_base
from cronos_guard.ci.github import select_trigger
from cronos_guard.errors import RevisionHistoryError
from cronos_guard.gate.models import GateStatus
from cronos_guard.vcs.memory import InMemoryRepository


def test_detect_trigger_pull_request_uses_origin_base() -> None:
    repo = InMemoryRepository.linear({"a.py": b"1"})
    trigger = detect_trigger(event_name="pull_request", base_ref="develop", vcs=repo)
    assert trigger.kind == "pull_request"
    assert trigger.base_rev == "origin/develop"


def test_detect_trigger_push_with_parent() -> None:
    repo = InMemoryRepository.linear({"a.py": b"1"}, {"a.py": b"2"})
    trigger = detect_trigger(event_name="push", base_ref="main", vcs=repo)
    assert trigger.kind == "push"
    assert trigger.base_rev == "HEAD~1"


def test_detect_trigger_first_commit() -> None:
    repo = InMemoryRepository.linear({"a.py": b"1"})
    assert detect_trigger(event_name="push", base_ref="main", vcs=repo).kind == "first_commit"


def test_pull_request_base_defaults_to_main() -> None:
    assert pull_request_base("") == "origin/main"
    assert pull_request_base("origin/release") == "origin/release"


def test_select_trigger_explicit_push_without_parent_fails() -> None:
    repo = InMemoryRepository.linear({"a.py": b"1"})
    with pytest.raises(RevisionHistoryError):
        select_trigger(option=TriggerOption.PUSH, event_name="push", base_ref="main", vcs=repo)


def test_select_trigger_explicit_first_commit_ignores_history() -> None:
    repo = InMemoryRepository.linear({"a.py": b"1"}, {"a.py": b"2"})
    trigger = select_trigger(option=TriggerOption.FIRST_COMMIT, event_name="push", base_ref="main", vcs=repo)
    assert trigger.kind == "first_commit"


def test_export_final_status_appends(tmp_path: Path) -> None:
    env_file = tmp_path / "github_env"
    env_file.write_text("EXISTING=1\n", encoding="utf-8")
    export_final_status(github_env=str(env_file), status=GateStatus.WARN)
    assert env_file.read_text(encoding="utf-8") == "EXISTING=1\nCRONOS_FINAL_STATUS=WARN\n"


def test_export_final_status_without_env_is_noop() -> None:
    export_final_status(github_env=None, status=GateStatus.PASS)
