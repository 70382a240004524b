"""
GitHub Actions 适配。

职责：
- 根据 `GITHUB_EVENT_NAME` / `GITHUB_BASE_REF` 与仓库状态选择触发上下文
- 把最终结论追加到 `$GITHUB_ENV`（供 workflow 后续步骤读取）
"""

from __future__ import annotations

import logging
from enum import Enum

from cronos_guard.errors import RevisionHistoryError
from cronos_guard.gate.models import GateStatus
from cronos_guard.gate.models import TriggerContext
from cronos_guard.vcs.base import VersionControl

logger = logging.getLogger(__name__)

FINAL_STATUS_ENV_KEY = "CRONOS_FINAL_STATUS"
PARENT_REVISION = "HEAD~1"


class TriggerOption(str, Enum):
    AUTO = "auto"
    FIRST_COMMIT = "first-commit"
    PUSH = "push"
    PULL_REQUEST = "pull-request"


def pull_request_base(base_ref: str) -> str:
    """PR 的目标分支在 CI checkout 中以 `origin/<branch>` 的形式存在。"""
    branch = base_ref.strip() or "main"
    if branch.startswith("origin/"):
        return branch
    return f"origin/{branch}"


def detect_trigger(event_name: str, base_ref: str, vcs: VersionControl) -> TriggerContext:
    """
    自动选择触发上下文。

    - pull_request 事件：与目标分支的 merge-base 比较
    - 其他事件：有 parent 则按 push 处理，否则视为首次提交
    """
    if event_name == "pull_request":
        return TriggerContext(kind="pull_request", base_rev=pull_request_base(base_ref))
    if vcs.resolve_revision(PARENT_REVISION) is not None:
        return TriggerContext(kind="push", base_rev=PARENT_REVISION)
    logger.info("No parent revision: treating as first commit")
    return TriggerContext(kind="first_commit")


def select_trigger(option: TriggerOption, event_name: str, base_ref: str, vcs: VersionControl) -> TriggerContext:
    """显式指定优先；push 模式下没有 parent 属于结构性错误。"""
    if option is TriggerOption.AUTO:
        return detect_trigger(event_name=event_name, base_ref=base_ref, vcs=vcs)
    if option is TriggerOption.FIRST_COMMIT:
        return TriggerContext(kind="first_commit")
    if option is TriggerOption.PULL_REQUEST:
        return TriggerContext(kind="pull_request", base_rev=pull_request_base(base_ref))
    if vcs.resolve_revision(PARENT_REVISION) is None:
        raise RevisionHistoryError(f"push trigger requires a parent revision, but {PARENT_REVISION} cannot be resolved")
    return TriggerContext(kind="push", base_rev=PARENT_REVISION)


def export_final_status(github_env: str | None, status: GateStatus) -> None:
    if not github_env:
        return
    with open(github_env, "a", encoding="utf-8") as f:
        f.write(f"{FINAL_STATUS_ENV_KEY}={status.value}\n")
    logger.info(f"Exported {FINAL_STATUS_ENV_KEY}={status.value}")
