"""
变更集解析（非网络）。

职责：
- 按触发上下文（first_commit / push / pull_request）计算候选路径
- 为每个路径配对 old/new 内容，得到 `ChangeRecord`
- 工作区中已不存在的路径：不分析，但记录为 `SkippedPath`（不能静默丢弃）
- 提交历史无法解析：抛 `RevisionHistoryError`（在任何远端调用之前）
- 工作区文件存在但读不出来：抛 `WorktreeReadError`（同属结构性错误）
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable

from cronos_guard.errors import RevisionHistoryError
from cronos_guard.errors import WorktreeReadError
from cronos_guard.gate.models import ChangeRecord
from cronos_guard.gate.models import ChangeSet
from cronos_guard.gate.models import SkippedPath
from cronos_guard.gate.models import TriggerContext
from cronos_guard.vcs.base import BlobNotFoundError
from cronos_guard.vcs.base import VersionControl

logger = logging.getLogger(__name__)

PathFilter = Callable[[str], bool]

SKIP_MISSING_FROM_WORKTREE = "MISSING_FROM_WORKTREE"


def suffix_filter(suffixes: Iterable[str]) -> PathFilter:
    """按后缀过滤（区分大小写，例如 `.py`）。"""
    normalized = tuple(s for s in suffixes if s)
    if not normalized:
        raise ValueError("at least one suffix is required")

    def matches(path: str) -> bool:
        return path.endswith(normalized)

    return matches


def decode_content(data: bytes) -> str:
    """UTF-8 解码；非法字节替换为 U+FFFD，不截断。"""
    return data.decode("utf-8", errors="replace")


def resolve_change_set(vcs: VersionControl, trigger: TriggerContext, path_filter: PathFilter) -> ChangeSet:
    """
    计算一次运行要分析的变更集。

    - 输入：版本控制 oracle + 触发上下文 + 路径过滤器
    - 输出：`ChangeSet`（records 可以为空，这是常见且合法的结果）
    - 失败：revision 无法解析时抛 `RevisionHistoryError`
    """
    head = _require_revision(vcs=vcs, rev=trigger.head_rev)

    base: str | None
    if trigger.kind == "first_commit":
        base = None
        paths = vcs.list_tracked_paths()
    elif trigger.kind == "push":
        base = _require_revision(vcs=vcs, rev=trigger.base_rev or f"{trigger.head_rev}~1")
        paths = vcs.list_changed_paths(base, head)
    else:
        if not trigger.base_rev:
            raise RevisionHistoryError("pull_request trigger requires a base revision")
        target = _require_revision(vcs=vcs, rev=trigger.base_rev)
        base = vcs.merge_base(target, head)
        paths = vcs.list_changed_paths(base, head)

    candidates = sorted({p for p in paths if p and path_filter(p)})
    logger.info(f"Change set: trigger={trigger.kind}, base={base}, head={head}, candidates={len(candidates)}")

    records: list[ChangeRecord] = []
    skipped: list[SkippedPath] = []
    for path in candidates:
        try:
            new_blob = vcs.read_worktree_file(path)
        except (FileNotFoundError, IsADirectoryError):
            logger.warning(f"Skipping {path}: not present in working tree")
            skipped.append(SkippedPath(path=path, reason=SKIP_MISSING_FROM_WORKTREE))
            continue
        except OSError as exc:
            logger.error(f"Cannot read {path} from working tree: {exc}")
            raise WorktreeReadError(path=path, reason=str(exc)) from exc
        old_content = _read_old_content(vcs=vcs, base=base, path=path)
        records.append(ChangeRecord(path=path, old_content=old_content, new_content=decode_content(new_blob)))

    return ChangeSet(trigger=trigger, base_rev=base, records=tuple(records), skipped=tuple(skipped))


def _require_revision(vcs: VersionControl, rev: str) -> str:
    resolved = vcs.resolve_revision(rev)
    if resolved is None:
        logger.error(f"Cannot resolve revision: {rev}")
        raise RevisionHistoryError(f"Cannot resolve revision: {rev}")
    return resolved


def _read_old_content(vcs: VersionControl, base: str | None, path: str) -> str:
    if base is None:
        return ""
    try:
        return decode_content(vcs.read_blob(base, path))
    except BlobNotFoundError:
        logger.info(f"No previous version of {path} at {base}: using empty baseline")
        return ""
