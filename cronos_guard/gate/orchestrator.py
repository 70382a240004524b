"""
Gate Orchestrator（核心流程编排）。

流程：
resolve change set -> (每个文件) build payload -> analyze -> 写报告 -> 汇总 -> 写 summary

- 变更集为空：直接 PASS，不发任何远端请求，但仍写 summary
- 并发：`CapacityLimiter` 限制同时在途的请求数；每个请求自带超时
- 取消（信号 / 整体 deadline，覆盖变更集解析与分析）：已完成的 outcome 保留，未完成的记为 ERROR(CANCELLED)，
  汇总强制 FAIL
"""

from __future__ import annotations

import logging
import signal
from collections.abc import Sequence
from dataclasses import dataclass, field
from functools import partial
from typing import Protocol

import anyio
import httpx
from anyio.abc import TaskStatus

from cronos_guard.analysis.client import ERROR_CANCELLED
from cronos_guard.analysis.client import AnalysisClient
from cronos_guard.analysis.client import error_outcome
from cronos_guard.config import GateConfig
from cronos_guard.errors import StructuralError
from cronos_guard.gate.aggregator import aggregate
from cronos_guard.gate.changeset import PathFilter
from cronos_guard.gate.changeset import resolve_change_set
from cronos_guard.gate.changeset import suffix_filter
from cronos_guard.gate.models import AnalysisOutcome
from cronos_guard.gate.models import ChangeRecord
from cronos_guard.gate.models import ChangeSet
from cronos_guard.gate.models import GateResult
from cronos_guard.gate.models import TriggerContext
from cronos_guard.storage.reports import ReportStore
from cronos_guard.vcs.base import VersionControl

logger = logging.getLogger(__name__)


class Analyzer(Protocol):
    """单文件分析能力（`AnalysisClient` 或测试替身）。"""

    async def analyze(self, record: ChangeRecord) -> AnalysisOutcome: ...


@dataclass(frozen=True)
class GateRun:
    """一次运行的完整结果。"""

    change_set: ChangeSet
    outcomes: tuple[AnalysisOutcome, ...]
    result: GateResult


@dataclass
class _Cancellation:
    """取消状态：只取消“工作”部分（解析 + 分析），收尾（补报告、写 summary）照常执行。"""

    scope: anyio.CancelScope = field(default_factory=anyio.CancelScope)
    signalled: bool = False

    def cancel_by_signal(self, signum: int) -> None:
        logger.error(f"Received signal {signum}: cancelling in-flight analysis")
        self.signalled = True
        self.scope.cancel()


async def analyze_records(
    analyzer: Analyzer,
    records: Sequence[ChangeRecord],
    store: ReportStore,
    max_workers: int,
    completed: dict[str, AnalysisOutcome],
) -> None:
    """
    并发分析并逐个落盘，结果按路径写入 `completed`。

    单个文件的失败不会中断批处理：analyzer 负责把失败归类为 ERROR outcome。
    被取消时 `completed` 中保留已完成的部分。
    """
    if max_workers <= 0:
        raise ValueError("max_workers must be > 0")

    limiter = anyio.CapacityLimiter(max_workers)
    total = len(records)

    async def analyze_one(index: int, record: ChangeRecord) -> None:
        async with limiter:
            logger.info(f"Analyzing [{index}/{total}]: {record.path}")
            outcome = await analyzer.analyze(record)
        store.write_outcome(outcome)
        completed[record.path] = outcome

    async with anyio.create_task_group() as tg:
        for index, record in enumerate(records, start=1):
            tg.start_soon(analyze_one, index, record)


def collect_outcomes(
    records: Sequence[ChangeRecord],
    completed: dict[str, AnalysisOutcome],
    store: ReportStore,
) -> list[AnalysisOutcome]:
    """按变更集顺序收集 outcome；没有完成的路径记为 ERROR(CANCELLED) 并落盘。"""
    outcomes: list[AnalysisOutcome] = []
    for record in records:
        outcome = completed.get(record.path)
        if outcome is None:
            outcome = error_outcome(path=record.path, error_code=ERROR_CANCELLED, detail="Run cancelled before analysis completed")
            store.write_outcome(outcome)
        outcomes.append(outcome)
    return outcomes


async def run_gate(
    vcs: VersionControl,
    trigger: TriggerContext,
    path_filter: PathFilter,
    analyzer: Analyzer,
    store: ReportStore,
    max_workers: int = 4,
    run_timeout: float | None = None,
    watch_signals: bool = False,
) -> GateRun:
    """
    跑一次完整 gate。

    - 结构性错误（提交历史 / 工作区读取）原样抛出，此时不会发任何远端请求
    - 信号监听在解析变更集之前就已打开：任何阶段收到 SIGINT/SIGTERM 都会写 summary
    - 其余失败都体现在 outcome / summary 中
    """
    cancellation = _Cancellation()
    completed: dict[str, AnalysisOutcome] = {}
    change_set: ChangeSet | None = None
    structural_error: StructuralError | None = None

    async with anyio.create_task_group() as watcher:
        if watch_signals:
            await watcher.start(_cancel_on_signal, cancellation)
        with cancellation.scope, anyio.move_on_after(run_timeout) as deadline:
            try:
                change_set = await anyio.to_thread.run_sync(
                    partial(resolve_change_set, vcs=vcs, trigger=trigger, path_filter=path_filter)
                )
            except StructuralError as exc:
                # 在 task group 外重新抛出，避免被包进 ExceptionGroup
                structural_error = exc
            else:
                store.ensure_dir()
                store.reserve([r.path for r in change_set.records] + [s.path for s in change_set.skipped])
                for skipped in change_set.skipped:
                    store.write_skipped(skipped)
                if not change_set.is_empty:
                    await analyze_records(
                        analyzer=analyzer,
                        records=change_set.records,
                        store=store,
                        max_workers=max_workers,
                        completed=completed,
                    )
        # 工作结束（或被取消）后停止信号监听
        watcher.cancel_scope.cancel()

    if structural_error is not None:
        raise structural_error

    cancelled = cancellation.signalled or deadline.cancelled_caught
    store.ensure_dir()
    if change_set is None:
        logger.error("Run cancelled while resolving the change set")
        change_set = ChangeSet(trigger=trigger, base_rev=None)
    elif change_set.is_empty and not cancelled:
        logger.info("No relevant files changed: analysis skipped")

    outcomes = collect_outcomes(records=change_set.records, completed=completed, store=store)
    if cancelled:
        logger.error(f"Run cancelled: {len(completed)}/{len(change_set.records)} file(s) completed")
    result = aggregate(outcomes, skipped=len(change_set.skipped), cancelled=cancelled)
    store.write_summary(result)
    return GateRun(change_set=change_set, outcomes=tuple(outcomes), result=result)


async def run_configured_gate(
    config: GateConfig,
    vcs: VersionControl,
    trigger: TriggerContext,
    transport: httpx.AsyncBaseTransport | None = None,
    watch_signals: bool = True,
) -> GateRun:
    """
    按配置装配依赖并运行：
    - 一个 `httpx.AsyncClient`（连接池在所有文件间复用）
    - `AnalysisClient` + `ReportStore` + 后缀过滤器
    """
    timeout = httpx.Timeout(config.total_timeout, connect=config.connect_timeout)
    async with httpx.AsyncClient(timeout=timeout, transport=transport) as http_client:
        client = AnalysisClient(
            base_url=config.api_base_url,
            http_client=http_client,
            mode=config.analysis_mode,
            connect_timeout=config.connect_timeout,
            total_timeout=config.total_timeout,
        )
        logger.info(f"Analysis endpoint: {client.endpoint}, mode={config.analysis_mode}, workers={config.max_workers}")
        return await run_gate(
            vcs=vcs,
            trigger=trigger,
            path_filter=suffix_filter(config.file_suffixes),
            analyzer=client,
            store=ReportStore(report_dir=config.report_dir),
            max_workers=config.max_workers,
            run_timeout=config.run_timeout,
            watch_signals=watch_signals,
        )


async def _cancel_on_signal(cancellation: _Cancellation, *, task_status: TaskStatus[None] = anyio.TASK_STATUS_IGNORED) -> None:
    with anyio.open_signal_receiver(signal.SIGINT, signal.SIGTERM) as signals:
        task_status.started()
        async for signum in signals:
            cancellation.cancel_by_signal(signum)
            return
