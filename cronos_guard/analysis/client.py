"""
CRONOS 分析服务客户端（`POST {base_url}/analyze_ci`）。

目标：
- **尽量薄**：只做协议适配、超时控制与结果分类，不做任何风险计算
- **不吞错也不抛错**：每种失败都归类为带稳定错误码的 ERROR outcome，批处理继续
- **单次调用**：不在这里重试（重试策略属于调用方）
- **严格 schema**：响应只在 `classify_response` 一处校验；未知 status 绝不视为通过
"""

from __future__ import annotations

import json
import logging

import anyio
import httpx
from pydantic import ValidationError

from cronos_guard.errors import PayloadBuildError
from cronos_guard.gate.models import AnalysisOutcome
from cronos_guard.gate.models import AnalysisResponse
from cronos_guard.gate.models import ChangeRecord
from cronos_guard.gate.models import Verdict
from cronos_guard.gate.payload import build_payload

logger = logging.getLogger(__name__)

ANALYZE_PATH = "/analyze_ci"
DEFAULT_CONNECT_TIMEOUT = 10.0
DEFAULT_TOTAL_TIMEOUT = 120.0

ERROR_API_UNREACHABLE = "API_UNREACHABLE"
ERROR_API_TIMEOUT = "API_TIMEOUT"
ERROR_NETWORK = "NETWORK_ERROR"
ERROR_INVALID_HTTP_RESPONSE = "INVALID_HTTP_RESPONSE"
ERROR_EMPTY_RESPONSE = "EMPTY_API_RESPONSE"
ERROR_INVALID_JSON = "INVALID_JSON_RESPONSE"
ERROR_MISSING_STATUS = "MISSING_STATUS"
ERROR_UNKNOWN_STATUS = "UNKNOWN_STATUS"
ERROR_INVALID_SCHEMA = "INVALID_RESPONSE_SCHEMA"
ERROR_PAYLOAD_BUILD = "PAYLOAD_BUILD_FAILED"
ERROR_CANCELLED = "CANCELLED"

RECOGNIZED_STATUSES = {Verdict.PASS.value, Verdict.WARN.value, Verdict.FAIL.value}

_DETAIL_LIMIT = 500


def http_error_code(status_code: int) -> str:
    return f"HTTP_{status_code}"


def error_outcome(path: str, error_code: str, detail: str | None = None, raw_payload: object = None) -> AnalysisOutcome:
    return AnalysisOutcome(
        path=path,
        verdict=Verdict.ERROR,
        risk=None,
        raw_payload=raw_payload,
        error_code=error_code,
        detail=detail,
    )


def classify_response(path: str, status_code: int, body: bytes) -> AnalysisOutcome:
    """
    把一次 HTTP 响应归类为 `AnalysisOutcome`。

    顺序：HTTP 状态 -> 空 body -> JSON 合法性 -> status 字段 -> schema -> status 取值。
    """
    if not 200 <= status_code < 300:
        return error_outcome(path=path, error_code=http_error_code(status_code), detail=_preview(body))

    if not body.strip():
        return error_outcome(path=path, error_code=ERROR_EMPTY_RESPONSE)

    try:
        parsed = json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        return error_outcome(path=path, error_code=ERROR_INVALID_JSON, detail=f"{exc}: {_preview(body)}")

    if not isinstance(parsed, dict):
        return error_outcome(
            path=path,
            error_code=ERROR_INVALID_SCHEMA,
            detail=f"Expected a JSON object, got {type(parsed).__name__}",
            raw_payload=parsed,
        )
    if "status" not in parsed:
        return error_outcome(path=path, error_code=ERROR_MISSING_STATUS, raw_payload=parsed)

    try:
        response = AnalysisResponse.model_validate(parsed)
    except ValidationError as exc:
        return error_outcome(path=path, error_code=ERROR_INVALID_SCHEMA, detail=str(exc), raw_payload=parsed)

    if response.status not in RECOGNIZED_STATUSES:
        return error_outcome(
            path=path,
            error_code=ERROR_UNKNOWN_STATUS,
            detail=f"Unrecognized status: {response.status!r}",
            raw_payload=parsed,
        )

    return AnalysisOutcome(
        path=path,
        verdict=Verdict(response.status),
        risk=response.risk,
        raw_payload=parsed,
        findings_count=response.findings_count,
        summary=tuple(response.summary),
    )


class AnalysisClient:
    """`/analyze_ci` 客户端：每个文件一次调用，返回一个 outcome。"""

    def __init__(
        self,
        base_url: str,
        http_client: httpx.AsyncClient,
        mode: str,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        total_timeout: float = DEFAULT_TOTAL_TIMEOUT,
    ) -> None:
        """
        - base_url: 分析服务地址（末尾的 `/` 会被去掉）
        - http_client: 复用 httpx.AsyncClient 连接池
        - mode: 分析模式（例如 `STRICT`），原样透传给服务端
        - connect_timeout / total_timeout: 连接超时与整体超时（秒）
        """
        if connect_timeout <= 0 or total_timeout <= 0:
            raise ValueError("timeouts must be > 0")
        self._endpoint = f"{base_url.rstrip('/')}{ANALYZE_PATH}"
        self._http_client = http_client
        self._mode = mode
        self._total_timeout = total_timeout
        self._timeout = httpx.Timeout(total_timeout, connect=connect_timeout)

    @property
    def endpoint(self) -> str:
        return self._endpoint

    async def analyze(self, record: ChangeRecord) -> AnalysisOutcome:
        """提交一个文件并分类结果（不会抛出网络/协议异常）。"""
        path = record.path
        try:
            payload = build_payload(record=record, mode=self._mode)
        except PayloadBuildError as exc:
            logger.error(f"Failed to build payload for {path}: {exc}")
            return error_outcome(path=path, error_code=ERROR_PAYLOAD_BUILD, detail=str(exc))

        logger.info(f"Analyzing {path}: old={_line_count(record.old_content)} lines, new={_line_count(record.new_content)} lines, payload={len(payload)} bytes")
        try:
            with anyio.fail_after(self._total_timeout):
                response = await self._http_client.post(
                    self._endpoint,
                    content=payload,
                    headers={"Content-Type": "application/json", "Accept": "application/json"},
                    timeout=self._timeout,
                )
        except (TimeoutError, httpx.TimeoutException) as exc:
            logger.error(f"Analysis request timed out for {path}: {exc!r}")
            return error_outcome(path=path, error_code=ERROR_API_TIMEOUT, detail=repr(exc))
        except httpx.ConnectError as exc:
            logger.error(f"Analysis API unreachable ({self._endpoint}) for {path}: {exc}")
            return error_outcome(path=path, error_code=ERROR_API_UNREACHABLE, detail=str(exc))
        except httpx.TransportError as exc:
            logger.error(f"Network error calling {self._endpoint} for {path}: {exc!r}")
            return error_outcome(path=path, error_code=ERROR_NETWORK, detail=repr(exc))
        except httpx.RequestError as exc:
            # 例如 Content-Encoding 与 body 不符（DecodingError）、重定向过多等
            logger.error(f"Invalid HTTP response from {self._endpoint} for {path}: {exc!r}")
            return error_outcome(path=path, error_code=ERROR_INVALID_HTTP_RESPONSE, detail=repr(exc))

        outcome = classify_response(path=path, status_code=response.status_code, body=response.content)
        _log_outcome(outcome=outcome, status_code=response.status_code)
        return outcome


def _line_count(text: str) -> int:
    return len(text.splitlines())


def _preview(body: bytes) -> str:
    return body[:_DETAIL_LIMIT].decode("utf-8", errors="replace")


def _log_outcome(outcome: AnalysisOutcome, status_code: int) -> None:
    if outcome.is_error:
        logger.error(f"Analysis ERROR for {outcome.path}: HTTP {status_code}, code={outcome.error_code}, detail={outcome.detail}")
        return
    logger.info(
        f"Analysis result for {outcome.path}: status={outcome.verdict.value}, risk={outcome.risk}/100, "
        f"findings={outcome.findings_count or 0}"
    )
    # 与原 action 一致：只展示前 3 条发现
    for item in outcome.summary[:3]:
        logger.info(f"  - {str(item)}")
