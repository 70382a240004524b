"""
Payload 构造：ChangeRecord + mode -> `/analyze_ci` 请求体（JSON bytes）。

约定：
- 只用 JSON 编码器生成（不拼字符串），内容原样保留（含控制字符、空串）
- 孤立的 surrogate 无法编码为 UTF-8，替换为 U+FFFD
- 构造完成后重新解析并与输入比对，不一致即 `PayloadBuildError`
"""

from __future__ import annotations

import json
import re

from cronos_guard.errors import PayloadBuildError
from cronos_guard.gate.models import AnalysisRequest
from cronos_guard.gate.models import ChangeRecord

REPLACEMENT_CHARACTER = "\ufffd"

_SURROGATES = re.compile("[\ud800-\udfff]")


def sanitize_text(text: str) -> str:
    return _SURROGATES.sub(REPLACEMENT_CHARACTER, text)


def build_request(record: ChangeRecord, mode: str) -> AnalysisRequest:
    return AnalysisRequest(
        old_code=sanitize_text(record.old_content),
        new_code=sanitize_text(record.new_content),
        mode=mode,
    )


def serialize_request(request: AnalysisRequest) -> bytes:
    """序列化并自校验。"""
    try:
        body = request.model_dump(mode="json")
        encoded = json.dumps(body, ensure_ascii=False).encode("utf-8")
    except (TypeError, ValueError) as exc:
        raise PayloadBuildError(f"Cannot serialize analysis request: {exc}") from exc

    try:
        reparsed = json.loads(encoded.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise PayloadBuildError(f"Serialized payload is not valid JSON: {exc}") from exc
    if reparsed != body:
        raise PayloadBuildError("Serialized payload does not round-trip to the original request")
    return encoded


def build_payload(record: ChangeRecord, mode: str) -> bytes:
    """ChangeRecord -> 校验过的 JSON bytes。"""
    return serialize_request(build_request(record=record, mode=mode))
