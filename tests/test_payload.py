from __future__ import annotations

import json

import pytest

from cronos_guard.errors import PayloadBuildError
from cronos_guard.gate.models import AnalysisRequest
from cronos_guard.gate.models import ChangeRecord
from cronos_guard.gate.payload import build_payload
from cronos_guard.gate.payload import sanitize_text
from cronos_guard.gate.payload import serialize_request


@pytest.mark.parametrize(
    "old, new",
    [
        ("", "print('hi')\n"),
        ('s = "quote" \\ back\\slash\n', "line1\nline2\r\n\ttab\x00nul\x1b[0m"),
        ("中文 ✓ \ufffd", ""),
    ],
)
def test_build_payload_preserves_content(old: str, new: str) -> None:
    record = ChangeRecord(path="a.py", old_content=old, new_content=new)
    payload = build_payload(record=record, mode="STRICT")
    parsed = json.loads(payload.decode("utf-8"))
    assert parsed == {"old_code": old, "new_code": new, "mode": "STRICT"}


def test_build_payload_passes_mode_through() -> None:
    record = ChangeRecord(path="a.py", old_content="", new_content="x")
    parsed = json.loads(build_payload(record=record, mode="LENIENT"))
    assert parsed["mode"] == "LENIENT"


def test_sanitize_text_replaces_lone_surrogates() -> None:
    assert sanitize_text("a\ud800b") == "a\ufffdb"
    assert sanitize_text("plain") == "plain"


def test_serialize_request_rejects_unencodable_text() -> None:
    request = AnalysisRequest.model_construct(old_code="a\udc80", new_code="", mode="STRICT")
    with pytest.raises(PayloadBuildError):
        serialize_request(request)
