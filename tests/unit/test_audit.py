"""Unit tests for the audit logger and query helpers."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

from contracts.audit import AuditEntry, AuditEvent
from contracts.manifest import PolicyRule
from runtime.audit.logger import JsonlAuditLogger
from runtime.audit import query as audit_query


# ── helpers ─────────────────────────────────────────────────────────


def _entry(
    request_id: str = "req-1",
    event: AuditEvent = AuditEvent.CONSENT_BLOCK,
    purpose: str = "training",
) -> AuditEntry:
    return AuditEntry(request_id=request_id, event=event, purpose=purpose)


# ── logger tests ────────────────────────────────────────────────────


class TestJsonlAuditLogger:
    def test_log_creates_file_and_parents(self, tmp_path: Path) -> None:
        log_file = tmp_path / "logs" / "audit.jsonl"
        logger = JsonlAuditLogger(log_file)
        logger.log(_entry())
        assert log_file.exists()

    def test_log_appends_lines(self, tmp_path: Path) -> None:
        log_file = tmp_path / "audit.jsonl"
        logger = JsonlAuditLogger(log_file)
        logger.log(_entry(request_id="r1"))
        logger.log(_entry(request_id="r2"))
        lines = log_file.read_text().strip().split("\n")
        assert len(lines) == 2

    def test_log_block_records_violation(self, tmp_path: Path) -> None:
        logger = JsonlAuditLogger(tmp_path / "audit.jsonl")
        entry = logger.log_block(
            method="GET",
            path="/article.html",
            user_agent="GPTBot/1.0",
            purpose="training",
            policy=PolicyRule(status="conditional", conditions=["attribution"]),
            missing=["AI-Consent-Reviewed header required"],
        )
        [stored] = logger.tail()
        assert stored.request_id == entry.request_id
        assert stored.event == AuditEvent.CONSENT_BLOCK
        assert stored.path == "/article.html"
        assert stored.detail == {
            "policy_status": "conditional",
            "missing_conditions": ["AI-Consent-Reviewed header required"],
        }

    def test_log_block_omits_empty_missing(self, tmp_path: Path) -> None:
        logger = JsonlAuditLogger(tmp_path / "audit.jsonl")
        entry = logger.log_block(
            method="GET", path="/", user_agent="GPTBot", purpose="training",
            policy=PolicyRule(status="refused"), missing=[],
        )
        assert entry.detail == {"policy_status": "refused"}

    def test_query_by_request(self, tmp_path: Path) -> None:
        logger = JsonlAuditLogger(tmp_path / "audit.jsonl")
        logger.log(_entry(request_id="r1"))
        logger.log(_entry(request_id="r2", event=AuditEvent.MANIFEST_LOAD))
        logger.log(_entry(request_id="r1", event=AuditEvent.MANIFEST_ERROR))

        results = logger.query_by_request("r1")
        assert len(results) == 2
        assert all(e.request_id == "r1" for e in results)

    def test_query_by_event_limit(self, tmp_path: Path) -> None:
        logger = JsonlAuditLogger(tmp_path / "audit.jsonl")
        for i in range(10):
            logger.log(_entry(request_id=f"r{i}"))

        results = logger.query_by_event(AuditEvent.CONSENT_BLOCK, limit=3)
        assert len(results) == 3
        assert results[0].request_id == "r7"

    def test_tail_empty_log(self, tmp_path: Path) -> None:
        logger = JsonlAuditLogger(tmp_path / "audit.jsonl")
        assert logger.tail(5) == []


# ── standalone query function tests ─────────────────────────────────


class TestAuditQueryFunctions:
    def test_tail(self, tmp_path: Path) -> None:
        log_file = tmp_path / "audit.jsonl"
        logger = JsonlAuditLogger(log_file)
        for i in range(5):
            logger.log(_entry(request_id=f"r{i}"))

        results = audit_query.tail(log_file, 2)
        assert [e.request_id for e in results] == ["r3", "r4"]

    def test_missing_file_returns_empty(self, tmp_path: Path) -> None:
        log_file = tmp_path / "nonexistent.jsonl"
        assert audit_query.tail(log_file, 5) == []
        assert audit_query.query_by_request(log_file, "x") == []
        assert audit_query.query_by_event(log_file, AuditEvent.CONSENT_BLOCK) == []

    def test_unreadable_lines_skipped(self, tmp_path: Path) -> None:
        log_file = tmp_path / "audit.jsonl"
        logger = JsonlAuditLogger(log_file)
        logger.log(_entry(request_id="ok-1"))
        with log_file.open("a") as f:
            f.write("not json\n")
            f.write('{"event": "unknown.event", "request_id": "x"}\n')
        logger.log(_entry(request_id="ok-2"))

        assert [e.request_id for e in audit_query.read_entries(log_file)] == ["ok-1", "ok-2"]

    def test_query_filtered(self, tmp_path: Path) -> None:
        log_file = tmp_path / "audit.jsonl"
        logger = JsonlAuditLogger(log_file)
        now = datetime.now(timezone.utc)
        logger.log(AuditEntry(ts=now - timedelta(hours=2), request_id="old",
                              event=AuditEvent.CONSENT_BLOCK, purpose="training"))
        logger.log(AuditEntry(ts=now - timedelta(minutes=5), request_id="a",
                              event=AuditEvent.CONSENT_BLOCK, purpose="training"))
        logger.log(AuditEntry(ts=now - timedelta(minutes=1), request_id="b",
                              event=AuditEvent.CONSENT_BLOCK, purpose="generation"))
        logger.log(AuditEntry(ts=now, request_id="c", event=AuditEvent.MANIFEST_LOAD))

        entries, total = audit_query.query_filtered(
            log_file,
            event=AuditEvent.CONSENT_BLOCK,
            since=now - timedelta(hours=1),
        )
        assert total == 2
        assert [e.request_id for e in entries] == ["b", "a"]  # newest first

        entries, total = audit_query.query_filtered(log_file, purpose="training", limit=1)
        assert total == 2
        assert [e.request_id for e in entries] == ["a"]

        entries, total = audit_query.query_filtered(log_file, offset=3)
        assert total == 4
        assert [e.request_id for e in entries] == ["old"]
