"""Append-only JSONL audit logger for consent violations."""

from __future__ import annotations

import threading
import uuid
from pathlib import Path

from contracts.audit import AuditEntry, AuditEvent, AuditLogger
from contracts.manifest import PolicyRule
from runtime.audit import query


class JsonlAuditLogger(AuditLogger):
    """Thread-safe, append-only JSONL audit logger."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._lock = threading.Lock()
        self._path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def path(self) -> Path:
        return self._path

    def log(self, entry: AuditEntry) -> None:
        line = entry.model_dump_json() + "\n"
        with self._lock:
            with self._path.open("a", encoding="utf-8") as f:
                f.write(line)

    def log_block(
        self,
        *,
        method: str,
        path: str,
        user_agent: str,
        purpose: str,
        policy: PolicyRule,
        missing: list[str] | None = None,
        request_id: str | None = None,
    ) -> AuditEntry:
        """Record one 430 rejection and return the written entry."""
        detail: dict[str, object] = {
            "policy_status": policy.status.value if policy.status else None,
        }
        if missing:
            detail["missing_conditions"] = list(missing)
        entry = AuditEntry(
            request_id=request_id or uuid.uuid4().hex,
            event=AuditEvent.CONSENT_BLOCK,
            method=method,
            path=path,
            user_agent=user_agent,
            purpose=purpose,
            detail=detail,
        )
        self.log(entry)
        return entry

    def query_by_request(self, request_id: str) -> list[AuditEntry]:
        return query.query_by_request(self._path, request_id)

    def query_by_event(self, event: AuditEvent, limit: int = 100) -> list[AuditEntry]:
        return query.query_by_event(self._path, event, limit=limit)

    def tail(self, n: int = 20) -> list[AuditEntry]:
        return query.tail(self._path, n=n)
