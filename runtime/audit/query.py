"""Audit query helpers.

Standalone read-only functions over the JSONL audit log, shared by the
logger, the metrics aggregation, the HTTP endpoints and the CLI.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path

from pydantic import ValidationError

from contracts.audit import AuditEntry, AuditEvent

logger = logging.getLogger(__name__)


def query_by_request(log_path: str | Path, request_id: str) -> list[AuditEntry]:
    """Return all audit entries for a given request_id."""
    return [e for e in read_entries(log_path) if e.request_id == request_id]


def query_by_event(
    log_path: str | Path, event: AuditEvent, limit: int = 100
) -> list[AuditEntry]:
    """Return recent entries of a given event type."""
    matches = [e for e in read_entries(log_path) if e.event == event]
    return matches[-limit:]


def tail(log_path: str | Path, n: int = 20) -> list[AuditEntry]:
    """Return the last N entries from the audit log."""
    return read_entries(log_path)[-n:]


def query_filtered(
    log_path: str | Path,
    *,
    event: AuditEvent | None = None,
    purpose: str | None = None,
    since: datetime | None = None,
    until: datetime | None = None,
    request_id: str | None = None,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[AuditEntry], int]:
    """Return paginated, filtered audit entries, most recent first.

    Returns (entries, total_matching_count).
    """
    filtered = read_entries(log_path)

    if event is not None:
        filtered = [e for e in filtered if e.event == event]
    if purpose is not None:
        filtered = [e for e in filtered if e.purpose == purpose]
    if request_id is not None:
        filtered = [e for e in filtered if e.request_id == request_id]
    if since is not None:
        filtered = [e for e in filtered if e.ts >= since]
    if until is not None:
        filtered = [e for e in filtered if e.ts <= until]

    total = len(filtered)
    filtered.sort(key=lambda e: e.ts, reverse=True)
    return filtered[offset : offset + limit], total


def read_entries(log_path: str | Path) -> list[AuditEntry]:
    """Read every entry in the log, skipping lines that do not decode."""
    p = Path(log_path)
    if not p.exists():
        return []
    entries: list[AuditEntry] = []
    with p.open("r", encoding="utf-8") as f:
        for lineno, line in enumerate(f, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                entries.append(AuditEntry(**json.loads(line)))
            except (ValueError, TypeError, ValidationError) as exc:
                logger.warning("Skipping unreadable audit line %s:%d: %s", p, lineno, exc)
    return entries
