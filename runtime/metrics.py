"""Metrics aggregation over the audit log.

Block throughput, breakdowns of consent blocks by purpose, policy status,
path and agent, and manifest load health.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from pathlib import Path
from typing import Any

from contracts.audit import AuditEntry, AuditEvent
from runtime.audit.query import read_entries


def compute_metrics(
    log_path: str | Path,
    *,
    since: datetime | None = None,
    window_seconds: int = 60,
    top: int = 10,
) -> dict[str, Any]:
    """Compute aggregated metrics from the audit log."""
    entries = read_entries(log_path)
    if since:
        entries = [e for e in entries if e.ts >= since]

    blocks = [e for e in entries if e.event == AuditEvent.CONSENT_BLOCK]

    return {
        "throughput": _throughput_buckets(blocks, window_seconds),
        "by_purpose": _count_by(blocks, lambda e: e.purpose or "unknown", "purpose"),
        "by_status": _count_by(
            blocks, lambda e: str(e.detail.get("policy_status") or "unknown"), "status"
        ),
        "top_paths": _count_by(blocks, lambda e: e.path, "path")[:top],
        "top_agents": _count_by(blocks, lambda e: e.user_agent or "(none)", "user_agent")[:top],
        "manifest": _manifest_health(entries),
        "summary": _summary(entries),
    }


def _throughput_buckets(
    blocks: list[AuditEntry], window_seconds: int
) -> list[dict[str, Any]]:
    """Bucket consent blocks into time windows."""
    if not blocks:
        return []

    blocks = sorted(blocks, key=lambda e: e.ts)
    bucket_start = blocks[0].ts
    last_ts = blocks[-1].ts
    buckets: list[dict[str, Any]] = []

    while bucket_start <= last_ts:
        bucket_end = bucket_start + timedelta(seconds=window_seconds)
        count = sum(1 for e in blocks if bucket_start <= e.ts < bucket_end)
        buckets.append({"time": bucket_start.isoformat(), "count": count})
        bucket_start = bucket_end

    return buckets


def _count_by(entries: list[AuditEntry], key, label: str) -> list[dict[str, Any]]:
    counts: dict[str, int] = {}
    for e in entries:
        k = key(e)
        counts[k] = counts.get(k, 0) + 1
    return [{label: k, "count": c} for k, c in sorted(counts.items(), key=lambda x: -x[1])]


def _manifest_health(entries: list[AuditEntry]) -> dict[str, Any]:
    loads = [e for e in entries if e.event == AuditEvent.MANIFEST_LOAD]
    errors = [e for e in entries if e.event == AuditEvent.MANIFEST_ERROR]
    last_error = max(errors, key=lambda e: e.ts) if errors else None
    return {
        "loads": len(loads),
        "errors": len(errors),
        "last_error": last_error.detail.get("error") if last_error else None,
    }


def _summary(entries: list[AuditEntry]) -> dict[str, Any]:
    """High-level summary stats."""
    if not entries:
        return {"total_entries": 0, "first_entry": None, "last_entry": None}

    sorted_entries = sorted(entries, key=lambda e: e.ts)
    event_counts: dict[str, int] = {}
    for e in entries:
        event_counts[e.event.value] = event_counts.get(e.event.value, 0) + 1

    return {
        "total_entries": len(entries),
        "first_entry": sorted_entries[0].ts.isoformat(),
        "last_entry": sorted_entries[-1].ts.isoformat(),
        "event_counts": event_counts,
    }
