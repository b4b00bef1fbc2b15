"""Manifest snapshot cache.

Holds the current manifest as an immutable snapshot and reloads it when the
cache window expires. A failed load leaves no manifest (enforcement is
disabled, requests pass) and is retried after a shorter back-off. Repeated
failures are escalated in the log so a broken manifest does not go unnoticed.
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable

import httpx

from contracts.audit import AuditEntry, AuditEvent, AuditLogger
from contracts.manifest import Manifest
from runtime.manifest_loader import (
    fetch_manifest_document,
    is_remote,
    parse_manifest,
    read_manifest_document,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ManifestSnapshot:
    document: dict[str, Any]  # served back verbatim
    manifest: Manifest
    loaded_at: datetime


class ManifestCache:
    """Refresh-on-expiry cache around one manifest source (path or URL)."""

    def __init__(
        self,
        source: str,
        *,
        ttl_seconds: float = 3600.0,
        retry_seconds: float = 60.0,
        failure_alert_threshold: int = 3,
        audit: AuditLogger | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._source = source
        self._ttl = ttl_seconds
        self._retry = retry_seconds
        self._alert_threshold = failure_alert_threshold
        self._audit = audit
        self._clock = clock
        self._lock = asyncio.Lock()
        self._snapshot: ManifestSnapshot | None = None
        self._expires_at = 0.0
        self.consecutive_failures = 0
        self.last_error: str | None = None

    @property
    def source(self) -> str:
        return self._source

    @property
    def snapshot(self) -> ManifestSnapshot | None:
        """The current snapshot, without triggering a reload."""
        return self._snapshot

    def _fresh(self) -> bool:
        return self._clock() < self._expires_at

    async def get(self) -> ManifestSnapshot | None:
        """Return the current snapshot, reloading it first if it has expired."""
        if self._fresh():
            return self._snapshot
        async with self._lock:
            if not self._fresh():
                await self.refresh()
        return self._snapshot

    async def refresh(self) -> ManifestSnapshot | None:
        try:
            if is_remote(self._source):
                document = await fetch_manifest_document(self._source)
            else:
                document = read_manifest_document(self._source)
            manifest = parse_manifest(document)
        except (OSError, ValueError, httpx.HTTPError) as exc:
            self._record_failure(exc)
            return None

        self._snapshot = ManifestSnapshot(
            document=document,
            manifest=manifest,
            loaded_at=datetime.now(timezone.utc),
        )
        self._expires_at = self._clock() + self._ttl
        if self.consecutive_failures:
            logger.info(
                "AIBDP manifest %s recovered after %d failed load(s)",
                self._source, self.consecutive_failures,
            )
        self.consecutive_failures = 0
        self.last_error = None
        self._audit_event(AuditEvent.MANIFEST_LOAD, {
            "source": self._source,
            "purposes": sorted(manifest.policies),
        })
        return self._snapshot

    def invalidate(self) -> None:
        """Force the next get() to reload."""
        self._expires_at = 0.0

    def status(self) -> dict[str, Any]:
        return {
            "source": self._source,
            "loaded": self._snapshot is not None,
            "loaded_at": self._snapshot.loaded_at.isoformat() if self._snapshot else None,
            "consecutive_failures": self.consecutive_failures,
            "last_error": self.last_error,
        }

    # ── internal ────────────────────────────────────────────────────

    def _record_failure(self, exc: Exception) -> None:
        self._snapshot = None
        self._expires_at = self._clock() + self._retry
        self.consecutive_failures += 1
        self.last_error = str(exc)

        if self.consecutive_failures >= self._alert_threshold:
            logger.error(
                "AIBDP manifest %s failed to load %d times in a row; "
                "enforcement is disabled: %s",
                self._source, self.consecutive_failures, exc,
            )
        else:
            logger.warning("Failed to load AIBDP manifest %s: %s", self._source, exc)

        self._audit_event(AuditEvent.MANIFEST_ERROR, {
            "source": self._source,
            "error": str(exc),
            "consecutive_failures": self.consecutive_failures,
        })

    def _audit_event(self, event: AuditEvent, detail: dict[str, Any]) -> None:
        if self._audit is None:
            return
        self._audit.log(AuditEntry(request_id=uuid.uuid4().hex, event=event, detail=detail))
