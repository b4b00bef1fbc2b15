"""AIBDP FastAPI server: consent enforcement plus the well-known manifest."""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, AsyncIterator

from fastapi import FastAPI, HTTPException, Query, Request, Response
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from contracts.api import HEADER_USER_AGENT
from contracts.audit import AuditEntry, AuditEvent
from contracts.config import ServerConfig
from contracts.manifest import PolicyRule

from runtime.audit.logger import JsonlAuditLogger
from runtime.audit.query import query_filtered
from runtime.cache import ManifestCache
from runtime.conditions import check_conditions
from runtime.metrics import compute_metrics
from runtime.middleware import MANIFEST_PATH, AibdpMiddleware, CallNext, manifest_response
from runtime.policy import AibdpPolicyEngine

logger = logging.getLogger(__name__)

VERSION = "0.1.0"

# ── Module-level state (set during lifespan) ─────────────────────────

_config: ServerConfig | None = None
_cache: ManifestCache | None = None
_audit: JsonlAuditLogger | None = None
_enforcer: AibdpMiddleware | None = None
_start_time: float = 0.0


def record_violation(request: Request, policy: PolicyRule, purpose: str) -> None:
    """Default violation callback: log the block and append it to the audit log."""
    user_agent = request.headers.get(HEADER_USER_AGENT, "")
    logger.info(
        "AIBDP blocked %s %s (purpose=%s, status=%s, agent=%r)",
        request.method, request.url.path, purpose,
        policy.status.value if policy.status else None, user_agent,
    )
    if _audit is None:
        return
    check = check_conditions(policy, request.headers)
    _audit.log_block(
        method=request.method,
        path=request.url.path,
        user_agent=user_agent,
        purpose=purpose,
        policy=policy,
        missing=check.missing,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Initialise all components on startup."""
    global _config, _cache, _audit, _enforcer, _start_time  # noqa: PLW0603

    _start_time = time.time()
    _config = ServerConfig.from_env()

    _audit = JsonlAuditLogger(_config.audit_path)
    _cache = ManifestCache(
        _config.manifest,
        ttl_seconds=_config.cache_seconds,
        retry_seconds=_config.retry_seconds,
        failure_alert_threshold=_config.failure_alert_threshold,
        audit=_audit,
    )
    await _cache.refresh()

    _enforcer = AibdpMiddleware(
        _cache,
        AibdpPolicyEngine(enforce_for_all=_config.enforce_for_all),
        on_violation=record_violation,
    )

    yield

    _enforcer = None


app = FastAPI(title="AIBDP Gate", version=VERSION, lifespan=lifespan)


@app.middleware("http")
async def aibdp_enforcement(request: Request, call_next: CallNext) -> Response:
    if _enforcer is None:
        return await call_next(request)
    return await _enforcer(request, call_next)


# ── Endpoints ────────────────────────────────────────────────────────


@app.get(MANIFEST_PATH)
async def well_known_manifest() -> JSONResponse:
    """Serve the AIBDP manifest with its registered media type."""
    snapshot = await _cache.get() if _cache is not None else None
    return manifest_response(snapshot)


@app.get("/health")
async def health() -> dict[str, Any]:
    """Health-check endpoint with manifest and cache state."""
    result: dict[str, Any] = {
        "status": "healthy",
        "version": VERSION,
        "aibdp_enabled": True,
        "http_430_enabled": True,
    }
    result["uptime_seconds"] = round(time.time() - _start_time, 1) if _start_time else 0

    if _config is not None:
        result["enforce_for_all"] = _config.enforce_for_all

    if _cache is not None:
        snapshot = await _cache.get()
        result["cache"] = _cache.status()
        if snapshot is not None:
            result["manifest"] = {
                "canonical_uri": snapshot.manifest.canonical_uri,
                "purposes": {
                    purpose: entry.status.value
                    for purpose, entry in snapshot.manifest.policies.items()
                },
            }
        else:
            result["manifest"] = None
            if _cache.consecutive_failures:
                result["status"] = "degraded"

    return result


@app.get("/v1/aibdp/audit/logs")
async def audit_logs(
    event: AuditEvent | None = Query(None),
    purpose: str | None = Query(None),
    since: datetime | None = Query(None),
    until: datetime | None = Query(None),
    request_id: str | None = Query(None),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
) -> dict[str, Any]:
    """Filtered, paginated audit log query."""
    if _audit is None:
        raise HTTPException(status_code=503, detail="Server not initialised")

    entries, total = query_filtered(
        _audit.path,
        event=event,
        purpose=purpose,
        since=since,
        until=until,
        request_id=request_id,
        limit=limit,
        offset=offset,
    )
    return {"entries": [e.model_dump(mode="json") for e in entries], "total": total}


@app.get("/v1/aibdp/audit/{request_id}")
async def audit_query(request_id: str) -> list[AuditEntry]:
    """Return audit entries for a given request_id."""
    if _audit is None:
        raise HTTPException(status_code=503, detail="Server not initialised")
    return _audit.query_by_request(request_id)


@app.get("/v1/aibdp/metrics")
async def metrics(
    since: datetime | None = Query(None),
    window: int = Query(60, ge=1, le=3600, description="Bucket window in seconds"),
) -> dict[str, Any]:
    """Aggregated consent-block metrics."""
    if _audit is None:
        raise HTTPException(status_code=503, detail="Server not initialised")

    return compute_metrics(_audit.path, since=since, window_seconds=window)


# ── Static site mount (must be last to avoid catching API routes) ────

_site_dir = ServerConfig.from_env().site_dir
if _site_dir and Path(_site_dir).is_dir():
    app.mount("/", StaticFiles(directory=_site_dir, html=True), name="site")
