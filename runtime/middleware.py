"""HTTP enforcement point for AIBDP.

Wraps request handling: evaluates every request against the cached manifest
and either hands it on or answers with HTTP 430. Any fault on the enforcement
side lets the request through.
"""

from __future__ import annotations

import inspect
import logging
from typing import Any, Awaitable, Callable

from fastapi import BackgroundTasks, Request, Response
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from contracts.api import RequestContext
from contracts.manifest import DEFAULT_MANIFEST_URI, PolicyRule
from contracts.policy import Decision, PolicyEngine
from runtime.cache import ManifestCache, ManifestSnapshot

logger = logging.getLogger(__name__)

MANIFEST_PATH = DEFAULT_MANIFEST_URI
MANIFEST_MEDIA_TYPE = "application/aibdp+json"
MANIFEST_CACHE_CONTROL = "public, max-age=3600"

CallNext = Callable[[Request], Awaitable[Response]]
ViolationCallback = Callable[[Request, PolicyRule, str], Any]


def rejection_response(
    decision: Decision, background: BackgroundTasks | None = None
) -> JSONResponse:
    """Render a Reject decision as the HTTP 430 response."""
    return JSONResponse(
        content=decision.body,
        status_code=decision.status_code or 430,
        headers=dict(decision.headers),
        background=background,
    )


def manifest_response(snapshot: ManifestSnapshot | None) -> JSONResponse:
    """Serve the cached manifest document verbatim."""
    if snapshot is None:
        return JSONResponse({"error": "Manifest not found"}, status_code=404)
    return JSONResponse(
        content=snapshot.document,
        media_type=MANIFEST_MEDIA_TYPE,
        headers={
            "Cache-Control": MANIFEST_CACHE_CONTROL,
            "Access-Control-Allow-Origin": "*",
        },
    )


class AibdpMiddleware:
    """Callable ``http`` middleware: ``await enforcer(request, call_next)``."""

    def __init__(
        self,
        cache: ManifestCache,
        engine: PolicyEngine,
        *,
        on_violation: ViolationCallback | None = None,
        exempt_paths: tuple[str, ...] = (MANIFEST_PATH,),
    ) -> None:
        self._cache = cache
        self._engine = engine
        self._on_violation = on_violation
        self._exempt = frozenset(exempt_paths)

    async def decide(self, request: Request) -> Decision | None:
        """Evaluate *request*; None means enforcement could not run."""
        try:
            snapshot = await self._cache.get()
            context = RequestContext(path=request.url.path, headers=dict(request.headers))
            return self._engine.evaluate(snapshot.manifest if snapshot else None, context)
        except Exception:
            logger.exception("AIBDP enforcement failed for %s; failing open", request.url.path)
            return None

    async def __call__(self, request: Request, call_next: CallNext) -> Response:
        if request.url.path in self._exempt:
            return await call_next(request)

        decision = await self.decide(request)
        if decision is None or not decision.rejected:
            return await call_next(request)

        # The violation callback runs once the 430 has been sent.
        tasks = BackgroundTasks()
        tasks.add_task(self._notify, request, decision)
        return rejection_response(decision, tasks)

    async def _notify(self, request: Request, decision: Decision) -> None:
        if self._on_violation is None or decision.policy is None:
            return
        try:
            args = (request, decision.policy, decision.purpose or "")
            if inspect.iscoroutinefunction(self._on_violation):
                await self._on_violation(*args)
            else:
                result = await run_in_threadpool(self._on_violation, *args)
                if inspect.isawaitable(result):
                    await result
        except Exception:
            # The callback is observability only; it never changes the response.
            logger.exception("AIBDP violation callback failed")
