"""AIBDP policy engine.

Resolves the single applicable policy for a (purpose, path) pair and runs the
per-request decision state machine. Stateless: every call is a pure function
of the manifest snapshot and the request, so one engine can serve concurrent
requests without locking.
"""

from __future__ import annotations

import logging
from typing import Any

from contracts.api import HEADER_USER_AGENT, RequestContext
from contracts.manifest import Manifest, PolicyRule, PolicyStatus
from contracts.policy import ConditionCheck, Decision, PolicyEngine, PolicyVerdict
from runtime.agents import infer_purpose, is_automated_agent
from runtime.conditions import check_conditions
from runtime.encoder import encode_rejection
from runtime.path_matcher import matches, matches_any

logger = logging.getLogger(__name__)


def _proceed(
    rule: str,
    reason: str,
    purpose: str | None = None,
    policy: PolicyRule | None = None,
) -> Decision:
    return Decision(
        verdict=PolicyVerdict.CONTINUE,
        rule=rule,
        reason=reason,
        purpose=purpose,
        policy=policy,
    )


class AibdpPolicyEngine(PolicyEngine):
    """Concrete decision engine.

    With ``enforce_for_all`` every request is treated as coming from an
    automated agent, skipping User-Agent classification.
    """

    def __init__(self, *, enforce_for_all: bool = False) -> None:
        self._enforce_for_all = enforce_for_all

    @property
    def enforce_for_all(self) -> bool:
        return self._enforce_for_all

    # ── resolution ──────────────────────────────────────────────────

    def resolve(self, manifest: Manifest, purpose: str, path: str) -> PolicyRule | None:
        entry = manifest.policy_for(purpose)
        if entry is None:
            return None

        # Out of scope means no policy at all; exceptions are never consulted.
        if not entry.applies_everywhere and not matches_any(path, entry.scope):
            return None

        # First matching exception wins, regardless of how specific it is.
        for exception in entry.exceptions:
            if matches(path, exception.path):
                return exception

        return entry

    # ── conditions ──────────────────────────────────────────────────

    def check_conditions(self, policy: PolicyRule, headers: Any) -> ConditionCheck:
        return check_conditions(policy, headers)

    # ── full evaluation ─────────────────────────────────────────────

    def evaluate(self, manifest: Manifest | None, request: RequestContext) -> Decision:
        try:
            return self._evaluate(manifest, request)
        except Exception:
            # Fail open: an internal fault must not block legitimate traffic.
            logger.exception("AIBDP evaluation failed for %s", getattr(request, "path", None))
            return _proceed("evaluation_error", "Policy evaluation failed; failing open")

    def _evaluate(self, manifest: Manifest | None, request: RequestContext) -> Decision:
        if manifest is None:
            return _proceed("no_manifest", "No manifest loaded; enforcement disabled")

        if not self._enforce_for_all and not is_automated_agent(
            request.header(HEADER_USER_AGENT)
        ):
            return _proceed("not_agent", "Requester is not a known automated agent")

        purpose = infer_purpose(request.headers)
        policy = self.resolve(manifest, purpose, request.path)

        if policy is None:
            return _proceed(
                "no_policy",
                f"No policy governs '{purpose}' at '{request.path}'",
                purpose=purpose,
            )

        if policy.status == PolicyStatus.REFUSED:
            return encode_rejection(manifest, policy, purpose)

        if policy.status == PolicyStatus.CONDITIONAL:
            check = self.check_conditions(policy, request.headers)
            if not check.satisfied:
                return encode_rejection(manifest, policy, purpose, missing=check.missing)
            return _proceed(
                f"policies.{purpose}",
                f"Conditional '{purpose}' policy satisfied",
                purpose=purpose,
                policy=policy,
            )

        return _proceed(
            f"policies.{purpose}",
            f"Policy for '{purpose}' is {policy.status.value if policy.status else 'unset'}",
            purpose=purpose,
            policy=policy,
        )
