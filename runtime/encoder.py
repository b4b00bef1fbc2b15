"""Decision encoding: turns a violated policy into an HTTP 430 decision."""

from __future__ import annotations

from contracts.api import (
    CONSENT_REQUIRED_STATUS,
    DEFAULT_RATIONALE,
    RETRY_AFTER_SECONDS,
    ConsentRequiredBody,
)
from contracts.manifest import Manifest, PolicyRule
from contracts.policy import Decision, PolicyVerdict


def rejection_headers(manifest_uri: str) -> dict[str, str]:
    return {
        "Content-Type": "application/json",
        "Link": f'<{manifest_uri}>; rel="blocked-by-consent"',
        "Retry-After": str(RETRY_AFTER_SECONDS),
    }


def encode_rejection(
    manifest: Manifest,
    policy: PolicyRule,
    purpose: str,
    missing: list[str] | None = None,
) -> Decision:
    """Build the Reject decision for *policy* violated under *purpose*.

    *missing* is only passed from the conditional path and is surfaced as
    ``missing_conditions`` in the body.
    """
    status = policy.status.value if policy.status is not None else None
    body = ConsentRequiredBody(
        manifest=manifest.canonical_uri,
        violated_policy=purpose,
        policy_status=status,
        required_conditions=list(policy.conditions or []),
        rationale=policy.rationale or DEFAULT_RATIONALE,
        contact=manifest.contact,
        missing_conditions=list(missing) if missing is not None else None,
    )
    # An explicit `"contact": null` is echoed; an absent contact is not.
    omitted = set()
    if "contact" not in manifest.model_fields_set:
        omitted.add("contact")
    if missing is None:
        omitted.add("missing_conditions")

    if missing:
        reason = f"Conditional '{purpose}' policy not satisfied: {', '.join(missing)}"
    else:
        reason = f"Policy for '{purpose}' is {status}"

    return Decision(
        verdict=PolicyVerdict.REJECT,
        rule=f"policies.{purpose}",
        reason=reason,
        purpose=purpose,
        policy=policy,
        status_code=CONSENT_REQUIRED_STATUS,
        headers=rejection_headers(manifest.canonical_uri),
        body=body.model_dump(mode="json", exclude=omitted),
    )
