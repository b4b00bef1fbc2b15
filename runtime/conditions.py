"""Evidence checks for conditional policies.

The rule set is deliberately minimal: a conditional policy is satisfied when
the request carries both consent evidence headers. The declared
``conditions`` are not interpreted structurally yet.
"""

from __future__ import annotations

from typing import Any

from contracts.api import HEADER_CONSENT_CONDITIONS, HEADER_CONSENT_REVIEWED, get_header
from contracts.manifest import PolicyRule, PolicyStatus
from contracts.policy import ConditionCheck

# Checked in this order; the message is reported when the header is missing.
REQUIRED_EVIDENCE: tuple[tuple[str, str], ...] = (
    (HEADER_CONSENT_REVIEWED, "AI-Consent-Reviewed header required"),
    (HEADER_CONSENT_CONDITIONS, "AI-Consent-Conditions header required"),
)

_SATISFIED = ConditionCheck(satisfied=True, missing=[])


def check_conditions(policy: PolicyRule, headers: Any) -> ConditionCheck:
    # Only a conditional policy that declares conditions (even an empty list)
    # asks for evidence.
    if policy.status != PolicyStatus.CONDITIONAL or policy.conditions is None:
        return _SATISFIED

    missing = [
        message
        for header, message in REQUIRED_EVIDENCE
        if not get_header(headers, header)
    ]
    return ConditionCheck(satisfied=not missing, missing=missing)
