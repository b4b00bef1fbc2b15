"""Unit tests for condition checking and 430 decision encoding."""

from __future__ import annotations

from contracts.api import CONSENT_REQUIRED_ERROR, DEFAULT_RATIONALE
from contracts.manifest import PolicyRule, PolicyStatus
from contracts.policy import PolicyVerdict
from runtime.conditions import check_conditions
from runtime.encoder import encode_rejection
from runtime.manifest_loader import parse_manifest


class TestCheckConditions:
    def test_non_conditional_is_satisfied(self) -> None:
        for status in (PolicyStatus.ALLOWED, PolicyStatus.REFUSED, None):
            check = check_conditions(PolicyRule(status=status, conditions=["x"]), {})
            assert check.satisfied
            assert check.missing == []

    def test_conditional_without_declared_conditions_is_satisfied(self) -> None:
        check = check_conditions(PolicyRule(status="conditional"), {})
        assert check.satisfied

    def test_both_missing_in_order(self) -> None:
        check = check_conditions(PolicyRule(status="conditional", conditions=[]), {})
        assert not check.satisfied
        assert check.missing == [
            "AI-Consent-Reviewed header required",
            "AI-Consent-Conditions header required",
        ]

    def test_empty_header_counts_as_missing(self) -> None:
        headers = {"ai-consent-reviewed": "", "ai-consent-conditions": "attribution"}
        check = check_conditions(PolicyRule(status="conditional", conditions=["a"]), headers)
        assert check.missing == ["AI-Consent-Reviewed header required"]

    def test_header_names_case_insensitive(self) -> None:
        headers = {"AI-Consent-Reviewed": "yes", "AI-Consent-Conditions": "attribution"}
        check = check_conditions(PolicyRule(status="conditional", conditions=["a"]), headers)
        assert check.satisfied


class TestEncodeRejection:
    def _manifest(self, **extra):
        return parse_manifest({
            "canonical_uri": "https://example.org/.well-known/aibdp.json",
            "policies": {},
            **extra,
        })

    def test_status_and_headers(self) -> None:
        d = encode_rejection(self._manifest(), PolicyRule(status="refused"), "training")
        assert d.verdict == PolicyVerdict.REJECT
        assert d.status_code == 430
        assert d.headers == {
            "Content-Type": "application/json",
            "Link": '<https://example.org/.well-known/aibdp.json>; rel="blocked-by-consent"',
            "Retry-After": "86400",
        }

    def test_body_defaults(self) -> None:
        d = encode_rejection(self._manifest(), PolicyRule(status="refused"), "training")
        assert d.body == {
            "error": CONSENT_REQUIRED_ERROR,
            "manifest": "https://example.org/.well-known/aibdp.json",
            "violated_policy": "training",
            "policy_status": "refused",
            "required_conditions": [],
            "rationale": DEFAULT_RATIONALE,
        }

    def test_body_passes_through_fields(self) -> None:
        policy = PolicyRule(
            status="conditional",
            conditions=["attribution", {"type": "license", "id": "CC-BY"}],
            rationale="Credit the author",
        )
        d = encode_rejection(
            self._manifest(contact={"email": "ai@example.org"}),
            policy,
            "training",
            missing=["AI-Consent-Reviewed header required"],
        )
        assert d.body["required_conditions"] == ["attribution", {"type": "license", "id": "CC-BY"}]
        assert d.body["rationale"] == "Credit the author"
        assert d.body["contact"] == {"email": "ai@example.org"}
        assert d.body["missing_conditions"] == ["AI-Consent-Reviewed header required"]
        assert d.policy is policy
        assert d.purpose == "training"

    def test_explicit_null_contact_is_echoed(self) -> None:
        d = encode_rejection(self._manifest(contact=None), PolicyRule(status="refused"), "training")
        assert "contact" in d.body
        assert d.body["contact"] is None
        assert "missing_conditions" not in d.body

    def test_default_manifest_uri(self) -> None:
        d = encode_rejection(parse_manifest({}), PolicyRule(status="refused"), "training")
        assert d.body["manifest"] == "/.well-known/aibdp.json"
        assert d.headers["Link"] == '</.well-known/aibdp.json>; rel="blocked-by-consent"'

    def test_deterministic(self) -> None:
        m = self._manifest()
        policy = PolicyRule(status="refused")
        assert encode_rejection(m, policy, "t") == encode_rejection(m, policy, "t")
