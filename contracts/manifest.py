"""AIBDP manifest (aibdp.json) schema — Pydantic models.

Decoding is permissive: an evolving or partial manifest must never crash
enforcement, so malformed optional fields fall back to safe defaults and
unusable policy entries are dropped instead of rejected.
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

DEFAULT_MANIFEST_URI = "/.well-known/aibdp.json"
SCOPE_ALL = "all"


class ManifestParseError(ValueError):
    """Raised when a document cannot be read as an AIBDP manifest at all."""


class PolicyStatus(str, Enum):
    ALLOWED = "allowed"
    REFUSED = "refused"
    CONDITIONAL = "conditional"


_STATUS_VALUES = {s.value for s in PolicyStatus}


def _known_status(value: Any) -> bool:
    return isinstance(value, PolicyStatus) or (
        isinstance(value, str) and value in _STATUS_VALUES
    )


# ── Policy rules ─────────────────────────────────────────────────────


class PolicyRule(BaseModel):
    """Fields shared by policy entries and their path exceptions."""

    model_config = ConfigDict(frozen=True, extra="allow")

    status: PolicyStatus | None = None
    conditions: list[Any] | None = None  # None = not declared, [] = declared empty
    rationale: str | None = None

    @field_validator("status", mode="before")
    @classmethod
    def _drop_unknown_status(cls, value: Any) -> Any:
        return value if _known_status(value) else None

    @field_validator("conditions", mode="before")
    @classmethod
    def _conditions_list(cls, value: Any) -> Any:
        if isinstance(value, (list, tuple)):
            return list(value)
        return None

    @field_validator("rationale", mode="before")
    @classmethod
    def _rationale_str(cls, value: Any) -> Any:
        return value if isinstance(value, str) else None


class PolicyException(PolicyRule):
    """Path-scoped override; replaces the whole entry when ``path`` matches."""

    path: str


class PolicyEntry(PolicyRule):
    status: PolicyStatus
    scope: Literal["all"] | list[str] = SCOPE_ALL
    exceptions: list[PolicyException] = []

    @field_validator("scope", mode="before")
    @classmethod
    def _normalise_scope(cls, value: Any) -> Any:
        # Only a list restricts the entry; any other scope value covers every path.
        if isinstance(value, (list, tuple)):
            return [p for p in value if isinstance(p, str)]
        return SCOPE_ALL

    @field_validator("exceptions", mode="before")
    @classmethod
    def _usable_exceptions(cls, value: Any) -> Any:
        if not isinstance(value, (list, tuple)):
            return []
        return [
            dict(e) for e in value
            if isinstance(e, Mapping) and isinstance(e.get("path"), str)
        ]

    @property
    def applies_everywhere(self) -> bool:
        return self.scope == SCOPE_ALL


# ── Root manifest ────────────────────────────────────────────────────


class Manifest(BaseModel):
    """Immutable snapshot of a parsed AIBDP manifest."""

    model_config = ConfigDict(frozen=True, extra="allow", populate_by_name=True)

    canonical_uri: str = Field(
        DEFAULT_MANIFEST_URI,
        validation_alias=AliasChoices("canonical_uri", "canonicalUri"),
    )
    contact: Any = None
    policies: dict[str, PolicyEntry] = {}

    @field_validator("canonical_uri", mode="before")
    @classmethod
    def _uri_str(cls, value: Any) -> Any:
        if isinstance(value, str) and value:
            return value
        return DEFAULT_MANIFEST_URI

    @field_validator("policies", mode="before")
    @classmethod
    def _usable_policies(cls, value: Any) -> Any:
        if value is None:
            return {}
        if not isinstance(value, Mapping):
            raise ValueError(
                f"policies must be a mapping, got {type(value).__name__}"
            )
        # Entries without a recognised status are treated as absent.
        return {
            purpose: dict(entry)
            for purpose, entry in value.items()
            if isinstance(purpose, str)
            and isinstance(entry, Mapping)
            and _known_status(entry.get("status"))
        }

    def policy_for(self, purpose: str) -> PolicyEntry | None:
        """Return the entry declared for *purpose* (case-sensitive), if any."""
        return self.policies.get(purpose)
