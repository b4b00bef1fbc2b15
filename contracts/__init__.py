"""Shared contracts — source of truth for all AIBDP interfaces."""

from contracts.api import ConsentRequiredBody, RequestContext
from contracts.audit import AuditEntry, AuditEvent, AuditLogger
from contracts.config import ServerConfig
from contracts.manifest import (
    Manifest,
    ManifestParseError,
    PolicyEntry,
    PolicyException,
    PolicyRule,
    PolicyStatus,
)
from contracts.policy import ConditionCheck, Decision, PolicyEngine, PolicyVerdict

__all__ = [
    # api
    "ConsentRequiredBody",
    "RequestContext",
    # audit
    "AuditEntry",
    "AuditEvent",
    "AuditLogger",
    # config
    "ServerConfig",
    # manifest
    "Manifest",
    "ManifestParseError",
    "PolicyEntry",
    "PolicyException",
    "PolicyRule",
    "PolicyStatus",
    # policy
    "ConditionCheck",
    "Decision",
    "PolicyEngine",
    "PolicyVerdict",
]
