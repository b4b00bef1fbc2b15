"""Policy engine contracts.

The engine is a pure function of (manifest snapshot, request) to Decision.
Resolution, condition checking and the full evaluation are separate seams so
the hosting layer and the CLI can call each step on its own.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict

from contracts.api import RequestContext
from contracts.manifest import Manifest, PolicyRule


class PolicyVerdict(str, Enum):
    CONTINUE = "continue"
    REJECT = "reject"


class ConditionCheck(BaseModel):
    model_config = ConfigDict(frozen=True)

    satisfied: bool
    missing: list[str] = []


class Decision(BaseModel):
    """Outcome of evaluating one request. Built once, never mutated."""

    model_config = ConfigDict(frozen=True)

    verdict: PolicyVerdict
    rule: str = ""      # which step terminated the evaluation
    reason: str = ""    # human-readable explanation
    purpose: str | None = None
    policy: PolicyRule | None = None
    status_code: int | None = None
    headers: dict[str, str] = {}
    body: dict[str, Any] | None = None

    @property
    def rejected(self) -> bool:
        return self.verdict == PolicyVerdict.REJECT


class PolicyEngine(ABC):
    """Interface that the AIBDP decision engine must implement."""

    @abstractmethod
    def resolve(self, manifest: Manifest, purpose: str, path: str) -> PolicyRule | None:
        """Return the single policy governing *purpose* at *path*, or None."""
        ...

    @abstractmethod
    def check_conditions(self, policy: PolicyRule, headers: Any) -> ConditionCheck:
        """Does the request carry the evidence a conditional policy asks for?"""
        ...

    @abstractmethod
    def evaluate(self, manifest: Manifest | None, request: RequestContext) -> Decision:
        """Run the full decision state machine for one request. Never raises."""
        ...
