"""Server configuration, read from AIBDP_* environment variables."""

from __future__ import annotations

import os
from collections.abc import Mapping

from pydantic import BaseModel

_TRUE = {"1", "true", "yes", "on"}


class ServerConfig(BaseModel):
    manifest: str = "./.well-known/aibdp.json"  # file path or http(s) URL
    audit_path: str = "aibdp-audit.jsonl"
    enforce_for_all: bool = False
    cache_seconds: float = 3600.0
    retry_seconds: float = 60.0
    failure_alert_threshold: int = 3
    site_dir: str | None = None

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> ServerConfig:
        env = os.environ if environ is None else environ
        values: dict[str, object] = {}
        if "AIBDP_MANIFEST" in env:
            values["manifest"] = env["AIBDP_MANIFEST"]
        if "AIBDP_AUDIT_LOG" in env:
            values["audit_path"] = env["AIBDP_AUDIT_LOG"]
        if "AIBDP_ENFORCE_FOR_ALL" in env:
            values["enforce_for_all"] = env["AIBDP_ENFORCE_FOR_ALL"].strip().lower() in _TRUE
        if "AIBDP_CACHE_SECONDS" in env:
            values["cache_seconds"] = env["AIBDP_CACHE_SECONDS"]
        if "AIBDP_RETRY_SECONDS" in env:
            values["retry_seconds"] = env["AIBDP_RETRY_SECONDS"]
        if "AIBDP_FAILURE_ALERT_THRESHOLD" in env:
            values["failure_alert_threshold"] = env["AIBDP_FAILURE_ALERT_THRESHOLD"]
        if env.get("AIBDP_SITE_DIR"):
            values["site_dir"] = env["AIBDP_SITE_DIR"]
        return cls(**values)
