"""Manifest loader — read, fetch and parse aibdp.json documents."""

from __future__ import annotations

import json
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import httpx
import yaml
from pydantic import ValidationError

from contracts.manifest import Manifest, ManifestParseError

_YAML_SUFFIXES = {".yaml", ".yml"}


def is_remote(source: str) -> bool:
    return source.startswith(("http://", "https://"))


def parse_manifest(raw: Any) -> Manifest:
    """Parse a manifest from a mapping or a JSON document.

    Raises ManifestParseError when the top level is not a mapping or
    ``policies`` is not a mapping. Everything else decodes permissively.
    """
    if isinstance(raw, (str, bytes, bytearray)):
        try:
            raw = json.loads(raw)
        except ValueError as exc:
            raise ManifestParseError(f"Manifest is not valid JSON: {exc}") from exc

    if not isinstance(raw, Mapping):
        raise ManifestParseError(
            f"Manifest must be a JSON object, got {type(raw).__name__}"
        )

    try:
        return Manifest.model_validate(dict(raw))
    except ValidationError as exc:
        raise ManifestParseError(f"Invalid manifest: {exc}") from exc


def read_manifest_document(path: str | Path) -> dict[str, Any]:
    """Read the raw manifest document (JSON, or YAML by file suffix)."""
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Manifest not found: {path}")

    raw = p.read_text(encoding="utf-8")
    try:
        if p.suffix.lower() in _YAML_SUFFIXES:
            data = yaml.safe_load(raw)
        else:
            data = json.loads(raw)
    except (ValueError, yaml.YAMLError) as exc:
        raise ManifestParseError(f"Cannot decode manifest {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ManifestParseError(
            f"Manifest must be a mapping, got {type(data).__name__}"
        )
    return data


async def fetch_manifest_document(url: str, timeout: float = 5.0) -> dict[str, Any]:
    """Fetch a remote manifest document over HTTP(S)."""
    async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as client:
        resp = await client.get(url, headers={"Accept": "application/aibdp+json, application/json"})
        resp.raise_for_status()
        try:
            data = resp.json()
        except ValueError as exc:
            raise ManifestParseError(f"Manifest at {url} is not valid JSON: {exc}") from exc

    if not isinstance(data, dict):
        raise ManifestParseError(
            f"Manifest must be a JSON object, got {type(data).__name__}"
        )
    return data


def load_manifest(path: str | Path) -> Manifest:
    """Load a local manifest file and return a validated Manifest."""
    return parse_manifest(read_manifest_document(path))
