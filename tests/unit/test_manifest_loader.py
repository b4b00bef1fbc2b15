"""Unit tests for the manifest loader."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from contracts.manifest import ManifestParseError, PolicyStatus
from runtime.manifest_loader import (
    fetch_manifest_document,
    is_remote,
    load_manifest,
    read_manifest_document,
)


SAMPLE_MANIFEST = {
    "canonical_uri": "https://example.org/.well-known/aibdp.json",
    "contact": "mailto:ai@example.org",
    "policies": {
        "training": {
            "status": "conditional",
            "scope": "all",
            "conditions": ["attribution"],
            "exceptions": [{"path": "/public.html", "status": "allowed"}],
        },
        "generation": {"status": "refused", "scope": ["/articles/**"]},
    },
}

SAMPLE_YAML = """\
canonical_uri: https://example.org/.well-known/aibdp.json
policies:
  indexing:
    status: allowed
  training:
    status: refused
    scope:
      - "/private/**"
"""


class TestManifestLoader:
    def test_load_valid_json(self, tmp_path: Path) -> None:
        f = tmp_path / "aibdp.json"
        f.write_text(json.dumps(SAMPLE_MANIFEST))
        m = load_manifest(f)
        assert m.canonical_uri == SAMPLE_MANIFEST["canonical_uri"]
        assert m.policy_for("training").status == PolicyStatus.CONDITIONAL
        assert m.policy_for("generation").scope == ["/articles/**"]

    def test_load_valid_yaml(self, tmp_path: Path) -> None:
        f = tmp_path / "aibdp.yaml"
        f.write_text(SAMPLE_YAML)
        m = load_manifest(str(f))
        assert m.policy_for("indexing").status == PolicyStatus.ALLOWED
        assert m.policy_for("training").scope == ["/private/**"]

    def test_file_not_found(self) -> None:
        with pytest.raises(FileNotFoundError):
            load_manifest("/nonexistent/aibdp.json")

    def test_invalid_json(self, tmp_path: Path) -> None:
        f = tmp_path / "aibdp.json"
        f.write_text("{oops")
        with pytest.raises(ManifestParseError, match="Cannot decode"):
            load_manifest(f)

    def test_not_a_mapping(self, tmp_path: Path) -> None:
        f = tmp_path / "aibdp.yaml"
        f.write_text("just a string")
        with pytest.raises(ManifestParseError, match="mapping"):
            read_manifest_document(f)

    def test_document_returned_verbatim(self, tmp_path: Path) -> None:
        f = tmp_path / "aibdp.json"
        f.write_text(json.dumps(SAMPLE_MANIFEST))
        assert read_manifest_document(f) == SAMPLE_MANIFEST

    def test_demo_manifest_loads(self) -> None:
        demo = Path(__file__).resolve().parents[2] / "apps" / "demo-site" / "aibdp.json"
        m = load_manifest(demo)
        assert set(m.policies) >= {"training", "generation", "indexing"}


class TestRemoteManifest:
    def test_is_remote(self) -> None:
        assert is_remote("https://example.org/.well-known/aibdp.json")
        assert is_remote("http://localhost/aibdp.json")
        assert not is_remote("./.well-known/aibdp.json")

    @pytest.mark.asyncio
    async def test_fetch_document(self) -> None:
        resp = MagicMock()
        resp.raise_for_status = MagicMock()
        resp.json = MagicMock(return_value=SAMPLE_MANIFEST)
        client = AsyncMock()
        client.get = AsyncMock(return_value=resp)
        client.__aenter__ = AsyncMock(return_value=client)
        client.__aexit__ = AsyncMock(return_value=False)

        with patch("runtime.manifest_loader.httpx.AsyncClient", return_value=client):
            doc = await fetch_manifest_document("https://example.org/.well-known/aibdp.json")

        assert doc == SAMPLE_MANIFEST
        client.get.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_fetch_rejects_non_object(self) -> None:
        resp = MagicMock()
        resp.raise_for_status = MagicMock()
        resp.json = MagicMock(return_value=["not", "an", "object"])
        client = AsyncMock()
        client.get = AsyncMock(return_value=resp)
        client.__aenter__ = AsyncMock(return_value=client)
        client.__aexit__ = AsyncMock(return_value=False)

        with patch("runtime.manifest_loader.httpx.AsyncClient", return_value=client):
            with pytest.raises(ManifestParseError):
                await fetch_manifest_document("https://example.org/aibdp.json")

    @pytest.mark.asyncio
    async def test_fetch_propagates_http_errors(self) -> None:
        request = httpx.Request("GET", "https://example.org/aibdp.json")
        response = httpx.Response(404, request=request)
        resp = MagicMock()
        resp.raise_for_status = MagicMock(
            side_effect=httpx.HTTPStatusError("not found", request=request, response=response)
        )
        client = AsyncMock()
        client.get = AsyncMock(return_value=resp)
        client.__aenter__ = AsyncMock(return_value=client)
        client.__aexit__ = AsyncMock(return_value=False)

        with patch("runtime.manifest_loader.httpx.AsyncClient", return_value=client):
            with pytest.raises(httpx.HTTPError):
                await fetch_manifest_document("https://example.org/aibdp.json")
