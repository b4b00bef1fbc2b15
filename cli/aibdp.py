"""Command-line tools: validate manifests, simulate requests, run the server, query audit logs."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

# Ensure project root is importable when running as script
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

DEFAULT_MANIFEST = ".well-known/aibdp.json"


def _load_or_exit(path: str):
    from contracts.manifest import ManifestParseError
    from runtime.manifest_loader import load_manifest

    try:
        return load_manifest(path)
    except FileNotFoundError:
        print(f"Error: manifest not found: {path}", file=sys.stderr)
        sys.exit(1)
    except ManifestParseError as exc:
        print(f"Error: invalid manifest: {exc}", file=sys.stderr)
        sys.exit(1)


def cmd_validate(args: argparse.Namespace) -> None:
    """Validate an aibdp.json manifest."""
    from runtime.manifest_loader import read_manifest_document

    manifest = _load_or_exit(args.manifest)

    print(f"Manifest OK: {args.manifest}")
    print(f"  Canonical URI: {manifest.canonical_uri}")
    print(f"  Contact:       {manifest.contact if manifest.contact is not None else '(none)'}")
    if not manifest.policies:
        print("  Policies:      (none)")
    for purpose, entry in manifest.policies.items():
        scope = entry.scope if entry.applies_everywhere else ", ".join(entry.scope) or "(empty)"
        print(f"  {purpose:14s} {entry.status.value:12s} scope: {scope}")
        for exception in entry.exceptions:
            status = exception.status.value if exception.status else "(no status)"
            print(f"  {'':14s}   except {exception.path} -> {status}")

    # Entries dropped during permissive decoding are not enforced; say so.
    raw_policies = read_manifest_document(args.manifest).get("policies") or {}
    for purpose in raw_policies:
        if purpose not in manifest.policies:
            print(f"  Warning: policy '{purpose}' has no valid status and is not enforced")


def cmd_check(args: argparse.Namespace) -> None:
    """Evaluate a simulated request against a manifest."""
    from contracts.api import RequestContext
    from runtime.policy import AibdpPolicyEngine

    manifest = _load_or_exit(args.manifest)

    headers: dict[str, str] = {}
    for raw in args.header or []:
        name, sep, value = raw.partition(":")
        if not sep:
            print(f"Error: header must be NAME:VALUE, got {raw!r}", file=sys.stderr)
            sys.exit(2)
        headers[name.strip()] = value.strip()
    if args.user_agent:
        headers["User-Agent"] = args.user_agent
    if args.purpose:
        headers["AI-Purpose"] = args.purpose

    engine = AibdpPolicyEngine(enforce_for_all=args.enforce_for_all)
    decision = engine.evaluate(manifest, RequestContext(path=args.path, headers=headers))

    if args.json:
        print(json.dumps({
            "verdict": decision.verdict.value,
            "rule": decision.rule,
            "reason": decision.reason,
            "purpose": decision.purpose,
            "status_code": decision.status_code,
            "headers": decision.headers,
            "body": decision.body,
        }, indent=2))
    else:
        print(f"{decision.verdict.value.upper()}  [{decision.rule}]  {decision.reason}")
        if decision.rejected:
            print(f"  HTTP {decision.status_code}")
            for name, value in decision.headers.items():
                print(f"  {name}: {value}")
            print(json.dumps(decision.body, indent=2))

    if decision.rejected:
        sys.exit(1)


def cmd_run(args: argparse.Namespace) -> None:
    """Start the AIBDP server."""
    import os

    os.environ["AIBDP_MANIFEST"] = args.manifest
    if args.audit_log:
        os.environ["AIBDP_AUDIT_LOG"] = args.audit_log
    if args.site_dir:
        os.environ["AIBDP_SITE_DIR"] = args.site_dir
    if args.enforce_for_all:
        os.environ["AIBDP_ENFORCE_FOR_ALL"] = "true"

    # Validate first (remote manifests are fetched by the server itself)
    from runtime.manifest_loader import is_remote

    if not is_remote(args.manifest):
        _load_or_exit(args.manifest)

    print("Starting AIBDP server...")
    print(f"  Manifest: {args.manifest}")
    print(f"  Host:     {args.host}")
    print(f"  Port:     {args.port}")
    print(f"  Enforce:  {'all requests' if args.enforce_for_all else 'detected AI agents'}")
    print()

    import uvicorn

    uvicorn.run(
        "runtime.app:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level="info",
    )


def cmd_logs(args: argparse.Namespace) -> None:
    """Query audit logs."""
    from runtime.audit.query import query_by_request, query_by_event, tail
    from contracts.audit import AuditEvent

    log_path = args.log_path

    if not Path(log_path).exists():
        print(f"No audit log found at {log_path}", file=sys.stderr)
        sys.exit(1)

    if args.request_id:
        entries = query_by_request(log_path, args.request_id)
    elif args.event:
        try:
            event = AuditEvent(args.event)
        except ValueError:
            valid = ", ".join(e.value for e in AuditEvent)
            print(f"Unknown event type: {args.event}", file=sys.stderr)
            print(f"Valid events: {valid}", file=sys.stderr)
            sys.exit(1)
        entries = query_by_event(log_path, event, limit=args.limit)
    else:
        entries = tail(log_path, n=args.limit)

    if not entries:
        print("No matching audit entries.")
        return

    for entry in entries:
        record = json.loads(entry.model_dump_json())
        if args.json:
            print(json.dumps(record))
        else:
            ts = record["ts"][:19]
            event = record["event"]
            target = f"{record['purpose'] or '-'} {record['path'] or '-'}"
            detail = json.dumps(record.get("detail", {}))
            print(f"{ts}  [{event:15s}]  {target}  {detail}")


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="aibdp",
        description="AIBDP — AI Boundary Declaration Protocol enforcement CLI",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command")

    # validate
    p_val = sub.add_parser("validate", help="Validate an aibdp.json manifest")
    p_val.add_argument(
        "manifest", nargs="?", default=DEFAULT_MANIFEST, help="Path to manifest"
    )
    p_val.set_defaults(func=cmd_validate)

    # check
    p_chk = sub.add_parser("check", help="Evaluate a simulated request against a manifest")
    p_chk.add_argument("path", help="Request path, e.g. /article.html")
    p_chk.add_argument("--manifest", "-m", default=DEFAULT_MANIFEST, help="Path to manifest")
    p_chk.add_argument("--user-agent", "-u", help="User-Agent header")
    p_chk.add_argument("--purpose", "-p", help="AI-Purpose header")
    p_chk.add_argument(
        "--header", "-H", action="append", help="Extra header NAME:VALUE (repeatable)"
    )
    p_chk.add_argument(
        "--enforce-for-all", action="store_true", help="Treat the request as an AI agent"
    )
    p_chk.add_argument("--json", action="store_true", help="Output the decision as JSON")
    p_chk.set_defaults(func=cmd_check)

    # run
    p_run = sub.add_parser("run", help="Start the AIBDP server")
    p_run.add_argument(
        "manifest", nargs="?", default=DEFAULT_MANIFEST, help="Manifest path or URL"
    )
    p_run.add_argument("--host", default="127.0.0.1", help="Bind address")
    p_run.add_argument("--port", type=int, default=8430, help="Port")
    p_run.add_argument("--audit-log", help="Path to audit JSONL file")
    p_run.add_argument("--site-dir", help="Static site directory to serve")
    p_run.add_argument(
        "--enforce-for-all", action="store_true", help="Enforce for every request, not just detected agents"
    )
    p_run.add_argument("--reload", action="store_true", help="Enable auto-reload")
    p_run.set_defaults(func=cmd_run)

    # logs
    p_logs = sub.add_parser("logs", help="Query audit logs")
    p_logs.add_argument("log_path", help="Path to audit JSONL file")
    p_logs.add_argument("--request-id", "-r", help="Filter by request ID")
    p_logs.add_argument("--event", "-e", help="Filter by event type")
    p_logs.add_argument("--limit", "-n", type=int, default=20, help="Max entries")
    p_logs.add_argument("--json", action="store_true", help="Output raw JSON")
    p_logs.set_defaults(func=cmd_logs)

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if not args.command:
        parser.print_help()
        sys.exit(1)

    args.func(args)


if __name__ == "__main__":
    main()
