#!/usr/bin/env python3
"""
poa CLI — Run verifications and threshold proofs from the command line.

Commands:
    verify        - Probe an agent endpoint and score it
    prove         - Generate a threshold proof for a known score
    verify-proof  - Structurally verify a proof from a JSON file or stdin
    serve         - Run the HTTP API
"""

import argparse
import asyncio
import json
import sys


def _output(data: dict, args: argparse.Namespace, human_fn=None):
    """Output data as JSON or pretty-printed."""
    if getattr(args, 'json', False) or human_fn is None:
        print(json.dumps(data, indent=2, default=str))
    else:
        human_fn(data)


# ─── Commands ──────────────────────────────────────────────────────

def cmd_verify(args):
    """Run the probe battery against an endpoint."""
    from poa.engine import VerificationEngine
    from poa.models import VerificationRequest

    request = VerificationRequest(
        agent_name=args.name or args.endpoint,
        endpoint=args.endpoint,
        capabilities=frozenset(args.capability or []),
        level=args.level,
    )

    async def _run():
        return await VerificationEngine().run(request)

    record = asyncio.run(_run())
    result = record.to_dict()

    def human(d):
        mark = "✅" if d["status"] == "verified" else "❌"
        print(f"{mark} {d['status'].upper()}: {d['agentName']}")
        print(f"   Score: {d['score']} ({d['tier']})")
        for name, ok in d["checks"].items():
            print(f"   {'✓' if ok else '✗'} {name:<24} {d['details'].get(name, '')}")

    _output(result, args, human)
    return result


def cmd_prove(args):
    """Generate a threshold proof."""
    from poa.circuit import prove_threshold

    proof = prove_threshold(args.agent, args.score, args.threshold, timestamp=args.timestamp)
    result = proof.to_dict()
    result["meetsThreshold"] = proof.meets_threshold

    if args.output:
        with open(args.output, 'w') as f:
            json.dump(proof.to_dict(), f, indent=2)

    def human(d):
        print(f"{'✅' if d['meetsThreshold'] else '⚠️ '} Proof generated for {args.agent}")
        print(f"   Threshold:  {d['publicInputs']['threshold']}")
        print(f"   Meets:      {d['meetsThreshold']}")
        print(f"   Commitment: {d['commitment']}")
        print(f"   Proof hash: {d['proofHash']}")
        if args.output:
            print(f"   Saved to:   {args.output}")

    _output(result, args, human)
    return result


def cmd_verify_proof(args):
    """Verify a proof JSON document."""
    from poa.circuit import verify_stark_proof

    if args.file == '-':
        data = json.load(sys.stdin)
    else:
        with open(args.file) as f:
            data = json.load(f)

    result = {"valid": verify_stark_proof(data),
              "threshold": (data.get("publicInputs") or {}).get("threshold")}

    def human(d):
        print(f"{'✅ VALID' if d['valid'] else '❌ INVALID'} (threshold {d['threshold']})")

    _output(result, args, human)
    return result


def cmd_serve(args):
    """Run the API with uvicorn."""
    import uvicorn
    from poa.api import create_app
    from poa.config import Settings

    settings = Settings.from_env()
    uvicorn.run(create_app(settings), host=args.host or settings.host,
                port=args.port or settings.port)


# ─── Parser ────────────────────────────────────────────────────────

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="poa", description="Proof-of-Agent verification")
    parser.add_argument("--json", action="store_true", help="Output raw JSON")
    sub = parser.add_subparsers(dest="command")

    p = sub.add_parser("verify", help="Probe and score an agent endpoint")
    p.add_argument("endpoint")
    p.add_argument("--name", help="Agent name (defaults to the endpoint)")
    p.add_argument("--level", default="basic", choices=["basic", "standard", "comprehensive"])
    p.add_argument("--capability", "-c", action="append", help="Capability to test (repeatable)")
    p.set_defaults(func=cmd_verify)

    p = sub.add_parser("prove", help="Generate a threshold proof")
    p.add_argument("agent")
    p.add_argument("--score", type=int, required=True)
    p.add_argument("--threshold", type=int, default=60)
    p.add_argument("--timestamp", type=int, help="Verification time (unix seconds, default now)")
    p.add_argument("--output", "-o", help="Write the proof JSON to a file")
    p.set_defaults(func=cmd_prove)

    p = sub.add_parser("verify-proof", help="Verify a proof JSON file ('-' for stdin)")
    p.add_argument("file")
    p.set_defaults(func=cmd_verify_proof)

    p = sub.add_parser("serve", help="Run the HTTP API")
    p.add_argument("--host")
    p.add_argument("--port", type=int)
    p.set_defaults(func=cmd_serve)

    return parser


def main(argv=None):
    from poa.circuit import ConstraintViolation
    from poa.models import ValidationError

    parser = build_parser()
    args = parser.parse_args(argv)
    if not getattr(args, "func", None):
        parser.print_help()
        return 1
    try:
        args.func(args)
    except (ValidationError, ConstraintViolation) as e:
        print(f"❌ {e}", file=sys.stderr)
        return 2
    return 0


if __name__ == "__main__":
    sys.exit(main())
