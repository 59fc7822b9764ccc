"""
Verification Engine CLI

Command-line interface for the verification engine.
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

from . import __version__
from .compliance import InMemoryRuleStore
from .engine import VerificationError, create_engine
from .logging_config import setup_logging
from .main import (
    Domain,
    EngineConfig,
    ParsedContent,
    Urgency,
    VerificationOptions,
    VerificationRequest,
)


def parse_args(argv=None) -> argparse.Namespace:
    """Parse command line arguments"""
    parser = argparse.ArgumentParser(
        prog="verification-engine",
        description="Content verification with domain compliance scoring",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Verify command
    verify_parser = subparsers.add_parser("verify", help="Verify a text file")
    verify_parser.add_argument("file", help="Path to a plain text file")
    verify_parser.add_argument(
        "--domain",
        choices=[d.value for d in Domain],
        required=True,
        help="Content domain",
    )
    verify_parser.add_argument(
        "--urgency",
        choices=[u.value for u in Urgency],
        default=Urgency.MEDIUM.value,
        help="Request urgency",
    )
    verify_parser.add_argument(
        "--threshold",
        type=float,
        help="Minimum acceptable confidence (0-100)",
    )
    verify_parser.add_argument(
        "--timeout",
        type=int,
        help="Per-module timeout in milliseconds",
    )
    verify_parser.add_argument(
        "--jurisdiction",
        help="Override the compliance jurisdiction for the domain",
    )

    # Rules command
    rules_parser = subparsers.add_parser("rules", help="List compliance rules")
    rules_parser.add_argument(
        "--domain",
        choices=[d.value for d in Domain],
        help="Only rules for this domain",
    )
    rules_parser.add_argument(
        "--jurisdiction",
        help="Only rules applicable in this jurisdiction",
    )

    # Serve command
    serve_parser = subparsers.add_parser("serve", help="Run the HTTP server")
    serve_parser.add_argument("--host", default="0.0.0.0", help="Bind address")
    serve_parser.add_argument("--port", type=int, default=8080, help="Bind port")

    # Global options
    parser.add_argument(
        "--verbose", "-v",
        action="count",
        default=0,
        help="Increase verbosity",
    )
    parser.add_argument(
        "--log-file",
        help="Log to file",
    )
    parser.add_argument(
        "--config",
        help="Config file path",
    )
    parser.add_argument(
        "--no-color",
        action="store_true",
        help="Disable colored output",
    )
    parser.add_argument(
        "--log-json",
        action="store_true",
        help="Emit logs as JSON lines",
    )

    return parser.parse_args(argv)


def load_config(args: argparse.Namespace) -> EngineConfig:
    if args.config and Path(args.config).exists():
        return EngineConfig.from_yaml(args.config)
    return EngineConfig.from_env()


async def run_verify(args: argparse.Namespace) -> int:
    """Verify one file and print the result"""
    path = Path(args.file)
    if not path.exists():
        print(f"File not found: {path}", file=sys.stderr)
        return 1

    engine = create_engine(load_config(args))
    domain = Domain(args.domain)
    if args.jurisdiction:
        module = engine.get_module(domain)
        if module is not None and hasattr(module, "jurisdiction"):
            module.jurisdiction = args.jurisdiction

    request = VerificationRequest(
        content=ParsedContent(id=path.name, extracted_text=path.read_text()),
        domain=domain,
        urgency=Urgency(args.urgency),
        options=VerificationOptions(
            confidence_threshold=args.threshold,
            max_processing_time_ms=args.timeout,
        ),
    )

    try:
        result = await engine.verify(request)
    except VerificationError as e:
        print(f"Error ({e.kind.value}): {e}", file=sys.stderr)
        return 1
    finally:
        await engine.shutdown()

    print(json.dumps(result.to_dict(), indent=2))
    return 0 if result.risk_level.value in ("low", "medium") else 2


async def list_rules(args: argparse.Namespace) -> int:
    """Print rules and any pattern compile errors"""
    store = InMemoryRuleStore()

    if args.domain:
        rules = await store.get_applicable_rules(
            Domain(args.domain), args.jurisdiction or "US"
        )
    else:
        rules = await store.all_rules()
        if args.jurisdiction:
            rules = [r for r in rules if r.jurisdiction in (args.jurisdiction, "GLOBAL")]

    for rule in rules:
        state = "active" if rule.is_active else "inactive"
        print(
            f"{rule.id:24} {rule.regulation:22} {rule.jurisdiction:6} "
            f"{rule.domain.value:10} {rule.severity.value:8} {state}"
        )

    report = store.validation_report()
    for rule_id, errors in report.items():
        for error in errors:
            print(f"  ! {rule_id}: {error}")

    return 0


def serve(args: argparse.Namespace) -> int:
    import uvicorn

    from .server import create_app

    app = create_app(create_engine(load_config(args)))
    uvicorn.run(
        app,
        host=args.host,
        port=args.port,
        log_level="info" if args.verbose else "warning",
    )
    return 0


def main(argv=None) -> int:
    """Main entry point"""
    args = parse_args(argv)

    log_level = "DEBUG" if args.verbose >= 2 else ("INFO" if args.verbose >= 1 else "WARNING")
    setup_logging(
        level=log_level,
        log_file=args.log_file,
        use_colors=not args.no_color,
        json_format=args.log_json,
    )

    if args.command == "verify":
        return asyncio.run(run_verify(args))
    elif args.command == "rules":
        return asyncio.run(list_rules(args))
    elif args.command == "serve":
        return serve(args)
    else:
        print("Use --help for usage information")
        return 1


if __name__ == "__main__":
    sys.exit(main())
