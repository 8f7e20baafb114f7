"""
VeriGate CLI
=============

Command-line interface for verifying LLM output and inspecting the
configured provider.

Usage:
    python -m verigate verify --input "The Eiffel Tower is in Berlin." --type fact_check
    python -m verigate verify --file answer.txt --context "Travel FAQ" --output result.json
    python -m verigate batch --file outputs.jsonl --batch-size 5 --output batch.json
    python -m verigate test
    python -m verigate stats
    python -m verigate providers
    python -m verigate check-config
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from verigate.config import ProviderName, VerigateConfig, get_config
from verigate.errors import ConfigurationError
from verigate.schemas.verification import VerificationOptions, VerificationResult, VerificationType
from verigate.utils import generate_run_id, load_lines, save_json, setup_logging

logger = logging.getLogger("verigate.cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="verigate",
        description="VeriGate: structured, bounded-confidence verification of LLM output",
    )
    parser.add_argument("--config", type=str, default=None, help="Path to config YAML")
    parser.add_argument("--provider", choices=[p.value for p in ProviderName], default=None)
    parser.add_argument("--verbose", "-v", action="store_true")

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # ── verify ──────────────────────────────────────────────────
    verify_parser = subparsers.add_parser("verify", help="Verify a single piece of content")
    source = verify_parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--input", "-i", type=str, help="Content to verify")
    source.add_argument("--file", "-f", type=str, help="File whose content to verify")
    verify_parser.add_argument("--context", "-c", type=str, default=None)
    verify_parser.add_argument("--type", "-t", choices=[t.value for t in VerificationType], default=None)
    verify_parser.add_argument("--model", "-m", type=str, default=None, help="Model id or tier name")
    verify_parser.add_argument("--output", "-o", type=str, default=None, help="Output JSON path")

    # ── batch ───────────────────────────────────────────────────
    batch_parser = subparsers.add_parser("batch", help="Verify many inputs from a file")
    batch_parser.add_argument("--file", "-f", required=True, help="JSONL or one-item-per-line file")
    batch_parser.add_argument("--batch-size", "-b", type=int, default=None)
    batch_parser.add_argument("--context", "-c", type=str, default=None)
    batch_parser.add_argument("--type", "-t", choices=[t.value for t in VerificationType], default=None)
    batch_parser.add_argument("--output", "-o", type=str, default=None, help="Output JSON path")

    # ── test / stats / providers / check-config ─────────────────
    subparsers.add_parser("test", help="Smoke-test the provider connection")
    stats_parser = subparsers.add_parser("stats", help="Show configuration and recorded metrics")
    stats_parser.add_argument("--metrics", type=str, default=None, help="Metrics JSONL path")
    stats_parser.add_argument("--hours", type=float, default=None, help="Only count the last N hours")
    stats_parser.add_argument("--operation", type=str, default=None, help="Only count this operation")
    providers_parser = subparsers.add_parser("providers", help="List supported providers")
    providers_parser.add_argument("name", nargs="?", default=None)
    subparsers.add_parser("check-config", help="Validate configuration and credentials")

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    run_id = generate_run_id()
    setup_logging(level="DEBUG" if args.verbose else "WARNING", run_id=run_id)

    if args.command is None:
        parser.print_help()
        return 1

    commands = {
        "verify": cmd_verify,
        "batch": cmd_batch,
        "test": cmd_test,
        "stats": cmd_stats,
        "providers": cmd_providers,
        "check-config": cmd_check_config,
    }
    try:
        config = _load_config(args)
        setup_logging(
            level="DEBUG" if args.verbose else config.log_level,
            format_style=config.log_format,
            run_id=run_id,
        )
        return commands[args.command](args, config)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2


def _load_config(args) -> VerigateConfig:
    try:
        return get_config(args.config, provider=args.provider)
    except ValidationError as e:
        raise ConfigurationError(str(e)) from e


def _make_verifier(config: VerigateConfig):
    from verigate.verify.verifier import LLMVerifier
    return LLMVerifier(config)


def _print_result(result: VerificationResult) -> None:
    icon = "✅" if result.is_valid else "❌"
    print(f"\n{icon} {'VALID' if result.is_valid else 'INVALID'}  (confidence {result.confidence:.0%})")
    print(f"Reason: {result.reason}")
    if result.issues:
        print("Issues:")
        for issue in result.issues:
            print(f"  - {issue}")
    if result.suggestions:
        print("Suggestions:")
        for suggestion in result.suggestions:
            print(f"  - {suggestion}")
    checked = {
        name: cat for name, cat in result.categories.items()
        if cat.explanation != "Category not checked"
    }
    if checked:
        print("Categories:")
        for name, cat in checked.items():
            print(f"  {'✅' if cat.passed else '❌'} {name}: {cat.score:.2f}  {cat.explanation}")
    m = result.metrics
    print(
        f"\n{m.provider}/{m.model}  {m.latency_ms:.0f}ms  "
        f"{m.total_tokens} tokens  ${m.cost:.6f}"
    )
    if result.error:
        print(f"Error: {result.error}")


def cmd_verify(args, config: VerigateConfig) -> int:
    """Verify one piece of content."""
    content = args.input if args.input is not None else Path(args.file).read_text(encoding="utf-8")
    options = VerificationOptions(
        context=args.context,
        type=VerificationType(args.type) if args.type else None,
        model=args.model,
    )

    async def _run():
        verifier = _make_verifier(config)
        async with verifier:
            return await verifier.verify(content, options)

    result = asyncio.run(_run())
    _print_result(result)

    if args.output:
        save_json(result.to_json_dict(), args.output)
        print(f"\nResult saved to {args.output}")
    return 0 if result.error is None else 1


def cmd_batch(args, config: VerigateConfig) -> int:
    """Verify every entry of a file."""
    contents = load_lines(args.file)
    if not contents:
        print(f"Error: no inputs found in {args.file}", file=sys.stderr)
        return 1

    options = VerificationOptions(
        context=args.context,
        type=VerificationType(args.type) if args.type else None,
    )

    async def _run():
        verifier = _make_verifier(config)
        async with verifier:
            return await verifier.verify_batch_summary(contents, options, args.batch_size)

    batch = asyncio.run(_run())

    print(f"\n{'=' * 60}")
    print(f"Total: {batch.total}   Valid: {batch.valid}   Invalid: {batch.invalid}")
    print(f"Average confidence: {batch.average_confidence:.1%}")
    print(f"Tokens: {batch.total_tokens}   Cost: ${batch.total_cost:.6f}")
    print(f"Summary: {json.dumps(batch.summary, sort_keys=True)}")
    print(f"{'=' * 60}")
    for i, result in enumerate(batch.results):
        icon = "✅" if result.is_valid else "❌"
        print(f"  [{i}] {icon} {result.confidence:.2f}  {result.reason}")

    if args.output:
        save_json(batch.model_dump(mode="json", by_alias=True, exclude_none=True), args.output)
        print(f"\nResults saved to {args.output}")
    return 0


def cmd_test(args, config: VerigateConfig) -> int:
    """Smoke-test the configured provider."""

    async def _run():
        verifier = _make_verifier(config)
        async with verifier:
            return await verifier.test_connection()

    ok = asyncio.run(_run())
    print(f"{'✅' if ok else '❌'} Connection to {config.provider.value} {'OK' if ok else 'FAILED'}")
    return 0 if ok else 1


def cmd_stats(args, config: VerigateConfig) -> int:
    """Show configuration, plus recorded metrics when a metrics file exists."""
    from verigate.monitoring.metrics import JsonlMetricsSink, check_health, summarize_records
    from verigate.providers import get_descriptor
    from verigate.verify.verifier import describe_config

    output = {"config": describe_config(config, get_descriptor(config.provider.value))}

    metrics_path = args.metrics or config.metrics_path
    if metrics_path:
        records = JsonlMetricsSink(metrics_path).read()
        output["metrics"] = summarize_records(records, hours=args.hours, operation=args.operation)
        output["health"] = check_health(records)

    print(json.dumps(output, indent=2, default=str))
    return 0


def cmd_providers(args, config: VerigateConfig) -> int:
    """Print provider descriptors."""
    from verigate.providers import get_provider_info

    print(json.dumps(get_provider_info(args.name), indent=2))
    return 0


def cmd_check_config(args, config: VerigateConfig) -> int:
    """Validate configuration and credentials for the selected provider."""
    problems = config.validate_provider_credentials()
    if problems:
        print("❌ Configuration problems:")
        for problem in problems:
            print(f"  - {problem}")
        return 1

    print(f"✅ Configuration OK (provider={config.provider.value}, hash={config.config_hash()})")
    return 0


if __name__ == "__main__":
    sys.exit(main())
