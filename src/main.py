# src/main.py - v2
"""CLI entry point for image SEO metadata.

Usage:
    mediaseo --library library.json preview-context 42 --language cs
    mediaseo --library library.json analyze 42 --trigger manual
    mediaseo --library library.json batch --all --language en
    mediaseo approve 7 --alt "Sunset over a sandy beach with gentle waves"
    mediaseo stats --period week
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Any

from mediaseo.version import __version__

if TYPE_CHECKING:
    from mediaseo.api.facade import MediaSeoService
    from mediaseo.context.repository import InMemoryContentRepository

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    try:
        return asyncio.run(args.func(args))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        return 1


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="mediaseo",
        description=f"mediaseo v{__version__} - AI SEO metadata for image libraries",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--library", type=Path, default=None,
        help="JSON export of the content library (records, meta, terms)",
    )
    parser.add_argument(
        "--uploads", type=Path, default=Path("."),
        help="Directory that image file paths are relative to (default: .)",
    )
    parser.add_argument(
        "--database", type=Path, default=None,
        help="SQLite database path (default: from settings)",
    )

    subparsers = parser.add_subparsers(dest="command")

    # --- preview-context ---
    p_ctx = subparsers.add_parser("preview-context", help="Show the aggregated context of an image")
    p_ctx.add_argument("image_id")
    p_ctx.add_argument("--language", default=None)
    p_ctx.set_defaults(func=_cmd_preview_context)

    # --- preview-prompt ---
    p_prompt = subparsers.add_parser("preview-prompt", help="Render the prompt for an image")
    p_prompt.add_argument("image_id")
    p_prompt.add_argument("--language", default=None)
    p_prompt.add_argument("--variant", default=None, help="minimal, standard or advanced")
    p_prompt.set_defaults(func=_cmd_preview_prompt)

    # --- analyze ---
    p_analyze = subparsers.add_parser("analyze", help="Analyze a single image")
    p_analyze.add_argument("image_id")
    p_analyze.add_argument("--language", default=None)
    p_analyze.add_argument("--variant", default=None)
    p_analyze.add_argument(
        "--trigger", choices=("manual", "auto"), default="manual",
        help="How the analysis was requested (default: manual)",
    )
    p_analyze.add_argument(
        "--auto-apply", dest="auto_apply", action=argparse.BooleanOptionalAction, default=None,
        help="Override the auto-apply setting",
    )
    p_analyze.set_defaults(func=_cmd_analyze)

    # --- batch ---
    p_batch = subparsers.add_parser("batch", help="Analyze many images")
    p_batch.add_argument("image_ids", nargs="*", help="Image ids (or use --all)")
    p_batch.add_argument("--all", action="store_true", help="Every image in the library")
    p_batch.add_argument("--language", default=None)
    p_batch.add_argument("--variant", default=None)
    p_batch.add_argument(
        "--force", action="store_true",
        help="Re-analyze images that already have metadata",
    )
    p_batch.set_defaults(func=_cmd_batch)

    # --- approve ---
    p_approve = subparsers.add_parser("approve", help="Apply a job's metadata")
    p_approve.add_argument("job_id", type=int)
    p_approve.add_argument("--alt", default=None)
    p_approve.add_argument("--caption", default=None)
    p_approve.add_argument("--title", default=None)
    p_approve.add_argument("--keywords", default=None, help="Comma-separated")
    p_approve.set_defaults(func=_cmd_approve)

    # --- reject ---
    p_reject = subparsers.add_parser("reject", help="Discard a job's metadata")
    p_reject.add_argument("job_id", type=int)
    p_reject.add_argument("--reason", default="")
    p_reject.set_defaults(func=_cmd_reject)

    # --- stats ---
    p_stats = subparsers.add_parser("stats", help="Show job statistics")
    p_stats.add_argument(
        "--period", choices=("today", "week", "month", "all"), default="all",
    )
    p_stats.set_defaults(func=_cmd_stats)

    # --- status ---
    p_status = subparsers.add_parser("status", help="Multilingual status of an image")
    p_status.add_argument("image_id")
    p_status.add_argument("--language", default=None)
    p_status.set_defaults(func=_cmd_status)

    # --- sync-pricing ---
    p_sync = subparsers.add_parser("sync-pricing", help="Refresh model pricing")
    p_sync.set_defaults(func=_cmd_sync_pricing)

    # --- test-providers ---
    p_test = subparsers.add_parser("test-providers", help="Check provider credentials")
    p_test.set_defaults(func=_cmd_test_providers)

    return parser


def _load_repository(args: argparse.Namespace) -> InMemoryContentRepository:
    from mediaseo.context.repository import InMemoryContentRepository

    if args.library is None:
        return InMemoryContentRepository()
    return InMemoryContentRepository.from_json(args.library)


def _build_service(args: argparse.Namespace) -> MediaSeoService:
    """Load settings, configure logging and wire the service."""
    from mediaseo.api.facade import build_service
    from mediaseo.config.settings import load_settings
    from mediaseo.images.source import LocalImageSource
    from mediaseo.logging.logger import setup_logging

    overrides: dict[str, Any] = {}
    if args.database is not None:
        overrides["database_path"] = args.database
    settings = load_settings(**overrides)

    setup_logging(
        level="DEBUG" if args.verbose else settings.log_level,
        log_format=settings.log_format,
        log_file=str(settings.log_file) if settings.log_file else None,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
    )

    repository = _load_repository(args)
    return build_service(
        settings,
        repository=repository,
        images=LocalImageSource(repository, args.uploads),
    )


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False, default=str))


async def _cmd_preview_context(args: argparse.Namespace) -> int:
    service = _build_service(args)
    preview = await service.preview_context(args.image_id, args.language)
    _print_json(preview.model_dump())
    return 0


async def _cmd_preview_prompt(args: argparse.Namespace) -> int:
    service = _build_service(args)
    try:
        preview = await service.preview_prompt(args.image_id, args.language, args.variant)
    except KeyError as exc:
        logger.error("%s", exc.args[0] if exc.args else exc)
        return 1
    print(f"# variant: {preview.used_variant} (~{preview.estimated_tokens} tokens)\n")
    print(preview.prompt)
    return 0


async def _cmd_analyze(args: argparse.Namespace) -> int:
    from mediaseo.core.models import AnalysisOptions

    service = _build_service(args)
    options = AnalysisOptions(
        trigger=args.trigger,
        auto_apply=args.auto_apply,
        variant=args.variant,
    )
    outcome = await service.analyze(args.image_id, args.language, options)
    _print_outcome(outcome)
    return 0 if outcome.success else 1


async def _cmd_batch(args: argparse.Namespace) -> int:
    from mediaseo.core.models import AnalysisOptions

    service = _build_service(args)
    image_ids = list(args.image_ids)
    if args.all:
        image_ids.extend(_library_image_ids(args))
    if not image_ids:
        logger.error("No image ids given (pass ids or --all)")
        return 1

    options = AnalysisOptions(trigger="auto", variant=args.variant, force=args.force)
    result = await service.analyze_batch(image_ids, args.language, options)

    print("\nBatch complete:")
    print(f"  Images:     {result.total}")
    print(f"  Succeeded:  {result.succeeded}")
    print(f"  Failed:     {result.failed}")
    print(f"  Skipped:    {result.skipped}")
    print(f"  Cost:       ${result.total_cost:.6f}")
    print(f"  Duration:   {result.duration_ms / 1000:.1f}s")
    for item in result.items:
        if item.status == "failed":
            print(f"  ! {item.image_id}: {item.reason}")
    return 0 if result.failed == 0 else 1


async def _cmd_approve(args: argparse.Namespace) -> int:
    service = _build_service(args)
    fields: dict[str, Any] = {
        "alt": args.alt,
        "caption": args.caption,
        "title": args.title,
    }
    if args.keywords:
        fields["keywords"] = [k.strip() for k in args.keywords.split(",") if k.strip()]
    ok = await service.approve(args.job_id, {k: v for k, v in fields.items() if v})
    print(f"Job {args.job_id}: {'approved' if ok else 'not approved'}")
    return 0 if ok else 1


async def _cmd_reject(args: argparse.Namespace) -> int:
    service = _build_service(args)
    ok = await service.reject(args.job_id, args.reason)
    print(f"Job {args.job_id}: {'rejected' if ok else 'not found'}")
    return 0 if ok else 1


async def _cmd_stats(args: argparse.Namespace) -> int:
    service = _build_service(args)
    stats = service.get_stats(args.period)

    print(f"\nJobs ({stats.period}):")
    print(f"  Total:       {stats.total}")
    print(f"  Pending:     {stats.pending}")
    print(f"  Processing:  {stats.processing}")
    print(f"  Processed:   {stats.processed}")
    print(f"  Approved:    {stats.approved}")
    print(f"  Failed:      {stats.failed}")
    print(f"  Skipped:     {stats.skipped}")
    print(f"  Total cost:  ${stats.total_cost:.6f}")
    print(f"  Avg score:   {stats.avg_score:.2f}")
    return 0


async def _cmd_status(args: argparse.Namespace) -> int:
    service = _build_service(args)
    report = await service.completion_status(args.image_id)
    resolved = await service.resolve_metadata(args.image_id, args.language)

    status = report.status
    print(f"\nImage {args.image_id}: {status.completed}/{status.total} languages ({status.percentage}%)")
    if status.missing:
        print(f"  Missing:  {', '.join(status.missing)}")
    if report.next_language:
        print(f"  Next:     {report.next_language}")
    print(f"\nMetadata ({resolved.language}):")
    for name, value in resolved.fields.items():
        source = f" (from {value.source_language})" if value.used_fallback else ""
        print(f"  {name:9s} {value.value if value.value is not None else '-'}{source}")
    return 0


async def _cmd_sync_pricing(args: argparse.Namespace) -> int:
    service = _build_service(args)
    result = await service.sync_pricing()
    if result.success:
        print(f"Synced {result.models_synced} model prices from {result.source}")
    for error in result.errors:
        print(f"  ! {error}")
    return 0 if result.success else 1


async def _cmd_test_providers(args: argparse.Namespace) -> int:
    service = _build_service(args)
    status = await service.test_providers()
    for name, state in status.items():
        print(f"  {name:10s} {state}")
    return 0 if any(s == "ok" for s in status.values()) else 1


def _library_image_ids(args: argparse.Namespace) -> list[str]:
    if args.library is None:
        return []
    raw = json.loads(Path(args.library).expanduser().read_text(encoding="utf-8"))
    return [
        str(r["id"]) for r in raw.get("records", [])
        if r.get("type") == "attachment" and str(r.get("mime_type", "")).startswith("image/")
    ]


def _print_outcome(outcome: Any) -> None:
    """Print a human-readable summary of an AnalysisOutcome."""
    print(f"\nImage {outcome.image_id} ({outcome.language}): {'ok' if outcome.success else 'failed'}")
    if outcome.job is not None:
        job = outcome.job
        print(f"  Job:       {job.id} [{job.status}]")
        print(f"  Provider:  {job.provider}/{job.model}")
        print(f"  Cost:      ${job.total_cost:.6f}")
        fields = job.response.get("fields") or {}
        for name in ("alt", "caption", "title", "keywords"):
            if fields.get(name):
                value = fields[name]
                print(f"  {name.capitalize():10s} {', '.join(value) if isinstance(value, list) else value}")
    if outcome.final_score is not None:
        print(f"  Score:     {outcome.final_score:.2f} -> {outcome.decision or '-'}")
    for name, reason in outcome.provider_errors.items():
        print(f"  ! {name}: {reason}")
    for error in outcome.errors:
        print(f"  ! {error}")
    for warning in outcome.warnings:
        print(f"  ~ {warning}")


if __name__ == "__main__":
    sys.exit(main())
