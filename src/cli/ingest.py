# =============================================================================
# src/cli/ingest.py - Batch ingestion from the command line
# =============================================================================
#
# Runs the same queue the API serves, without the web server:
#
#   python -m src.cli.ingest photos/                      # every image in a dir
#   python -m src.cli.ingest a.jpg b.png --delay-ms 1000  # faster spacing
#   python -m src.cli.ingest photos/ --inline-storage     # skip Bunny upload
#   python -m src.cli.ingest photos/ --json > result.json
#
# Progress lines go to stdout as items move through the stages, followed by
# a summary.  --json prints only the JSON summary; --quiet (implied by
# --json) sends log output to stderr at WARNING+.
#
# Exit codes: 0 all items complete, 1 at least one item failed,
# 2 bad arguments or missing configuration.
# =============================================================================

"""Command-line batch ingester for dish photos.

Usage::

    python -m src.cli.ingest PATH [PATH ...] [--delay-ms MS] [--inline-storage]
                              [--json] [--quiet]
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path

from src.config.loader import load_config, upload_limits
from src.config.settings import Settings
from src.models.queue import ImageUpload, ItemStatus, QueueItem
from src.utils.image_utils import detect_content_type, downscale_if_oversized

_IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".webp", ".gif"}

EXIT_OK = 0
EXIT_ITEM_FAILED = 1
EXIT_USAGE = 2


# ---------------------------------------------------------------------------
# Input collection
# ---------------------------------------------------------------------------


def collect_image_paths(paths: list[str]) -> tuple[list[Path], list[str]]:
    """Expand directories into their image files (sorted, non-recursive).

    Returns ``(files, problems)`` where *problems* lists paths that do not
    exist.
    """
    files: list[Path] = []
    problems: list[str] = []
    for raw in paths:
        path = Path(raw)
        if path.is_dir():
            files.extend(
                sorted(
                    p for p in path.iterdir()
                    if p.is_file() and p.suffix.lower() in _IMAGE_EXTENSIONS
                )
            )
        elif path.is_file():
            files.append(path)
        else:
            problems.append(f"{raw}: no such file or directory")
    return files, problems


def load_uploads(
    files: list[Path],
    max_size: int,
    max_dim: int,
) -> tuple[list[ImageUpload], list[str]]:
    """Read and validate each file; returns ``(uploads, skipped_reasons)``."""
    uploads: list[ImageUpload] = []
    skipped: list[str] = []
    for path in files:
        data = path.read_bytes()
        if not data:
            skipped.append(f"{path.name}: file is empty")
            continue
        if len(data) > max_size:
            skipped.append(f"{path.name}: larger than {max_size // (1024 * 1024)} MB")
            continue
        content_type = detect_content_type(data)
        if content_type is None:
            skipped.append(f"{path.name}: not a JPEG, PNG, WEBP or GIF image")
            continue
        data, resized_type = downscale_if_oversized(data, max_dim)
        uploads.append(
            ImageUpload(filename=path.name, content_type=resized_type or content_type, data=data)
        )
    return uploads, skipped


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------


def _format_progress(item: QueueItem) -> str:
    line = f"[{item.progress:3d}%] {item.status.value:<9} {item.file_name}"
    if item.status is ItemStatus.ERROR and item.error:
        line += f" - {item.error}"
    elif item.status is ItemStatus.COMPLETE and item.record is not None:
        line += f" - {item.record.name}"
    return line


def _format_text_summary(items: list[QueueItem], skipped: list[str]) -> str:
    complete = [i for i in items if i.status is ItemStatus.COMPLETE]
    failed = [i for i in items if i.status is ItemStatus.ERROR]
    sep = "=" * 60

    lines = [sep, "  recipeSnap - Ingestion Summary", sep, ""]
    lines.append(f"Complete: {len(complete)}  |  Failed: {len(failed)}  |  Skipped: {len(skipped)}")
    lines.append("")

    for item in complete:
        record = item.record
        if record is None:
            continue
        lines.append(f"  OK    {item.file_name}: {record.name} [{record.category.value}]")
        if record.persisted_id:
            lines.append(f"        record {record.persisted_id}")
    for item in failed:
        lines.append(f"  FAIL  {item.file_name}: {item.error}")
    for reason in skipped:
        lines.append(f"  SKIP  {reason}")

    lines.append(sep)
    return "\n".join(lines)


def _format_json_summary(items: list[QueueItem], skipped: list[str]) -> str:
    output = {
        "complete": sum(1 for i in items if i.status is ItemStatus.COMPLETE),
        "failed": sum(1 for i in items if i.status is ItemStatus.ERROR),
        "skipped": skipped,
        "items": [item.model_dump(mode="json") for item in items],
    }
    return json.dumps(output, indent=2, default=str)


def _quiet_logs() -> None:
    """Send log output to stderr at WARNING+ so stdout carries only the report."""
    from src.utils.logging import configure_logging

    configure_logging(log_level="WARNING", stderr=True)


# ---------------------------------------------------------------------------
# Runner
# ---------------------------------------------------------------------------


async def _run(
    uploads: list[ImageUpload],
    app_settings: Settings,
    json_output: bool,
) -> list[QueueItem]:
    # Deferred import: src.main builds the FastAPI app at import time.
    import httpx

    from src.main import build_pipeline

    async with httpx.AsyncClient(timeout=app_settings.http_timeout_seconds) as http_client:
        pipeline = build_pipeline(app_settings, http_client)

        if not json_output:
            def _print_progress(item: QueueItem) -> None:
                print(_format_progress(item), flush=True)

            pipeline.store.register_listener(_print_progress)

        items = await pipeline.submit_batch(uploads)
        await pipeline.join()
        return [pipeline.store.get(item.id) or item for item in items]


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m src.cli.ingest",
        description="Turn dish photos into structured recipes stored in Airtable.",
    )
    parser.add_argument("paths", nargs="+", help="Image files or directories of images")
    parser.add_argument(
        "--delay-ms",
        type=int,
        default=None,
        help="Minimum spacing between outbound API calls (default: RATE_LIMIT_DELAY_MS)",
    )
    parser.add_argument(
        "--inline-storage",
        action="store_true",
        help="Send images to the vision model as data: URIs instead of uploading to Bunny",
    )
    parser.add_argument("--json", action="store_true", help="Print a JSON summary only")
    parser.add_argument("--quiet", action="store_true", help="Only log warnings, to stderr")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)

    if args.delay_ms is not None and args.delay_ms < 0:
        print("error: --delay-ms must be >= 0", file=sys.stderr)
        return EXIT_USAGE

    # Logging is reconfigured after src.main's import-time setup.
    if args.quiet or args.json:
        import src.main  # noqa: F401

        _quiet_logs()

    app_settings = Settings()
    overrides: dict = {}
    if args.inline_storage:
        overrides["storage_backend"] = "inline"
    if args.delay_ms is not None:
        overrides["rate_limit_delay_ms"] = args.delay_ms
    if overrides:
        app_settings = app_settings.model_copy(update=overrides)

    missing = app_settings.missing_credentials()
    if missing:
        print(f"error: missing configuration: {', '.join(missing)}", file=sys.stderr)
        return EXIT_USAGE

    files, problems = collect_image_paths(args.paths)
    for problem in problems:
        print(f"error: {problem}", file=sys.stderr)
    if problems:
        return EXIT_USAGE

    max_size, max_dim = upload_limits(load_config(settings=app_settings))
    uploads, skipped = load_uploads(files, max_size=max_size, max_dim=max_dim)

    if not uploads:
        print("error: no supported images found", file=sys.stderr)
        for reason in skipped:
            print(f"  {reason}", file=sys.stderr)
        return EXIT_USAGE

    items = asyncio.run(_run(uploads, app_settings, args.json))

    if args.json:
        print(_format_json_summary(items, skipped))
    else:
        print(_format_text_summary(items, skipped))

    if any(item.status is not ItemStatus.COMPLETE for item in items):
        return EXIT_ITEM_FAILED
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
