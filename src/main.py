# src/main.py - v1
"""CLI entry point: watch and cache commands.

Usage:
    taskdocs watch [--once]
    taskdocs cache show <task_id>
    taskdocs cache clear <task_id>
    taskdocs cache sweep [--days N]

Configuration is read from the environment / .env (see config.settings).
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from taskdocs.version import __version__

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    from taskdocs.config.settings import ConfigurationError, load_settings

    try:
        settings = load_settings()
    except ConfigurationError as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return 2

    _setup_logging(settings, args.verbose)

    try:
        return asyncio.run(args.func(args, settings))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        return 1


def cli() -> None:
    """Console script wrapper."""
    sys.exit(main())


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="taskdocs",
        description=f"taskdocs v{__version__} - progressive task document cache",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command")

    # --- watch ---
    p_watch = subparsers.add_parser(
        "watch", help="Poll the agent API and hydrate the current task",
    )
    p_watch.add_argument(
        "--once", action="store_true",
        help="Run a single refresh, wait for background downloads, then exit",
    )
    p_watch.set_defaults(func=_cmd_watch)

    # --- cache ---
    p_cache = subparsers.add_parser("cache", help="Inspect or maintain the document cache")
    cache_sub = p_cache.add_subparsers(dest="cache_command", required=True)

    p_show = cache_sub.add_parser("show", help="List cached documents of a task")
    p_show.add_argument("task_id", help="Task identifier")
    p_show.set_defaults(func=_cmd_cache_show)

    p_clear = cache_sub.add_parser("clear", help="Drop every cached document of a task")
    p_clear.add_argument("task_id", help="Task identifier")
    p_clear.set_defaults(func=_cmd_cache_clear)

    p_sweep = cache_sub.add_parser("sweep", help="Remove entries older than the retention window")
    p_sweep.add_argument(
        "--days", type=int, default=None,
        help="Retention in days (default: CACHE_RETENTION_DAYS)",
    )
    p_sweep.set_defaults(func=_cmd_cache_sweep)

    return parser


async def _cmd_watch(args: argparse.Namespace, settings) -> int:
    """Run the task coordinator against the HTTP agent API."""
    from taskdocs.cache.cache_factory import create_cache_store
    from taskdocs.cache.document_cache import DocumentCache
    from taskdocs.clients.http_client import AgentApiClient
    from taskdocs.handles.registry import HandleRegistry
    from taskdocs.hydration.orchestrator import ProgressiveFetchOrchestrator
    from taskdocs.tasks.coordinator import TaskCoordinator

    if not settings.can_fetch_tasks:
        logger.warning(
            "Principal %r may not fetch tasks (read_only=%s, allowed=%s)",
            settings.principal_id, settings.read_only, settings.allowed_principals,
        )

    cache = DocumentCache(create_cache_store(settings))
    try:
        async with AgentApiClient(settings) as client:
            orchestrator = ProgressiveFetchOrchestrator(cache, client, HandleRegistry())
            coordinator = TaskCoordinator(settings, client, orchestrator, cache)
            try:
                snapshot = await coordinator.start()
                if args.once:
                    await coordinator.drain()
                    _print_snapshot(coordinator.snapshot())
                    return 0 if snapshot.task is not None else 1
                _print_snapshot(snapshot)
                # The coordinator retries on its own while no task is assigned.
                while True:
                    await asyncio.sleep(settings.retry_interval_s)
                    if coordinator.state.task is not None:
                        _print_snapshot(await coordinator.refresh())
            finally:
                await coordinator.aclose()
    finally:
        cache.close()


async def _cmd_cache_show(args: argparse.Namespace, settings) -> int:
    """List cached documents of one task."""
    cache = _open_cache(settings)
    try:
        docs = await cache.get_all(args.task_id)
    finally:
        cache.close()

    if not docs:
        print(f"No cached documents for task {args.task_id}")
        return 1
    print(f"\nCached documents for task {args.task_id}:")
    for doc in docs:
        print(
            f"  [{doc.index:3d}] {len(doc.image_blob):>10d} bytes  "
            f"stored {doc.stored_at.isoformat(timespec='seconds')}"
        )
    return 0


async def _cmd_cache_clear(args: argparse.Namespace, settings) -> int:
    """Drop the cached documents of one task."""
    cache = _open_cache(settings)
    try:
        cleared = await cache.clear_task(args.task_id)
    finally:
        cache.close()
    return 0 if cleared else 1


async def _cmd_cache_sweep(args: argparse.Namespace, settings) -> int:
    """Apply the retention window to every task."""
    days = settings.cache_retention_days if args.days is None else args.days
    if days < 0:
        logger.error("--days must be >= 0")
        return 1
    cache = _open_cache(settings)
    try:
        removed = await cache.sweep_expired(days)
    finally:
        cache.close()
    print(f"Removed {removed} cached document(s) older than {days} day(s)")
    return 0


def _open_cache(settings):
    from taskdocs.cache.cache_factory import create_cache_store
    from taskdocs.cache.document_cache import DocumentCache

    return DocumentCache(create_cache_store(settings))


def _print_snapshot(snapshot) -> None:
    """Print a human-readable summary of a TaskSnapshot."""
    if snapshot.task is None:
        print(f"\nNo task assigned (status: {snapshot.status})")
        return
    print(f"\nTask {snapshot.task_id}:")
    print(f"  Status:     {snapshot.status}")
    hydrated = snapshot.hydrated
    if hydrated is None:
        print("  Documents:  none")
    else:
        source = "cache" if hydrated.from_cache else "network"
        print(f"  Documents:  {hydrated.loaded_count}/{hydrated.total_count} ({source})")
    if snapshot.doc_type:
        fields = ", ".join(s.id for s in snapshot.active_field_set or [])
        print(f"  Doc type:   {snapshot.doc_type}")
        print(f"  Sections:   {fields or '-'}")
    if snapshot.schema_error:
        print(f"  Schema:     {snapshot.schema_error}")


def _setup_logging(settings, verbose: bool) -> None:
    """Configure logging for CLI usage."""
    from taskdocs.logging.logger import setup_logging

    setup_logging(
        level="DEBUG" if verbose else settings.log_level,
        log_format=settings.log_format,
        log_file=str(settings.log_file) if settings.log_file else None,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
    )


if __name__ == "__main__":
    sys.exit(main())
