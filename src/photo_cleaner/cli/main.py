"""CLI entry point for photo cleaner."""

import argparse
import json
import logging
import sys
from pathlib import Path

from ..core import (
    Category,
    CategoryToggles,
    DeleteFailureError,
    LocalAssetStore,
    MediaKind,
    PermissionDeniedError,
    ResultAggregator,
    ScanConfig,
    ScanOrchestrator,
    ScanSummary,
    format_fingerprint,
)
from ..core.models import MIB

DEFAULT_CATEGORIES = [Category.DUPLICATES.value, Category.LARGE_ITEMS.value, Category.SCREENSHOTS.value]


def setup_logging(level: str = "INFO") -> None:
    """
    Set up logging configuration.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def scan_directory_cli(
    directory: Path,
    recursive: bool = True,
    config: ScanConfig | None = None,
    kinds: list[MediaKind] | None = None,
) -> tuple[LocalAssetStore, ScanSummary]:
    """
    Scan a directory from the command line.

    Args:
        directory: Directory to scan
        recursive: Whether to scan recursively
        config: Scan configuration
        kinds: Media kinds to scan, defaults to photos and videos

    Returns:
        The store that was scanned and the scan summary

    Raises:
        FileNotFoundError: If the directory does not exist
        NotADirectoryError: If the path is not a directory
        RuntimeError: If the scan did not complete
    """
    logger = logging.getLogger(__name__)

    if not directory.exists():
        raise FileNotFoundError(f"Directory not found: {directory}")

    if not directory.is_dir():
        raise NotADirectoryError(f"Path is not a directory: {directory}")

    config = config or ScanConfig()
    store = LocalAssetStore(directory, config, recursive=recursive)

    # Progress callback for CLI
    def progress_callback(current: int, total: int | None = None, message: str = "") -> None:
        if total:
            percent = (current / total) * 100
            print(f"\rProgress: {current}/{total} ({percent:.1f}%)", end="", flush=True)
        elif message:
            print(f"\r{message}", end="", flush=True)

    orchestrator = ScanOrchestrator(store, config, progress_callback)
    print(f"Scanning directory: {directory}")
    session = orchestrator.start(kinds or [MediaKind.PHOTO, MediaKind.VIDEO])
    try:
        summary = session.wait()
    except KeyboardInterrupt:
        orchestrator.cancel()
        session.wait()
        raise
    print()  # New line after progress

    if summary is None:
        raise RuntimeError(f"Scan did not complete: {session.error or 'cancelled'}")

    logger.info(f"Scan complete: {summary}")
    return store, summary


def format_mb(size_bytes: int) -> str:
    return f"{size_bytes / MIB:.1f} MB"


def print_scan_results(
    summary: ScanSummary, aggregator: ResultAggregator, toggles: CategoryToggles, detailed: bool = False
) -> None:
    """
    Print scan results to console.

    Args:
        summary: Results from the scan
        aggregator: Aggregator built from the summary
        toggles: Categories included in the deletion plan
        detailed: Whether to list individual buckets and clusters
    """
    plan = aggregator.aggregate(toggles)

    print("\n" + "=" * 60)
    print("SCAN RESULTS")
    print("=" * 60)

    print(f"Items scanned: {summary.total_items}")
    print(f"Skipped (no fingerprint): {len(summary.skipped_ids)}")
    for category in Category:
        marker = "x" if toggles.is_enabled(category) else " "
        print(
            f"[{marker}] {category.value:<12} {summary.count_for(category):>6} items  "
            f"{format_mb(summary.bytes_for(category)):>12}"
        )
    if summary.unknown_size_ids:
        print(f"Videos of unknown size: {len(summary.unknown_size_ids)}")
    print(f"Similar clusters: {len(summary.similar_clusters)} ({summary.similar_item_count} items)")
    print(f"Selected for deletion: {len(plan.consolidated_ids)} items, {format_mb(plan.consolidated_bytes)}")

    if not detailed:
        return

    if summary.duplicate_buckets:
        print("\n" + "-" * 60)
        print("DUPLICATE BUCKETS")
        print("-" * 60)
        for i, bucket in enumerate(summary.duplicate_buckets, 1):
            print(f"\nBucket {i}: {format_fingerprint(bucket.fingerprint)} ({bucket.size} items)")
            print(f"  Keep:   {bucket.retained_id}")
            for item_id in bucket.delete_ids:
                print(f"  Delete: {item_id}")

    if summary.similar_clusters:
        print("\n" + "-" * 60)
        print("SIMILAR CLUSTERS")
        print("-" * 60)
        for i, cluster in enumerate(summary.similar_clusters, 1):
            print(f"\nCluster {i}: {len(cluster.items)} items from {cluster.start_date:%Y-%m-%d %H:%M}")
            for item in cluster.review_order:
                label = "best" if item.id == cluster.best_id else "    "
                print(f"  {label} {item} {format_mb(item.known_bytes)}")


def summary_to_dict(summary: ScanSummary, aggregator: ResultAggregator, toggles: CategoryToggles) -> dict:
    plan = aggregator.aggregate(toggles)
    return {
        "total_items": summary.total_items,
        "skipped": len(summary.skipped_ids),
        "categories": {
            category.value: {
                "count": summary.count_for(category),
                "bytes": summary.bytes_for(category),
                "enabled": toggles.is_enabled(category),
            }
            for category in Category
        },
        "duplicate_buckets": [
            {
                "fingerprint": format_fingerprint(bucket.fingerprint),
                "keep": bucket.retained_id,
                "delete": bucket.delete_ids,
            }
            for bucket in summary.duplicate_buckets
        ],
        "similar_clusters": [
            {"best": cluster.best_id, "items": [item.id for item in cluster.review_order]}
            for cluster in summary.similar_clusters
        ],
        "unknown_size": summary.unknown_size_ids,
        "delete_ids": plan.consolidated_ids,
        "delete_bytes": plan.consolidated_bytes,
    }


def create_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser."""
    parser = argparse.ArgumentParser(
        description="Photo Cleaner - Find duplicate, similar, large and screenshot media",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Scan a photo library
  photo-cleaner --scan /path/to/photos

  # List duplicate buckets and similar clusters
  photo-cleaner --scan /path/to/photos --detailed

  # Only consider exact duplicates, and delete them
  photo-cleaner --scan /path/to/photos --include duplicates --delete

  # Enable debug logging
  photo-cleaner --scan /path/to/photos --log-level DEBUG
        """,
    )

    parser.add_argument(
        "--scan",
        type=Path,
        metavar="DIRECTORY",
        help="Directory holding the media library",
    )

    parser.add_argument(
        "--no-recursive", action="store_true", help="Don't scan subdirectories recursively"
    )

    parser.add_argument(
        "--kinds",
        nargs="+",
        choices=[kind.value for kind in MediaKind],
        default=[kind.value for kind in MediaKind],
        help="Media kinds to scan (default: photo video)",
    )

    parser.add_argument(
        "--threshold",
        type=int,
        default=8,
        help="Maximum Hamming distance for similar photos (default: 8)",
    )

    parser.add_argument(
        "--large-threshold-mb",
        type=float,
        default=200.0,
        help="Minimum video size for the large items category (default: 200)",
    )

    parser.add_argument(
        "--include",
        nargs="*",
        choices=[category.value for category in Category],
        default=DEFAULT_CATEGORIES,
        help="Categories to include in the deletion plan",
    )

    parser.add_argument(
        "--delete", action="store_true", help="Delete the selected items after the scan"
    )

    parser.add_argument("--yes", action="store_true", help="Don't ask before deleting")

    parser.add_argument(
        "--detailed", action="store_true", help="Show duplicate buckets and similar clusters"
    )

    parser.add_argument(
        "--output-format",
        choices=["text", "json"],
        default="text",
        help="Output format for results (default: text)",
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Set logging level (default: INFO)",
    )

    parser.add_argument("--version", action="version", version="%(prog)s 0.1.0")

    return parser


def main(argv: list[str] | None = None) -> int:
    """
    Main entry point for the CLI application.

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    setup_logging(args.log_level)
    logger = logging.getLogger(__name__)

    if not args.scan:
        parser.print_help()
        return 1

    try:
        config = ScanConfig(
            similarity_threshold=args.threshold,
            large_item_threshold_bytes=int(args.large_threshold_mb * MIB),
            log_level=args.log_level,
        )
        toggles = CategoryToggles.only(*(Category(value) for value in args.include))

        store, summary = scan_directory_cli(
            directory=args.scan,
            recursive=not args.no_recursive,
            config=config,
            kinds=[MediaKind(value) for value in args.kinds],
        )
        aggregator = ResultAggregator(summary)

        if args.output_format == "json":
            print(json.dumps(summary_to_dict(summary, aggregator, toggles), indent=2))
        else:
            print_scan_results(summary, aggregator, toggles, detailed=args.detailed)

        if args.delete:
            plan = aggregator.aggregate(toggles)
            if not plan.consolidated_ids:
                print("Nothing to delete.")
                return 0
            if not args.yes:
                answer = input(
                    f"Delete {len(plan.consolidated_ids)} items ({format_mb(plan.consolidated_bytes)})? [y/N] "
                )
                if answer.strip().lower() not in ("y", "yes"):
                    print("Deletion cancelled.")
                    return 0
            aggregator.execute(store, toggles)
            print(f"Deleted {len(plan.consolidated_ids)} items.")

        return 0

    except KeyboardInterrupt:
        print("\n\nOperation cancelled by user.")
        return 1
    except (FileNotFoundError, NotADirectoryError, PermissionDeniedError) as e:
        print(f"Error: {e}")
        return 1
    except DeleteFailureError as e:
        print(f"Error: {e}")
        return 2
    except Exception as e:
        logger.exception("Unexpected error occurred")
        print(f"Error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
