"""Command-line interface for the Swallows crawler."""

import argparse
import signal
import sys
from typing import Optional
from urllib.parse import urlsplit

from swallows.comparison import ComparisonService, find_duplicate_content
from swallows.config import CrawlConfig, settings
from swallows.constants import CRAWLABLE_SCHEMES
from swallows.database import get_db_client
from swallows.logging_config import setup_logging
from swallows.models import ScanProgress, ScanSession
from swallows.site_crawler import CrawlControl, SiteCrawler

# Global reference to the running scan's control for signal handling
_control: Optional[CrawlControl] = None


def handle_interrupt(signum, frame):
    """Ask the running scan to stop after in-flight fetches finish."""
    print("\n\n⚠️  Scan interrupted, finishing in-flight requests...")
    if _control:
        _control.cancel()


def handle_pause_toggle(signum, frame):
    """Pause or resume the running scan."""
    if _control:
        paused = _control.toggle_pause()
        print(f"\n⏸️  Scan paused" if paused else "\n▶️  Scan resumed")


def install_signal_handlers(control: CrawlControl) -> None:
    global _control
    _control = control
    signal.signal(signal.SIGINT, handle_interrupt)
    signal.signal(signal.SIGTERM, handle_interrupt)
    if hasattr(signal, "SIGUSR1"):
        signal.signal(signal.SIGUSR1, handle_pause_toggle)


def print_progress(progress: ScanProgress) -> None:
    """Print one line per completed fetch."""
    page = progress.latest_page
    status = page.status_code if page else "-"
    print(
        f"[{progress.scanned_count}] {status} {progress.current_url} "
        f"(queue: {progress.queue_count}, known: {progress.total_known_urls})"
    )


def print_session(session: ScanSession) -> None:
    finished = session.finished_at.strftime('%Y-%m-%d %H:%M:%S') if session.finished_at else "-"
    print(
        f"  #{session.id:<5} {session.status.value:<10} "
        f"{session.total_pages_scanned:>6} pages  "
        f"{session.started_at.strftime('%Y-%m-%d %H:%M:%S')} -> {finished}  {session.base_url}"
    )


def ensure_scheme(url: str) -> str:
    """Default a bare host like ``example.com`` to https."""
    if "://" not in url:
        return f"https://{url}"
    return url


def build_crawl_config(args) -> CrawlConfig:
    """Layer command-line options over file or environment configuration."""
    config = CrawlConfig.from_file(args.config) if args.config else CrawlConfig.from_env()

    if args.max_pages is not None:
        config.max_pages = args.max_pages
    if args.max_depth is not None:
        config.max_depth = args.max_depth if args.max_depth >= 0 else None
    if args.concurrency is not None:
        config.concurrent_requests = args.concurrency
    if args.user_agent:
        config.user_agent = args.user_agent
    if args.timeout is not None:
        config.timeout = args.timeout
    if args.delay is not None:
        config.request_delay = args.delay
    if args.save_images:
        config.save_images = True

    config.validate()
    return config


def crawl_command(args):
    """Run a scan of one site."""
    try:
        config = build_crawl_config(args)
    except ValueError as e:
        print(f"❌ Invalid configuration: {e}")
        return 1

    # Ensure URL has scheme
    start_url = ensure_scheme(args.url)
    if urlsplit(start_url).scheme.lower() not in CRAWLABLE_SCHEMES:
        print(f"❌ Only http and https URLs can be crawled: {args.url}")
        return 1

    db = get_db_client(db_url=args.db or settings.DATABASE_URL)
    control = CrawlControl()
    install_signal_handlers(control)

    crawler = SiteCrawler(
        storage=db,
        config=config,
        control=control,
        on_progress=print_progress,
        on_session_started=lambda s: print(f"\n🕷️  Session {s.id} started for {s.base_url}\n"),
    )

    try:
        session = crawler.crawl_site(start_url)
    finally:
        db.close()

    summary = crawler.get_crawl_summary()
    print(f"\n{'=' * 60}")
    print(f"Session {session.id}: {session.status.value}")
    print(f"{'=' * 60}")
    print(f"  Pages scanned:     {session.total_pages_scanned}")
    if summary:
        print(f"  Failed:            {summary['failed_pages']}")
        print(f"  Redirected:        {summary['redirected_pages']}")
        print(f"  Duplicate groups:  {summary['duplicate_content_groups']}")
        print(f"  Avg load time:     {summary['avg_load_time_ms']:.0f} ms")
    print()
    return 0


def sessions_command(args):
    """List stored scan sessions."""
    db = get_db_client(db_url=args.db or settings.DATABASE_URL)
    try:
        sessions = db.list_sessions()
    finally:
        db.close()

    if not sessions:
        print("No scan sessions found.")
        return 0

    print(f"\nScan sessions ({len(sessions)}):")
    for session in sessions:
        print_session(session)
    return 0


def compare_command(args):
    """Compare two stored sessions."""
    db = get_db_client(db_url=args.db or settings.DATABASE_URL)
    try:
        result = ComparisonService(db).compare_sessions(args.baseline_id, args.comparison_id)
    except ValueError as e:
        print(f"❌ {e}")
        return 1
    finally:
        db.close()

    print(f"\nComparing session {args.baseline_id} -> {args.comparison_id}")
    print(f"{'=' * 60}")

    sections = [
        ("New pages", result.new_pages),
        ("Removed pages", result.removed_pages),
        ("Status changes", result.status_changes),
        ("Meta changes", result.meta_changes),
    ]
    for label, diffs in sections:
        print(f"\n{label} ({len(diffs)}):")
        for diff in diffs:
            if diff.change_type == "Status":
                print(f"  • {diff.url}: {diff.old_status_code} -> {diff.new_status_code}")
            elif diff.change_type in ("Title", "Meta"):
                print(f"  • {diff.url} [{diff.change_type}]: {diff.old_value!r} -> {diff.new_value!r}")
            else:
                print(f"  • {diff.url}")

    print(f"\nTotal changes: {result.total_changes}\n")
    return 0


def duplicates_command(args):
    """Show pages of a session sharing identical content."""
    db = get_db_client(db_url=args.db or settings.DATABASE_URL)
    try:
        if db.get_session(args.session_id) is None:
            print(f"❌ Session {args.session_id} not found")
            return 1
        pages = db.get_pages_for_session(args.session_id)
    finally:
        db.close()

    groups = find_duplicate_content(pages)
    if not groups:
        print("No duplicate content found.")
        return 0

    print(f"\nDuplicate content groups ({len(groups)}):")
    for content_hash, urls in groups.items():
        print(f"\n  {content_hash}:")
        for url in urls:
            print(f"    • {url}")
    print()
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Swallows - Polite breadth-first crawler for technical SEO audits"
    )

    # Global flags (before subcommands)
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=settings.LOG_LEVEL,
        help=f"Set logging verbosity (default: {settings.LOG_LEVEL})",
    )
    parser.add_argument(
        "--log-file",
        default=settings.LOG_FILE,
        help="Write logs to file in addition to console",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Crawl command parser
    crawl_parser = subparsers.add_parser("crawl", help="Crawl a site starting from a URL.")
    crawl_parser.add_argument("url", help="Starting URL")
    crawl_parser.add_argument("--max-pages", type=int, help="Maximum pages to fetch")
    crawl_parser.add_argument(
        "--max-depth", type=int, help="Maximum link depth from the start URL (-1 for unlimited)"
    )
    crawl_parser.add_argument("--concurrency", type=int, help="Maximum concurrent requests")
    crawl_parser.add_argument("--user-agent", help="User agent string")
    crawl_parser.add_argument("--timeout", type=float, help="Request timeout in seconds")
    crawl_parser.add_argument("--delay", type=float, help="Seconds to wait between requests")
    crawl_parser.add_argument(
        "--save-images", action="store_true", help="Store discovered images with each page"
    )
    crawl_parser.add_argument("--config", help="JSON or YAML configuration file")
    crawl_parser.add_argument("--db", help="Database URL (default: SWALLOWS_DATABASE_URL)")
    crawl_parser.set_defaults(func=crawl_command)

    # Sessions command parser
    sessions_parser = subparsers.add_parser("sessions", help="List stored scan sessions.")
    sessions_parser.add_argument("--db", help="Database URL")
    sessions_parser.set_defaults(func=sessions_command)

    # Compare command parser
    compare_parser = subparsers.add_parser("compare", help="Compare two scan sessions.")
    compare_parser.add_argument("baseline_id", type=int, help="Earlier session id")
    compare_parser.add_argument("comparison_id", type=int, help="Later session id")
    compare_parser.add_argument("--db", help="Database URL")
    compare_parser.set_defaults(func=compare_command)

    # Duplicates command parser
    duplicates_parser = subparsers.add_parser(
        "duplicates", help="Find pages with identical content in a session."
    )
    duplicates_parser.add_argument("session_id", type=int, help="Session id")
    duplicates_parser.add_argument("--db", help="Database URL")
    duplicates_parser.set_defaults(func=duplicates_command)

    return parser


def main(argv=None):
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    # Configure logging based on flags
    setup_logging(level=args.log_level, log_file=args.log_file)

    if hasattr(args, "func"):
        return args.func(args)

    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())
