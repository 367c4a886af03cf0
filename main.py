"""CLI entrypoint: pull or list articles from a Forem platform."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv

from config import SyncConfig, default_rate_limit_retries, load_api_key
from contracts import ArticleSource
from errors import SyncError
from filters import parse_since
from forem_client import ForemSource, parse_instance
from markdown_sink import STRUCTURE_PLATFORM, STRUCTURES, MarkdownSink
from models import PullFilter
from rate_limit import RateLimitRetryingSource
from sync_engine import SyncEngine, SyncOptions, SyncReport, collect_articles
from sync_state import JsonStateStore


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line flags."""
    parser = argparse.ArgumentParser(prog="puller", description="Pull/archive existing posts from Forem platforms")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    pull = subparsers.add_parser("pull", help="Pull articles from a platform")
    pull.add_argument("--platform", "-p", required=True, help="Platform to pull from (devto, vibe, custom:<domain>, ...)")
    pull.add_argument("output_dir", type=Path, help="Output directory for pulled articles")
    pull.add_argument("--dry-run", action="store_true", help="Preview what would be pulled without writing files")
    pull.add_argument("--since", default=None, help="Only pull articles published since this date (YYYY-MM-DD)")
    pull.add_argument("--force", action="store_true", help="Force re-pull existing articles")
    pull.add_argument("--exclude-drafts", action="store_true", help="Exclude draft articles")
    pull.add_argument(
        "--structure",
        choices=STRUCTURES,
        default=STRUCTURE_PLATFORM,
        help="Folder layout: one subdirectory per platform (default) or flat",
    )
    pull.add_argument(
        "--rate-limit-retries",
        type=int,
        default=None,
        help="Retry rate-limited requests this many times, honouring Retry-After (default: 0)",
    )

    list_cmd = subparsers.add_parser("list", help="List articles from a platform without downloading")
    list_cmd.add_argument("--platform", "-p", required=True, help="Platform to list from")
    list_cmd.add_argument("--since", default=None, help="Only list articles published since this date (YYYY-MM-DD)")
    list_cmd.add_argument("--exclude-drafts", action="store_true", help="Exclude draft articles")

    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> SyncConfig:
    """Turn parsed flags plus environment into an explicit SyncConfig."""
    retries = getattr(args, "rate_limit_retries", None)
    return SyncConfig(
        source_credential=load_api_key(),
        instance=parse_instance(args.platform),
        output_dir=getattr(args, "output_dir", None),
        pull_filter=PullFilter(since=parse_since(args.since), include_drafts=not args.exclude_drafts),
        force=getattr(args, "force", False),
        dry_run=getattr(args, "dry_run", False),
        structure=getattr(args, "structure", STRUCTURE_PLATFORM),
        rate_limit_retries=default_rate_limit_retries() if retries is None else max(0, retries),
    )


def build_source(config: SyncConfig) -> ArticleSource:
    source: ArticleSource = ForemSource(api_key=config.source_credential, instance=config.instance)
    if config.rate_limit_retries > 0:
        source = RateLimitRetryingSource(source, max_retries=config.rate_limit_retries)
    return source


def run_pull(config: SyncConfig) -> SyncReport:
    """Run one incremental pull into config.output_dir."""
    if config.output_dir is None:
        raise ValueError("run_pull requires an output directory")

    engine = SyncEngine(
        source=build_source(config),
        sink=MarkdownSink(config.output_dir, structure=config.structure),
        store=JsonStateStore(config.output_dir),
        options=SyncOptions(pull_filter=config.pull_filter, force=config.force, dry_run=config.dry_run),
    )
    report = engine.run()

    if config.dry_run:
        logging.info("(dry-run mode - no files were written)")
    return report


def run_list(config: SyncConfig) -> int:
    """Print the filtered listing; returns the number of articles shown."""
    source = build_source(config)
    logging.info("Fetching article list from %s...", config.instance.display_name)
    articles = collect_articles(source, config.pull_filter)
    print(f"Found {len(articles)} articles:\n")

    for meta in articles:
        date = meta.published_at.strftime("%Y-%m-%d") if meta.published_at else "N/A"
        status = " [DRAFT]" if meta.is_draft else ""
        print(f"  {date} {meta.title}{status}")
        if meta.url:
            print(f"    {meta.url}")

    return len(articles)


def main(argv: list[str] | None = None) -> int:
    """Initialize config and execute the requested command."""
    load_dotenv()
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(message)s",
    )

    try:
        config = build_config(args)
        if args.command == "pull":
            run_pull(config)
        else:
            run_list(config)
    except SyncError as exc:
        logging.error("%s: %s", exc.kind, exc)
        return 1
    except KeyboardInterrupt:
        logging.warning("Interrupted; state reflects the last committed article")
        return 130

    return 0


if __name__ == "__main__":
    sys.exit(main())
