#!/usr/bin/env python3
"""Command line front end for the Naver News crawler.

Run from the repo root, for example:

    python main_crawler.py crawl --category politics economy --max-articles 50
    python main_crawler.py crawl --url https://n.news.naver.com/mnews/article/001/0014000001
    python main_crawler.py resume --database output/crawl.db
    python main_crawler.py stats --database output/crawl.db
    python main_crawler.py sessions --checkpoint-dir output/checkpoints

``crawl`` reads ``configs/naver.yaml`` when it exists; command line flags
override the file.
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

# Ensure project root is on sys.path so that local packages (e.g. "crawlers")
# are importable when this file is executed as a script.
ROOT = Path(__file__).resolve().parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from crawlers.naver import crawl as naver_crawl
from storage.checkpoint import CheckpointManager
from storage.repository import CrawlRepository

DEFAULT_CONFIG = ROOT / "configs" / "naver.yaml"


def _config_path(value: Optional[str]) -> Optional[str]:
    if value:
        return value
    return str(DEFAULT_CONFIG) if DEFAULT_CONFIG.exists() else None


def _pct(part: int, total: int) -> float:
    return part / total * 100.0 if total else 0.0


def cmd_crawl(args: argparse.Namespace) -> int:
    overrides: Dict[str, Any] = {}
    if args.category:
        overrides["categories"] = args.category
    if args.max_articles is not None:
        overrides["max_articles"] = args.max_articles
    if args.date:
        overrides["date"] = args.date
    if args.output:
        overrides["output_dir"] = args.output
    if args.no_skip_existing:
        overrides["skip_existing"] = False

    print("[main_crawler] Starting Naver News crawl...")
    try:
        naver_crawl.run(_config_path(args.config), overrides=overrides, url=args.url)
    except ValueError as e:
        print(f"[main_crawler] ❌ {e}")
        return 2
    print("[main_crawler] Done.")
    return 0


def cmd_resume(args: argparse.Namespace) -> int:
    database = Path(args.database)
    if not database.exists():
        print(f"[main_crawler] Database not found: {database}")
        return 1

    repository = CrawlRepository(database)
    try:
        stats = repository.get_stats()
        last_category = repository.load_checkpoint("last_category")
    finally:
        repository.close()

    print("\nCheckpoint Stats")
    print("----------------")
    print(f"Total: {stats.total}")
    print(f"Success: {stats.success}")
    print(f"Failed: {stats.failed}")
    if last_category:
        print(f"Last category: {last_category}")

    overrides: Dict[str, Any] = {
        "sqlite_path": str(database),
        "skip_existing": True,
        "max_articles": args.max_articles,
    }
    if args.output:
        overrides["output_dir"] = args.output
    print(f"\n[main_crawler] Continuing crawl with max {args.max_articles} articles...")
    naver_crawl.run(_config_path(args.config), overrides=overrides)
    return 0


def cmd_stats(args: argparse.Namespace) -> int:
    database = Path(args.database)
    if not database.exists():
        print(f"Database not found: {database}")
        print("Run a crawl first to create the database.")
        return 0

    repository = CrawlRepository(database)
    try:
        stats = repository.get_stats()
    finally:
        repository.close()

    print("Crawl Statistics")
    print("================")
    print(f"Database: {database}")
    print()
    print(f"Total records: {stats.total}")
    print(f"  Success: {stats.success} ({_pct(stats.success, stats.total):.1f}%)")
    print(f"  Failed:  {stats.failed} ({_pct(stats.failed, stats.total):.1f}%)")
    print(f"  Skipped: {stats.skipped} ({_pct(stats.skipped, stats.total):.1f}%)")
    return 0


def cmd_sessions(args: argparse.Namespace) -> int:
    checkpoint_dir = Path(args.checkpoint_dir)
    if not checkpoint_dir.exists():
        print(f"No checkpoint directory: {checkpoint_dir}")
        return 0

    manager = CheckpointManager(checkpoint_dir)
    names = manager.list()
    if not names:
        print("No stored sessions.")
        return 0
    for name in names:
        session = manager.load(name)
        if session is None:
            continue
        print(
            f"{name}: {session.current_index}/{session.total_urls} "
            f"({session.completion_percentage():.1f}%), "
            f"failed={len(session.failed_urls)} retryable={len(session.retry_urls())}"
        )
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="main_crawler", description="Naver News crawler")
    sub = parser.add_subparsers(dest="command", required=True)

    crawl = sub.add_parser("crawl", help="crawl section lists or a single article")
    crawl.add_argument("--category", nargs="+", help="politics, economy, society, culture, world, it")
    crawl.add_argument("--max-articles", type=int, default=None)
    crawl.add_argument("--url", help="crawl just this article URL")
    crawl.add_argument("--date", help="list date as YYYYMMDD (default: today, KST)")
    crawl.add_argument("--output", help="markdown output directory")
    crawl.add_argument("--no-skip-existing", action="store_true")
    crawl.add_argument("--config", help="YAML config (default: configs/naver.yaml)")
    crawl.set_defaults(func=cmd_crawl)

    resume = sub.add_parser("resume", help="continue a crawl from its metadata database")
    resume.add_argument("--database", required=True)
    resume.add_argument("--max-articles", type=int, default=100)
    resume.add_argument("--output")
    resume.add_argument("--config")
    resume.set_defaults(func=cmd_resume)

    stats = sub.add_parser("stats", help="show crawl statistics")
    stats.add_argument("--database", required=True)
    stats.set_defaults(func=cmd_stats)

    sessions = sub.add_parser("sessions", help="list stored checkpoint sessions")
    sessions.add_argument("--checkpoint-dir", default="output/checkpoints")
    sessions.set_defaults(func=cmd_sessions)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
