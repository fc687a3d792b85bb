#!/usr/bin/env python3
"""Index the crawled Naver News corpus into Postgres and Pinecone.

Run from the repo root, for example:

    python main_ingest.py
    python main_ingest.py --input output/raw --no-vectors
    python main_ingest.py --batch-size 20 --dimension 512

The crawler must already have written markdown records under ``--input``.
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

# Resolve project root and load environment variables from .env before
# importing any modules that rely on DATABASE_URL / PINECONE_*.
ROOT = Path(__file__).resolve().parent
load_dotenv(dotenv_path=ROOT / ".env")

# Ensure project root is on sys.path so that local packages are importable
# when this file is executed as a script.
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from embeddings.embedder import DEFAULT_DIMENSION
from ingestion import naver_ingest
from vector_db.client import config_from_env


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="main_ingest", description="Index the Naver News corpus")
    parser.add_argument("--input", default=naver_ingest.DEFAULT_INPUT_ROOT, help="markdown corpus root")
    parser.add_argument("--output", default=naver_ingest.DEFAULT_OUTPUT_ROOT, help="processed JSON root")
    parser.add_argument("--batch-size", type=int, default=naver_ingest.DEFAULT_BATCH_SIZE)
    parser.add_argument("--no-db", action="store_true", help="skip the Postgres upsert")
    parser.add_argument("--no-vectors", action="store_true", help="skip embedding and Pinecone")
    parser.add_argument("--dimension", type=int, default=DEFAULT_DIMENSION)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    if args.batch_size <= 0 or args.dimension <= 0:
        print("[main_ingest] ❌ --batch-size and --dimension must be positive")
        return 2

    print(f"[main_ingest] Ingesting {args.input} → {args.output}...")
    report = naver_ingest.run(
        {
            "input_root": args.input,
            "output_root": args.output,
            "batch_size": args.batch_size,
            "store_in_db": not args.no_db,
            "push_to_vector_db": not args.no_vectors,
            "vector_db": config_from_env(args.dimension),
        }
    )
    for doc_id, reason in report.failed:
        print(f"[main_ingest]   {doc_id}: {reason}")
    print("[main_ingest] Ingestion pipeline complete.")
    return 1 if report.failed and not (report.stored or report.vectors) else 0


if __name__ == "__main__":
    sys.exit(main())
