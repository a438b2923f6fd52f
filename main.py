"""CLI entrypoint for the arXiv / Semantic Scholar -> OpenAI -> Notion paper pipeline."""

from __future__ import annotations

import argparse
import dataclasses
import logging
from datetime import UTC, date, datetime, timedelta
from pathlib import Path

from arxiv_client import ArxivSource
from collector import Collector
from config import Settings, load_settings
from document import DocumentReader
from errors import ConfigurationError, LedgerIOError
from keywords import KeywordExtractor
from ledger import Ledger
from llm_client import Summarizer
from notion_client import NotionClient
from pipeline import ItemStatus, Pipeline
from reporter import Reporter
from semantic_scholar_client import SemanticScholarSource


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line flags."""
    parser = argparse.ArgumentParser(description="Link, summarize and post research papers to Notion")
    parser.add_argument("--config", type=Path, default=None, help="TOML config file (default: .env and environment)")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--model-id", default=None, help="OpenAI model used for summaries")

    subparsers = parser.add_subparsers(dest="command", required=True)

    post_paper = subparsers.add_parser("post-paper", help="Process a single paper by title")
    post_paper.add_argument("--title", required=True, help="Paper title to look up")
    post_paper.add_argument("--pdf", default=None, help="Local path or URL of the paper PDF")

    post_arxiv = subparsers.add_parser("post-arxiv", help="Process every arXiv paper submitted on a day")
    post_arxiv.add_argument(
        "--date",
        type=date.fromisoformat,
        default=None,
        help="Submission date as YYYY-MM-DD (default: yesterday, UTC)",
    )

    subparsers.add_parser("build-ledger", help="Rebuild the local ledger from the Notion databases")
    return parser.parse_args(argv)


def build_pipeline(settings: Settings, ledger: Ledger) -> Pipeline:
    """Wire every component from one Settings instance."""
    collector = Collector(
        arxiv_source=ArxivSource(),
        semantic_scholar=SemanticScholarSource(
            api_key=settings.semantic_scholar_api_key,
            max_retry_count=settings.ss_max_retry_count,
            wait_seconds=settings.ss_wait_seconds,
        ),
    )
    return Pipeline(
        collector=collector,
        ledger=ledger,
        reader=DocumentReader(),
        keyword_extractor=KeywordExtractor(),
        summarizer=Summarizer.from_settings(settings),
        reporter=Reporter.from_settings(settings),
    )


def build_ledger(settings: Settings) -> Ledger:
    settings.require("notion_api_key", "notion_paper_database_id", "notion_author_database_id")
    return Ledger.rebuild(
        path=settings.ledger_path,
        notion=NotionClient(settings.notion_api_key),
        paper_database_id=settings.notion_paper_database_id,
        author_database_id=settings.notion_author_database_id,
    )


def run(args: argparse.Namespace, settings: Settings) -> int:
    if args.command == "build-ledger":
        ledger = build_ledger(settings)
        logging.info("Ledger rebuilt: papers=%s authors=%s", len(ledger.papers), len(ledger.authors))
        return 0

    ledger = Ledger.load(settings.ledger_path)
    pipeline = build_pipeline(settings, ledger)

    if args.command == "post-paper":
        outcome = pipeline.post_new_paper(args.title, pdf=args.pdf)
        logging.info("Finished %r: %s %s", outcome.title, outcome.status.value, outcome.reason)
        return 1 if outcome.status is ItemStatus.FAILED else 0

    target_date = args.date or (datetime.now(UTC) - timedelta(days=1)).date()
    pipeline.post_arxiv_papers(target_date)
    return 0


def main(argv: list[str] | None = None) -> int:
    """Initialize config and execute the requested command."""
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(message)s",
    )

    try:
        settings = load_settings(args.config)
        if args.model_id:
            settings = dataclasses.replace(settings, model_id=args.model_id)
        return run(args, settings)
    except (ConfigurationError, LedgerIOError) as exc:
        logging.error("Aborting run: %s", exc)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
