"""Per-paper orchestration: link, deduplicate, read, tag, summarize, report."""

from __future__ import annotations

import logging
from collections import Counter
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Iterable, Iterator

from collector import Collector
from document import MIN_SECTION_COUNT, DocumentReader
from errors import DocumentTooShort, LedgerIOError
from keywords import KeywordExtractor
from ledger import Ledger, PaperEntry
from llm_client import Summarizer
from models import Paper
from reporter import Reporter

LOGGER = logging.getLogger(__name__)


class ItemStatus(str, Enum):
    PERSISTED = "persisted"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class ItemOutcome:
    title: str
    status: ItemStatus
    reason: str = ""


class _ItemFailed(Exception):
    """Internal signal carrying the short reason recorded in the ledger."""

    def __init__(self, reason: str, cause: Exception) -> None:
        super().__init__(f"{reason}: {cause}")
        self.reason = reason
        self.cause = cause


class Pipeline:
    """Processes papers one at a time against a single ledger.

    A failure in any step after linking is recorded as a failed ledger entry
    and never stops the run. Only ledger I/O errors propagate.
    """

    def __init__(
        self,
        collector: Collector,
        ledger: Ledger,
        reader: DocumentReader,
        keyword_extractor: KeywordExtractor,
        summarizer: Summarizer,
        reporter: Reporter,
    ) -> None:
        self.collector = collector
        self.ledger = ledger
        self.reader = reader
        self.keyword_extractor = keyword_extractor
        self.summarizer = summarizer
        self.reporter = reporter

    def post_new_paper(self, title: str, pdf: str | None = None) -> ItemOutcome:
        """Single-paper mode: link against both sources, overwriting descriptive fields."""
        outcome = self.process(Paper(title=title), overwrite=True, link_arxiv=True, pdf=pdf)
        self.ledger.persist()
        return outcome

    def post_arxiv_papers(self, target_date: date) -> list[ItemOutcome]:
        """Batch mode: every arXiv paper submitted on `target_date`."""
        papers = self.collector.collect_papers_from_arxiv(target_date)
        LOGGER.info("Collected %s arXiv papers for %s", len(papers), target_date.isoformat())
        return self.run_batch(papers)

    def run_batch(self, papers: Iterable[Paper], overwrite: bool = False) -> list[ItemOutcome]:
        outcomes = [self.process(paper, overwrite=overwrite) for paper in papers]
        self.ledger.persist()

        counts = Counter(outcome.status for outcome in outcomes)
        LOGGER.info(
            "Run complete. persisted=%s skipped=%s failed=%s",
            counts[ItemStatus.PERSISTED],
            counts[ItemStatus.SKIPPED],
            counts[ItemStatus.FAILED],
        )
        return outcomes

    def process(
        self,
        paper: Paper,
        overwrite: bool = False,
        link_arxiv: bool = False,
        pdf: str | None = None,
    ) -> ItemOutcome:
        if self.ledger.exists(paper.title):
            return self._skipped(paper)

        self._link(paper, overwrite=overwrite, link_arxiv=link_arxiv)
        if self.ledger.exists(paper.title):
            return self._skipped(paper)
        if not paper.is_linked:
            LOGGER.warning(
                "Continuing without full linkage for %r: arxiv_id=%r ss_id=%r",
                paper.title,
                paper.arxiv_id,
                paper.ss_id,
            )

        try:
            reported = self._enrich_and_report(paper, pdf or paper.url)
        except LedgerIOError:
            raise
        except _ItemFailed as exc:
            LOGGER.warning("Failed processing %r: %s", paper.title, exc)
            self.ledger.append_failed(PaperEntry.from_paper(paper, failed_reason=exc.reason))
            self.ledger.persist()
            return ItemOutcome(title=paper.title, status=ItemStatus.FAILED, reason=exc.reason)

        if not reported:
            return self._skipped(paper)
        return ItemOutcome(title=paper.title, status=ItemStatus.PERSISTED)

    def _link(self, paper: Paper, overwrite: bool, link_arxiv: bool) -> None:
        try:
            self.collector.update_from_semantic_scholar(paper, overwrite=overwrite)
        except Exception as exc:  # linkage is best effort
            LOGGER.warning("Failed to collect metadata from Semantic Scholar for %r: %s", paper.title, exc)

        if not link_arxiv:
            return
        try:
            self.collector.update_from_arxiv(paper, overwrite=overwrite)
        except Exception as exc:  # linkage is best effort
            LOGGER.warning("Failed to collect metadata from arXiv for %r: %s", paper.title, exc)

    def _enrich_and_report(self, paper: Paper, source: str) -> bool:
        with _step("Failed to get original text"):
            paper.sections = self.reader.read(source)
        with _step("The paper is too short"):
            if len(paper.sections) < MIN_SECTION_COUNT:
                raise DocumentTooShort(len(paper.sections), MIN_SECTION_COUNT)

        with _step("Failed to get keywords"):
            paper.keywords = self.keyword_extractor.extract(paper.keyword_text())
            LOGGER.debug("Keywords for %r: %s", paper.title, [k.label for k in paper.keywords])

        with _step("Failed to summarize the paper"):
            self.summarizer.summarize(paper)

        with _step("Failed to add authors"):
            self.reporter.add_authors(paper, self.ledger)
        with _step("Failed to report the paper"):
            return self.reporter.add_paper(paper, self.ledger)

    def _skipped(self, paper: Paper) -> ItemOutcome:
        LOGGER.info("Paper already exists: %s", paper.title)
        return ItemOutcome(title=paper.title, status=ItemStatus.SKIPPED, reason="already exists")


@contextmanager
def _step(reason: str) -> Iterator[None]:
    """Tag any non-ledger error raised inside the block with a short failure reason."""
    try:
        yield
    except (LedgerIOError, _ItemFailed):
        raise
    except Exception as exc:
        raise _ItemFailed(reason, exc) from exc
