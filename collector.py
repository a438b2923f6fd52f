"""Record linkage: resolve a paper against arXiv and Semantic Scholar by title."""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Callable, Sequence

from arxiv_client import ArxivEntry, ArxivSource
from errors import NoSimilarMatch
from models import EPOCH, Paper, clean_title
from semantic_scholar_client import (
    SemanticScholarSource,
    author_from_payload,
    parse_publication_date,
    reference_from_payload,
)
from similarity import similarity

SIMILARITY_THRESHOLD = 0.9
ARXIV_VENUE = "arXiv"

LOGGER = logging.getLogger(__name__)


def select_best_match(
    title: str,
    candidate_titles: Sequence[str],
    scorer: Callable[[str, str], float] = similarity,
) -> tuple[int, float]:
    """Return (index, score) of the candidate title most similar to `title`.

    Comparison is case-insensitive and ties go to the earliest candidate.
    Raises NoSimilarMatch when the best score is below SIMILARITY_THRESHOLD.
    """
    if not candidate_titles:
        raise NoSimilarMatch(title, None, 0.0)

    query = title.lower()
    best_index = 0
    best_score = scorer(query, candidate_titles[0].lower())
    for index, candidate in enumerate(candidate_titles[1:], start=1):
        score = scorer(query, candidate.lower())
        if score > best_score:
            best_index, best_score = index, score

    if best_score < SIMILARITY_THRESHOLD:
        raise NoSimilarMatch(title, candidate_titles[best_index], best_score)
    return best_index, best_score


class Collector:
    """Merges metadata from both sources into a working Paper.

    Identifier fields always take the newly resolved value; descriptive fields
    are written only when still empty or when `overwrite` is set. Transport
    failures propagate untouched: retrying is the caller's decision.
    """

    def __init__(self, arxiv_source: ArxivSource, semantic_scholar: SemanticScholarSource) -> None:
        self.arxiv_source = arxiv_source
        self.semantic_scholar = semantic_scholar

    def collect_papers_from_arxiv(self, target_date: date) -> list[Paper]:
        """Discovery mode: every arXiv entry for the day becomes a new minimal Paper."""
        entries = self.arxiv_source.search_by_date(target_date)
        return [_paper_from_arxiv_entry(entry) for entry in entries]

    def update_from_arxiv(self, paper: Paper, overwrite: bool) -> None:
        title = paper.title
        entries = self.arxiv_source.search_by_title(title)
        index, score = select_best_match(title, [entry.title for entry in entries])
        entry = entries[index]
        LOGGER.debug("arXiv match for %r: %r (%.3f)", title, entry.title, score)

        paper.arxiv_id = entry.entry_id
        paper.title = entry.title
        _merge(paper, "abstract", entry.abstract, overwrite)
        _merge(paper, "primary_category", entry.primary_category, overwrite)
        _merge(paper, "categories", list(entry.categories), overwrite)
        _merge(paper, "url", entry.pdf_url, overwrite)
        _merge(paper, "doi", entry.doi, overwrite)
        _merge(paper, "journal", ARXIV_VENUE, overwrite)
        _merge(paper, "publisher", ARXIV_VENUE, overwrite)
        _merge(paper, "published_at", entry.published_at, overwrite)

    def update_from_semantic_scholar(self, paper: Paper, overwrite: bool) -> None:
        title = paper.title
        candidates = self.semantic_scholar.search_by_title(title)
        index, score = select_best_match(title, [clean_title(c["title"]) for c in candidates])
        record = self.semantic_scholar.get_paper(candidates[index]["paperId"])
        LOGGER.debug("Semantic Scholar match for %r: %r (%.3f)", title, record.get("title"), score)

        paper.ss_id = _as_str(record.get("paperId")) or candidates[index]["paperId"]
        paper.title = clean_title(_as_str(record.get("title"))) or clean_title(candidates[index]["title"])
        _merge(paper, "abstract", _as_str(record.get("abstract")), overwrite)
        _merge(paper, "url", _as_str(record.get("url")), overwrite)
        _merge(paper, "journal", _as_str(record.get("venue")), overwrite)
        _merge(paper, "published_at", parse_publication_date(record.get("publicationDate")), overwrite)
        _merge(paper, "reference_count", _as_int(record.get("referenceCount")), overwrite)
        _merge(paper, "citation_count", _as_int(record.get("citationCount")), overwrite)
        _merge(
            paper,
            "influential_citation_count",
            _as_int(record.get("influentialCitationCount")),
            overwrite,
        )
        _merge(paper, "authors", [author_from_payload(a) for a in _dicts(record.get("authors"))], overwrite)
        _merge(paper, "citations", [reference_from_payload(c) for c in _dicts(record.get("citations"))], overwrite)
        _merge(paper, "references", [reference_from_payload(r) for r in _dicts(record.get("references"))], overwrite)


def _paper_from_arxiv_entry(entry: ArxivEntry) -> Paper:
    return Paper(
        arxiv_id=entry.entry_id,
        title=entry.title,
        abstract=entry.abstract,
        primary_category=entry.primary_category,
        categories=list(entry.categories),
        url=entry.pdf_url,
        doi=entry.doi,
        journal=ARXIV_VENUE,
        publisher=ARXIV_VENUE,
        published_at=entry.published_at,
    )


def _merge(paper: Paper, attr: str, value: Any, overwrite: bool) -> None:
    # A missing value is never written; an empty one only with `overwrite`.
    if value is None:
        return
    if overwrite or _is_unset(getattr(paper, attr)):
        setattr(paper, attr, value)


def _is_unset(value: Any) -> bool:
    if value is None or value == EPOCH:
        return True
    if isinstance(value, (str, list)):
        return len(value) == 0
    if isinstance(value, int):
        return value == 0
    return False


def _dicts(value: Any) -> list[dict[str, Any]]:
    return [item for item in value or [] if isinstance(item, dict)]


def _as_str(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def _as_int(value: Any) -> int:
    return value if isinstance(value, int) else 0
