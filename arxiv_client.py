"""arXiv search helpers (metadata source A)."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import UTC, date, datetime

import arxiv
import requests

from errors import TransportError
from models import EPOCH, clean_title

LOGGER = logging.getLogger(__name__)

DEFAULT_CATEGORIES: tuple[str, ...] = ("cs.AI", "cs.LG", "cs.CL", "cs.CV")
TITLE_SEARCH_MAX_RESULTS = 100
DATE_SEARCH_MAX_RESULTS = 500
_QUERY_UNSAFE_RE = re.compile(r"[^\w\s-]", flags=re.UNICODE)
_QUERY_OPERATORS = frozenset({"AND", "OR", "ANDNOT"})


@dataclass(frozen=True, slots=True)
class ArxivEntry:
    """The subset of an arXiv Atom entry the pipeline needs."""

    entry_id: str
    title: str
    abstract: str
    primary_category: str = ""
    categories: list[str] = field(default_factory=list)
    pdf_url: str = ""
    doi: str = ""
    published_at: datetime = EPOCH


class ArxivSource:
    """Thin wrapper around `arxiv.Client` returning `ArxivEntry` records."""

    def __init__(self, client: arxiv.Client | None = None) -> None:
        self._client = client or arxiv.Client(page_size=100, delay_seconds=3.0, num_retries=3)

    def search_by_title(self, title: str, max_results: int = TITLE_SEARCH_MAX_RESULTS) -> list[ArxivEntry]:
        """Title search ranked by relevance, best first."""
        query = build_title_query(title)
        search = arxiv.Search(
            query=query,
            max_results=max_results,
            sort_by=arxiv.SortCriterion.Relevance,
            sort_order=arxiv.SortOrder.Descending,
        )
        entries = self._run(search)
        LOGGER.debug("arXiv title search: query=%s results=%s", query, len(entries))
        return entries

    def search_by_date(
        self,
        target_date: date,
        categories: tuple[str, ...] = DEFAULT_CATEGORIES,
        max_results: int = DATE_SEARCH_MAX_RESULTS,
    ) -> list[ArxivEntry]:
        """All entries in the given categories submitted on one calendar day."""
        search = arxiv.Search(
            query=build_date_query(target_date, categories),
            max_results=max_results,
            sort_by=arxiv.SortCriterion.SubmittedDate,
            sort_order=arxiv.SortOrder.Descending,
        )
        entries = self._run(search)
        LOGGER.info("arXiv date search: date=%s results=%s", target_date, len(entries))
        return entries

    def _run(self, search: arxiv.Search) -> list[ArxivEntry]:
        try:
            return [_to_entry(result) for result in self._client.results(search)]
        except (arxiv.ArxivError, requests.RequestException) as exc:
            raise TransportError(f"arXiv query failed: {exc}") from exc


def build_date_query(target_date: date, categories: tuple[str, ...] = DEFAULT_CATEGORIES) -> str:
    """`(cat:A OR cat:B ...) AND submittedDate:[day 00:00 TO day 23:59]`."""
    category_clause = " OR ".join(f"cat:{category}" for category in categories)
    day = target_date.strftime("%Y%m%d")
    return f"({category_clause}) AND submittedDate:[{day}0000 TO {day}2359]"


def build_title_query(title: str) -> str:
    """OR together one `ti:` term per title word so near matches still rank.

    Punctuation and the query language's own operators are dropped.
    """
    words = clean_title(_QUERY_UNSAFE_RE.sub(" ", title)).split()
    terms = [f"ti:{word}" for word in words if re.search(r"\w", word) and word not in _QUERY_OPERATORS]
    return " OR ".join(terms)


def _to_entry(result: arxiv.Result) -> ArxivEntry:
    published = result.published
    if published is not None and published.tzinfo is None:
        published = published.replace(tzinfo=UTC)
    return ArxivEntry(
        entry_id=result.get_short_id() if result.entry_id else "",
        title=clean_title(result.title or ""),
        abstract=(result.summary or "").strip(),
        primary_category=result.primary_category or "",
        categories=list(result.categories or []),
        pdf_url=result.pdf_url or "",
        doi=result.doi or "",
        published_at=published or EPOCH,
    )
