"""Semantic Scholar Graph API client (metadata source B)."""

from __future__ import annotations

import json
import logging
import time
from datetime import UTC, datetime
from typing import Any

import requests

from errors import TransportError
from models import EPOCH, Author, Paper, clean_title

SEMANTIC_SCHOLAR_API_URL = "https://api.semanticscholar.org/graph/v1"
REQUEST_TIMEOUT_SECONDS = 30
TITLE_SEARCH_LIMIT = 20
_RETRYABLE_STATUS = frozenset({429, 500, 502, 503, 504})

SEARCH_FIELDS = "paperId,title"
PAPER_FIELDS = ",".join([
    "paperId",
    "title",
    "abstract",
    "venue",
    "url",
    "referenceCount",
    "citationCount",
    "influentialCitationCount",
    "publicationDate",
    "authors.authorId",
    "authors.name",
    "authors.url",
    "authors.affiliations",
    "authors.paperCount",
    "authors.citationCount",
    "authors.hIndex",
    "citations.paperId",
    "citations.title",
    "citations.abstract",
    "citations.publicationDate",
    "citations.authors",
    "references.paperId",
    "references.title",
    "references.abstract",
    "references.publicationDate",
    "references.authors",
])

LOGGER = logging.getLogger(__name__)


class SemanticScholarSource:
    """Title search and paper lookup against the Semantic Scholar Graph API.

    Rate-limit and server errors are retried here, at the transport level,
    up to `max_retry_count` times with a fixed `wait_seconds` pause.
    """

    def __init__(
        self,
        api_key: str = "",
        max_retry_count: int = 15,
        wait_seconds: float = 30.0,
        session: requests.Session | None = None,
    ) -> None:
        self.max_retry_count = max(1, max_retry_count)
        self.wait_seconds = wait_seconds
        self._session = session or requests.Session()
        self._headers = {"Accept": "application/json"}
        if api_key:
            self._headers["x-api-key"] = api_key

    def search_by_title(self, title: str, limit: int = TITLE_SEARCH_LIMIT) -> list[dict[str, Any]]:
        """Return ranked search candidates (`paperId`, `title`) for a title query."""
        body = self._get(
            "/paper/search",
            params={"query": title, "fields": SEARCH_FIELDS, "limit": limit},
        )
        data = body.get("data") or []
        if not isinstance(data, list):
            raise TransportError(f"Unexpected Semantic Scholar search payload: {body}")
        return [item for item in data if isinstance(item, dict) and item.get("title")]

    def get_paper(self, paper_id: str) -> dict[str, Any]:
        """Full record, including authors, citations and references."""
        return self._get(f"/paper/{paper_id}", params={"fields": PAPER_FIELDS})

    def _get(self, path: str, params: dict[str, Any]) -> dict[str, Any]:
        url = f"{SEMANTIC_SCHOLAR_API_URL}{path}"
        last_error: Exception | None = None

        for attempt in range(1, self.max_retry_count + 1):
            try:
                response = self._session.get(
                    url,
                    params=params,
                    headers=self._headers,
                    timeout=REQUEST_TIMEOUT_SECONDS,
                )
                if response.status_code in _RETRYABLE_STATUS and attempt < self.max_retry_count:
                    LOGGER.warning(
                        "Semantic Scholar returned %s for %s (attempt %s/%s), waiting %ss",
                        response.status_code,
                        path,
                        attempt,
                        self.max_retry_count,
                        self.wait_seconds,
                    )
                    time.sleep(self.wait_seconds)
                    continue
                response.raise_for_status()
                body = response.json()
                if not isinstance(body, dict):
                    raise TransportError(f"Unexpected Semantic Scholar payload shape: {body!r}")
                return body
            except (requests.RequestException, json.JSONDecodeError) as exc:
                last_error = exc
                if isinstance(exc, requests.HTTPError) or attempt >= self.max_retry_count:
                    break
                time.sleep(self.wait_seconds)

        raise TransportError(f"Semantic Scholar request failed for {path}: {last_error}")


def author_from_payload(payload: dict[str, Any]) -> Author:
    return Author(
        ss_id=_as_str(payload.get("authorId")),
        name=_as_str(payload.get("name")) or "John Doe",
        url=_as_str(payload.get("url")) or "-",
        affiliations=[a for a in payload.get("affiliations") or [] if isinstance(a, str)],
        paper_count=_as_int(payload.get("paperCount")),
        citation_count=_as_int(payload.get("citationCount")),
        h_index=_as_int(payload.get("hIndex")),
    )


def reference_from_payload(payload: dict[str, Any]) -> Paper:
    """Nested citation/reference entry; every field defaults when absent."""
    return Paper.reference(
        ss_id=_as_str(payload.get("paperId")),
        title=clean_title(_as_str(payload.get("title"))),
        abstract=_as_str(payload.get("abstract")),
        authors=[author_from_payload(a) for a in payload.get("authors") or [] if isinstance(a, dict)],
        published_at=parse_publication_date(payload.get("publicationDate")),
    )


def parse_publication_date(raw: Any) -> datetime:
    """Parse `YYYY-MM-DD` to UTC midnight, falling back to the Unix epoch."""
    if not isinstance(raw, str) or not raw.strip():
        return EPOCH
    try:
        parsed = datetime.strptime(raw.strip(), "%Y-%m-%d")
    except ValueError:
        LOGGER.warning("Failed to parse publication date: %s", raw)
        return EPOCH
    return parsed.replace(tzinfo=UTC)


def _as_str(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def _as_int(value: Any) -> int:
    return value if isinstance(value, int) else 0
