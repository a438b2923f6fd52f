"""Shared typed models for the pipeline."""

from __future__ import annotations

import re
from dataclasses import dataclass, field, fields
from datetime import UTC, datetime
from typing import Any

from errors import SummaryDecodeError

EPOCH = datetime(1970, 1, 1, tzinfo=UTC)

# Checked in order; the first delimiter present wins.
_LIST_DELIMITERS = (",", "，", "、")


@dataclass(slots=True)
class Author:
    """An author as reported by Semantic Scholar."""

    ss_id: str = ""
    name: str = "John Doe"
    url: str = ""
    affiliations: list[str] = field(default_factory=list)
    paper_count: int = 0
    citation_count: int = 0
    h_index: int = 0
    page_id: str = ""


@dataclass(slots=True)
class Section:
    """One titled section of a paper's full text."""

    index: int
    title: str
    paragraphs: list[str] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class Keyword:
    """A vocabulary keyword found in a paper, with its occurrence score."""

    label: str
    score: int


@dataclass(frozen=True, slots=True)
class Summary:
    """Structured summary produced by the language model."""

    is_survey: bool
    overview: str
    research_question: str
    task_category: str
    task_as_words: str
    comparison_with_related_works: str
    proposed_method: str
    datasets: str
    domain_as_words: str
    experiments: str
    analysis: str
    contributions: str
    future_works: str

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> Summary:
        """Build a Summary from a decoded JSON object, checking every field."""
        values: dict[str, Any] = {}
        missing: list[str] = []
        for summary_field in fields(cls):
            if summary_field.name not in payload:
                missing.append(summary_field.name)
                continue
            value = payload[summary_field.name]
            expected = bool if summary_field.name == "is_survey" else str
            if not isinstance(value, expected):
                raise SummaryDecodeError(
                    f"Summary field {summary_field.name!r} must be "
                    f"{expected.__name__}, got {type(value).__name__}"
                )
            values[summary_field.name] = value
        if missing:
            raise SummaryDecodeError(f"Summary response missing keys: {missing}")
        return cls(**values)

    def task_as_list(self) -> list[str]:
        return split_word_list(self.task_as_words)

    def domain_as_list(self) -> list[str]:
        return split_word_list(self.domain_as_words)


def split_word_list(value: str) -> list[str]:
    """Split a model-produced word list on ASCII or full-width commas.

    Without any delimiter the whole (stripped) string is the single element,
    even when it is blank.
    """
    for delimiter in _LIST_DELIMITERS:
        if delimiter in value:
            return [item.strip() for item in value.split(delimiter) if item.strip()]
    return [value.strip()]


@dataclass(slots=True)
class Paper:
    """Working publication record, filled in step by step as the pipeline runs."""

    title: str = ""
    arxiv_id: str = ""
    ss_id: str = ""
    page_id: str = ""
    abstract: str = ""
    authors: list[Author] = field(default_factory=list)
    published_at: datetime = EPOCH
    primary_category: str = ""
    categories: list[str] = field(default_factory=list)
    url: str = ""
    doi: str = ""
    journal: str = ""
    publisher: str = ""
    citation_count: int = 0
    influential_citation_count: int = 0
    reference_count: int = 0
    citations: list[Paper] = field(default_factory=list)
    references: list[Paper] = field(default_factory=list)
    sections: list[Section] = field(default_factory=list)
    keywords: list[Keyword] = field(default_factory=list)
    summary: Summary | None = None

    @classmethod
    def reference(
        cls,
        ss_id: str,
        title: str,
        abstract: str,
        authors: list[Author],
        published_at: datetime,
    ) -> Paper:
        """Minimal nested record used for citation and reference lists."""
        return cls(
            ss_id=ss_id,
            title=title,
            abstract=abstract,
            authors=authors,
            published_at=published_at,
        )

    @property
    def is_linked(self) -> bool:
        return bool(self.arxiv_id and self.ss_id)

    def section(self, title: str) -> Section | None:
        """Return the first section whose title matches, ignoring case."""
        wanted = title.strip().lower()
        for section in self.sections:
            if section.title.strip().lower() == wanted:
                return section
        return None

    def keyword_text(self) -> str:
        """Title, abstract and introduction joined for keyword extraction."""
        parts = [self.title, self.abstract]
        introduction = self.section("Introduction")
        if introduction is not None:
            parts.append("\n".join(introduction.paragraphs))
        return "\n\n".join(parts)


def clean_title(title: str) -> str:
    """Collapse the line breaks and runs of spaces metadata APIs leave in titles."""
    return re.sub(r"\s+", " ", title).strip()
