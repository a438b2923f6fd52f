"""Write finished papers and their authors to the Notion databases."""

from __future__ import annotations

import logging
from typing import Any

from config import Settings
from errors import PersistenceError
from ledger import AuthorEntry, Ledger, PaperEntry
from models import Author, Paper, Summary
from notion_client import (
    NotionClient,
    heading_block,
    multi_select_property,
    number_property,
    paragraph_block,
    relation_property,
    rich_text_property,
    select_property,
    status_property,
    title_property,
    url_property,
)

# Notion relation properties accept at most 100 linked pages.
MAX_RELATION_ENTRIES = 100
READY_STATUS = "Ready"

LOGGER = logging.getLogger(__name__)

# (heading, Summary attribute) in page order.
SUMMARY_SECTIONS: tuple[tuple[str, str], ...] = (
    ("Overview", "overview"),
    ("Research Question", "research_question"),
    ("Task", "task_category"),
    ("Comparison with Related Works", "comparison_with_related_works"),
    ("Methodology", "proposed_method"),
    ("Datasets", "datasets"),
    ("Experiments", "experiments"),
    ("Analysis", "analysis"),
    ("Contributions", "contributions"),
    ("Future Works", "future_works"),
)


class Reporter:
    """Creates author and paper pages and records them in the ledger."""

    def __init__(self, notion: NotionClient, paper_database_id: str, author_database_id: str) -> None:
        self.notion = notion
        self.paper_database_id = paper_database_id
        self.author_database_id = author_database_id

    @classmethod
    def from_settings(cls, settings: Settings) -> Reporter:
        settings.require("notion_api_key", "notion_paper_database_id", "notion_author_database_id")
        return cls(
            notion=NotionClient(settings.notion_api_key),
            paper_database_id=settings.notion_paper_database_id,
            author_database_id=settings.notion_author_database_id,
        )

    def add_authors(self, paper: Paper, ledger: Ledger) -> int:
        """Create a page for every author not yet in the ledger; returns how many were added."""
        added = 0
        for author in paper.authors:
            if not author.ss_id:
                LOGGER.debug("Skipping author without Semantic Scholar id: %s", author.name)
                continue
            known_page_id = ledger.resolve_author_id(author.ss_id)
            if known_page_id is not None:
                author.page_id = known_page_id
                continue

            author.page_id = self.notion.create_page(self.author_database_id, build_author_properties(author))
            ledger.append_author(AuthorEntry.from_author(author))
            ledger.persist()
            added += 1
            LOGGER.debug("Added author %s (%s)", author.name, author.ss_id)
        return added

    def add_paper(self, paper: Paper, ledger: Ledger) -> bool:
        """Create the paper page with its summary blocks.

        Returns False without writing anything when the title is already in
        the ledger.
        """
        if ledger.exists(paper.title):
            LOGGER.info("Paper already in ledger, not reporting: %s", paper.title)
            return False
        if paper.summary is None:
            raise PersistenceError(f"Cannot report {paper.title!r} without a summary")

        properties = build_paper_properties(paper, ledger)
        paper.page_id = self.notion.create_page(self.paper_database_id, properties)
        self.notion.append_blocks(paper.page_id, build_blocks(paper.summary))

        ledger.append_paper(PaperEntry.from_paper(paper))
        ledger.persist()
        LOGGER.info("Reported paper %s as page %s", paper.title, paper.page_id)
        return True


def display_name(paper: Paper) -> str:
    first_author = paper.authors[0].name if paper.authors else Author().name
    return f"{paper.title} ({first_author}, {paper.published_at.year})"


def build_author_properties(author: Author) -> dict[str, Any]:
    return {
        "SS ID": title_property(author.ss_id),
        "Name": rich_text_property(author.name),
        "Affiliations": multi_select_property(author.affiliations),
        "Citation Count": number_property(author.citation_count),
        "Paper Count": number_property(author.paper_count),
        "h-Index": number_property(author.h_index),
        "URL": url_property(author.url),
    }


def build_paper_properties(paper: Paper, ledger: Ledger) -> dict[str, Any]:
    """Property map for a paper page; requires `paper.summary`."""
    summary = paper.summary
    if summary is None:
        raise PersistenceError(f"Cannot build properties for {paper.title!r} without a summary")

    properties: dict[str, Any] = {
        "Name": title_property(display_name(paper)),
        "arXiv ID": rich_text_property(paper.arxiv_id),
        "SS ID": rich_text_property(paper.ss_id),
        "Title": rich_text_property(paper.title),
        "Year": number_property(paper.published_at.year),
        "Abstract": rich_text_property(paper.abstract),
        "PrimaryCategory": select_property(paper.primary_category),
        "Journal": select_property(paper.journal),
        "Publisher": select_property(paper.publisher),
        "URL": url_property(paper.url),
        "DOI": rich_text_property(paper.doi),
        "Status": status_property(READY_STATUS),
        "Citation Count": number_property(paper.citation_count),
        "Reference Count": number_property(paper.reference_count),
        "Influential Citation Count": number_property(paper.influential_citation_count),
        "Domain": multi_select_property(summary.domain_as_list()),
        "Research Question": rich_text_property(summary.research_question),
        "Methodology": rich_text_property(summary.proposed_method),
        "Results": rich_text_property(summary.experiments),
    }
    if paper.keywords:
        properties["Keywords"] = multi_select_property([keyword.label for keyword in paper.keywords])
    tasks = summary.task_as_list()
    if tasks:
        properties["Task"] = multi_select_property(tasks)

    author_ids = [
        page_id
        for page_id in (ledger.resolve_author_id(author.ss_id) for author in paper.authors if author.ss_id)
        if page_id
    ]
    if len(author_ids) > MAX_RELATION_ENTRIES:
        LOGGER.warning(
            "Paper %r has %s linked authors; dropping %s beyond the relation limit of %s",
            paper.title,
            len(author_ids),
            len(author_ids) - MAX_RELATION_ENTRIES,
            MAX_RELATION_ENTRIES,
        )
        author_ids = author_ids[:MAX_RELATION_ENTRIES]
    properties["Author IDs"] = relation_property(author_ids)

    if paper.authors and paper.authors[0].ss_id:
        first_author_id = ledger.resolve_author_id(paper.authors[0].ss_id)
        if first_author_id:
            properties["First Author ID"] = relation_property([first_author_id])
    return properties


def build_blocks(summary: Summary) -> list[dict[str, Any]]:
    """A "Summary" heading followed by one numbered heading and paragraph per section."""
    blocks = [heading_block("Summary", level=1)]
    for number, (heading, attr) in enumerate(SUMMARY_SECTIONS, start=1):
        blocks.append(heading_block(f"{number}. {heading}", level=2))
        blocks.append(paragraph_block(getattr(summary, attr)))
    return blocks
