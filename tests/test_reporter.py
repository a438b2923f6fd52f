from __future__ import annotations

from dataclasses import replace
from datetime import UTC, datetime
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from config import Settings
from errors import ConfigurationError, PersistenceError
from ledger import AuthorEntry, Ledger, PaperEntry
from models import Author, Keyword, Paper, Summary
from reporter import MAX_RELATION_ENTRIES, Reporter, build_blocks, build_paper_properties, display_name

SUMMARY = Summary(
    is_survey=False,
    overview="Overview.",
    research_question="Question.",
    task_category="machine translation",
    task_as_words="machine translation, constituency parsing",
    comparison_with_related_works="Comparison.",
    proposed_method="Method.",
    datasets="WMT 2014",
    domain_as_words="nlp",
    experiments="BLEU 28.4.",
    analysis="Analysis.",
    contributions="Contributions.",
    future_works="Future.",
)


def _paper(authors: list[Author] | None = None) -> Paper:
    return Paper(
        title="Attention Is All You Need",
        arxiv_id="1706.03762v7",
        ss_id="ss1",
        abstract="Abstract.",
        authors=authors if authors is not None else [Author(ss_id="a1", name="Ashish Vaswani"), Author(ss_id="a2", name="Noam Shazeer")],
        published_at=datetime(2017, 6, 12, tzinfo=UTC),
        primary_category="cs.CL",
        journal="arXiv",
        publisher="arXiv",
        url="http://arxiv.org/pdf/1706.03762v7",
        keywords=[Keyword(label="Attention", score=12)],
        summary=SUMMARY,
    )


def _reporter(notion: MagicMock) -> Reporter:
    return Reporter(notion, paper_database_id="paper-db", author_database_id="author-db")


def test_display_name_uses_first_author_and_year() -> None:
    assert display_name(_paper()) == "Attention Is All You Need (Ashish Vaswani, 2017)"
    assert display_name(_paper(authors=[])) == "Attention Is All You Need (John Doe, 2017)"


def test_add_authors_creates_only_unknown_authors(tmp_path: Path) -> None:
    ledger = Ledger(path=tmp_path / "cache.json")
    ledger.append_author(AuthorEntry(name="Ashish Vaswani", ss_id="a1", page_id="known"))
    notion = MagicMock()
    notion.create_page.return_value = "new-page"
    paper = _paper()
    paper.authors.append(Author(ss_id="", name="Anonymous"))

    added = _reporter(notion).add_authors(paper, ledger)

    assert added == 1
    notion.create_page.assert_called_once()
    database_id, properties = notion.create_page.call_args.args
    assert database_id == "author-db"
    assert properties["SS ID"]["title"][0]["text"]["content"] == "a2"
    assert ledger.resolve_author_id("a2") == "new-page"
    assert paper.authors[0].page_id == "known"
    assert (tmp_path / "cache.json").exists()


def test_add_authors_propagates_create_failure(tmp_path: Path) -> None:
    ledger = Ledger(path=tmp_path / "cache.json")
    notion = MagicMock()
    notion.create_page.side_effect = PersistenceError("Notion down")

    with pytest.raises(PersistenceError):
        _reporter(notion).add_authors(_paper(), ledger)

    assert ledger.authors == []


def test_paper_properties(tmp_path: Path) -> None:
    ledger = Ledger(path=tmp_path / "cache.json")
    ledger.append_author(AuthorEntry(name="Ashish Vaswani", ss_id="a1", page_id="p-a1"))
    ledger.append_author(AuthorEntry(name="Noam Shazeer", ss_id="a2", page_id="p-a2"))

    properties = build_paper_properties(_paper(), ledger)

    assert properties["Name"]["title"][0]["text"]["content"] == "Attention Is All You Need (Ashish Vaswani, 2017)"
    assert properties["Year"] == {"number": 2017}
    assert properties["Status"] == {"status": {"name": "Ready"}}
    assert properties["Task"] == {"multi_select": [{"name": "machine translation"}, {"name": "constituency parsing"}]}
    assert properties["Domain"] == {"multi_select": [{"name": "nlp"}]}
    assert properties["Keywords"] == {"multi_select": [{"name": "Attention"}]}
    assert properties["Author IDs"] == {"relation": [{"id": "p-a1"}, {"id": "p-a2"}]}
    assert properties["First Author ID"] == {"relation": [{"id": "p-a1"}]}
    assert properties["Results"]["rich_text"][0]["text"]["content"] == "BLEU 28.4."


def test_blank_word_lists_become_empty_multi_selects(tmp_path: Path) -> None:
    paper = _paper()
    paper.summary = replace(SUMMARY, domain_as_words="", task_as_words="  ")

    properties = build_paper_properties(paper, Ledger(path=tmp_path / "cache.json"))

    assert properties["Domain"] == {"multi_select": []}
    assert properties["Task"] == {"multi_select": []}


def test_author_relation_is_capped_with_warning(tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
    ledger = Ledger(path=tmp_path / "cache.json")
    authors = [Author(ss_id=f"a{i}", name=f"Author {i}") for i in range(130)]
    for author in authors:
        ledger.append_author(AuthorEntry(name=author.name, ss_id=author.ss_id, page_id=f"p-{author.ss_id}"))

    with caplog.at_level("WARNING", logger="reporter"):
        properties = build_paper_properties(_paper(authors=authors), ledger)

    relation = properties["Author IDs"]["relation"]
    assert len(relation) == MAX_RELATION_ENTRIES
    assert relation[0] == {"id": "p-a0"}
    assert "dropping 30" in caplog.text


def test_build_blocks_has_summary_heading_and_ten_sections() -> None:
    blocks = build_blocks(SUMMARY)

    assert blocks[0]["type"] == "heading_1"
    assert len(blocks) == 1 + 2 * 10
    assert blocks[1]["heading_2"]["rich_text"][0]["text"]["content"] == "1. Overview"
    assert blocks[19]["heading_2"]["rich_text"][0]["text"]["content"] == "10. Future Works"
    assert blocks[20]["paragraph"]["rich_text"][0]["text"]["content"] == "Future."


def test_add_paper_creates_page_and_records_it(tmp_path: Path) -> None:
    ledger = Ledger(path=tmp_path / "cache.json")
    notion = MagicMock()
    notion.create_page.return_value = "paper-page"
    paper = _paper()

    assert _reporter(notion).add_paper(paper, ledger) is True

    assert notion.create_page.call_args.args[0] == "paper-db"
    notion.append_blocks.assert_called_once()
    assert notion.append_blocks.call_args.args[0] == "paper-page"
    assert ledger.papers == [
        PaperEntry(title="Attention Is All You Need", arxiv_id="1706.03762v7", ss_id="ss1", page_id="paper-page")
    ]
    assert Ledger.load(tmp_path / "cache.json").exists("attention is all you need")


def test_add_paper_skips_titles_already_in_ledger(tmp_path: Path) -> None:
    ledger = Ledger(path=tmp_path / "cache.json")
    ledger.append_paper(PaperEntry(title="ATTENTION IS ALL YOU NEED"))
    notion = MagicMock()

    assert _reporter(notion).add_paper(_paper(), ledger) is False
    notion.create_page.assert_not_called()


def test_add_paper_block_failure_leaves_ledger_unchanged(tmp_path: Path) -> None:
    ledger = Ledger(path=tmp_path / "cache.json")
    notion = MagicMock()
    notion.create_page.return_value = "paper-page"
    notion.append_blocks.side_effect = PersistenceError("Failed to update page content")

    with pytest.raises(PersistenceError):
        _reporter(notion).add_paper(_paper(), ledger)

    assert ledger.papers == []


def test_from_settings_requires_notion_settings() -> None:
    with pytest.raises(ConfigurationError, match="NOTION_API_KEY"):
        Reporter.from_settings(Settings())
