"""Local idempotency ledger of papers and authors already pushed to Notion."""

from __future__ import annotations

import json
import logging
import os
import shutil
import tempfile
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

from errors import LedgerIOError
from models import Author, Paper

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class PaperEntry:
    title: str
    arxiv_id: str = ""
    ss_id: str = ""
    page_id: str = ""
    failed_reason: str = ""

    @classmethod
    def from_paper(cls, paper: Paper, failed_reason: str | None = None) -> PaperEntry:
        return cls(
            title=paper.title,
            arxiv_id=paper.arxiv_id,
            ss_id=paper.ss_id,
            page_id=paper.page_id,
            failed_reason=failed_reason or "",
        )

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> PaperEntry:
        return cls(
            title=str(raw.get("title", "")),
            arxiv_id=str(raw.get("arxiv_id", "")),
            ss_id=str(raw.get("ss_id", "")),
            page_id=str(raw.get("page_id", "")),
            failed_reason=str(raw.get("failed_reason", "")),
        )

    def to_dict(self) -> dict[str, str]:
        data = asdict(self)
        if not self.failed_reason:
            del data["failed_reason"]
        return data


@dataclass(slots=True)
class AuthorEntry:
    name: str
    ss_id: str
    page_id: str

    @classmethod
    def from_author(cls, author: Author) -> AuthorEntry:
        return cls(name=author.name, ss_id=author.ss_id, page_id=author.page_id)

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> AuthorEntry:
        return cls(
            name=str(raw.get("name", "")),
            ss_id=str(raw.get("ss_id", "")),
            page_id=str(raw.get("page_id", "")),
        )

    def to_dict(self) -> dict[str, str]:
        return asdict(self)


@dataclass
class Ledger:
    """Durable record of processed papers and authors.

    Loaded once per run, mutated in memory, and flushed with `persist()`.
    The previous on-disk snapshot is kept next to the ledger as
    `<name>.org.json`; the primary file is only ever replaced atomically.
    Not safe for concurrent runs: there is no file locking.
    """

    path: Path = field(compare=False)
    papers: list[PaperEntry] = field(default_factory=list)
    failed_papers: list[PaperEntry] = field(default_factory=list)
    authors: list[AuthorEntry] = field(default_factory=list)
    author_map: dict[str, str] = field(default_factory=dict)

    @property
    def backup_path(self) -> Path:
        return self.path.with_suffix(".org.json")

    @classmethod
    def load(cls, path: Path) -> Ledger:
        """Read the ledger at `path`, or start an empty one if the file does not exist."""
        if not path.exists():
            LOGGER.info("No ledger at %s, starting empty", path)
            return cls(path=path)
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise LedgerIOError(f"Failed to load ledger {path}: {exc}") from exc
        if not isinstance(raw, dict):
            raise LedgerIOError(f"Failed to load ledger {path}: expected a JSON object")
        author_map = raw.get("author_map") or {}
        if not isinstance(author_map, dict):
            raise LedgerIOError(f"Failed to load ledger {path}: author_map must be an object")

        ledger = cls(
            path=path,
            papers=[PaperEntry.from_dict(p) for p in _entry_list(raw, "papers", path)],
            failed_papers=[PaperEntry.from_dict(p) for p in _entry_list(raw, "failed_papers", path)],
            authors=[AuthorEntry.from_dict(a) for a in _entry_list(raw, "authors", path)],
            author_map={str(k): str(v) for k, v in author_map.items()},
        )
        LOGGER.info(
            "Loaded ledger %s: papers=%s failed=%s authors=%s",
            path,
            len(ledger.papers),
            len(ledger.failed_papers),
            len(ledger.authors),
        )
        return ledger

    def exists(self, title: str) -> bool:
        wanted = title.lower()
        return any(entry.title.lower() == wanted for entry in self.papers)

    def exists_author(self, ss_id: str) -> bool:
        return ss_id in self.author_map

    def resolve_author_id(self, ss_id: str) -> str | None:
        return self.author_map.get(ss_id)

    def append_paper(self, entry: PaperEntry) -> None:
        self.papers.append(entry)

    def append_failed(self, entry: PaperEntry) -> None:
        self.failed_papers.append(entry)

    def append_author(self, entry: AuthorEntry) -> None:
        self.authors.append(entry)
        self.author_map[entry.ss_id] = entry.page_id

    def to_dict(self) -> dict[str, Any]:
        return {
            "papers": [entry.to_dict() for entry in self.papers],
            "failed_papers": [entry.to_dict() for entry in self.failed_papers],
            "authors": [entry.to_dict() for entry in self.authors],
            "author_map": dict(self.author_map),
        }

    def persist(self) -> None:
        """Back up the current file, then atomically replace it with the in-memory state."""
        tmp_name: str | None = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            if self.path.exists():
                shutil.copyfile(self.path, self.backup_path)

            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=self.path.parent,
                prefix=f".{self.path.name}.",
                suffix=".tmp",
                delete=False,
            ) as fh:
                tmp_name = fh.name
                json.dump(self.to_dict(), fh, ensure_ascii=False)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, self.path)
            tmp_name = None
        except OSError as exc:
            raise LedgerIOError(f"Failed to save ledger {self.path}: {exc}") from exc
        finally:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)
        LOGGER.debug("Saved ledger %s", self.path)

    @classmethod
    def rebuild(
        cls,
        path: Path,
        notion: Any,
        paper_database_id: str,
        author_database_id: str,
    ) -> Ledger:
        """Recreate the ledger from the Notion paper and author databases, then save it."""
        ledger = cls(path=path)

        paper_filter = {"property": "Status", "status": {"is_not_empty": True}}
        for page in notion.query_database(paper_database_id, paper_filter):
            properties = page.get("properties", {})
            ledger.append_paper(
                PaperEntry(
                    title=notion.property_text(properties.get("Title")),
                    arxiv_id=notion.property_text(properties.get("arXiv ID")),
                    ss_id=notion.property_text(properties.get("SS ID")),
                    page_id=str(page.get("id", "")),
                )
            )
        LOGGER.info("Rebuild: loaded %s papers from Notion", len(ledger.papers))

        author_filter = {"property": "Name", "rich_text": {"is_not_empty": True}}
        for page in notion.query_database(author_database_id, author_filter):
            properties = page.get("properties", {})
            ledger.append_author(
                AuthorEntry(
                    name=notion.property_text(properties.get("Name")),
                    ss_id=notion.property_text(properties.get("SS ID")),
                    page_id=str(page.get("id", "")),
                )
            )
        LOGGER.info("Rebuild: loaded %s authors from Notion", len(ledger.authors))

        ledger.persist()
        return ledger


def _entry_list(raw: dict[str, Any], key: str, path: Path) -> list[dict[str, Any]]:
    entries = raw.get(key) or []
    if not isinstance(entries, list) or not all(isinstance(entry, dict) for entry in entries):
        raise LedgerIOError(f"Failed to load ledger {path}: {key} must be a list of objects")
    return entries
