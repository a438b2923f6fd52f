"""Full-text acquisition: fetch a paper PDF and split it into titled sections."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from xml.sax.saxutils import escape

import fitz  # PyMuPDF
import requests

from errors import EmptyDocument, TransportError
from models import Paper, Section

REQUEST_TIMEOUT_SECONDS = 60
MIN_SECTION_COUNT = 4

LOGGER = logging.getLogger(__name__)

_UNNUMBERED_HEADINGS = (
    "abstract",
    "introduction",
    "related work",
    "related works",
    "background",
    "preliminaries",
    "method",
    "methods",
    "methodology",
    "experiments",
    "results",
    "discussion",
    "conclusion",
    "conclusions",
    "limitations",
    "acknowledgements",
    "acknowledgments",
    "references",
    "appendix",
)
_NUMBERED_HEADING_RE = re.compile(r"^(?:\d{1,2}(?:\.\d{1,2})*|[IVX]{1,4})\.?\s+([A-Z][^\n]{1,80})$")
_STOP_HEADINGS = frozenset({"references", "bibliography"})
_HYPHEN_BREAK_RE = re.compile(r"(\w)-\n(\w)")


class DocumentReader:
    """Turns a PDF (local path or URL) into an ordered list of sections."""

    def __init__(self, session: requests.Session | None = None) -> None:
        self._session = session or requests.Session()

    def read(self, source: str) -> list[Section]:
        if not source:
            raise EmptyDocument("Failed to get original text: no PDF path or URL")
        text = extract_text(self._load_pdf_bytes(source))
        sections = split_sections(text)
        LOGGER.debug("Parsed %s sections from %s", len(sections), source)
        return sections

    def _load_pdf_bytes(self, source: str) -> bytes:
        if source.startswith(("http://", "https://")):
            try:
                response = self._session.get(source, timeout=REQUEST_TIMEOUT_SECONDS)
                response.raise_for_status()
            except requests.RequestException as exc:
                raise TransportError(f"Failed to download PDF {source}: {exc}") from exc
            return response.content
        try:
            return Path(source).read_bytes()
        except OSError as exc:
            raise EmptyDocument(f"Failed to read PDF {source}: {exc}") from exc


def extract_text(pdf_bytes: bytes) -> str:
    """Text blocks of every page, separated by blank lines."""
    try:
        with fitz.open(stream=pdf_bytes, filetype="pdf") as doc:
            blocks = [
                block[4]
                for page in doc
                for block in page.get_text("blocks")
                if block[6] == 0
            ]
    except (RuntimeError, ValueError) as exc:
        raise EmptyDocument(f"Failed to parse PDF: {exc}") from exc
    return "\n\n".join(blocks)


def split_sections(text: str) -> list[Section]:
    """Group lines under detected headings; paragraphs are separated by blank lines.

    Text before the first heading is dropped, as is everything from the
    reference list onwards.
    """
    text = _HYPHEN_BREAK_RE.sub(r"\1\2", text)
    sections: list[Section] = []
    current: Section | None = None
    buffer: list[str] = []

    def flush_paragraph() -> None:
        if current is not None and buffer:
            paragraph = " ".join(buffer).strip()
            if paragraph:
                current.paragraphs.append(paragraph)
        buffer.clear()

    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line:
            flush_paragraph()
            continue

        heading = _heading_title(line)
        if heading is not None:
            flush_paragraph()
            if heading.lower() in _STOP_HEADINGS:
                current = None
                break
            current = Section(index=len(sections), title=heading)
            sections.append(current)
            continue

        if current is not None:
            buffer.append(line)

    flush_paragraph()
    return [section for section in sections if section.paragraphs]


def _heading_title(line: str) -> str | None:
    if line.lower().rstrip(":") in _UNNUMBERED_HEADINGS:
        return line.rstrip(":")
    match = _NUMBERED_HEADING_RE.match(line)
    if match and not match.group(1).endswith("."):
        return match.group(1).strip()
    return None


def paper_to_xml(paper: Paper) -> str:
    """Tagged rendition of metadata and sections, as sent to the language model."""
    parts = ["<paper>", "<metadata>", f"<title>{escape(paper.title)}</title>", "<authors>"]
    parts.extend(f"<author>{escape(author.name)}</author>" for author in paper.authors)
    parts.extend(["</authors>", "</metadata>", "<contents>"])
    for section in sorted(paper.sections, key=lambda s: s.index):
        parts.append("<section>")
        parts.append(f"<title>{escape(section.title)}</title>")
        parts.extend(f"<paragraph>{escape(p)}</paragraph>" for p in section.paragraphs)
        parts.append("</section>")
    parts.extend(["</contents>", "</paper>"])
    return "".join(parts)


def references_to_xml(paper: Paper) -> str:
    parts = ["<references>"]
    for reference in paper.references:
        parts.append("<reference>")
        parts.append(f"<title>{escape(reference.title)}</title>")
        parts.append("<authors>")
        parts.extend(f"<author>{escape(author.name)}</author>" for author in reference.authors)
        parts.append("</authors>")
        parts.append(f"<year>{reference.published_at.year}</year>")
        parts.append(f"<abstract>{escape(reference.abstract)}</abstract>")
        parts.append("</reference>")
    parts.append("</references>")
    return "".join(parts)
