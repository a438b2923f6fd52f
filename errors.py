"""Exception types raised across the paper ingestion pipeline."""

from __future__ import annotations


class PipelineError(RuntimeError):
    """Base class for every error the pipeline raises on purpose."""


class ConfigurationError(PipelineError):
    """A required setting is missing or the config file cannot be read."""


class NoSimilarMatch(PipelineError):
    """No candidate from a metadata source was similar enough to the query title."""

    def __init__(self, query_title: str, best_title: str | None, score: float) -> None:
        self.query_title = query_title
        self.best_title = best_title
        self.score = score
        if best_title is None:
            message = f"No similar paper found: no candidates returned for {query_title!r}"
        else:
            message = (
                f"No similar paper found: most similar paper: "
                f"{query_title!r} vs {best_title!r} ({score:.3f})"
            )
        super().__init__(message)


class TransportError(PipelineError):
    """A metadata source or API endpoint could not be reached or answered badly."""


class EmptyDocument(PipelineError):
    """The paper has no full-text content to work with."""


class DocumentTooShort(PipelineError):
    """The parsed document has too few sections to be a full paper."""

    def __init__(self, section_count: int, minimum: int) -> None:
        self.section_count = section_count
        self.minimum = minimum
        super().__init__(
            f"The paper is too short: {section_count} sections (minimum {minimum})"
        )


class SummarizationExhausted(PipelineError):
    """Every summarization attempt failed at the transport/response level."""

    def __init__(self, attempts: int, last_error: Exception | None) -> None:
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Failed to summarize after {attempts} attempts: {last_error}")


class SummaryDecodeError(PipelineError):
    """The model answered, but the payload is not a valid summary."""


class PersistenceError(PipelineError):
    """A write to the destination store failed."""


class LedgerIOError(PipelineError):
    """The ledger file could not be read or written."""
