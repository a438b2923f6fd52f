"""OpenAI client that turns a paper's full text into a structured Summary."""

from __future__ import annotations

import json
import logging
import time
from json import JSONDecodeError
from pathlib import Path
from typing import Any

from openai import OpenAI, OpenAIError

from config import Settings
from document import paper_to_xml, references_to_xml
from errors import ConfigurationError, EmptyDocument, SummarizationExhausted, SummaryDecodeError, TransportError
from models import Paper, Summary

MAX_ATTEMPTS = 5
RETRY_WAIT_SECONDS = 1.0
TEMPERATURE = 1.0

LOGGER = logging.getLogger(__name__)

SYSTEM_PROMPT = "You are an excellent research assistant."

DEFAULT_INSTRUCTION = """Summarize the paper for a researcher who has not read it.
- Base every statement on the paper's own text; do not invent results or datasets.
- Name methods, datasets and baselines exactly as the paper does.
- Prefer concrete numbers from the experiments over vague qualitative claims.
- Write in plain, precise English without marketing language.
- Fill every field of the response schema; use an empty string only when the paper is silent.
"""

# Appended after every failed attempt; the conversation keeps growing.
CORRECTIVE_TURNS: tuple[dict[str, str], ...] = (
    {"role": "system", "content": "Respond in the required JSON format."},
    {"role": "user", "content": "Please summarize."},
)

SUMMARY_FIELDS: dict[str, tuple[str, str]] = {
    "is_survey": (
        "boolean",
        "Whether this paper is a survey paper (true/false).",
    ),
    "overview": (
        "string",
        "Overview of the paper in about three sentences.",
    ),
    "research_question": (
        "string",
        "The research question, including its background and relation to prior work, "
        "in about four detailed sentences.",
    ),
    "task_category": (
        "string",
        "The task category of the paper, e.g. machine reading comprehension, "
        "machine translation or text classification for natural language processing.",
    ),
    "task_as_words": (
        "string",
        "The task category as comma-separated words.",
    ),
    "comparison_with_related_works": (
        "string",
        "The novelty of the paper compared with related work, citing prior studies "
        "where possible, in about four detailed sentences.",
    ),
    "proposed_method": (
        "string",
        "The proposed method explained step by step in about four detailed sentences.",
    ),
    "datasets": (
        "string",
        "The datasets used in the paper, as a list.",
    ),
    "domain_as_words": (
        "string",
        "The domains targeted by the experiments as comma-separated words.",
    ),
    "experiments": (
        "string",
        "The experimental setup and results in about four detailed sentences.",
    ),
    "analysis": (
        "string",
        "The analysis of the experimental results in about four detailed sentences.",
    ),
    "contributions": (
        "string",
        "The contributions of the paper as a list.",
    ),
    "future_works": (
        "string",
        "Open problems and future research directions in about three detailed sentences.",
    ),
}


def build_response_format() -> dict[str, Any]:
    """Strict JSON-schema response format for the summary."""
    return {
        "type": "json_schema",
        "json_schema": {
            "name": "summary",
            "strict": True,
            "schema": {
                "type": "object",
                "properties": {
                    name: {"type": kind, "description": description}
                    for name, (kind, description) in SUMMARY_FIELDS.items()
                },
                "required": list(SUMMARY_FIELDS),
                "additionalProperties": False,
            },
        },
    }


def with_corrective_turns(messages: list[dict[str, str]]) -> list[dict[str, str]]:
    """Return a new conversation with the corrective turns appended."""
    return [*messages, *(dict(turn) for turn in CORRECTIVE_TURNS)]


class Summarizer:
    """Requests a schema-constrained summary, retrying transport failures.

    Transport and response-object errors are retried up to `max_attempts`
    times; a response that arrives but cannot be decoded into a Summary
    raises SummaryDecodeError immediately.
    """

    def __init__(
        self,
        client: OpenAI,
        model_id: str,
        instruction: str = DEFAULT_INSTRUCTION,
        max_attempts: int = MAX_ATTEMPTS,
        wait_seconds: float = RETRY_WAIT_SECONDS,
    ) -> None:
        self.client = client
        self.model_id = model_id
        self.instruction = instruction
        self.max_attempts = max_attempts
        self.wait_seconds = wait_seconds

    @classmethod
    def from_settings(cls, settings: Settings) -> Summarizer:
        settings.require("openai_api_key")
        instruction = DEFAULT_INSTRUCTION
        if settings.instruction_path:
            try:
                instruction = Path(settings.instruction_path).read_text(encoding="utf-8")
            except OSError as exc:
                raise ConfigurationError(
                    f"Failed to read instruction template {settings.instruction_path}: {exc}"
                ) from exc
        return cls(
            client=OpenAI(api_key=settings.openai_api_key),
            model_id=settings.model_id,
            instruction=instruction,
        )

    def build_messages(self, paper: Paper) -> list[dict[str, str]]:
        if not paper.sections:
            raise EmptyDocument(f"Failed to build prompt: original text is empty for {paper.title!r}")
        content = paper_to_xml(paper)
        if paper.references:
            content = f"{content}\n\n{references_to_xml(paper)}"
        return [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": f"Prepare to summarize this paper: {paper.title}"},
            {
                "role": "user",
                "content": f"Follow these instructions when summarizing:\n\n{self.instruction}",
            },
            {
                "role": "user",
                "content": f"The content of the paper follows.\n\n{content}",
            },
            {"role": "user", "content": "Summarize the paper:"},
        ]

    def summarize(self, paper: Paper) -> Summary:
        """Summarize `paper` and store the result on it; raises on failure."""
        messages = self.build_messages(paper)
        response_format = build_response_format()
        last_error: Exception | None = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                content = self._request(messages, response_format)
            except (OpenAIError, TransportError) as exc:
                last_error = exc
                remaining = self.max_attempts - attempt
                LOGGER.warning(
                    "Summarization failed for %r on attempt %s/%s (%s left): %s",
                    paper.title,
                    attempt,
                    self.max_attempts,
                    remaining,
                    exc,
                )
                if remaining:
                    time.sleep(self.wait_seconds)
                    messages = with_corrective_turns(messages)
                continue

            summary = Summary.from_payload(_parse_summary_json(content))
            paper.summary = summary
            LOGGER.info("Summarization succeeded for %r on attempt %s", paper.title, attempt)
            return summary

        raise SummarizationExhausted(self.max_attempts, last_error)

    def _request(self, messages: list[dict[str, str]], response_format: dict[str, Any]) -> str:
        response = self.client.chat.completions.create(
            model=self.model_id,
            messages=messages,
            temperature=TEMPERATURE,
            response_format=response_format,
        )
        try:
            content = response.choices[0].message.content
        except (AttributeError, IndexError, TypeError) as exc:
            raise TransportError(f"Unexpected OpenAI response shape: {response!r}") from exc
        if not content:
            raise TransportError("OpenAI returned an empty response")
        return content


def _parse_summary_json(content: str) -> dict[str, Any]:
    """Parse possibly noisy model output into a strict JSON object."""
    try:
        parsed = json.loads(content)
    except JSONDecodeError:
        parsed = _extract_first_json_object(content)

    if not isinstance(parsed, dict):
        raise SummaryDecodeError("Expected JSON object from OpenAI response")
    return parsed


def _extract_first_json_object(content: str) -> dict[str, Any]:
    """Extract the first decodable JSON object from an arbitrary string."""
    decoder = json.JSONDecoder()
    for index, char in enumerate(content):
        if char != "{":
            continue
        try:
            candidate, _ = decoder.raw_decode(content[index:])
        except JSONDecodeError:
            continue
        if isinstance(candidate, dict):
            return candidate
    raise SummaryDecodeError("Could not extract valid JSON object from OpenAI output")
