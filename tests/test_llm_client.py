from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from openai import APIConnectionError

from config import Settings
from errors import ConfigurationError, EmptyDocument, SummarizationExhausted, SummaryDecodeError
from llm_client import (
    CORRECTIVE_TURNS,
    MAX_ATTEMPTS,
    SUMMARY_FIELDS,
    Summarizer,
    _parse_summary_json,
    build_response_format,
    with_corrective_turns,
)
from models import EPOCH, Author, Paper, Section

SUMMARY_PAYLOAD = {
    "is_survey": False,
    "overview": "Overview.",
    "research_question": "Question.",
    "task_category": "machine translation",
    "task_as_words": "machine translation",
    "comparison_with_related_works": "Comparison.",
    "proposed_method": "Method.",
    "datasets": "WMT 2014",
    "domain_as_words": "nlp,cv",
    "experiments": "Experiments.",
    "analysis": "Analysis.",
    "contributions": "Contributions.",
    "future_works": "Future.",
}


def _paper() -> Paper:
    return Paper(
        title="Attention Is All You Need",
        authors=[Author(ss_id="a1", name="Ashish Vaswani")],
        sections=[Section(index=0, title="Introduction", paragraphs=["Recurrent models <dominate>."])],
    )


def _response(content: str | None) -> MagicMock:
    choice = MagicMock()
    choice.message.content = content
    response = MagicMock()
    response.choices = [choice]
    return response


def _transport_error() -> APIConnectionError:
    return APIConnectionError(request=MagicMock())


def _summarizer(client: MagicMock) -> Summarizer:
    return Summarizer(client=client, model_id="gpt-4o-mini", instruction="Be precise.")


def test_response_format_requires_every_field() -> None:
    schema = build_response_format()["json_schema"]["schema"]

    assert schema["required"] == list(SUMMARY_FIELDS)
    assert schema["additionalProperties"] is False
    assert schema["properties"]["is_survey"]["type"] == "boolean"
    assert len(SUMMARY_FIELDS) == 13


def test_build_messages_embeds_escaped_paper_content() -> None:
    messages = _summarizer(MagicMock()).build_messages(_paper())

    assert [m["role"] for m in messages] == ["system", "user", "user", "user", "user"]
    assert "Attention Is All You Need" in messages[1]["content"]
    assert "Be precise." in messages[2]["content"]
    assert "<paragraph>Recurrent models &lt;dominate&gt;.</paragraph>" in messages[3]["content"]


def test_build_messages_without_sections_raises() -> None:
    with pytest.raises(EmptyDocument):
        _summarizer(MagicMock()).build_messages(Paper(title="Empty"))


def test_with_corrective_turns_returns_new_list() -> None:
    original = [{"role": "user", "content": "hi"}]

    extended = with_corrective_turns(original)

    assert len(original) == 1
    assert extended[1:] == list(CORRECTIVE_TURNS)


def test_summarize_succeeds_on_fifth_attempt() -> None:
    client = MagicMock()
    client.chat.completions.create.side_effect = [_transport_error()] * 4 + [_response(json.dumps(SUMMARY_PAYLOAD))]
    paper = _paper()

    with patch("llm_client.time.sleep") as sleep:
        summary = _summarizer(client).summarize(paper)

    assert client.chat.completions.create.call_count == 5
    assert sleep.call_count == 4
    assert paper.summary == summary
    assert summary.domain_as_list() == ["nlp", "cv"]


def test_conversation_grows_by_two_turns_per_retry() -> None:
    client = MagicMock()
    client.chat.completions.create.side_effect = [_transport_error(), _transport_error(), _response(json.dumps(SUMMARY_PAYLOAD))]

    with patch("llm_client.time.sleep"):
        _summarizer(client).summarize(_paper())

    lengths = [len(call.kwargs["messages"]) for call in client.chat.completions.create.call_args_list]
    assert lengths == [5, 7, 9]
    last_messages = client.chat.completions.create.call_args_list[-1].kwargs["messages"]
    assert last_messages[-2:] == list(CORRECTIVE_TURNS)


def test_summarize_exhausts_after_exactly_five_attempts() -> None:
    client = MagicMock()
    client.chat.completions.create.side_effect = _transport_error()
    paper = _paper()

    with patch("llm_client.time.sleep") as sleep:
        with pytest.raises(SummarizationExhausted) as exc_info:
            _summarizer(client).summarize(paper)

    assert client.chat.completions.create.call_count == MAX_ATTEMPTS == 5
    assert sleep.call_count == 4
    assert exc_info.value.attempts == 5
    assert paper.summary is None


def test_empty_response_content_is_retried() -> None:
    client = MagicMock()
    client.chat.completions.create.side_effect = [_response(None), _response(json.dumps(SUMMARY_PAYLOAD))]

    with patch("llm_client.time.sleep"):
        _summarizer(client).summarize(_paper())

    assert client.chat.completions.create.call_count == 2


def test_decode_failure_is_not_retried() -> None:
    client = MagicMock()
    client.chat.completions.create.return_value = _response('{"overview": "only one field"}')
    paper = _paper()

    with patch("llm_client.time.sleep") as sleep:
        with pytest.raises(SummaryDecodeError):
            _summarizer(client).summarize(paper)

    assert client.chat.completions.create.call_count == 1
    sleep.assert_not_called()
    assert paper.summary is None


def test_parse_summary_json_with_wrapping_text() -> None:
    parsed = _parse_summary_json(f"Here you go:\n{json.dumps(SUMMARY_PAYLOAD)}\nThanks!")

    assert parsed["overview"] == "Overview."


def test_parse_summary_json_without_object_raises() -> None:
    with pytest.raises(SummaryDecodeError):
        _parse_summary_json("no json here")


def test_from_settings_requires_api_key() -> None:
    with pytest.raises(ConfigurationError, match="OPENAI_API_KEY"):
        Summarizer.from_settings(Settings())


def test_from_settings_reads_instruction_template(tmp_path: Path) -> None:
    template = tmp_path / "instruction.txt"
    template.write_text("Custom instruction.", encoding="utf-8")
    settings = Settings(openai_api_key="sk-test", instruction_path=str(template), model_id="gpt-4o")

    with patch("llm_client.OpenAI") as openai_cls:
        summarizer = Summarizer.from_settings(settings)

    openai_cls.assert_called_once_with(api_key="sk-test")
    assert summarizer.instruction == "Custom instruction."
    assert summarizer.model_id == "gpt-4o"


def test_build_messages_appends_reference_list_when_known() -> None:
    paper = _paper()
    paper.references = [
        Paper.reference(ss_id="r1", title="Layer Normalization", abstract="", authors=[], published_at=EPOCH)
    ]

    content = _summarizer(MagicMock()).build_messages(paper)[3]["content"]

    assert "</paper>\n\n<references><reference><title>Layer Normalization</title>" in content
    assert "<references>" not in _summarizer(MagicMock()).build_messages(_paper())[3]["content"]
