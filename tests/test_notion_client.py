from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
import requests

from errors import PersistenceError, TransportError
from notion_client import (
    MAX_TEXT_LENGTH,
    NotionClient,
    heading_block,
    multi_select_property,
    paragraph_block,
    rich_text_property,
    select_property,
    url_property,
)


def _response(status_code: int = 200, payload: object = None) -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload or {}
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.HTTPError(f"{status_code} error", response=response)
    return response


def test_create_page_posts_to_database() -> None:
    session = MagicMock()
    session.request.return_value = _response(payload={"id": "page-1"})
    client = NotionClient("secret", session=session)

    page_id = client.create_page("db-1", {"Name": {"title": []}})

    assert page_id == "page-1"
    kwargs = session.request.call_args.kwargs
    assert kwargs["method"] == "POST"
    assert kwargs["url"].endswith("/pages")
    assert kwargs["json"]["parent"] == {"database_id": "db-1"}
    assert kwargs["headers"]["Authorization"] == "Bearer secret"


def test_create_page_failure_raises_persistence_error() -> None:
    session = MagicMock()
    session.request.return_value = _response(400, {"message": "validation_error"})
    client = NotionClient("secret", session=session)

    with patch("notion_client.time.sleep"):
        with pytest.raises(PersistenceError, match="Failed to create Notion page"):
            client.create_page("db-1", {})


def test_rate_limit_backs_off_then_succeeds() -> None:
    session = MagicMock()
    session.request.side_effect = [_response(429), _response(payload={"id": "page-2"})]
    client = NotionClient("secret", session=session)

    with patch("notion_client.time.sleep") as sleep:
        assert client.create_page("db-1", {}) == "page-2"

    sleep.assert_called_once_with(1.0)


def test_append_blocks_chunks_requests() -> None:
    session = MagicMock()
    session.request.return_value = _response()
    client = NotionClient("secret", session=session)

    client.append_blocks("page-1", [paragraph_block(str(i)) for i in range(150)])

    calls = session.request.call_args_list
    assert len(calls) == 2
    assert calls[0].kwargs["method"] == "PATCH"
    assert calls[0].kwargs["url"].endswith("/blocks/page-1/children")
    assert len(calls[0].kwargs["json"]["children"]) == 100
    assert len(calls[1].kwargs["json"]["children"]) == 50


def test_query_database_follows_cursor() -> None:
    session = MagicMock()
    session.request.side_effect = [
        _response(payload={"results": [{"id": "a"}], "has_more": True, "next_cursor": "c1"}),
        _response(payload={"results": [{"id": "b"}], "has_more": False, "next_cursor": None}),
    ]
    client = NotionClient("secret", session=session)

    pages = list(client.query_database("db-1", {"property": "Name", "rich_text": {"is_not_empty": True}}))

    assert [page["id"] for page in pages] == ["a", "b"]
    second_payload = session.request.call_args_list[1].kwargs["json"]
    assert second_payload["start_cursor"] == "c1"
    assert second_payload["filter"]["property"] == "Name"


def test_query_database_failure_raises_transport_error() -> None:
    session = MagicMock()
    session.request.side_effect = requests.ConnectionError("offline")
    client = NotionClient("secret", session=session)

    with patch("notion_client.time.sleep"):
        with pytest.raises(TransportError):
            list(client.query_database("db-1"))

    assert session.request.call_count == 3


def test_property_text_reads_title_and_rich_text() -> None:
    assert NotionClient.property_text({"title": [{"plain_text": "A"}, {"plain_text": "B"}]}) == "AB"
    assert NotionClient.property_text({"rich_text": [{"plain_text": "x"}]}) == "x"
    assert NotionClient.property_text(None) == ""


def test_property_helpers() -> None:
    assert rich_text_property("") == {"rich_text": []}
    assert len(rich_text_property("x" * 5000)["rich_text"][0]["text"]["content"]) == MAX_TEXT_LENGTH
    assert url_property("") == {"url": None}
    assert select_property("") == {"select": None}
    assert select_property("Neural Information Processing Systems, 2017") == {
        "select": {"name": "Neural Information Processing Systems 2017"}
    }
    assert multi_select_property(["nlp", "nlp", " ", "cv"]) == {"multi_select": [{"name": "nlp"}, {"name": "cv"}]}


def test_block_helpers() -> None:
    heading = heading_block("1. Overview", level=2)

    assert heading["type"] == "heading_2"
    assert heading["heading_2"]["rich_text"][0]["text"]["content"] == "1. Overview"
    assert paragraph_block("   ")["paragraph"]["rich_text"] == []
