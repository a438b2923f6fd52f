"""Notion API integration for the paper and author databases."""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Iterator

import requests

from errors import PersistenceError, TransportError

NOTION_API_BASE_URL = "https://api.notion.com/v1"
NOTION_VERSION = "2022-06-28"
REQUEST_TIMEOUT_SECONDS = 30
MAX_RETRIES = 3
MAX_BLOCKS_PER_REQUEST = 100
MAX_TEXT_LENGTH = 1900

LOGGER = logging.getLogger(__name__)


class NotionClient:
    """Minimal Notion REST client: create pages, append blocks, query databases."""

    def __init__(self, api_key: str, session: requests.Session | None = None) -> None:
        self._session = session or requests.Session()
        self._headers = {
            "Authorization": f"Bearer {api_key}",
            "Notion-Version": NOTION_VERSION,
            "Content-Type": "application/json",
        }

    def create_page(self, database_id: str, properties: dict[str, Any]) -> str:
        """Create a page in `database_id` and return its page id."""
        payload = {"parent": {"database_id": database_id}, "properties": properties}
        try:
            response = self._request_with_backoff(
                method="POST",
                url=f"{NOTION_API_BASE_URL}/pages",
                json_payload=payload,
            )
        except TransportError as exc:
            raise PersistenceError(f"Failed to create Notion page: {exc}") from exc

        page_id = response.json().get("id")
        if not page_id:
            raise PersistenceError("Notion page creation returned no page id")
        LOGGER.debug("Created Notion page %s in database %s", page_id, database_id)
        return str(page_id)

    def append_blocks(self, page_id: str, blocks: list[dict[str, Any]]) -> None:
        for start in range(0, len(blocks), MAX_BLOCKS_PER_REQUEST):
            chunk = blocks[start : start + MAX_BLOCKS_PER_REQUEST]
            try:
                self._request_with_backoff(
                    method="PATCH",
                    url=f"{NOTION_API_BASE_URL}/blocks/{page_id}/children",
                    json_payload={"children": chunk},
                )
            except TransportError as exc:
                raise PersistenceError(f"Failed to update page content: {exc}") from exc

    def query_database(self, database_id: str, filter_: dict[str, Any] | None = None) -> Iterator[dict[str, Any]]:
        """Yield every page of a database query, following pagination cursors."""
        payload: dict[str, Any] = {"page_size": 100}
        if filter_ is not None:
            payload["filter"] = filter_

        while True:
            response = self._request_with_backoff(
                method="POST",
                url=f"{NOTION_API_BASE_URL}/databases/{database_id}/query",
                json_payload=payload,
            )
            body = response.json()
            yield from body.get("results", [])
            if not body.get("has_more") or not body.get("next_cursor"):
                return
            LOGGER.debug("Notion query on %s continues at cursor %s", database_id, body["next_cursor"])
            payload["start_cursor"] = body["next_cursor"]

    @staticmethod
    def property_text(prop: dict[str, Any] | None) -> str:
        """Plain text of a title or rich_text property value."""
        if not isinstance(prop, dict):
            return ""
        fragments = prop.get("title") or prop.get("rich_text") or []
        return "".join(str(f.get("plain_text", "")) for f in fragments if isinstance(f, dict))

    def _request_with_backoff(
        self,
        *,
        method: str,
        url: str,
        json_payload: dict[str, Any],
    ) -> requests.Response:
        """Send a Notion request with simple exponential backoff for rate limits."""
        delay_seconds = 1.0
        last_error: Exception | None = None

        for attempt in range(1, MAX_RETRIES + 1):
            try:
                response = self._session.request(
                    method=method,
                    url=url,
                    headers=self._headers,
                    json=json_payload,
                    timeout=REQUEST_TIMEOUT_SECONDS,
                )
                if response.status_code == 429 and attempt < MAX_RETRIES:
                    LOGGER.warning("Notion rate limit hit, retrying in %ss", delay_seconds)
                    time.sleep(delay_seconds)
                    delay_seconds *= 2
                    continue
                response.raise_for_status()
                return response
            except requests.RequestException as exc:
                last_error = exc
                if attempt >= MAX_RETRIES:
                    break
                time.sleep(delay_seconds)
                delay_seconds *= 2

        response_text = ""
        if isinstance(last_error, requests.HTTPError) and last_error.response is not None:
            try:
                response_text = json.dumps(last_error.response.json())
            except ValueError:
                response_text = last_error.response.text

        raise TransportError(f"Notion API request failed after retries: {last_error} {response_text}")


def title_property(text: str) -> dict[str, Any]:
    return {"title": [{"text": {"content": _truncate(text)}}]}


def rich_text_property(text: str) -> dict[str, Any]:
    if not text:
        return {"rich_text": []}
    return {"rich_text": [{"text": {"content": _truncate(text)}}]}


def number_property(value: int | float) -> dict[str, Any]:
    return {"number": value}


def url_property(url: str) -> dict[str, Any]:
    return {"url": url or None}


def select_property(name: str) -> dict[str, Any]:
    option = _option_name(name)
    return {"select": {"name": option} if option else None}


def status_property(name: str) -> dict[str, Any]:
    return {"status": {"name": name}}


def multi_select_property(names: list[str]) -> dict[str, Any]:
    options: list[dict[str, str]] = []
    seen: set[str] = set()
    for name in names:
        option = _option_name(name)
        if option and option not in seen:
            seen.add(option)
            options.append({"name": option})
    return {"multi_select": options}


def relation_property(page_ids: list[str]) -> dict[str, Any]:
    return {"relation": [{"id": page_id} for page_id in page_ids]}


def heading_block(text: str, level: int = 2) -> dict[str, Any]:
    kind = f"heading_{level}"
    return {"object": "block", "type": kind, kind: {"rich_text": _rich_text(text)}}


def paragraph_block(text: str) -> dict[str, Any]:
    return {"object": "block", "type": "paragraph", "paragraph": {"rich_text": _rich_text(text)}}


def _rich_text(text: str) -> list[dict[str, Any]]:
    return [{"type": "text", "text": {"content": _truncate(text)}}] if text.strip() else []


def _option_name(name: str) -> str:
    # Notion rejects commas in select option names and caps them at 100 characters.
    return " ".join(name.replace(",", " ").split())[:100]


def _truncate(text: str, max_len: int = MAX_TEXT_LENGTH) -> str:
    value = text.strip()
    return value if len(value) <= max_len else f"{value[: max_len - 3]}..."
