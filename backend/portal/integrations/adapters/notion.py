# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Notion Adapter

Creates pages, appends blocks, searches and queries databases through the
Notion API. Every call carries the pinned Notion-Version header.
"""

from typing import Any, Dict, List

from portal.integrations.adapters.base import BaseAdapter, Operation
from portal.integrations.auth import NOTION_API_VERSION
from portal.integrations.models import AdapterResult, RateLimit, ToolAction, ToolCapabilities

NOTION_API_URL = "https://api.notion.com/v1"


def paragraph_blocks(content: Any) -> List[Dict[str, Any]]:
    """Turn plain text (or a list of lines) into paragraph blocks."""
    if not content:
        return []
    if isinstance(content, str):
        lines = [line for line in content.split("\n\n") if line.strip()]
    else:
        lines = [str(line) for line in content]
    return [
        {
            "object": "block",
            "type": "paragraph",
            "paragraph": {"rich_text": [{"type": "text", "text": {"content": line[:2000]}}]},
        }
        for line in lines
    ]


def _page_title(page: Dict[str, Any]) -> str:
    for prop in page.get("properties", {}).values():
        if prop.get("type") == "title":
            return "".join(t.get("plain_text", "") for t in prop.get("title", []))
    return ""


class NotionAdapter(BaseAdapter):
    """Notion API adapter."""

    tool_id = "notion"
    default_send = "create_page"
    default_fetch = "search"

    def auth_headers(self, access_token: str) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {access_token}",
            "Notion-Version": NOTION_API_VERSION,
        }

    def capabilities(self) -> ToolCapabilities:
        return ToolCapabilities(
            id="notion",
            name="Notion",
            description="Create and manage Notion pages and databases",
            actions=[
                ToolAction(
                    name="send",
                    description="Write content (action: create_page | append_block)",
                    parameters={
                        "parent_id": "string",
                        "parent_type": "string",
                        "title": "string",
                        "content": "string",
                        "block_id": "string",
                    },
                ),
                ToolAction(
                    name="fetch",
                    description="Read content (action: search | get_page | query_database)",
                    parameters={"query": "string", "page_id": "string", "database_id": "string"},
                ),
            ],
            rate_limit=RateLimit(requests=30, window="1m"),
            requires_auth=True,
        )

    @property
    def send_operations(self) -> Dict[str, Operation]:
        return {
            "create_page": self.create_page,
            "append_block": self.append_block,
        }

    @property
    def fetch_operations(self) -> Dict[str, Operation]:
        return {
            "search": self.search,
            "get_page": self.get_page,
            "query_database": self.query_database,
        }

    async def create_page(self, access_token: str, params: Dict[str, Any]) -> AdapterResult:
        parent_id = params["parent_id"]
        title = params.get("title", "Untitled")

        if params.get("parent_type", "page") == "database":
            parent = {"database_id": parent_id}
            properties = {"Name": {"title": [{"text": {"content": title}}]}}
        else:
            parent = {"page_id": parent_id}
            properties = {"title": {"title": [{"text": {"content": title}}]}}

        body = await self.request("POST", f"{NOTION_API_URL}/pages", access_token, json={
            "parent": parent,
            "properties": properties,
            "children": paragraph_blocks(params.get("content")),
        })
        return AdapterResult.ok(
            f"Page '{title}' created",
            data={"pageId": body.get("id"), "url": body.get("url")},
        )

    async def append_block(self, access_token: str, params: Dict[str, Any]) -> AdapterResult:
        block_id = params["block_id"]
        body = await self.request(
            "PATCH",
            f"{NOTION_API_URL}/blocks/{block_id}/children",
            access_token,
            json={"children": paragraph_blocks(params["content"])},
        )
        results = body.get("results", [])
        return AdapterResult.ok(
            f"Appended {len(results)} blocks",
            data={"blockId": block_id, "blocks": [r.get("id") for r in results]},
        )

    async def search(self, access_token: str, params: Dict[str, Any]) -> AdapterResult:
        payload: Dict[str, Any] = {"page_size": params.get("limit", 20)}
        if params.get("query"):
            payload["query"] = params["query"]
        if params.get("filter") in ("page", "database"):
            payload["filter"] = {"property": "object", "value": params["filter"]}

        body = await self.request("POST", f"{NOTION_API_URL}/search", access_token, json=payload)
        results = [
            {"id": r.get("id"), "object": r.get("object"), "title": _page_title(r), "url": r.get("url")}
            for r in body.get("results", [])
        ]
        return AdapterResult.ok(f"Found {len(results)} results", data={"results": results})

    async def get_page(self, access_token: str, params: Dict[str, Any]) -> AdapterResult:
        page_id = params["page_id"]
        body = await self.request("GET", f"{NOTION_API_URL}/pages/{page_id}", access_token)
        return AdapterResult.ok(
            f"Fetched page {page_id}",
            data={
                "id": body.get("id"),
                "title": _page_title(body),
                "url": body.get("url"),
                "properties": body.get("properties", {}),
                "lastEditedTime": body.get("last_edited_time"),
            },
        )

    async def query_database(self, access_token: str, params: Dict[str, Any]) -> AdapterResult:
        database_id = params["database_id"]
        payload: Dict[str, Any] = {"page_size": params.get("limit", 50)}
        if params.get("filter"):
            payload["filter"] = params["filter"]
        if params.get("sorts"):
            payload["sorts"] = params["sorts"]

        body = await self.request(
            "POST", f"{NOTION_API_URL}/databases/{database_id}/query", access_token, json=payload
        )
        rows = body.get("results", [])
        return AdapterResult.ok(
            f"Database returned {len(rows)} rows",
            data={"results": rows, "hasMore": body.get("has_more", False)},
        )
