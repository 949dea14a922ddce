# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Gmail Adapter

Sends mail and drafts (RFC 822 messages, base64url encoded in ``raw``),
lists and reads messages and labels through the Gmail REST API.
"""

import base64
from email.message import EmailMessage
from typing import Any, Dict, List

from portal.integrations.adapters.base import BaseAdapter, Operation
from portal.integrations.models import AdapterResult, RateLimit, ToolAction, ToolCapabilities

GMAIL_API_URL = "https://gmail.googleapis.com/gmail/v1/users/me"


def build_raw_message(params: Dict[str, Any]) -> str:
    """Encode an outgoing message the way Gmail expects it in ``raw``."""
    message = EmailMessage()
    to = params["to"]
    message["To"] = ", ".join(to) if isinstance(to, list) else to
    message["Subject"] = params.get("subject", "")
    if params.get("cc"):
        cc = params["cc"]
        message["Cc"] = ", ".join(cc) if isinstance(cc, list) else cc
    if params.get("from"):
        message["From"] = params["from"]

    body = params.get("body", "")
    if params.get("html"):
        message.set_content(body, subtype="html")
    else:
        message.set_content(body)

    return base64.urlsafe_b64encode(message.as_bytes()).decode()


def _headers_by_name(payload: Dict[str, Any]) -> Dict[str, str]:
    return {h.get("name", "").lower(): h.get("value", "") for h in payload.get("headers", [])}


class GmailAdapter(BaseAdapter):
    """Gmail REST API adapter."""

    tool_id = "gmail"
    default_send = "send_email"
    default_fetch = "list_emails"

    def capabilities(self) -> ToolCapabilities:
        return ToolCapabilities(
            id="gmail",
            name="Gmail",
            description="Send and manage emails through Gmail",
            actions=[
                ToolAction(
                    name="send",
                    description="Send mail (action: send_email | create_draft)",
                    parameters={"to": "string", "subject": "string", "body": "string", "html": "boolean"},
                ),
                ToolAction(
                    name="fetch",
                    description="Fetch mail (action: list_emails | get_email | list_labels)",
                    parameters={"query": "string", "max_results": "number", "message_id": "string"},
                ),
            ],
            rate_limit=RateLimit(requests=100, window="1h"),
            requires_auth=True,
        )

    @property
    def send_operations(self) -> Dict[str, Operation]:
        return {
            "send_email": self.send_email,
            "create_draft": self.create_draft,
        }

    @property
    def fetch_operations(self) -> Dict[str, Operation]:
        return {
            "list_emails": self.list_emails,
            "get_email": self.get_email,
            "list_labels": self.list_labels,
        }

    async def send_email(self, access_token: str, params: Dict[str, Any]) -> AdapterResult:
        raw = build_raw_message(params)
        body = await self.request("POST", f"{GMAIL_API_URL}/messages/send", access_token, json={"raw": raw})
        return AdapterResult.ok(
            f"Email sent to {params['to']}",
            data={"messageId": body.get("id"), "threadId": body.get("threadId")},
        )

    async def create_draft(self, access_token: str, params: Dict[str, Any]) -> AdapterResult:
        raw = build_raw_message(params)
        body = await self.request(
            "POST", f"{GMAIL_API_URL}/drafts", access_token, json={"message": {"raw": raw}}
        )
        return AdapterResult.ok("Draft created", data={"draftId": body.get("id")})

    async def list_emails(self, access_token: str, params: Dict[str, Any]) -> AdapterResult:
        query: Dict[str, Any] = {"maxResults": params.get("max_results", 10)}
        if params.get("query"):
            query["q"] = params["query"]
        if params.get("label_ids"):
            query["labelIds"] = params["label_ids"]

        body = await self.request("GET", f"{GMAIL_API_URL}/messages", access_token, params=query)
        messages: List[Dict[str, Any]] = body.get("messages", [])
        return AdapterResult.ok(
            f"Found {len(messages)} emails",
            data={"messages": messages, "resultSizeEstimate": body.get("resultSizeEstimate", 0)},
        )

    async def get_email(self, access_token: str, params: Dict[str, Any]) -> AdapterResult:
        message_id = params["message_id"]
        body = await self.request(
            "GET",
            f"{GMAIL_API_URL}/messages/{message_id}",
            access_token,
            params={"format": params.get("format", "metadata")},
        )
        headers = _headers_by_name(body.get("payload", {}))
        return AdapterResult.ok(
            f"Fetched email {message_id}",
            data={
                "id": body.get("id"),
                "threadId": body.get("threadId"),
                "snippet": body.get("snippet"),
                "labelIds": body.get("labelIds", []),
                "from": headers.get("from"),
                "to": headers.get("to"),
                "subject": headers.get("subject"),
                "date": headers.get("date"),
            },
        )

    async def list_labels(self, access_token: str, params: Dict[str, Any]) -> AdapterResult:
        body = await self.request("GET", f"{GMAIL_API_URL}/labels", access_token)
        labels = [{"id": l.get("id"), "name": l.get("name"), "type": l.get("type")} for l in body.get("labels", [])]
        return AdapterResult.ok(f"Found {len(labels)} labels", data={"labels": labels})
