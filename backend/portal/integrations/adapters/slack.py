# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Slack Adapter

Posts and schedules messages, lists channels, users and channel history
through the Slack Web API.
"""

from typing import Any, Dict

from portal.core.errors import UpstreamProviderError
from portal.integrations.adapters.base import BaseAdapter, Operation
from portal.integrations.models import AdapterResult, RateLimit, ToolAction, ToolCapabilities

SLACK_API_URL = "https://slack.com/api"


class SlackAdapter(BaseAdapter):
    """Slack Web API adapter."""

    tool_id = "slack"
    default_send = "send_message"
    default_fetch = "list_channels"

    def capabilities(self) -> ToolCapabilities:
        return ToolCapabilities(
            id="slack",
            name="Slack",
            description="Send messages and manage Slack workspaces",
            actions=[
                ToolAction(
                    name="send",
                    description="Send a message (action: send_message | schedule_message)",
                    parameters={"channel": "string", "text": "string", "post_at": "number"},
                ),
                ToolAction(
                    name="fetch",
                    description="Fetch data (action: list_channels | channel_history | list_users)",
                    parameters={"channel": "string", "limit": "number"},
                ),
            ],
            rate_limit=RateLimit(requests=50, window="1m"),
            requires_auth=True,
        )

    @property
    def send_operations(self) -> Dict[str, Operation]:
        return {
            "send_message": self.send_message,
            "schedule_message": self.schedule_message,
        }

    @property
    def fetch_operations(self) -> Dict[str, Operation]:
        return {
            "list_channels": self.list_channels,
            "channel_history": self.channel_history,
            "list_users": self.list_users,
        }

    async def _call(self, method: str, api_method: str, access_token: str, **kwargs: Any) -> Dict[str, Any]:
        body = await self.request(method, f"{SLACK_API_URL}/{api_method}", access_token, **kwargs)
        # Slack signals errors in the body of a 200 response
        if not body.get("ok"):
            raise UpstreamProviderError(self.tool_id, 200, body)
        return body

    async def send_message(self, access_token: str, params: Dict[str, Any]) -> AdapterResult:
        body = await self._call("POST", "chat.postMessage", access_token, json={
            "channel": params["channel"],
            "text": params["text"],
            **({"thread_ts": params["thread_ts"]} if params.get("thread_ts") else {}),
        })
        return AdapterResult.ok(
            f"Message sent to {params['channel']}",
            data={"channel": body.get("channel"), "ts": body.get("ts"), "message": body.get("message")},
        )

    async def schedule_message(self, access_token: str, params: Dict[str, Any]) -> AdapterResult:
        body = await self._call("POST", "chat.scheduleMessage", access_token, json={
            "channel": params["channel"],
            "text": params["text"],
            "post_at": int(params["post_at"]),
        })
        return AdapterResult.ok(
            f"Message scheduled for {params['channel']}",
            data={
                "channel": body.get("channel"),
                "scheduledMessageId": body.get("scheduled_message_id"),
                "postAt": body.get("post_at"),
            },
        )

    async def list_channels(self, access_token: str, params: Dict[str, Any]) -> AdapterResult:
        body = await self._call("GET", "conversations.list", access_token, params={
            "limit": params.get("limit", 100),
            "exclude_archived": "true",
        })
        channels = [
            {"id": c.get("id"), "name": c.get("name"), "isPrivate": c.get("is_private", False)}
            for c in body.get("channels", [])
        ]
        return AdapterResult.ok(f"Found {len(channels)} channels", data={"channels": channels})

    async def channel_history(self, access_token: str, params: Dict[str, Any]) -> AdapterResult:
        body = await self._call("GET", "conversations.history", access_token, params={
            "channel": params["channel"],
            "limit": params.get("limit", 20),
        })
        messages = body.get("messages", [])
        return AdapterResult.ok(
            f"Fetched {len(messages)} messages from {params['channel']}",
            data={"channel": params["channel"], "messages": messages},
        )

    async def list_users(self, access_token: str, params: Dict[str, Any]) -> AdapterResult:
        body = await self._call("GET", "users.list", access_token, params={"limit": params.get("limit", 100)})
        users = [
            {"id": u.get("id"), "name": u.get("name"), "realName": u.get("real_name")}
            for u in body.get("members", [])
            if not u.get("deleted")
        ]
        return AdapterResult.ok(f"Found {len(users)} users", data={"users": users})
