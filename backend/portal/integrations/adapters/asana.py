# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Asana Adapter

Creates, updates and files tasks and lists tasks and projects through the
Asana REST API. Asana wraps request and response payloads in ``data``.
"""

from typing import Any, Dict

from portal.integrations.adapters.base import BaseAdapter, Operation
from portal.integrations.models import AdapterResult, RateLimit, ToolAction, ToolCapabilities

ASANA_API_URL = "https://app.asana.com/api/1.0"

TASK_FIELDS = "name,notes,completed,due_on,assignee.name,projects.name,permalink_url"
PROJECT_FIELDS = "name,archived,color,permalink_url"

_TASK_UPDATE_FIELDS = ("name", "notes", "completed", "due_on", "assignee")


def _simplify_task(task: Dict[str, Any]) -> Dict[str, Any]:
    assignee = task.get("assignee") or {}
    return {
        "id": task.get("gid"),
        "name": task.get("name"),
        "notes": task.get("notes"),
        "completed": task.get("completed", False),
        "dueOn": task.get("due_on"),
        "assignee": assignee.get("name"),
        "url": task.get("permalink_url"),
    }


class AsanaAdapter(BaseAdapter):
    """Asana REST API adapter."""

    tool_id = "asana"
    default_send = "create_task"
    default_fetch = "list_tasks"

    def capabilities(self) -> ToolCapabilities:
        return ToolCapabilities(
            id="asana",
            name="Asana",
            description="Create and track tasks and projects in Asana",
            actions=[
                ToolAction(
                    name="send",
                    description="Write tasks (action: create_task | update_task | add_task_to_project)",
                    parameters={
                        "name": "string",
                        "notes": "string",
                        "workspace": "string",
                        "project_id": "string",
                        "task_id": "string",
                    },
                ),
                ToolAction(
                    name="fetch",
                    description="Read tasks (action: list_tasks | list_projects)",
                    parameters={"project_id": "string", "workspace": "string"},
                ),
            ],
            rate_limit=RateLimit(requests=150, window="1m"),
            requires_auth=True,
        )

    @property
    def send_operations(self) -> Dict[str, Operation]:
        return {
            "create_task": self.create_task,
            "update_task": self.update_task,
            "add_task_to_project": self.add_task_to_project,
        }

    @property
    def fetch_operations(self) -> Dict[str, Operation]:
        return {
            "list_tasks": self.list_tasks,
            "list_projects": self.list_projects,
        }

    async def create_task(self, access_token: str, params: Dict[str, Any]) -> AdapterResult:
        task: Dict[str, Any] = {"name": params["name"]}
        if params.get("notes"):
            task["notes"] = params["notes"]
        if params.get("due_on"):
            task["due_on"] = params["due_on"]
        if params.get("assignee"):
            task["assignee"] = params["assignee"]
        if params.get("project_id"):
            task["projects"] = [params["project_id"]]
        else:
            task["workspace"] = params["workspace"]

        body = await self.request(
            "POST",
            f"{ASANA_API_URL}/tasks",
            access_token,
            params={"opt_fields": TASK_FIELDS},
            json={"data": task},
        )
        created = _simplify_task(body.get("data", {}))
        return AdapterResult.ok(f"Task '{params['name']}' created", data=created)

    async def update_task(self, access_token: str, params: Dict[str, Any]) -> AdapterResult:
        task_id = params["task_id"]
        changes = {k: params[k] for k in _TASK_UPDATE_FIELDS if k in params}
        body = await self.request(
            "PUT",
            f"{ASANA_API_URL}/tasks/{task_id}",
            access_token,
            params={"opt_fields": TASK_FIELDS},
            json={"data": changes},
        )
        return AdapterResult.ok(f"Task {task_id} updated", data=_simplify_task(body.get("data", {})))

    async def add_task_to_project(self, access_token: str, params: Dict[str, Any]) -> AdapterResult:
        task_id = params["task_id"]
        project_id = params["project_id"]
        await self.request(
            "POST",
            f"{ASANA_API_URL}/tasks/{task_id}/addProject",
            access_token,
            json={"data": {"project": project_id}},
        )
        return AdapterResult.ok(
            f"Task {task_id} added to project {project_id}",
            data={"taskId": task_id, "projectId": project_id},
        )

    async def list_tasks(self, access_token: str, params: Dict[str, Any]) -> AdapterResult:
        query: Dict[str, Any] = {"opt_fields": TASK_FIELDS, "limit": params.get("limit", 50)}
        if params.get("project_id"):
            query["project"] = params["project_id"]
        else:
            query["assignee"] = params.get("assignee", "me")
            query["workspace"] = params["workspace"]
        if params.get("completed_since"):
            query["completed_since"] = params["completed_since"]

        body = await self.request("GET", f"{ASANA_API_URL}/tasks", access_token, params=query)
        tasks = [_simplify_task(t) for t in body.get("data", [])]
        return AdapterResult.ok(f"Found {len(tasks)} tasks", data={"tasks": tasks})

    async def list_projects(self, access_token: str, params: Dict[str, Any]) -> AdapterResult:
        query: Dict[str, Any] = {"opt_fields": PROJECT_FIELDS, "limit": params.get("limit", 50)}
        if params.get("workspace"):
            query["workspace"] = params["workspace"]
        if "archived" in params:
            query["archived"] = str(bool(params["archived"])).lower()

        body = await self.request("GET", f"{ASANA_API_URL}/projects", access_token, params=query)
        projects = [
            {
                "id": p.get("gid"),
                "name": p.get("name"),
                "archived": p.get("archived", False),
                "url": p.get("permalink_url"),
            }
            for p in body.get("data", [])
        ]
        return AdapterResult.ok(f"Found {len(projects)} projects", data={"projects": projects})
