# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Integration API Routes

Tool calls, status, discovery and the OAuth connect flow.
Tool-call responses always use the uniform response shape with HTTP 200;
success or failure is carried in the body.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import RedirectResponse

from portal.core.logging import get_api_logger
from portal.dependencies import get_integration_router
from portal.integrations.models import PreferredDispatchRequest, UniversalIntegrationRequest
from portal.integrations.router import IntegrationRouter

router = APIRouter(prefix="/integrations", tags=["integrations"])
logger = get_api_logger()


@router.post("/execute")
async def execute_integration(
    request: UniversalIntegrationRequest,
    integrations: IntegrationRouter = Depends(get_integration_router)
) -> Dict[str, Any]:
    """Run one tool call through the integration router"""
    response = await integrations.execute_integration(request)
    return response.to_wire()


@router.post("/preferred")
async def send_to_preferred(
    request: PreferredDispatchRequest,
    integrations: IntegrationRouter = Depends(get_integration_router)
) -> Dict[str, Any]:
    """Run a tool call on the first connected preferred/fallback tool"""
    response = await integrations.send_to_preferred(
        request.action,
        request.params,
        agent_id=request.agent_id,
        user_id=request.user_id,
        preferred_tools=request.preferred_tools,
        fallback_tools=request.fallback_tools,
    )
    return response.to_wire()


@router.get("/status")
async def get_integration_status(
    user_id: str = Query(..., alias="userId"),
    tool: Optional[str] = None,
    integrations: IntegrationRouter = Depends(get_integration_router)
) -> List[Dict[str, Any]]:
    """Per-tool connection status for a user"""
    statuses = await integrations.get_integration_status(user_id, tool)
    return [status.to_wire() for status in statuses]


@router.get("/tools")
async def get_available_tools(
    integrations: IntegrationRouter = Depends(get_integration_router)
) -> List[Dict[str, Any]]:
    """Capability descriptors of every registered tool"""
    return [capabilities.to_wire() for capabilities in integrations.get_available_tools()]


@router.get("/oauth/{tool}/authorize")
async def authorize(
    tool: str,
    user_id: str = Query(..., alias="userId"),
    redirect: bool = False,
    integrations: IntegrationRouter = Depends(get_integration_router)
):
    """Start the OAuth flow for a tool"""
    auth_url = integrations.generate_auth_url(tool, user_id)
    if auth_url is None:
        raise HTTPException(status_code=404, detail=f"OAuth not configured for tool: {tool}")
    if redirect:
        return RedirectResponse(auth_url)
    return {"tool": tool, "authUrl": auth_url}


@router.get("/oauth/{tool}/callback")
async def oauth_callback(
    tool: str,
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    integrations: IntegrationRouter = Depends(get_integration_router)
) -> Dict[str, Any]:
    """Provider redirect target: verify state, exchange code, store tokens"""
    if error:
        raise HTTPException(status_code=400, detail=f"Authorization denied: {error}")
    if not code or not state:
        raise HTTPException(status_code=400, detail="Missing code or state")

    status = await integrations.complete_authorization(tool, code, state)
    if not status.connected:
        logger.warning(f"OAuth callback failed for {tool}: {status.error}")
        raise HTTPException(status_code=400, detail=status.error)
    return {"tool": tool, **status.to_wire()}


@router.post("/{tool}/refresh")
async def refresh_credentials(
    tool: str,
    user_id: str = Query(..., alias="userId"),
    integrations: IntegrationRouter = Depends(get_integration_router)
) -> Dict[str, Any]:
    """Refresh the stored access token for (user, tool)"""
    status = await integrations.refresh_credentials(user_id, tool)
    if not status.connected:
        raise HTTPException(status_code=400, detail=status.error)
    return {"tool": tool, **status.to_wire()}


@router.get("/{tool}/health")
async def check_health(
    tool: str,
    user_id: str = Query(..., alias="userId"),
    integrations: IntegrationRouter = Depends(get_integration_router)
) -> Dict[str, Any]:
    """Live connectivity probe with the stored token"""
    healthy = await integrations.check_health(user_id, tool)
    return {"tool": tool, "healthy": healthy}
