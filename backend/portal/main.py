# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
FastAPI Portal API
Routes agent tool calls to third-party integrations and executes workflows
"""

from pathlib import Path

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from portal import __version__
from portal.api import integrations, workflows
from portal.core.config import get_config, get_oauth_state_secret, load_integration_configs
from portal.core.errors import PortalError
from portal.core.logging import get_service_logger
from portal.integrations.adapters import build_adapter_registry
from portal.integrations.auth import AuthorizationManager
from portal.integrations.credentials import FileCredentialStore
from portal.integrations.mediator import create_mediator
from portal.integrations.oauth_state import OAuthStateSigner
from portal.integrations.router import IntegrationRouter
from portal.workflows.agents import FileAgentDirectory
from portal.workflows.executor import WorkflowExecutor
from portal.workflows.scheduler import WorkflowScheduler
from portal.workflows.store import ExecutionRepository

app = FastAPI(
    title="Agent Portal Integrations",
    description="Integration routing and workflow execution for AI agents",
    version=__version__,
)

# Initialize configuration
config = get_config()
logger = get_service_logger("main")

# CORS for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, specify exact origins
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(integrations.router)
app.include_router(workflows.router)


@app.exception_handler(PortalError)
async def portal_error_handler(request: Request, exc: PortalError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.on_event("startup")
async def startup():
    """
    Startup tasks:
    1. Build the integration stack (credentials, OAuth, mediator, adapters, router)
    2. Build the workflow stack (repository, agent directory, executor, scheduler)
    3. Store services in app.state for dependency injection
    """
    logger.info("Starting portal...")

    http_client = httpx.AsyncClient(timeout=config.http_timeout)
    credentials = FileCredentialStore(Path(config.credentials_path))
    auth_manager = AuthorizationManager(
        load_integration_configs(config),
        http_client=http_client,
        timeout=config.http_timeout,
    )
    mediator = await create_mediator(config)

    router = IntegrationRouter(
        build_adapter_registry(credentials, http_client, config),
        mediator,
        auth_manager=auth_manager,
        credentials=credentials,
        state_signer=OAuthStateSigner(get_oauth_state_secret(), ttl=config.oauth_state_ttl),
        cache_ttl=config.cache_ttl,
    )

    executor = WorkflowExecutor(
        router,
        FileAgentDirectory(Path(config.agents_path)),
        ExecutionRepository(Path(config.executions_path)),
    )

    app.state.http_client = http_client
    app.state.mediator = mediator
    app.state.integration_router = router
    app.state.workflow_executor = executor
    app.state.workflow_scheduler = WorkflowScheduler(executor)
    logger.info("Services stored in app.state")


@app.on_event("shutdown")
async def shutdown():
    """Stop schedules and release connections"""
    scheduler = getattr(app.state, "workflow_scheduler", None)
    if scheduler is not None:
        await scheduler.shutdown()

    mediator = getattr(app.state, "mediator", None)
    if mediator is not None:
        await mediator.close()

    http_client = getattr(app.state, "http_client", None)
    if http_client is not None:
        await http_client.aclose()
    logger.info("Portal stopped")


@app.get("/health")
async def health():
    mediator = getattr(app.state, "mediator", None)
    return {
        "status": "healthy",
        "version": __version__,
        "rateLimitingEnabled": bool(mediator and mediator.available),
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=config.service_host, port=config.service_port)
