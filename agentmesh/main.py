"""FastAPI entry-point exposing orchestrator controls."""
from __future__ import annotations

import os
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from agentmesh.api.routes import router as agents_router
from agentmesh.runtime import get_orchestrator


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifecycle manager for FastAPI application."""
    orchestrator = get_orchestrator()
    await orchestrator.start()
    yield
    await orchestrator.stop()


app = FastAPI(title="Agent Orchestrator", lifespan=lifespan)
app.include_router(agents_router)


@app.get("/health")
async def health() -> dict:
    return {"status": "ok"}


def serve() -> None:
    """Run the API with uvicorn, honouring ``AGENTMESH_HOST`` and ``AGENTMESH_PORT``."""
    uvicorn.run(
        "agentmesh.main:app",
        host=os.environ.get("AGENTMESH_HOST", "127.0.0.1"),
        port=int(os.environ.get("AGENTMESH_PORT", "8000")),
    )
