from __future__ import annotations

from fastapi import APIRouter, Request, status
from pydantic import BaseModel

from admitlayer import __version__

router = APIRouter()


class HealthResponse(BaseModel):
    status: str
    version: str = __version__


class ReadinessResponse(BaseModel):
    status: str
    mutation_handler: bool
    policies: int


@router.get("/health", response_model=HealthResponse, status_code=status.HTTP_200_OK)
async def health_check() -> HealthResponse:
    """Basic liveness check."""
    return HealthResponse(status="healthy")


@router.get("/ready", response_model=ReadinessResponse, status_code=status.HTTP_200_OK)
async def readiness_check(request: Request) -> ReadinessResponse:
    """Ready once a mutation handler and a policy cache are wired in."""
    handler = getattr(request.app.state, "mutation_handler", None)
    lister = getattr(request.app.state, "policy_lister", None)
    policies = len(lister) if lister is not None and hasattr(lister, "__len__") else 0
    ready = handler is not None and lister is not None
    return ReadinessResponse(
        status="ready" if ready else "not_ready",
        mutation_handler=handler is not None,
        policies=policies,
    )
