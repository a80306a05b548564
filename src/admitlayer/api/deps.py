from __future__ import annotations

from fastapi import HTTPException, Request, status

from admitlayer.policies.cache import PolicyLister
from admitlayer.webhooks.mutation import MutationHandler


def get_mutation_handler(request: Request) -> MutationHandler:
    handler = getattr(request.app.state, "mutation_handler", None)
    if handler is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Mutation handler not configured",
        )
    return handler


def get_policy_lister(request: Request) -> PolicyLister:
    lister = getattr(request.app.state, "policy_lister", None)
    if lister is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Policy cache not configured",
        )
    return lister
