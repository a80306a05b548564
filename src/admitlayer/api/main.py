from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from admitlayer import __version__
from admitlayer.api.routes import health, mutate
from admitlayer.config import get_settings
from admitlayer.logging import configure_logging
from admitlayer.policies.cache import PolicyLister
from admitlayer.webhooks.mutation import MutationHandler


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    configure_logging(settings.log_level, component="admission", json=settings.log_json)
    yield


def create_app(
    mutation_handler: MutationHandler | None = None,
    policy_lister: PolicyLister | None = None,
) -> FastAPI:
    settings = get_settings()

    app = FastAPI(
        title="admitlayer admission webhook",
        version=__version__,
        docs_url=f"{settings.api_prefix}/docs",
        openapi_url=f"{settings.api_prefix}/openapi.json",
        lifespan=lifespan,
    )
    app.state.mutation_handler = mutation_handler
    app.state.policy_lister = policy_lister

    app.include_router(mutate.router, prefix=settings.api_prefix, tags=["admission"])
    app.include_router(health.router, tags=["health"])
    return app
