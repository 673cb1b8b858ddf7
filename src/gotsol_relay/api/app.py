"""FastAPI application factory."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .. import __version__
from ..config import RelaySettings, get_settings
from .dependencies import RelayDependencies, build_dependencies, get_deps
from .errors import register_exception_handlers
from .routers import health, merchants, payments, prices, transactions

logger = logging.getLogger(__name__)

# Headers Solana Actions clients expect on every relay response
ACTIONS_CORS_HEADERS = [
    "Content-Type",
    "Authorization",
    "Content-Encoding",
    "Accept-Encoding",
    "X-Action-Version",
    "X-Blockchain-Ids",
]


def create_app(
    settings: Optional[RelaySettings] = None,
    deps: Optional[RelayDependencies] = None,
) -> FastAPI:
    """
    Build the relay application.

    Without ``deps`` the production object graph is wired from settings,
    which loads the fee-payer key; a missing or invalid key raises
    FeePayerLoadError and the service does not start.
    """
    settings = settings or (deps.settings if deps else get_settings())
    deps = deps or build_dependencies(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info(
            "GotSOL relay %s starting (environment=%s, default network=%s)",
            __version__, settings.environment, settings.default_network.value,
        )
        yield
        await deps.close()
        logger.info("GotSOL relay stopped")

    app = FastAPI(
        title="GotSOL Relay",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "PUT", "OPTIONS"],
        allow_headers=ACTIONS_CORS_HEADERS,
        expose_headers=["X-Action-Version", "X-Blockchain-Ids"],
    )
    register_exception_handlers(app)

    app.dependency_overrides[get_deps] = lambda: deps

    app.include_router(health.router, tags=["health"])
    app.include_router(payments.router, prefix="/api/payment", tags=["payments"])
    app.include_router(transactions.router, prefix="/api/transactions", tags=["transactions"])
    app.include_router(merchants.router, prefix="/api/merchants", tags=["merchants"])
    app.include_router(prices.router, prefix="/api/price", tags=["prices"])

    return app
