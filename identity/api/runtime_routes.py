"""Runtime route registration for health, maintenance and lifecycle hooks."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Callable

from fastapi import Depends, FastAPI

from identity.api.contracts import ApiErrorResponse, HealthResponse, SweepResponse
from identity.auth.blacklist import BlacklistSweeper
from identity.auth.middleware import require_role

ADMIN_ROLE = "ROLE_ADMIN"


@dataclass(frozen=True)
class RuntimeRouteDeps:
    """Dependencies required to mount runtime routes."""

    sweeper: BlacklistSweeper
    on_shutdown: Callable[[], None]


def register_runtime_routes(app: FastAPI, *, deps: RuntimeRouteDeps) -> None:
    """Register health/maintenance endpoints and the sweeper lifecycle hooks."""

    @app.on_event("startup")
    async def startup_blacklist_sweeper() -> None:
        await deps.sweeper.start()

    @app.on_event("shutdown")
    async def shutdown_blacklist_sweeper() -> None:
        await deps.sweeper.stop()
        deps.on_shutdown()

    @app.get(
        "/api/health",
        response_model=HealthResponse,
    )
    def health() -> HealthResponse:
        return HealthResponse(status="ok")

    @app.post(
        "/api/admin/blacklist/sweep",
        response_model=SweepResponse,
        responses={401: {"model": ApiErrorResponse}, 403: {"model": ApiErrorResponse}},
        dependencies=[Depends(require_role(ADMIN_ROLE))],
    )
    async def sweep_blacklist() -> SweepResponse:
        """Purge expired blacklist rows now instead of waiting for the next run."""
        removed = await asyncio.to_thread(deps.sweeper.sweep_once)
        return SweepResponse(removed=removed)
