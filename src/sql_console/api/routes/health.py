"""Health and readiness endpoints for monitoring.

Provides:
- GET /health - Returns application health status
- GET /ready - Returns readiness for traffic
"""

from __future__ import annotations

from fastapi import APIRouter, Response
from pydantic import BaseModel, Field

from sql_console import __version__
from sql_console.query.engine import get_engine

router = APIRouter(tags=["health"])


class ComponentHealth(BaseModel):
    """Health status of a component."""

    healthy: bool = Field(..., description="Whether the component is healthy.")
    error: str | None = Field(default=None, description="Error message if unhealthy.")


class HealthResponse(BaseModel):
    """Response for health check endpoint."""

    status: str = Field(..., description="Overall status: healthy, degraded, or unhealthy.")
    version: str = Field(..., description="Application version.")
    components: dict[str, ComponentHealth] = Field(
        ...,
        description="Health status of each configured connection.",
    )


class ReadyResponse(BaseModel):
    """Response for readiness check endpoint."""

    ready: bool = Field(..., description="Whether the application is ready for traffic.")
    reason: str | None = Field(default=None, description="Reason if not ready.")


@router.get("/health", response_model=HealthResponse)
async def health_check(response: Response) -> HealthResponse:
    """Check application health.

    Returns the overall health status along with the health of every
    configured connection.

    Returns:
        HealthResponse with status, version, and component health.
        Returns 503 status code if unhealthy.
    """
    components: dict[str, ComponentHealth] = {}

    try:
        engine = get_engine()
        if not engine.is_initialized:
            engine.initialize()

        engine_health = engine.health_check()
        for connection_id, health in engine_health["connections"].items():
            components[connection_id] = ComponentHealth(
                healthy=health["healthy"],
                error=health["error"],
            )
        overall_healthy = engine_health["healthy"]

    except Exception as e:
        components["duckdb"] = ComponentHealth(healthy=False, error=str(e))
        overall_healthy = False

    if overall_healthy:
        status = "healthy"
    elif any(c.healthy for c in components.values()):
        status = "degraded"
        response.status_code = 503
    else:
        status = "unhealthy"
        response.status_code = 503

    return HealthResponse(
        status=status,
        version=__version__,
        components=components,
    )


@router.get("/ready", response_model=ReadyResponse)
async def readiness_check(response: Response) -> ReadyResponse:
    """Check application readiness for traffic.

    Requires every configured connection to be healthy.

    Returns:
        ReadyResponse with ready status.
        Returns 503 status code if not ready.
    """
    try:
        engine = get_engine()
        if not engine.is_initialized:
            response.status_code = 503
            return ReadyResponse(ready=False, reason="Engine not initialized")

        engine_health = engine.health_check()

        if not engine_health["healthy"]:
            errors = [
                f"{connection_id}: {health['error']}"
                for connection_id, health in engine_health["connections"].items()
                if not health["healthy"]
            ]
            response.status_code = 503
            return ReadyResponse(
                ready=False,
                reason="; ".join(errors) or "Health check failed",
            )

        return ReadyResponse(ready=True)

    except Exception as e:
        response.status_code = 503
        return ReadyResponse(ready=False, reason=str(e))
