"""Main entry point for SQL Console."""

from contextlib import asynccontextmanager

from fastapi import FastAPI

from sql_console import __version__
from sql_console.api.routes.health import router as health_router
from sql_console.api.routes.query import router as query_router
from sql_console.observability import setup_opentelemetry, shutdown_opentelemetry
from sql_console.query.engine import get_engine


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan - setup and shutdown."""
    setup_opentelemetry(app)
    get_engine().initialize()
    yield
    get_engine().close()
    shutdown_opentelemetry()


app = FastAPI(
    title="SQL Console",
    description="Multi-statement SQL execution service with per-statement results and cancellation",
    version=__version__,
    lifespan=lifespan,
)

app.include_router(health_router)
app.include_router(query_router)


def main() -> None:
    """Run the application server."""
    import uvicorn

    from sql_console.config import get_settings

    settings = get_settings()
    uvicorn.run(app, host=settings.server.host, port=settings.server.port)


if __name__ == "__main__":
    main()
