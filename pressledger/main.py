"""FastAPI application entry point."""

from fastapi import FastAPI

from pressledger.api import actors_router, distributions_router, stats_router
from pressledger.config import settings
from pressledger.logging_config import configure_logging

configure_logging()

app = FastAPI(
    title="PressLedger",
    description="Newspaper distribution ledger for manufacturers, distributors and vendors",
    version="0.1.0",
    debug=settings.debug,
)

# Include API routers
app.include_router(actors_router)
app.include_router(distributions_router)
app.include_router(stats_router)


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy"}
