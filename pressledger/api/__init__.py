"""API routers for the distribution ledger."""

from pressledger.api.actors import router as actors_router
from pressledger.api.distributions import router as distributions_router
from pressledger.api.stats import router as stats_router

__all__ = ["actors_router", "distributions_router", "stats_router"]
