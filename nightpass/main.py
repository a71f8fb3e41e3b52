"""
FastAPI application for nightpass: health, stats and metrics.
The bot itself runs separately (nightpass.bot.main).
"""
from fastapi import FastAPI

from nightpass.api.routes import health, stats
from nightpass.core.logging import configure_logging
from nightpass.utils.metrics import router as metrics_router

configure_logging()

app = FastAPI(
    title="Nightpass API",
    description="Service endpoints for the nightpass bot",
    version="1.0.0",
)

app.include_router(health.router, tags=["health"])
app.include_router(stats.router, tags=["stats"])
app.include_router(metrics_router)
