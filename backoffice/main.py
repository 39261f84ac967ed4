from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import get_config
from .logging_config import configure_logging
from .routes import onboarding as onboarding_routes

logger = logging.getLogger(__name__)

CONFIG = get_config()
configure_logging(level=CONFIG.log_level)

app = FastAPI(
    title="Manufacturing Back-Office API",
    version="0.1.0",
    description="Customer onboarding forms with deferred row synchronization",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CONFIG.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=False,
)

app.include_router(onboarding_routes.router)


@app.get("/health")
async def health() -> dict:
    return {"status": "ok"}
