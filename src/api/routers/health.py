"""Health check: no auth required."""

from __future__ import annotations

from fastapi import APIRouter
from pydantic import BaseModel

from src.api.registry import registry

router = APIRouter(prefix="/api", tags=["health"])


class HealthResponse(BaseModel):
    status: str
    version: str
    service_running: bool
    feeds: dict[str, dict]
    tokens: dict[str, int]


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """``ok`` while the PumpPortal feed is connected, else ``degraded``."""
    service = registry.service
    if service is None:
        return HealthResponse(status="degraded", version="0.1.0", service_running=False, feeds={}, tokens={})

    feeds = service.connection_status()
    return HealthResponse(
        status="ok" if feeds["solana"]["connected"] else "degraded",
        version="0.1.0",
        service_running=True,
        feeds=feeds,
        tokens={
            "solana": len(service.solana_tokens()),
            "bsc": len(service.bsc_tokens()),
            "migrated": len(service.migrated_tokens()),
        },
    )
