"""Token endpoints: store snapshots, detail lookup, pump.fun lists, live stream."""

from __future__ import annotations

import asyncio
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, Response, WebSocket, WebSocketDisconnect, status
from fastapi.responses import JSONResponse
from loguru import logger

from src.aggregator.service import MultiChainTokenService, SolanaRpcError, token_from_pumpfun
from src.aggregator.store import MIGRATION_UPDATE, TOKEN_UPDATE
from src.api.dependencies import get_service
from src.api.registry import registry
from src.models.token import Chain, TokenData
from src.parsers.pumpfun.models import PumpfunFeed
from src.utils.format import now_ms

router = APIRouter(tags=["tokens"])

CACHE_CONTROL = "public, s-maxage=15, stale-while-revalidate=30"
WS_QUEUE_SIZE = 500

PUMPFUN_LISTS = {
    "latest": PumpfunFeed.LATEST,
    "featured": PumpfunFeed.FEATURED,
    "graduated": PumpfunFeed.GRADUATED_BY_TIME,
    "market_cap": PumpfunFeed.LIST_BY_MARKET_CAP,
    "marketCap": PumpfunFeed.LIST_BY_MARKET_CAP,
    "creation": PumpfunFeed.LIST_BY_CREATION,
    "runners": PumpfunFeed.RUNNERS,
}
# Served by PumpfunClient.fetch_migrated_tokens rather than a discovery feed
MIGRATED_LIST = "migrated"
LIST_PATTERN = "^(" + "|".join([*PUMPFUN_LISTS, MIGRATED_LIST]) + ")$"
SIGNATURES_LIMIT = 50


def _serialize(tokens: list[TokenData], limit: int) -> list[dict[str, Any]]:
    newest = sorted(tokens, key=lambda t: t.created_at, reverse=True)
    return [t.to_dict() for t in newest[:limit]]


@router.get("/api/tokens")
async def list_tokens(
    response: Response,
    chain: Chain | None = Query(None),
    limit: int = Query(100, ge=1, le=500),
    service: MultiChainTokenService = Depends(get_service),
) -> dict[str, Any]:
    """Current snapshots, newest first."""
    if chain == Chain.SOLANA:
        tokens = service.solana_tokens()
    elif chain == Chain.BSC:
        tokens = service.bsc_tokens()
    else:
        tokens = service.all_tokens()
    response.headers["Cache-Control"] = CACHE_CONTROL
    return {"tokens": _serialize(tokens, limit)}


@router.get("/api/tokens/migrated")
async def list_migrated(
    response: Response,
    limit: int = Query(100, ge=1, le=500),
    service: MultiChainTokenService = Depends(get_service),
) -> dict[str, Any]:
    response.headers["Cache-Control"] = CACHE_CONTROL
    return {"tokens": _serialize(service.migrated_tokens(), limit)}


@router.get("/api/tokens/status")
async def feed_status(service: MultiChainTokenService = Depends(get_service)) -> dict[str, Any]:
    return {
        "connections": service.connection_status(),
        "counts": {
            "solana": len(service.solana_tokens()),
            "bsc": len(service.bsc_tokens()),
            "migrated": len(service.migrated_tokens()),
        },
    }


@router.get("/api/tokens/{chain}/{address}")
async def token_detail(
    chain: Chain,
    address: str,
    service: MultiChainTokenService = Depends(get_service),
) -> dict[str, Any]:
    token = await service.lookup_token(chain, address)
    if token is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Token not found")
    return token.to_dict()


@router.get("/api/pumpfun/tokens")
async def pumpfun_tokens(
    response: Response,
    list_type: str = Query("latest", alias="type", pattern=LIST_PATTERN),
    limit: int = Query(48, ge=1, le=200),
    service: MultiChainTokenService = Depends(get_service),
) -> dict[str, Any]:
    """Proxy of a pump.fun list, normalized to token snapshots."""
    if list_type == MIGRATED_LIST:
        infos = await service.pumpfun.fetch_migrated_tokens(limit)
    else:
        infos = await service.pumpfun.fetch_from_endpoint(PUMPFUN_LISTS[list_type], limit)
    received = now_ms()
    response.headers["Cache-Control"] = CACHE_CONTROL
    return {
        "type": list_type,
        "tokens": [token_from_pumpfun(info, received).to_dict() for info in infos if info.mint],
    }


@router.get("/api/solana/new-tokens")
async def solana_new_tokens(service: MultiChainTokenService = Depends(get_service)) -> JSONResponse:
    """Recent pump.fun program signatures straight from Solana RPC."""
    try:
        signatures = await service.fetch_program_signatures()
    except SolanaRpcError as e:
        logger.error(f"[API] Failed to fetch new tokens via Solana RPC: {e}")
        return JSONResponse(
            {"error": "Failed to fetch tokens", "details": str(e)},
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
    return JSONResponse({
        "success": True,
        "signatures": signatures[:SIGNATURES_LIMIT],
        "count": len(signatures),
    })


async def _wait_for_disconnect(websocket: WebSocket) -> None:
    # Text or binary frames from the client are ignored
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            return


@router.websocket("/ws/tokens")
async def token_stream(websocket: WebSocket) -> None:
    """Snapshot on connect, then every token/migration update as it happens."""
    service = registry.service
    await websocket.accept()
    if service is None:
        await websocket.close(code=1013)
        return

    queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue(maxsize=WS_QUEUE_SIZE)

    def offer(event: str, token: TokenData) -> None:
        if queue.full():
            # Slow client: drop the oldest update
            queue.get_nowait()
        queue.put_nowait({"event": event, "token": token.to_dict()})

    def on_token(token: TokenData) -> None:
        offer(TOKEN_UPDATE, token)

    def on_migration(token: TokenData) -> None:
        offer(MIGRATION_UPDATE, token)

    service.on(TOKEN_UPDATE, on_token)
    service.on(MIGRATION_UPDATE, on_migration)
    receiver = asyncio.create_task(_wait_for_disconnect(websocket))
    try:
        await websocket.send_json({
            "event": "snapshot",
            "tokens": [t.to_dict() for t in service.all_tokens()],
        })
        while True:
            getter = asyncio.create_task(queue.get())
            done, _ = await asyncio.wait({getter, receiver}, return_when=asyncio.FIRST_COMPLETED)
            if getter not in done:
                getter.cancel()
                break
            await websocket.send_json(getter.result())
    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.warning(f"[API] Token stream closed: {e}")
    finally:
        service.off(TOKEN_UPDATE, on_token)
        service.off(MIGRATION_UPDATE, on_migration)
        receiver.cancel()
