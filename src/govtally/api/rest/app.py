"""
REST API for govtally.

Exposes the treasury service over FastAPI: treasury overview, historical scan
control and progress, mempool spends, and per-spend vote tallies. Handlers
return the records' camelCase dictionaries unchanged.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, FastAPI, HTTPException, Query
from pydantic import BaseModel, Field

from ...errors import (
    DataSourceUnavailableError,
    GovTallyError,
    InvalidTallyRequestError,
    LedgerError,
    ScanInProgressError,
)
from ...treasury.service import TreasuryService

logger = logging.getLogger(__name__)


class ScanRequest(BaseModel):
    """Historical scan request."""

    start_height: int = Field(
        0, ge=0, alias="startHeight", description="First block to scan (clamped to activation)"
    )


def _http_error(error: GovTallyError) -> HTTPException:
    if isinstance(error, ScanInProgressError):
        return HTTPException(status_code=409, detail=error.message)
    if isinstance(error, InvalidTallyRequestError):
        return HTTPException(status_code=422, detail=error.message)
    if isinstance(error, DataSourceUnavailableError):
        return HTTPException(status_code=503, detail=error.message)
    if isinstance(error, LedgerError):
        return HTTPException(status_code=502, detail=error.message)
    return HTTPException(status_code=500, detail=error.message)


def create_router(service: TreasuryService) -> APIRouter:
    """Build the treasury routes bound to `service`."""
    router = APIRouter(prefix="/treasury", tags=["treasury"])

    @router.get("/info")
    async def get_treasury_info() -> Dict[str, Any]:
        info = await service.fetch_treasury_info()
        return info.to_dict()

    @router.post("/scan-history")
    async def trigger_scan_history(request: Optional[ScanRequest] = None) -> Dict[str, Any]:
        start_height = request.start_height if request is not None else 0
        try:
            await service.trigger_historical_scan(start_height)
        except GovTallyError as e:
            logger.warning(f"Historical scan not started: {e}")
            raise _http_error(e)

        effective = max(start_height, service.config.treasury.activation_height)
        return {"message": "Historical scan started", "startHeight": effective}

    @router.get("/scan-progress")
    async def get_scan_progress() -> Dict[str, Any]:
        return service.get_scan_progress().to_dict()

    @router.get("/scan-results")
    async def get_scan_results() -> List[Dict[str, Any]]:
        return [record.to_dict() for record in service.get_scan_results()]

    @router.get("/mempool")
    async def get_mempool_spends() -> List[Dict[str, Any]]:
        try:
            spends = await service.probe_mempool()
        except GovTallyError as e:
            raise _http_error(e)
        return [spend.to_dict() for spend in spends]

    @router.get("/votes/{tx_hash}")
    async def get_vote_tally(
        tx_hash: str,
        block_height: Optional[int] = Query(None, ge=0, alias="blockHeight"),
        expiry: int = Query(0, ge=0),
        in_mempool: bool = Query(False, alias="inMempool"),
    ) -> Dict[str, Any]:
        if not in_mempool and block_height is None:
            raise HTTPException(status_code=422, detail="blockHeight is required for mined spends")
        try:
            tally = await service.get_tally(tx_hash, block_height or 0, expiry, in_mempool)
        except GovTallyError as e:
            logger.warning(f"Vote tally for {tx_hash} failed: {e}")
            raise _http_error(e)
        return tally.to_dict()

    @router.get("/votes/{tx_hash}/progress")
    async def get_vote_progress(tx_hash: str) -> Dict[str, Any]:
        progress, found = service.get_tally_progress(tx_hash)
        if not found:
            raise HTTPException(status_code=404, detail="No vote counting progress for this spend")
        return progress.to_dict()

    return router


def create_app(service: TreasuryService) -> FastAPI:
    """FastAPI application serving the treasury routes under ``/api``."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await service.shutdown()

    app = FastAPI(
        title="govtally REST API",
        description="Treasury spend scanning and vote tallying",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.include_router(create_router(service), prefix="/api")
    return app
