"""FastAPI endpoint that triggers one channel's synchronization.

Non-success is reported twice: a 500 status and success=false in the body.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse

from outage_sync.api.security import require_api_key
from outage_sync.config import settings
from outage_sync.db.engine import SyncSessionLocal
from outage_sync.sync.channels import get_channel
from outage_sync.sync.engine import ChannelSyncEngine, SyncResult, SyncState, build_sync_engine

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api",
    tags=["Data Synchronization"],
    dependencies=[Depends(require_api_key)],
)


def get_channel_sync_engine() -> ChannelSyncEngine:
    return build_sync_engine(SyncSessionLocal, settings)


@router.post("/sync")
def synchronize_incidents(
    source: str = "A",
    engine: ChannelSyncEngine = Depends(get_channel_sync_engine),
):
    """Synchronize staging incidents into the fact tables for one source.

    - **A**: cabin incidents
    - **B**: cable incidents

    Runs create, close, then detail backfill. Unmatched network elements are
    stored with a null element key.
    """
    try:
        channel = get_channel(source)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    try:
        result = engine.run(channel.source)
    except Exception as exc:
        logger.exception("Unexpected error synchronizing Source %s", channel.source)
        result = SyncResult(
            success=False,
            message=f"Synchronization failed for Source {channel.source}",
            source=channel.source,
            state=SyncState.FAILED,
            error=str(exc),
        )

    payload = result.model_dump(by_alias=True, mode="json")
    if not result.success:
        return JSONResponse(status_code=500, content=payload)
    return payload
