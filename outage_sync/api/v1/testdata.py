"""FastAPI endpoints that generate synthetic staging incidents.

Used by the orchestrator to keep a steady trickle of new and closing
incidents flowing through both channels.
"""

import logging
from typing import Literal

from fastapi import APIRouter, Depends
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from outage_sync.api.security import require_api_key
from outage_sync.db.engine import get_sync_session
from outage_sync.seed.incidents import generate_incidents
from outage_sync.sync.channels import CABIN_CHANNEL, CABLE_CHANNEL, Channel

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/testdata",
    tags=["Test Data Generation"],
    dependencies=[Depends(require_api_key)],
)


class IncidentLoadRequest(BaseModel):
    count: int = Field(10, ge=1, le=100, description="Number of incidents to generate")
    scenario: Literal["planned", "emergency", "global", "mixed"] = "mixed"


def _generate(session: Session, channel: Channel, request: IncidentLoadRequest):
    try:
        incidents = generate_incidents(session, channel, request.count, request.scenario)
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        logger.warning("Failed to generate %s incidents: %s", channel.testdata_slug, exc)
        return JSONResponse(status_code=500, content={"success": False, "error": str(exc)})

    return {
        "success": True,
        "message": (
            f"Generated {request.count} {channel.testdata_slug} incidents "
            f"for scenario: {request.scenario}"
        ),
        "data": jsonable_encoder(incidents),
    }


@router.post("/cabin-incidents")
def generate_cabin_incidents(
    request: IncidentLoadRequest,
    session: Session = Depends(get_sync_session),
):
    """Generate cabin incidents (Source A)."""
    return _generate(session, CABIN_CHANNEL, request)


@router.post("/cable-incidents")
def generate_cable_incidents(
    request: IncidentLoadRequest,
    session: Session = Depends(get_sync_session),
):
    """Generate cable incidents (Source B)."""
    return _generate(session, CABLE_CHANNEL, request)
