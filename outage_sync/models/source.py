"""SQLAlchemy ORM models for the per-channel staging (STA) tables.

Each channel feed drops raw outage records into its own table. The sync core
only reads these; the test-data generator is the only writer in this repo.
"""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from outage_sync.config import STA_SCHEMA


class SourceBase(DeclarativeBase):
    __table_args__ = {"schema": STA_SCHEMA}


class StagingIncidentMixin:
    """Columns shared by both channel feeds."""

    incident_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    element_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    problem_type_key: Mapped[int | None] = mapped_column(Integer, nullable=True)
    create_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    end_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    is_planned: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    is_global: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    planned_start: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    planned_end: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_user: Mapped[str | None] = mapped_column(String(50), nullable=True)
    updated_user: Mapped[str | None] = mapped_column(String(50), nullable=True)


# ---------------------------------------------------------------------------
# Source A: cabin incidents
# ---------------------------------------------------------------------------
class StagingCabinIncident(StagingIncidentMixin, SourceBase):
    __tablename__ = "cutting_down_cabin"


# ---------------------------------------------------------------------------
# Source B: cable incidents
# ---------------------------------------------------------------------------
class StagingCableIncident(StagingIncidentMixin, SourceBase):
    __tablename__ = "cutting_down_cable"
