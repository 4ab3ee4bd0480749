"""SQLAlchemy ORM models for the normalized fact (FTA) schema.

Headers and details are keyed by surrogate keys that are allocated explicitly
(see outage_sync.sync.keys), never by a sequence or identity column.
"""

from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from outage_sync.config import FTA_SCHEMA


class FactBase(DeclarativeBase):
    __table_args__ = {"schema": FTA_SCHEMA}


# ===================================================================
# REFERENCE TABLES
# ===================================================================


class Channel(FactBase):
    __tablename__ = "channel"

    channel_key: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    channel_name: Mapped[str] = mapped_column(String(50), nullable=False)


class NetworkElementType(FactBase):
    __tablename__ = "network_element_type"

    type_key: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    name: Mapped[str] = mapped_column(String(50), nullable=False)
    parent_type_key: Mapped[int | None] = mapped_column(
        Integer, ForeignKey(f"{FTA_SCHEMA}.network_element_type.type_key"), nullable=True
    )


class NetworkElement(FactBase):
    __tablename__ = "network_element"
    __table_args__ = (
        Index("ix_fta_network_element_type_key", "type_key"),
        Index("ix_fta_network_element_parent_key", "parent_key"),
        {"schema": FTA_SCHEMA},
    )

    element_key: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    type_key: Mapped[int] = mapped_column(
        Integer, ForeignKey(f"{FTA_SCHEMA}.network_element_type.type_key"), nullable=False
    )
    parent_key: Mapped[int | None] = mapped_column(
        Integer, ForeignKey(f"{FTA_SCHEMA}.network_element.element_key"), nullable=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


# ===================================================================
# FACT TABLES
# ===================================================================


class FactHeader(FactBase):
    __tablename__ = "cutting_down_header"
    __table_args__ = (
        Index("ix_fta_cutting_down_header_channel_incident", "channel_key", "incident_id"),
        {"schema": FTA_SCHEMA},
    )

    header_key: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    incident_id: Mapped[int] = mapped_column(Integer, nullable=False)
    channel_key: Mapped[int] = mapped_column(
        Integer, ForeignKey(f"{FTA_SCHEMA}.channel.channel_key"), nullable=False
    )
    problem_type_key: Mapped[int | None] = mapped_column(Integer, nullable=True)
    actual_create_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    actual_end_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    synch_create_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    synch_update_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    is_planned: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    is_global: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    planned_start: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    planned_end: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    is_active: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    create_user_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    update_user_id: Mapped[int | None] = mapped_column(Integer, nullable=True)


class FactDetail(FactBase):
    __tablename__ = "cutting_down_detail"
    # Non-unique on purpose: one-detail-per-header is enforced by the backfill.
    __table_args__ = (
        Index("ix_fta_cutting_down_detail_header_network", "header_key", "network_element_key"),
        {"schema": FTA_SCHEMA},
    )

    detail_key: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    header_key: Mapped[int] = mapped_column(
        Integer, ForeignKey(f"{FTA_SCHEMA}.cutting_down_header.header_key"), nullable=False
    )
    network_element_key: Mapped[int | None] = mapped_column(
        Integer, ForeignKey(f"{FTA_SCHEMA}.network_element.element_key"), nullable=True
    )
    actual_create_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    actual_end_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    impacted_customers: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
