"""Pytest configuration and fixtures."""

from datetime import datetime, timezone

import pytest
from sqlalchemy import create_engine, insert
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from outage_sync.models.fact import (
    Channel,
    FactBase,
    FactDetail,
    FactHeader,
    NetworkElement,
    NetworkElementType,
)
from outage_sync.models.source import SourceBase
from outage_sync.seed.topology import generate_channels, generate_element_types
from outage_sync.sync.channels import CABIN_TYPE_KEY, CABLE_TYPE_KEY

FIXED_NOW = datetime(2026, 3, 14, 9, 30, tzinfo=timezone.utc)


def fixed_clock() -> datetime:
    return FIXED_NOW


@pytest.fixture
def engine():
    """In-memory SQLite with both logical schemas mapped to the default one."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        execution_options={"schema_translate_map": {"sta": None, "fta": None}},
    )
    SourceBase.metadata.create_all(engine)
    FactBase.metadata.create_all(engine)
    with engine.begin() as connection:
        connection.execute(insert(Channel), generate_channels())
        connection.execute(insert(NetworkElementType), generate_element_types())
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
def session(session_factory):
    with session_factory() as session:
        yield session


@pytest.fixture
def add_elements(session_factory):
    """Insert network elements given as (element_key, name, type_key[, is_active])."""

    def _add(*rows):
        with session_factory() as session:
            for row in rows:
                element_key, name, type_key = row[:3]
                is_active = row[3] if len(row) > 3 else True
                session.add(NetworkElement(
                    element_key=element_key, name=name, type_key=type_key, is_active=is_active
                ))
            session.commit()

    return _add


@pytest.fixture
def add_header(session_factory):
    """Insert one fact header; returns its key."""

    def _add(header_key, incident_id, channel_key=1, **fields):
        fields.setdefault("actual_create_date", FIXED_NOW)
        fields.setdefault("is_active", True)
        with session_factory() as session:
            session.add(FactHeader(
                header_key=header_key,
                incident_id=incident_id,
                channel_key=channel_key,
                **fields,
            ))
            session.commit()
        return header_key

    return _add


@pytest.fixture
def add_staging(session_factory):
    """Insert one staging incident into a channel's feed table."""

    def _add(channel, incident_id, element_name, **fields):
        fields.setdefault("create_date", FIXED_NOW)
        fields.setdefault("is_active", True)
        with session_factory() as session:
            session.add(channel.staging_model(
                incident_id=incident_id,
                element_name=element_name,
                **fields,
            ))
            session.commit()

    return _add


@pytest.fixture
def add_detail(session_factory):
    def _add(detail_key, header_key, network_element_key=None):
        with session_factory() as session:
            session.add(FactDetail(
                detail_key=detail_key,
                header_key=header_key,
                network_element_key=network_element_key,
                actual_create_date=FIXED_NOW,
            ))
            session.commit()

    return _add


@pytest.fixture
def cabin_and_cable_elements(add_elements):
    """Two cabins and two cables with distinct keys."""
    add_elements(
        (5, "Cab-1", CABIN_TYPE_KEY),
        (6, "Cab-2", CABIN_TYPE_KEY),
        (15, "cab-1-c", CABLE_TYPE_KEY),
        (16, "cab-2-c", CABLE_TYPE_KEY),
    )
