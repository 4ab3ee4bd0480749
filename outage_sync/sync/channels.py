"""Channel registry: maps each source feed to its keys and staging table."""

from dataclasses import dataclass

from outage_sync.models.source import (
    StagingCabinIncident,
    StagingCableIncident,
    StagingIncidentMixin,
)

CABIN_TYPE_KEY = 6
CABLE_TYPE_KEY = 7


@dataclass(frozen=True)
class Channel:
    source: str
    channel_key: int
    name: str
    element_type_key: int
    staging_model: type[StagingIncidentMixin]
    system_user_id: int
    testdata_slug: str


CABIN_CHANNEL = Channel(
    source="A",
    channel_key=1,
    name="Cabin",
    element_type_key=CABIN_TYPE_KEY,
    staging_model=StagingCabinIncident,
    system_user_id=3,
    testdata_slug="cabin",
)

CABLE_CHANNEL = Channel(
    source="B",
    channel_key=2,
    name="Cable",
    element_type_key=CABLE_TYPE_KEY,
    staging_model=StagingCableIncident,
    system_user_id=4,
    testdata_slug="cable",
)

CHANNELS: tuple[Channel, ...] = (CABIN_CHANNEL, CABLE_CHANNEL)


def get_channel(source: str) -> Channel:
    """Resolve a source code ("A"/"B", any case) to its channel."""
    normalized = (source or "").strip().upper()
    for channel in CHANNELS:
        if channel.source == normalized:
            return channel
    raise ValueError(
        f"Unknown source '{source}'. Available: {[c.source for c in CHANNELS]}"
    )


def get_channel_by_key(channel_key: int) -> Channel:
    for channel in CHANNELS:
        if channel.channel_key == channel_key:
            return channel
    raise ValueError(
        f"Unknown channel key {channel_key}. Available: {[c.channel_key for c in CHANNELS]}"
    )
