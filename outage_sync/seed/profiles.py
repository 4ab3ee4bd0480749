"""Data generation profiles defining topology volume and incident load."""

from dataclasses import dataclass


@dataclass
class SeedProfile:
    name: str
    governorates: int = 2
    sectors_per_governorate: int = 2
    zones_per_sector: int = 2
    stations_per_zone: int = 2
    towers_per_station: int = 2
    cabins_per_tower: int = 3
    cables_per_cabin: int = 2
    blocks_per_cable: int = 2
    incidents_per_channel: int = 20
    scenario: str = "mixed"


PROFILES: dict[str, SeedProfile] = {
    "standard": SeedProfile(
        name="standard",
    ),
    "minimal": SeedProfile(
        name="minimal",
        governorates=1,
        sectors_per_governorate=1,
        zones_per_sector=1,
        stations_per_zone=1,
        towers_per_station=1,
        cabins_per_tower=2,
        cables_per_cabin=1,
        blocks_per_cable=1,
        incidents_per_channel=5,
    ),
    "planned_works": SeedProfile(
        name="planned_works",
        incidents_per_channel=40,
        scenario="planned",
    ),
    "storm": SeedProfile(
        name="storm",
        incidents_per_channel=100,
        scenario="emergency",
    ),
    "scale_test": SeedProfile(
        name="scale_test",
        governorates=5,
        sectors_per_governorate=4,
        towers_per_station=4,
        cabins_per_tower=5,
        incidents_per_channel=100,
    ),
}


def get_profile(name: str) -> SeedProfile:
    if name not in PROFILES:
        raise ValueError(f"Unknown profile '{name}'. Available: {list(PROFILES.keys())}")
    return PROFILES[name]
