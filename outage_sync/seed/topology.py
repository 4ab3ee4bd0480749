"""Factory for channels, element types and the network element hierarchy.

Governorate > Sector > Zone > Station > Tower > Cabin > Cable > Block.
Keys are assigned sequentially in generation order so runs with the same
profile and seed produce identical topology.
"""

import random

from faker import Faker

from outage_sync.seed.profiles import SeedProfile
from outage_sync.sync.channels import CABIN_TYPE_KEY, CABLE_TYPE_KEY, CHANNELS

fake = Faker()

ELEMENT_TYPES = [
    {"type_key": 1, "name": "Governrate", "parent_type_key": None},
    {"type_key": 2, "name": "Sector", "parent_type_key": 1},
    {"type_key": 3, "name": "Zone", "parent_type_key": 2},
    {"type_key": 4, "name": "Station", "parent_type_key": 3},
    {"type_key": 5, "name": "Tower", "parent_type_key": 4},
    {"type_key": CABIN_TYPE_KEY, "name": "Cabin", "parent_type_key": 5},
    {"type_key": CABLE_TYPE_KEY, "name": "Cable", "parent_type_key": CABIN_TYPE_KEY},
    {"type_key": 8, "name": "Block", "parent_type_key": CABLE_TYPE_KEY},
]


def generate_channels() -> list[dict]:
    return [
        {"channel_key": channel.channel_key, "channel_name": channel.name}
        for channel in CHANNELS
    ]


def generate_element_types() -> list[dict]:
    return [dict(t) for t in ELEMENT_TYPES]


def generate_topology(profile: SeedProfile, rng: random.Random) -> list[dict]:
    """Generate network_element rows, parents before children."""
    fake.seed_instance(rng.randint(0, 2**31))
    elements: list[dict] = []
    next_key = 1

    def add(name: str, type_key: int, parent_key: int | None) -> int:
        nonlocal next_key
        key = next_key
        elements.append({
            "element_key": key,
            "name": name,
            "type_key": type_key,
            "parent_key": parent_key,
            "is_active": True,
        })
        next_key += 1
        return key

    cabin_seq = 0
    for _ in range(profile.governorates):
        gov_key = add(fake.unique.city(), 1, None)
        for s in range(profile.sectors_per_governorate):
            sector_key = add(f"Sector {s + 1} - {fake.street_name()}", 2, gov_key)
            for z in range(profile.zones_per_sector):
                zone_key = add(f"Zone {sector_key}-{z + 1}", 3, sector_key)
                for st in range(profile.stations_per_zone):
                    station_key = add(f"{fake.last_name()} Station", 4, zone_key)
                    for t in range(profile.towers_per_station):
                        tower_key = add(f"Tower {station_key}-{t + 1}", 5, station_key)
                        for _ in range(profile.cabins_per_tower):
                            cabin_seq += 1
                            cabin_key = add(f"Cab-{cabin_seq}", CABIN_TYPE_KEY, tower_key)
                            for c in range(profile.cables_per_cabin):
                                cable_key = add(f"cab-{cabin_seq}-{c + 1}", CABLE_TYPE_KEY, cabin_key)
                                for b in range(profile.blocks_per_cable):
                                    add(f"Block {cabin_seq}-{c + 1}-{b + 1}", 8, cable_key)

    fake.unique.clear()
    return elements
