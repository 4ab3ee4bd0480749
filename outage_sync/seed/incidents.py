"""Factory for synthetic staging incidents (planned, emergency, global, mixed).

Feeds the load-generation endpoints and the seed CLI. Element names are drawn
from real topology rows of the channel's type so most incidents match during
backfill.
"""

import random
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable

from sqlalchemy import select
from sqlalchemy.orm import Session

from outage_sync.models.fact import NetworkElement
from outage_sync.sync.channels import CABIN_CHANNEL, CABLE_CHANNEL, Channel

SCENARIOS = ["planned", "emergency", "global", "mixed"]

ELEMENT_SAMPLE_SIZE = 100
INCIDENT_ID_RANGE = (100000, 999999)
PROBLEM_TYPE_RANGE = (1, 12)


@dataclass(frozen=True)
class ScenarioRules:
    """Per-channel shape of each scenario; probabilities are 0..1."""

    planned_duration_hours: int
    planned_end_jitter_minutes: tuple[int, int]
    planned_close_rate: float
    emergency_global_rate: float
    emergency_close_rate: float
    emergency_close_hours: tuple[int, int]
    global_planned_rate: float
    global_planned_hours: int
    global_close_rate: float
    global_close_hours: tuple[int, int]
    mixed_planned_rate: float
    mixed_global_rate: float
    mixed_start_hours: tuple[int, int]
    mixed_duration_hours: tuple[int, int]
    mixed_close_rate: float
    mixed_close_hours: tuple[int, int]


RULES: dict[int, ScenarioRules] = {
    CABIN_CHANNEL.channel_key: ScenarioRules(
        planned_duration_hours=4,
        planned_end_jitter_minutes=(-30, 59),
        planned_close_rate=0.7,
        emergency_global_rate=0.3,
        emergency_close_rate=0.4,
        emergency_close_hours=(1, 11),
        global_planned_rate=0.5,
        global_planned_hours=6,
        global_close_rate=0.5,
        global_close_hours=(2, 23),
        mixed_planned_rate=0.6,
        mixed_global_rate=0.2,
        mixed_start_hours=(1, 47),
        mixed_duration_hours=(2, 7),
        mixed_close_rate=0.6,
        mixed_close_hours=(1, 47),
    ),
    CABLE_CHANNEL.channel_key: ScenarioRules(
        planned_duration_hours=3,
        planned_end_jitter_minutes=(-15, 29),
        planned_close_rate=0.8,
        emergency_global_rate=0.4,
        emergency_close_rate=0.3,
        emergency_close_hours=(1, 7),
        global_planned_rate=0.4,
        global_planned_hours=4,
        global_close_rate=0.6,
        global_close_hours=(2, 17),
        mixed_planned_rate=0.5,
        mixed_global_rate=0.25,
        mixed_start_hours=(1, 23),
        mixed_duration_hours=(1, 5),
        mixed_close_rate=0.55,
        mixed_close_hours=(1, 35),
    ),
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _element_names(session: Session, channel: Channel) -> list[str]:
    rows = session.execute(
        select(NetworkElement.name)
        .where(NetworkElement.type_key == channel.element_type_key)
        .where(NetworkElement.is_active.is_(True))
        .where(NetworkElement.name.is_not(None))
        .order_by(NetworkElement.element_key)
        .limit(ELEMENT_SAMPLE_SIZE)
    ).scalars()
    return list(rows)


def _fallback_name(channel: Channel, rng: random.Random) -> str:
    return f"{channel.name}_{rng.randint(1000, 9999)}"


def _unused_incident_ids(session: Session, channel: Channel, count: int, rng: random.Random) -> list[int]:
    staging = channel.staging_model
    taken = set(session.execute(select(staging.incident_id)).scalars())
    ids: list[int] = []
    while len(ids) < count:
        candidate = rng.randint(*INCIDENT_ID_RANGE)
        if candidate not in taken:
            taken.add(candidate)
            ids.append(candidate)
    return ids


def build_incident(
    channel: Channel,
    incident_id: int,
    element_name: str,
    scenario: str,
    rng: random.Random,
    now: datetime,
) -> dict:
    """Build one staging row for a scenario, following the channel's rules."""
    rules = RULES[channel.channel_key]
    incident = {
        "incident_id": incident_id,
        "element_name": element_name,
        "problem_type_key": rng.randint(*PROBLEM_TYPE_RANGE),
        "create_date": now,
        "end_date": None,
        "is_planned": False,
        "is_global": False,
        "planned_start": None,
        "planned_end": None,
        "is_active": True,
        "created_user": f"Source{channel.source}",
        "updated_user": f"Source{channel.source}",
    }

    scenario = scenario.lower()
    if scenario == "planned":
        incident["is_planned"] = True
        incident["planned_start"] = now + timedelta(hours=2)
        incident["planned_end"] = incident["planned_start"] + timedelta(hours=rules.planned_duration_hours)
        if rng.random() < rules.planned_close_rate:
            jitter = rng.randint(*rules.planned_end_jitter_minutes)
            incident["end_date"] = incident["planned_end"] + timedelta(minutes=jitter)

    elif scenario == "emergency":
        incident["is_global"] = rng.random() < rules.emergency_global_rate
        if rng.random() < rules.emergency_close_rate:
            incident["end_date"] = now + timedelta(hours=rng.randint(*rules.emergency_close_hours))

    elif scenario == "global":
        incident["is_planned"] = rng.random() < rules.global_planned_rate
        incident["is_global"] = True
        if incident["is_planned"]:
            incident["planned_start"] = now + timedelta(hours=1)
            incident["planned_end"] = incident["planned_start"] + timedelta(hours=rules.global_planned_hours)
        if rng.random() < rules.global_close_rate:
            incident["end_date"] = now + timedelta(hours=rng.randint(*rules.global_close_hours))

    else:  # mixed
        incident["is_planned"] = rng.random() < rules.mixed_planned_rate
        incident["is_global"] = rng.random() < rules.mixed_global_rate
        if incident["is_planned"]:
            incident["planned_start"] = now + timedelta(hours=rng.randint(*rules.mixed_start_hours))
            incident["planned_end"] = incident["planned_start"] + timedelta(
                hours=rng.randint(*rules.mixed_duration_hours)
            )
        if rng.random() < rules.mixed_close_rate:
            incident["end_date"] = now + timedelta(hours=rng.randint(*rules.mixed_close_hours))

    return incident


def generate_incidents(
    session: Session,
    channel: Channel,
    count: int,
    scenario: str,
    rng: random.Random | None = None,
    clock: Callable[[], datetime] = _utcnow,
) -> list[dict]:
    """Generate and insert count staging incidents for a channel.

    The caller owns the transaction (commit/rollback).

    Returns:
        The inserted rows as dictionaries
    """
    if scenario.lower() not in SCENARIOS:
        raise ValueError(f"Unknown scenario '{scenario}'. Available: {SCENARIOS}")
    rng = rng or random.Random()
    now = clock()

    names = _element_names(session, channel)
    incident_ids = _unused_incident_ids(session, channel, count, rng)

    incidents = []
    for incident_id in incident_ids:
        name = rng.choice(names) if names else _fallback_name(channel, rng)
        incident = build_incident(channel, incident_id, name, scenario, rng, now)
        session.add(channel.staging_model(**incident))
        incidents.append(incident)
    session.flush()
    return incidents
