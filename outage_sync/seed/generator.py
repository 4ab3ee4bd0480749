"""CLI entry-point for seeding topology and staging incidents.

Usage:
    python -m outage_sync.seed.generator --profile=standard --seed=42
    python -m outage_sync.seed.generator --profile=storm --seed=7 --reset
"""

import argparse
import random
import time

from sqlalchemy import delete, insert, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from outage_sync.config import settings
from outage_sync.db.engine import sync_engine, SyncSessionLocal
from outage_sync.models.fact import (
    Channel,
    FactBase,
    FactDetail,
    FactHeader,
    NetworkElement,
    NetworkElementType,
)
from outage_sync.models.source import SourceBase, StagingCabinIncident, StagingCableIncident
from outage_sync.seed.incidents import generate_incidents
from outage_sync.seed.profiles import get_profile
from outage_sync.seed.topology import generate_channels, generate_element_types, generate_topology
from outage_sync.sync.channels import CHANNELS

BATCH_SIZE = 5000


def _bulk_insert(session: Session, model: type, rows: list[dict]) -> int:
    """Insert rows through the ORM so schema translation applies."""
    if not rows:
        return 0
    for i in range(0, len(rows), BATCH_SIZE):
        session.execute(insert(model), rows[i : i + BATCH_SIZE])
    return len(rows)


def _reset_tables(session: Session) -> None:
    """Delete all rows, children before parents."""
    models_in_order = [
        FactDetail,
        FactHeader,
        StagingCabinIncident,
        StagingCableIncident,
        NetworkElement,
        NetworkElementType,
        Channel,
    ]
    for model in models_in_order:
        session.execute(delete(model))
    session.commit()
    print("  All staging and fact tables emptied.")


def _create_tables(engine: Engine) -> None:
    """Create schemas and tables if they don't exist."""
    if engine.dialect.name == "postgresql":
        with engine.begin() as connection:
            for schema in settings.schema_translate_map.values():
                connection.execute(text(f'CREATE SCHEMA IF NOT EXISTS "{schema}"'))
    FactBase.metadata.create_all(engine)
    SourceBase.metadata.create_all(engine)
    print("  Staging and fact tables created/verified.")


def run_seed(profile_name: str, seed: int, reset: bool = False) -> None:
    """Main seed generation function."""
    print(f"\n{'='*60}")
    print("Outage Sync: Seed Data Generator")
    print(f"Profile: {profile_name} | Seed: {seed} | Reset: {reset}")
    print(f"{'='*60}\n")

    profile = get_profile(profile_name)
    rng = random.Random(seed)
    start_time = time.time()

    print("[1/4] Creating tables...")
    _create_tables(sync_engine)

    session = SyncSessionLocal()
    try:
        if reset:
            print("[1.5/4] Resetting existing data...")
            _reset_tables(session)

        print("[2/4] Generating channels and element types...")
        count = _bulk_insert(session, Channel, generate_channels())
        print(f"  channel: {count} rows")
        count = _bulk_insert(session, NetworkElementType, generate_element_types())
        print(f"  network_element_type: {count} rows")
        session.commit()

        print("[3/4] Generating network topology...")
        elements = generate_topology(profile, rng)
        count = _bulk_insert(session, NetworkElement, elements)
        print(f"  network_element: {count} rows")
        session.commit()

        print("[4/4] Generating staging incidents...")
        for channel in CHANNELS:
            incidents = generate_incidents(
                session, channel, profile.incidents_per_channel, profile.scenario, rng
            )
            session.commit()
            open_count = sum(1 for i in incidents if i["end_date"] is None)
            print(
                f"  {channel.staging_model.__tablename__}: {len(incidents)} rows "
                f"({open_count} open)"
            )

        elapsed = time.time() - start_time
        print(f"\n{'='*60}")
        print(f"Seed generation complete in {elapsed:.1f}s")
        print(f"{'='*60}\n")

    except Exception as e:
        session.rollback()
        print(f"\nERROR: Seed generation failed: {e}")
        raise
    finally:
        session.close()


def main():
    parser = argparse.ArgumentParser(description="Outage Sync Seed Data Generator")
    parser.add_argument(
        "--profile",
        type=str,
        default=settings.seed_profile,
        help="Seed profile (standard, minimal, planned_works, storm, scale_test)",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=settings.seed_random_seed,
        help="Random seed for reproducible data",
    )
    parser.add_argument(
        "--reset",
        action="store_true",
        help="Empty all staging and fact tables before generating",
    )
    args = parser.parse_args()
    run_seed(args.profile, args.seed, args.reset)


if __name__ == "__main__":
    main()
