"""Run outage synchronization from the command line.

Runs the channel sync in-process (no HTTP), or starts the perpetual
orchestrator loop against a running API.

Usage:
    python scripts/run_sync.py --source A        # Cabin channel once
    python scripts/run_sync.py --source all      # Every channel once
    python scripts/run_sync.py --loop            # Orchestrator loop (Ctrl+C to stop)
"""

import argparse
import asyncio
import logging
import sys
from datetime import datetime
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from outage_sync.config import settings
from outage_sync.db.session import SyncSessionLocal
from outage_sync.orchestrator.runner import serve
from outage_sync.sync.channels import CHANNELS
from outage_sync.sync.engine import SyncResult, build_sync_engine


def sync_once(sources: list[str]) -> list[SyncResult]:
    """Sync each source in turn and print its outcome."""
    engine = build_sync_engine(SyncSessionLocal, settings)
    results = []
    for source in sources:
        print(f"🔄 Syncing Source {source}...")
        result = engine.run(source)
        if result.success:
            print(f"   ✅ {result.message}")
            print(f"   Created: {result.created_incidents}  Closed: {result.closed_incidents}  "
                  f"Details: {result.inserted_details}")
        else:
            print(f"   ❌ {result.message}: {result.error}")
        results.append(result)
    return results


def main():
    parser = argparse.ArgumentParser(description="Run outage incident synchronization")
    parser.add_argument(
        "--source",
        default="all",
        help="Channel to sync: A (cabin), B (cable) or all",
    )
    parser.add_argument("--loop", action="store_true", help="Run the orchestrator loop")
    args = parser.parse_args()

    logging.basicConfig(
        level=settings.orchestrator_log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    print("=" * 60)
    print("🚀 Outage Sync")
    print("=" * 60)
    print(f"Environment: {settings.environment}")
    print(f"Procedures: {settings.sync_procedure_mode}")
    print(f"Timestamp: {datetime.now()}")
    print("=" * 60)

    if args.loop:
        print(f"🔁 Orchestrator loop against {settings.orchestrator_api_base_url}")
        asyncio.run(serve(settings))
        return

    if args.source.lower() == "all":
        sources = [channel.source for channel in CHANNELS]
    else:
        sources = [args.source]

    try:
        results = sync_once(sources)
    except ValueError as e:
        parser.error(str(e))

    print("\n" + "=" * 60)
    print("📊 Sync Summary:")
    print("=" * 60)
    for result in results:
        status = "OK" if result.success else "FAILED"
        print(f"  Source {result.source}: {status} "
              f"(processed {result.total_processed}, details {result.inserted_details})")

    if not all(result.success for result in results):
        sys.exit(1)
    print("\n✅ Sync completed!")


if __name__ == "__main__":
    main()
