"""Perpetual sync loop: generate load, trigger per-channel sync, sleep.

Usage:
    python -m outage_sync.orchestrator.runner

Each cycle first generates synthetic incidents for every channel, then
triggers a sync for every channel over HTTP. All outbound calls share one
permit pool. stop() interrupts sleeps immediately and gives an in-flight
cycle a short grace period before it is cancelled.
"""

import asyncio
import enum
import logging
import random
import signal

import httpx

from outage_sync.config import Settings, settings
from outage_sync.orchestrator.retry import RetryPolicy
from outage_sync.seed.incidents import SCENARIOS
from outage_sync.sync.channels import CHANNELS, Channel

logger = logging.getLogger(__name__)

CYCLE_INTERVAL_SECONDS = 30.0
ERROR_COOLDOWN_SECONDS = 10.0
MAX_CONCURRENT_CALLS = 3
RATE_LIMIT_DELAY_SECONDS = 0.5
SHUTDOWN_GRACE_SECONDS = 5.0
RETRY_ATTEMPTS = 3
RETRY_BACKOFF_SECONDS = 1.0

LOAD_COUNT_RANGES = {
    "A": (2, 7),
    "B": (2, 5),
}


class OrchestratorState(str, enum.Enum):
    RUNNING = "running"
    GENERATING_LOAD = "generating_load"
    SYNCING = "syncing"
    SLEEPING = "sleeping"
    STOPPED = "stopped"


class SyncOrchestrator:
    def __init__(
        self,
        client: httpx.AsyncClient,
        channels: tuple[Channel, ...] = CHANNELS,
        rng: random.Random | None = None,
        retry_policy: RetryPolicy | None = None,
        cycle_interval: float = CYCLE_INTERVAL_SECONDS,
        error_cooldown: float = ERROR_COOLDOWN_SECONDS,
        max_concurrent_calls: int = MAX_CONCURRENT_CALLS,
        rate_limit_delay: float = RATE_LIMIT_DELAY_SECONDS,
        shutdown_grace: float = SHUTDOWN_GRACE_SECONDS,
    ):
        self.client = client
        self.channels = channels
        self.rng = rng or random.Random()
        self.retry_policy = retry_policy or RetryPolicy(RETRY_ATTEMPTS, RETRY_BACKOFF_SECONDS)
        self.cycle_interval = cycle_interval
        self.error_cooldown = error_cooldown
        self.rate_limit_delay = rate_limit_delay
        self.shutdown_grace = shutdown_grace

        self._permits = asyncio.Semaphore(max_concurrent_calls)
        self._stop = asyncio.Event()
        self.state = OrchestratorState.STOPPED
        self.cycle_count = 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def stop(self) -> None:
        if not self._stop.is_set():
            logger.info("Shutdown requested, waiting for in-flight calls to complete...")
        self._stop.set()

    async def run(self) -> None:
        """Run cycles until stop() is called."""
        logger.info("Sync orchestrator started (%d channels)", len(self.channels))
        self.state = OrchestratorState.RUNNING
        try:
            while not self._stop.is_set():
                self.cycle_count += 1
                pause = await self._run_guarded_cycle(self.cycle_count)
                if pause is None:
                    break
                self.state = OrchestratorState.SLEEPING
                if await self._sleep(pause):
                    break
                self.state = OrchestratorState.RUNNING
        finally:
            self.state = OrchestratorState.STOPPED
            logger.info("Sync orchestrator stopped after %d cycles", self.cycle_count)

    async def _sleep(self, seconds: float) -> bool:
        """Wait `seconds` or until stop(); returns True if stopped."""
        try:
            await asyncio.wait_for(self._stop.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return False
        return True

    async def _run_guarded_cycle(self, cycle_number: int) -> float | None:
        """Run one cycle; return the pause before the next, or None when stopping."""
        logger.info("--- Processing cycle %d ---", cycle_number)
        cycle = asyncio.create_task(self.run_cycle())
        stop_wait = asyncio.create_task(self._stop.wait())
        try:
            await asyncio.wait({cycle, stop_wait}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            cycle.cancel()
            raise
        finally:
            stop_wait.cancel()

        if not cycle.done():
            try:
                await asyncio.wait_for(cycle, timeout=self.shutdown_grace)
            except asyncio.TimeoutError:
                logger.warning(
                    "Cycle %d cancelled after %.0fs grace period", cycle_number, self.shutdown_grace
                )
            except Exception:
                logger.exception("Error in cycle %d during shutdown", cycle_number)
            return None

        try:
            cycle.result()
        except Exception:
            logger.exception("Error in cycle %d", cycle_number)
            return self.error_cooldown

        logger.info("Cycle %d completed", cycle_number)
        return self.cycle_interval

    # ------------------------------------------------------------------
    # Cycle
    # ------------------------------------------------------------------

    async def run_cycle(self) -> dict[str, bool]:
        """Generate load for every channel, then sync every channel.

        Returns:
            Sync success per channel source
        """
        self.state = OrchestratorState.GENERATING_LOAD
        loads = await asyncio.gather(
            *(self._generate_load(channel) for channel in self.channels),
            return_exceptions=True,
        )
        for channel, outcome in zip(self.channels, loads):
            if isinstance(outcome, Exception):
                logger.warning("Load generation for Source %s raised: %s", channel.source, outcome)

        logger.info("Incidents generated, starting sync...")
        self.state = OrchestratorState.SYNCING
        outcomes = await asyncio.gather(
            *(self._trigger_sync(channel) for channel in self.channels)
        )
        return {channel.source: ok for channel, ok in zip(self.channels, outcomes)}

    async def _generate_load(self, channel: Channel) -> bool:
        scenario = self.rng.choice(SCENARIOS)
        count = self.rng.randint(*LOAD_COUNT_RANGES.get(channel.source, (2, 5)))
        path = f"/testdata/{channel.testdata_slug}-incidents"

        ok = False
        try:
            async with self._permits:
                response = await self.retry_policy.call(
                    lambda: self.client.post(path, json={"count": count, "scenario": scenario}),
                    description=f"Generate {channel.testdata_slug} incidents",
                )
        except httpx.HTTPError as exc:
            logger.warning("Error generating %s incidents: %s", channel.testdata_slug, exc)
        else:
            if response.is_success:
                ok = True
                logger.info(
                    "Generated %d %s incidents (%s scenario)", count, channel.testdata_slug, scenario
                )
            else:
                logger.warning(
                    "Failed to generate %s incidents: HTTP %d",
                    channel.testdata_slug, response.status_code,
                )

        await self._sleep(self.rate_limit_delay)
        return ok

    async def _trigger_sync(self, channel: Channel) -> bool:
        ok = False
        try:
            async with self._permits:
                response = await self.retry_policy.call(
                    lambda: self.client.post("/sync", params={"source": channel.source}),
                    description=f"Sync Source {channel.source}",
                )
        except httpx.HTTPError as exc:
            logger.error("Error syncing Source %s: %s", channel.source, exc)
        else:
            ok = self._check_sync_response(channel, response)

        await self._sleep(self.rate_limit_delay)
        return ok

    def _check_sync_response(self, channel: Channel, response: httpx.Response) -> bool:
        """Success needs both a 2xx status and success=true in the body."""
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        if not response.is_success:
            logger.error(
                "HTTP error for Source %s: %d %s",
                channel.source, response.status_code, body.get("error") or "",
            )
            return False

        if not body.get("success"):
            logger.error(
                "Sync failed for Source %s: %s", channel.source, body.get("error") or "Unknown error"
            )
            return False

        logger.info("%s", body.get("message") or "Sync completed")
        logger.info(
            "Source %s: processed=%s details=%s",
            channel.source, body.get("totalProcessed", 0), body.get("insertedDetails", 0),
        )
        return True


def build_client(config: Settings) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        base_url=config.orchestrator_api_base_url,
        timeout=config.orchestrator_http_timeout_seconds,
        headers={"X-API-Key": config.api_key.get_secret_value()},
    )


async def serve(config: Settings) -> None:
    async with build_client(config) as client:
        orchestrator = SyncOrchestrator(client)
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, orchestrator.stop)
            except NotImplementedError:
                signal.signal(sig, lambda *_: loop.call_soon_threadsafe(orchestrator.stop))
        await orchestrator.run()


def main():
    logging.basicConfig(
        level=settings.orchestrator_log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    asyncio.run(serve(settings))


if __name__ == "__main__":
    main()
