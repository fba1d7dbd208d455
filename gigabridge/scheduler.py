from __future__ import annotations

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from .authorizer import ChargeResult
from .errors import GigachargerError
from .orchestrator import SessionOrchestrator
from .vehicle import VehicleClient

logger = logging.getLogger(__name__)


class ChargingJob:
    """Starts charging, but only while the car is parked at home.

    With no vehicle client or home location configured the location check is
    skipped and charging always starts.
    """

    def __init__(
        self,
        orchestrator: SessionOrchestrator,
        vehicle: VehicleClient | None = None,
        home: tuple[float, float] | None = None,
        radius_m: float = 100,
    ) -> None:
        self.orchestrator = orchestrator
        self.vehicle = vehicle
        self.home = home
        self.radius_m = radius_m

    @property
    def gated(self) -> bool:
        return self.vehicle is not None and self.home is not None

    async def vehicle_at_home(self) -> bool:
        if not self.gated:
            return True
        lat, lon = self.home
        return await self.vehicle.is_in_target_location(lat, lon, self.radius_m)

    async def start_if_home(self, charger_id: str | None = None) -> ChargeResult | None:
        if not await self.vehicle_at_home():
            logger.info("Vehicle is not at home - not starting charging")
            return None
        return await self.orchestrator.authorize_charging(charger_id)

    async def run(self) -> ChargeResult | None:
        """Scheduler entry point; failures are logged, never raised."""
        logger.info("Running scheduled charging job")
        try:
            return await self.start_if_home()
        except GigachargerError as e:
            logger.error(f"Scheduled charging failed ({e.kind}): {e}")
            return None


def build_scheduler(job: ChargingJob, cron: str | None) -> AsyncIOScheduler | None:
    if not cron:
        return None
    scheduler = AsyncIOScheduler()
    scheduler.add_job(job.run, CronTrigger.from_crontab(cron), id="charging_job", coalesce=True, max_instances=1)
    logger.info(f"Charging job scheduled with cron '{cron}'")
    return scheduler
