# marketplace/scheduler.py
from typing import Optional
from apscheduler.schedulers.background import BackgroundScheduler
from .lifecycle import LifecycleManager, SweepResult
from .utils import logger

SWEEP_JOB_ID = "listing-sweep"


class SweepScheduler:
    """Runs the listing sweep on a fixed interval, independent of request traffic.

    ``tick()`` is the unit of work and reads time from the manager's clock, so
    tests drive it directly without sleeping. A failed tick is logged and left
    for the next one.
    """

    def __init__(self, manager: LifecycleManager, interval_seconds: int,
                 run_on_start: bool = True, scheduler: BackgroundScheduler = None):
        self.manager = manager
        self.interval_seconds = interval_seconds
        self.run_on_start = run_on_start
        self.scheduler = scheduler or BackgroundScheduler(timezone="UTC")

    def tick(self) -> Optional[SweepResult]:
        try:
            result = self.manager.sweep(self.manager.clock.now())
        except Exception:
            logger.exception("Listing sweep failed; will retry on next tick")
            return None
        logger.info("Sweep complete: %s deactivated, %s purged", result.deactivated, result.purged)
        return result

    def start(self) -> None:
        if self.scheduler.running:
            return
        self.scheduler.add_job(
            self.tick,
            "interval",
            seconds=self.interval_seconds,
            id=SWEEP_JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self.scheduler.start()
        logger.info("Scheduler started (sweep every %s sec)", self.interval_seconds)
        if self.run_on_start:
            # one immediate pass, off the request path
            self.scheduler.add_job(self.tick, id=f"{SWEEP_JOB_ID}-startup", replace_existing=True)

    def shutdown(self, wait: bool = False) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=wait)
            logger.info("Scheduler stopped")
