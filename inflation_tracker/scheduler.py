"""
Reward Flow Tracker Scheduler

Runs periodically to:
1. Collect rewards and outgoing transfers for the cohort
2. Classify exchange flows and analyze sell pressure
3. Generate the periodic report
"""

import time
import signal
from typing import Callable, Optional
import schedule
import structlog

from inflation_tracker.core.errors import TrackerError
from inflation_tracker.core.tracker import InflationTracker, CycleResult
from inflation_tracker.reporting.reporter import RenderedReport

logger = structlog.get_logger(__name__)


class TrackerScheduler:
    """Runs tracking cycles and reports on fixed intervals."""

    def __init__(self,
                 tracker: InflationTracker,
                 tracking_interval_minutes: Optional[int] = None,
                 report_interval_hours: Optional[int] = None,
                 scheduler: Optional[schedule.Scheduler] = None,
                 sleep: Callable[[float], None] = time.sleep):
        self.tracker = tracker
        self.tracking_interval_minutes = tracking_interval_minutes or tracker.config.tracking_interval_minutes
        self.report_interval_hours = report_interval_hours or tracker.config.report_interval_hours
        self.scheduler = scheduler or schedule.Scheduler()
        self._sleep = sleep
        self.running = False
        self.cycles_run = 0
        self.cycles_failed = 0
        self.logger = logger.bind(component="scheduler")

    def _shutdown_handler(self, signum, frame):
        """Handle shutdown signals."""
        self.logger.info("Shutdown signal received", signal=signum)
        self.running = False

    def run_tracking_job(self) -> Optional[CycleResult]:
        """Scheduled cycle; a failed cycle is logged and the schedule continues."""
        try:
            result = self.tracker.run_cycle()
        except TrackerError as e:
            self.cycles_failed += 1
            self.logger.error("Tracking cycle failed", error=str(e))
            return None

        self.cycles_run += 1
        return result

    def run_report_job(self) -> Optional[RenderedReport]:
        report = self.tracker.generate_report()
        if report is not None:
            self.logger.info("Scheduled report generated", report_type=report.report_type)
        return report

    def configure(self) -> None:
        """Register the tracking and report jobs."""
        self.scheduler.clear()
        self.scheduler.every(self.tracking_interval_minutes).minutes.do(self.run_tracking_job)
        self.scheduler.every(self.report_interval_hours).hours.do(self.run_report_job)

    def start(self, install_signal_handlers: bool = True) -> None:
        """
        Initialize the tracker, run one cycle immediately and loop until stopped.

        Raises:
            TrackerError: initialization failed (registry or cohort discovery)
        """
        self.logger.info("Starting tracker scheduler",
                         tracking_interval_minutes=self.tracking_interval_minutes,
                         report_interval_hours=self.report_interval_hours)

        if install_signal_handlers:
            signal.signal(signal.SIGINT, self._shutdown_handler)
            signal.signal(signal.SIGTERM, self._shutdown_handler)

        self.tracker.initialize()
        self.configure()
        self.running = True
        self.run_tracking_job()

        while self.running:
            self.scheduler.run_pending()
            self._sleep(1)

        self.scheduler.clear()
        self.logger.info("Scheduler stopped",
                         cycles_run=self.cycles_run,
                         cycles_failed=self.cycles_failed)

    def stop(self) -> None:
        self.running = False
