"""
File persistence layer for tracker data.

Layout under the data directory:

    receivers/top-receivers.json             current cohort
    receivers/top-receivers-YYYY-MM-DD.json  dated cohort backups
    analysis/latest.json                     most recent analysis
    analysis/YYYY-MM-DD/analysis-<ts>.json   every analysis, by period end
    reports/<type>-YYYY-MM-DD.(json|html)    rendered reports

Writes are best effort: a failed save is logged and reported as False so a
tracking cycle is never aborted by disk problems.
"""

import json
import time
from pathlib import Path
from typing import Any, Callable, List, Optional, Sequence, Union
import structlog

from inflation_tracker.models.analysis import AnalysisResult
from inflation_tracker.models.events import RewardReceiver
from inflation_tracker.utils.time import date_stamp, format_timestamp

logger = structlog.get_logger(__name__)

SECONDS_PER_DAY = 86400
STORAGE_ERRORS = (OSError, ValueError, TypeError, KeyError)


class FileStorage:
    """JSON file store for cohorts, analyses and reports."""

    SUBDIRS = ("receivers", "analysis", "reports")

    def __init__(self, data_dir: Union[str, Path] = "data",
                 clock: Callable[[], float] = time.time):
        self.data_dir = Path(data_dir)
        self._clock = clock
        self.logger = logger.bind(component="file_storage")
        self.ensure_directories()

    def ensure_directories(self) -> None:
        for name in self.SUBDIRS:
            (self.data_dir / name).mkdir(parents=True, exist_ok=True)

    @property
    def cohort_path(self) -> Path:
        return self.data_dir / "receivers" / "top-receivers.json"

    @property
    def latest_analysis_path(self) -> Path:
        return self.data_dir / "analysis" / "latest.json"

    def _write_json(self, path: Path, data: Any) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2)

    def _read_json(self, path: Path) -> Any:
        with open(path, 'r', encoding='utf-8') as f:
            return json.load(f)

    # Cohort

    def save_cohort(self, receivers: Sequence[RewardReceiver]) -> bool:
        """Save the cohort as the current file plus a dated backup."""
        now = int(self._clock())
        data = {
            "timestamp": format_timestamp(now),
            "count": len(receivers),
            "receivers": [r.to_dict() for r in receivers],
        }
        try:
            self._write_json(self.cohort_path, data)
            backup = self.cohort_path.with_name(f"top-receivers-{date_stamp(now)}.json")
            self._write_json(backup, data)
        except STORAGE_ERRORS as e:
            self.logger.error("Failed to save cohort", error=str(e))
            return False

        self.logger.info("Saved cohort", count=len(receivers))
        return True

    def load_cohort(self) -> List[RewardReceiver]:
        """Load the current cohort (empty when none has been saved)."""
        if not self.cohort_path.exists():
            self.logger.warning("No cohort file found", path=str(self.cohort_path))
            return []

        try:
            data = self._read_json(self.cohort_path)
            receivers = [
                RewardReceiver(address=entry) if isinstance(entry, str) else RewardReceiver.from_dict(entry)
                for entry in data.get("receivers", [])
            ]
        except STORAGE_ERRORS as e:
            self.logger.error("Failed to load cohort", error=str(e))
            return []

        self.logger.info("Loaded cohort", count=len(receivers), saved_at=data.get("timestamp"))
        return receivers

    # Analyses

    def save_analysis(self, result: AnalysisResult) -> bool:
        """Save as latest.json and under the day of the period end."""
        data = result.to_dict()
        dated = (self.data_dir / "analysis" / date_stamp(result.timestamp)
                 / f"analysis-{result.timestamp}.json")
        try:
            self._write_json(self.latest_analysis_path, data)
            self._write_json(dated, data)
        except STORAGE_ERRORS as e:
            self.logger.error("Failed to save analysis", error=str(e))
            return False

        self.logger.info("Saved analysis",
                         period_end=result.timestamp,
                         total_rewards=float(result.summary.total_rewards))
        return True

    def load_latest_analysis(self) -> Optional[AnalysisResult]:
        if not self.latest_analysis_path.exists():
            self.logger.warning("No latest analysis found")
            return None

        try:
            return AnalysisResult.from_dict(self._read_json(self.latest_analysis_path))
        except STORAGE_ERRORS as e:
            self.logger.error("Failed to load latest analysis", error=str(e))
            return None

    def load_historical_analyses(self, days: int = 7,
                                 today: Optional[int] = None) -> List[AnalysisResult]:
        """
        Load saved analyses for the `days` calendar days ending at `today`.

        Days are visited newest first; analyses within a day are in file order.
        Unreadable files are skipped.
        """
        reference = int(self._clock()) if today is None else int(today)
        analyses = []

        for offset in range(days):
            day_dir = self.data_dir / "analysis" / date_stamp(reference - offset * SECONDS_PER_DAY)
            if not day_dir.is_dir():
                continue
            for path in sorted(day_dir.glob("*.json")):
                try:
                    analyses.append(AnalysisResult.from_dict(self._read_json(path)))
                except STORAGE_ERRORS as e:
                    self.logger.error("Skipping unreadable analysis", path=str(path), error=str(e))

        return analyses

    # Reports

    def save_report(self, report, report_type: Optional[str] = None) -> bool:
        """
        Save a rendered report as JSON, plus HTML when the report carries markup.

        Args:
            report: RenderedReport from the reporter
            report_type: Overrides the report's own type in the file name
        """
        report_type = report_type or report.report_type
        date = date_stamp(report.generated_at)
        reports_dir = self.data_dir / "reports"
        try:
            self._write_json(reports_dir / f"{report_type}-{date}.json", report.to_dict())
            if report.html:
                (reports_dir / f"{report_type}-{date}.html").write_text(report.html, encoding='utf-8')
        except STORAGE_ERRORS as e:
            self.logger.error("Failed to save report", report_type=report_type, error=str(e))
            return False

        self.logger.info("Saved report", report_type=report_type, date=date)
        return True

