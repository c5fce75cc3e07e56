"""JSON file persistence for cohorts, analyses and reports."""

from inflation_tracker.storage.file_storage import FileStorage

__all__ = ["FileStorage"]
