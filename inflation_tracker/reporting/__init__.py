"""Report rendering."""

from inflation_tracker.reporting.reporter import Reporter, RenderedReport

__all__ = ["Reporter", "RenderedReport"]
