"""Configuration management using Pydantic settings."""

from decimal import Decimal
from typing import Optional
from pydantic import Field
from pydantic_settings import BaseSettings


class TrackerConfig(BaseSettings):
    """Configuration for the reward flow tracker."""

    # Subscan API Settings
    subscan_api_url: str = Field(default="https://polkadot.api.subscan.io", description="Subscan API base URL")
    subscan_api_key: Optional[str] = Field(default=None, description="Subscan API key")
    request_timeout: float = Field(default=30.0, description="Per-page request timeout in seconds")
    max_retries: int = Field(default=3, description="Retry attempts for transient request failures")
    retry_backoff: float = Field(default=1.0, description="Base delay for exponential retry backoff")

    # Rate Limit Settings
    rate_limit_min_interval: float = Field(default=0.2, description="Minimum seconds between request dispatches")
    rate_limit_max_concurrent: int = Field(default=5, description="Maximum in-flight requests")

    # Pagination Settings
    page_size: int = Field(default=100, description="Rows per page for account and transfer queries")
    reward_page_size: int = Field(default=20, description="Rows per page for reward queries")
    reward_max_records: int = Field(default=100, description="Maximum reward records fetched per address")
    planck_per_token: int = Field(default=10 ** 10, description="Smallest units per token (DOT = 1e10)")

    # Collection Settings
    reward_batch_size: int = Field(default=5, description="Addresses per reward collection batch")
    transfer_batch_size: int = Field(default=10, description="Addresses per transfer collection batch")
    batch_pause_seconds: float = Field(default=1.0, description="Pause between collection batches")
    window_hours: int = Field(default=24, description="Hours of history analyzed per cycle")
    cohort_limit: int = Field(default=1000, description="Top reward receivers to track")

    # Analysis Settings
    rapid_sell_time_hours: float = Field(default=1.0, description="Reward-to-deposit time marking a quick seller")
    large_flow_threshold: Decimal = Field(default=Decimal('10000'), description="Deposit size counted as a large flow")

    # Storage Settings
    exchange_registry_path: str = Field(default="config/exchanges.json", description="Exchange address registry file")
    data_dir: str = Field(default="data", description="Directory for cohort, analysis and report files")

    # Scheduling Settings
    tracking_interval_minutes: int = Field(default=60, description="Minutes between tracking cycles")
    report_interval_hours: int = Field(default=24, description="Hours between generated reports")

    # Logging Settings
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="text", description="Log format (json|text)")
    log_file: Optional[str] = Field(default="logs/tracker.log", description="Log file path")
    log_max_size_mb: int = Field(default=50, description="Max log file size in MB")
    log_backup_count: int = Field(default=5, description="Number of log backups")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        env_prefix = "TRACKER_"
        extra = "ignore"

    @property
    def rapid_sell_threshold_seconds(self) -> int:
        """Quick seller threshold in seconds."""
        return int(self.rapid_sell_time_hours * 3600)

    def analyzer_config(self):
        """Build the flow analyzer thresholds from this configuration."""
        from inflation_tracker.core.flow_analyzer import AnalyzerConfig

        return AnalyzerConfig(
            rapid_sell_threshold_seconds=self.rapid_sell_threshold_seconds,
            large_flow_threshold=Decimal(str(self.large_flow_threshold)),
        )
