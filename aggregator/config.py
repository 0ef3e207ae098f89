"""
Aggregator Configuration

YAML file -> validated AggregatorConfig. Schedules are parsed during
validation, so a malformed schedule stops startup instead of leaving the
timer silently never firing.
"""

import logging
import os
from pathlib import Path
from typing import List, Optional, Union

import yaml
from pydantic import BaseModel, Field, field_validator

from .schedule import ScheduleSet, parse_schedules

logger = logging.getLogger("aggregator_config")

# -----------------------------------------------------------------------------
# Configuration
# -----------------------------------------------------------------------------
CONFIG_PATH_ENV = "AGGREGATOR_CONFIG"
DEFAULT_CONFIG_PATH = Path("/etc/aggregator/config.yaml")


class AggregatorConfig(BaseModel):
    """Settings for pollers, views and the stats refresh timer."""
    stats_refresh_schedules: List[str] = Field(
        default_factory=lambda: ["0 * * * *"],
        description="Cron expressions or macro aliases; earliest firing wins",
    )
    poll_interval_seconds: int = Field(default=30, gt=0)
    projection_timeout_seconds: Optional[float] = Field(default=10.0, gt=0)
    stats_history_size: int = Field(default=24, gt=0)
    stats_retry_delay_seconds: int = Field(default=60, gt=0)

    @field_validator("stats_refresh_schedules")
    @classmethod
    def _validate_schedules(cls, value: List[str]) -> List[str]:
        # ScheduleParseError is a ValueError: pydantic reports it as a
        # validation error carrying the parser's message.
        parse_schedules(value)
        return value

    def schedule_set(self) -> ScheduleSet:
        return parse_schedules(self.stats_refresh_schedules)


def read_yaml_file(file_path: Path) -> dict:
    """Read and parse a YAML file."""
    if not file_path.exists():
        raise FileNotFoundError(f"File not found: {file_path}")
    with open(file_path, "r") as f:
        return yaml.safe_load(f) or {}


def load_config(path: Optional[Union[str, Path]] = None) -> AggregatorConfig:
    """
    Load and validate configuration.

    Path resolution: explicit argument, then $AGGREGATOR_CONFIG, then
    DEFAULT_CONFIG_PATH. Raises pydantic.ValidationError on invalid values.
    """
    if path is None:
        path = os.getenv(CONFIG_PATH_ENV, str(DEFAULT_CONFIG_PATH))
    config_path = Path(path)

    data = read_yaml_file(config_path)
    config = AggregatorConfig(**data)
    logger.info(
        f"Loaded config from {config_path}: schedules={config.stats_refresh_schedules}, "
        f"poll_interval={config.poll_interval_seconds}s"
    )
    return config
