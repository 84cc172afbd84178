"""Digest scheduling configuration."""

from datetime import timedelta
from typing import Literal

from pydantic import BaseModel, Field

from chronicle.models.rules import Duration


class DigestConfig(BaseModel):
    """Tick cadence and tick locking."""

    tick_interval: Duration = Field(
        default=timedelta(minutes=5), description="Time between digest ticks"
    )
    lock_backend: Literal["memory", "redis"] = Field(
        default="memory",
        description="memory for one process, redis when ticks run in several",
    )
    redis_url: str = Field(default="redis://localhost:6379/0")
    lock_timeout_seconds: float = Field(
        default=300.0, gt=0, description="Auto-release of a tick lock whose holder died"
    )
