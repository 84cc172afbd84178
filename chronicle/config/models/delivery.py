"""Delivery and driver configuration."""

from typing import Annotated, Literal

from pydantic import BaseModel, Field, SecretStr


class DeliveryConfig(BaseModel):
    """Retry policy and dead-letter target."""

    max_attempts: int = Field(default=5, ge=1, le=20)
    base_delay_seconds: float = Field(default=0.5, ge=0)
    max_delay_seconds: float = Field(default=30.0, ge=0)
    dead_letter: Literal["log", "memory"] = Field(
        default="log", description="Where undeliverable objects go"
    )


class MemoryDriverConfig(BaseModel):
    """In-memory driver (development and tests)."""

    type: Literal["memory"] = "memory"
    name: str


class WebhookDriverConfig(BaseModel):
    """HTTP webhook driver."""

    type: Literal["webhook"] = "webhook"
    name: str
    url: str
    secret: SecretStr
    timeout_ms: int = Field(default=10000, ge=100)


DriverConfig = Annotated[
    MemoryDriverConfig | WebhookDriverConfig,
    Field(discriminator="type"),
]
