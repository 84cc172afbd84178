"""Configuration section models."""

from chronicle.config.models.delivery import (
    DeliveryConfig,
    DriverConfig,
    MemoryDriverConfig,
    WebhookDriverConfig,
)
from chronicle.config.models.digest import DigestConfig
from chronicle.config.models.events import EventTypesConfig, RoutingConfig, RulesConfig
from chronicle.config.models.observability import ObservabilityConfig

__all__ = [
    "DeliveryConfig",
    "DigestConfig",
    "DriverConfig",
    "EventTypesConfig",
    "MemoryDriverConfig",
    "ObservabilityConfig",
    "RoutingConfig",
    "RulesConfig",
    "WebhookDriverConfig",
]
