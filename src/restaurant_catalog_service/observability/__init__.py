"""Logging, tracing and metrics for the catalog service."""

from restaurant_catalog_service.observability.config import configure_logging, setup_observability
from restaurant_catalog_service.observability.decorators import traced

__all__ = ["configure_logging", "setup_observability", "traced"]
