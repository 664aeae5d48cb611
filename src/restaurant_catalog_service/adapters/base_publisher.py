"""Base publisher for catalog events.

Services hand events to an ``EventPublisher`` instead of talking to a broker
directly. Publishing failures are logged and reported as ``False``; they never
fail the catalog operation that produced the event.
"""

import logging
from abc import ABC, abstractmethod

from restaurant_catalog_service.models.event_models import CategoryCreatedEvent

logger = logging.getLogger(__name__)


class EventPublisher(ABC):
    """Abstract base class for event sinks."""

    @abstractmethod
    async def publish(self, event: CategoryCreatedEvent) -> bool:
        """Publish an event.

        Args:
            event: The event to publish

        Returns:
            bool: True if the event was accepted, False otherwise
        """


class NoOpEventPublisher(EventPublisher):
    """Publisher that drops every event. Used when publishing is disabled."""

    async def publish(self, event: CategoryCreatedEvent) -> bool:
        logger.debug(f"Event publishing disabled, dropping {event.detail_type}")
        return True
