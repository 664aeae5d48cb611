"""EventBridge publisher implementation.

Sends catalog events to an EventBridge bus with source ``com.restaurant.catalog``
so downstream consumers (for example the platform sync service) can react to
catalog changes.
"""

import asyncio
import logging
from typing import Any

from botocore.exceptions import BotoCoreError, ClientError

from restaurant_catalog_service.adapters.base_publisher import EventPublisher
from restaurant_catalog_service.models.event_models import CategoryCreatedEvent

logger = logging.getLogger(__name__)

EVENT_SOURCE = "com.restaurant.catalog"


class EventBridgePublisher(EventPublisher):
    """Publishes catalog events to Amazon EventBridge."""

    def __init__(self, events_client: Any, event_bus_name: str = "default") -> None:
        """Initialize the publisher.

        Args:
            events_client: Boto3 EventBridge client
            event_bus_name: Name of the bus to publish to
        """
        self.events_client = events_client
        self.event_bus_name = event_bus_name

    async def publish(self, event: CategoryCreatedEvent) -> bool:
        """Send the event with a single PutEvents call.

        Args:
            event: The event to publish

        Returns:
            bool: True if EventBridge accepted the entry, False otherwise
        """
        entry = {
            "Source": EVENT_SOURCE,
            "DetailType": event.detail_type,
            "Detail": event.model_dump_json(),
            "EventBusName": self.event_bus_name,
        }

        try:
            response = await asyncio.to_thread(self.events_client.put_events, Entries=[entry])
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to publish {event.detail_type} event: {e}")
            return False

        if response.get("FailedEntryCount", 0):
            failure = response.get("Entries", [{}])[0]
            logger.error(
                f"EventBridge rejected {event.detail_type} event: "
                f"{failure.get('ErrorCode')} {failure.get('ErrorMessage')}"
            )
            return False

        logger.info(f"Published {event.detail_type} event to bus {self.event_bus_name}")
        return True
