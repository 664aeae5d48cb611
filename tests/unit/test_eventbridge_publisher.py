"""Unit tests for the event publishers."""

import json
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from restaurant_catalog_service.adapters.base_publisher import NoOpEventPublisher
from restaurant_catalog_service.adapters.eventbridge_publisher import (
    EVENT_SOURCE,
    EventBridgePublisher,
)
from restaurant_catalog_service.models.catalog_models import Category
from restaurant_catalog_service.models.event_models import CategoryCreatedEvent


@pytest.fixture
def event(sample_category: Category) -> CategoryCreatedEvent:
    return CategoryCreatedEvent.from_category(sample_category)


@pytest.mark.unit
class TestEventBridgePublisher:
    """Test suite for EventBridgePublisher."""

    @pytest.fixture
    def mock_events_client(self) -> MagicMock:
        """Create a mock EventBridge client accepting every entry."""
        client = MagicMock()
        client.put_events.return_value = {"FailedEntryCount": 0, "Entries": [{"EventId": "e1"}]}
        return client

    @pytest.mark.asyncio
    async def test_publish_success(
        self, mock_events_client: MagicMock, event: CategoryCreatedEvent
    ) -> None:
        publisher = EventBridgePublisher(mock_events_client, event_bus_name="catalog-bus")

        assert await publisher.publish(event) is True

        entry = mock_events_client.put_events.call_args.kwargs["Entries"][0]
        assert entry["Source"] == EVENT_SOURCE
        assert entry["DetailType"] == "CategoryCreated"
        assert entry["EventBusName"] == "catalog-bus"
        detail = json.loads(entry["Detail"])
        assert detail["category_id"] == "cat_1"
        assert detail["restaurant_id"] == "rest_123456"
        assert "detail_type" not in detail

    @pytest.mark.asyncio
    async def test_publish_rejected_entry(
        self, mock_events_client: MagicMock, event: CategoryCreatedEvent
    ) -> None:
        mock_events_client.put_events.return_value = {
            "FailedEntryCount": 1,
            "Entries": [{"ErrorCode": "InternalFailure", "ErrorMessage": "try again"}],
        }
        publisher = EventBridgePublisher(mock_events_client)

        assert await publisher.publish(event) is False

    @pytest.mark.asyncio
    async def test_publish_client_error(
        self, mock_events_client: MagicMock, event: CategoryCreatedEvent
    ) -> None:
        mock_events_client.put_events.side_effect = ClientError(
            {"Error": {"Code": "AccessDeniedException", "Message": "denied"}}, "PutEvents"
        )
        publisher = EventBridgePublisher(mock_events_client)

        assert await publisher.publish(event) is False


@pytest.mark.unit
class TestNoOpEventPublisher:
    """Test suite for NoOpEventPublisher."""

    @pytest.mark.asyncio
    async def test_accepts_and_drops(self, event: CategoryCreatedEvent) -> None:
        assert await NoOpEventPublisher().publish(event) is True
