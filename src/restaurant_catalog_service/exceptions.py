"""Domain errors raised by the catalog and basket services.

Every error carries a message that is safe to return to the caller. Store-level
failures are translated into these errors at a single boundary
(``translate_store_errors``); everything else passes through unchanged.
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from restaurant_catalog_service.observability.metrics import record_store_error
from restaurant_catalog_service.repositories.base_repository import (
    RecordNotFound,
    UniqueConstraintViolation,
)

logger = logging.getLogger(__name__)


class CatalogServiceError(Exception):
    """Base class for all domain errors."""

    # Raised for caller mistakes; not reported as a failure on traces
    expected = True

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(CatalogServiceError):
    """Input was missing or had an invalid shape or value."""


class NotFoundError(CatalogServiceError):
    """Record is absent, or is owned by a different restaurant or customer."""


class DuplicateTitleError(CatalogServiceError):
    """A sibling with the same title already exists in the scope."""


class RestaurantNotFoundError(CatalogServiceError):
    """The restaurant directory does not know the restaurant (or is unreachable)."""


class UnexpectedError(CatalogServiceError):
    """Any other failure. The message is generic; details are only logged."""

    expected = False


@contextmanager
def translate_store_errors(
    action: str,
    duplicate_message: str | None = None,
    not_found_message: str | None = None,
    **context: Any,
) -> Iterator[None]:
    """Translate store exceptions raised inside the block into domain errors.

    Args:
        action: Short description of the operation, used in log lines and messages
        duplicate_message: Message for a unique violation on ``title``
        not_found_message: Message for a store ``RecordNotFound``
        **context: Extra fields logged alongside an unexpected failure

    Raises:
        DuplicateTitleError: On a unique constraint violation on ``title``
        NotFoundError: On ``RecordNotFound`` when ``not_found_message`` is given
        UnexpectedError: On any other non-domain exception
    """
    try:
        yield
    except CatalogServiceError:
        raise
    except UniqueConstraintViolation as e:
        if e.field == "title" and duplicate_message:
            raise DuplicateTitleError(duplicate_message) from e
        logger.exception(f"Unique constraint violated while trying to {action}", extra=context)
        raise UnexpectedError(f"An unexpected error occurred while trying to {action}.") from e
    except RecordNotFound as e:
        if not_found_message:
            raise NotFoundError(not_found_message) from e
        logger.exception(f"Record vanished while trying to {action}", extra=context)
        raise UnexpectedError(f"An unexpected error occurred while trying to {action}.") from e
    except Exception as e:
        logger.exception(f"Failed to {action}: {e}", extra=context)
        record_store_error(action)
        raise UnexpectedError(f"An unexpected error occurred while trying to {action}.") from e
