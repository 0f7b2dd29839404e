"""
Error Handler Utility for the marketplace's outer surfaces

Provides centralized conversion of exceptions into responses with:
- HTTP-style status codes taken from the exception category
- Retry hints for transient failures
- Redacted messages in production, full detail in development
- Logging for debugging

Usage:
    from utils.error_handler import handle_service_error

    try:
        result = await OrderManagementService.approve(order_id, staff_id, session=session)
    except Exception as e:
        response = handle_service_error(e)
"""

import logging

from pydantic import BaseModel

import config
from enums.runtime_environment import RuntimeEnvironment
from exceptions import (
    MarketplaceException,
    ValidationException,
    NotFoundException,
    ConflictException,
    TransientStoreException,
    ExternalServiceException,
    ApprovalFailedException,
    PaymentIncompleteException,
)

logger = logging.getLogger(__name__)


class ErrorResponseDTO(BaseModel):
    status_code: int
    error: str
    message: str
    details: dict = {}
    retryable: bool = False


# Generic messages shown in production instead of the exception text
REDACTED_MESSAGES = {
    ValidationException: "The request is invalid",
    NotFoundException: "The requested resource was not found",
    ConflictException: "The request conflicts with the current state",
    TransientStoreException: "Service temporarily unavailable, please try again",
    ExternalServiceException: "A dependent service failed, please try again later",
    ApprovalFailedException: "Approval could not be completed, please try again",
    PaymentIncompleteException: "Payment has not been completed yet",
}


def _redacted_message(exception: MarketplaceException) -> str:
    for exception_type in type(exception).__mro__:
        if exception_type in REDACTED_MESSAGES:
            return REDACTED_MESSAGES[exception_type]
    return "An unexpected error occurred"


def handle_service_error(exception: Exception) -> ErrorResponseDTO:
    """
    Convert any exception raised by a service into an error response.

    Args:
        exception: The exception raised by a service

    Returns:
        ErrorResponseDTO with status, error name, message and retry hint

    Example:
        try:
            await FulfillmentService.check_access(item_id, requester, session)
        except Exception as e:
            response = handle_service_error(e)
    """
    production = config.RUNTIME_ENVIRONMENT == RuntimeEnvironment.PROD

    if not isinstance(exception, MarketplaceException):
        logger.error(f"Unhandled exception: {type(exception).__name__}: {exception}", exc_info=exception)
        return ErrorResponseDTO(
            status_code=500,
            error="InternalError",
            message="Internal server error" if production else f"{type(exception).__name__}: {exception}",
        )

    if exception.status_code >= 500:
        logger.error(f"Service error handled: {type(exception).__name__} - {str(exception)}")
    else:
        logger.warning(f"Service error handled: {type(exception).__name__} - {str(exception)}")

    # The pending status is what clients need to show "awaiting approval"
    details = exception.details
    if production:
        details = {'status': exception.status} if isinstance(exception, PaymentIncompleteException) else {}

    return ErrorResponseDTO(
        status_code=exception.status_code,
        error=type(exception).__name__,
        message=_redacted_message(exception) if production else exception.message,
        details=details,
        retryable=exception.retryable,
    )
