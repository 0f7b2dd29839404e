"""
Custom exceptions for the marketplace.

This module provides a hierarchy of custom exceptions for consistent error handling
throughout the application. Every exception belongs to one category which decides
how the outer surface answers and whether the call may be repeated.

Categories:
-----------
MarketplaceException (base)
├── ValidationException        400, not retried
├── NotFoundException          404
├── ConflictException          409
├── TransientStoreException    503, retryable
└── ExternalServiceException   502, not retried

Domain exceptions:
------------------
CartException
├── EmptyCartException (conflict)
├── CartEntryNotFoundException (not found)
└── CartChangedException (conflict)
ItemException
├── ItemNotFoundException (not found)
├── ItemUnavailableException (conflict)
├── NotFreeItemException (validation)
├── FreeItemOrderException (validation)
└── InvalidItemStateException (conflict)
OrderException
├── OrderNotFoundException (not found)
├── BundleNotFoundException (not found)
├── AlreadyOwnedException (conflict)
├── OrderAlreadyPaidException (conflict)
├── InvalidOrderStateException (conflict)
├── MissingReasonException (validation)
└── ApprovalFailedException (retryable)
PaymentException
├── InvalidAmountException (validation)
├── InvalidPayeeException (validation)
├── InvalidPaymentPayloadException (validation)
└── QRRenderException (external)
DownloadException
├── PaymentIncompleteException (403, carries the order status)
├── BlobStoreException (external)
└── WatermarkFailedException (external)

Usage:
------
Services raise specific exceptions:
    raise OrderNotFoundException(order_id=123)

Callers convert them with utils.error_handler:
    try:
        await OrderManagementService.approve(order_id, staff_id, session=session)
    except MarketplaceException as e:
        response = handle_service_error(e)
"""

from .base import (
    MarketplaceException,
    ValidationException,
    AuthenticationRequiredException,
    NotFoundException,
    ConflictException,
    TransientStoreException,
    ExternalServiceException,
)
from .cart import CartException, EmptyCartException, CartEntryNotFoundException, CartChangedException
from .item import (
    ItemException,
    ItemNotFoundException,
    ItemUnavailableException,
    NotFreeItemException,
    FreeItemOrderException,
    InvalidItemStateException,
)
from .order import (
    OrderException,
    OrderNotFoundException,
    BundleNotFoundException,
    AlreadyOwnedException,
    OrderAlreadyPaidException,
    InvalidOrderStateException,
    MissingReasonException,
    ApprovalFailedException,
)
from .payment import (
    PaymentException,
    InvalidAmountException,
    InvalidPayeeException,
    InvalidPaymentPayloadException,
    QRRenderException,
)
from .download import DownloadException, PaymentIncompleteException, BlobStoreException, WatermarkFailedException

__all__ = [
    # Base and categories
    'MarketplaceException',
    'ValidationException',
    'AuthenticationRequiredException',
    'NotFoundException',
    'ConflictException',
    'TransientStoreException',
    'ExternalServiceException',

    # Cart
    'CartException',
    'EmptyCartException',
    'CartEntryNotFoundException',
    'CartChangedException',

    # Item
    'ItemException',
    'ItemNotFoundException',
    'ItemUnavailableException',
    'NotFreeItemException',
    'FreeItemOrderException',
    'InvalidItemStateException',

    # Order
    'OrderException',
    'OrderNotFoundException',
    'BundleNotFoundException',
    'AlreadyOwnedException',
    'OrderAlreadyPaidException',
    'InvalidOrderStateException',
    'MissingReasonException',
    'ApprovalFailedException',

    # Payment
    'PaymentException',
    'InvalidAmountException',
    'InvalidPayeeException',
    'InvalidPaymentPayloadException',
    'QRRenderException',

    # Download
    'DownloadException',
    'PaymentIncompleteException',
    'BlobStoreException',
    'WatermarkFailedException',
]
