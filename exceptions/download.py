"""
Download-related exceptions.
"""

from .base import MarketplaceException, ExternalServiceException


class DownloadException(MarketplaceException):
    """Base exception for download-related errors."""
    pass


class PaymentIncompleteException(DownloadException):
    """Raised when a download is requested for an order that is not paid."""
    status_code = 403

    def __init__(self, order_id: int, status: str):
        super().__init__(
            f"Payment for order {order_id} is not completed (status: {status})",
            details={'order_id': order_id, 'status': status}
        )
        self.order_id = order_id
        self.status = status


class BlobStoreException(DownloadException, ExternalServiceException):
    """Raised when the source file cannot be read from the blob store."""

    def __init__(self, key: str, reason: str):
        super().__init__(
            "Source file could not be retrieved",
            details={'key': key, 'reason': reason}
        )
        self.key = key
        self.reason = reason


class WatermarkFailedException(DownloadException, ExternalServiceException):
    """Raised when the personalised copy could not be produced."""

    def __init__(self, item_id: int, reason: str):
        super().__init__(
            f"Failed to prepare download for item {item_id}",
            details={'item_id': item_id, 'reason': reason}
        )
        self.item_id = item_id
        self.reason = reason
