"""
Payment-related exceptions.
"""

from .base import MarketplaceException, ValidationException, ExternalServiceException


class PaymentException(MarketplaceException):
    """Base exception for payment-related errors."""
    pass


class InvalidAmountException(PaymentException, ValidationException):
    """Raised when a payment amount is zero or negative."""

    def __init__(self, amount):
        super().__init__(
            f"Invalid payment amount: {amount}",
            details={'amount': str(amount)}
        )
        self.amount = amount


class InvalidPayeeException(PaymentException, ValidationException):
    """Raised when the payee identifier is not a phone number, tax id or e-wallet id."""

    def __init__(self, payee: str):
        super().__init__(
            "Invalid PromptPay payee identifier",
            details={'length': len(payee)}
        )
        self.payee = payee


class InvalidPaymentPayloadException(PaymentException, ValidationException):
    """Raised when a payment payload cannot be decoded."""

    def __init__(self, reason: str):
        super().__init__(
            f"Invalid payment payload: {reason}",
            details={'reason': reason}
        )
        self.reason = reason


class QRRenderException(PaymentException, ExternalServiceException):
    """Raised when the QR image could not be rendered."""

    def __init__(self, reason: str):
        super().__init__(
            "Failed to render payment QR code",
            details={'reason': reason}
        )
        self.reason = reason
