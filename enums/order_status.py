from enum import Enum


class OrderStatus(str, Enum):
    PENDING = "pending"      # Waiting for staff to confirm the bank transfer
    PAID = "paid"            # Approved, download unlocked
    FAILED = "failed"        # Rejected by staff, may be re-ordered
    REFUNDED = "refunded"    # Refunded after payment, may be re-ordered

    @classmethod
    def live(cls) -> list["OrderStatus"]:
        """Statuses that block a second order for the same user and item."""
        return [cls.PENDING, cls.PAID]
