from enum import Enum


class AccessReason(str, Enum):
    FREE = "free"
    PURCHASED = "purchased"
    NOT_PURCHASED = "not_purchased"
    PAYMENT_PENDING = "payment_pending"
    LOGIN_REQUIRED = "login_required"
