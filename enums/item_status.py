from enum import Enum


class ItemStatus(str, Enum):
    """
    Catalog state of an item.

    PENDING_REVIEW: Uploaded by a seller, waiting for staff review
    ACTIVE: Listed, can be carted, ordered and downloaded
    REJECTED: Refused during review
    DEACTIVATED: Taken off the catalog by its creator or staff
    """
    PENDING_REVIEW = "pending_review"
    ACTIVE = "active"
    REJECTED = "rejected"
    DEACTIVATED = "deactivated"

    def can_transition_to(self, target: "ItemStatus") -> bool:
        return target in ITEM_STATUS_TRANSITIONS[self]


ITEM_STATUS_TRANSITIONS: dict[ItemStatus, set[ItemStatus]] = {
    ItemStatus.PENDING_REVIEW: {ItemStatus.ACTIVE, ItemStatus.REJECTED},
    ItemStatus.ACTIVE: {ItemStatus.DEACTIVATED},
    ItemStatus.DEACTIVATED: {ItemStatus.ACTIVE},
    ItemStatus.REJECTED: set(),
}
