from rest_framework import status
from rest_framework.exceptions import APIException


class InventoryError(APIException):
    """Base for stock domain errors.

    ``error_payload`` is rendered as the ``errors`` member of the error
    envelope with its native JSON types.
    """

    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Inventory operation failed."
    default_code = "inventory_error"

    def __init__(self, detail=None, code=None, error_payload=None):
        super().__init__(detail, code)
        self.error_payload = error_payload


class InsufficientStock(InventoryError):
    default_detail = "Insufficient stock."
    default_code = "insufficient_stock"

    def __init__(self, detail=None, shortages=None):
        payload = {"shortages": shortages} if shortages else None
        super().__init__(detail, error_payload=payload)
        self.shortages = shortages or []


class NegativeInventory(InsufficientStock):
    default_detail = "Adjustment would make inventory negative."
    default_code = "negative_inventory"


class InvalidStateTransition(InventoryError):
    default_detail = "This action is not allowed in the current status."
    default_code = "invalid_state_transition"

    def __init__(self, *, entity, action, current_status, allowed=None):
        detail = f"Cannot {action} {entity} in status '{current_status}'."
        super().__init__(
            detail,
            error_payload={
                "entity": entity,
                "action": action,
                "status": current_status,
                "allowed_from": sorted(allowed or []),
            },
        )


class ImmutableMovement(InventoryError):
    default_detail = "Stock movements are append-only and cannot be changed or deleted."
    default_code = "immutable_movement"
