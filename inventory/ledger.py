"""Quantity store and movement ledger.

:class:`InventoryAccount` is the only writer of ``Item.quantity``,
``Item.reserved_quantity`` and ``Item.available_quantity``. Every mutation is
a single conditional ``UPDATE`` that rewrites the quantity columns together,
followed by a locked re-read to capture ``balance_after`` and, when the
on-hand quantity changed, exactly one :class:`StockMovement` row.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from decimal import Decimal

from django.db import transaction
from django.db.models import Count, F, Q, Sum
from django.utils import timezone
from rest_framework.exceptions import NotFound, ValidationError

from inventory.exceptions import InsufficientStock
from inventory.models import Item, StockMovement

logger = logging.getLogger("inventory.ledger")

MANUAL_MOVEMENT_DIRECTIONS = {
    StockMovement.MovementType.SALE: -1,
    StockMovement.MovementType.RETURN: 1,
    StockMovement.MovementType.DAMAGE: -1,
    StockMovement.MovementType.EXPIRED: -1,
}


@dataclass(frozen=True)
class Reference:
    """What caused a movement. Build it through the named constructors."""

    reference_type: str
    reference_id: uuid.UUID | None = None
    reference_number: str = ""

    @classmethod
    def purchase_order(cls, order) -> Reference:
        return cls(StockMovement.ReferenceType.PURCHASE_ORDER, order.id, order.po_number)

    @classmethod
    def transfer(cls, transfer) -> Reference:
        return cls(StockMovement.ReferenceType.TRANSFER, transfer.id, transfer.transfer_number)

    @classmethod
    def adjustment(cls, adjustment) -> Reference:
        return cls(StockMovement.ReferenceType.ADJUSTMENT, adjustment.id)

    @classmethod
    def assignment(cls, assignment) -> Reference:
        return cls(StockMovement.ReferenceType.ASSIGNMENT, assignment.id)

    @classmethod
    def other(cls, reference_number: str = "") -> Reference:
        return cls(StockMovement.ReferenceType.OTHER, None, reference_number)


def record_movement(
    item: Item,
    *,
    movement_type: str,
    quantity: int,
    balance_after: int,
    reference: Reference,
    from_location=None,
    to_location=None,
    unit_cost: Decimal | None = None,
    performed_by=None,
    event_id=None,
    notes: str = "",
) -> StockMovement:
    if unit_cost is None:
        unit_cost = item.unit_cost
    total_cost = None
    if unit_cost is not None:
        total_cost = (Decimal(unit_cost) * abs(quantity)).quantize(Decimal("0.01"))

    movement = StockMovement.objects.create(
        item=item,
        movement_type=movement_type,
        quantity=quantity,
        balance_after=balance_after,
        unit_cost=unit_cost,
        total_cost=total_cost,
        from_location=from_location,
        to_location=to_location,
        reference_type=reference.reference_type,
        reference_id=reference.reference_id,
        reference_number=reference.reference_number,
        event_id=event_id,
        performed_by=performed_by,
        notes=notes,
    )
    logger.info(
        "stock_movement_recorded",
        extra={
            "item_id": item.id,
            "movement_type": movement_type,
            "quantity": quantity,
            "balance_after": balance_after,
            "entity": reference.reference_type,
            "entity_id": reference.reference_id,
        },
    )
    return movement


class InventoryAccount:
    def __init__(self, item, *, performed_by=None):
        self.item_id = item.pk if isinstance(item, Item) else item
        self.performed_by = performed_by

    def increase(
        self,
        amount: int,
        *,
        movement_type: str,
        reference: Reference,
        from_location=None,
        to_location=None,
        unit_cost=None,
        event_id=None,
        notes: str = "",
    ) -> StockMovement:
        self._check_amount(amount)
        with transaction.atomic():
            updated = Item.objects.filter(pk=self.item_id).update(
                quantity=F("quantity") + amount,
                available_quantity=F("available_quantity") + amount,
                updated_at=timezone.now(),
            )
            if not updated:
                raise NotFound("Item not found.")
            item = self._locked_item()
            return record_movement(
                item,
                movement_type=movement_type,
                quantity=amount,
                balance_after=item.quantity,
                reference=reference,
                from_location=from_location,
                to_location=to_location,
                unit_cost=unit_cost,
                performed_by=self.performed_by,
                event_id=event_id,
                notes=notes,
            )

    def decrease(
        self,
        amount: int,
        *,
        movement_type: str,
        reference: Reference,
        from_location=None,
        to_location=None,
        unit_cost=None,
        event_id=None,
        notes: str = "",
    ) -> StockMovement:
        self._check_amount(amount)
        with transaction.atomic():
            updated = Item.objects.filter(pk=self.item_id, available_quantity__gte=amount).update(
                quantity=F("quantity") - amount,
                available_quantity=F("available_quantity") - amount,
                updated_at=timezone.now(),
            )
            if not updated:
                self._raise_shortage(amount)
            item = self._locked_item()
            return record_movement(
                item,
                movement_type=movement_type,
                quantity=-amount,
                balance_after=item.quantity,
                reference=reference,
                from_location=from_location,
                to_location=to_location,
                unit_cost=unit_cost,
                performed_by=self.performed_by,
                event_id=event_id,
                notes=notes,
            )

    def adjust(self, signed_delta: int, *, reference: Reference, movement_type: str | None = None, **kwargs) -> StockMovement:
        if signed_delta > 0:
            return self.increase(
                signed_delta,
                movement_type=movement_type or StockMovement.MovementType.ADJUSTMENT_INCREASE,
                reference=reference,
                **kwargs,
            )
        return self.decrease(
            -signed_delta,
            movement_type=movement_type or StockMovement.MovementType.ADJUSTMENT_DECREASE,
            reference=reference,
            **kwargs,
        )

    def try_reserve(self, amount: int) -> Item:
        self._check_amount(amount)
        with transaction.atomic():
            updated = Item.objects.filter(pk=self.item_id, available_quantity__gte=amount).update(
                reserved_quantity=F("reserved_quantity") + amount,
                available_quantity=F("available_quantity") - amount,
                updated_at=timezone.now(),
            )
            if not updated:
                self._raise_shortage(amount)
            item = self._locked_item()
        logger.info("stock_reserved", extra={"item_id": item.id, "quantity": amount})
        return item

    def release(self, amount: int) -> Item:
        self._check_amount(amount)
        with transaction.atomic():
            updated = Item.objects.filter(pk=self.item_id, reserved_quantity__gte=amount).update(
                reserved_quantity=F("reserved_quantity") - amount,
                available_quantity=F("available_quantity") + amount,
                updated_at=timezone.now(),
            )
            if not updated:
                item = Item.objects.filter(pk=self.item_id).first()
                if item is None:
                    raise NotFound("Item not found.")
                raise ValidationError(
                    {"quantity": f"Cannot release {amount}; only {item.reserved_quantity} is reserved."}
                )
            item = self._locked_item()
        logger.info("stock_released", extra={"item_id": item.id, "quantity": amount})
        return item

    def _locked_item(self) -> Item:
        return Item.objects.select_for_update().get(pk=self.item_id)

    def _check_amount(self, amount):
        if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
            raise ValidationError({"quantity": "Quantity must be a positive integer."})

    def _raise_shortage(self, amount):
        item = Item.objects.filter(pk=self.item_id).first()
        if item is None:
            raise NotFound("Item not found.")
        raise InsufficientStock(
            f"Insufficient stock for {item.sku}: requested {amount}, available {item.available_quantity}.",
            shortages=[
                {
                    "item_id": str(item.id),
                    "sku": item.sku,
                    "requested": amount,
                    "available": item.available_quantity,
                }
            ],
        )


def reconcile_item(item: Item) -> dict:
    ledger_total = item.movements.aggregate(total=Sum("quantity"))["total"] or 0
    difference = item.quantity - ledger_total
    return {
        "item_id": str(item.id),
        "sku": item.sku,
        "quantity": item.quantity,
        "reserved_quantity": item.reserved_quantity,
        "available_quantity": item.available_quantity,
        "ledger_total": ledger_total,
        "difference": difference,
        "is_consistent": difference == 0 and item.available_quantity == item.quantity - item.reserved_quantity,
    }


def location_balance_filter(location_id) -> Q:
    return Q(to_location_id=location_id, quantity__gt=0) | Q(from_location_id=location_id, quantity__lt=0)


def location_balance(item: Item, location_id) -> int:
    return item.movements.filter(location_balance_filter(location_id)).aggregate(total=Sum("quantity"))["total"] or 0


def location_balances(item: Item) -> list[dict]:
    inbound = (
        item.movements.filter(quantity__gt=0, to_location__isnull=False)
        .values("to_location_id", "to_location__code", "to_location__name")
        .annotate(total=Sum("quantity"))
    )
    outbound = (
        item.movements.filter(quantity__lt=0, from_location__isnull=False)
        .values("from_location_id", "from_location__code", "from_location__name")
        .annotate(total=Sum("quantity"))
    )
    balances = {}
    for row in inbound:
        entry = balances.setdefault(
            row["to_location_id"],
            {"location_id": str(row["to_location_id"]), "code": row["to_location__code"], "name": row["to_location__name"], "balance": 0},
        )
        entry["balance"] += row["total"]
    for row in outbound:
        entry = balances.setdefault(
            row["from_location_id"],
            {"location_id": str(row["from_location_id"]), "code": row["from_location__code"], "name": row["from_location__name"], "balance": 0},
        )
        entry["balance"] += row["total"]
    return sorted(balances.values(), key=lambda entry: entry["code"])


def summarize_movements(queryset) -> dict:
    totals = queryset.aggregate(
        total_in=Sum("quantity", filter=Q(quantity__gt=0)),
        total_out=Sum("quantity", filter=Q(quantity__lt=0)),
        total_movements=Count("id"),
    )
    by_type = (
        queryset.order_by()
        .values("movement_type")
        .annotate(count=Count("id"), quantity=Sum("quantity"))
        .order_by("movement_type")
    )
    return {
        "total_in": totals["total_in"] or 0,
        "total_out": abs(totals["total_out"] or 0),
        "total_movements": totals["total_movements"],
        "by_type": list(by_type),
    }
