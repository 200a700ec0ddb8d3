from decimal import Decimal, ROUND_HALF_UP

from django.conf import settings
from django.db import transaction
from django.db.models import Count, F, Q, Sum
from django.utils import timezone
from rest_framework.exceptions import PermissionDenied, ValidationError

from inventory.exceptions import InsufficientStock, NegativeInventory
from inventory.ledger import MANUAL_MOVEMENT_DIRECTIONS, InventoryAccount, Reference
from inventory.models import (
    Assignment,
    AssignmentHistory,
    Item,
    ProductAssignment,
    ProductAssignmentHistory,
    PurchaseOrder,
    PurchaseOrderLine,
    StockAdjustment,
    StockMovement,
    StockTransfer,
    StockTransferLine,
    Supplier,
)
from inventory.workflows import (
    ADJUSTMENT_WORKFLOW,
    ASSIGNMENT_WORKFLOW,
    PRODUCT_ASSIGNMENT_WORKFLOW,
    PURCHASE_ORDER_WORKFLOW,
    TRANSFER_WORKFLOW,
)

MONEY_QUANT = Decimal("0.01")


def _to_money(value):
    return Decimal(value).quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)


def _lock(model, pk):
    return model.objects.select_for_update().get(pk=pk)


def _status_counts(queryset, field="status"):
    return {row[field]: row["count"] for row in queryset.order_by().values(field).annotate(count=Count("id"))}


def next_document_number(model, field, prefix_format):
    """Next ``<prefix>NNNNN`` number for the current month, e.g. ``TR-202601-00001``."""
    prefix = timezone.now().strftime(prefix_format)
    existing = model.objects.filter(**{f"{field}__startswith": prefix}).values_list(field, flat=True)
    serial = max([int(number.rsplit("-", 1)[-1]) for number in existing if number.rsplit("-", 1)[-1].isdigit()] + [0]) + 1
    return f"{prefix}{serial:05d}"


def update_item_cost(item, incoming_qty, incoming_unit_cost, current_stock_qty=0):
    """
    Update item cost using either last cost or weighted average costing.
    Enable weighted average by setting INVENTORY_WEIGHTED_AVERAGE_COST=True.
    """
    incoming_qty = Decimal(incoming_qty or 0)
    incoming_unit_cost = Decimal(incoming_unit_cost or 0)
    current_stock_qty = Decimal(current_stock_qty or 0)

    if incoming_qty <= 0:
        return item.unit_cost

    use_weighted_average = getattr(settings, "INVENTORY_WEIGHTED_AVERAGE_COST", False)
    current_cost = Decimal(item.unit_cost or 0)

    if use_weighted_average:
        total_existing_cost = current_stock_qty * current_cost
        total_incoming_cost = incoming_qty * incoming_unit_cost
        total_qty = current_stock_qty + incoming_qty
        new_cost = incoming_unit_cost if total_qty <= 0 else (total_existing_cost + total_incoming_cost) / total_qty
    else:
        new_cost = incoming_unit_cost

    item.unit_cost = _to_money(new_cost)
    item.save(update_fields=["unit_cost", "updated_at"])
    return item.unit_cost


# Catalog


@transaction.atomic
def create_item(*, user, opening_quantity=0, opening_location=None, **fields):
    item = Item.objects.create(created_by=user, **fields)
    if opening_quantity:
        InventoryAccount(item, performed_by=user).increase(
            opening_quantity,
            movement_type=StockMovement.MovementType.ADJUSTMENT_INCREASE,
            reference=Reference.other("OPENING"),
            to_location=opening_location,
            notes="Opening balance",
        )
        item.refresh_from_db()
    return item


@transaction.atomic
def bulk_create_items(*, user, rows):
    """Create every row or none; each opening balance goes through the ledger."""
    return [create_item(user=user, **fields) for fields in rows]


def category_stats(queryset):
    top = (
        queryset.order_by()
        .annotate(item_count=Count("items"))
        .order_by("-item_count", "name")
        .values("id", "name", "code", "item_count")[:10]
    )
    return {
        "total": queryset.count(),
        "root_categories": queryset.filter(parent__isnull=True).count(),
        "by_status": _status_counts(queryset),
        "top_categories": [{**row, "id": str(row["id"])} for row in top],
    }


def supplier_stats(queryset):
    top = (
        queryset.filter(status=Supplier.Status.ACTIVE)
        .annotate(
            order_count=Count("purchase_orders", filter=~Q(purchase_orders__status=PurchaseOrder.Status.CANCELLED)),
            order_value=Sum(
                "purchase_orders__total_amount",
                filter=~Q(purchase_orders__status=PurchaseOrder.Status.CANCELLED),
            ),
        )
        .order_by(F("order_value").desc(nulls_last=True), "name")
        .values("id", "name", "code", "order_count", "order_value")[:5]
    )
    return {
        "total": queryset.count(),
        "by_status": _status_counts(queryset),
        "top_suppliers": [
            {**row, "id": str(row["id"]), "order_value": _to_money(row["order_value"] or 0)} for row in top
        ],
    }


def validate_category_parent(category, parent):
    node = parent
    while node is not None:
        if category is not None and node.pk == category.pk:
            raise ValidationError({"parent": "A category cannot be nested under itself or its descendants."})
        node = node.parent


def refresh_category_paths(category):
    for child in category.children.all():
        child.save(update_fields=["level", "path", "updated_at"])
        refresh_category_paths(child)


def build_category_tree(queryset):
    nodes = {}
    for category in queryset:
        nodes[category.id] = {
            "id": str(category.id),
            "name": category.name,
            "code": category.code,
            "level": category.level,
            "path": category.path,
            "status": category.status,
            "children": [],
        }

    roots = []
    for category in queryset:
        node = nodes[category.id]
        if category.parent_id in nodes:
            nodes[category.parent_id]["children"].append(node)
        else:
            roots.append(node)
    return roots


# Stock adjustments


@transaction.atomic
def create_adjustment(*, item, adjustment_type, quantity, reason, user, notes="", location=None, auto_approve=False):
    item = _lock(Item, item.pk)
    signed = quantity if adjustment_type == StockAdjustment.Type.INCREASE else -quantity
    if signed < 0 and item.available_quantity + signed < 0:
        raise NegativeInventory(
            f"Adjustment would make {item.sku} negative: available {item.available_quantity}, decrease {quantity}.",
            shortages=[
                {
                    "item_id": str(item.id),
                    "sku": item.sku,
                    "requested": quantity,
                    "available": item.available_quantity,
                }
            ],
        )

    adjustment = StockAdjustment.objects.create(
        item=item,
        adjustment_type=adjustment_type,
        quantity=quantity,
        reason=reason,
        notes=notes,
        location=location,
        before_quantity=item.quantity,
        after_quantity=item.quantity + signed,
        adjusted_by=user,
    )
    if auto_approve:
        adjustment = approve_adjustment(adjustment, user)
    return adjustment


@transaction.atomic
def approve_adjustment(adjustment, user):
    adjustment = _lock(StockAdjustment, adjustment.pk)
    ADJUSTMENT_WORKFLOW.check(adjustment, "approve")
    from_status = adjustment.status

    signed = adjustment.signed_quantity
    movement = InventoryAccount(adjustment.item_id, performed_by=user).adjust(
        signed,
        reference=Reference.adjustment(adjustment),
        to_location=adjustment.location if signed > 0 else None,
        from_location=adjustment.location if signed < 0 else None,
        notes=adjustment.reason,
    )

    adjustment.before_quantity = movement.balance_after - signed
    adjustment.after_quantity = movement.balance_after
    adjustment.status = StockAdjustment.Status.APPROVED
    adjustment.approved_by = user
    adjustment.approved_at = timezone.now()
    adjustment.save(update_fields=["before_quantity", "after_quantity", "status", "approved_by", "approved_at", "updated_at"])
    ADJUSTMENT_WORKFLOW.log(adjustment, "approve", from_status)
    return adjustment


@transaction.atomic
def reject_adjustment(adjustment, user, reason=""):
    adjustment = _lock(StockAdjustment, adjustment.pk)
    ADJUSTMENT_WORKFLOW.check(adjustment, "reject")
    from_status = adjustment.status
    adjustment.status = StockAdjustment.Status.REJECTED
    adjustment.rejection_reason = reason
    adjustment.approved_by = user
    adjustment.approved_at = timezone.now()
    adjustment.save(update_fields=["status", "rejection_reason", "approved_by", "approved_at", "updated_at"])
    ADJUSTMENT_WORKFLOW.log(adjustment, "reject", from_status)
    return adjustment


def adjustment_stats(queryset):
    return {
        "total": queryset.count(),
        "by_status": _status_counts(queryset),
        "by_reason": _status_counts(queryset, "reason"),
        "by_type": _status_counts(queryset, "adjustment_type"),
    }


# Stock transfers


def _replace_transfer_lines(transfer, lines):
    transfer.lines.all().delete()
    StockTransferLine.objects.bulk_create(
        [
            StockTransferLine(
                transfer=transfer,
                item=line["item"],
                quantity_requested=line["quantity_requested"],
                notes=line.get("notes", ""),
            )
            for line in lines
        ]
    )


@transaction.atomic
def create_transfer(*, user, lines, **fields):
    transfer = StockTransfer.objects.create(
        transfer_number=next_document_number(StockTransfer, "transfer_number", "TR-%Y%m-"),
        requested_by=user,
        **fields,
    )
    _replace_transfer_lines(transfer, lines)
    return transfer


@transaction.atomic
def update_transfer(transfer, *, lines=None, **fields):
    transfer = _lock(StockTransfer, transfer.pk)
    TRANSFER_WORKFLOW.check_editable(transfer, "update")
    for name, value in fields.items():
        setattr(transfer, name, value)
    if transfer.from_location_id == transfer.to_location_id:
        raise ValidationError({"to_location": "Source and destination locations must differ."})
    transfer.save()
    if lines is not None:
        _replace_transfer_lines(transfer, lines)
    return transfer


@transaction.atomic
def delete_transfer(transfer):
    transfer = _lock(StockTransfer, transfer.pk)
    TRANSFER_WORKFLOW.check_editable(transfer, "delete")
    transfer.delete()


@transaction.atomic
def submit_transfer(transfer, user):
    transfer = _lock(StockTransfer, transfer.pk)
    TRANSFER_WORKFLOW.check(transfer, "submit")
    if not transfer.lines.exists():
        raise ValidationError({"lines": "A transfer needs at least one line."})
    from_status = transfer.status
    transfer.status = StockTransfer.Status.PENDING
    transfer.save(update_fields=["status", "updated_at"])
    TRANSFER_WORKFLOW.log(transfer, "submit", from_status)
    return transfer


@transaction.atomic
def approve_transfer(transfer, user):
    transfer = _lock(StockTransfer, transfer.pk)
    TRANSFER_WORKFLOW.check(transfer, "approve")
    from_status = transfer.status
    transfer.status = StockTransfer.Status.APPROVED
    transfer.approved_by = user
    transfer.approved_at = timezone.now()
    transfer.save(update_fields=["status", "approved_by", "approved_at", "updated_at"])
    TRANSFER_WORKFLOW.log(transfer, "approve", from_status)
    return transfer


@transaction.atomic
def ship_transfer(transfer, user, *, quantities=None, shipping_method=None, tracking_number=None):
    """Send every line from the source location.

    ``quantities`` maps item id to the quantity sent; lines not listed send
    the requested quantity. Any shortage aborts the whole shipment.
    """
    transfer = _lock(StockTransfer, transfer.pk)
    TRANSFER_WORKFLOW.check(transfer, "ship")
    quantities = {str(item_id): qty for item_id, qty in (quantities or {}).items()}

    lines = list(transfer.lines.select_related("item").order_by("item_id"))
    if not lines:
        raise ValidationError({"lines": "A transfer needs at least one line."})

    unknown = set(quantities) - {str(line.item_id) for line in lines}
    if unknown:
        raise ValidationError({"lines": f"Items not on this transfer: {', '.join(sorted(unknown))}."})

    shortages = []
    for line in lines:
        sent = quantities.get(str(line.item_id), line.quantity_requested)
        if sent <= 0 or sent > line.quantity_requested:
            raise ValidationError(
                {"lines": f"Quantity sent for {line.item.sku} must be between 1 and {line.quantity_requested}."}
            )
        line.quantity_sent = sent
        item = _lock(Item, line.item_id)
        if item.available_quantity < sent:
            shortages.append(
                {
                    "item_id": str(item.id),
                    "sku": item.sku,
                    "requested": sent,
                    "available": item.available_quantity,
                }
            )
    if shortages:
        raise InsufficientStock("Insufficient source stock for transfer.", shortages=shortages)

    reference = Reference.transfer(transfer)
    for line in lines:
        InventoryAccount(line.item_id, performed_by=user).decrease(
            line.quantity_sent,
            movement_type=StockMovement.MovementType.TRANSFER_OUT,
            reference=reference,
            from_location=transfer.from_location,
            to_location=transfer.to_location,
        )
        line.save(update_fields=["quantity_sent"])

    from_status = transfer.status
    transfer.status = StockTransfer.Status.IN_TRANSIT
    transfer.shipped_by = user
    transfer.shipped_at = timezone.now()
    if shipping_method is not None:
        transfer.shipping_method = shipping_method
    if tracking_number is not None:
        transfer.tracking_number = tracking_number
    transfer.save(update_fields=["status", "shipped_by", "shipped_at", "shipping_method", "tracking_number", "updated_at"])
    TRANSFER_WORKFLOW.log(transfer, "ship", from_status)
    return transfer


@transaction.atomic
def receive_transfer(transfer, user, *, lines=None, event_id=None):
    """Receive shipped quantities at the destination.

    ``lines`` is a list of ``{"item": <id>, "quantity_received": n}``; when
    omitted everything outstanding is received. Returns ``(transfer, applied)``
    where ``applied`` is False for a replayed ``event_id``.
    """
    transfer = _lock(StockTransfer, transfer.pk)
    if event_id and StockMovement.objects.filter(reference_id=transfer.id, event_id=event_id).exists():
        return transfer, False
    TRANSFER_WORKFLOW.check(transfer, "receive")

    line_map = {str(line.item_id): line for line in transfer.lines.select_related("item")}
    if lines is None:
        lines = [
            {"item": item_id, "quantity_received": line.outstanding_quantity}
            for item_id, line in line_map.items()
            if line.outstanding_quantity > 0
        ]
    if not lines:
        raise ValidationError({"lines": "Nothing to receive."})

    reference = Reference.transfer(transfer)
    for payload in lines:
        line = line_map.get(str(payload["item"]))
        qty = payload["quantity_received"]
        if line is None:
            raise ValidationError({"lines": f"Item {payload['item']} is not part of this transfer."})
        if qty <= 0:
            raise ValidationError({"lines": "Received quantity must be greater than zero."})
        if qty > line.outstanding_quantity:
            raise ValidationError(
                {"lines": f"Received quantity for {line.item.sku} exceeds the {line.outstanding_quantity} still in transit."}
            )

        InventoryAccount(line.item_id, performed_by=user).increase(
            qty,
            movement_type=StockMovement.MovementType.TRANSFER_IN,
            reference=reference,
            from_location=transfer.from_location,
            to_location=transfer.to_location,
            event_id=event_id,
        )
        line.quantity_received += qty
        line.save(update_fields=["quantity_received"])

    from_status = transfer.status
    if all(line.quantity_received >= line.quantity_sent for line in line_map.values()):
        transfer.status = StockTransfer.Status.RECEIVED
        transfer.received_at = timezone.now()
    else:
        transfer.status = StockTransfer.Status.PARTIALLY_RECEIVED
    transfer.received_by = user
    transfer.save(update_fields=["status", "received_by", "received_at", "updated_at"])
    TRANSFER_WORKFLOW.log(transfer, "receive", from_status)
    return transfer, True


@transaction.atomic
def cancel_transfer(transfer, user, reason=""):
    transfer = _lock(StockTransfer, transfer.pk)
    TRANSFER_WORKFLOW.check(transfer, "cancel")
    from_status = transfer.status

    if from_status in (StockTransfer.Status.IN_TRANSIT, StockTransfer.Status.PARTIALLY_RECEIVED):
        reference = Reference.transfer(transfer)
        for line in transfer.lines.order_by("item_id"):
            outstanding = line.outstanding_quantity
            if outstanding > 0:
                # Goods never arrived; put them back at the source.
                InventoryAccount(line.item_id, performed_by=user).increase(
                    outstanding,
                    movement_type=StockMovement.MovementType.TRANSFER_REVERSAL,
                    reference=reference,
                    to_location=transfer.from_location,
                    notes=reason,
                )

    transfer.status = StockTransfer.Status.CANCELLED
    transfer.cancelled_at = timezone.now()
    transfer.cancellation_reason = reason
    transfer.save(update_fields=["status", "cancelled_at", "cancellation_reason", "updated_at"])
    TRANSFER_WORKFLOW.log(transfer, "cancel", from_status)
    return transfer


def transfer_stats(queryset):
    return {"total": queryset.count(), "by_status": _status_counts(queryset)}


# Purchase orders


def _build_order_lines(order, lines):
    subtotal = Decimal("0")
    tax_amount = Decimal("0")
    order_lines = []
    for line in lines:
        qty = Decimal(line["quantity_ordered"])
        unit_price = Decimal(line["unit_price"])
        tax_rate = Decimal(line.get("tax_rate") or 0)
        discount = Decimal(line.get("discount") or 0)
        line_net = qty * unit_price - discount
        line_tax = line_net * tax_rate / Decimal("100")
        order_lines.append(
            PurchaseOrderLine(
                purchase_order=order,
                item=line["item"],
                quantity_ordered=line["quantity_ordered"],
                unit_price=_to_money(unit_price),
                tax_rate=tax_rate,
                discount=_to_money(discount),
                total=_to_money(line_net + line_tax),
            )
        )
        subtotal += line_net
        tax_amount += line_tax

    order.lines.all().delete()
    PurchaseOrderLine.objects.bulk_create(order_lines)
    order.subtotal = _to_money(subtotal)
    order.tax_amount = _to_money(tax_amount)
    order.total_amount = _to_money(subtotal + tax_amount + Decimal(order.shipping_cost or 0) - Decimal(order.discount_amount or 0))
    order.save(update_fields=["subtotal", "tax_amount", "total_amount", "updated_at"])


@transaction.atomic
def create_purchase_order(*, user, lines, **fields):
    order = PurchaseOrder.objects.create(
        po_number=next_document_number(PurchaseOrder, "po_number", "PO-%Y%m-"),
        created_by=user,
        **fields,
    )
    _build_order_lines(order, lines)
    return order


@transaction.atomic
def update_purchase_order(order, *, lines=None, **fields):
    order = _lock(PurchaseOrder, order.pk)
    PURCHASE_ORDER_WORKFLOW.check_editable(order, "update")
    for name, value in fields.items():
        setattr(order, name, value)
    order.save()
    if lines is None:
        lines = [
            {
                "item": line.item,
                "quantity_ordered": line.quantity_ordered,
                "unit_price": line.unit_price,
                "tax_rate": line.tax_rate,
                "discount": line.discount,
            }
            for line in order.lines.select_related("item")
        ]
    _build_order_lines(order, lines)
    return order


@transaction.atomic
def delete_purchase_order(order):
    order = _lock(PurchaseOrder, order.pk)
    PURCHASE_ORDER_WORKFLOW.check_editable(order, "delete")
    order.delete()


def _advance_order(order, action, target, user=None):
    order = _lock(PurchaseOrder, order.pk)
    PURCHASE_ORDER_WORKFLOW.check(order, action)
    from_status = order.status
    order.status = target
    update_fields = ["status", "updated_at"]
    if action == "approve":
        order.approved_by = user
        order.approved_at = timezone.now()
        update_fields += ["approved_by", "approved_at"]
    elif action == "mark_ordered":
        order.ordered_at = timezone.now()
        update_fields.append("ordered_at")
    order.save(update_fields=update_fields)
    PURCHASE_ORDER_WORKFLOW.log(order, action, from_status)
    return order


@transaction.atomic
def submit_purchase_order(order, user):
    order = _lock(PurchaseOrder, order.pk)
    if not order.lines.exists():
        raise ValidationError({"lines": "A purchase order needs at least one line."})
    return _advance_order(order, "submit", PurchaseOrder.Status.PENDING)


@transaction.atomic
def approve_purchase_order(order, user):
    return _advance_order(order, "approve", PurchaseOrder.Status.APPROVED, user)


@transaction.atomic
def mark_purchase_order_ordered(order, user):
    return _advance_order(order, "mark_ordered", PurchaseOrder.Status.ORDERED, user)


@transaction.atomic
def receive_purchase_order(order, user, *, lines, event_id=None, delivery_date=None):
    """Book received goods into stock.

    ``lines`` is a list of ``{"item": <id>, "quantity_received": n}`` with an
    optional ``unit_cost``. Returns ``(order, applied)``; ``applied`` is False
    when ``event_id`` was already processed.
    """
    order = _lock(PurchaseOrder, order.pk)
    if event_id and StockMovement.objects.filter(reference_id=order.id, event_id=event_id).exists():
        return order, False
    PURCHASE_ORDER_WORKFLOW.check(order, "receive")

    line_map = {str(line.item_id): line for line in order.lines.select_related("item")}
    reference = Reference.purchase_order(order)
    for payload in lines:
        line = line_map.get(str(payload["item"]))
        qty = payload["quantity_received"]
        if line is None:
            raise ValidationError({"lines": f"Item {payload['item']} is not part of this purchase order."})
        if qty <= 0:
            raise ValidationError({"lines": "Received quantity must be greater than zero."})
        if qty > line.remaining_quantity:
            raise ValidationError(
                {"lines": f"Received quantity for {line.item.sku} exceeds the {line.remaining_quantity} still on order."}
            )

        unit_cost = payload.get("unit_cost")
        if unit_cost is None:
            unit_cost = line.unit_price
        movement = InventoryAccount(line.item_id, performed_by=user).increase(
            qty,
            movement_type=StockMovement.MovementType.PURCHASE,
            reference=reference,
            to_location=order.delivery_location,
            unit_cost=unit_cost,
            event_id=event_id,
        )
        update_item_cost(
            item=Item.objects.get(pk=line.item_id),
            incoming_qty=qty,
            incoming_unit_cost=unit_cost,
            current_stock_qty=movement.balance_after - qty,
        )
        line.quantity_received += qty
        line.save(update_fields=["quantity_received"])

    from_status = order.status
    if all(line.quantity_received >= line.quantity_ordered for line in line_map.values()):
        order.status = PurchaseOrder.Status.RECEIVED
        order.actual_delivery_date = delivery_date or timezone.localdate()
    else:
        order.status = PurchaseOrder.Status.PARTIALLY_RECEIVED
    order.save(update_fields=["status", "actual_delivery_date", "updated_at"])
    PURCHASE_ORDER_WORKFLOW.log(order, "receive", from_status)
    return order, True


@transaction.atomic
def cancel_purchase_order(order, user, reason=""):
    order = _lock(PurchaseOrder, order.pk)
    PURCHASE_ORDER_WORKFLOW.check(order, "cancel")
    from_status = order.status
    order.status = PurchaseOrder.Status.CANCELLED
    order.cancelled_at = timezone.now()
    order.cancellation_reason = reason
    order.save(update_fields=["status", "cancelled_at", "cancellation_reason", "updated_at"])
    PURCHASE_ORDER_WORKFLOW.log(order, "cancel", from_status)
    return order


def purchase_order_stats(queryset):
    value = queryset.exclude(status=PurchaseOrder.Status.CANCELLED).aggregate(total=Sum("total_amount"))["total"]
    return {
        "total": queryset.count(),
        "by_status": _status_counts(queryset),
        "total_value": _to_money(value or 0),
    }


# Assignments


def _assignment_history(assignment, action, user, old_status="", new_status="", **details):
    return AssignmentHistory.objects.create(
        assignment=assignment,
        action=action,
        performed_by=user,
        old_status=old_status,
        new_status=new_status,
        details=details,
    )


@transaction.atomic
def create_assignment(*, item, assigned_to, quantity, user, **fields):
    InventoryAccount(item, performed_by=user).try_reserve(quantity)
    assignment = Assignment.objects.create(
        item=item,
        assigned_to=assigned_to,
        assigned_by=user,
        quantity=quantity,
        **fields,
    )
    _assignment_history(assignment, "assigned", user, new_status=assignment.status, quantity=quantity)
    return assignment


@transaction.atomic
def return_assignment(assignment, user, *, condition_on_return="", notes=""):
    assignment = _lock(Assignment, assignment.pk)
    ASSIGNMENT_WORKFLOW.check(assignment, "return")
    from_status = assignment.status
    InventoryAccount(assignment.item_id, performed_by=user).release(assignment.quantity)

    assignment.status = Assignment.Status.RETURNED
    assignment.actual_return_date = timezone.now()
    assignment.condition_on_return = condition_on_return
    if notes:
        assignment.notes = f"{assignment.notes}\n{notes}".strip()
    assignment.save(update_fields=["status", "actual_return_date", "condition_on_return", "notes", "updated_at"])
    _assignment_history(assignment, "returned", user, from_status, assignment.status, quantity=assignment.quantity)
    ASSIGNMENT_WORKFLOW.log(assignment, "return", from_status)
    return assignment


def _product_history(assignment, action, user, old_status="", new_status="", **details):
    return ProductAssignmentHistory.objects.create(
        product_assignment=assignment,
        action=action,
        performed_by=user,
        old_status=old_status,
        new_status=new_status,
        details=details,
    )


@transaction.atomic
def issue_product(*, item, employee, quantity, user, **fields):
    assignment = ProductAssignment.objects.create(
        item=item,
        employee=employee,
        issued_by=user,
        quantity=quantity,
        **fields,
    )
    InventoryAccount(item, performed_by=user).decrease(
        quantity,
        movement_type=StockMovement.MovementType.ASSIGNMENT,
        reference=Reference.assignment(assignment),
        from_location=assignment.assigned_location,
        notes=assignment.purpose,
    )
    _product_history(assignment, "issued", user, new_status=assignment.status, quantity=quantity)
    return assignment


@transaction.atomic
def acknowledge_product_assignment(assignment, user):
    assignment = _lock(ProductAssignment, assignment.pk)
    if assignment.employee_id != user.pk:
        raise PermissionDenied("Only the assigned employee can acknowledge this assignment.")
    PRODUCT_ASSIGNMENT_WORKFLOW.check(assignment, "acknowledge")
    from_status = assignment.status
    assignment.status = ProductAssignment.Status.IN_USE
    assignment.employee_acknowledged = True
    assignment.employee_acknowledged_at = timezone.now()
    assignment.save(update_fields=["status", "employee_acknowledged", "employee_acknowledged_at", "updated_at"])
    _product_history(assignment, "acknowledged", user, from_status, assignment.status)
    PRODUCT_ASSIGNMENT_WORKFLOW.log(assignment, "acknowledge", from_status)
    return assignment


@transaction.atomic
def return_product_assignment(assignment, user, *, condition_on_return="", return_remarks=""):
    assignment = _lock(ProductAssignment, assignment.pk)
    PRODUCT_ASSIGNMENT_WORKFLOW.check(assignment, "return")
    from_status = assignment.status
    InventoryAccount(assignment.item_id, performed_by=user).increase(
        assignment.quantity,
        movement_type=StockMovement.MovementType.RETURN_ASSIGNMENT,
        reference=Reference.assignment(assignment),
        to_location=assignment.assigned_location,
        notes=return_remarks,
    )

    now = timezone.now()
    assignment.status = ProductAssignment.Status.RETURNED
    assignment.actual_return_date = now
    assignment.condition_on_return = condition_on_return
    assignment.return_remarks = return_remarks
    assignment.return_acknowledged_by = user
    assignment.return_acknowledged_at = now
    assignment.save(
        update_fields=[
            "status",
            "actual_return_date",
            "condition_on_return",
            "return_remarks",
            "return_acknowledged_by",
            "return_acknowledged_at",
            "updated_at",
        ]
    )
    _product_history(
        assignment,
        "returned",
        user,
        from_status,
        assignment.status,
        quantity=assignment.quantity,
        condition_on_return=condition_on_return,
    )
    PRODUCT_ASSIGNMENT_WORKFLOW.log(assignment, "return", from_status)
    return assignment


@transaction.atomic
def mark_product_assignment_outcome(assignment, user, *, outcome, remarks=""):
    assignment = _lock(ProductAssignment, assignment.pk)
    PRODUCT_ASSIGNMENT_WORKFLOW.check(assignment, "mark_outcome")
    if outcome not in PRODUCT_ASSIGNMENT_WORKFLOW.transitions["mark_outcome"].targets:
        raise ValidationError({"outcome": "Outcome must be one of: damaged, lost, transferred."})

    from_status = assignment.status
    assignment.status = outcome
    if outcome in (ProductAssignment.Status.LOST, ProductAssignment.Status.DAMAGED):
        assignment.condition_on_return = outcome
    assignment.return_remarks = remarks
    assignment.save(update_fields=["status", "condition_on_return", "return_remarks", "updated_at"])
    _product_history(assignment, f"marked_{outcome}", user, from_status, assignment.status, remarks=remarks)
    PRODUCT_ASSIGNMENT_WORKFLOW.log(assignment, "mark_outcome", from_status)
    return assignment


@transaction.atomic
def delete_product_assignment(assignment, user):
    assignment = _lock(ProductAssignment, assignment.pk)
    if assignment.is_active:
        return_product_assignment(assignment, user, return_remarks="Assignment deleted")
    assignment.delete()


def overdue_product_assignments(queryset):
    return queryset.filter(
        status__in=ProductAssignment.ACTIVE_STATUSES,
        expected_return_date__lt=timezone.localdate(),
    )


def product_assignment_stats(queryset):
    active = queryset.filter(status__in=ProductAssignment.ACTIVE_STATUSES)
    return {
        "total": queryset.count(),
        "by_status": _status_counts(queryset),
        "active_quantity": active.aggregate(total=Sum("quantity"))["total"] or 0,
        "overdue": overdue_product_assignments(queryset).count(),
        "employees_with_items": active.values("employee_id").distinct().count(),
    }


# Manual movements


def record_manual_movement(*, item, movement_type, quantity, user, location=None, unit_cost=None, reference_number="", notes=""):
    direction = MANUAL_MOVEMENT_DIRECTIONS.get(movement_type)
    if direction is None:
        raise ValidationError(
            {"movement_type": f"Manual movements must be one of: {', '.join(sorted(MANUAL_MOVEMENT_DIRECTIONS))}."}
        )
    if quantity == 0 or (quantity > 0) != (direction > 0):
        sign = "positive" if direction > 0 else "negative"
        raise ValidationError({"quantity": f"Quantity for {movement_type} must be {sign}."})

    return InventoryAccount(item, performed_by=user).adjust(
        quantity,
        movement_type=movement_type,
        reference=Reference.other(reference_number),
        to_location=location if quantity > 0 else None,
        from_location=location if quantity < 0 else None,
        unit_cost=unit_cost,
        notes=notes,
    )


def movement_stats(queryset):
    today = timezone.localdate()
    return {
        "total": queryset.count(),
        "today": queryset.filter(created_at__date=today).count(),
        "by_type": _status_counts(queryset, "movement_type"),
        "by_reference_type": _status_counts(queryset, "reference_type"),
    }


def low_stock_items(queryset):
    return queryset.filter(status=Item.Status.ACTIVE, available_quantity__lte=F("low_stock_threshold"))
