import uuid

from django.conf import settings
from django.db import models
from django.db.models import F, Q
from django.utils import timezone

from inventory.exceptions import ImmutableMovement


class Category(models.Model):
    class Status(models.TextChoices):
        ACTIVE = "active", "Active"
        INACTIVE = "inactive", "Inactive"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=255)
    code = models.CharField(max_length=64, unique=True)
    description = models.TextField(blank=True, default="")
    parent = models.ForeignKey("self", on_delete=models.PROTECT, null=True, blank=True, related_name="children")
    level = models.PositiveSmallIntegerField(default=0)
    path = models.CharField(max_length=1024, blank=True, default="")
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.ACTIVE)
    sort_order = models.IntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["sort_order", "name"]
        indexes = [
            models.Index(fields=["parent", "sort_order"], name="inv_category_parent_idx"),
            models.Index(fields=["status"], name="inv_category_status_idx"),
        ]

    def __str__(self):
        return self.name

    def save(self, *args, **kwargs):
        # level/path are derived from the parent chain on every save.
        if self.parent_id:
            parent = self.parent
            self.level = parent.level + 1
            self.path = f"{parent.path}/{self.code}" if parent.path else f"{parent.code}/{self.code}"
        else:
            self.level = 0
            self.path = self.code
        super().save(*args, **kwargs)


class Location(models.Model):
    class Type(models.TextChoices):
        WAREHOUSE = "warehouse", "Warehouse"
        OFFICE = "office", "Office"
        STORE = "store", "Store"
        FACILITY = "facility", "Facility"
        ZONE = "zone", "Zone"
        RACK = "rack", "Rack"
        SHELF = "shelf", "Shelf"
        BIN = "bin", "Bin"
        OTHER = "other", "Other"

    class Status(models.TextChoices):
        ACTIVE = "active", "Active"
        INACTIVE = "inactive", "Inactive"
        MAINTENANCE = "maintenance", "Maintenance"
        FULL = "full", "Full"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=255)
    code = models.CharField(max_length=64, unique=True)
    location_type = models.CharField(max_length=16, choices=Type.choices, default=Type.WAREHOUSE)
    parent = models.ForeignKey("self", on_delete=models.PROTECT, null=True, blank=True, related_name="children")
    address = models.TextField(blank=True, default="")
    is_primary = models.BooleanField(default=False)
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.ACTIVE)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]
        indexes = [models.Index(fields=["status", "location_type"], name="inv_location_status_idx")]

    def __str__(self):
        return self.name


class Supplier(models.Model):
    class PaymentTerms(models.TextChoices):
        CASH = "cash", "Cash"
        NET_15 = "net_15", "Net 15"
        NET_30 = "net_30", "Net 30"
        NET_60 = "net_60", "Net 60"
        NET_90 = "net_90", "Net 90"
        CUSTOM = "custom", "Custom"

    class Status(models.TextChoices):
        ACTIVE = "active", "Active"
        INACTIVE = "inactive", "Inactive"
        BLOCKED = "blocked", "Blocked"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=255)
    code = models.CharField(max_length=64, unique=True)
    contact_person = models.CharField(max_length=255, blank=True, default="")
    email = models.EmailField(blank=True, default="")
    phone = models.CharField(max_length=64, blank=True, default="")
    address = models.TextField(blank=True, default="")
    payment_terms = models.CharField(max_length=16, choices=PaymentTerms.choices, default=PaymentTerms.NET_30)
    currency = models.CharField(max_length=3, default="USD")
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.ACTIVE)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]
        indexes = [models.Index(fields=["status"], name="inv_supplier_status_idx")]

    def __str__(self):
        return self.name


class Item(models.Model):
    """Stocked item and its quantity store.

    ``quantity``, ``reserved_quantity`` and ``available_quantity`` are written
    only by :class:`inventory.ledger.InventoryAccount`. A regular ``save()`` on
    an existing row never touches them.
    """

    QUANTITY_FIELDS = ("quantity", "reserved_quantity", "available_quantity")

    class Status(models.TextChoices):
        ACTIVE = "active", "Active"
        INACTIVE = "inactive", "Inactive"
        DISCONTINUED = "discontinued", "Discontinued"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    sku = models.CharField(max_length=64, unique=True)
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True, default="")
    category = models.ForeignKey(Category, on_delete=models.PROTECT, null=True, blank=True, related_name="items")
    unit = models.CharField(max_length=32, default="pcs")
    unit_cost = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    low_stock_threshold = models.IntegerField(default=0)
    barcode = models.CharField(max_length=128, blank=True, default="")
    serial_number = models.CharField(max_length=128, blank=True, default="")
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.ACTIVE)
    quantity = models.IntegerField(default=0)
    reserved_quantity = models.IntegerField(default=0)
    available_quantity = models.IntegerField(default=0)
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="+")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]
        indexes = [
            models.Index(fields=["category", "status"], name="inv_item_category_idx"),
            models.Index(fields=["barcode"], name="inv_item_barcode_idx"),
            models.Index(fields=["status", "available_quantity"], name="inv_item_stock_idx"),
        ]
        constraints = [
            models.CheckConstraint(condition=Q(quantity__gte=0), name="inv_item_quantity_gte_0"),
            models.CheckConstraint(condition=Q(reserved_quantity__gte=0), name="inv_item_reserved_gte_0"),
            models.CheckConstraint(condition=Q(available_quantity__gte=0), name="inv_item_available_gte_0"),
            models.CheckConstraint(
                condition=Q(available_quantity=F("quantity") - F("reserved_quantity")),
                name="inv_item_available_balanced",
            ),
        ]

    def __str__(self):
        return f"{self.sku} {self.name}"

    @property
    def is_low_stock(self):
        return self.available_quantity <= self.low_stock_threshold

    def save(self, *args, **kwargs):
        if self._state.adding:
            self.available_quantity = self.quantity - self.reserved_quantity
        elif kwargs.get("update_fields") is None:
            kwargs["update_fields"] = [
                field.name
                for field in self._meta.concrete_fields
                if not field.primary_key and field.name not in self.QUANTITY_FIELDS
            ]
        else:
            kwargs["update_fields"] = [name for name in kwargs["update_fields"] if name not in self.QUANTITY_FIELDS]
        super().save(*args, **kwargs)


class StockMovementQuerySet(models.QuerySet):
    def update(self, **kwargs):
        raise ImmutableMovement()

    def delete(self):
        raise ImmutableMovement()


class StockMovement(models.Model):
    class MovementType(models.TextChoices):
        PURCHASE = "purchase", "Purchase"
        SALE = "sale", "Sale"
        TRANSFER_IN = "transfer_in", "Transfer in"
        TRANSFER_OUT = "transfer_out", "Transfer out"
        TRANSFER_REVERSAL = "transfer_reversal", "Transfer reversal"
        ADJUSTMENT_INCREASE = "adjustment_increase", "Adjustment increase"
        ADJUSTMENT_DECREASE = "adjustment_decrease", "Adjustment decrease"
        RETURN = "return", "Return"
        DAMAGE = "damage", "Damage"
        EXPIRED = "expired", "Expired"
        ASSIGNMENT = "assignment", "Assignment"
        RETURN_ASSIGNMENT = "return_assignment", "Return assignment"

    class ReferenceType(models.TextChoices):
        PURCHASE_ORDER = "purchase_order", "Purchase order"
        TRANSFER = "transfer", "Transfer"
        ADJUSTMENT = "adjustment", "Adjustment"
        ASSIGNMENT = "assignment", "Assignment"
        OTHER = "other", "Other"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    item = models.ForeignKey(Item, on_delete=models.PROTECT, related_name="movements")
    movement_type = models.CharField(max_length=32, choices=MovementType.choices)
    quantity = models.IntegerField()
    balance_after = models.IntegerField()
    unit_cost = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    total_cost = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True)
    from_location = models.ForeignKey(Location, on_delete=models.PROTECT, null=True, blank=True, related_name="outgoing_movements")
    to_location = models.ForeignKey(Location, on_delete=models.PROTECT, null=True, blank=True, related_name="incoming_movements")
    reference_type = models.CharField(max_length=32, choices=ReferenceType.choices, default=ReferenceType.OTHER)
    reference_id = models.UUIDField(null=True, blank=True)
    reference_number = models.CharField(max_length=64, blank=True, default="")
    event_id = models.UUIDField(null=True, blank=True)
    performed_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, null=True, blank=True, related_name="+")
    notes = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)

    objects = StockMovementQuerySet.as_manager()

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["item", "created_at"], name="inv_move_item_idx"),
            models.Index(fields=["movement_type", "created_at"], name="inv_move_type_idx"),
            models.Index(fields=["reference_type", "reference_id"], name="inv_move_reference_idx"),
            models.Index(fields=["from_location", "created_at"], name="inv_move_from_idx"),
            models.Index(fields=["to_location", "created_at"], name="inv_move_to_idx"),
        ]
        constraints = [
            models.CheckConstraint(condition=~Q(quantity=0), name="inv_move_quantity_nonzero"),
            models.CheckConstraint(condition=Q(balance_after__gte=0), name="inv_move_balance_gte_0"),
            models.UniqueConstraint(
                fields=["event_id", "item", "movement_type", "reference_id"],
                condition=Q(event_id__isnull=False),
                name="uniq_movement_event_item",
            ),
        ]

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ImmutableMovement()
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ImmutableMovement()


class StockAdjustment(models.Model):
    class Type(models.TextChoices):
        INCREASE = "increase", "Increase"
        DECREASE = "decrease", "Decrease"

    class Reason(models.TextChoices):
        DAMAGE = "damage", "Damage"
        THEFT = "theft", "Theft"
        LOSS = "loss", "Loss"
        FOUND = "found", "Found"
        EXPIRED = "expired", "Expired"
        QUALITY_ISSUE = "quality_issue", "Quality issue"
        PHYSICAL_COUNT = "physical_count", "Physical count"
        OTHER = "other", "Other"

    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        APPROVED = "approved", "Approved"
        REJECTED = "rejected", "Rejected"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    item = models.ForeignKey(Item, on_delete=models.PROTECT, related_name="adjustments")
    adjustment_type = models.CharField(max_length=16, choices=Type.choices)
    quantity = models.IntegerField()
    reason = models.CharField(max_length=32, choices=Reason.choices)
    notes = models.TextField(blank=True, default="")
    location = models.ForeignKey(Location, on_delete=models.PROTECT, null=True, blank=True, related_name="+")
    before_quantity = models.IntegerField()
    after_quantity = models.IntegerField()
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.PENDING)
    adjusted_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="stock_adjustments")
    approved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="approved_stock_adjustments",
        null=True,
        blank=True,
    )
    approved_at = models.DateTimeField(null=True, blank=True)
    rejection_reason = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status", "created_at"], name="inv_adjust_status_idx"),
            models.Index(fields=["item", "created_at"], name="inv_adjust_item_idx"),
        ]
        constraints = [
            models.CheckConstraint(condition=Q(quantity__gt=0), name="inv_adjust_quantity_gt_0"),
        ]

    @property
    def signed_quantity(self):
        return self.quantity if self.adjustment_type == self.Type.INCREASE else -self.quantity


class StockTransfer(models.Model):
    class Status(models.TextChoices):
        DRAFT = "draft", "Draft"
        PENDING = "pending", "Pending"
        APPROVED = "approved", "Approved"
        IN_TRANSIT = "in_transit", "In transit"
        PARTIALLY_RECEIVED = "partially_received", "Partially received"
        RECEIVED = "received", "Received"
        CANCELLED = "cancelled", "Cancelled"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    transfer_number = models.CharField(max_length=32, unique=True)
    from_location = models.ForeignKey(Location, on_delete=models.PROTECT, related_name="outgoing_transfers")
    to_location = models.ForeignKey(Location, on_delete=models.PROTECT, related_name="incoming_transfers")
    status = models.CharField(max_length=32, choices=Status.choices, default=Status.DRAFT)
    requested_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="requested_transfers")
    approved_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="+", null=True, blank=True)
    shipped_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="+", null=True, blank=True)
    received_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="+", null=True, blank=True)
    expected_arrival_date = models.DateField(null=True, blank=True)
    approved_at = models.DateTimeField(null=True, blank=True)
    shipped_at = models.DateTimeField(null=True, blank=True)
    received_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancellation_reason = models.TextField(blank=True, default="")
    shipping_method = models.CharField(max_length=64, blank=True, default="")
    tracking_number = models.CharField(max_length=128, blank=True, default="")
    notes = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status", "created_at"], name="inv_transfer_status_idx"),
            models.Index(fields=["from_location", "to_location"], name="inv_transfer_route_idx"),
        ]
        constraints = [
            models.CheckConstraint(condition=~Q(from_location=F("to_location")), name="inv_transfer_distinct_locs"),
        ]


class StockTransferLine(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    transfer = models.ForeignKey(StockTransfer, on_delete=models.CASCADE, related_name="lines")
    item = models.ForeignKey(Item, on_delete=models.PROTECT, related_name="+")
    quantity_requested = models.IntegerField()
    quantity_sent = models.IntegerField(default=0)
    quantity_received = models.IntegerField(default=0)
    notes = models.TextField(blank=True, default="")

    class Meta:
        unique_together = ("transfer", "item")
        constraints = [
            models.CheckConstraint(condition=Q(quantity_requested__gt=0), name="inv_tline_requested_gt_0"),
            models.CheckConstraint(condition=Q(quantity_sent__gte=0), name="inv_tline_sent_gte_0"),
            models.CheckConstraint(condition=Q(quantity_received__lte=F("quantity_sent")), name="inv_tline_received_lte_sent"),
        ]

    @property
    def outstanding_quantity(self):
        return self.quantity_sent - self.quantity_received


class PurchaseOrder(models.Model):
    class Status(models.TextChoices):
        DRAFT = "draft", "Draft"
        PENDING = "pending", "Pending"
        APPROVED = "approved", "Approved"
        ORDERED = "ordered", "Ordered"
        PARTIALLY_RECEIVED = "partially_received", "Partially received"
        RECEIVED = "received", "Received"
        CANCELLED = "cancelled", "Cancelled"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    po_number = models.CharField(max_length=32, unique=True)
    supplier = models.ForeignKey(Supplier, on_delete=models.PROTECT, related_name="purchase_orders")
    status = models.CharField(max_length=32, choices=Status.choices, default=Status.DRAFT)
    delivery_location = models.ForeignKey(Location, on_delete=models.PROTECT, null=True, blank=True, related_name="+")
    expected_delivery_date = models.DateField(null=True, blank=True)
    actual_delivery_date = models.DateField(null=True, blank=True)
    subtotal = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    tax_amount = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    shipping_cost = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    discount_amount = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    total_amount = models.DecimalField(max_digits=14, decimal_places=2, default=0)
    currency = models.CharField(max_length=3, default="USD")
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="purchase_orders")
    approved_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="+", null=True, blank=True)
    approved_at = models.DateTimeField(null=True, blank=True)
    ordered_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancellation_reason = models.TextField(blank=True, default="")
    notes = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status", "created_at"], name="inv_po_status_idx"),
            models.Index(fields=["supplier", "status"], name="inv_po_supplier_idx"),
        ]


class PurchaseOrderLine(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    purchase_order = models.ForeignKey(PurchaseOrder, on_delete=models.CASCADE, related_name="lines")
    item = models.ForeignKey(Item, on_delete=models.PROTECT, related_name="+")
    quantity_ordered = models.IntegerField()
    quantity_received = models.IntegerField(default=0)
    unit_price = models.DecimalField(max_digits=12, decimal_places=2)
    tax_rate = models.DecimalField(max_digits=5, decimal_places=2, default=0)
    discount = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    total = models.DecimalField(max_digits=14, decimal_places=2, default=0)

    class Meta:
        unique_together = ("purchase_order", "item")
        constraints = [
            models.CheckConstraint(condition=Q(quantity_ordered__gt=0), name="inv_poline_ordered_gt_0"),
            models.CheckConstraint(condition=Q(quantity_received__gte=0), name="inv_poline_received_gte_0"),
            models.CheckConstraint(
                condition=Q(quantity_received__lte=F("quantity_ordered")),
                name="inv_poline_received_lte_ord",
            ),
        ]

    @property
    def remaining_quantity(self):
        return self.quantity_ordered - self.quantity_received


class Assignment(models.Model):
    class Status(models.TextChoices):
        ASSIGNED = "assigned", "Assigned"
        RETURNED = "returned", "Returned"

    class Condition(models.TextChoices):
        NEW = "new", "New"
        GOOD = "good", "Good"
        FAIR = "fair", "Fair"
        POOR = "poor", "Poor"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    item = models.ForeignKey(Item, on_delete=models.PROTECT, related_name="assignments")
    assigned_to = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="assignments")
    assigned_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="+")
    quantity = models.IntegerField(default=1)
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.ASSIGNED)
    assigned_date = models.DateTimeField(default=timezone.now)
    expected_return_date = models.DateField(null=True, blank=True)
    actual_return_date = models.DateTimeField(null=True, blank=True)
    condition_on_assignment = models.CharField(max_length=16, choices=Condition.choices, default=Condition.GOOD)
    condition_on_return = models.CharField(max_length=16, choices=Condition.choices, blank=True, default="")
    notes = models.TextField(blank=True, default="")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-assigned_date"]
        indexes = [
            models.Index(fields=["assigned_to", "status"], name="inv_assign_user_idx"),
            models.Index(fields=["item", "status"], name="inv_assign_item_idx"),
        ]
        constraints = [
            models.CheckConstraint(condition=Q(quantity__gt=0), name="inv_assign_quantity_gt_0"),
        ]


class AssignmentHistory(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    assignment = models.ForeignKey(Assignment, on_delete=models.CASCADE, related_name="history")
    action = models.CharField(max_length=32)
    performed_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="+")
    details = models.JSONField(default=dict, blank=True)
    old_status = models.CharField(max_length=16, blank=True, default="")
    new_status = models.CharField(max_length=16, blank=True, default="")
    timestamp = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["timestamp"]


class ProductAssignment(models.Model):
    class Status(models.TextChoices):
        ASSIGNED = "assigned", "Assigned"
        IN_USE = "in_use", "In use"
        RETURNED = "returned", "Returned"
        LOST = "lost", "Lost"
        DAMAGED = "damaged", "Damaged"
        TRANSFERRED = "transferred", "Transferred"

    ACTIVE_STATUSES = (Status.ASSIGNED, Status.IN_USE)

    class Condition(models.TextChoices):
        NEW = "new", "New"
        EXCELLENT = "excellent", "Excellent"
        GOOD = "good", "Good"
        FAIR = "fair", "Fair"
        POOR = "poor", "Poor"
        DAMAGED = "damaged", "Damaged"
        LOST = "lost", "Lost"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    item = models.ForeignKey(Item, on_delete=models.PROTECT, related_name="product_assignments")
    employee = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="product_assignments")
    issued_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="+")
    quantity = models.IntegerField(default=1)
    purpose = models.CharField(max_length=255)
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.ASSIGNED)
    assigned_location = models.ForeignKey(Location, on_delete=models.PROTECT, null=True, blank=True, related_name="+")
    assigned_date = models.DateTimeField(default=timezone.now)
    expected_return_date = models.DateField(null=True, blank=True)
    actual_return_date = models.DateTimeField(null=True, blank=True)
    condition_on_issue = models.CharField(max_length=16, choices=Condition.choices, default=Condition.GOOD)
    condition_on_return = models.CharField(max_length=16, choices=Condition.choices, blank=True, default="")
    issue_remarks = models.TextField(blank=True, default="")
    return_remarks = models.TextField(blank=True, default="")
    employee_acknowledged = models.BooleanField(default=False)
    employee_acknowledged_at = models.DateTimeField(null=True, blank=True)
    return_acknowledged_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="+")
    return_acknowledged_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-assigned_date"]
        indexes = [
            models.Index(fields=["employee", "status"], name="inv_passign_employee_idx"),
            models.Index(fields=["item", "status"], name="inv_passign_item_idx"),
            models.Index(fields=["status", "expected_return_date"], name="inv_passign_due_idx"),
        ]
        constraints = [
            models.CheckConstraint(condition=Q(quantity__gt=0), name="inv_passign_quantity_gt_0"),
        ]

    @property
    def is_active(self):
        return self.status in self.ACTIVE_STATUSES

    @property
    def is_overdue(self):
        return bool(self.is_active and self.expected_return_date and self.expected_return_date < timezone.localdate())


class ProductAssignmentHistory(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    product_assignment = models.ForeignKey(ProductAssignment, on_delete=models.CASCADE, related_name="history")
    action = models.CharField(max_length=32)
    performed_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="+")
    details = models.JSONField(default=dict, blank=True)
    old_status = models.CharField(max_length=16, blank=True, default="")
    new_status = models.CharField(max_length=16, blank=True, default="")
    timestamp = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["timestamp"]
