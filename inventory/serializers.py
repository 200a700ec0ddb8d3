from rest_framework import serializers

from inventory import services
from inventory.ledger import MANUAL_MOVEMENT_DIRECTIONS
from inventory.models import (
    Assignment,
    AssignmentHistory,
    Category,
    Item,
    Location,
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


def _reject_duplicate_items(lines, field="item"):
    seen = set()
    for line in lines:
        key = str(getattr(line[field], "pk", line[field]))
        if key in seen:
            raise serializers.ValidationError({"lines": f"Item {key} appears more than once."})
        seen.add(key)


def _request_user(serializer):
    return serializer.context["request"].user


class CategorySerializer(serializers.ModelSerializer):
    class Meta:
        model = Category
        fields = [
            "id",
            "name",
            "code",
            "description",
            "parent",
            "level",
            "path",
            "status",
            "sort_order",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "level", "path", "created_at", "updated_at"]

    def validate(self, attrs):
        if "parent" in attrs:
            services.validate_category_parent(self.instance, attrs["parent"])
        return attrs

    def update(self, instance, validated_data):
        instance = super().update(instance, validated_data)
        services.refresh_category_paths(instance)
        return instance


class LocationSerializer(serializers.ModelSerializer):
    class Meta:
        model = Location
        fields = [
            "id",
            "name",
            "code",
            "location_type",
            "parent",
            "address",
            "is_primary",
            "status",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "created_at", "updated_at"]

    def validate_parent(self, value):
        node = value
        while node is not None:
            if self.instance is not None and node.pk == self.instance.pk:
                raise serializers.ValidationError("A location cannot be nested under itself.")
            node = node.parent
        return value


class SupplierSerializer(serializers.ModelSerializer):
    class Meta:
        model = Supplier
        fields = [
            "id",
            "name",
            "code",
            "contact_person",
            "email",
            "phone",
            "address",
            "payment_terms",
            "currency",
            "status",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "created_at", "updated_at"]


class ItemSerializer(serializers.ModelSerializer):
    category_name = serializers.CharField(source="category.name", read_only=True)
    is_low_stock = serializers.BooleanField(read_only=True)
    opening_quantity = serializers.IntegerField(write_only=True, required=False, min_value=0, default=0)
    opening_location = serializers.PrimaryKeyRelatedField(
        queryset=Location.objects.all(), write_only=True, required=False, allow_null=True
    )

    class Meta:
        model = Item
        fields = [
            "id",
            "sku",
            "name",
            "description",
            "category",
            "category_name",
            "unit",
            "unit_cost",
            "low_stock_threshold",
            "barcode",
            "serial_number",
            "status",
            "quantity",
            "reserved_quantity",
            "available_quantity",
            "is_low_stock",
            "opening_quantity",
            "opening_location",
            "created_by",
            "created_at",
            "updated_at",
        ]
        read_only_fields = [
            "id",
            "quantity",
            "reserved_quantity",
            "available_quantity",
            "created_by",
            "created_at",
            "updated_at",
        ]

    def create(self, validated_data):
        return services.create_item(user=_request_user(self), **validated_data)

    def update(self, instance, validated_data):
        validated_data.pop("opening_quantity", None)
        validated_data.pop("opening_location", None)
        return super().update(instance, validated_data)


class ItemBulkCreateSerializer(serializers.Serializer):
    items = ItemSerializer(many=True, allow_empty=False)

    def validate_items(self, value):
        seen = set()
        for row in value:
            sku = row["sku"].strip().lower()
            if sku in seen:
                raise serializers.ValidationError(f"SKU {row['sku']} appears more than once.")
            seen.add(sku)
        return value

    def create(self, validated_data):
        return services.bulk_create_items(user=_request_user(self), rows=validated_data["items"])


class StockMovementSerializer(serializers.ModelSerializer):
    item_sku = serializers.CharField(source="item.sku", read_only=True)
    item_name = serializers.CharField(source="item.name", read_only=True)
    performed_by_username = serializers.CharField(source="performed_by.username", read_only=True, default=None)

    class Meta:
        model = StockMovement
        fields = [
            "id",
            "item",
            "item_sku",
            "item_name",
            "movement_type",
            "quantity",
            "balance_after",
            "unit_cost",
            "total_cost",
            "from_location",
            "to_location",
            "reference_type",
            "reference_id",
            "reference_number",
            "event_id",
            "performed_by",
            "performed_by_username",
            "notes",
            "created_at",
        ]
        read_only_fields = fields


class ManualMovementSerializer(serializers.Serializer):
    item = serializers.PrimaryKeyRelatedField(queryset=Item.objects.all())
    movement_type = serializers.ChoiceField(choices=sorted(MANUAL_MOVEMENT_DIRECTIONS))
    quantity = serializers.IntegerField()
    location = serializers.PrimaryKeyRelatedField(queryset=Location.objects.all(), required=False, allow_null=True)
    unit_cost = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, allow_null=True)
    reference_number = serializers.CharField(max_length=64, required=False, allow_blank=True, default="")
    notes = serializers.CharField(required=False, allow_blank=True, default="")

    def create(self, validated_data):
        return services.record_manual_movement(user=_request_user(self), **validated_data)


class StockAdjustmentSerializer(serializers.ModelSerializer):
    item_sku = serializers.CharField(source="item.sku", read_only=True)
    quantity = serializers.IntegerField(min_value=1)
    auto_approve = serializers.BooleanField(write_only=True, required=False, default=False)

    class Meta:
        model = StockAdjustment
        fields = [
            "id",
            "item",
            "item_sku",
            "adjustment_type",
            "quantity",
            "reason",
            "notes",
            "location",
            "before_quantity",
            "after_quantity",
            "status",
            "adjusted_by",
            "approved_by",
            "approved_at",
            "rejection_reason",
            "auto_approve",
            "created_at",
            "updated_at",
        ]
        read_only_fields = [
            "id",
            "before_quantity",
            "after_quantity",
            "status",
            "adjusted_by",
            "approved_by",
            "approved_at",
            "rejection_reason",
            "created_at",
            "updated_at",
        ]

    def create(self, validated_data):
        return services.create_adjustment(user=_request_user(self), **validated_data)


class AdjustmentRejectSerializer(serializers.Serializer):
    rejection_reason = serializers.CharField()


class StockTransferLineSerializer(serializers.ModelSerializer):
    item_sku = serializers.CharField(source="item.sku", read_only=True)
    quantity_requested = serializers.IntegerField(min_value=1)

    class Meta:
        model = StockTransferLine
        fields = ["id", "item", "item_sku", "quantity_requested", "quantity_sent", "quantity_received", "notes"]
        read_only_fields = ["id", "quantity_sent", "quantity_received"]


class StockTransferSerializer(serializers.ModelSerializer):
    lines = StockTransferLineSerializer(many=True)

    class Meta:
        model = StockTransfer
        fields = [
            "id",
            "transfer_number",
            "from_location",
            "to_location",
            "status",
            "requested_by",
            "approved_by",
            "shipped_by",
            "received_by",
            "expected_arrival_date",
            "approved_at",
            "shipped_at",
            "received_at",
            "cancelled_at",
            "cancellation_reason",
            "shipping_method",
            "tracking_number",
            "notes",
            "created_at",
            "updated_at",
            "lines",
        ]
        read_only_fields = [
            "id",
            "transfer_number",
            "status",
            "requested_by",
            "approved_by",
            "shipped_by",
            "received_by",
            "approved_at",
            "shipped_at",
            "received_at",
            "cancelled_at",
            "cancellation_reason",
            "created_at",
            "updated_at",
        ]

    def validate_lines(self, value):
        if not value:
            raise serializers.ValidationError("At least one line is required.")
        _reject_duplicate_items(value)
        return value

    def validate(self, attrs):
        from_location = attrs.get("from_location") or getattr(self.instance, "from_location", None)
        to_location = attrs.get("to_location") or getattr(self.instance, "to_location", None)
        if from_location and to_location and from_location.pk == to_location.pk:
            raise serializers.ValidationError({"to_location": "Source and destination locations must differ."})
        return attrs

    def create(self, validated_data):
        lines = validated_data.pop("lines")
        return services.create_transfer(user=_request_user(self), lines=lines, **validated_data)

    def update(self, instance, validated_data):
        lines = validated_data.pop("lines", None)
        return services.update_transfer(instance, lines=lines, **validated_data)


class ShipLineSerializer(serializers.Serializer):
    item = serializers.UUIDField()
    quantity_sent = serializers.IntegerField(min_value=1)


class TransferShipSerializer(serializers.Serializer):
    lines = ShipLineSerializer(many=True, required=False)
    shipping_method = serializers.CharField(max_length=64, required=False, allow_blank=True)
    tracking_number = serializers.CharField(max_length=128, required=False, allow_blank=True)

    def validate_lines(self, value):
        _reject_duplicate_items(value)
        return value


class ReceiptLineSerializer(serializers.Serializer):
    item = serializers.UUIDField()
    quantity_received = serializers.IntegerField(min_value=1)


class TransferReceiveSerializer(serializers.Serializer):
    lines = ReceiptLineSerializer(many=True, required=False)
    event_id = serializers.UUIDField(required=False, allow_null=True)

    def validate_lines(self, value):
        _reject_duplicate_items(value)
        return value


class CancelSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default="")


class PurchaseOrderLineSerializer(serializers.ModelSerializer):
    item_sku = serializers.CharField(source="item.sku", read_only=True)
    quantity_ordered = serializers.IntegerField(min_value=1)
    unit_price = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0)
    tax_rate = serializers.DecimalField(max_digits=5, decimal_places=2, min_value=0, max_value=100, required=False, default=0)
    discount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0, required=False, default=0)

    class Meta:
        model = PurchaseOrderLine
        fields = [
            "id",
            "item",
            "item_sku",
            "quantity_ordered",
            "quantity_received",
            "unit_price",
            "tax_rate",
            "discount",
            "total",
        ]
        read_only_fields = ["id", "quantity_received", "total"]


class PurchaseOrderSerializer(serializers.ModelSerializer):
    lines = PurchaseOrderLineSerializer(many=True)
    supplier_name = serializers.CharField(source="supplier.name", read_only=True)

    class Meta:
        model = PurchaseOrder
        fields = [
            "id",
            "po_number",
            "supplier",
            "supplier_name",
            "status",
            "delivery_location",
            "expected_delivery_date",
            "actual_delivery_date",
            "subtotal",
            "tax_amount",
            "shipping_cost",
            "discount_amount",
            "total_amount",
            "currency",
            "created_by",
            "approved_by",
            "approved_at",
            "ordered_at",
            "cancelled_at",
            "cancellation_reason",
            "notes",
            "created_at",
            "updated_at",
            "lines",
        ]
        read_only_fields = [
            "id",
            "po_number",
            "status",
            "actual_delivery_date",
            "subtotal",
            "tax_amount",
            "total_amount",
            "created_by",
            "approved_by",
            "approved_at",
            "ordered_at",
            "cancelled_at",
            "cancellation_reason",
            "created_at",
            "updated_at",
        ]

    def validate_lines(self, value):
        if not value:
            raise serializers.ValidationError("At least one line is required.")
        _reject_duplicate_items(value)
        for line in value:
            if line["quantity_ordered"] * line["unit_price"] < line.get("discount", 0):
                raise serializers.ValidationError(f"Discount exceeds the line amount for {line['item'].sku}.")
        return value

    def create(self, validated_data):
        lines = validated_data.pop("lines")
        return services.create_purchase_order(user=_request_user(self), lines=lines, **validated_data)

    def update(self, instance, validated_data):
        lines = validated_data.pop("lines", None)
        return services.update_purchase_order(instance, lines=lines, **validated_data)


class PurchaseReceiptLineSerializer(ReceiptLineSerializer):
    unit_cost = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0, required=False, allow_null=True)


class PurchaseOrderReceiveSerializer(serializers.Serializer):
    lines = PurchaseReceiptLineSerializer(many=True)
    event_id = serializers.UUIDField(required=False, allow_null=True)
    actual_delivery_date = serializers.DateField(required=False, allow_null=True)

    def validate_lines(self, value):
        if not value:
            raise serializers.ValidationError("At least one line is required.")
        _reject_duplicate_items(value)
        return value


class AssignmentHistorySerializer(serializers.ModelSerializer):
    class Meta:
        model = AssignmentHistory
        fields = ["id", "action", "performed_by", "details", "old_status", "new_status", "timestamp"]
        read_only_fields = fields


class AssignmentSerializer(serializers.ModelSerializer):
    item_sku = serializers.CharField(source="item.sku", read_only=True)
    assigned_to_username = serializers.CharField(source="assigned_to.username", read_only=True)
    quantity = serializers.IntegerField(min_value=1, default=1)
    history = AssignmentHistorySerializer(many=True, read_only=True)

    class Meta:
        model = Assignment
        fields = [
            "id",
            "item",
            "item_sku",
            "assigned_to",
            "assigned_to_username",
            "assigned_by",
            "quantity",
            "status",
            "assigned_date",
            "expected_return_date",
            "actual_return_date",
            "condition_on_assignment",
            "condition_on_return",
            "notes",
            "history",
            "created_at",
            "updated_at",
        ]
        read_only_fields = [
            "id",
            "assigned_by",
            "status",
            "assigned_date",
            "actual_return_date",
            "condition_on_return",
            "created_at",
            "updated_at",
        ]

    def create(self, validated_data):
        return services.create_assignment(user=_request_user(self), **validated_data)


class AssignmentReturnSerializer(serializers.Serializer):
    condition_on_return = serializers.ChoiceField(choices=Assignment.Condition.choices, required=False, allow_blank=True, default="")
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class ProductAssignmentHistorySerializer(serializers.ModelSerializer):
    class Meta:
        model = ProductAssignmentHistory
        fields = ["id", "action", "performed_by", "details", "old_status", "new_status", "timestamp"]
        read_only_fields = fields


class ProductAssignmentSerializer(serializers.ModelSerializer):
    item_sku = serializers.CharField(source="item.sku", read_only=True)
    employee_username = serializers.CharField(source="employee.username", read_only=True)
    quantity = serializers.IntegerField(min_value=1, default=1)
    is_overdue = serializers.BooleanField(read_only=True)
    history = ProductAssignmentHistorySerializer(many=True, read_only=True)

    class Meta:
        model = ProductAssignment
        fields = [
            "id",
            "item",
            "item_sku",
            "employee",
            "employee_username",
            "issued_by",
            "quantity",
            "purpose",
            "status",
            "assigned_location",
            "assigned_date",
            "expected_return_date",
            "actual_return_date",
            "condition_on_issue",
            "condition_on_return",
            "issue_remarks",
            "return_remarks",
            "employee_acknowledged",
            "employee_acknowledged_at",
            "return_acknowledged_by",
            "return_acknowledged_at",
            "is_overdue",
            "history",
            "created_at",
            "updated_at",
        ]
        read_only_fields = [
            "id",
            "issued_by",
            "status",
            "assigned_date",
            "actual_return_date",
            "condition_on_return",
            "return_remarks",
            "employee_acknowledged",
            "employee_acknowledged_at",
            "return_acknowledged_by",
            "return_acknowledged_at",
            "created_at",
            "updated_at",
        ]

    def create(self, validated_data):
        return services.issue_product(user=_request_user(self), **validated_data)


class ProductAssignmentUpdateSerializer(serializers.ModelSerializer):
    """Fields that may change while an assignment is active. Stock-bearing fields are fixed at issue."""

    class Meta:
        model = ProductAssignment
        fields = ["purpose", "expected_return_date", "issue_remarks"]


class ProductAssignmentReturnSerializer(serializers.Serializer):
    condition_on_return = serializers.ChoiceField(
        choices=ProductAssignment.Condition.choices, required=False, allow_blank=True, default=""
    )
    return_remarks = serializers.CharField(required=False, allow_blank=True, default="")


class ProductAssignmentOutcomeSerializer(serializers.Serializer):
    outcome = serializers.ChoiceField(
        choices=[
            ProductAssignment.Status.LOST,
            ProductAssignment.Status.DAMAGED,
            ProductAssignment.Status.TRANSFERRED,
        ]
    )
    remarks = serializers.CharField(required=False, allow_blank=True, default="")
