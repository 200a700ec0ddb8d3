import uuid

from django.db.models import Q
from django.shortcuts import get_object_or_404
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import PermissionDenied, ValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from common.audit import create_audit_log_from_request
from common.filters import QueryParamFilterBackend
from common.permissions import RoleCapabilityPermission, get_user_role, user_has_capability
from core.models import User
from inventory import ledger, services
from inventory.models import (
    Assignment,
    Category,
    Item,
    Location,
    ProductAssignment,
    PurchaseOrder,
    StockAdjustment,
    StockMovement,
    StockTransfer,
    Supplier,
)
from inventory.serializers import (
    AdjustmentRejectSerializer,
    AssignmentReturnSerializer,
    AssignmentSerializer,
    CancelSerializer,
    CategorySerializer,
    ItemBulkCreateSerializer,
    ItemSerializer,
    LocationSerializer,
    ManualMovementSerializer,
    ProductAssignmentOutcomeSerializer,
    ProductAssignmentReturnSerializer,
    ProductAssignmentSerializer,
    ProductAssignmentUpdateSerializer,
    PurchaseOrderReceiveSerializer,
    PurchaseOrderSerializer,
    StockAdjustmentSerializer,
    StockMovementSerializer,
    StockTransferSerializer,
    SupplierSerializer,
    TransferReceiveSerializer,
    TransferShipSerializer,
)
from inventory.workflows import PRODUCT_ASSIGNMENT_WORKFLOW


def _parse_uuid_param(name, raw):
    try:
        return uuid.UUID(str(raw))
    except ValueError:
        raise ValidationError({name: "Must be a valid UUID."})


CRUD_ACTIONS = ["create", "update", "partial_update", "destroy"]


def _capabilities(read, write, extra=None):
    mapping = {"list": read, "retrieve": read}
    mapping.update({name: write for name in CRUD_ACTIONS})
    mapping.update(extra or {})
    return mapping


class AuditedMutationMixin:
    audit_entity = None

    def _audit(self, *, action, instance=None, entity_id=None, before_snapshot=None, after_snapshot=None, event_id=None):
        create_audit_log_from_request(
            self.request,
            action=action,
            entity=self.audit_entity,
            entity_id=entity_id or instance.id,
            before_snapshot=before_snapshot,
            after_snapshot=after_snapshot,
            event_id=event_id,
        )

    def _snapshot(self, instance):
        return self.get_serializer_class()(instance, context=self.get_serializer_context()).data

    def perform_create(self, serializer):
        instance = serializer.save()
        self._audit(action=f"{self.audit_entity}.create", instance=instance, after_snapshot=self._snapshot(instance))

    def perform_update(self, serializer):
        before_snapshot = self._snapshot(serializer.instance)
        instance = serializer.save()
        self._audit(
            action=f"{self.audit_entity}.update",
            instance=instance,
            before_snapshot=before_snapshot,
            after_snapshot=self._snapshot(instance),
        )

    def perform_destroy(self, instance):
        before_snapshot = self._snapshot(instance)
        entity_id = instance.id
        self.delete_instance(instance)
        self._audit(action=f"{self.audit_entity}.delete", entity_id=entity_id, before_snapshot=before_snapshot)

    def delete_instance(self, instance):
        instance.delete()

    def _transition_response(self, action_name, before, instance, event_id=None):
        instance.refresh_from_db()
        data = self._snapshot(instance)
        self._audit(
            action=f"{self.audit_entity}.{action_name}",
            instance=instance,
            before_snapshot=before,
            after_snapshot=data,
            event_id=event_id,
        )
        return Response(data)


class CategoryViewSet(AuditedMutationMixin, viewsets.ModelViewSet):
    queryset = Category.objects.select_related("parent")
    serializer_class = CategorySerializer
    permission_classes = [IsAuthenticated, RoleCapabilityPermission]
    permission_action_map = _capabilities(
        "inventory.view",
        "inventory.manage",
        {"tree": "inventory.view", "stats": "inventory.view"},
    )
    audit_entity = "category"
    filter_backends = [QueryParamFilterBackend]
    query_filter_fields = {"status": "status", "parent_id": "parent_id", "level": "level"}
    query_search_fields = ["name", "code", "description"]
    query_ordering_fields = ["name", "code", "sort_order", "level", "created_at"]
    query_default_ordering = ["path", "sort_order"]

    def delete_instance(self, instance):
        if instance.children.exists() or instance.items.exists():
            raise ValidationError("Categories with subcategories or items cannot be deleted.")
        instance.delete()

    @action(detail=False, methods=["get"], url_path="tree")
    def tree(self, request):
        queryset = Category.objects.filter(status=Category.Status.ACTIVE).order_by("level", "sort_order", "name")
        return Response(services.build_category_tree(queryset))

    @action(detail=False, methods=["get"], url_path="stats")
    def stats(self, request):
        return Response(services.category_stats(self.filter_queryset(self.get_queryset())))


class LocationViewSet(AuditedMutationMixin, viewsets.ModelViewSet):
    queryset = Location.objects.select_related("parent")
    serializer_class = LocationSerializer
    permission_classes = [IsAuthenticated, RoleCapabilityPermission]
    permission_action_map = _capabilities("inventory.view", "inventory.manage")
    audit_entity = "location"
    filter_backends = [QueryParamFilterBackend]
    query_filter_fields = {"status": "status", "location_type": "location_type", "parent_id": "parent_id", "is_primary": "is_primary"}
    query_search_fields = ["name", "code", "address"]
    query_ordering_fields = ["name", "code", "created_at"]
    query_default_ordering = ["code"]

    def delete_instance(self, instance):
        if instance.children.exists() or StockMovement.objects.filter(Q(from_location=instance) | Q(to_location=instance)).exists():
            raise ValidationError("Locations with child locations or stock history cannot be deleted.")
        instance.delete()


class SupplierViewSet(AuditedMutationMixin, viewsets.ModelViewSet):
    queryset = Supplier.objects.all()
    serializer_class = SupplierSerializer
    permission_classes = [IsAuthenticated, RoleCapabilityPermission]
    permission_action_map = _capabilities("inventory.view", "inventory.manage", {"stats": "inventory.view"})
    audit_entity = "supplier"
    filter_backends = [QueryParamFilterBackend]
    query_filter_fields = {"status": "status", "payment_terms": "payment_terms", "currency": "currency"}
    query_search_fields = ["name", "code", "contact_person", "email"]
    query_ordering_fields = ["name", "code", "created_at"]
    query_default_ordering = ["name"]

    def delete_instance(self, instance):
        if instance.purchase_orders.exists():
            raise ValidationError("Suppliers with purchase orders cannot be deleted.")
        instance.delete()

    @action(detail=False, methods=["get"], url_path="stats")
    def stats(self, request):
        return Response(services.supplier_stats(self.filter_queryset(self.get_queryset())))


class ItemViewSet(AuditedMutationMixin, viewsets.ModelViewSet):
    queryset = Item.objects.select_related("category")
    serializer_class = ItemSerializer
    permission_classes = [IsAuthenticated, RoleCapabilityPermission]
    permission_action_map = _capabilities(
        "inventory.view",
        "inventory.manage",
        {
            "movements": "inventory.view",
            "reconcile": "inventory.view",
            "location_balances": "inventory.view",
            "low_stock": "inventory.view",
            "bulk_create": "inventory.manage",
        },
    )
    audit_entity = "item"
    filter_backends = [QueryParamFilterBackend]
    query_filter_fields = {"status": "status", "category_id": "category_id", "unit": "unit", "sku": "sku", "barcode": "barcode"}
    query_range_fields = {
        "quantity": "quantity",
        "available_quantity": "available_quantity",
        "unit_cost": "unit_cost",
    }
    query_search_fields = ["sku", "name", "description", "barcode", "serial_number"]
    query_ordering_fields = ["name", "sku", "quantity", "available_quantity", "unit_cost", "created_at", "updated_at"]
    query_default_ordering = ["name"]

    def delete_instance(self, instance):
        if instance.movements.exists():
            raise ValidationError("Items with stock history cannot be deleted; mark them discontinued instead.")
        instance.delete()

    @action(detail=True, methods=["get"], url_path="movements")
    def movements(self, request, pk=None):
        item = self.get_object()
        queryset = item.movements.select_related("item", "performed_by").order_by("-created_at")
        page = self.paginate_queryset(queryset)
        if page is not None:
            return self.get_paginated_response(StockMovementSerializer(page, many=True).data)
        return Response(StockMovementSerializer(queryset, many=True).data)

    @action(detail=True, methods=["get"], url_path="reconcile")
    def reconcile(self, request, pk=None):
        return Response(ledger.reconcile_item(self.get_object()))

    @action(detail=True, methods=["get"], url_path="location-balances")
    def location_balances(self, request, pk=None):
        item = self.get_object()
        return Response({"item_id": str(item.id), "sku": item.sku, "locations": ledger.location_balances(item)})

    @action(detail=False, methods=["post"], url_path="bulk")
    def bulk_create(self, request):
        serializer = ItemBulkCreateSerializer(data=request.data, context=self.get_serializer_context())
        serializer.is_valid(raise_exception=True)
        items = serializer.save()
        data = ItemSerializer(items, many=True, context=self.get_serializer_context()).data
        for item, row in zip(items, data):
            self._audit(action="item.create", instance=item, after_snapshot=row)
        return Response(data, status=status.HTTP_201_CREATED)

    @action(detail=False, methods=["get"], url_path="low-stock")
    def low_stock(self, request):
        queryset = services.low_stock_items(self.filter_queryset(self.get_queryset()))
        page = self.paginate_queryset(queryset)
        if page is not None:
            return self.get_paginated_response(self.get_serializer(page, many=True).data)
        return Response(self.get_serializer(queryset, many=True).data)


class StockAdjustmentViewSet(AuditedMutationMixin, viewsets.ModelViewSet):
    queryset = StockAdjustment.objects.select_related("item", "adjusted_by", "approved_by", "location")
    serializer_class = StockAdjustmentSerializer
    permission_classes = [IsAuthenticated, RoleCapabilityPermission]
    permission_action_map = _capabilities(
        "inventory.view",
        "stock.adjust",
        {"approve": "stock.adjust.approve", "reject": "stock.adjust.approve", "stats": "inventory.view"},
    )
    http_method_names = ["get", "post", "delete", "head", "options"]
    audit_entity = "stock_adjustment"
    filter_backends = [QueryParamFilterBackend]
    query_filter_fields = {
        "status": "status",
        "item_id": "item_id",
        "adjustment_type": "adjustment_type",
        "reason": "reason",
        "adjusted_by": "adjusted_by_id",
    }
    query_range_fields = {"quantity": "quantity"}
    query_search_fields = ["item__sku", "item__name", "notes"]
    query_ordering_fields = ["created_at", "quantity", "status"]

    def perform_create(self, serializer):
        if serializer.validated_data.get("auto_approve") and get_user_role(self.request.user) != User.Role.ADMIN:
            raise PermissionDenied("Only administrators can auto-approve adjustments.")
        super().perform_create(serializer)

    def delete_instance(self, instance):
        if instance.status != StockAdjustment.Status.PENDING:
            raise ValidationError("Only pending adjustments can be deleted.")
        instance.delete()

    @action(detail=True, methods=["post"], url_path="approve")
    def approve(self, request, pk=None):
        adjustment = self.get_object()
        before = self._snapshot(adjustment)
        adjustment = services.approve_adjustment(adjustment, request.user)
        return self._transition_response("approve", before, adjustment)

    @action(detail=True, methods=["post"], url_path="reject")
    def reject(self, request, pk=None):
        adjustment = self.get_object()
        serializer = AdjustmentRejectSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        before = self._snapshot(adjustment)
        adjustment = services.reject_adjustment(adjustment, request.user, serializer.validated_data["rejection_reason"])
        return self._transition_response("reject", before, adjustment)

    @action(detail=False, methods=["get"], url_path="stats")
    def stats(self, request):
        return Response(services.adjustment_stats(self.filter_queryset(self.get_queryset())))


class StockTransferViewSet(AuditedMutationMixin, viewsets.ModelViewSet):
    queryset = StockTransfer.objects.select_related("from_location", "to_location", "requested_by").prefetch_related("lines__item")
    serializer_class = StockTransferSerializer
    permission_classes = [IsAuthenticated, RoleCapabilityPermission]
    permission_action_map = _capabilities(
        "inventory.view",
        "stock.transfer.manage",
        {
            "submit": "stock.transfer.manage",
            "approve": "stock.transfer.approve",
            "ship": "stock.transfer.manage",
            "receive": "stock.transfer.manage",
            "cancel": "stock.transfer.manage",
            "stats": "inventory.view",
        },
    )
    audit_entity = "stock_transfer"
    filter_backends = [QueryParamFilterBackend]
    query_filter_fields = {
        "status": "status",
        "from_location": "from_location_id",
        "to_location": "to_location_id",
        "requested_by": "requested_by_id",
    }
    query_search_fields = ["transfer_number", "notes", "tracking_number"]
    query_ordering_fields = ["created_at", "transfer_number", "status", "shipped_at", "received_at"]

    def delete_instance(self, instance):
        services.delete_transfer(instance)

    @action(detail=True, methods=["post"], url_path="submit")
    def submit(self, request, pk=None):
        transfer = self.get_object()
        before = self._snapshot(transfer)
        return self._transition_response("submit", before, services.submit_transfer(transfer, request.user))

    @action(detail=True, methods=["post"], url_path="approve")
    def approve(self, request, pk=None):
        transfer = self.get_object()
        before = self._snapshot(transfer)
        return self._transition_response("approve", before, services.approve_transfer(transfer, request.user))

    @action(detail=True, methods=["post"], url_path="ship")
    def ship(self, request, pk=None):
        transfer = self.get_object()
        serializer = TransferShipSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        before = self._snapshot(transfer)
        transfer = services.ship_transfer(
            transfer,
            request.user,
            quantities={line["item"]: line["quantity_sent"] for line in data.get("lines", [])},
            shipping_method=data.get("shipping_method"),
            tracking_number=data.get("tracking_number"),
        )
        return self._transition_response("ship", before, transfer)

    @action(detail=True, methods=["post"], url_path="receive")
    def receive(self, request, pk=None):
        transfer = self.get_object()
        serializer = TransferReceiveSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        event_id = serializer.validated_data.get("event_id")
        before = self._snapshot(transfer)
        transfer, applied = services.receive_transfer(
            transfer,
            request.user,
            lines=serializer.validated_data.get("lines"),
            event_id=event_id,
        )
        if not applied:
            return Response(self._snapshot(transfer))
        return self._transition_response("receive", before, transfer, event_id=event_id)

    @action(detail=True, methods=["post"], url_path="cancel")
    def cancel(self, request, pk=None):
        transfer = self.get_object()
        serializer = CancelSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        before = self._snapshot(transfer)
        transfer = services.cancel_transfer(transfer, request.user, serializer.validated_data["reason"])
        return self._transition_response("cancel", before, transfer)

    @action(detail=False, methods=["get"], url_path="stats")
    def stats(self, request):
        return Response(services.transfer_stats(self.filter_queryset(self.get_queryset())))


class PurchaseOrderViewSet(AuditedMutationMixin, viewsets.ModelViewSet):
    queryset = PurchaseOrder.objects.select_related("supplier", "delivery_location", "created_by").prefetch_related("lines__item")
    serializer_class = PurchaseOrderSerializer
    permission_classes = [IsAuthenticated, RoleCapabilityPermission]
    permission_action_map = _capabilities(
        "inventory.view",
        "purchase.manage",
        {
            "submit": "purchase.manage",
            "approve": "purchase.approve",
            "mark_ordered": "purchase.manage",
            "receive": "purchase.receive",
            "cancel": "purchase.manage",
            "stats": "inventory.view",
        },
    )
    audit_entity = "purchase_order"
    filter_backends = [QueryParamFilterBackend]
    query_filter_fields = {
        "status": "status",
        "supplier": "supplier_id",
        "delivery_location": "delivery_location_id",
        "currency": "currency",
    }
    query_range_fields = {"total_amount": "total_amount"}
    query_search_fields = ["po_number", "notes", "supplier__name"]
    query_ordering_fields = ["created_at", "po_number", "status", "total_amount", "expected_delivery_date"]

    def delete_instance(self, instance):
        services.delete_purchase_order(instance)

    @action(detail=True, methods=["post"], url_path="submit")
    def submit(self, request, pk=None):
        order = self.get_object()
        before = self._snapshot(order)
        return self._transition_response("submit", before, services.submit_purchase_order(order, request.user))

    @action(detail=True, methods=["post"], url_path="approve")
    def approve(self, request, pk=None):
        order = self.get_object()
        before = self._snapshot(order)
        return self._transition_response("approve", before, services.approve_purchase_order(order, request.user))

    @action(detail=True, methods=["post"], url_path="mark-ordered")
    def mark_ordered(self, request, pk=None):
        order = self.get_object()
        before = self._snapshot(order)
        return self._transition_response("mark_ordered", before, services.mark_purchase_order_ordered(order, request.user))

    @action(detail=True, methods=["post"], url_path="receive")
    def receive(self, request, pk=None):
        order = self.get_object()
        serializer = PurchaseOrderReceiveSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        before = self._snapshot(order)
        order, applied = services.receive_purchase_order(
            order,
            request.user,
            lines=data["lines"],
            event_id=data.get("event_id"),
            delivery_date=data.get("actual_delivery_date"),
        )
        if not applied:
            return Response(self._snapshot(order))
        return self._transition_response("receive", before, order, event_id=data.get("event_id"))

    @action(detail=True, methods=["post"], url_path="cancel")
    def cancel(self, request, pk=None):
        order = self.get_object()
        serializer = CancelSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        before = self._snapshot(order)
        order = services.cancel_purchase_order(order, request.user, serializer.validated_data["reason"])
        return self._transition_response("cancel", before, order)

    @action(detail=False, methods=["get"], url_path="stats")
    def stats(self, request):
        return Response(services.purchase_order_stats(self.filter_queryset(self.get_queryset())))


class AssignmentViewSet(
    AuditedMutationMixin,
    mixins.CreateModelMixin,
    viewsets.ReadOnlyModelViewSet,
):
    queryset = Assignment.objects.select_related("item", "assigned_to", "assigned_by").prefetch_related("history")
    serializer_class = AssignmentSerializer
    permission_classes = [IsAuthenticated, RoleCapabilityPermission]
    permission_action_map = {
        "list": "inventory.view",
        "retrieve": "inventory.view",
        "create": "assignment.manage",
        "return_item": "assignment.manage",
    }
    audit_entity = "assignment"
    filter_backends = [QueryParamFilterBackend]
    query_filter_fields = {"status": "status", "item_id": "item_id", "assigned_to": "assigned_to_id"}
    query_search_fields = ["item__sku", "item__name", "notes"]
    query_ordering_fields = ["created_at", "assigned_date", "expected_return_date", "status"]

    def get_queryset(self):
        queryset = super().get_queryset()
        if not user_has_capability(self.request.user, "assignment.manage"):
            queryset = queryset.filter(assigned_to=self.request.user)
        return queryset

    @action(detail=True, methods=["post"], url_path="return")
    def return_item(self, request, pk=None):
        assignment = self.get_object()
        serializer = AssignmentReturnSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        before = self._snapshot(assignment)
        assignment = services.return_assignment(assignment, request.user, **serializer.validated_data)
        return self._transition_response("return", before, assignment)


class ProductAssignmentViewSet(AuditedMutationMixin, viewsets.ModelViewSet):
    queryset = ProductAssignment.objects.select_related("item", "employee", "issued_by").prefetch_related("history")
    serializer_class = ProductAssignmentSerializer
    permission_classes = [IsAuthenticated, RoleCapabilityPermission]
    permission_action_map = _capabilities(
        "inventory.view",
        "assignment.manage",
        {
            "acknowledge": "assignment.acknowledge",
            "return_item": "assignment.manage",
            "mark_outcome": "assignment.manage",
            "overdue": "inventory.view",
            "by_employee": "inventory.view",
            "stats": "assignment.manage",
        },
    )
    audit_entity = "product_assignment"
    filter_backends = [QueryParamFilterBackend]
    query_filter_fields = {
        "status": "status",
        "item_id": "item_id",
        "employee": "employee_id",
        "assigned_location": "assigned_location_id",
        "employee_acknowledged": "employee_acknowledged",
    }
    query_date_field = "assigned_date"
    query_search_fields = ["item__sku", "item__name", "purpose", "employee__username"]
    query_ordering_fields = ["created_at", "assigned_date", "expected_return_date", "status"]
    query_default_ordering = ["-assigned_date"]

    def get_queryset(self):
        queryset = super().get_queryset()
        if not user_has_capability(self.request.user, "assignment.manage"):
            queryset = queryset.filter(employee=self.request.user)
        return queryset

    def get_serializer_class(self):
        if self.action in ("update", "partial_update"):
            return ProductAssignmentUpdateSerializer
        return super().get_serializer_class()

    def _snapshot(self, instance):
        return ProductAssignmentSerializer(instance, context=self.get_serializer_context()).data

    def perform_update(self, serializer):
        PRODUCT_ASSIGNMENT_WORKFLOW.check_editable(serializer.instance, "update")
        super().perform_update(serializer)

    def delete_instance(self, instance):
        services.delete_product_assignment(instance, self.request.user)

    @action(detail=True, methods=["post"], url_path="acknowledge")
    def acknowledge(self, request, pk=None):
        assignment = self.get_object()
        before = self._snapshot(assignment)
        assignment = services.acknowledge_product_assignment(assignment, request.user)
        return self._transition_response("acknowledge", before, assignment)

    @action(detail=True, methods=["post"], url_path="return")
    def return_item(self, request, pk=None):
        assignment = self.get_object()
        serializer = ProductAssignmentReturnSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        before = self._snapshot(assignment)
        assignment = services.return_product_assignment(assignment, request.user, **serializer.validated_data)
        return self._transition_response("return", before, assignment)

    @action(detail=True, methods=["post"], url_path="mark-outcome")
    def mark_outcome(self, request, pk=None):
        assignment = self.get_object()
        serializer = ProductAssignmentOutcomeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        before = self._snapshot(assignment)
        assignment = services.mark_product_assignment_outcome(assignment, request.user, **serializer.validated_data)
        return self._transition_response("mark_outcome", before, assignment)

    @action(detail=False, methods=["get"], url_path="overdue")
    def overdue(self, request):
        queryset = services.overdue_product_assignments(self.filter_queryset(self.get_queryset()))
        page = self.paginate_queryset(queryset)
        if page is not None:
            return self.get_paginated_response(self.get_serializer(page, many=True).data)
        return Response(self.get_serializer(queryset, many=True).data)

    @action(detail=False, methods=["get"], url_path=r"employee/(?P<employee_id>[^/.]+)")
    def by_employee(self, request, employee_id=None):
        employee_id = _parse_uuid_param("employee_id", employee_id)
        if request.user.pk != employee_id and not user_has_capability(request.user, "assignment.manage"):
            raise PermissionDenied("You can only view your own assignments.")
        employee = get_object_or_404(User, pk=employee_id)
        queryset = self.filter_queryset(self.get_queryset()).filter(employee=employee)
        page = self.paginate_queryset(queryset)
        if page is not None:
            return self.get_paginated_response(self.get_serializer(page, many=True).data)
        return Response(self.get_serializer(queryset, many=True).data)

    @action(detail=False, methods=["get"], url_path="stats")
    def stats(self, request):
        return Response(services.product_assignment_stats(self.filter_queryset(self.get_queryset())))


class StockMovementViewSet(mixins.CreateModelMixin, viewsets.ReadOnlyModelViewSet):
    queryset = StockMovement.objects.select_related("item", "performed_by", "from_location", "to_location")
    serializer_class = StockMovementSerializer
    permission_classes = [IsAuthenticated, RoleCapabilityPermission]
    permission_action_map = {
        "list": "inventory.view",
        "retrieve": "inventory.view",
        "create": "stock.adjust",
        "summary": "inventory.view",
        "stats": "inventory.view",
    }
    filter_backends = [QueryParamFilterBackend]
    query_filter_fields = {
        "item_id": "item_id",
        "movement_type": "movement_type",
        "reference_type": "reference_type",
        "reference_id": "reference_id",
        "event_id": "event_id",
        "performed_by": "performed_by_id",
    }
    query_range_fields = {"quantity": "quantity"}
    query_search_fields = ["item__sku", "item__name", "reference_number", "notes"]
    query_ordering_fields = ["created_at", "quantity", "movement_type"]

    def get_queryset(self):
        queryset = super().get_queryset()
        location_id = self.request.query_params.get("location_id")
        if location_id:
            location_id = _parse_uuid_param("location_id", location_id)
            queryset = queryset.filter(Q(from_location_id=location_id) | Q(to_location_id=location_id))
        return queryset

    def create(self, request, *args, **kwargs):
        serializer = ManualMovementSerializer(data=request.data, context=self.get_serializer_context())
        serializer.is_valid(raise_exception=True)
        movement = serializer.save()
        data = StockMovementSerializer(movement).data
        create_audit_log_from_request(
            request,
            action="stock_movement.create",
            entity="stock_movement",
            entity_id=movement.id,
            after_snapshot=data,
        )
        return Response(data, status=status.HTTP_201_CREATED)

    @action(detail=False, methods=["get"], url_path="summary")
    def summary(self, request):
        return Response(ledger.summarize_movements(self.filter_queryset(self.get_queryset())))

    @action(detail=False, methods=["get"], url_path="stats")
    def stats(self, request):
        return Response(services.movement_stats(self.filter_queryset(self.get_queryset())))
