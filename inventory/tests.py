import uuid
from datetime import timedelta
from decimal import Decimal
from io import StringIO

from django.contrib.auth import get_user_model
from django.core.management import CommandError, call_command
from django.db.models import F
from django.test import TestCase, TransactionTestCase, override_settings
from django.utils import timezone
from rest_framework.exceptions import ValidationError
from rest_framework.test import APIClient

from core.models import AuditLog
from inventory import services
from inventory.exceptions import ImmutableMovement, InsufficientStock
from inventory.ledger import InventoryAccount, Reference, location_balance, reconcile_item
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
from inventory.workflows import PRODUCT_ASSIGNMENT_WORKFLOW, TRANSFER_WORKFLOW


class InventoryTestMixin:
    def setUp(self):
        self.client = APIClient()
        self.user_model = get_user_model()
        self.admin = self.user_model.objects.create_user(username="inv-admin", password="pass1234", role="admin")
        self.manager = self.user_model.objects.create_user(username="inv-manager", password="pass1234", role="manager")
        self.employee = self.user_model.objects.create_user(username="inv-employee", password="pass1234", role="employee")
        self.warehouse_x = Location.objects.create(name="Warehouse X", code="WH-X")
        self.warehouse_y = Location.objects.create(name="Warehouse Y", code="WH-Y")

    def make_item(self, sku="A-001", quantity=0, location=None, **fields):
        fields.setdefault("name", f"Item {sku}")
        return services.create_item(
            user=self.admin,
            sku=sku,
            opening_quantity=quantity,
            opening_location=location or self.warehouse_x,
            **fields,
        )

    def assertReconciled(self, item):
        item.refresh_from_db()
        report = reconcile_item(item)
        self.assertTrue(report["is_consistent"], report)
        return report


class QuantityStoreTests(InventoryTestMixin, TestCase):
    def test_opening_quantity_is_booked_as_a_movement(self):
        item = self.make_item(quantity=12)

        self.assertEqual(item.quantity, 12)
        self.assertEqual(item.available_quantity, 12)
        movement = item.movements.get()
        self.assertEqual(movement.movement_type, StockMovement.MovementType.ADJUSTMENT_INCREASE)
        self.assertEqual(movement.balance_after, 12)
        self.assertEqual(movement.to_location, self.warehouse_x)
        self.assertReconciled(item)

    def test_decrease_beyond_available_changes_nothing(self):
        item = self.make_item(quantity=5)
        account = InventoryAccount(item, performed_by=self.manager)

        with self.assertRaises(InsufficientStock) as ctx:
            account.decrease(6, movement_type=StockMovement.MovementType.SALE, reference=Reference.other())

        self.assertEqual(ctx.exception.shortages[0]["available"], 5)
        item.refresh_from_db()
        self.assertEqual(item.quantity, 5)
        self.assertEqual(item.movements.count(), 1)

    def test_reservation_moves_available_without_touching_quantity(self):
        item = self.make_item(quantity=10)
        account = InventoryAccount(item)

        account.try_reserve(4)
        item.refresh_from_db()
        self.assertEqual((item.quantity, item.reserved_quantity, item.available_quantity), (10, 4, 6))

        with self.assertRaises(InsufficientStock):
            account.try_reserve(7)

        account.release(4)
        item.refresh_from_db()
        self.assertEqual((item.quantity, item.reserved_quantity, item.available_quantity), (10, 0, 10))
        self.assertEqual(item.movements.count(), 1)
        self.assertReconciled(item)

    def test_release_more_than_reserved_is_rejected(self):
        item = self.make_item(quantity=3)
        InventoryAccount(item).try_reserve(1)

        with self.assertRaises(ValidationError):
            InventoryAccount(item).release(2)

    def test_non_positive_amounts_are_rejected(self):
        item = self.make_item(quantity=3)
        for amount in (0, -1, True):
            with self.assertRaises(ValidationError):
                InventoryAccount(item).increase(amount, movement_type="purchase", reference=Reference.other())

    def test_stale_item_save_does_not_overwrite_ledger_quantities(self):
        item = self.make_item(quantity=5)
        stale = Item.objects.get(pk=item.pk)
        InventoryAccount(item).increase(3, movement_type=StockMovement.MovementType.PURCHASE, reference=Reference.other())

        stale.name = "Renamed"
        stale.save()

        item.refresh_from_db()
        self.assertEqual(item.name, "Renamed")
        self.assertEqual(item.quantity, 8)
        self.assertReconciled(item)


class MovementLedgerTests(InventoryTestMixin, TestCase):
    def test_movements_are_append_only(self):
        item = self.make_item(quantity=2)
        movement = item.movements.get()

        movement.notes = "edited"
        with self.assertRaises(ImmutableMovement):
            movement.save()
        with self.assertRaises(ImmutableMovement):
            movement.delete()
        with self.assertRaises(ImmutableMovement):
            StockMovement.objects.filter(pk=movement.pk).update(notes="edited")
        with self.assertRaises(ImmutableMovement):
            StockMovement.objects.filter(pk=movement.pk).delete()

    def test_movement_endpoint_rejects_edits(self):
        item = self.make_item(quantity=2)
        movement = item.movements.get()
        self.client.force_authenticate(user=self.admin)

        patch_res = self.client.patch(f"/api/v1/stock-movements/{movement.id}/", {"notes": "x"}, format="json")
        delete_res = self.client.delete(f"/api/v1/stock-movements/{movement.id}/")

        self.assertEqual(patch_res.status_code, 405)
        self.assertEqual(delete_res.status_code, 405)

    def test_manual_sale_movement_reduces_stock(self):
        item = self.make_item(quantity=10)
        self.client.force_authenticate(user=self.manager)

        response = self.client.post(
            "/api/v1/stock-movements/",
            {"item": str(item.id), "movement_type": "sale", "quantity": -3, "location": str(self.warehouse_x.id)},
            format="json",
        )

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["balance_after"], 7)
        self.assertEqual(response.json()["from_location"], str(self.warehouse_x.id))
        self.assertReconciled(item)

    def test_manual_movement_sign_must_match_type(self):
        item = self.make_item(quantity=10)
        self.client.force_authenticate(user=self.manager)

        response = self.client.post(
            "/api/v1/stock-movements/",
            {"item": str(item.id), "movement_type": "sale", "quantity": 3},
            format="json",
        )

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["code"], "validation_error")

    def test_manual_movement_shortage_reports_native_types(self):
        item = self.make_item(sku="DMG-1", quantity=2)
        self.client.force_authenticate(user=self.manager)

        response = self.client.post(
            "/api/v1/stock-movements/",
            {"item": str(item.id), "movement_type": "damage", "quantity": -5},
            format="json",
        )

        self.assertEqual(response.status_code, 400)
        payload = response.json()
        self.assertEqual(payload["code"], "insufficient_stock")
        self.assertFalse(payload["success"])
        self.assertEqual(
            payload["errors"]["shortages"],
            [{"item_id": str(item.id), "sku": "DMG-1", "requested": 5, "available": 2}],
        )

    def test_employee_cannot_record_manual_movements(self):
        item = self.make_item(quantity=10)
        self.client.force_authenticate(user=self.employee)

        response = self.client.post(
            "/api/v1/stock-movements/",
            {"item": str(item.id), "movement_type": "sale", "quantity": -1},
            format="json",
        )

        self.assertEqual(response.status_code, 403)

    def test_location_filter_matches_either_side(self):
        self.make_item(sku="LOC-1", quantity=4)
        self.client.force_authenticate(user=self.employee)

        at_x = self.client.get("/api/v1/stock-movements/", {"location_id": str(self.warehouse_x.id)})
        at_y = self.client.get("/api/v1/stock-movements/", {"location_id": str(self.warehouse_y.id)})
        invalid = self.client.get("/api/v1/stock-movements/", {"location_id": "not-a-uuid"})

        self.assertEqual(at_x.json()["count"], 1)
        self.assertEqual(at_y.json()["count"], 0)
        self.assertEqual(invalid.status_code, 400)

    def test_summary_totals_inbound_and_outbound(self):
        item = self.make_item(quantity=10)
        InventoryAccount(item).decrease(4, movement_type=StockMovement.MovementType.SALE, reference=Reference.other())
        self.client.force_authenticate(user=self.employee)

        response = self.client.get("/api/v1/stock-movements/summary/", {"item_id": str(item.id)})

        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload["total_in"], 10)
        self.assertEqual(payload["total_out"], 4)
        self.assertEqual(payload["total_movements"], 2)


class AdjustmentWorkflowTests(InventoryTestMixin, TestCase):
    def test_decrease_below_zero_fails_and_approved_decrease_is_booked(self):
        item = self.make_item(quantity=10)
        self.client.force_authenticate(user=self.manager)

        too_much = self.client.post(
            "/api/v1/stock-adjustments/",
            {"item": str(item.id), "adjustment_type": "decrease", "quantity": 15, "reason": "damage"},
            format="json",
        )
        self.assertEqual(too_much.status_code, 400)
        self.assertEqual(too_much.json()["code"], "negative_inventory")
        self.assertFalse(StockAdjustment.objects.exists())

        created = self.client.post(
            "/api/v1/stock-adjustments/",
            {"item": str(item.id), "adjustment_type": "decrease", "quantity": 4, "reason": "damage"},
            format="json",
        )
        self.assertEqual(created.status_code, 201)
        self.assertEqual(created.json()["status"], "pending")
        item.refresh_from_db()
        self.assertEqual(item.quantity, 10)

        approved = self.client.post(f"/api/v1/stock-adjustments/{created.json()['id']}/approve/")

        self.assertEqual(approved.status_code, 200)
        self.assertEqual(approved.json()["status"], "approved")
        self.assertEqual(approved.json()["after_quantity"], 6)
        item.refresh_from_db()
        self.assertEqual(item.quantity, 6)
        movement = item.movements.get(movement_type=StockMovement.MovementType.ADJUSTMENT_DECREASE)
        self.assertEqual(movement.quantity, -4)
        self.assertEqual(movement.balance_after, 6)
        self.assertEqual(str(movement.reference_id), created.json()["id"])
        self.assertReconciled(item)

    def test_second_approval_is_an_invalid_transition(self):
        item = self.make_item(quantity=10)
        adjustment = services.create_adjustment(
            item=item, adjustment_type="increase", quantity=2, reason="found", user=self.manager
        )
        services.approve_adjustment(adjustment, self.manager)
        self.client.force_authenticate(user=self.manager)

        response = self.client.post(f"/api/v1/stock-adjustments/{adjustment.id}/approve/")

        self.assertEqual(response.status_code, 400)
        payload = response.json()
        self.assertEqual(payload["code"], "invalid_state_transition")
        self.assertEqual(payload["errors"]["status"], "approved")
        self.assertEqual(payload["errors"]["allowed_from"], ["pending"])
        item.refresh_from_db()
        self.assertEqual(item.quantity, 12)

    def test_rejection_leaves_stock_unchanged(self):
        item = self.make_item(quantity=10)
        adjustment = services.create_adjustment(
            item=item, adjustment_type="decrease", quantity=3, reason="theft", user=self.manager
        )
        self.client.force_authenticate(user=self.manager)

        missing_reason = self.client.post(f"/api/v1/stock-adjustments/{adjustment.id}/reject/", {}, format="json")
        response = self.client.post(
            f"/api/v1/stock-adjustments/{adjustment.id}/reject/",
            {"rejection_reason": "Count was wrong"},
            format="json",
        )

        self.assertEqual(missing_reason.status_code, 400)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "rejected")
        item.refresh_from_db()
        self.assertEqual(item.quantity, 10)

    def test_approval_fails_when_stock_dropped_after_request(self):
        item = self.make_item(quantity=5)
        adjustment = services.create_adjustment(
            item=item, adjustment_type="decrease", quantity=4, reason="damage", user=self.manager
        )
        InventoryAccount(item).decrease(3, movement_type=StockMovement.MovementType.SALE, reference=Reference.other())

        with self.assertRaises(InsufficientStock):
            services.approve_adjustment(adjustment, self.manager)

        adjustment.refresh_from_db()
        self.assertEqual(adjustment.status, StockAdjustment.Status.PENDING)

    def test_only_admin_can_auto_approve(self):
        item = self.make_item(quantity=10)
        payload = {
            "item": str(item.id),
            "adjustment_type": "increase",
            "quantity": 5,
            "reason": "found",
            "auto_approve": True,
        }

        self.client.force_authenticate(user=self.manager)
        denied = self.client.post("/api/v1/stock-adjustments/", payload, format="json")
        self.client.force_authenticate(user=self.admin)
        allowed = self.client.post("/api/v1/stock-adjustments/", payload, format="json")

        self.assertEqual(denied.status_code, 403)
        self.assertEqual(allowed.status_code, 201)
        self.assertEqual(allowed.json()["status"], "approved")
        item.refresh_from_db()
        self.assertEqual(item.quantity, 15)

    def test_employee_cannot_request_adjustments(self):
        item = self.make_item(quantity=10)
        self.client.force_authenticate(user=self.employee)

        response = self.client.post(
            "/api/v1/stock-adjustments/",
            {"item": str(item.id), "adjustment_type": "increase", "quantity": 1, "reason": "found"},
            format="json",
        )

        self.assertEqual(response.status_code, 403)

    def test_stats_group_by_status(self):
        item = self.make_item(quantity=10)
        first = services.create_adjustment(item=item, adjustment_type="increase", quantity=1, reason="found", user=self.manager)
        services.create_adjustment(item=item, adjustment_type="increase", quantity=1, reason="found", user=self.manager)
        services.approve_adjustment(first, self.manager)
        self.client.force_authenticate(user=self.manager)

        response = self.client.get("/api/v1/stock-adjustments/stats/")

        self.assertEqual(response.json()["total"], 2)
        self.assertEqual(response.json()["by_status"], {"approved": 1, "pending": 1})


class TransferWorkflowTests(InventoryTestMixin, TestCase):
    def setUp(self):
        super().setUp()
        self.item = self.make_item(sku="A", quantity=20)
        self.client.force_authenticate(user=self.manager)

    def _create_transfer(self, quantity=5, item=None):
        response = self.client.post(
            "/api/v1/stock-transfers/",
            {
                "from_location": str(self.warehouse_x.id),
                "to_location": str(self.warehouse_y.id),
                "lines": [{"item": str((item or self.item).id), "quantity_requested": quantity}],
            },
            format="json",
        )
        self.assertEqual(response.status_code, 201, response.json())
        return response.json()

    def _advance(self, transfer_id, *steps):
        for step in steps:
            response = self.client.post(f"/api/v1/stock-transfers/{transfer_id}/{step}/", {}, format="json")
            self.assertEqual(response.status_code, 200, response.json())
        return response.json()

    def test_full_transfer_moves_stock_between_locations(self):
        transfer = self._create_transfer()
        self.assertTrue(transfer["transfer_number"].startswith("TR-"))
        self.assertEqual(transfer["status"], "draft")

        shipped = self._advance(transfer["id"], "submit", "approve", "ship")
        self.assertEqual(shipped["status"], "in_transit")
        self.item.refresh_from_db()
        self.assertEqual(self.item.quantity, 15)
        out = self.item.movements.get(movement_type=StockMovement.MovementType.TRANSFER_OUT)
        self.assertEqual((out.quantity, out.balance_after), (-5, 15))

        received = self._advance(transfer["id"], "receive")
        self.assertEqual(received["status"], "received")
        self.assertEqual(received["lines"][0]["quantity_received"], 5)
        self.item.refresh_from_db()
        self.assertEqual(self.item.quantity, 20)
        incoming = self.item.movements.get(movement_type=StockMovement.MovementType.TRANSFER_IN)
        self.assertEqual(incoming.to_location, self.warehouse_y)
        self.assertEqual(location_balance(self.item, self.warehouse_x.id), 15)
        self.assertEqual(location_balance(self.item, self.warehouse_y.id), 5)
        self.assertReconciled(self.item)

    def test_location_balances_endpoint(self):
        transfer = self._create_transfer()
        self._advance(transfer["id"], "submit", "approve", "ship", "receive")

        response = self.client.get(f"/api/v1/items/{self.item.id}/location-balances/")

        self.assertEqual(response.status_code, 200)
        balances = {row["code"]: row["balance"] for row in response.json()["locations"]}
        self.assertEqual(balances, {"WH-X": 15, "WH-Y": 5})

    def test_ship_requires_approval(self):
        transfer = self._create_transfer()

        response = self.client.post(f"/api/v1/stock-transfers/{transfer['id']}/ship/", {}, format="json")

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["code"], "invalid_state_transition")
        self.item.refresh_from_db()
        self.assertEqual(self.item.quantity, 20)

    def test_ship_shortage_aborts_every_line(self):
        scarce = self.make_item(sku="B", quantity=3)
        response = self.client.post(
            "/api/v1/stock-transfers/",
            {
                "from_location": str(self.warehouse_x.id),
                "to_location": str(self.warehouse_y.id),
                "lines": [
                    {"item": str(self.item.id), "quantity_requested": 5},
                    {"item": str(scarce.id), "quantity_requested": 5},
                ],
            },
            format="json",
        )
        transfer_id = response.json()["id"]
        self._advance(transfer_id, "submit", "approve")

        shipped = self.client.post(f"/api/v1/stock-transfers/{transfer_id}/ship/", {}, format="json")

        self.assertEqual(shipped.status_code, 400)
        self.assertEqual(shipped.json()["code"], "insufficient_stock")
        self.assertEqual(
            shipped.json()["errors"]["shortages"],
            [{"item_id": str(scarce.id), "sku": "B", "requested": 5, "available": 3}],
        )
        self.item.refresh_from_db()
        self.assertEqual(self.item.quantity, 20)
        self.assertEqual(StockTransfer.objects.get(pk=transfer_id).status, StockTransfer.Status.APPROVED)

    def test_partial_receipt_and_replayed_event(self):
        transfer = self._create_transfer()
        self._advance(transfer["id"], "submit", "approve", "ship")
        event_id = str(uuid.uuid4())
        payload = {"lines": [{"item": str(self.item.id), "quantity_received": 2}], "event_id": event_id}

        first = self.client.post(f"/api/v1/stock-transfers/{transfer['id']}/receive/", payload, format="json")
        replay = self.client.post(f"/api/v1/stock-transfers/{transfer['id']}/receive/", payload, format="json")

        self.assertEqual(first.status_code, 200)
        self.assertEqual(first.json()["status"], "partially_received")
        self.assertEqual(replay.status_code, 200)
        self.item.refresh_from_db()
        self.assertEqual(self.item.quantity, 17)
        self.assertEqual(self.item.movements.filter(movement_type=StockMovement.MovementType.TRANSFER_IN).count(), 1)

        over = self.client.post(
            f"/api/v1/stock-transfers/{transfer['id']}/receive/",
            {"lines": [{"item": str(self.item.id), "quantity_received": 4}]},
            format="json",
        )
        self.assertEqual(over.status_code, 400)

        rest = self._advance(transfer["id"], "receive")
        self.assertEqual(rest["status"], "received")
        self.assertReconciled(self.item)

    def test_duplicate_items_in_receipt_are_rejected(self):
        transfer = self._create_transfer()
        self._advance(transfer["id"], "submit", "approve", "ship")

        response = self.client.post(
            f"/api/v1/stock-transfers/{transfer['id']}/receive/",
            {
                "lines": [
                    {"item": str(self.item.id), "quantity_received": 1},
                    {"item": str(self.item.id), "quantity_received": 1},
                ]
            },
            format="json",
        )

        self.assertEqual(response.status_code, 400)

    def test_cancel_in_transit_returns_goods_to_source(self):
        transfer = self._create_transfer()
        self._advance(transfer["id"], "submit", "approve", "ship")

        response = self.client.post(
            f"/api/v1/stock-transfers/{transfer['id']}/cancel/",
            {"reason": "Truck broke down"},
            format="json",
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "cancelled")
        self.item.refresh_from_db()
        self.assertEqual(self.item.quantity, 20)
        reversal = self.item.movements.get(movement_type=StockMovement.MovementType.TRANSFER_REVERSAL)
        self.assertEqual(reversal.to_location, self.warehouse_x)
        self.assertEqual(location_balance(self.item, self.warehouse_x.id), 20)
        self.assertReconciled(self.item)

        again = self.client.post(f"/api/v1/stock-transfers/{transfer['id']}/receive/", {}, format="json")
        self.assertEqual(again.status_code, 400)

    def test_received_transfer_cannot_be_edited_or_deleted(self):
        transfer = self._create_transfer()
        self._advance(transfer["id"], "submit", "approve", "ship", "receive")

        patched = self.client.patch(f"/api/v1/stock-transfers/{transfer['id']}/", {"notes": "late"}, format="json")
        deleted = self.client.delete(f"/api/v1/stock-transfers/{transfer['id']}/")

        self.assertEqual(patched.status_code, 400)
        self.assertEqual(deleted.status_code, 400)
        self.assertTrue(StockTransfer.objects.filter(pk=transfer["id"]).exists())

    def test_received_transfer_cannot_be_cancelled(self):
        transfer = self._create_transfer()
        self._advance(transfer["id"], "submit", "approve", "ship", "receive")

        response = self.client.post(
            f"/api/v1/stock-transfers/{transfer['id']}/cancel/",
            {"reason": "Too late"},
            format="json",
        )

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["code"], "invalid_state_transition")
        self.assertEqual(StockTransfer.objects.get(pk=transfer["id"]).status, StockTransfer.Status.RECEIVED)
        self.assertFalse(self.item.movements.filter(movement_type=StockMovement.MovementType.TRANSFER_REVERSAL).exists())
        self.assertReconciled(self.item)

    def test_cancel_partially_received_reverses_only_outstanding(self):
        transfer = self._create_transfer()
        self._advance(transfer["id"], "submit", "approve", "ship")
        received = self.client.post(
            f"/api/v1/stock-transfers/{transfer['id']}/receive/",
            {"lines": [{"item": str(self.item.id), "quantity_received": 2}]},
            format="json",
        )
        self.assertEqual(received.json()["status"], "partially_received")

        response = self.client.post(
            f"/api/v1/stock-transfers/{transfer['id']}/cancel/",
            {"reason": "Rest lost in transit"},
            format="json",
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "cancelled")
        reversal = self.item.movements.get(movement_type=StockMovement.MovementType.TRANSFER_REVERSAL)
        self.assertEqual(reversal.quantity, 3)
        self.assertEqual(reversal.to_location, self.warehouse_x)
        self.item.refresh_from_db()
        self.assertEqual(self.item.quantity, 20)
        self.assertEqual(location_balance(self.item, self.warehouse_x.id), 18)
        self.assertEqual(location_balance(self.item, self.warehouse_y.id), 2)
        self.assertReconciled(self.item)

    def test_same_source_and_destination_is_rejected(self):
        response = self.client.post(
            "/api/v1/stock-transfers/",
            {
                "from_location": str(self.warehouse_x.id),
                "to_location": str(self.warehouse_x.id),
                "lines": [{"item": str(self.item.id), "quantity_requested": 1}],
            },
            format="json",
        )

        self.assertEqual(response.status_code, 400)
        self.assertIn("to_location", response.json()["errors"])

    def test_approval_requires_capability(self):
        transfer = self._create_transfer()
        self._advance(transfer["id"], "submit")
        self.client.force_authenticate(user=self.employee)

        response = self.client.post(f"/api/v1/stock-transfers/{transfer['id']}/approve/", {}, format="json")

        self.assertEqual(response.status_code, 403)

    def test_transfer_actions_are_audited(self):
        transfer = self._create_transfer()
        self._advance(transfer["id"], "submit", "approve")

        actions = set(AuditLog.objects.filter(entity="stock_transfer").values_list("action", flat=True))
        self.assertEqual(actions, {"stock_transfer.create", "stock_transfer.submit", "stock_transfer.approve"})


class PurchaseOrderReceiptTests(InventoryTestMixin, TestCase):
    def setUp(self):
        super().setUp()
        self.supplier = Supplier.objects.create(name="Acme Supply", code="ACME")
        self.item = self.make_item(sku="PO-ITEM", quantity=0, unit_cost=Decimal("2.00"))
        self.client.force_authenticate(user=self.manager)

    def _create_order(self, quantity=10):
        response = self.client.post(
            "/api/v1/purchase-orders/",
            {
                "supplier": str(self.supplier.id),
                "delivery_location": str(self.warehouse_x.id),
                "shipping_cost": "3.00",
                "discount_amount": "1.00",
                "lines": [
                    {
                        "item": str(self.item.id),
                        "quantity_ordered": quantity,
                        "unit_price": "2.50",
                        "tax_rate": "10.00",
                        "discount": "5.00",
                    }
                ],
            },
            format="json",
        )
        self.assertEqual(response.status_code, 201, response.json())
        return response.json()

    def test_order_totals_are_computed_from_lines(self):
        order = self._create_order()

        self.assertTrue(order["po_number"].startswith("PO-"))
        self.assertEqual(order["subtotal"], "20.00")
        self.assertEqual(order["tax_amount"], "2.00")
        self.assertEqual(order["total_amount"], "24.00")
        self.assertEqual(order["lines"][0]["total"], "22.00")

    def test_receipt_requires_approval(self):
        order = self._create_order()

        response = self.client.post(
            f"/api/v1/purchase-orders/{order['id']}/receive/",
            {"lines": [{"item": str(self.item.id), "quantity_received": 1}]},
            format="json",
        )

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["code"], "invalid_state_transition")

    @override_settings(INVENTORY_WEIGHTED_AVERAGE_COST=False)
    def test_partial_then_full_receipt(self):
        order = self._create_order()
        for step in ("submit", "approve", "mark-ordered"):
            self.assertEqual(self.client.post(f"/api/v1/purchase-orders/{order['id']}/{step}/").status_code, 200)

        partial = self.client.post(
            f"/api/v1/purchase-orders/{order['id']}/receive/",
            {"lines": [{"item": str(self.item.id), "quantity_received": 4, "unit_cost": "2.75"}]},
            format="json",
        )
        self.assertEqual(partial.status_code, 200)
        self.assertEqual(partial.json()["status"], "partially_received")

        full = self.client.post(
            f"/api/v1/purchase-orders/{order['id']}/receive/",
            {"lines": [{"item": str(self.item.id), "quantity_received": 6}], "actual_delivery_date": "2026-01-15"},
            format="json",
        )
        self.assertEqual(full.status_code, 200)
        self.assertEqual(full.json()["status"], "received")
        self.assertEqual(full.json()["actual_delivery_date"], "2026-01-15")

        self.item.refresh_from_db()
        self.assertEqual(self.item.quantity, 10)
        self.assertEqual(self.item.unit_cost, Decimal("2.50"))
        purchases = self.item.movements.filter(movement_type=StockMovement.MovementType.PURCHASE)
        self.assertEqual(sorted(purchases.values_list("quantity", flat=True)), [4, 6])
        self.assertTrue(all(m.reference_number == order["po_number"] for m in purchases))
        self.assertReconciled(self.item)

    @override_settings(INVENTORY_WEIGHTED_AVERAGE_COST=True)
    def test_weighted_average_cost_on_receipt(self):
        self.item = self.make_item(sku="AVG", quantity=10, unit_cost=Decimal("1.00"))
        order = services.create_purchase_order(
            user=self.manager,
            supplier=self.supplier,
            lines=[{"item": self.item, "quantity_ordered": 10, "unit_price": Decimal("3.00")}],
        )
        services.submit_purchase_order(order, self.manager)
        services.approve_purchase_order(order, self.manager)

        services.receive_purchase_order(order, self.manager, lines=[{"item": self.item.id, "quantity_received": 10}])

        self.item.refresh_from_db()
        self.assertEqual(self.item.unit_cost, Decimal("2.00"))

    def test_over_receipt_is_rejected(self):
        order = self._create_order(quantity=3)
        self.client.post(f"/api/v1/purchase-orders/{order['id']}/submit/")
        self.client.post(f"/api/v1/purchase-orders/{order['id']}/approve/")

        response = self.client.post(
            f"/api/v1/purchase-orders/{order['id']}/receive/",
            {"lines": [{"item": str(self.item.id), "quantity_received": 4}]},
            format="json",
        )

        self.assertEqual(response.status_code, 400)
        self.item.refresh_from_db()
        self.assertEqual(self.item.quantity, 0)

    def test_double_receive_with_same_event_is_counted_once(self):
        order = self._create_order()
        self.client.post(f"/api/v1/purchase-orders/{order['id']}/submit/")
        self.client.post(f"/api/v1/purchase-orders/{order['id']}/approve/")
        payload = {"lines": [{"item": str(self.item.id), "quantity_received": 10}], "event_id": str(uuid.uuid4())}

        first = self.client.post(f"/api/v1/purchase-orders/{order['id']}/receive/", payload, format="json")
        second = self.client.post(f"/api/v1/purchase-orders/{order['id']}/receive/", payload, format="json")

        self.assertEqual(first.status_code, 200)
        self.assertEqual(second.status_code, 200)
        self.assertEqual(second.json()["status"], "received")
        self.item.refresh_from_db()
        self.assertEqual(self.item.quantity, 10)

    def test_receiving_more_after_full_receipt_fails(self):
        order = self._create_order(quantity=2)
        self.client.post(f"/api/v1/purchase-orders/{order['id']}/submit/")
        self.client.post(f"/api/v1/purchase-orders/{order['id']}/approve/")
        payload = {"lines": [{"item": str(self.item.id), "quantity_received": 2}]}

        self.client.post(f"/api/v1/purchase-orders/{order['id']}/receive/", payload, format="json")
        again = self.client.post(f"/api/v1/purchase-orders/{order['id']}/receive/", payload, format="json")

        self.assertEqual(again.status_code, 400)
        self.assertEqual(again.json()["code"], "invalid_state_transition")
        self.item.refresh_from_db()
        self.assertEqual(self.item.quantity, 2)

    def test_received_order_cannot_be_cancelled(self):
        order = self._create_order(quantity=2)
        self.client.post(f"/api/v1/purchase-orders/{order['id']}/submit/")
        self.client.post(f"/api/v1/purchase-orders/{order['id']}/approve/")
        self.client.post(
            f"/api/v1/purchase-orders/{order['id']}/receive/",
            {"lines": [{"item": str(self.item.id), "quantity_received": 2}]},
            format="json",
        )

        response = self.client.post(f"/api/v1/purchase-orders/{order['id']}/cancel/", {"reason": "Oops"}, format="json")

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["code"], "invalid_state_transition")
        self.assertEqual(PurchaseOrder.objects.get(pk=order["id"]).status, PurchaseOrder.Status.RECEIVED)
        self.item.refresh_from_db()
        self.assertEqual(self.item.quantity, 2)

    @override_settings(INVENTORY_WEIGHTED_AVERAGE_COST=False)
    def test_zero_unit_cost_is_kept_for_free_goods(self):
        order = self._create_order(quantity=2)
        self.client.post(f"/api/v1/purchase-orders/{order['id']}/submit/")
        self.client.post(f"/api/v1/purchase-orders/{order['id']}/approve/")

        response = self.client.post(
            f"/api/v1/purchase-orders/{order['id']}/receive/",
            {"lines": [{"item": str(self.item.id), "quantity_received": 2, "unit_cost": "0.00"}]},
            format="json",
        )

        self.assertEqual(response.status_code, 200)
        movement = self.item.movements.get(movement_type=StockMovement.MovementType.PURCHASE)
        self.assertEqual(movement.unit_cost, Decimal("0.00"))
        self.assertEqual(movement.total_cost, Decimal("0.00"))
        self.item.refresh_from_db()
        self.assertEqual(self.item.unit_cost, Decimal("0.00"))

    def test_cancel_and_stats(self):
        order = self._create_order()
        self._create_order()

        cancelled = self.client.post(f"/api/v1/purchase-orders/{order['id']}/cancel/", {"reason": "Duplicate"}, format="json")
        stats = self.client.get("/api/v1/purchase-orders/stats/")

        self.assertEqual(cancelled.status_code, 200)
        self.assertEqual(cancelled.json()["cancellation_reason"], "Duplicate")
        self.assertEqual(stats.json()["by_status"], {"cancelled": 1, "draft": 1})
        self.assertEqual(Decimal(str(stats.json()["total_value"])), Decimal("24.00"))

    def test_draft_order_can_be_edited(self):
        order = self._create_order()

        response = self.client.patch(
            f"/api/v1/purchase-orders/{order['id']}/",
            {"shipping_cost": "0.00", "discount_amount": "0.00"},
            format="json",
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["total_amount"], "22.00")
        self.assertEqual(PurchaseOrder.objects.get(pk=order["id"]).lines.count(), 1)


class AssignmentTests(InventoryTestMixin, TestCase):
    def test_assignment_reserves_and_return_releases(self):
        item = self.make_item(quantity=10)
        self.client.force_authenticate(user=self.manager)

        created = self.client.post(
            "/api/v1/assignments/",
            {"item": str(item.id), "assigned_to": str(self.employee.id), "quantity": 3},
            format="json",
        )
        self.assertEqual(created.status_code, 201)
        item.refresh_from_db()
        self.assertEqual((item.quantity, item.reserved_quantity, item.available_quantity), (10, 3, 7))
        self.assertReconciled(item)

        returned = self.client.post(
            f"/api/v1/assignments/{created.json()['id']}/return/",
            {"condition_on_return": "good"},
            format="json",
        )
        self.assertEqual(returned.status_code, 200)
        self.assertEqual(returned.json()["status"], "returned")
        self.assertEqual([row["action"] for row in returned.json()["history"]], ["assigned", "returned"])
        item.refresh_from_db()
        self.assertEqual((item.quantity, item.reserved_quantity, item.available_quantity), (10, 0, 10))

        twice = self.client.post(f"/api/v1/assignments/{created.json()['id']}/return/", {}, format="json")
        self.assertEqual(twice.status_code, 400)

    def test_assignment_beyond_available_fails(self):
        item = self.make_item(quantity=2)
        self.client.force_authenticate(user=self.manager)

        response = self.client.post(
            "/api/v1/assignments/",
            {"item": str(item.id), "assigned_to": str(self.employee.id), "quantity": 3},
            format="json",
        )

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["code"], "insufficient_stock")

    def test_employee_sees_only_own_assignments(self):
        item = self.make_item(quantity=5)
        other = self.user_model.objects.create_user(username="other-employee", password="pass1234")
        services.create_assignment(item=item, assigned_to=self.employee, quantity=1, user=self.manager)
        services.create_assignment(item=item, assigned_to=other, quantity=1, user=self.manager)
        self.client.force_authenticate(user=self.employee)

        response = self.client.get("/api/v1/assignments/")

        self.assertEqual(response.json()["count"], 1)
        self.assertEqual(response.json()["results"][0]["assigned_to"], str(self.employee.id))


class ProductAssignmentTests(InventoryTestMixin, TestCase):
    def setUp(self):
        super().setUp()
        self.item = self.make_item(sku="LAPTOP", quantity=5)

    def _issue(self, quantity=2, **extra):
        self.client.force_authenticate(user=self.manager)
        response = self.client.post(
            "/api/v1/product-assignments/",
            {
                "item": str(self.item.id),
                "employee": str(self.employee.id),
                "quantity": quantity,
                "purpose": "Field work",
                "assigned_location": str(self.warehouse_x.id),
                **extra,
            },
            format="json",
        )
        self.assertEqual(response.status_code, 201, response.json())
        return response.json()

    def test_issue_acknowledge_return_round_trip(self):
        issued = self._issue()
        self.item.refresh_from_db()
        self.assertEqual(self.item.quantity, 3)
        movement = self.item.movements.get(movement_type=StockMovement.MovementType.ASSIGNMENT)
        self.assertEqual(movement.quantity, -2)

        self.client.force_authenticate(user=self.manager)
        not_theirs = self.client.post(f"/api/v1/product-assignments/{issued['id']}/acknowledge/")
        self.assertEqual(not_theirs.status_code, 403)

        self.client.force_authenticate(user=self.employee)
        acknowledged = self.client.post(f"/api/v1/product-assignments/{issued['id']}/acknowledge/")
        self.assertEqual(acknowledged.status_code, 200)
        self.assertEqual(acknowledged.json()["status"], "in_use")
        self.assertTrue(acknowledged.json()["employee_acknowledged"])

        self.client.force_authenticate(user=self.manager)
        returned = self.client.post(
            f"/api/v1/product-assignments/{issued['id']}/return/",
            {"condition_on_return": "fair", "return_remarks": "Scratched lid"},
            format="json",
        )
        self.assertEqual(returned.status_code, 200)
        self.assertEqual(returned.json()["status"], "returned")
        self.assertEqual(returned.json()["return_acknowledged_by"], str(self.manager.id))
        self.assertEqual(
            [row["action"] for row in returned.json()["history"]],
            ["issued", "acknowledged", "returned"],
        )
        self.item.refresh_from_db()
        self.assertEqual(self.item.quantity, 5)
        self.assertReconciled(self.item)

    def test_issue_beyond_available_fails(self):
        self.client.force_authenticate(user=self.manager)

        response = self.client.post(
            "/api/v1/product-assignments/",
            {"item": str(self.item.id), "employee": str(self.employee.id), "quantity": 6, "purpose": "Too many"},
            format="json",
        )

        self.assertEqual(response.status_code, 400)
        self.assertFalse(ProductAssignment.objects.exists())

    def test_lost_outcome_keeps_stock_out(self):
        issued = self._issue()

        lost = self.client.post(
            f"/api/v1/product-assignments/{issued['id']}/mark-outcome/",
            {"outcome": "lost", "remarks": "Left on train"},
            format="json",
        )
        returned = self.client.post(f"/api/v1/product-assignments/{issued['id']}/return/", {}, format="json")

        self.assertEqual(lost.status_code, 200)
        self.assertEqual(lost.json()["status"], "lost")
        self.assertEqual(returned.status_code, 400)
        self.item.refresh_from_db()
        self.assertEqual(self.item.quantity, 3)
        self.assertReconciled(self.item)

    def test_deleting_active_assignment_returns_stock(self):
        issued = self._issue()

        response = self.client.delete(f"/api/v1/product-assignments/{issued['id']}/")

        self.assertEqual(response.status_code, 204)
        self.item.refresh_from_db()
        self.assertEqual(self.item.quantity, 5)
        self.assertReconciled(self.item)

    def test_overdue_and_employee_views(self):
        yesterday = (timezone.localdate() - timedelta(days=1)).isoformat()
        overdue = self._issue(quantity=1, expected_return_date=yesterday)
        self._issue(quantity=1)

        overdue_res = self.client.get("/api/v1/product-assignments/overdue/")
        self.assertEqual([row["id"] for row in overdue_res.json()["results"]], [overdue["id"]])

        self.client.force_authenticate(user=self.employee)
        own = self.client.get(f"/api/v1/product-assignments/employee/{self.employee.id}/")
        other = self.client.get(f"/api/v1/product-assignments/employee/{self.manager.id}/")
        self.assertEqual(own.json()["count"], 2)
        self.assertEqual(other.status_code, 403)

    def test_stats_for_managers(self):
        self._issue(quantity=2)

        response = self.client.get("/api/v1/product-assignments/stats/")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["active_quantity"], 2)
        self.assertEqual(response.json()["employees_with_items"], 1)


class ItemAPITests(InventoryTestMixin, TestCase):
    def test_create_item_with_opening_balance(self):
        self.client.force_authenticate(user=self.manager)

        response = self.client.post(
            "/api/v1/items/",
            {
                "sku": "NEW-1",
                "name": "New item",
                "unit_cost": "4.00",
                "opening_quantity": 12,
                "opening_location": str(self.warehouse_x.id),
            },
            format="json",
        )

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()["quantity"], 12)
        self.assertNotIn("opening_quantity", response.json())
        reconcile = self.client.get(f"/api/v1/items/{response.json()['id']}/reconcile/")
        self.assertEqual(reconcile.json()["ledger_total"], 12)
        self.assertTrue(reconcile.json()["is_consistent"])

    def test_quantity_fields_are_read_only(self):
        item = self.make_item(quantity=12)
        self.client.force_authenticate(user=self.manager)

        response = self.client.patch(
            f"/api/v1/items/{item.id}/",
            {"quantity": 99, "available_quantity": 99, "name": "Renamed"},
            format="json",
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["quantity"], 12)
        self.assertEqual(response.json()["name"], "Renamed")
        self.assertReconciled(item)

    def test_item_with_history_cannot_be_deleted(self):
        item = self.make_item(quantity=1)
        self.client.force_authenticate(user=self.admin)

        response = self.client.delete(f"/api/v1/items/{item.id}/")

        self.assertEqual(response.status_code, 400)
        self.assertTrue(Item.objects.filter(pk=item.pk).exists())

    def test_employee_can_read_but_not_write_items(self):
        item = self.make_item(quantity=1)
        self.client.force_authenticate(user=self.employee)

        read = self.client.get(f"/api/v1/items/{item.id}/")
        write = self.client.patch(f"/api/v1/items/{item.id}/", {"name": "Nope"}, format="json")

        self.assertEqual(read.status_code, 200)
        self.assertEqual(write.status_code, 403)

    def test_list_filters_and_sorting(self):
        self.make_item(sku="F-1", quantity=2, name="Bolt")
        self.make_item(sku="F-2", quantity=8, name="Nut")
        self.make_item(sku="F-3", quantity=20, name="Washer", status="discontinued")
        self.client.force_authenticate(user=self.employee)

        by_status = self.client.get("/api/v1/items/", {"status": "active,inactive", "sort": "-quantity"})
        by_range = self.client.get("/api/v1/items/", {"quantity_min": 5, "quantity_max": 10})
        by_search = self.client.get("/api/v1/items/", {"search": "wash"})
        bad_sort = self.client.get("/api/v1/items/", {"sort": "bogus"})
        bad_range = self.client.get("/api/v1/items/", {"quantity_min": "abc"})

        self.assertEqual([row["sku"] for row in by_status.json()["results"]], ["F-2", "F-1"])
        self.assertEqual([row["sku"] for row in by_range.json()["results"]], ["F-2"])
        self.assertEqual([row["sku"] for row in by_search.json()["results"]], ["F-3"])
        self.assertEqual(bad_sort.status_code, 400)
        self.assertEqual(bad_sort.json()["errors"], {"sort": ["Cannot sort by 'bogus'."]})
        self.assertEqual(bad_range.status_code, 400)

    def test_bulk_create_books_each_opening_balance(self):
        self.client.force_authenticate(user=self.manager)

        response = self.client.post(
            "/api/v1/items/bulk/",
            {
                "items": [
                    {"sku": "BULK-1", "name": "Cable", "opening_quantity": 4, "opening_location": str(self.warehouse_x.id)},
                    {"sku": "BULK-2", "name": "Adapter"},
                ]
            },
            format="json",
        )

        self.assertEqual(response.status_code, 201, response.json())
        self.assertEqual([row["sku"] for row in response.json()], ["BULK-1", "BULK-2"])
        cable = Item.objects.get(sku="BULK-1")
        self.assertEqual(cable.quantity, 4)
        self.assertEqual(location_balance(cable, self.warehouse_x.id), 4)
        self.assertReconciled(cable)
        self.assertEqual(Item.objects.get(sku="BULK-2").movements.count(), 0)
        self.assertEqual(AuditLog.objects.filter(action="item.create", entity="item").count(), 2)

    def test_bulk_create_is_all_or_nothing(self):
        self.make_item(sku="TAKEN")
        self.client.force_authenticate(user=self.manager)

        clash = self.client.post(
            "/api/v1/items/bulk/",
            {"items": [{"sku": "NEW-1", "name": "New", "opening_quantity": 2}, {"sku": "TAKEN", "name": "Dup"}]},
            format="json",
        )
        repeated = self.client.post(
            "/api/v1/items/bulk/",
            {"items": [{"sku": "NEW-2", "name": "A"}, {"sku": "NEW-2", "name": "B"}]},
            format="json",
        )
        empty = self.client.post("/api/v1/items/bulk/", {"items": []}, format="json")

        self.assertEqual(clash.status_code, 400)
        self.assertEqual(repeated.status_code, 400)
        self.assertEqual(empty.status_code, 400)
        self.assertFalse(Item.objects.filter(sku__in=["NEW-1", "NEW-2"]).exists())
        self.assertFalse(StockMovement.objects.filter(item__sku="NEW-1").exists())

    def test_employee_cannot_bulk_create(self):
        self.client.force_authenticate(user=self.employee)

        response = self.client.post("/api/v1/items/bulk/", {"items": [{"sku": "E-1", "name": "E"}]}, format="json")

        self.assertEqual(response.status_code, 403)

    def test_malformed_range_and_date_filters_are_rejected(self):
        self.make_item(sku="R-1", quantity=2)
        self.client.force_authenticate(user=self.employee)

        cases = [
            ("/api/v1/items/", {"quantity_min": "NaN"}, "quantity_min"),
            ("/api/v1/items/", {"quantity_max": "Infinity"}, "quantity_max"),
            ("/api/v1/items/", {"quantity_min": "1.5"}, "quantity_min"),
            ("/api/v1/stock-movements/", {"start_date": "2024-02-30"}, "start_date"),
            ("/api/v1/stock-movements/", {"end_date": "2024-13-01T00:00:00"}, "end_date"),
        ]
        for url, params, field in cases:
            response = self.client.get(url, params)
            self.assertEqual(response.status_code, 400, params)
            self.assertEqual(response.json()["code"], "validation_error")
            self.assertIn(field, response.json()["errors"])

    def test_fractional_range_allowed_on_decimal_fields(self):
        self.make_item(sku="C-1", quantity=1, unit_cost=Decimal("2.50"))
        self.make_item(sku="C-2", quantity=1, unit_cost=Decimal("9.00"))
        self.client.force_authenticate(user=self.employee)

        response = self.client.get("/api/v1/items/", {"unit_cost_max": "2.75"})

        self.assertEqual(response.status_code, 200)
        self.assertEqual([row["sku"] for row in response.json()["results"]], ["C-1"])

    def test_low_stock_lists_active_items_at_or_below_threshold(self):
        self.make_item(sku="LOW", quantity=3, low_stock_threshold=5)
        self.make_item(sku="OK", quantity=30, low_stock_threshold=5)
        self.client.force_authenticate(user=self.employee)

        response = self.client.get("/api/v1/items/low-stock/")

        self.assertEqual([row["sku"] for row in response.json()["results"]], ["LOW"])
        self.assertTrue(response.json()["results"][0]["is_low_stock"])

    def test_item_movements_are_paginated(self):
        item = self.make_item(quantity=10)
        InventoryAccount(item).decrease(1, movement_type=StockMovement.MovementType.SALE, reference=Reference.other())
        self.client.force_authenticate(user=self.employee)

        response = self.client.get(f"/api/v1/items/{item.id}/movements/", {"page_size": 1})

        self.assertEqual(response.json()["count"], 2)
        self.assertEqual(len(response.json()["results"]), 1)


class CategoryTests(InventoryTestMixin, TestCase):
    def test_tree_and_paths(self):
        root = Category.objects.create(name="Hardware", code="HW")
        child = Category.objects.create(name="Laptops", code="LAP", parent=root)
        self.client.force_authenticate(user=self.employee)

        response = self.client.get("/api/v1/categories/tree/")

        self.assertEqual(child.path, "HW/LAP")
        self.assertEqual(child.level, 1)
        tree = response.json()
        self.assertEqual(len(tree), 1)
        self.assertEqual(tree[0]["code"], "HW")
        self.assertEqual([node["code"] for node in tree[0]["children"]], ["LAP"])

    def test_category_cannot_be_nested_under_descendant(self):
        root = Category.objects.create(name="Hardware", code="HW")
        child = Category.objects.create(name="Laptops", code="LAP", parent=root)
        self.client.force_authenticate(user=self.manager)

        response = self.client.patch(f"/api/v1/categories/{root.id}/", {"parent": str(child.id)}, format="json")

        self.assertEqual(response.status_code, 400)
        root.refresh_from_db()
        self.assertIsNone(root.parent_id)

    def test_renaming_code_refreshes_descendant_paths(self):
        root = Category.objects.create(name="Hardware", code="HW")
        child = Category.objects.create(name="Laptops", code="LAP", parent=root)
        self.client.force_authenticate(user=self.manager)

        response = self.client.patch(f"/api/v1/categories/{root.id}/", {"code": "HARD"}, format="json")

        self.assertEqual(response.status_code, 200)
        child.refresh_from_db()
        self.assertEqual(child.path, "HARD/LAP")


    def test_stats_rank_categories_by_item_count(self):
        tools = Category.objects.create(name="Tools", code="TL")
        Category.objects.create(name="Drills", code="DR", parent=tools)
        Category.objects.create(name="Retired", code="RT", status=Category.Status.INACTIVE)
        self.make_item(sku="T-1", category=tools)
        self.make_item(sku="T-2", category=tools)
        self.client.force_authenticate(user=self.employee)

        response = self.client.get("/api/v1/categories/stats/")

        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload["total"], 3)
        self.assertEqual(payload["root_categories"], 2)
        self.assertEqual(payload["by_status"], {"active": 2, "inactive": 1})
        self.assertEqual(payload["top_categories"][0]["code"], "TL")
        self.assertEqual(payload["top_categories"][0]["item_count"], 2)


class SupplierTests(InventoryTestMixin, TestCase):
    def test_stats_count_by_status_and_rank_by_order_value(self):
        acme = Supplier.objects.create(name="Acme", code="ACME")
        Supplier.objects.create(name="Blocked Co", code="BLK", status=Supplier.Status.BLOCKED)
        Supplier.objects.create(name="Zeta", code="ZETA")
        item = self.make_item(sku="S-1")
        services.create_purchase_order(
            user=self.manager,
            supplier=acme,
            lines=[{"item": item, "quantity_ordered": 4, "unit_price": Decimal("2.50")}],
        )
        self.client.force_authenticate(user=self.employee)

        response = self.client.get("/api/v1/suppliers/stats/")

        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload["total"], 3)
        self.assertEqual(payload["by_status"], {"active": 2, "blocked": 1})
        self.assertEqual([row["code"] for row in payload["top_suppliers"]], ["ACME", "ZETA"])
        self.assertEqual(payload["top_suppliers"][0]["order_count"], 1)
        self.assertEqual(Decimal(str(payload["top_suppliers"][0]["order_value"])), Decimal("10.00"))

    def test_supplier_with_orders_cannot_be_deleted(self):
        acme = Supplier.objects.create(name="Acme", code="ACME")
        item = self.make_item(sku="S-2")
        services.create_purchase_order(
            user=self.manager,
            supplier=acme,
            lines=[{"item": item, "quantity_ordered": 1, "unit_price": Decimal("1.00")}],
        )
        self.client.force_authenticate(user=self.admin)

        response = self.client.delete(f"/api/v1/suppliers/{acme.id}/")

        self.assertEqual(response.status_code, 400)
        self.assertTrue(Supplier.objects.filter(pk=acme.pk).exists())


class ReconcileLedgerCommandTests(InventoryTestMixin, TestCase):
    def test_reports_consistent_ledger(self):
        self.make_item(quantity=4)
        out = StringIO()

        call_command("reconcile_ledger", stdout=out)

        self.assertIn("ledger is consistent", out.getvalue())

    def test_flags_drift(self):
        item = self.make_item(sku="DRIFT", quantity=4)
        Item.objects.filter(pk=item.pk).update(quantity=F("quantity") + 1, available_quantity=F("available_quantity") + 1)
        out = StringIO()

        with self.assertRaises(CommandError):
            call_command("reconcile_ledger", "--fail-on-drift", stdout=out)

        self.assertIn("DRIFT: quantity=5 ledger_total=4", out.getvalue())


class WorkflowTableTests(TestCase):
    def test_transfer_reachability(self):
        Status = StockTransfer.Status

        self.assertEqual(TRANSFER_WORKFLOW.allowed_targets(Status.DRAFT), {Status.PENDING, Status.CANCELLED})
        self.assertEqual(
            TRANSFER_WORKFLOW.allowed_targets(Status.IN_TRANSIT),
            {Status.PARTIALLY_RECEIVED, Status.RECEIVED, Status.CANCELLED},
        )
        self.assertTrue(TRANSFER_WORKFLOW.is_terminal(Status.RECEIVED))
        self.assertTrue(TRANSFER_WORKFLOW.is_terminal(Status.CANCELLED))

    def test_product_assignment_outcomes_are_terminal(self):
        Status = ProductAssignment.Status

        for status in (Status.RETURNED, Status.LOST, Status.DAMAGED, Status.TRANSFERRED):
            self.assertTrue(PRODUCT_ASSIGNMENT_WORKFLOW.is_terminal(status))
        self.assertIn(Status.IN_USE, PRODUCT_ASSIGNMENT_WORKFLOW.allowed_targets(Status.ASSIGNED))


class CompetingReservationTests(InventoryTestMixin, TransactionTestCase):
    def test_only_one_reservation_wins_the_last_unit(self):
        item = self.make_item(sku="LAST", quantity=1)
        # Both callers loaded the item while one unit was still free.
        first = InventoryAccount(Item.objects.get(pk=item.pk), performed_by=self.manager)
        second = InventoryAccount(Item.objects.get(pk=item.pk), performed_by=self.admin)

        outcomes = []
        for account in (first, second):
            try:
                account.try_reserve(1)
                outcomes.append("reserved")
            except InsufficientStock:
                outcomes.append("short")

        self.assertEqual(sorted(outcomes), ["reserved", "short"])
        item.refresh_from_db()
        self.assertEqual((item.quantity, item.reserved_quantity, item.available_quantity), (1, 1, 0))
        self.assertReconciled(item)

    def test_only_one_assignment_gets_the_last_unit(self):
        item = self.make_item(sku="LAST-API", quantity=1)
        other = self.user_model.objects.create_user(username="second-employee", password="pass1234")
        self.client.force_authenticate(user=self.manager)

        responses = [
            self.client.post(
                "/api/v1/assignments/",
                {"item": str(item.id), "assigned_to": str(employee.id), "quantity": 1},
                format="json",
            )
            for employee in (self.employee, other)
        ]

        self.assertEqual(sorted(response.status_code for response in responses), [201, 400])
        self.assertEqual(Assignment.objects.filter(item=item).count(), 1)
        item.refresh_from_db()
        self.assertEqual(item.available_quantity, 0)
