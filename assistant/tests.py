from datetime import date
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.test import SimpleTestCase, TestCase

from assistant.commands import (
    AdjustInventoryCommand,
    CompleteBatchCommand,
    ConsumeMaterialCommand,
    IssueMaterialsCommand,
    MoveInventoryCommand,
    ReceiveMaterialCommand,
    execute_command,
    parse_command,
)
from core.exceptions import InvalidInput
from inventory.models import BOMItem, InventoryAdjustment, InventoryItem, Location, Product, RawMaterial
from production import services as production_services
from production.models import Batch


class ParseCommandTests(SimpleTestCase):
    def test_parses_receive_with_optional_fields(self):
        command = parse_command(
            {
                "command": "receive_material",
                "material": 3,
                "quantity": 500,
                "lot_number": " L-7 ",
                "expiry_date": "2026-12-31",
                "unit_cost": "0.25",
            }
        )
        self.assertEqual(
            command,
            ReceiveMaterialCommand(
                material=3,
                quantity=500,
                lot_number="L-7",
                expiry_date=date(2026, 12, 31),
                unit_cost=Decimal("0.25"),
            ),
        )

    def test_parses_issue_lines(self):
        command = parse_command(
            {"command": "issue_materials", "order": 4, "issues": [{"material": 1, "quantity": 20}]}
        )
        self.assertIsInstance(command, IssueMaterialsCommand)
        self.assertEqual(command.issues, ((1, 20),))

    def test_parses_complete_batch_flags(self):
        command = parse_command({"command": "complete_batch", "batch": 2, "actual_quantity": 0, "qc_required": True})
        self.assertEqual(command, CompleteBatchCommand(batch=2, actual_quantity=0, qc_required=True))

    def test_rejects_bad_payloads(self):
        bad_payloads = [
            "receive 5 flour",
            {"command": "launch_rockets"},
            {"command": ["move_inventory"]},
            {"command": "move_inventory", "item": 1, "quantity": 2},
            {"command": "move_inventory", "item": 1, "quantity": 2.5, "to_location": 3},
            {"command": "move_inventory", "item": True, "quantity": 2, "to_location": 3},
            {"command": "adjust_inventory", "item": 1, "delta_qty": -2, "reason": "x", "colour": "red"},
            {"command": "receive_material", "material": 1, "quantity": 5, "expiry_date": "soon"},
            {"command": "issue_materials", "order": 1, "issues": []},
            {"command": "issue_materials", "order": 1, "issues": [[1, 2]]},
        ]
        for payload in bad_payloads:
            with self.subTest(payload=payload):
                with self.assertRaises(InvalidInput):
                    parse_command(payload)


class ExecuteCommandTests(TestCase):
    def setUp(self):
        self.user = get_user_model().objects.create_user(username="assistant", password="secret")
        self.dock = Location.objects.create(name="Dock", is_default_receiving=True)
        self.kitchen = Location.objects.create(name="Kitchen")
        self.flour = RawMaterial.objects.create(sku="FLOUR", name="Flour")
        self.cookie = Product.objects.create(sku="COOKIE", name="Cookie", default_location=self.kitchen)
        BOMItem.objects.create(product=self.cookie, material=self.flour, quantity_per_unit=Decimal("2"))

    def receive(self, quantity=100):
        return execute_command(ReceiveMaterialCommand(material=self.flour.pk, quantity=quantity, lot_number="A"), self.user)

    def test_receive_then_move(self):
        result = self.receive(100)
        self.assertTrue(result.success)
        self.assertEqual(result.data["on_hand"], 100)

        moved = execute_command(
            MoveInventoryCommand(item=result.data["item_id"], quantity=30, to_location=self.kitchen.pk),
            self.user,
        )
        self.assertTrue(moved.success)
        self.assertEqual(InventoryItem.objects.get(pk=moved.data["destination_item_id"]).quantity_on_hand, 30)

    def test_adjust_records_manual_correction(self):
        item_id = self.receive(10).data["item_id"]
        result = execute_command(AdjustInventoryCommand(item=item_id, delta_qty=-3, reason="Spilled"), self.user)
        self.assertTrue(result.success)
        adjustment = InventoryAdjustment.objects.get(pk=result.data["adjustment_id"])
        self.assertEqual(adjustment.adjustment_type, InventoryAdjustment.AdjustmentType.MANUAL_CORRECTION)
        self.assertEqual(adjustment.created_by, self.user)

    def test_domain_errors_become_failed_results(self):
        result = execute_command(AdjustInventoryCommand(item=999, delta_qty=1, reason="x"), self.user)
        self.assertFalse(result.success)
        self.assertEqual(result.code, "not_found")

        item_id = self.receive(5).data["item_id"]
        result = execute_command(AdjustInventoryCommand(item=item_id, delta_qty=-6, reason="x"), self.user)
        self.assertFalse(result.success)
        self.assertEqual(result.code, "invalid_operation")

    def test_consume_reports_shortage(self):
        self.receive(5)
        with self.assertLogs("inventory", level="WARNING"):
            result = execute_command(ConsumeMaterialCommand(material=self.flour.pk, quantity=8), self.user)
        self.assertFalse(result.success)
        self.assertEqual(result.code, "insufficient_inventory")
        self.assertEqual(result.data["consumed"], 5)
        self.assertEqual(result.data["shortage"], 3)

    def test_issue_and_complete_batch(self):
        self.receive(100)
        order = production_services.create_production_order(product=self.cookie, quantity_to_make=10, actor=self.user)
        order = production_services.start_production_order(order=order, actor=self.user)

        issued = execute_command(IssueMaterialsCommand(order=order.pk, issues=((self.flour.pk, 20),)), self.user)
        self.assertTrue(issued.success)
        self.assertEqual(issued.data["lines"][0]["issued"], 20)

        batch = order.batches.get()
        completed = execute_command(
            CompleteBatchCommand(batch=batch.pk, actual_quantity=10, qc_required=False),
            self.user,
        )
        self.assertTrue(completed.success)
        self.assertEqual(completed.data["status"], Batch.Status.RELEASED)
        self.assertIsNotNone(completed.data["item_id"])

    def test_unsupported_command_type(self):
        with self.assertRaises(InvalidInput):
            execute_command(object(), self.user)
