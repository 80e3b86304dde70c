from datetime import timedelta
from decimal import Decimal
from unittest import mock

from django.contrib.auth import get_user_model
from django.test import TestCase
from django.urls import reverse
from django.utils import timezone

from core.exceptions import (
    InvalidInput,
    InvalidOperation,
    InvalidStatus,
    LocationValidationError,
    NotFound,
)
from core.models import AuditLog
from inventory import services as inventory_services
from inventory.models import (
    BOMItem,
    InventoryAdjustment,
    InventoryItem,
    Location,
    Product,
    RawMaterial,
)
from production import services
from production.models import (
    Batch,
    BatchMaker,
    LaborEntry,
    ProductionOrder,
    ProductionOrderMaterial,
    ProductionOrderStep,
)


class BaseProductionTestCase(TestCase):
    def setUp(self):
        self.user = get_user_model().objects.create_user(username="baker", password="secret")

        self.storeroom = Location.objects.create(name="Storeroom", is_default_receiving=True)
        self.kitchen = Location.objects.create(name="Kitchen", location_type=Location.LocationType.PRODUCTION)

        self.flour = RawMaterial.objects.create(sku="FLOUR", name="Flour", default_location=self.storeroom)
        self.sugar = RawMaterial.objects.create(sku="SUGAR", name="Sugar", default_location=self.storeroom)
        self.salt = RawMaterial.objects.create(sku="SALT", name="Salt", default_location=self.storeroom)

        self.cookie = Product.objects.create(
            sku="COOKIE",
            name="Cookie box",
            default_batch_size=10,
            shelf_life_days=30,
            default_location=self.kitchen,
        )
        BOMItem.objects.create(product=self.cookie, material=self.flour, quantity_per_unit=Decimal("100"))
        BOMItem.objects.create(product=self.cookie, material=self.sugar, quantity_per_unit=Decimal("0.5"))

        inventory_services.receive_material(material=self.flour, quantity=5000, lot_number="F1", actor=self.user)
        inventory_services.receive_material(material=self.sugar, quantity=10, lot_number="S1", actor=self.user)

    def create_order(self, quantity=25, **kwargs):
        return services.create_production_order(
            product=self.cookie,
            quantity_to_make=quantity,
            actor=self.user,
            **kwargs,
        )

    def started_order(self, quantity=25):
        order = self.create_order(quantity)
        return services.start_production_order(order=order, actor=self.user)


class ProductionOrderTests(BaseProductionTestCase):
    def test_create_computes_requirements(self):
        order = self.create_order(25)

        self.assertEqual(order.status, ProductionOrder.Status.PLANNED)
        self.assertEqual(order.batch_size, 10)
        self.assertTrue(order.order_number.startswith(f"PO-{timezone.now().year}-"))

        rows = {row.material.sku: row for row in order.materials.select_related("material")}
        self.assertEqual(rows["FLOUR"].required_qty, 2500)
        self.assertEqual(rows["FLOUR"].shortage_qty, 0)
        # 25 x 0.5 rounds up to 13
        self.assertEqual(rows["SUGAR"].required_qty, 13)
        self.assertEqual(rows["SUGAR"].available_qty, 10)
        self.assertEqual(rows["SUGAR"].shortage_qty, 3)
        self.assertEqual(len(order.material_requirements), 2)
        self.assertIsNotNone(order.requirements_calculated_at)

    def test_order_numbers_are_sequential(self):
        first = self.create_order(5)
        second = self.create_order(5)
        self.assertEqual(int(second.order_number[-4:]), int(first.order_number[-4:]) + 1)

    def test_product_without_bom_is_rejected(self):
        bare = Product.objects.create(sku="BARE", name="No recipe")
        with self.assertRaises(InvalidOperation) as ctx:
            services.create_production_order(product=bare, quantity_to_make=5, actor=self.user)
        self.assertIn("No BOM defined for this product", str(ctx.exception))

    def test_invalid_quantities(self):
        for bad in (0, -3, 2.5, Decimal("4")):
            with self.subTest(quantity=bad):
                with self.assertRaises(InvalidInput):
                    self.create_order(bad)
        with self.assertRaises(InvalidInput):
            self.create_order(5, batch_size=0)

    def test_start_creates_batches_and_steps(self):
        order = self.started_order(25)

        self.assertEqual(order.status, ProductionOrder.Status.IN_PROGRESS)
        self.assertIsNotNone(order.started_at)
        sizes = list(order.batches.order_by("created_at", "pk").values_list("planned_quantity", flat=True))
        self.assertEqual(sizes, [10, 10, 5])
        for batch in order.batches.all():
            self.assertTrue(batch.batch_code.startswith("COOKIE-"))
            self.assertEqual(batch.status, Batch.Status.PLANNED)

        steps = list(order.steps.values_list("step_type", flat=True))
        self.assertEqual(steps[:2], [ProductionOrderStep.StepType.MATERIAL_ISSUE] * 2)
        self.assertEqual(len(steps), 2 + len(services.DEFAULT_INSTRUCTION_STEPS))

    def test_start_twice_is_invalid(self):
        order = self.started_order()
        with self.assertRaises(InvalidStatus) as ctx:
            services.start_production_order(order=order, actor=self.user)
        self.assertIn("Cannot start order in IN_PROGRESS status", str(ctx.exception))

    def test_block_archive_and_unblock(self):
        order = self.create_order()
        order = services.block_production_order(order=order, reason="Oven broken", actor=self.user)
        self.assertEqual(order.status, ProductionOrder.Status.BLOCKED)
        self.assertEqual(order.blocked_reason, "Oven broken")

        with self.assertRaises(InvalidInput):
            services.archive_production_order(order=order, reason=" ", actor=self.user)

        order = services.archive_production_order(order=order, reason="Recipe retired", actor=self.user)
        self.assertTrue(order.is_archived)
        self.assertEqual(order.status, ProductionOrder.Status.BLOCKED)
        self.assertNotIn(order, ProductionOrder.objects.board())
        self.assertIn(order, ProductionOrder.objects.archived())

        with self.assertRaises(InvalidStatus):
            services.unblock_production_order(order=order, actor=self.user)

    def test_unblock_returns_to_planned(self):
        order = self.started_order()
        services.block_production_order(order=order, reason="Waiting for sugar", actor=self.user)
        order = services.unblock_production_order(order=order, actor=self.user)
        self.assertEqual(order.status, ProductionOrder.Status.PLANNED)
        self.assertEqual(order.blocked_reason, "")

    def test_status_changes_are_audited(self):
        self.started_order()
        entry = AuditLog.objects.filter(action=AuditLog.Action.STATUS_CHANGE).first()
        self.assertEqual(entry.extra["old_status"], "PLANNED")
        self.assertEqual(entry.extra["new_status"], "IN_PROGRESS")
        self.assertEqual(entry.actor, self.user)

    def test_cannot_complete_with_unreleased_batches(self):
        order = self.started_order()
        with self.assertRaises(InvalidStatus) as ctx:
            services.complete_production_order(order=order, actor=self.user)
        self.assertIn("not all batches are released", str(ctx.exception))

    def test_complete_from_planned_is_invalid(self):
        with self.assertRaises(InvalidStatus):
            services.complete_production_order(order=self.create_order(), actor=self.user)

    def test_order_with_every_batch_cancelled_can_complete(self):
        order = self.started_order(20)
        for batch in order.batches.all():
            services.cancel_batch(batch=batch, reason="Oven down", actor=self.user)

        order = services.complete_production_order(order=order, actor=self.user)
        self.assertEqual(order.status, ProductionOrder.Status.COMPLETED)
        self.assertIsNotNone(order.completed_at)

    def test_cancel_cancels_open_batches(self):
        order = self.started_order(20)
        order = services.cancel_production_order(order=order, reason="Customer cancelled", actor=self.user)
        self.assertEqual(order.status, ProductionOrder.Status.CANCELLED)
        self.assertFalse(order.batches.active().exists())

        with self.assertRaises(InvalidStatus):
            services.cancel_production_order(order=order, actor=self.user)

    def test_recalculating_requirements_picks_up_new_stock(self):
        order = self.create_order(25)
        inventory_services.receive_material(material=self.sugar, quantity=5, lot_number="S2", actor=self.user)
        snapshot = services.calculate_material_requirements(order=order, actor=self.user)

        sugar_row = next(row for row in snapshot if row["sku"] == "SUGAR")
        self.assertEqual(sugar_row["available_qty"], 15)
        self.assertEqual(sugar_row["shortage_qty"], 0)

    def test_complete_step(self):
        order = self.started_order()
        step = order.steps.filter(step_type=ProductionOrderStep.StepType.INSTRUCTION).first()
        step = services.complete_production_step(step=step, actor=self.user)
        self.assertEqual(step.status, ProductionOrderStep.Status.DONE)
        with self.assertRaises(InvalidStatus):
            services.complete_production_step(step=step, actor=self.user)

    def test_split_into_batches(self):
        self.assertEqual(services.split_into_batches(25, 10), [10, 10, 5])
        self.assertEqual(services.split_into_batches(20, 10), [10, 10])
        self.assertEqual(services.split_into_batches(3, 10), [3])


class IssueMaterialsTests(BaseProductionTestCase):
    def test_issue_consumes_and_tracks_issued_quantity(self):
        order = self.started_order(25)
        issued = services.issue_materials(order=order, issues=[(self.flour.pk, 2500)], actor=self.user)

        self.assertEqual(issued[0].issued, 2500)
        self.assertEqual(issued[0].shortage, 0)

        row = ProductionOrderMaterial.objects.get(order=order, material=self.flour)
        self.assertEqual(row.issued_qty, 2500)
        self.assertEqual(row.remaining_to_issue, 0)

        step = order.steps.get(material=self.flour)
        self.assertEqual(step.status, ProductionOrderStep.Status.DONE)

        adjustment = InventoryAdjustment.objects.of_type(InventoryAdjustment.AdjustmentType.CONSUMPTION).get()
        self.assertEqual(adjustment.delta_qty, -2500)
        self.assertEqual(adjustment.related_entity_type, InventoryAdjustment.RelatedEntity.PRODUCTION_ORDER)
        self.assertEqual(adjustment.related_entity_id, str(order.pk))

    def test_issue_reports_shortage(self):
        order = self.started_order(25)
        with self.assertLogs("inventory", level="WARNING"):
            issued = services.issue_materials(
                order=order,
                issues=[{"material": self.sugar.pk, "quantity": 13}],
                actor=self.user,
            )
        self.assertEqual(issued[0].issued, 10)
        self.assertEqual(issued[0].shortage, 3)
        row = ProductionOrderMaterial.objects.get(order=order, material=self.sugar)
        self.assertEqual(row.issued_qty, 10)

    def test_material_outside_order_is_not_found_and_nothing_is_consumed(self):
        order = self.started_order()
        with self.assertRaises(NotFound):
            services.issue_materials(
                order=order,
                issues=[(self.flour.pk, 100), (self.salt.pk, 1)],
                actor=self.user,
            )
        self.assertFalse(
            InventoryAdjustment.objects.of_type(InventoryAdjustment.AdjustmentType.CONSUMPTION).exists()
        )

    def test_empty_issue_list_is_invalid(self):
        with self.assertRaises(InvalidInput):
            services.issue_materials(order=self.started_order(), issues=[], actor=self.user)

    def test_cannot_issue_to_cancelled_order(self):
        order = services.cancel_production_order(order=self.create_order(), actor=self.user)
        with self.assertRaises(InvalidStatus):
            services.issue_materials(order=order, issues=[(self.flour.pk, 1)], actor=self.user)

    def test_interrupted_issue_keeps_consumed_lots_counted(self):
        inventory_services.receive_material(material=self.flour, quantity=1000, lot_number="F2", actor=self.user)
        order = self.started_order(60)
        real_apply = inventory_services._apply_adjustment_locked
        calls = []

        def fail_on_second_lot(**kwargs):
            calls.append(kwargs["item"].lot_number)
            if len(calls) > 1:
                raise RuntimeError("connection lost")
            return real_apply(**kwargs)

        with mock.patch("inventory.services._apply_adjustment_locked", side_effect=fail_on_second_lot):
            with self.assertRaises(RuntimeError):
                services.issue_materials(order=order, issues=[(self.flour.pk, 5500)], actor=self.user)

        self.assertEqual(calls, ["F1", "F2"])
        row = ProductionOrderMaterial.objects.get(order=order, material=self.flour)
        self.assertEqual(row.issued_qty, 5000)
        consumed = InventoryAdjustment.objects.of_type(InventoryAdjustment.AdjustmentType.CONSUMPTION)
        self.assertEqual(sum(consumed.values_list("delta_qty", flat=True)), -5000)
        self.assertEqual(order.steps.get(material=self.flour).status, ProductionOrderStep.Status.PENDING)


class BatchCompletionTests(BaseProductionTestCase):
    def setUp(self):
        super().setUp()
        self.order = self.started_order(20)
        self.first, self.second = list(self.order.batches.order_by("created_at", "pk"))

    def test_complete_without_qc_releases_stock(self):
        completion = services.complete_batch(batch=self.first, actual_quantity=9, qc_required=False, actor=self.user)

        batch = completion.batch
        self.assertEqual(batch.status, Batch.Status.RELEASED)
        self.assertEqual(batch.qc_status, Batch.QCStatus.NOT_REQUIRED)
        self.assertEqual(batch.loss_qty, 1)
        self.assertEqual(batch.expiration_date, batch.production_date + timedelta(days=30))

        item = completion.item
        self.assertEqual(item.status, InventoryItem.Status.AVAILABLE)
        self.assertEqual(item.location, self.kitchen)
        self.assertEqual(item.lot_number, batch.batch_code)
        self.assertEqual(item.quantity_on_hand, 9)
        self.assertEqual(completion.adjustment.adjustment_type, InventoryAdjustment.AdjustmentType.PRODUCTION_COMPLETE)
        self.assertEqual(completion.adjustment.related_entity_type, InventoryAdjustment.RelatedEntity.BATCH)
        self.assertEqual(inventory_services.get_available_product_stock(self.cookie), 9)

    def test_complete_with_qc_quarantines_until_passed(self):
        completion = services.complete_batch(batch=self.first, actual_quantity=10, qc_required=True, actor=self.user)
        self.assertEqual(completion.batch.status, Batch.Status.QC_HOLD)
        self.assertEqual(completion.batch.qc_status, Batch.QCStatus.PENDING)
        self.assertEqual(completion.item.status, InventoryItem.Status.QUARANTINED)
        self.assertEqual(inventory_services.get_available_product_stock(self.cookie), 0)

        with self.assertRaises(InvalidStatus):
            inventory_services.reserve(item=completion.item, quantity=1, actor=self.user)

        batch = services.set_batch_qc_status(batch=self.first, qc_status=Batch.QCStatus.PASSED, actor=self.user)
        self.assertEqual(batch.status, Batch.Status.RELEASED)
        completion.item.refresh_from_db()
        self.assertEqual(completion.item.status, InventoryItem.Status.AVAILABLE)
        self.assertEqual(inventory_services.get_available_product_stock(self.cookie), 10)
        self.assertTrue(AuditLog.objects.filter(action=AuditLog.Action.QC_DECISION).exists())

    def test_failed_qc_quarantines_released_stock(self):
        completion = services.complete_batch(batch=self.first, actual_quantity=10, qc_required=False, actor=self.user)
        batch = services.set_batch_qc_status(
            batch=self.first, qc_status=Batch.QCStatus.FAILED, notes="Underbaked", actor=self.user
        )
        self.assertEqual(batch.status, Batch.Status.RELEASED)
        self.assertEqual(batch.qc_notes, "Underbaked")
        completion.item.refresh_from_db()
        self.assertEqual(completion.item.status, InventoryItem.Status.QUARANTINED)

        inventory_services.scrap_inventory(item=completion.item, quantity=10, reason="Failed QC", actor=self.user)
        batch = services.mark_batch_exhausted(batch=self.first, actor=self.user)
        self.assertEqual(batch.status, Batch.Status.EXHAUSTED)

    def test_exhausting_batch_with_stock_is_rejected(self):
        services.complete_batch(batch=self.first, actual_quantity=10, qc_required=False, actor=self.user)
        with self.assertRaises(InvalidOperation):
            services.mark_batch_exhausted(batch=self.first, actor=self.user)

    def test_invalid_qc_status(self):
        with self.assertRaises(InvalidInput):
            services.set_batch_qc_status(batch=self.first, qc_status="MAYBE", actor=self.user)

    def test_completed_or_cancelled_batches_cannot_complete(self):
        services.complete_batch(batch=self.first, actual_quantity=10, qc_required=True, actor=self.user)
        with self.assertRaises(InvalidStatus):
            services.complete_batch(batch=self.first, actual_quantity=10, actor=self.user)

        services.cancel_batch(batch=self.second, reason="Dropped tray", actor=self.user)
        with self.assertRaises(InvalidStatus):
            services.complete_batch(batch=self.second, actual_quantity=10, actor=self.user)

    def test_released_batch_can_be_cancelled(self):
        services.complete_batch(batch=self.first, actual_quantity=10, qc_required=False, actor=self.user)
        batch = services.cancel_batch(batch=self.first, reason="Recalled", actor=self.user)
        self.assertEqual(batch.status, Batch.Status.CANCELLED)
        self.assertIn("Recalled", batch.notes)
        with self.assertRaises(InvalidStatus):
            services.cancel_batch(batch=self.first, actor=self.user)

    def test_zero_output_records_no_stock(self):
        completion = services.complete_batch(batch=self.first, actual_quantity=0, qc_required=False, actor=self.user)
        self.assertIsNone(completion.item)
        self.assertEqual(completion.batch.loss_qty, 10)
        self.assertFalse(InventoryItem.objects.for_batch(self.first).exists())

    def test_inactive_output_location_is_rejected(self):
        Location.objects.filter(pk=self.kitchen.pk).update(is_active=False)
        with self.assertRaises(LocationValidationError):
            services.complete_batch(batch=self.first, actual_quantity=10, actor=self.user)
        self.first.refresh_from_db()
        self.assertEqual(self.first.status, Batch.Status.PLANNED)

    def test_order_completes_when_all_batches_released(self):
        services.complete_batch(batch=self.first, actual_quantity=10, qc_required=False, actor=self.user)
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, ProductionOrder.Status.IN_PROGRESS)

        services.complete_batch(batch=self.second, actual_quantity=10, qc_required=True, actor=self.user)
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, ProductionOrder.Status.IN_PROGRESS)

        services.set_batch_qc_status(batch=self.second, qc_status=Batch.QCStatus.PASSED, actor=self.user)
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, ProductionOrder.Status.COMPLETED)
        self.assertIsNotNone(self.order.completed_at)

        order = services.dismiss_production_order(order=self.order, actor=self.user)
        self.assertTrue(order.is_dismissed)
        self.assertNotIn(order, ProductionOrder.objects.board())
        with self.assertRaises(InvalidStatus):
            services.dismiss_production_order(order=order, actor=self.user)

    def test_update_batch_status_routes(self):
        batch = services.update_batch_status(batch=self.first, status=Batch.Status.IN_PROGRESS, actor=self.user)
        self.assertEqual(batch.status, Batch.Status.IN_PROGRESS)
        self.assertIsNotNone(batch.started_at)

        with self.assertRaises(InvalidOperation):
            services.update_batch_status(batch=self.first, status=Batch.Status.RELEASED, actor=self.user)
        with self.assertRaises(InvalidInput):
            services.update_batch_status(batch=self.first, status="BOGUS", actor=self.user)

    def test_illegal_transition_is_invalid_status(self):
        services.complete_batch(batch=self.first, actual_quantity=10, qc_required=False, actor=self.user)
        self.first.refresh_from_db()
        self.assertFalse(self.first.can_transition_to(Batch.Status.IN_PROGRESS))
        with self.assertRaises(InvalidStatus):
            services.start_batch(batch=self.first, actor=self.user)

    def test_transition_events_are_dispatched_after_commit(self):
        with self.assertLogs("production.handlers", level="INFO") as logs:
            with self.captureOnCommitCallbacks(execute=True):
                services.complete_batch(batch=self.first, actual_quantity=10, qc_required=False, actor=self.user)
        self.assertTrue(any(self.first.batch_code in line and "released" in line for line in logs.output))

    def test_standalone_batch(self):
        batch = services.create_batch(
            product=self.cookie,
            planned_quantity=6,
            production_date=timezone.localdate(),
            actor=self.user,
        )
        self.assertIsNone(batch.production_order)
        self.assertEqual(batch.expected_yield, 6)
        self.assertEqual(batch.expiration_date, timezone.localdate() + timedelta(days=30))

        other = Product.objects.create(sku="OTHER", name="Other")
        with self.assertRaises(InvalidInput):
            services.create_batch(product=other, planned_quantity=5, production_order=self.order, actor=self.user)


class LaborAndMakersTests(BaseProductionTestCase):
    def setUp(self):
        super().setUp()
        self.batch = self.started_order(10).batches.get()
        User = get_user_model()
        self.mixer = User.objects.create_user(username="mixer", password="secret")
        self.packer = User.objects.create_user(username="packer", password="secret")

    def test_labor_totals_in_minutes_and_hours(self):
        services.add_labor_entry(batch=self.batch, worker=self.mixer, minutes=90, role="Mixing", actor=self.user)
        latest = services.add_labor_entry(batch=self.batch, worker=self.packer.pk, minutes=45, actor=self.user)

        summary = services.get_labor_entries(self.batch)
        self.assertEqual(summary.total_minutes, 135)
        self.assertEqual(summary.total_hours, Decimal("2.25"))
        self.assertEqual(summary.entries[0].pk, latest.pk)
        self.assertEqual(latest.logged_by, self.user)

        entry = AuditLog.objects.filter(action=AuditLog.Action.LABOR_LOGGED).order_by("pk").first()
        self.assertEqual(entry.extra["minutes"], 90)
        self.assertEqual(entry.extra["worker"], "mixer")
        self.assertEqual(entry.actor, self.user)

    def test_empty_batch_has_no_labor(self):
        summary = services.get_labor_entries(self.batch.pk)
        self.assertEqual(summary.entries, [])
        self.assertEqual(summary.total_hours, Decimal("0.00"))

    def test_invalid_labor_entries(self):
        for bad in (0, -15, 1.5):
            with self.subTest(minutes=bad):
                with self.assertRaises(InvalidInput):
                    services.add_labor_entry(batch=self.batch, worker=self.mixer, minutes=bad, actor=self.user)
        with self.assertRaises(NotFound):
            services.add_labor_entry(batch=self.batch, worker=987654, minutes=10, actor=self.user)
        with self.assertRaises(NotFound):
            services.add_labor_entry(batch=987654, worker=self.mixer, minutes=10, actor=self.user)
        self.assertFalse(LaborEntry.objects.exists())

    def test_assign_makers_replaces_the_set(self):
        services.assign_makers(batch=self.batch, makers=[self.mixer, self.packer.pk, self.mixer], actor=self.user)
        self.assertEqual(
            set(self.batch.makers.values_list("user_id", flat=True)),
            {self.mixer.pk, self.packer.pk},
        )

        assigned = services.assign_makers(batch=self.batch, makers=[self.packer], actor=self.user)
        self.assertEqual([maker.user_id for maker in assigned], [self.packer.pk])
        remaining = BatchMaker.objects.filter(batch=self.batch).values_list("user_id", flat=True)
        self.assertEqual(list(remaining), [self.packer.pk])

        entry = AuditLog.objects.filter(action=AuditLog.Action.MAKERS_ASSIGNED).order_by("-pk").first()
        self.assertEqual(sorted(entry.extra["before"]), sorted([self.mixer.pk, self.packer.pk]))
        self.assertEqual(entry.extra["after"], [self.packer.pk])

    def test_unknown_maker_changes_nothing(self):
        services.assign_makers(batch=self.batch, makers=[self.mixer], actor=self.user)
        with self.assertRaises(NotFound):
            services.assign_makers(batch=self.batch, makers=[self.packer, 987654], actor=self.user)
        self.assertEqual(list(self.batch.makers.values_list("user_id", flat=True)), [self.mixer.pk])


class ProductionApiTests(BaseProductionTestCase):
    def setUp(self):
        super().setUp()
        self.order = self.started_order(20)
        self.client.force_login(self.user)

    def test_order_list_and_detail(self):
        data = self.client.get(reverse("production:api_order_list")).json()
        self.assertEqual([row["order_number"] for row in data["results"]], [self.order.order_number])

        detail = self.client.get(reverse("production:api_order_detail", args=[self.order.pk])).json()
        self.assertEqual(detail["status"], "IN_PROGRESS")
        self.assertEqual(len(detail["batches"]), 2)
        self.assertEqual({row["sku"] for row in detail["materials"]}, {"FLOUR", "SUGAR"})

    def test_unknown_status_filter(self):
        response = self.client.get(reverse("production:api_order_list"), {"status": "DONE"})
        self.assertEqual(response.status_code, 400)

    def test_batch_detail(self):
        batch = self.order.batches.order_by("created_at", "pk").first()
        services.complete_batch(batch=batch, actual_quantity=10, qc_required=True, actor=self.user)

        data = self.client.get(reverse("production:api_batch_detail", args=[batch.pk])).json()
        self.assertEqual(data["status"], "QC_HOLD")
        self.assertEqual(data["inventory"][0]["status"], "QUARANTINED")

    def test_missing_batch(self):
        response = self.client.get(reverse("production:api_batch_detail", args=[424242]))
        self.assertEqual(response.status_code, 404)

    def test_batch_detail_includes_makers_and_labor(self):
        batch = self.order.batches.order_by("created_at", "pk").first()
        services.assign_makers(batch=batch, makers=[self.user], actor=self.user)
        services.add_labor_entry(batch=batch, worker=self.user, minutes=75, role="Mixing", actor=self.user)

        data = self.client.get(reverse("production:api_batch_detail", args=[batch.pk])).json()
        self.assertEqual(data["makers"], [{"id": self.user.pk, "username": "baker"}])
        self.assertEqual(data["labor"]["total_minutes"], 75)
        self.assertEqual(data["labor"]["total_hours"], "1.25")
        self.assertEqual(data["labor"]["entries"][0]["role"], "Mixing")
        self.assertEqual(data["labor"]["entries"][0]["worker"], "baker")
