from datetime import timedelta
from decimal import Decimal
from io import StringIO

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.core.management import call_command
from django.db import transaction
from django.test import TestCase
from django.urls import reverse
from django.utils import timezone

from core.exceptions import (
    InsufficientInventory,
    InvalidInput,
    InvalidOperation,
    InvalidStatus,
    LocationValidationError,
    NotFound,
)
from core.models import AuditLog
from inventory import queries, services
from inventory.models import (
    BOMItem,
    InventoryAdjustment,
    InventoryItem,
    InventoryMovement,
    Location,
    Product,
    RawMaterial,
    UnitOfMeasure,
)
from inventory.resources import InventoryAdjustmentResource, RawMaterialResource


class BaseInventoryTestCase(TestCase):
    def setUp(self):
        self.user = get_user_model().objects.create_user(username="operator", password="secret")

        # Locations
        self.receiving = Location.objects.create(
            name="Receiving",
            location_type=Location.LocationType.RECEIVING,
            is_default_receiving=True,
        )
        self.storeroom = Location.objects.create(name="Storeroom")
        self.kitchen = Location.objects.create(
            name="Kitchen",
            location_type=Location.LocationType.PRODUCTION,
        )
        self.closed = Location.objects.create(name="Old Shed", is_active=False)

        # Catalog
        self.flour = RawMaterial.objects.create(
            sku="FLOUR",
            name="Flour",
            unit_of_measure=UnitOfMeasure.GRAM,
            reorder_point=10,
            default_location=self.storeroom,
        )
        self.sugar = RawMaterial.objects.create(
            sku="SUGAR",
            name="Sugar",
            unit_of_measure=UnitOfMeasure.GRAM,
        )
        self.cookie = Product.objects.create(
            sku="COOKIE",
            name="Cookie box",
            default_batch_size=10,
            default_location=self.kitchen,
        )

    # Helpers
    def receive(self, material=None, quantity=10, **kwargs):
        return services.receive_material(
            material=material or self.flour,
            quantity=quantity,
            actor=self.user,
            **kwargs,
        )

    def assertLedgerBalanced(self, item):
        item.refresh_from_db()
        self.assertEqual(
            InventoryAdjustment.objects.for_item(item).total_delta(),
            item.quantity_on_hand,
        )


class ApplyAdjustmentTests(BaseInventoryTestCase):
    def setUp(self):
        super().setUp()
        self.item = self.receive(quantity=20).item

    def test_adjustment_updates_on_hand_and_writes_ledger_rows(self):
        result = services.adjust_inventory(
            item=self.item,
            delta_qty=-4,
            reason="Cycle count",
            reference="CC-1",
            actor=self.user,
        )
        self.assertEqual(result.new_quantity, 16)
        self.assertEqual(result.adjustment.delta_qty, -4)
        self.assertEqual(result.adjustment.adjustment_type, InventoryAdjustment.AdjustmentType.MANUAL_CORRECTION)
        self.assertEqual(result.adjustment.created_by, self.user)

        movement = result.movement
        self.assertEqual(movement.movement_type, InventoryMovement.MovementType.ADJUST)
        self.assertEqual(movement.quantity, -4)
        self.assertEqual(movement.from_location, "Storeroom")
        self.assertEqual(movement.to_location, "")
        self.assertEqual(movement.reference, "CC-1")
        self.assertLedgerBalanced(self.item)

    def test_material_stock_cache_follows_adjustments(self):
        services.adjust_inventory(item=self.item, delta_qty=5, reason="Found a sack", actor=self.user)
        self.flour.refresh_from_db()
        self.assertEqual(self.flour.current_stock_qty, 25)

    def test_negative_result_is_rejected_without_writes(self):
        with self.assertRaises(InvalidOperation):
            services.adjust_inventory(item=self.item, delta_qty=-21, reason="Too much", actor=self.user)
        self.item.refresh_from_db()
        self.assertEqual(self.item.quantity_on_hand, 20)
        self.assertEqual(InventoryAdjustment.objects.for_item(self.item).count(), 1)

    def test_cannot_drop_below_reserved(self):
        services.reserve(item=self.item, quantity=15, actor=self.user)
        with self.assertRaises(InvalidOperation):
            services.adjust_inventory(item=self.item, delta_qty=-6, reason="Spill", actor=self.user)

    def test_zero_and_fractional_deltas_are_invalid_input(self):
        for bad in (0, 1.5, Decimal("2"), True, "3"):
            with self.subTest(delta=bad):
                with self.assertRaises(InvalidInput):
                    services.adjust_inventory(item=self.item, delta_qty=bad, reason="x", actor=self.user)

    def test_reason_is_required(self):
        with self.assertRaises(InvalidInput):
            services.adjust_inventory(item=self.item, delta_qty=1, reason="   ", actor=self.user)

    def test_unknown_item_is_not_found(self):
        with self.assertRaises(NotFound):
            services.adjust_inventory(item=999999, delta_qty=1, reason="x", actor=self.user)

    def test_unknown_adjustment_type_is_invalid_input(self):
        with self.assertRaises(InvalidInput):
            services.apply_adjustment(item=self.item, delta_qty=1, reason="x", adjustment_type="MAGIC")

    def test_audit_entry_is_written(self):
        services.adjust_inventory(item=self.item, delta_qty=2, reason="Recount", actor=self.user)
        entry = AuditLog.objects.filter(action=AuditLog.Action.STOCK_ADJUSTMENT).first()
        self.assertEqual(entry.actor, self.user)
        self.assertEqual(entry.extra["delta_qty"], 2)

    def test_ledger_rows_are_append_only(self):
        adjustment = InventoryAdjustment.objects.for_item(self.item).first()
        adjustment.reason = "rewritten"
        with self.assertRaises(InvalidOperation):
            adjustment.save()
        with self.assertRaises(InvalidOperation):
            adjustment.delete()
        with self.assertRaises(InvalidOperation):
            InventoryAdjustment.objects.all().update(reason="x")
        with self.assertRaises(InvalidOperation):
            InventoryMovement.objects.all().delete()

    def test_crossing_reorder_point_emits_stock_low(self):
        with self.assertLogs("inventory.handlers", level="WARNING") as logs:
            with self.captureOnCommitCallbacks(execute=True):
                services.adjust_inventory(item=self.item, delta_qty=-15, reason="Used", actor=self.user)
        self.assertIn("FLOUR", logs.output[0])


class ReservationTests(BaseInventoryTestCase):
    def setUp(self):
        super().setUp()
        self.item = self.receive(quantity=10).item

    def test_reserve_and_release(self):
        item = services.reserve(item=self.item, quantity=6, reference="SO-1", actor=self.user)
        self.assertEqual(item.quantity_reserved, 6)
        self.assertEqual(item.available_quantity, 4)
        self.assertEqual(item.quantity_on_hand, 10)

        item = services.release(item=self.item, quantity=2, actor=self.user)
        self.assertEqual(item.quantity_reserved, 4)

        types = list(
            InventoryMovement.objects.for_item(self.item)
            .order_by("pk")
            .values_list("movement_type", "quantity")
        )
        self.assertEqual(
            types,
            [
                (InventoryMovement.MovementType.RECEIVE, 10),
                (InventoryMovement.MovementType.RESERVE, 6),
                (InventoryMovement.MovementType.RELEASE, 2),
            ],
        )
        self.assertLedgerBalanced(self.item)

    def test_over_reserving_is_insufficient_inventory(self):
        services.reserve(item=self.item, quantity=8, actor=self.user)
        with self.assertRaises(InsufficientInventory) as ctx:
            services.reserve(item=self.item, quantity=3, actor=self.user)
        self.assertIn("Only 2 units available to reserve", str(ctx.exception))

    def test_release_more_than_reserved_is_invalid(self):
        services.reserve(item=self.item, quantity=2, actor=self.user)
        with self.assertRaises(InvalidOperation) as ctx:
            services.release(item=self.item, quantity=3, actor=self.user)
        self.assertIn("Cannot release 3 - only 2 reserved", str(ctx.exception))

    def test_reserving_quarantined_stock_is_invalid_status(self):
        InventoryItem.objects.filter(pk=self.item.pk).update(status=InventoryItem.Status.QUARANTINED)
        with self.assertRaises(InvalidStatus):
            services.reserve(item=self.item, quantity=1, actor=self.user)


class FifoConsumptionTests(BaseInventoryTestCase):
    def setUp(self):
        super().setUp()
        today = timezone.localdate()
        self.lot_a = self.receive(quantity=5, lot_number="A", expiry_date=today + timedelta(days=5)).item
        self.lot_b = self.receive(quantity=10, lot_number="B", expiry_date=today + timedelta(days=30)).item

    def test_consumes_oldest_expiry_first(self):
        result = services.consume_material(material=self.flour, quantity=8, actor=self.user)

        self.assertTrue(result.is_complete)
        self.assertEqual(result.consumed_total, 8)
        self.assertEqual([(lot.lot_number, lot.quantity) for lot in result.lots], [("A", 5), ("B", 3)])

        deltas = list(
            InventoryAdjustment.objects.of_type(InventoryAdjustment.AdjustmentType.CONSUMPTION)
            .order_by("pk")
            .values_list("inventory_item_id", "delta_qty")
        )
        self.assertEqual(deltas, [(self.lot_a.pk, -5), (self.lot_b.pk, -3)])

        self.lot_a.refresh_from_db()
        self.lot_b.refresh_from_db()
        self.assertEqual(self.lot_a.quantity_on_hand, 0)
        self.assertEqual(self.lot_b.quantity_on_hand, 7)
        self.assertLedgerBalanced(self.lot_a)
        self.assertLedgerBalanced(self.lot_b)

    def test_shortage_is_reported_not_raised(self):
        with self.assertLogs("inventory", level="WARNING"):
            result = services.consume_material(material=self.flour, quantity=100, actor=self.user)
        self.assertFalse(result.is_complete)
        self.assertEqual(result.consumed_total, 15)
        self.assertEqual(result.shortage, 85)
        self.assertEqual(services.get_available_material_stock(self.flour), 0)

    def test_reserved_and_quarantined_stock_is_skipped(self):
        services.reserve(item=self.lot_a, quantity=4, actor=self.user)
        lot_c = self.receive(quantity=50, lot_number="C").item
        InventoryItem.objects.filter(pk=lot_c.pk).update(status=InventoryItem.Status.QUARANTINED)

        result = services.consume_material(material=self.flour, quantity=6, actor=self.user)
        self.assertEqual([(lot.lot_number, lot.quantity) for lot in result.lots], [("A", 1), ("B", 5)])

    def test_lots_without_expiry_come_last(self):
        no_expiry = self.receive(quantity=100, lot_number="N").item
        result = services.consume_material(material=self.flour, quantity=16, actor=self.user)
        self.assertEqual([lot.lot_number for lot in result.lots], ["A", "B", "N"])
        no_expiry.refresh_from_db()
        self.assertEqual(no_expiry.quantity_on_hand, 99)

    def test_shortage_event_waits_for_commit(self):
        self.receive(material=self.sugar, quantity=3, lot_number="S1")
        with self.captureOnCommitCallbacks() as callbacks:
            with self.assertLogs("inventory", level="WARNING") as logs:
                services.consume_material(material=self.sugar, quantity=10, actor=self.user)

        self.assertFalse(any("inventory.handlers" in line for line in logs.output))
        self.assertEqual(len(callbacks), 1)
        with self.assertLogs("inventory.handlers", level="WARNING") as handled:
            callbacks[0]()
        self.assertIn("SUGAR", handled.output[0])

    def test_rolled_back_consumption_emits_no_shortage(self):
        self.receive(material=self.sugar, quantity=3, lot_number="S1")
        with self.captureOnCommitCallbacks() as callbacks, self.assertLogs("inventory", level="WARNING"):
            with self.assertRaises(RuntimeError):
                with transaction.atomic():
                    services.consume_material(material=self.sugar, quantity=10, actor=self.user)
                    raise RuntimeError("abort")
        self.assertEqual(callbacks, [])


class ReceivingTests(BaseInventoryTestCase):
    def test_receive_uses_material_default_location(self):
        result = self.receive(quantity=12, lot_number="L1", reference="PO-7")
        self.assertEqual(result.item.location, self.storeroom)
        self.assertEqual(result.adjustment.adjustment_type, InventoryAdjustment.AdjustmentType.RECEIVING)
        self.assertEqual(result.adjustment.related_entity_type, InventoryAdjustment.RelatedEntity.PURCHASE_ORDER)
        self.assertEqual(result.movement.movement_type, InventoryMovement.MovementType.RECEIVE)
        self.assertEqual(result.movement.to_location, "Storeroom")

    def test_receive_falls_back_to_default_receiving_location(self):
        result = self.receive(material=self.sugar, quantity=3)
        self.assertEqual(result.item.location, self.receiving)

    def test_same_lot_accumulates_on_one_item(self):
        first = self.receive(quantity=3, lot_number="L1")
        second = self.receive(quantity=4, lot_number="L1")
        self.assertEqual(first.item.pk, second.item.pk)
        self.assertEqual(second.new_quantity, 7)

    def test_duplicate_stock_position_violates_unique_constraint(self):
        existing = self.receive(quantity=3, lot_number="U1").item
        self.assertIsNone(existing.product_id)
        self.assertIsNone(existing.expiry_date)

        duplicate = InventoryItem.objects.get(pk=existing.pk)
        duplicate.pk = None
        duplicate._state.adding = True
        with self.assertRaises(ValidationError):
            duplicate.validate_constraints()

        duplicate.lot_number = "U2"
        duplicate.validate_constraints()

    def test_inactive_location_is_rejected(self):
        with self.assertRaises(LocationValidationError):
            self.receive(quantity=1, location=self.closed)

    def test_missing_receiving_location_is_rejected(self):
        Location.objects.filter(pk=self.receiving.pk).update(is_default_receiving=False)
        with self.assertRaises(LocationValidationError):
            self.receive(material=self.sugar, quantity=1)


class MoveAndScrapTests(BaseInventoryTestCase):
    def setUp(self):
        super().setUp()
        self.item = self.receive(quantity=10, lot_number="M1").item

    def test_move_splits_item_across_locations(self):
        result = services.move_inventory(item=self.item, quantity=4, to_location=self.kitchen, actor=self.user)

        self.assertEqual(result.source.quantity_on_hand, 6)
        self.assertEqual(result.destination.quantity_on_hand, 4)
        self.assertEqual(result.destination.location, self.kitchen)
        self.assertEqual(result.destination.lot_number, "M1")

        moves = InventoryMovement.objects.of_type(InventoryMovement.MovementType.MOVE).order_by("pk")
        self.assertEqual([m.quantity for m in moves], [-4, 4])
        for movement in moves:
            self.assertEqual(movement.from_location, "Storeroom")
            self.assertEqual(movement.to_location, "Kitchen")

        self.assertLedgerBalanced(result.source)
        self.assertLedgerBalanced(result.destination)
        self.flour.refresh_from_db()
        self.assertEqual(self.flour.current_stock_qty, 10)

    def test_moves_back_and_forth_between_the_same_two_items(self):
        outbound = services.move_inventory(item=self.item, quantity=6, to_location=self.kitchen, actor=self.user)
        inbound = services.move_inventory(
            item=outbound.destination, quantity=2, to_location=self.storeroom, actor=self.user
        )

        self.assertEqual(inbound.destination.pk, self.item.pk)
        self.assertEqual(inbound.source.pk, outbound.destination.pk)
        self.item.refresh_from_db()
        outbound.destination.refresh_from_db()
        self.assertEqual(self.item.quantity_on_hand, 6)
        self.assertEqual(outbound.destination.quantity_on_hand, 4)
        self.assertLedgerBalanced(self.item)
        self.assertLedgerBalanced(outbound.destination)

    def test_move_respects_reservations(self):
        services.reserve(item=self.item, quantity=8, actor=self.user)
        with self.assertRaises(InsufficientInventory):
            services.move_inventory(item=self.item, quantity=3, to_location=self.kitchen, actor=self.user)

    def test_move_to_same_location_is_invalid(self):
        with self.assertRaises(InvalidInput):
            services.move_inventory(item=self.item, quantity=1, to_location=self.storeroom, actor=self.user)

    def test_scrap_everything_marks_item_scrapped(self):
        result = services.scrap_inventory(item=self.item, quantity=10, reason="Mould", actor=self.user)
        self.assertEqual(result.adjustment.adjustment_type, InventoryAdjustment.AdjustmentType.PRODUCTION_SCRAP)
        self.item.refresh_from_db()
        self.assertEqual(self.item.quantity_on_hand, 0)
        self.assertEqual(self.item.status, InventoryItem.Status.SCRAPPED)


class FinishedGoodsTests(BaseInventoryTestCase):
    def produce(self, quantity, lot):
        return services.produce_finished_goods(
            product=self.cookie,
            quantity=quantity,
            location=self.kitchen,
            lot_number=lot,
            actor=self.user,
        ).item

    def test_produce_creates_product_item(self):
        item = self.produce(12, "C1")
        self.assertEqual(item.kind, InventoryItem.Kind.PRODUCT)
        self.assertEqual(item.source, InventoryItem.Source.PRODUCTION)
        movement = InventoryMovement.objects.for_item(item).get()
        self.assertEqual(movement.movement_type, InventoryMovement.MovementType.PRODUCE)

    def test_allocation_is_all_or_nothing(self):
        first = self.produce(5, "C1")
        second = self.produce(5, "C2")

        allocation = services.allocate_product(product=self.cookie, quantity=7, reference="SO-9", actor=self.user)
        self.assertEqual([(line.item_id, line.quantity) for line in allocation.lines], [(first.pk, 5), (second.pk, 2)])
        self.assertEqual(services.get_available_product_stock(self.cookie), 3)

        with self.assertRaises(InsufficientInventory):
            services.allocate_product(product=self.cookie, quantity=4, actor=self.user)
        self.assertEqual(services.get_available_product_stock(self.cookie), 3)

        services.release_allocation(allocation=allocation, actor=self.user)
        self.assertEqual(services.get_available_product_stock(self.cookie), 10)

    def test_allocation_follows_expiry_not_row_order(self):
        today = timezone.localdate()
        later = services.produce_finished_goods(
            product=self.cookie, quantity=5, location=self.kitchen, lot_number="L",
            expiry_date=today + timedelta(days=20), actor=self.user,
        ).item
        sooner = services.produce_finished_goods(
            product=self.cookie, quantity=5, location=self.kitchen, lot_number="S",
            expiry_date=today + timedelta(days=2), actor=self.user,
        ).item
        self.assertLess(later.pk, sooner.pk)

        allocation = services.allocate_product(product=self.cookie, quantity=6, actor=self.user)
        self.assertEqual([(line.item_id, line.quantity) for line in allocation.lines], [(sooner.pk, 5), (later.pk, 1)])


class QueryTests(BaseInventoryTestCase):
    def setUp(self):
        super().setUp()
        today = timezone.localdate()
        self.soon = self.receive(quantity=5, lot_number="SOON", expiry_date=today + timedelta(days=3)).item
        self.later = self.receive(quantity=5, lot_number="LATER", expiry_date=today + timedelta(days=90)).item
        self.sugar_item = self.receive(material=self.sugar, quantity=5).item

    def test_list_filters_and_orders_by_expiry(self):
        page = queries.get_inventory_list(material=self.flour)
        self.assertEqual(page.total, 2)
        self.assertEqual([item.pk for item in page.items], [self.soon.pk, self.later.pk])

        expiring = queries.get_inventory_list(expiring_within_days=30)
        self.assertEqual([item.pk for item in expiring.items], [self.soon.pk])

        searched = queries.get_inventory_list(search="sugar")
        self.assertEqual([item.pk for item in searched.items], [self.sugar_item.pk])

    def test_list_paginates(self):
        page = queries.get_inventory_list(page=2, page_size=2)
        self.assertEqual(page.total, 3)
        self.assertEqual(page.num_pages, 2)
        self.assertEqual(len(page.items), 1)

    def test_unknown_filter_values_are_invalid(self):
        with self.assertRaises(InvalidInput):
            queries.get_inventory_list(status="LOST")
        with self.assertRaises(InvalidInput):
            queries.get_recent_adjustments(adjustment_type="MAGIC")

    def test_zero_and_negative_sizes_are_invalid(self):
        with self.assertRaises(InvalidInput):
            queries.get_inventory_list(page_size=0)
        with self.assertRaises(InvalidInput):
            queries.get_recent_adjustments(hours=0)
        with self.assertRaises(InvalidInput):
            queries.get_inventory_detail(self.soon, movement_limit=-1)
        with self.assertRaises(InvalidInput):
            queries.get_movement_history(limit=0)

    def test_detail_includes_movements(self):
        services.reserve(item=self.soon, quantity=1, actor=self.user)
        detail = queries.get_inventory_detail(self.soon)
        self.assertEqual(detail.item.pk, self.soon.pk)
        self.assertEqual(len(detail.movements), 2)
        self.assertEqual(detail.movements[0].movement_type, InventoryMovement.MovementType.RESERVE)

    def test_recent_adjustments_and_low_stock(self):
        recent = queries.get_recent_adjustments()
        self.assertEqual(len(recent), 3)

        # Flour sits exactly at its reorder point until one more unit is used.
        self.assertEqual(list(queries.get_low_stock_materials()), [])
        services.consume_material(material=self.flour, quantity=1, actor=self.user)
        self.assertEqual(list(queries.get_low_stock_materials()), [self.flour])

    def test_movement_history_by_location(self):
        history = queries.get_movement_history(location=self.receiving)
        self.assertEqual([m.inventory_item_id for m in history], [self.sugar_item.pk])


class InventoryApiTests(BaseInventoryTestCase):
    def setUp(self):
        super().setUp()
        self.item = self.receive(quantity=9, lot_number="API").item
        self.client.force_login(self.user)

    def test_login_required(self):
        self.client.logout()
        response = self.client.get(reverse("inventory:api_item_list"))
        self.assertEqual(response.status_code, 302)

    def test_item_list(self):
        response = self.client.get(reverse("inventory:api_item_list"), {"kind": "MATERIAL"})
        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(data["count"], 1)
        self.assertEqual(data["results"][0]["sku"], "FLOUR")
        self.assertEqual(data["results"][0]["available_quantity"], 9)

    def test_item_detail_and_adjustments(self):
        detail = self.client.get(reverse("inventory:api_item_detail", args=[self.item.pk])).json()
        self.assertEqual(detail["lot_number"], "API")
        self.assertEqual(detail["movements"][0]["movement_type"], "RECEIVE")

        adjustments = self.client.get(reverse("inventory:api_item_adjustments", args=[self.item.pk])).json()
        self.assertEqual(adjustments["results"][0]["delta_qty"], 9)

    def test_missing_item_returns_404_payload(self):
        response = self.client.get(reverse("inventory:api_item_detail", args=[999999]))
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["error"]["code"], "not_found")

    def test_bad_parameter_returns_400(self):
        response = self.client.get(reverse("inventory:api_item_list"), {"page": "two"})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"]["code"], "invalid_input")

    def test_non_positive_page_size_returns_400(self):
        response = self.client.get(reverse("inventory:api_item_list"), {"page_size": "0"})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"]["code"], "invalid_input")

    def test_low_stock_and_movements(self):
        low = self.client.get(reverse("inventory:api_low_stock_materials")).json()
        self.assertEqual(low["results"][0]["sku"], "FLOUR")

        movements = self.client.get(
            reverse("inventory:api_movement_history"), {"location": self.storeroom.pk}
        ).json()
        self.assertEqual(len(movements["results"]), 1)

    def test_adjustments_csv_export(self):
        response = self.client.get(reverse("inventory:export_adjustments"))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response["Content-Type"], "text/csv")
        content = response.content.decode()
        self.assertIn("adjustment_type", content.splitlines()[0])
        self.assertIn("RECEIVING", content)


class ResourceTests(BaseInventoryTestCase):
    def test_adjustment_export_uses_names(self):
        self.receive(quantity=4)
        dataset = InventoryAdjustmentResource().export(InventoryAdjustment.objects.with_related())
        row = dict(zip(dataset.headers, dataset[0]))
        self.assertEqual(row["item"], "Flour")
        self.assertEqual(row["location"], "Storeroom")
        self.assertEqual(row["created_by"], "operator")

    def test_material_export_writes_location_name(self):
        dataset = RawMaterialResource().export(RawMaterial.objects.filter(pk=self.flour.pk))
        row = dict(zip(dataset.headers, dataset[0]))
        self.assertEqual(row["sku"], "FLOUR")
        self.assertEqual(row["default_location"], "Storeroom")


class SeedCommandTests(TestCase):
    def test_seed_is_idempotent(self):
        call_command("seed_smallbatch_demo", stdout=StringIO())
        call_command("seed_smallbatch_demo", stdout=StringIO())

        self.assertEqual(Product.objects.count(), 2)
        self.assertEqual(BOMItem.objects.count(), 6)
        self.assertEqual(InventoryItem.objects.materials().count(), 5)
        for item in InventoryItem.objects.all():
            self.assertEqual(InventoryAdjustment.objects.for_item(item).total_delta(), item.quantity_on_hand)
        flour = RawMaterial.objects.get(sku="MAT-FLOUR")
        self.assertEqual(flour.current_stock_qty, 25000)


class AdminTests(BaseInventoryTestCase):
    def setUp(self):
        super().setUp()
        self.receive(quantity=3)
        admin_user = get_user_model().objects.create_superuser(username="admin", password="secret", email="a@b.c")
        self.client.force_login(admin_user)

    def test_changelists_render(self):
        for name in (
            "admin:inventory_rawmaterial_changelist",
            "admin:inventory_inventoryitem_changelist",
            "admin:inventory_inventoryadjustment_changelist",
            "admin:inventory_inventorysettings_change",
        ):
            with self.subTest(page=name):
                response = self.client.get(reverse(name))
                self.assertEqual(response.status_code, 200)
