# inventory/management/commands/seed_smallbatch_demo.py

from datetime import timedelta
from decimal import Decimal

from django.core.management.base import BaseCommand
from django.db import transaction
from django.utils import timezone

from inventory.models import (
    BOMItem,
    InventoryItem,
    InventorySettings,
    Location,
    Product,
    RawMaterial,
    UnitOfMeasure,
)
from inventory.services import receive_material


class Command(BaseCommand):
    help = "Seed a small demo catalog: locations, raw materials, products, BOMs and opening stock."

    @transaction.atomic
    def handle(self, *args, **options):
        self.stdout.write(self.style.MIGRATE_HEADING("Seeding small-batch demo data..."))

        InventorySettings.get_solo()

        # ============================================================
        # 1) Locations
        # ============================================================
        self.stdout.write(self.style.HTTP_INFO("-> Locations"))

        receiving, _ = Location.objects.get_or_create(
            name="Receiving Dock",
            defaults={"location_type": Location.LocationType.RECEIVING, "is_default_receiving": True},
        )
        storeroom, _ = Location.objects.get_or_create(
            name="Dry Storeroom",
            defaults={"location_type": Location.LocationType.WAREHOUSE},
        )
        kitchen, _ = Location.objects.get_or_create(
            name="Production Kitchen",
            defaults={"location_type": Location.LocationType.PRODUCTION},
        )
        Location.objects.get_or_create(
            name="QC Quarantine",
            defaults={"location_type": Location.LocationType.QUARANTINE},
        )
        Location.objects.get_or_create(
            name="Shop Floor",
            defaults={"location_type": Location.LocationType.RETAIL, "is_default_shipping": True},
        )

        # ============================================================
        # 2) Raw materials
        # ============================================================
        self.stdout.write(self.style.HTTP_INFO("-> Raw materials"))

        def material(sku, name, uom, cost, reorder_point, category=""):
            obj, _ = RawMaterial.objects.get_or_create(
                sku=sku,
                defaults={
                    "name": name,
                    "category": category,
                    "unit_of_measure": uom,
                    "cost_per_unit": cost,
                    "reorder_point": reorder_point,
                    "reorder_quantity": reorder_point * 2,
                    "default_location": storeroom,
                },
            )
            return obj

        flour = material("MAT-FLOUR", "Bread flour", UnitOfMeasure.GRAM, Decimal("0.0020"), 5000, "Dry goods")
        sugar = material("MAT-SUGAR", "Cane sugar", UnitOfMeasure.GRAM, Decimal("0.0030"), 2000, "Dry goods")
        butter = material("MAT-BUTTER", "Unsalted butter", UnitOfMeasure.GRAM, Decimal("0.0120"), 1000, "Dairy")
        jars = material("MAT-JAR", "Glass jar 250ml", UnitOfMeasure.EACH, Decimal("0.4500"), 100, "Packaging")

        # ============================================================
        # 3) Products and BOMs
        # ============================================================
        self.stdout.write(self.style.HTTP_INFO("-> Products and BOMs"))

        shortbread, _ = Product.objects.get_or_create(
            sku="PRD-SHORTBREAD",
            defaults={
                "name": "Shortbread tin",
                "unit_of_measure": UnitOfMeasure.UNIT,
                "default_batch_size": 24,
                "shelf_life_days": 60,
                "default_location": kitchen,
                "manufacturing_steps": [
                    {"title": "Mix", "instructions": "Cream butter and sugar, fold in flour."},
                    {"title": "Bake", "instructions": "Bake at 160C for 25 minutes."},
                    {"title": "Pack", "instructions": "Cool and pack into tins."},
                ],
            },
        )
        caramel, _ = Product.objects.get_or_create(
            sku="PRD-CARAMEL",
            defaults={
                "name": "Salted caramel jar",
                "unit_of_measure": UnitOfMeasure.UNIT,
                "default_batch_size": 12,
                "shelf_life_days": 120,
                "default_location": kitchen,
                "manufacturing_steps": [
                    {"title": "Cook", "instructions": "Cook sugar to amber."},
                    {"title": "Finish", "instructions": "Whisk in butter and salt."},
                    {"title": "Fill", "instructions": "Fill and seal jars while hot."},
                ],
            },
        )

        for product, mat, per_unit in (
            (shortbread, flour, Decimal("150")),
            (shortbread, sugar, Decimal("50")),
            (shortbread, butter, Decimal("100")),
            (caramel, sugar, Decimal("180")),
            (caramel, butter, Decimal("60")),
            (caramel, jars, Decimal("1")),
        ):
            BOMItem.objects.get_or_create(
                product=product,
                material=mat,
                version=1,
                defaults={"quantity_per_unit": per_unit},
            )

        # ============================================================
        # 4) Opening stock (through the ledger)
        # ============================================================
        if InventoryItem.objects.materials().exists():
            self.stdout.write(self.style.WARNING("Material stock already present, skipping opening receipts."))
        else:
            self.stdout.write(self.style.HTTP_INFO("-> Opening receipts"))
            today = timezone.localdate()

            receipts = (
                (flour, 10000, "FL-001", today + timedelta(days=90)),
                (flour, 15000, "FL-002", today + timedelta(days=180)),
                (sugar, 8000, "SU-001", None),
                (butter, 4000, "BU-001", today + timedelta(days=21)),
                (jars, 144, "JR-001", None),
            )
            for mat, qty, lot, expiry in receipts:
                result = receive_material(
                    material=mat,
                    quantity=qty,
                    location=receiving,
                    lot_number=lot,
                    expiry_date=expiry,
                    reason="Opening balance",
                    reference=f"DEMO-{lot}",
                )
                self.stdout.write(f"   - {mat.sku} lot {lot}: {result.new_quantity} on hand")

        self.stdout.write(self.style.SUCCESS("Demo data ready."))
