from django.core.management.base import BaseCommand, CommandError

from inventory.ledger import reconcile_item
from inventory.models import Item


class Command(BaseCommand):
    help = "Compare every item's stored quantities with the sum of its stock movements."

    def add_arguments(self, parser):
        parser.add_argument(
            "--sku",
            action="append",
            default=[],
            help="Only check the given SKU. May be repeated.",
        )
        parser.add_argument(
            "--fail-on-drift",
            action="store_true",
            help="Exit with an error when any item is out of balance.",
        )

    def handle(self, *args, **options):
        items = Item.objects.order_by("sku")
        if options["sku"]:
            items = items.filter(sku__in=options["sku"])

        drifted = []
        checked = 0
        for item in items.iterator():
            checked += 1
            report = reconcile_item(item)
            if not report["is_consistent"]:
                drifted.append(report)

        if not drifted:
            self.stdout.write(self.style.SUCCESS(f"Checked {checked} item(s); ledger is consistent."))
            return

        self.stdout.write(self.style.WARNING(f"Found {len(drifted)} item(s) out of balance."))
        for report in drifted:
            self.stdout.write(
                f"- {report['sku']}: quantity={report['quantity']} ledger_total={report['ledger_total']} "
                f"reserved={report['reserved_quantity']} available={report['available_quantity']}"
            )

        if options["fail_on_drift"]:
            raise CommandError("Ledger drift detected.")
