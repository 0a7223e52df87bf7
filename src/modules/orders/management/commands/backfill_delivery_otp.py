from __future__ import annotations

from django.core.management.base import BaseCommand
from django.db import transaction
from django.db.models import F, Q
from django.utils import timezone

from modules.orders.constants import DELIVERY_ELIGIBLE_STATES
from modules.orders.models import Order
from modules.orders.otp import backfill_delivery_otp

OTP_FIELDS = ("delivery_otp_code", "delivery_otp_generated_at", "delivery_otp_verified")


class Command(BaseCommand):
    help = "Generate delivery OTPs for orders already in a delivery status without one."

    def add_arguments(self, parser):
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Report the affected orders without saving anything.",
        )

    def handle(self, *args, **options):
        dry_run = options["dry_run"]
        with transaction.atomic():
            candidates = (
                Order.objects.select_for_update()
                .filter(status__in=DELIVERY_ELIGIBLE_STATES)
                .filter(Q(delivery_otp_code__isnull=True) | Q(delivery_otp_code=""))
            )
            updated = backfill_delivery_otp(candidates, timezone.now())

            for order in updated:
                self.stdout.write(f"{order.order_number} ({order.status})")
                if dry_run:
                    continue
                Order.objects.filter(id=order.id).update(
                    **{field: getattr(order, field) for field in OTP_FIELDS},
                    version=F("version") + 1,
                    updated_at=timezone.now(),
                )

        verb = "Would backfill" if dry_run else "Backfilled"
        self.stdout.write(self.style.SUCCESS(f"{verb} {len(updated)} order(s)."))
