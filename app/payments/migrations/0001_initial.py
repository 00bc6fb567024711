import uuid

import django.db.models.deletion
import django_fsm
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("listings", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Payment",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "amount",
                    models.PositiveIntegerField(
                        help_text="Amount in whole currency units (M-Pesa rejects fractions)"
                    ),
                ),
                (
                    "currency",
                    models.CharField(default="KES", help_text="ISO 4217 currency code", max_length=3),
                ),
                (
                    "payment_type",
                    models.CharField(
                        choices=[
                            ("new_listing", "New listing"),
                            ("renewal", "Renewal"),
                            ("upgrade", "Upgrade"),
                        ],
                        help_text="What the payment buys (new listing, renewal, upgrade)",
                        max_length=20,
                    ),
                ),
                (
                    "tier",
                    models.CharField(
                        choices=[("standard", "Standard"), ("featured", "Featured")],
                        default="standard",
                        help_text="Plan tier the amount was priced at",
                        max_length=20,
                    ),
                ),
                (
                    "provider",
                    models.CharField(
                        default="mpesa", help_text="Payment provider adapter name", max_length=30
                    ),
                ),
                (
                    "phone_number",
                    models.CharField(
                        blank=True,
                        help_text="Normalized payer phone number (2547XXXXXXXX)",
                        max_length=20,
                        null=True,
                    ),
                ),
                (
                    "merchant_request_id",
                    models.CharField(
                        blank=True,
                        help_text="Provider id assigned when the charge was accepted",
                        max_length=100,
                        null=True,
                    ),
                ),
                (
                    "checkout_request_id",
                    models.CharField(
                        blank=True,
                        help_text="Provider id used for status queries and callbacks",
                        max_length=100,
                        null=True,
                        unique=True,
                    ),
                ),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=[
                            ("pending", "Pending"),
                            ("processing", "Processing"),
                            ("completed", "Completed"),
                            ("failed", "Failed"),
                            ("refunded", "Refunded"),
                        ],
                        db_index=True,
                        default="pending",
                        help_text="Current state of the payment (managed by FSM)",
                        max_length=50,
                    ),
                ),
                (
                    "result_code",
                    models.IntegerField(
                        blank=True, help_text="Provider result code of the final answer", null=True
                    ),
                ),
                (
                    "result_description",
                    models.TextField(
                        blank=True, help_text="Human-readable outcome, populated on failure", null=True
                    ),
                ),
                (
                    "provider_receipt",
                    models.CharField(
                        blank=True,
                        db_index=True,
                        help_text="Provider transaction receipt (e.g. M-Pesa receipt number)",
                        max_length=100,
                        null=True,
                    ),
                ),
                (
                    "provider_transaction_at",
                    models.DateTimeField(
                        blank=True, help_text="When the provider says the money moved", null=True
                    ),
                ),
                (
                    "confirmed_amount",
                    models.DecimalField(
                        blank=True,
                        decimal_places=2,
                        help_text="Amount confirmed by the provider callback",
                        max_digits=12,
                        null=True,
                    ),
                ),
                (
                    "confirmed_phone_number",
                    models.CharField(
                        blank=True,
                        help_text="Phone number confirmed by the provider callback",
                        max_length=20,
                        null=True,
                    ),
                ),
                ("term_start", models.DateTimeField(help_text="Start of the coverage window")),
                ("term_end", models.DateTimeField(help_text="End of the coverage window")),
                ("submitted_at", models.DateTimeField(blank=True, null=True)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                ("failed_at", models.DateTimeField(blank=True, null=True)),
                ("refunded_at", models.DateTimeField(blank=True, null=True)),
                (
                    "metadata",
                    models.JSONField(
                        blank=True, default=dict, help_text="Arbitrary JSON metadata for extensibility"
                    ),
                ),
                (
                    "listing",
                    models.ForeignKey(
                        help_text="Listing this payment buys a term for",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payments",
                        to="listings.listing",
                    ),
                ),
                (
                    "payer",
                    models.ForeignKey(
                        help_text="User making the payment",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payments",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["status", "submitted_at"], name="payment_status_submitted_idx"),
                    models.Index(fields=["payer", "created_at"], name="payment_payer_created_idx"),
                    models.Index(fields=["listing", "status"], name="payment_listing_status_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("amount__gt", 0)),
                        name="payment_amount_positive",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("term_end__gt", models.F("term_start"))),
                        name="payment_term_end_after_start",
                    ),
                ],
            },
        ),
    ]
