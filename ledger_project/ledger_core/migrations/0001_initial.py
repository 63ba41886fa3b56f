import django.core.serializers.json
import django.db.models.deletion
import ledger_core.models.booklet
from decimal import Decimal

from django.conf import settings
from django.db import migrations, models


def _money(**kwargs):
    return models.DecimalField(decimal_places=2, max_digits=18, **kwargs)


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Account",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=200, unique=True)),
                ("opening_balance", _money(default=Decimal("0.00"))),
                ("cash_balance", _money(default=Decimal("0.00"))),
                ("bank_balance", _money(default=Decimal("0.00"))),
                ("closing_balance", _money(default=Decimal("0.00"))),
                ("last_closed_date", models.DateField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ("name",),
            },
        ),
        migrations.CreateModel(
            name="Booklet",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("booklet_no", models.CharField(max_length=50, unique=True)),
                ("start_no", models.PositiveIntegerField()),
                ("end_no", models.PositiveIntegerField()),
                ("pages_left", models.JSONField(blank=True, default=ledger_core.models.booklet._empty_pages)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "ordering": ("start_no",),
                "indexes": [models.Index(fields=["is_active"], name="booklet_active_idx")],
            },
        ),
        migrations.CreateModel(
            name="Donor",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=200)),
                ("phone", models.CharField(blank=True, max_length=30, null=True)),
                ("email", models.EmailField(blank=True, max_length=254, null=True)),
                ("address", models.TextField(blank=True, null=True)),
            ],
            options={
                "ordering": ("name",),
            },
        ),
        migrations.CreateModel(
            name="AuditLog",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("action", models.CharField(max_length=50)),
                ("object_type", models.CharField(max_length=100)),
                ("object_id", models.CharField(max_length=100)),
                ("changes", models.JSONField(blank=True, encoder=django.core.serializers.json.DjangoJSONEncoder, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("user", models.ForeignKey(
                    blank=True, null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    to=settings.AUTH_USER_MODEL,
                )),
            ],
            options={
                "ordering": ("-created_at",),
                "indexes": [
                    models.Index(fields=["action", "created_at"], name="audit_action_created_idx"),
                    models.Index(fields=["object_type", "object_id"], name="audit_object_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="LedgerHead",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=200)),
                ("head_type", models.CharField(
                    choices=[("debit", "Debit"), ("credit", "Credit")], default="credit", max_length=6,
                )),
                ("description", models.TextField(blank=True, null=True)),
                ("current_balance", _money(default=Decimal("0.00"))),
                ("cash_balance", _money(default=Decimal("0.00"))),
                ("bank_balance", _money(default=Decimal("0.00"))),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("account", models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name="ledger_heads", to="ledger_core.account",
                )),
            ],
            options={
                "ordering": ("account", "name"),
                "indexes": [models.Index(fields=["account", "head_type"], name="ledger_head_acct_type_idx")],
                "constraints": [
                    models.UniqueConstraint(fields=("account", "name"), name="uq_account_ledger_head_name"),
                ],
            },
        ),
        migrations.CreateModel(
            name="MonthlyLedgerBalance",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("month", models.PositiveSmallIntegerField()),
                ("year", models.PositiveSmallIntegerField()),
                ("opening_balance", _money(default=Decimal("0.00"))),
                ("receipts", _money(default=Decimal("0.00"))),
                ("payments", _money(default=Decimal("0.00"))),
                ("closing_balance", _money(default=Decimal("0.00"))),
                ("cash_in_hand", _money(default=Decimal("0.00"))),
                ("cash_in_bank", _money(default=Decimal("0.00"))),
                ("is_open", models.BooleanField(default=False)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("account", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name="monthly_balances", to="ledger_core.account",
                )),
                ("ledger_head", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name="monthly_balances", to="ledger_core.ledgerhead",
                )),
            ],
            options={
                "ordering": ("ledger_head", "year", "month"),
                "indexes": [
                    models.Index(fields=["ledger_head", "year", "month"], name="mlb_head_period_idx"),
                    models.Index(fields=["account", "is_open"], name="mlb_account_open_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("account", "ledger_head", "month", "year"), name="uq_monthly_balance_key",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("month__gte", 1), ("month__lte", 12)),
                        name="monthly_balance_month_range",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Transaction",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("receipt_no", models.PositiveIntegerField(blank=True, null=True)),
                ("amount", _money()),
                ("cash_amount", _money(default=Decimal("0.00"))),
                ("bank_amount", _money(default=Decimal("0.00"))),
                ("tx_type", models.CharField(choices=[("credit", "Credit"), ("debit", "Debit")], max_length=6)),
                ("cash_type", models.CharField(
                    choices=[
                        ("cash", "Cash"),
                        ("bank", "Bank"),
                        ("cheque", "Cheque"),
                        ("multiple", "Multiple"),
                        ("other", "Other"),
                    ],
                    default="cash", max_length=10,
                )),
                ("tx_date", models.DateField()),
                ("description", models.TextField(blank=True, null=True)),
                ("status", models.CharField(
                    choices=[("pending", "Pending"), ("completed", "Completed"), ("cancelled", "Cancelled")],
                    default="completed", max_length=10,
                )),
                ("cheque_number", models.CharField(blank=True, max_length=50, null=True)),
                ("bank_name", models.CharField(blank=True, max_length=200, null=True)),
                ("cheque_date", models.DateField(blank=True, null=True)),
                ("due_date", models.DateField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("account", models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name="transactions", to="ledger_core.account",
                )),
                ("booklet", models.ForeignKey(
                    blank=True, null=True,
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name="transactions", to="ledger_core.booklet",
                )),
                ("created_by", models.ForeignKey(
                    blank=True, null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    to=settings.AUTH_USER_MODEL,
                )),
                ("donor", models.ForeignKey(
                    blank=True, null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    related_name="transactions", to="ledger_core.donor",
                )),
                ("ledger_head", models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name="transactions", to="ledger_core.ledgerhead",
                )),
            ],
            options={
                "ordering": ("tx_date", "id"),
                "indexes": [
                    models.Index(fields=["account", "tx_date"], name="tx_account_date_idx"),
                    models.Index(fields=["ledger_head", "tx_date"], name="tx_head_date_idx"),
                    models.Index(fields=["status"], name="tx_status_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(fields=("booklet", "receipt_no"), name="uq_transaction_booklet_receipt"),
                    models.CheckConstraint(condition=models.Q(("amount__gt", 0)), name="transaction_amount_positive"),
                ],
            },
        ),
        migrations.CreateModel(
            name="TransactionItem",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("amount", _money()),
                ("side", models.CharField(choices=[("+", "Increase"), ("-", "Decrease")], max_length=1)),
                ("ledger_head", models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name="items", to="ledger_core.ledgerhead",
                )),
                ("transaction", models.ForeignKey(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name="items", to="ledger_core.transaction",
                )),
            ],
            options={
                "indexes": [models.Index(fields=["ledger_head", "side"], name="tx_item_head_side_idx")],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("amount__gt", 0)), name="transaction_item_amount_positive",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Cheque",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("cheque_number", models.CharField(max_length=50)),
                ("bank_name", models.CharField(max_length=200)),
                ("issue_date", models.DateField()),
                ("due_date", models.DateField()),
                ("status", models.CharField(
                    choices=[("pending", "Pending"), ("cleared", "Cleared"), ("cancelled", "Cancelled")],
                    default="pending", max_length=10,
                )),
                ("clearing_date", models.DateField(blank=True, null=True)),
                ("description", models.TextField(blank=True, null=True)),
                ("account", models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name="cheques", to="ledger_core.account",
                )),
                ("ledger_head", models.ForeignKey(
                    on_delete=django.db.models.deletion.PROTECT,
                    related_name="cheques", to="ledger_core.ledgerhead",
                )),
                ("transaction", models.OneToOneField(
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name="cheque", to="ledger_core.transaction",
                )),
            ],
            options={
                "indexes": [models.Index(fields=["account", "status"], name="cheque_account_status_idx")],
                "constraints": [
                    models.UniqueConstraint(fields=("account", "cheque_number"), name="uq_account_cheque_number"),
                ],
            },
        ),
    ]
