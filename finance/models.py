import uuid
from decimal import Decimal

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models
from django.utils import timezone

from accounts.models import Business
from inventory.models import Branch


class LedgerTransaction(models.Model):
    """Income, expense or transfer recorded against a branch ledger."""
    TYPE_INCOME = 'income'
    TYPE_EXPENSE = 'expense'
    TYPE_TRANSFER = 'transfer'
    TYPE_CHOICES = [
        (TYPE_INCOME, 'Income'),
        (TYPE_EXPENSE, 'Expense'),
        (TYPE_TRANSFER, 'Transfer'),
    ]

    STATUS_PENDING = 'pending'
    STATUS_COMPLETED = 'completed'
    STATUS_CANCELLED = 'cancelled'
    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_CANCELLED, 'Cancelled'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    business = models.ForeignKey(Business, on_delete=models.CASCADE, related_name='ledger_transactions')
    branch = models.ForeignKey(Branch, on_delete=models.PROTECT, related_name='ledger_transactions')
    transaction_type = models.CharField(max_length=20, choices=TYPE_CHOICES)
    category = models.CharField(max_length=100)
    description = models.TextField(blank=True, default='')
    amount = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.00'))]
    )
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_COMPLETED)
    transaction_date = models.DateTimeField(default=timezone.now, db_index=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
        related_name='ledger_transactions'
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'finance_transactions'
        ordering = ['-transaction_date']
        indexes = [
            models.Index(fields=['business', 'transaction_type', 'transaction_date'], name='fin_txn_biz_type_date_idx'),
            models.Index(fields=['branch', 'transaction_date'], name='fin_txn_branch_date_idx'),
        ]

    def __str__(self):
        return f"{self.get_transaction_type_display()} {self.category}: {self.amount}"


class InterBranchInvoice(models.Model):
    """An invoice raised by one branch (sender) against another (receiver)."""
    STATUS_DRAFT = 'draft'
    STATUS_SENT = 'sent'
    STATUS_VIEWED = 'viewed'
    STATUS_PAID = 'paid'
    STATUS_OVERDUE = 'overdue'
    STATUS_CANCELLED = 'cancelled'
    STATUS_CHOICES = [
        (STATUS_DRAFT, 'Draft'),
        (STATUS_SENT, 'Sent'),
        (STATUS_VIEWED, 'Viewed'),
        (STATUS_PAID, 'Paid'),
        (STATUS_OVERDUE, 'Overdue'),
        (STATUS_CANCELLED, 'Cancelled'),
    ]
    PENDING_STATUSES = (STATUS_SENT, STATUS_VIEWED)
    UNPAID_STATUSES = (STATUS_SENT, STATUS_VIEWED, STATUS_OVERDUE)

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    business = models.ForeignKey(Business, on_delete=models.CASCADE, related_name='inter_branch_invoices')
    invoice_number = models.CharField(max_length=50, unique=True)
    from_branch = models.ForeignKey(Branch, on_delete=models.PROTECT, related_name='invoices_sent')
    to_branch = models.ForeignKey(Branch, on_delete=models.PROTECT, related_name='invoices_received')
    total_amount = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        default=Decimal('0.00'),
        validators=[MinValueValidator(Decimal('0.00'))]
    )
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_DRAFT, db_index=True)
    invoice_date = models.DateTimeField(default=timezone.now, db_index=True)
    due_date = models.DateField(null=True, blank=True)
    paid_date = models.DateTimeField(null=True, blank=True)
    notes = models.TextField(blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'inter_branch_invoices'
        ordering = ['-invoice_date']
        indexes = [
            models.Index(fields=['from_branch', 'to_branch'], name='ibi_from_to_idx'),
            models.Index(fields=['due_date'], name='ibi_due_date_idx'),
        ]

    def __str__(self):
        return f"{self.invoice_number}: {self.from_branch.code} -> {self.to_branch.code}"
