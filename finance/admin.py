from django.contrib import admin

from .models import LedgerTransaction, InterBranchInvoice


@admin.register(LedgerTransaction)
class LedgerTransactionAdmin(admin.ModelAdmin):
    list_display = ['transaction_date', 'business', 'branch', 'transaction_type', 'category', 'amount', 'status']
    search_fields = ['category', 'description']
    list_filter = ['transaction_type', 'status', 'category']
    readonly_fields = ['id', 'created_at']
    ordering = ['-transaction_date']


@admin.register(InterBranchInvoice)
class InterBranchInvoiceAdmin(admin.ModelAdmin):
    list_display = ['invoice_number', 'from_branch', 'to_branch', 'total_amount', 'status', 'invoice_date', 'due_date']
    search_fields = ['invoice_number', 'notes']
    list_filter = ['status', 'invoice_date']
    readonly_fields = ['id', 'created_at']
    ordering = ['-invoice_date']
