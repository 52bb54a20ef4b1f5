from django.contrib import admin

from .models import Customer, Shift, Sale, SaleItem


class SaleItemInline(admin.TabularInline):
    model = SaleItem
    extra = 0
    fields = ['product', 'quantity', 'unit_price']


@admin.register(Sale)
class SaleAdmin(admin.ModelAdmin):
    list_display = ['receipt_number', 'branch', 'status', 'payment_method', 'total_amount', 'transaction_date']
    search_fields = ['receipt_number', 'customer_name', 'customer__name']
    list_filter = ['status', 'payment_method', 'branch', 'transaction_date']
    readonly_fields = ['id', 'created_at']
    inlines = [SaleItemInline]
    ordering = ['-transaction_date']


@admin.register(Shift)
class ShiftAdmin(admin.ModelAdmin):
    list_display = ['shift_name', 'branch', 'shift_date', 'opened_at', 'closed_at', 'cash_difference']
    list_filter = ['branch', 'shift_date']
    readonly_fields = ['id']


@admin.register(Customer)
class CustomerAdmin(admin.ModelAdmin):
    list_display = ['name', 'business', 'email', 'phone', 'is_active']
    search_fields = ['name', 'email', 'phone']
    readonly_fields = ['id', 'created_at']
