from django.contrib import admin

from .models import Branch, Category, Product, BranchStock


@admin.register(Branch)
class BranchAdmin(admin.ModelAdmin):
    list_display = ['name', 'code', 'business', 'region', 'city', 'is_active', 'created_at']
    search_fields = ['name', 'code', 'city', 'business__name']
    list_filter = ['region', 'is_active', 'created_at']
    readonly_fields = ['id', 'created_at', 'updated_at']
    ordering = ['name']


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ['name', 'business', 'created_at']
    search_fields = ['name']
    readonly_fields = ['id', 'created_at']
    ordering = ['name']


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ['name', 'sku', 'business', 'category', 'cost', 'price', 'is_active']
    search_fields = ['name', 'sku']
    list_filter = ['category', 'is_active']
    readonly_fields = ['id', 'created_at', 'updated_at']
    ordering = ['name']


@admin.register(BranchStock)
class BranchStockAdmin(admin.ModelAdmin):
    list_display = ['product', 'branch', 'quantity', 'updated_at']
    search_fields = ['product__name', 'product__sku', 'branch__name']
    list_filter = ['branch']
    readonly_fields = ['id', 'updated_at']
