from django.contrib import admin

from .models import Webhook, WebhookLog


@admin.register(Webhook)
class WebhookAdmin(admin.ModelAdmin):
    list_display = ['name', 'business', 'branch', 'event', 'url', 'is_active', 'created_at']
    search_fields = ['name', 'url', 'business__name']
    list_filter = ['event', 'is_active', 'created_at']
    readonly_fields = ['id', 'created_at', 'updated_at']
    ordering = ['name']


@admin.register(WebhookLog)
class WebhookLogAdmin(admin.ModelAdmin):
    list_display = ['event', 'webhook', 'business', 'branch', 'status', 'attempt', 'response_status', 'created_at']
    search_fields = ['webhook__name', 'webhook__url', 'error_message']
    list_filter = ['status', 'event', 'created_at']
    readonly_fields = [
        'id', 'webhook', 'business', 'branch', 'event', 'payload', 'attempt', 'status',
        'response_status', 'response_body', 'duration_ms', 'error_message', 'next_retry_at',
        'triggered_by', 'created_at', 'updated_at',
    ]
    ordering = ['-created_at']
