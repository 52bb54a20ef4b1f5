import uuid

from django.conf import settings
from django.db import models

from accounts.models import Business
from inventory.models import Branch


class Webhook(models.Model):
    """A tenant-registered endpoint subscribed to one event."""
    EVENT_DAILY_SALES_SUMMARY = 'daily_sales_summary'
    EVENT_CHOICES = [
        (EVENT_DAILY_SALES_SUMMARY, 'Daily sales summary'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    business = models.ForeignKey(Business, on_delete=models.CASCADE, related_name='webhooks')
    branch = models.ForeignKey(
        Branch, on_delete=models.CASCADE, null=True, blank=True, related_name='webhooks',
        help_text='Leave empty to receive events for every branch'
    )
    name = models.CharField(max_length=255)
    url = models.URLField(max_length=500)
    event = models.CharField(max_length=50, choices=EVENT_CHOICES, db_index=True)
    secret_key = models.CharField(max_length=255, blank=True, default='')
    headers = models.JSONField(default=dict, blank=True)
    timeout_seconds = models.PositiveIntegerField(default=30)
    retry_count = models.PositiveIntegerField(default=3)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'webhooks'
        ordering = ['name']
        indexes = [
            models.Index(fields=['business', 'event', 'is_active'], name='webhook_biz_event_active_idx'),
        ]

    def __str__(self):
        return f"{self.name} ({self.event})"


class WebhookLog(models.Model):
    """One delivery of an event to a webhook, updated as attempts are made."""
    STATUS_PENDING = 'pending'
    STATUS_SUCCESS = 'success'
    STATUS_RETRYING = 'retrying'
    STATUS_FAILED = 'failed'
    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_SUCCESS, 'Success'),
        (STATUS_RETRYING, 'Retrying'),
        (STATUS_FAILED, 'Failed'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    webhook = models.ForeignKey(Webhook, on_delete=models.CASCADE, related_name='logs')
    business = models.ForeignKey(Business, on_delete=models.CASCADE, related_name='webhook_logs')
    branch = models.ForeignKey(
        Branch, on_delete=models.SET_NULL, null=True, blank=True, related_name='webhook_logs'
    )
    event = models.CharField(max_length=50, db_index=True)
    payload = models.JSONField(default=dict)
    attempt = models.PositiveIntegerField(default=0)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING)
    response_status = models.PositiveIntegerField(null=True, blank=True)
    response_body = models.TextField(blank=True, default='')
    duration_ms = models.PositiveIntegerField(null=True, blank=True)
    error_message = models.TextField(blank=True, default='')
    next_retry_at = models.DateTimeField(null=True, blank=True)
    triggered_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True,
        related_name='triggered_webhook_logs'
    )
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'webhook_logs'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['business', 'created_at'], name='webhook_log_biz_created_idx'),
            models.Index(fields=['branch', 'created_at'], name='webhook_log_branch_created_idx'),
        ]

    def __str__(self):
        return f"{self.event} -> {self.webhook.url} [{self.status}]"
