from rest_framework import serializers

from .models import WebhookLog


class WebhookLogSerializer(serializers.ModelSerializer):
    """Dispatch log entry as returned by the daily sales summary listing."""
    webhookId = serializers.UUIDField(source='webhook_id', read_only=True)
    webhookName = serializers.CharField(source='webhook.name', read_only=True)
    webhookUrl = serializers.CharField(source='webhook.url', read_only=True)
    tenantId = serializers.UUIDField(source='business_id', read_only=True)
    branchId = serializers.UUIDField(source='branch_id', read_only=True, allow_null=True)
    branchName = serializers.CharField(source='branch.name', read_only=True, default=None)
    responseStatus = serializers.IntegerField(source='response_status', read_only=True, allow_null=True)
    durationMs = serializers.IntegerField(source='duration_ms', read_only=True, allow_null=True)
    errorMessage = serializers.CharField(source='error_message', read_only=True)
    nextRetryAt = serializers.DateTimeField(source='next_retry_at', read_only=True, allow_null=True)
    triggeredBy = serializers.SerializerMethodField()
    createdAt = serializers.DateTimeField(source='created_at', read_only=True)
    updatedAt = serializers.DateTimeField(source='updated_at', read_only=True)

    class Meta:
        model = WebhookLog
        fields = [
            'id', 'webhookId', 'webhookName', 'webhookUrl', 'tenantId', 'branchId', 'branchName',
            'event', 'status', 'attempt', 'responseStatus', 'durationMs', 'errorMessage',
            'nextRetryAt', 'triggeredBy', 'payload', 'createdAt', 'updatedAt',
        ]
        read_only_fields = fields

    def get_triggeredBy(self, obj):
        if not obj.triggered_by_id:
            return None
        return {
            'id': str(obj.triggered_by_id),
            'name': obj.triggered_by.name,
            'email': obj.triggered_by.email,
        }
