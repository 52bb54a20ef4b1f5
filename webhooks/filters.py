"""
Webhook log filters
"""
from django_filters import rest_framework as filters

from .models import WebhookLog


class WebhookLogFilter(filters.FilterSet):
    """Filtering for the dispatch log listing"""

    branchId = filters.UUIDFilter(field_name='branch_id')
    event = filters.CharFilter(field_name='event')
    status = filters.MultipleChoiceFilter(
        choices=WebhookLog.STATUS_CHOICES,
        conjoined=False  # OR logic
    )
    date_from = filters.DateTimeFilter(field_name='created_at', lookup_expr='gte')
    date_to = filters.DateTimeFilter(field_name='created_at', lookup_expr='lte')

    class Meta:
        model = WebhookLog
        fields = ['branchId', 'event', 'status', 'date_from', 'date_to']
