from django.urls import path

from .views import (
    ConsolidatedReportView,
    ConsolidatedFinancialReportView,
    DailySalesSummaryView,
)

urlpatterns = [
    path('api/consolidated/', ConsolidatedReportView.as_view(), name='consolidated-report'),
    path('api/consolidated-financial/', ConsolidatedFinancialReportView.as_view(),
         name='consolidated-financial-report'),
    path('api/daily-sales-summary/', DailySalesSummaryView.as_view(), name='daily-sales-summary'),
]
