from django.urls import path

from .api import CostEstimateAPIView

urlpatterns = [
    path('estimate/', CostEstimateAPIView.as_view(), name='api-cost-estimate'),
]
