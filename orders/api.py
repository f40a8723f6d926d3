"""
Orders API - live cost estimate for the schedule page.
"""

import logging

from drf_spectacular.utils import extend_schema
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from core.backend import BackendError, BackendAuthError
from subscriptions.services import SubscriptionService

from .pricing import CostCalculator, tip_presets
from .serializers import CostEstimateRequestSerializer, CostEstimateSerializer
from .services import CatalogService

logger = logging.getLogger(__name__)


class CostEstimateAPIView(APIView):
    """
    POST /api/orders/estimate/

    Request body:
    {
        "items": [{"service_id": 1, "quantity": 2}],
        "tip": "5.00"
    }

    Response: the cost breakdown plus tip presets, computed with the
    signed-in user's subscription usage.
    """

    @extend_schema(request=CostEstimateRequestSerializer, responses=CostEstimateSerializer)
    def post(self, request):
        serializer = CostEstimateRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            services = CatalogService.list_services()
            usage = SubscriptionService.usage(request._request)
        except BackendAuthError:
            raise
        except BackendError as e:
            logger.error(f"Cost estimate failed: {e.message}")
            return Response(
                {'detail': 'Pricing is temporarily unavailable.'},
                status=status.HTTP_502_BAD_GATEWAY
            )

        calculation = CostCalculator().calculate(data['items'], services, usage, data['tip'])
        payload = calculation.as_dict()
        payload['tip_presets'] = [
            {'percentage': percentage, 'amount': amount}
            for percentage, amount in tip_presets(calculation.final_subtotal)
        ]
        return Response(CostEstimateSerializer(payload).data)
