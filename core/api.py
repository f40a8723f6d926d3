"""
Core API - session info endpoint.
"""

from drf_spectacular.utils import extend_schema
from rest_framework import serializers
from rest_framework.response import Response
from rest_framework.views import APIView


class SessionUserSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    email = serializers.EmailField()
    first_name = serializers.CharField(allow_blank=True)
    last_name = serializers.CharField(allow_blank=True)
    phone = serializers.CharField(allow_blank=True)
    role = serializers.CharField(allow_blank=True)
    status = serializers.CharField()


class SessionInfoView(APIView):
    """
    GET /api/session/

    Public fields of the signed-in user. The access token is never exposed.
    """

    @extend_schema(responses=SessionUserSerializer)
    def get(self, request):
        return Response(SessionUserSerializer(request.user.public_data()).data)
