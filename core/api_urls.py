from django.urls import path

from .api import SessionInfoView

urlpatterns = [
    path('session/', SessionInfoView.as_view(), name='api-session'),
]
