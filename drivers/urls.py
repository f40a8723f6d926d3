"""
DRIVERS App - URL Configuration

Driver routes, deliveries and earnings; apply-to-drive for customers.
"""

from django.urls import path
from . import views

app_name = 'drivers'

urlpatterns = [
    # Routes
    path('routes/', views.RoutesView.as_view(), name='routes'),
    path('routes/<int:route_id>/start/', views.StartRouteView.as_view(), name='start-route'),
    path('routes/stops/<int:stop_id>/status/', views.UpdateStopView.as_view(), name='update-stop'),

    # History
    path('deliveries/', views.DeliveriesView.as_view(), name='deliveries'),
    path('earnings/', views.EarningsView.as_view(), name='earnings'),

    # Application
    path('apply-driver/', views.ApplyDriverView.as_view(), name='apply'),
]
