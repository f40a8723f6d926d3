"""
ORDERS App - URL Configuration

Customer order history, order detail, pickup scheduling and card payment.
"""

from django.urls import path
from . import views

app_name = 'orders'

urlpatterns = [
    # Orders
    path('orders/', views.OrderListView.as_view(), name='list'),
    path('orders/<int:order_id>/', views.OrderDetailView.as_view(), name='detail'),

    # Payment (orders not covered by a subscription)
    path('orders/<int:order_id>/pay/', views.OrderPaymentView.as_view(), name='pay'),
    path('orders/<int:order_id>/paid/', views.OrderPaidView.as_view(), name='paid'),

    # Scheduling
    path('schedule/', views.ScheduleView.as_view(), name='schedule'),
]
