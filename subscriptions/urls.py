"""
SUBSCRIPTIONS App - URL Configuration
"""

from django.urls import path
from . import views

app_name = 'subscriptions'

urlpatterns = [
    # Plans & current subscription
    path('', views.PlansView.as_view(), name='plans'),
    path('choose/<int:plan_id>/', views.ChoosePlanView.as_view(), name='choose'),
    path('status/', views.SubscriptionStatusView.as_view(), name='status'),
    path('cancel/', views.CancelSubscriptionView.as_view(), name='cancel'),

    # Plan change (proration preview)
    path('change/<int:plan_id>/', views.PreviewChangeView.as_view(), name='preview'),

    # Checkout (Stripe)
    path('checkout/<int:plan_id>/', views.CheckoutView.as_view(), name='checkout'),
    path('checkout/<int:plan_id>/complete/', views.checkout_complete, name='checkout-complete'),

    # Recurring pickup preferences
    path('preferences/', views.PreferencesView.as_view(), name='preferences'),
]
