"""
ACCOUNTS App - URL Configuration
"""

from django.urls import path
from . import views

app_name = 'accounts'

urlpatterns = [
    # Profile
    path('', views.SettingsView.as_view(), name='settings'),
    path('password/', views.ChangePasswordView.as_view(), name='change-password'),

    # Addresses
    path('addresses/add/', views.AddressCreateView.as_view(), name='address-create'),
    path('addresses/<int:address_id>/edit/', views.AddressUpdateView.as_view(), name='address-update'),
    path('addresses/<int:address_id>/delete/', views.AddressDeleteView.as_view(), name='address-delete'),
    path('addresses/<int:address_id>/default/', views.AddressSetDefaultView.as_view(), name='address-default'),
]
