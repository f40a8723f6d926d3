"""
Core URL Configuration - authentication & role dashboard
"""

from django.urls import path
from . import views

app_name = 'core'

urlpatterns = [
    # Authentication
    path('auth/signin/', views.SignInView.as_view(), name='signin'),
    path('auth/signup/', views.SignUpView.as_view(), name='signup'),
    path('auth/signout/', views.SignOutView.as_view(), name='signout'),

    # Role dashboard
    path('dashboard/', views.DashboardView.as_view(), name='dashboard'),
]
