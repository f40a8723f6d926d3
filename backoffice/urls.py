"""
BACKOFFICE App - URL Configuration

Admin order management, users, driver applications and company earnings.
"""

from django.urls import path
from . import views

app_name = 'backoffice'

urlpatterns = [
    # Orders
    path('admin/orders/', views.AdminOrdersView.as_view(), name='orders'),
    path('admin/orders/assign/', views.AssignRouteView.as_view(), name='assign-route'),
    path('admin/orders/bulk-status/', views.BulkStatusView.as_view(), name='bulk-status'),
    path('admin/orders/optimize/', views.OptimizeRoutesView.as_view(), name='optimize'),
    path('admin/orders/<int:order_id>/resolve/', views.ResolveOrderView.as_view(), name='resolve'),

    # Users
    path('users/', views.UsersView.as_view(), name='users'),
    path('users/add/', views.UserCreateView.as_view(), name='user-add'),
    path('users/<int:user_id>/edit/', views.UserEditView.as_view(), name='user-edit'),
    path('users/<int:user_id>/role/', views.UserRoleView.as_view(), name='user-role'),
    path('users/<int:user_id>/status/', views.UserStatusView.as_view(), name='user-status'),
    path('users/<int:user_id>/delete/', views.UserDeleteView.as_view(), name='user-delete'),

    # Driver applications
    path('driver-applications/', views.DriverApplicationsView.as_view(), name='applications'),
    path('driver-applications/<int:application_id>/review/',
         views.ApplicationReviewView.as_view(), name='review-application'),

    # Earnings
    path('admin/earnings/', views.CompanyEarningsView.as_view(), name='earnings'),
]
