"""
Core Choices - enumerations shared by every dashboard app.

Values mirror the strings the Tumble backend sends and accepts.
"""

from django.db import models


class UserRole(models.TextChoices):
    """User role enumeration."""
    CUSTOMER = 'customer', 'Customer'
    DRIVER = 'driver', 'Driver'
    ADMIN = 'admin', 'Admin'


class UserStatus(models.TextChoices):
    ACTIVE = 'active', 'Active'
    INACTIVE = 'inactive', 'Inactive'
    SUSPENDED = 'suspended', 'Suspended'


class OrderStatus(models.TextChoices):
    """Order lifecycle, in the order an order normally moves through it."""
    PENDING = 'pending', 'Pending'
    SCHEDULED = 'scheduled', 'Scheduled'
    PICKED_UP = 'picked_up', 'Picked Up'
    IN_PROCESS = 'in_process', 'In Process'
    READY = 'ready', 'Ready'
    OUT_FOR_DELIVERY = 'out_for_delivery', 'Out for Delivery'
    DELIVERED = 'delivered', 'Delivered'
    FAILED = 'failed', 'Failed'
    CANCELLED = 'cancelled', 'Cancelled'


# Badge colour per order status (CSS modifier)
ORDER_STATUS_COLORS = {
    OrderStatus.PENDING.value: 'yellow',
    OrderStatus.SCHEDULED.value: 'blue',
    OrderStatus.PICKED_UP.value: 'purple',
    OrderStatus.IN_PROCESS.value: 'orange',
    OrderStatus.READY.value: 'teal',
    OrderStatus.OUT_FOR_DELIVERY.value: 'indigo',
    OrderStatus.DELIVERED.value: 'green',
    OrderStatus.FAILED.value: 'red',
    OrderStatus.CANCELLED.value: 'gray',
}


class SubscriptionStatus(models.TextChoices):
    ACTIVE = 'active', 'Active'
    PAUSED = 'paused', 'Paused'
    CANCELLED = 'cancelled', 'Cancelled'


class RouteType(models.TextChoices):
    PICKUP = 'pickup', 'Pickup'
    DELIVERY = 'delivery', 'Delivery'


class RouteStatus(models.TextChoices):
    PLANNED = 'planned', 'Planned'
    IN_PROGRESS = 'in_progress', 'In Progress'
    COMPLETED = 'completed', 'Completed'
    CANCELLED = 'cancelled', 'Cancelled'


class RouteOrderStatus(models.TextChoices):
    PENDING = 'pending', 'Pending'
    COMPLETED = 'completed', 'Completed'
    FAILED = 'failed', 'Failed'


class ApplicationStatus(models.TextChoices):
    PENDING = 'pending', 'Pending'
    APPROVED = 'approved', 'Approved'
    REJECTED = 'rejected', 'Rejected'


class ResolutionType(models.TextChoices):
    """Ways an admin can settle a failed order."""
    RESCHEDULE = 'reschedule', 'Reschedule'
    PARTIAL_REFUND = 'partial_refund', 'Partial Refund'
    FULL_REFUND = 'full_refund', 'Full Refund'
    CREDIT = 'credit', 'Account Credit'
    WAIVE_FEE = 'waive_fee', 'Waive Fee'


class AddressType(models.TextChoices):
    HOME = 'home', 'Home'
    WORK = 'work', 'Work'
    OTHER = 'other', 'Other'


# Pickup/delivery windows offered by the scheduler
TIME_SLOTS = [
    '8:00 AM - 12:00 PM',
    '12:00 PM - 4:00 PM',
    '4:00 PM - 8:00 PM',
]

TIME_SLOT_CHOICES = [(slot, slot) for slot in TIME_SLOTS]

WEEKDAY_CHOICES = [
    ('monday', 'Monday'),
    ('tuesday', 'Tuesday'),
    ('wednesday', 'Wednesday'),
    ('thursday', 'Thursday'),
    ('friday', 'Friday'),
    ('saturday', 'Saturday'),
    ('sunday', 'Sunday'),
]
