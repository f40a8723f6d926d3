"""
Backoffice Forms - bulk order actions, resolutions, users & applications
"""
from decimal import Decimal

from django import forms
from django.utils import timezone

from core.choices import (
    ApplicationStatus, OrderStatus, ResolutionType, RouteType, UserRole, UserStatus,
)

REFUND_TYPES = (ResolutionType.PARTIAL_REFUND, ResolutionType.FULL_REFUND)


class OrderIdsField(forms.Field):
    """Checked order ids (repeated `order_ids` inputs) as a list of ints."""
    widget = forms.MultipleHiddenInput

    def to_python(self, value):
        ids = []
        for raw in value or []:
            try:
                ids.append(int(raw))
            except (TypeError, ValueError):
                continue
        return ids


class OrderSelectionForm(forms.Form):
    """
    Selected orders plus the list filters they were picked under.

    Ids that are not selectable on the current list are dropped.
    """
    order_ids = OrderIdsField(required=False)
    filter_status = forms.CharField(required=False, widget=forms.HiddenInput)
    filter_date = forms.CharField(required=False, widget=forms.HiddenInput)

    def __init__(self, *args, selectable_ids=None, **kwargs):
        super().__init__(*args, **kwargs)
        self.selectable_ids = set(selectable_ids or [])

    def clean_order_ids(self):
        ids = [i for i in self.cleaned_data['order_ids'] if i in self.selectable_ids]
        if not ids:
            raise forms.ValidationError("Please select at least one order.")
        return ids


class AssignRouteForm(OrderSelectionForm):
    driver_id = forms.ChoiceField(
        widget=forms.Select(attrs={'class': 'form-control'}),
        label="Driver",
        error_messages={'required': "Please select a driver."},
    )
    route_date = forms.DateField(
        widget=forms.DateInput(attrs={'class': 'form-control', 'type': 'date'}),
        label="Route date"
    )
    route_type = forms.ChoiceField(
        choices=RouteType.choices,
        initial=RouteType.PICKUP,
        widget=forms.Select(attrs={'class': 'form-control'}),
        label="Route type"
    )

    def __init__(self, *args, drivers=None, **kwargs):
        super().__init__(*args, **kwargs)
        self.drivers = drivers or []
        self.fields['driver_id'].choices = [('', 'Select a driver')] + [
            (str(d['id']), f"{d.get('first_name', '')} {d.get('last_name', '')}".strip())
            for d in self.drivers
        ]
        if not self.is_bound:
            self.fields['route_date'].initial = timezone.localdate()

    def driver_first_name(self) -> str:
        driver_id = self.cleaned_data.get('driver_id')
        for driver in self.drivers:
            if str(driver.get('id')) == str(driver_id):
                return driver.get('first_name', '')
        return ''


class BulkStatusForm(OrderSelectionForm):
    status = forms.ChoiceField(
        choices=[('', 'Select status')] + OrderStatus.choices,
        widget=forms.Select(attrs={'class': 'form-control'}),
        label="New status",
        error_messages={'required': "Please select a status."},
    )
    notes = forms.CharField(
        required=False,
        max_length=500,
        widget=forms.Textarea(attrs={'class': 'form-control', 'rows': 2}),
        label="Notes"
    )


class ResolutionForm(forms.Form):
    """
    Settle a failed order.

    - reschedule: needs a new date
    - partial/full refund: needs refund_amount > 0
    - credit: needs credit_amount > 0
    """
    resolution_type = forms.ChoiceField(
        choices=[('', 'Select resolution type')] + ResolutionType.choices,
        widget=forms.Select(attrs={'class': 'form-control'}),
        label="Resolution"
    )
    reschedule_date = forms.DateField(
        required=False,
        widget=forms.DateInput(attrs={'class': 'form-control', 'type': 'date'}),
        label="New date"
    )
    refund_amount = forms.DecimalField(
        required=False,
        max_digits=10,
        decimal_places=2,
        widget=forms.NumberInput(attrs={'class': 'form-control', 'step': '0.01', 'min': '0'}),
        label="Refund amount"
    )
    credit_amount = forms.DecimalField(
        required=False,
        max_digits=10,
        decimal_places=2,
        widget=forms.NumberInput(attrs={'class': 'form-control', 'step': '0.01', 'min': '0'}),
        label="Credit amount"
    )
    notes = forms.CharField(
        required=False,
        widget=forms.Textarea(attrs={
            'class': 'form-control', 'rows': 4,
            'placeholder': 'Explain the resolution and any communication with the customer...',
        }),
        label="Notes"
    )

    def clean(self):
        cleaned_data = super().clean()
        kind = cleaned_data.get('resolution_type')

        if kind == ResolutionType.RESCHEDULE and not cleaned_data.get('reschedule_date'):
            self.add_error('reschedule_date', "A new date is required to reschedule.")

        if kind in REFUND_TYPES and (cleaned_data.get('refund_amount') or Decimal('0')) <= 0:
            self.add_error('refund_amount', "Refund amount must be greater than 0.")

        if kind == ResolutionType.CREDIT and (cleaned_data.get('credit_amount') or Decimal('0')) <= 0:
            self.add_error('credit_amount', "Credit amount must be greater than 0.")

        return cleaned_data

    def to_payload(self, order_id) -> dict:
        kind = self.cleaned_data['resolution_type']
        payload = {
            'order_id': int(order_id),
            'resolution_type': kind,
            'notes': self.cleaned_data.get('notes', ''),
        }
        if kind == ResolutionType.RESCHEDULE:
            payload['reschedule_date'] = self.cleaned_data['reschedule_date'].isoformat()
        elif kind in REFUND_TYPES:
            payload['refund_amount'] = float(self.cleaned_data['refund_amount'])
        elif kind == ResolutionType.CREDIT:
            payload['credit_amount'] = float(self.cleaned_data['credit_amount'])
        return payload


class UserForm(forms.Form):
    """Admin add / edit user."""
    first_name = forms.CharField(
        max_length=100,
        widget=forms.TextInput(attrs={'class': 'form-control'}),
        label="First name"
    )
    last_name = forms.CharField(
        max_length=100,
        widget=forms.TextInput(attrs={'class': 'form-control'}),
        label="Last name"
    )
    email = forms.EmailField(
        widget=forms.EmailInput(attrs={'class': 'form-control'}),
        label="Email"
    )
    phone = forms.CharField(
        max_length=20,
        required=False,
        widget=forms.TextInput(attrs={'class': 'form-control'}),
        label="Phone"
    )
    role = forms.ChoiceField(
        choices=UserRole.choices,
        initial=UserRole.CUSTOMER,
        widget=forms.Select(attrs={'class': 'form-control'}),
        label="Role"
    )
    status = forms.ChoiceField(
        choices=UserStatus.choices,
        initial=UserStatus.ACTIVE,
        widget=forms.Select(attrs={'class': 'form-control'}),
        label="Status"
    )

    def clean_email(self):
        return self.cleaned_data['email'].strip().lower()

    def to_payload(self) -> dict:
        return dict(self.cleaned_data)


class UserRoleForm(forms.Form):
    role = forms.ChoiceField(choices=UserRole.choices)


class UserStatusForm(forms.Form):
    status = forms.ChoiceField(choices=UserStatus.choices)


class DeleteUserForm(forms.Form):
    confirm = forms.BooleanField(
        required=True,
        label="I understand this cannot be undone",
        error_messages={'required': "Please confirm the deletion."},
    )


class ApplicationReviewForm(forms.Form):
    status = forms.ChoiceField(
        choices=[
            (ApplicationStatus.APPROVED, 'Approve'),
            (ApplicationStatus.REJECTED, 'Reject'),
        ],
        widget=forms.RadioSelect,
        label="Decision"
    )
    notes = forms.CharField(
        required=False,
        widget=forms.Textarea(attrs={'class': 'form-control', 'rows': 3}),
        label="Admin notes"
    )
