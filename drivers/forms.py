"""
Drivers Forms - route stops & driver application
"""
import re

from django import forms
from django.utils import timezone

from core.choices import RouteOrderStatus

VEHICLE_YEAR_RE = re.compile(r'^\d{4}$')


class RouteStopStatusForm(forms.Form):
    """Mark a pending stop completed or failed."""
    status = forms.ChoiceField(
        choices=[
            (RouteOrderStatus.COMPLETED, RouteOrderStatus.COMPLETED.label),
            (RouteOrderStatus.FAILED, RouteOrderStatus.FAILED.label),
        ],
    )
    current_status = forms.CharField(required=False, widget=forms.HiddenInput)

    def clean(self):
        cleaned_data = super().clean()
        current = cleaned_data.get('current_status')
        if current and current != RouteOrderStatus.PENDING:
            raise forms.ValidationError("Only pending stops can be updated.")
        return cleaned_data


class DriverApplicationForm(forms.Form):
    """
    Apply to drive for Tumble.

    Field names match the backend application payload.
    """

    # Personal
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
    phone = forms.CharField(
        max_length=20,
        widget=forms.TextInput(attrs={'class': 'form-control', 'placeholder': '(555) 123-4567'}),
        label="Phone number"
    )

    # License
    license_number = forms.CharField(
        max_length=50,
        widget=forms.TextInput(attrs={'class': 'form-control'}),
        label="License number"
    )
    license_state = forms.CharField(
        max_length=50,
        widget=forms.TextInput(attrs={'class': 'form-control', 'placeholder': 'MI'}),
        label="License state"
    )

    # Vehicle
    vehicle_year = forms.CharField(
        max_length=4,
        widget=forms.TextInput(attrs={'class': 'form-control', 'placeholder': '2020'}),
        label="Year"
    )
    vehicle_make = forms.CharField(
        max_length=50,
        widget=forms.TextInput(attrs={'class': 'form-control', 'placeholder': 'Toyota'}),
        label="Make"
    )
    vehicle_model = forms.CharField(
        max_length=50,
        widget=forms.TextInput(attrs={'class': 'form-control', 'placeholder': 'Camry'}),
        label="Model"
    )
    vehicle_color = forms.CharField(
        max_length=30,
        required=False,
        widget=forms.TextInput(attrs={'class': 'form-control'}),
        label="Color"
    )

    # Insurance
    insurance_provider = forms.CharField(
        max_length=100,
        widget=forms.TextInput(attrs={'class': 'form-control'}),
        label="Insurance provider"
    )
    insurance_policy_id = forms.CharField(
        max_length=100,
        widget=forms.TextInput(attrs={'class': 'form-control'}),
        label="Policy ID"
    )

    # About you
    experience = forms.CharField(
        required=False,
        widget=forms.Textarea(attrs={'class': 'form-control', 'rows': 3}),
        label="Driving experience"
    )
    availability = forms.CharField(
        widget=forms.Textarea(attrs={'class': 'form-control', 'rows': 2,
                                     'placeholder': 'Weekdays after 4pm, weekends'}),
        label="Availability"
    )
    why_interested = forms.CharField(
        required=False,
        widget=forms.Textarea(attrs={'class': 'form-control', 'rows': 3}),
        label="Why are you interested in being a Tumble driver?"
    )

    def clean_vehicle_year(self):
        year = self.cleaned_data['vehicle_year'].strip()
        if not VEHICLE_YEAR_RE.match(year):
            raise forms.ValidationError("Enter a four digit year.")
        if int(year) > timezone.localdate().year + 1:
            raise forms.ValidationError("Vehicle year cannot be in the future.")
        return year

    def clean_license_state(self):
        return self.cleaned_data['license_state'].strip().upper()

    def to_payload(self) -> dict:
        return dict(self.cleaned_data)
