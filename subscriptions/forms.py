"""
Subscriptions Forms - cancellation & recurring pickup preferences
"""
from django import forms

from core.choices import TIME_SLOT_CHOICES, WEEKDAY_CHOICES, SubscriptionStatus
from orders.forms import address_choices
from orders.pricing import orderable_services


class SubscriptionStatusForm(forms.Form):
    """Pause or resume."""
    status = forms.ChoiceField(choices=[
        (SubscriptionStatus.ACTIVE, 'Resume'),
        (SubscriptionStatus.PAUSED, 'Pause'),
    ])


class CancelSubscriptionForm(forms.Form):
    confirm = forms.BooleanField(
        required=True,
        label="I understand that cancelling cannot be undone",
        error_messages={'required': "Please confirm the cancellation."},
    )


class PreferencesForm(forms.Form):
    """
    Recurring pickup preferences.

    One quantity field per orderable service (service_<id>) holds the
    default services of an auto-scheduled pickup.
    """

    default_pickup_address_id = forms.TypedChoiceField(
        coerce=int, required=False, empty_value=None,
        widget=forms.Select(attrs={'class': 'form-control'}),
        label="Default pickup address"
    )
    default_delivery_address_id = forms.TypedChoiceField(
        coerce=int, required=False, empty_value=None,
        widget=forms.Select(attrs={'class': 'form-control'}),
        label="Default delivery address"
    )
    preferred_pickup_time_slot = forms.ChoiceField(
        choices=[('', 'No preference')] + TIME_SLOT_CHOICES, required=False,
        widget=forms.Select(attrs={'class': 'form-control'}),
        label="Preferred pickup time"
    )
    preferred_delivery_time_slot = forms.ChoiceField(
        choices=[('', 'No preference')] + TIME_SLOT_CHOICES, required=False,
        widget=forms.Select(attrs={'class': 'form-control'}),
        label="Preferred delivery time"
    )
    preferred_pickup_day = forms.ChoiceField(
        choices=[('', 'No preference')] + WEEKDAY_CHOICES, required=False,
        widget=forms.Select(attrs={'class': 'form-control'}),
        label="Preferred pickup day"
    )
    auto_schedule_enabled = forms.BooleanField(
        required=False,
        label="Automatically schedule my pickups"
    )
    lead_time_days = forms.IntegerField(
        min_value=1, max_value=14, initial=1,
        widget=forms.NumberInput(attrs={'class': 'form-control'}),
        label="Lead time (days)"
    )
    special_instructions = forms.CharField(
        required=False, max_length=1000,
        widget=forms.Textarea(attrs={'class': 'form-control', 'rows': 3}),
        label="Special instructions"
    )

    def __init__(self, *args, addresses=None, services=None, **kwargs):
        super().__init__(*args, **kwargs)
        choices = [('', 'None')] + address_choices(addresses or [])
        self.fields['default_pickup_address_id'].choices = choices
        self.fields['default_delivery_address_id'].choices = choices

        self.service_fields = []
        for service in orderable_services(services or []):
            name = f"service_{service['id']}"
            self.fields[name] = forms.IntegerField(
                min_value=0, required=False, initial=0,
                widget=forms.NumberInput(attrs={'class': 'form-control', 'min': 0}),
                label=service.get('name', '').replace('_', ' ').title(),
            )
            self.service_fields.append((name, service['id']))

    @classmethod
    def initial_from(cls, preferences: dict) -> dict:
        """Form initial data from backend preferences."""
        if not preferences:
            return {'lead_time_days': 1}
        initial = {
            key: preferences.get(key)
            for key in (
                'default_pickup_address_id', 'default_delivery_address_id',
                'preferred_pickup_time_slot', 'preferred_delivery_time_slot',
                'preferred_pickup_day', 'auto_schedule_enabled',
                'lead_time_days', 'special_instructions',
            )
        }
        initial['lead_time_days'] = initial.get('lead_time_days') or 1
        for service in preferences.get('default_services') or []:
            initial[f"service_{service.get('service_id')}"] = service.get('quantity', 0)
        return initial

    def service_bound_fields(self):
        return [self[name] for name, _ in self.service_fields]

    def to_payload(self) -> dict:
        data = self.cleaned_data
        return {
            'default_pickup_address_id': data.get('default_pickup_address_id'),
            'default_delivery_address_id': data.get('default_delivery_address_id'),
            'preferred_pickup_time_slot': data.get('preferred_pickup_time_slot') or '',
            'preferred_delivery_time_slot': data.get('preferred_delivery_time_slot') or '',
            'preferred_pickup_day': data.get('preferred_pickup_day') or '',
            'default_services': [
                {'service_id': service_id, 'quantity': data[name]}
                for name, service_id in self.service_fields
                if data.get(name)
            ],
            'auto_schedule_enabled': bool(data.get('auto_schedule_enabled')),
            'lead_time_days': data['lead_time_days'],
            'special_instructions': data.get('special_instructions') or '',
        }
