"""
Orders Forms - pickup scheduling
"""
from django import forms
from django.forms import BaseFormSet, formset_factory
from django.utils import timezone

from core.choices import TIME_SLOT_CHOICES
from core.money import format_money

from .pricing import CostCalculator, orderable_services


def address_choices(addresses):
    choices = []
    for address in addresses:
        label = f"{address.get('street_address', '')}, {address.get('city', '')}"
        if address.get('is_default'):
            label += ' (default)'
        choices.append((str(address['id']), label))
    return choices


class OrderItemForm(forms.Form):
    service_id = forms.ChoiceField(
        widget=forms.Select(attrs={'class': 'form-control item-service'}),
        label="Service"
    )
    quantity = forms.IntegerField(
        min_value=1,
        initial=1,
        widget=forms.NumberInput(attrs={'class': 'form-control item-quantity', 'min': 1}),
        label="Quantity"
    )

    def __init__(self, *args, services=None, **kwargs):
        super().__init__(*args, **kwargs)
        calculator = CostCalculator()
        self.fields['service_id'].choices = [
            (str(s['id']), f"{s.get('name', '').replace('_', ' ').title()} - ${format_money(calculator.unit_price(s))}")
            for s in orderable_services(services or [])
        ]


class BaseOrderItemFormSet(BaseFormSet):
    def clean(self):
        super().clean()
        if any(self.errors):
            return
        kept = [
            form for form in self.forms
            if form.cleaned_data and not form.cleaned_data.get('DELETE')
        ]
        if not kept:
            raise forms.ValidationError("Add at least one item to your order.")

    def items(self):
        """Cleaned, non-deleted items as backend dicts."""
        return [
            {
                'service_id': int(form.cleaned_data['service_id']),
                'quantity': form.cleaned_data['quantity'],
            }
            for form in self.forms
            if form.cleaned_data and not form.cleaned_data.get('DELETE')
        ]


OrderItemFormSet = formset_factory(
    OrderItemForm,
    formset=BaseOrderItemFormSet,
    extra=0,
    min_num=1,
    can_delete=True,
)


class ScheduleForm(forms.Form):
    """
    Pickup scheduling form.

    Address choices are the user's saved addresses. Dates must not be
    in the past and delivery cannot come before pickup.
    """

    pickup_address_id = forms.ChoiceField(
        widget=forms.Select(attrs={'class': 'form-control'}),
        label="Pickup address"
    )
    delivery_address_id = forms.ChoiceField(
        widget=forms.Select(attrs={'class': 'form-control'}),
        label="Delivery address"
    )
    pickup_date = forms.DateField(
        widget=forms.DateInput(attrs={'class': 'form-control', 'type': 'date'}),
        label="Pickup date"
    )
    pickup_time_slot = forms.ChoiceField(
        choices=TIME_SLOT_CHOICES,
        widget=forms.Select(attrs={'class': 'form-control'}),
        label="Pickup time"
    )
    delivery_date = forms.DateField(
        widget=forms.DateInput(attrs={'class': 'form-control', 'type': 'date'}),
        label="Delivery date"
    )
    delivery_time_slot = forms.ChoiceField(
        choices=TIME_SLOT_CHOICES,
        widget=forms.Select(attrs={'class': 'form-control'}),
        label="Delivery time"
    )
    tip = forms.DecimalField(
        required=False,
        min_value=0,
        decimal_places=2,
        max_digits=8,
        initial=0,
        widget=forms.NumberInput(attrs={'class': 'form-control', 'step': '0.01', 'min': 0}),
        label="Tip"
    )
    special_instructions = forms.CharField(
        required=False,
        max_length=1000,
        widget=forms.Textarea(attrs={
            'class': 'form-control',
            'rows': 4,
            'placeholder': 'Any special instructions for pickup or delivery...'
        }),
        label="Special instructions"
    )

    def __init__(self, *args, addresses=None, **kwargs):
        super().__init__(*args, **kwargs)
        choices = address_choices(addresses or [])
        self.fields['pickup_address_id'].choices = choices
        self.fields['delivery_address_id'].choices = choices

    def clean_pickup_date(self):
        pickup_date = self.cleaned_data['pickup_date']
        if pickup_date < timezone.localdate():
            raise forms.ValidationError("Pickup date cannot be in the past.")
        return pickup_date

    def clean(self):
        cleaned_data = super().clean()
        pickup_date = cleaned_data.get('pickup_date')
        delivery_date = cleaned_data.get('delivery_date')

        if pickup_date and delivery_date and delivery_date < pickup_date:
            self.add_error('delivery_date', "Delivery date must be on or after the pickup date.")

        if cleaned_data.get('tip') is None:
            cleaned_data['tip'] = 0

        return cleaned_data

    def to_payload(self, items) -> dict:
        data = self.cleaned_data
        payload = {
            'pickup_address_id': int(data['pickup_address_id']),
            'delivery_address_id': int(data['delivery_address_id']),
            'pickup_date': data['pickup_date'].isoformat(),
            'delivery_date': data['delivery_date'].isoformat(),
            'pickup_time_slot': data['pickup_time_slot'],
            'delivery_time_slot': data['delivery_time_slot'],
            'items': items,
            'tip': float(data['tip'] or 0),
        }
        if data.get('special_instructions'):
            payload['special_instructions'] = data['special_instructions']
        return payload
