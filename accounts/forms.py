"""
Accounts Forms - profile, addresses & password
"""
import re

from django import forms

from core.choices import AddressType

ZIP_CODE_RE = re.compile(r'^\d{5}(-\d{4})?$')


class ProfileForm(forms.Form):
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
        required=False,
        disabled=True,
        widget=forms.EmailInput(attrs={'class': 'form-control'}),
        label="Email",
        help_text="Contact support to change your email."
    )
    phone = forms.CharField(
        max_length=20,
        required=False,
        widget=forms.TextInput(attrs={'class': 'form-control', 'placeholder': '(555) 123-4567'}),
        label="Phone"
    )

    def to_payload(self) -> dict:
        return {
            'first_name': self.cleaned_data['first_name'],
            'last_name': self.cleaned_data['last_name'],
            'phone': self.cleaned_data.get('phone', ''),
        }


class AddressForm(forms.Form):
    """Pickup/delivery address."""

    type = forms.ChoiceField(
        choices=AddressType.choices,
        initial=AddressType.HOME,
        widget=forms.Select(attrs={'class': 'form-control'}),
        label="Type"
    )
    street_address = forms.CharField(
        max_length=255,
        widget=forms.TextInput(attrs={'class': 'form-control', 'placeholder': '123 Main St'}),
        label="Street address"
    )
    apt_suite = forms.CharField(
        max_length=50,
        required=False,
        widget=forms.TextInput(attrs={'class': 'form-control', 'placeholder': 'Apt 4B'}),
        label="Apt / Suite"
    )
    city = forms.CharField(
        max_length=100,
        widget=forms.TextInput(attrs={'class': 'form-control'}),
        label="City"
    )
    state = forms.CharField(
        max_length=50,
        widget=forms.TextInput(attrs={'class': 'form-control', 'placeholder': 'MI'}),
        label="State"
    )
    zip_code = forms.CharField(
        max_length=10,
        widget=forms.TextInput(attrs={'class': 'form-control', 'placeholder': '48201'}),
        label="ZIP code"
    )
    delivery_instructions = forms.CharField(
        required=False,
        max_length=500,
        widget=forms.Textarea(attrs={'class': 'form-control', 'rows': 2}),
        label="Delivery instructions"
    )
    is_default = forms.BooleanField(required=False, label="Set as default address")

    def clean_zip_code(self):
        zip_code = self.cleaned_data['zip_code'].strip()
        if not ZIP_CODE_RE.match(zip_code):
            raise forms.ValidationError("Enter a valid ZIP code (12345 or 12345-6789).")
        return zip_code

    def clean_state(self):
        return self.cleaned_data['state'].strip().upper()

    def to_payload(self) -> dict:
        return dict(self.cleaned_data)


class ChangePasswordForm(forms.Form):
    current_password = forms.CharField(
        widget=forms.PasswordInput(attrs={'class': 'form-control', 'autocomplete': 'current-password'}),
        label="Current password",
        error_messages={'required': "Current password is required"},
    )
    new_password = forms.CharField(
        widget=forms.PasswordInput(attrs={'class': 'form-control', 'autocomplete': 'new-password'}),
        min_length=8,
        label="New password",
        error_messages={
            'required': "New password is required",
            'min_length': "Password must be at least 8 characters long",
        },
    )
    confirm_password = forms.CharField(
        widget=forms.PasswordInput(attrs={'class': 'form-control', 'autocomplete': 'new-password'}),
        label="Confirm new password",
        error_messages={'required': "Please confirm your new password"},
    )

    def clean(self):
        cleaned_data = super().clean()
        current = cleaned_data.get('current_password')
        new = cleaned_data.get('new_password')
        confirm = cleaned_data.get('confirm_password')

        if new and confirm and new != confirm:
            self.add_error('confirm_password', "Passwords do not match")

        if current and new and current == new:
            self.add_error('new_password', "New password must be different from current password")

        return cleaned_data
