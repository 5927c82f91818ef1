"""
Forms for Artisashop registration, login and profile updates.
Used by the JSON views to validate request bodies.
"""

from django import forms
from django.contrib.auth import authenticate
from django.core.exceptions import ValidationError
from django.utils.translation import gettext_lazy as _

from core.utils.validators import is_valid_phone
from .models import CustomUser


class RegisterForm(forms.Form):
    email = forms.EmailField(
        error_messages={
            'required': _('Email address is required.'),
            'invalid': _('Enter a valid email address.'),
        }
    )
    password = forms.CharField(
        min_length=6,
        error_messages={
            'required': _('Password is required.'),
            'min_length': _('Password must be at least 6 characters long.'),
        }
    )
    first_name = forms.CharField(max_length=100)
    last_name = forms.CharField(max_length=100)
    phone = forms.CharField(max_length=20, required=False)
    role = forms.ChoiceField(
        choices=[(CustomUser.ROLE_CLIENT, 'Client'), (CustomUser.ROLE_ARTISAN, 'Artisan')],
        required=False,
    )

    def clean_email(self):
        """Normalize and check uniqueness."""
        email = self.cleaned_data.get('email', '').lower().strip()

        if CustomUser.objects.filter(email__iexact=email).exists():
            raise ValidationError(_('An account with this email already exists.'))

        return email

    def clean_first_name(self):
        value = self.cleaned_data.get('first_name', '').strip()
        if not value:
            raise ValidationError(_('First name is required.'))
        return value

    def clean_last_name(self):
        value = self.cleaned_data.get('last_name', '').strip()
        if not value:
            raise ValidationError(_('Last name is required.'))
        return value

    def clean_phone(self):
        phone = self.cleaned_data.get('phone', '').strip()
        if phone and not is_valid_phone(phone):
            raise ValidationError(_('Invalid phone number format.'))
        return phone

    def clean_role(self):
        return self.cleaned_data.get('role') or CustomUser.ROLE_CLIENT


class LoginForm(forms.Form):
    email = forms.EmailField()
    password = forms.CharField()

    def __init__(self, *args, request=None, **kwargs):
        self.request = request
        self.user = None
        super().__init__(*args, **kwargs)

    def clean(self):
        cleaned_data = super().clean()
        email = (cleaned_data.get('email') or '').lower().strip()
        password = cleaned_data.get('password')

        if email and password:
            # ModelBackend rejects inactive users, so look them up first
            # to report the deactivated state separately.
            candidate = CustomUser.objects.filter(email__iexact=email).first()
            if candidate is not None and candidate.check_password(password) and not candidate.is_active:
                raise ValidationError(_('Account is deactivated'), code='inactive')

            user = authenticate(self.request, email=email, password=password)
            if user is None or user.is_system:
                raise ValidationError(_('Invalid email or password'), code='invalid_login')
            self.user = user

        return cleaned_data


class ProfileUpdateForm(forms.Form):
    """All fields optional; only provided fields are applied."""

    email = forms.EmailField(required=False)
    first_name = forms.CharField(max_length=100, required=False)
    last_name = forms.CharField(max_length=100, required=False)
    phone = forms.CharField(max_length=20, required=False)
    address = forms.CharField(required=False)

    def __init__(self, *args, user=None, **kwargs):
        self.user = user
        super().__init__(*args, **kwargs)

    def clean_email(self):
        email = (self.cleaned_data.get('email') or '').lower().strip()
        if 'email' in self.data and not email:
            raise ValidationError(_('Email cannot be empty.'))
        if email and CustomUser.objects.filter(email__iexact=email).exclude(pk=self.user.pk).exists():
            raise ValidationError(_('This email is already in use.'))
        return email

    def clean_first_name(self):
        value = (self.cleaned_data.get('first_name') or '').strip()
        if 'first_name' in self.data and not value:
            raise ValidationError(_('First name cannot be empty.'))
        return value

    def clean_last_name(self):
        value = (self.cleaned_data.get('last_name') or '').strip()
        if 'last_name' in self.data and not value:
            raise ValidationError(_('Last name cannot be empty.'))
        return value

    def clean_phone(self):
        phone = (self.cleaned_data.get('phone') or '').strip()
        if phone and not is_valid_phone(phone):
            raise ValidationError(_('Invalid phone number format.'))
        return phone

    def changed_fields(self):
        """Fields present in the submitted data, in model field order."""
        return [name for name in self.fields if name in self.data]
