# apps/core/forms.py

from django import forms
from django.core.exceptions import ValidationError

from .models import Department, ModulePermission, Project, User

INPUT = 'form-input w-full px-4 py-2 border rounded-lg'
CHECKBOX = 'form-checkbox h-4 w-4 text-blue-600'


class LoginForm(forms.Form):
    """Login by username or email"""

    username = forms.CharField(
        label='Username or email',
        max_length=254,
        widget=forms.TextInput(attrs={'class': INPUT, 'placeholder': 'Username or email', 'autofocus': True})
    )
    password = forms.CharField(
        label='Password',
        widget=forms.PasswordInput(attrs={'class': INPUT, 'placeholder': 'Password'})
    )
    remember_me = forms.BooleanField(
        label='Remember me',
        required=False,
        widget=forms.CheckboxInput(attrs={'class': CHECKBOX})
    )


class RegistrationForm(forms.Form):
    """Self sign-up; new accounts start as plain members"""

    username = forms.CharField(
        max_length=150,
        widget=forms.TextInput(attrs={'class': INPUT, 'placeholder': 'Unique username'})
    )
    full_name = forms.CharField(
        label='Full name',
        max_length=200,
        widget=forms.TextInput(attrs={'class': INPUT, 'placeholder': 'Your name'})
    )
    email = forms.EmailField(
        widget=forms.EmailInput(attrs={'class': INPUT, 'placeholder': 'you@company.com'})
    )
    department = forms.ModelChoiceField(
        queryset=Department.objects.all(),
        required=False,
        widget=forms.Select(attrs={'class': INPUT})
    )
    password = forms.CharField(
        min_length=8,
        widget=forms.PasswordInput(attrs={'class': INPUT, 'placeholder': 'At least 8 characters'})
    )
    confirm_password = forms.CharField(
        label='Confirm password',
        widget=forms.PasswordInput(attrs={'class': INPUT, 'placeholder': 'Repeat the password'})
    )

    def clean_confirm_password(self):
        password = self.cleaned_data.get('password')
        confirm = self.cleaned_data.get('confirm_password')
        if password and confirm and password != confirm:
            raise ValidationError("Passwords do not match")
        return confirm

    def clean_email(self):
        email = self.cleaned_data['email'].lower()
        if User.objects.filter(email__iexact=email).exists():
            raise ValidationError("This email is already in use")
        return email


class PasswordResetRequestForm(forms.Form):
    email = forms.EmailField(widget=forms.EmailInput(attrs={'class': INPUT, 'placeholder': 'you@company.com'}))


class SetPasswordForm(forms.Form):
    password = forms.CharField(min_length=8, widget=forms.PasswordInput(attrs={'class': INPUT}))
    confirm_password = forms.CharField(widget=forms.PasswordInput(attrs={'class': INPUT}))

    def clean(self):
        cleaned = super().clean()
        if cleaned.get('password') != cleaned.get('confirm_password'):
            raise ValidationError("Passwords do not match")
        return cleaned


class ProfileForm(forms.ModelForm):
    """Fields a user may change on their own profile"""

    class Meta:
        model = User
        fields = ['full_name', 'email', 'phone', 'avatar']
        widgets = {
            'full_name': forms.TextInput(attrs={'class': INPUT}),
            'email': forms.EmailInput(attrs={'class': INPUT}),
            'phone': forms.TextInput(attrs={'class': INPUT}),
        }

    def clean_email(self):
        email = self.cleaned_data['email'].lower()
        if User.objects.filter(email__iexact=email).exclude(pk=self.instance.pk).exists():
            raise ValidationError("This email is already in use")
        return email


class ProjectForm(forms.ModelForm):
    class Meta:
        model = Project
        fields = ['name', 'description', 'start_date', 'end_date', 'status', 'priority']
        widgets = {
            'name': forms.TextInput(attrs={'class': INPUT, 'placeholder': 'Project name'}),
            'description': forms.Textarea(attrs={'class': INPUT, 'rows': 3}),
            'start_date': forms.DateInput(attrs={'class': INPUT, 'type': 'date'}),
            'end_date': forms.DateInput(attrs={'class': INPUT, 'type': 'date'}),
            'status': forms.Select(attrs={'class': INPUT}),
            'priority': forms.Select(attrs={'class': INPUT}),
        }

    def clean(self):
        cleaned = super().clean()
        start, end = cleaned.get('start_date'), cleaned.get('end_date')
        if start and end and end < start:
            raise ValidationError("End date cannot be before start date")
        return cleaned


class ModuleAccessForm(forms.Form):
    """Grant a module to a user identified by email"""

    email = forms.EmailField(widget=forms.EmailInput(attrs={'class': INPUT, 'placeholder': 'user@company.com'}))
    module = forms.ChoiceField(choices=ModulePermission.MODULE_CHOICES, widget=forms.Select(attrs={'class': INPUT}))
    access_level = forms.ChoiceField(choices=ModulePermission.ACCESS_CHOICES, widget=forms.Select(attrs={'class': INPUT}))


class DepartmentForm(forms.ModelForm):
    class Meta:
        model = Department
        fields = ['name']
        widgets = {'name': forms.TextInput(attrs={'class': INPUT, 'placeholder': 'Department name'})}
