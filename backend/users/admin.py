from django.contrib import admin
from django.contrib.auth.admin import UserAdmin
from django.contrib.auth.forms import UserChangeForm, UserCreationForm
from .models import User


class RegistrantCreationForm(UserCreationForm):
    class Meta:
        model = User
        fields = ("email", "name", "role")


class RegistrantChangeForm(UserChangeForm):
    class Meta:
        model = User
        fields = "__all__"


@admin.register(User)
class CustomUserAdmin(UserAdmin):
    form = RegistrantChangeForm
    add_form = RegistrantCreationForm
    ordering = ('email',)
    list_display = ('email', 'name', 'registration_number', 'role', 'payment_status', 'is_staff')
    list_filter = ('role', 'payment_status', 'profession', 'is_staff', 'is_active')
    search_fields = ('email', 'name', 'registration_number', 'phone')
    readonly_fields = (
        'id',
        'registration_number',
        'registration_date',
        'verification_token',
        'verification_image',
        'certificate_file',
        'certificate_image',
        'last_login',
        'date_joined',
    )
    fieldsets = (
        (None, {'fields': ('id', 'email', 'password')}),
        ('Registrant', {'fields': (
            'name', 'profession', 'designation', 'city', 'state', 'phone',
            'medical_council_number', 'profile_image',
        )}),
        ('Registration', {'fields': (
            'registration_number', 'registration_date', 'is_verified',
            'payment_amount', 'payment_reference', 'payment_order_id', 'payment_status',
        )}),
        ('Credential', {'fields': (
            'verification_token', 'verification_image', 'certificate_file', 'certificate_image',
        )}),
        ('Role Info', {'fields': ('role', 'is_active', 'is_staff', 'is_superuser', 'groups')}),
        ('Dates', {'fields': ('last_login', 'date_joined')}),
    )
    add_fieldsets = (
        (None, {
            'classes': ('wide',),
            'fields': ('email', 'name', 'role', 'password1', 'password2'),
        }),
    )
