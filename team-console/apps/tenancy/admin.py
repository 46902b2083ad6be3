"""
Django admin interface for tenancy models.
"""

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from .models import Company, User


@admin.register(Company)
class CompanyAdmin(admin.ModelAdmin):
    list_display = ['name', 'status', 'administrator', 'created_at']
    list_filter = ['status', 'created_at']
    search_fields = ['name', 'administrator__username', 'administrator__email']
    readonly_fields = ['id', 'created_at', 'updated_at']
    fieldsets = (
        ('Basic Information', {
            'fields': ('id', 'name', 'administrator')
        }),
        ('Status', {
            'fields': ('status',)
        }),
        ('Metadata', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display = ['username', 'email', 'company', 'role', 'is_qualified', 'is_active']
    list_filter = ['role', 'is_qualified', 'is_active', 'company']
    search_fields = ['username', 'email', 'first_name', 'last_name', 'company__name']
    fieldsets = BaseUserAdmin.fieldsets + (
        ('Tenancy', {
            'fields': ('company', 'role', 'is_qualified')
        }),
    )
