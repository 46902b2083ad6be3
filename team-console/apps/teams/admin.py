"""
Django admin interface for team models.

Admin edits bypass the team service. They are meant for inspection and
emergency fixes, not for routine composition changes.
"""

from django.contrib import admin

from .models import Membership, Team, TeamAuditLog


class MembershipInline(admin.TabularInline):
    model = Membership
    extra = 0
    fk_name = 'team'
    raw_id_fields = ['user', 'added_by']
    readonly_fields = ['added_at']


@admin.register(Team)
class TeamAdmin(admin.ModelAdmin):
    list_display = ['name', 'company', 'category', 'owner', 'is_active', 'member_count', 'created_at']
    list_filter = ['category', 'is_active', 'company', 'created_at']
    search_fields = ['name', 'company__name', 'owner__username', 'owner__email']
    readonly_fields = ['id', 'created_at', 'updated_at']
    raw_id_fields = ['owner', 'created_by']
    inlines = [MembershipInline]
    fieldsets = (
        ('Basic Information', {
            'fields': ('id', 'company', 'name', 'description', 'category')
        }),
        ('Ownership', {
            'fields': ('owner',)
        }),
        ('Settings', {
            'fields': ('is_active',)
        }),
        ('Metadata', {
            'fields': ('created_by', 'created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )


@admin.register(TeamAuditLog)
class TeamAuditLogAdmin(admin.ModelAdmin):
    list_display = ['operation', 'team_id', 'actor_id', 'correlation_id', 'timestamp']
    list_filter = ['operation', 'timestamp']
    search_fields = ['correlation_id']
    readonly_fields = [
        'id', 'team_id', 'company_id', 'operation', 'affected_user_ids',
        'actor_id', 'correlation_id', 'metadata', 'timestamp', 'recorded_at'
    ]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
