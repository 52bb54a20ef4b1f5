from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from .models import User, Business, BusinessMembership


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display = ['email', 'name', 'platform_role', 'is_active', 'is_staff', 'created_at']
    search_fields = ['email', 'name']
    list_filter = ['platform_role', 'is_active', 'is_staff']
    readonly_fields = ['id', 'created_at', 'updated_at', 'last_login']
    ordering = ['email']
    fieldsets = (
        (None, {'fields': ('id', 'email', 'password')}),
        ('Profile', {'fields': ('name', 'platform_role')}),
        ('Permissions', {'fields': ('is_active', 'is_staff', 'is_superuser', 'groups', 'user_permissions')}),
        ('Dates', {'fields': ('last_login', 'created_at', 'updated_at')}),
    )
    add_fieldsets = (
        (None, {'classes': ('wide',), 'fields': ('email', 'name', 'password1', 'password2')}),
    )


class BusinessMembershipInline(admin.TabularInline):
    model = BusinessMembership
    extra = 0
    fields = ['user', 'role', 'default_branch', 'is_admin', 'is_active']


@admin.register(Business)
class BusinessAdmin(admin.ModelAdmin):
    list_display = ['name', 'owner', 'currency', 'is_active', 'created_at']
    search_fields = ['name', 'email', 'owner__email']
    list_filter = ['is_active', 'currency']
    readonly_fields = ['id', 'created_at', 'updated_at']
    inlines = [BusinessMembershipInline]
    ordering = ['name']


@admin.register(BusinessMembership)
class BusinessMembershipAdmin(admin.ModelAdmin):
    list_display = ['user', 'business', 'role', 'default_branch', 'is_active']
    search_fields = ['user__email', 'business__name']
    list_filter = ['role', 'is_active']
    readonly_fields = ['id', 'created_at', 'updated_at']
