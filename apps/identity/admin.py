from django.contrib import admin
from .models import User, RoleMembership


class RoleMembershipInline(admin.TabularInline):
    model = RoleMembership
    extra = 0


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ['email', 'last_name', 'first_name', 'external_id', 'created_at']
    search_fields = ['email', 'last_name', 'first_name', 'external_id']
    readonly_fields = ['external_id', 'created_at', 'updated_at']
    inlines = [RoleMembershipInline]
