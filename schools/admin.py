from django.contrib import admin

from unfold.admin import ModelAdmin

from .models import School


@admin.register(School)
class SchoolAdmin(ModelAdmin):
    list_display = ('name', 'short_name', 'city', 'is_active', 'created_on')
    list_filter = ('is_active',)
    search_fields = ('name', 'short_name', 'email')
    readonly_fields = ('created_on',)
