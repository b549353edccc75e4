from django.contrib import admin

from unfold.admin import ModelAdmin

from .models import AcademicYear


@admin.register(AcademicYear)
class AcademicYearAdmin(ModelAdmin):
    list_display = ('name', 'school', 'start_date', 'end_date', 'is_current')
    list_filter = ('is_current', 'school')
    search_fields = ('name',)
