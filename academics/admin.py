from django.contrib import admin

from unfold.admin import ModelAdmin

from .models import Class, EducationalSegment, Subject, YearLevel


@admin.register(EducationalSegment)
class EducationalSegmentAdmin(ModelAdmin):
    list_display = ('name', 'acronym', 'school', 'order', 'status')
    list_filter = ('status', 'school')
    search_fields = ('name', 'acronym')


@admin.register(YearLevel)
class YearLevelAdmin(ModelAdmin):
    list_display = ('name', 'educational_segment', 'order', 'prerequisite_year_level', 'status')
    list_filter = ('status', 'educational_segment', 'school')
    search_fields = ('name', 'acronym')


@admin.register(Class)
class ClassAdmin(ModelAdmin):
    list_display = ('name', 'year_level', 'academic_year', 'shift', 'capacity', 'status')
    list_filter = ('status', 'shift', 'academic_year', 'year_level')
    search_fields = ('name',)


@admin.register(Subject)
class SubjectAdmin(ModelAdmin):
    list_display = ('name', 'code', 'type', 'min_grade_to_pass', 'year_level', 'status')
    list_filter = ('type', 'status', 'school')
    search_fields = ('name', 'code')
    filter_horizontal = ('classes',)
