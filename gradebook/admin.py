import logging

from django.contrib import admin, messages

from unfold.admin import ModelAdmin, TabularInline

from core.exceptions import ConflictError
from .models import AcademicProgress, EvaluationSystem, Mark, SubjectResult

logger = logging.getLogger(__name__)


@admin.register(Mark)
class MarkAdmin(ModelAdmin):
    list_display = (
        'student', 'subject', 'class_assigned', 'evaluation_period', 'title',
        'grade', 'weight', 'is_recovery', 'status', 'date',
    )
    list_filter = ('status', 'evaluation_type', 'is_recovery', 'academic_year', 'school')
    search_fields = ('student__first_name', 'student__last_name', 'student__admission_number', 'title')
    autocomplete_fields = ('student', 'subject', 'class_assigned')
    readonly_fields = ('registered_by', 'created_at', 'updated_at')
    date_hierarchy = 'date'

    def save_model(self, request, obj, form, change):
        if not change:
            obj.registered_by = request.user
        super().save_model(request, obj, form, change)


class SubjectResultInline(TabularInline):
    model = SubjectResult
    extra = 0
    can_delete = False
    fields = (
        'subject', 'regular_average', 'recovery_grade', 'final_average',
        'min_grade_to_pass', 'approved', 'final_status', 'total_marks',
    )
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(AcademicProgress)
class AcademicProgressAdmin(ModelAdmin):
    list_display = (
        'student', 'class_assigned', 'academic_year', 'overall_status',
        'overall_average', 'approval_percentage', 'promoted_to_next_level', 'status',
    )
    list_filter = ('status', 'overall_status', 'council_decision', 'academic_year', 'school')
    search_fields = ('student__first_name', 'student__last_name', 'student__admission_number')
    inlines = [SubjectResultInline]
    readonly_fields = (
        'overall_status', 'overall_average', 'approval_percentage', 'promoted_to_next_level',
        'next_year_level', 'evaluation_date', 'evaluated_by', 'reviewed_by_council',
        'council_decision', 'council_date', 'status', 'created_at', 'updated_at',
    )
    actions = ['recompute_progress']

    @admin.action(description='Recompute selected progress from marks')
    def recompute_progress(self, request, queryset):
        updated = 0
        for progress in queryset:
            try:
                progress.update_from_marks(user=request.user)
            except ConflictError as e:
                self.message_user(request, f"{progress.student}: {e.message}", messages.WARNING)
                continue
            updated += 1
        self.message_user(request, f"Recomputed {updated} progress record(s).", messages.SUCCESS)


@admin.register(EvaluationSystem)
class EvaluationSystemAdmin(ModelAdmin):
    list_display = ('name', 'type', 'school', 'academic_year', 'subject', 'status', 'updated_at')
    list_filter = ('type', 'status', 'school')
    search_fields = ('name', 'description')
    filter_horizontal = ('year_levels', 'educational_segments')
