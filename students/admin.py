from django.contrib import admin, messages

from unfold.admin import ModelAdmin, TabularInline

from core.exceptions import ConflictError
from .models import Enrollment, Student


class EnrollmentInline(TabularInline):
    model = Enrollment
    extra = 0
    fields = ('academic_year', 'class_assigned', 'roll_number', 'status')


@admin.register(Student)
class StudentAdmin(ModelAdmin):
    list_display = ('admission_number', 'full_name', 'school', 'guardian_email', 'status')
    list_filter = ('status', 'gender', 'school')
    search_fields = ('first_name', 'last_name', 'admission_number', 'guardian_name')
    inlines = [EnrollmentInline]


@admin.register(Enrollment)
class EnrollmentAdmin(ModelAdmin):
    list_display = ('student', 'class_assigned', 'academic_year', 'roll_number', 'status')
    list_filter = ('status', 'academic_year')
    search_fields = ('student__first_name', 'student__last_name', 'student__admission_number')

    def delete_model(self, request, obj):
        try:
            obj.delete()
        except ConflictError as e:
            self.message_user(request, e.message, messages.ERROR)

    def delete_queryset(self, request, queryset):
        for enrollment in queryset:
            self.delete_model(request, enrollment)
