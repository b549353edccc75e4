import logging

from django.contrib.auth.decorators import login_required
from django.http import HttpResponse, JsonResponse
from django_ratelimit.decorators import ratelimit

from academics.models import Class, Subject, YearLevel
from schools.models import School
from students.models import Student

from .base import (
    admin_required, json_errors, resolve_academic_year, school_object,
    teacher_or_admin_required,
)
from .. import reports

logger = logging.getLogger(__name__)


# ============ Student Reports ============

@login_required
@teacher_or_admin_required
@ratelimit(key='user', rate='60/h', block=True)
@json_errors
def student_report(request, student_id):
    """Report card of one student for an academic year."""
    if request.method != 'GET':
        return HttpResponse(status=405)
    student = school_object(request, Student, student_id)
    academic_year = resolve_academic_year(request)
    return JsonResponse(reports.student_report(student, academic_year))


@login_required
@teacher_or_admin_required
@ratelimit(key='user', rate='60/h', block=True)
@json_errors
def student_subject_history(request, student_id, subject_id):
    """Marks of a student in one subject, grouped by evaluation period."""
    if request.method != 'GET':
        return HttpResponse(status=405)
    student = school_object(request, Student, student_id)
    subject = school_object(request, Subject, subject_id)
    academic_year = resolve_academic_year(request)
    return JsonResponse(reports.student_subject_history(student, subject, academic_year))


# ============ Class Reports ============

@login_required
@teacher_or_admin_required
@ratelimit(key='user', rate='60/h', block=True)
@json_errors
def class_report(request, class_id):
    if request.method != 'GET':
        return HttpResponse(status=405)
    klass = school_object(request, Class, class_id)
    academic_year = resolve_academic_year(request, default=klass.academic_year)
    return JsonResponse(reports.class_report(klass, academic_year))


@login_required
@teacher_or_admin_required
@ratelimit(key='user', rate='60/h', block=True)
@json_errors
def subject_report(request, class_id, subject_id):
    """Results of every student of a class in one subject, best first."""
    if request.method != 'GET':
        return HttpResponse(status=405)
    klass = school_object(request, Class, class_id)
    subject = school_object(request, Subject, subject_id)
    academic_year = resolve_academic_year(request, default=klass.academic_year)
    return JsonResponse(reports.subject_report(klass, subject, academic_year))


@login_required
@teacher_or_admin_required
@ratelimit(key='user', rate='60/h', block=True)
@json_errors
def at_risk_students(request, class_id):
    """Students of a class failing at least ?threshold= subjects."""
    if request.method != 'GET':
        return HttpResponse(status=405)
    klass = school_object(request, Class, class_id)
    academic_year = resolve_academic_year(request, default=klass.academic_year)
    threshold = request.GET.get('threshold') or None
    return JsonResponse(reports.at_risk_students(klass, academic_year, threshold=threshold))


# ============ Aggregate Reports (Admin only) ============

@login_required
@admin_required
@ratelimit(key='user', rate='60/h', block=True)
@json_errors
def year_level_report(request, year_level_id):
    if request.method != 'GET':
        return HttpResponse(status=405)
    year_level = school_object(request, YearLevel, year_level_id)
    academic_year = resolve_academic_year(request)
    return JsonResponse(reports.year_level_report(year_level, academic_year))


@login_required
@admin_required
@ratelimit(key='user', rate='60/h', block=True)
@json_errors
def school_report(request):
    """School-wide statistics. Superusers pick the school with ?school=."""
    if request.method != 'GET':
        return HttpResponse(status=405)
    school_id = request.GET.get('school') if request.user.is_superuser else None
    if school_id:
        school = School.objects.get(pk=school_id)
    else:
        school = request.user.school
        if school is None:
            raise School.DoesNotExist('No school selected.')
    academic_year = resolve_academic_year(request, school=school)
    return JsonResponse(reports.school_report(school, academic_year))


@login_required
@admin_required
@ratelimit(key='user', rate='60/h', block=True)
@json_errors
def subject_statistics(request, subject_id):
    if request.method != 'GET':
        return HttpResponse(status=405)
    subject = school_object(request, Subject, subject_id)
    academic_year = resolve_academic_year(request)
    return JsonResponse(reports.subject_statistics(subject, academic_year))
