import logging

from django.contrib.auth.decorators import login_required
from django.http import HttpResponse, JsonResponse
from django_ratelimit.decorators import ratelimit

from academics.models import Class
from students.models import Student

from .base import (
    admin_required, is_school_admin, json_errors, parse_bool, request_data,
    resolve_academic_year, school_object, teacher_or_admin_required,
)
from .. import services
from ..models import AcademicProgress
from ..reports import progress_dict
from ..tasks import notify_at_risk_students, recalculate_class_progress

logger = logging.getLogger(__name__)


@login_required
@teacher_or_admin_required
@json_errors
def progress_detail(request, student_id):
    """Stored progress record of a student for an academic year."""
    if request.method != 'GET':
        return HttpResponse(status=405)
    student = school_object(request, Student, student_id)
    academic_year = resolve_academic_year(request)
    progress = AcademicProgress.objects.select_related(
        'student', 'class_assigned', 'year_level', 'next_year_level'
    ).get(student=student, academic_year=academic_year)
    return JsonResponse(progress_dict(progress))


@login_required
@teacher_or_admin_required
@ratelimit(key='user', rate='60/h', block=True)
@json_errors
def evaluate_student(request, student_id):
    """
    Recompute a student's progress from marks.

    Body: {"academic_year": id, "class": id, "force": bool}. Only admins may
    force the recompute of a finalized record.
    """
    if request.method != 'POST':
        return HttpResponse(status=405)

    data = request_data(request)
    student = school_object(request, Student, student_id)
    academic_year = resolve_academic_year(request, data.get('academic_year'))
    klass = school_object(request, Class, data['class']) if data.get('class') else None
    force = parse_bool(data.get('force'))
    if force and not is_school_admin(request.user):
        return JsonResponse({'error': 'Only administrators can force a recompute.'}, status=403)

    progress = services.evaluate_student_progress(
        student, academic_year, klass=klass, force=force, user=request.user
    )
    return JsonResponse(progress_dict(progress))


@login_required
@admin_required
@ratelimit(key='user', rate='60/h', block=True)
@json_errors
def evaluate_class(request, class_id):
    """
    Recompute progress for every student of a class.

    With {"async": true} the work is queued and 202 is returned.
    """
    if request.method != 'POST':
        return HttpResponse(status=405)

    data = request_data(request)
    klass = school_object(request, Class, class_id)
    academic_year = resolve_academic_year(request, data.get('academic_year'), default=klass.academic_year)
    force = parse_bool(data.get('force'))

    if parse_bool(data.get('async')):
        recalculate_class_progress.delay(str(klass.pk), str(academic_year.pk), force)
        logger.info(f"Queued progress recalculation for class {klass} by {request.user}")
        return JsonResponse({'queued': True, 'class': klass.name}, status=202)

    result = services.evaluate_class_progress(klass, academic_year, force=force, user=request.user)
    return JsonResponse({
        'class': klass.name,
        'evaluated': [progress_dict(p) for p in result['evaluated']],
        'skipped': result['skipped'],
    })


@login_required
@teacher_or_admin_required
@json_errors
def submit_for_review(request, progress_id):
    if request.method != 'POST':
        return HttpResponse(status=405)
    school_object(request, AcademicProgress, progress_id)
    progress = services.submit_for_review(progress_id)
    return JsonResponse(progress_dict(progress))


@login_required
@admin_required
@json_errors
def council_decision(request, progress_id):
    """
    Apply the class council's decision and finalize the record.

    Body: {"decision": "approved" | "failed" | "conditional", "observations": str}
    """
    if request.method != 'POST':
        return HttpResponse(status=405)

    data = request_data(request)
    school_object(request, AcademicProgress, progress_id)
    progress = services.apply_council_decision(
        progress_id,
        data.get('decision'),
        user=request.user,
        observations=data.get('observations') or '',
    )
    return JsonResponse(progress_dict(progress))


@login_required
@admin_required
@ratelimit(key='user', rate='10/h', block=True)
@json_errors
def notify_at_risk(request, class_id):
    """Queue guardian emails for the at-risk students of a class."""
    if request.method != 'POST':
        return HttpResponse(status=405)

    data = request_data(request)
    klass = school_object(request, Class, class_id)
    academic_year = resolve_academic_year(request, data.get('academic_year'), default=klass.academic_year)
    notify_at_risk_students.delay(str(klass.pk), str(academic_year.pk), data.get('threshold'))
    return JsonResponse({'queued': True, 'class': klass.name}, status=202)
