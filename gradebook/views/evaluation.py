from django.contrib.auth.decorators import login_required
from django.core.exceptions import ValidationError
from django.http import HttpResponse, JsonResponse
from django_ratelimit.decorators import ratelimit

from academics.models import Subject, YearLevel
from core.models import AcademicYear

from .base import json_errors, request_data, school_object, teacher_or_admin_required
from .. import services
from ..models import EvaluationSystem


def system_dict(system):
    return {
        'id': system.pk,
        'name': system.name,
        'type': system.type,
        'config': system.config,
        'academic_year': system.academic_year_id,
        'subject': system.subject_id,
    }


@login_required
@teacher_or_admin_required
@json_errors
def applicable_system(request):
    """
    Evaluation system for ?subject=&year_level=&academic_year= of the user's school.

    Returns {"system": null} when no active system applies.
    """
    if request.method != 'GET':
        return HttpResponse(status=405)

    subject = year_level = academic_year = None
    if request.GET.get('subject'):
        subject = school_object(request, Subject, request.GET['subject'])
    if request.GET.get('year_level'):
        year_level = school_object(request, YearLevel, request.GET['year_level'])
    if request.GET.get('academic_year'):
        academic_year = school_object(request, AcademicYear, request.GET['academic_year'])

    school = request.user.school
    if school is None:
        raise ValidationError('User is not attached to a school.')

    system = services.find_applicable(
        school, subject=subject, year_level=year_level, academic_year=academic_year
    )
    return JsonResponse({'system': system_dict(system) if system else None})


@login_required
@teacher_or_admin_required
@ratelimit(key='user', rate='300/h', block=True)
@json_errors
def convert_grade(request, system_id):
    """Convert ?value= (or a POSTed "value") with an evaluation system."""
    if request.method == 'GET':
        value = request.GET.get('value')
    elif request.method == 'POST':
        value = request_data(request).get('value')
    else:
        return HttpResponse(status=405)

    if value is None or value == '':
        raise ValidationError({'value': 'A value is required.'})

    system = school_object(request, EvaluationSystem, system_id)
    result = services.convert_grade(system, value)
    return JsonResponse({'system': system_dict(system), **result})
