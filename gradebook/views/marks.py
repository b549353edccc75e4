import logging

from django.contrib.auth.decorators import login_required
from django.core.exceptions import ValidationError
from django.http import HttpResponse, JsonResponse
from django_ratelimit.decorators import ratelimit

from .base import admin_required, json_errors, request_data, resolve_academic_year
from ..imports import import_marks, read_marks_file

logger = logging.getLogger(__name__)


@login_required
@admin_required
@ratelimit(key='user', rate='10/h', block=True)
@json_errors
def import_marks_view(request):
    """
    Bulk-import marks into the user's school (Admin only).

    Accepts a multipart upload in ``file`` (.xlsx or .csv) or a JSON body
    {"academic_year": id, "marks": [row, ...]}. Nothing is written unless
    every row is valid.
    """
    if request.method != 'POST':
        return HttpResponse(status=405)

    school = request.user.school
    if school is None:
        raise ValidationError('User is not attached to a school.')

    if 'file' in request.FILES:
        rows = read_marks_file(request.FILES['file'])
        academic_year_id = request.POST.get('academic_year')
    else:
        data = request_data(request)
        rows = data.get('marks')
        if not isinstance(rows, list) or not all(isinstance(r, dict) for r in rows):
            raise ValidationError({'marks': 'Expected a list of mark rows.'})
        academic_year_id = data.get('academic_year')

    academic_year = resolve_academic_year(request, academic_year_id)
    result = import_marks(rows, school, academic_year, registered_by=request.user)
    logger.info(f"Mark import by {request.user}: {result['created']} created")
    return JsonResponse(result, status=201)
