import json
import logging
from functools import wraps

from django.contrib.auth.decorators import user_passes_test
from django.core.exceptions import ObjectDoesNotExist, ValidationError
from django.http import Http404, JsonResponse
from django.shortcuts import get_object_or_404

from core.exceptions import ConflictError
from core.models import AcademicYear

logger = logging.getLogger(__name__)


def is_school_admin(user):
    """Check if user is a school admin or superuser."""
    return user.is_superuser or getattr(user, 'is_school_admin', False)


def is_teacher_or_admin(user):
    """Check if user is a teacher, school admin, or superuser."""
    return (user.is_superuser or
            getattr(user, 'is_school_admin', False) or
            getattr(user, 'is_teacher', False))


def admin_required(view_func):
    """Decorator to require school admin or superuser."""
    return user_passes_test(is_school_admin, login_url='/')(view_func)


def teacher_or_admin_required(view_func):
    """Decorator to require teacher, school admin, or superuser."""
    return user_passes_test(is_teacher_or_admin, login_url='/')(view_func)


def error_messages(exc):
    """Flatten a ValidationError into a dict or a list of messages."""
    if hasattr(exc, 'error_dict'):
        return exc.message_dict
    return exc.messages


def json_errors(view_func):
    """
    Turn domain exceptions raised by a view into JSON error responses.

    Missing records give 404, invalid input 400 and state conflicts 409.
    """
    @wraps(view_func)
    def wrapper(request, *args, **kwargs):
        try:
            return view_func(request, *args, **kwargs)
        except (Http404, ObjectDoesNotExist) as e:
            return JsonResponse({'error': str(e) or 'Not found.'}, status=404)
        except ValidationError as e:
            return JsonResponse({'error': error_messages(e)}, status=400)
        except ConflictError as e:
            logger.info(f"Conflict in {view_func.__name__}: {e.message}")
            return JsonResponse({'error': e.message, 'code': e.code}, status=409)
    return wrapper


def request_data(request):
    """POST payload as a dict, from a JSON body or form fields."""
    if request.content_type == 'application/json':
        if not request.body:
            return {}
        try:
            data = json.loads(request.body)
        except (ValueError, UnicodeDecodeError):
            raise ValidationError('Request body is not valid JSON.')
        if not isinstance(data, dict):
            raise ValidationError('Request body must be a JSON object.')
        return data
    return request.POST.dict()


def parse_bool(value):
    if isinstance(value, bool):
        return value
    return str(value or '').strip().lower() in ('1', 'true', 'yes', 'on')


def school_object(request, model, pk, **lookup):
    """
    Fetch a record by pk, limited to the user's school unless superuser.

    Raises:
        Http404: record missing or owned by another school
    """
    if not request.user.is_superuser:
        lookup['school'] = request.user.school
    try:
        return get_object_or_404(model, pk=pk, **lookup)
    except (TypeError, ValueError):
        raise Http404(f"No {model._meta.verbose_name} matches the given query.")


def resolve_academic_year(request, academic_year_id=None, default=None, school=None):
    """
    Academic year named by the request, else ``default``, else the school's current year.

    Raises:
        ValidationError: nothing given and no current year is set
    """
    academic_year_id = academic_year_id or request.GET.get('academic_year')
    if academic_year_id:
        return school_object(request, AcademicYear, academic_year_id)
    if default is not None:
        return default
    current = AcademicYear.get_current(school or request.user.school)
    if current is None:
        raise ValidationError({'academic_year': 'No current academic year set.'})
    return current
