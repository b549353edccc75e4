"""
Grading operations over the record stores.

Single-item operations raise on missing records or invalid input; the
class-wide operation collects per-student failures and keeps going.
"""
import logging
import uuid

from django.core.cache import cache
from django.core.exceptions import ObjectDoesNotExist, ValidationError
from django.db import transaction

from core.exceptions import ConflictError
from students.models import Enrollment

from . import config
from .calculations import summarize_marks
from .models import AcademicProgress, EvaluationSystem, Mark, ProgressFinalizedError

logger = logging.getLogger(__name__)


def evaluate_subject(student, subject, academic_year, evaluation_period=None):
    """
    Approval result of one student in one subject for an academic year.

    Read-only. Every mark of the year counts, whichever class it was recorded
    in, so a student who changes class mid-year keeps earlier marks. The
    subject's pass mark falls back to GRADEBOOK_DEFAULT_MIN_GRADE_TO_PASS
    when unset.

    Returns:
        dict: the ``summarize_marks`` result plus the ``subject`` instance
    """
    marks = Mark.objects.for_student_subject(
        student, subject, academic_year,
        evaluation_period=evaluation_period,
    )
    min_grade_to_pass = subject.min_grade_to_pass
    if min_grade_to_pass is None:
        min_grade_to_pass = config.DEFAULT_MIN_GRADE_TO_PASS
    result = summarize_marks(marks, min_grade_to_pass)
    result['subject'] = subject
    return result


def resolve_class(student, academic_year):
    """
    The class a student is actively enrolled in for a year.

    Raises:
        Enrollment.DoesNotExist: no active enrollment
    """
    enrollment = student.get_enrollment(academic_year)
    if enrollment is None:
        raise Enrollment.DoesNotExist(
            f"{student} has no active enrollment in {academic_year}."
        )
    return enrollment.class_assigned


def evaluate_student_progress(student, academic_year, klass=None, force=False, user=None):
    """
    Find or create the student's progress record and recompute it from marks.

    The progress row is locked for the duration of the recompute so a council
    decision on the same record cannot interleave with it.

    Raises:
        Enrollment.DoesNotExist: klass not given and no active enrollment
        ProgressFinalizedError: the record is final and force is False
    """
    if klass is None:
        klass = resolve_class(student, academic_year)

    with transaction.atomic():
        progress = AcademicProgress.find_or_create(student, academic_year, klass)
        progress = AcademicProgress.objects.select_for_update().get(pk=progress.pk)

        if progress.class_assigned_id != klass.pk and not progress.is_final:
            progress.class_assigned = klass
            progress.year_level = klass.year_level

        progress.update_from_marks(force=force, user=user)

    return progress


def evaluate_class_progress(klass, academic_year=None, force=False, user=None):
    """
    Recompute progress for every active enrollment of a class.

    Finalized records are left untouched unless ``force`` is set.

    Returns:
        dict: {'evaluated': [AcademicProgress, ...],
               'skipped': [{'student': id, 'reason': str}, ...]}
    """
    academic_year = academic_year or klass.academic_year
    enrollments = (
        Enrollment.objects.active()
        .for_class(klass, academic_year)
        .select_related('student')
    )

    evaluated = []
    skipped = []
    for enrollment in enrollments:
        student = enrollment.student
        try:
            progress = evaluate_student_progress(
                student, academic_year, klass=klass, force=force, user=user
            )
        except ProgressFinalizedError:
            logger.info(f"Skipping finalized progress of {student} in {klass}")
            skipped.append({'student': student.pk, 'reason': 'final'})
            continue
        except (ObjectDoesNotExist, ValidationError, ConflictError) as e:
            logger.warning(f"Could not evaluate progress of {student} in {klass}: {e}")
            skipped.append({'student': student.pk, 'reason': str(e)})
            continue
        evaluated.append(progress)

    logger.info(
        f"Evaluated progress for class {klass}: {len(evaluated)} updated, {len(skipped)} skipped"
    )
    return {'evaluated': evaluated, 'skipped': skipped}


def apply_council_decision(progress_id, decision, user=None, observations=''):
    """
    Apply a council decision under a row lock.

    Raises:
        AcademicProgress.DoesNotExist: unknown progress id
        ValidationError: unknown decision
    """
    with transaction.atomic():
        progress = AcademicProgress.objects.select_for_update().get(pk=progress_id)
        progress.apply_council_decision(decision, user=user, observations=observations)
    return progress


def submit_for_review(progress_id):
    with transaction.atomic():
        progress = AcademicProgress.objects.select_for_update().get(pk=progress_id)
        progress.submit_for_review()
    return progress


# ============ Evaluation systems ============

def _systems_version(school_id):
    return cache.get_or_set(f'evaluation_systems_version_{school_id}', '0', None)


def invalidate_evaluation_systems(school_id):
    """Drop every cached lookup of a school's evaluation systems."""
    cache.set(f'evaluation_systems_version_{school_id}', uuid.uuid4().hex, None)


def find_applicable(school, subject=None, year_level=None, academic_year=None):
    """
    The evaluation system that applies to a subject / year level / year.

    Lookups are cached per school and invalidated whenever one of the school's
    systems changes.

    Returns:
        EvaluationSystem or None
    """
    school_id = getattr(school, 'pk', school)
    cache_key = 'evaluation_system_{}_{}_{}_{}_{}'.format(
        school_id,
        _systems_version(school_id),
        getattr(subject, 'pk', None),
        getattr(year_level, 'pk', None),
        getattr(academic_year, 'pk', None),
    )
    system = cache.get(cache_key)

    if system is None:
        system = EvaluationSystem.objects.resolve(
            school_id, subject=subject, year_level=year_level, academic_year=academic_year
        )
        # Sentinel for "no system" since cache.get returns None for missing keys
        cache.set(cache_key, system if system else 'NONE', config.EVALUATION_SYSTEM_CACHE_TIMEOUT)
    elif system == 'NONE':
        system = None

    return system


def convert_grade(system, value):
    """
    Convert a raw value with an evaluation system.

    Returns:
        dict: {'value': Decimal, 'display': str, 'passing': bool}

    Raises:
        ValidationError: value is neither numeric nor a known symbol
    """
    return system.convert(value)
