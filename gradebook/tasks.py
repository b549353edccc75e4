"""
Celery tasks for gradebook app.
Handles progress recalculation after mark changes and at-risk notifications.
"""
import logging

from celery import shared_task
from django.conf import settings
from django.core.exceptions import ObjectDoesNotExist, ValidationError
from django.core.mail import EmailMessage
from django.db import OperationalError
from django.template.loader import render_to_string

from core.exceptions import ConflictError
from . import config


logger = logging.getLogger(__name__)


@shared_task(
    bind=True,
    max_retries=config.TASK_MAX_RETRIES,
    default_retry_delay=config.TASK_RETRY_DELAY,
)
def recalculate_student_progress(self, student_id, academic_year_id, class_id=None):
    """
    Recompute one student's academic progress from marks.

    Finalized records are left alone. Database connection errors are retried
    with exponential backoff.
    """
    from academics.models import Class
    from core.models import AcademicYear
    from students.models import Student
    from .models import ProgressFinalizedError
    from .services import evaluate_student_progress

    try:
        student = Student.objects.get(pk=student_id)
        academic_year = AcademicYear.objects.get(pk=academic_year_id)
        klass = Class.objects.get(pk=class_id) if class_id else None
    except ObjectDoesNotExist as e:
        # Non-retryable - record was removed before the task ran
        logger.error(f"Cannot recalculate progress for student {student_id}: {e}")
        return {'success': False, 'error': str(e)}

    try:
        progress = evaluate_student_progress(student, academic_year, klass=klass)
    except ProgressFinalizedError:
        logger.info(f"Progress of {student} for {academic_year} is final; not recalculated")
        return {'success': False, 'skipped': 'final'}
    except (ObjectDoesNotExist, ValidationError, ConflictError) as e:
        logger.warning(f"Could not recalculate progress for {student}: {e}")
        return {'success': False, 'error': str(e)}
    except OperationalError as e:
        # Transient error - retry with exponential backoff
        logger.warning(f"Retryable error recalculating progress for {student_id}: {e}")
        raise self.retry(exc=e, countdown=config.TASK_RETRY_DELAY * (2 ** self.request.retries))

    return {
        'success': True,
        'progress_id': str(progress.pk),
        'overall_status': progress.overall_status,
        'overall_average': str(progress.overall_average),
    }


@shared_task(
    bind=True,
    max_retries=config.TASK_MAX_RETRIES,
    default_retry_delay=config.TASK_RETRY_DELAY,
)
def recalculate_class_progress(self, class_id, academic_year_id=None, force=False):
    """Recompute progress for every active enrollment of a class."""
    from academics.models import Class
    from core.models import AcademicYear
    from .services import evaluate_class_progress

    try:
        klass = Class.objects.select_related('academic_year').get(pk=class_id)
        academic_year = (
            AcademicYear.objects.get(pk=academic_year_id) if academic_year_id else klass.academic_year
        )
    except ObjectDoesNotExist as e:
        logger.error(f"Cannot recalculate class {class_id}: {e}")
        return {'success': False, 'error': str(e)}

    try:
        result = evaluate_class_progress(klass, academic_year, force=force)
    except OperationalError as e:
        logger.warning(f"Retryable error recalculating class {class_id}: {e}")
        raise self.retry(exc=e, countdown=config.TASK_RETRY_DELAY * (2 ** self.request.retries))

    return {
        'success': True,
        'class': klass.name,
        'evaluated': len(result['evaluated']),
        'skipped': [
            {'student': str(item['student']), 'reason': item['reason']} for item in result['skipped']
        ],
    }


@shared_task(
    bind=True,
    max_retries=config.TASK_MAX_RETRIES,
)
def notify_at_risk_students(self, class_id, academic_year_id=None, threshold=None):
    """
    Run at-risk detection for a class and queue one guardian email per student.

    Args:
        class_id: ID of the Class
        academic_year_id: defaults to the class's academic year
        threshold: minimum failed subjects, defaults to GRADEBOOK_DEFAULT_AT_RISK_THRESHOLD
    """
    from academics.models import Class
    from core.models import AcademicYear
    from .reports import at_risk_students

    try:
        klass = Class.objects.select_related('academic_year').get(pk=class_id)
        academic_year = (
            AcademicYear.objects.get(pk=academic_year_id) if academic_year_id else klass.academic_year
        )
    except ObjectDoesNotExist as e:
        logger.error(f"Cannot notify at-risk students of class {class_id}: {e}")
        return {'success': False, 'error': str(e)}

    report = at_risk_students(klass, academic_year, threshold=threshold)

    queued_count = 0
    without_email = 0
    for entry in report['students']:
        if not entry['guardian_email']:
            without_email += 1
            continue
        send_at_risk_notification.delay(
            entry['student_id'],
            str(klass.pk),
            [subject['name'] for subject in entry['failed_subjects']],
            entry['total_subjects'],
        )
        queued_count += 1

    logger.info(
        f"At-risk notifications for {klass}: {report['total_at_risk']} at risk, "
        f"{queued_count} queued, {without_email} without guardian email"
    )
    return {
        'success': True,
        'class': klass.name,
        'at_risk': report['total_at_risk'],
        'queued': queued_count,
        'without_email': without_email,
    }


@shared_task(
    bind=True,
    max_retries=config.TASK_MAX_RETRIES,
    default_retry_delay=config.TASK_RETRY_DELAY,
)
def send_at_risk_notification(self, student_id, class_id, failed_subjects, total_subjects):
    """
    Email a student's guardian about failing subjects.

    Retries up to TASK_MAX_RETRIES times with exponential backoff for transient failures.
    """
    from smtplib import SMTPException
    from socket import error as SocketError
    import ssl

    from academics.models import Class
    from students.models import Student

    # Transient errors that should trigger retry
    RETRYABLE_EXCEPTIONS = (SMTPException, SocketError, ssl.SSLError, ConnectionError, TimeoutError)

    try:
        student = Student.objects.get(pk=student_id)
        klass = Class.objects.get(pk=class_id)
    except ObjectDoesNotExist as e:
        logger.error(f"Cannot notify guardian of student {student_id}: {e}")
        return {'success': False, 'error': str(e)}

    if not student.guardian_email:
        return {'success': False, 'error': 'No guardian email'}

    context = {
        'student': student,
        'class': klass,
        'failed_subjects': failed_subjects,
        'failed_count': len(failed_subjects),
        'total_subjects': total_subjects,
    }
    email = EmailMessage(
        subject=f"Academic alert - {student.full_name} ({klass.name})",
        body=render_to_string('gradebook/emails/at_risk_notification.txt', context),
        from_email=settings.DEFAULT_FROM_EMAIL,
        to=[student.guardian_email],
    )

    try:
        email.send()
    except RETRYABLE_EXCEPTIONS as e:
        # Transient error - retry with exponential backoff
        logger.warning(f"Retryable error notifying guardian of {student}: {e}")
        raise self.retry(exc=e, countdown=config.TASK_RETRY_DELAY * (2 ** self.request.retries))

    logger.info(f"At-risk notification sent to {student.guardian_email} for {student}")
    return {'success': True, 'student': student.full_name, 'sent_to': student.guardian_email}
