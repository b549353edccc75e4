"""
Bulk mark import from rows, .xlsx or .csv files.

Every row is validated before anything is written; the insert is atomic and
runs with automatic recomputation disabled, after which each affected
progress record is recomputed once.
"""
import logging
from datetime import datetime, time
from decimal import Decimal, InvalidOperation

import pandas as pd
from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone

from academics.models import Class, Subject
from core.exceptions import ConflictError
from students.models import Enrollment, Student

from . import config
from .choices import EvaluationType, MarkStatus
from .models import Mark, ProgressFinalizedError
from .signals import signals_disabled

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = [
    'admission_number', 'subject_code', 'class_name',
    'evaluation_period', 'evaluation_type', 'title', 'grade',
]
OPTIONAL_COLUMNS = ['weight', 'date', 'is_recovery', 'status', 'comments']

TRUE_VALUES = {'1', 'true', 'yes', 'y'}


def clean_value(value):
    """Clean a cell value, handling NaN and empty strings."""
    if value is None:
        return ''
    if isinstance(value, float) and pd.isna(value):
        return ''
    if isinstance(value, str):
        return value.strip()
    return str(value).strip()


def parse_datetime(value):
    """Parse a mark date from a cell; None when blank or unreadable."""
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return None
    if isinstance(value, pd.Timestamp):
        value = value.to_pydatetime()
    if isinstance(value, datetime):
        return value if timezone.is_aware(value) else timezone.make_aware(value)
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
        for fmt in ['%Y-%m-%d %H:%M:%S', '%Y-%m-%d %H:%M', '%Y-%m-%d', '%d/%m/%Y']:
            try:
                parsed = datetime.strptime(value, fmt)
            except ValueError:
                continue
            if fmt in ('%Y-%m-%d', '%d/%m/%Y'):
                parsed = datetime.combine(parsed.date(), time(12, 0))
            return timezone.make_aware(parsed)
    return None


def read_marks_file(file):
    """
    Read an uploaded .xlsx or .csv file into a list of row dicts.

    Raises:
        ValidationError: unsupported type, too large, empty or missing columns
    """
    ext = file.name.split('.')[-1].lower()
    if ext not in ['xlsx', 'csv']:
        raise ValidationError('Only .xlsx and .csv files are supported.')
    if file.size > config.MAX_FILE_SIZE:
        raise ValidationError(
            f'File too large. Maximum size is {config.MAX_FILE_SIZE // (1024 * 1024)}MB.'
        )

    if ext == 'xlsx':
        df = pd.read_excel(file, engine='openpyxl')
    else:
        df = pd.read_csv(file)

    if df.empty:
        raise ValidationError('The file is empty.')

    # Normalize column names
    df.columns = df.columns.astype(str).str.strip().str.lower().str.replace(' ', '_')

    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise ValidationError(f"Missing columns: {', '.join(missing)}")

    df = df.astype(object).where(pd.notna(df), None)
    return df.to_dict(orient='records')


def _validate_row(row, lookups):
    """Return (mark kwargs, errors) for one row."""
    errors = []

    admission_number = clean_value(row.get('admission_number'))
    subject_code = clean_value(row.get('subject_code'))
    class_name = clean_value(row.get('class_name'))
    evaluation_period = clean_value(row.get('evaluation_period'))
    evaluation_type = clean_value(row.get('evaluation_type')).lower()
    title = clean_value(row.get('title'))
    raw_grade = clean_value(row.get('grade'))

    for column, value in [
        ('admission_number', admission_number), ('subject_code', subject_code),
        ('class_name', class_name), ('evaluation_period', evaluation_period),
        ('evaluation_type', evaluation_type), ('title', title), ('grade', raw_grade),
    ]:
        if not value:
            errors.append(f'{column} is required')

    student = lookups['students'].get(admission_number)
    if admission_number and student is None:
        errors.append(f'Student "{admission_number}" not found')
    subject = lookups['subjects'].get(subject_code)
    if subject_code and subject is None:
        errors.append(f'Subject "{subject_code}" not found')
    klass = lookups['classes'].get(class_name)
    if class_name and klass is None:
        errors.append(f'Class "{class_name}" not found')

    if evaluation_type and evaluation_type not in EvaluationType.values:
        errors.append(f'Unknown evaluation type "{evaluation_type}"')

    grade = None
    if raw_grade:
        try:
            grade = Decimal(raw_grade)
        except InvalidOperation:
            errors.append(f'Invalid grade "{raw_grade}"')
        else:
            if not grade.is_finite() or not config.MIN_GRADE <= grade <= config.MAX_GRADE:
                errors.append(f'Grade must be between {config.MIN_GRADE} and {config.MAX_GRADE}')

    weight = Decimal('1')
    raw_weight = clean_value(row.get('weight'))
    if raw_weight:
        try:
            weight = Decimal(raw_weight)
        except InvalidOperation:
            errors.append(f'Invalid weight "{raw_weight}"')
        else:
            if not weight.is_finite() or weight <= 0:
                errors.append('Weight must be a positive number')

    status = clean_value(row.get('status')).lower() or MarkStatus.PUBLISHED
    if status not in MarkStatus.values:
        errors.append(f'Unknown status "{status}"')

    if student and klass and (student.pk, klass.pk) not in lookups['enrollments']:
        errors.append(f'Student "{admission_number}" is not enrolled in {class_name}')

    date = parse_datetime(row.get('date'))
    if clean_value(row.get('date')) and date is None:
        errors.append(f'Invalid date "{clean_value(row.get("date"))}"')

    mark_data = {
        'student': student,
        'subject': subject,
        'class_assigned': klass,
        'evaluation_period': evaluation_period,
        'evaluation_type': evaluation_type,
        'title': title,
        'grade': grade,
        'weight': weight,
        'date': date or timezone.now(),
        'is_recovery': (
            clean_value(row.get('is_recovery')).lower() in TRUE_VALUES
            or evaluation_type == EvaluationType.RECOVERY
        ),
        'status': status,
        'comments': clean_value(row.get('comments')),
    }
    return mark_data, errors


def import_marks(rows, school, academic_year, registered_by=None):
    """
    Validate and insert marks in one transaction.

    Args:
        rows: list of dicts keyed by REQUIRED_COLUMNS / OPTIONAL_COLUMNS
        school: School the marks belong to
        academic_year: AcademicYear the marks are recorded in
        registered_by: User recording the marks

    Returns:
        dict: {'created': int, 'recomputed': int, 'skipped': [...]}

    Raises:
        ValidationError: with one message per invalid row; nothing is written
    """
    rows = list(rows)
    if not rows:
        raise ValidationError('No marks to import.')
    if len(rows) > config.MAX_IMPORT_ROWS:
        raise ValidationError(f'Too many rows. Maximum is {config.MAX_IMPORT_ROWS}.')

    lookups = {
        'students': {s.admission_number: s for s in Student.objects.filter(school=school)},
        'subjects': {s.code: s for s in Subject.objects.filter(school=school)},
        'classes': {
            c.name: c for c in Class.objects.filter(school=school, academic_year=academic_year)
        },
        'enrollments': set(
            Enrollment.objects.active()
            .filter(academic_year=academic_year, class_assigned__school=school)
            .values_list('student_id', 'class_assigned_id')
        ),
    }

    valid = []
    all_errors = []
    for index, row in enumerate(rows, start=1):
        mark_data, errors = _validate_row(row, lookups)
        if errors:
            all_errors.append(f"Row {index}: {'; '.join(errors)}")
        else:
            valid.append(mark_data)

    if all_errors:
        raise ValidationError(all_errors)

    with transaction.atomic(), signals_disabled():
        marks = [
            Mark(school=school, academic_year=academic_year, registered_by=registered_by, **data)
            for data in valid
        ]
        for mark in marks:
            mark.save()

    logger.info(f"Imported {len(marks)} marks for {school} ({academic_year}) by {registered_by}")

    return {
        'created': len(marks),
        **recompute_affected(marks, academic_year, registered_by),
    }


def recompute_affected(marks, academic_year, user=None):
    """Recompute each (student, class) touched by a batch of marks once."""
    from .services import evaluate_student_progress

    affected = {}
    for mark in marks:
        affected[(mark.student_id, mark.class_assigned_id)] = (mark.student, mark.class_assigned)

    recomputed = 0
    skipped = []
    for student, klass in affected.values():
        try:
            evaluate_student_progress(student, academic_year, klass=klass, user=user)
        except ProgressFinalizedError:
            skipped.append({'student': student.pk, 'reason': 'final'})
            continue
        except (ValidationError, ConflictError) as e:
            logger.warning(f"Could not recompute progress of {student}: {e}")
            skipped.append({'student': student.pk, 'reason': str(e)})
            continue
        recomputed += 1

    return {'recomputed': recomputed, 'skipped': skipped}
