"""
Reporting rollups built on the approval primitives.

Every function returns plain dicts ready for JSON. Averages and percentages
are rounded here, at the boundary; thresholds are compared on unrounded
values. Batch functions skip a student whose evaluation fails, log it and
list it under ``skipped``.
"""
import logging

from django.core.exceptions import ObjectDoesNotExist, ValidationError

from academics.models import Class, Subject, YearLevel
from students.models import Enrollment

from . import config
from .calculations import (
    mean, percentage, period_averages, progress_outcome, round_display, status_statistics,
)
from .choices import SubjectStatus
from .models import AcademicProgress, Mark
from .services import evaluate_subject, resolve_class

logger = logging.getLogger(__name__)


def _student_info(student):
    return {
        'id': student.pk,
        'name': student.full_name,
        'admission_number': student.admission_number,
    }


def _subject_info(subject):
    return {
        'id': subject.pk,
        'name': subject.name,
        'code': subject.code,
        'type': subject.type,
    }


def _named(obj):
    return {'id': obj.pk, 'name': obj.name}


def subject_result_dict(result):
    """Rounded, JSON-ready form of an ``evaluate_subject`` result."""
    return {
        'subject': _subject_info(result['subject']),
        'regular_average': round_display(result['regular_average']),
        'recovery_grade': round_display(result['recovery_grade']),
        'final_average': round_display(result['final_average']),
        'min_grade_to_pass': round_display(result['min_grade_to_pass']),
        'approved': result['approved'],
        'final_status': result['final_status'],
        'total_marks': result['total_marks'],
    }


def mark_dict(mark):
    return {
        'id': mark.pk,
        'title': mark.title,
        'evaluation_type': mark.evaluation_type,
        'evaluation_period': mark.evaluation_period,
        'grade': mark.grade,
        'weight': mark.weight,
        'date': mark.date,
        'is_recovery': mark.is_recovery,
        'status': mark.status,
        'comments': mark.comments,
    }


def _rounded_statistics(records):
    stats = status_statistics(records)
    stats['average'] = round_display(stats['average'])
    stats['approval_rate'] = round_display(stats['approval_rate'])
    return stats


def progress_dict(progress):
    return {
        'id': progress.pk,
        'student': _student_info(progress.student),
        'class': _named(progress.class_assigned),
        'year_level': _named(progress.year_level),
        'overall_status': progress.overall_status,
        'overall_average': progress.overall_average,
        'approval_percentage': progress.approval_percentage,
        'promoted_to_next_level': progress.promoted_to_next_level,
        'next_year_level': _named(progress.next_year_level) if progress.next_year_level else None,
        'status': progress.status,
        'reviewed_by_council': progress.reviewed_by_council,
        'council_decision': progress.council_decision,
        'council_date': progress.council_date,
        'evaluation_date': progress.evaluation_date,
        'observations': progress.observations,
        'subject_results': [
            {
                'subject': _subject_info(result.subject),
                'regular_average': result.regular_average,
                'recovery_grade': result.recovery_grade,
                'final_average': result.final_average,
                'min_grade_to_pass': result.min_grade_to_pass,
                'approved': result.approved,
                'final_status': result.final_status,
                'total_marks': result.total_marks,
            }
            for result in progress.subject_results.select_related('subject')
        ],
    }


def class_report(klass, academic_year=None):
    """Status counts, class average and approval rate from stored progress records."""
    academic_year = academic_year or klass.academic_year
    records = list(
        AcademicProgress.objects
        .filter(class_assigned=klass, academic_year=academic_year)
        .select_related('student')
        .order_by('student__last_name', 'student__first_name')
    )
    stats = _rounded_statistics(records)
    return {
        'class': _named(klass),
        'academic_year': _named(academic_year),
        'statistics': stats,
        'students': [
            {
                'student': _student_info(p.student),
                'overall_status': p.overall_status,
                'overall_average': p.overall_average,
                'approval_percentage': p.approval_percentage,
                'promoted_to_next_level': p.promoted_to_next_level,
                'status': p.status,
            }
            for p in records
        ],
    }


def year_level_report(year_level, academic_year):
    """
    Class-by-class and combined statistics for a year level.

    Raises:
        Class.DoesNotExist: the year level has no classes in that year
    """
    classes = list(Class.objects.filter(year_level=year_level, academic_year=academic_year))
    if not classes:
        raise Class.DoesNotExist(f"No classes found for {year_level} in {academic_year}.")

    records = list(
        AcademicProgress.objects.filter(class_assigned__in=classes, academic_year=academic_year)
    )
    by_class = {}
    for record in records:
        by_class.setdefault(record.class_assigned_id, []).append(record)

    stats = _rounded_statistics(records)
    stats['total_classes'] = len(classes)
    return {
        'year_level': _named(year_level),
        'academic_year': _named(academic_year),
        'statistics': stats,
        'class_summaries': [
            {'class': _named(klass), 'statistics': _rounded_statistics(by_class.get(klass.pk, []))}
            for klass in classes
        ],
    }


def school_report(school, academic_year):
    """
    Year-level summaries and school-wide statistics.

    Every year level of the school is summarized, inactive ones included, so
    the summaries add up to the school totals.
    """
    year_levels = list(
        YearLevel.objects.filter(school=school).order_by('order', 'pk')
    )
    classes = list(Class.objects.filter(school=school, academic_year=academic_year))
    records = list(
        AcademicProgress.objects.filter(school=school, academic_year=academic_year)
    )

    summaries = []
    for year_level in year_levels:
        level_records = [r for r in records if r.year_level_id == year_level.pk]
        level_stats = _rounded_statistics(level_records)
        level_stats['total_classes'] = sum(1 for c in classes if c.year_level_id == year_level.pk)
        summaries.append({'year_level': _named(year_level), 'statistics': level_stats})

    stats = _rounded_statistics(records)
    stats['total_classes'] = len(classes)
    stats['total_year_levels'] = len(year_levels)
    return {
        'school': _named(school),
        'academic_year': _named(academic_year),
        'statistics': stats,
        'year_level_summaries': summaries,
    }


def subject_report(klass, subject, academic_year=None):
    """Per-student results in one subject of a class, best average first."""
    academic_year = academic_year or klass.academic_year
    enrollments = (
        Enrollment.objects.active()
        .for_class(klass, academic_year)
        .select_related('student')
    )

    results = []
    for enrollment in enrollments:
        result = evaluate_subject(enrollment.student, subject, academic_year)
        results.append((enrollment.student, result))

    # stable: equal averages keep enrollment order
    results.sort(key=lambda item: item[1]['final_average'], reverse=True)

    total = len(results)
    approved = sum(1 for _, r in results if r['approved'])
    failed = sum(1 for _, r in results if r['final_status'] == SubjectStatus.FAILED)
    pending = sum(1 for _, r in results if r['final_status'] == SubjectStatus.PENDING)

    return {
        'class': _named(klass),
        'subject': _subject_info(subject),
        'academic_year': _named(academic_year),
        'statistics': {
            'total_students': total,
            'approved': approved,
            'failed': failed,
            'pending': pending,
            'approval_rate': round_display(percentage(approved, total)),
            'average': round_display(mean(r['final_average'] for _, r in results)),
        },
        'students': [
            {'student': _student_info(student), **subject_result_dict(result)}
            for student, result in results
        ],
    }


def at_risk_students(klass, academic_year=None, threshold=None):
    """
    Students failing at least ``threshold`` subjects of the class.

    Pending subjects (no marks yet) never count as failed. Results are sorted
    by failed count, highest first.

    Raises:
        ValidationError: threshold below 1
    """
    academic_year = academic_year or klass.academic_year
    if threshold is None:
        threshold = config.DEFAULT_AT_RISK_THRESHOLD
    try:
        threshold = int(threshold)
    except (TypeError, ValueError):
        raise ValidationError({'threshold': 'Threshold must be a whole number.'})
    if threshold < 1:
        raise ValidationError({'threshold': 'Threshold must be at least 1.'})

    subjects = list(Subject.objects.for_class(klass))
    enrollments = list(
        Enrollment.objects.active()
        .for_class(klass, academic_year)
        .select_related('student')
    )

    at_risk = []
    skipped = []
    for enrollment in enrollments:
        student = enrollment.student
        try:
            results = [
                evaluate_subject(student, subject, academic_year)
                for subject in subjects
            ]
        except (ObjectDoesNotExist, ValidationError) as e:
            logger.warning(f"Skipping {student} in at-risk detection: {e}")
            skipped.append({'student': student.pk, 'reason': str(e)})
            continue

        failed = [r for r in results if r['final_status'] == SubjectStatus.FAILED]
        if len(failed) < threshold:
            continue
        at_risk.append({
            'student_id': str(student.pk),
            'student': _student_info(student),
            'guardian_email': student.guardian_email,
            'failed_subjects': [
                {**_subject_info(r['subject']), 'average': round_display(r['final_average'])}
                for r in failed
            ],
            'total_failed_subjects': len(failed),
            'total_subjects': len(subjects),
            'failure_rate': round_display(percentage(len(failed), len(subjects))),
        })

    at_risk.sort(key=lambda entry: entry['total_failed_subjects'], reverse=True)

    return {
        'class': _named(klass),
        'academic_year': _named(academic_year),
        'threshold': threshold,
        'total_students': len(enrollments),
        'total_at_risk': len(at_risk),
        'students': at_risk,
        'skipped': skipped,
    }


def student_report(student, academic_year):
    """
    Report card: every subject of the student's class with period averages.

    Raises:
        Enrollment.DoesNotExist: no active enrollment in that year
    """
    klass = resolve_class(student, academic_year)
    subjects = list(Subject.objects.for_class(klass))

    entries = []
    results = []
    for subject in subjects:
        result = evaluate_subject(student, subject, academic_year)
        results.append(result)
        marks = Mark.objects.for_student_subject(student, subject, academic_year)
        entries.append({
            **subject_result_dict(result),
            'period_averages': [
                {'period': p['period'], 'average': round_display(p['average'])}
                for p in period_averages(marks)
            ],
        })

    outcome = progress_outcome(results)
    return {
        'student': _student_info(student),
        'class': _named(klass),
        'academic_year': _named(academic_year),
        'subjects': entries,
        'statistics': {
            'total_subjects': outcome['total_subjects'],
            'approved_subjects': outcome['approved_subjects'],
            'overall_average': round_display(outcome['overall_average']),
            'approval_percentage': round_display(outcome['approval_percentage']),
        },
        'approved': outcome['promoted'],
    }


def student_subject_history(student, subject, academic_year):
    """All marks of a student in a subject, grouped by period, oldest first."""
    marks = list(Mark.objects.for_student_subject(student, subject, academic_year))
    result = evaluate_subject(student, subject, academic_year)
    periods = period_averages(marks)
    return {
        'student': _student_info(student),
        'subject': {**_subject_info(subject), 'min_grade_to_pass': subject.min_grade_to_pass},
        'academic_year': _named(academic_year),
        'average': round_display(result['final_average']),
        'regular_average': round_display(result['regular_average']),
        'recovery_grade': round_display(result['recovery_grade']),
        'approved': result['approved'],
        'final_status': result['final_status'],
        'total_marks': len(marks),
        'periods': [
            {
                'period': p['period'],
                'average': round_display(p['average']),
                'marks': [mark_dict(m) for m in p['marks']],
            }
            for p in periods
        ],
    }


def subject_statistics(subject, academic_year):
    """
    Approval statistics of one subject across all its classes in a year.

    Only students with at least one mark count towards averages and rates.
    """
    classes = list(subject.classes.filter(academic_year=academic_year).order_by('name', 'pk'))

    class_statistics = []
    totals = {'total_students': 0, 'students_with_marks': 0, 'approved': 0, 'failed': 0}
    weighted_sum = 0
    for klass in classes:
        enrollments = list(
            Enrollment.objects.active()
            .for_class(klass, academic_year)
            .select_related('student')
        )
        results = [
            evaluate_subject(e.student, subject, academic_year) for e in enrollments
        ]
        with_marks = [r for r in results if r['total_marks'] > 0]
        approved = sum(1 for r in with_marks if r['approved'])
        class_average = mean(r['final_average'] for r in with_marks)

        class_statistics.append({
            'class': _named(klass),
            'statistics': {
                'total_students': len(enrollments),
                'students_with_marks': len(with_marks),
                'approved': approved,
                'failed': len(with_marks) - approved,
                'approval_rate': round_display(percentage(approved, len(with_marks))),
                'average': round_display(class_average),
            },
        })
        totals['total_students'] += len(enrollments)
        totals['students_with_marks'] += len(with_marks)
        totals['approved'] += approved
        totals['failed'] += len(with_marks) - approved
        weighted_sum += class_average * len(with_marks)

    with_marks_total = totals['students_with_marks']
    overall_average = weighted_sum / with_marks_total if with_marks_total else 0
    return {
        'subject': _subject_info(subject),
        'academic_year': _named(academic_year),
        'statistics': {
            **totals,
            'total_classes': len(classes),
            'approval_rate': round_display(percentage(totals['approved'], with_marks_total)),
            'average': round_display(overall_average),
        },
        'class_statistics': class_statistics,
    }
