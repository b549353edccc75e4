"""
Grade aggregation rules.

Pure functions over mark-like objects (anything with ``grade``, ``weight``,
``is_recovery`` and ``date`` attributes). Nothing here touches the database,
so the same rules serve model methods, reports and tests.

Averages are returned unrounded; pass/fail comparisons are made on the
unrounded values and ``round_display`` is applied only when a result leaves
the engine.
"""
from decimal import Decimal, ROUND_HALF_UP

from . import config
from .choices import OverallStatus, SubjectStatus

ZERO = Decimal('0')
HUNDRED = Decimal('100')


def to_decimal(value):
    """Coerce ints, floats and strings to Decimal without float artefacts."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_display(value, places=None):
    """Round half-up to the display precision (2 places unless configured)."""
    if value is None:
        return None
    if places is None:
        places = config.DISPLAY_DECIMAL_PLACES
    quantum = Decimal(1).scaleb(-places)
    return to_decimal(value).quantize(quantum, rounding=ROUND_HALF_UP)


def percentage(part, total):
    """100 * part / total, or 0 when total is 0."""
    if not total:
        return ZERO
    return HUNDRED * to_decimal(part) / to_decimal(total)


def mean(values):
    values = [to_decimal(v) for v in values]
    if not values:
        return ZERO
    return sum(values, ZERO) / len(values)


def weighted_average(marks):
    """
    Weighted average of a set of marks.

    Returns:
        Decimal: sum(grade * weight) / sum(weight), or 0 for an empty set.
    """
    total = ZERO
    total_weight = ZERO
    for mark in marks:
        weight = to_decimal(mark.weight)
        total += to_decimal(mark.grade) * weight
        total_weight += weight
    if total_weight == 0:
        return ZERO
    return total / total_weight


def partition_marks(marks):
    """Split marks into (regular, recovery) lists, keeping input order."""
    regular, recovery = [], []
    for mark in marks:
        (recovery if mark.is_recovery else regular).append(mark)
    return regular, recovery


def _recency_key(mark):
    # date, then creation time, then identity; unsaved marks sort oldest
    created = getattr(mark, 'created_at', None)
    pk = getattr(mark, 'pk', None)
    return (
        mark.date,
        created is not None,
        created.timestamp() if created is not None else 0.0,
        str(pk) if pk is not None else '',
    )


def chronological(marks):
    """Marks sorted oldest first with a deterministic tie-break."""
    return sorted(marks, key=_recency_key)


def latest_mark(marks):
    """The most recent mark, or None for an empty set."""
    marks = list(marks)
    if not marks:
        return None
    return max(marks, key=_recency_key)


def summarize_marks(marks, min_grade_to_pass=None):
    """
    Apply the averaging and recovery policy to one student's marks in one subject.

    When the regular average is below the pass mark and at least one recovery
    mark exists, the most recent recovery grade is averaged with the regular
    average. A subject without any marks is reported as pending.

    Args:
        marks: iterable of mark-like objects
        min_grade_to_pass: pass mark, defaults to GRADEBOOK_DEFAULT_MIN_GRADE_TO_PASS

    Returns:
        dict with unrounded Decimal averages plus approved / final_status / total_marks
    """
    marks = list(marks)
    if min_grade_to_pass is None:
        min_grade_to_pass = config.DEFAULT_MIN_GRADE_TO_PASS
    min_grade_to_pass = to_decimal(min_grade_to_pass)

    regular, recovery = partition_marks(marks)
    regular_average = weighted_average(regular)
    recovery_grade = None
    final_average = regular_average

    if regular_average < min_grade_to_pass and recovery:
        recovery_grade = to_decimal(latest_mark(recovery).grade)
        final_average = (regular_average + recovery_grade) / 2

    if not marks:
        approved = False
        final_status = SubjectStatus.PENDING
    else:
        approved = final_average >= min_grade_to_pass
        final_status = SubjectStatus.APPROVED if approved else SubjectStatus.FAILED

    return {
        'regular_average': regular_average,
        'recovery_grade': recovery_grade,
        'final_average': final_average,
        'min_grade_to_pass': min_grade_to_pass,
        'approved': approved,
        'final_status': final_status,
        'total_marks': len(marks),
    }


def period_averages(marks):
    """
    Group marks by evaluation period, one weighted average per period.

    Periods appear in the order they are first seen chronologically.

    Returns:
        list of dicts: [{'period': 'Q1', 'average': Decimal, 'marks': [...]}, ...]
    """
    groups = {}
    for mark in chronological(marks):
        groups.setdefault(mark.evaluation_period, []).append(mark)
    return [
        {'period': period, 'average': weighted_average(period_marks), 'marks': period_marks}
        for period, period_marks in groups.items()
    ]


def progress_outcome(results):
    """
    Consolidate per-subject results into the year-level outcome.

    Returns:
        dict: overall_average, approval_percentage (unrounded), overall_status,
        promoted and the approved / failed / pending subject counts.
    """
    results = list(results)
    total = len(results)
    approved = sum(1 for r in results if r['approved'])
    failed = sum(1 for r in results if r['final_status'] == SubjectStatus.FAILED)
    pending = sum(1 for r in results if r['final_status'] == SubjectStatus.PENDING)

    all_passed = total > 0 and approved == total
    if all_passed:
        overall_status = OverallStatus.APPROVED
    elif total > 0 and failed == 0 and pending > 0:
        overall_status = OverallStatus.PENDING
    else:
        overall_status = OverallStatus.FAILED

    return {
        'overall_average': mean(r['final_average'] for r in results),
        'approval_percentage': percentage(approved, total),
        'overall_status': overall_status,
        'promoted': all_passed,
        'total_subjects': total,
        'approved_subjects': approved,
        'failed_subjects': failed,
        'pending_subjects': pending,
    }


def status_statistics(records):
    """
    Counts and rates over progress-like records (``overall_status`` and
    ``overall_average`` attributes).
    """
    records = list(records)
    total = len(records)
    counts = {status: 0 for status in OverallStatus.values}
    for record in records:
        counts[record.overall_status] = counts.get(record.overall_status, 0) + 1
    return {
        'total_students': total,
        'approved': counts[OverallStatus.APPROVED],
        'failed': counts[OverallStatus.FAILED],
        'pending': counts[OverallStatus.PENDING],
        'recovery': counts[OverallStatus.RECOVERY],
        'conditional': counts[OverallStatus.CONDITIONAL],
        'average': mean(record.overall_average for record in records),
        'approval_rate': percentage(counts[OverallStatus.APPROVED], total),
    }
