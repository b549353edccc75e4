import json
from datetime import date, timedelta
from decimal import Decimal
from smtplib import SMTPException
from types import SimpleNamespace
from unittest.mock import patch

from django.contrib import admin, messages
from django.contrib.auth import get_user_model
from django.core import mail
from django.core.cache import cache
from django.core.exceptions import ValidationError
from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import RequestFactory, SimpleTestCase, TestCase
from django.urls import reverse
from django.utils import timezone

from academics.models import Class, EducationalSegment, Subject, YearLevel
from core.choices import RecordStatus
from core.exceptions import ConflictError
from core.models import AcademicYear
from schools.models import School
from students.models import Enrollment, Student

from . import services
from .admin import AcademicProgressAdmin
from .calculations import (
    period_averages, progress_outcome, round_display, status_statistics,
    summarize_marks, weighted_average,
)
from .choices import (
    CouncilDecision, EvaluationSystemType, EvaluationType, MarkStatus,
    OverallStatus, ProgressStatus, SubjectStatus,
)
from .converters import (
    ConceptualScheme, DescriptiveScheme, NumericScheme, Scheme, build_scheme,
    validate_config,
)
from .imports import import_marks, read_marks_file
from .models import AcademicProgress, EvaluationSystem, Mark, ProgressFinalizedError
from .reports import (
    at_risk_students, class_report, school_report, student_report,
    student_subject_history, subject_report, subject_statistics, year_level_report,
)
from .signals import progress_finalized, signals_disabled
from .tasks import (
    notify_at_risk_students, recalculate_class_progress, recalculate_student_progress,
    send_at_risk_notification,
)


User = get_user_model()

CONCEPTS = [
    {'symbol': 'A', 'description': 'Excellent', 'min_value': 9, 'max_value': 10, 'passing': True},
    {'symbol': 'B', 'description': 'Good', 'min_value': 7, 'max_value': 8.99, 'passing': True},
    {'symbol': 'C', 'description': 'Fair', 'min_value': 6, 'max_value': 6.99, 'passing': True},
    {'symbol': 'D', 'description': 'Insufficient', 'min_value': 0, 'max_value': 5.99, 'passing': False},
]


def fake_mark(grade, weight=1, is_recovery=False, days_ago=0, period='Q1', created_at=None, pk=None):
    """Unsaved stand-in for a Mark, enough for the pure aggregation functions."""
    when = timezone.now().replace(microsecond=0) - timedelta(days=days_ago)
    return SimpleNamespace(
        grade=Decimal(str(grade)),
        weight=Decimal(str(weight)),
        is_recovery=is_recovery,
        date=when,
        evaluation_period=period,
        created_at=created_at,
        pk=pk,
    )


def fake_result(final_average, status):
    return {
        'final_average': Decimal(str(final_average)),
        'approved': status == SubjectStatus.APPROVED,
        'final_status': status,
    }


class GradebookTestMixin:
    """School with one class, three subjects and one enrolled student."""

    def setUp(self):
        cache.clear()
        self.roll_number = 0
        self.school = School.objects.create(name='Accra Academy', short_name='AA')
        self.academic_year = AcademicYear.objects.create(
            school=self.school,
            name='2024/2025',
            year=2024,
            start_date=date(2024, 9, 1),
            end_date=date(2025, 7, 31),
            is_current=True,
        )
        self.segment = EducationalSegment.objects.create(
            school=self.school, name='Primary', acronym='PRI', order=1
        )
        self.level = YearLevel.objects.create(
            school=self.school, educational_segment=self.segment, name='Basic 4', order=4
        )
        self.next_level = YearLevel.objects.create(
            school=self.school,
            educational_segment=self.segment,
            name='Basic 5',
            order=5,
            prerequisite_year_level=self.level,
        )
        self.klass = Class.objects.create(
            school=self.school,
            educational_segment=self.segment,
            year_level=self.level,
            academic_year=self.academic_year,
            name='B4-A',
        )
        self.math = self.create_subject('Mathematics', 'MATH')
        self.english = self.create_subject('English Language', 'ENG')
        self.science = self.create_subject('Integrated Science', 'SCI')
        self.student = self.create_student('Kwame', 'Mensah', 'S001', guardian_email='ama@example.com')

    def create_subject(self, name, code, klass=None, **kwargs):
        subject = Subject.objects.create(
            school=self.school, name=name, code=code, year_level=self.level, **kwargs
        )
        subject.classes.add(klass or self.klass)
        return subject

    def create_student(self, first_name, last_name, admission_number, klass=None, **kwargs):
        student = Student.objects.create(
            school=self.school,
            first_name=first_name,
            last_name=last_name,
            admission_number=admission_number,
            **kwargs
        )
        self.roll_number += 1
        klass = klass or self.klass
        Enrollment.objects.create(
            student=student,
            academic_year=klass.academic_year,
            class_assigned=klass,
            roll_number=self.roll_number,
        )
        return student

    def add_mark(self, subject, grade, weight=1, student=None, is_recovery=False,
                 days_ago=10, period='Q1', status=MarkStatus.PUBLISHED, klass=None):
        return Mark.objects.create(
            school=self.school,
            student=student or self.student,
            subject=subject,
            class_assigned=klass or self.klass,
            academic_year=self.academic_year,
            evaluation_period=period,
            evaluation_type=EvaluationType.RECOVERY if is_recovery else EvaluationType.TEST,
            title='Recovery test' if is_recovery else 'Class test',
            grade=Decimal(str(grade)),
            weight=Decimal(str(weight)),
            date=timezone.now() - timedelta(days=days_ago),
            is_recovery=is_recovery,
            status=status,
        )


# ============ Aggregation ============

class WeightedAverageTest(SimpleTestCase):

    def test_equal_weights_give_arithmetic_mean(self):
        marks = [fake_mark(4), fake_mark(7), fake_mark(9)]
        self.assertEqual(weighted_average(marks), Decimal('20') / 3)

    def test_empty_set_is_zero(self):
        self.assertEqual(weighted_average([]), Decimal('0'))

    def test_weights_are_applied(self):
        marks = [fake_mark(8, weight=2), fake_mark(6, weight=1)]
        self.assertEqual(round_display(weighted_average(marks)), Decimal('7.33'))

    def test_round_display_is_half_up(self):
        self.assertEqual(round_display(Decimal('2.345')), Decimal('2.35'))
        self.assertEqual(round_display(Decimal('2.344')), Decimal('2.34'))
        self.assertIsNone(round_display(None))


class SummarizeMarksTest(SimpleTestCase):

    def test_weighted_regular_marks_without_recovery(self):
        result = summarize_marks([fake_mark(8, weight=2), fake_mark(6, weight=1)], Decimal('6'))

        self.assertEqual(round_display(result['regular_average']), Decimal('7.33'))
        self.assertEqual(round_display(result['final_average']), Decimal('7.33'))
        self.assertIsNone(result['recovery_grade'])
        self.assertTrue(result['approved'])
        self.assertEqual(result['final_status'], SubjectStatus.APPROVED)

    def test_recovery_averaged_with_regular_and_still_failing(self):
        marks = [
            fake_mark(4, days_ago=20),
            fake_mark(5, days_ago=15),
            fake_mark(7, is_recovery=True, days_ago=1),
        ]
        result = summarize_marks(marks, Decimal('6'))

        self.assertEqual(result['regular_average'], Decimal('4.5'))
        self.assertEqual(result['recovery_grade'], Decimal('7'))
        self.assertEqual(result['final_average'], Decimal('5.75'))
        self.assertFalse(result['approved'])
        self.assertEqual(result['final_status'], SubjectStatus.FAILED)

    def test_recovery_ignored_when_regular_average_passes(self):
        marks = [fake_mark(7), fake_mark(10, is_recovery=True)]
        result = summarize_marks(marks, Decimal('6'))

        self.assertIsNone(result['recovery_grade'])
        self.assertEqual(result['final_average'], Decimal('7'))

    def test_most_recent_recovery_mark_is_used(self):
        marks = [
            fake_mark(2),
            fake_mark(9, is_recovery=True, days_ago=5),
            fake_mark(6, is_recovery=True, days_ago=1),
            fake_mark(8, is_recovery=True, days_ago=3),
        ]
        result = summarize_marks(marks, Decimal('6'))
        self.assertEqual(result['recovery_grade'], Decimal('6'))

    def test_same_date_recovery_tie_broken_by_creation(self):
        now = timezone.now()
        first = fake_mark(3, is_recovery=True, created_at=now - timedelta(minutes=5), pk='a')
        second = fake_mark(9, is_recovery=True, created_at=now, pk='b')
        second.date = first.date

        result = summarize_marks([fake_mark(1), second, first], Decimal('6'))
        self.assertEqual(result['recovery_grade'], Decimal('9'))

    def test_no_marks_is_pending_not_failed(self):
        result = summarize_marks([], Decimal('6'))

        self.assertEqual(result['final_average'], Decimal('0'))
        self.assertFalse(result['approved'])
        self.assertEqual(result['final_status'], SubjectStatus.PENDING)
        self.assertEqual(result['total_marks'], 0)

    def test_default_pass_mark(self):
        result = summarize_marks([fake_mark(6)])
        self.assertEqual(result['min_grade_to_pass'], Decimal('6'))
        self.assertTrue(result['approved'])

    def test_period_averages_keep_chronological_order(self):
        marks = [
            fake_mark(9, period='Q2', days_ago=1),
            fake_mark(5, period='Q1', days_ago=30),
            fake_mark(7, period='Q1', days_ago=20),
        ]
        periods = period_averages(marks)

        self.assertEqual([p['period'] for p in periods], ['Q1', 'Q2'])
        self.assertEqual(periods[0]['average'], Decimal('6'))
        self.assertEqual(len(periods[0]['marks']), 2)


class ProgressOutcomeTest(SimpleTestCase):

    def test_one_failed_subject_fails_the_year(self):
        outcome = progress_outcome([
            fake_result(8, SubjectStatus.APPROVED),
            fake_result(7, SubjectStatus.APPROVED),
            fake_result(3, SubjectStatus.FAILED),
        ])

        self.assertEqual(outcome['overall_status'], OverallStatus.FAILED)
        self.assertFalse(outcome['promoted'])
        self.assertEqual(round_display(outcome['approval_percentage']), Decimal('66.67'))
        self.assertEqual(outcome['overall_average'], Decimal('6'))

    def test_all_approved_promotes(self):
        outcome = progress_outcome([fake_result(8, SubjectStatus.APPROVED)])
        self.assertEqual(outcome['overall_status'], OverallStatus.APPROVED)
        self.assertTrue(outcome['promoted'])
        self.assertEqual(outcome['approval_percentage'], Decimal('100'))

    def test_pending_without_failures_stays_pending(self):
        outcome = progress_outcome([
            fake_result(8, SubjectStatus.APPROVED),
            fake_result(0, SubjectStatus.PENDING),
        ])
        self.assertEqual(outcome['overall_status'], OverallStatus.PENDING)
        self.assertFalse(outcome['promoted'])

    def test_no_subjects(self):
        outcome = progress_outcome([])
        self.assertEqual(outcome['overall_status'], OverallStatus.FAILED)
        self.assertFalse(outcome['promoted'])
        self.assertEqual(outcome['overall_average'], Decimal('0'))
        self.assertEqual(outcome['approval_percentage'], Decimal('0'))

    def test_status_statistics(self):
        records = [
            SimpleNamespace(overall_status=OverallStatus.APPROVED, overall_average=Decimal('8')),
            SimpleNamespace(overall_status=OverallStatus.FAILED, overall_average=Decimal('4')),
            SimpleNamespace(overall_status=OverallStatus.CONDITIONAL, overall_average=Decimal('6')),
        ]
        stats = status_statistics(records)

        self.assertEqual(stats['total_students'], 3)
        self.assertEqual(stats['approved'], 1)
        self.assertEqual(stats['failed'], 1)
        self.assertEqual(stats['conditional'], 1)
        self.assertEqual(stats['average'], Decimal('6'))
        self.assertEqual(round_display(stats['approval_rate']), Decimal('33.33'))


# ============ Evaluation-system conversion ============

class ConverterTest(SimpleTestCase):

    def test_conceptual_numeric_value_maps_to_concept(self):
        scheme = build_scheme(EvaluationSystemType.CONCEPTUAL, {'concepts': CONCEPTS})
        result = scheme.convert(7.5)

        self.assertEqual(result['display'], 'B')
        self.assertTrue(result['passing'])
        self.assertEqual(result['value'], Decimal('7.5'))

    def test_conceptual_symbol_uses_range_midpoint(self):
        scheme = build_scheme(EvaluationSystemType.CONCEPTUAL, {'concepts': CONCEPTS})
        result = scheme.convert('A')

        self.assertEqual(result['value'], Decimal('9.5'))
        self.assertEqual(result['display'], 'A')

    def test_conceptual_failing_concept(self):
        scheme = ConceptualScheme(CONCEPTS)
        result = scheme.convert('4')
        self.assertEqual(result['display'], 'D')
        self.assertFalse(result['passing'])

    def test_conceptual_unmatched_range_falls_back_to_numbers(self):
        scheme = ConceptualScheme([CONCEPTS[0]])
        result = scheme.convert(6.5)

        self.assertEqual(result['display'], '6.5')
        self.assertTrue(result['passing'])

    def test_descriptive_closest_level_first_wins_ties(self):
        scheme = DescriptiveScheme([
            {'name': 'Developing', 'value': 4, 'passing': False},
            {'name': 'Achieved', 'value': 8, 'passing': True},
        ])

        self.assertEqual(scheme.convert(6)['display'], 'Developing')
        self.assertEqual(scheme.convert(7)['display'], 'Achieved')
        result = scheme.convert('Achieved')
        self.assertEqual(result['value'], Decimal('8.0'))
        self.assertTrue(result['passing'])

    def test_numeric_rounds_to_configured_places(self):
        scheme = NumericScheme.from_config({'decimal_places': 1, 'passing_grade': 5})
        result = scheme.convert('7.46')

        self.assertEqual(result['value'], Decimal('7.5'))
        self.assertEqual(result['display'], '7.5')
        self.assertTrue(result['passing'])
        self.assertFalse(scheme.convert(4.9)['passing'])

    def test_numeric_display_feeds_back_within_one_rounding_unit(self):
        scheme = NumericScheme()
        for raw in ['3.14', '7.25', '9.99', '0']:
            again = scheme.convert(scheme.convert(raw)['display'])
            self.assertLessEqual(abs(again['value'] - Decimal(raw)), Decimal('0.1'))

    def test_huge_value_is_a_validation_error(self):
        with self.assertRaises(ValidationError) as ctx:
            NumericScheme().convert('1e30')
        self.assertEqual(ctx.exception.code, 'invalid_grade')
        with self.assertRaises(ValidationError):
            ConceptualScheme(CONCEPTS).convert('1e30')

    def test_numeric_range_is_enforced(self):
        scheme = NumericScheme(min_value=0, max_value=20)
        self.assertEqual(scheme.convert(15)['display'], '15.0')
        with self.assertRaises(ValidationError):
            scheme.convert(20.5)
        with self.assertRaises(ValidationError):
            NumericScheme().convert(-1)

    def test_numeric_without_fractions_rounds_to_whole_numbers(self):
        scheme = NumericScheme.from_config({'allow_fractions': False})
        result = scheme.convert('7.46')

        self.assertEqual(result['value'], Decimal('7'))
        self.assertEqual(result['display'], '7')

    def test_unknown_symbol_is_rejected(self):
        scheme = ConceptualScheme(CONCEPTS)
        with self.assertRaises(ValidationError):
            scheme.convert('Z')
        with self.assertRaises(ValidationError):
            scheme.convert(True)

    def test_unconfigured_system_uses_bare_passing_check(self):
        scheme = build_scheme(EvaluationSystemType.CONCEPTUAL, {})
        self.assertIs(type(scheme), Scheme)
        self.assertTrue(scheme.convert(6)['passing'])
        self.assertFalse(scheme.convert(5.9)['passing'])

    def test_validate_config(self):
        with self.assertRaises(ValidationError):
            validate_config(EvaluationSystemType.CONCEPTUAL, {'concepts': []})
        with self.assertRaises(ValidationError):
            validate_config(EvaluationSystemType.NUMERIC, {'min_value': 10, 'max_value': 0})
        with self.assertRaises(ValidationError):
            validate_config(EvaluationSystemType.NUMERIC, {'decimal_places': 'two'})
        with self.assertRaises(ValidationError):
            validate_config(EvaluationSystemType.DESCRIPTIVE, {'performance_levels': [{'name': 'X'}]})
        validate_config(EvaluationSystemType.CONCEPTUAL, {'concepts': CONCEPTS})


# ============ Models ============

class MarkModelTest(GradebookTestMixin, TestCase):

    def test_grade_outside_range_rejected(self):
        with self.assertRaises(ValidationError):
            self.add_mark(self.math, 11)
        with self.assertRaises(ValidationError):
            self.add_mark(self.math, -1)
        self.assertFalse(Mark.objects.exists())

    def test_weight_must_be_positive(self):
        with self.assertRaises(ValidationError):
            self.add_mark(self.math, 7, weight=0)

    def test_identity_fields_cannot_change(self):
        mark = self.add_mark(self.math, 7)
        mark.subject = self.english
        with self.assertRaises(ValidationError):
            mark.save()

    def test_grade_can_be_corrected(self):
        mark = self.add_mark(self.math, 7)
        mark.grade = Decimal('7.255')
        mark.save()
        mark.refresh_from_db()
        self.assertEqual(mark.grade, Decimal('7.26'))

    def test_enrollment_with_marks_cannot_be_deleted(self):
        self.add_mark(self.math, 7)
        enrollment = self.student.enrollments.get()
        with self.assertRaises(ConflictError) as ctx:
            enrollment.delete()
        self.assertEqual(ctx.exception.code, 'enrollment_has_marks')
        self.assertTrue(Enrollment.objects.filter(pk=enrollment.pk).exists())


class EvaluateSubjectTest(GradebookTestMixin, TestCase):

    def test_weighted_average_of_stored_marks(self):
        self.add_mark(self.math, 8, weight=2)
        self.add_mark(self.math, 6, weight=1)

        result = services.evaluate_subject(self.student, self.math, self.academic_year)

        self.assertEqual(round_display(result['final_average']), Decimal('7.33'))
        self.assertTrue(result['approved'])
        self.assertIsNone(result['recovery_grade'])
        self.assertEqual(result['subject'], self.math)

    def test_later_recovery_mark(self):
        self.add_mark(self.math, 4, days_ago=30)
        self.add_mark(self.math, 5, days_ago=20)
        self.add_mark(self.math, 7, is_recovery=True, days_ago=2)

        result = services.evaluate_subject(self.student, self.math, self.academic_year)

        self.assertEqual(result['final_average'], Decimal('5.75'))
        self.assertEqual(result['final_status'], SubjectStatus.FAILED)

    def test_subject_pass_mark_is_used(self):
        self.math.min_grade_to_pass = Decimal('5.00')
        self.math.save()
        self.add_mark(self.math, 5.5)

        result = services.evaluate_subject(self.student, self.math, self.academic_year)
        self.assertTrue(result['approved'])

    def test_draft_marks_are_counted(self):
        self.add_mark(self.math, 9, status=MarkStatus.DRAFT)
        result = services.evaluate_subject(self.student, self.math, self.academic_year)
        self.assertEqual(result['total_marks'], 1)

    def test_evaluation_period_filter(self):
        self.add_mark(self.math, 4, period='Q1')
        self.add_mark(self.math, 10, period='Q2')

        result = services.evaluate_subject(
            self.student, self.math, self.academic_year, evaluation_period='Q2'
        )
        self.assertEqual(result['final_average'], Decimal('10'))


class AcademicProgressTest(GradebookTestMixin, TestCase):

    def record_year(self, math=8, english=7, science=3):
        self.add_mark(self.math, math)
        self.add_mark(self.english, english)
        self.add_mark(self.science, science)
        return services.evaluate_student_progress(self.student, self.academic_year)

    def assertConsistent(self, progress):
        if progress.promoted_to_next_level:
            self.assertIn(progress.overall_status, (OverallStatus.APPROVED, OverallStatus.CONDITIONAL))
        if progress.overall_status == OverallStatus.FAILED:
            self.assertFalse(progress.promoted_to_next_level)
        self.assertTrue(Decimal('0') <= progress.approval_percentage <= Decimal('100'))
        self.assertTrue(Decimal('0') <= progress.overall_average <= Decimal('10'))

    def test_one_failed_subject_of_three(self):
        progress = self.record_year()

        self.assertEqual(progress.overall_status, OverallStatus.FAILED)
        self.assertFalse(progress.promoted_to_next_level)
        self.assertEqual(progress.approval_percentage, Decimal('66.67'))
        self.assertEqual(progress.overall_average, Decimal('6.00'))
        self.assertIsNone(progress.next_year_level)
        self.assertIsNotNone(progress.evaluation_date)
        self.assertEqual(progress.subject_results.count(), 3)
        self.assertConsistent(progress)

    def test_subject_results_follow_listing_order(self):
        progress = self.record_year()
        names = [r.subject.name for r in progress.subject_results.all()]
        self.assertEqual(names, ['English Language', 'Integrated Science', 'Mathematics'])

    def test_all_passed_promotes_to_next_level(self):
        progress = self.record_year(science=9)

        self.assertEqual(progress.overall_status, OverallStatus.APPROVED)
        self.assertTrue(progress.promoted_to_next_level)
        self.assertEqual(progress.next_year_level, self.next_level)
        self.assertConsistent(progress)

    def test_subject_without_marks_is_pending(self):
        self.add_mark(self.math, 8)
        progress = services.evaluate_student_progress(self.student, self.academic_year)

        self.assertEqual(progress.overall_status, OverallStatus.PENDING)
        statuses = set(progress.subject_results.values_list('final_status', flat=True))
        self.assertEqual(statuses, {SubjectStatus.APPROVED, SubjectStatus.PENDING})

    def test_conditional_council_decision(self):
        progress = self.record_year()
        progress = services.apply_council_decision(
            progress.pk, CouncilDecision.CONDITIONAL, observations='Summer school'
        )

        self.assertEqual(progress.overall_status, OverallStatus.CONDITIONAL)
        self.assertTrue(progress.promoted_to_next_level)
        self.assertEqual(progress.status, ProgressStatus.FINAL)
        self.assertTrue(progress.reviewed_by_council)
        self.assertIsNotNone(progress.council_date)
        self.assertEqual(progress.observations, 'Summer school')
        self.assertConsistent(progress)

    def test_council_decision_is_repeatable(self):
        progress = self.record_year()
        progress.apply_council_decision(CouncilDecision.FAILED)
        first = (progress.overall_status, progress.promoted_to_next_level)
        progress.apply_council_decision(CouncilDecision.FAILED, observations='Confirmed')

        self.assertEqual((progress.overall_status, progress.promoted_to_next_level), first)
        self.assertConsistent(progress)

    def test_invalid_council_decision(self):
        progress = self.record_year()
        with self.assertRaises(ValidationError):
            progress.apply_council_decision('maybe')
        with self.assertRaises(ValidationError):
            progress.apply_council_decision(CouncilDecision.NOT_APPLICABLE)
        progress.refresh_from_db()
        self.assertEqual(progress.status, ProgressStatus.DRAFT)

    def test_final_record_is_not_recomputed(self):
        progress = self.record_year()
        progress.apply_council_decision(CouncilDecision.APPROVED)
        self.add_mark(self.math, 0)

        with self.assertRaises(ProgressFinalizedError):
            services.evaluate_student_progress(self.student, self.academic_year)

        progress.refresh_from_db()
        self.assertEqual(progress.overall_status, OverallStatus.APPROVED)
        self.assertTrue(progress.promoted_to_next_level)

    def test_stale_instance_cannot_overwrite_council_decision(self):
        """A copy loaded before the decision must not reopen the record."""
        progress = self.record_year()
        stale = AcademicProgress.objects.get(pk=progress.pk)
        services.apply_council_decision(progress.pk, CouncilDecision.CONDITIONAL)

        with self.assertRaises(ProgressFinalizedError):
            stale.update_from_marks()

        progress.refresh_from_db()
        self.assertEqual(progress.status, ProgressStatus.FINAL)
        self.assertEqual(progress.council_decision, CouncilDecision.CONDITIONAL)
        self.assertEqual(progress.overall_status, OverallStatus.CONDITIONAL)
        self.assertTrue(progress.promoted_to_next_level)

    def test_admin_recompute_keeps_council_decision(self):
        progress = self.record_year()
        stale = [AcademicProgress.objects.get(pk=progress.pk)]
        services.apply_council_decision(progress.pk, CouncilDecision.CONDITIONAL)

        model_admin = AcademicProgressAdmin(AcademicProgress, admin.site)
        request = RequestFactory().post('/admin/gradebook/academicprogress/')
        request.user = User.objects.create_superuser('root@example.com', 'testpass123')
        with patch.object(model_admin, 'message_user') as mock_message:
            model_admin.recompute_progress(request, stale)

        self.assertEqual(mock_message.call_args_list[0].args[2], messages.WARNING)
        progress.refresh_from_db()
        self.assertEqual(progress.status, ProgressStatus.FINAL)
        self.assertEqual(progress.council_decision, CouncilDecision.CONDITIONAL)

    def test_transferred_student_keeps_earlier_marks(self):
        """Marks from the previous class still count after a transfer."""
        second = Class.objects.create(
            school=self.school,
            educational_segment=self.segment,
            year_level=self.level,
            academic_year=self.academic_year,
            name='B4-B',
        )
        self.math.classes.add(second)
        self.add_mark(self.math, 9, days_ago=60)

        enrollment = self.student.enrollments.get()
        enrollment.status = Enrollment.Status.TRANSFERRED
        enrollment.save()
        Enrollment.objects.create(
            student=self.student, academic_year=self.academic_year, class_assigned=second
        )
        self.add_mark(self.math, 3, klass=second, days_ago=5)

        progress = services.evaluate_student_progress(self.student, self.academic_year)
        history = student_subject_history(self.student, self.math, self.academic_year)

        self.assertEqual(progress.class_assigned, second)
        math = progress.subject_results.get(subject=self.math)
        self.assertEqual(math.final_average, Decimal('6.00'))
        self.assertEqual(history['average'], Decimal('6.00'))
        card = student_report(self.student, self.academic_year)
        self.assertEqual(card['subjects'][0]['final_average'], Decimal('6.00'))

    def test_forced_recompute_reopens_record(self):
        progress = self.record_year()
        progress.apply_council_decision(CouncilDecision.APPROVED)

        progress = services.evaluate_student_progress(self.student, self.academic_year, force=True)

        self.assertEqual(progress.status, ProgressStatus.DRAFT)
        self.assertFalse(progress.reviewed_by_council)
        self.assertEqual(progress.council_decision, CouncilDecision.NOT_APPLICABLE)
        self.assertEqual(progress.overall_status, OverallStatus.FAILED)

    def test_review_workflow(self):
        progress = self.record_year()
        progress = services.submit_for_review(progress.pk)
        self.assertEqual(progress.status, ProgressStatus.IN_REVIEW)

        with self.assertRaises(ConflictError):
            services.submit_for_review(progress.pk)

        # still recomputable while in review
        progress = services.evaluate_student_progress(self.student, self.academic_year)
        self.assertEqual(progress.status, ProgressStatus.IN_REVIEW)

    def test_find_or_create_returns_existing_record(self):
        first = AcademicProgress.find_or_create(self.student, self.academic_year, self.klass)
        second = AcademicProgress.find_or_create(self.student, self.academic_year, self.klass)

        self.assertEqual(first.pk, second.pk)
        self.assertEqual(first.year_level, self.level)
        self.assertEqual(first.school, self.school)
        self.assertEqual(AcademicProgress.objects.count(), 1)

    def test_student_without_enrollment(self):
        loner = Student.objects.create(
            school=self.school, first_name='Esi', last_name='Owusu', admission_number='S099'
        )
        with self.assertRaises(Enrollment.DoesNotExist):
            services.evaluate_student_progress(loner, self.academic_year)

    def test_progress_finalized_signal(self):
        received = []

        def handler(sender, progress, decision, user, **kwargs):
            received.append((progress.pk, decision))

        progress_finalized.connect(handler)
        self.addCleanup(progress_finalized.disconnect, handler)

        progress = self.record_year()
        progress.apply_council_decision(CouncilDecision.APPROVED)
        self.assertEqual(received, [(progress.pk, CouncilDecision.APPROVED)])

    def test_class_evaluation_skips_final_records(self):
        other = self.create_student('Akosua', 'Boateng', 'S002')
        self.add_mark(self.math, 8, student=other)
        progress = self.record_year()
        progress.apply_council_decision(CouncilDecision.FAILED)

        result = services.evaluate_class_progress(self.klass)

        self.assertEqual(len(result['evaluated']), 1)
        self.assertEqual(result['evaluated'][0].student, other)
        self.assertEqual(result['skipped'], [{'student': self.student.pk, 'reason': 'final'}])

        result = services.evaluate_class_progress(self.klass, force=True)
        self.assertEqual(len(result['evaluated']), 2)


# ============ Reports ============

class ReportsTest(GradebookTestMixin, TestCase):

    def setUp(self):
        super().setUp()
        self.history = self.create_subject('History', 'HIST')
        self.french = self.create_subject('French', 'FRE')
        self.ama = self.create_student('Ama', 'Asante', 'S002', guardian_email='kofi@example.com')
        self.yaw = self.create_student('Yaw', 'Darko', 'S003')

    def fill(self, student, failing=(), klass=None):
        for subject in [self.math, self.english, self.science, self.history, self.french]:
            self.add_mark(subject, 3 if subject in failing else 8, student=student, klass=klass)

    def test_at_risk_threshold(self):
        self.fill(self.student, failing=(self.math, self.english))
        self.fill(self.ama, failing=(self.math,))

        report = at_risk_students(self.klass, threshold=2)

        self.assertEqual(report['total_students'], 3)
        self.assertEqual(report['total_at_risk'], 1)
        entry = report['students'][0]
        self.assertEqual(entry['student_id'], str(self.student.pk))
        self.assertEqual(entry['total_failed_subjects'], 2)
        self.assertEqual(entry['total_subjects'], 5)
        self.assertEqual(entry['failure_rate'], Decimal('40.00'))
        self.assertEqual(entry['guardian_email'], 'ama@example.com')

    def test_at_risk_sorted_by_failures(self):
        self.fill(self.student, failing=(self.math, self.english))
        self.fill(self.ama, failing=(self.math, self.english, self.science))

        report = at_risk_students(self.klass, threshold=1)
        self.assertEqual(
            [e['student_id'] for e in report['students']],
            [str(self.ama.pk), str(self.student.pk)],
        )

    def test_students_without_marks_are_not_at_risk(self):
        report = at_risk_students(self.klass, threshold=1)
        self.assertEqual(report['total_at_risk'], 0)

    def test_at_risk_threshold_must_be_positive(self):
        with self.assertRaises(ValidationError):
            at_risk_students(self.klass, threshold=0)

    def test_subject_report_sorted_with_stable_ties(self):
        self.add_mark(self.math, 5, student=self.student)
        self.add_mark(self.math, 9, student=self.ama)
        self.add_mark(self.math, 5, student=self.yaw)

        report = subject_report(self.klass, self.math)

        names = [row['student']['admission_number'] for row in report['students']]
        self.assertEqual(names, ['S002', 'S001', 'S003'])
        self.assertEqual(report['statistics']['approved'], 1)
        self.assertEqual(report['statistics']['failed'], 2)
        self.assertEqual(report['statistics']['approval_rate'], Decimal('33.33'))

    def test_class_report(self):
        self.fill(self.student)
        self.fill(self.ama, failing=(self.math,))
        services.evaluate_class_progress(self.klass)

        report = class_report(self.klass)
        stats = report['statistics']

        self.assertEqual(stats['total_students'], 3)
        self.assertEqual(stats['approved'], 1)
        self.assertEqual(stats['failed'], 1)
        self.assertEqual(stats['pending'], 1)
        self.assertEqual(stats['approval_rate'], Decimal('33.33'))

    def test_year_level_and_school_reports(self):
        second = Class.objects.create(
            school=self.school,
            educational_segment=self.segment,
            year_level=self.level,
            academic_year=self.academic_year,
            name='B4-B',
        )
        for subject in [self.math, self.english, self.science, self.history, self.french]:
            subject.classes.add(second)
        abena = self.create_student('Abena', 'Ofori', 'S004', klass=second)
        self.fill(self.student)
        self.fill(abena, klass=second)
        services.evaluate_class_progress(self.klass)
        services.evaluate_class_progress(second)

        report = year_level_report(self.level, self.academic_year)
        self.assertEqual(report['statistics']['total_classes'], 2)
        self.assertEqual(report['statistics']['total_students'], 4)
        self.assertEqual(report['statistics']['approved'], 2)
        self.assertEqual(len(report['class_summaries']), 2)

        report = school_report(self.school, self.academic_year)
        self.assertEqual(report['statistics']['total_year_levels'], 2)
        self.assertEqual(report['statistics']['total_classes'], 2)
        self.assertEqual(report['statistics']['approval_rate'], Decimal('50.00'))

    def test_school_summaries_add_up_to_totals(self):
        """Progress in an inactive year level still appears in its summary."""
        retired = YearLevel.objects.create(
            school=self.school,
            educational_segment=self.segment,
            name='Basic 3',
            order=3,
            status=RecordStatus.INACTIVE,
        )
        old_class = Class.objects.create(
            school=self.school,
            educational_segment=self.segment,
            year_level=retired,
            academic_year=self.academic_year,
            name='B3-A',
        )
        self.math.classes.add(old_class)
        kofi = self.create_student('Kofi', 'Appiah', 'S005', klass=old_class)
        self.add_mark(self.math, 8, student=kofi, klass=old_class)
        services.evaluate_class_progress(old_class)
        self.fill(self.student)
        services.evaluate_class_progress(self.klass)

        report = school_report(self.school, self.academic_year)
        summaries = report['year_level_summaries']

        self.assertEqual(report['statistics']['total_year_levels'], len(summaries))
        self.assertEqual(
            sum(s['statistics']['total_students'] for s in summaries),
            report['statistics']['total_students'],
        )
        self.assertEqual(
            sum(s['statistics']['approved'] for s in summaries),
            report['statistics']['approved'],
        )

    def test_year_level_without_classes(self):
        with self.assertRaises(Class.DoesNotExist):
            year_level_report(self.next_level, self.academic_year)

    def test_student_report_groups_periods(self):
        self.add_mark(self.math, 6, period='Q1', days_ago=40)
        self.add_mark(self.math, 8, period='Q2', days_ago=5)

        report = student_report(self.student, self.academic_year)

        self.assertEqual(report['class']['name'], 'B4-A')
        self.assertEqual(report['statistics']['total_subjects'], 5)
        math = next(s for s in report['subjects'] if s['subject']['code'] == 'MATH')
        self.assertEqual(math['final_average'], Decimal('7.00'))
        self.assertEqual(
            math['period_averages'],
            [{'period': 'Q1', 'average': Decimal('6.00')}, {'period': 'Q2', 'average': Decimal('8.00')}],
        )
        self.assertFalse(report['approved'])

    def test_student_subject_history(self):
        self.add_mark(self.math, 4, period='Q1', days_ago=40)
        self.add_mark(self.math, 7, is_recovery=True, period='Q1', days_ago=1)

        history = student_subject_history(self.student, self.math, self.academic_year)

        self.assertEqual(history['total_marks'], 2)
        self.assertEqual(history['recovery_grade'], Decimal('7.00'))
        self.assertEqual(history['average'], Decimal('5.50'))
        self.assertEqual(len(history['periods'][0]['marks']), 2)

    def test_subject_statistics_only_counts_students_with_marks(self):
        self.add_mark(self.math, 8, student=self.student)
        self.add_mark(self.math, 4, student=self.ama)

        stats = subject_statistics(self.math, self.academic_year)
        class_stats = stats['class_statistics'][0]['statistics']

        self.assertEqual(class_stats['total_students'], 3)
        self.assertEqual(class_stats['students_with_marks'], 2)
        self.assertEqual(class_stats['approval_rate'], Decimal('50.00'))
        self.assertEqual(class_stats['average'], Decimal('6.00'))


# ============ Evaluation systems ============

class EvaluationSystemTest(GradebookTestMixin, TestCase):

    def create_system(self, name, **kwargs):
        kwargs.setdefault('type', EvaluationSystemType.NUMERIC)
        return EvaluationSystem.objects.create(school=self.school, name=name, **kwargs)

    def test_resolution_order(self):
        default = self.create_system('School default')
        segment_system = self.create_system('Primary scale')
        segment_system.educational_segments.add(self.segment)
        level_system = self.create_system('Basic 4 scale')
        level_system.year_levels.add(self.level)
        subject_system = self.create_system(
            'Maths concepts', type=EvaluationSystemType.CONCEPTUAL, config={'concepts': CONCEPTS},
            subject=self.math,
        )

        find = services.find_applicable
        self.assertEqual(find(self.school, subject=self.math, year_level=self.level), subject_system)
        self.assertEqual(find(self.school, subject=self.english, year_level=self.level), level_system)
        self.assertEqual(find(self.school, subject=self.english, year_level=self.next_level), segment_system)
        self.assertEqual(find(self.school), default)

    def test_inactive_systems_are_ignored(self):
        self.create_system('Old', subject=self.math, status=EvaluationSystem.Status.INACTIVE)
        self.assertIsNone(services.find_applicable(self.school, subject=self.math))

    def test_lookups_are_cached_and_invalidated(self):
        default = self.create_system('School default')
        self.assertEqual(services.find_applicable(self.school, subject=self.math), default)

        with self.assertNumQueries(0):
            self.assertEqual(services.find_applicable(self.school, subject=self.math), default)

        subject_system = self.create_system('Maths', subject=self.math)
        self.assertEqual(services.find_applicable(self.school, subject=self.math), subject_system)

    def test_missing_system_is_cached(self):
        self.assertIsNone(services.find_applicable(self.school))
        with self.assertNumQueries(0):
            self.assertIsNone(services.find_applicable(self.school))

    def test_invalid_config_rejected_on_save(self):
        with self.assertRaises(ValidationError):
            self.create_system('Broken', type=EvaluationSystemType.CONCEPTUAL, config={})

    def test_convert_grade(self):
        system = self.create_system(
            'Concepts', type=EvaluationSystemType.CONCEPTUAL, config={'concepts': CONCEPTS}
        )
        result = services.convert_grade(system, '7.5')
        self.assertEqual(result['display'], 'B')
        self.assertTrue(result['passing'])


# ============ Import ============

class ImportMarksTest(GradebookTestMixin, TestCase):

    def row(self, **overrides):
        row = {
            'admission_number': 'S001',
            'subject_code': 'MATH',
            'class_name': 'B4-A',
            'evaluation_period': 'Q1',
            'evaluation_type': 'test',
            'title': 'Week 3 test',
            'grade': '8',
        }
        row.update(overrides)
        return row

    def test_import_creates_marks_and_recomputes(self):
        result = import_marks(
            [self.row(), self.row(subject_code='ENG', grade='7.5', weight='2')],
            self.school, self.academic_year,
        )

        self.assertEqual(result['created'], 2)
        self.assertEqual(result['recomputed'], 1)
        self.assertEqual(Mark.objects.count(), 2)
        progress = AcademicProgress.objects.get(student=self.student, academic_year=self.academic_year)
        self.assertEqual(progress.subject_results.count(), 3)

    def test_recovery_type_marks_recovery(self):
        import_marks([self.row(evaluation_type='recovery')], self.school, self.academic_year)
        self.assertTrue(Mark.objects.get().is_recovery)

    def test_invalid_row_rejects_whole_batch(self):
        with self.assertRaises(ValidationError) as ctx:
            import_marks(
                [self.row(), self.row(grade='12'), self.row(admission_number='NOPE')],
                self.school, self.academic_year,
            )

        messages = ctx.exception.messages
        self.assertEqual(len(messages), 2)
        self.assertTrue(messages[0].startswith('Row 2:'))
        self.assertIn('NOPE', messages[1])
        self.assertFalse(Mark.objects.exists())

    def test_student_must_be_enrolled_in_class(self):
        Class.objects.create(
            school=self.school,
            educational_segment=self.segment,
            year_level=self.level,
            academic_year=self.academic_year,
            name='B4-B',
        )
        with self.assertRaises(ValidationError):
            import_marks([self.row(class_name='B4-B')], self.school, self.academic_year)

    def test_final_progress_is_skipped(self):
        self.add_mark(self.math, 8)
        progress = services.evaluate_student_progress(self.student, self.academic_year)
        progress.apply_council_decision(CouncilDecision.APPROVED)

        result = import_marks([self.row()], self.school, self.academic_year)

        self.assertEqual(result['recomputed'], 0)
        self.assertEqual(result['skipped'][0]['reason'], 'final')

    def test_read_csv_file(self):
        content = (
            'Admission Number,Subject Code,Class Name,Evaluation Period,Evaluation Type,Title,Grade\n'
            'S001,MATH,B4-A,Q1,test,Week 3 test,7.5\n'
        ).encode()
        rows = read_marks_file(SimpleUploadedFile('marks.csv', content, content_type='text/csv'))

        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0]['admission_number'], 'S001')
        result = import_marks(rows, self.school, self.academic_year)
        self.assertEqual(result['created'], 1)

    def test_read_file_rejects_other_types(self):
        with self.assertRaises(ValidationError):
            read_marks_file(SimpleUploadedFile('marks.txt', b'data'))

    def test_read_file_requires_columns(self):
        content = b'admission_number,grade\nS001,7\n'
        with self.assertRaises(ValidationError):
            read_marks_file(SimpleUploadedFile('marks.csv', content))


# ============ Signals & tasks ============

class RecalculationSignalTest(GradebookTestMixin, TestCase):

    def test_saved_mark_schedules_recalculation(self):
        with patch('gradebook.tasks.recalculate_student_progress.delay') as mock_delay:
            with self.captureOnCommitCallbacks(execute=True):
                self.add_mark(self.math, 7)

        mock_delay.assert_called_once_with(
            str(self.student.pk), str(self.academic_year.pk), str(self.klass.pk)
        )

    def test_deleted_mark_schedules_recalculation(self):
        mark = self.add_mark(self.math, 7)
        with patch('gradebook.tasks.recalculate_student_progress.delay') as mock_delay:
            with self.captureOnCommitCallbacks(execute=True):
                mark.delete()
        mock_delay.assert_called_once()

    def test_disabled_signals_schedule_nothing(self):
        with patch('gradebook.tasks.recalculate_student_progress.delay') as mock_delay:
            with self.captureOnCommitCallbacks(execute=True), signals_disabled():
                self.add_mark(self.math, 7)
        mock_delay.assert_not_called()


class TaskTest(GradebookTestMixin, TestCase):

    def test_recalculate_student_progress(self):
        self.add_mark(self.math, 9)
        result = recalculate_student_progress(
            str(self.student.pk), str(self.academic_year.pk), str(self.klass.pk)
        )

        self.assertTrue(result['success'])
        self.assertEqual(result['overall_status'], OverallStatus.PENDING)

    def test_recalculate_skips_final_progress(self):
        self.add_mark(self.math, 9)
        progress = services.evaluate_student_progress(self.student, self.academic_year)
        progress.apply_council_decision(CouncilDecision.APPROVED)

        result = recalculate_student_progress(str(self.student.pk), str(self.academic_year.pk))
        self.assertEqual(result, {'success': False, 'skipped': 'final'})

    def test_recalculate_missing_student(self):
        result = recalculate_student_progress('999999', str(self.academic_year.pk))
        self.assertFalse(result['success'])

    def test_recalculate_class_progress(self):
        result = recalculate_class_progress(str(self.klass.pk))
        self.assertTrue(result['success'])
        self.assertEqual(result['evaluated'], 1)

    def test_notify_at_risk_students_queues_emails(self):
        ama = self.create_student('Ama', 'Asante', 'S002')
        for student in (self.student, ama):
            self.add_mark(self.math, 2, student=student)
            self.add_mark(self.english, 3, student=student)

        with patch.object(send_at_risk_notification, 'delay') as mock_delay:
            result = notify_at_risk_students(str(self.klass.pk), threshold=2)

        self.assertEqual(result['at_risk'], 2)
        self.assertEqual(result['queued'], 1)
        self.assertEqual(result['without_email'], 1)
        mock_delay.assert_called_once_with(
            str(self.student.pk), str(self.klass.pk), ['English Language', 'Mathematics'], 3
        )

    def test_send_at_risk_notification(self):
        result = send_at_risk_notification(
            str(self.student.pk), str(self.klass.pk), ['Mathematics', 'English Language'], 3
        )

        self.assertTrue(result['success'])
        self.assertEqual(len(mail.outbox), 1)
        email = mail.outbox[0]
        self.assertEqual(email.to, ['ama@example.com'])
        self.assertIn('Kwame Mensah', email.subject)
        self.assertIn('failing 2 of 3 subjects', email.body)
        self.assertIn('Mathematics', email.body)

    def test_send_without_guardian_email(self):
        self.student.guardian_email = ''
        self.student.save()
        result = send_at_risk_notification(str(self.student.pk), str(self.klass.pk), ['Mathematics'], 3)
        self.assertFalse(result['success'])
        self.assertEqual(len(mail.outbox), 0)

    def test_smtp_failure_is_retried(self):
        with patch('gradebook.tasks.EmailMessage.send', side_effect=SMTPException('down')):
            with self.assertRaises(SMTPException):
                send_at_risk_notification(str(self.student.pk), str(self.klass.pk), ['Mathematics'], 3)


# ============ Views ============

class GradebookViewTest(GradebookTestMixin, TestCase):

    def setUp(self):
        super().setUp()
        self.admin = User.objects.create_school_admin(
            'head@accra-academy.edu.gh', 'testpass123', school=self.school
        )
        self.teacher = User.objects.create_teacher(
            'teacher@accra-academy.edu.gh', 'testpass123', school=self.school
        )
        other_school = School.objects.create(name='Achimota School')
        self.outsider = User.objects.create_school_admin(
            'head@achimota.edu.gh', 'testpass123', school=other_school
        )

    def post_json(self, url, data):
        return self.client.post(url, data=json.dumps(data), content_type='application/json')

    def test_login_required(self):
        response = self.client.get(reverse('gradebook:class_report', args=[self.klass.pk]))
        self.assertEqual(response.status_code, 302)

    def test_teacher_can_read_class_report(self):
        self.client.force_login(self.teacher)
        response = self.client.get(reverse('gradebook:class_report', args=[self.klass.pk]))

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['class']['name'], 'B4-A')

    def test_other_school_gets_404(self):
        self.client.force_login(self.outsider)
        response = self.client.get(reverse('gradebook:class_report', args=[self.klass.pk]))
        self.assertEqual(response.status_code, 404)

    def test_teacher_cannot_open_admin_reports(self):
        self.client.force_login(self.teacher)
        response = self.client.get(reverse('gradebook:school_report'))
        self.assertEqual(response.status_code, 302)

    def test_school_report(self):
        self.client.force_login(self.admin)
        response = self.client.get(reverse('gradebook:school_report'))

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['school']['name'], 'Accra Academy')

    def test_student_report(self):
        self.add_mark(self.math, 8)
        self.client.force_login(self.teacher)
        response = self.client.get(reverse('gradebook:student_report', args=[self.student.pk]))

        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.json()['subjects']), 3)

    def test_at_risk_invalid_threshold(self):
        self.client.force_login(self.teacher)
        url = reverse('gradebook:at_risk_students', args=[self.klass.pk])
        response = self.client.get(url, {'threshold': '0'})
        self.assertEqual(response.status_code, 400)

    def test_evaluate_student_requires_post(self):
        self.client.force_login(self.teacher)
        response = self.client.get(reverse('gradebook:evaluate_student', args=[self.student.pk]))
        self.assertEqual(response.status_code, 405)

    def test_evaluate_and_decide(self):
        self.add_mark(self.math, 8)
        self.add_mark(self.english, 8)
        self.add_mark(self.science, 2)

        self.client.force_login(self.teacher)
        response = self.post_json(reverse('gradebook:evaluate_student', args=[self.student.pk]), {})
        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(data['overall_status'], OverallStatus.FAILED)
        self.assertEqual(data['approval_percentage'], '66.67')

        council_url = reverse('gradebook:council_decision', args=[data['id']])
        response = self.post_json(council_url, {'decision': 'conditional'})
        self.assertEqual(response.status_code, 302)

        self.client.force_login(self.admin)
        response = self.post_json(council_url, {'decision': 'perhaps'})
        self.assertEqual(response.status_code, 400)

        response = self.post_json(council_url, {'decision': 'conditional', 'observations': 'Tutoring'})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['status'], ProgressStatus.FINAL)
        self.assertTrue(response.json()['promoted_to_next_level'])

        response = self.post_json(reverse('gradebook:evaluate_student', args=[self.student.pk]), {})
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()['code'], 'progress_finalized')

    def test_teacher_cannot_force(self):
        self.client.force_login(self.teacher)
        response = self.post_json(
            reverse('gradebook:evaluate_student', args=[self.student.pk]), {'force': True}
        )
        self.assertEqual(response.status_code, 403)

    def test_submit_for_review(self):
        progress = services.evaluate_student_progress(self.student, self.academic_year)
        self.client.force_login(self.teacher)
        url = reverse('gradebook:submit_for_review', args=[progress.pk])

        self.assertEqual(self.client.post(url).status_code, 200)
        self.assertEqual(self.client.post(url).status_code, 409)

    def test_evaluate_class_async(self):
        self.client.force_login(self.admin)
        with patch.object(recalculate_class_progress, 'delay') as mock_delay:
            response = self.post_json(
                reverse('gradebook:evaluate_class', args=[self.klass.pk]), {'async': True}
            )

        self.assertEqual(response.status_code, 202)
        mock_delay.assert_called_once_with(str(self.klass.pk), str(self.academic_year.pk), False)

    def test_evaluate_class(self):
        self.client.force_login(self.admin)
        response = self.post_json(reverse('gradebook:evaluate_class', args=[self.klass.pk]), {})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.json()['evaluated']), 1)

    def test_import_marks_json(self):
        self.client.force_login(self.admin)
        response = self.post_json(reverse('gradebook:import_marks'), {
            'marks': [{
                'admission_number': 'S001', 'subject_code': 'MATH', 'class_name': 'B4-A',
                'evaluation_period': 'Q1', 'evaluation_type': 'exam', 'title': 'Mid-term',
                'grade': 9,
            }],
        })

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.json()['created'], 1)

    def test_import_marks_invalid_rows(self):
        self.client.force_login(self.admin)
        response = self.post_json(reverse('gradebook:import_marks'), {'marks': [{'grade': 9}]})
        self.assertEqual(response.status_code, 400)
        self.assertFalse(Mark.objects.exists())

    def test_convert_grade_view(self):
        system = EvaluationSystem.objects.create(
            school=self.school, name='Concepts',
            type=EvaluationSystemType.CONCEPTUAL, config={'concepts': CONCEPTS},
        )
        self.client.force_login(self.teacher)
        url = reverse('gradebook:convert_grade', args=[system.pk])

        response = self.client.get(url, {'value': '7.5'})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['display'], 'B')

        response = self.client.get(url, {'value': 'Z'})
        self.assertEqual(response.status_code, 400)

    def test_applicable_system_view(self):
        self.client.force_login(self.teacher)
        url = reverse('gradebook:applicable_system')

        self.assertIsNone(self.client.get(url).json()['system'])

        system = EvaluationSystem.objects.create(
            school=self.school, name='Maths', type=EvaluationSystemType.NUMERIC, subject=self.math
        )
        response = self.client.get(url, {'subject': self.math.pk})
        self.assertEqual(response.json()['system']['id'], str(system.pk))
