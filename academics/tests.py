"""
Tests for the academics app.

Focuses on:
- Next year level resolution used for promotion
- Subject listing per class
"""
from datetime import date

from django.test import TestCase

from academics.models import Class, EducationalSegment, Subject, YearLevel
from core.choices import RecordStatus
from core.models import AcademicYear
from schools.models import School


class AcademicsTestCase(TestCase):
    """Base test case with one school, segment and academic year."""

    def setUp(self):
        self.school = School.objects.create(name='Accra Academy', short_name='AA')
        self.academic_year = AcademicYear.objects.create(
            school=self.school,
            name='2024/2025',
            year=2024,
            start_date=date(2024, 9, 1),
            end_date=date(2025, 7, 31),
            is_current=True,
        )
        self.segment = EducationalSegment.objects.create(school=self.school, name='Primary', order=1)

    def create_level(self, name, order, **kwargs):
        return YearLevel.objects.create(
            school=self.school, educational_segment=self.segment, name=name, order=order, **kwargs
        )


class YearLevelTests(AcademicsTestCase):

    def test_next_level_by_prerequisite(self):
        """A level naming this one as prerequisite wins over order."""
        basic_4 = self.create_level('Basic 4', 4)
        self.create_level('Basic 5', 5)
        bridge = self.create_level('Bridge', 9, prerequisite_year_level=basic_4)

        self.assertEqual(basic_4.get_next_level(), bridge)

    def test_next_level_by_order(self):
        basic_4 = self.create_level('Basic 4', 4)
        basic_6 = self.create_level('Basic 6', 6)
        basic_5 = self.create_level('Basic 5', 5)

        self.assertEqual(basic_4.get_next_level(), basic_5)
        self.assertEqual(basic_5.get_next_level(), basic_6)

    def test_last_level_has_no_next(self):
        basic_6 = self.create_level('Basic 6', 6)
        self.assertIsNone(basic_6.get_next_level())

    def test_inactive_levels_are_skipped(self):
        basic_4 = self.create_level('Basic 4', 4)
        self.create_level('Basic 5', 5, status=RecordStatus.INACTIVE)
        basic_6 = self.create_level('Basic 6', 6)

        self.assertEqual(basic_4.get_next_level(), basic_6)


class SubjectForClassTests(AcademicsTestCase):

    def setUp(self):
        super().setUp()
        self.level = self.create_level('Basic 4', 4)
        self.klass = Class.objects.create(
            school=self.school,
            educational_segment=self.segment,
            year_level=self.level,
            academic_year=self.academic_year,
            name='B4-A',
        )

    def create_subject(self, name, code, **kwargs):
        return Subject.objects.create(school=self.school, name=name, code=code, **kwargs)

    def test_subjects_listed_by_name(self):
        science = self.create_subject('Integrated Science', 'SCI')
        maths = self.create_subject('Mathematics', 'MATH')
        english = self.create_subject('English Language', 'ENG')
        for subject in (science, maths, english):
            subject.classes.add(self.klass)

        self.assertEqual(list(Subject.objects.for_class(self.klass)), [english, science, maths])

    def test_inactive_and_unlinked_subjects_excluded(self):
        maths = self.create_subject('Mathematics', 'MATH')
        maths.classes.add(self.klass)
        retired = self.create_subject('Latin', 'LAT', status=RecordStatus.INACTIVE)
        retired.classes.add(self.klass)
        self.create_subject('French', 'FRE')

        self.assertEqual(list(Subject.objects.for_class(self.klass)), [maths])

    def test_default_pass_mark(self):
        subject = self.create_subject('Mathematics', 'MATH')
        subject.refresh_from_db()
        self.assertEqual(str(subject.min_grade_to_pass), '6.00')
