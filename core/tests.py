from datetime import date

from django.test import TestCase
from django.core.exceptions import ValidationError

from core.exceptions import ConflictError
from core.models import AcademicYear
from schools.models import School


class AcademicYearTests(TestCase):
    """Tests for the AcademicYear model."""

    def setUp(self):
        self.school = School.objects.create(name='Accra Academy', short_name='AA')

    def create_year(self, name, year, **kwargs):
        return AcademicYear.objects.create(
            school=self.school,
            name=name,
            year=year,
            start_date=date(year, 9, 1),
            end_date=date(year + 1, 7, 31),
            **kwargs
        )

    def test_only_one_current_year_per_school(self):
        """Marking a year current clears the flag on the others."""
        first = self.create_year('2023/2024', 2023, is_current=True)
        second = self.create_year('2024/2025', 2024, is_current=True)

        first.refresh_from_db()
        self.assertFalse(first.is_current)
        self.assertTrue(second.is_current)
        self.assertEqual(AcademicYear.get_current(self.school), second)

    def test_current_year_is_per_school(self):
        other = School.objects.create(name='Achimota School')
        mine = self.create_year('2024/2025', 2024, is_current=True)
        AcademicYear.objects.create(
            school=other, name='2024/2025', year=2024,
            start_date=date(2024, 9, 1), end_date=date(2025, 7, 31), is_current=True,
        )

        mine.refresh_from_db()
        self.assertTrue(mine.is_current)

    def test_get_current_without_current_year(self):
        self.create_year('2024/2025', 2024)
        self.assertIsNone(AcademicYear.get_current(self.school))

    def test_end_date_must_follow_start_date(self):
        with self.assertRaises(ValidationError):
            AcademicYear.objects.create(
                school=self.school, name='Broken', year=2024,
                start_date=date(2024, 9, 1), end_date=date(2024, 8, 1),
            )


class ConflictErrorTests(TestCase):

    def test_message_and_code(self):
        error = ConflictError('Already final.', code='progress_finalized')
        self.assertEqual(error.message, 'Already final.')
        self.assertEqual(error.code, 'progress_finalized')
        self.assertEqual(str(error), 'Already final.')
