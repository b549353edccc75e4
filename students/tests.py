from datetime import date
from decimal import Decimal

from django.test import TestCase

from academics.models import Class, EducationalSegment, Subject, YearLevel
from core.exceptions import ConflictError
from core.models import AcademicYear
from gradebook.models import Mark
from schools.models import School
from students.models import Enrollment, Student


class StudentTestCase(TestCase):
    """Base test case with a class and one enrolled student."""

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
        segment = EducationalSegment.objects.create(school=self.school, name='Primary')
        level = YearLevel.objects.create(
            school=self.school, educational_segment=segment, name='Basic 4', order=4
        )
        self.klass = Class.objects.create(
            school=self.school,
            educational_segment=segment,
            year_level=level,
            academic_year=self.academic_year,
            name='B4-A',
        )
        self.student = Student.objects.create(
            school=self.school,
            first_name='Kwame',
            last_name='Mensah',
            other_names='Yeboah',
            admission_number='S001',
        )
        self.enrollment = Enrollment.objects.create(
            student=self.student,
            academic_year=self.academic_year,
            class_assigned=self.klass,
        )


class StudentModelTests(StudentTestCase):

    def test_full_name_includes_other_names(self):
        self.assertEqual(self.student.full_name, 'Kwame Yeboah Mensah')
        self.assertEqual(str(self.student), 'Kwame Yeboah Mensah (S001)')

    def test_full_name_without_other_names(self):
        student = Student(first_name='Ama', last_name='Asante')
        self.assertEqual(student.full_name, 'Ama Asante')

    def test_get_enrollment(self):
        self.assertEqual(self.student.get_enrollment(self.academic_year), self.enrollment)

    def test_get_enrollment_ignores_inactive(self):
        self.enrollment.status = Enrollment.Status.WITHDRAWN
        self.enrollment.save()
        self.assertIsNone(self.student.get_enrollment(self.academic_year))


class EnrollmentDeleteTests(StudentTestCase):

    def test_delete_without_marks(self):
        self.enrollment.delete()
        self.assertFalse(Enrollment.objects.exists())

    def test_delete_with_marks_is_refused(self):
        """Enrollments with recorded marks cannot be removed."""
        subject = Subject.objects.create(school=self.school, name='Mathematics', code='MATH')
        Mark.objects.create(
            school=self.school,
            student=self.student,
            subject=subject,
            class_assigned=self.klass,
            academic_year=self.academic_year,
            evaluation_period='Q1',
            title='Class test',
            grade=Decimal('7'),
        )

        with self.assertRaises(ConflictError) as ctx:
            self.enrollment.delete()

        self.assertEqual(ctx.exception.code, 'enrollment_has_marks')
        self.assertTrue(Enrollment.objects.filter(pk=self.enrollment.pk).exists())
