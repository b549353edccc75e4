import uuid
from django.db import models
from django.utils.translation import gettext_lazy as _

from core.exceptions import ConflictError


class Student(models.Model):
    """
    Represents a student of a school.
    """
    class Gender(models.TextChoices):
        MALE = 'M', _('Male')
        FEMALE = 'F', _('Female')

    class Status(models.TextChoices):
        ACTIVE = 'active', _('Active')
        GRADUATED = 'graduated', _('Graduated')
        WITHDRAWN = 'withdrawn', _('Withdrawn')
        TRANSFERRED = 'transferred', _('Transferred')

    class GuardianRelationship(models.TextChoices):
        FATHER = 'father', _('Father')
        MOTHER = 'mother', _('Mother')
        GUARDIAN = 'guardian', _('Guardian')
        GRANDPARENT = 'grandparent', _('Grandparent')
        SIBLING = 'sibling', _('Sibling')
        OTHER = 'other', _('Other')

    school = models.ForeignKey(
        'schools.School',
        on_delete=models.CASCADE,
        related_name='students'
    )

    # Personal Information
    first_name = models.CharField(max_length=100)
    last_name = models.CharField(max_length=100)
    other_names = models.CharField(max_length=100, blank=True)
    date_of_birth = models.DateField(null=True, blank=True)
    gender = models.CharField(max_length=1, choices=Gender.choices, blank=True)

    # Guardian Information
    guardian_name = models.CharField(max_length=200, blank=True)
    guardian_phone = models.CharField(max_length=20, blank=True)
    guardian_email = models.EmailField(blank=True)
    guardian_relationship = models.CharField(
        max_length=20,
        choices=GuardianRelationship.choices,
        default=GuardianRelationship.GUARDIAN
    )

    # Admission Details
    admission_number = models.CharField(
        max_length=50,
        help_text="Unique student ID/admission number"
    )
    admission_date = models.DateField(null=True, blank=True)

    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.ACTIVE
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['last_name', 'first_name']
        verbose_name = "Student"
        verbose_name_plural = "Students"
        unique_together = ['school', 'admission_number']

    def __str__(self):
        return f"{self.full_name} ({self.admission_number})"

    @property
    def full_name(self):
        """Return full name of student."""
        names = [self.first_name]
        if self.other_names:
            names.append(self.other_names)
        names.append(self.last_name)
        return ' '.join(names)

    def get_enrollment(self, academic_year):
        """Return the active enrollment for an academic year, if any."""
        return (
            self.enrollments.active()
            .filter(academic_year=academic_year)
            .select_related('class_assigned', 'class_assigned__year_level')
            .first()
        )


class EnrollmentQuerySet(models.QuerySet):

    def active(self):
        return self.filter(status=Enrollment.Status.ACTIVE)

    def for_class(self, klass, academic_year=None):
        qs = self.filter(class_assigned=klass)
        if academic_year is not None:
            qs = qs.filter(academic_year=academic_year)
        return qs


class Enrollment(models.Model):
    """
    Tracks a student's enrollment in a class for a specific academic year.
    Only active enrollments count in class and year-level rollups.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    class Status(models.TextChoices):
        ACTIVE = 'active', _('Active')
        APPROVED = 'approved', _('Approved')
        FAILED = 'failed', _('Failed')
        TRANSFERRED = 'transferred', _('Transferred')
        WITHDRAWN = 'withdrawn', _('Withdrawn')

    student = models.ForeignKey(
        Student,
        on_delete=models.CASCADE,
        related_name='enrollments'
    )
    academic_year = models.ForeignKey(
        'core.AcademicYear',
        on_delete=models.PROTECT,
        related_name='enrollments'
    )
    class_assigned = models.ForeignKey(
        'academics.Class',
        on_delete=models.PROTECT,
        related_name='enrollments'
    )
    enrollment_date = models.DateField(auto_now_add=True)
    roll_number = models.PositiveIntegerField(null=True, blank=True)
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.ACTIVE
    )
    remarks = models.TextField(blank=True, help_text="Notes about this enrollment")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = EnrollmentQuerySet.as_manager()

    class Meta:
        ordering = ['roll_number', 'created_at']
        unique_together = ['student', 'class_assigned']
        verbose_name = "Enrollment"
        verbose_name_plural = "Enrollments"
        indexes = [
            models.Index(fields=['class_assigned', 'academic_year', 'status'], name='enrollment_class_year_idx'),
        ]

    def __str__(self):
        return f"{self.student.full_name} - {self.class_assigned.name} ({self.academic_year})"

    def delete(self, *args, **kwargs):
        from gradebook.models import Mark

        has_marks = Mark.objects.filter(
            student_id=self.student_id,
            class_assigned_id=self.class_assigned_id,
            academic_year_id=self.academic_year_id,
        ).exists()
        if has_marks:
            raise ConflictError(
                f"Cannot delete enrollment of {self.student.full_name}: marks are recorded for it.",
                code='enrollment_has_marks'
            )
        return super().delete(*args, **kwargs)
