from django.core.exceptions import ValidationError
from django.db import models
from django.utils.translation import gettext_lazy as _


class AcademicYear(models.Model):
    """
    Represents an academic year (e.g., 2024/2025) of one school.
    """
    school = models.ForeignKey(
        'schools.School',
        on_delete=models.CASCADE,
        related_name='academic_years'
    )
    name = models.CharField(
        max_length=50,
        help_text="e.g., 2024/2025 Academic Year"
    )
    year = models.PositiveSmallIntegerField(help_text="Calendar year the academic year starts in")
    start_date = models.DateField()
    end_date = models.DateField()
    is_current = models.BooleanField(
        default=False,
        help_text="Only one academic year per school can be current at a time"
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-start_date']
        verbose_name = "Academic Year"
        verbose_name_plural = "Academic Years"
        unique_together = ['school', 'name']

    def __str__(self):
        return self.name

    def clean(self):
        if self.start_date and self.end_date and self.end_date <= self.start_date:
            raise ValidationError({'end_date': _('End date must be after the start date.')})

    def save(self, *args, **kwargs):
        self.clean()
        # Ensure only one academic year is current per school
        if self.is_current:
            AcademicYear.objects.filter(
                school_id=self.school_id, is_current=True
            ).exclude(pk=self.pk).update(is_current=False)
        super().save(*args, **kwargs)

    @classmethod
    def get_current(cls, school):
        """Get the current academic year of a school."""
        return cls.objects.filter(school=school, is_current=True).first()
