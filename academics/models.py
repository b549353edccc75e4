from decimal import Decimal

from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.utils.translation import gettext_lazy as _

from core.choices import RecordStatus


class EducationalSegment(models.Model):
    """
    A stage of schooling (e.g. Primary, Lower Secondary) grouping year levels.
    """
    school = models.ForeignKey(
        'schools.School',
        on_delete=models.CASCADE,
        related_name='educational_segments'
    )
    name = models.CharField(max_length=100, help_text="e.g., Primary, Lower Secondary")
    acronym = models.CharField(max_length=10, blank=True)
    description = models.TextField(blank=True)
    order = models.PositiveSmallIntegerField(default=0)
    status = models.CharField(
        max_length=10,
        choices=RecordStatus.choices,
        default=RecordStatus.ACTIVE
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['school', 'order', 'name']
        verbose_name = "Educational Segment"
        verbose_name_plural = "Educational Segments"
        unique_together = ['school', 'name']

    def __str__(self):
        return self.name


class YearLevel(models.Model):
    """
    A grade within a segment (e.g. Basic 4).

    Promotion moves a student from one year level to the next; the next level
    is the one that names this level as its prerequisite, falling back to the
    following level by ``order``.
    """
    school = models.ForeignKey(
        'schools.School',
        on_delete=models.CASCADE,
        related_name='year_levels'
    )
    educational_segment = models.ForeignKey(
        EducationalSegment,
        on_delete=models.PROTECT,
        related_name='year_levels'
    )
    name = models.CharField(max_length=50, help_text="e.g., Basic 4")
    acronym = models.CharField(max_length=10, blank=True)
    order = models.PositiveSmallIntegerField(default=0)
    prerequisite_year_level = models.ForeignKey(
        'self',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='following_levels',
        help_text="Level a student must complete before this one"
    )
    status = models.CharField(
        max_length=10,
        choices=RecordStatus.choices,
        default=RecordStatus.ACTIVE
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['school', 'order', 'name']
        verbose_name = "Year Level"
        verbose_name_plural = "Year Levels"
        unique_together = ['school', 'name']

    def __str__(self):
        return self.name

    def get_next_level(self):
        """Return the year level a promoted student moves to, or None."""
        successor = (
            YearLevel.objects
            .filter(prerequisite_year_level=self, status=RecordStatus.ACTIVE)
            .order_by('order', 'pk')
            .first()
        )
        if successor:
            return successor
        return (
            YearLevel.objects
            .filter(school_id=self.school_id, order__gt=self.order, status=RecordStatus.ACTIVE)
            .order_by('order', 'pk')
            .first()
        )


class Class(models.Model):
    """
    A group of students studying together in one academic year.
    """
    class Shift(models.TextChoices):
        MORNING = 'morning', _('Morning')
        AFTERNOON = 'afternoon', _('Afternoon')
        EVENING = 'evening', _('Evening')
        FULL_TIME = 'full_time', _('Full Time')

    school = models.ForeignKey(
        'schools.School',
        on_delete=models.CASCADE,
        related_name='classes'
    )
    educational_segment = models.ForeignKey(
        EducationalSegment,
        on_delete=models.PROTECT,
        related_name='classes'
    )
    year_level = models.ForeignKey(
        YearLevel,
        on_delete=models.PROTECT,
        related_name='classes'
    )
    academic_year = models.ForeignKey(
        'core.AcademicYear',
        on_delete=models.PROTECT,
        related_name='classes'
    )
    name = models.CharField(max_length=20, help_text="e.g., B4-A")
    shift = models.CharField(
        max_length=10,
        choices=Shift.choices,
        default=Shift.MORNING
    )
    capacity = models.PositiveIntegerField(
        default=35,
        help_text="Maximum number of students"
    )
    status = models.CharField(
        max_length=10,
        choices=RecordStatus.choices,
        default=RecordStatus.ACTIVE
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['year_level__order', 'name']
        verbose_name = "Class"
        verbose_name_plural = "Classes"
        unique_together = ['school', 'academic_year', 'name']

    def __str__(self):
        return self.name


class SubjectQuerySet(models.QuerySet):

    def active(self):
        return self.filter(status=RecordStatus.ACTIVE)

    def for_class(self, klass):
        """Active subjects taught in a class, in stable listing order."""
        return self.active().filter(classes=klass).order_by('name', 'pk').distinct()


class Subject(models.Model):
    """
    Represents a subject taught at the school.
    Subjects can be mandatory, complementary or elective.
    """
    class SubjectType(models.TextChoices):
        MANDATORY = 'mandatory', _('Mandatory')
        COMPLEMENTARY = 'complementary', _('Complementary')
        ELECTIVE = 'elective', _('Elective')

    school = models.ForeignKey(
        'schools.School',
        on_delete=models.CASCADE,
        related_name='subjects'
    )
    name = models.CharField(
        max_length=100,
        help_text="e.g., Mathematics, English Language, Integrated Science"
    )
    code = models.CharField(max_length=20, help_text="e.g., MATH")
    description = models.TextField(blank=True)
    type = models.CharField(
        max_length=15,
        choices=SubjectType.choices,
        default=SubjectType.MANDATORY
    )
    workload = models.PositiveSmallIntegerField(default=0, help_text="Hours per year")
    min_grade_to_pass = models.DecimalField(
        max_digits=4,
        decimal_places=2,
        default=Decimal('6.00'),
        validators=[MinValueValidator(Decimal('0')), MaxValueValidator(Decimal('10'))]
    )
    year_level = models.ForeignKey(
        YearLevel,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='subjects'
    )
    classes = models.ManyToManyField(
        Class,
        blank=True,
        related_name='subjects'
    )
    status = models.CharField(
        max_length=10,
        choices=RecordStatus.choices,
        default=RecordStatus.ACTIVE
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = SubjectQuerySet.as_manager()

    class Meta:
        ordering = ['name']
        verbose_name = "Subject"
        verbose_name_plural = "Subjects"
        unique_together = ['school', 'code']

    def __str__(self):
        return self.name
