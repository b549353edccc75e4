import logging
import uuid
from decimal import Decimal

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator, MaxValueValidator
from django.db import IntegrityError, models, transaction
from django.utils import timezone

from academics.models import Class, Subject, YearLevel
from core.exceptions import ConflictError
from students.models import Student

from . import config
from .calculations import progress_outcome, round_display, to_decimal
from .choices import (
    COUNCIL_OUTCOMES, CouncilDecision, EvaluationSystemType, EvaluationType,
    MarkStatus, OverallStatus, ProgressStatus, SubjectStatus,
)
from .converters import build_scheme, validate_config

logger = logging.getLogger(__name__)


class ProgressFinalizedError(ConflictError):
    """Recomputation was requested for a progress record closed by the council."""

    def __init__(self, progress):
        super().__init__(
            f"Academic progress of {progress.student} for {progress.academic_year} "
            f"is final; pass force=True to recompute it.",
            code='progress_finalized'
        )
        self.progress = progress


class MarkQuerySet(models.QuerySet):

    def for_student_subject(self, student, subject, academic_year, evaluation_period=None):
        """Marks of one student in one subject and year, oldest first."""
        qs = self.filter(student=student, subject=subject, academic_year=academic_year)
        if evaluation_period:
            qs = qs.filter(evaluation_period=evaluation_period)
        return qs.order_by('date', 'created_at', 'pk')

    def regular(self):
        return self.filter(is_recovery=False)

    def recovery(self):
        return self.filter(is_recovery=True)


class Mark(models.Model):
    """One graded assessment of a student in a subject."""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    IDENTITY_FIELDS = ('school_id', 'student_id', 'subject_id', 'class_assigned_id', 'academic_year_id')

    school = models.ForeignKey(
        'schools.School',
        on_delete=models.CASCADE,
        related_name='marks'
    )
    student = models.ForeignKey(
        Student,
        on_delete=models.CASCADE,
        related_name='marks',
        db_index=True
    )
    subject = models.ForeignKey(
        Subject,
        on_delete=models.PROTECT,
        related_name='marks',
        db_index=True
    )
    class_assigned = models.ForeignKey(
        Class,
        on_delete=models.PROTECT,
        related_name='marks'
    )
    academic_year = models.ForeignKey(
        'core.AcademicYear',
        on_delete=models.PROTECT,
        related_name='marks'
    )
    evaluation_period = models.CharField(
        max_length=20,
        help_text='Period label (e.g., Q1, first, final)'
    )
    evaluation_type = models.CharField(
        max_length=20,
        choices=EvaluationType.choices,
        default=EvaluationType.TEST
    )
    title = models.CharField(max_length=200, blank=True)
    grade = models.DecimalField(
        max_digits=4,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0')), MaxValueValidator(Decimal('10'))],
        help_text='Grade between 0 and 10'
    )
    weight = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        default=Decimal('1'),
        validators=[MinValueValidator(Decimal('0.01'))]
    )
    date = models.DateTimeField(default=timezone.now)
    is_recovery = models.BooleanField(
        default=False,
        help_text='Recovery marks are left out of the regular average'
    )
    status = models.CharField(
        max_length=10,
        choices=MarkStatus.choices,
        default=MarkStatus.PUBLISHED
    )
    comments = models.TextField(blank=True)
    registered_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='registered_marks'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = MarkQuerySet.as_manager()

    def __str__(self):
        return f"{self.student} - {self.subject.name} ({self.evaluation_period}): {self.grade}"

    def clean(self):
        """Validate grade range, weight and immutable identity fields."""
        errors = {}
        try:
            grade = to_decimal(self.grade)
        except (ArithmeticError, TypeError, ValueError):
            grade = None
        if grade is None or not grade.is_finite() or not config.MIN_GRADE <= grade <= config.MAX_GRADE:
            errors['grade'] = f'Grade must be between {config.MIN_GRADE} and {config.MAX_GRADE}.'

        try:
            weight = to_decimal(self.weight)
        except (ArithmeticError, TypeError, ValueError):
            weight = None
        if weight is None or not weight.is_finite() or weight <= 0:
            errors['weight'] = 'Weight must be a positive number.'

        if errors:
            raise ValidationError(errors)

        if not self._state.adding:
            original = Mark.objects.filter(pk=self.pk).values(*self.IDENTITY_FIELDS).first()
            if original:
                changed = [f for f in self.IDENTITY_FIELDS if original[f] != getattr(self, f)]
                if changed:
                    raise ValidationError(
                        f"Cannot change {', '.join(f.removesuffix('_id') for f in changed)} of a recorded mark."
                    )

    def save(self, *args, **kwargs):
        self.clean()
        self.grade = round_display(self.grade)
        self.weight = round_display(self.weight)
        super().save(*args, **kwargs)

    class Meta:
        db_table = 'mark'
        ordering = ['date', 'created_at']
        verbose_name = 'Mark'
        verbose_name_plural = 'Marks'
        indexes = [
            models.Index(fields=['student', 'subject', 'academic_year'], name='mark_student_subject_idx'),
            models.Index(fields=['class_assigned', 'academic_year'], name='mark_class_year_idx'),
            models.Index(fields=['academic_year', 'evaluation_period'], name='mark_year_period_idx'),
        ]


class AcademicProgress(models.Model):
    """
    A student's year-level result for one academic year.

    Recomputed from marks while in draft or review; a council decision
    closes it (status final) and later recomputation needs ``force=True``.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    school = models.ForeignKey(
        'schools.School',
        on_delete=models.CASCADE,
        related_name='academic_progress'
    )
    student = models.ForeignKey(
        Student,
        on_delete=models.CASCADE,
        related_name='academic_progress'
    )
    academic_year = models.ForeignKey(
        'core.AcademicYear',
        on_delete=models.PROTECT,
        related_name='academic_progress'
    )
    class_assigned = models.ForeignKey(
        Class,
        on_delete=models.PROTECT,
        related_name='academic_progress'
    )
    year_level = models.ForeignKey(
        YearLevel,
        on_delete=models.PROTECT,
        related_name='academic_progress'
    )

    overall_status = models.CharField(
        max_length=15,
        choices=OverallStatus.choices,
        default=OverallStatus.PENDING
    )
    promoted_to_next_level = models.BooleanField(default=False)
    next_year_level = models.ForeignKey(
        YearLevel,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='incoming_progress'
    )
    overall_average = models.DecimalField(max_digits=4, decimal_places=2, default=Decimal('0'))
    approval_percentage = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal('0'))
    evaluation_date = models.DateTimeField(null=True, blank=True)
    evaluated_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='evaluated_progress'
    )

    # Council review
    reviewed_by_council = models.BooleanField(default=False)
    council_decision = models.CharField(
        max_length=15,
        choices=CouncilDecision.choices,
        default=CouncilDecision.NOT_APPLICABLE
    )
    council_date = models.DateTimeField(null=True, blank=True)
    observations = models.TextField(blank=True)

    status = models.CharField(
        max_length=10,
        choices=ProgressStatus.choices,
        default=ProgressStatus.DRAFT
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.student} - {self.academic_year}: {self.get_overall_status_display()}"

    @property
    def is_final(self):
        return self.status == ProgressStatus.FINAL

    @classmethod
    def find_or_create(cls, student, academic_year, klass, year_level=None, school=None):
        """
        Return the progress record of a student for a year, creating it if needed.

        Raises:
            ConflictError: the record could not be created because of a concurrent duplicate
        """
        defaults = {
            'school': school or klass.school,
            'class_assigned': klass,
            'year_level': year_level or klass.year_level,
        }
        try:
            with transaction.atomic():
                progress, created = cls.objects.get_or_create(
                    student=student,
                    academic_year=academic_year,
                    defaults=defaults,
                )
        except IntegrityError as exc:
            raise ConflictError(
                f"Academic progress for {student} in {academic_year} already exists.",
                code='duplicate_progress'
            ) from exc
        if created:
            logger.debug(f"Created academic progress for {student} in {academic_year}")
        return progress

    REVIEW_FIELDS = ('status', 'reviewed_by_council', 'council_decision', 'council_date', 'observations')

    def _lock_review_state(self):
        """Lock this row and reload the fields a council decision writes."""
        current = (
            AcademicProgress.objects.select_for_update()
            .filter(pk=self.pk)
            .values(*self.REVIEW_FIELDS)
            .first()
        )
        if current:
            for field, value in current.items():
                setattr(self, field, value)

    def update_from_marks(self, force=False, user=None):
        """
        Recompute subject results and the promotion decision from marks.

        The finality check runs against the locked database row, so an
        instance loaded before a council decision cannot overwrite it.

        Raises:
            ProgressFinalizedError: the record is final and force is False
        """
        from .services import evaluate_subject

        with transaction.atomic():
            self._lock_review_state()
            if self.is_final and not force:
                raise ProgressFinalizedError(self)

            subjects = Subject.objects.for_class(self.class_assigned)
            results = [
                evaluate_subject(self.student, subject, self.academic_year)
                for subject in subjects
            ]
            outcome = progress_outcome(results)

            self.subject_results.all().delete()
            SubjectResult.objects.bulk_create([
                SubjectResult(
                    progress=self,
                    subject=result['subject'],
                    position=position,
                    regular_average=round_display(result['regular_average']),
                    recovery_grade=round_display(result['recovery_grade']),
                    final_average=round_display(result['final_average']),
                    min_grade_to_pass=round_display(result['min_grade_to_pass']),
                    approved=result['approved'],
                    final_status=result['final_status'],
                    total_marks=result['total_marks'],
                )
                for position, result in enumerate(results)
            ])

            self.overall_average = round_display(outcome['overall_average'])
            self.approval_percentage = round_display(outcome['approval_percentage'])
            self.overall_status = outcome['overall_status']
            self.promoted_to_next_level = outcome['promoted']
            self.next_year_level = self.year_level.get_next_level() if outcome['promoted'] else None
            self.evaluation_date = timezone.now()
            if user is not None:
                self.evaluated_by = user

            if self.is_final:
                # forced recompute reopens the record
                logger.warning(f"Forced recompute of finalized progress {self.pk}")
                self.status = ProgressStatus.DRAFT
                self.reviewed_by_council = False
                self.council_decision = CouncilDecision.NOT_APPLICABLE
                self.council_date = None

            self.save()

        logger.debug(
            f"Recomputed progress for {self.student}: avg={self.overall_average}, "
            f"approved={outcome['approved_subjects']}/{outcome['total_subjects']}, "
            f"status={self.overall_status}"
        )
        return self

    def submit_for_review(self):
        if self.status != ProgressStatus.DRAFT:
            raise ConflictError(
                f"Only draft progress can be submitted for review (current: {self.status}).",
                code='invalid_transition'
            )
        self.status = ProgressStatus.IN_REVIEW
        self.save(update_fields=['status', 'updated_at'])
        return self

    def apply_council_decision(self, decision, user=None, observations=''):
        """
        Record the class council's decision; the record becomes final.

        Raises:
            ValidationError: unknown decision
        """
        from .signals import progress_finalized

        if decision not in COUNCIL_OUTCOMES:
            raise ValidationError(
                {'decision': f"Invalid council decision '{decision}'. "
                             f"Expected one of: {', '.join(COUNCIL_OUTCOMES)}."}
            )

        overall_status, promoted = COUNCIL_OUTCOMES[decision]
        self.council_decision = decision
        self.overall_status = overall_status
        self.promoted_to_next_level = promoted
        self.next_year_level = self.year_level.get_next_level() if promoted else None
        self.reviewed_by_council = True
        self.council_date = timezone.now()
        self.evaluated_by = user
        if observations:
            self.observations = f"{self.observations}\n{observations}" if self.observations else observations
        self.status = ProgressStatus.FINAL
        self.save()

        logger.info(f"Council decision '{decision}' applied to progress {self.pk} by {user}")
        progress_finalized.send(sender=AcademicProgress, progress=self, decision=decision, user=user)
        return self

    class Meta:
        db_table = 'academic_progress'
        ordering = ['academic_year', 'class_assigned', 'student__last_name']
        verbose_name = 'Academic Progress'
        verbose_name_plural = 'Academic Progress'
        constraints = [
            models.UniqueConstraint(
                fields=['student', 'academic_year'],
                name='unique_progress_per_student_year'
            ),
        ]
        indexes = [
            models.Index(fields=['class_assigned', 'academic_year'], name='progress_class_year_idx'),
            models.Index(fields=['year_level', 'academic_year'], name='progress_level_year_idx'),
            models.Index(fields=['school', 'academic_year', 'overall_status'], name='progress_school_status_idx'),
        ]


class SubjectResult(models.Model):
    """Stored approval result of one subject inside an AcademicProgress."""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    progress = models.ForeignKey(
        AcademicProgress,
        on_delete=models.CASCADE,
        related_name='subject_results'
    )
    subject = models.ForeignKey(
        Subject,
        on_delete=models.PROTECT,
        related_name='progress_results'
    )
    position = models.PositiveSmallIntegerField(default=0)
    regular_average = models.DecimalField(max_digits=4, decimal_places=2, default=Decimal('0'))
    recovery_grade = models.DecimalField(max_digits=4, decimal_places=2, null=True, blank=True)
    final_average = models.DecimalField(max_digits=4, decimal_places=2, default=Decimal('0'))
    min_grade_to_pass = models.DecimalField(max_digits=4, decimal_places=2, default=Decimal('6'))
    approved = models.BooleanField(default=False)
    final_status = models.CharField(
        max_length=10,
        choices=SubjectStatus.choices,
        default=SubjectStatus.PENDING
    )
    total_marks = models.PositiveIntegerField(default=0)

    def __str__(self):
        return f"{self.subject.name}: {self.final_average} ({self.final_status})"

    class Meta:
        db_table = 'subject_result'
        ordering = ['progress', 'position']
        unique_together = ['progress', 'subject']


class EvaluationSystemQuerySet(models.QuerySet):

    def active(self):
        return self.filter(status=EvaluationSystem.Status.ACTIVE)

    def resolve(self, school, subject=None, year_level=None, academic_year=None):
        """
        Pick the system that applies to a subject / year level / year.

        Order: subject-specific, year level, educational segment, school
        default (no scoping), then any active system of the school.
        """
        qs = self.active().filter(school=school)
        if academic_year is not None:
            in_year = qs.filter(models.Q(academic_year=academic_year) | models.Q(academic_year__isnull=True))
        else:
            in_year = qs
        newest_first = ('-created_at', 'pk')

        if subject is not None:
            found = in_year.filter(subject=subject).order_by(*newest_first).first()
            if found:
                return found
        if year_level is not None:
            found = in_year.filter(year_levels=year_level).order_by(*newest_first).first()
            if found:
                return found
            found = in_year.filter(
                educational_segments=year_level.educational_segment_id
            ).order_by(*newest_first).first()
            if found:
                return found
        found = in_year.filter(
            subject__isnull=True,
            year_levels__isnull=True,
            educational_segments__isnull=True,
        ).order_by(*newest_first).first()
        if found:
            return found
        return qs.order_by(*newest_first).first()


class EvaluationSystem(models.Model):
    """How grades are expressed for a school: numeric, concepts or descriptive levels."""
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    class Status(models.TextChoices):
        ACTIVE = 'active', 'Active'
        INACTIVE = 'inactive', 'Inactive'

    school = models.ForeignKey(
        'schools.School',
        on_delete=models.CASCADE,
        related_name='evaluation_systems'
    )
    name = models.CharField(max_length=100)
    description = models.TextField(blank=True)
    type = models.CharField(
        max_length=15,
        choices=EvaluationSystemType.choices
    )
    config = models.JSONField(default=dict, blank=True)
    status = models.CharField(
        max_length=10,
        choices=Status.choices,
        default=Status.ACTIVE
    )
    academic_year = models.ForeignKey(
        'core.AcademicYear',
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='evaluation_systems'
    )
    subject = models.ForeignKey(
        Subject,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='evaluation_systems'
    )
    year_levels = models.ManyToManyField(
        YearLevel,
        blank=True,
        related_name='evaluation_systems'
    )
    educational_segments = models.ManyToManyField(
        'academics.EducationalSegment',
        blank=True,
        related_name='evaluation_systems'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = EvaluationSystemQuerySet.as_manager()

    def __str__(self):
        return f"{self.name} ({self.get_type_display()})"

    def clean(self):
        if self.type not in EvaluationSystemType.values:
            raise ValidationError({'type': f"Unknown evaluation system type '{self.type}'."})
        validate_config(self.type, self.config)

    def save(self, *args, **kwargs):
        self.clean()
        super().save(*args, **kwargs)

    def as_scheme(self):
        return build_scheme(self.type, self.config)

    def convert(self, value):
        return self.as_scheme().convert(value)

    class Meta:
        db_table = 'evaluation_system'
        ordering = ['school', 'name']
        verbose_name = 'Evaluation System'
        verbose_name_plural = 'Evaluation Systems'
        indexes = [
            models.Index(fields=['school', 'status'], name='evalsys_school_status_idx'),
            models.Index(fields=['school', 'type'], name='evalsys_school_type_idx'),
            models.Index(fields=['school', 'academic_year'], name='evalsys_school_year_idx'),
        ]
