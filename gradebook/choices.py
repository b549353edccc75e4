from django.db import models
from django.utils.translation import gettext_lazy as _

class EvaluationType(models.TextChoices):
    TEST = 'test', _('Test')
    EXAM = 'exam', _('Exam')
    ASSIGNMENT = 'assignment', _('Assignment')
    PROJECT = 'project', _('Project')
    PRESENTATION = 'presentation', _('Presentation')
    PARTICIPATION = 'participation', _('Participation')
    RECOVERY = 'recovery', _('Recovery')
    OTHER = 'other', _('Other')

class MarkStatus(models.TextChoices):
    DRAFT = 'draft', _('Draft')
    PUBLISHED = 'published', _('Published')
    REVISED = 'revised', _('Revised')
    FINAL = 'final', _('Final')

class SubjectStatus(models.TextChoices):
    APPROVED = 'approved', _('Approved')
    FAILED = 'failed', _('Failed')
    PENDING = 'pending', _('Pending')
    RECOVERY = 'recovery', _('Recovery')
    EXEMPTED = 'exempted', _('Exempted')

class OverallStatus(models.TextChoices):
    APPROVED = 'approved', _('Approved')
    FAILED = 'failed', _('Failed')
    RECOVERY = 'recovery', _('Recovery')
    PENDING = 'pending', _('Pending')
    CONDITIONAL = 'conditional', _('Conditional')

class CouncilDecision(models.TextChoices):
    APPROVED = 'approved', _('Approved')
    FAILED = 'failed', _('Failed')
    CONDITIONAL = 'conditional', _('Conditional')
    NOT_APPLICABLE = 'not_applicable', _('Not Applicable')

class ProgressStatus(models.TextChoices):
    DRAFT = 'draft', _('Draft')
    IN_REVIEW = 'in_review', _('In Review')
    FINAL = 'final', _('Final')

class EvaluationSystemType(models.TextChoices):
    NUMERIC = 'numeric', _('Numeric')
    CONCEPTUAL = 'conceptual', _('Conceptual')
    DESCRIPTIVE = 'descriptive', _('Descriptive')
    CUSTOM = 'custom', _('Custom')


# Outcome of a council decision: (overall status, promoted to next level)
COUNCIL_OUTCOMES = {
    CouncilDecision.APPROVED: (OverallStatus.APPROVED, True),
    CouncilDecision.FAILED: (OverallStatus.FAILED, False),
    CouncilDecision.CONDITIONAL: (OverallStatus.CONDITIONAL, True),
}
