"""
Gradebook events and automatic progress recalculation.

``mark_recorded`` is sent whenever a Mark is saved and ``progress_finalized``
when a council decision closes a progress record. The default subscriber of
``mark_recorded`` schedules a Celery recalculation once the transaction that
wrote the mark commits.
"""
import logging
import threading

from django.db import transaction
from django.db.models.signals import m2m_changed, post_delete, post_save
from django.dispatch import Signal, receiver

from .models import EvaluationSystem, Mark

logger = logging.getLogger(__name__)

# Sent with: mark, created
mark_recorded = Signal()

# Sent with: progress, decision, user
progress_finalized = Signal()

# Thread-local storage for signal disabling (thread-safe)
_thread_locals = threading.local()


def _is_signals_disabled():
    """Check if signals are disabled for the current thread."""
    return getattr(_thread_locals, 'signals_disabled', False)


def disable_signals():
    """Disable automatic recalculation for the current thread (for bulk operations)."""
    _thread_locals.signals_disabled = True


def enable_signals():
    """Re-enable automatic recalculation for the current thread."""
    _thread_locals.signals_disabled = False


class signals_disabled:
    """Context manager to temporarily disable automatic recalculation (thread-safe)."""

    def __enter__(self):
        self._previous_state = _is_signals_disabled()
        disable_signals()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if not self._previous_state:
            enable_signals()
        return False


def schedule_progress_recalculation(student_id, academic_year_id, class_id):
    """Queue a progress recalculation after the current transaction commits."""
    if _is_signals_disabled():
        return

    from .tasks import recalculate_student_progress

    transaction.on_commit(
        lambda: recalculate_student_progress.delay(
            str(student_id), str(academic_year_id), str(class_id)
        )
    )
    logger.debug(f"Scheduled progress recalculation for student {student_id}")


@receiver(post_save, sender=Mark)
def mark_saved(sender, instance, created, **kwargs):
    mark_recorded.send(sender=Mark, mark=instance, created=created)


@receiver(post_delete, sender=Mark)
def mark_deleted(sender, instance, **kwargs):
    """Recalculate progress when a mark is deleted."""
    schedule_progress_recalculation(
        instance.student_id, instance.academic_year_id, instance.class_assigned_id
    )


@receiver(mark_recorded)
def recalculate_on_mark(sender, mark, created, **kwargs):
    schedule_progress_recalculation(mark.student_id, mark.academic_year_id, mark.class_assigned_id)


# ============ Cache Invalidation Signals ============

@receiver(post_save, sender=EvaluationSystem)
@receiver(post_delete, sender=EvaluationSystem)
def invalidate_evaluation_system_cache(sender, instance, **kwargs):
    """Invalidate cached evaluation-system lookups when a system changes."""
    from .services import invalidate_evaluation_systems
    invalidate_evaluation_systems(instance.school_id)
    logger.debug(f"Evaluation system cache invalidated for school {instance.school_id}")


@receiver(m2m_changed, sender=EvaluationSystem.year_levels.through)
@receiver(m2m_changed, sender=EvaluationSystem.educational_segments.through)
def invalidate_evaluation_system_scope(sender, instance, action, **kwargs):
    if action in ('post_add', 'post_remove', 'post_clear') and isinstance(instance, EvaluationSystem):
        from .services import invalidate_evaluation_systems
        invalidate_evaluation_systems(instance.school_id)
