from .evaluation import applicable_system, convert_grade
from .marks import import_marks_view
from .progress import (
    council_decision, evaluate_class, evaluate_student, notify_at_risk,
    progress_detail, submit_for_review,
)
from .reports import (
    at_risk_students, class_report, school_report, student_report,
    student_subject_history, subject_report, subject_statistics, year_level_report,
)
