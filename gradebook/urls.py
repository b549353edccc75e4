from django.urls import path
from . import views

app_name = 'gradebook'

urlpatterns = [
    # Reports
    path('students/<int:student_id>/report/', views.student_report, name='student_report'),
    path(
        'students/<int:student_id>/subjects/<int:subject_id>/history/',
        views.student_subject_history,
        name='student_subject_history'
    ),
    path('classes/<int:class_id>/report/', views.class_report, name='class_report'),
    path(
        'classes/<int:class_id>/subjects/<int:subject_id>/report/',
        views.subject_report,
        name='subject_report'
    ),
    path('classes/<int:class_id>/at-risk/', views.at_risk_students, name='at_risk_students'),
    path('year-levels/<int:year_level_id>/report/', views.year_level_report, name='year_level_report'),
    path('school/report/', views.school_report, name='school_report'),
    path('subjects/<int:subject_id>/statistics/', views.subject_statistics, name='subject_statistics'),

    # Progress
    path('students/<int:student_id>/progress/', views.progress_detail, name='progress_detail'),
    path('students/<int:student_id>/progress/evaluate/', views.evaluate_student, name='evaluate_student'),
    path('classes/<int:class_id>/progress/evaluate/', views.evaluate_class, name='evaluate_class'),
    path('classes/<int:class_id>/at-risk/notify/', views.notify_at_risk, name='notify_at_risk'),
    path('progress/<uuid:progress_id>/submit/', views.submit_for_review, name='submit_for_review'),
    path('progress/<uuid:progress_id>/council/', views.council_decision, name='council_decision'),

    # Marks
    path('marks/import/', views.import_marks_view, name='import_marks'),

    # Evaluation systems
    path('evaluation-systems/applicable/', views.applicable_system, name='applicable_system'),
    path('evaluation-systems/<uuid:system_id>/convert/', views.convert_grade, name='convert_grade'),
]
