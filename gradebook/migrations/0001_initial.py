import django.core.validators
import django.db.models.deletion
import django.utils.timezone
import uuid
from decimal import Decimal
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('academics', '0001_initial'),
        ('core', '0001_initial'),
        ('schools', '0001_initial'),
        ('students', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Mark',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('evaluation_period', models.CharField(help_text='Period label (e.g., Q1, first, final)', max_length=20)),
                ('evaluation_type', models.CharField(choices=[('test', 'Test'), ('exam', 'Exam'), ('assignment', 'Assignment'), ('project', 'Project'), ('presentation', 'Presentation'), ('participation', 'Participation'), ('recovery', 'Recovery'), ('other', 'Other')], default='test', max_length=20)),
                ('title', models.CharField(blank=True, max_length=200)),
                ('grade', models.DecimalField(decimal_places=2, help_text='Grade between 0 and 10', max_digits=4, validators=[django.core.validators.MinValueValidator(Decimal('0')), django.core.validators.MaxValueValidator(Decimal('10'))])),
                ('weight', models.DecimalField(decimal_places=2, default=Decimal('1'), max_digits=5, validators=[django.core.validators.MinValueValidator(Decimal('0.01'))])),
                ('date', models.DateTimeField(default=django.utils.timezone.now)),
                ('is_recovery', models.BooleanField(default=False, help_text='Recovery marks are left out of the regular average')),
                ('status', models.CharField(choices=[('draft', 'Draft'), ('published', 'Published'), ('revised', 'Revised'), ('final', 'Final')], default='published', max_length=10)),
                ('comments', models.TextField(blank=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('academic_year', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='marks', to='core.academicyear')),
                ('class_assigned', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='marks', to='academics.class')),
                ('registered_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='registered_marks', to=settings.AUTH_USER_MODEL)),
                ('school', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='marks', to='schools.school')),
                ('student', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='marks', to='students.student')),
                ('subject', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='marks', to='academics.subject')),
            ],
            options={
                'verbose_name': 'Mark',
                'verbose_name_plural': 'Marks',
                'db_table': 'mark',
                'ordering': ['date', 'created_at'],
                'indexes': [
                    models.Index(fields=['student', 'subject', 'academic_year'], name='mark_student_subject_idx'),
                    models.Index(fields=['class_assigned', 'academic_year'], name='mark_class_year_idx'),
                    models.Index(fields=['academic_year', 'evaluation_period'], name='mark_year_period_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='AcademicProgress',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('overall_status', models.CharField(choices=[('approved', 'Approved'), ('failed', 'Failed'), ('recovery', 'Recovery'), ('pending', 'Pending'), ('conditional', 'Conditional')], default='pending', max_length=15)),
                ('promoted_to_next_level', models.BooleanField(default=False)),
                ('overall_average', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=4)),
                ('approval_percentage', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=5)),
                ('evaluation_date', models.DateTimeField(blank=True, null=True)),
                ('reviewed_by_council', models.BooleanField(default=False)),
                ('council_decision', models.CharField(choices=[('approved', 'Approved'), ('failed', 'Failed'), ('conditional', 'Conditional'), ('not_applicable', 'Not Applicable')], default='not_applicable', max_length=15)),
                ('council_date', models.DateTimeField(blank=True, null=True)),
                ('observations', models.TextField(blank=True)),
                ('status', models.CharField(choices=[('draft', 'Draft'), ('in_review', 'In Review'), ('final', 'Final')], default='draft', max_length=10)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('academic_year', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='academic_progress', to='core.academicyear')),
                ('class_assigned', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='academic_progress', to='academics.class')),
                ('evaluated_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='evaluated_progress', to=settings.AUTH_USER_MODEL)),
                ('next_year_level', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='incoming_progress', to='academics.yearlevel')),
                ('school', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='academic_progress', to='schools.school')),
                ('student', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='academic_progress', to='students.student')),
                ('year_level', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='academic_progress', to='academics.yearlevel')),
            ],
            options={
                'verbose_name': 'Academic Progress',
                'verbose_name_plural': 'Academic Progress',
                'db_table': 'academic_progress',
                'ordering': ['academic_year', 'class_assigned', 'student__last_name'],
                'indexes': [
                    models.Index(fields=['class_assigned', 'academic_year'], name='progress_class_year_idx'),
                    models.Index(fields=['year_level', 'academic_year'], name='progress_level_year_idx'),
                    models.Index(fields=['school', 'academic_year', 'overall_status'], name='progress_school_status_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(fields=('student', 'academic_year'), name='unique_progress_per_student_year'),
                ],
            },
        ),
        migrations.CreateModel(
            name='SubjectResult',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('position', models.PositiveSmallIntegerField(default=0)),
                ('regular_average', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=4)),
                ('recovery_grade', models.DecimalField(blank=True, decimal_places=2, max_digits=4, null=True)),
                ('final_average', models.DecimalField(decimal_places=2, default=Decimal('0'), max_digits=4)),
                ('min_grade_to_pass', models.DecimalField(decimal_places=2, default=Decimal('6'), max_digits=4)),
                ('approved', models.BooleanField(default=False)),
                ('final_status', models.CharField(choices=[('approved', 'Approved'), ('failed', 'Failed'), ('pending', 'Pending'), ('recovery', 'Recovery'), ('exempted', 'Exempted')], default='pending', max_length=10)),
                ('total_marks', models.PositiveIntegerField(default=0)),
                ('progress', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='subject_results', to='gradebook.academicprogress')),
                ('subject', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='progress_results', to='academics.subject')),
            ],
            options={
                'db_table': 'subject_result',
                'ordering': ['progress', 'position'],
                'unique_together': {('progress', 'subject')},
            },
        ),
        migrations.CreateModel(
            name='EvaluationSystem',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('name', models.CharField(max_length=100)),
                ('description', models.TextField(blank=True)),
                ('type', models.CharField(choices=[('numeric', 'Numeric'), ('conceptual', 'Conceptual'), ('descriptive', 'Descriptive'), ('custom', 'Custom')], max_length=15)),
                ('config', models.JSONField(blank=True, default=dict)),
                ('status', models.CharField(choices=[('active', 'Active'), ('inactive', 'Inactive')], default='active', max_length=10)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('academic_year', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name='evaluation_systems', to='core.academicyear')),
                ('educational_segments', models.ManyToManyField(blank=True, related_name='evaluation_systems', to='academics.educationalsegment')),
                ('school', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='evaluation_systems', to='schools.school')),
                ('subject', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.CASCADE, related_name='evaluation_systems', to='academics.subject')),
                ('year_levels', models.ManyToManyField(blank=True, related_name='evaluation_systems', to='academics.yearlevel')),
            ],
            options={
                'verbose_name': 'Evaluation System',
                'verbose_name_plural': 'Evaluation Systems',
                'db_table': 'evaluation_system',
                'ordering': ['school', 'name'],
                'indexes': [
                    models.Index(fields=['school', 'status'], name='evalsys_school_status_idx'),
                    models.Index(fields=['school', 'type'], name='evalsys_school_type_idx'),
                    models.Index(fields=['school', 'academic_year'], name='evalsys_school_year_idx'),
                ],
            },
        ),
    ]
