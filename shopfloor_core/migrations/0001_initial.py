import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Worker",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=255)),
                ("email", models.EmailField(blank=True, max_length=254)),
                ("role", models.CharField(choices=[("worker", "Worker"), ("manager", "Manager"), ("admin", "Admin")], default="worker", max_length=20)),
                ("specializations", models.JSONField(blank=True, default=list)),
                ("is_active", models.BooleanField(default=True)),
                ("approval_status", models.CharField(choices=[("pending", "Pending"), ("approved", "Approved"), ("rejected", "Rejected")], default="pending", max_length=20)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("user", models.OneToOneField(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="worker_profile", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ("name", "id"),
                "indexes": [models.Index(fields=["role", "is_active"], name="shopfloor_c_role_4c1f0e_idx")],
            },
        ),
        migrations.CreateModel(
            name="Order",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("order_number", models.CharField(max_length=64, unique=True)),
                ("customer_name", models.CharField(max_length=255)),
                ("model_name", models.CharField(max_length=255)),
                ("wood_type", models.CharField(blank=True, max_length=100)),
                ("status", models.CharField(choices=[("pending", "Pending"), ("in_production", "In production"), ("completed", "Completed"), ("shipped", "Shipped"), ("on_hold", "On hold")], default="pending", max_length=20)),
                ("notes", models.TextField(blank=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ("-created_at", "-id"),
            },
        ),
        migrations.CreateModel(
            name="Batch",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("batch_number", models.CharField(max_length=32, unique=True)),
                ("current_stage", models.CharField(db_index=True, max_length=64)),
                ("priority", models.CharField(choices=[("low", "Low"), ("standard", "Standard"), ("high", "High"), ("urgent", "Urgent")], default="standard", max_length=20)),
                ("is_complete", models.BooleanField(default=False)),
                ("quality_status", models.CharField(choices=[("good", "Good"), ("hold", "On hold"), ("fail", "Failed")], default="good", max_length=20)),
                ("notes", models.TextField(blank=True)),
                ("version", models.PositiveIntegerField(default=0)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("created_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="created_batches", to="shopfloor_core.worker")),
            ],
            options={
                "ordering": ("-created_at", "-id"),
                "verbose_name_plural": "batches",
            },
        ),
        migrations.CreateModel(
            name="BatchOrder",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("position", models.PositiveIntegerField(default=0)),
                ("batch", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="batch_orders", to="shopfloor_core.batch")),
                ("order", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="batch_links", to="shopfloor_core.order")),
            ],
            options={
                "ordering": ("position", "id"),
                "constraints": [models.UniqueConstraint(fields=("batch", "order"), name="uniq_batch_order")],
            },
        ),
        migrations.AddField(
            model_name="batch",
            name="orders",
            field=models.ManyToManyField(related_name="batches", through="shopfloor_core.BatchOrder", to="shopfloor_core.order"),
        ),
        migrations.CreateModel(
            name="QualityCheck",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("stage", models.CharField(max_length=64)),
                ("outcome", models.CharField(choices=[("pass", "Pass"), ("fail", "Fail"), ("hold", "Hold")], max_length=10)),
                ("checklist_data", models.JSONField(blank=True, default=dict)),
                ("photos", models.JSONField(blank=True, default=list)),
                ("notes", models.TextField(blank=True)),
                ("resolution_notes", models.TextField(blank=True)),
                ("resolved_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("batch", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="quality_checks", to="shopfloor_core.batch")),
                ("performed_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="quality_checks", to="shopfloor_core.worker")),
                ("resolved_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="resolved_quality_checks", to="shopfloor_core.worker")),
            ],
            options={
                "ordering": ("-created_at", "-id"),
                "indexes": [models.Index(fields=["batch", "stage"], name="shopfloor_c_batch_i_8d2a6b_idx")],
            },
        ),
        migrations.CreateModel(
            name="StageAssignment",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("stage", models.CharField(max_length=64)),
                ("assigned_at", models.DateTimeField(auto_now_add=True)),
                ("started_at", models.DateTimeField(blank=True, null=True)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                ("quality_status", models.CharField(blank=True, choices=[("good", "Good"), ("warning", "Warning"), ("critical", "Critical"), ("hold", "Hold")], max_length=20)),
                ("time_spent_minutes", models.PositiveIntegerField(blank=True, null=True)),
                ("notes", models.TextField(blank=True)),
                ("assigned_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="assignments_made", to="shopfloor_core.worker")),
                ("batch", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="assignments", to="shopfloor_core.batch")),
                ("worker", models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name="assignments", to="shopfloor_core.worker")),
            ],
            options={
                "ordering": ("-assigned_at", "-id"),
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("completed_at__isnull", True)),
                        fields=("batch", "stage"),
                        name="uniq_open_assignment_per_batch_stage",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="AuditLogEntry",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("action", models.CharField(max_length=64)),
                ("context", models.CharField(default="production", max_length=64)),
                ("sequence", models.PositiveIntegerField(blank=True, null=True)),
                ("from_stage", models.CharField(blank=True, max_length=64)),
                ("to_stage", models.CharField(blank=True, max_length=64)),
                ("detail", models.JSONField(blank=True, default=dict)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("actor", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="audit_entries", to="shopfloor_core.worker")),
                ("batch", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name="audit_entries", to="shopfloor_core.batch")),
            ],
            options={
                "ordering": ("-created_at", "-id"),
                "verbose_name_plural": "audit log entries",
                "indexes": [models.Index(fields=["action", "created_at"], name="shopfloor_c_action_5e7b1c_idx")],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("sequence__isnull", False)),
                        fields=("batch", "sequence"),
                        name="uniq_audit_sequence_per_batch",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="WorkerNotification",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("kind", models.CharField(choices=[("assignment", "Assignment"), ("achievement", "Achievement"), ("quality", "Quality"), ("stall", "Stalled batch"), ("system", "System")], default="system", max_length=20)),
                ("title", models.CharField(max_length=255)),
                ("message", models.TextField(blank=True)),
                ("data", models.JSONField(blank=True, default=dict)),
                ("is_read", models.BooleanField(default=False)),
                ("read_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("worker", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="notifications", to="shopfloor_core.worker")),
            ],
            options={
                "ordering": ("-created_at", "-id"),
                "indexes": [models.Index(fields=["worker", "is_read"], name="shopfloor_c_worker__3b9d2e_idx")],
            },
        ),
        migrations.CreateModel(
            name="StageAlert",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("stage", models.CharField(max_length=64)),
                ("entered_sequence", models.PositiveIntegerField()),
                ("severity", models.CharField(choices=[("warning", "Warning"), ("breach", "Breach")], max_length=20)),
                ("threshold_seconds", models.PositiveIntegerField()),
                ("dwell_seconds", models.PositiveIntegerField()),
                ("triggered_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("resolved_at", models.DateTimeField(blank=True, null=True)),
                ("duration_seconds", models.PositiveIntegerField(blank=True, null=True)),
                ("batch", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="stage_alerts", to="shopfloor_core.batch")),
            ],
            options={
                "ordering": ("-triggered_at", "-id"),
                "constraints": [
                    models.UniqueConstraint(
                        fields=("batch", "entered_sequence", "severity"),
                        name="uniq_stage_alert_per_visit",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="StageGraphDefinition",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("code", models.SlugField(max_length=80)),
                ("name", models.CharField(max_length=255)),
                ("version", models.CharField(default="v1", max_length=30)),
                ("description", models.TextField(blank=True)),
                ("definition", models.JSONField(blank=True, default=dict)),
                ("is_active", models.BooleanField(default=False)),
                ("is_locked", models.BooleanField(default=False)),
                ("locked_at", models.DateTimeField(blank=True, null=True)),
                ("lock_reason", models.CharField(blank=True, max_length=255)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("locked_by", models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name="locked_stage_graphs", to=settings.AUTH_USER_MODEL)),
            ],
            options={
                "ordering": ("code", "version"),
                "constraints": [
                    models.UniqueConstraint(fields=("code", "version"), name="uniq_stage_graph_code_version"),
                    models.UniqueConstraint(
                        condition=models.Q(("is_active", True)),
                        fields=("is_active",),
                        name="single_active_stage_graph",
                    ),
                ],
            },
        ),
    ]
