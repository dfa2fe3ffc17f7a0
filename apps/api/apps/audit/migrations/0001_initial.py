from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion
import uuid


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='AuditLog',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('action', models.CharField(choices=[('create', 'Create'), ('read', 'Read'), ('update', 'Update'), ('delete', 'Delete'), ('view', 'View'), ('finalize', 'Finalize'), ('amend', 'Amend'), ('review', 'Review'), ('send', 'Send')], max_length=16)),
                ('entity_type', models.CharField(choices=[('encounter', 'Encounter'), ('progress_note', 'Progress Note'), ('investigation_order', 'Investigation Order'), ('investigation_result', 'Investigation Result'), ('correspondence', 'Correspondence'), ('template', 'Template'), ('user', 'User'), ('appointment', 'Appointment'), ('provider_patient_link', 'Provider-Patient Link')], max_length=32)),
                ('entity_id', models.CharField(max_length=64)),
                ('ip', models.GenericIPAddressField(blank=True, null=True)),
                ('source', models.CharField(choices=[('api', 'API'), ('system', 'System'), ('integration', 'Integration')], default='api', max_length=16)),
                ('timestamp', models.DateTimeField()),
                ('metadata', models.JSONField(blank=True, default=dict)),
                ('user', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='audit_logs', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Audit Log',
                'verbose_name_plural': 'Audit Logs',
                'db_table': 'audit_log',
                'ordering': ['-timestamp'],
                'indexes': [
                    models.Index(fields=['timestamp'], name='idx_audit_timestamp'),
                    models.Index(fields=['user'], name='idx_audit_user'),
                    models.Index(fields=['entity_type', 'entity_id'], name='idx_audit_entity'),
                    models.Index(fields=['action'], name='idx_audit_action'),
                ],
            },
        ),
    ]
